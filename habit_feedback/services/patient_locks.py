"""Per-patient serialization of the feedback pipeline."""

import asyncio
import time
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

import structlog

logger = structlog.get_logger(__name__)


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0
    last_used: float = 0.0


class PatientLockRegistry:
    """
    One asyncio.Lock per patient, created on demand.

    Idle locks older than ttl_seconds are swept on each acquisition so the
    registry stays bounded by the number of recently active patients. Inject
    one registry per process; it is not a module-level singleton.
    """

    def __init__(
        self, ttl_seconds: float = 300.0, clock: Callable[[], float] = time.monotonic
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[int, _LockEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @asynccontextmanager
    async def hold(self, patient_id: int) -> AsyncIterator[None]:
        """Hold the patient's lock for the duration of the block."""
        self.sweep()
        entry = self._entries.setdefault(patient_id, _LockEntry())
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            entry.last_used = self._clock()

    def sweep(self) -> int:
        """Drop idle, expired locks. Returns how many were removed."""
        cutoff = self._clock() - self.ttl_seconds
        expired = [
            patient_id
            for patient_id, entry in self._entries.items()
            if entry.holders == 0 and entry.last_used <= cutoff
        ]
        for patient_id in expired:
            del self._entries[patient_id]
        if expired:
            logger.debug("patient_locks_swept", removed=len(expired), remaining=len(self._entries))
        return len(expired)
