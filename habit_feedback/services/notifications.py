"""
Fire-and-forget delivery of proactive suggestions to live patient sessions.

Pattern: the submission path only enqueues onto a bounded outbox; a separate
delivery worker drains it through a transport with a per-message timeout.
Transport failures are logged by the worker and never reach the submission
response.
"""

import asyncio
from collections import defaultdict
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Any, Protocol

import structlog

from habit_feedback.domain.models import ProactiveSuggestionPayload

logger = structlog.get_logger(__name__)


class NotificationChannel(Protocol):
    """Hands a payload over for best-effort delivery to one patient."""

    async def send(self, patient_id: int, payload: ProactiveSuggestionPayload) -> None: ...


class NotificationTransport(Protocol):
    """Actually pushes a payload to a patient's session (websocket, SSE, ...)."""

    async def deliver(self, patient_id: int, payload: ProactiveSuggestionPayload) -> None: ...


class SessionBroker:
    """
    In-process pub/sub of patient sessions.

    Each connected session owns a queue; delivering to a patient puts the
    serialized payload on every queue that patient has open.
    """

    def __init__(self, session_queue_size: int = 100) -> None:
        self.session_queue_size = session_queue_size
        self._sessions: dict[int, set[asyncio.Queue[dict[str, Any]]]] = defaultdict(set)
        self.logger = logger.bind(component="session_broker")

    @property
    def session_count(self) -> int:
        return sum(len(queues) for queues in self._sessions.values())

    @asynccontextmanager
    async def connect(self, patient_id: int) -> AsyncIterator[asyncio.Queue[dict[str, Any]]]:
        """Register a live session for the lifetime of the context."""
        queue: asyncio.Queue[dict[str, Any]] = asyncio.Queue(maxsize=self.session_queue_size)
        self._sessions[patient_id].add(queue)
        self.logger.info("session_connected", patient_id=patient_id)
        try:
            yield queue
        finally:
            self._sessions[patient_id].discard(queue)
            if not self._sessions[patient_id]:
                del self._sessions[patient_id]
            self.logger.info("session_disconnected", patient_id=patient_id)

    async def deliver(self, patient_id: int, payload: ProactiveSuggestionPayload) -> None:
        queues = self._sessions.get(patient_id, set())
        if not queues:
            self.logger.info("no_live_session", patient_id=patient_id)
            return

        message = payload.model_dump(mode="json", by_alias=True)
        for queue in queues:
            try:
                queue.put_nowait(message)
            except asyncio.QueueFull:
                self.logger.warning("session_queue_full", patient_id=patient_id)

        self.logger.debug("payload_delivered", patient_id=patient_id, recipients=len(queues))


class NotificationOutbox:
    """
    Bounded outbox implementing NotificationChannel.

    send() never waits on the transport. When the outbox is full the newest
    message is dropped with a warning instead of blocking the caller.
    """

    def __init__(
        self,
        transport: NotificationTransport,
        max_size: int = 1000,
        delivery_timeout_seconds: float = 5.0,
    ) -> None:
        self.transport = transport
        self.delivery_timeout_seconds = delivery_timeout_seconds
        self._queue: asyncio.Queue[tuple[int, ProactiveSuggestionPayload]] = asyncio.Queue(
            maxsize=max_size
        )
        self._worker: asyncio.Task[None] | None = None
        self.delivered_count = 0
        self.failed_count = 0
        self.dropped_count = 0
        self.logger = logger.bind(component="notification_outbox")

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def is_running(self) -> bool:
        return self._worker is not None and not self._worker.done()

    async def send(self, patient_id: int, payload: ProactiveSuggestionPayload) -> None:
        try:
            self._queue.put_nowait((patient_id, payload))
        except asyncio.QueueFull:
            self.dropped_count += 1
            self.logger.warning("notification_dropped", patient_id=patient_id, reason="outbox_full")
            return
        self.logger.debug("notification_enqueued", patient_id=patient_id, pending=self.pending)

    def start(self) -> None:
        if self.is_running:
            return
        self._worker = asyncio.create_task(self._deliver_forever(), name="notification-outbox")
        self.logger.info("notification_worker_started")

    async def stop(self, drain: bool = True) -> None:
        """Stop the worker, optionally delivering everything still queued first."""
        if self._worker is None:
            return
        if drain:
            await self._queue.join()
        self._worker.cancel()
        try:
            await self._worker
        except asyncio.CancelledError:
            pass
        self._worker = None
        self.logger.info(
            "notification_worker_stopped",
            delivered=self.delivered_count,
            failed=self.failed_count,
            dropped=self.dropped_count,
        )

    @asynccontextmanager
    async def running(self) -> AsyncIterator["NotificationOutbox"]:
        """Async context manager that owns the delivery worker's lifecycle."""
        self.start()
        try:
            yield self
        finally:
            await self.stop()

    async def flush(self) -> None:
        """Wait until every queued notification has been attempted."""
        await self._queue.join()

    async def _deliver_forever(self) -> None:
        while True:
            patient_id, payload = await self._queue.get()
            try:
                await asyncio.wait_for(
                    self.transport.deliver(patient_id, payload),
                    timeout=self.delivery_timeout_seconds,
                )
                self.delivered_count += 1
            except TimeoutError:
                self.failed_count += 1
                self.logger.warning(
                    "notification_delivery_timeout",
                    patient_id=patient_id,
                    timeout_seconds=self.delivery_timeout_seconds,
                )
            except Exception as e:
                self.failed_count += 1
                self.logger.error(
                    "notification_delivery_failed", patient_id=patient_id, error=str(e)
                )
            finally:
                self._queue.task_done()
