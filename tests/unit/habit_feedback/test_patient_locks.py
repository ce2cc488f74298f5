"""Tests for per-patient serialization."""

from __future__ import annotations

import asyncio

from habit_feedback.services.patient_locks import PatientLockRegistry


class _FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


async def test_same_patient_is_serialized() -> None:
    registry = PatientLockRegistry()
    events: list[str] = []

    async def work(name: str) -> None:
        async with registry.hold(1):
            events.append(f"{name}-start")
            await asyncio.sleep(0.01)
            events.append(f"{name}-end")

    await asyncio.gather(work("a"), work("b"))

    assert events == ["a-start", "a-end", "b-start", "b-end"]


async def test_different_patients_run_concurrently() -> None:
    registry = PatientLockRegistry()
    inside = asyncio.Event()
    release = asyncio.Event()

    async def first() -> None:
        async with registry.hold(1):
            inside.set()
            await release.wait()

    task = asyncio.create_task(first())
    await inside.wait()

    async with registry.hold(2):
        release.set()

    await task


async def test_idle_locks_expire_after_ttl() -> None:
    clock = _FakeClock()
    registry = PatientLockRegistry(ttl_seconds=60, clock=clock)

    async with registry.hold(1):
        pass
    assert len(registry) == 1

    clock.now += 30
    assert registry.sweep() == 0

    clock.now += 31
    assert registry.sweep() == 1
    assert len(registry) == 0


async def test_held_locks_are_never_swept() -> None:
    clock = _FakeClock()
    registry = PatientLockRegistry(ttl_seconds=0, clock=clock)

    async with registry.hold(1):
        clock.now += 100
        assert registry.sweep() == 0
        assert len(registry) == 1


async def test_acquisition_sweeps_other_patients() -> None:
    clock = _FakeClock()
    registry = PatientLockRegistry(ttl_seconds=10, clock=clock)

    async with registry.hold(1):
        pass
    clock.now += 11

    async with registry.hold(2):
        assert len(registry) == 1
