"""
Tests for notification delivery.

Covers:
- Session broker fan-out and serialization
- Outbox enqueue, background delivery and drain on stop
- Dropping when the outbox is full
- Per-message delivery timeouts and transport failures
"""

from __future__ import annotations

import asyncio

import pytest

from habit_feedback.domain.models import ProactiveSuggestionPayload, ScoreCategory, TrendType
from habit_feedback.services.notifications import NotificationOutbox, SessionBroker


def _payload(content: str = "Would you like to try 'Journaling'?") -> ProactiveSuggestionPayload:
    return ProactiveSuggestionPayload(
        content=content,
        trend_type=TrendType.NEGATIVE_STREAK,
        category=ScoreCategory.MEDICATION,
    )


class _RecordingTransport:
    def __init__(self, delay_seconds: float = 0.0, fail: bool = False) -> None:
        self.delay_seconds = delay_seconds
        self.fail = fail
        self.delivered: list[tuple[int, ProactiveSuggestionPayload]] = []

    async def deliver(self, patient_id: int, payload: ProactiveSuggestionPayload) -> None:
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.fail:
            raise ConnectionError("socket closed")
        self.delivered.append((patient_id, payload))


class TestSessionBroker:
    async def test_delivers_camel_case_message_to_every_session(self) -> None:
        broker = SessionBroker()

        async with broker.connect(1) as first, broker.connect(1) as second:
            await broker.deliver(1, _payload())

            for queue in (first, second):
                message = queue.get_nowait()
                assert message["type"] == "proactive_suggestion"
                assert message["trendType"] == "negative_streak"
                assert message["category"] == "medication"
                assert "timestamp" in message

    async def test_only_the_target_patient_receives(self) -> None:
        broker = SessionBroker()

        async with broker.connect(1) as mine, broker.connect(2) as theirs:
            await broker.deliver(2, _payload())

            assert mine.empty()
            assert theirs.qsize() == 1

    async def test_no_session_is_not_an_error(self) -> None:
        await SessionBroker().deliver(99, _payload())

    async def test_disconnect_unregisters_session(self) -> None:
        broker = SessionBroker()

        async with broker.connect(1):
            assert broker.session_count == 1

        assert broker.session_count == 0

    async def test_full_session_queue_drops_message(self) -> None:
        broker = SessionBroker(session_queue_size=1)

        async with broker.connect(1) as queue:
            await broker.deliver(1, _payload("first"))
            await broker.deliver(1, _payload("second"))

            assert queue.qsize() == 1
            assert queue.get_nowait()["content"] == "first"


class TestNotificationOutbox:
    async def test_send_only_enqueues(self) -> None:
        transport = _RecordingTransport()
        outbox = NotificationOutbox(transport)

        await outbox.send(1, _payload())

        assert outbox.pending == 1
        assert transport.delivered == []

    async def test_worker_delivers_queued_messages(self) -> None:
        transport = _RecordingTransport()
        outbox = NotificationOutbox(transport)

        async with outbox.running():
            await outbox.send(1, _payload())
            await outbox.send(2, _payload())
            await outbox.flush()

        assert [patient_id for patient_id, _ in transport.delivered] == [1, 2]
        assert outbox.delivered_count == 2
        assert not outbox.is_running

    async def test_stop_drains_pending_messages(self) -> None:
        transport = _RecordingTransport()
        outbox = NotificationOutbox(transport)
        await outbox.send(1, _payload())

        outbox.start()
        await outbox.stop()

        assert len(transport.delivered) == 1

    async def test_full_outbox_drops_without_blocking(self) -> None:
        outbox = NotificationOutbox(_RecordingTransport(), max_size=1)

        await outbox.send(1, _payload())
        await asyncio.wait_for(outbox.send(1, _payload()), timeout=0.1)

        assert outbox.pending == 1
        assert outbox.dropped_count == 1

    async def test_slow_transport_times_out(self) -> None:
        transport = _RecordingTransport(delay_seconds=1.0)
        outbox = NotificationOutbox(transport, delivery_timeout_seconds=0.05)

        async with outbox.running():
            await outbox.send(1, _payload())
            await outbox.flush()

        assert outbox.failed_count == 1
        assert transport.delivered == []

    async def test_transport_failure_is_contained(self) -> None:
        outbox = NotificationOutbox(_RecordingTransport(fail=True))

        async with outbox.running():
            await outbox.send(1, _payload())
            await outbox.flush()
            assert outbox.is_running

        assert outbox.failed_count == 1

    async def test_outbox_feeds_broker_sessions(self) -> None:
        broker = SessionBroker()
        outbox = NotificationOutbox(broker)

        async with outbox.running(), broker.connect(5) as session:
            await outbox.send(5, _payload("hello"))
            await outbox.flush()

            assert session.get_nowait()["content"] == "hello"


@pytest.mark.performance
async def test_outbox_handles_burst_of_messages() -> None:
    transport = _RecordingTransport()
    outbox = NotificationOutbox(transport, max_size=500)

    async with outbox.running():
        await asyncio.gather(*(outbox.send(i, _payload()) for i in range(500)))
        await outbox.flush()

    assert len(transport.delivered) == 500
    assert outbox.dropped_count == 0
