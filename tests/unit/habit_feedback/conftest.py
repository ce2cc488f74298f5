"""Shared fixtures and test doubles for the feedback pipeline tests."""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from datetime import date, timedelta

import pytest

from adapters.memory import InMemoryScoreStore
from habit_feedback.domain.models import (
    CarePlanSummary,
    ProactiveSuggestionPayload,
    ScoreSubmission,
    TrendResult,
)

START_DATE = date(2024, 1, 1)

HistoryFactory = Callable[..., list[ScoreSubmission]]


def build_history(
    patient_id: int = 1,
    diet: Sequence[int] | None = None,
    exercise: Sequence[int] | None = None,
    medication: Sequence[int] | None = None,
    start: date = START_DATE,
) -> list[ScoreSubmission]:
    """Chronological history; categories not given default to a neutral 7."""
    length = max(len(s) for s in (diet, exercise, medication) if s is not None)
    neutral = [7] * length
    diet = diet if diet is not None else neutral
    exercise = exercise if exercise is not None else neutral
    medication = medication if medication is not None else neutral
    return [
        ScoreSubmission(
            patient_id=patient_id,
            score_date=start + timedelta(days=i),
            diet_score=diet[i],
            exercise_score=exercise[i],
            medication_score=medication[i],
        )
        for i in range(length)
    ]


class RecordingChannel:
    """
    NotificationChannel double that records every payload handed to it.

    The call is recorded before the optional delay and failure, so `sent`
    counts hand-offs whatever the send's result.
    """

    def __init__(self, fail: bool = False, delay_seconds: float = 0.0) -> None:
        self.fail = fail
        self.delay_seconds = delay_seconds
        self.sent: list[tuple[int, ProactiveSuggestionPayload]] = []

    async def send(self, patient_id: int, payload: ProactiveSuggestionPayload) -> None:
        self.sent.append((patient_id, payload))
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.fail:
            raise ConnectionError("transport unavailable")


class FakeSuggestionGenerator:
    """SuggestionGenerator double returning canned text, optionally slow or failing."""

    def __init__(
        self,
        text: str = "Would you like to try the 'Inspiration Machine D' today?",
        delay_seconds: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.text = text
        self.delay_seconds = delay_seconds
        self.error = error
        self.calls: list[tuple[TrendResult, CarePlanSummary]] = []

    async def generate(self, trend: TrendResult, cpd_summary: CarePlanSummary) -> str:
        self.calls.append((trend, cpd_summary))
        if self.delay_seconds:
            await asyncio.sleep(self.delay_seconds)
        if self.error is not None:
            raise self.error
        return self.text


@pytest.fixture
def history_factory() -> HistoryFactory:
    return build_history


@pytest.fixture
def store() -> InMemoryScoreStore:
    return InMemoryScoreStore()


@pytest.fixture
def channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def generator() -> FakeSuggestionGenerator:
    return FakeSuggestionGenerator()


@pytest.fixture
def make_channel() -> type[RecordingChannel]:
    return RecordingChannel


@pytest.fixture
def make_generator() -> type[FakeSuggestionGenerator]:
    return FakeSuggestionGenerator
