"""
End-to-end demo of the feedback pipeline against in-memory adapters.

This script plays scripted patients through:
1. Configuration loading
2. A negative diet streak (proactive suggestion)
3. A steady patient with no trend (generic analysis view)
4. Two weeks of good diet scores (Bronze badge)
5. A slow suggestion model (static fallback)
6. A duplicate same-day submission (rejected)

Run with: uv run python run_demo.py
"""

import asyncio
from datetime import date, timedelta

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from adapters.memory import InMemoryScoreStore
from habit_feedback.config import FeedbackConfig, get_config
from habit_feedback.domain.models import CarePlanSummary, ScoreSubmission, TrendResult
from habit_feedback.logging_setup import configure_logging
from habit_feedback.services import (
    DuplicateSubmissionError,
    FeedbackCoordinator,
    NotificationOutbox,
    ScoreSubmissionService,
    SessionBroker,
    create_feedback_coordinator,
    generate_health_score_analysis,
)

console = Console()

TODAY = date.today()


def _history(patient_id: int, rows: list[tuple[int, int, int]]) -> list[ScoreSubmission]:
    """Submissions for the days before today, oldest first."""
    start = TODAY - timedelta(days=len(rows))
    return [
        ScoreSubmission(
            patient_id=patient_id,
            score_date=start + timedelta(days=i),
            diet_score=diet,
            exercise_score=exercise,
            medication_score=medication,
        )
        for i, (diet, exercise, medication) in enumerate(rows)
    ]


class SlowSuggestionGenerator:
    """Stands in for a model that never answers within the deadline."""

    async def generate(self, trend: TrendResult, cpd_summary: CarePlanSummary) -> str:
        await asyncio.sleep(60)
        return "unreachable"


async def _submit_and_show(
    service: ScoreSubmissionService,
    session: asyncio.Queue,
    outbox: NotificationOutbox,
    title: str,
    patient_id: int,
    scores: tuple[int, int, int],
) -> None:
    console.print(Panel(title, style="blue"))
    response = await service.submit(patient_id, *scores, score_date=TODAY)
    await outbox.flush()

    table = Table(title="Submission Response")
    table.add_column("Field", style="cyan")
    table.add_column("Value", style="white")
    table.add_row("success", str(response.success))
    table.add_row("message", response.message)
    table.add_row("proactiveSuggestionSent", str(response.proactive_suggestion_sent))
    table.add_row(
        "newBadges",
        ", ".join(f"{b.badge_name} ({b.tier.value})" for b in response.new_badges) or "-",
    )
    console.print(table)

    if response.proactive_suggestion_sent:
        while not session.empty():
            message = session.get_nowait()
            console.print(
                f"📨 [{message['trendType']} / {message['category']}] {message['content']}",
                style="green",
            )
    else:
        console.print(generate_health_score_analysis(*scores), style="yellow")


async def run_demo() -> None:
    config = get_config()
    configure_logging(config.logging)
    console.print(Panel("🩺 Habit Feedback Pipeline - Demo", style="bold blue"))
    console.print(
        f"Environment: {config.environment}, "
        f"model enabled: {config.ai_provider.enabled}, "
        f"trend window: {config.feedback.trend_window_size}"
    )

    store = InMemoryScoreStore()
    broker = SessionBroker()
    outbox = NotificationOutbox(
        broker,
        max_size=config.feedback.outbox_max_size,
        delivery_timeout_seconds=config.feedback.notification_timeout_seconds,
    )
    coordinator = create_feedback_coordinator(store, outbox, config)
    service = ScoreSubmissionService(store, coordinator)

    store.seed_history(_history(1, [(8, 7, 9), (5, 8, 9), (4, 7, 8)]))
    store.set_care_plan(
        1,
        CarePlanSummary(
            diet="Jane Citizen should follow a Mediterranean plan, call 0412 345 678 with questions"
        ),
    )
    store.seed_history(_history(2, [(7, 7, 7), (8, 6, 7), (7, 7, 8)]))
    store.seed_history(_history(3, [(6, 7, 7)] * 13))
    store.seed_history(_history(4, [(9, 9, 9)] * 5))

    async with outbox.running(), broker.connect(1) as s1, broker.connect(2) as s2:
        async with broker.connect(3) as s3, broker.connect(4) as s4:
            await _submit_and_show(service, s1, outbox, "📉 Negative diet streak", 1, (3, 8, 8))
            await _submit_and_show(service, s2, outbox, "😐 No trend", 2, (7, 7, 7))
            await _submit_and_show(service, s3, outbox, "🥉 Bronze badge", 3, (7, 7, 7))

            slow = FeedbackCoordinator(
                store,
                outbox,
                SlowSuggestionGenerator(),
                config=FeedbackConfig(suggestion_timeout_seconds=0.5),
            )
            await _submit_and_show(
                ScoreSubmissionService(store, slow),
                s4,
                outbox,
                "🐢 Slow model, static fallback",
                4,
                (9, 9, 9),
            )

    console.print(Panel("🚫 Duplicate submission", style="blue"))
    try:
        await service.submit(2, 5, 5, 5, score_date=TODAY)
    except DuplicateSubmissionError as e:
        console.print(f"Rejected: {e}", style="red")

    console.print(
        f"\nOutbox: delivered={outbox.delivered_count} failed={outbox.failed_count} "
        f"dropped={outbox.dropped_count}"
    )


if __name__ == "__main__":
    try:
        asyncio.run(run_demo())
    except KeyboardInterrupt:
        console.print("\n👋 Demo stopped by user", style="yellow")
