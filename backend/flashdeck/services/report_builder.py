"""
Chart-ready aggregates for the end-of-session report.

Everything here is pure; dispatching the log/history/narrative collaborators
lives in the study session controller.
"""
from __future__ import annotations

from collections.abc import Iterable
from datetime import datetime

from flashdeck.models.flashcard import Quality
from flashdeck.models.session import (
    ChallengingCard,
    ChartSlice,
    PerformanceCounts,
    PerformanceRecord,
    StudySessionRecord,
    TrendPoint,
)
from flashdeck.services.mastery import percent

CHALLENGING_CARDS_LIMIT = 5

_BUCKETS: dict[Quality, tuple[str, str, str]] = {
    # quality: (counts field, chart name, colour)
    Quality.AGAIN: ("again", "Again (Forgot)", "red-500"),
    Quality.HARD: ("hard", "Hard (Difficult)", "orange-500"),
    Quality.GOOD: ("good", "Good (Recalled)", "green-500"),
    Quality.EASY: ("easy", "Easy (Mastered)", "blue-500"),
}


def tally(records: Iterable[PerformanceRecord]) -> PerformanceCounts:
    counts = PerformanceCounts()
    for record in records:
        field = _BUCKETS[record.quality][0]
        setattr(counts, field, getattr(counts, field) + 1)
    return counts


def chart_data(counts: PerformanceCounts) -> list[ChartSlice]:
    """One slice per non-empty bucket, always in Again, Hard, Good, Easy order."""
    slices = []
    for quality, (field, name, color) in _BUCKETS.items():
        count = getattr(counts, field)
        if count > 0:
            slices.append(ChartSlice(quality=quality, name=name, count=count, color=color))
    return slices


def challenging_cards(
    records: Iterable[PerformanceRecord], limit: int = CHALLENGING_CARDS_LIMIT
) -> list[ChallengingCard]:
    picked = [
        ChallengingCard(card_id=r.card_id, question=r.question, quality=r.quality.label)
        for r in records
        if r.quality in (Quality.AGAIN, Quality.HARD)
    ]
    return picked[:limit]


def format_chart_date(timestamp: str) -> str:
    """'2025-06-05 14:00:00' -> 'Jun 5'"""
    parsed = datetime.fromisoformat(timestamp)
    return f"{parsed:%b} {parsed.day}"


def reshape_history(records: Iterable[StudySessionRecord]) -> list[TrendPoint]:
    points = []
    for record in records:
        reviewed = record.cards_reviewed or 1
        good_or_easy = record.performance_counts.good + record.performance_counts.easy
        points.append(
            TrendPoint(
                date=format_chart_date(record.completed_at),
                overall_mastery_percent=record.mastery_at_end,
                good_or_easy_percent=percent(good_or_easy, reviewed),
            )
        )
    return points
