from flashdeck.models.flashcard import Quality
from flashdeck.models.session import PerformanceRecord, StudySessionRecord
from flashdeck.services.report_builder import (
    challenging_cards,
    chart_data,
    format_chart_date,
    reshape_history,
    tally,
)


def _records(*qualities):
    return [
        PerformanceRecord(card_id=f"c{i}", question=f"Q{i}", quality=q)
        for i, q in enumerate(qualities)
    ]


def test_chart_data_skips_empty_buckets():
    counts = tally(_records(Quality.AGAIN, Quality.GOOD, Quality.GOOD, Quality.EASY))
    assert (counts.again, counts.hard, counts.good, counts.easy) == (1, 0, 2, 1)
    slices = chart_data(counts)
    assert [(s.name, s.count) for s in slices] == [
        ("Again (Forgot)", 1),
        ("Good (Recalled)", 2),
        ("Easy (Mastered)", 1),
    ]
    assert [s.color for s in slices] == ["red-500", "green-500", "blue-500"]


def test_chart_order_is_fixed():
    slices = chart_data(tally(_records(Quality.EASY, Quality.HARD, Quality.AGAIN)))
    assert [s.quality for s in slices] == [Quality.AGAIN, Quality.HARD, Quality.EASY]


def test_no_performance_gives_no_slices():
    assert chart_data(tally([])) == []


def test_challenging_cards_in_encounter_order():
    records = _records(
        Quality.HARD, Quality.GOOD, Quality.AGAIN, Quality.AGAIN,
        Quality.EASY, Quality.HARD, Quality.HARD, Quality.AGAIN,
    )
    picked = challenging_cards(records)
    assert [c.card_id for c in picked] == ["c0", "c2", "c3", "c5", "c6"]
    assert [c.quality for c in picked] == ["Hard", "Again", "Again", "Hard", "Hard"]


def test_challenging_cards_empty_when_all_recalled():
    assert challenging_cards(_records(Quality.GOOD, Quality.EASY)) == []


def test_format_chart_date():
    assert format_chart_date("2025-06-05 14:00:00") == "Jun 5"
    assert format_chart_date("2024-12-25 00:00:01") == "Dec 25"


def test_reshape_history():
    history = [
        StudySessionRecord(
            id="s1",
            set_id="set-1",
            cards_reviewed=8,
            performance_counts={"again": 3, "hard": 0, "good": 4, "easy": 1},
            mastery_at_end=40,
            completed_at="2025-06-01 10:00:00",
        ),
        StudySessionRecord(
            id="s2",
            set_id="set-1",
            cards_reviewed=0,
            performance_counts={},
            mastery_at_end=None,
            completed_at="2025-06-05 14:00:00",
        ),
    ]
    points = reshape_history(history)
    assert [p.date for p in points] == ["Jun 1", "Jun 5"]
    assert points[0].good_or_easy_percent == 63
    assert points[0].overall_mastery_percent == 40
    assert points[1].good_or_easy_percent == 0
    assert points[1].overall_mastery_percent is None
