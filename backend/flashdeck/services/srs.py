"""
SM-2 style scheduling for a single review.

Grades 0-3 (Again/Hard/Good/Easy) map onto SM-2 qualities 0-5. A quality of
3 or more is a successful recall: the first success schedules 1 day, the
second 6 days, later ones multiply the previous interval by the ease factor.
A failed recall resets the streak and schedules the card for tomorrow.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from flashdeck.db.sqlite import format_timestamp
from flashdeck.models.flashcard import Quality

_GRADE_QUALITY = (0, 2, 4, 5)  # Again, Hard, Good, Easy -> SM-2 quality
DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3


@dataclass(frozen=True)
class SrsUpdate:
    interval: int
    ease_factor: float
    repetitions: int
    due_date: str
    reviewed_at: str


def compute_review(
    quality: Quality,
    repetitions: int | None,
    interval: int | None,
    ease_factor: float | None,
    now: datetime | None = None,
) -> SrsUpdate:
    """Schedule the next review.

    Grades are remapped onto SM-2 qualities 0, 2, 4, 5 instead of being passed
    through as 0-3, so Good and Easy count as successful recalls.
    """
    q = _GRADE_QUALITY[quality]
    reps = repetitions or 0
    ease = ease_factor or DEFAULT_EASE_FACTOR

    if q >= 3:
        if reps == 0:
            new_interval = 1
        elif reps == 1:
            new_interval = 6
        else:
            new_interval = max(1, math.floor((interval or 1) * ease + 0.5))
        new_reps = reps + 1
        ease = max(MIN_EASE_FACTOR, ease + (0.1 - (5 - q) * (0.08 + (5 - q) * 0.02)))
    else:
        new_reps = 0
        new_interval = 1

    reviewed = now or datetime.now(timezone.utc)
    return SrsUpdate(
        interval=new_interval,
        ease_factor=round(ease, 4),
        repetitions=new_reps,
        due_date=format_timestamp(reviewed + timedelta(days=new_interval)),
        reviewed_at=format_timestamp(reviewed),
    )
