"""
Mastery aggregation over a set of flashcards.

A card is mastered once its interval reaches three weeks, or once it has at
least three successful repetitions with an interval of a week or more.
"""
from __future__ import annotations

import math
from collections.abc import Iterable

from flashdeck.models.flashcard import Flashcard

MASTERED_INTERVAL_DAYS = 21
LEARNED_REPETITIONS = 3
LEARNED_INTERVAL_DAYS = 7


def percent(part: int, whole: int) -> int:
    """Whole-number percentage rounded half up; 0 when there is nothing to divide by."""
    if whole <= 0:
        return 0
    return math.floor(part / whole * 100 + 0.5)


def is_mastered(card: Flashcard) -> bool:
    interval = card.interval or 0
    repetitions = card.repetitions or 0
    if interval >= MASTERED_INTERVAL_DAYS:
        return True
    return repetitions >= LEARNED_REPETITIONS and interval >= LEARNED_INTERVAL_DAYS


def mastered_count(cards: Iterable[Flashcard]) -> int:
    return sum(1 for c in cards if is_mastered(c))


def mastery_percentage(cards: Iterable[Flashcard]) -> int:
    cards = list(cards)
    return percent(mastered_count(cards), len(cards))
