"""
Flashcard collaborator operations shared by the HTTP routers and the
in-process study backend.

Missing rows come back as None; callers decide how to report them.
"""
from __future__ import annotations

import logging

import aiosqlite

from flashdeck.db.sqlite import (
    count_due_flashcards,
    get_flashcard,
    get_flashcard_set,
    list_flashcards_for_set,
    update_flashcard_srs,
)
from flashdeck.models.flashcard import FlashcardSetDetail, Quality, ReviewResult
from flashdeck.services.mastery import mastered_count, percent
from flashdeck.services.srs import compute_review

logger = logging.getLogger(__name__)


async def get_set_detail(
    db: aiosqlite.Connection, set_id: str
) -> FlashcardSetDetail | None:
    """Set metadata, all cards in creation order and the derived counters."""
    flashcard_set = await get_flashcard_set(db, set_id)
    if flashcard_set is None:
        return None
    cards = await list_flashcards_for_set(db, set_id)
    learned = mastered_count(cards)
    return FlashcardSetDetail(
        **flashcard_set.model_dump(),
        flashcards=cards,
        total_cards=len(cards),
        learned_cards=learned,
        due_today_count=await count_due_flashcards(db, set_id),
        mastery_percentage=percent(learned, len(cards)),
    )


async def review_flashcard(
    db: aiosqlite.Connection, card_id: str, quality: Quality
) -> ReviewResult | None:
    card = await get_flashcard(db, card_id)
    if card is None:
        return None

    update = compute_review(quality, card.repetitions, card.interval, card.ease_factor)
    updated = await update_flashcard_srs(
        db,
        card_id,
        due_date=update.due_date,
        interval=update.interval,
        ease_factor=update.ease_factor,
        repetitions=update.repetitions,
        reviewed_at=update.reviewed_at,
    )
    if updated is None:
        return None

    logger.debug(
        "Card %s graded %s: interval %d, ease %.2f, reps %d",
        card_id,
        quality.label,
        update.interval,
        update.ease_factor,
        update.repetitions,
    )
    return ReviewResult(
        id=card_id,
        due_date=update.due_date,
        interval=update.interval,
        ease_factor=update.ease_factor,
        repetitions=update.repetitions,
    )
