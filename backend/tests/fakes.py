from __future__ import annotations

import asyncio

from flashdeck.models.flashcard import (
    Flashcard,
    FlashcardCreate,
    FlashcardSetDetail,
    FlashcardUpdate,
    Quality,
    ReviewResult,
)
from flashdeck.models.session import (
    PerformanceRecord,
    StudySessionLogCreate,
    StudySessionRecord,
)
from flashdeck.services.mastery import mastered_count, mastery_percentage
from flashdeck.services.study_backend import BackendError

NOW = "2025-06-01 12:00:00"


def make_card(
    card_id: str,
    interval: int | None = None,
    repetitions: int | None = None,
    ease_factor: float | None = None,
    set_id: str = "set-1",
) -> Flashcard:
    reviewed = interval is not None or repetitions is not None
    return Flashcard(
        id=card_id,
        set_id=set_id,
        question=f"Question {card_id}",
        answer=f"Answer {card_id}",
        interval=(interval if interval is not None else 1) if reviewed else None,
        repetitions=(repetitions if repetitions is not None else 0) if reviewed else None,
        ease_factor=(ease_factor or 2.5) if reviewed else None,
        created_at=NOW,
        updated_at=NOW,
    )


class FakeBackend:
    """In-memory collaborators. Add a method name to `fail` to make it raise."""

    # interval / repetitions the fake scheduler assigns per quality
    SCHEDULE = {
        Quality.AGAIN: (1, 0),
        Quality.HARD: (1, 0),
        Quality.GOOD: (8, 1),
        Quality.EASY: (30, 1),
    }

    def __init__(self, cards: list[Flashcard] | None = None, title: str = "Biology"):
        self.cards: dict[str, Flashcard] = {c.id: c for c in cards or []}
        self.title = title
        self.due_ids: set[str] | None = None  # None: every card is due
        self.fail: set[str] = set()
        self.grade_level: str | None = "Grade 8"
        self.report_text = "## Nice work"
        self.report_gate: asyncio.Event | None = None
        self.history: list[StudySessionRecord] = []

        self.fetch_set_calls = 0
        self.srs_calls: list[tuple[str, Quality]] = []
        self.logged: list[StudySessionLogCreate] = []
        self.report_calls: list[tuple[str, list[PerformanceRecord], str | None]] = []

    def _check(self, name: str) -> None:
        if name in self.fail:
            raise BackendError(f"{name} failed")

    async def fetch_set(self, set_id: str) -> FlashcardSetDetail:
        self.fetch_set_calls += 1
        self._check("fetch_set")
        cards = list(self.cards.values())
        return FlashcardSetDetail(
            id=set_id,
            title=self.title,
            description=None,
            created_at=NOW,
            updated_at=NOW,
            flashcards=cards,
            total_cards=len(cards),
            learned_cards=mastered_count(cards),
            due_today_count=len(cards),
            mastery_percentage=mastery_percentage(cards),
        )

    async def fetch_due_cards(self, set_id: str) -> list[Flashcard]:
        self._check("fetch_due_cards")
        return [
            c for c in self.cards.values() if self.due_ids is None or c.id in self.due_ids
        ]

    async def update_srs(self, card_id: str, quality: Quality) -> ReviewResult:
        self._check("update_srs")
        self.srs_calls.append((card_id, quality))
        interval, repetitions = self.SCHEDULE[quality]
        self.cards[card_id] = self.cards[card_id].model_copy(
            update={"interval": interval, "repetitions": repetitions, "ease_factor": 2.5}
        )
        return ReviewResult(
            id=card_id,
            due_date=NOW,
            interval=interval,
            ease_factor=2.5,
            repetitions=repetitions,
        )

    async def log_session(self, set_id: str, body: StudySessionLogCreate) -> None:
        self._check("log_session")
        self.logged.append(body)

    async def fetch_history(self, set_id: str) -> list[StudySessionRecord]:
        self._check("fetch_history")
        return list(self.history)

    async def generate_report(
        self,
        set_title: str,
        performance: list[PerformanceRecord],
        grade_level: str | None,
    ) -> str:
        self.report_calls.append((set_title, list(performance), grade_level))
        if self.report_gate is not None:
            await self.report_gate.wait()
        self._check("generate_report")
        return self.report_text

    async def fetch_grade_level(self) -> str | None:
        self._check("fetch_grade_level")
        return self.grade_level

    async def add_card(self, set_id: str, body: FlashcardCreate) -> Flashcard:
        self._check("add_card")
        card = make_card(f"new-{len(self.cards) + 1}").model_copy(
            update={"question": body.question, "answer": body.answer}
        )
        self.cards[card.id] = card
        return card

    async def edit_card(self, card_id: str, body: FlashcardUpdate) -> Flashcard:
        self._check("edit_card")
        changes = body.model_dump(exclude_none=True)
        self.cards[card_id] = self.cards[card_id].model_copy(update=changes)
        return self.cards[card_id]

    async def delete_card(self, card_id: str) -> Flashcard:
        self._check("delete_card")
        return self.cards.pop(card_id)


