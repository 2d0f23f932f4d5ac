from __future__ import annotations

from enum import IntEnum

from pydantic import BaseModel, Field, field_validator, model_validator


class Quality(IntEnum):
    """Self-assessed recall for one reviewed card."""

    AGAIN = 0
    HARD = 1
    GOOD = 2
    EASY = 3

    @property
    def label(self) -> str:
        return self.name.capitalize()


class Flashcard(BaseModel):
    id: str
    set_id: str
    question: str
    answer: str
    due_date: str | None = None          # None = never reviewed, due immediately
    interval: int | None = None          # days until next review
    ease_factor: float | None = None     # SM-2 multiplier, floor 1.3
    repetitions: int | None = None       # consecutive successful recalls
    last_reviewed_at: str | None = None
    created_at: str
    updated_at: str

    @model_validator(mode="after")
    def _srs_fields_set_together(self) -> "Flashcard":
        present = [
            v is not None for v in (self.interval, self.ease_factor, self.repetitions)
        ]
        if any(present) and not all(present):
            raise ValueError(
                "interval, ease_factor and repetitions must all be set or all be null"
            )
        return self


class _CardText(BaseModel):
    @field_validator("question", "answer", check_fields=False)
    @classmethod
    def _not_blank(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip()
        if not v:
            raise ValueError("must not be blank")
        return v


class FlashcardCreate(_CardText):
    question: str
    answer: str


class FlashcardUpdate(_CardText):
    question: str | None = None
    answer: str | None = None


class FlashcardSetCreate(BaseModel):
    title: str = Field(min_length=1)
    description: str | None = None


class FlashcardSet(BaseModel):
    id: str
    title: str
    description: str | None
    created_at: str
    updated_at: str


class FlashcardSetDetail(FlashcardSet):
    flashcards: list[Flashcard]
    total_cards: int
    learned_cards: int
    due_today_count: int
    mastery_percentage: int


class FlashcardSetList(BaseModel):
    items: list[FlashcardSet]
    total: int


class DueCards(BaseModel):
    items: list[Flashcard]
    total: int
    set_titles: dict[str, str] = Field(default_factory=dict)


class ReviewRequest(BaseModel):
    quality: Quality


class ReviewResult(BaseModel):
    id: str
    due_date: str
    interval: int
    ease_factor: float
    repetitions: int


class GenerateFlashcardsRequest(BaseModel):
    source_text: str = Field(min_length=1)


class GeneratedFlashcards(BaseModel):
    items: list[Flashcard]
    total: int
