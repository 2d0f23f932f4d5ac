from __future__ import annotations

import random

from flashdeck.models.flashcard import Flashcard
from flashdeck.models.session import CardView, QuizView


class QuizSession:
    """Self-graded pass over every card of a set in shuffled order.

    Each card ends up correct (True), incorrect (False) or unanswered (None).
    Quiz answers never touch SRS data.
    """

    def __init__(self, cards: list[Flashcard], rng: random.Random) -> None:
        self.cards = list(cards)
        rng.shuffle(self.cards)
        self.results: list[bool | None] = [None] * len(self.cards)
        self.index = 0
        self.is_showing_answer = False
        self.correct = 0
        self.finished = False

    @property
    def total(self) -> int:
        return len(self.cards)

    @property
    def current_card(self) -> Flashcard | None:
        if self.finished or not self.cards:
            return None
        return self.cards[self.index]

    def reveal(self) -> None:
        if self.current_card is not None:
            self.is_showing_answer = True

    def answer(self, correct: bool) -> bool:
        """Record the current card and move on. Returns True once the quiz is finished."""
        if self.current_card is None:
            return self.finished
        self.results[self.index] = correct
        if correct:
            self.correct += 1
        if self.index < len(self.cards) - 1:
            self.index += 1
            self.is_showing_answer = False
        else:
            self.finished = True
        return self.finished

    def view(self) -> QuizView:
        card = self.current_card
        return QuizView(
            index=self.index,
            total=self.total,
            correct=self.correct,
            finished=self.finished,
            is_showing_answer=self.is_showing_answer,
            current_card=(
                CardView(
                    id=card.id,
                    question=card.question,
                    answer=card.answer if self.is_showing_answer else None,
                )
                if card
                else None
            ),
            results=list(self.results),
        )
