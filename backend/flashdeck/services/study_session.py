"""
Study session controller.

Drives one flashcard set through browse, study (spaced repetition) and quiz
modes:

  IDLE --load--> BROWSING | EMPTY_SET
  BROWSING --compose(study)--> STUDYING          (due cards, shuffled)
  STUDYING --grade(last card) / exit--> REPORT_BUILDING --> BROWSING
  BROWSING --compose(quiz)--> QUIZZING --exit_quiz--> BROWSING

Collaborator failures never escape the controller: they are turned into
notices the caller drains with ``drain_notices()`` (or ``view()``).
Precondition violations raise ``InvalidTransitionError``.
"""
from __future__ import annotations

import asyncio
import logging
import random
import uuid
from collections.abc import Coroutine
from typing import Any

from flashdeck.models.flashcard import (
    Flashcard,
    FlashcardCreate,
    FlashcardSetDetail,
    FlashcardUpdate,
    Quality,
)
from flashdeck.models.session import (
    CardView,
    ComposeOutcome,
    ControllerState,
    GradeOutcome,
    Notice,
    PerformanceRecord,
    SessionReport,
    SessionView,
    StudyMode,
    StudySessionLogCreate,
)
from flashdeck.services import task_registry
from flashdeck.services.mastery import mastery_percentage
from flashdeck.services.quiz_session import QuizSession
from flashdeck.services.report_builder import (
    challenging_cards,
    chart_data,
    reshape_history,
    tally,
)
from flashdeck.services.study_backend import BackendError, StudyBackend

logger = logging.getLogger(__name__)


class InvalidTransitionError(Exception):
    """The requested operation is not allowed in the controller's current state."""


class StudySessionController:
    def __init__(
        self,
        backend: StudyBackend,
        set_id: str,
        rng: random.Random | None = None,
        session_id: str | None = None,
    ) -> None:
        self.session_id = session_id or str(uuid.uuid4())
        self.set_id = set_id
        self.backend = backend
        self.state = ControllerState.IDLE

        self.set_detail: FlashcardSetDetail | None = None
        self.cards: list[Flashcard] = []          # whole set; browse order
        self.session_cards: list[Flashcard] = []  # study session; shuffled due cards
        self.index = 0
        self.is_showing_answer = False

        self.performance: list[PerformanceRecord] = []
        self.quiz: QuizSession | None = None
        self.report: SessionReport | None = None
        self.grade_level: str | None = None

        self._rng = rng or random.Random()
        self._grading = False
        self._closed = False
        self._notices: list[Notice] = []
        self._tasks: set[asyncio.Task[Any]] = set()

    # --- lifecycle ---

    async def __aenter__(self) -> "StudySessionController":
        return self

    async def __aexit__(self, *exc_info) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Detach the controller. In-flight report tasks still settle but no longer write here."""
        self._closed = True

    async def settle(self) -> None:
        """Wait for this controller's background report tasks."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # --- notices ---

    def _notify(self, level: str, title: str, description: str | None = None) -> None:
        if level == "error":
            logger.warning("[%s] %s: %s", self.session_id, title, description)
        else:
            logger.info("[%s] %s", self.session_id, title)
        if not self._closed:
            self._notices.append(Notice(level=level, title=title, description=description))

    def drain_notices(self) -> list[Notice]:
        notices, self._notices = self._notices, []
        return notices

    # --- derived values ---

    def _active_cards(self) -> list[Flashcard]:
        if self.state is ControllerState.STUDYING:
            return self.session_cards
        if self.state is ControllerState.BROWSING:
            return self.cards
        return []

    @property
    def current_card(self) -> Flashcard | None:
        cards = self._active_cards()
        if 0 <= self.index < len(cards):
            return cards[self.index]
        return None

    @property
    def progress(self) -> float:
        if self.state is not ControllerState.STUDYING or not self.session_cards:
            return 0.0
        return (self.index + 1) / len(self.session_cards) * 100

    @property
    def mastery_percentage(self) -> int:
        return mastery_percentage(self.cards)

    # --- loading ---

    def _apply_set(self, detail: FlashcardSetDetail) -> None:
        self.set_detail = detail
        self.cards = list(detail.flashcards)

    def _enter_browse(self) -> None:
        if self.set_detail is not None:
            self.cards = list(self.set_detail.flashcards)
        self.session_cards = []
        self.quiz = None
        self.index = 0
        self.is_showing_answer = False
        self.state = ControllerState.BROWSING if self.cards else ControllerState.EMPTY_SET

    async def load(self) -> bool:
        """Fetch the set (and the student's grade level) and enter browse mode."""
        if self.state not in (
            ControllerState.IDLE,
            ControllerState.BROWSING,
            ControllerState.EMPTY_SET,
        ):
            raise InvalidTransitionError(f"cannot reload the set while {self.state.value}")
        try:
            detail = await self.backend.fetch_set(self.set_id)
        except BackendError as e:
            self._notify("error", "Load Failed", str(e))
            return False
        self._apply_set(detail)

        try:
            self.grade_level = await self.backend.fetch_grade_level()
        except BackendError as e:
            logger.warning("Could not load grade level: %s", e)

        self._enter_browse()
        return True

    # --- Session Composer ---

    async def compose(self, mode: StudyMode) -> ComposeOutcome:
        mode = StudyMode(mode)
        if self.state is ControllerState.IDLE:
            raise InvalidTransitionError("the set has not been loaded")
        if self.state is ControllerState.REPORT_BUILDING or self._grading:
            raise InvalidTransitionError("a grade or report is still in progress")
        if self.state is ControllerState.STUDYING:
            if mode is StudyMode.STUDY:
                raise InvalidTransitionError("a study session is already running")
            if self.performance:
                await self._finish_session()

        if not self.cards:
            self._enter_browse()
            self._notify("info", "This flashcard set is empty.")
            return ComposeOutcome.EMPTY_SET

        if mode is StudyMode.BROWSE:
            self._enter_browse()
            return ComposeOutcome.STARTED
        if mode is StudyMode.QUIZ:
            return self._compose_quiz()
        return await self._compose_study()

    async def _compose_study(self) -> ComposeOutcome:
        try:
            due = await self.backend.fetch_due_cards(self.set_id)
        except BackendError as e:
            self._notify("error", "Failed to load due cards", str(e))
            self._enter_browse()
            return ComposeOutcome.FAILED

        if not due:
            self._notify(
                "info",
                "No cards due for review right now!",
                "Great job, or come back later.",
            )
            self._enter_browse()
            return ComposeOutcome.NOTHING_DUE

        session_cards = list(due)
        self._rng.shuffle(session_cards)
        self.quiz = None
        self.session_cards = session_cards
        self.index = 0
        self.is_showing_answer = False
        self.state = ControllerState.STUDYING
        return ComposeOutcome.STARTED

    def _compose_quiz(self) -> ComposeOutcome:
        self.quiz = QuizSession(self.cards, self._rng)
        self.session_cards = []
        self.index = 0
        self.is_showing_answer = False
        self.state = ControllerState.QUIZZING
        self._notify(
            "success",
            "Quiz started!",
            f"Testing your knowledge on {self.quiz.total} cards.",
        )
        return ComposeOutcome.STARTED

    # --- Card Navigator ---

    def _require_not_grading(self) -> None:
        if self._grading:
            raise InvalidTransitionError("the previous grade is still being recorded")

    def flip(self) -> None:
        self._require_not_grading()
        if self.current_card is not None:
            self.is_showing_answer = not self.is_showing_answer

    def next(self) -> None:
        self._require_not_grading()
        if self.index < len(self._active_cards()) - 1:
            self.index += 1
            self.is_showing_answer = False

    def previous(self) -> None:
        self._require_not_grading()
        if self.index > 0 and self._active_cards():
            self.index -= 1
            self.is_showing_answer = False

    def shuffle(self) -> None:
        self._require_not_grading()
        cards = self._active_cards()
        if not cards:
            return
        self._rng.shuffle(cards)
        self.index = 0
        self.is_showing_answer = False
        self._notify("info", "Cards shuffled!")

    # --- Grading Recorder ---

    async def grade(self, quality: Quality | int) -> GradeOutcome:
        quality = Quality(quality)
        if self.state is not ControllerState.STUDYING:
            raise InvalidTransitionError("grading is only possible during a study session")
        self._require_not_grading()
        card = self.current_card
        if card is None or not self.is_showing_answer:
            raise InvalidTransitionError("show the answer before grading")

        position = self.index
        self._grading = True
        try:
            await self.backend.update_srs(card.id, quality)
        except BackendError as e:
            self._notify("error", "Failed to update card.", str(e))
            return GradeOutcome.FAILED
        finally:
            self._grading = False

        self.performance.append(
            PerformanceRecord(card_id=card.id, question=card.question, quality=quality)
        )
        if position < len(self.session_cards) - 1:
            self.index = position + 1
            self.is_showing_answer = False
            return GradeOutcome.ADVANCED
        await self._finish_session()
        return GradeOutcome.SESSION_COMPLETE

    async def exit_study(self) -> SessionReport | None:
        """Leave study mode; builds the report when at least one card was graded."""
        if self.state is not ControllerState.STUDYING:
            raise InvalidTransitionError("no study session is running")
        self._require_not_grading()
        if not self.performance:
            self._enter_browse()
            return None
        return await self._finish_session()

    # --- Session Report Builder ---

    async def _finish_session(self) -> SessionReport:
        self.state = ControllerState.REPORT_BUILDING
        performance = list(self.performance)
        self._notify("success", "Study session complete! Generating your report...")

        # Pick up the SRS updates made during the session before measuring mastery.
        try:
            self._apply_set(await self.backend.fetch_set(self.set_id))
        except BackendError as e:
            self._notify("error", "Could not refresh flashcard set", str(e))

        counts = tally(performance)
        report = SessionReport(
            set_id=self.set_id,
            cards_reviewed=len(performance),
            performance_counts=counts,
            chart_data=chart_data(counts),
            challenging_cards=challenging_cards(performance),
            mastery_percentage=self.mastery_percentage,
        )
        self.report = report
        set_title = self.set_detail.title if self.set_detail else self.set_id

        self._spawn("log-session", self._log_session(report))
        self._spawn("session-history", self._load_trend(report))
        self._spawn("study-report", self._generate_narrative(report, set_title, performance))

        self.performance = []
        self._enter_browse()
        return report

    def _spawn(self, name: str, coro: Coroutine[Any, Any, Any]) -> None:
        task = task_registry.start_task(f"{name}-{self.session_id}", coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _is_current(self, report: SessionReport) -> bool:
        return not self._closed and self.report is report

    async def _log_session(self, report: SessionReport) -> None:
        body = StudySessionLogCreate(
            cards_reviewed=report.cards_reviewed,
            performance_counts=report.performance_counts,
            mastery_at_end=report.mastery_percentage,
        )
        try:
            await self.backend.log_session(self.set_id, body)
        except BackendError as e:
            logger.warning("Failed to log study session for set %s: %s", self.set_id, e)
        except Exception:
            logger.exception("Unexpected error logging study session for set %s", self.set_id)

    async def _load_trend(self, report: SessionReport) -> None:
        try:
            history = await self.backend.fetch_history(self.set_id)
        except BackendError as e:
            if self._is_current(report):
                self._notify("error", "Could not load session history", str(e))
            return
        except Exception:
            logger.exception("Unexpected error fetching history for set %s", self.set_id)
            return
        if self._is_current(report):
            report.trend = reshape_history(history)

    async def _generate_narrative(
        self,
        report: SessionReport,
        set_title: str,
        performance: list[PerformanceRecord],
    ) -> None:
        try:
            text = await self.backend.generate_report(set_title, performance, self.grade_level)
        except BackendError as e:
            if self._is_current(report):
                self._notify("error", "Failed to generate study report", str(e))
        except Exception as e:
            logger.exception("Unexpected error generating report for set %s", self.set_id)
            if self._is_current(report):
                self._notify("error", "Report Error", str(e))
        else:
            if self._is_current(report):
                report.narrative = text
        finally:
            if self._is_current(report):
                report.is_generating = False

    # --- Quiz mode ---

    def _require_quiz(self) -> QuizSession:
        if self.state is not ControllerState.QUIZZING or self.quiz is None:
            raise InvalidTransitionError("no quiz is running")
        return self.quiz

    def reveal_quiz_answer(self) -> None:
        self._require_quiz().reveal()

    def answer_quiz(self, correct: bool) -> None:
        quiz = self._require_quiz()
        if quiz.finished:
            raise InvalidTransitionError("the quiz is already finished")
        if quiz.answer(correct):
            self._notify(
                "info",
                "Quiz Finished!",
                f"You scored {quiz.correct}/{quiz.total}. Review your answers below.",
            )

    def exit_quiz(self) -> None:
        self._require_quiz()
        self._enter_browse()

    # --- Card edits ---

    def _require_editable(self) -> None:
        if self.state not in (
            ControllerState.BROWSING,
            ControllerState.STUDYING,
            ControllerState.EMPTY_SET,
        ) or self._grading:
            raise InvalidTransitionError(f"cards cannot be edited while {self.state.value}")

    async def add_card(self, question: str, answer: str) -> Flashcard | None:
        self._require_editable()
        body = FlashcardCreate(question=question, answer=answer)
        try:
            card = await self.backend.add_card(self.set_id, body)
        except BackendError as e:
            self._notify("error", "Could not add card", str(e))
            return None
        self._notify("success", "Flashcard added!")
        await self._after_card_modification()
        return card

    async def edit_current_card(
        self, question: str | None = None, answer: str | None = None
    ) -> Flashcard | None:
        self._require_editable()
        card = self.current_card
        if card is None:
            raise InvalidTransitionError("there is no current card to edit")
        body = FlashcardUpdate(question=question, answer=answer)
        try:
            updated = await self.backend.edit_card(card.id, body)
        except BackendError as e:
            self._notify("error", "Update Failed", str(e))
            return None
        self._notify("success", "Flashcard updated!")
        await self._after_card_modification()
        return updated

    async def delete_current_card(self) -> Flashcard | None:
        self._require_editable()
        card = self.current_card
        if card is None:
            raise InvalidTransitionError("there is no current card to delete")
        try:
            deleted = await self.backend.delete_card(card.id)
        except BackendError as e:
            self._notify("error", "Delete Failed", str(e))
            return None
        self._notify("success", "Flashcard deleted!")
        await self._after_card_modification()
        return deleted

    async def _after_card_modification(self) -> None:
        try:
            self._apply_set(await self.backend.fetch_set(self.set_id))
        except BackendError as e:
            self._notify("error", "Load Failed", str(e))

        if self.state is not ControllerState.STUDYING:
            self._enter_browse()
            return

        try:
            due = await self.backend.fetch_due_cards(self.set_id)
        except BackendError as e:
            self._notify("error", "Failed to load due cards", str(e))
            due = []
        if due:
            due = list(due)
            self._rng.shuffle(due)
            self.session_cards = due
            self.index = 0
            self.is_showing_answer = False
        elif self.performance:
            await self._finish_session()
        else:
            self._enter_browse()

    # --- view ---

    def view(self) -> SessionView:
        card = self.current_card
        active = self._active_cards()
        return SessionView(
            session_id=self.session_id,
            set_id=self.set_id,
            set_title=self.set_detail.title if self.set_detail else None,
            state=self.state,
            index=self.index,
            total=len(active),
            is_showing_answer=self.is_showing_answer,
            progress=self.progress,
            mastery_percentage=self.mastery_percentage,
            current_card=(
                CardView(
                    id=card.id,
                    question=card.question,
                    answer=card.answer if self.is_showing_answer else None,
                )
                if card
                else None
            ),
            quiz=self.quiz.view() if self.quiz else None,
            report=self.report,
            notices=self.drain_notices(),
        )
