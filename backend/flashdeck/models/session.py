from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field

from flashdeck.models.flashcard import Quality


class PerformanceRecord(BaseModel):
    card_id: str
    question: str
    quality: Quality


class PerformanceCounts(BaseModel):
    again: int = 0
    hard: int = 0
    good: int = 0
    easy: int = 0


class StudySessionLogCreate(BaseModel):
    cards_reviewed: int = Field(ge=0)
    performance_counts: PerformanceCounts
    mastery_at_end: int | None = Field(default=None, ge=0, le=100)


class StudySessionRecord(BaseModel):
    id: str
    set_id: str
    cards_reviewed: int
    performance_counts: PerformanceCounts
    mastery_at_end: int | None
    completed_at: str


class ChartSlice(BaseModel):
    quality: Quality
    name: str
    count: int
    color: str


class ChallengingCard(BaseModel):
    card_id: str
    question: str
    quality: str  # "Again" | "Hard"


class TrendPoint(BaseModel):
    date: str
    overall_mastery_percent: int | None
    good_or_easy_percent: int


class SessionReport(BaseModel):
    """End-of-session aggregates; trend and narrative fill in asynchronously."""

    set_id: str
    cards_reviewed: int
    performance_counts: PerformanceCounts
    chart_data: list[ChartSlice]
    challenging_cards: list[ChallengingCard]
    mastery_percentage: int
    trend: list[TrendPoint] | None = None
    narrative: str | None = None
    is_generating: bool = True


class StudyReportRequest(BaseModel):
    set_title: str
    performance: list[PerformanceRecord]
    grade_level: str | None = None


class StudyReportResponse(BaseModel):
    report: str


# --- Controller state ---


class ControllerState(str, Enum):
    IDLE = "idle"
    BROWSING = "browsing"
    STUDYING = "studying"
    QUIZZING = "quizzing"
    REPORT_BUILDING = "report_building"
    EMPTY_SET = "empty_set"


class StudyMode(str, Enum):
    BROWSE = "browse"
    STUDY = "study"
    QUIZ = "quiz"


class ComposeOutcome(str, Enum):
    STARTED = "started"
    NOTHING_DUE = "nothing_due"
    EMPTY_SET = "empty_set"
    FAILED = "failed"


class GradeOutcome(str, Enum):
    ADVANCED = "advanced"
    SESSION_COMPLETE = "session_complete"
    FAILED = "failed"


class Notice(BaseModel):
    level: str  # info | success | error
    title: str
    description: str | None = None


class CardView(BaseModel):
    id: str
    question: str
    answer: str | None  # hidden until flipped


class QuizView(BaseModel):
    index: int
    total: int
    correct: int
    finished: bool
    is_showing_answer: bool
    current_card: CardView | None
    results: list[bool | None]


class SessionView(BaseModel):
    session_id: str
    set_id: str
    set_title: str | None
    state: ControllerState
    index: int
    total: int
    is_showing_answer: bool
    progress: float
    mastery_percentage: int
    current_card: CardView | None
    quiz: QuizView | None = None
    report: SessionReport | None = None
    notices: list[Notice] = Field(default_factory=list)


class ModeRequest(BaseModel):
    mode: StudyMode


class GradeRequest(BaseModel):
    quality: Quality


class QuizAnswerRequest(BaseModel):
    correct: bool


class StartSessionRequest(BaseModel):
    set_id: str
