from flashdeck.models.flashcard import (
    DueCards,
    Flashcard,
    FlashcardCreate,
    FlashcardSet,
    FlashcardSetCreate,
    FlashcardSetDetail,
    FlashcardSetList,
    FlashcardUpdate,
    GeneratedFlashcards,
    GenerateFlashcardsRequest,
    Quality,
    ReviewRequest,
    ReviewResult,
)
from flashdeck.models.session import (
    ChallengingCard,
    ChartSlice,
    ComposeOutcome,
    ControllerState,
    GradeOutcome,
    Notice,
    PerformanceCounts,
    PerformanceRecord,
    SessionReport,
    SessionView,
    StudyMode,
    StudyReportRequest,
    StudySessionLogCreate,
    StudySessionRecord,
    TrendPoint,
)

__all__ = [
    "ChallengingCard",
    "ChartSlice",
    "ComposeOutcome",
    "ControllerState",
    "DueCards",
    "Flashcard",
    "FlashcardCreate",
    "FlashcardSet",
    "FlashcardSetCreate",
    "FlashcardSetDetail",
    "FlashcardSetList",
    "FlashcardUpdate",
    "GeneratedFlashcards",
    "GenerateFlashcardsRequest",
    "GradeOutcome",
    "Notice",
    "PerformanceCounts",
    "PerformanceRecord",
    "Quality",
    "ReviewRequest",
    "ReviewResult",
    "SessionReport",
    "SessionView",
    "StudyMode",
    "StudyReportRequest",
    "StudySessionLogCreate",
    "StudySessionRecord",
    "TrendPoint",
]
