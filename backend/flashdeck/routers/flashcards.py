"""
Flashcard sets, cards, spaced-repetition reviews and study-session records.

Endpoints:
  POST   /flashcards/sets                      create a set
  GET    /flashcards/sets                      list sets
  GET    /flashcards/sets/{id}                 set + cards + mastery counters
  GET    /flashcards/sets/{id}/due             cards of a set due for review
  GET    /flashcards/due?set_ids=a,b           due cards across several sets
  POST   /flashcards/sets/{id}/cards           add a card
  POST   /flashcards/sets/{id}/generate        AI-generate cards from study notes
  PATCH  /flashcards/cards/{id}                edit question / answer
  DELETE /flashcards/cards/{id}                delete a card (returns it)
  POST   /flashcards/cards/{id}/review         submit a quality rating, run SM-2
  POST   /flashcards/sets/{id}/sessions        log a finished study session
  GET    /flashcards/sets/{id}/sessions        session history, oldest first
  POST   /flashcards/reports                   narrative report for a session
"""
from __future__ import annotations

import logging

import aiosqlite
import httpx
from fastapi import APIRouter, Depends, HTTPException, Query

from flashdeck.db.sqlite import (
    create_flashcard_set,
    delete_flashcard,
    get_db,
    get_due_flashcards,
    get_due_flashcards_for_sets,
    get_flashcard,
    get_flashcard_set,
    get_setting,
    get_study_session_history,
    insert_flashcard,
    insert_study_session,
    list_flashcard_sets,
    update_flashcard_content,
)
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
    ReviewRequest,
    ReviewResult,
)
from flashdeck.models.session import (
    StudyReportRequest,
    StudyReportResponse,
    StudySessionLogCreate,
    StudySessionRecord,
)
from flashdeck.services.flashcard_generator import (
    FlashcardGenerationError,
    generate_flashcards,
)
from flashdeck.services.flashcards import get_set_detail, review_flashcard
from flashdeck.services.llm_service import LLMUnavailableError
from flashdeck.services.study_report import ReportGenerationError, generate_study_report

logger = logging.getLogger(__name__)
router = APIRouter()

_SET_NOT_FOUND = "Flashcard set not found"
_CARD_NOT_FOUND = "Flashcard not found"


# --- Sets ---


@router.post("/sets", response_model=FlashcardSet, status_code=201)
async def create_set(
    body: FlashcardSetCreate, db: aiosqlite.Connection = Depends(get_db)
) -> FlashcardSet:
    return await create_flashcard_set(db, body)


@router.get("/sets", response_model=FlashcardSetList)
async def list_sets(
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
    db: aiosqlite.Connection = Depends(get_db),
) -> FlashcardSetList:
    items, total = await list_flashcard_sets(db, offset, limit)
    return FlashcardSetList(items=items, total=total)


@router.get("/sets/{set_id}", response_model=FlashcardSetDetail)
async def get_set(
    set_id: str, db: aiosqlite.Connection = Depends(get_db)
) -> FlashcardSetDetail:
    detail = await get_set_detail(db, set_id)
    if detail is None:
        raise HTTPException(status_code=404, detail=_SET_NOT_FOUND)
    return detail


# --- Due cards ---


@router.get("/sets/{set_id}/due", response_model=DueCards)
async def get_due_for_set(
    set_id: str, db: aiosqlite.Connection = Depends(get_db)
) -> DueCards:
    flashcard_set = await get_flashcard_set(db, set_id)
    if flashcard_set is None:
        raise HTTPException(status_code=404, detail=_SET_NOT_FOUND)
    items = await get_due_flashcards(db, set_id)
    return DueCards(
        items=items,
        total=len(items),
        set_titles={set_id: flashcard_set.title} if items else {},
    )


@router.get("/due", response_model=DueCards)
async def get_due_for_sets(
    set_ids: str = Query(..., description="Comma-separated set IDs"),
    db: aiosqlite.Connection = Depends(get_db),
) -> DueCards:
    ids = [s.strip() for s in set_ids.split(",") if s.strip()]
    if not ids:
        raise HTTPException(status_code=422, detail="No set IDs provided.")
    items, titles = await get_due_flashcards_for_sets(db, ids)
    return DueCards(items=items, total=len(items), set_titles=titles)


# --- Cards ---


@router.post("/sets/{set_id}/cards", response_model=Flashcard, status_code=201)
async def add_card(
    set_id: str,
    body: FlashcardCreate,
    db: aiosqlite.Connection = Depends(get_db),
) -> Flashcard:
    if await get_flashcard_set(db, set_id) is None:
        raise HTTPException(status_code=404, detail="Target flashcard set not found")
    return await insert_flashcard(db, set_id, body)


@router.post(
    "/sets/{set_id}/generate", response_model=GeneratedFlashcards, status_code=201
)
async def generate_cards(
    set_id: str,
    body: GenerateFlashcardsRequest,
    db: aiosqlite.Connection = Depends(get_db),
) -> GeneratedFlashcards:
    if await get_flashcard_set(db, set_id) is None:
        raise HTTPException(status_code=404, detail="Target flashcard set not found")
    grade_level = (await get_setting(db, "grade_level")) or None
    try:
        pairs = await generate_flashcards(body.source_text, grade_level)
    except FlashcardGenerationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except LLMUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except httpx.HTTPError as e:
        logger.warning("Flashcard generation failed: %s", e)
        raise HTTPException(
            status_code=502, detail=f"AI flashcard generation failed: {e}"
        ) from e

    items = [await insert_flashcard(db, set_id, pair) for pair in pairs]
    logger.info("Added %d generated flashcard(s) to set %s", len(items), set_id)
    return GeneratedFlashcards(items=items, total=len(items))


@router.patch("/cards/{card_id}", response_model=Flashcard)
async def edit_card(
    card_id: str,
    body: FlashcardUpdate,
    db: aiosqlite.Connection = Depends(get_db),
) -> Flashcard:
    updated = await update_flashcard_content(db, card_id, body)
    if not updated:
        raise HTTPException(status_code=404, detail=_CARD_NOT_FOUND)
    return updated


@router.delete("/cards/{card_id}", response_model=Flashcard)
async def remove_card(
    card_id: str,
    db: aiosqlite.Connection = Depends(get_db),
) -> Flashcard:
    card = await get_flashcard(db, card_id)
    if not card or not await delete_flashcard(db, card_id):
        raise HTTPException(status_code=404, detail=_CARD_NOT_FOUND)
    return card


@router.post("/cards/{card_id}/review", response_model=ReviewResult)
async def review_card(
    card_id: str,
    body: ReviewRequest,
    db: aiosqlite.Connection = Depends(get_db),
) -> ReviewResult:
    """Submit a quality rating (0=Again … 3=Easy) and reschedule the card."""
    result = await review_flashcard(db, card_id, body.quality)
    if result is None:
        raise HTTPException(status_code=404, detail=_CARD_NOT_FOUND)
    return result


# --- Study sessions ---


@router.post(
    "/sets/{set_id}/sessions", response_model=StudySessionRecord, status_code=201
)
async def log_session(
    set_id: str,
    body: StudySessionLogCreate,
    db: aiosqlite.Connection = Depends(get_db),
) -> StudySessionRecord:
    if await get_flashcard_set(db, set_id) is None:
        raise HTTPException(status_code=404, detail=_SET_NOT_FOUND)
    return await insert_study_session(db, set_id, body)


@router.get("/sets/{set_id}/sessions", response_model=list[StudySessionRecord])
async def session_history(
    set_id: str,
    limit: int | None = Query(default=None, ge=1, le=100),
    db: aiosqlite.Connection = Depends(get_db),
) -> list[StudySessionRecord]:
    if await get_flashcard_set(db, set_id) is None:
        raise HTTPException(status_code=404, detail=_SET_NOT_FOUND)
    return await get_study_session_history(db, set_id, limit)


@router.post("/reports", response_model=StudyReportResponse)
async def create_report(body: StudyReportRequest) -> StudyReportResponse:
    try:
        report = await generate_study_report(
            body.set_title, body.performance, body.grade_level
        )
    except ReportGenerationError as e:
        raise HTTPException(status_code=422, detail=str(e)) from e
    except LLMUnavailableError as e:
        raise HTTPException(status_code=503, detail=str(e)) from e
    except httpx.HTTPError as e:
        logger.warning("Report generation failed: %s", e)
        raise HTTPException(
            status_code=502, detail=f"AI report generation failed: {e}"
        ) from e
    return StudyReportResponse(report=report)
