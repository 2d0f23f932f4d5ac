"""
Server-held study sessions.

Each session wraps a StudySessionController for one flashcard set. Every
endpoint returns the session view, including the notices produced by the
call.

  POST   /study/sessions                       open a session and load the set
  GET    /study/sessions/{sid}                 current view
  POST   /study/sessions/{sid}/mode            compose browse | study | quiz
  POST   /study/sessions/{sid}/flip | next | previous | shuffle
  POST   /study/sessions/{sid}/grade           rate the current card
  POST   /study/sessions/{sid}/exit            leave study mode
  POST   /study/sessions/{sid}/cards           add a card to the set
  PATCH  /study/sessions/{sid}/cards/current   edit the current card
  DELETE /study/sessions/{sid}/cards/current   delete the current card
  POST   /study/sessions/{sid}/quiz/reveal | quiz/answer | quiz/exit
  GET    /study/sessions/{sid}/report          latest end-of-session report
  DELETE /study/sessions/{sid}                 close the session
"""
from __future__ import annotations

import logging

from fastapi import APIRouter, HTTPException

from flashdeck.models.flashcard import FlashcardCreate, FlashcardUpdate
from flashdeck.models.session import (
    GradeRequest,
    ModeRequest,
    QuizAnswerRequest,
    SessionReport,
    SessionView,
    StartSessionRequest,
)
from flashdeck.services import session_store
from flashdeck.services.study_backend import LocalStudyBackend
from flashdeck.services.study_session import (
    InvalidTransitionError,
    StudySessionController,
)

logger = logging.getLogger(__name__)
router = APIRouter()


def _controller(session_id: str) -> StudySessionController:
    controller = session_store.get(session_id)
    if controller is None:
        raise HTTPException(status_code=404, detail="Study session not found")
    return controller


def _conflict(e: InvalidTransitionError) -> HTTPException:
    return HTTPException(status_code=409, detail=str(e))


@router.post("/sessions", response_model=SessionView, status_code=201)
async def open_session(body: StartSessionRequest) -> SessionView:
    controller = StudySessionController(LocalStudyBackend(), body.set_id)
    if not await controller.load():
        notices = controller.drain_notices()
        raise HTTPException(
            status_code=404,
            detail=notices[0].description if notices else "Could not load flashcard set",
        )
    session_store.register(controller)
    logger.info("Opened study session %s for set %s", controller.session_id, body.set_id)
    return controller.view()


@router.get("/sessions/{session_id}", response_model=SessionView)
async def get_session(session_id: str) -> SessionView:
    return _controller(session_id).view()


@router.delete("/sessions/{session_id}", status_code=204)
async def close_session(session_id: str) -> None:
    if not session_store.close(session_id):
        raise HTTPException(status_code=404, detail="Study session not found")


@router.post("/sessions/{session_id}/mode", response_model=SessionView)
async def set_mode(session_id: str, body: ModeRequest) -> SessionView:
    controller = _controller(session_id)
    try:
        await controller.compose(body.mode)
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return controller.view()


@router.post("/sessions/{session_id}/flip", response_model=SessionView)
async def flip(session_id: str) -> SessionView:
    controller = _controller(session_id)
    try:
        controller.flip()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return controller.view()


@router.post("/sessions/{session_id}/next", response_model=SessionView)
async def next_card(session_id: str) -> SessionView:
    controller = _controller(session_id)
    try:
        controller.next()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return controller.view()


@router.post("/sessions/{session_id}/previous", response_model=SessionView)
async def previous_card(session_id: str) -> SessionView:
    controller = _controller(session_id)
    try:
        controller.previous()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return controller.view()


@router.post("/sessions/{session_id}/shuffle", response_model=SessionView)
async def shuffle(session_id: str) -> SessionView:
    controller = _controller(session_id)
    try:
        controller.shuffle()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return controller.view()


@router.post("/sessions/{session_id}/grade", response_model=SessionView)
async def grade(session_id: str, body: GradeRequest) -> SessionView:
    controller = _controller(session_id)
    try:
        await controller.grade(body.quality)
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return controller.view()


@router.post("/sessions/{session_id}/exit", response_model=SessionView)
async def exit_study(session_id: str) -> SessionView:
    controller = _controller(session_id)
    try:
        await controller.exit_study()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return controller.view()


@router.post("/sessions/{session_id}/cards", response_model=SessionView)
async def add_card(session_id: str, body: FlashcardCreate) -> SessionView:
    controller = _controller(session_id)
    try:
        await controller.add_card(body.question, body.answer)
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return controller.view()


@router.patch("/sessions/{session_id}/cards/current", response_model=SessionView)
async def edit_current_card(session_id: str, body: FlashcardUpdate) -> SessionView:
    controller = _controller(session_id)
    try:
        await controller.edit_current_card(body.question, body.answer)
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return controller.view()


@router.delete("/sessions/{session_id}/cards/current", response_model=SessionView)
async def delete_current_card(session_id: str) -> SessionView:
    controller = _controller(session_id)
    try:
        await controller.delete_current_card()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return controller.view()


@router.post("/sessions/{session_id}/quiz/reveal", response_model=SessionView)
async def reveal_quiz_answer(session_id: str) -> SessionView:
    controller = _controller(session_id)
    try:
        controller.reveal_quiz_answer()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return controller.view()


@router.post("/sessions/{session_id}/quiz/answer", response_model=SessionView)
async def answer_quiz(session_id: str, body: QuizAnswerRequest) -> SessionView:
    controller = _controller(session_id)
    try:
        controller.answer_quiz(body.correct)
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return controller.view()


@router.post("/sessions/{session_id}/quiz/exit", response_model=SessionView)
async def exit_quiz(session_id: str) -> SessionView:
    controller = _controller(session_id)
    try:
        controller.exit_quiz()
    except InvalidTransitionError as e:
        raise _conflict(e) from e
    return controller.view()


@router.get("/sessions/{session_id}/report", response_model=SessionReport)
async def get_report(session_id: str) -> SessionReport:
    controller = _controller(session_id)
    if controller.report is None:
        raise HTTPException(status_code=404, detail="No study report yet")
    return controller.report
