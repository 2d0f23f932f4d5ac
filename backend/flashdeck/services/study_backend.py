"""
Collaborator interface consumed by the study session controller.

``LocalStudyBackend`` calls the storage layer in-process; ``HttpStudyBackend``
talks to a running flashdeck API. Both signal failure with ``BackendError``.
"""
from __future__ import annotations

import logging
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Protocol

import aiosqlite
import httpx
from pydantic import ValidationError

from flashdeck.db.sqlite import (
    connect,
    delete_flashcard,
    get_due_flashcards,
    get_flashcard,
    get_flashcard_set,
    get_setting,
    get_study_session_history,
    insert_flashcard,
    insert_study_session,
    update_flashcard_content,
)
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
from flashdeck.services.flashcards import get_set_detail, review_flashcard
from flashdeck.services.llm_service import LLMUnavailableError
from flashdeck.services.study_report import ReportGenerationError, generate_study_report

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """A collaborator call failed; the message is suitable for the user."""


@contextmanager
def _storage_errors(action: str) -> Iterator[None]:
    try:
        yield
    except aiosqlite.Error as e:
        logger.error("Storage error while trying to %s: %s", action, e)
        raise BackendError(f"Could not {action}: storage error.") from e


@contextmanager
def _response_errors(url: str) -> Iterator[None]:
    try:
        yield
    except (AttributeError, KeyError, TypeError, ValueError, ValidationError) as e:
        logger.error("Unexpected response body from %s: %s", url, e)
        raise BackendError(f"Unexpected response from {url}.") from e


class StudyBackend(Protocol):
    async def fetch_set(self, set_id: str) -> FlashcardSetDetail: ...

    async def fetch_due_cards(self, set_id: str) -> list[Flashcard]: ...

    async def update_srs(self, card_id: str, quality: Quality) -> ReviewResult: ...

    async def log_session(self, set_id: str, body: StudySessionLogCreate) -> None: ...

    async def fetch_history(self, set_id: str) -> list[StudySessionRecord]: ...

    async def generate_report(
        self,
        set_title: str,
        performance: list[PerformanceRecord],
        grade_level: str | None,
    ) -> str: ...

    async def fetch_grade_level(self) -> str | None: ...

    async def add_card(self, set_id: str, body: FlashcardCreate) -> Flashcard: ...

    async def edit_card(self, card_id: str, body: FlashcardUpdate) -> Flashcard: ...

    async def delete_card(self, card_id: str) -> Flashcard: ...


class LocalStudyBackend:
    """Runs each collaborator call on its own SQLite connection."""

    async def fetch_set(self, set_id: str) -> FlashcardSetDetail:
        with _storage_errors("load the flashcard set"):
            async with connect() as db:
                detail = await get_set_detail(db, set_id)
        if detail is None:
            raise BackendError(
                "Flashcard set not found. It may have been deleted or you don't have access to it."
            )
        return detail

    async def fetch_due_cards(self, set_id: str) -> list[Flashcard]:
        with _storage_errors("load due cards"):
            async with connect() as db:
                if await get_flashcard_set(db, set_id) is None:
                    raise BackendError("Flashcard set not found.")
                return await get_due_flashcards(db, set_id)

    async def update_srs(self, card_id: str, quality: Quality) -> ReviewResult:
        with _storage_errors("update SRS data"):
            async with connect() as db:
                result = await review_flashcard(db, card_id, quality)
        if result is None:
            raise BackendError("Could not update SRS data: flashcard not found.")
        return result

    async def log_session(self, set_id: str, body: StudySessionLogCreate) -> None:
        with _storage_errors("log the study session"):
            async with connect() as db:
                if await get_flashcard_set(db, set_id) is None:
                    raise BackendError("Flashcard set not found.")
                await insert_study_session(db, set_id, body)

    async def fetch_history(self, set_id: str) -> list[StudySessionRecord]:
        with _storage_errors("load session history"):
            async with connect() as db:
                return await get_study_session_history(db, set_id)

    async def generate_report(
        self,
        set_title: str,
        performance: list[PerformanceRecord],
        grade_level: str | None,
    ) -> str:
        try:
            return await generate_study_report(set_title, performance, grade_level)
        except (LLMUnavailableError, ReportGenerationError) as e:
            raise BackendError(str(e)) from e
        except httpx.HTTPError as e:
            raise BackendError(f"AI report generation failed: {e}") from e

    async def fetch_grade_level(self) -> str | None:
        with _storage_errors("load the profile"):
            async with connect() as db:
                return (await get_setting(db, "grade_level")) or None

    async def add_card(self, set_id: str, body: FlashcardCreate) -> Flashcard:
        with _storage_errors("add the flashcard"):
            async with connect() as db:
                if await get_flashcard_set(db, set_id) is None:
                    raise BackendError("Target flashcard set not found.")
                return await insert_flashcard(db, set_id, body)

    async def edit_card(self, card_id: str, body: FlashcardUpdate) -> Flashcard:
        with _storage_errors("update the flashcard"):
            async with connect() as db:
                card = await update_flashcard_content(db, card_id, body)
        if card is None:
            raise BackendError("Could not update flashcard: not found.")
        return card

    async def delete_card(self, card_id: str) -> Flashcard:
        with _storage_errors("delete the flashcard"):
            async with connect() as db:
                card = await get_flashcard(db, card_id)
                if card is None or not await delete_flashcard(db, card_id):
                    raise BackendError("Could not delete flashcard: not found.")
        return card


class HttpStudyBackend:
    """
    Client for the ``/flashcards`` and ``/settings`` routes.

    Pass ``transport`` (e.g. ``httpx.ASGITransport(app=app)``) to talk to an
    in-process app. Error statuses and malformed bodies both raise
    ``BackendError``.
    """

    def __init__(
        self,
        base_url: str,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 30.0,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=base_url, transport=transport, timeout=timeout
        )

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpStudyBackend":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            res = await self._client.request(method, url, **kwargs)
        except httpx.HTTPError as e:
            raise BackendError(f"Request to {url} failed: {e}") from e
        if res.is_error:
            detail = res.reason_phrase
            try:
                detail = res.json().get("detail", detail)
            except (ValueError, AttributeError):
                pass
            raise BackendError(str(detail))
        return res

    async def fetch_set(self, set_id: str) -> FlashcardSetDetail:
        url = f"/flashcards/sets/{set_id}"
        res = await self._request("GET", url)
        with _response_errors(url):
            return FlashcardSetDetail.model_validate(res.json())

    async def fetch_due_cards(self, set_id: str) -> list[Flashcard]:
        url = f"/flashcards/sets/{set_id}/due"
        res = await self._request("GET", url)
        with _response_errors(url):
            return [Flashcard.model_validate(c) for c in res.json()["items"]]

    async def update_srs(self, card_id: str, quality: Quality) -> ReviewResult:
        url = f"/flashcards/cards/{card_id}/review"
        res = await self._request("POST", url, json={"quality": int(quality)})
        with _response_errors(url):
            return ReviewResult.model_validate(res.json())

    async def log_session(self, set_id: str, body: StudySessionLogCreate) -> None:
        await self._request(
            "POST", f"/flashcards/sets/{set_id}/sessions", json=body.model_dump()
        )

    async def fetch_history(self, set_id: str) -> list[StudySessionRecord]:
        url = f"/flashcards/sets/{set_id}/sessions"
        res = await self._request("GET", url)
        with _response_errors(url):
            return [StudySessionRecord.model_validate(r) for r in res.json()]

    async def generate_report(
        self,
        set_title: str,
        performance: list[PerformanceRecord],
        grade_level: str | None,
    ) -> str:
        url = "/flashcards/reports"
        res = await self._request(
            "POST",
            url,
            json={
                "set_title": set_title,
                "performance": [p.model_dump(mode="json") for p in performance],
                "grade_level": grade_level,
            },
        )
        with _response_errors(url):
            return str(res.json()["report"])

    async def fetch_grade_level(self) -> str | None:
        url = "/settings/profile"
        res = await self._request("GET", url)
        with _response_errors(url):
            return res.json().get("grade_level") or None

    async def add_card(self, set_id: str, body: FlashcardCreate) -> Flashcard:
        url = f"/flashcards/sets/{set_id}/cards"
        res = await self._request("POST", url, json=body.model_dump())
        with _response_errors(url):
            return Flashcard.model_validate(res.json())

    async def edit_card(self, card_id: str, body: FlashcardUpdate) -> Flashcard:
        url = f"/flashcards/cards/{card_id}"
        res = await self._request("PATCH", url, json=body.model_dump(exclude_none=True))
        with _response_errors(url):
            return Flashcard.model_validate(res.json())

    async def delete_card(self, card_id: str) -> Flashcard:
        url = f"/flashcards/cards/{card_id}"
        res = await self._request("DELETE", url)
        with _response_errors(url):
            return Flashcard.model_validate(res.json())
