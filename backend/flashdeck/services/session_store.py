"""
Server-held study session controllers.

Sessions untouched for ``settings.session_idle_timeout`` seconds are closed
and evicted whenever the store is accessed.
"""
from __future__ import annotations

import logging
import time

from flashdeck.config import settings
from flashdeck.services.study_session import StudySessionController

logger = logging.getLogger(__name__)

_clock = time.monotonic
_controllers: dict[str, StudySessionController] = {}
_last_seen: dict[str, float] = {}


def _evict_idle(now: float) -> None:
    for session_id, seen in list(_last_seen.items()):
        if now - seen > settings.session_idle_timeout:
            logger.info("Evicting idle study session %s", session_id)
            close(session_id)


def register(controller: StudySessionController) -> StudySessionController:
    now = _clock()
    _evict_idle(now)
    _controllers[controller.session_id] = controller
    _last_seen[controller.session_id] = now
    return controller


def get(session_id: str) -> StudySessionController | None:
    now = _clock()
    _evict_idle(now)
    controller = _controllers.get(session_id)
    if controller is not None:
        _last_seen[session_id] = now
    return controller


def close(session_id: str) -> bool:
    _last_seen.pop(session_id, None)
    controller = _controllers.pop(session_id, None)
    if controller is None:
        return False
    controller.close()
    logger.info("Closed study session %s", session_id)
    return True


def close_all() -> None:
    for session_id in list(_controllers):
        close(session_id)
