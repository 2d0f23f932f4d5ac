import json
import uuid
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator

import aiosqlite

from flashdeck.config import settings
from flashdeck.models.flashcard import (
    Flashcard,
    FlashcardCreate,
    FlashcardSet,
    FlashcardSetCreate,
    FlashcardUpdate,
)
from flashdeck.models.session import (
    PerformanceCounts,
    StudySessionLogCreate,
    StudySessionRecord,
)

_db_path: Path | None = None

SCHEMA_SQL = """
PRAGMA journal_mode=WAL;
PRAGMA foreign_keys=ON;

CREATE TABLE IF NOT EXISTS flashcard_sets (
    id          TEXT PRIMARY KEY,
    title       TEXT NOT NULL,
    description TEXT,
    created_at  TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at  TEXT NOT NULL DEFAULT (datetime('now'))
);

CREATE TABLE IF NOT EXISTS flashcards (
    id               TEXT PRIMARY KEY,
    set_id           TEXT NOT NULL REFERENCES flashcard_sets(id) ON DELETE CASCADE,
    question         TEXT NOT NULL,
    answer           TEXT NOT NULL,
    due_date         TEXT,
    interval         INTEGER,
    ease_factor      REAL,
    repetitions      INTEGER,
    last_reviewed_at TEXT,
    created_at       TEXT NOT NULL DEFAULT (datetime('now')),
    updated_at       TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_flashcards_set ON flashcards(set_id);
CREATE INDEX IF NOT EXISTS idx_flashcards_due ON flashcards(due_date);

CREATE TABLE IF NOT EXISTS study_sessions (
    id             TEXT PRIMARY KEY,
    set_id         TEXT NOT NULL REFERENCES flashcard_sets(id) ON DELETE CASCADE,
    cards_reviewed INTEGER NOT NULL DEFAULT 0,
    performance    TEXT NOT NULL DEFAULT '{}',
    mastery_at_end INTEGER,
    completed_at   TEXT NOT NULL DEFAULT (datetime('now'))
);
CREATE INDEX IF NOT EXISTS idx_sessions_set ON study_sessions(set_id, completed_at);

CREATE TABLE IF NOT EXISTS settings (
    key        TEXT PRIMARY KEY,
    value      TEXT NOT NULL DEFAULT '',
    updated_at TEXT NOT NULL DEFAULT (datetime('now'))
);
INSERT OR IGNORE INTO settings(key, value) VALUES ('grade_level', '');

CREATE TABLE IF NOT EXISTS schema_version (
    version    INTEGER PRIMARY KEY,
    applied_at TEXT NOT NULL DEFAULT (datetime('now'))
);
INSERT OR IGNORE INTO schema_version(version) VALUES (1);
"""


async def init_sqlite(data_dir: Path) -> None:
    global _db_path
    _db_path = data_dir / settings.sqlite_filename
    async with aiosqlite.connect(_db_path) as db:
        await db.executescript(SCHEMA_SQL)
        await db.commit()


@asynccontextmanager
async def connect() -> AsyncIterator[aiosqlite.Connection]:
    """Open a connection outside of a request (background tasks, controllers)."""
    assert _db_path is not None, "SQLite not initialized"
    async with aiosqlite.connect(_db_path) as db:
        db.row_factory = aiosqlite.Row
        await db.execute("PRAGMA foreign_keys=ON")
        yield db


async def get_db() -> AsyncIterator[aiosqlite.Connection]:
    async with connect() as db:
        yield db


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


def format_timestamp(value: datetime) -> str:
    return value.astimezone(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


# --- Flashcard sets ---


def _row_to_set(row: aiosqlite.Row) -> FlashcardSet:
    return FlashcardSet(**dict(row))


async def create_flashcard_set(
    db: aiosqlite.Connection, body: FlashcardSetCreate
) -> FlashcardSet:
    set_id = str(uuid.uuid4())
    now = _now()
    await db.execute(
        """INSERT INTO flashcard_sets (id, title, description, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?)""",
        (set_id, body.title.strip(), body.description, now, now),
    )
    await db.commit()
    return await get_flashcard_set(db, set_id)  # type: ignore[return-value]


async def get_flashcard_set(db: aiosqlite.Connection, set_id: str) -> FlashcardSet | None:
    cursor = await db.execute("SELECT * FROM flashcard_sets WHERE id = ?", (set_id,))
    row = await cursor.fetchone()
    return _row_to_set(row) if row else None


async def list_flashcard_sets(
    db: aiosqlite.Connection, offset: int = 0, limit: int = 50
) -> tuple[list[FlashcardSet], int]:
    cursor = await db.execute("SELECT COUNT(*) FROM flashcard_sets")
    total = (await cursor.fetchone())[0]

    cursor = await db.execute(
        "SELECT * FROM flashcard_sets ORDER BY created_at DESC LIMIT ? OFFSET ?",
        (limit, offset),
    )
    rows = await cursor.fetchall()
    return [_row_to_set(r) for r in rows], total


# --- Flashcards ---


def _row_to_flashcard(row: aiosqlite.Row) -> Flashcard:
    return Flashcard(**dict(row))


async def list_flashcards_for_set(
    db: aiosqlite.Connection, set_id: str
) -> list[Flashcard]:
    cursor = await db.execute(
        "SELECT * FROM flashcards WHERE set_id = ? ORDER BY created_at ASC, rowid ASC",
        (set_id,),
    )
    rows = await cursor.fetchall()
    return [_row_to_flashcard(r) for r in rows]


async def get_flashcard(db: aiosqlite.Connection, card_id: str) -> Flashcard | None:
    cursor = await db.execute("SELECT * FROM flashcards WHERE id = ?", (card_id,))
    row = await cursor.fetchone()
    return _row_to_flashcard(row) if row else None


async def insert_flashcard(
    db: aiosqlite.Connection, set_id: str, body: FlashcardCreate
) -> Flashcard:
    card_id = str(uuid.uuid4())
    now = _now()
    await db.execute(
        """INSERT INTO flashcards (id, set_id, question, answer, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (card_id, set_id, body.question, body.answer, now, now),
    )
    await db.execute(
        "UPDATE flashcard_sets SET updated_at = ? WHERE id = ?", (now, set_id)
    )
    await db.commit()
    return await get_flashcard(db, card_id)  # type: ignore[return-value]


async def update_flashcard_content(
    db: aiosqlite.Connection,
    card_id: str,
    update: FlashcardUpdate,
) -> Flashcard | None:
    card = await get_flashcard(db, card_id)
    if not card:
        return None
    new_q = update.question if update.question is not None else card.question
    new_a = update.answer if update.answer is not None else card.answer
    now = _now()
    await db.execute(
        "UPDATE flashcards SET question = ?, answer = ?, updated_at = ? WHERE id = ?",
        (new_q, new_a, now, card_id),
    )
    await db.commit()
    return await get_flashcard(db, card_id)


async def delete_flashcard(db: aiosqlite.Connection, card_id: str) -> bool:
    cursor = await db.execute("SELECT set_id FROM flashcards WHERE id = ?", (card_id,))
    row = await cursor.fetchone()
    if row is None:
        return False
    await db.execute("DELETE FROM flashcards WHERE id = ?", (card_id,))
    await db.execute(
        "UPDATE flashcard_sets SET updated_at = ? WHERE id = ?", (_now(), row[0])
    )
    await db.commit()
    return True


async def update_flashcard_srs(
    db: aiosqlite.Connection,
    card_id: str,
    due_date: str,
    interval: int,
    ease_factor: float,
    repetitions: int,
    reviewed_at: str,
) -> Flashcard | None:
    await db.execute(
        """UPDATE flashcards
           SET due_date = ?, interval = ?, ease_factor = ?, repetitions = ?,
               last_reviewed_at = ?, updated_at = ?
           WHERE id = ?""",
        (due_date, interval, ease_factor, repetitions, reviewed_at, reviewed_at, card_id),
    )
    await db.commit()
    return await get_flashcard(db, card_id)


# --- Due cards ---

_DUE_PREDICATE = "(f.due_date IS NULL OR f.due_date <= ?)"


async def get_due_flashcards(
    db: aiosqlite.Connection, set_id: str, now: str | None = None
) -> list[Flashcard]:
    """Cards of one set that are due (never reviewed, or due_date reached), oldest first."""
    cursor = await db.execute(
        f"""SELECT f.* FROM flashcards f
            WHERE f.set_id = ? AND {_DUE_PREDICATE}
            ORDER BY COALESCE(f.due_date, '0000') ASC, f.created_at ASC, f.rowid ASC""",  # noqa: S608
        (set_id, now or _now()),
    )
    rows = await cursor.fetchall()
    return [_row_to_flashcard(r) for r in rows]


async def get_due_flashcards_for_sets(
    db: aiosqlite.Connection, set_ids: list[str], now: str | None = None
) -> tuple[list[Flashcard], dict[str, str]]:
    """Due cards across several sets plus a {set_id: title} map for the sets that have any."""
    if not set_ids:
        return [], {}
    placeholders = ", ".join("?" for _ in set_ids)
    cursor = await db.execute(
        f"""SELECT f.*, s.title AS set_title FROM flashcards f
            JOIN flashcard_sets s ON s.id = f.set_id
            WHERE f.set_id IN ({placeholders}) AND {_DUE_PREDICATE}
            ORDER BY COALESCE(f.due_date, '0000') ASC, f.created_at ASC, f.rowid ASC""",  # noqa: S608
        [*set_ids, now or _now()],
    )
    rows = await cursor.fetchall()
    cards: list[Flashcard] = []
    titles: dict[str, str] = {}
    for row in rows:
        d = dict(row)
        titles.setdefault(d["set_id"], d.pop("set_title"))
        cards.append(Flashcard(**d))
    return cards, titles


async def count_due_flashcards(
    db: aiosqlite.Connection, set_id: str, now: str | None = None
) -> int:
    cursor = await db.execute(
        f"SELECT COUNT(*) FROM flashcards f WHERE f.set_id = ? AND {_DUE_PREDICATE}",  # noqa: S608
        (set_id, now or _now()),
    )
    row = await cursor.fetchone()
    return row[0] if row else 0


# --- Study sessions ---


def _row_to_session(row: aiosqlite.Row) -> StudySessionRecord:
    d = dict(row)
    d["performance_counts"] = PerformanceCounts(**json.loads(d.pop("performance") or "{}"))
    return StudySessionRecord(**d)


async def insert_study_session(
    db: aiosqlite.Connection,
    set_id: str,
    body: StudySessionLogCreate,
    completed_at: str | None = None,
) -> StudySessionRecord:
    session_id = str(uuid.uuid4())
    await db.execute(
        """INSERT INTO study_sessions
           (id, set_id, cards_reviewed, performance, mastery_at_end, completed_at)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (
            session_id,
            set_id,
            body.cards_reviewed,
            body.performance_counts.model_dump_json(),
            body.mastery_at_end,
            completed_at or _now(),
        ),
    )
    await db.commit()
    cursor = await db.execute("SELECT * FROM study_sessions WHERE id = ?", (session_id,))
    return _row_to_session(await cursor.fetchone())


async def get_study_session_history(
    db: aiosqlite.Connection, set_id: str, limit: int | None = None
) -> list[StudySessionRecord]:
    """Oldest-first history, capped at the first `limit` sessions."""
    cursor = await db.execute(
        """SELECT * FROM study_sessions WHERE set_id = ?
           ORDER BY completed_at ASC, rowid ASC LIMIT ?""",
        (set_id, limit or settings.history_limit),
    )
    rows = await cursor.fetchall()
    return [_row_to_session(r) for r in rows]


# --- Settings key-value store ---


async def get_setting(db: aiosqlite.Connection, key: str) -> str | None:
    cursor = await db.execute("SELECT value FROM settings WHERE key = ?", (key,))
    row = await cursor.fetchone()
    return row[0] if row else None


async def set_setting(db: aiosqlite.Connection, key: str, value: str) -> None:
    now = _now()
    await db.execute(
        "INSERT INTO settings(key, value, updated_at) VALUES (?, ?, ?) "
        "ON CONFLICT(key) DO UPDATE SET value = excluded.value, updated_at = excluded.updated_at",
        (key, value, now),
    )
    await db.commit()


async def get_all_settings(db: aiosqlite.Connection) -> dict[str, str]:
    cursor = await db.execute("SELECT key, value FROM settings")
    rows = await cursor.fetchall()
    return {row[0]: row[1] for row in rows}
