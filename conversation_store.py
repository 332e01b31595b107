"""Local SQLite store for recording sessions, transcripts and AI conversations.

Every call runs the blocking sqlite3 work on a worker thread and reports a
``CommandResult``; a failing store never raises into the caller.
"""

from __future__ import annotations

import asyncio
import json
import logging
import sqlite3
import time
import uuid
from pathlib import Path
from typing import Any, Callable

from errors import STORE_ERROR
from models import CommandResult, TranscriptEvent

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS recording_sessions (
    id TEXT PRIMARY KEY,
    title TEXT,
    started_at INTEGER NOT NULL,
    ended_at INTEGER,
    duration INTEGER,
    transcript_count INTEGER DEFAULT 0,
    created_at INTEGER DEFAULT (strftime('%s', 'now'))
);
CREATE TABLE IF NOT EXISTS transcripts (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES recording_sessions(id) ON DELETE CASCADE,
    text TEXT NOT NULL,
    timestamp TEXT NOT NULL,
    is_interim INTEGER DEFAULT 0,
    speaker TEXT,
    created_at INTEGER DEFAULT (strftime('%s', 'now'))
);
CREATE TABLE IF NOT EXISTS ai_conversations (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES recording_sessions(id),
    user_message TEXT NOT NULL,
    ai_response TEXT NOT NULL,
    context_used TEXT,
    selected_transcript TEXT,
    model_used TEXT,
    created_at INTEGER DEFAULT (strftime('%s', 'now'))
);
CREATE INDEX IF NOT EXISTS idx_transcripts_session ON transcripts(session_id);
CREATE INDEX IF NOT EXISTS idx_conversations_session ON ai_conversations(session_id);
CREATE INDEX IF NOT EXISTS idx_sessions_started ON recording_sessions(started_at DESC);
"""

_SESSION_UPDATE_COLUMNS = {
    "title": "title",
    "ended_at": "ended_at",
    "duration": "duration",
    "transcript_count": "transcript_count",
}


def now_ms() -> int:
    return int(time.time() * 1000)


class SqliteConversationStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "callmate" / "conversations.db"
        self._path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            conn.executescript(SCHEMA)
        finally:
            conn.close()
        logger.debug("Conversation store ready at %s", self._path)

    async def save_session(self, session: dict[str, Any]) -> CommandResult:
        session_id = str(session.get("id") or uuid.uuid4())

        def _save(conn: sqlite3.Connection) -> str:
            conn.execute(
                "INSERT INTO recording_sessions (id, title, started_at, ended_at, duration, transcript_count) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    session_id,
                    session.get("title"),
                    session.get("started_at") or now_ms(),
                    session.get("ended_at"),
                    session.get("duration"),
                    session.get("transcript_count", 0),
                ),
            )
            return session_id

        return await self._run("save session", _save)

    async def update_session(self, session_id: str, updates: dict[str, Any]) -> CommandResult:
        fields = [(column, updates[key]) for key, column in _SESSION_UPDATE_COLUMNS.items() if key in updates]
        if not fields:
            return CommandResult.ok(session_id)

        def _update(conn: sqlite3.Connection) -> str:
            assignments = ", ".join(f"{column} = ?" for column, _ in fields)
            values = [value for _, value in fields]
            conn.execute(f"UPDATE recording_sessions SET {assignments} WHERE id = ?", (*values, session_id))
            return session_id

        return await self._run("update session", _update)

    async def save_transcript(self, session_id: str, event: TranscriptEvent) -> CommandResult:
        transcript_id = str(uuid.uuid4())

        def _save(conn: sqlite3.Connection) -> str:
            conn.execute(
                "INSERT INTO transcripts (id, session_id, text, timestamp, is_interim, speaker) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (
                    transcript_id,
                    session_id,
                    event.text,
                    event.timestamp.isoformat(),
                    int(event.is_interim),
                    event.speaker,
                ),
            )
            conn.execute(
                "UPDATE recording_sessions SET transcript_count = transcript_count + 1 WHERE id = ?",
                (session_id,),
            )
            return transcript_id

        return await self._run("save transcript", _save)

    async def save_conversation(self, conversation: dict[str, Any]) -> CommandResult:
        conversation_id = str(conversation.get("id") or uuid.uuid4())

        def _save(conn: sqlite3.Connection) -> str:
            conn.execute(
                "INSERT INTO ai_conversations (id, session_id, user_message, ai_response, context_used, "
                "selected_transcript, model_used) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    conversation_id,
                    conversation["session_id"],
                    conversation["user_message"],
                    conversation["ai_response"],
                    json.dumps(conversation.get("context_used")) if conversation.get("context_used") else None,
                    conversation.get("selected_transcript"),
                    conversation.get("model_used"),
                ),
            )
            return conversation_id

        return await self._run("save conversation", _save)

    async def list_conversations(self, session_id: str) -> CommandResult:
        def _list(conn: sqlite3.Connection) -> list[dict[str, Any]]:
            rows = conn.execute(
                "SELECT * FROM ai_conversations WHERE session_id = ? ORDER BY created_at ASC, rowid ASC",
                (session_id,),
            ).fetchall()
            return [dict(row) for row in rows]

        return await self._run("list conversations", _list)

    async def list_sessions(self, limit: int = 50) -> CommandResult:
        def _list(conn: sqlite3.Connection) -> list[dict[str, Any]]:
            rows = conn.execute(
                "SELECT * FROM recording_sessions ORDER BY started_at DESC LIMIT ?",
                (limit,),
            ).fetchall()
            return [dict(row) for row in rows]

        return await self._run("list sessions", _list)

    async def list_transcripts(self, session_id: str) -> CommandResult:
        def _list(conn: sqlite3.Connection) -> list[dict[str, Any]]:
            rows = conn.execute(
                "SELECT * FROM transcripts WHERE session_id = ? ORDER BY timestamp ASC, rowid ASC",
                (session_id,),
            ).fetchall()
            return [dict(row) for row in rows]

        return await self._run("list transcripts", _list)

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._path)
        conn.row_factory = sqlite3.Row
        return conn

    async def _run(self, what: str, work: Callable[[sqlite3.Connection], Any]) -> CommandResult:
        def _call() -> Any:
            conn = self._connect()
            try:
                with conn:
                    return work(conn)
            finally:
                conn.close()

        try:
            data = await asyncio.to_thread(_call)
        except (sqlite3.Error, KeyError) as exc:
            logger.error("Failed to %s: %s", what, exc)
            return CommandResult.fail(STORE_ERROR, str(exc))
        return CommandResult.ok(data)
