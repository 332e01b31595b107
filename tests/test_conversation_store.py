from __future__ import annotations

from datetime import datetime
from pathlib import Path

import pytest

from conversation_store import SqliteConversationStore
from errors import STORE_ERROR
from models import AudioMode, TranscriptEvent


@pytest.fixture()
def store(tmp_path: Path) -> SqliteConversationStore:
    return SqliteConversationStore(path=tmp_path / "conversations.db")


@pytest.mark.asyncio
async def test_session_lifecycle(store: SqliteConversationStore) -> None:
    saved = await store.save_session({"id": "rec-1", "title": "Standup", "started_at": 1000})
    assert saved.success
    assert saved.data == "rec-1"

    updated = await store.update_session("rec-1", {"ended_at": 61000, "duration": 60000, "ignored": 1})
    assert updated.success

    sessions = (await store.list_sessions()).data
    assert len(sessions) == 1
    assert sessions[0]["title"] == "Standup"
    assert sessions[0]["ended_at"] == 61000
    assert sessions[0]["duration"] == 60000


@pytest.mark.asyncio
async def test_transcripts_are_saved_and_counted(store: SqliteConversationStore) -> None:
    await store.save_session({"id": "rec-1", "started_at": 1000})
    first = TranscriptEvent.from_recognition("hello", True, AudioMode.SYSTEM, datetime(2024, 1, 1, 9, 0, 0))
    second = TranscriptEvent.from_recognition("bye", True, AudioMode.MICROPHONE, datetime(2024, 1, 1, 9, 0, 5))

    assert (await store.save_transcript("rec-1", first)).success
    assert (await store.save_transcript("rec-1", second)).success

    rows = (await store.list_transcripts("rec-1")).data
    assert [(r["text"], r["speaker"], r["is_interim"]) for r in rows] == [
        ("hello", "call", 0),
        ("bye", "user", 0),
    ]
    sessions = (await store.list_sessions()).data
    assert sessions[0]["transcript_count"] == 2


@pytest.mark.asyncio
async def test_conversations_round_trip(store: SqliteConversationStore) -> None:
    await store.save_session({"id": "rec-1", "started_at": 1000})

    result = await store.save_conversation(
        {
            "session_id": "rec-1",
            "user_message": "What did they ask?",
            "ai_response": "About the budget.",
            "context_used": ["transcript-1"],
            "model_used": "llama3-8b-8192",
        }
    )
    assert result.success

    conversations = (await store.list_conversations("rec-1")).data
    assert len(conversations) == 1
    assert conversations[0]["user_message"] == "What did they ask?"
    assert conversations[0]["context_used"] == '["transcript-1"]'


@pytest.mark.asyncio
async def test_missing_fields_report_store_error(store: SqliteConversationStore) -> None:
    result = await store.save_conversation({"session_id": "rec-1"})

    assert not result.success
    assert result.error == STORE_ERROR


@pytest.mark.asyncio
async def test_duplicate_session_reports_store_error(store: SqliteConversationStore) -> None:
    await store.save_session({"id": "rec-1", "started_at": 1000})

    result = await store.save_session({"id": "rec-1", "started_at": 2000})

    assert result.error == STORE_ERROR
