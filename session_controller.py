"""UI-facing verbs over the transcription core.

Every verb returns a ``CommandResult``; failures never raise into UI code.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any, Optional

from app_context import AppContext
from conversation_store import now_ms
from credential_check import verify_credential
from errors import (
    CAPTURE_ACTIVE,
    INVALID_AUDIO_MODE,
    NETWORK_ERROR,
    NO_CREDENTIAL,
    PROTOCOL_ERROR,
    SessionError,
)
from models import AudioMode, CommandResult, SyncMessage, TranscriptEvent

logger = logging.getLogger(__name__)


class SessionController:
    def __init__(self, context: AppContext, default_mode: AudioMode | str = AudioMode.BOTH) -> None:
        self._ctx = context
        self._default_mode = AudioMode.parse(default_mode)
        self._recording_id: Optional[str] = None
        self._recording_started_ms = 0
        self._tasks: set[asyncio.Future[Any]] = set()
        context.session.set_transcript_sink(self._handle_transcript)

    @property
    def context(self) -> AppContext:
        return self._ctx

    @property
    def is_recording(self) -> bool:
        return self._ctx.coordinator.is_capturing

    @property
    def recording_id(self) -> Optional[str]:
        return self._recording_id

    # ------------------------------------------------------------------
    # Transcription
    # ------------------------------------------------------------------

    async def start_session(self, credential: str, mode: AudioMode | str | None = None) -> CommandResult:
        if not credential:
            logger.error("Cannot start transcription without a Deepgram API key")
            return CommandResult.fail(NO_CREDENTIAL)
        try:
            audio_mode = AudioMode.parse(mode or self._default_mode)
        except ValueError:
            return CommandResult.fail(INVALID_AUDIO_MODE)
        if self._ctx.coordinator.is_capturing:
            return CommandResult.fail(CAPTURE_ACTIVE)

        logger.info("Starting Deepgram transcription (%s)...", audio_mode.value)
        session = self._ctx.session
        session.initialize(credential)
        self._ctx.coordinator.set_mode(audio_mode)
        try:
            await session.connect()
        except SessionError as exc:
            logger.error("Failed to start Deepgram: %s", exc)
            return CommandResult.fail(exc.code, exc.message)

        result = await self._ctx.coordinator.start_capture(audio_mode)
        if not result.success:
            session.disconnect()
            return result

        await self._open_recording()
        return CommandResult.ok()

    async def stop_session(self) -> CommandResult:
        logger.info("Stopping Deepgram transcription...")
        self._ctx.coordinator.stop_capture()
        self._ctx.session.disconnect()
        await self._close_recording()
        return CommandResult.ok()

    async def send_audio(self, frame: Any) -> CommandResult:
        try:
            forwarded = await self._ctx.transport.send(frame)
        except TypeError as exc:
            return CommandResult.fail(PROTOCOL_ERROR, str(exc))
        except Exception as exc:
            logger.error("Failed to forward audio frame: %s", exc)
            return CommandResult.fail(NETWORK_ERROR, str(exc))
        return CommandResult.ok(forwarded)

    def set_audio_mode(self, mode: AudioMode | str) -> CommandResult:
        try:
            audio_mode = self._ctx.coordinator.set_mode(mode)
        except ValueError:
            return CommandResult.fail(INVALID_AUDIO_MODE)
        return CommandResult.ok(audio_mode.value)

    async def list_audio_sources(self) -> CommandResult:
        sources = await self._ctx.coordinator.list_audio_sources()
        return CommandResult.ok(sources)

    async def verify_credential(self, credential: str) -> CommandResult:
        return await verify_credential(credential)

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def save_chat_message(self, message: str, context: Optional[list[Any]] = None) -> CommandResult:
        """Persist a chat question against the active recording, if any."""
        store = self._ctx.store
        if store is None or self._recording_id is None or not message:
            return CommandResult.ok(None)
        return await store.save_conversation(
            {
                "session_id": self._recording_id,
                "user_message": message,
                "ai_response": "",
                "context_used": context or None,
            }
        )

    async def recording_history(self, limit: int = 20) -> CommandResult:
        """Recent recordings, newest first, each with its saved chat messages."""
        store = self._ctx.store
        if store is None:
            return CommandResult.ok([])
        sessions = await store.list_sessions(limit)
        if not sessions.success:
            return sessions
        history = []
        for row in sessions.data:
            conversations = await store.list_conversations(row["id"])
            history.append({**row, "conversations": conversations.data if conversations.success else []})
        return CommandResult.ok(history)

    # ------------------------------------------------------------------
    # Overlay
    # ------------------------------------------------------------------

    def open_overlay(self) -> CommandResult:
        return self._ctx.relay.open(self._ctx.main_window)

    def close_overlay(self) -> CommandResult:
        return self._ctx.relay.close()

    def switch_to_main(self) -> CommandResult:
        return self._ctx.relay.switch_to_main()

    def relay_sync(self, data: SyncMessage | dict[str, Any]) -> CommandResult:
        if isinstance(data, SyncMessage):
            message = data
        elif isinstance(data, dict):
            message = SyncMessage.from_dict(data)
        else:
            return CommandResult.fail(PROTOCOL_ERROR, "Sync message must be an object")
        return self._ctx.relay.relay(message)

    async def request_overlay_state(self) -> CommandResult:
        state = await self._ctx.relay.request_state()
        return CommandResult.ok(state)

    def resolve_overlay_state(self, request_id: int, state: Any) -> CommandResult:
        self._ctx.relay.resolve_state(request_id, state)
        return CommandResult.ok()

    async def shutdown(self) -> None:
        self._ctx.teardown()
        await self._close_recording()

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _handle_transcript(self, event: TranscriptEvent) -> None:
        self._ctx.relay.broadcast_transcript(event)
        store = self._ctx.store
        if store is None or self._recording_id is None or event.is_interim:
            return
        task = asyncio.ensure_future(store.save_transcript(self._recording_id, event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _open_recording(self) -> None:
        store = self._ctx.store
        if store is None:
            return
        recording_id = str(uuid.uuid4())
        self._recording_started_ms = now_ms()
        result = await store.save_session({"id": recording_id, "started_at": self._recording_started_ms})
        if result.success:
            self._recording_id = recording_id
        else:
            logger.warning("Recording session not saved: %s", result.message)

    async def _close_recording(self) -> None:
        store = self._ctx.store
        recording_id, self._recording_id = self._recording_id, None
        if store is None or recording_id is None:
            return
        ended = now_ms()
        result = await store.update_session(
            recording_id,
            {"ended_at": ended, "duration": ended - self._recording_started_ms},
        )
        if not result.success:
            logger.warning("Recording session %s not updated: %s", recording_id, result.message)
