"""Protocol interfaces for the collaborators outside the transcription core."""

from __future__ import annotations

from typing import Any, Awaitable, Callable, Protocol

from models import AudioSource, CommandResult, TranscriptEvent, WindowEvent

WindowEventCallback = Callable[[WindowEvent], None]


class WindowHost(Protocol):
    """Windowing subsystem hosting the primary and overlay surfaces."""

    def create_overlay(self, on_event: WindowEventCallback) -> Any: ...

    def close_overlay(self, overlay: Any) -> None: ...

    def show_primary(self, window: Any) -> None: ...

    def hide_primary(self, window: Any) -> None: ...

    def focus(self, window: Any) -> None: ...

    def send_to(self, window: Any, channel: str, payload: Any) -> None: ...


class AudioSourceProvider(Protocol):
    """Enumerates capturable screen/window/loopback audio sources."""

    def list_sources(self) -> Awaitable[list[AudioSource]]: ...


class ConversationStore(Protocol):
    def save_session(self, session: dict[str, Any]) -> Awaitable[CommandResult]: ...

    def update_session(self, session_id: str, updates: dict[str, Any]) -> Awaitable[CommandResult]: ...

    def save_transcript(self, session_id: str, event: TranscriptEvent) -> Awaitable[CommandResult]: ...

    def save_conversation(self, conversation: dict[str, Any]) -> Awaitable[CommandResult]: ...

    def list_conversations(self, session_id: str) -> Awaitable[CommandResult]: ...

    def list_sessions(self, limit: int = 50) -> Awaitable[CommandResult]: ...

