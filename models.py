"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Union

from errors import ERROR_MESSAGES


class SessionState(str, Enum):
    IDLE = "IDLE"
    CONNECTING = "CONNECTING"
    OPEN = "OPEN"
    CLOSING = "CLOSING"
    CLOSED = "CLOSED"


class AudioMode(str, Enum):
    MICROPHONE = "microphone"
    SYSTEM = "system"
    BOTH = "both"

    @classmethod
    def parse(cls, value: str | AudioMode) -> AudioMode:
        """Raise ValueError for anything that is not a known mode."""
        if isinstance(value, AudioMode):
            return value
        return cls(str(value).strip().lower())


def speaker_for(mode: AudioMode | str) -> str:
    if mode == AudioMode.SYSTEM:
        return "call"
    if mode == AudioMode.BOTH:
        return "mixed"
    return "user"


class SyncAction(str, Enum):
    CHAT_MESSAGE = "chat-message"
    SELECTION_CHANGED = "selection-changed"
    FULL_STATE_SYNC = "full-state-sync"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, value: object) -> SyncAction:
        """Map a raw action name to a SyncAction; unrecognized names become UNKNOWN."""
        if isinstance(value, SyncAction):
            return value
        name = str(value or "").strip()
        alias = _SYNC_ACTION_ALIASES.get(name)
        if alias is not None:
            return alias
        try:
            return cls(name)
        except ValueError:
            return cls.UNKNOWN


# Action names used by the renderer bridge of earlier releases.
_SYNC_ACTION_ALIASES = {
    "sendChatMessage": SyncAction.CHAT_MESSAGE,
    "syncSelection": SyncAction.SELECTION_CHANGED,
    "syncState": SyncAction.FULL_STATE_SYNC,
}


@dataclass
class AudioFrame:
    pcm16_bytes: bytes
    sample_rate: int = 16000
    channels: int = 1
    timestamp_ms: int = 0


@dataclass(frozen=True)
class AudioSource:
    id: str
    name: str


@dataclass(frozen=True)
class TranscriptEvent:
    text: str
    is_interim: bool
    speaker: str
    timestamp: datetime
    audio_source: AudioMode = AudioMode.MICROPHONE

    @classmethod
    def from_recognition(
        cls,
        text: str,
        is_final: bool,
        mode: AudioMode,
        timestamp: datetime | None = None,
    ) -> TranscriptEvent:
        return cls(
            text=text,
            is_interim=not is_final,
            speaker=speaker_for(mode),
            timestamp=timestamp or datetime.now(),
            audio_source=mode,
        )

    def to_payload(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "timestamp": self.timestamp.isoformat(),
            "isInterim": self.is_interim,
            "speaker": self.speaker,
            "audioSource": self.audio_source.value,
        }


@dataclass(frozen=True)
class SyncMessage:
    action: SyncAction
    payload: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SyncMessage:
        """Accept ``{"action", "payload"}`` or a flat dict carrying extra keys."""
        action = SyncAction.parse(data.get("action"))
        payload = data.get("payload")
        if not isinstance(payload, dict):
            payload = {k: v for k, v in data.items() if k != "action"}
        return cls(action=action, payload=dict(payload))


class WindowEventKind(str, Enum):
    READY = "ready"
    CLOSED = "closed"


@dataclass(frozen=True)
class WindowEvent:
    kind: WindowEventKind
    window: Any = None


# ----------------------------------------------------------------------
# Transport events seen by the streaming session
# ----------------------------------------------------------------------


@dataclass(frozen=True)
class TransportOpened:
    connection_id: int


@dataclass(frozen=True)
class TransportMessage:
    connection_id: int
    data: Union[str, bytes]


@dataclass(frozen=True)
class TransportError:
    connection_id: int
    error: BaseException


@dataclass(frozen=True)
class TransportClosed:
    connection_id: int
    code: int
    reason: str = ""


TransportEvent = Union[TransportOpened, TransportMessage, TransportError, TransportClosed]


@dataclass
class CommandResult:
    success: bool
    error: str = ""
    message: str = ""
    data: Any = None

    @classmethod
    def ok(cls, data: Any = None) -> CommandResult:
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, code: str, message: str = "") -> CommandResult:
        return cls(success=False, error=code, message=message or ERROR_MESSAGES.get(code, code))
