"""Shared error codes, user-facing messages and session exceptions."""

from __future__ import annotations

NO_CREDENTIAL = "NO_CREDENTIAL"
NETWORK_ERROR = "NETWORK_ERROR"
AUTH_FAILED = "AUTH_FAILED"
PROTOCOL_ERROR = "PROTOCOL_ERROR"
CAPTURE_ACTIVE = "CAPTURE_ACTIVE"
CAPTURE_FAILED = "CAPTURE_FAILED"
NO_AUDIO_SOURCES = "NO_AUDIO_SOURCES"
INVALID_AUDIO_MODE = "INVALID_AUDIO_MODE"
OVERLAY_UNAVAILABLE = "OVERLAY_UNAVAILABLE"
STORE_ERROR = "STORE_ERROR"

ERROR_MESSAGES = {
    NO_CREDENTIAL: "No Deepgram API key provided.",
    NETWORK_ERROR: "Network failed, please retry.",
    AUTH_FAILED: "API key is invalid.",
    PROTOCOL_ERROR: "Transcription response format is invalid.",
    CAPTURE_ACTIVE: "Capture already in progress.",
    CAPTURE_FAILED: "Failed to start audio capture.",
    NO_AUDIO_SOURCES: "No audio sources available.",
    INVALID_AUDIO_MODE: "Audio mode must be microphone, system or both.",
    OVERLAY_UNAVAILABLE: "Overlay window is not available.",
    STORE_ERROR: "Conversation store request failed.",
}


class SessionError(Exception):
    def __init__(self, code: str, message: str = "") -> None:
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, code)
        super().__init__(self.message)


class ConfigurationError(SessionError):
    """Missing or unusable settings; never retried."""


class ProviderConnectionError(SessionError):
    """The provider connection failed before it was opened."""
