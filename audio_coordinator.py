"""Decides which audio sources feed transcription and how text is attributed."""

from __future__ import annotations

import logging
from typing import Optional

from errors import CAPTURE_ACTIVE, CAPTURE_FAILED, NO_AUDIO_SOURCES
from interfaces import AudioSourceProvider
from models import AudioMode, AudioSource, CommandResult
from streaming_session import StreamingSession

logger = logging.getLogger(__name__)

DEFAULT_SOURCE_NAME = "entire screen"

# Screens plus the calling and browser apps whose audio is worth transcribing.
CALL_SOURCE_KEYWORDS = (
    "entire screen",
    "screen",
    "zoom",
    "teams",
    "skype",
    "discord",
    "slack",
    "meet",
    "webex",
    "chrome",
    "firefox",
    "safari",
    "browser",
    "call",
    "conference",
    "monitor",
    "loopback",
    "stereo mix",
)


def pick_default_source(sources: list[AudioSource]) -> Optional[AudioSource]:
    """Prefer the entire-screen source, else the first one."""
    for source in sources:
        if source.name.strip().lower() == DEFAULT_SOURCE_NAME:
            return source
    return sources[0] if sources else None


class AudioSourceCoordinator:
    def __init__(
        self,
        session: StreamingSession,
        source_provider: Optional[AudioSourceProvider] = None,
    ) -> None:
        self._session = session
        self._source_provider = source_provider
        self.is_capturing = False
        self.mode = AudioMode.MICROPHONE
        self.microphone_armed = False
        self.selected_source: Optional[AudioSource] = None

    def set_mode(self, mode: AudioMode | str) -> AudioMode:
        """Switch speaker attribution for subsequent transcripts."""
        self.mode = AudioMode.parse(mode)
        self._session.set_audio_mode(self.mode)
        return self.mode

    async def start_capture(self, mode: AudioMode | str) -> CommandResult:
        if self.is_capturing:
            logger.warning("Capture already in progress")
            return CommandResult.fail(CAPTURE_ACTIVE)

        try:
            mode = AudioMode.parse(mode)
            logger.info("Starting audio capture in %s mode...", mode.value)

            if mode == AudioMode.MICROPHONE:
                self._arm_microphone()
            else:
                sources = await self._list_sources()
                if not sources:
                    logger.error("No audio sources available")
                    return CommandResult.fail(NO_AUDIO_SOURCES)
                self.selected_source = pick_default_source(sources)
                logger.info("Using audio source: %s", self.selected_source.name)
                if mode == AudioMode.BOTH:
                    self._arm_microphone()

            self.is_capturing = True
            logger.info("Audio capture started")
            return CommandResult.ok()
        except Exception as exc:
            logger.exception("Failed to start audio capture")
            self.stop_capture()
            return CommandResult.fail(CAPTURE_FAILED, str(exc))

    def stop_capture(self) -> None:
        if self.is_capturing:
            logger.info("Stopping audio capture")
        self.is_capturing = False
        self.microphone_armed = False
        self.selected_source = None

    async def send_audio_data(self, frame: bytes) -> bool:
        if not self.is_capturing:
            return False
        return await self._session.send_audio(frame)

    async def list_audio_sources(self) -> list[AudioSource]:
        """Sources whose name looks like a screen or a calling/browser app."""
        sources = await self._list_sources()
        matching = [
            source
            for source in sources
            if any(keyword in source.name.lower() for keyword in CALL_SOURCE_KEYWORDS)
        ]
        logger.debug("Available audio sources: %s", [s.name for s in matching])
        return matching

    def _arm_microphone(self) -> None:
        # Frames come from the UI layer through the send-audio verb.
        self.microphone_armed = True
        logger.debug("Microphone capture ready, waiting for audio data from the UI")

    async def _list_sources(self) -> list[AudioSource]:
        if self._source_provider is None:
            return []
        return list(await self._source_provider.list_sources())
