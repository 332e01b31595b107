"""Routes audio frames from the UI layer to the active session."""

from __future__ import annotations

import logging
from typing import Union

from audio_coordinator import AudioSourceCoordinator
from models import AudioFrame
from streaming_session import StreamingSession

logger = logging.getLogger(__name__)

PACKET_LOG_INTERVAL = 100

FrameLike = Union[bytes, bytearray, memoryview, AudioFrame]


def to_pcm_bytes(frame: FrameLike) -> bytes:
    if isinstance(frame, AudioFrame):
        return frame.pcm16_bytes
    if isinstance(frame, (bytes, bytearray, memoryview)):
        return bytes(frame)
    raise TypeError(f"Unsupported audio frame type: {type(frame).__name__}")


class AudioTransport:
    def __init__(self, session: StreamingSession, coordinator: AudioSourceCoordinator) -> None:
        self._session = session
        self._coordinator = coordinator
        self.packet_count = 0

    async def send(self, frame: FrameLike) -> bool:
        """Forward one frame; returns True only if it reached the provider."""
        payload = to_pcm_bytes(frame)
        if not payload:
            return False

        self.packet_count += 1
        if self.packet_count % PACKET_LOG_INTERVAL == 0:
            logger.debug(
                "Received %d audio packets (latest: %d bytes)",
                self.packet_count,
                len(payload),
            )

        if self._coordinator.is_capturing:
            return await self._coordinator.send_audio_data(payload)
        return await self._session.send_audio(payload)
