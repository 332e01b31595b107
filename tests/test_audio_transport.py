from __future__ import annotations

import pytest

from audio_coordinator import AudioSourceCoordinator
from audio_transport import AudioTransport, to_pcm_bytes
from models import AudioFrame, AudioMode


class FakeSession:
    def __init__(self, open_: bool = True) -> None:
        self.open = open_
        self.sent: list[bytes] = []

    def set_audio_mode(self, mode: AudioMode) -> None:
        pass

    async def send_audio(self, frame: bytes) -> bool:
        if not self.open:
            return False
        self.sent.append(frame)
        return True


def make_transport(open_: bool = True) -> tuple[AudioTransport, AudioSourceCoordinator, FakeSession]:
    session = FakeSession(open_)
    coordinator = AudioSourceCoordinator(session)
    return AudioTransport(session, coordinator), coordinator, session


def test_to_pcm_bytes_accepts_frames_and_buffers() -> None:
    assert to_pcm_bytes(AudioFrame(pcm16_bytes=b"\x01\x00")) == b"\x01\x00"
    assert to_pcm_bytes(bytearray(b"\x02\x00")) == b"\x02\x00"
    assert to_pcm_bytes(memoryview(b"\x03\x00")) == b"\x03\x00"
    with pytest.raises(TypeError):
        to_pcm_bytes("not audio")  # type: ignore[arg-type]


@pytest.mark.asyncio
async def test_frame_goes_through_coordinator_while_capturing() -> None:
    transport, coordinator, session = make_transport()
    await coordinator.start_capture(AudioMode.MICROPHONE)

    assert await transport.send(AudioFrame(pcm16_bytes=b"\x10\x00")) is True
    assert session.sent == [b"\x10\x00"]
    assert transport.packet_count == 1


@pytest.mark.asyncio
async def test_frame_goes_straight_to_session_when_not_capturing() -> None:
    transport, _, session = make_transport()

    assert await transport.send(b"\x20\x00") is True
    assert session.sent == [b"\x20\x00"]


@pytest.mark.asyncio
async def test_frame_dropped_when_session_not_open() -> None:
    transport, _, session = make_transport(open_=False)

    assert await transport.send(b"\x20\x00") is False
    assert session.sent == []


@pytest.mark.asyncio
async def test_empty_frame_is_ignored() -> None:
    transport, _, session = make_transport()

    assert await transport.send(b"") is False
    assert transport.packet_count == 0
    assert session.sent == []
