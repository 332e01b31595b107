from __future__ import annotations

import pytest

from audio_coordinator import AudioSourceCoordinator, pick_default_source
from errors import CAPTURE_ACTIVE, CAPTURE_FAILED, NO_AUDIO_SOURCES
from models import AudioMode, AudioSource


class FakeSession:
    def __init__(self) -> None:
        self.modes: list[AudioMode] = []
        self.sent: list[bytes] = []

    def set_audio_mode(self, mode: AudioMode) -> None:
        self.modes.append(mode)

    async def send_audio(self, frame: bytes) -> bool:
        self.sent.append(frame)
        return True


class FakeSourceProvider:
    def __init__(self, sources: list[AudioSource] | None = None, error: Exception | None = None) -> None:
        self.sources = sources or []
        self.error = error

    async def list_sources(self) -> list[AudioSource]:
        if self.error is not None:
            raise self.error
        return list(self.sources)


SCREEN = AudioSource(id="screen:0", name="Entire Screen")
ZOOM = AudioSource(id="window:1", name="Zoom Meeting")
EDITOR = AudioSource(id="window:2", name="Text Editor")


def test_pick_default_source_prefers_entire_screen() -> None:
    assert pick_default_source([ZOOM, SCREEN]) == SCREEN
    assert pick_default_source([ZOOM, EDITOR]) == ZOOM
    assert pick_default_source([]) is None


def test_set_mode_updates_session_attribution() -> None:
    session = FakeSession()
    coordinator = AudioSourceCoordinator(session)

    assert coordinator.set_mode("system") == AudioMode.SYSTEM
    assert session.modes == [AudioMode.SYSTEM]
    with pytest.raises(ValueError):
        coordinator.set_mode("speakers")


@pytest.mark.asyncio
async def test_microphone_capture_needs_no_sources() -> None:
    coordinator = AudioSourceCoordinator(FakeSession())

    result = await coordinator.start_capture(AudioMode.MICROPHONE)

    assert result.success
    assert coordinator.is_capturing
    assert coordinator.microphone_armed
    assert coordinator.selected_source is None


@pytest.mark.asyncio
async def test_system_capture_selects_default_source() -> None:
    coordinator = AudioSourceCoordinator(FakeSession(), FakeSourceProvider([ZOOM, SCREEN]))

    result = await coordinator.start_capture("system")

    assert result.success
    assert coordinator.selected_source == SCREEN
    assert not coordinator.microphone_armed


@pytest.mark.asyncio
async def test_both_mode_arms_microphone_and_source() -> None:
    coordinator = AudioSourceCoordinator(FakeSession(), FakeSourceProvider([ZOOM]))

    result = await coordinator.start_capture(AudioMode.BOTH)

    assert result.success
    assert coordinator.selected_source == ZOOM
    assert coordinator.microphone_armed


@pytest.mark.asyncio
async def test_system_capture_without_sources_fails() -> None:
    coordinator = AudioSourceCoordinator(FakeSession(), FakeSourceProvider([]))

    result = await coordinator.start_capture(AudioMode.SYSTEM)

    assert not result.success
    assert result.error == NO_AUDIO_SOURCES
    assert not coordinator.is_capturing


@pytest.mark.asyncio
async def test_second_start_reports_capture_active() -> None:
    coordinator = AudioSourceCoordinator(FakeSession())
    await coordinator.start_capture(AudioMode.MICROPHONE)

    result = await coordinator.start_capture(AudioMode.MICROPHONE)

    assert result.error == CAPTURE_ACTIVE
    assert coordinator.is_capturing


@pytest.mark.asyncio
async def test_source_listing_failure_rolls_back_capture() -> None:
    provider = FakeSourceProvider(error=OSError("permission denied"))
    coordinator = AudioSourceCoordinator(FakeSession(), provider)

    result = await coordinator.start_capture(AudioMode.BOTH)

    assert result.error == CAPTURE_FAILED
    assert "permission denied" in result.message
    assert not coordinator.is_capturing
    assert not coordinator.microphone_armed


@pytest.mark.asyncio
async def test_stop_capture_is_idempotent() -> None:
    coordinator = AudioSourceCoordinator(FakeSession(), FakeSourceProvider([SCREEN]))
    await coordinator.start_capture(AudioMode.BOTH)

    coordinator.stop_capture()
    coordinator.stop_capture()

    assert not coordinator.is_capturing
    assert coordinator.selected_source is None


@pytest.mark.asyncio
async def test_audio_only_forwarded_while_capturing() -> None:
    session = FakeSession()
    coordinator = AudioSourceCoordinator(session)

    assert await coordinator.send_audio_data(b"\x00\x01") is False
    await coordinator.start_capture(AudioMode.MICROPHONE)
    assert await coordinator.send_audio_data(b"\x00\x01") is True
    assert session.sent == [b"\x00\x01"]


@pytest.mark.asyncio
async def test_list_audio_sources_keeps_call_and_screen_sources() -> None:
    coordinator = AudioSourceCoordinator(FakeSession(), FakeSourceProvider([SCREEN, ZOOM, EDITOR]))

    sources = await coordinator.list_audio_sources()

    assert sources == [SCREEN, ZOOM]
