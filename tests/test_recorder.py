"""Tests for SoundDeviceRecorder and loopback source listing."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest

from models import AudioFrame, AudioSource
from recorder import SoundDeviceRecorder, SoundDeviceSourceProvider, loopback_sources


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

class _FakeNp:
    """Minimal numpy stand-in so recorder._on_audio doesn't bail."""

    class int16:
        pass

    @staticmethod
    def asarray(data, dtype=None):
        return data


class _FakeAudioInput:
    """Fake audio input similar to what sounddevice callback provides."""

    def __init__(self, n_samples: int = 1600) -> None:
        self._data = b"\x00\x00" * n_samples

    def tobytes(self) -> bytes:
        return self._data


# ---------------------------------------------------------------
# Basic start / stop
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_start_creates_stream_and_runs(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    recorder.start(lambda frame: None)

    mock_sd.InputStream.assert_called_once()
    kwargs = mock_sd.InputStream.call_args.kwargs
    assert kwargs["samplerate"] == 16000
    assert kwargs["dtype"] == "int16"
    assert kwargs["blocksize"] == 1600
    mock_stream.start.assert_called_once()
    assert recorder.is_running

    recorder.stop()
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()
    assert not recorder.is_running


@patch("recorder.sd")
def test_start_is_idempotent(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    recorder = SoundDeviceRecorder()
    recorder.start(lambda frame: None)
    recorder.start(lambda frame: None)  # second call should be no-op

    assert mock_sd.InputStream.call_count == 1
    recorder.stop()


@patch("recorder.sd")
def test_stop_is_idempotent(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    recorder = SoundDeviceRecorder()
    recorder.start(lambda frame: None)
    recorder.stop()
    recorder.stop()

    mock_stream.close.assert_called_once()


# ---------------------------------------------------------------
# Audio callback hands frames to the listener
# ---------------------------------------------------------------

@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_callback_emits_audio_frames(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    frames: list[AudioFrame] = []

    recorder = SoundDeviceRecorder(sample_rate=16000, channels=1, chunk_ms=100)
    recorder.start(frames.append)
    recorder._on_audio(_FakeAudioInput(1600), frames=1600, time_info=None, status=None)

    assert len(frames) == 1
    frame = frames[0]
    assert frame.sample_rate == 16000
    assert frame.channels == 1
    assert len(frame.pcm16_bytes) == 1600 * 2  # 16-bit = 2 bytes per sample
    assert recorder.frames_sent == 1

    recorder.stop()


@patch("recorder.np", _FakeNp())
@patch("recorder.sd")
def test_callback_after_stop_is_noop(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    frames: list[AudioFrame] = []

    recorder = SoundDeviceRecorder()
    recorder.start(frames.append)
    recorder.stop()

    recorder._on_audio(_FakeAudioInput(1600), frames=1600, time_info=None, status=None)
    assert frames == []


def test_start_raises_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    recorder = SoundDeviceRecorder()
    with pytest.raises(RuntimeError, match="sounddevice is not installed"):
        recorder.start(lambda frame: None)


# ---------------------------------------------------------------
# Loopback sources
# ---------------------------------------------------------------

DEVICES = [
    {"name": "MacBook Pro Microphone", "max_input_channels": 1},
    {"name": "BlackHole 2ch", "max_input_channels": 2},
    {"name": "Speakers", "max_input_channels": 0},
    {"name": "Monitor of Built-in Audio", "max_input_channels": 2},
]


def test_loopback_sources_keep_capture_devices_only() -> None:
    assert loopback_sources(DEVICES) == [
        AudioSource(id="1", name="BlackHole 2ch"),
        AudioSource(id="3", name="Monitor of Built-in Audio"),
    ]


@pytest.mark.asyncio
async def test_source_provider_queries_devices(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    fake_sd = MagicMock()
    fake_sd.query_devices.return_value = DEVICES
    monkeypatch.setattr(rec_mod, "sd", fake_sd)

    sources = await SoundDeviceSourceProvider().list_sources()

    assert [s.name for s in sources] == ["BlackHole 2ch", "Monitor of Built-in Audio"]


@pytest.mark.asyncio
async def test_source_provider_without_sounddevice(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    assert await SoundDeviceSourceProvider().list_sources() == []
