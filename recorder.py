"""Microphone feed and loopback source listing backed by sounddevice."""

from __future__ import annotations

import asyncio
import threading
import time
from typing import Any, Callable, Optional

from models import AudioFrame, AudioSource

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

FrameCallback = Callable[[AudioFrame], None]

# Input devices that carry what the speakers play rather than a microphone.
LOOPBACK_HINTS = ("loopback", "monitor", "stereo mix", "blackhole", "soundflower", "what u hear")


class SoundDeviceRecorder:
    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        chunk_ms: int = 100,
        device: Optional[int | str] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.chunk_ms = chunk_ms
        self.device = device
        self._stream: Any = None
        self._running = False
        self._lock = threading.Lock()
        self._on_frame: Optional[FrameCallback] = None
        self.frames_sent = 0

    @property
    def is_running(self) -> bool:
        return self._running

    def start(self, on_frame: FrameCallback) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None:
                raise RuntimeError("sounddevice is not installed")
            self._on_frame = on_frame
            blocksize = int(self.sample_rate * (self.chunk_ms / 1000.0))
            self._stream = sd.InputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="int16",
                blocksize=blocksize,
                device=self.device,
                callback=self._on_audio,
            )
            self._stream.start()
            self._running = True

    def stop(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            if self._stream is not None:
                self._stream.stop()
                self._stream.close()
                self._stream = None
            self._on_frame = None

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        on_frame = self._on_frame
        if not self._running or on_frame is None:
            return
        if np is None:
            return
        payload = np.asarray(indata, dtype=np.int16).tobytes()
        frame = AudioFrame(
            pcm16_bytes=payload,
            sample_rate=self.sample_rate,
            channels=self.channels,
            timestamp_ms=int(time.time() * 1000),
        )
        self.frames_sent += 1
        on_frame(frame)


class SoundDeviceSourceProvider:
    """Lists loopback-style input devices as system audio sources."""

    async def list_sources(self) -> list[AudioSource]:
        if sd is None:
            return []
        devices = await asyncio.to_thread(sd.query_devices)
        return loopback_sources(devices)


def loopback_sources(devices: Any) -> list[AudioSource]:
    sources: list[AudioSource] = []
    for index, device in enumerate(devices):
        name = str(device.get("name", ""))
        if int(device.get("max_input_channels", 0)) <= 0:
            continue
        if any(hint in name.lower() for hint in LOOPBACK_HINTS):
            sources.append(AudioSource(id=str(index), name=name))
    return sources
