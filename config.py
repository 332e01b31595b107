"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from pathlib import Path

from models import AudioMode
from streaming_session import ProviderOptions

DEFAULTS = {
    "deepgram_key": "",
    "audio_mode": AudioMode.BOTH.value,
    "hotkey": "Key.f9",
    "model": "nova-2",
    "language": "en-US",
    "log_level": "INFO",
}


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "callmate" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("deepgram_key") or os.getenv("DEEPGRAM_API_KEY", ""))

    def set_api_key(self, key: str) -> None:
        self._set("deepgram_key", key)

    def get_audio_mode(self) -> str:
        value = str(self._get("audio_mode"))
        try:
            return AudioMode.parse(value).value
        except ValueError:
            return DEFAULTS["audio_mode"]

    def set_audio_mode(self, mode: str) -> None:
        self._set("audio_mode", AudioMode.parse(mode).value)

    def get_hotkey(self) -> str:
        return str(self._get("hotkey"))

    def set_hotkey(self, hotkey: str) -> None:
        self._set("hotkey", hotkey)

    def get_log_level(self) -> str:
        return str(os.getenv("LOG_LEVEL") or self._get("log_level")).upper()

    def provider_options(self) -> ProviderOptions:
        return ProviderOptions(model=str(self._get("model")), language=str(self._get("language")))

    def _get(self, key: str) -> object:
        return self._read_all().get(key, DEFAULTS[key])

    def _set(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
