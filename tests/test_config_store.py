from __future__ import annotations

from pathlib import Path

import pytest

from config import JsonConfigStore


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("DEEPGRAM_API_KEY", raising=False)
    monkeypatch.delenv("LOG_LEVEL", raising=False)


def test_config_read_write(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    store = JsonConfigStore(path=path)

    assert store.get_api_key() == ""
    assert store.get_hotkey() == "Key.f9"
    assert store.get_audio_mode() == "both"

    store.set_api_key("abc")
    store.set_hotkey("Key.f8")
    store.set_audio_mode("system")

    reloaded = JsonConfigStore(path=path)
    assert reloaded.get_api_key() == "abc"
    assert reloaded.get_hotkey() == "Key.f8"
    assert reloaded.get_audio_mode() == "system"


def test_config_invalid_json_fallback(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text("{invalid", encoding="utf-8")

    store = JsonConfigStore(path=path)
    assert store.get_api_key() == ""
    assert store.get_hotkey() == "Key.f9"


def test_api_key_falls_back_to_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEEPGRAM_API_KEY", "from-env")
    store = JsonConfigStore(path=tmp_path / "config.json")

    assert store.get_api_key() == "from-env"
    store.set_api_key("from-file")
    assert store.get_api_key() == "from-file"


def test_unknown_audio_mode_is_rejected_and_ignored(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"audio_mode": "speakers"}', encoding="utf-8")
    store = JsonConfigStore(path=path)

    assert store.get_audio_mode() == "both"
    with pytest.raises(ValueError):
        store.set_audio_mode("speakers")


def test_log_level_prefers_environment(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
    store = JsonConfigStore(path=tmp_path / "config.json")
    assert store.get_log_level() == "INFO"

    monkeypatch.setenv("LOG_LEVEL", "debug")
    assert store.get_log_level() == "DEBUG"


def test_provider_options_use_stored_model(tmp_path: Path) -> None:
    path = tmp_path / "config.json"
    path.write_text('{"model": "nova-3", "language": "en-GB"}', encoding="utf-8")

    options = JsonConfigStore(path=path).provider_options()

    assert options.model == "nova-3"
    assert options.language == "en-GB"
    assert options.sample_rate == 16000
