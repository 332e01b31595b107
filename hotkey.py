"""Global record toggle hotkey.

The configured value is either a single pynput key name such as ``Key.f9``
or a combination in ``keyboard.HotKey`` syntax such as ``<ctrl>+<alt>+r``.
Either way the callback runs on the pynput listener thread.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

try:
    from pynput import keyboard
except Exception:  # pragma: no cover
    keyboard = None  # type: ignore

logger = logging.getLogger(__name__)

DEFAULT_HOTKEY = "Key.f9"

KeyHandler = Callable[[Any], None]


def is_combination(spec: str) -> bool:
    return spec.startswith("<") or "+" in spec


class RecordToggleHotkey:
    def __init__(self, spec: str = DEFAULT_HOTKEY) -> None:
        self.spec = spec.strip() or DEFAULT_HOTKEY
        self._listener: Optional[Any] = None
        self._held = False
        self._lock = threading.Lock()

    @property
    def active(self) -> bool:
        return self._listener is not None

    def start(self, on_toggle: Callable[[], None]) -> None:
        if keyboard is None:
            raise RuntimeError("pynput is not installed")
        if self._listener is not None:
            return

        if is_combination(self.spec):
            on_press, on_release = self._combination_handlers(on_toggle)
        else:
            on_press, on_release = self._single_key_handlers(on_toggle)
        self._listener = keyboard.Listener(on_press=on_press, on_release=on_release)
        self._listener.start()
        logger.info("Recording hotkey armed: %s", self.spec)

    def stop(self) -> None:
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.stop()
        self._held = False

    def _single_key_handlers(self, on_toggle: Callable[[], None]) -> tuple[KeyHandler, KeyHandler]:
        def _on_press(key: Any) -> None:
            if str(key) != self.spec:
                return
            # Auto-repeat sends presses until release.
            with self._lock:
                if self._held:
                    return
                self._held = True
            on_toggle()

        def _on_release(key: Any) -> None:
            if str(key) == self.spec:
                with self._lock:
                    self._held = False

        return _on_press, _on_release

    def _combination_handlers(self, on_toggle: Callable[[], None]) -> tuple[KeyHandler, KeyHandler]:
        try:
            combination = keyboard.HotKey(keyboard.HotKey.parse(self.spec), on_toggle)
        except ValueError as exc:
            raise ValueError(f"Invalid hotkey {self.spec!r}: {exc}") from exc

        def _on_press(key: Any) -> None:
            listener = self._listener
            if listener is not None:
                combination.press(listener.canonical(key))

        def _on_release(key: Any) -> None:
            listener = self._listener
            if listener is not None:
                combination.release(listener.canonical(key))

        return _on_press, _on_release
