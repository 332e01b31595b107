"""Qt window host and primary window, bridged to the asyncio core thread.

The core runs on its own event loop thread (``LoopRunner``).  Calls from the
core into Qt go through queued signals on ``HostBridge``; calls from Qt into
the core go through ``LoopRunner.submit`` / ``LoopRunner.call``.
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import threading
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional

from interfaces import WindowEventCallback
from models import AudioMode, WindowEvent, WindowEventKind

try:
    from PySide6.QtCore import QObject, Signal
    from PySide6.QtWidgets import (
        QComboBox,
        QHBoxLayout,
        QLabel,
        QLineEdit,
        QListWidget,
        QPushButton,
        QVBoxLayout,
        QWidget,
    )
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")


class LoopRunner:
    """Owns the asyncio loop the transcription core runs on."""

    def __init__(self) -> None:
        self.loop = asyncio.new_event_loop()
        self._thread = threading.Thread(target=self._run, name="core-loop", daemon=True)

    def start(self) -> None:
        self._thread.start()

    def submit(self, coro: Awaitable[Any]) -> concurrent.futures.Future:
        return asyncio.run_coroutine_threadsafe(coro, self.loop)

    def call(self, fn: Callable[..., Any], *args: Any) -> None:
        self.loop.call_soon_threadsafe(fn, *args)

    def stop(self, timeout_s: float = 2.0) -> None:
        self.loop.call_soon_threadsafe(self.loop.stop)
        self._thread.join(timeout=timeout_s)

    def _run(self) -> None:
        asyncio.set_event_loop(self.loop)
        self.loop.run_forever()


class OverlayHandle:
    """Returned to the core at once; the widget is built later on the Qt thread."""

    def __init__(self, on_event: WindowEventCallback) -> None:
        self.on_event = on_event
        self.widget: Any = None


class HostBridge(QObject):
    create_overlay_signal = Signal(object)
    close_overlay_signal = Signal(object)
    show_signal = Signal(object)
    hide_signal = Signal(object)
    focus_signal = Signal(object)
    send_signal = Signal(object, str, object)


class QtWindowHost:
    def __init__(self, runner: LoopRunner, overlay_factory: Callable[[OverlayHandle], Any]) -> None:
        self._runner = runner
        self._overlay_factory = overlay_factory
        self._bridge = HostBridge()
        self._bridge.create_overlay_signal.connect(self._create_overlay)
        self._bridge.close_overlay_signal.connect(self._close_overlay)
        self._bridge.show_signal.connect(self._show)
        self._bridge.hide_signal.connect(self._hide)
        self._bridge.focus_signal.connect(self._focus)
        self._bridge.send_signal.connect(self._send)

    # Called from the core thread.

    def create_overlay(self, on_event: WindowEventCallback) -> OverlayHandle:
        handle = OverlayHandle(on_event)
        self._bridge.create_overlay_signal.emit(handle)
        return handle

    def close_overlay(self, overlay: Any) -> None:
        self._bridge.close_overlay_signal.emit(overlay)

    def show_primary(self, window: Any) -> None:
        self._bridge.show_signal.emit(window)

    def hide_primary(self, window: Any) -> None:
        self._bridge.hide_signal.emit(window)

    def focus(self, window: Any) -> None:
        self._bridge.focus_signal.emit(window)

    def send_to(self, window: Any, channel: str, payload: Any) -> None:
        self._bridge.send_signal.emit(window, channel, payload)

    # Called on the Qt thread.

    def overlay_closed_by_user(self, handle: OverlayHandle) -> None:
        handle.widget = None
        self._runner.call(handle.on_event, WindowEvent(WindowEventKind.CLOSED, handle))

    def _create_overlay(self, handle: OverlayHandle) -> None:
        widget = self._overlay_factory(handle)
        handle.widget = widget
        widget.show()
        self._runner.call(handle.on_event, WindowEvent(WindowEventKind.READY, handle))

    def _close_overlay(self, handle: OverlayHandle) -> None:
        widget, handle.widget = handle.widget, None
        if widget is not None:
            widget.close_from_host()
            widget.deleteLater()

    def _show(self, window: Any) -> None:
        widget = _widget(window)
        if widget is not None:
            widget.show()

    def _hide(self, window: Any) -> None:
        widget = _widget(window)
        if widget is not None:
            widget.hide()

    def _focus(self, window: Any) -> None:
        widget = _widget(window)
        if widget is not None:
            widget.raise_()
            widget.activateWindow()

    def _send(self, window: Any, channel: str, payload: Any) -> None:
        widget = _widget(window)
        if widget is not None:
            widget.receive(channel, payload)


def _widget(window: Any) -> Any:
    if isinstance(window, OverlayHandle):
        return window.widget
    return window


class PrimaryWindow(QWidget):
    """Main window: live transcript, chat input and recording controls."""

    def __init__(
        self,
        on_toggle_recording: Callable[[], None],
        on_open_overlay: Callable[[], None],
        on_mode_changed: Callable[[str], None],
        publish_state: Callable[[dict[str, Any]], None],
        answer_state_request: Callable[[int, dict[str, Any]], None],
        audio_mode: str = AudioMode.BOTH.value,
        on_chat: Optional[Callable[[str, list[Any]], None]] = None,
    ) -> None:
        super().__init__()
        self._publish_state = publish_state
        self._on_chat = on_chat
        self._answer_state_request = answer_state_request
        self.quitting = False
        self.transcripts: list[dict[str, Any]] = []
        self.chat_history: list[dict[str, Any]] = []
        self.selected_context: list[Any] = []
        self.recording = False
        self._recording_started: Optional[datetime] = None

        self.setWindowTitle("CallMate")
        self.resize(1000, 700)

        self._status = QLabel("Ready")
        self._record_button = QPushButton("Start Recording")
        self._record_button.clicked.connect(on_toggle_recording)
        overlay_button = QPushButton("Overlay")
        overlay_button.clicked.connect(on_open_overlay)
        self._mode = QComboBox()
        self._mode.addItems([mode.value for mode in AudioMode])
        self._mode.setCurrentText(audio_mode)
        self._mode.currentTextChanged.connect(on_mode_changed)

        controls = QHBoxLayout()
        controls.addWidget(self._record_button)
        controls.addWidget(self._mode)
        controls.addWidget(overlay_button)
        controls.addWidget(self._status, 1)

        self._transcript_list = QListWidget()
        self._interim = QLabel("")
        self._interim.setStyleSheet("color: gray;")
        self._chat_list = QListWidget()
        self._chat_input = QLineEdit()
        self._chat_input.setPlaceholderText("Ask about the call...")
        self._chat_input.returnPressed.connect(self._submit_chat)

        layout = QVBoxLayout()
        layout.addLayout(controls)
        layout.addWidget(self._transcript_list, 3)
        layout.addWidget(self._interim)
        layout.addWidget(self._chat_list, 2)
        layout.addWidget(self._chat_input)
        self.setLayout(layout)

    @property
    def audio_mode(self) -> str:
        return self._mode.currentText()

    def set_recording(self, recording: bool) -> None:
        self.recording = recording
        self._recording_started = datetime.now() if recording else None
        self._record_button.setText("Stop Recording" if recording else "Start Recording")
        self._interim.setText("")
        self._publish_state(self.current_state())

    def set_status(self, text: str) -> None:
        self._status.setText(text)

    def current_state(self) -> dict[str, Any]:
        return {
            "transcripts": list(self.transcripts),
            "chatHistory": list(self.chat_history),
            "recording": {
                "isRecording": self.recording,
                "startTime": self._recording_started.isoformat() if self._recording_started else None,
            },
            "selectedContext": list(self.selected_context),
        }

    def receive(self, channel: str, payload: Any) -> None:
        if channel == "transcript" and isinstance(payload, dict):
            self._add_transcript(payload)
        elif channel == "overlay-chat-message" and isinstance(payload, dict):
            self.add_chat_message(str(payload.get("message", "")))
        elif channel == "overlay-selection-changed":
            self.selected_context = list(payload.get("selectedContext", [])) if isinstance(payload, dict) else []
        elif channel == "sync-to-overlay-requested":
            self._publish_state(self.current_state())
        elif channel == "get-current-state-for-overlay" and isinstance(payload, dict):
            self._answer_state_request(int(payload.get("requestId", 0)), self.current_state())
        elif channel == "overlay-closed":
            self.set_status("Overlay closed")

    def add_chat_message(self, text: str) -> None:
        if not text:
            return
        message = {"role": "user", "content": text, "timestamp": datetime.now().isoformat()}
        self.chat_history.append(message)
        self._chat_list.addItem(f"You: {text}")
        if self._on_chat is not None:
            self._on_chat(text, list(self.selected_context))
        self._publish_state(self.current_state())

    def closeEvent(self, event: Any) -> None:  # noqa: N802
        if self.quitting:
            super().closeEvent(event)
            return
        # Keep running in the tray.
        event.ignore()
        self.hide()

    def _add_transcript(self, payload: dict[str, Any]) -> None:
        if payload.get("isInterim"):
            self._interim.setText(str(payload.get("text", "")))
            return
        self._interim.setText("")
        self.transcripts.append(payload)
        self._transcript_list.addItem(f"[{payload.get('speaker', 'user')}] {payload.get('text', '')}")
        self._transcript_list.scrollToBottom()

    def _submit_chat(self) -> None:
        text = self._chat_input.text().strip()
        self._chat_input.clear()
        self.add_chat_message(text)
