"""Application entrypoint."""

from __future__ import annotations

import logging
import sys
from concurrent.futures import Future
from datetime import datetime
from typing import Any, Callable

from app_context import AppContext
from config import JsonConfigStore
from conversation_store import SqliteConversationStore
from hotkey import RecordToggleHotkey
from logging_utils import set_log_level, setup_logging
from models import AudioMode, CommandResult, SessionState
from overlay import OverlayWindow
from recorder import SoundDeviceRecorder, SoundDeviceSourceProvider
from session_controller import SessionController
from windows import LoopRunner, OverlayHandle, PrimaryWindow, QtWindowHost

try:
    from PySide6.QtCore import QObject, Signal, QSize
    from PySide6.QtGui import QAction, QIcon, QPixmap, QPainter, QColor, QBrush
    from PySide6.QtWidgets import QApplication, QInputDialog, QMenu, QMessageBox, QSystemTrayIcon
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)


def _create_icon(color: str = "#888888", size: int = 22) -> QIcon:
    """Generate a simple circular tray icon with the given color."""
    pixmap = QPixmap(QSize(size, size))
    pixmap.fill(QColor(0, 0, 0, 0))
    painter = QPainter(pixmap)
    painter.setRenderHint(QPainter.Antialiasing, True)
    painter.setBrush(QBrush(QColor(color)))
    painter.setPen(QColor(color))
    painter.drawEllipse(2, 2, size - 4, size - 4)
    painter.end()
    return QIcon(pixmap)


ICON_IDLE = "#888888"
ICON_CONNECTING = "#FFCC00"
ICON_RECORDING = "#FF4444"
ICON_ERROR = "#FF8800"


class UIBridge(QObject):
    state_signal = Signal(str, str)  # from_state, to_state
    recording_signal = Signal(bool)
    status_signal = Signal(str)
    overlay_state_signal = Signal(object, object)  # handle, state
    hotkey_signal = Signal()
    history_signal = Signal(object)  # list of recording rows


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.app.setQuitOnLastWindowClosed(False)
        self.config_store = JsonConfigStore()
        setup_logging(level=self.config_store.get_log_level())

        self.ui = UIBridge()
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.recording_signal.connect(self._on_recording_ui)
        self.ui.status_signal.connect(self._on_status_ui)
        self.ui.overlay_state_signal.connect(self._on_overlay_state_ui)
        self.ui.hotkey_signal.connect(self.toggle_recording)
        self.ui.history_signal.connect(self._on_history_ui)

        self.runner = LoopRunner()
        self.primary = PrimaryWindow(
            on_toggle_recording=self.toggle_recording,
            on_open_overlay=self.open_overlay,
            on_mode_changed=self._set_audio_mode,
            publish_state=self._publish_state,
            answer_state_request=self._answer_state_request,
            audio_mode=self.config_store.get_audio_mode(),
            on_chat=self._save_chat_message,
        )
        self.host = QtWindowHost(self.runner, self._build_overlay)
        self.context = AppContext.create(
            self.host,
            main_window=self.primary,
            options=self.config_store.provider_options(),
            source_provider=SoundDeviceSourceProvider(),
            store=SqliteConversationStore(),
            on_state_change=self._on_state_change,
        )
        self.controller = SessionController(self.context, default_mode=self.config_store.get_audio_mode())
        self.recorder = SoundDeviceRecorder()
        self.hotkey = RecordToggleHotkey(self.config_store.get_hotkey())

        self.tray = QSystemTrayIcon()
        self.tray.setIcon(_create_icon(ICON_IDLE))
        self.tray.setToolTip("CallMate - Ready")
        self.tray.activated.connect(lambda _reason: self.show_primary())
        self._setup_menu()
        self.tray.show()

    def _setup_menu(self) -> None:
        menu = QMenu()

        show_action = QAction("Show Window", menu)
        show_action.triggered.connect(self.show_primary)
        menu.addAction(show_action)

        record_action = QAction("Start/Stop Recording", menu)
        record_action.triggered.connect(self.toggle_recording)
        menu.addAction(record_action)

        overlay_action = QAction("Open Overlay", menu)
        overlay_action.triggered.connect(self.open_overlay)
        menu.addAction(overlay_action)

        history_action = QAction("Recording History", menu)
        history_action.triggered.connect(self._show_history)
        menu.addAction(history_action)

        menu.addSeparator()
        api_action = QAction("Set API Key", menu)
        api_action.triggered.connect(self._set_api_key)
        menu.addAction(api_action)

        test_action = QAction("Test API Key", menu)
        test_action.triggered.connect(self._test_api_key)
        menu.addAction(test_action)

        hotkey_action = QAction("Set Hotkey", menu)
        hotkey_action.triggered.connect(self._set_hotkey)
        menu.addAction(hotkey_action)

        log_action = QAction("Verbose Logging", menu)
        log_action.setCheckable(True)
        log_action.setChecked(self.config_store.get_log_level() == "DEBUG")
        log_action.toggled.connect(lambda on: set_log_level("DEBUG" if on else "INFO"))
        menu.addAction(log_action)

        menu.addSeparator()
        quit_action = QAction("Quit", menu)
        quit_action.triggered.connect(self.quit)
        menu.addAction(quit_action)

        self.tray.setContextMenu(menu)

    def _set_api_key(self) -> None:
        value, ok = QInputDialog.getText(None, "API Key", "Deepgram API Key")
        if not ok:
            return
        self.config_store.set_api_key(value.strip())
        QMessageBox.information(None, "Saved", "API Key saved. It is used for the next recording.")

    def _test_api_key(self) -> None:
        future = self.runner.submit(self.controller.verify_credential(self.config_store.get_api_key()))
        future.add_done_callback(self._report_result("API key check"))

    def _set_hotkey(self) -> None:
        value, ok = QInputDialog.getText(
            None, "Hotkey", "Key name (Key.f9) or combination (<ctrl>+<alt>+r)"
        )
        if not ok or not value:
            return
        self.config_store.set_hotkey(value)
        QMessageBox.information(None, "Saved", "Hotkey saved. Restart app to apply.")

    def _show_history(self) -> None:
        future = self.runner.submit(self.controller.recording_history())
        future.add_done_callback(self._on_history_loaded)

    def _on_history_loaded(self, future: Future) -> None:
        result: CommandResult = future.result()
        if not result.success:
            self.ui.status_signal.emit(f"History failed: {result.message}")
            return
        self.ui.history_signal.emit(result.data)

    def _set_audio_mode(self, mode: str) -> None:
        self.config_store.set_audio_mode(mode)
        self.runner.call(self.controller.set_audio_mode, mode)

    # ------------------------------------------------------------------
    # Recording
    # ------------------------------------------------------------------

    def toggle_recording(self) -> None:
        if self.primary.recording:
            self.recorder.stop()
            future = self.runner.submit(self.controller.stop_session())
            future.add_done_callback(lambda _f: self.ui.recording_signal.emit(False))
            return

        api_key = self.config_store.get_api_key()
        mode = self.primary.audio_mode
        future = self.runner.submit(self.controller.start_session(api_key, mode))
        future.add_done_callback(self._on_session_started)

    def _on_session_started(self, future: Future) -> None:
        result: CommandResult = future.result()
        if not result.success:
            self.ui.status_signal.emit(f"{result.error}: {result.message}")
            return
        self.ui.recording_signal.emit(True)

    def _on_audio_frame(self, frame: Any) -> None:
        # Runs on the sounddevice callback thread.
        self.runner.submit(self.controller.send_audio(frame))

    # ------------------------------------------------------------------
    # Overlay
    # ------------------------------------------------------------------

    def open_overlay(self) -> None:
        self.runner.call(self.controller.open_overlay)

    def _build_overlay(self, handle: OverlayHandle) -> OverlayWindow:
        call = self.runner.call
        overlay = OverlayWindow(
            on_chat=lambda text: call(
                self.controller.relay_sync,
                {"action": "chat-message", "payload": {"message": text, "context": []}},
            ),
            on_switch_to_main=lambda: call(self.controller.switch_to_main),
            on_close=lambda: call(self.controller.close_overlay),
            on_closed=lambda: self.host.overlay_closed_by_user(handle),
        )
        future = self.runner.submit(self.controller.request_overlay_state())
        future.add_done_callback(
            lambda f: self.ui.overlay_state_signal.emit(handle, f.result().data)
        )
        return overlay

    def _publish_state(self, state: dict[str, Any]) -> None:
        self.runner.call(self.controller.relay_sync, {"action": "full-state-sync", "payload": state})

    def _answer_state_request(self, request_id: int, state: dict[str, Any]) -> None:
        self.runner.call(self.controller.resolve_overlay_state, request_id, state)

    def _save_chat_message(self, text: str, context: list[Any]) -> None:
        future = self.runner.submit(self.controller.save_chat_message(text, context))
        future.add_done_callback(self._on_chat_saved)

    def _on_chat_saved(self, future: Future) -> None:
        result: CommandResult = future.result()
        if not result.success:
            self.ui.status_signal.emit(f"Chat not saved: {result.message}")

    # ------------------------------------------------------------------
    # Callbacks (called from the core thread → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _report_result(self, what: str) -> Callable[[Future], None]:
        def _done(future: Future) -> None:
            result: CommandResult = future.result()
            if result.success:
                self.ui.status_signal.emit(f"{what}: {result.message or 'ok'}")
            else:
                self.ui.status_signal.emit(f"{what} failed: {result.message}")

        return _done

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        if to_state == SessionState.OPEN.value:
            self.tray.setIcon(_create_icon(ICON_RECORDING))
            self.tray.setToolTip("CallMate - Listening...")
        elif to_state == SessionState.CONNECTING.value:
            self.tray.setIcon(_create_icon(ICON_CONNECTING))
            self.tray.setToolTip("CallMate - Connecting...")
        elif to_state == SessionState.CLOSED.value and self.primary.recording:
            # Dropped while recording; the session retries on its own.
            self.tray.setIcon(_create_icon(ICON_ERROR))
            self.tray.setToolTip("CallMate - Reconnecting...")
        elif to_state == SessionState.CLOSED.value:
            self.tray.setIcon(_create_icon(ICON_IDLE))
            self.tray.setToolTip("CallMate - Ready")

    def _on_recording_ui(self, recording: bool) -> None:
        self.primary.set_recording(recording)
        if not recording:
            self.primary.set_status("Stopped")
            return
        self.primary.set_status("Recording")
        if self.primary.audio_mode in (AudioMode.MICROPHONE.value, AudioMode.BOTH.value):
            try:
                self.recorder.start(self._on_audio_frame)
            except Exception as exc:
                logger.error("Microphone unavailable: %s", exc)
                self.primary.set_status(f"Microphone unavailable: {exc}")

    def _on_status_ui(self, text: str) -> None:
        self.primary.set_status(text)
        self.tray.showMessage("CallMate", text)

    def _on_history_ui(self, history: list[dict[str, Any]]) -> None:
        if not history:
            QMessageBox.information(None, "Recording History", "No recordings yet.")
            return
        lines = []
        for row in history:
            started = datetime.fromtimestamp(row["started_at"] / 1000).strftime("%Y-%m-%d %H:%M")
            lines.append(
                f"{started}  {row.get('transcript_count') or 0} transcripts, "
                f"{len(row['conversations'])} chat messages"
            )
        QMessageBox.information(None, "Recording History", "\n".join(lines))

    def _on_overlay_state_ui(self, handle: OverlayHandle, state: Any) -> None:
        if state is not None:
            self.host.send_to(handle, "sync-state", state)

    def show_primary(self) -> None:
        self.primary.show()
        self.primary.raise_()
        self.primary.activateWindow()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.runner.start()
        try:
            self.hotkey.start(self._on_hotkey)
        except Exception as exc:
            self.primary.set_status(f"Hotkey disabled: {exc}")
        self.show_primary()
        return self.app.exec()

    def _on_hotkey(self) -> None:
        # pynput thread → Qt thread
        self.ui.hotkey_signal.emit()

    def quit(self) -> None:
        self.hotkey.stop()
        self.recorder.stop()
        future = self.runner.submit(self.controller.shutdown())
        try:
            future.result(timeout=3.0)
        except Exception as exc:
            logger.warning("Shutdown did not complete cleanly: %s", exc)
        self.runner.stop()
        self.primary.quitting = True
        self.primary.close()
        self.app.quit()


def main() -> int:
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
