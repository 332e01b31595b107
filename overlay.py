"""Always-on-top overlay mirroring live transcripts and chat."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Callable, Optional

try:
    from PySide6.QtCore import Qt
    from PySide6.QtWidgets import (
        QHBoxLayout,
        QLabel,
        QLineEdit,
        QPushButton,
        QVBoxLayout,
        QWidget,
    )
except Exception:  # pragma: no cover
    Qt = None  # type: ignore
    QHBoxLayout = object  # type: ignore
    QLabel = object  # type: ignore
    QLineEdit = object  # type: ignore
    QPushButton = object  # type: ignore
    QVBoxLayout = object  # type: ignore
    QWidget = object  # type: ignore

RECENT_TRANSCRIPTS = 5
RECENT_CHAT = 10

_PANEL_STYLE = (
    "color: white; font-size: 14px; padding: 10px;"
    "background: rgba(0,0,0,190); border-radius: 12px;"
)


class OverlayWindow(QWidget):
    def __init__(
        self,
        on_chat: Optional[Callable[[str], None]] = None,
        on_switch_to_main: Optional[Callable[[], None]] = None,
        on_close: Optional[Callable[[], None]] = None,
        on_closed: Optional[Callable[[], None]] = None,
    ) -> None:
        if Qt is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self._on_chat = on_chat
        self._on_switch_to_main = on_switch_to_main
        self._on_close = on_close
        self._on_closed = on_closed
        self._closing_from_host = False

        self.setWindowFlags(Qt.WindowStaysOnTopHint | Qt.FramelessWindowHint | Qt.Tool)
        self.setAttribute(Qt.WA_TranslucentBackground, True)
        self.setMinimumSize(350, 500)
        self.setMaximumSize(600, 900)
        self.resize(450, 700)
        self.move(20, 20)

        self._transcripts: list[dict[str, Any]] = []
        self._chat: list[dict[str, Any]] = []
        self._recording = False

        self._title = QLabel("AI Assistant")
        self._title.setStyleSheet("color: white; font-weight: bold;")
        switch_button = QPushButton("Main")
        switch_button.clicked.connect(self._switch_clicked)
        close_button = QPushButton("Close")
        close_button.clicked.connect(self._close_clicked)

        title_bar = QHBoxLayout()
        title_bar.addWidget(self._title, 1)
        title_bar.addWidget(switch_button)
        title_bar.addWidget(close_button)

        self._transcript_label = QLabel("Start recording to see live transcription")
        self._transcript_label.setWordWrap(True)
        self._transcript_label.setAlignment(Qt.AlignTop | Qt.AlignLeft)
        self._transcript_label.setStyleSheet(_PANEL_STYLE)

        self._chat_label = QLabel("No chat messages yet")
        self._chat_label.setWordWrap(True)
        self._chat_label.setAlignment(Qt.AlignTop | Qt.AlignLeft)
        self._chat_label.setStyleSheet(_PANEL_STYLE)

        self._chat_input = QLineEdit()
        self._chat_input.setPlaceholderText("Ask about the call...")
        self._chat_input.returnPressed.connect(self._submit_chat)

        layout = QVBoxLayout()
        layout.addLayout(title_bar)
        layout.addWidget(self._transcript_label, 3)
        layout.addWidget(self._chat_label, 2)
        layout.addWidget(self._chat_input)
        self.setLayout(layout)

    def receive(self, channel: str, payload: Any) -> None:
        if channel == "transcript" and isinstance(payload, dict):
            self.add_transcript(payload)
        elif channel == "sync-state" and isinstance(payload, dict):
            self.apply_state(payload)

    def add_transcript(self, transcript: dict[str, Any]) -> None:
        if self._transcripts and self._transcripts[-1].get("isInterim"):
            self._transcripts.pop()
        self._transcripts.append(transcript)
        self._render()

    def apply_state(self, state: dict[str, Any]) -> None:
        if isinstance(state.get("transcripts"), list):
            self._transcripts = list(state["transcripts"])
        if isinstance(state.get("chatHistory"), list):
            self._chat = list(state["chatHistory"])
        recording = state.get("recording")
        if isinstance(recording, dict):
            self._recording = bool(recording.get("isRecording"))
        self._render()

    def close_from_host(self) -> None:
        self._closing_from_host = True
        self.close()

    def closeEvent(self, event: Any) -> None:  # noqa: N802
        super().closeEvent(event)
        if not self._closing_from_host and self._on_closed:
            self._on_closed()

    def _render(self) -> None:
        self._title.setText("AI Assistant  ● REC" if self._recording else "AI Assistant")
        recent = self._transcripts[-RECENT_TRANSCRIPTS:]
        if recent:
            self._transcript_label.setText(
                "\n\n".join(f"{_clock(t.get('timestamp'))}  {t.get('text', '')}" for t in recent)
            )
        chat = self._chat[-RECENT_CHAT:]
        if chat:
            self._chat_label.setText(
                "\n".join(f"{m.get('role', 'user')}: {m.get('content', '')}" for m in chat)
            )

    def _submit_chat(self) -> None:
        text = self._chat_input.text().strip()
        if not text:
            return
        self._chat_input.clear()
        if self._on_chat:
            self._on_chat(text)

    def _switch_clicked(self) -> None:
        if self._on_switch_to_main:
            self._on_switch_to_main()

    def _close_clicked(self) -> None:
        if self._on_close:
            self._on_close()


def _clock(value: Any) -> str:
    if not value:
        return ""
    try:
        return datetime.fromisoformat(str(value)).strftime("%H:%M:%S")
    except ValueError:
        return ""
