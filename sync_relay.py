"""In-process relay keeping the primary and overlay windows in step.

The overlay never sees the primary window's state directly.  Everything it
knows arrives through this relay: transcripts as they are recognised, state
snapshots pushed by the primary window, and the answer to its own startup
state request.  Chat and selection changes made in the overlay travel the
other way and are handled by the primary window.
"""

from __future__ import annotations

import asyncio
import itertools
import logging
from typing import Any, Optional

from errors import OVERLAY_UNAVAILABLE
from interfaces import WindowHost
from models import CommandResult, SyncAction, SyncMessage, TranscriptEvent, WindowEvent, WindowEventKind

logger = logging.getLogger(__name__)

STATE_REQUEST_TIMEOUT_S = 2.0

CHANNEL_TRANSCRIPT = "transcript"
CHANNEL_SYNC_STATE = "sync-state"
CHANNEL_CHAT_MESSAGE = "overlay-chat-message"
CHANNEL_SELECTION_CHANGED = "overlay-selection-changed"
CHANNEL_SYNC_REQUESTED = "sync-to-overlay-requested"
CHANNEL_STATE_REQUEST = "get-current-state-for-overlay"
CHANNEL_OVERLAY_CLOSED = "overlay-closed"


class SyncRelay:
    def __init__(self, host: WindowHost, state_timeout_s: float = STATE_REQUEST_TIMEOUT_S) -> None:
        self._host = host
        self._state_timeout_s = state_timeout_s
        self._main_window: Any = None
        self._overlay: Any = None
        self._request_ids = itertools.count(1)
        self._pending_state: dict[int, asyncio.Future[Any]] = {}

    @property
    def overlay(self) -> Any:
        return self._overlay

    @property
    def has_overlay(self) -> bool:
        return self._overlay is not None

    @property
    def main_window(self) -> Any:
        return self._main_window

    def attach_main_window(self, window: Any) -> None:
        self._main_window = window

    # ------------------------------------------------------------------
    # Overlay lifecycle
    # ------------------------------------------------------------------

    def open(self, main_window: Any = None) -> CommandResult:
        if main_window is not None:
            self._main_window = main_window
        if self._overlay is not None:
            logger.debug("Overlay already open, focusing it")
            self._host.focus(self._overlay)
            return CommandResult.ok()

        logger.info("Opening overlay window...")
        try:
            self._overlay = self._host.create_overlay(self.handle_window_event)
        except Exception as exc:
            logger.exception("Failed to create overlay window")
            return CommandResult.fail(OVERLAY_UNAVAILABLE, str(exc))
        if self._main_window is not None:
            self._host.hide_primary(self._main_window)
        return CommandResult.ok()

    def close(self) -> CommandResult:
        logger.info("Closing overlay window...")
        overlay, self._overlay = self._overlay, None
        if overlay is not None:
            self._host.close_overlay(overlay)
        self._show_main()
        return CommandResult.ok()

    def switch_to_main(self) -> CommandResult:
        self._show_main()
        overlay, self._overlay = self._overlay, None
        if overlay is not None:
            self._host.close_overlay(overlay)
        return CommandResult.ok()

    def handle_window_event(self, event: WindowEvent) -> None:
        if event.kind == WindowEventKind.READY:
            self._on_overlay_ready(event.window)
        elif event.kind == WindowEventKind.CLOSED:
            self._on_overlay_closed(event.window)

    def _on_overlay_ready(self, window: Any) -> None:
        if window is not None and window is not self._overlay:
            logger.debug("Ready event from a stale overlay ignored")
            return
        if self._main_window is None:
            return
        self._host.hide_primary(self._main_window)
        self._host.send_to(self._main_window, CHANNEL_SYNC_REQUESTED, None)

    def _on_overlay_closed(self, window: Any) -> None:
        if window is not None and self._overlay is not None and window is not self._overlay:
            return
        self._overlay = None
        self._show_main()
        if self._main_window is not None:
            self._host.send_to(self._main_window, CHANNEL_OVERLAY_CLOSED, None)

    def _show_main(self) -> None:
        if self._main_window is None:
            return
        self._host.show_primary(self._main_window)
        self._host.focus(self._main_window)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    def relay(self, message: SyncMessage) -> CommandResult:
        action = message.action
        logger.debug("Syncing data to overlay: %s", action.value)

        if action == SyncAction.CHAT_MESSAGE:
            self._send_main(CHANNEL_CHAT_MESSAGE, message.payload)
        elif action == SyncAction.SELECTION_CHANGED:
            self._send_main(CHANNEL_SELECTION_CHANGED, message.payload)
        else:
            if action == SyncAction.UNKNOWN:
                logger.warning("Undefined sync action, syncing full state")
            self._send_overlay(CHANNEL_SYNC_STATE, message.payload)
        return CommandResult.ok()

    def broadcast_transcript(self, event: TranscriptEvent) -> None:
        payload = event.to_payload()
        if self._main_window is not None:
            self._host.send_to(self._main_window, CHANNEL_TRANSCRIPT, payload)
        else:
            logger.error("Main window not available to send transcript")
        if self._overlay is not None:
            self._host.send_to(self._overlay, CHANNEL_TRANSCRIPT, payload)

    async def request_state(self) -> Optional[Any]:
        """Ask the primary window for its state; ``None`` after the timeout."""
        if self._main_window is None:
            return None

        request_id = next(self._request_ids)
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._pending_state[request_id] = future
        self._host.send_to(self._main_window, CHANNEL_STATE_REQUEST, {"requestId": request_id})
        try:
            return await asyncio.wait_for(future, timeout=self._state_timeout_s)
        except asyncio.TimeoutError:
            logger.warning("No state from main window within %.1fs", self._state_timeout_s)
            return None
        finally:
            self._pending_state.pop(request_id, None)

    def resolve_state(self, request_id: int, state: Any) -> bool:
        """Deliver the primary window's answer to a pending ``request_state``."""
        future = self._pending_state.get(request_id)
        if future is None or future.done():
            logger.debug("State response %s has no pending request", request_id)
            return False
        future.set_result(state)
        return True

    def _send_main(self, channel: str, payload: Any) -> None:
        if self._main_window is None:
            logger.warning("Main window not available for %s", channel)
            return
        self._host.send_to(self._main_window, channel, payload)

    def _send_overlay(self, channel: str, payload: Any) -> None:
        if self._overlay is None:
            logger.debug("No overlay open, %s dropped", channel)
            return
        self._host.send_to(self._overlay, channel, payload)
