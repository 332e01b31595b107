"""Streaming transcription session against the Deepgram listen endpoint.

One ``StreamingSession`` owns at most one websocket at a time.  Transport
callbacks are turned into ``Transport*`` events and handled by
``dispatch``.  Unsolicited closes (any code but 1000) are retried with a
linear backoff of ``2s * (attempt + 1)``, at most five times; ``disconnect``
defeats any pending retry.
"""

from __future__ import annotations

import asyncio
import json
import logging
import random
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Awaitable, Callable, Optional
from urllib.parse import urlencode

from websockets.asyncio.client import connect as ws_connect
from websockets.exceptions import ConnectionClosed

from errors import (
    AUTH_FAILED,
    NETWORK_ERROR,
    NO_CREDENTIAL,
    ConfigurationError,
    ProviderConnectionError,
    SessionError,
)
from logging_utils import mask_secret
from models import (
    AudioMode,
    SessionState,
    TranscriptEvent,
    TransportClosed,
    TransportError,
    TransportEvent,
    TransportMessage,
    TransportOpened,
)

logger = logging.getLogger(__name__)

NORMAL_CLOSURE = 1000
ABNORMAL_CLOSURE = 1006
MAX_RECONNECT_ATTEMPTS = 5
RECONNECT_DELAY_S = 2.0
DROP_LOG_SAMPLE_RATE = 0.01

TranscriptSink = Callable[[TranscriptEvent], None]
StateCallback = Callable[[SessionState, SessionState], None]
Scheduler = Callable[[float, Callable[[], None]], Any]
Resolver = Callable[[str], Awaitable[Any]]


@dataclass
class ProviderOptions:
    """Query parameters fixed at connect time."""

    host: str = "api.deepgram.com"
    path: str = "/v1/listen"
    model: str = "nova-2"
    language: str = "en-US"
    punctuate: bool = True
    interim_results: bool = True
    endpointing_ms: int = 300
    utterance_end_ms: int = 1000
    vad_events: bool = True
    encoding: str = "linear16"
    sample_rate: int = 16000
    channels: int = 1
    open_timeout_s: float = 10.0

    def query(self) -> dict[str, str]:
        return {
            "model": self.model,
            "language": self.language,
            "punctuate": _flag(self.punctuate),
            "interim_results": _flag(self.interim_results),
            "endpointing": str(self.endpointing_ms),
            "utterance_end_ms": str(self.utterance_end_ms),
            "vad_events": _flag(self.vad_events),
            "encoding": self.encoding,
            "sample_rate": str(self.sample_rate),
            "channels": str(self.channels),
        }

    @property
    def uri(self) -> str:
        return f"wss://{self.host}{self.path}?{urlencode(self.query())}"


def _flag(value: bool) -> str:
    return "true" if value else "false"


def reconnect_delay_s(attempt: int) -> float:
    """Linear backoff: 2s, 4s, 6s ... for attempt 0, 1, 2 ..."""
    return RECONNECT_DELAY_S * (attempt + 1)


class StreamingSession:
    def __init__(
        self,
        options: Optional[ProviderOptions] = None,
        on_transcript: Optional[TranscriptSink] = None,
        on_state_change: Optional[StateCallback] = None,
        connector: Optional[Callable[..., Awaitable[Any]]] = None,
        resolver: Optional[Resolver] = None,
        scheduler: Optional[Scheduler] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.options = options or ProviderOptions()
        self._on_transcript = on_transcript
        self._on_state_change = on_state_change
        self._connector = connector or ws_connect
        self._resolver = resolver
        self._scheduler = scheduler
        self._clock = clock or datetime.now

        self._state = SessionState.IDLE
        self._credential: Optional[str] = None
        self._audio_mode = AudioMode.MICROPHONE
        self._reconnect_attempt = 0
        self._reconnecting = False
        self._reconnect_handle: Any = None
        # Bumped by disconnect(); timers from an older generation never fire.
        self._generation = 0
        # Identifies the live websocket; events from older ones are ignored.
        self._connection_id = 0
        self._ws: Any = None
        self._pending_open: Optional[asyncio.Future[None]] = None
        self._background: set[asyncio.Future[Any]] = set()
        self.dropped_frames = 0

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def reconnect_attempt(self) -> int:
        return self._reconnect_attempt

    @property
    def audio_mode(self) -> AudioMode:
        return self._audio_mode

    @property
    def is_connected(self) -> bool:
        return self._state == SessionState.OPEN

    @property
    def has_credential(self) -> bool:
        return bool(self._credential)

    def set_transcript_sink(self, sink: Optional[TranscriptSink]) -> None:
        self._on_transcript = sink

    def initialize(self, credential: str) -> None:
        """Store the credential for the next connection attempt."""
        self._credential = credential or None
        logger.debug("Streaming session initialized with key: %s", mask_secret(credential))

    def set_audio_mode(self, mode: AudioMode | str) -> None:
        self._audio_mode = AudioMode.parse(mode)
        logger.debug("Audio mode set to: %s", self._audio_mode.value)

    # ------------------------------------------------------------------
    # Connection lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        if not self._credential:
            raise ConfigurationError(NO_CREDENTIAL)
        if self._state == SessionState.OPEN:
            return
        if self._state == SessionState.CONNECTING and self._pending_open is not None:
            await asyncio.shield(self._pending_open)
            return

        loop = asyncio.get_running_loop()
        pending: asyncio.Future[None] = loop.create_future()
        self._pending_open = pending
        self._transition(SessionState.CONNECTING)
        logger.info("Connecting to Deepgram websocket...")

        await self._resolve_host()
        if pending.done():
            # disconnect() ran while the host was being resolved
            await pending
            return

        self._connection_id += 1
        credential = self._credential or ""
        self._spawn(self._run_transport(self._connection_id, credential))
        await pending

    def disconnect(self) -> None:
        logger.info("Disconnecting from Deepgram...")
        self._reconnect_attempt = MAX_RECONNECT_ATTEMPTS
        self._reconnecting = False
        self._generation += 1
        self._connection_id += 1
        self._credential = None
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None

        pending = self._pending_open
        if pending is not None and not pending.done():
            pending.set_exception(
                ProviderConnectionError(NETWORK_ERROR, "Connection attempt cancelled by disconnect")
            )

        ws, self._ws = self._ws, None
        if ws is not None:
            self._transition(SessionState.CLOSING)
            self._spawn(self._close_quietly(ws))
        self._transition(SessionState.CLOSED)
        logger.info("Deepgram disconnected")

    async def send_audio(self, frame: bytes) -> bool:
        """Forward one PCM frame; frames arriving while not open are dropped."""
        ws = self._ws
        if self._state != SessionState.OPEN or ws is None:
            self.dropped_frames += 1
            if random.random() < DROP_LOG_SAMPLE_RATE:
                logger.warning(
                    "Websocket not ready, skipping audio data (state=%s, connection=%s)",
                    self._state.value,
                    ws is not None,
                )
            return False
        try:
            await ws.send(frame)
        except ConnectionClosed as exc:
            logger.debug("Audio frame dropped, connection closing: %s", exc)
            return False
        return True

    # ------------------------------------------------------------------
    # Transport events
    # ------------------------------------------------------------------

    def dispatch(self, event: TransportEvent) -> None:
        if event.connection_id != self._connection_id:
            logger.debug(
                "Ignoring %s from superseded connection %d",
                type(event).__name__,
                event.connection_id,
            )
            return
        if isinstance(event, TransportOpened):
            self._handle_opened()
        elif isinstance(event, TransportMessage):
            self._handle_message(event.data)
        elif isinstance(event, TransportError):
            self._handle_error(event.error)
        elif isinstance(event, TransportClosed):
            self._handle_closed(event.code, event.reason)

    def _handle_opened(self) -> None:
        logger.info("Connected to Deepgram websocket")
        self._reconnect_attempt = 0
        self._reconnecting = False
        if self._reconnect_handle is not None:
            self._reconnect_handle.cancel()
            self._reconnect_handle = None
        self._transition(SessionState.OPEN)
        pending = self._pending_open
        if pending is not None and not pending.done():
            pending.set_result(None)

    def _handle_message(self, data: str | bytes) -> None:
        try:
            response = json.loads(data)
        except (TypeError, ValueError) as exc:
            logger.error("Error parsing Deepgram response: %s", exc)
            return

        recognition = _top_alternative(response)
        if recognition is None:
            if isinstance(response, dict) and response.get("type"):
                logger.debug("Deepgram %s message ignored", response.get("type"))
            return
        text, is_final = recognition
        if not text:
            return

        logger.debug('Deepgram transcript: "%s" (final: %s)', text, is_final)
        event = TranscriptEvent.from_recognition(text, is_final, self._audio_mode, self._clock())
        self._emit(event)

    def _handle_error(self, error: BaseException) -> None:
        logger.error("Deepgram websocket error: %s", error or type(error).__name__)
        if _is_dns_failure(error):
            logger.error(
                "Network connectivity issue detected: check the internet connection, "
                "VPN, firewall or DNS settings for %s",
                self.options.host,
            )

        pending = self._pending_open
        if pending is not None and not pending.done():
            self._transition(SessionState.CLOSED)
            code = AUTH_FAILED if _is_auth_failure(error) else NETWORK_ERROR
            pending.set_exception(ProviderConnectionError(code, str(error) or type(error).__name__))
            if self._reconnecting:
                self._reconnecting = False
                self._schedule_reconnect(ABNORMAL_CLOSURE)
            return

        if self._state == SessionState.OPEN:
            self._transition(SessionState.CLOSING)

    def _handle_closed(self, code: int, reason: str) -> None:
        logger.info("Deepgram websocket closed: %s %s", code, reason)
        self._ws = None
        self._transition(SessionState.CLOSED)
        pending = self._pending_open
        if pending is not None and not pending.done():
            pending.set_exception(
                ProviderConnectionError(NETWORK_ERROR, f"Connection closed before open ({code})")
            )
        self._schedule_reconnect(code)

    # ------------------------------------------------------------------
    # Reconnection
    # ------------------------------------------------------------------

    def _schedule_reconnect(self, code: int) -> None:
        if code == NORMAL_CLOSURE or self._reconnect_attempt >= MAX_RECONNECT_ATTEMPTS:
            logger.info("Max reconnection attempts reached or intentional disconnect")
            return
        if self._reconnect_handle is not None:
            return

        delay = reconnect_delay_s(self._reconnect_attempt)
        self._reconnect_attempt += 1
        logger.info(
            "Attempting reconnection %d/%d in %.1fs...",
            self._reconnect_attempt,
            MAX_RECONNECT_ATTEMPTS,
            delay,
        )
        generation = self._generation
        scheduler = self._scheduler or asyncio.get_running_loop().call_later
        self._reconnect_handle = scheduler(delay, lambda: self._on_reconnect_timer(generation))

    def _on_reconnect_timer(self, generation: int) -> None:
        if generation != self._generation:
            logger.debug("Reconnection skipped, session was disconnected")
            return
        self._reconnect_handle = None
        if not self._credential:
            logger.debug("Reconnection skipped, no credential stored")
            return
        self._reconnecting = True
        self._spawn(self._reconnect())

    async def _reconnect(self) -> None:
        try:
            await self.connect()
        except SessionError as exc:
            logger.error("Reconnection failed: %s", exc)
        finally:
            self._reconnecting = False

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    async def _resolve_host(self) -> None:
        host = self.options.host
        try:
            if self._resolver is not None:
                address = await self._resolver(host)
            else:
                infos = await asyncio.get_running_loop().getaddrinfo(host, 443)
                address = infos[0][4][0] if infos else None
            logger.debug("DNS resolved %s to %s", host, address)
        except (OSError, ValueError) as exc:
            logger.error("DNS resolution failed for %s: %s", host, exc)
            logger.debug("Attempting direct websocket connection anyway")

    async def _run_transport(self, connection_id: int, credential: str) -> None:
        try:
            ws = await self._connector(
                self.options.uri,
                additional_headers={"Authorization": f"Token {credential}"},
                open_timeout=self.options.open_timeout_s,
            )
        except Exception as exc:
            self.dispatch(TransportError(connection_id, exc))
            return

        if connection_id != self._connection_id:
            await self._close_quietly(ws)
            return

        self._ws = ws
        self.dispatch(TransportOpened(connection_id))
        code: Optional[int] = None
        try:
            async for message in ws:
                self.dispatch(TransportMessage(connection_id, message))
        except ConnectionClosed:
            pass
        except Exception as exc:
            self.dispatch(TransportError(connection_id, exc))
            code = ABNORMAL_CLOSURE
            await self._close_quietly(ws)

        if code is None:
            code = getattr(ws, "close_code", None) or ABNORMAL_CLOSURE
        self.dispatch(TransportClosed(connection_id, code, getattr(ws, "close_reason", None) or ""))

    async def _close_quietly(self, ws: Any) -> None:
        try:
            await ws.close(NORMAL_CLOSURE, "Intentional disconnect")
        except Exception as exc:
            logger.debug("Error while closing websocket: %s", exc)

    def _emit(self, event: TranscriptEvent) -> None:
        sink = self._on_transcript
        if sink is None:
            logger.error("No transcript listener available, transcript dropped")
            return
        try:
            sink(event)
        except Exception:
            logger.exception("Transcript listener failed")

    def _spawn(self, coro: Awaitable[Any]) -> None:
        task = asyncio.ensure_future(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        if self._on_state_change:
            self._on_state_change(from_state, to_state)


def _top_alternative(response: Any) -> Optional[tuple[str, bool]]:
    """Extract ``(transcript, is_final)`` from a listen response, if it has one."""
    if not isinstance(response, dict):
        return None
    channel = response.get("channel")
    if not isinstance(channel, dict):
        return None
    alternatives = channel.get("alternatives")
    if not isinstance(alternatives, list) or not alternatives:
        return None
    top = alternatives[0]
    if not isinstance(top, dict):
        return None
    transcript = top.get("transcript") or ""
    if not isinstance(transcript, str):
        return None
    return transcript, bool(response.get("is_final", False))


def _is_dns_failure(error: BaseException) -> bool:
    message = str(error)
    return "getaddrinfo" in message or "Name or service not known" in message or "ENOTFOUND" in message


def _is_auth_failure(error: BaseException) -> bool:
    response = getattr(error, "response", None)
    return getattr(response, "status_code", None) in (401, 403)
