"""Process-scoped context owning the single session, overlay relay and main window."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from audio_coordinator import AudioSourceCoordinator
from audio_transport import AudioTransport
from interfaces import AudioSourceProvider, ConversationStore, WindowHost
from streaming_session import ProviderOptions, StreamingSession
from sync_relay import SyncRelay

logger = logging.getLogger(__name__)


@dataclass
class AppContext:
    host: WindowHost
    session: StreamingSession
    coordinator: AudioSourceCoordinator
    transport: AudioTransport
    relay: SyncRelay
    store: Optional[ConversationStore] = None
    main_window: Any = None

    @classmethod
    def create(
        cls,
        host: WindowHost,
        main_window: Any = None,
        options: Optional[ProviderOptions] = None,
        source_provider: Optional[AudioSourceProvider] = None,
        store: Optional[ConversationStore] = None,
        **session_kwargs: Any,
    ) -> AppContext:
        """Build the components in dependency order: session, capture, transport, relay."""
        session = StreamingSession(options=options, **session_kwargs)
        coordinator = AudioSourceCoordinator(session, source_provider)
        transport = AudioTransport(session, coordinator)
        relay = SyncRelay(host)
        relay.attach_main_window(main_window)
        session.set_transcript_sink(relay.broadcast_transcript)
        return cls(
            host=host,
            session=session,
            coordinator=coordinator,
            transport=transport,
            relay=relay,
            store=store,
            main_window=main_window,
        )

    def attach_main_window(self, window: Any) -> None:
        self.main_window = window
        self.relay.attach_main_window(window)

    def teardown(self) -> None:
        """Stop capture, then the provider connection, then the overlay."""
        logger.debug("Tearing down app context")
        self.coordinator.stop_capture()
        self.session.disconnect()
        if self.relay.has_overlay:
            self.relay.close()
