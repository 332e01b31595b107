from __future__ import annotations

from datetime import datetime

import pytest

from errors import NO_CREDENTIAL, ConfigurationError, SessionError
from models import AudioMode, CommandResult, SyncAction, SyncMessage, TranscriptEvent, speaker_for


def test_audio_mode_parse() -> None:
    assert AudioMode.parse("System") == AudioMode.SYSTEM
    assert AudioMode.parse(AudioMode.BOTH) == AudioMode.BOTH
    with pytest.raises(ValueError):
        AudioMode.parse("speakers")


def test_speaker_follows_audio_mode() -> None:
    assert speaker_for(AudioMode.MICROPHONE) == "user"
    assert speaker_for(AudioMode.SYSTEM) == "call"
    assert speaker_for(AudioMode.BOTH) == "mixed"


def test_sync_action_aliases_and_unknown() -> None:
    assert SyncAction.parse("chat-message") == SyncAction.CHAT_MESSAGE
    assert SyncAction.parse("sendChatMessage") == SyncAction.CHAT_MESSAGE
    assert SyncAction.parse("syncSelection") == SyncAction.SELECTION_CHANGED
    assert SyncAction.parse("syncState") == SyncAction.FULL_STATE_SYNC
    assert SyncAction.parse("bogus") == SyncAction.UNKNOWN
    assert SyncAction.parse(None) == SyncAction.UNKNOWN


def test_sync_message_from_flat_dict() -> None:
    message = SyncMessage.from_dict({"action": "syncSelection", "selectedContext": [3]})

    assert message.action == SyncAction.SELECTION_CHANGED
    assert message.payload == {"selectedContext": [3]}


def test_transcript_payload() -> None:
    event = TranscriptEvent.from_recognition("hi", False, AudioMode.SYSTEM, datetime(2024, 2, 3, 4, 5, 6))

    assert event.to_payload() == {
        "text": "hi",
        "timestamp": "2024-02-03T04:05:06",
        "isInterim": True,
        "speaker": "call",
        "audioSource": "system",
    }


def test_command_result_fail_uses_default_message() -> None:
    result = CommandResult.fail(NO_CREDENTIAL)

    assert not result.success
    assert result.message == "No Deepgram API key provided."
    assert CommandResult.fail(NO_CREDENTIAL, "custom").message == "custom"


def test_session_error_carries_code() -> None:
    error = ConfigurationError(NO_CREDENTIAL)

    assert isinstance(error, SessionError)
    assert error.code == NO_CREDENTIAL
    assert str(error) == "No Deepgram API key provided."
