"""Shared fixtures for scene engine tests."""

import pytest

from scenekit.scenes.session import InMemorySessionStore
from scenekit.services.reply_service import RecordingReplySink
from scenekit.updates import Update

SESSION = "100:7"


class FakeClock:
    """Manually advanced clock returning epoch seconds."""

    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class UpdateFactory:
    """Builds normalized updates for one default session."""

    session_id = SESSION

    def text(self, text: str, session_id: str = SESSION) -> Update:
        return Update(session_id=session_id, kind="message", text=text, content_type="text")

    def callback(self, data: str, session_id: str = SESSION) -> Update:
        return Update(session_id=session_id, kind="callback_query", callback_data=data)

    def photo(self, session_id: str = SESSION) -> Update:
        return Update(session_id=session_id, kind="message", content_type="photo")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemorySessionStore()


@pytest.fixture
def sink():
    return RecordingReplySink()


@pytest.fixture
def updates():
    return UpdateFactory()
