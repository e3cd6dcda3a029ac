"""Service test fixtures: fakes wired into a real executor, store and dispatcher.

Invariants:
    - Every test gets fresh fakes, a fresh in-memory session backend and token store
    - User 1 is logged in (token "tok-1"); user 2 is not

Design Decisions:
    - Real SessionStore/ActionExecutor/Dispatcher: only the network edges are faked
"""

import pytest

from backlog_bot.core.callback_codec import CompactJsonCodec
from backlog_bot.infrastructure.session_backends import InMemorySessionBackend
from backlog_bot.services.access_tokens import (
    AccessTokenStore, CsrfRegistry, build_auth_url,
)
from backlog_bot.services.action_executor import ActionExecutor
from backlog_bot.services.dispatcher import Dispatcher
from backlog_bot.services.session_store import SessionStore
from backlog_bot.services.user_locks import UserLocks

from tests.services.fakes import FakeMessenger, FakeTracker

YT_URL = "https://yt.test/youtrack"


@pytest.fixture
def messenger():
    return FakeMessenger()


@pytest.fixture
def tracker():
    return FakeTracker()


@pytest.fixture
def codec():
    return CompactJsonCodec()


@pytest.fixture
def backend():
    return InMemorySessionBackend()


@pytest.fixture
def store(backend):
    return SessionStore(backend)


@pytest.fixture
async def tokens():
    store = AccessTokenStore(capacity=10)
    await store.put(1, "tok-1", 3600)
    return store


@pytest.fixture
def csrf():
    return CsrfRegistry(capacity=10)


@pytest.fixture
def executor(tracker, messenger, codec, tokens, csrf):
    return ActionExecutor(
        tracker=tracker,
        messenger=messenger,
        codec=codec,
        tokens=tokens,
        csrf=csrf,
        auth_url=lambda state: build_auth_url(
            "https://yt.test/hub", "client-1", "http://bot.test/oauth/callback",
            "YouTrack", state,
        ),
        youtrack_url=YT_URL,
        backlog_query="#Unresolved",
    )


@pytest.fixture
def dispatcher(store, executor, messenger, codec):
    return Dispatcher(store, executor, messenger, codec, UserLocks(), page_size=5)
