"""API test fixtures: the FastAPI app around a runtime built from fakes.

Invariants:
    - app.state.runtime is set directly (ASGITransport does not run the lifespan)
    - No network: Telegram and YouTrack are the service-test fakes
"""

import pytest
from httpx import ASGITransport, AsyncClient

from backlog_bot.config import Settings
from backlog_bot.infrastructure.session_backends import InMemorySessionBackend
from backlog_bot.main import app
from backlog_bot.services.runtime import build_runtime

from tests.services.fakes import FakeMessenger, FakeTracker


@pytest.fixture
async def runtime():
    settings = Settings(
        session_backend="memory",
        telegram_polling_enabled=False,
        youtrack_hub_url="https://yt.test/hub",
        auth_callback_url="http://bot.test/oauth/callback",
    )
    rt = build_runtime(
        settings,
        messenger=FakeMessenger(),
        tracker=FakeTracker(),
        backend=InMemorySessionBackend(),
    )
    yield rt
    await rt.close()


@pytest.fixture
async def client(runtime):
    app.state.runtime = runtime
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
