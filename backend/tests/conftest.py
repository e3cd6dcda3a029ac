"""Root conftest: shared test configuration."""

import os

# Ensure tests never talk to real Telegram / YouTrack or start the poller
os.environ.setdefault("TELEGRAM_BOT_TOKEN", "123456:test-fake-token")
os.environ.setdefault("YOUTRACK_URL", "https://yt.test/youtrack")
os.environ.setdefault("YOUTRACK_HUB_URL", "https://yt.test/hub")
os.environ.setdefault("TELEGRAM_POLLING_ENABLED", "false")
os.environ.setdefault("SESSION_BACKEND", "memory")
os.environ.setdefault(
    "DATABASE_URL",
    "sqlite+aiosqlite:///test.db",
)
