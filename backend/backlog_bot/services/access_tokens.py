"""Access Tokens: OAuth implicit-flow bookkeeping for YouTrack Hub.

Invariants:
    - AccessTokenStore holds at most `capacity` tokens; the least recently stored goes first
    - A token is returned only before its expires_in deadline (checked lazily on lookup)
    - CsrfRegistry: each state value resolves to its user exactly once
    - CsrfRegistry is bounded; the oldest pending login is forgotten first

Design Decisions:
    - asyncio.Lock per store: lookups and inserts come from concurrent dispatch tasks
    - Injected clock: tests advance time without sleeping
    - state is secrets.token_urlsafe: unguessable, URL-safe, no padding
"""

import asyncio
import logging
import secrets
import time
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from urllib.parse import urlencode

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StoredToken:
    access_token: str
    expires_at: float


class AccessTokenStore:
    """Capacity-bounded TTL cache of user_id -> access token."""

    def __init__(self, capacity: int = 100, clock: Callable[[], float] = time.monotonic):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._clock = clock
        self._tokens: OrderedDict[int, StoredToken] = OrderedDict()
        self._lock = asyncio.Lock()

    async def put(self, user_id: int, access_token: str, expires_in: float) -> None:
        async with self._lock:
            self._tokens.pop(user_id, None)
            self._tokens[user_id] = StoredToken(
                access_token, self._clock() + expires_in,
            )
            while len(self._tokens) > self._capacity:
                evicted, _ = self._tokens.popitem(last=False)
                logger.info("Access token evicted", extra={"user_id": evicted})

    async def get(self, user_id: int) -> str | None:
        async with self._lock:
            entry = self._tokens.get(user_id)
            if entry is None:
                return None
            if self._clock() >= entry.expires_at:
                del self._tokens[user_id]
                logger.info("Access token expired", extra={"user_id": user_id})
                return None
            return entry.access_token

    def __len__(self) -> int:
        return len(self._tokens)


class CsrfRegistry:
    """Pending logins: OAuth state value -> user id, consumed once."""

    def __init__(self, capacity: int = 1000):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self._capacity = capacity
        self._pending: OrderedDict[str, int] = OrderedDict()
        self._lock = asyncio.Lock()

    async def issue(self, user_id: int) -> str:
        state = secrets.token_urlsafe(24)
        async with self._lock:
            self._pending[state] = user_id
            while len(self._pending) > self._capacity:
                self._pending.popitem(last=False)
        return state

    async def consume(self, state: str) -> int | None:
        async with self._lock:
            return self._pending.pop(state, None)


def build_auth_url(
    hub_url: str, client_id: str, redirect_uri: str, scope: str, state: str,
) -> str:
    """Hub authorization endpoint for the implicit grant (response_type=token)."""
    query = urlencode({
        "response_type": "token",
        "client_id": client_id,
        "redirect_uri": redirect_uri,
        "scope": scope,
        "state": state,
    })
    return f"{hub_url.rstrip('/')}/api/rest/oauth2/auth?{query}"
