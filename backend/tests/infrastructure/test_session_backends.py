"""Integration Tests: session backends behind the SessionBackend protocol.

Invariants:
    - read returns exactly what write stored, None when absent
    - write overwrites unconditionally
    - Redis failures surface as DatabaseError; health probes never raise

Design Decisions:
    - SQL backend on in-memory SQLite (aiosqlite): same manager code as production
    - Redis client replaced with AsyncMock: no server needed
"""

from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from backlog_bot.core.errors import DatabaseError
from backlog_bot.core.states import Idle, InBacklog
from backlog_bot.infrastructure.database import DatabaseSessionManager
from backlog_bot.infrastructure.session_backends import (
    InMemorySessionBackend, RedisSessionBackend, SqlSessionBackend,
)
from backlog_bot.services.session_store import SessionStore


@pytest.fixture
async def sql_backend():
    manager = DatabaseSessionManager("sqlite+aiosqlite:///:memory:")
    await manager.create_schema()
    backend = SqlSessionBackend(manager)
    yield backend
    await backend.aclose()


# -- Memory --------------------------------------------------------------------

async def test_memory_read_write():
    backend = InMemorySessionBackend()
    assert await backend.read("state:1") is None
    await backend.write("state:1", "a")
    await backend.write("state:1", "b")
    assert await backend.read("state:1") == "b"
    assert await backend.health_check() is True


# -- SQL -----------------------------------------------------------------------

async def test_sql_absent_key(sql_backend):
    assert await sql_backend.read("state:404") is None


async def test_sql_insert_then_overwrite(sql_backend):
    await sql_backend.write("state:1", '{"kind":"idle"}')
    await sql_backend.write("state:1", '{"kind":"new_issue"}')
    await sql_backend.write("state:2", '{"kind":"idle"}')

    assert await sql_backend.read("state:1") == '{"kind":"new_issue"}'
    assert await sql_backend.read("state:2") == '{"kind":"idle"}'


async def test_sql_preserves_value_bytes(sql_backend):
    raw = '{"kind":"new_issue_summary","summary":"Ünïcode ✓ \\"quoted\\""}'
    await sql_backend.write("state:1", raw)
    assert await sql_backend.read("state:1") == raw


async def test_sql_backs_session_store(sql_backend):
    store = SessionStore(sql_backend)
    await store.set(7, InBacklog(5, 15))
    assert await store.get(7) == InBacklog(5, 15)


async def test_sql_health_check(sql_backend):
    assert await sql_backend.health_check() is True


# -- Redis ---------------------------------------------------------------------

async def test_redis_read_write():
    client = AsyncMock()
    client.get.return_value = "value"
    backend = RedisSessionBackend(client)

    await backend.write("state:1", "value")
    assert await backend.read("state:1") == "value"
    client.set.assert_awaited_once_with("state:1", "value")
    client.get.assert_awaited_once_with("state:1")


async def test_redis_absent_key():
    client = AsyncMock()
    client.get.return_value = None
    assert await RedisSessionBackend(client).read("state:1") is None


async def test_redis_failure_is_database_error():
    client = AsyncMock()
    client.get.side_effect = RedisConnectionError("refused")
    client.set.side_effect = RedisConnectionError("refused")
    backend = RedisSessionBackend(client)

    with pytest.raises(DatabaseError) as exc:
        await backend.read("state:1")
    assert exc.value.operation == "read"
    with pytest.raises(DatabaseError):
        await backend.write("state:1", "x")


async def test_redis_health_check():
    client = AsyncMock()
    client.ping.return_value = True
    assert await RedisSessionBackend(client).health_check() is True

    client.ping.side_effect = RedisConnectionError("refused")
    assert await RedisSessionBackend(client).health_check() is False


async def test_redis_from_url_keeps_raw_bytes():
    backend = RedisSessionBackend.from_url("redis://localhost:6379/0")
    kwargs = backend._client.connection_pool.connection_kwargs
    assert kwargs.get("decode_responses", False) is False
    await backend.aclose()


async def test_redis_bytes_back_session_store():
    client = AsyncMock()
    client.get.return_value = b'{"kind":"in_backlog","skip":5,"top":5}'
    state = await SessionStore(RedisSessionBackend(client)).get(1)
    assert state == InBacklog(top=5, skip=5)


async def test_redis_invalid_utf8_is_idle():
    client = AsyncMock()
    client.get.return_value = b"\xff\xfe"
    assert await SessionStore(RedisSessionBackend(client)).get(1) == Idle()
