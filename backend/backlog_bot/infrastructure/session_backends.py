"""Session Backends: key/value persistence for serialized conversation states.

Invariants:
    - read(key) returns exactly the value last written under key, or None
    - write(key, value) is an unconditional overwrite (last writer wins)
    - Storage failures raise DatabaseError (core/errors.py); absence is not a failure

Design Decisions:
    - Three backends behind one SessionBackend protocol, selected by SESSION_BACKEND
    - memory: process-local dict, no infra; sql: session_records table via
      DatabaseSessionManager; redis: redis.asyncio returning raw bytes
    - The store above owns key format and serialization; backends see opaque strings
"""

import logging

import redis.asyncio as redis
from redis.exceptions import RedisError
from sqlalchemy import select

from backlog_bot.core.errors import DatabaseError
from backlog_bot.infrastructure.database import DatabaseSessionManager
from backlog_bot.models.session_record import SessionRecord

logger = logging.getLogger(__name__)


class InMemorySessionBackend:
    """Process-local backend. Contents are lost on restart."""

    def __init__(self):
        self._records: dict[str, str] = {}

    async def read(self, key: str) -> str | None:
        return self._records.get(key)

    async def write(self, key: str, value: str) -> None:
        self._records[key] = value

    async def health_check(self) -> bool:
        return True


class SqlSessionBackend:
    """session_records table through the shared DatabaseSessionManager."""

    def __init__(self, manager: DatabaseSessionManager):
        self._manager = manager

    async def read(self, key: str) -> str | None:
        async with self._manager.session() as db:
            result = await db.execute(
                select(SessionRecord.value).where(SessionRecord.key == key),
            )
            return result.scalar_one_or_none()

    async def write(self, key: str, value: str) -> None:
        async with self._manager.session() as db:
            record = await db.get(SessionRecord, key)
            if record is None:
                db.add(SessionRecord(key=key, value=value))
            else:
                record.value = value
            await db.commit()

    async def create_schema(self) -> None:
        await self._manager.create_schema()

    async def health_check(self) -> bool:
        return await self._manager.health_check()

    async def aclose(self) -> None:
        await self._manager.dispose()


class RedisSessionBackend:
    """Plain GET/SET on a redis.asyncio client.

    Responses stay undecoded: a value that is not UTF-8 reaches deserialize_state
    as bytes and is reported there as a corrupt record.
    """

    def __init__(self, client: redis.Redis):
        self._client = client

    @classmethod
    def from_url(cls, url: str) -> "RedisSessionBackend":
        return cls(redis.Redis.from_url(url))

    async def read(self, key: str) -> str | bytes | None:
        try:
            return await self._client.get(key)
        except RedisError as e:
            logger.error(f"Redis read failed: {e}")
            raise DatabaseError(str(e), "read")

    async def write(self, key: str, value: str) -> None:
        try:
            await self._client.set(key, value)
        except RedisError as e:
            logger.error(f"Redis write failed: {e}")
            raise DatabaseError(str(e), "write")

    async def health_check(self) -> bool:
        try:
            return bool(await self._client.ping())
        except RedisError as e:
            logger.error(f"Redis health check failed: {e}")
            return False

    async def aclose(self) -> None:
        await self._client.aclose()
