"""Session Store: per-user conversation state on top of a SessionBackend.

Invariants:
    - get(uid) never fails on bad data: absent or corrupt record -> Idle
    - Corruption is logged with CORRUPT_SESSION_RECORD and never shown to the user
    - set(uid, state) overwrites key "state:{uid}" unconditionally
    - ErrorState is never written

Design Decisions:
    - Store owns the key format and (de)serialization; backends store opaque strings
    - Backend failures (DatabaseError) propagate: the dispatcher decides what to do
"""

import logging

from backlog_bot.core.errors import CorruptSessionRecordError
from backlog_bot.core.repository_protocols import SessionBackend
from backlog_bot.core.state_snapshot import (
    deserialize_state, serialize_state, state_key,
)
from backlog_bot.core.states import ErrorState, Idle, State

logger = logging.getLogger(__name__)


class SessionStore:
    def __init__(self, backend: SessionBackend):
        self._backend = backend

    @property
    def backend(self) -> SessionBackend:
        return self._backend

    async def get(self, user_id: int) -> State:
        raw = await self._backend.read(state_key(user_id))
        if raw is None:
            return Idle()
        try:
            return deserialize_state(raw)
        except CorruptSessionRecordError as e:
            logger.warning(
                f"Corrupt session record, treating as idle: {e.message}",
                extra={"user_id": user_id, "error_code": e.code},
            )
            return Idle()

    async def set(self, user_id: int, state: State) -> None:
        if isinstance(state, ErrorState):
            raise ValueError("ErrorState is a sentinel and cannot be persisted")
        await self._backend.write(state_key(user_id), serialize_state(state))
