"""Callback Token Codec: binds a callback payload to a token that fits in callback_data.

Invariants:
    - Every token is a str of at most MAX_TOKEN_BYTES UTF-8 bytes
    - encode never raises for a valid payload: oversize -> SIZE_EXCEEDED
    - decode never raises: any input maps to OK, NOT_FOUND or MALFORMED
    - OpaqueHandleCodec: a token decodes at most once; eviction -> NOT_FOUND
    - CompactJsonCodec: stateless, survives restarts; unknown tag -> NOT_FOUND,
      undecodable input -> MALFORMED

Design Decisions:
    - Two strategies behind one Protocol, one per deployment (settings.callback_codec)
    - LRUPayloadCache is constructed and injected, never a module-level singleton
    - threading.Lock (not asyncio.Lock): encode runs from sync keyboard builders
"""

import json
import logging
import threading
import uuid
from collections import OrderedDict
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from backlog_bot.core.commands import (
    BacklogNextPayload, BacklogPrevPayload, BacklogStopPayload,
    CallbackPayload, VoteForIssuePayload,
)
from backlog_bot.core.domain_types import BacklogParams

logger = logging.getLogger(__name__)

MAX_TOKEN_BYTES = 64
DEFAULT_CACHE_SIZE = 100


class EncodeStatus(str, Enum):
    OK = "ok"
    SIZE_EXCEEDED = "size_exceeded"


class DecodeStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class Encoded:
    status: EncodeStatus
    token: str | None = None
    size: int = 0

    @property
    def ok(self) -> bool:
        return self.status == EncodeStatus.OK


@dataclass(frozen=True)
class Decoded:
    status: DecodeStatus
    payload: CallbackPayload | None = None

    @property
    def ok(self) -> bool:
        return self.status == DecodeStatus.OK


class TokenCodec(Protocol):
    """Contract shared by both strategies."""
    def encode(self, payload: CallbackPayload) -> Encoded: ...
    def decode(self, token: str | bytes | None) -> Decoded: ...


def _token_size(token: str) -> int:
    return len(token.encode("utf-8"))


# ─── Opaque Handle Strategy ──────────────────────────────────────

class LRUPayloadCache:
    """Capacity-bounded LRU map of handle -> payload. All access under one lock."""

    def __init__(self, capacity: int = DEFAULT_CACHE_SIZE):
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._entries: OrderedDict[uuid.UUID, CallbackPayload] = OrderedDict()
        self._lock = threading.Lock()

    def put(self, key: uuid.UUID, payload: CallbackPayload) -> None:
        with self._lock:
            self._entries[key] = payload
            self._entries.move_to_end(key)
            while len(self._entries) > self.capacity:
                evicted, _ = self._entries.popitem(last=False)
                logger.debug("Evicted callback handle %s", evicted)

    def pop(self, key: uuid.UUID) -> CallbackPayload | None:
        with self._lock:
            return self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class OpaqueHandleCodec:
    """Token is a random UUID4; the payload stays in the injected cache."""

    def __init__(self, cache: LRUPayloadCache):
        self._cache = cache

    def encode(self, payload: CallbackPayload) -> Encoded:
        handle = uuid.uuid4()
        token = str(handle)
        size = _token_size(token)
        if size > MAX_TOKEN_BYTES:
            return Encoded(EncodeStatus.SIZE_EXCEEDED, size=size)
        self._cache.put(handle, payload)
        return Encoded(EncodeStatus.OK, token, size)

    def decode(self, token: str | bytes | None) -> Decoded:
        text = _as_text(token)
        if text is None:
            return Decoded(DecodeStatus.MALFORMED)
        try:
            handle = uuid.UUID(text)
        except ValueError:
            return Decoded(DecodeStatus.MALFORMED)
        payload = self._cache.pop(handle)
        if payload is None:
            return Decoded(DecodeStatus.NOT_FOUND)
        return Decoded(DecodeStatus.OK, payload)


# ─── Self-describing Strategy ────────────────────────────────────

# Wire tags: short keys keep vote tokens well under 64 bytes
_TAG_NEXT = "bn"
_TAG_PREV = "bp"
_TAG_STOP = "bs"
_TAG_VOTE = "vi"


class CompactJsonCodec:
    """Payload serialized into the token as compact JSON tagged by "_t"."""

    def encode(self, payload: CallbackPayload) -> Encoded:
        token = json.dumps(
            _payload_to_wire(payload), separators=(",", ":"), ensure_ascii=False,
        )
        size = _token_size(token)
        if size > MAX_TOKEN_BYTES:
            return Encoded(EncodeStatus.SIZE_EXCEEDED, size=size)
        return Encoded(EncodeStatus.OK, token, size)

    def decode(self, token: str | bytes | None) -> Decoded:
        text = _as_text(token)
        if text is None or _token_size(text) > MAX_TOKEN_BYTES:
            return Decoded(DecodeStatus.MALFORMED)
        try:
            data = json.loads(text)
        except (ValueError, RecursionError):
            return Decoded(DecodeStatus.MALFORMED)
        if not isinstance(data, dict) or not isinstance(data.get("_t"), str):
            return Decoded(DecodeStatus.MALFORMED)
        try:
            payload = _payload_from_wire(data)
        except (KeyError, TypeError, ValueError):
            return Decoded(DecodeStatus.MALFORMED)
        if payload is None:
            return Decoded(DecodeStatus.NOT_FOUND)
        return Decoded(DecodeStatus.OK, payload)


def _payload_to_wire(payload: CallbackPayload) -> dict:
    if isinstance(payload, BacklogNextPayload):
        return {"_t": _TAG_NEXT, "t": payload.params.top, "s": payload.params.skip}
    if isinstance(payload, BacklogPrevPayload):
        return {"_t": _TAG_PREV, "t": payload.params.top, "s": payload.params.skip}
    if isinstance(payload, BacklogStopPayload):
        return {"_t": _TAG_STOP}
    if isinstance(payload, VoteForIssuePayload):
        return {"_t": _TAG_VOTE, "i": payload.issue_id, "v": payload.has_vote}
    raise TypeError(f"Not a callback payload: {payload!r}")


def _payload_from_wire(data: dict) -> CallbackPayload | None:
    """Rebuild a payload; None for an unknown tag. Raises on bad shapes."""
    tag = data["_t"]
    if tag in (_TAG_NEXT, _TAG_PREV):
        params = BacklogParams(top=data["t"], skip=data["s"])
        if tag == _TAG_NEXT:
            return BacklogNextPayload(params)
        return BacklogPrevPayload(params)
    if tag == _TAG_STOP:
        return BacklogStopPayload()
    if tag == _TAG_VOTE:
        issue_id, has_vote = data["i"], data["v"]
        if not isinstance(issue_id, str) or not issue_id:
            raise ValueError("issue id must be a non-empty string")
        if not isinstance(has_vote, bool):
            raise TypeError("vote flag must be a bool")
        return VoteForIssuePayload(issue_id, has_vote)
    return None


def _as_text(token: str | bytes | None) -> str | None:
    if isinstance(token, bytes):
        try:
            return token.decode("utf-8")
        except UnicodeDecodeError:
            return None
    if isinstance(token, str):
        return token
    return None


# ─── Factory ─────────────────────────────────────────────────────

class CodecKind(str, Enum):
    COMPACT = "compact"
    OPAQUE = "opaque"


def build_codec(
    kind: CodecKind | str, cache_size: int = DEFAULT_CACHE_SIZE,
) -> TokenCodec:
    """Pick the strategy configured for this deployment."""
    if CodecKind(kind) == CodecKind.OPAQUE:
        return OpaqueHandleCodec(LRUPayloadCache(cache_size))
    return CompactJsonCodec()
