"""Callback Token Codec: both strategies honour the encode/decode contract.

Tests:
    - Opaque handles decode exactly once, then NOT_FOUND
    - LRU eviction turns the oldest handle into NOT_FOUND
    - Compact tokens are self-describing and at most 64 bytes
    - Oversize payloads -> SIZE_EXCEEDED; garbage -> MALFORMED; unknown tag -> NOT_FOUND
    - decode never raises
"""

import uuid

import pytest

from backlog_bot.core.callback_codec import (
    MAX_TOKEN_BYTES, CodecKind, CompactJsonCodec, DecodeStatus, EncodeStatus,
    LRUPayloadCache, OpaqueHandleCodec, build_codec,
)
from backlog_bot.core.commands import (
    BacklogNextPayload, BacklogPrevPayload, BacklogStopPayload, VoteForIssuePayload,
)
from backlog_bot.core.domain_types import BacklogParams

PAYLOADS = [
    BacklogNextPayload(BacklogParams(5, 10)),
    BacklogPrevPayload(BacklogParams(5, 0)),
    BacklogStopPayload(),
    VoteForIssuePayload("BOT-42", True),
]


# ─── Opaque handles ─────────────────────────────────────────────

def test_opaque_decode_returns_payload_once():
    codec = OpaqueHandleCodec(LRUPayloadCache(10))
    encoded = codec.encode(VoteForIssuePayload("BOT-1", False))
    assert encoded.ok
    first = codec.decode(encoded.token)
    assert first.status == DecodeStatus.OK
    assert first.payload == VoteForIssuePayload("BOT-1", False)
    assert codec.decode(encoded.token).status == DecodeStatus.NOT_FOUND


def test_opaque_token_is_uuid():
    codec = OpaqueHandleCodec(LRUPayloadCache(10))
    token = codec.encode(BacklogStopPayload()).token
    assert str(uuid.UUID(token)) == token


def test_opaque_eviction_gives_not_found():
    cache = LRUPayloadCache(2)
    codec = OpaqueHandleCodec(cache)
    oldest = codec.encode(BacklogStopPayload()).token
    codec.encode(BacklogStopPayload())
    codec.encode(BacklogStopPayload())
    assert len(cache) == 2
    assert codec.decode(oldest).status == DecodeStatus.NOT_FOUND


def test_opaque_unknown_uuid_is_not_found():
    codec = OpaqueHandleCodec(LRUPayloadCache(10))
    assert codec.decode(str(uuid.uuid4())).status == DecodeStatus.NOT_FOUND


@pytest.mark.parametrize("token", ["not-a-uuid", "", None, b"\xff\xfe", 42])
def test_opaque_garbage_is_malformed(token):
    codec = OpaqueHandleCodec(LRUPayloadCache(10))
    assert codec.decode(token).status == DecodeStatus.MALFORMED


def test_cache_rejects_non_positive_capacity():
    with pytest.raises(ValueError):
        LRUPayloadCache(0)


# ─── Compact JSON ───────────────────────────────────────────────

@pytest.mark.parametrize("payload", PAYLOADS)
def test_compact_decodes_what_it_encodes(payload):
    codec = CompactJsonCodec()
    encoded = codec.encode(payload)
    assert encoded.ok
    assert len(encoded.token.encode("utf-8")) <= MAX_TOKEN_BYTES
    decoded = codec.decode(encoded.token)
    assert decoded.ok
    assert decoded.payload == payload


def test_compact_decode_is_repeatable():
    codec = CompactJsonCodec()
    token = codec.encode(BacklogStopPayload()).token
    assert codec.decode(token).ok
    assert codec.decode(token).ok


def test_compact_token_shape():
    token = CompactJsonCodec().encode(VoteForIssuePayload("BOT-7", False)).token
    assert token == '{"_t":"vi","i":"BOT-7","v":false}'


def test_compact_oversize_is_size_exceeded():
    encoded = CompactJsonCodec().encode(VoteForIssuePayload("X" * 80, False))
    assert encoded.status == EncodeStatus.SIZE_EXCEEDED
    assert encoded.token is None
    assert encoded.size > MAX_TOKEN_BYTES


def test_compact_counts_utf8_bytes_not_chars():
    # 20 chars, 60 bytes: fits by length, not by bytes
    encoded = CompactJsonCodec().encode(VoteForIssuePayload("€" * 20, False))
    assert encoded.status == EncodeStatus.SIZE_EXCEEDED


@pytest.mark.parametrize("token", [
    b"\xff\xfe\x00", "not json", "[1,2]", '"bs"', "{}", '{"_t":1}',
    '{"_t":"bn","t":5}', '{"_t":"bn","t":5,"s":3}', '{"_t":"bn","t":0,"s":0}',
    '{"_t":"vi","i":"","v":true}', '{"_t":"vi","i":"A-1","v":"yes"}',
    "{" * 60, None,
])
def test_compact_garbage_is_malformed(token):
    assert CompactJsonCodec().decode(token).status == DecodeStatus.MALFORMED


def test_compact_unknown_tag_is_not_found():
    assert CompactJsonCodec().decode('{"_t":"zz"}').status == DecodeStatus.NOT_FOUND


def test_compact_accepts_bytes():
    decoded = CompactJsonCodec().decode(b'{"_t":"bs"}')
    assert decoded.payload == BacklogStopPayload()


# ─── Factory ────────────────────────────────────────────────────

def test_build_codec_selects_strategy():
    assert isinstance(build_codec(CodecKind.COMPACT), CompactJsonCodec)
    assert isinstance(build_codec("opaque", 10), OpaqueHandleCodec)


def test_build_codec_rejects_unknown_kind():
    with pytest.raises(ValueError):
        build_codec("base64")
