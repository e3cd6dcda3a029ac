"""Command Normalizer: inbound events map to commands without raising.

Tests:
    - Keyword table (including @botname suffix) and free text
    - Messages without text and other update kinds -> UnsupportedEvent
    - Callback data decoded through the codec; failures -> Invalid with reason
"""

import pytest

from backlog_bot.core.callback_codec import (
    CompactJsonCodec, LRUPayloadCache, OpaqueHandleCodec,
)
from backlog_bot.core.commands import (
    Backlog, BacklogNext, BacklogNextPayload, BacklogPrev, BacklogPrevPayload,
    BacklogStop, BacklogStopPayload, CallbackEvent, Cancel, Invalid, Login,
    MessageEvent, NewIssueCmd, OtherEvent, Save, Start, Stop, Text,
    UnsupportedEvent, VoteForIssue, VoteForIssuePayload,
)
from backlog_bot.core.domain_types import BacklogParams, MessageRef
from backlog_bot.core.normalizer import normalize

REF = MessageRef(chat_id=10, message_id=99)


def _msg(text, first_name="Ann"):
    return MessageEvent(
        user_id=1, chat_id=10, message_id=5, text=text, first_name=first_name,
    )


def _cb(data):
    return CallbackEvent(
        callback_id="cb-1", user_id=1, chat_id=10, message_ref=REF, data=data,
    )


@pytest.mark.parametrize("text, cls", [
    ("/start", Start), ("/login", Login), ("/new_issue", NewIssueCmd),
    ("/save", Save), ("/cancel", Cancel), ("/stop", Stop),
])
def test_keywords(text, cls):
    cmd = normalize(_msg(text), CompactJsonCodec())
    assert type(cmd) is cls
    assert cmd.origin.user_id == 1
    assert cmd.origin.chat_id == 10


def test_backlog_uses_first_page():
    cmd = normalize(_msg("/backlog"), CompactJsonCodec())
    assert cmd == Backlog(cmd.origin, BacklogParams(5, 0))


def test_backlog_page_size_configurable():
    cmd = normalize(_msg("/backlog"), CompactJsonCodec(), page_size=10)
    assert cmd.params == BacklogParams(10, 0)


def test_bot_mention_is_ignored():
    assert isinstance(normalize(_msg("/backlog@yt_bot"), CompactJsonCodec()), Backlog)


def test_other_text_is_text_command():
    cmd = normalize(_msg("Fix the login page"), CompactJsonCodec())
    assert isinstance(cmd, Text)
    assert cmd.text == "Fix the login page"
    assert cmd.origin.first_name == "Ann"


def test_unknown_slash_command_is_text():
    assert isinstance(normalize(_msg("/weather"), CompactJsonCodec()), Text)


def test_message_without_text_is_unsupported():
    result = normalize(_msg(None), CompactJsonCodec())
    assert isinstance(result, UnsupportedEvent)


def test_other_event_is_unsupported():
    result = normalize(OtherEvent("edited_message"), CompactJsonCodec())
    assert result == UnsupportedEvent("edited_message", "update kind not handled")


@pytest.mark.parametrize("payload, cls", [
    (BacklogNextPayload(BacklogParams(5, 5)), BacklogNext),
    (BacklogPrevPayload(BacklogParams(5, 0)), BacklogPrev),
    (BacklogStopPayload(), BacklogStop),
    (VoteForIssuePayload("BOT-3", True), VoteForIssue),
])
def test_callback_payloads_map_to_commands(payload, cls):
    codec = CompactJsonCodec()
    token = codec.encode(payload).token
    cmd = normalize(_cb(token), codec)
    assert type(cmd) is cls
    assert cmd.token == token
    assert cmd.origin.message_ref == REF


def test_vote_command_carries_issue_and_flag():
    codec = CompactJsonCodec()
    cmd = normalize(_cb(codec.encode(VoteForIssuePayload("BOT-3", True)).token), codec)
    assert (cmd.issue_id, cmd.has_vote) == ("BOT-3", True)


def test_missing_callback_data_is_invalid():
    cmd = normalize(_cb(None), CompactJsonCodec())
    assert isinstance(cmd, Invalid)
    assert cmd.token is None


def test_malformed_callback_is_invalid():
    cmd = normalize(_cb("garbage"), CompactJsonCodec())
    assert isinstance(cmd, Invalid)
    assert cmd.reason == "malformed"


def test_consumed_opaque_handle_is_invalid_not_found():
    codec = OpaqueHandleCodec(LRUPayloadCache(10))
    token = codec.encode(BacklogStopPayload()).token
    assert isinstance(normalize(_cb(token), codec), BacklogStop)
    second = normalize(_cb(token), codec)
    assert isinstance(second, Invalid)
    assert second.reason == "not_found"
