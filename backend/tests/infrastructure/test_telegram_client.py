"""Integration Tests: TelegramClient against an httpx.MockTransport.

Invariants:
    - Methods POST JSON to /bot{token}/{method}; ok=false raises MessagingAPIError
    - "message is not modified" edits succeed silently
    - getUpdates passes offset and skips malformed entries
"""

import json

import httpx
import pytest

from backlog_bot.core.domain_types import MessageRef
from backlog_bot.core.errors import MessagingAPIError
from backlog_bot.infrastructure.telegram_client import TelegramClient

BASE = "https://api.telegram.test/bot123:abc"


def _client(handler, max_retries: int = 1) -> TelegramClient:
    http = httpx.AsyncClient(transport=httpx.MockTransport(handler), base_url=BASE)
    return TelegramClient(http, max_retries=max_retries, base_delay_ms=0)


def _ok(result) -> httpx.Response:
    return httpx.Response(200, json={"ok": True, "result": result})


# -- Messenger -----------------------------------------------------------------

async def test_send_message_payload_and_ref():
    seen = []

    def handler(request):
        seen.append((request.method, request.url.path, json.loads(request.content)))
        return _ok({"message_id": 55, "chat": {"id": 9}})

    ref = await _client(handler).send_message(
        9, "*hi*", {"remove_keyboard": True}, "Markdown",
    )

    assert ref == MessageRef(9, 55)
    assert seen == [(
        "POST", "/bot123:abc/sendMessage",
        {"chat_id": 9, "text": "*hi*", "reply_markup": {"remove_keyboard": True},
         "parse_mode": "Markdown"},
    )]


async def test_send_message_omits_empty_options():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return _ok({"message_id": 1})

    await _client(handler).send_message(9, "plain")
    assert bodies == [{"chat_id": 9, "text": "plain"}]


async def test_not_ok_raises_with_description():
    client = _client(lambda r: httpx.Response(400, json={
        "ok": False, "error_code": 400, "description": "Bad Request: chat not found",
    }))
    with pytest.raises(MessagingAPIError) as exc:
        await client.send_message(9, "x")
    assert exc.value.message == "Bad Request: chat not found"
    assert exc.value.api_error_type == "client_error"


async def test_edit_not_modified_is_success():
    client = _client(lambda r: httpx.Response(400, json={
        "ok": False, "error_code": 400,
        "description": "Bad Request: message is not modified: specified new message content "
                       "and reply markup are exactly the same",
    }))
    await client.edit_message_text(MessageRef(9, 5), "same")
    await client.edit_reply_markup(MessageRef(9, 5), {"inline_keyboard": []})


async def test_edit_other_failure_raises():
    client = _client(lambda r: httpx.Response(400, json={
        "ok": False, "description": "Bad Request: message to edit not found",
    }))
    with pytest.raises(MessagingAPIError):
        await client.edit_reply_markup(MessageRef(9, 5), {"inline_keyboard": []})


async def test_answer_callback_with_text():
    bodies = []

    def handler(request):
        bodies.append((request.url.path, json.loads(request.content)))
        return _ok(True)

    client = _client(handler)
    await client.answer_callback("cb1")
    await client.answer_callback("cb2", "This button has expired")
    assert bodies == [
        ("/bot123:abc/answerCallbackQuery", {"callback_query_id": "cb1"}),
        ("/bot123:abc/answerCallbackQuery",
         {"callback_query_id": "cb2", "text": "This button has expired"}),
    ]


async def test_rate_limit_reads_retry_after_from_body(monkeypatch):
    slept = []

    async def fake_sleep(seconds):
        slept.append(seconds)

    monkeypatch.setattr("backlog_bot.infrastructure.http_retry.asyncio.sleep", fake_sleep)
    responses = [
        httpx.Response(429, json={
            "ok": False, "error_code": 429, "parameters": {"retry_after": 3},
        }),
        _ok(True),
    ]
    await _client(lambda r: responses.pop(0)).answer_callback("cb")
    assert slept == [3.0]


# -- Long polling --------------------------------------------------------------

async def test_get_updates_offset_and_validation():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return _ok([
            {"update_id": 7, "message": {
                "message_id": 1, "chat": {"id": 9},
                "from": {"id": 3, "first_name": "Ann"}, "text": "/start",
            }},
            {"update_id": "not-a-number"},
            {"update_id": 8, "callback_query": {
                "id": "cb", "from": {"id": 3},
                "message": {"message_id": 2, "chat": {"id": 9}}, "data": "x",
            }},
        ])

    updates = await _client(handler).get_updates(offset=7, timeout=0)

    assert bodies == [{"timeout": 0, "offset": 7}]
    assert [u.update_id for u in updates] == [7, 8]
    assert [u.kind for u in updates] == ["message", "callback_query"]
    assert updates[0].message.from_user.first_name == "Ann"


async def test_get_updates_first_call_has_no_offset():
    bodies = []

    def handler(request):
        bodies.append(json.loads(request.content))
        return _ok([])

    assert await _client(handler).get_updates(None, timeout=25) == []
    assert bodies == [{"timeout": 25}]


async def test_from_token_base_url():
    client = TelegramClient.from_token("123:abc", "https://api.telegram.org/")
    assert str(client.client.base_url) == "https://api.telegram.org/bot123:abc/"
    await client.aclose()
