"""Route Tests: OAuth implicit-flow redirect handling.

Invariants:
    - /oauth/callback serves the fragment-forwarding page
    - /oauth/token stores the token for the user that requested /login, once
    - Bad or reused state and malformed parameters answer 400 with an HTML page
    - The token is stored only while no dispatch holds the same user's lock
"""

import asyncio
from urllib.parse import parse_qs, urlsplit

from backlog_bot.schemas.telegram import Update


def _token_query(state: str, **overrides) -> dict:
    params = {
        "access_token": "yt-token",
        "expires_in": "3600",
        "state": state,
        "token_type": "Bearer",
        "scope": "YouTrack",
    }
    params.update(overrides)
    return params


async def test_callback_page_forwards_fragment(client):
    response = await client.get("/oauth/callback")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert 'location.replace("token?"' in response.text


async def test_token_stored_for_login_user(client, runtime):
    state = await runtime.csrf.issue(42)

    response = await client.get("/oauth/token", params=_token_query(state))

    assert response.status_code == 200
    assert "signed in" in response.text
    assert await runtime.tokens.get(42) == "yt-token"


async def test_state_is_single_use(client, runtime):
    state = await runtime.csrf.issue(42)
    await client.get("/oauth/token", params=_token_query(state))

    response = await client.get(
        "/oauth/token", params=_token_query(state, access_token="other"),
    )

    assert response.status_code == 400
    assert "Login failed: Unknown or already used login state" in response.text
    assert await runtime.tokens.get(42) == "yt-token"


async def test_unknown_state_rejected(client, runtime):
    response = await client.get("/oauth/token", params=_token_query("forged"))

    assert response.status_code == 400
    assert response.headers["content-type"].startswith("text/html")
    assert "Send /login" in response.text
    assert len(runtime.tokens) == 0


async def test_missing_token_is_validation_error(client, runtime):
    state = await runtime.csrf.issue(42)
    params = _token_query(state)
    del params["access_token"]

    response = await client.get("/oauth/token", params=params)

    assert response.status_code == 400
    assert "Invalid request data (access_token)" in response.text


async def test_non_positive_expiry_rejected(client, runtime):
    state = await runtime.csrf.issue(42)
    response = await client.get(
        "/oauth/token", params=_token_query(state, expires_in="0"),
    )
    assert response.status_code == 400


async def test_login_then_backlog(client, runtime):
    """/login in chat -> Hub redirect -> /backlog uses the new token."""
    login = Update.model_validate({
        "update_id": 1,
        "message": {
            "message_id": 1, "chat": {"id": 42},
            "from": {"id": 42, "first_name": "Ann"}, "text": "/login",
        },
    })
    await runtime.dispatcher.dispatch(login)
    keyboard = runtime.messenger.sent()[0][2]
    auth_url = keyboard["inline_keyboard"][0][0]["url"]
    query = parse_qs(urlsplit(auth_url).query)
    assert query["redirect_uri"] == ["http://bot.test/oauth/callback"]

    await client.get("/oauth/token", params=_token_query(query["state"][0]))

    backlog = Update.model_validate({
        "update_id": 2,
        "message": {
            "message_id": 2, "chat": {"id": 42},
            "from": {"id": 42, "first_name": "Ann"}, "text": "/backlog",
        },
    })
    await runtime.dispatcher.dispatch(backlog)
    assert runtime.tracker.calls[0] == ("list_issues", ("yt-token", "#Unresolved", 5, 0))


async def test_token_waits_for_user_dispatch_lock(client, runtime):
    state = await runtime.csrf.issue(42)

    async with runtime.locks.hold(42):
        request = asyncio.create_task(
            client.get("/oauth/token", params=_token_query(state)),
        )
        for _ in range(20):
            await asyncio.sleep(0)
        assert not request.done()
        assert await runtime.tokens.get(42) is None

    response = await request
    assert response.status_code == 200
    assert await runtime.tokens.get(42) == "yt-token"
