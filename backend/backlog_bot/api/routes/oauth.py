"""OAuth Redirect: receives the YouTrack Hub implicit-flow token.

Invariants:
    - GET /oauth/callback only serves a page; the token never reaches the server
      until the page forwards the URL fragment to /oauth/token as a query
    - GET /oauth/token stores a token only for a state issued by /login, once
    - The token is stored under the owning user's dispatch lock

Design Decisions:
    - Implicit grant puts the token in the fragment, which browsers never send;
      a tiny script moves it into the query string
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query
from fastapi.responses import HTMLResponse

from backlog_bot.api.dependencies import get_runtime
from backlog_bot.core.errors import UnknownLoginStateError
from backlog_bot.schemas.oauth import TokenRedirect
from backlog_bot.services.runtime import BotRuntime

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/oauth", tags=["oauth"])

FRAGMENT_FORWARD_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>YouTrack login</title></head>
<body>
<p>Signing in...</p>
<script>
  var params = window.location.hash.substring(1);
  window.location.replace("token?" + params);
</script>
</body>
</html>
"""

LOGGED_IN_PAGE = """<!DOCTYPE html>
<html>
<head><meta charset="utf-8"><title>YouTrack login</title></head>
<body><p>You are signed in. Return to Telegram and send /backlog.</p></body>
</html>
"""


@router.get("/callback", response_class=HTMLResponse)
async def oauth_callback():
    return HTMLResponse(FRAGMENT_FORWARD_PAGE)


@router.get("/token", response_class=HTMLResponse)
async def oauth_token(
    redirect: Annotated[TokenRedirect, Query()],
    runtime: BotRuntime = Depends(get_runtime),
):
    user_id = await runtime.csrf.consume(redirect.state)
    if user_id is None:
        logger.warning("OAuth redirect with unknown state")
        raise UnknownLoginStateError()
    async with runtime.locks.hold(user_id):
        await runtime.tokens.put(user_id, redirect.access_token, redirect.expires_in)
    logger.info("Access token stored", extra={"user_id": user_id})
    return HTMLResponse(LOGGED_IN_PAGE)
