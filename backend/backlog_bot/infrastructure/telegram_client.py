"""Telegram Bot API Client: the Messenger implementation plus long polling.

Invariants:
    - Every method POSTs JSON to {api_url}/bot{token}/{method}
    - Responses with ok=false or non-2xx status raise MessagingAPIError
    - 429 honours parameters.retry_after from the body (falls back to Retry-After)
    - "message is not modified" on an edit is success (the message already shows it)

Design Decisions:
    - getUpdates read timeout is the poll timeout plus a margin: a long poll
      that returns empty is not a transport error
    - Updates are validated into schemas.telegram.Update; malformed entries are
      logged and skipped so one bad update never stalls the offset
"""

import logging

import httpx
from pydantic import ValidationError

from backlog_bot.core.domain_types import MessageRef
from backlog_bot.core.errors import ErrorContext, MessagingAPIError
from backlog_bot.infrastructure.http_retry import ResilientHttpClient
from backlog_bot.schemas.telegram import Update

logger = logging.getLogger(__name__)

_POLL_TIMEOUT_MARGIN_SECONDS = 10
_NOT_MODIFIED = "message is not modified"


class TelegramClient(ResilientHttpClient):
    """Messenger backed by the Telegram Bot API."""

    service_name = "telegram"

    @classmethod
    def from_token(
        cls,
        bot_token: str,
        api_url: str = "https://api.telegram.org",
        timeout_seconds: float = 30.0,
        **retry_kwargs,
    ) -> "TelegramClient":
        client = httpx.AsyncClient(
            base_url=f"{api_url.rstrip('/')}/bot{bot_token}",
            timeout=timeout_seconds,
        )
        return cls(client, **retry_kwargs)

    async def call(
        self,
        method: str,
        payload: dict | None = None,
        *,
        timeout: float | None = None,
        context: ErrorContext | None = None,
    ):
        """Invoke a Bot API method and return its `result`."""
        kwargs = {"json": payload or {}}
        if timeout is not None:
            kwargs["timeout"] = timeout
        response = await self.request("POST", f"/{method}", context=context, **kwargs)
        body = self.parse_json(response, context)
        if not isinstance(body, dict) or not body.get("ok"):
            raise self.make_error(
                self._description(body) or f"{method} failed", "not_ok",
                status_code=response.status_code, context=context,
            )
        return body.get("result")

    # ─── Long polling ────────────────────────────────────────────

    async def get_updates(self, offset: int | None, timeout: int = 30) -> list[Update]:
        payload = {"timeout": timeout}
        if offset is not None:
            payload["offset"] = offset
        result = await self.call(
            "getUpdates", payload,
            timeout=timeout + _POLL_TIMEOUT_MARGIN_SECONDS,
        )
        updates = []
        for raw in result or []:
            try:
                updates.append(Update.model_validate(raw))
            except ValidationError as e:
                logger.warning(
                    f"Skipping malformed update: {e.error_count()} errors",
                    extra={"update_id": raw.get("update_id") if isinstance(raw, dict) else None},
                )
        return updates

    # ─── Messenger ───────────────────────────────────────────────

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: dict | None = None,
        parse_mode: str | None = None,
    ) -> MessageRef:
        payload = {"chat_id": chat_id, "text": text}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        if parse_mode:
            payload["parse_mode"] = parse_mode
        result = await self.call(
            "sendMessage", payload, context=ErrorContext(chat_id=chat_id),
        )
        try:
            return MessageRef(chat_id=chat_id, message_id=int(result["message_id"]))
        except (KeyError, TypeError, ValueError):
            raise self.make_error("sendMessage returned no message_id", "bad_response")

    async def edit_message_text(
        self,
        ref: MessageRef,
        text: str,
        reply_markup: dict | None = None,
        parse_mode: str | None = None,
    ) -> None:
        payload = {"chat_id": ref.chat_id, "message_id": ref.message_id, "text": text}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        if parse_mode:
            payload["parse_mode"] = parse_mode
        await self._edit("editMessageText", payload, ref)

    async def edit_reply_markup(
        self, ref: MessageRef, reply_markup: dict | None = None,
    ) -> None:
        payload = {"chat_id": ref.chat_id, "message_id": ref.message_id}
        if reply_markup is not None:
            payload["reply_markup"] = reply_markup
        await self._edit("editMessageReplyMarkup", payload, ref)

    async def answer_callback(self, callback_id: str, text: str | None = None) -> None:
        payload = {"callback_query_id": callback_id}
        if text:
            payload["text"] = text
        await self.call("answerCallbackQuery", payload)

    async def _edit(self, method: str, payload: dict, ref: MessageRef) -> None:
        try:
            await self.call(method, payload, context=ErrorContext(chat_id=ref.chat_id))
        except MessagingAPIError as e:
            if _NOT_MODIFIED in e.message.lower():
                logger.debug(f"{method}: message already up to date")
                return
            raise

    # ─── Error mapping ───────────────────────────────────────────

    def make_error(
        self,
        message: str,
        api_error_type: str,
        *,
        status_code: int | None = None,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ) -> MessagingAPIError:
        return MessagingAPIError(
            message, api_error_type, retry_after_ms=retry_after_ms, context=context,
        )

    def describe_error(self, response: httpx.Response) -> str:
        try:
            body = response.json()
        except ValueError:
            return f"Telegram request failed ({response.status_code})"
        return self._description(body) or f"Telegram request failed ({response.status_code})"

    def retry_after_ms(self, response: httpx.Response) -> int | None:
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict):
            params = body.get("parameters") or {}
            retry_after = params.get("retry_after") if isinstance(params, dict) else None
            if isinstance(retry_after, int) and retry_after >= 0:
                return retry_after * 1000
        return super().retry_after_ms(response)

    @staticmethod
    def _description(body) -> str | None:
        if isinstance(body, dict) and body.get("description"):
            return str(body["description"])
        return None
