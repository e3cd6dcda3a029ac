"""Resilient HTTP Base: shared retry, backoff and error mapping for httpx collaborators.

Invariants:
    - Rate limits (429): backoff honours Retry-After when the server sends one
    - Transient errors (5xx, transport, timeout): max `max_retries` retries with backoff
    - Client errors (4xx except 429): immediate failure, no retry
    - Every failure leaves as the subclass's CollaboratorError (core/errors.py)

Design Decisions:
    - One base for both collaborators: retry loop written once, each subclass only
      says how to read an error body and which error type to raise
    - ±25% jitter on backoff: prevents thundering herd on shared rate limits
    - httpx.AsyncClient injected: tests pass one built on httpx.MockTransport
"""

import asyncio
import logging
import random

import httpx

from backlog_bot.core.errors import CollaboratorError, ErrorContext

logger = logging.getLogger(__name__)


class ResilientHttpClient:
    """Wraps httpx.AsyncClient with retry logic, timeouts, and error mapping."""

    service_name = "http"

    def __init__(
        self,
        client: httpx.AsyncClient,
        max_retries: int = 3,
        base_delay_ms: int = 500,
        max_delay_ms: int = 30_000,
    ):
        self.client = client
        self.max_retries = max_retries
        self.base_delay_ms = base_delay_ms
        self.max_delay_ms = max_delay_ms

    async def aclose(self) -> None:
        await self.client.aclose()

    async def request(
        self,
        method: str,
        url: str,
        *,
        context: ErrorContext | None = None,
        **kwargs,
    ) -> httpx.Response:
        """Send a request, retrying transient failures. Returns a 2xx response."""
        for attempt in range(self.max_retries + 1):
            try:
                response = await self.client.request(method, url, **kwargs)
            except httpx.TransportError as e:
                await self._handle_transient_error(
                    f"{type(e).__name__}: {e}", "connection_error",
                    attempt, context,
                )
                continue

            if response.status_code == 429:
                await self._handle_rate_limit(response, attempt, context)
                continue
            if response.status_code >= 500:
                await self._handle_transient_error(
                    f"HTTP {response.status_code}: {self.describe_error(response)}",
                    "server_error", attempt, context,
                    status_code=response.status_code,
                )
                continue
            if response.status_code >= 400:
                raise self.make_error(
                    self.describe_error(response), "client_error",
                    status_code=response.status_code, context=context,
                )
            self._log_success(method, url, response, attempt)
            return response
        # Unreachable: the handlers raise on the last attempt
        raise self.make_error("Retries exhausted", "unknown", context=context)

    # ─── Subclass hooks ─────────────────────────────────────────

    def make_error(
        self,
        message: str,
        api_error_type: str,
        *,
        status_code: int | None = None,
        retry_after_ms: int | None = None,
        context: ErrorContext | None = None,
    ) -> CollaboratorError:
        return CollaboratorError(message, context=context)

    def describe_error(self, response: httpx.Response) -> str:
        """Human-readable reason taken from an error response body."""
        return response.text[:200] or response.reason_phrase

    def retry_after_ms(self, response: httpx.Response) -> int | None:
        """Extract Retry-After header (returns milliseconds)."""
        val = response.headers.get("retry-after")
        if val and val.strip().isdigit():
            return int(val) * 1000
        return None

    # ─── Retry plumbing ─────────────────────────────────────────

    def parse_json(
        self, response: httpx.Response, context: ErrorContext | None = None,
    ):
        """Decode a JSON body or fail as a collaborator error."""
        try:
            return response.json()
        except ValueError as e:
            raise self.make_error(
                f"Unparsable {self.service_name} response: {e}", "bad_response",
                status_code=response.status_code, context=context,
            )

    def _log_success(
        self, method: str, url: str, response: httpx.Response, attempt: int,
    ) -> None:
        logger.debug(
            f"{self.service_name} {method} {url} ok",
            extra={"attempt": attempt + 1, "status_code": response.status_code},
        )

    async def _handle_rate_limit(
        self,
        response: httpx.Response,
        attempt: int,
        context: ErrorContext | None,
    ) -> None:
        """Handle rate limit response with retry or raise."""
        retry_after_ms = self.retry_after_ms(response)
        if attempt >= self.max_retries:
            raise self.make_error(
                "Rate limit exceeded after retries", "rate_limit",
                status_code=429, retry_after_ms=retry_after_ms, context=context,
            )
        delay = retry_after_ms or self._backoff(attempt)
        logger.warning(
            f"{self.service_name} rate limit hit, retry after {delay}ms "
            f"(attempt {attempt + 1})",
            extra={"attempt": attempt + 1, "status_code": 429},
        )
        await asyncio.sleep(delay / 1000)

    async def _handle_transient_error(
        self,
        message: str,
        api_error_type: str,
        attempt: int,
        context: ErrorContext | None,
        status_code: int | None = None,
    ) -> None:
        """Handle transient errors with retry or raise."""
        if attempt >= self.max_retries:
            raise self.make_error(
                f"Transient failure after {self.max_retries} retries: {message}",
                api_error_type, status_code=status_code, context=context,
            )
        delay = self._backoff(attempt)
        logger.warning(
            f"{self.service_name} transient error, retry after {delay}ms: {message}",
            extra={"attempt": attempt + 1, "status_code": status_code},
        )
        await asyncio.sleep(delay / 1000)

    def _backoff(self, attempt: int) -> int:
        """Exponential backoff with ±25% jitter."""
        delay = min(self.max_delay_ms, (2 ** attempt) * self.base_delay_ms)
        return int(delay * random.uniform(0.75, 1.25))  # nosec B311
