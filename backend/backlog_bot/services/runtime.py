"""Bot Runtime: wires settings into one set of long-lived collaborators.

Invariants:
    - Exactly one codec, session backend, token store and lock registry per process
    - The dispatcher and the OAuth routes share the same UserLocks and token store
    - close() releases every client this module created

Design Decisions:
    - Collaborators injectable (telegram, youtrack, backend): tests build a runtime
      around fakes without touching settings
"""

import asyncio
import logging
from dataclasses import dataclass, field
from functools import partial

from backlog_bot.config import Settings
from backlog_bot.core.callback_codec import CodecKind, TokenCodec, build_codec
from backlog_bot.core.repository_protocols import IssueTracker, Messenger, SessionBackend
from backlog_bot.infrastructure.database import init_db
from backlog_bot.infrastructure.session_backends import (
    InMemorySessionBackend, RedisSessionBackend, SqlSessionBackend,
)
from backlog_bot.infrastructure.telegram_client import TelegramClient
from backlog_bot.infrastructure.youtrack_client import YouTrackClient
from backlog_bot.services.access_tokens import (
    AccessTokenStore, CsrfRegistry, build_auth_url,
)
from backlog_bot.services.action_executor import ActionExecutor
from backlog_bot.services.dispatcher import Dispatcher
from backlog_bot.services.session_store import SessionStore
from backlog_bot.services.update_poller import UpdatePoller
from backlog_bot.services.user_locks import UserLocks

logger = logging.getLogger(__name__)


@dataclass
class BotRuntime:
    settings: Settings
    messenger: Messenger
    tracker: IssueTracker
    backend: SessionBackend
    codec: TokenCodec
    store: SessionStore
    tokens: AccessTokenStore
    csrf: CsrfRegistry
    locks: UserLocks
    executor: ActionExecutor
    dispatcher: Dispatcher
    poller: UpdatePoller | None = None
    _poll_task: asyncio.Task | None = field(default=None, repr=False)

    def start_polling(self) -> None:
        if self.poller is None or self._poll_task is not None:
            return
        self._poll_task = asyncio.create_task(self.poller.run())

    async def close(self) -> None:
        if self._poll_task is not None:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None
        if self.poller is not None:
            await self.poller.drain()
        for client in (self.messenger, self.tracker, self.backend):
            aclose = getattr(client, "aclose", None)
            if aclose is not None:
                await aclose()


def build_session_backend(settings: Settings) -> SessionBackend:
    if settings.session_backend == "sql":
        manager = init_db(
            settings.database_url,
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )
        return SqlSessionBackend(manager)
    if settings.session_backend == "redis":
        return RedisSessionBackend.from_url(settings.redis_url)
    return InMemorySessionBackend()


def build_runtime(
    settings: Settings,
    *,
    messenger: Messenger | None = None,
    tracker: IssueTracker | None = None,
    backend: SessionBackend | None = None,
) -> BotRuntime:
    retry = dict(
        max_retries=settings.http_max_retries,
        base_delay_ms=settings.http_base_delay_ms,
        max_delay_ms=settings.http_max_delay_ms,
    )
    if messenger is None:
        messenger = TelegramClient.from_token(
            settings.telegram_bot_token, settings.telegram_api_url,
            settings.http_timeout_seconds, **retry,
        )
    if tracker is None:
        tracker = YouTrackClient.from_url(
            settings.youtrack_url, settings.http_timeout_seconds, **retry,
        )
    if backend is None:
        backend = build_session_backend(settings)

    codec = build_codec(CodecKind(settings.callback_codec), settings.callback_cache_size)
    store = SessionStore(backend)
    tokens = AccessTokenStore(settings.access_token_capacity)
    csrf = CsrfRegistry(settings.csrf_capacity)
    locks = UserLocks()
    executor = ActionExecutor(
        tracker=tracker,
        messenger=messenger,
        codec=codec,
        tokens=tokens,
        csrf=csrf,
        auth_url=partial(
            build_auth_url, settings.youtrack_hub_url, settings.youtrack_client_id,
            settings.auth_callback_url, settings.youtrack_scope,
        ),
        youtrack_url=settings.youtrack_url,
        backlog_query=settings.backlog_query,
    )
    dispatcher = Dispatcher(
        store, executor, messenger, codec, locks, settings.backlog_page_size,
    )
    poller = None
    if settings.telegram_polling_enabled and isinstance(messenger, TelegramClient):
        poller = UpdatePoller(
            messenger.get_updates, dispatcher.dispatch, settings.telegram_poll_timeout,
        )
    logger.info(
        f"Runtime built (codec={settings.callback_codec}, "
        f"sessions={settings.session_backend})",
    )
    return BotRuntime(
        settings=settings,
        messenger=messenger,
        tracker=tracker,
        backend=backend,
        codec=codec,
        store=store,
        tokens=tokens,
        csrf=csrf,
        locks=locks,
        executor=executor,
        dispatcher=dispatcher,
        poller=poller,
    )
