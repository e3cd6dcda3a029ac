"""Dispatcher: one Telegram update in, one serialized state step out.

Invariants:
    - For each user, get -> transition -> execute -> set runs under that user's lock
    - The new state is persisted only when every tracker intent succeeded
    - An unmatched (state, command) pair keeps the prior state (InvalidTransition,
      logged at debug: plain chat text in Idle is one)
    - Option sets are fetched only for Text commands in states that await a choice
    - Callback queries are always answered, after the step completes
    - dispatch() never raises: one bad update cannot stop the poller

Design Decisions:
    - Lock held across the tracker calls: two quick presses by one user are applied
      in order, each against the state the other left behind
"""

import logging

from backlog_bot.core.callback_codec import TokenCodec
from backlog_bot.core.commands import (
    CallbackEvent, Command, Invalid, Text, UnsupportedEvent,
)
from backlog_bot.core.domain_types import DEFAULT_PAGE_SIZE, OptionQuery, OptionSet
from backlog_bot.core.errors import (
    CollaboratorError, InvalidTokenError, InvalidTransitionError,
    UnsupportedEventError,
)
from backlog_bot.core.normalizer import normalize
from backlog_bot.core.repository_protocols import Messenger
from backlog_bot.core.state_machine import TransitionResult, required_options, transition
from backlog_bot.schemas.telegram import Update
from backlog_bot.services.action_executor import ActionExecutor
from backlog_bot.services.inbound_events import to_event
from backlog_bot.services.session_store import SessionStore
from backlog_bot.services.user_locks import UserLocks

logger = logging.getLogger(__name__)

EXPIRED_BUTTON_TEXT = "This button has expired"


class Dispatcher:
    def __init__(
        self,
        store: SessionStore,
        executor: ActionExecutor,
        messenger: Messenger,
        codec: TokenCodec,
        locks: UserLocks,
        page_size: int = DEFAULT_PAGE_SIZE,
    ):
        self._store = store
        self._executor = executor
        self._messenger = messenger
        self._codec = codec
        self._locks = locks
        self._page_size = page_size

    @property
    def locks(self) -> UserLocks:
        return self._locks

    async def dispatch(self, update: Update) -> None:
        try:
            await self._dispatch(update)
        except Exception as e:
            logger.error(
                f"Update dispatch failed: {e}",
                exc_info=True,
                extra={"update_id": update.update_id},
            )

    async def _dispatch(self, update: Update) -> None:
        event = to_event(update)
        command = normalize(event, self._codec, self._page_size)
        if isinstance(command, UnsupportedEvent):
            err = UnsupportedEventError(command.kind)
            logger.info(
                f"{err.message} ({command.reason})",
                extra={"update_id": update.update_id, "error_code": err.code},
            )
            return

        try:
            await self.handle(command)
        finally:
            if isinstance(event, CallbackEvent):
                await self._answer(event, command)

    async def handle(self, command: Command) -> TransitionResult | None:
        """Run one command for its user. Returns None when the step was aborted."""
        origin = command.origin
        log_extra = {
            "user_id": origin.user_id, "chat_id": origin.chat_id, "command": command.name,
        }
        if isinstance(command, Invalid):
            err = InvalidTokenError(command.reason)
            logger.info(err.message, extra={**log_extra, "error_code": err.code})

        async with self._locks.hold(origin.user_id):
            prior = await self._store.get(origin.user_id)
            options = None
            query = required_options(prior) if isinstance(command, Text) else None
            if query is not None:
                options = await self._fetch_options(command, query)
                if options is None:
                    return None

            result = transition(prior, command, options)
            if not result.matched:
                err = InvalidTransitionError(type(prior).__name__, command.name)
                logger.debug(
                    err.message,
                    extra={**log_extra, "state": type(prior).__name__, "error_code": err.code},
                )
                return result

            report = await self._executor.execute(result.intents)
            if not report.ok:
                return None
            new_state = result.resolve(prior)
            await self._store.set(origin.user_id, new_state)
            logger.debug(
                f"{type(prior).__name__} -> {type(new_state).__name__}",
                extra={**log_extra, "state": type(new_state).__name__},
            )
            return result

    async def _fetch_options(
        self, command: Command, query: OptionQuery,
    ) -> OptionSet | None:
        """Option set for a wizard step, or None after telling the user it failed."""
        try:
            return await self._executor.fetch_options(command.origin.user_id, query)
        except CollaboratorError as e:
            logger.warning(
                f"Option fetch failed: {e.message}",
                extra={"user_id": command.origin.user_id, "error_code": e.code},
            )
            await self._executor.report_failure(command.origin.chat_id, e)
            return None

    async def _answer(self, event: CallbackEvent, command) -> None:
        text = EXPIRED_BUTTON_TEXT if isinstance(command, Invalid) else None
        try:
            await self._messenger.answer_callback(event.callback_id, text)
        except CollaboratorError as e:
            logger.warning(
                f"answerCallbackQuery failed: {e.message}",
                extra={"user_id": event.user_id, "error_code": e.code},
            )
