"""Action Executor: performs the intents the engine emits, in order.

Invariants:
    - Every intent type -> handler mapping is visible (explicit dict, no getattr magic)
    - Tracker-bound intents (TRACKER_INTENTS) that fail stop execution; the user
      gets the error's to_user_message() and the report is ok=False
    - Messaging-only intents that fail are logged and skipped, never retried here
    - A tracker call without a live access token raises MissingCredentialsError

Design Decisions:
    - ExecutionReport as return value: the dispatcher persists the new state only
      when ok is True
    - Option fetching lives here (fetch_options) so the dispatcher's prefetch and
      PromptChoice share one code path
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from backlog_bot.core.callback_codec import TokenCodec
from backlog_bot.core.domain_types import ChoiceField, Notice, OptionQuery, OptionSet
from backlog_bot.core.errors import (
    CollaboratorError, MessagingAPIError, MissingCredentialsError,
)
from backlog_bot.core.format_messages import (
    PARSE_MODE, backlog_page_text, choice_prompt_text, issue_created_text,
    login_prompt_text, notice_text,
)
from backlog_bot.core.intents import (
    TRACKER_INTENTS, ClearKeyboard, CreateIssue, Intent, Notify, PromptChoice,
    SendAuthLink, ShowBacklogPage, ToggleVote,
)
from backlog_bot.core.keyboards import (
    backlog_keyboard, choice_keyboard, empty_inline_keyboard, login_keyboard,
    remove_keyboard,
)
from backlog_bot.core.repository_protocols import IssueTracker, Messenger
from backlog_bot.services.access_tokens import AccessTokenStore, CsrfRegistry

logger = logging.getLogger(__name__)

# Notices that end a wizard step: any one-time reply keyboard must go
_REMOVES_REPLY_KEYBOARD = frozenset({
    Notice.ASK_DESCRIPTION, Notice.CANCELLED, Notice.STOPPED,
})


@dataclass(frozen=True)
class ExecutionReport:
    ok: bool
    executed: int = 0
    error: CollaboratorError | None = None


class ActionExecutor:
    """Routes intent type -> handler. Explicit registration, no auto-discovery."""

    def __init__(
        self,
        tracker: IssueTracker,
        messenger: Messenger,
        codec: TokenCodec,
        tokens: AccessTokenStore,
        csrf: CsrfRegistry,
        auth_url: Callable[[str], str],
        youtrack_url: str,
        backlog_query: str,
    ):
        self._tracker = tracker
        self._messenger = messenger
        self._codec = codec
        self._tokens = tokens
        self._csrf = csrf
        self._auth_url = auth_url
        self._youtrack_url = youtrack_url
        self._backlog_query = backlog_query

        # Every mapping explicit: adding an intent requires editing this dict
        self._handlers: dict[type, Callable[[Intent], Awaitable[None]]] = {
            Notify: self._notify,
            SendAuthLink: self._send_auth_link,
            ClearKeyboard: self._clear_keyboard,
            ShowBacklogPage: self._show_backlog_page,
            ToggleVote: self._toggle_vote,
            PromptChoice: self._prompt_choice,
            CreateIssue: self._create_issue,
        }

    async def execute(self, intents: tuple[Intent, ...]) -> ExecutionReport:
        for n, intent in enumerate(intents):
            handler = self._handlers.get(type(intent))
            if handler is None:
                logger.error(f"No handler for intent {type(intent).__name__}")
                return ExecutionReport(ok=False, executed=n)
            try:
                await handler(intent)
            except CollaboratorError as e:
                if not isinstance(intent, TRACKER_INTENTS):
                    logger.warning(
                        f"{type(intent).__name__} failed: {e.message}",
                        extra={"error_code": e.code},
                    )
                    continue
                logger.warning(
                    f"{type(intent).__name__} failed, discarding state change: {e.message}",
                    extra={
                        "user_id": intent.user_id,
                        "chat_id": intent.chat_id,
                        "error_code": e.code,
                    },
                )
                await self.report_failure(intent.chat_id, e)
                return ExecutionReport(ok=False, executed=n, error=e)
        return ExecutionReport(ok=True, executed=len(intents))

    async def fetch_options(self, user_id: int, query: OptionQuery) -> OptionSet:
        token = await self._token(user_id)
        if query.field is ChoiceField.PROJECT:
            return await self._tracker.list_projects(token)
        return await self._tracker.get_field_bundle(
            token, query.project_id or "", query.field.value,
        )

    async def report_failure(self, chat_id: int, error: CollaboratorError) -> None:
        """Tell the user a collaborator failed. Delivery failures are only logged."""
        try:
            await self._messenger.send_message(chat_id, error.to_user_message())
        except CollaboratorError as e:
            logger.error(
                f"Could not deliver error message: {e.message}",
                extra={"chat_id": chat_id, "error_code": e.code},
            )

    async def _token(self, user_id: int) -> str:
        token = await self._tokens.get(user_id)
        if token is None:
            raise MissingCredentialsError(user_id)
        return token

    # ─── Messaging-only intents ──────────────────────────────────

    async def _notify(self, intent: Notify) -> None:
        markup = remove_keyboard() if intent.notice in _REMOVES_REPLY_KEYBOARD else None
        await self._messenger.send_message(
            intent.chat_id, notice_text(intent.notice, intent.first_name), markup,
        )

    async def _send_auth_link(self, intent: SendAuthLink) -> None:
        state = await self._csrf.issue(intent.user_id)
        await self._messenger.send_message(
            intent.chat_id, login_prompt_text(), login_keyboard(self._auth_url(state)),
        )

    async def _clear_keyboard(self, intent: ClearKeyboard) -> None:
        await self._messenger.edit_reply_markup(intent.message_ref, empty_inline_keyboard())

    # ─── Tracker intents ─────────────────────────────────────────

    async def _show_backlog_page(self, intent: ShowBacklogPage) -> None:
        token = await self._token(intent.user_id)
        params = intent.params
        issues = await self._tracker.list_issues(
            token, self._backlog_query, params.top, params.skip,
        )
        text = backlog_page_text(issues, params, self._youtrack_url)
        keyboard = backlog_keyboard(issues, params, self._codec)
        if intent.edit_ref is not None:
            await self._messenger.edit_message_text(
                intent.edit_ref, text, keyboard, PARSE_MODE,
            )
        else:
            await self._messenger.send_message(intent.chat_id, text, keyboard, PARSE_MODE)

    async def _toggle_vote(self, intent: ToggleVote) -> None:
        token = await self._token(intent.user_id)
        await self._tracker.vote_issue(token, intent.issue_id, intent.has_vote)

    async def _prompt_choice(self, intent: PromptChoice) -> None:
        options = await self.fetch_options(intent.user_id, intent.query)
        field = intent.query.field
        if not options.options:
            await self._messenger.send_message(
                intent.chat_id, choice_prompt_text(field, has_options=False),
                remove_keyboard(),
            )
            return
        await self._messenger.send_message(
            intent.chat_id, choice_prompt_text(field), choice_keyboard(options.options),
        )

    async def _create_issue(self, intent: CreateIssue) -> None:
        token = await self._token(intent.user_id)
        id_readable = await self._tracker.create_issue(token, intent.draft)
        logger.info(
            f"Issue {id_readable} created",
            extra={"user_id": intent.user_id, "chat_id": intent.chat_id},
        )
        # The issue exists now; a lost confirmation must not roll the session back
        try:
            await self._messenger.send_message(
                intent.chat_id, issue_created_text(id_readable, self._youtrack_url),
                remove_keyboard(), PARSE_MODE,
            )
        except MessagingAPIError as e:
            logger.warning(
                f"Confirmation for {id_readable} not delivered: {e.message}",
                extra={"chat_id": intent.chat_id, "error_code": e.code},
            )
