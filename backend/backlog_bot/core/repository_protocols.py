"""Boundary Protocols: contracts between core and shell.

Invariants:
    - Core NEVER imports from shell; dependency arrows point inward only
    - All IO (tracker, chat transport, persistence) accessed through these Protocols
    - Implementations provided by shell via dependency injection

Design Decisions:
    - Protocol over ABC: structural subtyping, test fakes need no inheritance
    - Async methods: implementations do IO; the core functions that produce
      intents never await anything
"""

from typing import Protocol

from backlog_bot.core.domain_types import Issue, IssueDraft, MessageRef, OptionSet


class SessionBackend(Protocol):
    """Raw key/value persistence for serialized session records."""
    async def read(self, key: str) -> str | bytes | None: ...
    async def write(self, key: str, value: str) -> None: ...


class IssueTracker(Protocol):
    """Issue tracker operations, all on behalf of one user's access token."""
    async def list_issues(
        self, token: str, query: str, top: int, skip: int,
    ) -> list[Issue]: ...
    async def vote_issue(
        self, token: str, issue_id: str, has_vote: bool,
    ) -> bool: ...
    async def list_projects(self, token: str) -> OptionSet: ...
    async def get_field_bundle(
        self, token: str, project_id: str, field_name: str,
    ) -> OptionSet: ...
    async def create_issue(self, token: str, draft: IssueDraft) -> str: ...


class Messenger(Protocol):
    """Chat transport operations."""
    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: dict | None = None,
        parse_mode: str | None = None,
    ) -> MessageRef: ...
    async def edit_message_text(
        self,
        ref: MessageRef,
        text: str,
        reply_markup: dict | None = None,
        parse_mode: str | None = None,
    ) -> None: ...
    async def edit_reply_markup(
        self, ref: MessageRef, reply_markup: dict | None = None,
    ) -> None: ...
    async def answer_callback(self, callback_id: str, text: str | None = None) -> None: ...
