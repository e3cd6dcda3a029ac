"""Intents: side effects requested by the engine, performed by the action executor.

Invariants:
    - Intents are plain data; building one performs no IO
    - TRACKER_INTENTS need the user's access token and may fail with a
      CollaboratorError; the remaining intents only talk to the chat transport

Design Decisions:
    - Every intent carries chat_id so the executor needs no session lookup
"""

from dataclasses import dataclass

from backlog_bot.core.domain_types import (
    BacklogParams, IssueDraft, MessageRef, Notice, OptionQuery,
)


@dataclass(frozen=True)
class Notify:
    chat_id: int
    notice: Notice
    first_name: str = ""


@dataclass(frozen=True)
class SendAuthLink:
    chat_id: int
    user_id: int


@dataclass(frozen=True)
class ClearKeyboard:
    message_ref: MessageRef


@dataclass(frozen=True)
class ShowBacklogPage:
    """Fetch and render one page. edit_ref set: edit that message in place."""
    chat_id: int
    user_id: int
    params: BacklogParams
    edit_ref: MessageRef | None = None


@dataclass(frozen=True)
class ToggleVote:
    chat_id: int
    user_id: int
    issue_id: str
    has_vote: bool


@dataclass(frozen=True)
class PromptChoice:
    """Fetch the option set for the next wizard field and offer it."""
    chat_id: int
    user_id: int
    query: OptionQuery


@dataclass(frozen=True)
class CreateIssue:
    chat_id: int
    user_id: int
    draft: IssueDraft


Intent = (
    Notify | SendAuthLink | ClearKeyboard | ShowBacklogPage | ToggleVote
    | PromptChoice | CreateIssue
)

TRACKER_INTENTS: tuple[type, ...] = (ShowBacklogPage, ToggleVote, PromptChoice, CreateIssue)
