"""Command Normalizer: turns an inbound event into a typed Command.

Invariants:
    - Pure apart from the injected codec (opaque decode consumes the handle)
    - Never raises for network input: unsupported kinds -> UnsupportedEvent,
      undecodable callback data -> Invalid
    - Keyword table is the single source of slash commands

Design Decisions:
    - Result value (Command | UnsupportedEvent) instead of exceptions, so the
      dispatcher can log and drop without try/except around every update
"""

from collections.abc import Callable

from backlog_bot.core.callback_codec import TokenCodec
from backlog_bot.core.commands import (
    Backlog, BacklogNext, BacklogNextPayload, BacklogPrev, BacklogPrevPayload,
    BacklogStop, BacklogStopPayload, CallbackEvent, Cancel, Command,
    InboundEvent, Invalid, Login, MessageEvent, NewIssueCmd, OtherEvent, Save,
    Start, Stop, Text, UnsupportedEvent, VoteForIssue, VoteForIssuePayload,
)
from backlog_bot.core.domain_types import DEFAULT_PAGE_SIZE, BacklogParams, Origin


def _keyword_table(page_size: int) -> dict[str, Callable[[Origin], Command]]:
    return {
        "/start": Start,
        "/backlog": lambda origin: Backlog(origin, BacklogParams.first_page(page_size)),
        "/login": Login,
        "/new_issue": NewIssueCmd,
        "/save": Save,
        "/cancel": Cancel,
        "/stop": Stop,
    }


def _command_word(text: str) -> str:
    """'/backlog@my_bot' -> '/backlog'. Non-commands are returned unchanged."""
    stripped = text.strip()
    if not stripped.startswith("/") or " " in stripped:
        return text
    return stripped.split("@", 1)[0]


def normalize_message(
    event: MessageEvent, page_size: int = DEFAULT_PAGE_SIZE,
) -> Command | UnsupportedEvent:
    if event.text is None:
        return UnsupportedEvent("message", "message has no text")
    origin = Origin(
        user_id=event.user_id, chat_id=event.chat_id, first_name=event.first_name,
    )
    factory = _keyword_table(page_size).get(_command_word(event.text))
    if factory is None:
        return Text(origin, event.text)
    return factory(origin)


def normalize_callback(event: CallbackEvent, codec: TokenCodec) -> Command:
    origin = Origin(
        user_id=event.user_id, chat_id=event.chat_id, message_ref=event.message_ref,
    )
    token = event.data
    if not token:
        return Invalid(origin, token, "missing callback data")

    decoded = codec.decode(token)
    if not decoded.ok:
        return Invalid(origin, token, decoded.status.value)

    payload = decoded.payload
    if isinstance(payload, BacklogStopPayload):
        return BacklogStop(origin, token)
    if isinstance(payload, BacklogNextPayload):
        return BacklogNext(origin, token, payload.params)
    if isinstance(payload, BacklogPrevPayload):
        return BacklogPrev(origin, token, payload.params)
    if isinstance(payload, VoteForIssuePayload):
        return VoteForIssue(origin, token, payload.issue_id, payload.has_vote)
    return Invalid(origin, token, "unknown payload")


def normalize(
    event: InboundEvent,
    codec: TokenCodec,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> Command | UnsupportedEvent:
    """Map one inbound event to a Command, or to UnsupportedEvent."""
    if isinstance(event, MessageEvent):
        return normalize_message(event, page_size)
    if isinstance(event, CallbackEvent):
        return normalize_callback(event, codec)
    if isinstance(event, OtherEvent):
        return UnsupportedEvent(event.kind, "update kind not handled")
    return UnsupportedEvent(type(event).__name__, "unknown event type")
