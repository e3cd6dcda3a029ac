"""Commands and Inbound Events: tagged values flowing from the transport into the engine.

Invariants:
    - Inbound events are transport-neutral (built by the shell from Telegram updates)
    - Every Command carries its Origin (user, chat, message to edit)
    - Callback payloads are the only values ever encoded into callback tokens
    - Invalid is a regular command, never an exception

Design Decisions:
    - One frozen dataclass per variant; isinstance dispatch in the engine rule table
"""

from dataclasses import dataclass

from backlog_bot.core.domain_types import BacklogParams, MessageRef, Origin


# ─── Inbound Events ──────────────────────────────────────────────

@dataclass(frozen=True)
class MessageEvent:
    """Chat message. text is None for stickers, photos and similar."""
    user_id: int
    chat_id: int
    message_id: int
    text: str | None
    first_name: str = ""


@dataclass(frozen=True)
class CallbackEvent:
    """Inline keyboard press. message_ref is None for inline-mode messages."""
    callback_id: str
    user_id: int
    chat_id: int
    message_ref: MessageRef | None
    data: str | None


@dataclass(frozen=True)
class OtherEvent:
    """Any update kind the bot does not handle."""
    kind: str
    user_id: int | None = None


InboundEvent = MessageEvent | CallbackEvent | OtherEvent


# ─── Callback Payloads ───────────────────────────────────────────

@dataclass(frozen=True)
class BacklogNextPayload:
    params: BacklogParams


@dataclass(frozen=True)
class BacklogPrevPayload:
    params: BacklogParams


@dataclass(frozen=True)
class BacklogStopPayload:
    pass


@dataclass(frozen=True)
class VoteForIssuePayload:
    issue_id: str
    has_vote: bool


CallbackPayload = (
    BacklogNextPayload | BacklogPrevPayload | BacklogStopPayload | VoteForIssuePayload
)


# ─── Commands ────────────────────────────────────────────────────

@dataclass(frozen=True)
class Command:
    origin: Origin

    @property
    def name(self) -> str:
        return type(self).__name__


@dataclass(frozen=True)
class Start(Command):
    pass


@dataclass(frozen=True)
class Login(Command):
    pass


@dataclass(frozen=True)
class Backlog(Command):
    params: BacklogParams


@dataclass(frozen=True)
class NewIssueCmd(Command):
    pass


@dataclass(frozen=True)
class Text(Command):
    text: str


@dataclass(frozen=True)
class Save(Command):
    pass


@dataclass(frozen=True)
class Cancel(Command):
    pass


@dataclass(frozen=True)
class Stop(Command):
    pass


@dataclass(frozen=True)
class BacklogStop(Command):
    token: str


@dataclass(frozen=True)
class BacklogNext(Command):
    token: str
    params: BacklogParams


@dataclass(frozen=True)
class BacklogPrev(Command):
    token: str
    params: BacklogParams


@dataclass(frozen=True)
class VoteForIssue(Command):
    token: str
    issue_id: str
    has_vote: bool


@dataclass(frozen=True)
class Invalid(Command):
    token: str | None
    reason: str


@dataclass(frozen=True)
class UnsupportedEvent:
    """Normalizer outcome for events the bot ignores."""
    kind: str
    reason: str
