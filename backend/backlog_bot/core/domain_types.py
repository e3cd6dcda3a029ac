"""Domain Types: value objects shared by the normalizer, engine and executor.

Invariants:
    - BacklogParams: top > 0, skip >= 0, skip is a multiple of top
    - prev() is defined only while skip - top >= 0
    - All value objects are frozen (hashable, safe to share between tasks)
    - All valid enumerations encoded as str Enums, no raw string matching

Design Decisions:
    - Frozen dataclasses over dicts: equality is structural, which the engine tests rely on
    - NewType ids: zero runtime cost, type-checker support
"""

from dataclasses import dataclass
from enum import Enum
from typing import NewType


# ─── Identity Types ──────────────────────────────────────────────

UserId = NewType("UserId", int)
ChatId = NewType("ChatId", int)

DEFAULT_PAGE_SIZE = 5


@dataclass(frozen=True)
class MessageRef:
    """Address of a bot message that can be edited."""
    chat_id: int
    message_id: int


@dataclass(frozen=True)
class Origin:
    """Who sent a command and where replies go."""
    user_id: int
    chat_id: int
    message_ref: MessageRef | None = None
    first_name: str = ""


# ─── Backlog Paging ──────────────────────────────────────────────

@dataclass(frozen=True)
class BacklogParams:
    """One backlog page: `top` issues starting at `skip`."""
    top: int
    skip: int = 0

    def __post_init__(self):
        if isinstance(self.top, bool) or not isinstance(self.top, int) or self.top <= 0:
            raise ValueError(f"top must be a positive int, got {self.top!r}")
        if isinstance(self.skip, bool) or not isinstance(self.skip, int) or self.skip < 0:
            raise ValueError(f"skip must be a non-negative int, got {self.skip!r}")
        if self.skip % self.top != 0:
            raise ValueError(
                f"skip ({self.skip}) must be a multiple of top ({self.top})",
            )

    @classmethod
    def first_page(cls, top: int = DEFAULT_PAGE_SIZE) -> "BacklogParams":
        return cls(top=top, skip=0)

    def next(self) -> "BacklogParams":
        return BacklogParams(top=self.top, skip=self.skip + self.top)

    def prev(self) -> "BacklogParams | None":
        if self.skip - self.top >= 0:
            return BacklogParams(top=self.top, skip=self.skip - self.top)
        return None


# ─── Issue Tracker Values ────────────────────────────────────────

@dataclass(frozen=True)
class Issue:
    """Backlog row as shown to the user."""
    id_readable: str
    summary: str
    votes: int = 0
    has_vote: bool = False


@dataclass(frozen=True)
class ProjectRef:
    id: str
    name: str


@dataclass(frozen=True)
class FieldValue:
    """Custom-field assignment collected during issue creation."""
    field_id: str
    field_name: str
    value: str


@dataclass(frozen=True)
class Choice:
    """One selectable option of an option set."""
    id: str
    name: str


class ChoiceField(str, Enum):
    """Fields the new-issue wizard asks the user to choose."""
    PROJECT = "project"
    STREAM = "Stream"
    TYPE = "Type"


@dataclass(frozen=True)
class OptionQuery:
    """Which option set a state awaits. project_id is None for PROJECT."""
    field: ChoiceField
    project_id: str | None = None


@dataclass(frozen=True)
class OptionSet:
    """Choices fetched from the tracker for one field."""
    field_id: str
    field_name: str
    options: tuple[Choice, ...] = ()

    def match(self, text: str) -> Choice | None:
        """Choice whose name equals text (trimmed, case-insensitive)."""
        wanted = text.strip().casefold()
        if not wanted:
            return None
        for choice in self.options:
            if choice.name.strip().casefold() == wanted:
                return choice
        return None


@dataclass(frozen=True)
class IssueDraft:
    """Everything needed to create an issue. Built only on /save."""
    summary: str
    description: str
    project_id: str
    custom_fields: tuple[FieldValue, ...] = ()


class Notice(str, Enum):
    """Fixed user-facing notices; text lives in format_messages."""
    GREETING = "greeting"
    ASK_SUMMARY = "ask_summary"
    ASK_DESCRIPTION = "ask_description"
    ASK_SAVE = "ask_save"
    CANCELLED = "cancelled"
    STOPPED = "stopped"
