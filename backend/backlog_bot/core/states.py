"""Conversation States: the per-user session value the engine transitions.

Invariants:
    - The NewIssue* chain accumulates strictly left to right: each step carries
      every field of the previous step unchanged plus exactly one new field
    - ErrorState is a sentinel for "no rule"; it is never persisted
    - States are frozen: the engine returns new values, never mutates

Design Decisions:
    - Explicit tagged union of dataclasses, one class per state
"""

from dataclasses import dataclass

from backlog_bot.core.domain_types import (
    BacklogParams, FieldValue, IssueDraft, ProjectRef,
)


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class InBacklog:
    top: int
    skip: int

    def __post_init__(self):
        BacklogParams(self.top, self.skip)

    @property
    def params(self) -> BacklogParams:
        return BacklogParams(self.top, self.skip)


@dataclass(frozen=True)
class NewIssue:
    pass


@dataclass(frozen=True)
class NewIssueSummary:
    summary: str


@dataclass(frozen=True)
class NewIssueSummaryProject:
    summary: str
    project: ProjectRef


@dataclass(frozen=True)
class NewIssueSummaryProjectStream:
    summary: str
    project: ProjectRef
    stream: FieldValue


@dataclass(frozen=True)
class NewIssueSummaryProjectStreamType:
    summary: str
    project: ProjectRef
    stream: FieldValue
    issue_type: FieldValue


@dataclass(frozen=True)
class NewIssueSummaryProjectStreamTypeDesc:
    summary: str
    project: ProjectRef
    stream: FieldValue
    issue_type: FieldValue
    description: str

    def to_draft(self) -> IssueDraft:
        return IssueDraft(
            summary=self.summary,
            description=self.description,
            project_id=self.project.id,
            custom_fields=(self.stream, self.issue_type),
        )


@dataclass(frozen=True)
class ErrorState:
    """No-rule sentinel. The dispatcher keeps the prior state when it sees this."""
    pass


ERROR = ErrorState()

State = (
    Idle | InBacklog | NewIssue | NewIssueSummary | NewIssueSummaryProject
    | NewIssueSummaryProjectStream | NewIssueSummaryProjectStreamType
    | NewIssueSummaryProjectStreamTypeDesc | ErrorState
)

NEW_ISSUE_STATES: tuple[type, ...] = (
    NewIssue,
    NewIssueSummary,
    NewIssueSummaryProject,
    NewIssueSummaryProjectStream,
    NewIssueSummaryProjectStreamType,
    NewIssueSummaryProjectStreamTypeDesc,
)
