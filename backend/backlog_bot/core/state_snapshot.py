"""State Snapshot: serialization / deserialization boundary for persisted sessions.

Invariants:
    - serialize_state produces compact JSON with sorted keys: serialize ->
      deserialize -> serialize is byte-identical
    - deserialize_state raises CorruptSessionRecordError for ANY unreadable input
      (bad JSON, unknown kind, missing or mistyped fields)
    - ErrorState is never serialized (ValueError: programmer error)
    - Record key is "state:{user_id}"

Design Decisions:
    - Tagged variant under "kind": one explicit (state class, tag) table
    - Nested refs flattened to plain dicts (no custom encoder needed)
"""

import json
from dataclasses import asdict, fields

from backlog_bot.core.domain_types import FieldValue, ProjectRef
from backlog_bot.core.errors import CorruptSessionRecordError
from backlog_bot.core.states import (
    ErrorState, Idle, InBacklog, NewIssue, NewIssueSummary,
    NewIssueSummaryProject, NewIssueSummaryProjectStream,
    NewIssueSummaryProjectStreamType, NewIssueSummaryProjectStreamTypeDesc,
    State,
)

_KINDS: dict[type, str] = {
    Idle: "idle",
    InBacklog: "in_backlog",
    NewIssue: "new_issue",
    NewIssueSummary: "new_issue_summary",
    NewIssueSummaryProject: "new_issue_summary_project",
    NewIssueSummaryProjectStream: "new_issue_summary_project_stream",
    NewIssueSummaryProjectStreamType: "new_issue_summary_project_stream_type",
    NewIssueSummaryProjectStreamTypeDesc: "new_issue_summary_project_stream_type_desc",
}
_CLASSES: dict[str, type] = {kind: cls for cls, kind in _KINDS.items()}

# Field name -> decoder for nested values; everything else must be a plain type
_NESTED = {
    "project": lambda d: ProjectRef(id=_str(d, "id"), name=_str(d, "name")),
    "stream": lambda d: _field_value(d),
    "issue_type": lambda d: _field_value(d),
}
_INT_FIELDS = frozenset({"top", "skip"})


def state_key(user_id: int) -> str:
    return f"state:{user_id}"


def serialize_state(state: State) -> str:
    """State -> compact JSON. Pure, no IO."""
    if isinstance(state, ErrorState):
        raise ValueError("ErrorState is a sentinel and must never be persisted")
    kind = _KINDS.get(type(state))
    if kind is None:
        raise ValueError(f"Not a session state: {state!r}")
    return json.dumps(
        {"kind": kind, **asdict(state)},
        separators=(",", ":"), sort_keys=True, ensure_ascii=False,
    )


def deserialize_state(raw: str | bytes) -> State:
    """Compact JSON -> State. Pure, no IO. Raises CorruptSessionRecordError."""
    try:
        data = json.loads(raw)
    except (ValueError, TypeError, RecursionError) as e:
        raise CorruptSessionRecordError(f"not valid JSON ({e})")
    if not isinstance(data, dict):
        raise CorruptSessionRecordError("record is not an object")

    kind = data.get("kind")
    cls = _CLASSES.get(kind) if isinstance(kind, str) else None
    if cls is None:
        raise CorruptSessionRecordError(f"unknown state kind {data.get('kind')!r}")

    values = {}
    try:
        for f in fields(cls):
            values[f.name] = _decode_field(f.name, data[f.name])
        return cls(**values)
    except (KeyError, TypeError, ValueError) as e:
        raise CorruptSessionRecordError(f"bad {cls.__name__} fields ({e})")


def _decode_field(name: str, value: object) -> object:
    if name in _NESTED:
        if not isinstance(value, dict):
            raise TypeError(f"{name} must be an object")
        return _NESTED[name](value)
    if name in _INT_FIELDS:
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError(f"{name} must be an int")
        return value
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string")
    return value


def _field_value(d: dict) -> FieldValue:
    return FieldValue(
        field_id=_str(d, "field_id"),
        field_name=_str(d, "field_name"),
        value=_str(d, "value"),
    )


def _str(d: dict, key: str) -> str:
    value = d[key]
    if not isinstance(value, str):
        raise TypeError(f"{key} must be a string")
    return value
