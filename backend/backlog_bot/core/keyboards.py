"""Keyboards: inline and reply keyboards as Telegram reply_markup dicts.

Invariants:
    - Inline buttons carry only tokens produced by the injected codec
    - A button whose token exceeds the size ceiling is omitted (logged), never sent
    - Backlog control row: stop, prev when defined, next when the page is non-empty
    - Vote buttons in rows of VOTE_ROW_SIZE, starred when the user already voted

Design Decisions:
    - Markup returned as plain dicts in Bot API shape: the transport sends them as-is
"""

import logging

from backlog_bot.core.callback_codec import TokenCodec
from backlog_bot.core.commands import (
    BacklogNextPayload, BacklogPrevPayload, BacklogStopPayload,
    CallbackPayload, VoteForIssuePayload,
)
from backlog_bot.core.domain_types import BacklogParams, Choice, Issue

logger = logging.getLogger(__name__)

VOTE_ROW_SIZE = 3
CHOICE_ROW_SIZE = 2
STAR = "\U0001F31F"


def button_label(payload: CallbackPayload) -> str:
    """Visible text of an inline button."""
    if isinstance(payload, BacklogStopPayload):
        return "stop"
    if isinstance(payload, BacklogNextPayload):
        return "next"
    if isinstance(payload, BacklogPrevPayload):
        return "prev"
    if isinstance(payload, VoteForIssuePayload):
        return f"{STAR} {payload.issue_id}" if payload.has_vote else payload.issue_id
    raise TypeError(f"Payload cannot be rendered as a button: {payload!r}")


def inline_button(payload: CallbackPayload, codec: TokenCodec) -> dict | None:
    label = button_label(payload)
    encoded = codec.encode(payload)
    if not encoded.ok:
        logger.warning(
            "Callback token too large (%d bytes), dropping button %r",
            encoded.size, label,
        )
        return None
    return {"text": label, "callback_data": encoded.token}


def _rows(buttons: list[dict], size: int) -> list[list[dict]]:
    return [buttons[i:i + size] for i in range(0, len(buttons), size)]


def backlog_keyboard(
    issues: list[Issue], params: BacklogParams, codec: TokenCodec,
) -> dict:
    """Vote buttons for each issue plus the paging control row."""
    votes = [
        inline_button(VoteForIssuePayload(issue.id_readable, issue.has_vote), codec)
        for issue in issues
    ]
    rows = _rows([b for b in votes if b], VOTE_ROW_SIZE)

    controls: list[CallbackPayload] = [BacklogStopPayload()]
    prev = params.prev()
    if prev is not None:
        controls.append(BacklogPrevPayload(prev))
    if issues:
        controls.append(BacklogNextPayload(params.next()))
    control_row = [b for b in (inline_button(p, codec) for p in controls) if b]
    if control_row:
        rows.append(control_row)
    return {"inline_keyboard": rows}


def empty_inline_keyboard() -> dict:
    return {"inline_keyboard": []}


def choice_keyboard(choices: tuple[Choice, ...]) -> dict:
    """One-time reply keyboard offering option names."""
    buttons = [{"text": c.name} for c in choices]
    return {
        "keyboard": _rows(buttons, CHOICE_ROW_SIZE),
        "one_time_keyboard": True,
        "resize_keyboard": True,
    }


def remove_keyboard() -> dict:
    return {"remove_keyboard": True}


def login_keyboard(auth_url: str) -> dict:
    return {"inline_keyboard": [[{"text": "Login", "url": auth_url}]]}
