"""Message Formatting: pure functions producing chat text for notices and backlog pages.

Invariants:
    - All functions are pure (no IO, no async)
    - Backlog pages use Telegram legacy Markdown; user-provided text is escaped
    - Every Notice has exactly one text

Design Decisions:
    - Plain f-strings over a template engine: a handful of short messages
"""

from backlog_bot.core.domain_types import (
    BacklogParams, ChoiceField, Issue, Notice,
)

EMPTY_PAGE_TEXT = "No issues to display"
PARSE_MODE = "Markdown"

_MARKDOWN_SPECIALS = ("_", "*", "`", "[")

_NOTICES: dict[Notice, str] = {
    Notice.GREETING: (
        "Hello{name}! I can show the team backlog and file new issues.\n"
        "/login - sign in to YouTrack\n"
        "/backlog - browse and vote for backlog issues\n"
        "/new_issue - create an issue"
    ),
    Notice.ASK_SUMMARY: "Send the summary of the new issue, or /cancel.",
    Notice.ASK_DESCRIPTION: "Send the issue description.",
    Notice.ASK_SAVE: "Send /save to create the issue or /cancel to drop it.",
    Notice.CANCELLED: "Issue creation cancelled.",
    Notice.STOPPED: "Stopped browsing the backlog.",
}

_CHOICE_PROMPTS: dict[ChoiceField, str] = {
    ChoiceField.PROJECT: "Choose the project:",
    ChoiceField.STREAM: "Choose the stream:",
    ChoiceField.TYPE: "Choose the issue type:",
}


def markdown_escape(text: str) -> str:
    """Escape legacy-Markdown control characters."""
    for c in _MARKDOWN_SPECIALS:
        text = text.replace(c, f"\\{c}")
    return text


def notice_text(notice: Notice, first_name: str = "") -> str:
    name = f", {first_name}" if first_name else ""
    return _NOTICES[notice].format(name=name)


def choice_prompt_text(field: ChoiceField, has_options: bool = True) -> str:
    if not has_options:
        return f"No values available for {field.value}. Send /cancel to stop."
    return _CHOICE_PROMPTS[field]


def issue_url(youtrack_url: str, id_readable: str) -> str:
    return f"{youtrack_url.rstrip('/')}/issue/{id_readable}"


def backlog_page_text(
    issues: list[Issue], params: BacklogParams, youtrack_url: str,
) -> str:
    """Markdown list of one backlog page, numbered from params.skip + 1."""
    if not issues:
        return EMPTY_PAGE_TEXT
    lines = [f"*Backlog* ({params.skip + 1}-{params.skip + len(issues)})", ""]
    for n, issue in enumerate(issues, start=params.skip + 1):
        star = " \U0001F31F" if issue.has_vote else ""
        lines.append(
            f"{n}. [{markdown_escape(issue.id_readable)}]"
            f"({issue_url(youtrack_url, issue.id_readable)}) "
            f"{markdown_escape(issue.summary)} (votes: {issue.votes}){star}"
        )
    return "\n".join(lines)


def login_prompt_text() -> str:
    return "Open the link below to sign in to YouTrack."


def issue_created_text(id_readable: str, youtrack_url: str) -> str:
    return f"Issue [{markdown_escape(id_readable)}]({issue_url(youtrack_url, id_readable)}) created."
