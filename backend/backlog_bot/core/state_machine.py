"""State Machine Engine: pure transition function (State, Command) -> (State, [Intent]).

Invariants:
    - transition() is total: every (state, command) pair returns a TransitionResult,
      never raises; pairs with no rule return ERROR with no intents
    - No IO: option sets the wizard validates against are passed in by the caller
      (see required_options)
    - The NewIssue* chain only ever adds fields; Cancel/Stop return to Idle
    - Invalid callbacks clear the keyboard they came from and keep the state

Design Decisions:
    - Explicit rule table keyed by (state class, command class): every rule
      visible in one place, no getattr magic
    - Unmatched pairs (Idle + Save, InBacklog + Text, ...) yield ERROR; the
      dispatcher logs them and keeps the prior state, so they act as no-ops
"""

from collections.abc import Callable
from dataclasses import dataclass, field

from backlog_bot.core.commands import (
    Backlog, BacklogNext, BacklogPrev, BacklogStop, Cancel, Command, Invalid,
    Login, NewIssueCmd, Save, Start, Stop, Text, VoteForIssue,
)
from backlog_bot.core.domain_types import (
    BacklogParams, ChoiceField, FieldValue, Notice, OptionQuery, OptionSet, ProjectRef,
)
from backlog_bot.core.intents import (
    ClearKeyboard, CreateIssue, Intent, Notify, PromptChoice, SendAuthLink,
    ShowBacklogPage, ToggleVote,
)
from backlog_bot.core.states import (
    ERROR, NEW_ISSUE_STATES, ErrorState, Idle, InBacklog, NewIssue,
    NewIssueSummary, NewIssueSummaryProject, NewIssueSummaryProjectStream,
    NewIssueSummaryProjectStreamType, NewIssueSummaryProjectStreamTypeDesc,
    State,
)


@dataclass(frozen=True)
class TransitionResult:
    state: State
    intents: tuple[Intent, ...] = field(default_factory=tuple)

    @property
    def matched(self) -> bool:
        return not isinstance(self.state, ErrorState)

    def resolve(self, prior: State) -> State:
        """State to persist: the prior state when no rule matched."""
        return prior if isinstance(self.state, ErrorState) else self.state


Rule = Callable[[State, Command, OptionSet | None], TransitionResult]


def _stay(state: State, *intents: Intent) -> TransitionResult:
    return TransitionResult(state, tuple(intents))


# ─── Idle ────────────────────────────────────────────────────────

def _idle_backlog(state, cmd: Backlog, _options) -> TransitionResult:
    o = cmd.origin
    return TransitionResult(
        InBacklog(cmd.params.top, cmd.params.skip),
        (ShowBacklogPage(o.chat_id, o.user_id, cmd.params),),
    )


def _idle_start(state, cmd: Start, _options) -> TransitionResult:
    o = cmd.origin
    return _stay(state, Notify(o.chat_id, Notice.GREETING, o.first_name))


def _idle_login(state, cmd: Login, _options) -> TransitionResult:
    o = cmd.origin
    return _stay(state, SendAuthLink(o.chat_id, o.user_id))


def _idle_new_issue(state, cmd: NewIssueCmd, _options) -> TransitionResult:
    return TransitionResult(
        NewIssue(), (Notify(cmd.origin.chat_id, Notice.ASK_SUMMARY),),
    )


# ─── InBacklog ───────────────────────────────────────────────────

def _backlog_stop(state, cmd: BacklogStop, _options) -> TransitionResult:
    ref = cmd.origin.message_ref
    return TransitionResult(Idle(), (ClearKeyboard(ref),) if ref else ())


def _backlog_page(state, cmd: BacklogNext | BacklogPrev, _options) -> TransitionResult:
    o = cmd.origin
    return TransitionResult(
        InBacklog(cmd.params.top, cmd.params.skip),
        (ShowBacklogPage(o.chat_id, o.user_id, cmd.params, o.message_ref),),
    )


def _backlog_vote(state: InBacklog, cmd: VoteForIssue, _options) -> TransitionResult:
    o = cmd.origin
    page = BacklogParams(state.top, state.skip)
    return _stay(
        state,
        ToggleVote(o.chat_id, o.user_id, cmd.issue_id, cmd.has_vote),
        ShowBacklogPage(o.chat_id, o.user_id, page, o.message_ref),
    )


def _backlog_leave(state, cmd: Stop, _options) -> TransitionResult:
    return TransitionResult(Idle(), (Notify(cmd.origin.chat_id, Notice.STOPPED),))


# ─── NewIssue wizard ─────────────────────────────────────────────

def _wizard_cancel(state, cmd: Cancel | Stop, _options) -> TransitionResult:
    return TransitionResult(Idle(), (Notify(cmd.origin.chat_id, Notice.CANCELLED),))


def _prompt(cmd: Command, query: OptionQuery) -> PromptChoice:
    return PromptChoice(cmd.origin.chat_id, cmd.origin.user_id, query)


def _summary_text(state: NewIssue, cmd: Text, _options) -> TransitionResult:
    summary = cmd.text.strip()
    if not summary:
        return _stay(state)
    return TransitionResult(
        NewIssueSummary(summary), (_prompt(cmd, OptionQuery(ChoiceField.PROJECT)),),
    )


def _project_text(state: NewIssueSummary, cmd: Text, options) -> TransitionResult:
    choice = options.match(cmd.text) if options else None
    if choice is None:
        return _stay(state)
    project = ProjectRef(id=choice.id, name=choice.name)
    return TransitionResult(
        NewIssueSummaryProject(state.summary, project),
        (_prompt(cmd, OptionQuery(ChoiceField.STREAM, project.id)),),
    )


def _stream_text(state: NewIssueSummaryProject, cmd: Text, options) -> TransitionResult:
    choice = options.match(cmd.text) if options else None
    if choice is None:
        return _stay(state)
    stream = FieldValue(options.field_id, options.field_name, choice.name)
    return TransitionResult(
        NewIssueSummaryProjectStream(state.summary, state.project, stream),
        (_prompt(cmd, OptionQuery(ChoiceField.TYPE, state.project.id)),),
    )


def _type_text(state: NewIssueSummaryProjectStream, cmd: Text, options) -> TransitionResult:
    choice = options.match(cmd.text) if options else None
    if choice is None:
        return _stay(state)
    issue_type = FieldValue(options.field_id, options.field_name, choice.name)
    return TransitionResult(
        NewIssueSummaryProjectStreamType(
            state.summary, state.project, state.stream, issue_type,
        ),
        (Notify(cmd.origin.chat_id, Notice.ASK_DESCRIPTION),),
    )


def _description_text(
    state: NewIssueSummaryProjectStreamType, cmd: Text, _options,
) -> TransitionResult:
    description = cmd.text.strip()
    if not description:
        return _stay(state)
    return TransitionResult(
        NewIssueSummaryProjectStreamTypeDesc(
            state.summary, state.project, state.stream, state.issue_type, description,
        ),
        (Notify(cmd.origin.chat_id, Notice.ASK_SAVE),),
    )


def _save(state: NewIssueSummaryProjectStreamTypeDesc, cmd: Save, _options) -> TransitionResult:
    o = cmd.origin
    return TransitionResult(Idle(), (CreateIssue(o.chat_id, o.user_id, state.to_draft()),))


# ─── Rule table ──────────────────────────────────────────────────

_RULES: dict[tuple[type, type], Rule] = {
    # Idle
    (Idle, Backlog): _idle_backlog,
    (Idle, Start): _idle_start,
    (Idle, Login): _idle_login,
    (Idle, NewIssueCmd): _idle_new_issue,

    # InBacklog
    (InBacklog, BacklogStop): _backlog_stop,
    (InBacklog, BacklogNext): _backlog_page,
    (InBacklog, BacklogPrev): _backlog_page,
    (InBacklog, VoteForIssue): _backlog_vote,
    (InBacklog, Stop): _backlog_leave,

    # NewIssue wizard: one Text rule per step, Save only at the end
    (NewIssue, Text): _summary_text,
    (NewIssueSummary, Text): _project_text,
    (NewIssueSummaryProject, Text): _stream_text,
    (NewIssueSummaryProjectStream, Text): _type_text,
    (NewIssueSummaryProjectStreamType, Text): _description_text,
    (NewIssueSummaryProjectStreamTypeDesc, Save): _save,
}
for _step in NEW_ISSUE_STATES:
    _RULES[(_step, Cancel)] = _wizard_cancel
    _RULES[(_step, Stop)] = _wizard_cancel


def transition(
    state: State, command: Command, options: OptionSet | None = None,
) -> TransitionResult:
    """Apply one command. Pure: returns the next state and the intents to run."""
    if isinstance(command, Invalid):
        ref = command.origin.message_ref
        if isinstance(state, ErrorState):
            return TransitionResult(ERROR)
        return _stay(state, ClearKeyboard(ref)) if ref else _stay(state)

    rule = _RULES.get((type(state), type(command)))
    if rule is None:
        return TransitionResult(ERROR)
    return rule(state, command, options)


def required_options(state: State) -> OptionQuery | None:
    """Option set a Text command must be checked against in this state."""
    if isinstance(state, NewIssueSummary):
        return OptionQuery(ChoiceField.PROJECT)
    if isinstance(state, NewIssueSummaryProject):
        return OptionQuery(ChoiceField.STREAM, state.project.id)
    if isinstance(state, NewIssueSummaryProjectStream):
        return OptionQuery(ChoiceField.TYPE, state.project.id)
    return None
