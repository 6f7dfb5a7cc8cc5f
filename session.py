"""Interactive selection over a result set: browse, filter, mark, commit.

The state machine is the pure function ``apply_command``; ``SelectionSession``
owns one ``SelectionState``, feeds it commands one at a time and performs the
only side effect a command can request (appending to a bibliography file).
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path
from typing import Callable

from errors import NoMatchesError, WriteError
from models import BibEntry, ResultSet

LOGGER = logging.getLogger(__name__)


class Phase(Enum):
    BROWSING = "browsing"
    FILTERING = "filtering"
    DONE = "done"


class CommandKind(Enum):
    NEXT = "next"
    PREVIOUS = "previous"
    TOGGLE_MARK = "toggle_mark"
    FILTER = "filter"
    ACCEPT_ALL = "accept_all"
    ACCEPT_MARKED = "accept_marked"
    APPEND_MARKED = "append_marked"
    APPEND_UNMARKED = "append_unmarked"
    QUIT = "quit"
    SELECT_KEY = "select_key"


class OutcomeKind(Enum):
    SELECTED = "selected"
    APPENDED = "appended"
    ABORTED = "aborted"


@dataclass(frozen=True, slots=True)
class Command:
    kind: CommandKind
    argument: str | None = None


@dataclass(frozen=True, slots=True)
class SelectionState:
    """Everything the session knows; ``marked`` only holds keys in ``result_set``."""

    result_set: ResultSet
    marked: frozenset[str] = frozenset()
    cursor: int = 0
    filter_history: tuple[str, ...] = ()

    @classmethod
    def fresh(cls, result_set: ResultSet) -> SelectionState:
        return cls(result_set=tuple(result_set))

    def current(self) -> BibEntry | None:
        if not self.result_set:
            return None
        return self.result_set[self.cursor]

    def marked_entries(self) -> list[BibEntry]:
        return [entry for entry in self.result_set if entry.key in self.marked]

    def unmarked_entries(self) -> list[BibEntry]:
        return [entry for entry in self.result_set if entry.key not in self.marked]


@dataclass(frozen=True, slots=True)
class Outcome:
    """How a session ended."""

    kind: OutcomeKind
    entries: tuple[BibEntry, ...] = ()
    message: str = ""
    target: Path | None = None


@dataclass(frozen=True, slots=True)
class AppendRequest:
    entries: tuple[BibEntry, ...]
    description: str


@dataclass(frozen=True, slots=True)
class Transition:
    state: SelectionState
    outcome: Outcome | None = None
    message: str | None = None
    effect: AppendRequest | None = None


def apply_command(state: SelectionState, command: Command) -> Transition:
    """Compute the next state for one command.

    Never mutates ``state``. Raises ``NoMatchesError`` only when the very
    first filter on a fresh result set matches nothing.
    """
    handler = _HANDLERS[command.kind]
    return handler(state, command.argument)


def _move(state: SelectionState, step: int) -> Transition:
    if not state.result_set:
        return Transition(state=state, message="No entries")
    cursor = min(max(state.cursor + step, 0), len(state.result_set) - 1)
    if cursor == state.cursor:
        edge = "last" if step > 0 else "first"
        return Transition(state=state, message=f"Already at the {edge} entry")
    return Transition(state=replace(state, cursor=cursor))


def _next(state: SelectionState, _argument: str | None) -> Transition:
    return _move(state, 1)


def _previous(state: SelectionState, _argument: str | None) -> Transition:
    return _move(state, -1)


def _toggle_mark(state: SelectionState, _argument: str | None) -> Transition:
    entry = state.current()
    if entry is None:
        return Transition(state=state, message="No entry to mark")
    if entry.key in state.marked:
        return Transition(state=replace(state, marked=state.marked - {entry.key}))
    return Transition(state=replace(state, marked=state.marked | {entry.key}))


def _filter(state: SelectionState, pattern: str | None) -> Transition:
    if pattern is None or not pattern.strip():
        return Transition(state=state, message="Empty filter ignored")
    try:
        regex = re.compile(pattern, re.IGNORECASE)
    except re.error as exc:
        return Transition(state=state, message=f"Invalid regular expression {pattern!r}: {exc}")

    narrowed = tuple(entry for entry in state.result_set if regex.search(entry.raw_text))
    if not narrowed:
        if not state.filter_history:
            raise NoMatchesError(f"No entries match {pattern!r}")
        return Transition(state=state, message=f"No entries match {pattern!r}; filter not applied")

    keys = {entry.key for entry in narrowed}
    new_state = SelectionState(
        result_set=narrowed,
        marked=frozenset(key for key in state.marked if key in keys),
        cursor=0,
        filter_history=state.filter_history + (pattern,),
    )
    return Transition(
        state=new_state,
        message=f"{len(narrowed)} of {len(state.result_set)} entries match {pattern!r}",
    )


def _accept_all(state: SelectionState, _argument: str | None) -> Transition:
    return Transition(
        state=state,
        outcome=Outcome(kind=OutcomeKind.SELECTED, entries=state.result_set),
    )


def _marked_or_current(state: SelectionState) -> tuple[BibEntry, ...]:
    """Marked entries in order, or the entry under the cursor if none is marked.

    The implicit mark on the cursor entry is never written back to the state.
    """
    if state.marked:
        return tuple(state.marked_entries())
    entry = state.current()
    return (entry,) if entry is not None else ()


def _accept_marked(state: SelectionState, _argument: str | None) -> Transition:
    return Transition(
        state=state,
        outcome=Outcome(kind=OutcomeKind.SELECTED, entries=_marked_or_current(state)),
    )


def _append_marked(state: SelectionState, _argument: str | None) -> Transition:
    entries = _marked_or_current(state)
    if not entries:
        return Transition(state=state, message="Nothing to append")
    return Transition(state=state, effect=AppendRequest(entries=entries, description="marked"))


def _append_unmarked(state: SelectionState, _argument: str | None) -> Transition:
    entries = tuple(state.unmarked_entries())
    if not entries:
        return Transition(state=state, message="Every entry is marked; nothing unmarked to append")
    return Transition(state=state, effect=AppendRequest(entries=entries, description="unmarked"))


def _quit(state: SelectionState, _argument: str | None) -> Transition:
    return Transition(state=state, outcome=Outcome(kind=OutcomeKind.ABORTED, message="Aborted"))


def complete_key(result_set: ResultSet, text: str) -> list[BibEntry]:
    """Entries a typed key could mean: an exact match, else every prefix match."""
    text = text.strip()
    if not text:
        return []
    exact = [entry for entry in result_set if entry.key == text]
    if exact:
        return exact
    return [entry for entry in result_set if entry.key.startswith(text)]


def _select_key(state: SelectionState, text: str | None) -> Transition:
    candidates = complete_key(state.result_set, text or "")
    if len(candidates) == 1:
        return Transition(
            state=state,
            outcome=Outcome(kind=OutcomeKind.SELECTED, entries=(candidates[0],)),
        )
    if not candidates:
        return Transition(state=state, message=f"No key matches {text!r}")
    return Transition(state=state, message=f"{len(candidates)} keys match {text!r}; type more")


_HANDLERS: dict[CommandKind, Callable[[SelectionState, str | None], Transition]] = {
    CommandKind.NEXT: _next,
    CommandKind.PREVIOUS: _previous,
    CommandKind.TOGGLE_MARK: _toggle_mark,
    CommandKind.FILTER: _filter,
    CommandKind.ACCEPT_ALL: _accept_all,
    CommandKind.ACCEPT_MARKED: _accept_marked,
    CommandKind.APPEND_MARKED: _append_marked,
    CommandKind.APPEND_UNMARKED: _append_unmarked,
    CommandKind.QUIT: _quit,
    CommandKind.SELECT_KEY: _select_key,
}


AppendFn = Callable[[list[BibEntry]], Path]


@dataclass
class SelectionSession:
    """Drives one ``SelectionState`` from the first command to ``DONE``.

    Args:
        result_set: Entries from the extractor.
        append: Called with the entries of an append command; returns the
            file written or raises ``WriteError``. Choosing the path is the
            caller's concern.
    """

    result_set: ResultSet
    append: AppendFn
    state: SelectionState = field(init=False)
    phase: Phase = field(init=False, default=Phase.BROWSING)
    outcome: Outcome | None = field(init=False, default=None)
    message: str | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        self.state = SelectionState.fresh(self.result_set)

    @property
    def done(self) -> bool:
        return self.phase is Phase.DONE

    def begin_filter(self) -> None:
        """Enter the filtering phase while the caller reads a pattern."""
        if self.done:
            raise RuntimeError("Session already finished")
        self.phase = Phase.FILTERING

    def cancel_filter(self) -> None:
        if self.phase is Phase.FILTERING:
            self.phase = Phase.BROWSING
            self.message = "Filter cancelled"

    def handle(self, command: Command) -> Outcome | None:
        """Apply one command; returns the outcome once the session is done."""
        if self.done:
            raise RuntimeError("Session already finished")

        if command.kind is CommandKind.FILTER:
            self.phase = Phase.FILTERING
        try:
            transition = apply_command(self.state, command)
        finally:
            if self.phase is Phase.FILTERING:
                self.phase = Phase.BROWSING

        self.message = transition.message
        if transition.effect is not None:
            return self._perform_append(transition.effect, transition.state)

        self.state = transition.state
        if transition.outcome is not None:
            self._finish(transition.outcome)
        return self.outcome

    def _perform_append(self, request: AppendRequest, next_state: SelectionState) -> Outcome | None:
        try:
            target = self.append(list(request.entries))
        except WriteError as exc:
            LOGGER.warning("Append of %s entries failed: %s", request.description, exc)
            self.message = f"Not appended: {exc}"
            return None

        self.state = next_state
        count = len(request.entries)
        noun = "entry" if count == 1 else "entries"
        self._finish(
            Outcome(
                kind=OutcomeKind.APPENDED,
                entries=request.entries,
                message=f"Appended {count} {request.description} {noun} to {target}",
                target=target,
            )
        )
        return self.outcome

    def _finish(self, outcome: Outcome) -> None:
        self.phase = Phase.DONE
        self.outcome = outcome
        LOGGER.info("Session done: outcome=%s entries=%s", outcome.kind.value, len(outcome.entries))
