"""Line-oriented terminal surface for a selection session."""

from __future__ import annotations

import re
import sys
from pathlib import Path
from typing import Callable, TextIO

from models import BibEntry
from session import Command, CommandKind, Outcome, SelectionSession

HELP_TEXT = """Commands:
  n / p        next / previous entry
  m            mark or unmark the current entry
  f            filter the list with a regular expression
  k            jump straight to a citation key
  RET / a      accept marked entries (or the current one)
  A            accept every entry in the list
  e / E        append marked / unmarked entries to a bibliography file
  q            quit without selecting
  ?            this help"""

# Keys that map directly to a command; f and k need an argument.
KEY_COMMANDS: dict[str, CommandKind] = {
    "n": CommandKind.NEXT,
    "p": CommandKind.PREVIOUS,
    "m": CommandKind.TOGGLE_MARK,
    "": CommandKind.ACCEPT_MARKED,
    "a": CommandKind.ACCEPT_MARKED,
    "A": CommandKind.ACCEPT_ALL,
    "e": CommandKind.APPEND_MARKED,
    "E": CommandKind.APPEND_UNMARKED,
    "q": CommandKind.QUIT,
}

_PREVIEW_LINES = 6


def stderr_input(prompt: str) -> str:
    """Like ``input`` but prompts on stderr, keeping stdout for selected records."""
    sys.stderr.write(prompt)
    sys.stderr.flush()
    return input()


def first_line(entry: BibEntry) -> str:
    title = _field(entry.raw_text, "title")
    author = _field(entry.raw_text, "author")
    parts = [entry.key]
    if author:
        parts.append(author)
    if title:
        parts.append(f'"{title}"')
    return " - ".join(parts)


def _field(raw_text: str, name: str) -> str | None:
    match = re.search(rf"^\s*{name}\s*=\s*(.+)$", raw_text, re.IGNORECASE | re.MULTILINE)
    if match is None:
        return None
    value = match.group(1).rstrip(",").strip().strip("{}\"").strip()
    return value or None


def render(session: SelectionSession) -> str:
    state = session.state
    lines = []
    filters = " > ".join(state.filter_history)
    header = f"{len(state.result_set)} entries, {len(state.marked)} marked"
    if filters:
        header += f" (filters: {filters})"
    lines.append(header)
    for index, entry in enumerate(state.result_set):
        pointer = ">" if index == state.cursor else " "
        mark = "*" if entry.key in state.marked else " "
        lines.append(f"{pointer}{mark} {index + 1:3d}. {first_line(entry)}")

    current = state.current()
    if current is not None:
        lines.append("")
        preview = current.raw_text.splitlines()
        lines.extend(preview[:_PREVIEW_LINES])
        if len(preview) > _PREVIEW_LINES:
            lines.append("  ...")
    if session.message:
        lines.append("")
        lines.append(f"[{session.message}]")
    return "\n".join(lines)


def prompt_line(question: str, reader: Callable[[str], str] = stderr_input) -> str | None:
    try:
        return reader(question)
    except EOFError:
        return None


def prompt_path(question: str, default: Path | None, reader: Callable[[str], str] = stderr_input) -> str | None:
    suffix = f" [{default}]" if default is not None else ""
    return prompt_line(f"{question}{suffix}: ", reader)


def run_session(
    session: SelectionSession,
    reader: Callable[[str], str] = stderr_input,
    out: TextIO = sys.stderr,
) -> Outcome:
    """Read keys until the session is done.

    ``NoMatchesError`` from a first filter propagates to the caller.
    End of input counts as quit.
    """
    while not session.done:
        print(render(session), file=out)
        key = prompt_line("command (? for help): ", reader)
        if key is None:
            session.handle(Command(CommandKind.QUIT))
            break
        key = key.strip()

        if key == "?":
            session.message = None
            print(HELP_TEXT, file=out)
            continue
        if key == "f":
            session.begin_filter()
            pattern = prompt_line("filter regexp: ", reader)
            if pattern is None or not pattern.strip():
                session.cancel_filter()
                continue
            session.handle(Command(CommandKind.FILTER, pattern))
            continue
        if key.startswith("k"):
            text = key[1:].strip() or prompt_line("citation key: ", reader)
            session.handle(Command(CommandKind.SELECT_KEY, text or ""))
            continue

        kind = KEY_COMMANDS.get(key)
        if kind is None:
            session.message = f"Unknown command {key!r}; ? for help"
            continue
        session.handle(Command(kind))

    outcome = session.outcome
    if outcome is None:
        raise RuntimeError("Session ended without an outcome")
    return outcome
