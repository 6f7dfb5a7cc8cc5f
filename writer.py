"""Append committed entries to a plain-text bibliography file."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Callable, Iterable

from errors import WriteError
from models import BibEntry

LOGGER = logging.getLogger(__name__)

BIB_SUFFIX = ".bib"

_BIB_COMMANDS = re.compile(r"\\(?:bibliography|addbibresource|addglobalbib)\s*(?:\[[^\]]*\])?\s*\{([^}]*)\}")


def append_entries(entries: Iterable[BibEntry], target: Path) -> Path:
    """Append each entry's raw text, blank-line separated, plus a trailing blank line.

    Existing content is never rewritten or deduplicated. If the file does not
    end with a newline one is written first so the new block starts on its
    own line.

    Raises:
        WriteError: if the file cannot be opened or written.
    """
    blocks = [entry.raw_text.strip("\n") for entry in entries]
    if not blocks:
        raise WriteError("No entries to append")

    target = Path(target).expanduser()
    payload = "\n\n".join(blocks) + "\n\n"

    try:
        if target.exists() and target.stat().st_size > 0 and not _ends_with_newline(target):
            payload = "\n" + payload
        with target.open("a", encoding="utf-8") as fh:
            fh.write(payload)
    except OSError as exc:
        raise WriteError(f"Cannot write to {target}: {exc}") from exc

    LOGGER.info("Appended entries=%s to %s", len(blocks), target)
    return target


def _ends_with_newline(path: Path) -> bool:
    with path.open("rb") as fh:
        fh.seek(-1, 2)
        return fh.read(1) == b"\n"


def choose_target(prompt: Callable[[str, Path | None], str | None], default: Path | None) -> Path:
    """Ask the calling context for a destination path.

    ``prompt`` receives a question and the default and returns the answer;
    ``None`` or an empty answer accepts the default.

    Raises:
        WriteError: when the user declines and there is no default.
    """
    answer = prompt("Append to bibliography file", default)
    if answer is not None and answer.strip():
        return Path(answer.strip()).expanduser()
    if default is not None:
        return default
    raise WriteError("No bibliography file chosen")


def discover_default_bibliography(document: Path | None) -> Path | None:
    """Find the bibliography a document uses.

    A ``.bib`` document is its own bibliography. For a LaTeX document the
    first existing file named by ``\\bibliography{...}`` or
    ``\\addbibresource{...}`` wins, resolved relative to the document.
    """
    if document is None:
        return None
    document = Path(document).expanduser()
    if document.suffix.lower() == BIB_SUFFIX:
        return document
    if not document.is_file():
        return None

    try:
        source = document.read_text(encoding="utf-8", errors="replace")
    except OSError as exc:
        LOGGER.warning("Cannot read %s for bibliography discovery: %s", document, exc)
        return None

    for names in _BIB_COMMANDS.findall(_strip_tex_comments(source)):
        for name in names.split(","):
            name = name.strip()
            if not name:
                continue
            candidate = document.parent / name
            if candidate.suffix.lower() != BIB_SUFFIX:
                candidate = candidate.with_name(candidate.name + BIB_SUFFIX)
            if candidate.is_file():
                LOGGER.debug("Discovered bibliography %s from %s", candidate, document)
                return candidate
    return None


def _strip_tex_comments(source: str) -> str:
    return re.sub(r"(?<!\\)%.*", "", source)
