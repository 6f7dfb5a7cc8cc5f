"""Turn raw backend text into canonical, key-unique BibTeX records."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from errors import NoEntriesFoundError, ParseError
from models import BibEntry, RawResult, ResultSet

LOGGER = logging.getLogger(__name__)

# A record starts with @type{ or @type( at the beginning of a line.
_RECORD_START = re.compile(r"^[ \t]*@(?P<type>[A-Za-z][\w-]*)[ \t]*(?P<open>[{(])", re.MULTILINE)

_NON_RECORD_TYPES: frozenset[str] = frozenset({"comment", "preamble", "string"})

KNOWN_ENTRY_TYPES: frozenset[str] = frozenset({
    "article",
    "book",
    "booklet",
    "collection",
    "conference",
    "inbook",
    "incollection",
    "inproceedings",
    "manual",
    "mastersthesis",
    "misc",
    "online",
    "phdthesis",
    "proceedings",
    "report",
    "techreport",
    "thesis",
    "unpublished",
})

_CLOSE_FOR = {"{": "}", "(": ")"}


@dataclass(frozen=True, slots=True)
class ParseResult:
    """Records found in one blob plus how many malformed ones were skipped."""

    entries: list[BibEntry]
    skipped: int


def parse_entries(text: str) -> ParseResult:
    """Scan ``text`` for records without ever failing on the whole blob.

    A record runs from its ``@type{`` line to the matching closing delimiter;
    the search for that delimiter stops at the next record start, so one
    unbalanced record cannot swallow its neighbours.
    """
    starts = list(_RECORD_START.finditer(text))
    entries: list[BibEntry] = []
    skipped = 0

    for index, match in enumerate(starts):
        entry_type = match.group("type").lower()
        if entry_type in _NON_RECORD_TYPES:
            continue

        region_end = starts[index + 1].start() if index + 1 < len(starts) else len(text)
        record_start = match.start() + match.group(0).index("@")
        try:
            entries.append(_parse_record(text, record_start, match, region_end, entry_type))
        except ParseError as exc:
            skipped += 1
            LOGGER.warning("Skipping malformed record at offset=%s: %s", record_start, exc)

    return ParseResult(entries=entries, skipped=skipped)


def _parse_record(
    text: str,
    record_start: int,
    match: re.Match[str],
    region_end: int,
    entry_type: str,
) -> BibEntry:
    open_delim = match.group("open")
    close_delim = _CLOSE_FOR[open_delim]
    body_start = match.end()

    end = _find_closing(text, body_start, region_end, open_delim, close_delim)
    if end is None:
        raise ParseError(f"unterminated @{entry_type} record")

    comma = text.find(",", body_start, end)
    if comma == -1:
        raise ParseError(f"@{entry_type} record has no citation key")
    key = text[body_start:comma].strip()
    if not key or any(ch.isspace() for ch in key):
        raise ParseError(f"@{entry_type} record has an invalid citation key {key!r}")

    return BibEntry(
        key=key,
        raw_text=text[record_start : end + 1],
        entry_type=entry_type if entry_type in KNOWN_ENTRY_TYPES else None,
    )


def _find_closing(text: str, start: int, stop: int, open_delim: str, close_delim: str) -> int | None:
    """Index of the delimiter closing the record body, honouring nested braces."""
    depth = 1
    # Inside a parenthesised record only the outer delimiter is a parenthesis;
    # field values still nest with braces.
    brace_depth = 0
    for pos in range(start, stop):
        char = text[pos]
        if open_delim == "{":
            if char == "{":
                depth += 1
            elif char == "}":
                depth -= 1
                if depth == 0:
                    return pos
        else:
            if char == "{":
                brace_depth += 1
            elif char == "}":
                brace_depth = max(brace_depth - 1, 0)
            elif char == close_delim and brace_depth == 0:
                return pos
    return None


def extract_entries(raw_results: list[RawResult]) -> ResultSet:
    """Merge every backend's records into one ordered, key-unique result set.

    Results are merged in list order and the first record seen for a key
    wins; later records with the same key are dropped, not merged.

    Raises:
        NoEntriesFoundError: when no backend yielded a usable record.
    """
    entries_by_key: dict[str, BibEntry] = {}
    skipped_total = 0
    duplicates = 0

    for raw in raw_results:
        parsed = parse_entries(raw.text)
        skipped_total += parsed.skipped
        new_keys = 0
        for entry in parsed.entries:
            if entry.key in entries_by_key:
                duplicates += 1
                LOGGER.debug("Dropping duplicate key=%s from backend=%s", entry.key, raw.backend_id)
                continue
            entries_by_key[entry.key] = entry
            new_keys += 1

        LOGGER.info(
            "Extracted backend=%s records=%s new_unique=%s malformed=%s",
            raw.backend_id,
            len(parsed.entries),
            new_keys,
            parsed.skipped,
        )

    if not entries_by_key:
        raise NoEntriesFoundError("No bibliography entries found for this query")

    LOGGER.info(
        "Extraction complete: unique=%s duplicates_dropped=%s malformed=%s",
        len(entries_by_key),
        duplicates,
        skipped_total,
    )
    return tuple(entries_by_key.values())
