"""Shared typed models for retrieval, extraction and selection."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Callable

from errors import BibfetchError


@dataclass(frozen=True, slots=True)
class Query:
    """What the user asked for; backends pick the fields they can search on."""

    text: str = ""
    author: str | None = None
    title: str | None = None

    def is_blank(self) -> bool:
        return not any(part and part.strip() for part in (self.text, self.author, self.title))

    def describe(self) -> str:
        parts = [self.text.strip()] if self.text.strip() else []
        if self.author:
            parts.append(f"author={self.author.strip()}")
        if self.title:
            parts.append(f"title={self.title.strip()}")
        return " ".join(parts)


@dataclass(frozen=True, slots=True)
class RequestSpec:
    """A URL-encoded request against one backend endpoint."""

    url: str
    params: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class BackendDescriptor:
    """One bibliographic index: how to ask it and how long to wait."""

    backend_id: str
    build_query: Callable[[Query], RequestSpec]
    default_timeout: float | None
    link_pattern: re.Pattern[str] | None = None
    normalize: Callable[[str], str] | None = None
    description: str = ""


@dataclass(frozen=True, slots=True)
class RawResult:
    """Unparsed text returned by one backend invocation."""

    backend_id: str
    text: str


@dataclass(frozen=True, slots=True)
class FetchFailure:
    backend_id: str
    error: BibfetchError


@dataclass(frozen=True, slots=True)
class RetrievalReport:
    """Successful results in request order plus the backends that failed."""

    results: list[RawResult]
    failures: list[FetchFailure]


@dataclass(frozen=True, slots=True)
class BibEntry:
    """Canonical citation record: source key plus the untouched record text."""

    key: str
    raw_text: str
    entry_type: str | None = None


ResultSet = tuple[BibEntry, ...]
