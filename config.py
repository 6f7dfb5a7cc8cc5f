"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path

from backends import DEFAULT_MAX_RESULTS

DEFAULT_BACKENDS = ("arxiv", "msn", "zbm")


@dataclass(frozen=True, slots=True)
class Settings:
    """Runtime configuration read from ``BIBFETCH_*`` variables (``.env`` aware)."""

    default_backends: tuple[str, ...] = DEFAULT_BACKENDS
    timeouts: dict[str, float | None] = field(default_factory=dict)
    max_results: int = DEFAULT_MAX_RESULTS
    bib_file: Path | None = None

    @classmethod
    def from_env(cls) -> Settings:
        backends_raw = os.getenv("BIBFETCH_BACKENDS", "")
        backends = tuple(parse_backend_list(backends_raw)) or DEFAULT_BACKENDS

        timeouts = parse_timeouts(os.getenv("BIBFETCH_TIMEOUTS", ""))

        max_results_raw = os.getenv("BIBFETCH_MAX_RESULTS", "").strip()
        if max_results_raw:
            try:
                max_results = int(max_results_raw)
            except ValueError:
                raise ValueError(f"BIBFETCH_MAX_RESULTS must be an integer, got {max_results_raw!r}") from None
            if max_results <= 0:
                raise ValueError("BIBFETCH_MAX_RESULTS must be positive")
        else:
            max_results = DEFAULT_MAX_RESULTS

        bib_raw = os.getenv("BIBFETCH_BIB_FILE", "").strip()
        bib_file = Path(bib_raw).expanduser() if bib_raw else None

        return cls(
            default_backends=backends,
            timeouts=timeouts,
            max_results=max_results,
            bib_file=bib_file,
        )


def parse_backend_list(raw: str) -> list[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


def parse_timeout(raw: str, *, source: str = "timeout") -> float | None:
    """Parse seconds; ``none`` or empty means no limit."""
    value = raw.strip().lower()
    if value in {"", "none", "inf"}:
        return None
    try:
        seconds = float(value)
    except ValueError:
        raise ValueError(f"{source} must be a number of seconds or 'none', got {raw!r}") from None
    if seconds < 0:
        raise ValueError(f"{source} must not be negative, got {raw!r}")
    return seconds


def parse_timeouts(raw: str) -> dict[str, float | None]:
    """Parse ``msn=10,arxiv=5`` into a mapping."""
    timeouts: dict[str, float | None] = {}
    for item in raw.split(","):
        if not item.strip():
            continue
        backend_id, sep, seconds = item.partition("=")
        if not sep or not backend_id.strip():
            raise ValueError(f"BIBFETCH_TIMEOUTS entries must look like id=seconds, got {item.strip()!r}")
        timeouts[backend_id.strip()] = parse_timeout(seconds, source=f"BIBFETCH_TIMEOUTS[{backend_id.strip()}]")
    return timeouts
