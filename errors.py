"""Exception taxonomy for retrieval, extraction, selection and writing."""

from __future__ import annotations


class BibfetchError(RuntimeError):
    """Base class for every failure this tool reports to the user."""


class DuplicateBackendError(BibfetchError):
    def __init__(self, backend_id: str) -> None:
        super().__init__(f"Backend already registered: {backend_id}")
        self.backend_id = backend_id


class UnknownBackendError(BibfetchError):
    def __init__(self, backend_id: str) -> None:
        super().__init__(f"Unknown backend: {backend_id}")
        self.backend_id = backend_id


class BackendFetchError(BibfetchError):
    """Transport-level failure talking to one backend."""


class BackendTimeoutError(BackendFetchError):
    """A backend did not answer within its window."""


class ParseError(BibfetchError):
    """One record in a raw result could not be parsed."""


class NoEntriesFoundError(BibfetchError):
    """No backend produced a single usable record for the query."""


class NoMatchesError(BibfetchError):
    """The first filter on a fresh result set matched nothing."""


class WriteError(BibfetchError):
    """The bibliography target could not be chosen, opened or written."""
