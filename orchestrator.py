"""Query several backends at once, isolating each one's failures and timeouts."""

from __future__ import annotations

import logging
import time
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeout
from typing import Callable

from errors import BackendFetchError, BackendTimeoutError, BibfetchError, UnknownBackendError
from models import BackendDescriptor, FetchFailure, Query, RawResult, RetrievalReport
from normalize import find_links, join_records
from registry import BackendRegistry
from transport import http_get

LOGGER = logging.getLogger(__name__)

Fetcher = Callable[[str, dict[str, str] | None, float | None], str]


def fetch_backend(
    descriptor: BackendDescriptor,
    query: Query,
    fetch: Fetcher = http_get,
    timeout: float | None = None,
) -> RawResult:
    """Run one backend to completion and return its normalized raw text.

    Backends with a ``link_pattern`` answer with a page of links; each linked
    record is fetched and the bodies are joined with blank lines.
    """
    request = descriptor.build_query(query)
    deadline = None if timeout is None else time.monotonic() + timeout

    body = fetch(request.url, request.params, _remaining(deadline))

    if descriptor.link_pattern is not None:
        links = find_links(body, descriptor.link_pattern, request.url)
        LOGGER.debug("Backend %s: following %s secondary links", descriptor.backend_id, len(links))
        bodies = []
        for link in links:
            remaining = _remaining(deadline)
            if remaining is not None and remaining <= 0:
                raise BackendTimeoutError(f"{descriptor.backend_id}: deadline passed while following links")
            bodies.append(fetch(link, None, remaining))
        body = join_records(bodies)

    if descriptor.normalize is not None:
        body = descriptor.normalize(body)

    return RawResult(backend_id=descriptor.backend_id, text=body)


def retrieve(
    query: Query,
    backend_ids: list[str],
    registry: BackendRegistry,
    timeout: float | None = None,
    fetch: Fetcher = http_get,
) -> RetrievalReport:
    """Query every requested backend concurrently.

    Args:
        query: What to search for.
        backend_ids: Backends to ask, in priority order. Results come back in
            this order regardless of which backend answers first.
        registry: Where backend identifiers are resolved.
        timeout: Override for every backend's default timeout, in seconds.
            ``None`` keeps each descriptor's default; a descriptor default of
            ``None`` means no limit. ``0`` is an empty window.
        fetch: HTTP primitive, replaceable in tests.

    A timed-out worker thread cannot be killed; it is abandoned and its result
    is never read. The interpreter still joins it at exit, so ``fetch`` must
    give up on its own once its timeout is spent, as ``http_get`` does.
    """
    if query.is_blank():
        raise ValueError("Query must contain some text, an author or a title")

    failures: list[FetchFailure] = []
    scheduled: list[tuple[str, Future[RawResult], float | None]] = []
    results: list[RawResult] = []

    ordered_ids = list(dict.fromkeys(backend_ids))
    executor = ThreadPoolExecutor(max_workers=max(len(ordered_ids), 1), thread_name_prefix="bibfetch")
    try:
        for backend_id in ordered_ids:
            try:
                descriptor = registry.resolve(backend_id)
            except UnknownBackendError as exc:
                LOGGER.warning("Skipping backend id=%s: %s", backend_id, exc)
                failures.append(FetchFailure(backend_id=backend_id, error=exc))
                continue

            window = timeout if timeout is not None else descriptor.default_timeout
            if window is not None and window <= 0:
                error = BackendTimeoutError(f"{backend_id}: zero-length timeout window")
                LOGGER.warning("Backend id=%s timed out: %s", backend_id, error)
                failures.append(FetchFailure(backend_id=backend_id, error=error))
                continue

            future = executor.submit(fetch_backend, descriptor, query, fetch, window)
            deadline = None if window is None else time.monotonic() + window
            scheduled.append((backend_id, future, deadline))

        for backend_id, future, deadline in scheduled:
            try:
                result = future.result(timeout=_remaining(deadline, floor=0.0))
            except FuturesTimeout:
                future.cancel()
                error = BackendTimeoutError(f"{backend_id}: no answer within the timeout window")
                LOGGER.warning("Backend id=%s timed out: %s", backend_id, error)
                failures.append(FetchFailure(backend_id=backend_id, error=error))
                continue
            except BibfetchError as exc:
                LOGGER.warning("Backend id=%s failed: %s", backend_id, exc)
                failures.append(FetchFailure(backend_id=backend_id, error=exc))
                continue
            except Exception as exc:  # a buggy backend must not sink the others
                error = BackendFetchError(f"{backend_id}: {exc.__class__.__name__}: {exc}")
                LOGGER.warning("Backend id=%s failed: %s", backend_id, error)
                failures.append(FetchFailure(backend_id=backend_id, error=error))
                continue

            LOGGER.info("Backend id=%s returned chars=%s", backend_id, len(result.text))
            results.append(result)
    finally:
        # Hung workers run on until their fetch gives up; nothing of theirs reaches the report.
        executor.shutdown(wait=False, cancel_futures=True)

    if not results:
        LOGGER.warning("No backend answered for query=%r (failed=%s)", query.describe(), len(failures))
    else:
        LOGGER.info(
            "Retrieval complete: query=%r succeeded=%s failed=%s",
            query.describe(),
            len(results),
            len(failures),
        )
    return RetrievalReport(results=results, failures=failures)


def _remaining(deadline: float | None, floor: float | None = None) -> float | None:
    if deadline is None:
        return None
    remaining = deadline - time.monotonic()
    if floor is not None:
        return max(remaining, floor)
    return remaining
