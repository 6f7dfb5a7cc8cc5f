"""HTTP fetch primitive shared by every backend."""

from __future__ import annotations

import logging
import os
import time

import requests

from errors import BackendFetchError, BackendTimeoutError

DEFAULT_USER_AGENT = "bibfetch/0.1 (+https://example.invalid)"
CHUNK_SIZE = 16384

LOGGER = logging.getLogger(__name__)


def request_headers() -> dict[str, str]:
    ua = os.getenv("BIBFETCH_USER_AGENT", DEFAULT_USER_AGENT)
    return {"User-Agent": ua, "Accept": "text/plain,text/html,application/x-bibtex,*/*"}


def http_get(url: str, params: dict[str, str] | None, timeout: float | None) -> str:
    """GET ``url`` and return the decoded body.

    ``timeout`` bounds each socket operation and also the whole download: the
    body is streamed and reading stops with ``BackendTimeoutError`` once the
    budget is spent, so a server that drip-feeds bytes cannot hold the worker
    thread past its backend's deadline.
    """
    LOGGER.debug("GET %s params=%s timeout=%s", url, params, timeout)
    deadline = None if timeout is None else time.monotonic() + timeout
    try:
        response = requests.get(url, params=params, headers=request_headers(), timeout=timeout, stream=True)
        try:
            response.raise_for_status()
            chunks: list[bytes] = []
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                chunks.append(chunk)
                if deadline is not None and time.monotonic() > deadline:
                    raise BackendTimeoutError(f"Request to {url} still reading after {timeout}s")
        finally:
            response.close()
    except requests.Timeout as exc:
        raise BackendTimeoutError(f"Request to {url} timed out: {exc}") from exc
    except requests.RequestException as exc:
        raise BackendFetchError(f"Request to {url} failed: {exc}") from exc

    return decode_body(b"".join(chunks), response.headers.get("Content-Type", ""), response.encoding)


def decode_body(content: bytes, content_type: str, declared: str | None) -> str:
    """Decode with the header's charset, else UTF-8, else the declared fallback.

    ``requests`` reports ISO-8859-1 for any ``text/*`` response without a
    charset, which garbles UTF-8 author names.
    """
    if "charset=" in content_type.lower() and declared:
        return content.decode(declared, errors="replace")
    try:
        return content.decode("utf-8")
    except UnicodeDecodeError:
        LOGGER.debug("Body is not UTF-8; decoding as %s", declared or "latin-1")
        return content.decode(declared or "latin-1", errors="replace")
