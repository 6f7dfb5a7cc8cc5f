"""Pure text transforms applied to raw backend responses before extraction."""

from __future__ import annotations

import html
import re
from urllib.parse import urljoin

# MathSciNet and MR Lookup export the review link as a URL field; the record
# is more useful with the bare MR number that bibliography styles understand.
_MR_URL_FIELD = re.compile(
    r"^(?P<indent>[ \t]*)URL\s*=\s*[{\"]\s*https?://(?:[\w-]+\.)*ams\.org/mathscinet-getitem\?mr=(?P<mr>[0-9A-Za-z:]+)\s*[}\"]",
    re.IGNORECASE | re.MULTILINE,
)

_HTML_MARKER = re.compile(r"<(?:!doctype|html|head|body|pre)\b", re.IGNORECASE)
_PRE_BLOCK = re.compile(r"<pre\b[^>]*>(.*?)</pre\s*>", re.IGNORECASE | re.DOTALL)


def rewrite_mr_url(text: str) -> str:
    """Replace ``URL = {...mathscinet-getitem?mr=N}`` with ``MRNUMBER = {N}``."""

    def _replace(match: re.Match[str]) -> str:
        mr_number = match.group("mr")
        if ":" in mr_number:
            mr_number = mr_number.split(":")[-1]
        return f"{match.group('indent')}MRNUMBER = {{{mr_number}}}"

    return _MR_URL_FIELD.sub(_replace, text)


def strip_html(text: str) -> str:
    """Unwrap BibTeX served inside an HTML page (``<pre>`` blocks, entities).

    Bodies without an HTML document or ``<pre>`` tag are returned unchanged,
    so plain BibTeX keeps math such as ``$a<b$``.
    """
    if not _HTML_MARKER.search(text):
        return text
    blocks = _PRE_BLOCK.findall(text)
    if blocks:
        text = "\n\n".join(block.strip("\n") for block in blocks)
    without_tags = re.sub(r"<[^>]+>", "", text)
    return html.unescape(without_tags)


def find_links(page: str, pattern: re.Pattern[str], base_url: str) -> list[str]:
    """Return absolute URLs of every ``href`` in ``page`` matching ``pattern``.

    Duplicates are dropped and first-seen order is kept.
    """
    links: list[str] = []
    seen: set[str] = set()
    for href in re.findall(r"""href\s*=\s*["']([^"']+)["']""", page, flags=re.IGNORECASE):
        href = html.unescape(href)
        if not pattern.search(href):
            continue
        absolute = urljoin(base_url, href)
        if absolute in seen:
            continue
        seen.add(absolute)
        links.append(absolute)
    return links


def join_records(bodies: list[str]) -> str:
    """Concatenate record bodies with a blank line between them.

    Record boundaries are found at line starts, so two bodies glued without a
    newline would merge into one record.
    """
    parts = [body.strip("\n") for body in bodies if body.strip()]
    if not parts:
        return ""
    return "\n\n".join(parts) + "\n"
