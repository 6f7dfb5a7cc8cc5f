import re

import pytest

from backends import _mathscinet_normalize
from normalize import find_links, join_records, rewrite_mr_url, strip_html

MATH_RECORD = "@article{X,\n  title = {If $a<b$ and $c>d$},\n}"


@pytest.mark.parametrize(
    "url",
    [
        "http://www.ams.org/mathscinet-getitem?mr=1234567",
        "https://mathscinet.ams.org/mathscinet-getitem?mr=1234567",
        "https://ams.org/mathscinet-getitem?mr=MR1234567:1234567",
    ],
)
def test_rewrite_mr_url_replaces_field(url: str) -> None:
    text = (
        "@article {MR1234567,\n"
        "    AUTHOR = {Smith, Jane},\n"
        f"       URL = {{{url}}},\n"
        "}\n"
    )

    rewritten = rewrite_mr_url(text)

    assert "URL" not in rewritten
    assert "       MRNUMBER = {1234567}," in rewritten
    assert "AUTHOR = {Smith, Jane}" in rewritten


def test_rewrite_mr_url_leaves_other_urls_alone() -> None:
    text = "@misc{X,\n  URL = {https://example.org/paper.pdf},\n}\n"

    assert rewrite_mr_url(text) == text


def test_strip_html_unwraps_pre_blocks() -> None:
    page = "<html><body><pre>@article{A,\n  title = {x &amp; y},\n}</pre></body></html>"

    assert strip_html(page) == "@article{A,\n  title = {x & y},\n}"


def test_strip_html_keeps_only_pre_blocks_of_a_page() -> None:
    page = (
        "<!DOCTYPE html><html><head><title>Results</title></head><body>"
        "<p>2 matches</p>"
        "<pre>\n@article{A,\n  title = {$a&lt;b$},\n}\n</pre>"
        "<pre>@book{B,\n}</pre>"
        "</body></html>"
    )

    assert strip_html(page) == "@article{A,\n  title = {$a<b$},\n}\n\n@book{B,\n}"


def test_strip_html_plain_text_untouched() -> None:
    assert strip_html("@article{A,\n}") == "@article{A,\n}"


def test_strip_html_keeps_math_in_plain_bibtex() -> None:
    assert strip_html(MATH_RECORD) == MATH_RECORD


def test_mathscinet_normalize_keeps_math_and_rewrites_url() -> None:
    text = MATH_RECORD[:-1] + "  URL = {https://mathscinet.ams.org/mathscinet-getitem?mr=42},\n}"

    normalized = _mathscinet_normalize(text)

    assert "{If $a<b$ and $c>d$}" in normalized
    assert "  MRNUMBER = {42}," in normalized


def test_find_links_resolves_relative_and_dedupes() -> None:
    page = (
        '<a href="bibtex/1.bib">1</a>'
        '<a href="/bibtex/2.bib">2</a>'
        '<a href="bibtex/1.bib">again</a>'
        '<a href="help.html">help</a>'
    )

    links = find_links(page, re.compile(r"bibtex/.+\.bib$"), "https://zbmath.org/?q=x")

    assert links == ["https://zbmath.org/bibtex/1.bib", "https://zbmath.org/bibtex/2.bib"]


def test_join_records_inserts_blank_lines() -> None:
    joined = join_records(["@a{X,\n}", "", "@b{Y,\n}\n"])

    assert joined == "@a{X,\n}\n\n@b{Y,\n}\n"


def test_join_records_empty() -> None:
    assert join_records([]) == ""
