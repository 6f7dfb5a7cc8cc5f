"""Built-in bibliographic backends and the default registry.

Each backend maps a ``Query`` to a BibTeX-format request against a fixed
endpoint. Parameters are endpoint configuration, not protocol: every builder
sets a free-text (or author/title) field, asks for BibTeX where the service
supports a format switch, and caps the result count.
"""

from __future__ import annotations

import re
from functools import partial

from models import Query, RequestSpec
from normalize import rewrite_mr_url, strip_html
from registry import BackendRegistry

DEFAULT_MAX_RESULTS = 100

ADS_URL = "https://ui.adsabs.harvard.edu/cgi-bin/nph-abs_connect"
MSN_URL = "https://mathscinet.ams.org/mathscinet/search/publications.html"
MRL_URL = "https://mathscinet.ams.org/mrlookup"
ZBM_URL = "https://zbmath.org/"
INSPIRE_URL = "https://inspirehep.net/api/literature"
DBLP_URL = "https://dblp.org/search/publ/api"

# zbMATH result pages link every hit's BibTeX export as bibtex/<id>.bib
ZBM_BIBTEX_LINK = re.compile(r"bibtex/[^\"'?#]+\.bib$")


def _free_text(query: Query) -> str:
    parts = [query.text, query.author or "", query.title or ""]
    return " ".join(part.strip() for part in parts if part and part.strip())


def build_arxiv_query(query: Query, max_results: int = DEFAULT_MAX_RESULTS) -> RequestSpec:
    params = {
        "db_key": "PRE",
        "data_type": "BIBTEX",
        "nr_to_return": str(max_results),
        "start_nr": "1",
    }
    if query.author:
        params["author"] = query.author.strip()
    if query.title:
        params["title"] = query.title.strip()
    if query.text.strip() or not (query.author or query.title):
        params["text"] = query.text.strip()
    return RequestSpec(url=ADS_URL, params=params)


def build_msn_query(query: Query, max_results: int = DEFAULT_MAX_RESULTS) -> RequestSpec:
    params = {
        "fmt": "bibtex",
        "extend": "1",
        "r": "1",
        "bdlall": "Retrieve All",
        "batch_size": str(max_results),
        "pg4": "AUCN",
        "s4": (query.author or "").strip(),
        "co4": "AND",
        "pg5": "TI",
        "s5": (query.title or "").strip(),
        "co5": "AND",
        "pg6": "ALLF",
        "s6": query.text.strip(),
    }
    return RequestSpec(url=MSN_URL, params=params)


def build_mrl_query(query: Query, max_results: int = DEFAULT_MAX_RESULTS) -> RequestSpec:
    # MR Lookup has no free-text field; unqualified text is treated as a title.
    title = (query.title or "").strip() or query.text.strip()
    params = {
        "format": "bibtex",
        "au": (query.author or "").strip(),
        "ti": title,
        "limit": str(max_results),
    }
    return RequestSpec(url=MRL_URL, params=params)


def build_zbm_query(query: Query, max_results: int = DEFAULT_MAX_RESULTS) -> RequestSpec:
    terms = []
    if query.author:
        terms.append(f"au:{query.author.strip()}")
    if query.title:
        terms.append(f"ti:{query.title.strip()}")
    if query.text.strip():
        terms.append(query.text.strip())
    return RequestSpec(url=ZBM_URL, params={"q": " & ".join(terms), "ipp": str(max_results)})


def build_inspire_query(query: Query, max_results: int = DEFAULT_MAX_RESULTS) -> RequestSpec:
    terms = []
    if query.author:
        terms.append(f"a {query.author.strip()}")
    if query.title:
        terms.append(f"t {query.title.strip()}")
    if query.text.strip():
        terms.append(query.text.strip())
    return RequestSpec(
        url=INSPIRE_URL,
        params={"q": " and ".join(terms), "format": "bibtex", "size": str(max_results)},
    )


def build_dblp_query(query: Query, max_results: int = DEFAULT_MAX_RESULTS) -> RequestSpec:
    return RequestSpec(url=DBLP_URL, params={"q": _free_text(query), "format": "bib", "h": str(max_results)})


def _mathscinet_normalize(text: str) -> str:
    return rewrite_mr_url(strip_html(text))


def build_default_registry(
    timeouts: dict[str, float | None] | None = None,
    max_results: int = DEFAULT_MAX_RESULTS,
) -> BackendRegistry:
    """Register every built-in backend.

    Args:
        timeouts: Per-backend default timeouts in seconds overriding the
            built-in values. ``None`` means no limit.
        max_results: Result cap sent to each backend.
    """
    overrides = timeouts or {}

    def timeout_for(backend_id: str, builtin: float | None) -> float | None:
        return overrides[backend_id] if backend_id in overrides else builtin

    registry = BackendRegistry()
    registry.register(
        "arxiv",
        partial(build_arxiv_query, max_results=max_results),
        timeout_for("arxiv", 5.0),
        description="arXiv preprints via NASA ADS",
    )
    registry.register(
        "msn",
        partial(build_msn_query, max_results=max_results),
        timeout_for("msn", 10.0),
        normalize=_mathscinet_normalize,
        description="MathSciNet (subscription network required)",
    )
    registry.register(
        "mrl",
        partial(build_mrl_query, max_results=max_results),
        timeout_for("mrl", 10.0),
        normalize=_mathscinet_normalize,
        description="AMS MR Lookup",
    )
    registry.register(
        "zbm",
        partial(build_zbm_query, max_results=max_results),
        timeout_for("zbm", 5.0),
        link_pattern=ZBM_BIBTEX_LINK,
        description="zbMATH Open",
    )
    registry.register(
        "inspire",
        partial(build_inspire_query, max_results=max_results),
        timeout_for("inspire", 10.0),
        description="INSPIRE-HEP literature",
    )
    registry.register(
        "dblp",
        partial(build_dblp_query, max_results=max_results),
        timeout_for("dblp", 10.0),
        description="DBLP computer science bibliography",
    )
    return registry
