import pytest

from backends import (
    ZBM_BIBTEX_LINK,
    build_arxiv_query,
    build_dblp_query,
    build_default_registry,
    build_inspire_query,
    build_mrl_query,
    build_msn_query,
    build_zbm_query,
)
from errors import DuplicateBackendError, UnknownBackendError
from models import Query, RequestSpec
from registry import BackendRegistry


def _build(query: Query) -> RequestSpec:
    return RequestSpec(url="https://example.org", params={"q": query.text})


def test_register_and_resolve() -> None:
    registry = BackendRegistry()
    descriptor = registry.register("x", _build, 3.0, description="Example")

    assert registry.resolve("x") is descriptor
    assert descriptor.default_timeout == 3.0
    assert "x" in registry
    assert len(registry) == 1


def test_register_duplicate_raises() -> None:
    registry = BackendRegistry()
    registry.register("x", _build, 3.0)

    with pytest.raises(DuplicateBackendError):
        registry.register("x", _build, 5.0)


def test_resolve_unknown_raises() -> None:
    with pytest.raises(UnknownBackendError):
        BackendRegistry().resolve("missing")


def test_default_registry_lists_backends_in_order() -> None:
    registry = build_default_registry()

    assert registry.ids() == ["arxiv", "msn", "mrl", "zbm", "inspire", "dblp"]
    assert registry.resolve("msn").normalize is not None
    assert registry.resolve("zbm").link_pattern is ZBM_BIBTEX_LINK


def test_default_registry_timeout_overrides() -> None:
    registry = build_default_registry(timeouts={"msn": 2.5, "zbm": None})

    assert registry.resolve("msn").default_timeout == 2.5
    assert registry.resolve("zbm").default_timeout is None
    assert registry.resolve("arxiv").default_timeout == 5.0


def test_default_registry_max_results_reaches_requests() -> None:
    registry = build_default_registry(max_results=7)

    spec = registry.resolve("inspire").build_query(Query(text="topology"))

    assert spec.params["size"] == "7"


@pytest.mark.parametrize(
    ("builder", "format_param"),
    [
        (build_arxiv_query, ("data_type", "BIBTEX")),
        (build_msn_query, ("fmt", "bibtex")),
        (build_mrl_query, ("format", "bibtex")),
        (build_inspire_query, ("format", "bibtex")),
        (build_dblp_query, ("format", "bib")),
    ],
)
def test_builders_request_bibtex(builder, format_param) -> None:
    spec = builder(Query(text="topology"))

    key, value = format_param
    assert spec.params[key] == value
    assert spec.url.startswith("https://")


def test_msn_query_uses_author_and_title_fields() -> None:
    spec = build_msn_query(Query(author="Smith", title="Knots"), max_results=20)

    assert spec.params["s4"] == "Smith"
    assert spec.params["s5"] == "Knots"
    assert spec.params["batch_size"] == "20"


def test_mrl_query_falls_back_to_text_as_title() -> None:
    spec = build_mrl_query(Query(text="knot invariants"))

    assert spec.params["ti"] == "knot invariants"


def test_zbm_and_inspire_combine_fields() -> None:
    query = Query(text="2020", author="Smith", title="Knots")

    assert build_zbm_query(query).params["q"] == "au:Smith & ti:Knots & 2020"
    assert build_inspire_query(query).params["q"] == "a Smith and t Knots and 2020"


def test_dblp_query_joins_every_field() -> None:
    spec = build_dblp_query(Query(text="graphs", author="Erdos"))

    assert spec.params["q"] == "graphs Erdos"


def test_zbm_link_pattern() -> None:
    assert ZBM_BIBTEX_LINK.search("https://zbmath.org/bibtex/07123456.bib")
    assert not ZBM_BIBTEX_LINK.search("https://zbmath.org/?q=ai:smith")
