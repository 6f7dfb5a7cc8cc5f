from unittest.mock import MagicMock, patch

import pytest
import requests

from errors import BackendFetchError, BackendTimeoutError
from transport import decode_body, http_get


def _mock_resp(*chunks: bytes, content_type: str = "text/plain; charset=utf-8", encoding: str = "utf-8") -> MagicMock:
    mock = MagicMock()
    mock.iter_content.return_value = iter(chunks)
    mock.headers = {"Content-Type": content_type}
    mock.encoding = encoding
    return mock


def test_http_get_returns_body_and_passes_params() -> None:
    response = _mock_resp(b"@article{A,", b"\n}")
    with patch("transport.requests.get", return_value=response) as mock_get:
        body = http_get("https://example.org/search", {"q": "topology"}, 5)

    assert body == "@article{A,\n}"
    _, kwargs = mock_get.call_args
    assert kwargs["params"] == {"q": "topology"}
    assert kwargs["timeout"] == 5
    assert kwargs["stream"] is True
    assert "User-Agent" in kwargs["headers"]
    response.close.assert_called_once()


def test_http_get_user_agent_from_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("BIBFETCH_USER_AGENT", "tester/1.0")

    with patch("transport.requests.get", return_value=_mock_resp()) as mock_get:
        http_get("https://example.org", None, None)

    assert mock_get.call_args.kwargs["headers"]["User-Agent"] == "tester/1.0"


def test_http_get_timeout_maps_to_backend_timeout() -> None:
    with patch("transport.requests.get", side_effect=requests.Timeout("slow")):
        with pytest.raises(BackendTimeoutError):
            http_get("https://example.org", None, 1)


def test_http_get_http_error_maps_to_fetch_error() -> None:
    response = _mock_resp()
    response.raise_for_status.side_effect = requests.HTTPError("503")

    with patch("transport.requests.get", return_value=response):
        with pytest.raises(BackendFetchError):
            http_get("https://example.org", None, 1)

    response.close.assert_called_once()


def test_http_get_stops_reading_slow_body_at_deadline() -> None:
    response = _mock_resp(b"@article{A,", b"\n  title = {x},", b"\n}")

    with patch("transport.requests.get", return_value=response), patch(
        "transport.time.monotonic", side_effect=[0.0, 0.5, 5.0]
    ):
        with pytest.raises(BackendTimeoutError, match="still reading"):
            http_get("https://example.org", None, 1)

    response.close.assert_called_once()


def test_http_get_decodes_utf8_without_charset_header() -> None:
    response = _mock_resp("Müller, Jörg".encode("utf-8"), content_type="text/plain", encoding="ISO-8859-1")

    with patch("transport.requests.get", return_value=response):
        assert http_get("https://example.org", None, 1) == "Müller, Jörg"


def test_decode_body_honours_declared_charset() -> None:
    content = "Müller".encode("latin-1")

    assert decode_body(content, "text/plain; charset=ISO-8859-1", "ISO-8859-1") == "Müller"


def test_decode_body_falls_back_when_not_utf8() -> None:
    content = "Müller".encode("latin-1")

    assert decode_body(content, "text/plain", "ISO-8859-1") == "Müller"
