"""Tests for the shared HTTP helpers."""

from unittest.mock import MagicMock, patch

import pytest
import requests

from common.http_client import download_to, get_json, robust_get
from constants import Constants


def _response(status=200, text="", headers=None):
    resp = MagicMock()
    resp.status_code = status
    resp.text = text
    resp.headers = headers or {}
    return resp


@patch("common.http_client.requests.get")
def test_robust_get_success_sends_user_agent(mock_get):
    mock_get.return_value = _response(200, "ok", {"Content-Type": "text/plain"})

    assert robust_get("https://index.example/se/rd/serde") == (200, {"Content-Type": "text/plain"}, "ok")
    kwargs = mock_get.call_args.kwargs
    assert kwargs["headers"]["User-Agent"] == Constants.USER_AGENT
    assert kwargs["timeout"] == Constants.REQUEST_TIMEOUT


@patch("common.http_client.requests.get")
def test_robust_get_caches(mock_get):
    mock_get.return_value = _response(200, "ok")
    robust_get("https://index.example/a")
    robust_get("https://index.example/a")
    assert mock_get.call_count == 1

    robust_get("https://index.example/a", use_cache=False)
    assert mock_get.call_count == 2


@patch("common.http_client.requests.get")
def test_robust_get_retries_server_errors(mock_get):
    mock_get.side_effect = [_response(503), _response(200, "ok")]
    assert robust_get("https://index.example/b")[0] == 200
    assert mock_get.call_count == 2


@patch("common.http_client.requests.get")
def test_robust_get_gives_up(mock_get):
    mock_get.side_effect = requests.Timeout()
    status, headers, text = robust_get("https://index.example/c")
    assert status == 0
    assert headers == {}
    assert "timeout" in text
    assert mock_get.call_count == Constants.HTTP_RETRY_MAX


@patch("common.http_client.requests.get")
def test_not_found_is_returned_not_retried(mock_get):
    mock_get.return_value = _response(404, "")
    assert robust_get("https://index.example/d")[0] == 404
    assert mock_get.call_count == 1


@patch("common.http_client.requests.get")
def test_get_json(mock_get):
    mock_get.return_value = _response(200, '{"crate": {"name": "serde"}}')
    status, _, data = get_json("https://crates.io/api/v1/crates/serde")
    assert status == 200
    assert data == {"crate": {"name": "serde"}}


@patch("common.http_client.requests.get")
def test_get_json_invalid_body(mock_get):
    mock_get.return_value = _response(200, "<html>")
    assert get_json("https://crates.io/api/v1/crates/serde")[2] is None


@patch("common.http_client.requests.get")
def test_download_to(mock_get, tmp_path):
    response = MagicMock()
    response.iter_content.return_value = [b"abc", b"", b"def"]
    mock_get.return_value.__enter__.return_value = response
    target = tmp_path / "crate.tar.gz"

    download_to("https://crates.io/api/v1/crates/a/1.0.0/download", str(target))

    assert target.read_bytes() == b"abcdef"
    assert mock_get.call_args.kwargs["stream"] is True


@patch("common.http_client.requests.get")
def test_download_to_http_error(mock_get, tmp_path):
    response = MagicMock()
    response.raise_for_status.side_effect = requests.HTTPError("404")
    mock_get.return_value.__enter__.return_value = response

    with pytest.raises(requests.HTTPError):
        download_to("https://crates.io/api/v1/crates/a/9.9.9/download", str(tmp_path / "x"))
