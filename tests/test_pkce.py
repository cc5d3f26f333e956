import base64
import hashlib
import urllib.parse

import httpx
import pytest

from usage_google.auth.google.constants import AUTHORIZE_URL, SCOPES
from usage_google.auth.google.models import OAuthClient
from usage_google.auth.google.pkce import (
    build_authorization_url,
    generate_pkce,
    parse_authorization_input,
)
from usage_google.auth.google.server import start_local_server


def test_generate_pkce_challenge_matches_verifier() -> None:
    verifier, challenge = generate_pkce()

    digest = hashlib.sha256(verifier.encode("utf-8")).digest()
    assert challenge == base64.urlsafe_b64encode(digest).rstrip(b"=").decode("utf-8")
    assert "=" not in verifier


def test_build_authorization_url_requests_offline_consent() -> None:
    url = build_authorization_url(
        OAuthClient("client-id", "secret"), "http://localhost:1234/callback", "st", "ch"
    )

    assert url.startswith(AUTHORIZE_URL + "?")
    params = urllib.parse.parse_qs(urllib.parse.urlparse(url).query)
    assert params["client_id"] == ["client-id"]
    assert params["redirect_uri"] == ["http://localhost:1234/callback"]
    assert params["scope"] == [" ".join(SCOPES)]
    assert params["code_challenge_method"] == ["S256"]
    assert params["access_type"] == ["offline"]
    assert params["prompt"] == ["consent"]
    assert params["state"] == ["st"]
    assert "secret" not in url


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("http://localhost:1/callback?code=abc&state=xyz", ("abc", "xyz")),
        ("code=abc&state=xyz", ("abc", "xyz")),
        ("abc#xyz", ("abc", "xyz")),
        ("  abc  ", ("abc", None)),
        ("", (None, None)),
    ],
)
def test_parse_authorization_input(raw: str, expected: tuple) -> None:
    assert parse_authorization_input(raw) == expected


def _get(url: str) -> tuple[int, str]:
    response = httpx.get(url, timeout=5.0, trust_env=False)
    return response.status_code, response.text


@pytest.fixture
def callback_server():
    received: list[str] = []
    server, error = start_local_server("expected-state", on_code=received.append)
    assert error is None
    yield server, received
    server.shutdown()
    server.server_close()


def test_callback_server_accepts_matching_state(callback_server) -> None:
    server, received = callback_server

    status, _ = _get(f"http://127.0.0.1:{server.port}/callback?code=the-code&state=expected-state")

    assert status == 200
    assert server.code == "the-code"
    assert received == ["the-code"]
    assert server.redirect_uri == f"http://localhost:{server.port}/callback"


def test_callback_server_rejects_state_mismatch(callback_server) -> None:
    server, received = callback_server

    status, body = _get(f"http://127.0.0.1:{server.port}/callback?code=c&state=other")

    assert status == 400
    assert "State mismatch" in body
    assert server.code is None
    assert received == []


def test_callback_server_reports_oauth_error_escaped(callback_server) -> None:
    server, _ = callback_server

    query = urllib.parse.urlencode({"error": "access_denied", "error_description": "<b>no</b>"})
    status, body = _get(f"http://127.0.0.1:{server.port}/callback?{query}")

    assert status == 400
    assert "access_denied: &lt;b&gt;no&lt;/b&gt;" in body
    assert server.code is None


def test_callback_server_unknown_path(callback_server) -> None:
    server, _ = callback_server

    status, _ = _get(f"http://127.0.0.1:{server.port}/elsewhere")

    assert status == 404
