"""PKCE and authorization helpers."""

from __future__ import annotations

import base64
import hashlib
import os
import urllib.parse

from usage_google.auth.google.constants import AUTHORIZE_URL, SCOPES
from usage_google.auth.google.models import OAuthClient


def _base64url(data: bytes) -> str:
    return base64.urlsafe_b64encode(data).rstrip(b"=").decode("utf-8")


def generate_pkce() -> tuple[str, str]:
    """Return a (verifier, S256 challenge) pair."""
    verifier = _base64url(os.urandom(32))
    challenge = _base64url(hashlib.sha256(verifier.encode("utf-8")).digest())
    return verifier, challenge


def create_state() -> str:
    return _base64url(os.urandom(16))


def build_authorization_url(
    oauth_client: OAuthClient,
    redirect_uri: str,
    state: str,
    challenge: str,
) -> str:
    params = {
        "client_id": oauth_client.client_id,
        "response_type": "code",
        "redirect_uri": redirect_uri,
        "scope": " ".join(SCOPES),
        "code_challenge": challenge,
        "code_challenge_method": "S256",
        "state": state,
        "access_type": "offline",
        "prompt": "consent",
    }
    return f"{AUTHORIZE_URL}?{urllib.parse.urlencode(params)}"


def parse_authorization_input(raw: str) -> tuple[str | None, str | None]:
    """Extract (code, state) from a pasted redirect URL, query string or bare code."""
    value = raw.strip()
    if not value:
        return None, None
    try:
        url = urllib.parse.urlparse(value)
        qs = urllib.parse.parse_qs(url.query)
        code = qs.get("code", [None])[0]
        state = qs.get("state", [None])[0]
        if code:
            return code, state
    except ValueError:
        pass

    if "#" in value:
        parts = value.split("#", 1)
        return parts[0] or None, parts[1] or None

    if "code=" in value:
        qs = urllib.parse.parse_qs(value)
        return qs.get("code", [None])[0], qs.get("state", [None])[0]

    return value, None
