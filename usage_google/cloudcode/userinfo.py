"""Google userinfo lookup used to label accounts after login."""

from __future__ import annotations

import re

import httpx

from usage_google.errors import MalformedResponseError, UsageGoogleError
from usage_google.transport import read_json_safe, send

USERINFO_URL = "https://www.googleapis.com/oauth2/v1/userinfo"
USERINFO_TIMEOUT_S = 15.0

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


async def fetch_user_email(access_token: str, *, client: httpx.AsyncClient) -> str:
    """Return the e-mail address of the account owning ``access_token``."""
    if not access_token or not access_token.strip():
        raise ValueError("Access token is required and cannot be empty")

    response = await send(
        client,
        "GET",
        USERINFO_URL,
        timeout=USERINFO_TIMEOUT_S,
        params={"alt": "json"},
        headers={"Authorization": f"Bearer {access_token}"},
    )
    if not response.is_success:
        raise UsageGoogleError(
            f"Failed to fetch user info: HTTP {response.status_code}",
            status=response.status_code,
            endpoint=USERINFO_URL,
        )

    payload = read_json_safe(response)
    email = payload.get("email") if isinstance(payload, dict) else None
    if not isinstance(email, str) or not email.strip():
        raise MalformedResponseError(
            "User info response missing or invalid email",
            status=response.status_code,
            endpoint=USERINFO_URL,
        )
    if not _EMAIL_RE.match(email):
        raise MalformedResponseError(
            "User info response contains invalid email format",
            status=response.status_code,
            endpoint=USERINFO_URL,
        )
    return email
