"""HTTP helpers shared by the OAuth and Cloud Code clients."""

from __future__ import annotations

from typing import Any

import httpx

from usage_google.errors import RequestTimeoutError, TransientError


async def send(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    timeout: float,
    **kwargs: Any,
) -> httpx.Response:
    """Send a request, mapping transport failures onto the error taxonomy."""
    try:
        return await client.request(method, url, timeout=timeout, **kwargs)
    except httpx.TimeoutException as exc:
        raise RequestTimeoutError(
            f"Request timed out after {timeout:g}s", endpoint=url
        ) from exc
    except httpx.TransportError as exc:
        raise TransientError(f"Network error: {exc}", endpoint=url) from exc
    except httpx.RequestError as exc:
        # e.g. DecodingError while the body is read
        raise TransientError(f"Request failed: {exc}", endpoint=url) from exc


def read_json_safe(response: httpx.Response) -> Any:
    """Decode a JSON body; None when the body is empty or not JSON."""
    if not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None


def bearer_headers(access_token: str) -> dict[str, str]:
    return {
        "Authorization": f"Bearer {access_token}",
        "Content-Type": "application/json",
    }
