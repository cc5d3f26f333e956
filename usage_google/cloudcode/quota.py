"""Quota fetching from the Cloud Code API.

Each identity has a single quota endpoint with its own response shape:

* antigravity -> ``fetchAvailableModels``: ``{"models": {name: {"quotaInfo": {...}}}}``
* gemini-cli  -> ``retrieveUserQuota``: ``{"buckets": [{"modelId": ..., ...}]}``

Both are normalized to ``ModelQuota`` entries and filtered to the model
families the report cares about.
"""

from __future__ import annotations

import asyncio
import logging
import math
import platform
import sys
from typing import Any, Awaitable, Callable

import httpx

from usage_google.auth.google.models import Identity, ModelQuota
from usage_google.errors import ForbiddenError, TransientError
from usage_google.transport import bearer_headers, read_json_safe, send

logger = logging.getLogger(__name__)

FETCH_AVAILABLE_MODELS_URL = "https://cloudcode-pa.googleapis.com/v1internal:fetchAvailableModels"
RETRIEVE_USER_QUOTA_URL = "https://cloudcode-pa.googleapis.com/v1internal:retrieveUserQuota"

QUOTA_ENDPOINTS: dict[Identity, str] = {
    Identity.ANTIGRAVITY: FETCH_AVAILABLE_MODELS_URL,
    Identity.GEMINI_CLI: RETRIEVE_USER_QUOTA_URL,
}

QUOTA_TIMEOUT_S = 15.0
MAX_ATTEMPTS = 3
RETRY_DELAY_S = 1.0

MODEL_MARKERS = ("gemini", "claude", "imagen", "image")

ANTIGRAVITY_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) "
    "Antigravity/1.104.0 Chrome/138.0.7204.235 Electron/37.3.1 Safari/537.36"
)
ANTIGRAVITY_API_CLIENT = "google-cloud-sdk vscode_cloudshelleditor/0.1"
ANTIGRAVITY_CLIENT_METADATA = '{"ideType":"IDE_UNSPECIFIED","platform":"PLATFORM_UNSPECIFIED","pluginType":"GEMINI"}'
GEMINI_CLI_VERSION = "0.26.0"

_NODE_ARCH = {"x86_64": "x64", "amd64": "x64", "aarch64": "arm64", "arm64": "arm64", "i386": "ia32", "i686": "ia32"}


def _node_platform() -> str:
    if sys.platform.startswith("linux"):
        return "linux"
    return sys.platform


def _node_arch() -> str:
    machine = platform.machine().lower()
    return _NODE_ARCH.get(machine, machine or "unknown")


def identity_headers(identity: Identity) -> dict[str, str]:
    """Client fingerprint headers the backend expects for each identity."""
    if identity is Identity.ANTIGRAVITY:
        return {
            "User-Agent": ANTIGRAVITY_USER_AGENT,
            "X-Goog-Api-Client": ANTIGRAVITY_API_CLIENT,
            "Client-Metadata": ANTIGRAVITY_CLIENT_METADATA,
        }
    return {"User-Agent": f"GeminiCLI/{GEMINI_CLI_VERSION} ({_node_platform()}; {_node_arch()})"}


def is_tracked_model(model: str) -> bool:
    name = model.lower()
    return any(marker in name for marker in MODEL_MARKERS)


def fraction_to_percent(fraction: Any) -> int:
    if not isinstance(fraction, (int, float)) or isinstance(fraction, bool):
        return 0
    return max(0, min(100, math.floor(fraction * 100)))


def _reset_time(value: Any) -> str:
    return value if isinstance(value, str) else ""


def parse_available_models(payload: Any) -> list[ModelQuota]:
    """Parse a ``fetchAvailableModels`` response (map keyed by model name)."""
    models = payload.get("models") if isinstance(payload, dict) else None
    if not isinstance(models, dict):
        return []

    result: list[ModelQuota] = []
    for name, data in models.items():
        if not is_tracked_model(name):
            continue
        # A model without quotaInfo is reported as exhausted rather than dropped.
        info = data.get("quotaInfo") if isinstance(data, dict) else None
        if not isinstance(info, dict):
            info = {}
        result.append(
            ModelQuota(
                model=name,
                remaining_percent=fraction_to_percent(info.get("remainingFraction")),
                reset_time=_reset_time(info.get("resetTime")),
            )
        )
    return result


def parse_user_quota(payload: Any) -> list[ModelQuota]:
    """Parse a ``retrieveUserQuota`` response (list of buckets)."""
    buckets = payload.get("buckets") if isinstance(payload, dict) else None
    if not isinstance(buckets, list):
        return []

    result: list[ModelQuota] = []
    for bucket in buckets:
        if not isinstance(bucket, dict):
            continue
        model = bucket.get("modelId")
        if not isinstance(model, str) or not is_tracked_model(model):
            continue
        result.append(
            ModelQuota(
                model=model,
                remaining_percent=fraction_to_percent(bucket.get("remainingFraction")),
                reset_time=_reset_time(bucket.get("resetTime")),
            )
        )
    return result


QUOTA_PARSERS: dict[Identity, Callable[[Any], list[ModelQuota]]] = {
    Identity.ANTIGRAVITY: parse_available_models,
    Identity.GEMINI_CLI: parse_user_quota,
}


async def fetch_quota(
    access_token: str,
    project_id: str,
    identity: Identity,
    *,
    client: httpx.AsyncClient,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    max_attempts: int = MAX_ATTEMPTS,
    retry_delay: float = RETRY_DELAY_S,
) -> list[ModelQuota]:
    """Fetch and normalize the quota of one identity.

    HTTP 403 raises ``ForbiddenError`` at once. Other HTTP failures, network
    errors and timeouts are retried after ``retry_delay`` up to
    ``max_attempts`` attempts, then raise ``TransientError``.
    """
    url = QUOTA_ENDPOINTS[identity]
    headers = {**bearer_headers(access_token), **identity_headers(identity)}
    body = {"project": project_id}

    last_error: TransientError | None = None
    for attempt in range(1, max_attempts + 1):
        if attempt > 1:
            await sleep(retry_delay)
        try:
            response = await send(
                client, "POST", url, timeout=QUOTA_TIMEOUT_S, headers=headers, json=body
            )
        except TransientError as exc:
            logger.debug("%s quota attempt %d/%d failed: %s", identity.value, attempt, max_attempts, exc)
            last_error = exc
            continue

        if response.status_code == 403:
            raise ForbiddenError("Forbidden: HTTP 403", status=403, endpoint=url)
        if not response.is_success:
            logger.debug(
                "%s quota attempt %d/%d returned HTTP %s",
                identity.value,
                attempt,
                max_attempts,
                response.status_code,
            )
            last_error = TransientError(
                f"Quota request failed: HTTP {response.status_code}",
                status=response.status_code,
                endpoint=url,
            )
            continue

        return QUOTA_PARSERS[identity](read_json_safe(response))

    status = last_error.status if last_error else 0
    raise TransientError(
        f"Quota request failed after {max_attempts} attempts: {last_error}",
        status=status,
        endpoint=url,
    )
