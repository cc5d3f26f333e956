import json

import httpx
import pytest

from usage_google.auth.google.models import Identity, ModelQuota
from usage_google.cloudcode.quota import (
    FETCH_AVAILABLE_MODELS_URL,
    RETRIEVE_USER_QUOTA_URL,
    fetch_quota,
    fraction_to_percent,
    parse_available_models,
    parse_user_quota,
)
from usage_google.errors import ForbiddenError, RequestTimeoutError, TransientError


class FakeSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


CORRUPT_GZIP = "corrupt-gzip"


def _scripted_client(script: list, calls: list[httpx.Request]) -> httpx.AsyncClient:
    """Each script entry is (status, body), CORRUPT_GZIP, or an exception class raised for that call."""

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        step = script[min(len(calls), len(script)) - 1]
        if isinstance(step, type) and issubclass(step, Exception):
            raise step("scripted failure", request=request)
        if step == CORRUPT_GZIP:
            return httpx.Response(
                200, headers={"Content-Encoding": "gzip"}, stream=httpx.ByteStream(b"not-gzip")
            )
        status, body = step
        if isinstance(body, (dict, list)):
            return httpx.Response(status, json=body)
        return httpx.Response(status, text=body)

    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


MODELS_OK = {
    "models": {
        "gemini-pro": {"quotaInfo": {"remainingFraction": 0.8, "resetTime": "2026-02-01T00:00:00Z"}},
    }
}


def test_parse_available_models_converts_fraction_and_filters() -> None:
    parsed = parse_available_models(
        {
            "models": {
                "gemini-x": {"quotaInfo": {"remainingFraction": 0.756, "resetTime": "t1"}},
                "claude-y": {"quotaInfo": {"remainingFraction": 0.5, "resetTime": "t2"}},
                "imagen-z": {"quotaInfo": {"remainingFraction": 1.0, "resetTime": "t3"}},
                "unrelated-w": {"quotaInfo": {"remainingFraction": 1.0, "resetTime": "t4"}},
            }
        }
    )

    assert parsed == [
        ModelQuota("gemini-x", 75, "t1"),
        ModelQuota("claude-y", 50, "t2"),
        ModelQuota("imagen-z", 100, "t3"),
    ]


def test_parse_available_models_matches_markers_case_insensitively() -> None:
    parsed = parse_available_models(
        {"models": {"Gemini-Flash": {}, "IMAGE-generation-model": {}, "chat-bison": {}}}
    )

    assert [m.model for m in parsed] == ["Gemini-Flash", "IMAGE-generation-model"]


def test_parse_available_models_keeps_models_without_quota_info() -> None:
    parsed = parse_available_models(
        {
            "models": {
                "gemini-flash": {},
                "gemini-pro": {"quotaInfo": {"remainingFraction": 1.0, "resetTime": "soon"}},
                "claude-sonnet": {"quotaInfo": {}},
            }
        }
    )

    assert ModelQuota("gemini-flash", 0, "") in parsed
    assert ModelQuota("gemini-pro", 100, "soon") in parsed
    assert ModelQuota("claude-sonnet", 0, "") in parsed


@pytest.mark.parametrize("payload", [None, {}, {"models": {}}, {"models": []}, "text"])
def test_parse_available_models_malformed_yields_empty(payload: object) -> None:
    assert parse_available_models(payload) == []


def test_parse_user_quota_reads_buckets() -> None:
    parsed = parse_user_quota(
        {
            "buckets": [
                {
                    "modelId": "gemini-2.5-flash",
                    "remainingAmount": "500",
                    "remainingFraction": 0.5,
                    "resetTime": "2026-01-30T10:52:51Z",
                    "tokenType": "REQUESTS",
                },
                {"modelId": "claude-opus", "remainingFraction": 0.25},
                {"modelId": "unrelated-w", "remainingFraction": 0.9},
                {"remainingFraction": 0.9},
            ]
        }
    )

    assert parsed == [
        ModelQuota("gemini-2.5-flash", 50, "2026-01-30T10:52:51Z"),
        ModelQuota("claude-opus", 25, ""),
    ]


@pytest.mark.parametrize("payload", [None, {}, {"buckets": None}, {"buckets": {}}])
def test_parse_user_quota_malformed_yields_empty(payload: object) -> None:
    assert parse_user_quota(payload) == []


def test_fraction_to_percent_stays_in_range() -> None:
    for step in range(0, 1001):
        fraction = step / 1000
        percent = fraction_to_percent(fraction)
        assert 0 <= percent <= 100
        assert percent == int(fraction * 100)
    assert fraction_to_percent(1.5) == 100
    assert fraction_to_percent(-0.2) == 0
    assert fraction_to_percent(None) == 0
    assert fraction_to_percent("0.5") == 0


@pytest.mark.asyncio
async def test_fetch_quota_posts_project_with_bearer_token() -> None:
    calls: list[httpx.Request] = []
    async with _scripted_client([(200, MODELS_OK)], calls) as client:
        result = await fetch_quota("test-token", "my-project", Identity.ANTIGRAVITY, client=client)

    assert result == [ModelQuota("gemini-pro", 80, "2026-02-01T00:00:00Z")]
    request = calls[0]
    assert str(request.url) == FETCH_AVAILABLE_MODELS_URL
    assert request.method == "POST"
    assert request.headers["authorization"] == "Bearer test-token"
    assert json.loads(request.content) == {"project": "my-project"}


@pytest.mark.asyncio
async def test_antigravity_sends_client_fingerprint_headers() -> None:
    calls: list[httpx.Request] = []
    async with _scripted_client([(200, {"models": {}})], calls) as client:
        await fetch_quota("t", "p", Identity.ANTIGRAVITY, client=client)

    headers = calls[0].headers
    assert "Antigravity/" in headers["user-agent"]
    assert "Chrome/" in headers["user-agent"]
    assert "Electron/" in headers["user-agent"]
    assert headers["x-goog-api-client"] == "google-cloud-sdk vscode_cloudshelleditor/0.1"
    assert json.loads(headers["client-metadata"]) == {
        "ideType": "IDE_UNSPECIFIED",
        "platform": "PLATFORM_UNSPECIFIED",
        "pluginType": "GEMINI",
    }


@pytest.mark.asyncio
async def test_gemini_cli_uses_retrieve_user_quota_and_cli_user_agent() -> None:
    calls: list[httpx.Request] = []
    body = {"buckets": [{"modelId": "gemini-2.5-pro", "remainingFraction": 0.3, "resetTime": "r"}]}
    async with _scripted_client([(200, body)], calls) as client:
        result = await fetch_quota("t", "p", Identity.GEMINI_CLI, client=client)

    assert len(calls) == 1
    assert str(calls[0].url) == RETRIEVE_USER_QUOTA_URL
    assert calls[0].headers["user-agent"].startswith("GeminiCLI/")
    assert "x-goog-api-client" not in calls[0].headers
    assert "client-metadata" not in calls[0].headers
    assert result == [ModelQuota("gemini-2.5-pro", 30, "r")]


@pytest.mark.asyncio
@pytest.mark.parametrize("identity", [Identity.ANTIGRAVITY, Identity.GEMINI_CLI])
async def test_forbidden_fails_fast_without_retry(identity: Identity) -> None:
    calls: list[httpx.Request] = []
    sleep = FakeSleep()
    async with _scripted_client([(403, {"error": "denied"}), (200, MODELS_OK)], calls) as client:
        with pytest.raises(ForbiddenError) as exc_info:
            await fetch_quota("t", "p", identity, client=client, sleep=sleep)

    assert exc_info.value.status == 403
    assert len(calls) == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_retries_server_errors_until_last_attempt_succeeds() -> None:
    calls: list[httpx.Request] = []
    sleep = FakeSleep()
    script = [(500, "Server error"), (500, "Server error"), (200, MODELS_OK)]
    async with _scripted_client(script, calls) as client:
        result = await fetch_quota("t", "p", Identity.ANTIGRAVITY, client=client, sleep=sleep)

    assert len(calls) == 3
    assert sleep.delays == [1.0, 1.0]
    assert result == [ModelQuota("gemini-pro", 80, "2026-02-01T00:00:00Z")]


@pytest.mark.asyncio
async def test_exhausted_retries_raise_transient_error() -> None:
    calls: list[httpx.Request] = []
    script = [(500, "e"), (500, "e"), (500, "e"), (200, MODELS_OK)]
    async with _scripted_client(script, calls) as client:
        with pytest.raises(TransientError) as exc_info:
            await fetch_quota("t", "p", Identity.GEMINI_CLI, client=client, sleep=FakeSleep())

    assert len(calls) == 3
    assert exc_info.value.status == 500
    assert not isinstance(exc_info.value, ForbiddenError)


@pytest.mark.asyncio
async def test_timeouts_and_network_errors_are_retried() -> None:
    calls: list[httpx.Request] = []
    script = [httpx.ReadTimeout, httpx.ConnectError, (200, MODELS_OK)]
    async with _scripted_client(script, calls) as client:
        result = await fetch_quota("t", "p", Identity.ANTIGRAVITY, client=client, sleep=FakeSleep())

    assert len(calls) == 3
    assert len(result) == 1


@pytest.mark.asyncio
async def test_repeated_timeouts_surface_as_transient() -> None:
    calls: list[httpx.Request] = []
    async with _scripted_client([httpx.ReadTimeout], calls) as client:
        with pytest.raises(TransientError) as exc_info:
            await fetch_quota("t", "p", Identity.ANTIGRAVITY, client=client, sleep=FakeSleep())

    assert len(calls) == 3
    assert not isinstance(exc_info.value, RequestTimeoutError)


@pytest.mark.asyncio
async def test_empty_success_body_yields_no_models() -> None:
    calls: list[httpx.Request] = []
    async with _scripted_client([(200, "")], calls) as client:
        assert await fetch_quota("t", "p", Identity.GEMINI_CLI, client=client) == []


@pytest.mark.asyncio
async def test_undecodable_body_is_retried() -> None:
    calls: list[httpx.Request] = []
    sleep = FakeSleep()
    async with _scripted_client([CORRUPT_GZIP, (200, MODELS_OK)], calls) as client:
        result = await fetch_quota("t", "p", Identity.ANTIGRAVITY, client=client, sleep=sleep)

    assert len(calls) == 2
    assert sleep.delays == [1.0]
    assert result == [ModelQuota("gemini-pro", 80, "2026-02-01T00:00:00Z")]


@pytest.mark.asyncio
async def test_undecodable_body_exhausts_as_transient() -> None:
    calls: list[httpx.Request] = []
    async with _scripted_client([CORRUPT_GZIP], calls) as client:
        with pytest.raises(TransientError):
            await fetch_quota("t", "p", Identity.GEMINI_CLI, client=client, sleep=FakeSleep())

    assert len(calls) == 3


@pytest.mark.asyncio
@pytest.mark.parametrize("identity", [Identity.ANTIGRAVITY, Identity.GEMINI_CLI])
async def test_quota_request_uses_fifteen_second_timeout(identity: Identity) -> None:
    calls: list[httpx.Request] = []
    async with _scripted_client([(200, {})], calls) as client:
        await fetch_quota("t", "p", identity, client=client)

    assert calls[0].extensions["timeout"] == {"connect": 15.0, "read": 15.0, "write": 15.0, "pool": 15.0}
