"""Google OAuth login and token management."""

from __future__ import annotations

import asyncio
import logging
import sys
import threading
import time
import webbrowser
from typing import Any, Callable

import httpx

from usage_google.auth.google.constants import (
    CALLBACK_TIMEOUT_S,
    DEFAULT_EXPIRES_IN_S,
    MANUAL_PROMPT_DELAY_SEC,
    TOKEN_CACHE_MARGIN_S,
    TOKEN_TIMEOUT_S,
    TOKEN_URL,
)
from usage_google.auth.google.models import (
    AccessToken,
    Identity,
    IdentityCredential,
    LoginResult,
    OAuthClient,
)
from usage_google.auth.google.pkce import (
    build_authorization_url,
    create_state,
    generate_pkce,
    parse_authorization_input,
)
from usage_google.auth.google.server import start_local_server
from usage_google.cloudcode.userinfo import fetch_user_email
from usage_google.errors import (
    InvalidGrantError,
    LoginError,
    MalformedResponseError,
    TransientError,
)
from usage_google.transport import read_json_safe, send

logger = logging.getLogger(__name__)


def is_cached_token_valid(credential: IdentityCredential, now: float) -> bool:
    """True when the cached access token outlives ``now`` by the safety margin."""
    if not credential.cached_access_token or not credential.cached_expires_at:
        return False
    return credential.cached_expires_at > now + TOKEN_CACHE_MARGIN_S


def _is_invalid_grant(payload: Any) -> bool:
    if not isinstance(payload, dict):
        return False
    if payload.get("error") == "invalid_grant":
        return True
    description = payload.get("error_description")
    return isinstance(description, str) and "invalid_grant" in description


async def _post_token(form: dict[str, str], *, client: httpx.AsyncClient) -> dict[str, Any]:
    response = await send(
        client,
        "POST",
        TOKEN_URL,
        timeout=TOKEN_TIMEOUT_S,
        data=form,
        headers={"Content-Type": "application/x-www-form-urlencoded"},
    )
    payload = read_json_safe(response)
    if response.is_success:
        if not isinstance(payload, dict):
            raise MalformedResponseError(
                "OAuth token response is not a JSON object",
                status=response.status_code,
                endpoint=TOKEN_URL,
            )
        return payload

    if _is_invalid_grant(payload):
        raise InvalidGrantError(
            "OAuth token request failed: invalid_grant",
            status=response.status_code,
            endpoint=TOKEN_URL,
            error=payload.get("error"),
            error_description=payload.get("error_description"),
        )
    raise TransientError(
        f"OAuth token request failed: HTTP {response.status_code}",
        status=response.status_code,
        endpoint=TOKEN_URL,
    )


def _parse_access_token(payload: dict[str, Any], now: float) -> AccessToken:
    access = payload.get("access_token")
    if not isinstance(access, str) or not access:
        raise MalformedResponseError(
            "OAuth token response missing access_token", status=200, endpoint=TOKEN_URL
        )
    expires_in = payload.get("expires_in")
    if not isinstance(expires_in, (int, float)) or isinstance(expires_in, bool):
        expires_in = DEFAULT_EXPIRES_IN_S
    return AccessToken(access_token=access, refreshed=True, expires_at=int(now + expires_in))


async def refresh_access_token(
    refresh_token: str,
    *,
    oauth_client: OAuthClient,
    client: httpx.AsyncClient,
    clock: Callable[[], float] = time.time,
) -> AccessToken:
    """Exchange a refresh token for a new access token. Not retried."""
    payload = await _post_token(
        {
            "grant_type": "refresh_token",
            "client_id": oauth_client.client_id,
            "client_secret": oauth_client.client_secret,
            "refresh_token": refresh_token,
        },
        client=client,
    )
    return _parse_access_token(payload, clock())


async def obtain_access_token(
    identity: Identity,
    credential: IdentityCredential,
    *,
    oauth_client: OAuthClient,
    client: httpx.AsyncClient,
    clock: Callable[[], float] = time.time,
) -> AccessToken:
    """Get a usable access token, reusing the cached one while it is fresh."""
    if is_cached_token_valid(credential, clock()):
        return AccessToken(
            access_token=credential.cached_access_token or "",
            refreshed=False,
            expires_at=credential.cached_expires_at,
        )
    logger.debug("Refreshing %s access token", identity.value)
    return await refresh_access_token(
        credential.refresh_token, oauth_client=oauth_client, client=client, clock=clock
    )


async def exchange_code(
    code: str,
    verifier: str,
    redirect_uri: str,
    *,
    oauth_client: OAuthClient,
    client: httpx.AsyncClient,
    clock: Callable[[], float] = time.time,
) -> tuple[AccessToken, str]:
    """Exchange an authorization code; returns the access token and the refresh token."""
    payload = await _post_token(
        {
            "grant_type": "authorization_code",
            "client_id": oauth_client.client_id,
            "client_secret": oauth_client.client_secret,
            "code": code,
            "code_verifier": verifier,
            "redirect_uri": redirect_uri,
        },
        client=client,
    )
    token = _parse_access_token(payload, clock())
    refresh = payload.get("refresh_token")
    if not isinstance(refresh, str) or not refresh:
        raise MalformedResponseError(
            "OAuth token response missing refresh_token", status=200, endpoint=TOKEN_URL
        )
    return token, refresh


async def _read_stdin_line() -> str:
    loop = asyncio.get_running_loop()
    if hasattr(loop, "add_reader") and sys.stdin:
        future: asyncio.Future[str] = loop.create_future()

        def _on_readable() -> None:
            line = sys.stdin.readline()
            if not future.done():
                future.set_result(line)

        try:
            loop.add_reader(sys.stdin, _on_readable)
        except (NotImplementedError, OSError, ValueError):
            return await loop.run_in_executor(None, sys.stdin.readline)

        try:
            return await future
        finally:
            loop.remove_reader(sys.stdin)

    return await loop.run_in_executor(None, sys.stdin.readline)


async def _await_manual_input(on_manual_code_input: Callable[[str], None]) -> str:
    await asyncio.sleep(MANUAL_PROMPT_DELAY_SEC)
    on_manual_code_input("Paste the redirect URL from your browser, or wait for the browser callback:")
    return await _read_stdin_line()


def login_google_oauth_interactive(
    identity: Identity,
    oauth_client: OAuthClient,
    on_auth: Callable[[str], None] | None = None,
    on_prompt: Callable[[str], str] | None = None,
    on_status: Callable[[str], None] | None = None,
    on_progress: Callable[[str], None] | None = None,
    on_manual_code_input: Callable[[str], None] | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> LoginResult:
    """Interactive login for one identity."""

    async def _login_async() -> LoginResult:
        verifier, challenge = generate_pkce()
        state = create_state()

        loop = asyncio.get_running_loop()
        code_future: asyncio.Future[str] = loop.create_future()

        def _notify(code_value: str) -> None:
            if code_future.done():
                return
            loop.call_soon_threadsafe(code_future.set_result, code_value)

        server, server_error = start_local_server(state, on_code=_notify)
        if not server:
            raise LoginError(server_error or "Local callback server failed to start")
        redirect_uri = server.redirect_uri
        url = build_authorization_url(oauth_client, redirect_uri, state, challenge)

        if on_auth:
            on_auth(url)
        else:
            webbrowser.open(url)

        code: str | None = None
        try:
            if on_progress and not on_manual_code_input:
                on_progress("Waiting for browser callback...")

            tasks: list[asyncio.Task[Any]] = []
            callback_task = asyncio.create_task(asyncio.wait_for(code_future, timeout=CALLBACK_TIMEOUT_S))
            tasks.append(callback_task)
            manual_task: asyncio.Task[Any] | None = None
            if on_manual_code_input:
                manual_task = asyncio.create_task(_await_manual_input(on_manual_code_input))
                tasks.append(manual_task)

            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
            for task in pending:
                task.cancel()

            for task in done:
                try:
                    result = task.result()
                except asyncio.TimeoutError:
                    if on_status:
                        on_status("Waiting for browser callback timed out.")
                    result = None
                if not result:
                    continue
                if task is manual_task:
                    parsed_code, parsed_state = parse_authorization_input(result)
                    if parsed_state and parsed_state != state:
                        raise LoginError("State validation failed.")
                    code = parsed_code
                else:
                    code = result
                if code:
                    break

            if not code:
                prompt = "Paste the redirect URL from your browser: "
                if on_prompt:
                    raw = await loop.run_in_executor(None, on_prompt, prompt)
                else:
                    raw = await loop.run_in_executor(None, input, prompt)
                parsed_code, parsed_state = parse_authorization_input(raw)
                if parsed_state and parsed_state != state:
                    raise LoginError("State validation failed.")
                code = parsed_code

            if not code:
                raise LoginError("No authorization code found in callback URL")

            if on_progress:
                on_progress("Exchanging authorization code...")
            async with httpx.AsyncClient(transport=transport) as client:
                token, refresh = await exchange_code(
                    code, verifier, redirect_uri, oauth_client=oauth_client, client=client
                )
                email = await fetch_user_email(token.access_token, client=client)
            logger.debug("Logged in %s as %s", identity.value, email)
            return LoginResult(
                email=email,
                refresh_token=refresh,
                access_token=token.access_token,
                expires_at=token.expires_at or 0,
            )
        finally:
            server.shutdown()
            server.server_close()

    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(_login_async())

    result: list[LoginResult] = []
    error: list[BaseException] = []

    def _runner() -> None:
        try:
            result.append(asyncio.run(_login_async()))
        except Exception as exc:
            error.append(exc)

    thread = threading.Thread(target=_runner)
    thread.start()
    thread.join()
    if error:
        raise error[0]
    return result[0]
