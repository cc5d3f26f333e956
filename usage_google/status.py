"""Quota status across every stored account and identity."""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

import httpx

from usage_google.auth.google.flow import obtain_access_token
from usage_google.auth.google.models import (
    IDENTITIES,
    AccessToken,
    Account,
    AccountQuotaReport,
    AccountStore,
    Identity,
    IdentityCredential,
    IdentityError,
    OAuthClient,
    StatusResult,
)
from usage_google.auth.google.storage import with_cached_tokens
from usage_google.cloudcode.project import resolve_project_id
from usage_google.cloudcode.quota import fetch_quota
from usage_google.errors import ForbiddenError, InvalidGrantError

logger = logging.getLogger(__name__)


class AccountStoreAdapter(Protocol):
    def load(self) -> AccountStore: ...

    def save(self, store: AccountStore) -> None: ...


@dataclass
class _TaskOutcome:
    email: str
    identity: Identity
    report: AccountQuotaReport | None = None
    error: IdentityError | None = None
    refreshed: AccessToken | None = None


def _to_identity_error(email: str, identity: Identity, exc: Exception) -> IdentityError:
    return IdentityError(
        email=email,
        identity=identity,
        message=str(exc) or exc.__class__.__name__,
        needs_relogin=isinstance(exc, InvalidGrantError),
        is_forbidden=isinstance(exc, ForbiddenError),
    )


async def _check_identity(
    account: Account,
    identity: Identity,
    credential: IdentityCredential,
    *,
    oauth_client: OAuthClient,
    client: httpx.AsyncClient,
    sleep: Callable[[float], Awaitable[Any]],
    clock: Callable[[], float],
) -> _TaskOutcome:
    outcome = _TaskOutcome(email=account.email, identity=identity)
    try:
        token = await obtain_access_token(
            identity, credential, oauth_client=oauth_client, client=client, clock=clock
        )
        if token.refreshed:
            outcome.refreshed = token
        project_id = await resolve_project_id(
            token.access_token,
            credential.project_id or account.project_id,
            client=client,
        )
        models = await fetch_quota(
            token.access_token, project_id, identity, client=client, sleep=sleep
        )
    except Exception as exc:
        logger.debug("%s/%s failed: %s", account.email, identity.value, exc)
        outcome.error = _to_identity_error(account.email, identity, exc)
        return outcome

    outcome.report = AccountQuotaReport(
        email=account.email,
        identity=identity,
        project_id=project_id,
        models=models,
        fetched_at=int(clock() * 1000),
    )
    return outcome


async def _persist_tokens(
    store: AccountStoreAdapter,
    snapshot: AccountStore,
    tokens: dict[tuple[str, Identity], AccessToken],
) -> None:
    try:
        await asyncio.to_thread(store.save, with_cached_tokens(snapshot, tokens))
    except Exception as exc:
        logger.warning("Could not cache refreshed access tokens: %s", exc)


async def run_status(
    store: AccountStoreAdapter,
    *,
    oauth_clients: dict[Identity, OAuthClient],
    account_email: str | None = None,
    identity: Identity | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    clock: Callable[[], float] = time.time,
) -> StatusResult:
    """Fetch quota for every (account, identity) pair concurrently.

    Failures are reported per pair and never affect other pairs. Tokens that
    had to be refreshed are written back to ``store`` once, after every pair
    has settled; a failed write is logged and otherwise ignored.
    """
    snapshot = store.load()
    accounts = snapshot.accounts
    if account_email:
        accounts = [a for a in accounts if a.email == account_email]

    async with httpx.AsyncClient(transport=transport) as client:
        jobs = [
            _check_identity(
                account,
                ident,
                account.credentials[ident],
                oauth_client=oauth_clients[ident],
                client=client,
                sleep=sleep,
                clock=clock,
            )
            for account in accounts
            for ident in IDENTITIES
            if (identity is None or identity is ident)
            and ident in account.credentials
            and account.credentials[ident].refresh_token
        ]
        outcomes = await asyncio.gather(*jobs)

    result = StatusResult()
    refreshed: dict[tuple[str, Identity], AccessToken] = {}
    for outcome in outcomes:
        if outcome.report is not None:
            result.reports.append(outcome.report)
        elif outcome.error is not None:
            result.errors.append(outcome.error)
        if outcome.refreshed is not None:
            refreshed[(outcome.email, outcome.identity)] = outcome.refreshed

    if refreshed:
        await _persist_tokens(store, snapshot, refreshed)
    return result
