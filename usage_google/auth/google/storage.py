"""Account store persistence."""

from __future__ import annotations

import json
import logging
import os
import time
from dataclasses import asdict, replace
from pathlib import Path
from typing import Any

from usage_google.auth.google.constants import LEGACY_STORE_FILENAME, STORE_FILENAME
from usage_google.auth.google.models import (
    IDENTITIES,
    AccessToken,
    Account,
    AccountStore,
    Identity,
    IdentityCredential,
)
from usage_google.config.loader import convert_keys, convert_to_camel, ensure_dir, get_config_dir

logger = logging.getLogger(__name__)

STORE_VERSION = 1


class TokenStore:
    """Reads and writes the account store in a config directory."""

    def __init__(self, config_dir: Path | None = None):
        self._config_dir = config_dir

    @property
    def config_dir(self) -> Path:
        return self._config_dir or get_config_dir()

    @property
    def path(self) -> Path:
        return self.config_dir / STORE_FILENAME

    @property
    def legacy_path(self) -> Path:
        return self.config_dir / LEGACY_STORE_FILENAME

    def load(self) -> AccountStore:
        """Load the store, falling back to the legacy file, then to an empty store."""
        for path in (self.path, self.legacy_path):
            store = _read_store_file(path)
            if store is not None:
                return store
        return AccountStore(version=STORE_VERSION, accounts=[])

    def save(self, store: AccountStore) -> None:
        path = self.path
        ensure_dir(path.parent)
        path.write_text(
            json.dumps(store_to_dict(store), ensure_ascii=True, indent=2) + "\n",
            encoding="utf-8",
        )
        try:
            os.chmod(path, 0o600)
        except OSError:
            # Ignore permission setting failures.
            pass


def _read_store_file(path: Path) -> AccountStore | None:
    if not path.exists():
        return None
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        logger.debug("Ignoring unreadable store file %s", path)
        return None
    return store_from_dict(data)


def store_from_dict(data: Any) -> AccountStore | None:
    """Build a store from its JSON document; None if the document is not a v1 store."""
    if not isinstance(data, dict) or data.get("version") != STORE_VERSION:
        return None
    raw_accounts = data.get("accounts")
    if not isinstance(raw_accounts, list):
        return None

    accounts: list[Account] = []
    for raw in convert_keys(raw_accounts):
        if not isinstance(raw, dict) or not isinstance(raw.get("email"), str):
            continue
        credentials: dict[Identity, IdentityCredential] = {}
        for identity in IDENTITIES:
            entry = raw.get(_snake_key(identity))
            if isinstance(entry, dict) and isinstance(entry.get("refresh_token"), str):
                credentials[identity] = IdentityCredential(
                    refresh_token=entry["refresh_token"],
                    project_id=_as_str(entry.get("project_id")),
                    cached_access_token=_as_str(entry.get("cached_access_token")),
                    cached_expires_at=_as_int(entry.get("cached_expires_at")),
                )
        accounts.append(
            Account(
                email=raw["email"],
                project_id=_as_str(raw.get("project_id")),
                credentials=credentials,
                added_at=_as_int(raw.get("added_at")) or 0,
                updated_at=_as_int(raw.get("updated_at")) or 0,
            )
        )
    return AccountStore(version=STORE_VERSION, accounts=accounts)


def _as_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None


def _as_int(value: Any) -> int | None:
    """Integer value of a stored number; None for anything unusable."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        return int(float(value)) if isinstance(value, str) else int(value)
    except (ValueError, OverflowError):
        return None


def store_to_dict(store: AccountStore) -> dict[str, Any]:
    """Serialize a store; optional fields that are unset are omitted."""
    accounts: list[dict[str, Any]] = []
    for account in store.accounts:
        item: dict[str, Any] = {"email": account.email}
        if account.project_id is not None:
            item["project_id"] = account.project_id
        for identity in IDENTITIES:
            credential = account.credentials.get(identity)
            if credential is None:
                continue
            item[_snake_key(identity)] = {
                k: v for k, v in asdict(credential).items() if v is not None
            }
        item["added_at"] = account.added_at
        item["updated_at"] = account.updated_at
        accounts.append(item)
    return {"version": store.version, "accounts": convert_to_camel(accounts)}


def _snake_key(identity: Identity) -> str:
    return identity.store_key.replace("Cli", "_cli")


def _now_ms() -> int:
    return int(time.time() * 1000)


def upsert_account(
    store: AccountStore,
    email: str,
    credentials: dict[Identity, IdentityCredential] | None = None,
    project_id: str | None = None,
    now_ms: int | None = None,
) -> AccountStore:
    """Return a copy of the store with the account created or merged.

    Identities absent from ``credentials`` keep their stored credential.
    """
    now = _now_ms() if now_ms is None else now_ms
    credentials = credentials or {}
    accounts = list(store.accounts)

    for index, existing in enumerate(accounts):
        if existing.email != email:
            continue
        merged = dict(existing.credentials)
        merged.update(credentials)
        accounts[index] = replace(
            existing,
            project_id=project_id if project_id is not None else existing.project_id,
            credentials=merged,
            updated_at=now,
        )
        return replace(store, accounts=accounts)

    accounts.append(
        Account(
            email=email,
            project_id=project_id,
            credentials=dict(credentials),
            added_at=now,
            updated_at=now,
        )
    )
    return replace(store, accounts=accounts)


def with_cached_tokens(
    store: AccountStore,
    tokens: dict[tuple[str, Identity], AccessToken],
) -> AccountStore:
    """Return a copy of the store with refreshed access tokens cached on their credentials."""
    accounts: list[Account] = []
    for account in store.accounts:
        credentials = dict(account.credentials)
        for identity, credential in account.credentials.items():
            token = tokens.get((account.email, identity))
            if token is None:
                continue
            credentials[identity] = replace(
                credential,
                cached_access_token=token.access_token,
                cached_expires_at=token.expires_at,
            )
        accounts.append(replace(account, credentials=credentials))
    return replace(store, accounts=accounts)
