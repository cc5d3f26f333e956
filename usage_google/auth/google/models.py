"""Google OAuth and quota data models."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum


class Identity(str, Enum):
    """OAuth identity a quota is checked under."""

    ANTIGRAVITY = "antigravity"
    GEMINI_CLI = "gemini-cli"

    @property
    def store_key(self) -> str:
        """Key of this identity's credential inside a stored account."""
        return "antigravity" if self is Identity.ANTIGRAVITY else "geminiCli"

    def __str__(self) -> str:
        return self.value


# Canonical rendering / fan-out order.
IDENTITIES: tuple[Identity, ...] = (Identity.ANTIGRAVITY, Identity.GEMINI_CLI)


@dataclass(frozen=True)
class OAuthClient:
    """OAuth client credentials for one identity."""

    client_id: str
    client_secret: str


@dataclass
class IdentityCredential:
    """Stored credential of one identity on an account."""

    refresh_token: str
    project_id: str | None = None
    cached_access_token: str | None = None
    cached_expires_at: int | None = None  # epoch seconds


@dataclass
class Account:
    """A Google account with up to one credential per identity."""

    email: str
    project_id: str | None = None  # legacy account-level project
    credentials: dict[Identity, IdentityCredential] = field(default_factory=dict)
    added_at: int = 0
    updated_at: int = 0


@dataclass
class AccountStore:
    """Versioned collection of accounts."""

    version: int = 1
    accounts: list[Account] = field(default_factory=list)


@dataclass
class AccessToken:
    """Result of obtaining an access token."""

    access_token: str
    refreshed: bool
    expires_at: int | None = None


@dataclass
class LoginResult:
    """Outcome of one interactive identity login."""

    email: str
    refresh_token: str
    access_token: str
    expires_at: int


@dataclass
class ModelQuota:
    """Remaining quota for a single model."""

    model: str
    remaining_percent: int
    reset_time: str


@dataclass
class AccountQuotaReport:
    """Quota report for one (account, identity) pair."""

    email: str
    identity: Identity
    project_id: str
    models: list[ModelQuota]
    fetched_at: int  # epoch millis


@dataclass
class IdentityError:
    """Failure for one (account, identity) pair."""

    email: str
    identity: Identity
    message: str
    needs_relogin: bool = False
    is_forbidden: bool = False


@dataclass
class StatusResult:
    """Reports and errors of one status run."""

    reports: list[AccountQuotaReport] = field(default_factory=list)
    errors: list[IdentityError] = field(default_factory=list)

    @property
    def exit_code(self) -> int:
        if not self.reports and self.errors:
            return 1
        return 0
