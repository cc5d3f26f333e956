"""Google OAuth module."""

from usage_google.auth.google.flow import (
    exchange_code,
    is_cached_token_valid,
    login_google_oauth_interactive,
    obtain_access_token,
    refresh_access_token,
)
from usage_google.auth.google.models import AccessToken, Identity, LoginResult, OAuthClient

__all__ = [
    "AccessToken",
    "Identity",
    "LoginResult",
    "OAuthClient",
    "exchange_code",
    "is_cached_token_valid",
    "login_google_oauth_interactive",
    "obtain_access_token",
    "refresh_access_token",
]
