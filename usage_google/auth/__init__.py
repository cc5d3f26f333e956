"""Authentication modules."""

from usage_google.auth.google import (
    login_google_oauth_interactive,
    obtain_access_token,
)

__all__ = [
    "login_google_oauth_interactive",
    "obtain_access_token",
]
