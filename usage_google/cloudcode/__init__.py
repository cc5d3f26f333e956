"""Cloud Code API clients."""

from usage_google.cloudcode.project import DEFAULT_PROJECT_ID, resolve_project_id
from usage_google.cloudcode.quota import fetch_quota
from usage_google.cloudcode.userinfo import fetch_user_email

__all__ = [
    "DEFAULT_PROJECT_ID",
    "fetch_quota",
    "fetch_user_email",
    "resolve_project_id",
]
