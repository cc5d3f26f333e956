"""Configuration loading utilities."""

from __future__ import annotations

import os
import re
import sys
from pathlib import Path
from typing import Any

from usage_google.auth.google.constants import (
    DEFAULT_ANTIGRAVITY_CLIENT_ID,
    DEFAULT_ANTIGRAVITY_CLIENT_SECRET,
    DEFAULT_GEMINI_CLI_CLIENT_ID,
    DEFAULT_GEMINI_CLI_CLIENT_SECRET,
)
from usage_google.auth.google.models import Identity, OAuthClient

CONFIG_DIR_ENV = "USAGE_GOOGLE_CONFIG_DIR"

_CLIENT_ENV = {
    Identity.ANTIGRAVITY: (
        "ANTIGRAVITY_OAUTH_CLIENT_ID",
        "ANTIGRAVITY_OAUTH_CLIENT_SECRET",
        DEFAULT_ANTIGRAVITY_CLIENT_ID,
        DEFAULT_ANTIGRAVITY_CLIENT_SECRET,
    ),
    Identity.GEMINI_CLI: (
        "GEMINI_CLI_OAUTH_CLIENT_ID",
        "GEMINI_CLI_OAUTH_CLIENT_SECRET",
        DEFAULT_GEMINI_CLI_CLIENT_ID,
        DEFAULT_GEMINI_CLI_CLIENT_SECRET,
    ),
}


def get_config_dir() -> Path:
    """Directory holding the account store."""
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override).expanduser()
    if sys.platform == "win32":
        appdata = os.environ.get("APPDATA")
        if appdata:
            return Path(appdata) / "opencode"
        return Path.home() / "AppData" / "Roaming" / "opencode"
    return Path.home() / ".config" / "opencode"


def ensure_dir(path: Path) -> Path:
    """Ensure a directory exists, creating it if necessary."""
    path.mkdir(parents=True, exist_ok=True)
    return path


def load_oauth_clients(env: dict[str, str] | None = None) -> dict[Identity, OAuthClient]:
    """Resolve the OAuth client of every identity (environment > built-in default)."""
    source = os.environ if env is None else env
    clients: dict[Identity, OAuthClient] = {}
    for identity, (id_var, secret_var, default_id, default_secret) in _CLIENT_ENV.items():
        clients[identity] = OAuthClient(
            client_id=source.get(id_var) or default_id,
            client_secret=source.get(secret_var) or default_secret,
        )
    return clients


def camel_to_snake(name: str) -> str:
    """Convert camelCase to snake_case."""
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def snake_to_camel(name: str) -> str:
    """Convert snake_case to camelCase."""
    head, *rest = name.split("_")
    return head + "".join(word.capitalize() for word in rest)


def convert_keys(data: Any) -> Any:
    """Recursively convert dict keys from camelCase to snake_case."""
    if isinstance(data, dict):
        return {camel_to_snake(k): convert_keys(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_keys(item) for item in data]
    return data


def convert_to_camel(data: Any) -> Any:
    """Recursively convert dict keys from snake_case to camelCase."""
    if isinstance(data, dict):
        return {snake_to_camel(k): convert_to_camel(v) for k, v in data.items()}
    if isinstance(data, list):
        return [convert_to_camel(item) for item in data]
    return data
