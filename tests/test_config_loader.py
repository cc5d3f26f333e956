from pathlib import Path

from usage_google.auth.google.models import Identity
from usage_google.config.loader import (
    camel_to_snake,
    convert_keys,
    convert_to_camel,
    get_config_dir,
    load_oauth_clients,
    snake_to_camel,
)


def test_camel_to_snake_basic() -> None:
    assert camel_to_snake("refreshToken") == "refresh_token"
    assert camel_to_snake("cachedExpiresAt") == "cached_expires_at"
    assert camel_to_snake("geminiCli") == "gemini_cli"


def test_snake_to_camel_basic() -> None:
    assert snake_to_camel("refresh_token") == "refreshToken"
    assert snake_to_camel("gemini_cli") == "geminiCli"
    assert snake_to_camel("email") == "email"


def test_convert_keys_nested() -> None:
    data = {
        "projectId": "p",
        "geminiCli": {"refreshToken": "r"},
        "accounts": [{"addedAt": 5}],
    }
    out = convert_keys(data)
    assert out["project_id"] == "p"
    assert out["gemini_cli"]["refresh_token"] == "r"
    assert out["accounts"][0]["added_at"] == 5


def test_convert_to_camel_nested() -> None:
    data = {
        "project_id": "p",
        "models": [{"remaining_percent": 50, "reset_time": ""}],
    }
    out = convert_to_camel(data)
    assert out["projectId"] == "p"
    assert out["models"][0]["remainingPercent"] == 50
    assert out["models"][0]["resetTime"] == ""


def test_get_config_dir_prefers_env_override(monkeypatch, tmp_path) -> None:
    monkeypatch.setenv("USAGE_GOOGLE_CONFIG_DIR", str(tmp_path))
    assert get_config_dir() == tmp_path


def test_get_config_dir_defaults_to_opencode_dir(monkeypatch) -> None:
    monkeypatch.delenv("USAGE_GOOGLE_CONFIG_DIR", raising=False)
    monkeypatch.setattr("usage_google.config.loader.sys.platform", "linux")
    assert get_config_dir() == Path.home() / ".config" / "opencode"


def test_get_config_dir_uses_appdata_on_windows(monkeypatch, tmp_path) -> None:
    monkeypatch.delenv("USAGE_GOOGLE_CONFIG_DIR", raising=False)
    monkeypatch.setattr("usage_google.config.loader.sys.platform", "win32")
    monkeypatch.setenv("APPDATA", str(tmp_path))
    assert get_config_dir() == tmp_path / "opencode"


def test_load_oauth_clients_env_overrides_defaults() -> None:
    clients = load_oauth_clients(
        {
            "GEMINI_CLI_OAUTH_CLIENT_ID": "cli-id",
            "GEMINI_CLI_OAUTH_CLIENT_SECRET": "cli-secret",
        }
    )
    assert clients[Identity.GEMINI_CLI].client_id == "cli-id"
    assert clients[Identity.GEMINI_CLI].client_secret == "cli-secret"
    assert clients[Identity.ANTIGRAVITY].client_id == "ANTIGRAVITY_CLIENT_ID_PLACEHOLDER"
