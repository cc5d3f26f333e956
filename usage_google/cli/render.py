"""Table and JSON rendering of status results."""

from __future__ import annotations

import json
from dataclasses import asdict
from datetime import datetime, timezone

from rich.console import Group, RenderableType
from rich.table import Table
from rich.text import Text

from usage_google.auth.google.models import (
    IDENTITIES,
    AccountQuotaReport,
    IdentityError,
    ModelQuota,
)
from usage_google.config.loader import convert_to_camel

SUMMARY_MODELS = (
    "claude-opus-4-6-thinking",
    "gemini-3.1-pro-high",
    "gemini-3-pro-image",
    "gemini-3-pro-preview",
    "gemini-3-flash-preview",
)

NO_ACCOUNTS_MESSAGE = "No accounts found. Run `usage-google login` to add an account."


def format_reset_time(reset_time: str, now: datetime | None = None) -> str:
    """Render a reset timestamp as time remaining (``2h30m``), ``now`` if past."""
    if not reset_time:
        return "-"
    try:
        moment = datetime.fromisoformat(reset_time.replace("Z", "+00:00"))
    except ValueError:
        return reset_time[:10]
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)

    now = now or datetime.now(timezone.utc)
    diff_s = (moment - now).total_seconds()
    if diff_s < 0:
        return "now"

    total_minutes = int(diff_s // 60)
    hours, mins = divmod(total_minutes, 60)
    if hours >= 24:
        days, hours = divmod(hours, 24)
        return f"{days}d{hours}h{mins}m"
    if hours > 0:
        return f"{hours}h{mins}m"
    return f"{mins}m"


def error_status(error: IdentityError) -> str:
    if error.needs_relogin:
        return "Needs relogin"
    if error.is_forbidden:
        return "Forbidden"
    return "Error"


def _new_table(title: str) -> Table:
    table = Table(title=title, title_justify="left")
    table.add_column("Email", style="cyan", max_width=22, no_wrap=True, overflow="ellipsis")
    table.add_column("Identity")
    table.add_column("Model")
    table.add_column("Remaining", justify="right")
    table.add_column("Reset")
    table.add_column("Status")
    return table


def _remaining_style(percent: int) -> str:
    if percent >= 50:
        return "green"
    if percent >= 20:
        return "yellow"
    return "red"


def _fill(table: Table, rows: list[tuple[AccountQuotaReport, list[ModelQuota]]], errors: list[IdentityError]) -> None:
    for identity in IDENTITIES:
        for report, models in rows:
            if report.identity is not identity:
                continue
            for model in models:
                table.add_row(
                    report.email,
                    report.identity.value,
                    model.model,
                    Text(f"{model.remaining_percent}%", style=_remaining_style(model.remaining_percent)),
                    format_reset_time(model.reset_time),
                    "[green]OK[/green]",
                )
    for error in errors:
        table.add_row(error.email, error.identity.value, "-", "-", "-", f"[red]{error_status(error)}[/red]")


def render_table(reports: list[AccountQuotaReport], errors: list[IdentityError]) -> RenderableType:
    """Summary and full-detail tables, plus re-login hints."""
    if not reports and not errors:
        return Text(NO_ACCOUNTS_MESSAGE)

    summary_rows = []
    for report in reports:
        by_name = {m.model: m for m in report.models}
        summary_rows.append((report, [by_name[name] for name in SUMMARY_MODELS if name in by_name]))

    summary = _new_table("Summary")
    if any(models for _, models in summary_rows) or errors:
        _fill(summary, summary_rows, errors)
    else:
        summary.add_row("(no matching models)", "", "", "", "", "")

    detail = _new_table("Full detail")
    _fill(detail, [(report, report.models) for report in reports], errors)

    parts: list[RenderableType] = [summary, Text(""), detail]
    relogin = [error for error in errors if error.needs_relogin]
    if relogin:
        parts.append(Text("\nAction required:"))
        for error in relogin:
            parts.append(Text(f"  usage-google login --mode {error.identity.value}  # {error.email}"))
    return Group(*parts)


def render_json(reports: list[AccountQuotaReport], errors: list[IdentityError]) -> str:
    """Pretty-printed JSON with camelCase keys."""
    payload = {
        "reports": [asdict(report) for report in reports],
        "errors": [asdict(error) for error in errors],
    }
    return json.dumps(convert_to_camel(payload), indent=2, default=str)
