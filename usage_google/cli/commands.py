"""CLI commands for usage-google."""

import asyncio
import logging
from enum import Enum
from pathlib import Path

import typer
from rich.console import Console

from usage_google import __logo__, __version__
from usage_google.auth.google.models import Identity

app = typer.Typer(
    name="usage-google",
    help=f"{__logo__} usage-google - Google Cloud Code quota checker",
    no_args_is_help=True,
)

console = Console()

EXIT_INTERRUPTED = 130


class OutputFormat(str, Enum):
    table = "table"
    json = "json"


class LoginMode(str, Enum):
    antigravity = "antigravity"
    gemini_cli = "gemini-cli"
    both = "both"


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} usage-google v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None, "--version", "-V", callback=version_callback, is_eager=True
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
    config_dir: Path = typer.Option(
        None, "--config-dir", help="Directory holding the account store"
    ),
):
    """usage-google - Google Cloud Code quota checker."""
    if verbose:
        logging.basicConfig(level=logging.DEBUG)
    ctx.obj = {"config_dir": config_dir}


def _token_store(ctx: typer.Context):
    from usage_google.auth.google.storage import TokenStore

    return TokenStore((ctx.obj or {}).get("config_dir"))


# ============================================================================
# Status
# ============================================================================


@app.command()
def status(
    ctx: typer.Context,
    format: OutputFormat = typer.Option(OutputFormat.table, "--format", "-f", help="Output format"),
    only: Identity = typer.Option(None, "--only", help="Only check this identity"),
    account: str = typer.Option(None, "--account", "-a", help="Only check this account e-mail"),
):
    """Show remaining quota for every stored account."""
    from usage_google.cli.render import render_json, render_table
    from usage_google.config.loader import load_oauth_clients
    from usage_google.status import run_status

    store = _token_store(ctx)
    try:
        result = asyncio.run(
            run_status(
                store,
                oauth_clients=load_oauth_clients(),
                account_email=account,
                identity=only,
            )
        )
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(EXIT_INTERRUPTED)

    if format is OutputFormat.json:
        typer.echo(render_json(result.reports, result.errors))
    else:
        console.print(render_table(result.reports, result.errors))

    raise typer.Exit(result.exit_code)


# ============================================================================
# Login
# ============================================================================


def _select_mode() -> LoginMode:
    console.print("\nSelect login mode:")
    console.print("  1) antigravity  - Antigravity IDE quota")
    console.print("  2) gemini-cli   - Gemini CLI quota")
    console.print("  3) both         - Both identities (recommended)\n")
    choice = typer.prompt("Enter choice [1-3]", default="3").strip()
    return {
        "1": LoginMode.antigravity,
        "2": LoginMode.gemini_cli,
    }.get(choice, LoginMode.both)


@app.command()
def login(
    ctx: typer.Context,
    mode: LoginMode = typer.Option(None, "--mode", "-m", help="Identity to log in with"),
    project_id: str = typer.Option(None, "--project-id", help="Project ID for the gemini-cli identity"),
):
    """Connect a Google account via OAuth."""
    from usage_google.auth.google.flow import login_google_oauth_interactive
    from usage_google.auth.google.models import IdentityCredential
    from usage_google.auth.google.storage import upsert_account
    from usage_google.config.loader import load_oauth_clients
    from usage_google.errors import UsageGoogleError

    mode = mode or _select_mode()
    identities = [Identity.ANTIGRAVITY, Identity.GEMINI_CLI] if mode is LoginMode.both else [Identity(mode.value)]
    clients = load_oauth_clients()

    store = _token_store(ctx)
    accounts = store.load()
    completed: list[Identity] = []

    for identity in identities:
        console.print(f"\n{__logo__} Logging in with [cyan]{identity.value}[/cyan]...")
        try:
            result = login_google_oauth_interactive(
                identity,
                clients[identity],
                on_auth=_open_auth_url,
                on_status=lambda msg: console.print(f"[yellow]{msg}[/yellow]"),
                on_progress=lambda msg: console.print(f"[dim]{msg}[/dim]"),
                on_manual_code_input=lambda msg: console.print(msg),
            )
        except KeyboardInterrupt:
            console.print("\n[yellow]Interrupted[/yellow]")
            raise typer.Exit(EXIT_INTERRUPTED)
        except UsageGoogleError as e:
            console.print(f"[red]Error: {e}[/red]")
            continue

        previous = next(
            (a.credentials.get(identity) for a in accounts.accounts if a.email == result.email),
            None,
        )
        stored_project = previous.project_id if previous else None
        credential = IdentityCredential(
            refresh_token=result.refresh_token,
            project_id=(project_id if identity is Identity.GEMINI_CLI else None) or stored_project,
            cached_access_token=result.access_token,
            cached_expires_at=result.expires_at,
        )
        accounts = upsert_account(accounts, result.email, credentials={identity: credential})
        completed.append(identity)
        console.print(f"[green]✓[/green] Logged in as {result.email}")

    if not completed:
        console.print("[red]Login failed[/red]")
        raise typer.Exit(1)

    store.save(accounts)
    console.print(f"[green]✓[/green] Saved to {store.path}")


def _open_auth_url(url: str) -> None:
    import webbrowser

    console.print("Opening browser for authentication...")
    console.print(f"If the browser doesn't open, visit this URL:\n{url}\n")
    webbrowser.open(url)


if __name__ == "__main__":
    app()
