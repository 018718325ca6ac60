"""
questrade-ynab CLI — command-line interface.

Usage:
    questrade-ynab auth set
    questrade-ynab auth login
    questrade-ynab mapping list
    questrade-ynab mapping set
    questrade-ynab sync --dry-run
    questrade-ynab sync --mode transaction
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys
from collections.abc import Awaitable, Callable
from typing import NoReturn, Optional, TypeVar

import typer
from rich.console import Console
from rich.panel import Panel
from rich.prompt import IntPrompt, Prompt
from rich.table import Table

from questrade_ynab import __version__
from questrade_ynab.auth.credential import mask_token
from questrade_ynab.auth.lifecycle import TokenState
from questrade_ynab.errors import AuthError, ConfigError, QuestradeYNABError
from questrade_ynab.models.accounts import DestinationAccount, SourceAccount
from questrade_ynab.models.plan import SyncMode, UpdatePlan, UpdatePlanEntry
from questrade_ynab.reconciliation.money import format_amount, format_change

T = TypeVar("T")

app = typer.Typer(
    name="questrade-ynab",
    help="Sync Questrade account balances into YNAB",
    no_args_is_help=True,
    rich_markup_mode="rich",
)
auth_app = typer.Typer(help="Manage stored authentication values", no_args_is_help=True)
mapping_app = typer.Typer(help="Map Questrade accounts to YNAB accounts", no_args_is_help=True)
app.add_typer(auth_app, name="auth")
app.add_typer(mapping_app, name="mapping")

console = Console()

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class TerminalPrompt:
    """Reads a refresh token from the terminal."""

    def prompt_for_token(self, message: str) -> str:
        return Prompt.ask(message, default="", show_default=False, console=console).strip()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"[bold]questrade-ynab[/bold] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: bool = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version",
        callback=_version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to settings file (default: <config dir>/settings.yaml)",
    ),
) -> None:
    """Keep YNAB investment accounts in step with Questrade."""
    ctx.obj = {"config": config, "verbose": verbose}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level,
        format=LOG_FORMAT,
        datefmt="%Y-%m-%d %H:%M:%S",
        stream=sys.stderr,
        force=True,
    )


def _load_pilot(ctx: typer.Context):  # noqa: ANN202
    """Build the pilot from --config, falling back to the settings file in the config dir."""
    from questrade_ynab.config import SyncConfig
    from questrade_ynab.pilot import SyncPilot
    from questrade_ynab.storage import JSONFileGateway

    options = ctx.obj or {}
    try:
        config_path = options.get("config")
        config = SyncConfig.load(config_path)
        if config_path is None and config.settings_file.exists():
            config = SyncConfig.load(str(config.settings_file))
    except ConfigError as e:
        _fail(e)

    _configure_logging("DEBUG" if options.get("verbose") else config.log_level)
    return SyncPilot(config=config, gateway=JSONFileGateway(config), prompt=TerminalPrompt())


def _fail(error: QuestradeYNABError) -> NoReturn:
    console.print(f"[red]Error: {error}[/red]")
    if isinstance(error, AuthError):
        console.print("[dim]Run 'questrade-ynab auth login --force' to get a fresh access token.[/dim]")
    raise typer.Exit(1)


def _run(pilot, work: Callable[[], Awaitable[T]]) -> T:  # noqa: ANN001
    """Run one async step, closing HTTP clients and reporting expected failures."""

    async def runner() -> T:
        try:
            return await work()
        finally:
            await pilot.close()

    try:
        return asyncio.run(runner())
    except QuestradeYNABError as e:
        _fail(e)


def _mask(value: str, reveal: bool) -> str:
    return value if reveal else mask_token(value)


# ---------------------------------------------------------------------------
# auth
# ---------------------------------------------------------------------------


@auth_app.command("set")
def auth_set(ctx: typer.Context) -> None:
    """Prompt for auth tokens and save them to config.json (replaces the file)."""
    from questrade_ynab.storage import QuestradeRecord, StoredCredentials, YNABRecord

    pilot = _load_pilot(ctx)
    refresh_token = Prompt.ask(
        "Enter your Questrade manual authorization token (refresh token)",
        default="",
        show_default=False,
        console=console,
    ).strip()
    ynab_token = Prompt.ask(
        "Enter your YNAB personal access token", default="", show_default=False, console=console
    ).strip()
    budget_id = Prompt.ask(
        "Enter your YNAB budget ID", default="", show_default=False, console=console
    ).strip()

    stored = StoredCredentials(
        questrade=QuestradeRecord(refresh_token=refresh_token),
        ynab=YNABRecord(access_token=ynab_token, budget_id=budget_id),
    )
    try:
        pilot.gateway.save_credentials(stored)
    except QuestradeYNABError as e:
        _fail(e)
    console.print(
        f"[green]✓[/green] Saved auth values to [bold]{pilot.config.credentials_file}[/bold] (file replaced)"
    )


@auth_app.command("show")
def auth_show(
    ctx: typer.Context,
    reveal: bool = typer.Option(False, "--reveal", help="Print tokens unmasked"),
) -> None:
    """Print the stored credentials."""
    from questrade_ynab.storage import StoredCredentials

    pilot = _load_pilot(ctx)
    try:
        raw = pilot.gateway.read_raw_credentials()
        if raw is None:
            console.print(f"No {pilot.config.credentials_file} found")
            return
        stored = StoredCredentials.decode(raw)
    except QuestradeYNABError as e:
        _fail(e)

    reveal = reveal or not pilot.config.security.mask_tokens
    data = stored.encode()
    q, y = data["questrade"], data["ynab"]
    q["refresh_token"] = _mask(q["refresh_token"], reveal)
    q["access_token"] = _mask(q["access_token"], reveal)
    y["access_token"] = _mask(y["access_token"], reveal)
    console.print_json(json.dumps(data))


@auth_app.command("login")
def auth_login(
    ctx: typer.Context,
    force: bool = typer.Option(False, "--force", "-f", help="Refresh even if the cached token works"),
) -> None:
    """Make sure the Questrade access token works; refresh or prompt if needed."""
    pilot = _load_pilot(ctx)
    credential = _run(pilot, lambda: pilot.ensure_credential(force_refresh=force))

    if TokenState.REFRESHING in pilot.manager.history:
        console.print("[green]✓[/green] Refreshed Questrade access token and updated config.json")
    else:
        console.print("[green]✓[/green] Questrade access token is valid; no action needed")
    console.print(f"  API server: {credential.api_server}")
    if credential.expires_at:
        console.print(f"  Expires:    {credential.expires_at:%Y-%m-%d %H:%M:%S %Z}")


# ---------------------------------------------------------------------------
# mapping
# ---------------------------------------------------------------------------


def _source_table(accounts: list[SourceAccount], title: str = "Questrade Accounts") -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Number", style="bold cyan")
    table.add_column("Type")
    table.add_column("Total Equity", justify="right")
    for i, account in enumerate(accounts, 1):
        table.add_row(str(i), account.number, account.type, format_amount(account.total_equity))
    return table


def _destination_table(accounts: list[DestinationAccount], title: str = "YNAB Accounts") -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Name", style="bold cyan")
    table.add_column("Type")
    table.add_column("Balance", justify="right")
    for i, account in enumerate(accounts, 1):
        name = f"{account.name} (closed)" if account.closed else account.name
        table.add_row(str(i), name, account.type, format_amount(account.balance_major))
    return table


@mapping_app.command("list")
def mapping_list(ctx: typer.Context) -> None:
    """List Questrade and YNAB accounts and the current mapping."""
    pilot = _load_pilot(ctx)
    sources, destinations, mapping = _run(pilot, pilot.list_accounts)

    console.print(_source_table(sources))
    console.print(_destination_table(destinations))

    source_names = {a.number: a.label for a in sources}
    destination_names = {a.id: a.name for a in destinations}

    console.print("\n[bold]Account Mappings:[/bold]")
    if not mapping:
        console.print("  No account mappings found.")
    for source_id, destination_id in mapping.items():
        source_name = source_names.get(source_id, f"#{source_id} [red](unknown)[/red]")
        destination_name = destination_names.get(destination_id, f"{destination_id} [red](unknown)[/red]")
        console.print(f"  {source_name} → {destination_name}")

    console.print("\nTo create account mappings, use:\n  questrade-ynab mapping set")


@mapping_app.command("set")
def mapping_set(ctx: typer.Context) -> None:
    """Interactively map each Questrade account to a YNAB account."""
    pilot = _load_pilot(ctx)
    sources, destinations, current = _run(pilot, pilot.list_accounts)

    if not sources:
        console.print("[yellow]No Questrade accounts found[/yellow]")
        raise typer.Exit(1)
    if not destinations:
        console.print("[yellow]No YNAB accounts found[/yellow]")
        raise typer.Exit(1)

    console.print(_destination_table(destinations))
    index_of = {a.id: i for i, a in enumerate(destinations, 1)}

    mapping: dict[str, str] = {}
    for account in sources:
        default = index_of.get(current.get(account.number, ""), 0)
        while True:
            choice = IntPrompt.ask(
                f"YNAB account for [bold]{account.label}[/bold] "
                f"({format_amount(account.total_equity)}), 0 to skip",
                default=default,
                console=console,
            )
            if 0 <= choice <= len(destinations):
                break
            console.print(f"[red]Enter a number between 0 and {len(destinations)}[/red]")
        if choice:
            mapping[account.number] = destinations[choice - 1].id

    try:
        pilot.save_mapping(mapping)
    except QuestradeYNABError as e:
        _fail(e)

    names = {a.id: a.name for a in destinations}
    console.print(f"\n[green]✓[/green] Saved {len(mapping)} mapping(s) to [bold]{pilot.config.mappings_file}[/bold]")
    for source_id, destination_id in mapping.items():
        console.print(f"  #{source_id} → {names[destination_id]}")


# ---------------------------------------------------------------------------
# sync
# ---------------------------------------------------------------------------


def _display_plan(plan: UpdatePlan) -> None:
    """Show the pending updates and what was skipped."""
    verb = "updated" if plan.mode is SyncMode.BALANCE else "given a transaction"
    table = Table(title=f"Sync Preview ({plan.mode.value} mode)", show_lines=True)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Questrade", style="bold")
    table.add_column("YNAB")
    table.add_column("Current", justify="right")
    table.add_column("New", justify="right")
    table.add_column("Change", justify="right")

    for i, entry in enumerate(plan.entries, 1):
        color = "green" if entry.delta > 0 else "red" if entry.delta < 0 else "dim"
        table.add_row(
            str(i),
            entry.source.label,
            entry.destination.name,
            format_amount(entry.current_balance),
            format_amount(entry.new_balance),
            f"[{color}]{format_change(entry.delta)}[/{color}]",
        )

    console.print(table)
    console.print(f"Total accounts to be {verb}: [bold]{len(plan)}[/bold]")
    console.print(f"Skipped mappings: [bold]{plan.skipped_count}[/bold]")
    for skipped in plan.skipped:
        console.print(
            f"  [yellow]#{skipped.source_id} → {skipped.destination_id}: "
            f"{skipped.reason.value.replace('_', ' ')}[/yellow]"
        )
    if plan.unchanged:
        console.print(f"Already in sync: [bold]{plan.unchanged}[/bold]")


def _print_progress(position: int, total: int, entry: UpdatePlanEntry, error: Optional[str]) -> None:
    if error:
        console.print(f"[red]✗[/red] ({position}/{total}) {entry.destination.name}: {error}")
    else:
        console.print(
            f"[green]✓[/green] ({position}/{total}) Updated {entry.destination.name} - "
            f"New balance: {format_amount(entry.new_balance)}"
        )


@app.command()
def sync(
    ctx: typer.Context,
    mode: Optional[SyncMode] = typer.Option(
        None,
        "--mode",
        "-m",
        help="balance: set the cleared balance; transaction: post the difference",
        case_sensitive=False,
    ),
    dry_run: bool = typer.Option(False, "--dry-run", help="Preview changes without applying them"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Apply without asking for approval"),
) -> None:
    """Sync Questrade account balances to YNAB."""
    pilot = _load_pilot(ctx)
    sync_mode = mode or pilot.config.default_mode

    console.print(Panel.fit(
        "[bold blue]questrade-ynab[/bold blue] — Sync",
        subtitle=f"v{__version__}",
    ))

    console.print("Fetching accounts...")
    preview = _run(pilot, lambda: pilot.prepare(sync_mode))

    plan = preview.plan
    _display_plan(plan)
    if plan.is_empty:
        console.print("No accounts to sync")
        return

    if dry_run:
        console.print("\n[bold yellow][DRY RUN][/bold yellow] No changes were made")
        return

    if not yes:
        answer = Prompt.ask(
            "Do you want to proceed with these updates? (yes/no)",
            default="no",
            show_default=False,
            console=console,
        )
        if answer.strip().lower() not in ("yes", "y"):
            console.print("Sync cancelled")
            return

    console.print("\nApplying updates...")
    result = _run(pilot, lambda: pilot.apply(plan, on_progress=_print_progress))

    color = "green" if result.ok else "yellow"
    console.print(f"\n[{color}]Sync completed: {result.summary()}[/{color}]")
    if not result.ok:
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
