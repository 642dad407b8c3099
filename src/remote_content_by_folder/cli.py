"""CLI entry point for Remote Content By Folder."""

from __future__ import annotations

import asyncio

import click

from . import constants
from .auth import check_auth, get_gmail_service
from .config import Preferences
from .display import console, display_classification, display_preferences, display_scan_result
from .errors import RemoteContentError
from .log import configure_logging
from .policy import classify


def _load_prefs() -> Preferences:
    prefs = Preferences()
    configure_logging(prefs)
    return prefs


@click.group()
@click.version_option(version="0.1.0", prog_name="remote-content-by-folder")
def cli() -> None:
    """Remote Content By Folder - set remote content policy from folder names."""


@cli.command()
@click.option(
    "--poll-seconds",
    default=constants.HISTORY_POLL_SECONDS,
    type=float,
    show_default=True,
    help="How often to poll Gmail for new mail.",
)
def run(poll_seconds: float) -> None:
    """Watch the mailbox and apply policies to new messages."""
    from .service import run_service

    prefs = _load_prefs()
    try:
        service = get_gmail_service()
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e

    try:
        asyncio.run(run_service(service, prefs, poll_seconds))
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped.[/dim]")


@cli.command()
@click.option("--filter", "filter_regexp", default=None, help="Folder name regexp (default: scan_regexp preference).")
@click.option("-f", "--folder", "folders", multiple=True, help="Folder path to scan regardless of the filter.")
def scan(filter_regexp: str | None, folders: tuple[str, ...]) -> None:
    """Run a single scan pass over the mailbox."""
    from .service import run_single_scan

    prefs = _load_prefs()
    try:
        service = get_gmail_service()
    except FileNotFoundError as e:
        raise click.ClickException(str(e)) from e

    try:
        result = asyncio.run(run_single_scan(service, prefs, filter_regexp, folders))
    except RemoteContentError as e:
        raise click.ClickException(str(e)) from e

    display_scan_result(result)


@cli.command(name="classify")
@click.argument("folder_name")
def classify_cmd(folder_name: str) -> None:
    """Show the policy the current rules give to FOLDER_NAME."""
    prefs = _load_prefs()
    try:
        rules = prefs.rule_set()
    except RemoteContentError as e:
        raise click.ClickException(str(e)) from e
    display_classification(folder_name, classify(folder_name, rules))


@cli.command()
def auth() -> None:
    """Test Gmail authentication."""
    if not check_auth():
        raise SystemExit(1)


@cli.group(name="config")
def config_group() -> None:
    """Show and change preferences."""


@config_group.command(name="show")
def config_show() -> None:
    """Show all preferences."""
    prefs = _load_prefs()
    try:
        values = prefs.all()
    except RemoteContentError as e:
        raise click.ClickException(str(e)) from e
    display_preferences(values, constants.PREF_DEFAULTS)


@config_group.command(name="set")
@click.argument("name", type=click.Choice(list(constants.PREF_DEFAULTS)))
@click.argument("value")
def config_set(name: str, value: str) -> None:
    """Set preference NAME to VALUE."""
    prefs = _load_prefs()
    try:
        stored = prefs.set(name, value)
    except RemoteContentError as e:
        raise click.ClickException(str(e)) from e
    console.print(f"[green]{name} set to {stored!r}[/green]")


@config_group.command(name="reset")
@click.argument("name", type=click.Choice(list(constants.PREF_DEFAULTS)))
def config_reset(name: str) -> None:
    """Reset preference NAME to its default."""
    prefs = _load_prefs()
    prefs.reset(name)
    console.print(f"[green]{name} reset to {constants.PREF_DEFAULTS[name]!r}[/green]")


def main() -> None:
    cli()
