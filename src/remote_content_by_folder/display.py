"""Rich-based display functions for Remote Content By Folder."""

from __future__ import annotations

from typing import Any

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from .models import Anomaly, Policy, ScanResult

console = Console()


def _policy_color(policy: Policy) -> str:
    """Return a Rich color name for a policy."""
    if policy is Policy.BLOCK:
        return "red"
    if policy is Policy.ALLOW:
        return "green"
    return "white"


def display_scan_result(result: ScanResult) -> None:
    """Display the counters of a finished scan pass."""
    table = Table(title=f"Scan Results ({result.reason})")
    table.add_column("Folders", justify="right")
    table.add_column("Scanned", justify="right")
    table.add_column("Changed", justify="right")
    table.add_column("Previously seen", justify="right", style="dim")
    table.add_column("Account errors", justify="right")

    errors_color = "red" if result.account_errors else "green"
    table.add_row(
        str(result.folders_scanned),
        str(result.messages_scanned),
        f"[bold]{result.messages_changed}[/bold]",
        str(result.messages_skipped),
        f"[{errors_color}]{result.account_errors}[/{errors_color}]",
    )

    console.print(table)
    console.print(
        Panel(
            f"Started: {result.started_at}  |  Finished: {result.finished_at or '-'}",
            title="Summary",
        )
    )


def display_classification(folder_name: str, policy: Policy) -> None:
    color = _policy_color(policy)
    console.print(f"{folder_name}: [{color}]{policy.value}[/{color}]")


def display_preferences(values: dict[str, Any], defaults: dict[str, Any]) -> None:
    """Display current preference values, marking those changed from defaults."""
    table = Table(title="Preferences")
    table.add_column("Name")
    table.add_column("Value")
    table.add_column("Default", style="dim")

    for name, value in values.items():
        default = defaults[name]
        shown = repr(value) if isinstance(value, str) else str(value)
        if value != default:
            shown = f"[bold yellow]{shown}[/bold yellow]"
        table.add_row(name, shown, repr(default) if isinstance(default, str) else str(default))

    console.print(table)


def display_anomaly(anomaly: Anomaly) -> None:
    """Alert the user about a notification feed anomaly."""
    console.print(
        Panel(
            f"{anomaly.message}\n\n[dim]{anomaly.detected_at}[/dim]",
            title="[bold red]Remote Content By Folder anomaly[/bold red]",
        )
    )
