"""
Rich-formatted output for the DeskModes CLI.

Tables for modes, app lists and reconciliation outcomes, plus JSON
formatters for `--json` output.
"""

import json
from typing import Any, Dict, List, Optional

from rich.console import Console
from rich.table import Table
from rich.text import Text

from .models import AppConfig, AppEntry, ModeConfig, ReconciliationOutcome


def display_outcome(outcome: ReconciliationOutcome, console: Console = None) -> None:
    """
    Display what a mode switch did.

    Args:
        outcome: Result of a reconciliation
        console: Rich console (optional, creates new if not provided)
    """
    if console is None:
        console = Console()

    table = Table(title=f"Mode: {outcome.target_mode.name}", show_header=True, header_style="bold cyan")
    table.add_column("App")
    table.add_column("Bundle ID", style="dim")
    table.add_column("Result")
    table.add_column("Detail")

    for app in outcome.closed_apps:
        table.add_row(app.name, app.bundle_id, Text("✓ Closed", style="yellow"), "")
    for app, reason in outcome.skipped_apps:
        table.add_row(app.name, app.bundle_id, Text("⚠ Skipped", style="yellow"), reason)
    for app in outcome.kept_apps:
        table.add_row(app.name, app.bundle_id, Text("● Kept", style="dim"), "")
    for app in outcome.opened_apps:
        table.add_row(app.name, app.bundle_id, Text("✓ Opened", style="green"), "")
    for app, error in outcome.failed_to_open:
        table.add_row(app.name, app.bundle_id, Text("✗ Failed", style="red"), error)

    console.print(table)

    if outcome.shell_synced is not None:
        dock = Text("✓ Dock updated", style="green") if outcome.shell_synced else Text("✗ Dock not updated", style="red")
        console.print(dock)

    if outcome.success:
        console.print(Text(f" Switched to {outcome.target_mode.name}", style="bold green"))
    else:
        console.print(Text(f" Switched to {outcome.target_mode.name} with launch failures", style="bold red"))


def display_modes(config: AppConfig, current_mode_id: Optional[str] = None, console: Console = None) -> None:
    """Display configured modes, marking the current one."""
    if console is None:
        console = Console()

    table = Table(title="Modes", show_header=True, header_style="bold cyan")
    table.add_column("", width=1)
    table.add_column("Name")
    table.add_column("ID", style="dim")
    table.add_column("Shortcut")
    table.add_column("Apps", justify="right")
    table.add_column("Dock", justify="center")

    for mode in config.modes:
        marker = Text("●", style="green") if mode.id == current_mode_id else ""
        table.add_row(
            marker,
            mode.name,
            mode.id,
            mode.shortcut or "-",
            str(len(mode.apps)),
            "✓" if mode.manage_shell else "",
        )

    console.print(table)

    if config.global_allow_list:
        names = ", ".join(app.name for app in config.global_allow_list)
        console.print(f"[dim]Always open:[/dim] {names}")


def display_apps(apps: List[AppEntry], title: str, console: Console = None) -> None:
    if console is None:
        console = Console()

    if not apps:
        console.print(f"[dim]{title}: none[/dim]")
        return

    table = Table(title=title, show_header=True, header_style="bold cyan")
    table.add_column("Name")
    table.add_column("Bundle ID", style="dim")
    for app in apps:
        table.add_row(app.name, app.bundle_id)
    console.print(table)


def display_settings(config: AppConfig, console: Console = None) -> None:
    if console is None:
        console = Console()

    table = Table(title="Settings", show_header=True, header_style="bold cyan")
    table.add_column("Setting", style="dim")
    table.add_column("Value")

    table.add_row("Force close apps", _flag(config.force_close_apps))
    table.add_row("Reapply shortcut", _flag(config.enable_reapply_shortcut))
    table.add_row("Auto-reapply", _flag(config.enable_auto_reapply))
    table.add_row("Auto-reapply interval", f"{config.auto_reapply_interval} min")
    table.add_row("Mode switcher", config.mode_switcher_key.display_name)

    console.print(table)


def _flag(value: bool) -> Text:
    return Text("✓ On", style="green") if value else Text("✗ Off", style="dim")


def format_outcome_json(outcome: ReconciliationOutcome) -> str:
    return json.dumps(outcome.to_dict(), indent=2)


def format_modes_json(config: AppConfig, current_mode_id: Optional[str] = None) -> str:
    modes: List[Dict[str, Any]] = []
    for mode in config.modes:
        data = mode.model_dump(mode="json", by_alias=True)
        data["current"] = mode.id == current_mode_id
        modes.append(data)
    return json.dumps(modes, indent=2)


def format_apps_json(apps: List[AppEntry]) -> str:
    return json.dumps([app.model_dump(by_alias=True) for app in apps], indent=2)
