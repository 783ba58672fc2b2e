"""
DeskModes CLI.

Usage:
    deskmodes modes list [--json]
    deskmodes modes add NAME [--app BUNDLE_ID ...] [--dock]
    deskmodes switch MODE [--dry-run] [--json]
    deskmodes running [--json]
    deskmodes allow list|add|remove
    deskmodes settings show|set KEY VALUE
    deskmodes dock show|sync MODE
    deskmodes run [--mode MODE]
"""

import asyncio
import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console

from . import daemon as daemon_module
from .adapters import BundleLocator, ProcessAppLister, read_bundle_info
from .adapters.bundles import display_name
from .daemon import build_engine, open_store
from .dock import DockSynchronizer
from .engine import ReconciliationEngine
from .errors import ModeNotFoundError
from .mode_manager import ModeManager
from .models import AllowSet, AppEntry, ModeConfig, ModeSwitcherKey
from .store import ConfigStore
from .testing import FakeDesktop
from .display import (
    display_apps,
    display_modes,
    display_outcome,
    display_settings,
    format_apps_json,
    format_modes_json,
    format_outcome_json,
)

logger = logging.getLogger(__name__)

# CLI name -> (field name, parser)
SETTINGS = {
    "force-close": ("force_close_apps", "bool"),
    "reapply-shortcut": ("enable_reapply_shortcut", "bool"),
    "auto-reapply": ("enable_auto_reapply", "bool"),
    "auto-reapply-interval": ("auto_reapply_interval", "int"),
    "mode-switcher-key": ("mode_switcher_key", "key"),
}


def _open_store(ctx: click.Context) -> ConfigStore:
    return open_store(ctx.obj.get("config_dir"))


def _resolve_mode(store: ConfigStore, name_or_id: str) -> ModeConfig:
    mode = store.find_mode(name_or_id)
    if mode is None:
        raise ModeNotFoundError(name_or_id)
    return mode


def _app_entry(bundle_id: str, name: Optional[str] = None) -> AppEntry:
    """Build an entry, taking the display name from the installed bundle when not given."""
    if name:
        return AppEntry(bundle_id=bundle_id, name=name)
    path = BundleLocator().find(bundle_id)
    info = read_bundle_info(path) if path else None
    if info:
        return AppEntry(bundle_id=bundle_id, name=display_name(info, bundle_id))
    return AppEntry.from_bundle_id(bundle_id)


def _dry_run_engine(store: ConfigStore) -> ReconciliationEngine:
    """Engine that acts on a snapshot of the running apps instead of the desktop."""
    desktop = FakeDesktop(running=ProcessAppLister().list_running_apps())
    return ReconciliationEngine(
        lister=desktop.lister(),
        closer=desktop.closer(),
        launcher=desktop.launcher(),
        config_provider=lambda: store.config,
    )


def _parse_setting(kind: str, value: str):
    if kind == "bool":
        lowered = value.strip().lower()
        if lowered in ("1", "true", "yes", "on"):
            return True
        if lowered in ("0", "false", "no", "off"):
            return False
        raise click.BadParameter(f"Expected on/off, got {value!r}")
    if kind == "int":
        try:
            return int(value)
        except ValueError:
            raise click.BadParameter(f"Expected a number, got {value!r}")
    try:
        return ModeSwitcherKey(value.strip().lower())
    except ValueError:
        choices = ", ".join(k.value for k in ModeSwitcherKey)
        raise click.BadParameter(f"Expected one of {choices}, got {value!r}")


def _print_error(console: Console, error: ModeNotFoundError) -> None:
    console.print(f"[red]Error: {error.message}[/red]")
    if error.suggestion:
        console.print(f"[dim]Tip: {error.suggestion}[/dim]")


@click.group()
@click.option('--config-dir', type=click.Path(file_okay=False, path_type=Path), envvar='DESKMODES_CONFIG_DIR',
              help='Configuration directory (default: ~/Library/Application Support/DeskModes)')
@click.option('-v', '--verbose', count=True, help='Log progress (-vv for debug output)')
@click.pass_context
def cli(ctx: click.Context, config_dir: Optional[Path], verbose: int):
    """Switch between named sets of running applications."""
    level = logging.WARNING if verbose == 0 else logging.INFO if verbose == 1 else logging.DEBUG
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    ctx.ensure_object(dict)
    ctx.obj["config_dir"] = config_dir


# Modes

@cli.group()
def modes():
    """List and edit modes."""
    pass


@modes.command("list")
@click.option('--json', 'output_json', is_flag=True, help='Output JSON instead of formatted tables')
@click.pass_context
def list_modes(ctx: click.Context, output_json: bool):
    """List configured modes."""
    store = _open_store(ctx)
    if output_json:
        click.echo(format_modes_json(store.config))
    else:
        display_modes(store.config, console=Console())


@modes.command("add")
@click.argument('name')
@click.option('--icon', default="new_mode", help='Icon reference')
@click.option('--shortcut', default=None, help='Global shortcut (e.g., cmd+shift+4)')
@click.option('--app', 'bundle_ids', multiple=True, help='Bundle id of an app in this mode (repeatable)')
@click.option('--dock', is_flag=True, help="Mirror this mode's apps into the Dock")
@click.pass_context
def add_mode(ctx: click.Context, name: str, icon: str, shortcut: Optional[str],
             bundle_ids: Tuple[str, ...], dock: bool):
    """Create a new mode."""
    store = _open_store(ctx)
    try:
        mode = ModeConfig(
            name=name,
            icon=icon,
            shortcut=shortcut,
            apps=[_app_entry(b) for b in bundle_ids],
            manage_shell=dock,
        )
    except ValueError as e:
        raise click.BadParameter(str(e))
    store.add_mode(mode)
    store.close()
    click.echo(f"Added mode {mode.name} ({mode.id})")


@modes.command("delete")
@click.argument('mode')
@click.pass_context
def delete_mode(ctx: click.Context, mode: str):
    """Delete a mode by name or id."""
    console = Console()
    store = _open_store(ctx)
    try:
        target = _resolve_mode(store, mode)
    except ModeNotFoundError as e:
        _print_error(console, e)
        sys.exit(2)
    store.delete_mode(target.id)
    store.close()
    click.echo(f"Deleted mode {target.name}")


@modes.command("add-app")
@click.argument('mode')
@click.argument('bundle_id')
@click.option('--name', default=None, help='Display name (default: read from the installed app)')
@click.pass_context
def add_app(ctx: click.Context, mode: str, bundle_id: str, name: Optional[str]):
    """Add an app to a mode."""
    console = Console()
    store = _open_store(ctx)
    try:
        target = _resolve_mode(store, mode)
    except ModeNotFoundError as e:
        _print_error(console, e)
        sys.exit(2)

    app = _app_entry(bundle_id, name)
    if target.contains_app(app):
        click.echo(f"{app.name} is already in {target.name}")
        return
    store.update_mode(target.model_copy(update={"apps": (*target.apps, app)}))
    store.close()
    click.echo(f"Added {app.name} to {target.name}")


@modes.command("remove-app")
@click.argument('mode')
@click.argument('bundle_id')
@click.pass_context
def remove_app(ctx: click.Context, mode: str, bundle_id: str):
    """Remove an app from a mode."""
    console = Console()
    store = _open_store(ctx)
    try:
        target = _resolve_mode(store, mode)
    except ModeNotFoundError as e:
        _print_error(console, e)
        sys.exit(2)

    key = bundle_id.lower()
    apps = [a for a in target.apps if a.key != key]
    if len(apps) == len(target.apps):
        click.echo(f"{bundle_id} is not in {target.name}")
        return
    store.update_mode(target.model_copy(update={"apps": tuple(apps)}))
    store.close()
    click.echo(f"Removed {bundle_id} from {target.name}")


# Switching

@cli.command()
@click.argument('mode')
@click.option('--dry-run', is_flag=True, help='Show what would change without closing or launching anything')
@click.option('--launch-timeout', type=float, default=None, help='Seconds to wait for each launch')
@click.option('--json', 'output_json', is_flag=True, help='Output JSON instead of formatted tables')
@click.pass_context
def switch(ctx: click.Context, mode: str, dry_run: bool, launch_timeout: Optional[float], output_json: bool):
    """
    Switch to MODE (name or id).

    Closes running apps outside the mode and the always-open list, then
    launches the mode's apps.

    Exit codes:
      0 - Switched
      1 - Switched, but some apps failed to launch
      2 - Mode not found
    """
    console = Console()
    store = _open_store(ctx)

    try:
        target = _resolve_mode(store, mode)
        engine = _dry_run_engine(store) if dry_run else build_engine(store, launch_timeout)
        manager = ModeManager(store, engine)
        outcome = asyncio.run(manager.switch_to(target.id))
    except ModeNotFoundError as e:
        _print_error(console, e)
        sys.exit(2)
    finally:
        store.close()

    if output_json:
        click.echo(format_outcome_json(outcome))
    else:
        if dry_run:
            console.print("[yellow]Dry run: no apps were closed or launched[/yellow]")
        display_outcome(outcome, console)

    sys.exit(0 if outcome.success else 1)


@cli.command()
@click.option('--json', 'output_json', is_flag=True, help='Output JSON instead of formatted tables')
def running(output_json: bool):
    """List running user-facing apps."""
    apps = ProcessAppLister().list_running_apps()
    if output_json:
        click.echo(format_apps_json(apps))
    else:
        display_apps(apps, "Running Apps", Console())


# Global allow list

@cli.group()
def allow():
    """Manage apps that stay open in every mode."""
    pass


@allow.command("list")
@click.option('--json', 'output_json', is_flag=True, help='Output JSON instead of formatted tables')
@click.pass_context
def allow_list(ctx: click.Context, output_json: bool):
    """List always-open apps."""
    store = _open_store(ctx)
    apps = list(store.config.global_allow_list)
    if output_json:
        click.echo(format_apps_json(apps))
    else:
        display_apps(apps, "Always Open", Console())


@allow.command("add")
@click.argument('bundle_id')
@click.option('--name', default=None, help='Display name (default: read from the installed app)')
@click.pass_context
def allow_add(ctx: click.Context, bundle_id: str, name: Optional[str]):
    """Keep BUNDLE_ID open in every mode."""
    store = _open_store(ctx)
    app = _app_entry(bundle_id, name)
    store.add_to_global_allow_list(app)
    store.close()
    click.echo(f"{app.name} will stay open in every mode")


@allow.command("remove")
@click.argument('bundle_id')
@click.pass_context
def allow_remove(ctx: click.Context, bundle_id: str):
    """Stop keeping BUNDLE_ID open in every mode."""
    store = _open_store(ctx)
    store.remove_from_global_allow_list(bundle_id)
    store.close()
    click.echo(f"Removed {bundle_id} from always-open apps")


# Settings

@cli.group()
def settings():
    """Show and change behavior settings."""
    pass


@settings.command("show")
@click.pass_context
def settings_show(ctx: click.Context):
    """Show current settings and the config file location."""
    store = _open_store(ctx)
    display_settings(store.config, Console())
    click.echo(f"Config file: {store.config_file}")


@settings.command("set")
@click.argument('key', type=click.Choice(sorted(SETTINGS)))
@click.argument('value')
@click.pass_context
def settings_set(ctx: click.Context, key: str, value: str):
    """Change a setting (e.g., `settings set auto-reapply on`)."""
    field, kind = SETTINGS[key]
    parsed = _parse_setting(kind, value)

    store = _open_store(ctx)
    try:
        store.update_settings(**{field: parsed})
    except ValueError as e:
        raise click.BadParameter(str(e), param_hint=key)
    store.close()
    click.echo(f"{key} = {value}")


# Dock

@cli.group()
def dock():
    """Inspect and update the Dock."""
    pass


@dock.command("show")
@click.option('--json', 'output_json', is_flag=True, help='Output JSON instead of formatted tables')
def dock_show(output_json: bool):
    """List bundle ids currently pinned to the Dock."""
    bundle_ids = DockSynchronizer().persistent_app_ids()
    apps = [AppEntry.from_bundle_id(b) for b in bundle_ids]
    if output_json:
        click.echo(format_apps_json(apps))
    else:
        display_apps(apps, "Dock", Console())


@dock.command("sync")
@click.argument('mode')
@click.pass_context
def dock_sync(ctx: click.Context, mode: str):
    """Pin the always-open apps plus MODE's apps to the Dock."""
    console = Console()
    store = _open_store(ctx)
    try:
        target = _resolve_mode(store, mode)
    except ModeNotFoundError as e:
        _print_error(console, e)
        sys.exit(2)

    apps = AllowSet(store.config.global_allow_list, target.apps).effective
    if DockSynchronizer().set_apps(apps):
        console.print(f"[green]Dock updated for {target.name}[/green]")
    else:
        console.print("[red]Error: Dock could not be updated (see log with -v)[/red]")
        sys.exit(1)


# Daemon

@cli.command()
@click.option('--mode', 'initial_mode', default=None, help='Mode to switch to on start')
@click.pass_context
def run(ctx: click.Context, initial_mode: Optional[str]):
    """Run the daemon: auto-reapply the current mode until interrupted."""
    logging.getLogger().setLevel(min(logging.getLogger().level, logging.INFO))
    try:
        asyncio.run(daemon_module.main(ctx.obj.get("config_dir"), initial_mode))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")


if __name__ == '__main__':
    cli()
