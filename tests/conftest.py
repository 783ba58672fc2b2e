"""Shared fixtures for DeskModes tests."""

import plistlib
from pathlib import Path

import pytest

from deskmodes.models import AppEntry, ModeConfig
from deskmodes.scheduler import ManualScheduler
from deskmodes.store import ConfigStore


EDITOR = AppEntry(bundle_id="com.example.Editor", name="Editor")
TERMINAL = AppEntry(bundle_id="com.example.Terminal", name="Terminal")
BROWSER = AppEntry(bundle_id="com.example.Browser", name="Browser")
MESSENGER = AppEntry(bundle_id="com.example.Messenger", name="Messenger")
MUSIC = AppEntry(bundle_id="com.example.Music", name="Music")


@pytest.fixture
def config_dir(tmp_path: Path) -> Path:
    """Empty configuration directory."""
    path = tmp_path / "DeskModes"
    path.mkdir()
    return path


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def store(config_dir: Path, scheduler: ManualScheduler) -> ConfigStore:
    """Loaded store whose debounced writes only fire on `scheduler.run_pending()`."""
    store = ConfigStore(
        config_file=config_dir / "config.json",
        backup_file=config_dir / "config.json.bak",
        scheduler=scheduler,
    )
    store.load()
    return store


@pytest.fixture
def dev_mode() -> ModeConfig:
    return ModeConfig(id="DEV", name="Dev", icon="dev_mode", apps=[EDITOR, TERMINAL])


def make_bundle(apps_dir: Path, name: str, bundle_id: str, **info) -> Path:
    """Create a minimal `<name>.app` bundle with an Info.plist."""
    bundle = apps_dir / f"{name}.app"
    (bundle / "Contents" / "MacOS").mkdir(parents=True)
    plist = {"CFBundleIdentifier": bundle_id, "CFBundleName": name, **info}
    with open(bundle / "Contents" / "Info.plist", "wb") as f:
        plistlib.dump(plist, f)
    return bundle


@pytest.fixture
def apps_dir(tmp_path: Path) -> Path:
    """Applications folder holding Editor, Terminal and Browser bundles."""
    path = tmp_path / "Applications"
    path.mkdir()
    make_bundle(path, "Editor", EDITOR.bundle_id)
    make_bundle(path, "Terminal", TERMINAL.bundle_id)
    make_bundle(path, "Browser", BROWSER.bundle_id)
    return path
