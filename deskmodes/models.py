"""
Pydantic data models for DeskModes.

Application identity, mode definitions and the root configuration document,
plus the value types the reconciliation engine reports back. Configuration
models are frozen and hold tuples, so a snapshot cannot change in place: the
store replaces them wholesale on every mutation.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, NamedTuple, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .constants import CONFIG_SCHEMA_VERSION, DEFAULT_AUTO_REAPPLY_MINUTES


# Modifier flag raw values as stored by the settings UI
MODIFIER_SHIFT = 1 << 17
MODIFIER_CONTROL = 1 << 18
MODIFIER_OPTION = 1 << 19
MODIFIER_COMMAND = 1 << 20


class AppEntry(BaseModel):
    """Application identity: stable bundle identifier plus a display name."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    bundle_id: str = Field(..., alias="bundleId", description="Bundle identifier (e.g., com.apple.Safari)")
    name: str = Field(..., description="Human-readable display name")

    @field_validator('bundle_id')
    @classmethod
    def validate_bundle_id(cls, v: str) -> str:
        """Validate bundle identifier is not empty."""
        if not v.strip():
            raise ValueError("Bundle identifier cannot be empty")
        return v.strip()

    @classmethod
    def from_bundle_id(cls, bundle_id: str) -> "AppEntry":
        """Create an entry whose name is the last component of the bundle id."""
        return cls(bundle_id=bundle_id, name=bundle_id.split(".")[-1] or bundle_id)

    @property
    def key(self) -> str:
        """Membership key. All allow-set comparisons are case-insensitive."""
        return self.bundle_id.lower()

    def same_app(self, other: "AppEntry") -> bool:
        return self.key == other.key

    def __str__(self) -> str:
        return f"{self.name} ({self.bundle_id})"


def dedupe_apps(apps: Iterable[AppEntry]) -> List[AppEntry]:
    """Drop repeated bundle ids, keeping the first occurrence and its position."""
    seen = set()
    result = []
    for app in apps:
        if app.key in seen:
            continue
        seen.add(app.key)
        result.append(app)
    return result


class KeyboardShortcut(BaseModel):
    """Key code plus modifier flags, as recorded by the settings UI."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key_code: int = Field(..., alias="keyCode", ge=0)
    modifiers: int = Field(0, ge=0)

    @classmethod
    def default_reapply(cls) -> "KeyboardShortcut":
        """Shift+Command+R."""
        return cls(key_code=15, modifiers=MODIFIER_SHIFT | MODIFIER_COMMAND)


class ModeSwitcherKey(str, Enum):
    """Modifier key double-tapped to open the mode switcher."""
    OPTION = "option"
    COMMAND = "command"
    CONTROL = "control"
    SHIFT = "shift"
    DISABLED = "disabled"

    @property
    def display_name(self) -> str:
        if self is ModeSwitcherKey.DISABLED:
            return "Disabled"
        label = self.value.capitalize()
        return f"{label} + {label}"


class ModeConfig(BaseModel):
    """A user-authored mode: the set of applications that should be running."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str = Field(default_factory=lambda: str(uuid.uuid4()).upper(), description="Opaque unique id")
    name: str = Field(..., description="Mode name (e.g., Work, Dev)")
    icon: str = Field("new_mode", description="Icon reference")
    shortcut: Optional[str] = Field(None, description="Global shortcut (e.g., cmd+shift+1)")
    apps: Tuple[AppEntry, ...] = Field(default_factory=tuple, description="Apps that should be open")
    manage_shell: bool = Field(
        False,
        validation_alias=AliasChoices("manageShell", "manageDock", "manage_shell"),
        serialization_alias="manageShell",
        description="Mirror this mode's apps into the Dock",
    )

    # Carried for the UI, not interpreted by the core
    window_layouts: Optional[Tuple[Dict[str, Any], ...]] = Field(None, alias="windowLayouts")
    project_path: Optional[str] = Field(None, alias="projectPath")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Mode name cannot be empty")
        return v

    def contains_app(self, app: AppEntry) -> bool:
        """Check membership by case-insensitive bundle id."""
        return any(a.key == app.key for a in self.apps)


class AppConfig(BaseModel):
    """Root configuration document."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    version: int = Field(CONFIG_SCHEMA_VERSION, ge=1)
    global_allow_list: Tuple[AppEntry, ...] = Field(default_factory=tuple, alias="globalAllowList")
    modes: Tuple[ModeConfig, ...] = Field(default_factory=tuple)

    force_close_apps: bool = Field(False, alias="forceCloseApps")
    enable_reapply_shortcut: bool = Field(False, alias="enableReapplyShortcut")

    enable_auto_reapply: bool = Field(False, alias="enableAutoReapply")
    auto_reapply_interval: int = Field(DEFAULT_AUTO_REAPPLY_MINUTES, alias="autoReapplyInterval", ge=1,
                                       description="Minutes between automatic reapplies")

    mode_switcher_key: ModeSwitcherKey = Field(
        ModeSwitcherKey.OPTION,
        validation_alias=AliasChoices("modeSwitcherKey", "switcherKeyBinding", "mode_switcher_key"),
        serialization_alias="modeSwitcherKey",
    )
    mode_switcher_shortcut: Optional[KeyboardShortcut] = Field(
        None,
        validation_alias=AliasChoices("modeSwitcherShortcut", "switcherShortcut", "mode_switcher_shortcut"),
        serialization_alias="modeSwitcherShortcut",
    )
    reapply_shortcut: Optional[KeyboardShortcut] = Field(
        default_factory=KeyboardShortcut.default_reapply, alias="reapplyShortcut"
    )

    @classmethod
    def default(cls) -> "AppConfig":
        """Configuration used on first launch."""
        return cls(
            modes=[
                ModeConfig(name="Work", icon="work_mode", shortcut="cmd+shift+1"),
                ModeConfig(name="Dev", icon="dev_mode", shortcut="cmd+shift+2"),
                ModeConfig(name="AI", icon="ai_mode", shortcut="cmd+shift+3"),
            ]
        )

    def get_mode(self, mode_id: str) -> Optional[ModeConfig]:
        return next((m for m in self.modes if m.id == mode_id), None)

    def find_mode(self, name_or_id: str) -> Optional[ModeConfig]:
        """Look a mode up by id, then by case-insensitive name (first match wins)."""
        mode = self.get_mode(name_or_id)
        if mode is not None:
            return mode
        wanted = name_or_id.strip().lower()
        return next((m for m in self.modes if m.name.lower() == wanted), None)

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the on-disk JSON shape (camelCase keys, nulls kept)."""
        return self.model_dump(mode="json", by_alias=True)


class AllowSet:
    """Global allow list plus the active mode's apps.

    The effective set is ordered global-first, then mode apps, with
    duplicates dropped by case-insensitive bundle id.
    """

    def __init__(self, global_apps: Iterable[AppEntry], mode_apps: Iterable[AppEntry]):
        self.global_apps = dedupe_apps(global_apps)
        self.mode_apps = dedupe_apps(mode_apps)
        self._effective = dedupe_apps([*self.global_apps, *self.mode_apps])
        self._keys = {app.key for app in self._effective}

    def __contains__(self, app: AppEntry) -> bool:
        return app.key in self._keys

    def __len__(self) -> int:
        return len(self._effective)

    @property
    def effective(self) -> List[AppEntry]:
        return list(self._effective)

    @property
    def global_only(self) -> List[AppEntry]:
        """Global apps that are not also listed by the mode."""
        mode_keys = {app.key for app in self.mode_apps}
        return [app for app in self.global_apps if app.key not in mode_keys]


class SkippedApp(NamedTuple):
    app: AppEntry
    reason: str


class FailedLaunch(NamedTuple):
    app: AppEntry
    error: str


@dataclass(frozen=True)
class ReconciliationOutcome:
    """What one reconciliation did. Reported to the caller, never persisted."""

    target_mode: ModeConfig
    closed_apps: List[AppEntry] = field(default_factory=list)
    skipped_apps: List[SkippedApp] = field(default_factory=list)
    kept_apps: List[AppEntry] = field(default_factory=list)
    opened_apps: List[AppEntry] = field(default_factory=list)
    failed_to_open: List[FailedLaunch] = field(default_factory=list)
    shell_synced: Optional[bool] = None

    @property
    def success(self) -> bool:
        # Skipped closes are tolerated; any failed launch is not
        return not self.failed_to_open

    def to_dict(self) -> Dict[str, Any]:
        return {
            "target_mode": {"id": self.target_mode.id, "name": self.target_mode.name},
            "closed_apps": [a.model_dump(by_alias=True) for a in self.closed_apps],
            "skipped_apps": [
                {**s.app.model_dump(by_alias=True), "reason": s.reason} for s in self.skipped_apps
            ],
            "kept_apps": [a.model_dump(by_alias=True) for a in self.kept_apps],
            "opened_apps": [a.model_dump(by_alias=True) for a in self.opened_apps],
            "failed_to_open": [
                {**f.app.model_dump(by_alias=True), "error": f.error} for f in self.failed_to_open
            ],
            "shell_synced": self.shell_synced,
            "success": self.success,
        }
