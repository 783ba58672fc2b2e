"""
Unit tests for the configuration store.

Tests first-run defaults, corruption recovery, debounced writes, backups
and change notifications.
"""

import asyncio
import json
import time
from unittest.mock import patch

import pytest

from deskmodes.errors import ErrorCode
from deskmodes.fileio import atomic_write_bytes
from deskmodes.models import AppConfig, AppEntry, ModeConfig, ModeSwitcherKey
from deskmodes.scheduler import ManualScheduler
from deskmodes.store import ConfigStore

from conftest import BROWSER, EDITOR, MESSENGER, TERMINAL


def new_store(config_dir, scheduler=None):
    return ConfigStore(
        config_file=config_dir / "config.json",
        backup_file=config_dir / "config.json.bak",
        scheduler=scheduler or ManualScheduler(),
    )


class TestLoad:
    """Test loading and recovery."""

    def test_first_run_persists_defaults(self, config_dir):
        """No document on first run creates and persists three default modes."""
        store = new_store(config_dir)
        config = store.load()

        assert [m.name for m in config.modes] == ["Work", "Dev", "AI"]
        assert (config_dir / "config.json").exists()
        assert not (config_dir / "config.json.bak").exists()

        reloaded = new_store(config_dir).load()
        assert reloaded == config

    def test_document_is_sorted_and_indented(self, store, config_dir):
        text = (config_dir / "config.json").read_text()
        document = json.loads(text)
        assert text == json.dumps(document, indent=2, sort_keys=True) + "\n"

    def test_round_trip(self, store, config_dir, scheduler):
        store.add_to_global_allow_list(MESSENGER)
        store.add_mode(ModeConfig(id="DEV2", name="Dev 2", apps=[EDITOR, TERMINAL], manage_shell=True))
        scheduler.run_pending()

        assert new_store(config_dir).load() == store.config

    def test_corrupt_primary_recovers_from_backup(self, config_dir):
        """Hand-corrupted primary with an intact backup loads the backup and re-persists it."""
        good = AppConfig(modes=[ModeConfig(id="B", name="From Backup")])
        (config_dir / "config.json.bak").write_text(json.dumps(good.to_document()))
        (config_dir / "config.json").write_text("{ not json")

        store = new_store(config_dir)
        config = store.load()

        assert config == good
        assert store.last_error.code == ErrorCode.CONFIG_LOAD_FAILED
        assert json.loads((config_dir / "config.json").read_text()) == good.to_document()
        # The corrupt primary never overwrites the good backup
        assert json.loads((config_dir / "config.json.bak").read_text()) == good.to_document()

    def test_schema_error_counts_as_corrupt(self, config_dir):
        good = AppConfig(modes=[ModeConfig(id="B", name="From Backup")])
        (config_dir / "config.json.bak").write_text(json.dumps(good.to_document()))
        (config_dir / "config.json").write_text(json.dumps({"modes": [{"name": ""}]}))

        assert new_store(config_dir).load() == good

    def test_non_object_document_counts_as_corrupt(self, config_dir):
        (config_dir / "config.json").write_text("[]")
        config = new_store(config_dir).load()
        assert [m.name for m in config.modes] == ["Work", "Dev", "AI"]

    def test_both_corrupt_falls_back_to_defaults(self, config_dir, caplog):
        (config_dir / "config.json").write_text("garbage")
        (config_dir / "config.json.bak").write_text("also garbage")

        store = new_store(config_dir)
        config = store.load()

        assert [m.name for m in config.modes] == ["Work", "Dev", "AI"]
        assert json.loads((config_dir / "config.json").read_text()) == config.to_document()
        assert "unreadable" in caplog.text
        assert store.last_error.code == ErrorCode.CONFIG_CORRUPT

    def test_corrupt_primary_without_backup_uses_defaults(self, config_dir):
        (config_dir / "config.json").write_bytes(b"\xff\xfe\x00")
        config = new_store(config_dir).load()
        assert len(config.modes) == 3


class TestDebouncedSave:
    """Test write coalescing."""

    def test_burst_produces_single_write_of_last_state(self, store, scheduler, config_dir):
        saves_before = store.save_count

        store.update_settings(force_close_apps=True)
        store.update_settings(auto_reapply_interval=5)
        store.update_settings(auto_reapply_interval=30)

        assert store.save_count == saves_before
        assert scheduler.last_delay == 0.5
        assert scheduler.run_pending()
        assert store.save_count == saves_before + 1

        document = json.loads((config_dir / "config.json").read_text())
        assert document["forceCloseApps"] is True
        assert document["autoReapplyInterval"] == 30

    def test_snapshot_updates_before_write(self, store, scheduler):
        store.update_settings(enable_auto_reapply=True)
        assert store.config.enable_auto_reapply is True
        assert scheduler.pending

    def test_flush_writes_immediately(self, store, scheduler, config_dir):
        store.add_to_global_allow_list(MESSENGER)
        assert store.flush()
        assert not scheduler.pending

        document = json.loads((config_dir / "config.json").read_text())
        assert document["globalAllowList"] == [{"bundleId": MESSENGER.bundle_id, "name": "Messenger"}]

    def test_close_flushes_pending_write(self, store, scheduler):
        saves_before = store.save_count
        store.add_to_global_allow_list(MESSENGER)
        store.close()
        assert store.save_count == saves_before + 1

    def test_close_without_pending_write_does_nothing(self, store):
        saves_before = store.save_count
        store.close()
        assert store.save_count == saves_before

    @pytest.mark.asyncio
    async def test_asyncio_scheduler_coalesces(self, config_dir):
        store = ConfigStore(
            config_file=config_dir / "config.json",
            backup_file=config_dir / "config.json.bak",
            debounce_seconds=0.05,
        )
        store.load()
        saves_before = store.save_count

        for interval in (2, 3, 4, 5):
            store.update_settings(auto_reapply_interval=interval)
        await asyncio.sleep(0.2)

        assert store.save_count == saves_before + 1
        document = json.loads((config_dir / "config.json").read_text())
        assert document["autoReapplyInterval"] == 5

    def test_default_scheduler_coalesces_without_event_loop(self, config_dir):
        """Synchronous callers get one write per burst, not one per mutation."""
        store = ConfigStore(
            config_file=config_dir / "config.json",
            backup_file=config_dir / "config.json.bak",
            debounce_seconds=0.05,
        )
        store.load()
        saves_before = store.save_count

        for interval in (2, 3, 4, 5):
            store.update_settings(auto_reapply_interval=interval)
        assert store.save_count == saves_before

        deadline = time.monotonic() + 2.0
        while store.save_count == saves_before and time.monotonic() < deadline:
            time.sleep(0.01)
        time.sleep(0.1)

        assert store.save_count == saves_before + 1
        document = json.loads((config_dir / "config.json").read_text())
        assert document["autoReapplyInterval"] == 5

    def test_close_flushes_timer_write_without_event_loop(self, config_dir):
        store = ConfigStore(
            config_file=config_dir / "config.json",
            backup_file=config_dir / "config.json.bak",
            debounce_seconds=30,
        )
        store.load()
        saves_before = store.save_count

        store.update_settings(force_close_apps=True)
        store.add_to_global_allow_list(MESSENGER)
        store.close()

        assert store.save_count == saves_before + 1
        document = json.loads((config_dir / "config.json").read_text())
        assert document["forceCloseApps"] is True
        assert document["globalAllowList"] == [{"bundleId": MESSENGER.bundle_id, "name": "Messenger"}]

    def test_backup_holds_previous_document(self, store, scheduler, config_dir):
        previous = (config_dir / "config.json").read_bytes()

        store.update_settings(force_close_apps=True)
        scheduler.run_pending()

        assert (config_dir / "config.json.bak").read_bytes() == previous

    def test_write_failure_is_logged_not_raised(self, store, config_dir, caplog):
        (config_dir / "config.json").unlink()
        store.config_file = config_dir / "missing-dir-file" / "config.json"
        (config_dir / "missing-dir-file").write_text("a file, not a directory")

        assert store.flush() is False
        assert "Failed to save configuration" in caplog.text
        assert store.last_error.code == ErrorCode.CONFIG_WRITE_FAILED

    def test_backup_failure_still_writes_primary(self, store, scheduler, config_dir, caplog):
        def fail_backup(path, data, prefix=".tmp-"):
            if path.name.endswith(".bak"):
                raise OSError("permission denied")
            atomic_write_bytes(path, data, prefix=prefix)

        store.update_settings(force_close_apps=True)
        with patch("deskmodes.store.atomic_write_bytes", side_effect=fail_backup):
            scheduler.run_pending()

        assert json.loads((config_dir / "config.json").read_text())["forceCloseApps"] is True
        assert "Could not back up config" in caplog.text
        assert store.last_error.code == ErrorCode.BACKUP_FAILED


class TestMutations:
    """Test mode and allow list operations."""

    def test_add_mode(self, store):
        store.add_mode(ModeConfig(id="NEW", name="New"))
        assert store.get_mode("NEW").name == "New"
        assert store.config.modes[-1].id == "NEW"

    def test_add_duplicate_mode_id_rejected(self, store):
        existing = store.config.modes[0]
        with pytest.raises(ValueError):
            store.add_mode(ModeConfig(id=existing.id, name="Again"))

    def test_update_mode(self, store):
        mode = store.config.modes[1]
        store.update_mode(mode.model_copy(update={"apps": (EDITOR,)}))
        assert store.get_mode(mode.id).apps == (EDITOR,)
        assert store.config.modes[1].id == mode.id

    def test_update_unknown_mode_ignored(self, store, scheduler):
        before = store.config
        store.update_mode(ModeConfig(id="NOPE", name="Nope"))
        assert store.config == before
        assert not scheduler.pending

    def test_delete_mode(self, store):
        mode = store.config.modes[0]
        store.delete_mode(mode.id)
        assert store.get_mode(mode.id) is None
        assert len(store.config.modes) == 2

    def test_reorder_modes(self, store):
        names = [m.name for m in store.config.modes]
        store.reorder_modes(0, 2)
        assert [m.name for m in store.config.modes] == [names[1], names[2], names[0]]

    def test_reorder_out_of_range(self, store):
        with pytest.raises(IndexError):
            store.reorder_modes(0, 5)

    def test_global_allow_list_has_no_duplicates(self, store):
        store.add_to_global_allow_list(MESSENGER)
        store.add_to_global_allow_list(AppEntry(bundle_id="COM.EXAMPLE.MESSENGER", name="Messenger"))
        assert store.config.global_allow_list == (MESSENGER,)

    def test_remove_from_global_allow_list_ignores_case(self, store):
        store.update_global_allow_list([MESSENGER, BROWSER])
        store.remove_from_global_allow_list("com.example.messenger")
        assert store.config.global_allow_list == (BROWSER,)

    def test_snapshot_cannot_be_changed_in_place(self, store, scheduler):
        """Only the store API changes the configuration."""
        received = []
        store.subscribe(received.append)
        before = store.config

        with pytest.raises(AttributeError):
            store.config.modes.append(ModeConfig(name="Sneaky"))
        with pytest.raises(AttributeError):
            store.config.global_allow_list.append(MESSENGER)
        with pytest.raises(AttributeError):
            store.config.modes[0].apps.append(EDITOR)
        with pytest.raises(TypeError):
            store.config.modes[0] = ModeConfig(name="Sneaky")

        assert store.config == before
        assert [m.name for m in store.config.modes] == ["Work", "Dev", "AI"]
        assert received == []
        assert not scheduler.pending

    def test_mutations_keep_snapshot_immutable(self, store):
        store.add_mode(ModeConfig(id="NEW", name="New", apps=[EDITOR]))
        store.add_to_global_allow_list(MESSENGER)
        store.update_global_allow_list([MESSENGER, BROWSER])
        store.reorder_modes(0, 1)

        assert isinstance(store.config.modes, tuple)
        assert isinstance(store.config.global_allow_list, tuple)
        assert isinstance(store.get_mode("NEW").apps, tuple)

    def test_update_settings(self, store):
        store.update_settings(mode_switcher_key=ModeSwitcherKey.SHIFT, enable_reapply_shortcut=True)
        assert store.config.mode_switcher_key == ModeSwitcherKey.SHIFT
        assert store.config.enable_reapply_shortcut is True

    def test_update_settings_rejects_unknown_field(self, store):
        with pytest.raises(ValueError, match="Unknown settings"):
            store.update_settings(modes=[])

    def test_update_settings_validates(self, store):
        with pytest.raises(ValueError):
            store.update_settings(auto_reapply_interval=0)
        assert store.config.auto_reapply_interval == 15


class TestNotifications:
    """Test change subscriptions."""

    def test_subscriber_receives_new_snapshot(self, store):
        received = []
        store.subscribe(received.append)

        store.add_to_global_allow_list(MESSENGER)

        assert len(received) == 1
        assert received[0].global_allow_list == (MESSENGER,)

    def test_cancelled_subscription_stops_notifications(self, store):
        received = []
        subscription = store.subscribe(received.append)
        subscription.cancel()

        store.add_to_global_allow_list(MESSENGER)
        assert received == []

    def test_load_notifies(self, config_dir):
        store = new_store(config_dir)
        received = []
        store.subscribe(received.append)
        store.load()
        assert received == [store.config]
