"""Unit tests for mode switching, reapply and pause/resume."""

import asyncio

import pytest

from deskmodes.engine import ReconciliationEngine
from deskmodes.errors import ErrorCode, ModeNotFoundError
from deskmodes.mode_manager import ModeManager
from deskmodes.models import ModeConfig
from deskmodes.testing import FakeDesktop

from conftest import BROWSER, EDITOR, MESSENGER, TERMINAL


@pytest.fixture
def desktop():
    return FakeDesktop(running=[EDITOR, BROWSER])


@pytest.fixture
def manager(store, desktop, dev_mode):
    store.add_mode(dev_mode)
    store.add_to_global_allow_list(MESSENGER)
    engine = ReconciliationEngine(
        lister=desktop.lister(),
        closer=desktop.closer(),
        launcher=desktop.launcher(),
        config_provider=lambda: store.config,
    )
    return ModeManager(store, engine)


class TestSwitch:

    @pytest.mark.asyncio
    async def test_switch_to(self, manager, desktop, dev_mode):
        outcome = await manager.switch_to(dev_mode.id)

        assert outcome.closed_apps == [BROWSER]
        assert outcome.opened_apps == [TERMINAL, MESSENGER]
        assert manager.current_mode == dev_mode
        assert manager.last_active_mode_id == dev_mode.id

    @pytest.mark.asyncio
    async def test_unknown_mode(self, manager):
        with pytest.raises(ModeNotFoundError) as exc_info:
            await manager.switch_to("missing")
        assert exc_info.value.code == ErrorCode.MODE_NOT_FOUND
        assert exc_info.value.to_dict()["context"] == {"mode_id": "missing"}
        assert "deskmodes modes list" in exc_info.value.suggestion

    @pytest.mark.asyncio
    async def test_switch_publishes_mode_change(self, manager, dev_mode):
        received = []
        manager.mode_changes.subscribe(received.append)
        await manager.switch_to(dev_mode.id)
        assert received == [dev_mode]

    def test_find_mode_by_name(self, manager, store, dev_mode):
        focus = ModeConfig(id="FOCUS-1", name="Focus")
        store.add_mode(focus)

        assert manager.find_mode("focus") == focus
        assert manager.find_mode(" FOCUS ") == focus
        assert manager.find_mode(dev_mode.id) == dev_mode
        assert manager.find_mode("nothing") is None

    def test_duplicate_names_resolve_to_first_mode(self, manager, store, dev_mode):
        """The built-in "Dev" mode comes before the added one with the same name."""
        builtin_dev = store.config.modes[1]
        assert builtin_dev.name == dev_mode.name

        assert manager.find_mode("dev") == builtin_dev
        assert manager.find_mode(dev_mode.id) == dev_mode

    @pytest.mark.asyncio
    async def test_reconciliations_do_not_overlap(self, manager, desktop, dev_mode, store):
        other = ModeConfig(id="OTHER", name="Other", apps=[BROWSER])
        store.add_mode(other)
        desktop.launch_delay = 0.01

        await asyncio.gather(manager.switch_to(dev_mode.id), manager.switch_to(other.id))

        # Second switch lists running apps only after the first one finished
        assert desktop.calls == [
            "list",
            f"close:{BROWSER.bundle_id}",
            f"launch:{TERMINAL.bundle_id}",
            f"launch:{MESSENGER.bundle_id}",
            "list",
            f"close:{EDITOR.bundle_id}",
            f"close:{TERMINAL.bundle_id}",
            f"launch:{BROWSER.bundle_id}",
        ]
        assert manager.current_mode == other


class TestReapply:

    @pytest.mark.asyncio
    async def test_reapply_without_mode(self, manager):
        assert await manager.reapply() is None

    @pytest.mark.asyncio
    async def test_reapply_closes_newly_opened_apps(self, manager, desktop, dev_mode):
        await manager.switch_to(dev_mode.id)
        desktop.running.append(BROWSER)

        outcome = await manager.reapply()

        assert outcome.closed_apps == [BROWSER]
        assert outcome.opened_apps == []

    @pytest.mark.asyncio
    async def test_reapply_uses_edited_mode(self, manager, store, desktop, dev_mode):
        await manager.switch_to(dev_mode.id)
        store.update_mode(dev_mode.model_copy(update={"apps": (EDITOR,)}))

        outcome = await manager.reapply()

        assert TERMINAL in outcome.closed_apps
        assert manager.current_mode.apps == (EDITOR,)


class TestPauseResume:

    @pytest.mark.asyncio
    async def test_pause_clears_current_mode(self, manager, dev_mode):
        await manager.switch_to(dev_mode.id)
        manager.pause()

        assert manager.is_paused
        assert manager.current_mode is None
        assert manager.last_active_mode_id == dev_mode.id
        assert await manager.reapply() is None

    @pytest.mark.asyncio
    async def test_resume_restores_last_mode(self, manager, desktop, dev_mode):
        await manager.switch_to(dev_mode.id)
        manager.pause()
        desktop.running.append(BROWSER)

        outcome = await manager.resume()

        assert not manager.is_paused
        assert manager.current_mode == dev_mode
        assert outcome.closed_apps == [BROWSER]

    @pytest.mark.asyncio
    async def test_resume_when_not_paused(self, manager):
        assert await manager.resume() is None

    @pytest.mark.asyncio
    async def test_resume_after_mode_deleted(self, manager, store, dev_mode):
        await manager.switch_to(dev_mode.id)
        manager.pause()
        store.delete_mode(dev_mode.id)

        assert await manager.resume() is None
        assert manager.current_mode is None

    @pytest.mark.asyncio
    async def test_switch_unpauses(self, manager, dev_mode):
        manager.pause()
        await manager.switch_to(dev_mode.id)
        assert not manager.is_paused


class TestConfigChanges:

    @pytest.mark.asyncio
    async def test_deleting_current_mode_clears_it(self, manager, store, dev_mode):
        await manager.switch_to(dev_mode.id)
        received = []
        manager.mode_changes.subscribe(received.append)

        store.delete_mode(dev_mode.id)

        assert manager.current_mode is None
        assert received == [None]

    @pytest.mark.asyncio
    async def test_close_unsubscribes(self, manager, store, dev_mode):
        await manager.switch_to(dev_mode.id)
        manager.close()
        store.delete_mode(dev_mode.id)
        assert manager.current_mode == dev_mode
