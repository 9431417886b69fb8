"""
Unit tests for ReloadCoordinator: write, unload, load, re-probe.
"""

import plistlib

import pytest
import pytest_asyncio

from launchagents_tui.dash.document import FormField, PlistDocument
from launchagents_tui.dash.models import AgentStatus, Category, ProbeResult, Saved, SavedButReloadFailed, SaveFailed
from launchagents_tui.dash.reload import ReloadCoordinator, write_file
from launchagents_tui.errors import FileWriteError


@pytest_asyncio.fixture
async def loaded(catalog, user_agents):
    await catalog.refresh(Category.USER)
    agent = catalog.agents(Category.USER)[0]
    doc = PlistDocument.load(agent.path)
    doc.set_field(FormField.START_INTERVAL, "120")
    return agent, doc


class TestSave:
    @pytest.mark.asyncio
    async def test_saved_and_reloaded(self, coordinator, manager, loaded):
        agent, doc = loaded
        manager.statuses["com.example.a"] = ProbeResult(AgentStatus.RUNNING, loaded=True)
        outcome = await coordinator.save(agent, doc)
        assert outcome == Saved(path=agent.path)
        assert plistlib.loads(agent.path.read_bytes())["StartInterval"] == 120
        assert manager.ops() == ["unload", "load"]
        assert manager.calls[-1] == ("status", "com.example.a")
        assert agent.status is AgentStatus.RUNNING

    @pytest.mark.asyncio
    async def test_load_failure_keeps_file_and_reports_diagnostic(self, catalog, manager, loaded):
        agent, doc = loaded
        manager.load_error = "service already loaded"
        outcome = await ReloadCoordinator(catalog, manager).save(agent, doc)
        assert outcome == SavedButReloadFailed(path=agent.path, diagnostic="service already loaded")
        assert plistlib.loads(agent.path.read_bytes())["StartInterval"] == 120
        assert ("status", "com.example.a") in manager.calls

    @pytest.mark.asyncio
    async def test_unload_failure_is_ignored(self, coordinator, manager, loaded):
        agent, doc = loaded
        manager.unload_error = "Could not find specified service"
        assert isinstance(await coordinator.save(agent, doc), Saved)
        assert manager.ops() == ["unload", "load"]

    @pytest.mark.asyncio
    async def test_write_failure_skips_launchctl(self, catalog, manager, loaded):
        agent, doc = loaded

        def broken(path, content):
            raise FileWriteError(f"{path.name}: Permission denied")

        before = agent.path.read_bytes()
        outcome = await ReloadCoordinator(catalog, manager, writer=broken).save(agent, doc)
        assert outcome == SaveFailed(path=agent.path, error="A.plist: Permission denied")
        assert manager.ops() == []
        assert agent.path.read_bytes() == before


def test_write_file_error(tmp_path):
    with pytest.raises(FileWriteError, match="x.plist"):
        write_file(tmp_path / "missing-dir" / "x.plist", b"data")
