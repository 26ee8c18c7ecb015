"""Tests for the MCP tool functions."""

import tempfile
from pathlib import Path
from types import SimpleNamespace

import pytest

from mission_control.config import Config
from mission_control.db.engine import init_db
from mission_control.mcp import server


@pytest.fixture
def ctx():
    """A stand-in MCP context carrying a temp database."""
    with tempfile.TemporaryDirectory() as tmp:
        conn = init_db(Path(tmp) / "test.db")
        app = server.AppContext(db=conn, config=Config(db_path=Path(tmp) / "test.db"))
        yield SimpleNamespace(request_context=SimpleNamespace(lifespan_context=app))
        conn.close()


class TestAgentTools:
    def test_create_and_list(self, ctx):
        created = server.create_agent(ctx, "Atlas", "Builder", "Ships things")
        assert created["id"] == "atlas"
        assert created["needs_briefing"] is True
        agents = server.list_agents(ctx)
        assert [a["lane"] for a in agents] == ["IDLE"]

    def test_errors_come_back_as_dicts(self, ctx):
        assert server.create_agent(ctx, "Atlas", "", "Ships") == {"error": "Role required"}
        assert server.get_agent(ctx, "ghost") == {"error": "Agent not found: ghost"}
        assert "error" in server.add_memory(ctx, "ghost", "hello")

    def test_memory_clears_briefing(self, ctx):
        server.create_agent(ctx, "Atlas", "Builder", "Ships things")
        server.add_memory(ctx, "atlas", "Knows the runbook")
        agent = server.get_agent(ctx, "atlas")
        assert agent["needs_briefing"] is False
        assert agent["memories"][0]["content"] == "Knows the runbook"


class TestTaskTools:
    def test_task_lifecycle(self, ctx):
        server.create_agent(ctx, "Atlas", "Builder", "Ships things")
        task = server.create_task(ctx, "Deploy", agent_id="atlas", priority="HIGH")
        assert task["sla_state"] == "OK"
        assert server.update_task_status(ctx, "deploy", "DOING")["status"] == "DOING"
        assert server.update_task_priority(ctx, "deploy", "LOW")["priority"] == "LOW"
        assert server.assign_task(ctx, "deploy")["agent_id"] is None
        assert [t["id"] for t in server.list_tasks(ctx, status="DOING")] == ["deploy"]

    def test_missing_and_invalid(self, ctx):
        assert server.update_task_status(ctx, "ghost", "DONE") == {"error": "Task not found: ghost"}
        server.create_task(ctx, "Deploy")
        assert server.update_task_status(ctx, "deploy", "LATER") == {"error": "Invalid status: LATER"}


class TestOversightTools:
    def test_shell_and_reports(self, ctx):
        server.create_task(ctx, "Deploy", status="DOING")
        shell = server.get_shell(ctx)
        assert shell["counts"]["doing"] == 1
        assert [lane["priority"] for lane in server.sla_lanes(ctx)] == ["LOW", "MEDIUM", "HIGH"]
        assert "## Task status" in server.weekly_digest(ctx, sections="tasks")
        assert server.snapshot(ctx).startswith("# Mission Control Snapshot")
        assert server.audit_log(ctx, limit=1)[0]["action"] == "task.created"
        assert server.list_playbooks(ctx) == []

    def test_overdue_alert_with_nothing_stuck(self, ctx):
        assert server.send_overdue_alert(ctx) == {
            "ok": True, "sent": False, "reason": "no_overdue_tasks"
        }
