"""Tests for the dashboard shell bundle and report data collection."""

import tempfile
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from mission_control.config import Config
from mission_control.core import agents as agents_mod
from mission_control.core import memory as memory_mod
from mission_control.core import shell as shell_mod
from mission_control.core import tasks as tasks_mod
from mission_control.db.engine import format_db_timestamp, init_db
from mission_control.db.models import Agent, RecentMemory, Task

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def ago(**kwargs) -> datetime:
    return NOW - timedelta(**kwargs)


def task(id, status="TODO", priority="MEDIUM", created=None, updated=None) -> Task:
    created = created or ago(hours=1)
    return Task(
        id=id, title=id, status=status, priority=priority,
        created_at=created, updated_at=updated or created,
    )


def agent(id, created=None, memories=None, tasks=None) -> Agent:
    created = created or ago(hours=1)
    return Agent(
        id=id, name=id.title(), created_at=created, updated_at=created,
        memories=memories or [], tasks=tasks or [],
    )


class TestAssembleShellData:
    def test_empty(self):
        shell = shell_mod.assemble_shell_data([], [], NOW)
        assert shell.counts == shell_mod.ShellCounts()
        assert shell.alerts.stuck_tasks == []
        assert shell.snapshot.total_agents == 0
        assert shell.snapshot.oldest_open_task_label == "<1h"

    def test_counts(self):
        tasks = [
            task("a"), task("b", status="DOING"), task("c", status="DONE"),
            task("d", status="SHELVED"), task("e", priority="HIGH"),
            task("f", status="DONE", priority="HIGH"),
        ]
        counts = shell_mod.assemble_shell_data([], tasks, NOW).counts
        assert (counts.todo, counts.doing, counts.done) == (2, 1, 2)
        assert counts.high_priority == 1

    def test_stuck_alerts_capped_and_oldest_first(self):
        tasks = [
            task(f"s{i}", status="DOING", created=ago(days=10), updated=ago(hours=50 + i))
            for i in range(7)
        ]
        shell = shell_mod.assemble_shell_data([], tasks, NOW)
        assert shell.counts.stuck == 7
        assert [t.id for t in shell.alerts.stuck_tasks] == ["s6", "s5", "s4", "s3", "s2"]

    def test_briefing_and_stale_memory(self):
        fresh = agent("fresh", memories=[RecentMemory(1, "fresh", "hi", ago(hours=2))])
        dusty = agent("dusty", memories=[RecentMemory(2, "dusty", "old", ago(hours=100))])
        blank = agent("blank")
        shell = shell_mod.assemble_shell_data([fresh, dusty, blank], [], NOW)
        assert shell.counts.needs_briefing == 1
        assert [a.id for a in shell.alerts.needs_briefing] == ["blank"]
        assert [a.id for a in shell.alerts.stale_memory] == ["dusty"]

    def test_executive_snapshot(self):
        agents = [agent("busy"), agent("sleepy", created=ago(hours=30))]
        tasks = [
            task("warn", created=ago(hours=40)),
            task("late", priority="HIGH", created=ago(hours=13)),
            task("ancient", priority="LOW", status="DONE", created=ago(days=90)),
            task("oldest", priority="LOW", created=ago(hours=76)),
        ]
        snapshot = shell_mod.assemble_shell_data(agents, tasks, NOW).snapshot
        assert snapshot.total_agents == 2
        assert snapshot.idle_agents == 1
        assert snapshot.tasks_at_risk == 1
        assert snapshot.tasks_breached == 1
        assert snapshot.oldest_open_task_label == "3d 4h"
        assert snapshot.high_priority_stale == 1

    def test_idle_threshold_is_configurable(self):
        agents = [agent("sleepy", created=ago(hours=30))]
        config = Config(snapshot_idle_hours=36)
        snapshot = shell_mod.assemble_shell_data(agents, [], NOW, config).snapshot
        assert snapshot.idle_agents == 0

    def test_snapshot_optional(self):
        shell = shell_mod.assemble_shell_data([], [], NOW, include_snapshot=False)
        assert shell.snapshot is None
        assert shell_mod.shell_to_dict(shell, NOW)["snapshot"] is None


@pytest.fixture
def db():
    """Create a temporary SQLite database for testing."""
    with tempfile.TemporaryDirectory() as tmp:
        conn = init_db(Path(tmp) / "test.db")
        yield conn
        conn.close()


class TestFromDatabase:
    def test_shell_data(self, db):
        now = datetime.now(timezone.utc)
        agents_mod.create_agent(db, "Atlas", "Builder", "Ships things")
        tasks_mod.create_task(db, "Stuck", agent_id="atlas", status="DOING")
        tasks_mod.create_task(db, "Moving", agent_id="atlas", status="DOING")
        stamp = format_db_timestamp(now - timedelta(hours=60))
        db.execute("UPDATE tasks SET updated_at = ? WHERE id = 'stuck'", (stamp,))
        db.commit()

        shell = shell_mod.get_shell_data(db, now)
        assert shell.counts.doing == 2
        assert shell.counts.stuck == 1
        assert shell.counts.needs_briefing == 1
        data = shell_mod.shell_to_dict(shell, now)
        assert data["alerts"]["stuck_tasks"][0]["agent_name"] == "Atlas"
        assert data["alerts"]["needs_briefing"][0]["last_memory_at"] is None

    def test_shell_and_reports_agree_on_stuck_tasks(self, db):
        now = datetime(2026, 10, 19, 12, 0, 0, 700000, tzinfo=timezone.utc)
        tasks_mod.create_task(db, "Edge", status="DOING")
        stamp = format_db_timestamp(now - timedelta(hours=48))
        db.execute("UPDATE tasks SET updated_at = ? WHERE id = 'edge'", (stamp,))
        db.commit()

        shell = shell_mod.get_shell_data(db, now)
        report = shell_mod.collect_report_data(db, now)
        assert shell.counts.stuck == 1
        assert [t.id for t in report.stuck_tasks] == ["edge"]

    def test_report_data(self, db):
        now = datetime.now(timezone.utc)
        agents_mod.create_agent(db, "Zed", "Ops", "Calm")
        agents_mod.create_agent(db, "Amy", "Ops", "Keen")
        memory_mod.add_memory(db, "amy", "Owns the pager")
        tasks_mod.create_task(db, "Patch", agent_id="zed")
        data = shell_mod.collect_report_data(db, now)
        assert data.generated_at == now
        assert [a.name for a in data.agents] == ["Amy", "Zed"]
        assert [t.id for t in data.tasks] == ["patch"]
        assert data.stuck_tasks == []
        assert {e.action for e in data.audit_logs} == {
            "agent.created", "memory.created", "task.created"
        }
