"""Tests for the weekly digest, snapshot and overdue Slack payload."""

from datetime import datetime, timedelta, timezone

from mission_control.core import reports
from mission_control.db.models import Agent, AuditLog, RecentMemory, Task

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def ago(**kwargs) -> datetime:
    return NOW - timedelta(**kwargs)


def task(id, status="TODO", agent=None, updated=None, title=None) -> Task:
    touched = updated or ago(hours=1)
    return Task(
        id=id,
        title=title or id.replace("-", " ").title(),
        status=status,
        agent_id=agent.id if agent else None,
        agent_name=agent.name if agent else None,
        created_at=touched,
        updated_at=touched,
    )


def agent(id, name, tasks=None, memories=None) -> Agent:
    return Agent(
        id=id, name=name, role="Operator", soul="Steady",
        created_at=ago(days=3), updated_at=ago(days=3),
        tasks=tasks or [], memories=memories or [],
    )


class TestSections:
    def test_parse_sections(self):
        assert reports.parse_sections("stuck, tasks") == ["stuck", "tasks"]
        assert reports.parse_sections(["bogus"]) == ["load", "stuck", "tasks", "audits"]
        assert reports.parse_sections(None) == ["load", "stuck", "tasks", "audits"]

    def test_parse_format(self):
        assert reports.parse_format("slack") == "slack"
        assert reports.parse_format("pdf") == "markdown"


class TestWeeklyDigest:
    def test_stuck_only_with_nothing_stuck(self):
        data = reports.ReportData(generated_at=NOW, agents=[agent("a", "Ada")])
        text = reports.render_weekly_digest(data, ["stuck"], "markdown")
        assert "No tasks have been stuck for more than 48 hours." in text
        assert "## Agent load" not in text
        assert "## Task status" not in text
        assert text.startswith("Subject: Mission Control Weekly Digest")

    def test_sections_in_fixed_order(self):
        data = reports.ReportData(generated_at=NOW)
        text = reports.render_weekly_digest(data, "tasks,load,stuck")
        assert text.index("## Agent load") < text.index("## Stuck tasks") < text.index("## Task status")

    def test_top_load_tie_keeps_first_seen(self):
        zed = agent("zed", "Zed")
        amy = agent("amy", "Amy")
        zed.tasks = [task("z1", agent=zed), task("z2", agent=zed)]
        amy.tasks = [task("a1", agent=amy), task("a2", agent=amy)]
        data = reports.ReportData(generated_at=NOW, agents=[zed, amy])
        text = reports.render_weekly_digest(data, ["load"])
        assert "Top load: **Zed** with 2 active tasks." in text
        assert "- Engaged (1-3 active): 2" in text

    def test_stuck_lines_oldest_first(self):
        ada = agent("ada", "Ada")
        newer = task("newer", status="DOING", agent=ada, updated=ago(hours=50))
        older = task("older", status="DOING", updated=ago(hours=72))
        data = reports.ReportData(generated_at=NOW, stuck_tasks=[newer, older])
        text = reports.render_weekly_digest(data, ["stuck"])
        assert "- [DOING] Older — Unassigned (stuck 3d ago)" in text
        assert "- [DOING] Newer — Ada (stuck 2d 2h ago)" in text
        assert text.index("Older") < text.index("Newer")

    def test_task_counts_ignore_unknown_status(self):
        tasks = [task("a"), task("b", status="DOING"), task("c", status="DONE"), task("d", status="PARKED")]
        data = reports.ReportData(generated_at=NOW, tasks=tasks)
        text = reports.render_weekly_digest(data, ["tasks"])
        assert "- To Do: 1\n- In Progress: 1\n- Done: 1" in text

    def test_slack_flattens_lines(self):
        data = reports.ReportData(generated_at=NOW, tasks=[task("a")])
        text = reports.render_weekly_digest(data, ["stuck", "tasks"], "slack")
        assert not text.startswith("Subject")
        assert "\n\n" not in text
        assert text.splitlines()[0] == "## Stuck tasks (48h+)"

    def test_audits_section(self):
        log = AuditLog(id=1, action="task.created", task_id="a", task_title="Ship it", created_at=NOW)
        data = reports.ReportData(generated_at=NOW, audit_logs=[log])
        text = reports.render_weekly_digest(data, ["audits"])
        assert "- Oct 19, 2026, 12:00 PM — task.created (Ship it)" in text

    def test_filename(self):
        assert reports.digest_filename(NOW) == "mission-control-digest-2026-10-19.txt"
        assert reports.digest_filename(NOW, "slack") == "mission-control-digest-2026-10-19-slack.txt"


class TestSnapshot:
    def test_empty(self):
        text = reports.render_snapshot(reports.ReportData(generated_at=NOW))
        assert text.startswith("# Mission Control Snapshot")
        assert "No agents on the roster." in text
        assert "No tasks logged." in text
        assert "No audit activity recorded." in text

    def test_roster_and_memory_excerpt(self):
        ada = agent("ada", "Ada", memories=[RecentMemory(1, "ada", "x" * 300, ago(hours=2))])
        ada.tasks = [task("one", agent=ada), task("two", status="DONE", agent=ada)]
        data = reports.ReportData(generated_at=NOW, agents=[ada], tasks=ada.tasks)
        text = reports.render_snapshot(data)
        assert "- **Ada** (Operator) — 1 active / 2 total" in text
        excerpt = text.split("Last memory: ")[1].split("\n")[0]
        assert len(excerpt) == 140
        assert excerpt.endswith("…")
        assert "Tasks (open): 1" in text

    def test_caps_recent_tasks(self):
        tasks = [task(f"task-{i}") for i in range(25)]
        text = reports.render_snapshot(reports.ReportData(generated_at=NOW, tasks=tasks))
        assert "Task 19" in text
        assert "Task 20" not in text

    def test_filename(self):
        assert reports.snapshot_filename(NOW) == "mission-control-snapshot-2026-10-19T12-00-00Z.md"


class TestOverduePayload:
    def test_caps_at_ten_with_overflow(self):
        stale = [task(f"t-{i}", status="DOING", updated=ago(hours=60 + i)) for i in range(12)]
        payload = reports.build_overdue_slack_payload(stale, NOW, base_url="https://mc.example.com/")
        assert payload["text"].startswith("12 tasks stuck in Doing for 48h+")
        assert payload["text"].count("• *") == 10
        assert "…plus 2 more." in payload["text"]
        assert "<https://mc.example.com/mission-control/tasks?status=DOING|Open Mission Control>" in payload["text"]
        # oldest first
        assert payload["text"].index("T 11") < payload["text"].index("T 10")
        assert [b["type"] for b in payload["blocks"]] == ["header", "section", "context"]

    def test_single_task_without_base_url(self):
        payload = reports.build_overdue_slack_payload(
            [task("stuck", status="DOING", updated=ago(hours=50))], NOW
        )
        assert payload["blocks"][0]["text"]["text"] == "Mission Control: 1 task overdue"
        assert "Open Mission Control → /mission-control/tasks" in payload["text"]
        assert "plus" not in payload["text"]
