"""Assembles the counts / alerts / snapshot bundle rendered by every dashboard page."""

import sqlite3
from dataclasses import dataclass, field

from mission_control.config import Config
from mission_control.core import agents as agents_mod
from mission_control.core import audit as audit_mod
from mission_control.core import tasks as tasks_mod
from mission_control.core.constants import OPEN_STATUSES, TaskPriority, TaskStatus
from mission_control.core.formatting import format_hours_label
from mission_control.core.metrics import (
    SlaState,
    agents_with_stale_memory,
    compute_presence,
    evaluate_task_sla,
    hours_between,
    is_stale,
    latest_memory,
    needs_briefing,
    to_datetime,
)
from mission_control.core.reports import SNAPSHOT_AUDIT_LIMIT, ReportData
from mission_control.db.models import Agent, Task

STUCK_ALERT_LIMIT = 5


@dataclass
class ShellCounts:
    todo: int = 0
    doing: int = 0
    done: int = 0
    stuck: int = 0
    needs_briefing: int = 0
    high_priority: int = 0


@dataclass
class ShellAlerts:
    needs_briefing: list[Agent] = field(default_factory=list)
    stuck_tasks: list[Task] = field(default_factory=list)
    stale_memory: list[Agent] = field(default_factory=list)


@dataclass
class ExecutiveSnapshot:
    total_agents: int = 0
    idle_agents: int = 0
    tasks_at_risk: int = 0
    tasks_breached: int = 0
    oldest_open_task_label: str = "<1h"
    high_priority_stale: int = 0


@dataclass
class ShellData:
    counts: ShellCounts
    alerts: ShellAlerts
    snapshot: ExecutiveSnapshot | None = None


def assemble_shell_data(
    agents: list[Agent],
    tasks: list[Task],
    reference_time,
    config: Config | None = None,
    include_snapshot: bool = True,
) -> ShellData:
    """Build the shell bundle from already-loaded agents and tasks."""
    config = config or Config()
    now = to_datetime(reference_time)

    counts = ShellCounts()
    open_tasks = []
    stuck = []
    for task in tasks:
        status = TaskStatus.parse(task.status)
        if status is TaskStatus.TODO:
            counts.todo += 1
        elif status is TaskStatus.DOING:
            counts.doing += 1
        elif status is TaskStatus.DONE:
            counts.done += 1
        if status in OPEN_STATUSES:
            open_tasks.append(task)
            if TaskPriority.parse(task.priority) is TaskPriority.HIGH:
                counts.high_priority += 1
        if is_stale(task, now, config.task_stuck_hours):
            stuck.append(task)

    stuck.sort(key=lambda t: to_datetime(t.updated_at or t.created_at))
    counts.stuck = len(stuck)

    briefing = [agent for agent in agents if needs_briefing(agent)]
    counts.needs_briefing = len(briefing)

    alerts = ShellAlerts(
        needs_briefing=briefing,
        stuck_tasks=stuck[:STUCK_ALERT_LIMIT],
        stale_memory=[
            agent for agent, _ in agents_with_stale_memory(agents, now, config.memory_stale_hours)
        ],
    )

    snapshot = None
    if include_snapshot:
        snapshot = _executive_snapshot(agents, open_tasks, now, config)

    return ShellData(counts=counts, alerts=alerts, snapshot=snapshot)


def _executive_snapshot(
    agents: list[Agent],
    open_tasks: list[Task],
    now,
    config: Config,
) -> ExecutiveSnapshot:
    snapshot = ExecutiveSnapshot(total_agents=len(agents))
    snapshot.idle_agents = sum(
        1 for agent in agents
        if compute_presence(agent, now, config.snapshot_idle_hours).is_idle
    )

    oldest_hours = 0.0
    for task in open_tasks:
        sla = evaluate_task_sla(task, now)
        if sla.state is SlaState.WARNING:
            snapshot.tasks_at_risk += 1
        elif sla.state is SlaState.BREACH:
            snapshot.tasks_breached += 1

        oldest_hours = max(oldest_hours, hours_between(task.created_at, now))

        if TaskPriority.parse(task.priority) is TaskPriority.HIGH:
            touched = task.updated_at or task.created_at
            if hours_between(touched, now) >= config.high_priority_untouched_hours:
                snapshot.high_priority_stale += 1

    snapshot.oldest_open_task_label = format_hours_label(oldest_hours)
    return snapshot


def get_shell_data(
    db: sqlite3.Connection,
    reference_time,
    config: Config | None = None,
    include_snapshot: bool = True,
) -> ShellData:
    """Read agents and tasks once and assemble the shell bundle for reference_time."""
    agents = agents_mod.list_agents(db, order_by="created")
    tasks = tasks_mod.list_tasks(db)
    return assemble_shell_data(agents, tasks, reference_time, config, include_snapshot)


def collect_report_data(
    db: sqlite3.Connection,
    reference_time,
    config: Config | None = None,
) -> ReportData:
    """Read everything the digest and snapshot renderers need for reference_time."""
    config = config or Config()
    now = to_datetime(reference_time)
    return ReportData(
        generated_at=now,
        agents=agents_mod.list_agents(db, order_by="name"),
        tasks=tasks_mod.list_tasks(db),
        stuck_tasks=tasks_mod.list_stale_tasks(db, now, config.task_stuck_hours),
        audit_logs=audit_mod.list_audit_logs(db, limit=SNAPSHOT_AUDIT_LIMIT),
        stuck_threshold_hours=config.task_stuck_hours,
    )


def shell_to_dict(shell: ShellData, reference_time) -> dict:
    """JSON-ready form of the shell bundle."""
    now = to_datetime(reference_time)
    data = {
        "reference_time": now.isoformat(),
        "counts": {
            "todo": shell.counts.todo,
            "doing": shell.counts.doing,
            "done": shell.counts.done,
            "stuck": shell.counts.stuck,
            "needs_briefing": shell.counts.needs_briefing,
            "high_priority": shell.counts.high_priority,
        },
        "alerts": {
            "needs_briefing": [
                {"id": a.id, "name": a.name, "last_memory_at": _memory_at(a)}
                for a in shell.alerts.needs_briefing
            ],
            "stuck_tasks": [
                {
                    "id": t.id,
                    "title": t.title,
                    "agent_name": t.agent_name,
                    "updated_at": t.updated_at.isoformat() if t.updated_at else None,
                }
                for t in shell.alerts.stuck_tasks
            ],
            "stale_memory": [
                {"id": a.id, "name": a.name, "last_memory_at": _memory_at(a)}
                for a in shell.alerts.stale_memory
            ],
        },
        "snapshot": None,
    }
    if shell.snapshot is not None:
        s = shell.snapshot
        data["snapshot"] = {
            "total_agents": s.total_agents,
            "idle_agents": s.idle_agents,
            "tasks_at_risk": s.tasks_at_risk,
            "tasks_breached": s.tasks_breached,
            "oldest_open_task_label": s.oldest_open_task_label,
            "high_priority_stale": s.high_priority_stale,
        }
    return data


def _memory_at(agent: Agent) -> str | None:
    memory = latest_memory(agent)
    if memory is None or memory.created_at is None:
        return None
    return memory.created_at.isoformat()
