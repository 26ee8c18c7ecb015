"""MCP server exposing mission control tools."""

from __future__ import annotations

import sqlite3
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from datetime import datetime, timezone

from mcp.server.fastmcp import Context, FastMCP

from mission_control.config import Config, get_config
from mission_control.core import agents as agents_mod
from mission_control.core import audit as audit_mod
from mission_control.core import memory as memory_mod
from mission_control.core import playbooks as playbooks_mod
from mission_control.core import reports as reports_mod
from mission_control.core import shell as shell_mod
from mission_control.core import tasks as tasks_mod
from mission_control.core.metrics import (
    compute_presence,
    compute_workload,
    evaluate_task_sla,
    is_stale,
    needs_briefing,
    stale_cutoff,
    summarize_sla_lanes,
)
from mission_control.db.engine import init_db
from mission_control.integrations import slack as slack_mod


@dataclass
class AppContext:
    db: sqlite3.Connection
    config: Config


@asynccontextmanager
async def app_lifespan(server: FastMCP) -> AsyncIterator[AppContext]:
    """Initialize DB connection and seed core records on startup, close on shutdown."""
    config = get_config()
    db = init_db(config.db_path)
    agents_mod.ensure_core_agents(db)
    playbooks_mod.ensure_escalation_playbooks(db)
    try:
        yield AppContext(db=db, config=config)
    finally:
        db.close()


mcp = FastMCP("mission-control", lifespan=app_lifespan)


def _ctx(ctx: Context) -> AppContext:
    """Extract AppContext from MCP Context."""
    return ctx.request_context.lifespan_context


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ── Agent Tools ───────────────────────────────────────────────────────────────


@mcp.tool()
def list_agents(ctx: Context) -> list[dict]:
    """List agents with workload lane, idle state and briefing needs."""
    app = _ctx(ctx)
    now = _now()
    return [_agent_to_dict(a, now, app.config) for a in agents_mod.list_agents(app.db)]


@mcp.tool()
def get_agent(ctx: Context, agent_id: str) -> dict:
    """Get an agent with its tasks and most recent memories."""
    app = _ctx(ctx)
    now = _now()
    agent = agents_mod.get_agent(app.db, agent_id)
    if not agent:
        return {"error": f"Agent not found: {agent_id}"}
    d = _agent_to_dict(agent, now, app.config)
    d["soul"] = agent.soul
    d["tasks"] = [_task_to_dict(t, now, app.config) for t in agent.tasks]
    d["memories"] = [
        {"id": m.id, "content": m.content, "created_at": _iso(m.created_at)}
        for m in agent.memories
    ]
    return d


@mcp.tool()
def create_agent(ctx: Context, name: str, role: str, soul: str) -> dict:
    """Create a new agent. Name, role and soul are all required."""
    app = _ctx(ctx)
    try:
        agent = agents_mod.create_agent(app.db, name, role, soul)
    except ValueError as e:
        return {"error": str(e)}
    return _agent_to_dict(agent, _now(), app.config)


@mcp.tool()
def add_memory(ctx: Context, agent_id: str, content: str) -> dict:
    """Append a memory to an agent. Agents with no memories need a briefing."""
    app = _ctx(ctx)
    try:
        mem = memory_mod.add_memory(app.db, agent_id, content)
    except ValueError as e:
        return {"error": str(e)}
    return {
        "id": mem.id,
        "agent_id": mem.agent_id,
        "content": mem.content,
        "created_at": _iso(mem.created_at),
    }


# ── Task Tools ────────────────────────────────────────────────────────────────


@mcp.tool()
def list_tasks(
    ctx: Context,
    agent_id: str | None = None,
    status: str | None = None,
    priority: str | None = None,
) -> list[dict]:
    """List tasks newest first. Status: TODO, DOING, DONE. Priority: LOW, MEDIUM, HIGH."""
    app = _ctx(ctx)
    now = _now()
    tasks = tasks_mod.list_tasks(app.db, agent_id=agent_id, status=status, priority=priority)
    return [_task_to_dict(t, now, app.config) for t in tasks]


@mcp.tool()
def create_task(
    ctx: Context,
    title: str,
    description: str = "",
    agent_id: str | None = None,
    status: str = "TODO",
    priority: str = "MEDIUM",
) -> dict:
    """Create a new task, optionally assigned to an agent."""
    app = _ctx(ctx)
    try:
        task = tasks_mod.create_task(
            app.db, title, description, agent_id=agent_id, status=status, priority=priority
        )
    except ValueError as e:
        return {"error": str(e)}
    return _task_to_dict(task, _now(), app.config)


@mcp.tool()
def update_task_status(ctx: Context, task_id: str, status: str) -> dict:
    """Move a task to TODO, DOING or DONE."""
    app = _ctx(ctx)
    try:
        task = tasks_mod.update_task_status(app.db, task_id, status)
    except ValueError as e:
        return {"error": str(e)}
    if not task:
        return {"error": f"Task not found: {task_id}"}
    return _task_to_dict(task, _now(), app.config)


@mcp.tool()
def update_task_priority(ctx: Context, task_id: str, priority: str) -> dict:
    """Set a task's priority to LOW, MEDIUM or HIGH. HIGH tasks have a 12 hour SLA."""
    app = _ctx(ctx)
    try:
        task = tasks_mod.update_task_priority(app.db, task_id, priority)
    except ValueError as e:
        return {"error": str(e)}
    if not task:
        return {"error": f"Task not found: {task_id}"}
    return _task_to_dict(task, _now(), app.config)


@mcp.tool()
def assign_task(ctx: Context, task_id: str, agent_id: str | None = None) -> dict:
    """Assign a task to an agent. Omit agent_id to unassign."""
    app = _ctx(ctx)
    try:
        task = tasks_mod.assign_task(app.db, task_id, agent_id)
    except ValueError as e:
        return {"error": str(e)}
    if not task:
        return {"error": f"Task not found: {task_id}"}
    return _task_to_dict(task, _now(), app.config)


# ── Oversight Tools ───────────────────────────────────────────────────────────


@mcp.tool()
def get_shell(ctx: Context) -> dict:
    """Status counts, alerts (stuck tasks, agents needing briefing) and the executive snapshot."""
    app = _ctx(ctx)
    now = _now()
    shell = shell_mod.get_shell_data(app.db, now, app.config)
    return shell_mod.shell_to_dict(shell, now)


@mcp.tool()
def sla_lanes(ctx: Context) -> list[dict]:
    """Per-priority SLA summary of open tasks."""
    app = _ctx(ctx)
    lanes = summarize_sla_lanes(tasks_mod.list_tasks(app.db), _now())
    return [
        {
            "priority": lane.priority.value,
            "threshold_hours": lane.threshold_hours,
            "open": lane.open,
            "warning": lane.warning,
            "breach": lane.breach,
            "status": lane.status_label,
            "delta": lane.delta_label,
        }
        for lane in lanes
    ]


@mcp.tool()
def audit_log(ctx: Context, limit: int = 20, task_id: str | None = None) -> list[dict]:
    """Recent audit entries, newest first."""
    app = _ctx(ctx)
    entries = audit_mod.list_audit_logs(app.db, limit=limit, task_id=task_id)
    return [
        {
            "action": e.action,
            "task_id": e.task_id,
            "task_title": e.task_title,
            "metadata": audit_mod.audit_metadata(e),
            "created_at": _iso(e.created_at),
        }
        for e in entries
    ]


@mcp.tool()
def list_playbooks(ctx: Context) -> list[dict]:
    """Escalation playbooks, highest impact first."""
    app = _ctx(ctx)
    return [
        {
            "id": p.id,
            "title": p.title,
            "scenario": p.scenario,
            "impact_level": p.impact_level,
            "owner": p.owner,
            "steps": [s.instruction for s in p.steps],
        }
        for p in playbooks_mod.list_playbooks(app.db)
    ]


@mcp.tool()
def weekly_digest(ctx: Context, sections: str | None = None, format: str = "markdown") -> str:
    """Render the weekly digest. Sections: comma-separated load,stuck,tasks,audits. Format: markdown or slack."""
    app = _ctx(ctx)
    data = shell_mod.collect_report_data(app.db, _now(), app.config)
    return reports_mod.render_weekly_digest(data, sections, format)


@mcp.tool()
def snapshot(ctx: Context) -> str:
    """Render the full Markdown snapshot of agents, tasks and audit activity."""
    app = _ctx(ctx)
    data = shell_mod.collect_report_data(app.db, _now(), app.config)
    return reports_mod.render_snapshot(data)


@mcp.tool()
def send_overdue_alert(ctx: Context) -> dict:
    """Post stuck DOING tasks to the configured Slack webhook."""
    app = _ctx(ctx)
    now = _now()
    config = app.config
    stale = tasks_mod.list_stale_tasks(app.db, now, config.task_stuck_hours)
    result = slack_mod.trigger_overdue_alert(
        stale,
        now,
        webhook_url=config.slack_webhook_url,
        base_url=config.base_url,
        threshold_hours=config.task_stuck_hours,
        timeout=config.webhook_timeout,
    )
    return result.to_dict()


# ── Helpers ───────────────────────────────────────────────────────────────────


def _iso(dt) -> str | None:
    return dt.isoformat() if dt else None


def _task_to_dict(task, now, config) -> dict:
    return {
        "id": task.id,
        "title": task.title,
        "description": task.description,
        "status": task.status,
        "priority": task.priority,
        "agent_id": task.agent_id,
        "agent_name": task.agent_name,
        "stale": is_stale(task, now, config.task_stuck_hours),
        "sla_state": evaluate_task_sla(task, now).state.value,
        "created_at": _iso(task.created_at),
        "updated_at": _iso(task.updated_at),
    }


def _agent_to_dict(agent, now, config) -> dict:
    workload = compute_workload(agent.tasks, stale_cutoff(now, config.task_stuck_hours))
    presence = compute_presence(agent, now, config.agent_idle_hours)
    return {
        "id": agent.id,
        "name": agent.name,
        "role": agent.role,
        "lane": workload.lane.value,
        "active_count": workload.active_count,
        "stuck_count": workload.stuck_count,
        "is_idle": presence.is_idle,
        "last_interaction": _iso(presence.last_interaction),
        "needs_briefing": needs_briefing(agent),
    }
