"""CLI entry point for mission control."""

import json
import sys
from datetime import datetime, timezone

import click

from mission_control.config import get_config
from mission_control.core import agents as agents_mod
from mission_control.core import memory as memory_mod
from mission_control.core import playbooks as playbooks_mod
from mission_control.core import reports as reports_mod
from mission_control.core import shell as shell_mod
from mission_control.core import tasks as tasks_mod
from mission_control.core.formatting import format_relative_time
from mission_control.core.metrics import (
    compute_presence,
    compute_workload,
    evaluate_task_sla,
    needs_briefing,
    stale_cutoff,
)
from mission_control.db.engine import get_db
from mission_control.integrations import slack as slack_mod


def _get_db():
    config = get_config()
    return get_db(config.db_path)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _fail(message: str):
    click.echo(message, err=True)
    sys.exit(1)


@click.group()
def main():
    """mc - Mission Control CLI"""
    pass


@main.command("seed")
def seed():
    """Create the core agents and default escalation playbooks."""
    with _get_db() as db:
        created = agents_mod.ensure_core_agents(db)
        added = playbooks_mod.ensure_escalation_playbooks(db)
        click.echo(f"Seeded {len(created)} agent(s), {added} playbook(s)")


@main.command("status")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def status(json_output):
    """Show dashboard counts, alerts and the executive snapshot."""
    now = _now()
    config = get_config()
    with _get_db() as db:
        shell = shell_mod.get_shell_data(db, now, config)

    if json_output:
        click.echo(json.dumps(shell_mod.shell_to_dict(shell, now), indent=2))
        return

    c = shell.counts
    click.echo(f"Tasks: {c.todo} todo, {c.doing} doing, {c.done} done")
    click.echo(f"  Stuck: {c.stuck}  High priority open: {c.high_priority}")
    click.echo(f"  Agents needing briefing: {c.needs_briefing}")
    for task in shell.alerts.stuck_tasks:
        age = format_relative_time(task.updated_at, now)
        click.echo(f"  ! {task.id}: {task.title} ({task.agent_name or 'Unassigned'}, {age})")
    s = shell.snapshot
    click.echo(
        f"Snapshot: {s.total_agents} agents, {s.idle_agents} idle, "
        f"{s.tasks_at_risk} at risk, {s.tasks_breached} breached, "
        f"oldest open {s.oldest_open_task_label}, {s.high_priority_stale} high-priority untouched"
    )


# ── Agent Commands ────────────────────────────────────────────────────────────


@main.group("agent")
def agent_group():
    """Manage agents."""
    pass


@agent_group.command("add")
@click.argument("name")
@click.option("--role", "-r", required=True, help="Agent role")
@click.option("--soul", "-s", required=True, help="Free-text description of the agent's ethos")
def agent_add(name, role, soul):
    """Create a new agent."""
    with _get_db() as db:
        try:
            agent = agents_mod.create_agent(db, name, role, soul)
        except ValueError as e:
            _fail(f"Error: {e}")
        click.echo(f"Created agent: {agent.id}")
        click.echo(f"  Name: {agent.name}")
        click.echo(f"  Role: {agent.role}")


@agent_group.command("list")
def agent_list():
    """List agents with their load."""
    now = _now()
    config = get_config()
    with _get_db() as db:
        agents = agents_mod.list_agents(db)

    if not agents:
        click.echo("No agents found.")
        return

    cutoff = stale_cutoff(now, config.task_stuck_hours)
    for agent in agents:
        workload = compute_workload(agent.tasks, cutoff)
        presence = compute_presence(agent, now, config.agent_idle_hours)
        flags = []
        if needs_briefing(agent):
            flags.append("needs briefing")
        if presence.is_idle:
            flags.append(f"idle {format_relative_time(presence.last_interaction, now)}")
        extra = f" [{', '.join(flags)}]" if flags else ""
        click.echo(
            f"  {agent.id}: {agent.name} ({agent.role}) "
            f"{workload.lane.value} {workload.active_count} active, "
            f"{workload.stuck_count} stuck{extra}"
        )


@agent_group.command("show")
@click.argument("agent_id")
def agent_show(agent_id):
    """Show agent details, tasks and recent memories."""
    now = _now()
    with _get_db() as db:
        agent = agents_mod.get_agent(db, agent_id)
    if not agent:
        _fail(f"Agent not found: {agent_id}")

    click.echo(f"Agent: {agent.id}")
    click.echo(f"  Name: {agent.name}")
    click.echo(f"  Role: {agent.role}")
    click.echo(f"  Soul: {agent.soul}")
    if agent.tasks:
        click.echo("  Tasks:")
        for task in agent.tasks:
            click.echo(f"    - {task.id}: {task.title} ({task.status}, {task.priority})")
    if agent.memories:
        click.echo("  Memories:")
        for m in agent.memories:
            click.echo(f"    [{format_relative_time(m.created_at, now)}] {m.content}")
    else:
        click.echo("  No memories yet; this agent needs a briefing.")


# ── Task Commands ─────────────────────────────────────────────────────────────


@main.group("task")
def task_group():
    """Manage tasks."""
    pass


@task_group.command("add")
@click.argument("title")
@click.option("--description", "-d", default="", help="Task description")
@click.option("--agent", default=None, help="Agent ID to assign")
@click.option("--status", default="TODO", help="TODO, DOING or DONE")
@click.option("--priority", "-p", default="MEDIUM", help="LOW, MEDIUM or HIGH")
def task_add(title, description, agent, status, priority):
    """Create a new task."""
    with _get_db() as db:
        try:
            task = tasks_mod.create_task(
                db, title, description, agent_id=agent, status=status, priority=priority
            )
        except ValueError as e:
            _fail(f"Error: {e}")
        click.echo(f"Created task: {task.id}")
        click.echo(f"  Title: {task.title}")
        click.echo(f"  Status: {task.status}")
        click.echo(f"  Priority: {task.priority}")
        if task.agent_name:
            click.echo(f"  Agent: {task.agent_name}")


@task_group.command("list")
@click.option("--agent", default=None, help="Filter by agent ID")
@click.option("--status", default=None, help="Filter by status")
@click.option("--priority", default=None, help="Filter by priority")
@click.option("--json-output", "--json", is_flag=True, help="Output as JSON")
def task_list(agent, status, priority, json_output):
    """List tasks, newest first."""
    now = _now()
    with _get_db() as db:
        tasks = tasks_mod.list_tasks(db, agent_id=agent, status=status, priority=priority)

    if json_output:
        click.echo(json.dumps([_task_dict(t, now) for t in tasks], indent=2))
        return

    if not tasks:
        click.echo("No tasks found.")
        return

    for task in tasks:
        sla = evaluate_task_sla(task, now)
        owner = task.agent_name or "Unassigned"
        click.echo(
            f"  [{task.status}] {task.id}: {task.title} ({task.priority}, {owner}) SLA {sla.state.value}"
        )


@task_group.command("status")
@click.argument("task_id")
@click.argument("status")
def task_status(task_id, status):
    """Move a task to TODO, DOING or DONE."""
    with _get_db() as db:
        try:
            task = tasks_mod.update_task_status(db, task_id, status)
        except ValueError as e:
            _fail(f"Error: {e}")
        if not task:
            _fail(f"Task not found: {task_id}")
        click.echo(f"Updated {task_id} status to {task.status}")


@task_group.command("priority")
@click.argument("task_id")
@click.argument("priority")
def task_priority(task_id, priority):
    """Set a task's priority (LOW, MEDIUM, HIGH)."""
    with _get_db() as db:
        try:
            task = tasks_mod.update_task_priority(db, task_id, priority)
        except ValueError as e:
            _fail(f"Error: {e}")
        if not task:
            _fail(f"Task not found: {task_id}")
        click.echo(f"Updated {task_id} priority to {task.priority}")


@task_group.command("assign")
@click.argument("task_id")
@click.argument("agent_id", required=False)
def task_assign(task_id, agent_id):
    """Assign a task to an agent; omit AGENT_ID to unassign."""
    with _get_db() as db:
        try:
            task = tasks_mod.assign_task(db, task_id, agent_id)
        except ValueError as e:
            _fail(f"Error: {e}")
        if not task:
            _fail(f"Task not found: {task_id}")
        click.echo(f"Assigned {task_id} to {task.agent_name or 'nobody'}")


# ── Memory Commands ───────────────────────────────────────────────────────────


@main.group("memory")
def memory_group():
    """Record and review agent memories."""
    pass


@memory_group.command("add")
@click.argument("agent_id")
@click.argument("content")
def memory_add(agent_id, content):
    """Append a memory to an agent."""
    with _get_db() as db:
        try:
            mem = memory_mod.add_memory(db, agent_id, content)
        except ValueError as e:
            _fail(f"Error: {e}")
        click.echo(f"Stored memory #{mem.id} for {mem.agent_id}")


@memory_group.command("list")
@click.argument("agent_id")
@click.option("--limit", default=20, type=int, help="How many memories to show")
def memory_list(agent_id, limit):
    """List an agent's most recent memories."""
    now = _now()
    with _get_db() as db:
        mems = memory_mod.list_memories(db, agent_id, limit=limit)
    if not mems:
        click.echo("No memories stored.")
        return
    for m in mems:
        click.echo(f"  [{format_relative_time(m.created_at, now)}] {m.content}")


# ── Reports ───────────────────────────────────────────────────────────────────


@main.command("digest")
@click.option("--sections", default=None, help="Comma-separated: load,stuck,tasks,audits")
@click.option("--format", "fmt", type=click.Choice(["markdown", "slack"]), default="markdown")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None, help="Write to file")
def digest(sections, fmt, output):
    """Render the weekly digest."""
    now = _now()
    with _get_db() as db:
        data = shell_mod.collect_report_data(db, now, get_config())
    body = reports_mod.render_weekly_digest(data, sections, fmt)
    _emit(body, output)


@main.command("snapshot")
@click.option("--output", "-o", type=click.Path(dir_okay=False), default=None, help="Write to file")
def snapshot(output):
    """Render a full Markdown snapshot."""
    now = _now()
    with _get_db() as db:
        data = shell_mod.collect_report_data(db, now, get_config())
    _emit(reports_mod.render_snapshot(data), output)


def _emit(body: str, output: str | None):
    if output:
        with open(output, "w", encoding="utf-8") as f:
            f.write(body)
        click.echo(f"Wrote {output}")
    else:
        click.echo(body)


# ── Slack Commands ────────────────────────────────────────────────────────────


@main.group("slack")
def slack_group():
    """Slack webhook commands."""
    pass


@slack_group.command("overdue")
def slack_overdue():
    """Post the overdue-task alert to the configured webhook."""
    now = _now()
    config = get_config()
    with _get_db() as db:
        stale = tasks_mod.list_stale_tasks(db, now, config.task_stuck_hours)
    result = slack_mod.trigger_overdue_alert(
        stale,
        now,
        webhook_url=config.slack_webhook_url,
        base_url=config.base_url,
        threshold_hours=config.task_stuck_hours,
        timeout=config.webhook_timeout,
    )
    if result.sent:
        click.echo(f"Overdue alert sent ({result.count} tasks)")
    elif result.ok:
        click.echo(f"Not sent: {result.reason}")
        if result.preview:
            click.echo(result.preview["text"])
    else:
        _fail(f"Slack delivery failed: {result.status or ''} {result.body or ''}".strip())


@slack_group.command("ping")
@click.argument("message", default="Mission Control webhook check")
def slack_ping(message):
    """Send a plain test message to the configured webhook."""
    config = get_config()
    try:
        slack_mod.send_webhook(
            {"text": message}, config.slack_webhook_url, timeout=config.webhook_timeout
        ).raise_for_failure()
    except slack_mod.SlackError as e:
        _fail(f"Error: {e}")
    click.echo("Message sent")


# ── Server ────────────────────────────────────────────────────────────────────


@main.command("serve")
@click.option("--host", default="127.0.0.1", help="Bind address")
@click.option("--port", default=8787, type=int, help="Port")
def serve(host, port):
    """Run the web dashboard."""
    from mission_control.web.app import run_server
    run_server(host, port)


@main.group("mcp")
def mcp_group():
    """MCP server commands."""
    pass


@mcp_group.command("serve")
def mcp_serve():
    """Run the MCP server over stdio."""
    from mission_control.mcp.server import mcp
    from mission_control.mcp import prompts  # noqa: F401 - registers prompts
    mcp.run(transport="stdio")


def _task_dict(t, now) -> dict:
    sla = evaluate_task_sla(t, now)
    return {
        "id": t.id,
        "title": t.title,
        "status": t.status,
        "priority": t.priority,
        "agent_id": t.agent_id,
        "agent_name": t.agent_name,
        "sla_state": sla.state.value,
        "created_at": t.created_at.isoformat() if t.created_at else None,
        "updated_at": t.updated_at.isoformat() if t.updated_at else None,
    }
