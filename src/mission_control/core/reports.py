"""Markdown and Slack renderings of the mission control state."""

from dataclasses import dataclass, field
from datetime import datetime

from mission_control.core.constants import TASK_STATUSES, TASK_STUCK_THRESHOLD_HOURS, TaskStatus
from mission_control.core.formatting import format_date_full, format_date_time, format_relative_time
from mission_control.core.metrics import (
    CapacityLane,
    compute_workload,
    latest_memory,
    stale_cutoff,
    to_datetime,
)
from mission_control.db.models import Agent, AuditLog, Task

DIGEST_SECTIONS = ("load", "stuck", "tasks", "audits")
DIGEST_FORMATS = ("markdown", "slack")
MAX_TASKS_IN_MESSAGE = 10
SNAPSHOT_TASK_LIMIT = 20
SNAPSHOT_AUDIT_LIMIT = 20
MEMORY_EXCERPT_LENGTH = 140


@dataclass
class ReportData:
    """Everything a digest or snapshot needs, read once for one reference time."""

    generated_at: datetime
    agents: list[Agent] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)
    stuck_tasks: list[Task] = field(default_factory=list)
    audit_logs: list[AuditLog] = field(default_factory=list)
    stuck_threshold_hours: float = TASK_STUCK_THRESHOLD_HOURS


def parse_sections(param=None) -> list[str]:
    """Digest sections from a comma list or sequence; no valid entries means all."""
    if not param:
        return list(DIGEST_SECTIONS)
    values = param.split(",") if isinstance(param, str) else list(param)
    valid = [v.strip() for v in values if v and v.strip() in DIGEST_SECTIONS]
    return valid or list(DIGEST_SECTIONS)


def parse_format(param=None) -> str:
    return "slack" if param == "slack" else "markdown"


def _hours(value: float) -> str:
    return f"{value:g}"


def _status_counts(tasks: list[Task]) -> dict[TaskStatus, int]:
    counts = {status: 0 for status in TASK_STATUSES}
    for task in tasks:
        status = TaskStatus.parse(task.status)
        if status in counts:
            counts[status] += 1
    return counts


def _plural(n: int, word: str) -> str:
    return f"{n} {word}" if n == 1 else f"{n} {word}s"


def _excerpt(text: str, limit: int = MEMORY_EXCERPT_LENGTH) -> str:
    text = " ".join(text.split())
    if len(text) <= limit:
        return text
    return text[: limit - 1].rstrip() + "…"


# ── Weekly digest ────────────────────────────────────────────────────────────


def _load_section(data: ReportData) -> str:
    cutoff = stale_cutoff(data.generated_at, data.stuck_threshold_hours)
    loads = [(agent, compute_workload(agent.tasks, cutoff)) for agent in data.agents]

    lanes = {lane: 0 for lane in CapacityLane}
    busiest = None
    for agent, workload in loads:
        lanes[workload.lane] += 1
        if busiest is None or workload.active_count > busiest[1].active_count:
            busiest = (agent, workload)

    section = (
        "## Agent load\n"
        f"- Idle: {lanes[CapacityLane.IDLE]}\n"
        f"- Engaged (1-3 active): {lanes[CapacityLane.ENGAGED]}\n"
        f"- Overloaded (4+ active): {lanes[CapacityLane.OVERLOADED]}\n"
    )
    if busiest is not None:
        agent, workload = busiest
        section += (
            f"\nTop load: **{agent.name}** with "
            f"{_plural(workload.active_count, 'active task')}.\n"
        )
    elif not data.agents:
        section += "\nNo agents on the roster.\n"
    return section + "\n"


def _stuck_section(data: ReportData) -> str:
    threshold = _hours(data.stuck_threshold_hours)
    stuck = sorted(data.stuck_tasks, key=lambda t: to_datetime(t.updated_at or t.created_at))
    if stuck:
        body = "\n".join(
            f"- [{task.status}] {task.title} — {task.agent_name or 'Unassigned'} "
            f"(stuck {format_relative_time(task.updated_at or task.created_at, data.generated_at)})"
            for task in stuck
        )
    else:
        body = f"No tasks have been stuck for more than {threshold} hours."
    return f"## Stuck tasks ({threshold}h+)\n{body}\n\n"


def _tasks_section(data: ReportData) -> str:
    counts = _status_counts(data.tasks)
    lines = "\n".join(f"- {status.label}: {counts[status]}" for status in TASK_STATUSES)
    return f"## Task status\n{lines}\n\n"


def _audits_section(data: ReportData) -> str:
    if data.audit_logs:
        body = "\n".join(
            f"- {format_date_time(log.created_at)} — {log.action}"
            + (f" ({log.task_title})" if log.task_title else "")
            for log in data.audit_logs
        )
    else:
        body = "No audit activity recorded."
    return f"## Audit activity\n{body}\n\n"


_SECTION_RENDERERS = {
    "load": _load_section,
    "stuck": _stuck_section,
    "tasks": _tasks_section,
    "audits": _audits_section,
}


def render_weekly_digest(data: ReportData, sections=None, fmt: str = "markdown") -> str:
    """Render the digest; sections always appear in load, stuck, tasks, audits order."""
    selected = parse_sections(sections)
    rendered = [
        _SECTION_RENDERERS[name](data) for name in DIGEST_SECTIONS if name in selected
    ]

    if parse_format(fmt) == "slack":
        lines = []
        for section in rendered:
            lines.extend(line for line in section.strip().split("\n") if line)
        return "\n".join(lines)

    generated = format_date_full(data.generated_at)
    header = f"Subject: Mission Control Weekly Digest — {generated}\n\n"
    intro = f"# Mission Control Weekly Digest\nGenerated {generated}\n\n"
    return header + intro + "\n".join(rendered)


def digest_filename(generated_at, fmt: str = "markdown") -> str:
    day = to_datetime(generated_at).date().isoformat()
    suffix = "-slack.txt" if parse_format(fmt) == "slack" else ".txt"
    return f"mission-control-digest-{day}{suffix}"


# ── Snapshot ─────────────────────────────────────────────────────────────────


def render_snapshot(data: ReportData) -> str:
    """Full Markdown dump of the roster, task board and recent audit trail."""
    counts = _status_counts(data.tasks)
    cutoff = stale_cutoff(data.generated_at, data.stuck_threshold_hours)

    out = "# Mission Control Snapshot\n\n"
    out += (
        f"Generated: {format_date_full(data.generated_at)}\n"
        f"Agents: {len(data.agents)}\n"
        f"Tasks (open): {counts[TaskStatus.TODO] + counts[TaskStatus.DOING]}\n"
        f"Completed: {counts[TaskStatus.DONE]}\n\n"
    )

    agent_lines = []
    for agent in data.agents:
        workload = compute_workload(agent.tasks, cutoff)
        line = (
            f"- **{agent.name}** ({agent.role}) — "
            f"{workload.active_count} active / {len(agent.tasks)} total"
        )
        memory = latest_memory(agent)
        if memory is not None:
            line += f" | Last memory: {_excerpt(memory.content)}"
        agent_lines.append(line)
    out += "## Agents\n" + ("\n".join(agent_lines) or "No agents on the roster.") + "\n\n"

    status_lines = "\n".join(f"- {status.label}: {counts[status]}" for status in TASK_STATUSES)
    recent = [
        f"- [{task.status}] {task.title}" + (f" — {task.agent_name}" if task.agent_name else "")
        for task in data.tasks[:SNAPSHOT_TASK_LIMIT]
    ]
    out += f"## Tasks\n{status_lines}\n\n" + ("\n".join(recent) or "No tasks logged.") + "\n\n"

    audit_lines = [
        f"- {format_date_full(log.created_at)} — {log.action}"
        + (f" ({log.task_title})" if log.task_title else "")
        for log in data.audit_logs[:SNAPSHOT_AUDIT_LIMIT]
    ]
    out += "## Recent audit log\n" + ("\n".join(audit_lines) or "No audit activity recorded.") + "\n"
    return out


def snapshot_filename(generated_at) -> str:
    stamp = to_datetime(generated_at).strftime("%Y-%m-%dT%H-%M-%SZ")
    return f"mission-control-snapshot-{stamp}.md"


# ── Overdue Slack alert ──────────────────────────────────────────────────────


def mission_control_url(base_url: str | None) -> str | None:
    """Deep link to the DOING queue, when a base URL is configured."""
    if not base_url:
        return None
    return f"{base_url.rstrip('/')}/mission-control/tasks?status=DOING"


def build_overdue_slack_payload(
    stale_tasks: list[Task],
    reference_time,
    base_url: str | None = None,
    threshold_hours: float = TASK_STUCK_THRESHOLD_HOURS,
) -> dict:
    """Slack message (text + blocks) listing up to ten stuck tasks, oldest first."""
    tasks = sorted(stale_tasks, key=lambda t: to_datetime(t.updated_at or t.created_at))
    queue_url = mission_control_url(base_url)
    header_count = _plural(len(tasks), "task")
    intro = f"{header_count} stuck in Doing for {_hours(threshold_hours)}h+"

    lines = [
        f"• *{task.title}* — {task.agent_name or 'Unassigned'} "
        f"({format_relative_time(task.updated_at or task.created_at, reference_time)})"
        for task in tasks[:MAX_TASKS_IN_MESSAGE]
    ]
    overflow = ""
    if len(tasks) > MAX_TASKS_IN_MESSAGE:
        overflow = f"\n…plus {len(tasks) - MAX_TASKS_IN_MESSAGE} more."
    cta = (
        f"<{queue_url}|Open Mission Control>"
        if queue_url
        else "Open Mission Control → /mission-control/tasks"
    )
    text = f"{intro}\n" + "\n".join(lines) + f"{overflow}\n{cta}"

    blocks = [
        {
            "type": "header",
            "text": {
                "type": "plain_text",
                "text": f"Mission Control: {header_count} overdue",
                "emoji": True,
            },
        },
        {
            "type": "section",
            "text": {
                "type": "mrkdwn",
                "text": (f"*{intro}*\n" + "\n".join(lines) + overflow).strip(),
            },
        },
        {
            "type": "context",
            "elements": [
                {
                    "type": "mrkdwn",
                    "text": (
                        f"{cta} • Generated {format_date_time(reference_time)} "
                        f"(threshold {_hours(threshold_hours)}h)"
                    ),
                }
            ],
        },
    ]
    return {"text": text, "blocks": blocks}
