"""Task management operations."""

import re
import sqlite3

from mission_control.core.audit import AuditTrail
from mission_control.core.constants import (
    TASK_PRIORITIES,
    TASK_STATUSES,
    TASK_STUCK_THRESHOLD_HOURS,
    TaskPriority,
    TaskStatus,
)
from mission_control.core.metrics import is_stale
from mission_control.db.engine import parse_db_timestamp
from mission_control.db.models import Task

TASK_SELECT = """
    SELECT t.*, a.name AS agent_name FROM tasks t
    LEFT JOIN agents a ON a.id = t.agent_id
"""


def slugify(title: str) -> str:
    """Convert a title to a URL-friendly slug."""
    slug = title.lower().strip()
    slug = re.sub(r"[^\w\s-]", "", slug)
    slug = re.sub(r"[\s_]+", "-", slug)
    slug = re.sub(r"-+", "-", slug)
    return slug.strip("-")[:60]


def unique_id(db: sqlite3.Connection, table: str, base_slug: str, fallback: str = "item") -> str:
    """Generate a unique row ID from a slug, appending a number if needed."""
    base_slug = base_slug or fallback
    candidate = base_slug
    i = 2
    while db.execute(f"SELECT 1 FROM {table} WHERE id = ?", (candidate,)).fetchone():
        candidate = f"{base_slug}-{i}"
        i += 1
    return candidate


def validate_status(status) -> TaskStatus:
    parsed = TaskStatus.parse(status)
    if parsed not in TASK_STATUSES:
        raise ValueError(f"Invalid status: {status}")
    return parsed


def validate_priority(priority) -> TaskPriority:
    parsed = TaskPriority.parse(priority)
    if parsed not in TASK_PRIORITIES:
        raise ValueError(f"Invalid priority: {priority}")
    return parsed


def _require_agent(db: sqlite3.Connection, agent_id: str):
    if not db.execute("SELECT 1 FROM agents WHERE id = ?", (agent_id,)).fetchone():
        raise ValueError(f"Agent not found: {agent_id}")


def create_task(
    db: sqlite3.Connection,
    title: str,
    description: str = "",
    agent_id: str | None = None,
    status: str = "TODO",
    priority: str = "MEDIUM",
    audit: AuditTrail | None = None,
) -> Task:
    """Create a new task, optionally assigned to an agent."""
    title = (title or "").strip()
    if not title:
        raise ValueError("Title is required")
    status = validate_status(status)
    priority = validate_priority(priority)
    agent_id = (agent_id or "").strip() or None
    if agent_id:
        _require_agent(db, agent_id)

    audit = audit or AuditTrail(db)
    task_id = unique_id(db, "tasks", slugify(title), fallback="task")
    db.execute(
        """INSERT INTO tasks (id, title, description, status, priority, agent_id)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (task_id, title, description or "", status.value, priority.value, agent_id),
    )
    audit.record("task.created", {"taskId": task_id, "status": status.value}, task_id=task_id)
    db.commit()
    return get_task(db, task_id)


def get_task(db: sqlite3.Connection, task_id: str) -> Task | None:
    """Get a task by ID."""
    row = db.execute(TASK_SELECT + " WHERE t.id = ?", (task_id,)).fetchone()
    if not row:
        return None
    return _row_to_task(row)


def list_tasks(
    db: sqlite3.Connection,
    agent_id: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    limit: int | None = None,
) -> list[Task]:
    """List tasks, newest first, with optional filters.

    Filters with unrecognized status or priority values are ignored rather
    than matching nothing.
    """
    query = TASK_SELECT + " WHERE 1=1"
    params: list = []

    if agent_id:
        query += " AND t.agent_id = ?"
        params.append(agent_id)

    if status and TaskStatus.parse(status) in TASK_STATUSES:
        query += " AND t.status = ?"
        params.append(TaskStatus.parse(status).value)

    if priority and TaskPriority.parse(priority) in TASK_PRIORITIES:
        query += " AND t.priority = ?"
        params.append(TaskPriority.parse(priority).value)

    query += " ORDER BY t.created_at DESC, t.rowid DESC"
    if limit is not None:
        query += " LIMIT ?"
        params.append(limit)

    rows = db.execute(query, params).fetchall()
    return [_row_to_task(r) for r in rows]


def list_stale_tasks(
    db: sqlite3.Connection,
    reference_time,
    threshold_hours: float = TASK_STUCK_THRESHOLD_HOURS,
    limit: int | None = None,
) -> list[Task]:
    """DOING tasks stuck as of reference_time, oldest update first.

    Rows are classified with is_stale so every surface agrees for one reference time.
    """
    rows = db.execute(
        TASK_SELECT + " WHERE t.status = ? ORDER BY t.updated_at ASC, t.rowid ASC",
        (TaskStatus.DOING.value,),
    ).fetchall()
    stale = [
        task for task in (_row_to_task(r) for r in rows)
        if is_stale(task, reference_time, threshold_hours)
    ]
    return stale if limit is None else stale[:limit]


def update_task_status(
    db: sqlite3.Connection,
    task_id: str,
    status: str,
    audit: AuditTrail | None = None,
) -> Task | None:
    """Update a task's status. Returns the updated task."""
    status = validate_status(status)
    if not get_task(db, task_id):
        return None

    audit = audit or AuditTrail(db)
    db.execute(
        "UPDATE tasks SET status = ?, updated_at = datetime('now') WHERE id = ?",
        (status.value, task_id),
    )
    audit.record("task.status_updated", {"taskId": task_id, "status": status.value}, task_id=task_id)
    db.commit()
    return get_task(db, task_id)


def update_task_priority(
    db: sqlite3.Connection,
    task_id: str,
    priority: str,
    audit: AuditTrail | None = None,
) -> Task | None:
    """Update a task's priority (LOW, MEDIUM, HIGH)."""
    priority = validate_priority(priority)
    task = get_task(db, task_id)
    if not task:
        return None

    audit = audit or AuditTrail(db)
    db.execute(
        "UPDATE tasks SET priority = ?, updated_at = datetime('now') WHERE id = ?",
        (priority.value, task_id),
    )
    audit.record(
        "task.priority_updated",
        {"taskId": task_id, "from": task.priority, "priority": priority.value},
        task_id=task_id,
    )
    db.commit()
    return get_task(db, task_id)


def assign_task(
    db: sqlite3.Connection,
    task_id: str,
    agent_id: str | None,
    audit: AuditTrail | None = None,
) -> Task | None:
    """Assign a task to an agent, or unassign it with agent_id=None."""
    agent_id = (agent_id or "").strip() or None
    if agent_id:
        _require_agent(db, agent_id)
    task = get_task(db, task_id)
    if not task:
        return None

    audit = audit or AuditTrail(db)
    db.execute(
        "UPDATE tasks SET agent_id = ?, updated_at = datetime('now') WHERE id = ?",
        (agent_id, task_id),
    )
    audit.record(
        "task.assigned",
        {"taskId": task_id, "from": task.agent_id, "agentId": agent_id},
        task_id=task_id,
    )
    db.commit()
    return get_task(db, task_id)


def _row_to_task(row: sqlite3.Row) -> Task:
    return Task(
        id=row["id"],
        title=row["title"],
        description=row["description"] or "",
        status=row["status"],
        priority=row["priority"],
        agent_id=row["agent_id"],
        agent_name=row["agent_name"],
        created_at=parse_db_timestamp(row["created_at"]),
        updated_at=parse_db_timestamp(row["updated_at"]),
    )
