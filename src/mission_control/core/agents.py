"""Agent roster: creation, lookup and the built-in core agents."""

import logging
import sqlite3

from mission_control.core.audit import AuditTrail
from mission_control.core.memory import list_memories, memories_by_agent
from mission_control.core.tasks import TASK_SELECT, _row_to_task, slugify, unique_id
from mission_control.db.engine import parse_db_timestamp
from mission_control.db.models import Agent

logger = logging.getLogger(__name__)

CORE_AGENTS = [
    {
        "name": "Sentry",
        "role": "Open Web Scout",
        "soul": (
            "Hyper-vigilant reconnaissance agent tasked with scanning public web channels, "
            "news feeds, and technical releases for anything that affects TradeWise or "
            "Mission Control."
        ),
    },
]

_ORDERINGS = {
    "created": "created_at ASC, rowid ASC",
    "name": "name ASC, rowid ASC",
}


def create_agent(
    db: sqlite3.Connection,
    name: str,
    role: str,
    soul: str,
    audit: AuditTrail | None = None,
) -> Agent:
    """Create a new agent persona."""
    name, role, soul = (name or "").strip(), (role or "").strip(), (soul or "").strip()
    if not name:
        raise ValueError("Name required")
    if not role:
        raise ValueError("Role required")
    if not soul:
        raise ValueError("Soul required")

    audit = audit or AuditTrail(db)
    agent_id = unique_id(db, "agents", slugify(name), fallback="agent")
    db.execute(
        "INSERT INTO agents (id, name, role, soul) VALUES (?, ?, ?, ?)",
        (agent_id, name, role, soul),
    )
    audit.record("agent.created", {"agentId": agent_id})
    db.commit()
    return get_agent(db, agent_id)


def get_agent(
    db: sqlite3.Connection,
    agent_id: str,
    memory_limit: int | None = 20,
) -> Agent | None:
    """Get an agent with its tasks (newest first) and recent memories."""
    row = db.execute("SELECT * FROM agents WHERE id = ?", (agent_id,)).fetchone()
    if not row:
        return None
    agent = _row_to_agent(row)
    task_rows = db.execute(
        TASK_SELECT + " WHERE t.agent_id = ? ORDER BY t.created_at DESC, t.rowid DESC",
        (agent_id,),
    ).fetchall()
    agent.tasks = [_row_to_task(r) for r in task_rows]
    agent.memories = list_memories(db, agent_id, limit=memory_limit)
    return agent


def find_agent_by_name(db: sqlite3.Connection, name: str) -> Agent | None:
    row = db.execute("SELECT id FROM agents WHERE name = ?", (name,)).fetchone()
    if not row:
        return None
    return get_agent(db, row["id"])


def list_agents(db: sqlite3.Connection, order_by: str = "created") -> list[Agent]:
    """List all agents with their tasks and memories loaded."""
    ordering = _ORDERINGS.get(order_by)
    if ordering is None:
        raise ValueError(f"Unknown agent ordering: {order_by}")

    rows = db.execute(f"SELECT * FROM agents ORDER BY {ordering}").fetchall()
    agents = [_row_to_agent(r) for r in rows]

    tasks_by_agent: dict[str, list] = {}
    task_rows = db.execute(
        TASK_SELECT + " WHERE t.agent_id IS NOT NULL ORDER BY t.created_at DESC, t.rowid DESC"
    ).fetchall()
    for r in task_rows:
        task = _row_to_task(r)
        tasks_by_agent.setdefault(task.agent_id, []).append(task)

    memories = memories_by_agent(db)
    for agent in agents:
        agent.tasks = tasks_by_agent.get(agent.id, [])
        agent.memories = memories.get(agent.id, [])
    return agents


def ensure_core_agents(db: sqlite3.Connection) -> list[Agent]:
    """Create any missing built-in agents. Returns the ones created."""
    created = []
    for seed in CORE_AGENTS:
        if find_agent_by_name(db, seed["name"]):
            continue
        agent_id = unique_id(db, "agents", slugify(seed["name"]), fallback="agent")
        db.execute(
            "INSERT INTO agents (id, name, role, soul) VALUES (?, ?, ?, ?)",
            (agent_id, seed["name"], seed["role"], seed["soul"]),
        )
        db.commit()
        logger.info("Seeded core agent %s", seed["name"])
        created.append(get_agent(db, agent_id))
    return created


def _row_to_agent(row: sqlite3.Row) -> Agent:
    return Agent(
        id=row["id"],
        name=row["name"],
        role=row["role"],
        soul=row["soul"],
        created_at=parse_db_timestamp(row["created_at"]),
        updated_at=parse_db_timestamp(row["updated_at"]),
    )
