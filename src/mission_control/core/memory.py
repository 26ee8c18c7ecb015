"""Append-only memory log attached to each agent."""

import sqlite3

from mission_control.core.audit import AuditTrail
from mission_control.db.engine import parse_db_timestamp
from mission_control.db.models import RecentMemory


def add_memory(
    db: sqlite3.Connection,
    agent_id: str,
    content: str,
    audit: AuditTrail | None = None,
) -> RecentMemory:
    """Append a memory to an agent's history."""
    content = (content or "").strip()
    if not content:
        raise ValueError("Content required")
    if not db.execute("SELECT 1 FROM agents WHERE id = ?", (agent_id,)).fetchone():
        raise ValueError(f"Agent not found: {agent_id}")

    audit = audit or AuditTrail(db)
    cursor = db.execute(
        "INSERT INTO recent_memories (agent_id, content) VALUES (?, ?)",
        (agent_id, content),
    )
    memory_id = cursor.lastrowid
    audit.record("memory.created", {"agentId": agent_id, "memoryId": memory_id})
    db.commit()
    return get_memory(db, memory_id)


def get_memory(db: sqlite3.Connection, memory_id: int) -> RecentMemory | None:
    row = db.execute("SELECT * FROM recent_memories WHERE id = ?", (memory_id,)).fetchone()
    if not row:
        return None
    return _row_to_memory(row)


def list_memories(
    db: sqlite3.Connection,
    agent_id: str,
    limit: int | None = 20,
) -> list[RecentMemory]:
    """An agent's memories, most recent first."""
    sql = "SELECT * FROM recent_memories WHERE agent_id = ? ORDER BY created_at DESC, id DESC"
    params: list = [agent_id]
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    rows = db.execute(sql, params).fetchall()
    return [_row_to_memory(r) for r in rows]


def memories_by_agent(db: sqlite3.Connection) -> dict[str, list[RecentMemory]]:
    """All memories grouped per agent, most recent first within each group."""
    grouped: dict[str, list[RecentMemory]] = {}
    rows = db.execute(
        "SELECT * FROM recent_memories ORDER BY created_at DESC, id DESC"
    ).fetchall()
    for row in rows:
        memory = _row_to_memory(row)
        grouped.setdefault(memory.agent_id, []).append(memory)
    return grouped


def _row_to_memory(row: sqlite3.Row) -> RecentMemory:
    return RecentMemory(
        id=row["id"],
        agent_id=row["agent_id"],
        content=row["content"],
        created_at=parse_db_timestamp(row["created_at"]),
    )
