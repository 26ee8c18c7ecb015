"""Append-only audit trail written alongside every mutation."""

import json
import sqlite3

from mission_control.db.engine import parse_db_timestamp
from mission_control.db.models import AuditLog


class AuditTrail:
    """Records audit entries on the caller's connection.

    The insert joins the caller's transaction; the mutation that triggered it
    commits both together.
    """

    def __init__(self, db: sqlite3.Connection):
        self.db = db

    def record(self, action: str, metadata: dict, task_id: str | None = None):
        self.db.execute(
            "INSERT INTO audit_logs (action, task_id, metadata) VALUES (?, ?, ?)",
            (action, task_id, json.dumps(metadata, sort_keys=True)),
        )


def list_audit_logs(
    db: sqlite3.Connection,
    limit: int = 20,
    task_id: str | None = None,
) -> list[AuditLog]:
    """Most recent audit entries first."""
    sql = """
        SELECT a.*, t.title AS task_title FROM audit_logs a
        LEFT JOIN tasks t ON t.id = a.task_id
    """
    params: list = []
    if task_id is not None:
        sql += " WHERE a.task_id = ?"
        params.append(task_id)
    sql += " ORDER BY a.created_at DESC, a.id DESC LIMIT ?"
    params.append(limit)
    rows = db.execute(sql, params).fetchall()
    return [_row_to_audit(r) for r in rows]


def audit_metadata(entry: AuditLog) -> dict:
    """Decode an entry's metadata; undecodable payloads come back under "raw"."""
    try:
        data = json.loads(entry.metadata or "{}")
    except json.JSONDecodeError:
        return {"raw": entry.metadata}
    return data if isinstance(data, dict) else {"raw": data}


def _row_to_audit(row: sqlite3.Row) -> AuditLog:
    return AuditLog(
        id=row["id"],
        action=row["action"],
        task_id=row["task_id"],
        task_title=row["task_title"],
        metadata=row["metadata"],
        created_at=parse_db_timestamp(row["created_at"]),
    )
