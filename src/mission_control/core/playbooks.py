"""Escalation playbooks: static reference runbooks with ordered steps."""

import logging
import sqlite3

from mission_control.core.audit import AuditTrail
from mission_control.core.tasks import slugify, unique_id
from mission_control.db.engine import parse_db_timestamp
from mission_control.db.models import EscalationPlaybook, EscalationStep

logger = logging.getLogger(__name__)

IMPACT_ORDER = {"Critical": 0, "High": 1, "Medium": 2, "Low": 3}

DEFAULT_PLAYBOOKS = [
    {
        "title": "Trading venue outage",
        "scenario": "Primary brokerage API rejects orders or latency spikes beyond 5s, blocking live trades.",
        "impact_level": "Critical",
        "owner": "Andy / Command",
        "communication_template": (
            "TradeWise is experiencing a brokerage outage impacting order routing. We're in "
            "escalation with the venue and will update every 15 minutes."
        ),
        "steps": [
            "Confirm outage scope via health dashboard + redundant ping test.",
            "Flip Mission Control task statuses for affected engagements to 'Blocked'.",
            "Notify Andy + ops channel with latest telemetry and mitigation ETA.",
            "Engage backup brokerage runbook if downtime exceeds 20 minutes.",
            "Publish status template to customer communications channel once confirmed.",
        ],
    },
    {
        "title": "Mission Control UI degradation",
        "scenario": "Operators cannot update tasks or latencies exceed 3s for mutations.",
        "impact_level": "High",
        "owner": "Atlasbot",
        "communication_template": (
            "Heads up: Mission Control updates are delayed due to elevated database latency. "
            "Working the issue now; expect fresh ETA in 10 minutes."
        ),
        "steps": [
            "Capture screenshot/recording of the issue and attach to current incident task.",
            "Check database logs for slow queries; tail the server output for errors.",
            "Scale down noisy automation loops or pause batch jobs contributing load.",
            "Update ops Slack with impact description + mitigation plan.",
            "Log resolution steps and lessons learned back into the playbook task.",
        ],
    },
    {
        "title": "VIP account escalation",
        "scenario": "High-value partner reports blocked onboarding or missing data feed.",
        "impact_level": "Medium",
        "owner": "Customer Ops",
        "communication_template": (
            "We received your escalation and are unblocking the data feed now. Expect the fix "
            "within 30 minutes; we'll confirm once validated."
        ),
        "steps": [
            "Tag the VIP task with HIGH priority and assign a dedicated operator.",
            "Audit recent deploys/files touched by the VIP workspace.",
            "Coordinate with data ingestion agent to replay the missing feed.",
            "Send the templated reassurance note with concrete ETA.",
            "Schedule a follow-up check-in 1 hour after closure.",
        ],
    },
]


def _insert_playbook(
    db: sqlite3.Connection,
    title: str,
    scenario: str,
    impact_level: str,
    owner: str,
    communication_template: str,
    steps: list[str],
) -> str:
    playbook_id = unique_id(db, "escalation_playbooks", slugify(title), fallback="playbook")
    db.execute(
        """INSERT INTO escalation_playbooks
           (id, title, scenario, impact_level, owner, communication_template)
           VALUES (?, ?, ?, ?, ?, ?)""",
        (playbook_id, title, scenario, impact_level, owner, communication_template),
    )
    for position, instruction in enumerate(steps, start=1):
        db.execute(
            "INSERT INTO escalation_steps (playbook_id, position, instruction) VALUES (?, ?, ?)",
            (playbook_id, position, instruction),
        )
    return playbook_id


def create_playbook(
    db: sqlite3.Connection,
    title: str,
    scenario: str,
    impact_level: str,
    owner: str,
    communication_template: str,
    steps: list[str],
    audit: AuditTrail | None = None,
) -> EscalationPlaybook:
    """Create a playbook with its steps numbered from 1."""
    title = (title or "").strip()
    if not title:
        raise ValueError("Title is required")
    if impact_level not in IMPACT_ORDER:
        raise ValueError(f"Invalid impact level: {impact_level}")
    steps = [s.strip() for s in steps if s and s.strip()]
    if not steps:
        raise ValueError("At least one step is required")
    if db.execute("SELECT 1 FROM escalation_playbooks WHERE title = ?", (title,)).fetchone():
        raise ValueError(f"Playbook already exists: {title}")

    audit = audit or AuditTrail(db)
    playbook_id = _insert_playbook(
        db, title, scenario, impact_level, owner, communication_template, steps
    )
    audit.record("playbook.created", {"playbookId": playbook_id, "steps": len(steps)})
    db.commit()
    return get_playbook(db, playbook_id)


def get_playbook(db: sqlite3.Connection, playbook_id: str) -> EscalationPlaybook | None:
    row = db.execute(
        "SELECT * FROM escalation_playbooks WHERE id = ?", (playbook_id,)
    ).fetchone()
    if not row:
        return None
    playbook = _row_to_playbook(row)
    playbook.steps = _steps_for(db, playbook_id)
    return playbook


def list_playbooks(db: sqlite3.Connection) -> list[EscalationPlaybook]:
    """All playbooks, most severe impact first, then by title."""
    rows = db.execute("SELECT * FROM escalation_playbooks").fetchall()
    playbooks = []
    for row in rows:
        playbook = _row_to_playbook(row)
        playbook.steps = _steps_for(db, playbook.id)
        playbooks.append(playbook)
    playbooks.sort(key=lambda p: (IMPACT_ORDER.get(p.impact_level, 99), p.title))
    return playbooks


def ensure_escalation_playbooks(db: sqlite3.Connection) -> int:
    """Seed the default playbooks that are not present yet. Returns how many were added."""
    added = 0
    for seed in DEFAULT_PLAYBOOKS:
        if db.execute(
            "SELECT 1 FROM escalation_playbooks WHERE title = ?", (seed["title"],)
        ).fetchone():
            continue
        _insert_playbook(db, **seed)
        added += 1
    if added:
        db.commit()
        logger.info("Seeded %d escalation playbooks", added)
    return added


def _steps_for(db: sqlite3.Connection, playbook_id: str) -> list[EscalationStep]:
    rows = db.execute(
        "SELECT * FROM escalation_steps WHERE playbook_id = ? ORDER BY position",
        (playbook_id,),
    ).fetchall()
    return [
        EscalationStep(
            id=r["id"],
            playbook_id=r["playbook_id"],
            position=r["position"],
            instruction=r["instruction"],
        )
        for r in rows
    ]


def _row_to_playbook(row: sqlite3.Row) -> EscalationPlaybook:
    return EscalationPlaybook(
        id=row["id"],
        title=row["title"],
        scenario=row["scenario"],
        impact_level=row["impact_level"],
        owner=row["owner"],
        communication_template=row["communication_template"],
        created_at=parse_db_timestamp(row["created_at"]),
        updated_at=parse_db_timestamp(row["updated_at"]),
    )
