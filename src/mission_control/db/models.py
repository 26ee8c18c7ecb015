"""Data models for mission control."""

from dataclasses import dataclass, field
from datetime import datetime


@dataclass
class RecentMemory:
    id: int | None = None
    agent_id: str = ""
    content: str = ""
    created_at: datetime | None = None


@dataclass
class Task:
    id: str
    title: str
    description: str = ""
    status: str = "TODO"
    priority: str = "MEDIUM"
    agent_id: str | None = None
    agent_name: str | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None


@dataclass
class Agent:
    id: str
    name: str
    role: str = ""
    soul: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    tasks: list[Task] = field(default_factory=list)
    memories: list[RecentMemory] = field(default_factory=list)


@dataclass
class AuditLog:
    id: int | None = None
    action: str = ""
    task_id: str | None = None
    task_title: str | None = None
    metadata: str = "{}"
    created_at: datetime | None = None


@dataclass
class EscalationStep:
    id: int | None = None
    playbook_id: str = ""
    position: int = 0
    instruction: str = ""


@dataclass
class EscalationPlaybook:
    id: str
    title: str
    scenario: str = ""
    impact_level: str = "Medium"
    owner: str = ""
    communication_template: str = ""
    created_at: datetime | None = None
    updated_at: datetime | None = None
    steps: list[EscalationStep] = field(default_factory=list)
