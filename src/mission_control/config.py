"""Configuration loading from environment variables."""

import os
from dataclasses import dataclass, field
from pathlib import Path

from mission_control.core.constants import (
    AGENT_IDLE_THRESHOLD_HOURS,
    HIGH_PRIORITY_UNTOUCHED_HOURS,
    MEMORY_STALE_THRESHOLD_HOURS,
    SNAPSHOT_IDLE_THRESHOLD_HOURS,
    TASK_STUCK_THRESHOLD_HOURS,
)

WEBHOOK_TIMEOUT_SECONDS = 5


@dataclass
class Config:
    db_path: Path = field(default_factory=lambda: Path.home() / ".mission_control" / "mc.db")
    base_url: str | None = None
    slack_webhook_url: str | None = None
    webhook_timeout: int = WEBHOOK_TIMEOUT_SECONDS
    task_stuck_hours: float = TASK_STUCK_THRESHOLD_HOURS
    agent_idle_hours: float = AGENT_IDLE_THRESHOLD_HOURS
    snapshot_idle_hours: float = SNAPSHOT_IDLE_THRESHOLD_HOURS
    memory_stale_hours: float = MEMORY_STALE_THRESHOLD_HOURS
    high_priority_untouched_hours: float = HIGH_PRIORITY_UNTOUCHED_HOURS

    @classmethod
    def from_env(cls) -> "Config":
        config = cls()

        if db := os.environ.get("MC_DB_PATH"):
            config.db_path = Path(db)

        if base := os.environ.get("MISSION_CONTROL_BASE_URL"):
            config.base_url = base.rstrip("/")

        config.slack_webhook_url = (
            os.environ.get("SLACK_OVERDUE_WEBHOOK_URL")
            or os.environ.get("SLACK_WEBHOOK_URL")
        )

        if timeout := os.environ.get("MC_WEBHOOK_TIMEOUT"):
            config.webhook_timeout = int(timeout)

        if stuck := os.environ.get("MC_TASK_STUCK_HOURS"):
            config.task_stuck_hours = float(stuck)

        if idle := os.environ.get("MC_AGENT_IDLE_HOURS"):
            config.agent_idle_hours = float(idle)

        if snapshot_idle := os.environ.get("MC_SNAPSHOT_IDLE_HOURS"):
            config.snapshot_idle_hours = float(snapshot_idle)

        if memory_stale := os.environ.get("MC_MEMORY_STALE_HOURS"):
            config.memory_stale_hours = float(memory_stale)

        if untouched := os.environ.get("MC_HIGH_PRIORITY_UNTOUCHED_HOURS"):
            config.high_priority_untouched_hours = float(untouched)

        return config


def get_config() -> Config:
    return Config.from_env()
