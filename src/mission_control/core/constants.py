"""Closed task vocabularies and the named time thresholds used across the dashboard."""

from enum import Enum


class TaskStatus(str, Enum):
    TODO = "TODO"
    DOING = "DOING"
    DONE = "DONE"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value) -> "TaskStatus":
        """Map a stored status string onto the enum; anything unrecognized is UNKNOWN."""
        if isinstance(value, cls):
            return value
        try:
            status = cls(str(value).strip().upper())
        except ValueError:
            return cls.UNKNOWN
        return status

    @property
    def label(self) -> str:
        return STATUS_LABELS.get(self, "Unknown")


class TaskPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, value) -> "TaskPriority":
        """Map a stored priority string onto the enum; anything unrecognized is UNKNOWN."""
        if isinstance(value, cls):
            return value
        try:
            priority = cls(str(value).strip().upper())
        except ValueError:
            return cls.UNKNOWN
        return priority

    @property
    def label(self) -> str:
        return PRIORITY_LABELS.get(self, "Unknown")


# Display order; UNKNOWN is never a bucket of its own.
TASK_STATUSES = (TaskStatus.TODO, TaskStatus.DOING, TaskStatus.DONE)
TASK_PRIORITIES = (TaskPriority.LOW, TaskPriority.MEDIUM, TaskPriority.HIGH)
OPEN_STATUSES = (TaskStatus.TODO, TaskStatus.DOING)

STATUS_LABELS = {
    TaskStatus.TODO: "To Do",
    TaskStatus.DOING: "In Progress",
    TaskStatus.DONE: "Done",
}

PRIORITY_LABELS = {
    TaskPriority.LOW: "Low",
    TaskPriority.MEDIUM: "Medium",
    TaskPriority.HIGH: "High",
}

TASK_PRIORITY_SLA_HOURS = {
    TaskPriority.HIGH: 12,
    TaskPriority.MEDIUM: 48,
    TaskPriority.LOW: 120,
}

SLA_WARNING_RATIO = 0.75

TASK_STUCK_THRESHOLD_HOURS = 48
AGENT_IDLE_THRESHOLD_HOURS = 48
SNAPSHOT_IDLE_THRESHOLD_HOURS = 24
MEMORY_STALE_THRESHOLD_HOURS = 72
HIGH_PRIORITY_UNTOUCHED_HOURS = 12


def sla_hours_for(priority) -> int:
    """SLA budget in hours; unknown priorities fall back to MEDIUM."""
    return TASK_PRIORITY_SLA_HOURS.get(
        TaskPriority.parse(priority), TASK_PRIORITY_SLA_HOURS[TaskPriority.MEDIUM]
    )
