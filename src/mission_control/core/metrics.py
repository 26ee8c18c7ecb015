"""Derived task and agent metrics: staleness, SLA clocks, workload and presence.

Every function here is pure. Callers capture one reference time per request and
pass it through so all classifications in a single report agree with each other.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum

from mission_control.core.constants import (
    AGENT_IDLE_THRESHOLD_HOURS,
    MEMORY_STALE_THRESHOLD_HOURS,
    OPEN_STATUSES,
    SLA_WARNING_RATIO,
    TASK_PRIORITIES,
    TASK_STATUSES,
    TASK_STUCK_THRESHOLD_HOURS,
    TaskPriority,
    TaskStatus,
    sla_hours_for,
)
from mission_control.db.models import Agent, RecentMemory, Task

HOUR = timedelta(hours=1)


class InvalidTimestamp(ValueError):
    """Raised when a timestamp cannot be interpreted."""


class SlaState(str, Enum):
    OK = "OK"
    WARNING = "WARNING"
    BREACH = "BREACH"


class CapacityLane(str, Enum):
    IDLE = "IDLE"
    ENGAGED = "ENGAGED"
    OVERLOADED = "OVERLOADED"


@dataclass
class SlaResult:
    state: SlaState
    hours_overdue: float
    hours_remaining: float
    threshold_hours: int


@dataclass
class Workload:
    breakdown: dict[TaskStatus, int] = field(
        default_factory=lambda: {status: 0 for status in TASK_STATUSES}
    )
    active_count: int = 0
    stuck_count: int = 0

    @property
    def lane(self) -> CapacityLane:
        return classify_capacity(self.active_count)


@dataclass
class Presence:
    last_interaction: datetime
    idle_for_hours: float
    is_idle: bool


@dataclass
class AgentRollup:
    open: int
    completed: int
    completion_rate: int


@dataclass
class SlaLane:
    priority: TaskPriority
    threshold_hours: int
    open: int = 0
    warning: int = 0
    breach: int = 0
    avg_elapsed_hours: float = 0.0
    worst_elapsed_hours: float = 0.0
    top_task: Task | None = None

    @property
    def status_label(self) -> str:
        if self.open == 0:
            return "Clear"
        if self.breach:
            return "Breach"
        if self.warning:
            return "Warning"
        return "On track"

    @property
    def delta_label(self) -> str | None:
        if self.open == 0:
            return None
        delta = self.worst_elapsed_hours - self.threshold_hours
        if delta > 0:
            return f"+{delta:.1f}h"
        return f"{abs(delta):.1f}h remaining"


# ── Timestamps ───────────────────────────────────────────────────────────────


def to_datetime(value) -> datetime:
    """Coerce a datetime or ISO-8601 string to an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError as e:
            raise InvalidTimestamp(f"Cannot parse timestamp: {value!r}") from e
    else:
        raise InvalidTimestamp(f"Unsupported timestamp type: {type(value).__name__}")

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def hours_between(earlier, later) -> float:
    """Wall-clock hours from earlier to later (negative if earlier is in the future)."""
    return (to_datetime(later) - to_datetime(earlier)) / HOUR


def stale_cutoff(reference_time, threshold_hours: float = TASK_STUCK_THRESHOLD_HOURS) -> datetime:
    """The instant before which a DOING task counts as stuck."""
    return to_datetime(reference_time) - timedelta(hours=threshold_hours)


def _last_touch(task: Task) -> datetime | None:
    ts = task.updated_at or task.created_at
    return to_datetime(ts) if ts is not None else None


# ── Staleness / SLA ──────────────────────────────────────────────────────────


def is_stale(
    task: Task,
    reference_time,
    threshold_hours: float = TASK_STUCK_THRESHOLD_HOURS,
) -> bool:
    """True if the task sits in DOING and was last touched more than threshold_hours ago."""
    if TaskStatus.parse(task.status) is not TaskStatus.DOING:
        return False
    touched = _last_touch(task)
    if touched is None:
        return False
    return hours_between(touched, reference_time) > threshold_hours


def evaluate_sla(priority, status, created_at, reference_time) -> SlaResult:
    """Classify a task's age since creation against its priority's SLA window."""
    threshold = sla_hours_for(priority)

    if TaskStatus.parse(status) is TaskStatus.DONE:
        return SlaResult(SlaState.OK, 0.0, 0.0, threshold)

    elapsed = hours_between(created_at, reference_time)
    if elapsed < 0:
        return SlaResult(SlaState.OK, 0.0, float(threshold), threshold)

    if elapsed >= threshold:
        return SlaResult(SlaState.BREACH, elapsed - threshold, 0.0, threshold)

    remaining = threshold - elapsed
    if elapsed >= SLA_WARNING_RATIO * threshold:
        return SlaResult(SlaState.WARNING, 0.0, remaining, threshold)
    return SlaResult(SlaState.OK, 0.0, remaining, threshold)


def evaluate_task_sla(task: Task, reference_time) -> SlaResult:
    return evaluate_sla(task.priority, task.status, task.created_at, reference_time)


def summarize_sla_lanes(tasks: list[Task], reference_time) -> list[SlaLane]:
    """Per-priority SLA clocks for open work, in LOW, MEDIUM, HIGH order."""
    lanes = []
    for priority in TASK_PRIORITIES:
        lane = SlaLane(priority=priority, threshold_hours=sla_hours_for(priority))
        relevant = [
            t for t in tasks
            if TaskPriority.parse(t.priority) is priority
            and TaskStatus.parse(t.status) in OPEN_STATUSES
        ]
        if relevant:
            total_elapsed = 0.0
            for task in relevant:
                elapsed = hours_between(task.created_at, reference_time)
                total_elapsed += elapsed
                sla = evaluate_task_sla(task, reference_time)
                if sla.state is SlaState.WARNING:
                    lane.warning += 1
                elif sla.state is SlaState.BREACH:
                    lane.breach += 1
                if lane.top_task is None or elapsed > lane.worst_elapsed_hours:
                    lane.worst_elapsed_hours = elapsed
                    lane.top_task = task
            lane.open = len(relevant)
            lane.avg_elapsed_hours = total_elapsed / len(relevant)
        lanes.append(lane)
    return lanes


# ── Workload / presence ──────────────────────────────────────────────────────


def compute_workload(tasks: list[Task], stale_cutoff_at) -> Workload:
    """Count tasks per known status, plus active (TODO+DOING) and stuck DOING tasks."""
    cutoff = to_datetime(stale_cutoff_at)
    workload = Workload()
    for task in tasks:
        status = TaskStatus.parse(task.status)
        if status is TaskStatus.UNKNOWN:
            continue
        workload.breakdown[status] += 1
        if status is TaskStatus.DOING:
            touched = _last_touch(task)
            if touched is not None and touched < cutoff:
                workload.stuck_count += 1
    workload.active_count = (
        workload.breakdown[TaskStatus.TODO] + workload.breakdown[TaskStatus.DOING]
    )
    return workload


def classify_capacity(active_count: int) -> CapacityLane:
    if active_count <= 0:
        return CapacityLane.IDLE
    if active_count <= 3:
        return CapacityLane.ENGAGED
    return CapacityLane.OVERLOADED


def latest_memory(agent: Agent) -> RecentMemory | None:
    """The agent's most recent memory by created_at, if any."""
    dated = [m for m in agent.memories if m.created_at is not None]
    if not dated:
        return agent.memories[0] if agent.memories else None
    return max(dated, key=lambda m: to_datetime(m.created_at))


def last_interaction(agent: Agent) -> datetime:
    """Most recent of the agent's own timestamps and any task or memory touching it."""
    candidates = [
        to_datetime(ts) for ts in (agent.created_at, agent.updated_at) if ts is not None
    ]
    candidates.extend(t for t in (_last_touch(task) for task in agent.tasks) if t is not None)
    candidates.extend(
        to_datetime(m.created_at) for m in agent.memories if m.created_at is not None
    )
    if not candidates:
        raise InvalidTimestamp(f"Agent {agent.id} has no timestamps")
    return max(candidates)


def compute_presence(
    agent: Agent,
    reference_time,
    idle_threshold_hours: float = AGENT_IDLE_THRESHOLD_HOURS,
) -> Presence:
    """How long the agent has gone without any recorded interaction."""
    last = last_interaction(agent)
    idle_for = hours_between(last, reference_time)
    return Presence(
        last_interaction=last,
        idle_for_hours=idle_for,
        is_idle=idle_for >= idle_threshold_hours,
    )


def needs_briefing(agent: Agent) -> bool:
    return len(agent.memories) == 0


def agents_with_stale_memory(
    agents: list[Agent],
    reference_time,
    threshold_hours: float = MEMORY_STALE_THRESHOLD_HOURS,
) -> list[tuple[Agent, RecentMemory]]:
    """Agents whose newest memory is older than threshold_hours, oldest first.

    Agents with no memory at all are left to needs_briefing.
    """
    stale = []
    for agent in agents:
        memory = latest_memory(agent)
        if memory is None or memory.created_at is None:
            continue
        if hours_between(memory.created_at, reference_time) > threshold_hours:
            stale.append((agent, memory))
    stale.sort(key=lambda pair: to_datetime(pair[1].created_at))
    return stale


def performance_rollup(agent: Agent) -> AgentRollup:
    workload = compute_workload(agent.tasks, datetime.min.replace(tzinfo=timezone.utc))
    completed = workload.breakdown[TaskStatus.DONE]
    total = workload.active_count + completed
    rate = 0 if total == 0 else round(completed / total * 100)
    return AgentRollup(open=workload.active_count, completed=completed, completion_rate=rate)
