"""Tests for staleness, SLA, workload and presence calculations."""

from datetime import datetime, timedelta, timezone

import pytest

from mission_control.core import metrics
from mission_control.core.constants import TaskPriority, TaskStatus
from mission_control.core.metrics import CapacityLane, SlaState
from mission_control.db.models import Agent, RecentMemory, Task

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


def ago(**kwargs) -> datetime:
    return NOW - timedelta(**kwargs)


def make_task(status="DOING", priority="MEDIUM", created=None, updated=None, **kwargs) -> Task:
    created = created or ago(hours=1)
    return Task(
        id=kwargs.pop("id", "t"),
        title=kwargs.pop("title", "Task"),
        status=status,
        priority=priority,
        created_at=created,
        updated_at=updated or created,
        **kwargs,
    )


def make_agent(created=None, tasks=None, memories=None) -> Agent:
    created = created or ago(hours=1)
    return Agent(
        id="scout",
        name="Scout",
        role="Researcher",
        soul="Curious",
        created_at=created,
        updated_at=created,
        tasks=tasks or [],
        memories=memories or [],
    )


class TestToDatetime:
    def test_iso_string_with_z(self):
        assert metrics.to_datetime("2026-10-19T12:00:00Z") == NOW

    def test_naive_is_utc(self):
        assert metrics.to_datetime(datetime(2026, 10, 19, 12, 0)) == NOW

    def test_garbage_raises(self):
        with pytest.raises(metrics.InvalidTimestamp):
            metrics.to_datetime("yesterday-ish")

    def test_unsupported_type_raises(self):
        with pytest.raises(metrics.InvalidTimestamp):
            metrics.to_datetime(12345)


class TestIsStale:
    def test_doing_older_than_threshold(self):
        assert metrics.is_stale(make_task(updated=ago(hours=49)), NOW)

    def test_exactly_at_threshold_is_not_stale(self):
        assert not metrics.is_stale(make_task(updated=ago(hours=48)), NOW)

    def test_todo_is_never_stale(self):
        assert not metrics.is_stale(make_task(status="TODO", updated=ago(days=30)), NOW)

    def test_uses_updated_not_created(self):
        task = make_task(created=ago(days=10), updated=ago(hours=2))
        assert not metrics.is_stale(task, NOW)

    def test_custom_threshold(self):
        assert metrics.is_stale(make_task(updated=ago(hours=13)), NOW, threshold_hours=12)


class TestEvaluateSla:
    @pytest.mark.parametrize("created", [ago(days=400), NOW, NOW + timedelta(hours=5)])
    def test_done_is_always_ok(self, created):
        result = metrics.evaluate_sla("HIGH", "DONE", created, NOW)
        assert result.state is SlaState.OK
        assert result.hours_overdue == 0
        assert result.hours_remaining == 0
        assert result.threshold_hours == 12

    @pytest.mark.parametrize("priority,threshold", [("LOW", 120), ("MEDIUM", 48), ("HIGH", 12)])
    def test_zero_elapsed_has_full_budget(self, priority, threshold):
        result = metrics.evaluate_sla(priority, "DOING", NOW, NOW)
        assert result.state is SlaState.OK
        assert result.hours_remaining == threshold

    def test_high_breach_boundary_is_inclusive(self):
        result = metrics.evaluate_sla("HIGH", "DOING", ago(hours=12), NOW)
        assert result.state is SlaState.BREACH
        assert result.hours_overdue == 0
        assert result.hours_remaining == 0

    def test_medium_warning_at_three_quarters(self):
        result = metrics.evaluate_sla("MEDIUM", "DOING", ago(hours=36), NOW)
        assert result.state is SlaState.WARNING
        assert result.hours_remaining == pytest.approx(12)

    def test_just_under_warning(self):
        result = metrics.evaluate_sla("MEDIUM", "TODO", ago(hours=35), NOW)
        assert result.state is SlaState.OK

    def test_overdue_hours(self):
        result = metrics.evaluate_sla("LOW", "TODO", ago(hours=130), NOW)
        assert result.state is SlaState.BREACH
        assert result.hours_overdue == pytest.approx(10)

    def test_unknown_priority_uses_medium(self):
        result = metrics.evaluate_sla("CRITICAL", "DOING", ago(hours=40), NOW)
        assert result.threshold_hours == 48
        assert result.state is SlaState.WARNING

    def test_future_created_at_is_ok(self):
        result = metrics.evaluate_sla("HIGH", "DOING", NOW + timedelta(hours=3), NOW)
        assert result.state is SlaState.OK
        assert result.hours_overdue == 0
        assert result.hours_remaining == 12

    def test_malformed_timestamp_fails_fast(self):
        with pytest.raises(metrics.InvalidTimestamp):
            metrics.evaluate_sla("HIGH", "DOING", "not a date", NOW)


class TestSlaLanes:
    def test_lanes_in_priority_order(self):
        lanes = metrics.summarize_sla_lanes([], NOW)
        assert [lane.priority for lane in lanes] == [
            TaskPriority.LOW, TaskPriority.MEDIUM, TaskPriority.HIGH
        ]
        assert all(lane.status_label == "Clear" for lane in lanes)
        assert all(lane.delta_label is None for lane in lanes)

    def test_high_lane_breach(self):
        tasks = [
            make_task(id="a", priority="HIGH", created=ago(hours=15)),
            make_task(id="b", priority="HIGH", created=ago(hours=2)),
            make_task(id="c", priority="HIGH", status="DONE", created=ago(days=9)),
        ]
        high = metrics.summarize_sla_lanes(tasks, NOW)[2]
        assert high.open == 2
        assert high.breach == 1
        assert high.top_task.id == "a"
        assert high.avg_elapsed_hours == pytest.approx(8.5)
        assert high.status_label == "Breach"
        assert high.delta_label == "+3.0h"

    def test_on_track_delta(self):
        tasks = [make_task(priority="LOW", created=ago(hours=20))]
        low = metrics.summarize_sla_lanes(tasks, NOW)[0]
        assert low.status_label == "On track"
        assert low.delta_label == "100.0h remaining"


class TestWorkload:
    def test_empty(self):
        workload = metrics.compute_workload([], metrics.stale_cutoff(NOW))
        assert workload.breakdown == {
            TaskStatus.TODO: 0, TaskStatus.DOING: 0, TaskStatus.DONE: 0
        }
        assert workload.active_count == 0
        assert workload.stuck_count == 0
        assert workload.lane is CapacityLane.IDLE

    def test_unknown_status_ignored(self):
        tasks = [make_task(status="ARCHIVED"), make_task(status="TODO")]
        workload = metrics.compute_workload(tasks, metrics.stale_cutoff(NOW))
        assert sum(workload.breakdown.values()) == 1
        assert workload.active_count == 1

    def test_three_stuck_doing_tasks_are_engaged(self):
        tasks = [make_task(id=str(i), updated=ago(hours=60), created=ago(hours=70)) for i in range(3)]
        workload = metrics.compute_workload(tasks, metrics.stale_cutoff(NOW))
        assert workload.stuck_count == 3
        assert workload.active_count == 3
        assert workload.lane is CapacityLane.ENGAGED

    def test_done_not_active(self):
        tasks = [make_task(status="DONE"), make_task(status="TODO"), make_task(status="DOING")]
        workload = metrics.compute_workload(tasks, metrics.stale_cutoff(NOW))
        assert workload.breakdown[TaskStatus.DONE] == 1
        assert workload.active_count == 2

    @pytest.mark.parametrize(
        "count,lane",
        [(0, CapacityLane.IDLE), (1, CapacityLane.ENGAGED), (3, CapacityLane.ENGAGED),
         (4, CapacityLane.OVERLOADED)],
    )
    def test_classify_capacity(self, count, lane):
        assert metrics.classify_capacity(count) is lane


class TestPresence:
    def test_new_agent_without_anything(self):
        agent = make_agent(created=ago(hours=48))
        assert metrics.needs_briefing(agent)
        assert metrics.compute_workload(agent.tasks, metrics.stale_cutoff(NOW)).lane is CapacityLane.IDLE
        presence = metrics.compute_presence(agent, NOW)
        assert presence.is_idle
        assert presence.idle_for_hours == pytest.approx(48)

    def test_recent_memory_counts_as_interaction(self):
        memory = RecentMemory(id=1, agent_id="scout", content="hi", created_at=ago(hours=3))
        agent = make_agent(created=ago(days=10), memories=[memory])
        presence = metrics.compute_presence(agent, NOW)
        assert presence.last_interaction == ago(hours=3)
        assert not presence.is_idle
        assert not metrics.needs_briefing(agent)

    def test_task_touch_counts_as_interaction(self):
        task = make_task(created=ago(days=5), updated=ago(hours=5))
        agent = make_agent(created=ago(days=10), tasks=[task])
        assert metrics.compute_presence(agent, NOW).last_interaction == ago(hours=5)

    def test_custom_idle_threshold(self):
        agent = make_agent(created=ago(hours=30))
        assert not metrics.compute_presence(agent, NOW).is_idle
        assert metrics.compute_presence(agent, NOW, idle_threshold_hours=24).is_idle


class TestMemoryHygiene:
    def test_stale_memory_after_72_hours(self):
        old = make_agent(memories=[RecentMemory(1, "scout", "old", ago(hours=80))])
        fresh = make_agent(memories=[RecentMemory(2, "scout", "new", ago(hours=10))])
        blank = make_agent()
        stale = metrics.agents_with_stale_memory([old, fresh, blank], NOW)
        assert [agent for agent, _ in stale] == [old]

    def test_latest_memory(self):
        agent = make_agent(memories=[
            RecentMemory(1, "scout", "older", ago(hours=10)),
            RecentMemory(2, "scout", "newer", ago(hours=1)),
        ])
        assert metrics.latest_memory(agent).content == "newer"


class TestRollup:
    def test_completion_rate(self):
        agent = make_agent(tasks=[
            make_task(status="DONE"), make_task(status="DONE"),
            make_task(status="TODO"), make_task(status="BLOCKED"),
        ])
        rollup = metrics.performance_rollup(agent)
        assert rollup.open == 1
        assert rollup.completed == 2
        assert rollup.completion_rate == 67

    def test_no_tasks(self):
        assert metrics.performance_rollup(make_agent()).completion_rate == 0
