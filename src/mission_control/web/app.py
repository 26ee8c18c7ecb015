"""Web API and dashboard for mission control."""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime, timezone

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import HTMLResponse, JSONResponse, PlainTextResponse, Response
from starlette.routing import Route

from mission_control.config import get_config
from mission_control.core import agents as agents_mod
from mission_control.core import audit as audit_mod
from mission_control.core import memory as memory_mod
from mission_control.core import playbooks as playbooks_mod
from mission_control.core import reports as reports_mod
from mission_control.core import shell as shell_mod
from mission_control.core import tasks as tasks_mod
from mission_control.core.metrics import (
    compute_presence,
    compute_workload,
    evaluate_task_sla,
    is_stale,
    needs_briefing,
    performance_rollup,
    stale_cutoff,
    summarize_sla_lanes,
)
from mission_control.db.engine import get_db, init_db
from mission_control.integrations import slack as slack_mod
from mission_control.web.dashboard import get_dashboard_html

logger = logging.getLogger(__name__)


def _get_db():
    config = get_config()
    return init_db(config.db_path)


def _now() -> datetime:
    return datetime.now(timezone.utc)


async def _json_body(request: Request) -> dict:
    try:
        data = await request.json()
    except json.JSONDecodeError:
        raise ValueError("Request body must be JSON")
    if not isinstance(data, dict):
        raise ValueError("Request body must be a JSON object")
    return data


def _bad_request(e: ValueError) -> JSONResponse:
    return JSONResponse({"error": str(e)}, status_code=400)


# ── Handlers ──────────────────────────────────────────────────────────────────


async def index(request: Request):
    return HTMLResponse(get_dashboard_html())


async def api_shell(request: Request):
    now = _now()
    include_snapshot = request.query_params.get("snapshot", "1") != "0"
    db = _get_db()
    try:
        shell = shell_mod.get_shell_data(db, now, get_config(), include_snapshot=include_snapshot)
        return JSONResponse(shell_mod.shell_to_dict(shell, now))
    finally:
        db.close()


async def api_list_agents(request: Request):
    now = _now()
    config = get_config()
    db = _get_db()
    try:
        agents = agents_mod.list_agents(db, order_by=request.query_params.get("order", "created"))
        return JSONResponse([_agent_summary(a, now, config) for a in agents])
    except ValueError as e:
        return _bad_request(e)
    finally:
        db.close()


async def api_create_agent(request: Request):
    db = _get_db()
    try:
        data = await _json_body(request)
        agent = agents_mod.create_agent(db, data.get("name"), data.get("role"), data.get("soul"))
        return JSONResponse(_agent_dict(agent), status_code=201)
    except ValueError as e:
        return _bad_request(e)
    finally:
        db.close()


async def api_get_agent(request: Request):
    agent_id = request.path_params["agent_id"]
    now = _now()
    config = get_config()
    db = _get_db()
    try:
        agent = agents_mod.get_agent(db, agent_id)
        if not agent:
            return JSONResponse({"error": "Agent not found"}, status_code=404)
        data = _agent_summary(agent, now, config)
        data["tasks"] = [_task_dict(t, now, config) for t in agent.tasks]
        data["memories"] = [_memory_dict(m) for m in agent.memories]
        return JSONResponse(data)
    finally:
        db.close()


async def api_add_memory(request: Request):
    agent_id = request.path_params["agent_id"]
    db = _get_db()
    try:
        if not agents_mod.get_agent(db, agent_id, memory_limit=0):
            return JSONResponse({"error": "Agent not found"}, status_code=404)
        data = await _json_body(request)
        memory = memory_mod.add_memory(db, agent_id, data.get("content"))
        return JSONResponse(_memory_dict(memory), status_code=201)
    except ValueError as e:
        return _bad_request(e)
    finally:
        db.close()


async def api_list_tasks(request: Request):
    now = _now()
    config = get_config()
    params = request.query_params
    db = _get_db()
    try:
        tasks = tasks_mod.list_tasks(
            db,
            agent_id=params.get("agent"),
            status=params.get("status"),
            priority=params.get("priority"),
        )
        return JSONResponse([_task_dict(t, now, config) for t in tasks])
    finally:
        db.close()


async def api_create_task(request: Request):
    now = _now()
    db = _get_db()
    try:
        data = await _json_body(request)
        task = tasks_mod.create_task(
            db,
            data.get("title"),
            description=data.get("description") or "",
            agent_id=data.get("agent_id"),
            status=data.get("status") or "TODO",
            priority=data.get("priority") or "MEDIUM",
        )
        return JSONResponse(_task_dict(task, now, get_config()), status_code=201)
    except ValueError as e:
        return _bad_request(e)
    finally:
        db.close()


async def api_get_task(request: Request):
    task_id = request.path_params["task_id"]
    now = _now()
    db = _get_db()
    try:
        task = tasks_mod.get_task(db, task_id)
        if not task:
            return JSONResponse({"error": "Task not found"}, status_code=404)
        td = _task_dict(task, now, get_config())
        td["audit"] = [_audit_dict(e) for e in audit_mod.list_audit_logs(db, limit=3, task_id=task_id)]
        return JSONResponse(td)
    finally:
        db.close()


async def api_update_task_status(request: Request):
    task_id = request.path_params["task_id"]
    now = _now()
    db = _get_db()
    try:
        data = await _json_body(request)
        task = tasks_mod.update_task_status(db, task_id, data.get("status"))
        if not task:
            return JSONResponse({"error": "Task not found"}, status_code=404)
        return JSONResponse(_task_dict(task, now, get_config()))
    except ValueError as e:
        return _bad_request(e)
    finally:
        db.close()


async def api_sla(request: Request):
    now = _now()
    db = _get_db()
    try:
        lanes = summarize_sla_lanes(tasks_mod.list_tasks(db), now)
        return JSONResponse([_lane_dict(lane) for lane in lanes])
    finally:
        db.close()


async def api_audit(request: Request):
    try:
        limit = int(request.query_params.get("limit", "20"))
    except ValueError:
        return JSONResponse({"error": "limit must be an integer"}, status_code=400)
    db = _get_db()
    try:
        return JSONResponse([_audit_dict(e) for e in audit_mod.list_audit_logs(db, limit=limit)])
    finally:
        db.close()


async def api_playbooks(request: Request):
    db = _get_db()
    try:
        return JSONResponse([_playbook_dict(p) for p in playbooks_mod.list_playbooks(db)])
    finally:
        db.close()


async def digest(request: Request):
    now = _now()
    sections = reports_mod.parse_sections(request.query_params.get("sections"))
    fmt = reports_mod.parse_format(request.query_params.get("format"))
    db = _get_db()
    try:
        data = shell_mod.collect_report_data(db, now, get_config())
    finally:
        db.close()
    body = reports_mod.render_weekly_digest(data, sections, fmt)
    filename = reports_mod.digest_filename(now, fmt)
    return PlainTextResponse(
        body, headers={"content-disposition": f'attachment; filename="{filename}"'}
    )


async def snapshot(request: Request):
    now = _now()
    db = _get_db()
    try:
        data = shell_mod.collect_report_data(db, now, get_config())
    finally:
        db.close()
    filename = reports_mod.snapshot_filename(now)
    return Response(
        reports_mod.render_snapshot(data),
        media_type="text/markdown; charset=utf-8",
        headers={"content-disposition": f'attachment; filename="{filename}"'},
    )


async def overdue_slack(request: Request):
    now = _now()
    config = get_config()
    db = _get_db()
    try:
        stale = tasks_mod.list_stale_tasks(db, now, config.task_stuck_hours)
    finally:
        db.close()
    result = slack_mod.trigger_overdue_alert(
        stale,
        now,
        webhook_url=config.slack_webhook_url,
        base_url=config.base_url,
        threshold_hours=config.task_stuck_hours,
        timeout=config.webhook_timeout,
    )
    return JSONResponse(result.to_dict(), status_code=result.http_status)


# ── Serialization ─────────────────────────────────────────────────────────────


def _iso(dt) -> str | None:
    return dt.isoformat() if dt else None


def _agent_dict(a) -> dict:
    return {
        "id": a.id,
        "name": a.name,
        "role": a.role,
        "soul": a.soul,
        "created_at": _iso(a.created_at),
        "updated_at": _iso(a.updated_at),
    }


def _agent_summary(a, now, config) -> dict:
    d = _agent_dict(a)
    workload = compute_workload(a.tasks, stale_cutoff(now, config.task_stuck_hours))
    presence = compute_presence(a, now, config.agent_idle_hours)
    rollup = performance_rollup(a)
    d["workload"] = {
        "breakdown": {s.value: n for s, n in workload.breakdown.items()},
        "active_count": workload.active_count,
        "stuck_count": workload.stuck_count,
        "lane": workload.lane.value,
    }
    d["presence"] = {
        "last_interaction": _iso(presence.last_interaction),
        "idle_for_hours": round(presence.idle_for_hours, 2),
        "is_idle": presence.is_idle,
    }
    d["needs_briefing"] = needs_briefing(a)
    d["rollup"] = {
        "open": rollup.open,
        "completed": rollup.completed,
        "completion_rate": rollup.completion_rate,
    }
    return d


def _task_dict(t, now, config) -> dict:
    sla = evaluate_task_sla(t, now)
    return {
        "id": t.id,
        "title": t.title,
        "description": t.description,
        "status": t.status,
        "priority": t.priority,
        "agent_id": t.agent_id,
        "agent_name": t.agent_name,
        "created_at": _iso(t.created_at),
        "updated_at": _iso(t.updated_at),
        "stale": is_stale(t, now, config.task_stuck_hours),
        "sla": {
            "state": sla.state.value,
            "hours_overdue": round(sla.hours_overdue, 2),
            "hours_remaining": round(sla.hours_remaining, 2),
            "threshold_hours": sla.threshold_hours,
        },
    }


def _memory_dict(m) -> dict:
    return {
        "id": m.id,
        "agent_id": m.agent_id,
        "content": m.content,
        "created_at": _iso(m.created_at),
    }


def _audit_dict(e) -> dict:
    return {
        "id": e.id,
        "action": e.action,
        "task_id": e.task_id,
        "task_title": e.task_title,
        "metadata": audit_mod.audit_metadata(e),
        "created_at": _iso(e.created_at),
    }


def _lane_dict(lane) -> dict:
    return {
        "priority": lane.priority.value,
        "threshold_hours": lane.threshold_hours,
        "open": lane.open,
        "warning": lane.warning,
        "breach": lane.breach,
        "avg_elapsed_hours": round(lane.avg_elapsed_hours, 1),
        "worst_elapsed_hours": round(lane.worst_elapsed_hours, 1),
        "status_label": lane.status_label,
        "delta_label": lane.delta_label,
        "top_task": (
            {"id": lane.top_task.id, "title": lane.top_task.title} if lane.top_task else None
        ),
    }


def _playbook_dict(p) -> dict:
    return {
        "id": p.id,
        "title": p.title,
        "scenario": p.scenario,
        "impact_level": p.impact_level,
        "owner": p.owner,
        "communication_template": p.communication_template,
        "steps": [s.instruction for s in p.steps],
        "updated_at": _iso(p.updated_at),
    }


# ── App ───────────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: Starlette) -> AsyncIterator[None]:
    """Seed the core agents and default playbooks on startup."""
    config = get_config()
    with get_db(config.db_path) as db:
        agents_mod.ensure_core_agents(db)
        playbooks_mod.ensure_escalation_playbooks(db)
    yield


def create_app() -> Starlette:
    routes = [
        Route("/", index),
        Route("/api/shell", api_shell),
        Route("/api/agents", api_list_agents, methods=["GET"]),
        Route("/api/agents", api_create_agent, methods=["POST"]),
        Route("/api/agents/{agent_id}", api_get_agent),
        Route("/api/agents/{agent_id}/memories", api_add_memory, methods=["POST"]),
        Route("/api/tasks", api_list_tasks, methods=["GET"]),
        Route("/api/tasks", api_create_task, methods=["POST"]),
        Route("/api/tasks/{task_id}", api_get_task),
        Route("/api/tasks/{task_id}/status", api_update_task_status, methods=["POST"]),
        Route("/api/sla", api_sla),
        Route("/api/audit", api_audit),
        Route("/api/playbooks", api_playbooks),
        Route("/api/mission-control/digest", digest),
        Route("/api/mission-control/snapshot", snapshot),
        Route("/api/mission-control/overdue/slack", overdue_slack, methods=["GET", "POST"]),
    ]
    return Starlette(routes=routes, lifespan=lifespan)


def run_server(host: str = "127.0.0.1", port: int = 8787):
    app = create_app()
    logger.info("Starting mission control on http://%s:%s", host, port)
    uvicorn.run(app, host=host, port=port)
