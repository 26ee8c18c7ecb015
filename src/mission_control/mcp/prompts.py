"""MCP prompt templates for common oversight workflows."""

from mission_control.mcp.server import mcp


@mcp.prompt()
def brief_agent(agent_id: str) -> str:
    """Generate a prompt to write a first briefing memory for an agent."""
    return (
        f"Agent '{agent_id}' needs a briefing.\n\n"
        f"Use get_agent to read its role, soul and current tasks. Then write one short memory "
        f"(2-3 sentences) that tells the agent what it is working on, what is blocked, and "
        f"what to pick up next. Store it with add_memory."
    )


@mcp.prompt()
def triage_stuck_tasks() -> str:
    """Generate a prompt to triage tasks stuck in progress."""
    return (
        "Please triage the tasks that are stuck in progress.\n\n"
        "Use get_shell to see the stuck-task alerts and sla_lanes to see which priorities are "
        "breaching. For each stuck task:\n"
        "1. Use list_tasks filtered by the owning agent to judge its load\n"
        "2. Decide whether to reassign it (assign_task), raise its priority "
        "(update_task_priority), or close it out (update_task_status)\n"
        "3. Check list_playbooks for an escalation path if the task is blocking a HIGH impact area\n\n"
        "Finish with a short summary of what you changed, then offer to run send_overdue_alert."
    )


@mcp.prompt()
def weekly_review() -> str:
    """Generate a prompt for the weekly operations review."""
    return (
        "Please run the weekly operations review.\n\n"
        "Use weekly_digest to get the load, stuck and task-status sections, and audit_log to see "
        "what changed recently. Then provide:\n"
        "1. Which agents are overloaded or idle\n"
        "2. Tasks at risk of breaching their SLA\n"
        "3. Agents that need a fresh briefing\n"
        "4. Recommended rebalancing for next week"
    )
