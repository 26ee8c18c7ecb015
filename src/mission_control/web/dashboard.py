"""Dashboard HTML with inline CSS and vanilla JS."""


def get_dashboard_html() -> str:
    return """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>Mission Control</title>
<style>
  :root {
    --bg: #0d1117; --surface: #161b22; --border: #30363d;
    --text: #e6edf3; --text-muted: #8b949e; --text-dim: #6e7681;
    --todo: #8b949e; --doing: #58a6ff; --done: #3fb950;
    --ok: #3fb950; --warning: #d29922; --breach: #f85149; --accent: #58a6ff;
  }
  * { margin: 0; padding: 0; box-sizing: border-box; }
  body { font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Helvetica, Arial, sans-serif;
         background: var(--bg); color: var(--text); line-height: 1.5; }
  .container { max-width: 1080px; margin: 0 auto; padding: 24px 16px; }

  header { display: flex; justify-content: space-between; align-items: center;
           padding-bottom: 16px; border-bottom: 1px solid var(--border); margin-bottom: 24px; }
  header h1 { font-size: 20px; font-weight: 600; }
  header nav a { color: var(--accent); text-decoration: none; font-size: 13px; margin-left: 12px; }

  .kpis { display: grid; grid-template-columns: repeat(auto-fit, minmax(140px, 1fr)); gap: 12px; margin-bottom: 20px; }
  .kpi { background: var(--surface); border: 1px solid var(--border); border-radius: 8px; padding: 12px 16px; }
  .kpi .label { font-size: 11px; text-transform: uppercase; letter-spacing: 0.5px; color: var(--text-muted); }
  .kpi .value { font-size: 22px; font-weight: 600; }
  .kpi.alert .value { color: var(--breach); }

  section { background: var(--surface); border: 1px solid var(--border);
            border-radius: 8px; padding: 16px; margin-bottom: 20px; }
  section h2 { font-size: 15px; margin-bottom: 10px; }
  .row { display: flex; align-items: center; gap: 10px; padding: 6px 0;
         border-bottom: 1px solid var(--border); font-size: 13px; }
  .row:last-child { border-bottom: none; }
  .muted { color: var(--text-muted); }
  .badge { display: inline-block; padding: 2px 10px; border-radius: 12px; font-size: 11px;
           font-weight: 600; text-transform: uppercase; letter-spacing: 0.5px; }
  .badge.TODO { background: rgba(139,148,158,0.15); color: var(--todo); }
  .badge.DOING { background: rgba(88,166,255,0.15); color: var(--doing); }
  .badge.DONE { background: rgba(63,185,80,0.15); color: var(--done); }
  .badge.OK { background: rgba(63,185,80,0.15); color: var(--ok); }
  .badge.WARNING { background: rgba(210,153,34,0.15); color: var(--warning); }
  .badge.BREACH { background: rgba(248,81,73,0.15); color: var(--breach); }
  .badge.IDLE { background: rgba(139,148,158,0.15); color: var(--todo); }
  .badge.ENGAGED { background: rgba(88,166,255,0.15); color: var(--doing); }
  .badge.OVERLOADED { background: rgba(248,81,73,0.15); color: var(--breach); }
  .empty { text-align: center; padding: 24px; color: var(--text-muted); font-size: 13px; }

  .refresh-bar { display: flex; justify-content: space-between; align-items: center;
                 margin-bottom: 16px; font-size: 12px; color: var(--text-dim); }
  .refresh-bar button { background: var(--surface); color: var(--text-muted); border: 1px solid var(--border);
                        padding: 4px 10px; border-radius: 4px; cursor: pointer; font-size: 12px; }
  .refresh-bar button:hover { color: var(--text); border-color: var(--text-muted); }
</style>
</head>
<body>
<div class="container">
  <header>
    <h1>Mission Control</h1>
    <nav>
      <a href="/api/mission-control/digest">Digest</a>
      <a href="/api/mission-control/snapshot">Snapshot</a>
    </nav>
  </header>
  <div class="refresh-bar">
    <span id="generated">Loading...</span>
    <button onclick="loadDashboard()">Refresh</button>
  </div>
  <div id="content"></div>
</div>

<script>
let refreshTimer = null;

async function fetchJSON(path) {
  const res = await fetch(path);
  if (!res.ok) return null;
  return res.json();
}

function kpi(label, value, alert) {
  return `<div class="kpi${alert ? ' alert' : ''}"><div class="label">${esc(label)}</div><div class="value">${esc(String(value))}</div></div>`;
}

async function loadDashboard() {
  const content = document.getElementById('content');
  const [shell, agents, tasks] = await Promise.all([
    fetchJSON('/api/shell'),
    fetchJSON('/api/agents'),
    fetchJSON('/api/tasks'),
  ]);
  if (!shell) { content.innerHTML = '<div class="empty">Mission control is unavailable.</div>'; return; }

  document.getElementById('generated').textContent = `As of ${new Date(shell.reference_time).toLocaleString()}`;
  const c = shell.counts;
  const s = shell.snapshot;
  let html = '<div class="kpis">';
  html += kpi('To do', c.todo) + kpi('Doing', c.doing) + kpi('Done', c.done);
  html += kpi('Stuck 48h+', c.stuck, c.stuck > 0) + kpi('Needs briefing', c.needs_briefing, c.needs_briefing > 0);
  html += kpi('High priority', c.high_priority);
  if (s) {
    html += kpi('Agents', s.total_agents) + kpi('Idle 24h+', s.idle_agents);
    html += kpi('SLA warning', s.tasks_at_risk, s.tasks_at_risk > 0) + kpi('SLA breach', s.tasks_breached, s.tasks_breached > 0);
    html += kpi('Oldest open', s.oldest_open_task_label) + kpi('High prio untouched', s.high_priority_stale, s.high_priority_stale > 0);
  }
  html += '</div>';

  html += '<section><h2>Alerts</h2>';
  const stuck = shell.alerts.stuck_tasks;
  const briefing = shell.alerts.needs_briefing;
  if (!stuck.length && !briefing.length) {
    html += '<div class="empty">Nothing needs attention.</div>';
  }
  for (const t of stuck) {
    html += `<div class="row"><span class="badge BREACH">stuck</span><span>${esc(t.title)}</span><span class="muted">${esc(t.agent_name || 'Unassigned')}</span></div>`;
  }
  for (const a of briefing) {
    html += `<div class="row"><span class="badge WARNING">brief</span><span>${esc(a.name)}</span><span class="muted">no memories yet</span></div>`;
  }
  html += '</section>';

  html += '<section><h2>Agents</h2>';
  if (!agents || agents.length === 0) {
    html += '<div class="empty">No agents yet. Create one with <code>mc agent add</code>.</div>';
  } else {
    for (const a of agents) {
      const idle = a.presence.is_idle ? ' &middot; idle' : '';
      html += `<div class="row"><span class="badge ${a.workload.lane}">${esc(a.workload.lane)}</span>
        <strong>${esc(a.name)}</strong><span class="muted">${esc(a.role)}</span>
        <span class="muted">${a.workload.active_count} active / ${a.workload.stuck_count} stuck${idle}</span></div>`;
    }
  }
  html += '</section>';

  html += '<section><h2>Tasks</h2>';
  if (!tasks || tasks.length === 0) {
    html += '<div class="empty">No tasks logged.</div>';
  } else {
    for (const t of tasks.slice(0, 50)) {
      html += `<div class="row"><span class="badge ${esc(t.status)}">${esc(t.status)}</span>
        <span class="badge ${t.sla.state}">${t.sla.state}</span>
        <span>${esc(t.title)}</span><span class="muted">${esc(t.priority)} &middot; ${esc(t.agent_name || 'Unassigned')}</span></div>`;
    }
  }
  html += '</section>';

  content.innerHTML = html;
}

function esc(s) {
  if (!s) return '';
  const d = document.createElement('div');
  d.textContent = s;
  return d.innerHTML;
}

function startAutoRefresh() {
  if (refreshTimer) clearInterval(refreshTimer);
  refreshTimer = setInterval(loadDashboard, 30000);
}

loadDashboard();
startAutoRefresh();
</script>
</body>
</html>"""
