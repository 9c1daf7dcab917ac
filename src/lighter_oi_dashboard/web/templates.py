from __future__ import annotations

import html
import json
from string import Template

from lighter_oi_dashboard.aggregation.positions import PositionSummary

UPSTREAM_ERROR_HTML = "<h1>Upstream fetch failed</h1>"

_DASHBOARD_TEMPLATE = Template(
    """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>TOTAL LLP Position</title>
    <style>
      :root {
        --bg-from: #0f172a;
        --bg-to: #1e293b;
        --card-border: #374151;
        --text: #f9fafb;
        --muted: #94a3b8;
      }
      * { box-sizing: border-box; }
      html, body { height: 100%; }
      body {
        margin: 0;
        font-family: Inter, ui-sans-serif, system-ui, -apple-system, Segoe UI, Roboto, Helvetica, Arial, sans-serif;
        color: var(--text);
        background: radial-gradient(1200px 800px at 10% 10%, #0b1220 0%, transparent 60%),
                    linear-gradient(180deg, var(--bg-from), var(--bg-to));
        display: grid;
        place-items: center;
        padding: 24px;
      }
      .card {
        width: 100%;
        max-width: 860px;
        border: 1px solid var(--card-border);
        border-radius: 16px;
        padding: 28px;
        box-shadow: 0 10px 30px rgba(0,0,0,0.35);
      }
      h1 { margin: 0; font-size: 28px; font-weight: 650; }
      .pill {
        display: inline-flex; align-items: center; gap: 8px;
        background: rgba(255,255,255,0.04);
        border: 1px solid rgba(255,255,255,0.08);
        padding: 6px 10px; border-radius: 999px; font-size: 12px; color: var(--muted);
      }
      .value {
        font-size: 48px; font-weight: 800;
        background: linear-gradient(90deg, #e2e8f0, #a7f3d0);
        -webkit-background-clip: text; background-clip: text; color: transparent;
      }
      .footer { display: flex; gap: 12px; flex-wrap: wrap; margin-top: 16px; }
      code { background: rgba(255,255,255,0.06); padding: 2px 6px; border-radius: 6px; }
      .badge { color: #10b981; background: rgba(16,185,129,0.12); padding: 2px 8px; border-radius: 999px; font-size: 12px; font-weight: 600; }
      .header { display: flex; align-items: center; justify-content: space-between; margin-bottom: 12px; }
      .refresh { color: var(--muted); font-size: 12px; }
    </style>
  </head>
  <body>
    <div class="card">
      <div class="header">
        <div class="pill">LLP Account <code>$account_index</code></div>
        <div class="refresh" id="refreshInfo">Live</div>
      </div>
      <h1>TOTAL LLP Position</h1>
      <div class="value" id="totalValue">$$$formatted_total</div>
      <div class="footer">
        <span class="pill">Positions counted: <strong id="posCount">$count</strong></span>
        <span class="pill">Source: <code>$source_host</code></span>
        <span class="badge">Auto-refreshing</span>
      </div>
    </div>
    <script>
      const formatUsd = (num) => new Intl.NumberFormat('en-US', { minimumFractionDigits: 2, maximumFractionDigits: 2 }).format(num);
      const totalEl = document.getElementById('totalValue');
      const countEl = document.getElementById('posCount');
      const refreshEl = document.getElementById('refreshInfo');
      let current = $total_json;

      function animateTo(target, durationMs = 800) {
        const start = current;
        const delta = target - start;
        const startTs = performance.now();
        function step(now) {
          const t = Math.min(1, (now - startTs) / durationMs);
          const ease = 1 - Math.pow(1 - t, 3);
          totalEl.textContent = '$$' + formatUsd(start + delta * ease);
          if (t < 1) requestAnimationFrame(step); else current = target;
        }
        requestAnimationFrame(step);
      }

      async function refresh() {
        try {
          refreshEl.textContent = 'Refreshing...';
          const res = await fetch('/api/llp-total', { cache: 'no-store' });
          const json = await res.json();
          if (typeof json.total === 'number') {
            animateTo(json.total);
            countEl.textContent = json.count;
            refreshEl.textContent = 'Updated ' + new Date().toLocaleTimeString();
          } else {
            refreshEl.textContent = 'No data';
          }
        } catch (e) {
          refreshEl.textContent = 'Fetch failed';
        }
      }

      setInterval(refresh, $refresh_ms);
      refresh();
    </script>
  </body>
</html>
"""
)


def format_usd(value: float) -> str:
    return f"{value:,.2f}"


def render_dashboard(
    summary: PositionSummary,
    *,
    account_index: int,
    source_host: str,
    refresh_interval_seconds: int = 30,
) -> str:
    return _DASHBOARD_TEMPLATE.substitute(
        account_index=account_index,
        formatted_total=format_usd(summary.total),
        count=summary.count,
        source_host=html.escape(source_host),
        total_json=json.dumps(summary.total),
        refresh_ms=refresh_interval_seconds * 1000,
    )
