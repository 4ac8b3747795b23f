from __future__ import annotations

"""Standalone HTML rendering of a controller snapshot."""

from datetime import datetime, timezone
import html
from pathlib import Path

from country_lookup.controller import LoadState, ViewSnapshot
from country_lookup.models import Record


def _origin_label_and_class(origin: str | None) -> tuple[str, str]:
    if origin == "live":
        return "Live Data", "live"
    if origin == "fallback":
        return "Fallback", "fallback"
    return "Unknown", "unknown"


def _row_open_tag(record: Record, picked: Record | None) -> str:
    return '<tr class="picked">' if picked is not None and record == picked else "<tr>"


def _build_record_rows(records: tuple[Record, ...], picked: Record | None) -> str:
    rows = "".join(
        f"{_row_open_tag(record, picked)}"
        f"<td>{html.escape(record.name)}</td>"
        f"<td>{html.escape(record.region)}</td>"
        f"<td>{html.escape(record.code)}</td>"
        f"<td>{html.escape(record.capital)}</td>"
        "</tr>"
        for record in records
    )
    return rows or '<tr><td colspan="4">No countries match.</td></tr>'


def _build_region_lines(records: tuple[Record, ...]) -> str:
    by_region: dict[str, int] = {}
    for record in records:
        by_region[record.region] = by_region.get(record.region, 0) + 1
    return "".join(f"<li>{html.escape(k)}: {v}</li>" for k, v in sorted(by_region.items()))


def _build_status_banner(snapshot: ViewSnapshot) -> str:
    if snapshot.status.state is not LoadState.ERROR:
        return ""
    message = html.escape(snapshot.status.message or "Fetch failed")
    return f'<div class="card banner">{message} - showing bundled fallback data.</div>'


def build_html_report(snapshot: ViewSnapshot) -> str:
    """Render the filtered view as a standalone HTML document."""
    origin_label, origin_class = _origin_label_and_class(snapshot.origin)
    generated_at = datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    record_rows = _build_record_rows(snapshot.filtered, snapshot.picked)
    region_lines = _build_region_lines(snapshot.filtered)
    search = html.escape(snapshot.search_text) if snapshot.search_text else "(none)"

    return f"""<!doctype html>
<html lang=\"en\">
<head>
  <meta charset=\"utf-8\" />
  <meta name=\"viewport\" content=\"width=device-width, initial-scale=1\" />
  <title>Country Lookup</title>
  <style>
    body {{ font-family: 'Segoe UI', Tahoma, sans-serif; margin: 24px; background: #f7fafc; color: #1f2937; }}
    h1 {{ margin-bottom: 4px; }}
    .meta {{ color: #4b5563; margin-bottom: 20px; }}
    .card {{ background: white; border-radius: 10px; padding: 16px; margin-bottom: 16px; box-shadow: 0 1px 3px rgba(0,0,0,0.08); }}
    .banner {{ background: #fef3c7; color: #92400e; font-weight: 600; }}
    .stats {{ display: flex; gap: 16px; flex-wrap: wrap; }}
    .stat {{ background: #eef2ff; border-radius: 8px; padding: 10px 12px; min-width: 180px; }}
    table {{ width: 100%; border-collapse: collapse; font-size: 14px; }}
    th, td {{ border-bottom: 1px solid #e5e7eb; padding: 10px 8px; text-align: left; vertical-align: top; }}
    th {{ background: #f9fafb; }}
    tr.picked td {{ background: #dcfce7; font-weight: 600; }}
    .tag {{ display: inline-block; padding: 2px 8px; border-radius: 999px; font-size: 12px; font-weight: 600; }}
    .tag.live {{ background: #dcfce7; color: #065f46; }}
    .tag.fallback {{ background: #fee2e2; color: #991b1b; }}
    .tag.unknown {{ background: #e5e7eb; color: #374151; }}
  </style>
</head>
<body>
  <h1>Country Lookup</h1>
  <div class=\"meta\">Generated: {generated_at} <span class=\"tag {origin_class}\">{origin_label}</span></div>
  {_build_status_banner(snapshot)}
  <div class=\"card stats\">
    <div class=\"stat\"><strong>Countries:</strong> {len(snapshot.records)}</div>
    <div class=\"stat\"><strong>Shown:</strong> {len(snapshot.filtered)}</div>
    <div class=\"stat\"><strong>Search:</strong> {search}</div>
  </div>

  <div class=\"card\">
    <h2>Shown by Region</h2>
    <ul>{region_lines or '<li>No countries shown.</li>'}</ul>
  </div>

  <div class=\"card\">
    <h2>Countries</h2>
    <table>
      <thead>
        <tr>
          <th>Name</th>
          <th>Region</th>
          <th>Code</th>
          <th>Capital</th>
        </tr>
      </thead>
      <tbody>
        {record_rows}
      </tbody>
    </table>
  </div>
</body>
</html>
"""


def write_html_report(snapshot: ViewSnapshot, output_path: Path) -> Path:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(build_html_report(snapshot), encoding="utf-8")
    return output_path
