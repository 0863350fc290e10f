from __future__ import annotations

from typing import Any, Dict, Iterable, List

import typer

_STATUS_COLORS = {
    "normal": typer.colors.GREEN,
    "warning": typer.colors.YELLOW,
    "critical": typer.colors.RED,
}

_TREND_MARKS = {
    "increasing": "↑",
    "decreasing": "↓",
    "stable": "•",
}


def echo_heading(text: str) -> None:
    typer.secho(text, bold=True)


def echo_key_values(pairs: Iterable[tuple[str, Any]]) -> None:
    for key, value in pairs:
        typer.echo(f"{key}: {value}")


def _temp(value: Any) -> str:
    return "n/a" if value is None else f"{value}°C"


def render_zone_line(zone: Dict[str, Any]) -> None:
    status = zone.get("status", "")
    typer.echo(
        f"{zone.get('id')}  {zone.get('name')}  "
        f"{_temp(zone.get('current_temp'))} {_TREND_MARKS.get(zone.get('trend'), '?')}  ",
        nl=False,
    )
    typer.secho(status, fg=_STATUS_COLORS.get(status), nl=False)
    offline = "" if zone.get("is_online", True) else "  [offline]"
    typer.echo(f"  alerts={zone.get('alert_count', 0)}{offline}")


def render_zones(zones: List[Dict[str, Any]]) -> None:
    echo_heading("Temperature Zones")
    if not zones:
        typer.echo("No zones match this filter.")
        return
    for zone in zones:
        render_zone_line(zone)


def render_zone(zone: Dict[str, Any]) -> None:
    echo_heading(f"Zone {zone.get('id')}")
    echo_key_values(
        [
            ("name", zone.get("name")),
            ("location", zone.get("location")),
            ("sensor_id", zone.get("sensor_id")),
            ("status", zone.get("status")),
            ("current_temp", _temp(zone.get("current_temp"))),
            ("target_temp", _temp(zone.get("target_temp"))),
            ("band", f"{_temp(zone.get('min_threshold'))} .. {_temp(zone.get('max_threshold'))}"),
            ("trend", zone.get("trend")),
            ("online", zone.get("is_online")),
            ("last_update", zone.get("last_update")),
            ("alert_count", zone.get("alert_count")),
        ]
    )


def render_alert_line(alert: Dict[str, Any]) -> None:
    state = "Acknowledged" if alert.get("acknowledged") else "Active"
    if alert.get("auto_resolved"):
        state += " (auto-resolved)"
    typer.echo(
        f"  - {alert.get('id')} [{alert.get('severity')}] {alert.get('type')} "
        f"in {alert.get('zone_name') or alert.get('zone_id')}: "
        f"{_temp(alert.get('temperature'))} vs {_temp(alert.get('threshold'))} "
        f"at {alert.get('timestamp')} - {state}"
    )


def render_alerts(alerts: List[Dict[str, Any]]) -> None:
    echo_heading("Alerts")
    if not alerts:
        typer.echo("No alerts recorded.")
        return
    for alert in alerts:
        render_alert_line(alert)


def render_summary(summary: Dict[str, Any]) -> None:
    echo_heading("Overview")
    echo_key_values(
        [
            ("total_zones", summary.get("total_zones")),
            ("active_alerts", summary.get("active_alerts")),
            ("normal_zones", summary.get("normal_zones")),
            ("average_temp", _temp(summary.get("average_temp"))),
        ]
    )
