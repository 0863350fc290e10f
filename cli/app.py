from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import typer

from cli.client import ApiClient
from cli.config import CLIConfig, load_config
from cli.render import (
    render_alert_line,
    render_alerts,
    render_summary,
    render_zone,
    render_zones,
)


@dataclass
class CLIState:
    config: CLIConfig
    client: ApiClient


app = typer.Typer(
    help="Utilities for interacting with the temperature monitoring service.",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def _get_state(ctx: typer.Context) -> CLIState:
    state = ctx.obj
    if not isinstance(state, CLIState):
        typer.secho("CLI state is uninitialized.", fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
    return state


@app.callback()
def main(
    ctx: typer.Context,
    base_url: Optional[str] = typer.Option(
        None,
        "--base-url",
        "-b",
        help="Monitor API base URL (defaults to API_BASE_URL env or http://localhost:8000).",
    ),
    timeout: Optional[float] = typer.Option(
        None,
        "--timeout",
        help="Seconds to wait for each API request.",
    ),
) -> None:
    """Entry point for the CLI."""
    config = load_config(base_url=base_url, timeout=timeout)
    client = ApiClient(config)
    ctx.obj = CLIState(config=config, client=client)
    ctx.call_on_close(client.close)


@app.command("zones")
def zones_command(
    ctx: typer.Context,
    status: str = typer.Option(
        "all",
        "--status",
        "-s",
        help="Filter by status: all, normal, warning or critical.",
    ),
) -> None:
    """List monitored zones."""
    state = _get_state(ctx)
    render_zones(state.client.list_zones(status))


@app.command("zone")
def zone_command(
    ctx: typer.Context,
    zone_id: str = typer.Argument(..., help="Zone identifier, e.g. ZONE-001."),
) -> None:
    """Show one zone's live state."""
    state = _get_state(ctx)
    render_zone(state.client.get_zone(zone_id))


# Negative readings such as -18.5 must parse as arguments, not options.
@app.command("reading", context_settings={"ignore_unknown_options": True})
def reading_command(
    ctx: typer.Context,
    zone_id: str = typer.Argument(..., help="Zone identifier."),
    temperature: float = typer.Argument(..., help="Reading in degrees Celsius."),
    offline: bool = typer.Option(
        False,
        "--offline",
        help="Report the sensor as unreachable.",
    ),
) -> None:
    """Push a sensor reading into a zone."""
    state = _get_state(ctx)
    payload = state.client.push_reading(zone_id, temperature, online=not offline)
    zone = payload.get("zone") or {}
    typer.secho(
        f"{zone.get('id')} is now {zone.get('status')} at {zone.get('current_temp')}°C",
        fg=typer.colors.GREEN,
    )
    alert = payload.get("alert")
    if alert:
        typer.secho("Alert recorded:", fg=typer.colors.RED)
        render_alert_line(alert)


@app.command("alerts")
def alerts_command(
    ctx: typer.Context,
    active: bool = typer.Option(False, "--active", help="Only unacknowledged alerts."),
    severity: Optional[str] = typer.Option(None, "--severity", help="info, warning or critical."),
    zone_id: Optional[str] = typer.Option(None, "--zone", help="Only alerts for this zone."),
) -> None:
    """List alerts, newest first."""
    state = _get_state(ctx)
    render_alerts(state.client.list_alerts(active_only=active, severity=severity, zone_id=zone_id))


@app.command("ack")
def acknowledge_command(
    ctx: typer.Context,
    alert_id: str = typer.Argument(..., help="Alert identifier, e.g. ALT-001."),
) -> None:
    """Acknowledge an alert."""
    state = _get_state(ctx)
    alert = state.client.acknowledge(alert_id)
    typer.secho(f"Acknowledged {alert.get('id')}", fg=typer.colors.GREEN)


@app.command("export")
def export_command(
    ctx: typer.Context,
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        dir_okay=False,
        writable=True,
        help="Write the CSV here instead of stdout.",
    ),
) -> None:
    """Export the alert ledger as CSV."""
    state = _get_state(ctx)
    content = state.client.export_csv()
    if output is None:
        typer.echo(content.decode("utf-8"), nl=False)
        return
    output.write_bytes(content)
    typer.secho(f"Wrote {output}", fg=typer.colors.GREEN)


@app.command("summary")
def summary_command(ctx: typer.Context) -> None:
    """Show overview figures."""
    state = _get_state(ctx)
    render_summary(state.client.get_summary())
