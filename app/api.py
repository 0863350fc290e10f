"""HTTP route definitions for the monitoring service."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status

from app.schemas import (
    AlertView,
    ReadingResult,
    ReadingUpdate,
    SummaryView,
    ZoneView,
    alert_views,
    zone_views,
)
from models.errors import BackendUnavailable, NotFoundError, ValidationError
from models.records import Severity
from services.monitor import MonitoringService, build_default_monitor

router = APIRouter()


def get_monitor() -> MonitoringService:
    return build_default_monitor()


def _not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


def _unavailable(exc: BackendUnavailable) -> HTTPException:
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=str(exc))


@router.get(
    "/zones",
    response_model=List[ZoneView],
    summary="List monitored zones in configuration order.",
)
async def list_zones(
    status_filter: str = Query("all", alias="status"),
    monitor: MonitoringService = Depends(get_monitor),
) -> List[ZoneView]:
    try:
        zones = monitor.registry.filter_by_status(status_filter)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=str(exc),
        ) from exc
    return zone_views(zones)


@router.get(
    "/zones/{zone_id}",
    response_model=ZoneView,
    summary="Fetch one zone's live state.",
)
async def get_zone(
    zone_id: str,
    monitor: MonitoringService = Depends(get_monitor),
) -> ZoneView:
    try:
        zone = monitor.registry.get_zone(zone_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    return ZoneView.from_zone(zone)


@router.post(
    "/zones/{zone_id}/readings",
    response_model=ReadingResult,
    summary="Apply a sensor reading to a zone.",
)
async def post_reading(
    zone_id: str,
    reading: ReadingUpdate,
    monitor: MonitoringService = Depends(get_monitor),
) -> ReadingResult:
    try:
        event = monitor.update_reading(zone_id, reading.temperature, reading.online)
        zone = monitor.registry.get_zone(zone_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except BackendUnavailable as exc:
        raise _unavailable(exc) from exc
    return ReadingResult(
        zone=ZoneView.from_zone(zone),
        alert=AlertView.from_event(event) if event is not None else None,
    )


@router.get(
    "/alerts",
    response_model=List[AlertView],
    summary="List alerts, newest first.",
)
async def list_alerts(
    severity: Optional[Severity] = None,
    acknowledged_only: bool = False,
    active_only: bool = False,
    zone_id: Optional[str] = None,
    monitor: MonitoringService = Depends(get_monitor),
) -> List[AlertView]:
    events = monitor.ledger.list(
        severity=severity,
        acknowledged_only=acknowledged_only,
        active_only=active_only,
        zone_id=zone_id,
    )
    return alert_views(events)


@router.get(
    "/alerts/export",
    summary="Download every alert as CSV.",
    response_class=Response,
)
async def export_alerts(monitor: MonitoringService = Depends(get_monitor)) -> Response:
    return Response(
        content=monitor.ledger.export_csv(),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": 'attachment; filename="temperature-alerts.csv"'},
    )


@router.post(
    "/alerts/{alert_id}/acknowledge",
    response_model=AlertView,
    summary="Acknowledge an alert; repeated calls are no-ops.",
)
async def acknowledge_alert(
    alert_id: str,
    monitor: MonitoringService = Depends(get_monitor),
) -> AlertView:
    try:
        event = monitor.acknowledge(alert_id)
    except NotFoundError as exc:
        raise _not_found(exc) from exc
    except BackendUnavailable as exc:
        raise _unavailable(exc) from exc
    return AlertView.from_event(event)


@router.get(
    "/summary",
    response_model=SummaryView,
    summary="Overview figures for the dashboard.",
)
async def get_summary(monitor: MonitoringService = Depends(get_monitor)) -> SummaryView:
    return SummaryView.from_summary(monitor.registry.summary())


@router.get(
    "/health",
    summary="Health check endpoint.",
    status_code=status.HTTP_200_OK,
)
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get(
    "/",
    summary="Root endpoint mirrors health information.",
    status_code=status.HTTP_200_OK,
)
async def root() -> dict[str, str]:
    return {"status": "ok", "detail": "See /ui for the monitoring dashboard."}
