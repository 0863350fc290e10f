from __future__ import annotations

from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from app.schemas import SummaryView, alert_views, zone_views
from models.errors import BackendUnavailable, NotFoundError, ValidationError
from services.monitor import MonitoringService, build_default_monitor


templates = Jinja2Templates(directory=str(Path(__file__).resolve().parent / "templates"))

STATUS_FILTERS = ("all", "normal", "warning", "critical")


def get_monitor() -> MonitoringService:
    return build_default_monitor()


router = APIRouter(include_in_schema=False)


@router.get("/ui", name="ui_index", response_class=HTMLResponse)
async def ui_index(
    request: Request,
    status_filter: str = Query("all", alias="status"),
    monitor: MonitoringService = Depends(get_monitor),
) -> HTMLResponse:
    try:
        zones = monitor.registry.filter_by_status(status_filter)
    except ValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    return templates.TemplateResponse(
        request,
        "ui/index.html",
        {
            "summary": SummaryView.from_summary(monitor.registry.summary()),
            "zones": zone_views(zones),
            "alerts": alert_views(monitor.ledger.list()),
            "status_filter": status_filter,
            "status_filters": STATUS_FILTERS,
            "simulating": monitor.simulator.running,
        },
    )


@router.post("/ui/alerts/{alert_id}/acknowledge", name="ui_acknowledge")
async def ui_acknowledge(
    request: Request,
    alert_id: str,
    monitor: MonitoringService = Depends(get_monitor),
) -> RedirectResponse:
    try:
        monitor.acknowledge(alert_id)
    except NotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=str(exc),
        ) from exc
    except BackendUnavailable as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=str(exc),
        ) from exc

    return RedirectResponse(
        url=str(request.url_for("ui_index")),
        status_code=status.HTTP_303_SEE_OTHER,
    )
