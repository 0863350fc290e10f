import dataclasses
from typing import Iterator, List

import pytest
from fastapi.testclient import TestClient

from app.main import create_app
from datastore.mock_backend import (
    ALERTS_ENTITY,
    MockBackend,
    build_default_backend,
    load_zone_configs,
    seed_default_zones,
)
from services.monitor import MonitoringService, build_default_monitor
from settings import get_settings


def _build_monitor() -> MonitoringService:
    backend = MockBackend()
    seed_default_zones(backend)
    return MonitoringService.from_configs(load_zone_configs(backend), backend=backend)


@pytest.fixture
def monitors(monkeypatch) -> List[MonitoringService]:
    built: List[MonitoringService] = []

    def build_test_monitor() -> MonitoringService:
        if not built:
            built.append(_build_monitor())
        return built[-1]

    def cache_clear() -> None:
        built.clear()

    build_test_monitor.cache_clear = cache_clear  # type: ignore[attr-defined]

    monkeypatch.setattr("app.main.build_default_monitor", build_test_monitor)
    monkeypatch.setattr("app.api.build_default_monitor", build_test_monitor)
    monkeypatch.setattr("app.web.build_default_monitor", build_test_monitor)
    return built


@pytest.fixture
def api_client(monitors) -> Iterator[TestClient]:
    app = create_app()
    with TestClient(app) as client:
        yield client


def _push(client: TestClient, zone_id: str, temperature: float, online: bool = True) -> dict:
    response = client.post(
        f"/zones/{zone_id}/readings",
        json={"temperature": temperature, "online": online},
    )
    assert response.status_code == 200
    return response.json()


def test_list_zones_in_configuration_order(api_client: TestClient) -> None:
    response = api_client.get("/zones")

    assert response.status_code == 200
    payload = response.json()
    assert [zone["id"] for zone in payload] == ["ZONE-001", "ZONE-002", "ZONE-003", "ZONE-004"]
    first = payload[0]
    assert first["status"] == "normal"
    assert first["status_color"] == "success"
    assert first["trend_indicator"] == {"icon": "dot", "color": "success"}
    assert first["alert_count"] == 0


def test_status_filter(api_client: TestClient) -> None:
    response = api_client.get("/zones", params={"status": "warning"})

    assert response.status_code == 200
    assert [zone["id"] for zone in response.json()] == ["ZONE-002", "ZONE-003"]

    bogus = api_client.get("/zones", params={"status": "freezing"})
    assert bogus.status_code == 422


def test_unknown_zone_returns_not_found(api_client: TestClient) -> None:
    assert api_client.get("/zones/ZONE-404").status_code == 404

    response = api_client.post("/zones/ZONE-404/readings", json={"temperature": -18.0})
    assert response.status_code == 404
    assert "ZONE-404" in response.json()["detail"]


def test_reading_above_band_records_warning_alert(api_client: TestClient) -> None:
    payload = _push(api_client, "ZONE-001", -15.8)

    assert payload["zone"]["status"] == "warning"
    assert payload["zone"]["trend"] == "increasing"
    assert payload["zone"]["alert_count"] == 1
    alert = payload["alert"]
    assert alert["type"] == "TemperatureHigh"
    assert alert["severity"] == "warning"
    assert alert["threshold"] == -16.0
    assert alert["zone_name"] == "Main Freezer A"
    assert alert["severity_color"] == "warning"

    second = _push(api_client, "ZONE-001", -15.7)
    assert second["alert"] is None


def test_alert_listing_and_acknowledgement(api_client: TestClient, monitors) -> None:
    first = _push(api_client, "ZONE-001", -15.8)["alert"]
    second = _push(api_client, "ZONE-004", -21.0)["alert"]

    listed = api_client.get("/alerts").json()
    assert [alert["id"] for alert in listed] == [second["id"], first["id"]]

    response = api_client.post(f"/alerts/{first['id']}/acknowledge")
    assert response.status_code == 200
    acknowledged = response.json()
    assert acknowledged["acknowledged"] is True
    assert acknowledged["acknowledged_at"] is not None

    again = api_client.post(f"/alerts/{first['id']}/acknowledge")
    assert again.json() == acknowledged

    active = api_client.get("/alerts", params={"active_only": "true"}).json()
    assert [alert["id"] for alert in active] == [second["id"]]
    by_zone = api_client.get("/alerts", params={"zone_id": "ZONE-001"}).json()
    assert [alert["id"] for alert in by_zone] == [first["id"]]

    rows = monitors[-1].backend.fetch_rows(ALERTS_ENTITY, lambda row: row["id"] == first["id"])
    assert rows[0]["acknowledged"] is True

    assert api_client.post("/alerts/ALT-404/acknowledge").status_code == 404


def test_export_csv(api_client: TestClient) -> None:
    alert = _push(api_client, "ZONE-001", -15.8)["alert"]

    response = api_client.get("/alerts/export")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "temperature-alerts.csv" in response.headers["content-disposition"]
    lines = response.content.decode("utf-8").splitlines()
    assert lines[0] == "ID,Zone,Type,Severity,Temperature,Threshold,Timestamp,Status"
    assert lines[1].startswith(f"{alert['id']},Main Freezer A,TemperatureHigh,warning,-15.8°C,-16°C,")
    assert lines[1].endswith(",Active")


def test_summary(api_client: TestClient) -> None:
    _push(api_client, "ZONE-001", -14.9)

    payload = api_client.get("/summary").json()

    assert payload["total_zones"] == 4
    assert payload["active_alerts"] == 1
    assert payload["normal_zones"] == 1
    assert payload["average_temp"] == -17.5


def test_health_and_root(api_client: TestClient) -> None:
    assert api_client.get("/health").json() == {"status": "ok"}
    assert "/ui" in api_client.get("/").json()["detail"]


def test_dashboard_renders_zones_and_alerts(api_client: TestClient) -> None:
    _push(api_client, "ZONE-001", -15.8)

    response = api_client.get("/ui")

    assert response.status_code == 200
    assert "Temperature Monitoring" in response.text
    assert "Main Freezer A" in response.text
    assert "ALT-001" in response.text

    filtered = api_client.get("/ui", params={"status": "critical"})
    assert "No zones match this filter." in filtered.text
    assert api_client.get("/ui", params={"status": "freezing"}).status_code == 400


def test_dashboard_acknowledge_redirects(api_client: TestClient, monitors) -> None:
    alert = _push(api_client, "ZONE-001", -15.8)["alert"]

    response = api_client.post(
        f"/ui/alerts/{alert['id']}/acknowledge",
        follow_redirects=False,
    )

    assert response.status_code == 303
    assert response.headers["location"].endswith("/ui")
    assert monitors[-1].ledger.get(alert["id"]).acknowledged is True
    missing = api_client.post("/ui/alerts/ALT-404/acknowledge", follow_redirects=False)
    assert missing.status_code == 404


def test_lifespan_runs_simulator_when_drift_enabled(monkeypatch, monitors) -> None:
    settings = dataclasses.replace(get_settings(), drift_enabled=True)
    monkeypatch.setattr("app.main.get_settings", lambda: settings)

    with TestClient(create_app()):
        monitor = monitors[-1]
        assert monitor.simulator.running

    assert not monitor.simulator.running
    assert monitors == []


def test_lifespan_clears_monitor_cache(monkeypatch) -> None:
    monkeypatch.setenv("BACKEND_PERSISTENCE_PATH", "")
    caches = (get_settings, build_default_backend, build_default_monitor)
    for cache in caches:
        cache.cache_clear()

    try:
        with TestClient(create_app()):
            monitor_during = build_default_monitor()
            assert not monitor_during.simulator.running

        monitor_after = build_default_monitor()
        assert monitor_after is not monitor_during
    finally:
        for cache in caches:
            cache.cache_clear()
