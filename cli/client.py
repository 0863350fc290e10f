from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the monitoring service."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def list_zones(self, status: str = "all") -> List[Dict[str, Any]]:
        return self._request("GET", "/zones", params={"status": status}).json()

    def get_zone(self, zone_id: str) -> Dict[str, Any]:
        return self._request("GET", f"/zones/{zone_id}", not_found=f"Zone {zone_id} was not found.").json()

    def push_reading(self, zone_id: str, temperature: float, online: bool) -> Dict[str, Any]:
        response = self._request(
            "POST",
            f"/zones/{zone_id}/readings",
            json={"temperature": temperature, "online": online},
            not_found=f"Zone {zone_id} was not found.",
        )
        return response.json()

    def list_alerts(
        self,
        active_only: bool = False,
        severity: Optional[str] = None,
        zone_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {"active_only": active_only}
        if severity:
            params["severity"] = severity
        if zone_id:
            params["zone_id"] = zone_id
        return self._request("GET", "/alerts", params=params).json()

    def acknowledge(self, alert_id: str) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/alerts/{alert_id}/acknowledge",
            not_found=f"Alert {alert_id} was not found.",
        ).json()

    def export_csv(self) -> bytes:
        return self._request("GET", "/alerts/export").content

    def get_summary(self) -> Dict[str, Any]:
        return self._request("GET", "/summary").json()

    def _request(
        self,
        method: str,
        url: str,
        not_found: Optional[str] = None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            response = self._client.request(method, url, **kwargs)
            if response.status_code == 404 and not_found:
                raise typer.BadParameter(not_found)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        except httpx.TransportError as exc:
            typer.secho(
                f"Could not reach {self._config.base_url}: {exc}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1) from exc
        return response

    @staticmethod
    def _handle_http_error(exc: httpx.HTTPStatusError) -> None:
        detail: str | None = None
        try:
            data = exc.response.json()
            detail = data.get("detail")
        except Exception:  # noqa: BLE001 - best effort parsing
            detail = exc.response.text.strip()
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
