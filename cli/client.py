from __future__ import annotations

from typing import Any, Dict, Optional

import httpx
import typer

from cli.config import CLIConfig


class ApiClient:
    """Minimal HTTP client for the sensor gateway."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(base_url=config.base_url, timeout=config.timeout)

    def close(self) -> None:
        self._client.close()

    def send_payload(self, payload: Dict[str, Any], m: str, k: str) -> Dict[str, Any]:
        """Post a payload the way the sensor gateway does.

        The gateway answers 401 and 500 with the same status body, so those
        are returned rather than treated as transport errors.
        """
        response = self._client.post("/MagnetAPI", json=payload, headers={"m": m, "k": k})
        try:
            body = response.json()
        except ValueError:
            body = None
        if not isinstance(body, dict) or "status" not in body:
            typer.secho(
                f"Unexpected response ({response.status_code}): {response.text.strip()}",
                fg=typer.colors.RED,
                err=True,
            )
            raise typer.Exit(code=1)
        return body

    def list_readings(
        self,
        sensor_type: str,
        device: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
    ) -> Dict[str, Any]:
        params: Dict[str, Any] = {"limit": limit, "offset": offset}
        if device:
            params["device"] = device
        return self._get(f"/readings/{sensor_type}", params=params)

    def latest_readings(self, sensor_type: str) -> Dict[str, Any]:
        return self._get(f"/readings/{sensor_type}/latest")

    def list_devices(self, sensor_type: str) -> Dict[str, Any]:
        return self._get(f"/readings/{sensor_type}/devices")

    def _get(self, path: str, params: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = self._client.get(path, params=params)
            if response.status_code == 404:
                raise typer.BadParameter(self._detail(response) or f"{path} was not found.")
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            self._handle_http_error(exc)
        return response.json()

    @staticmethod
    def _detail(response: httpx.Response) -> Optional[str]:
        try:
            return response.json().get("detail")
        except ValueError:
            return response.text.strip() or None

    @classmethod
    def _handle_http_error(cls, exc: httpx.HTTPStatusError) -> None:
        detail = cls._detail(exc.response)
        message = (
            f"Request failed with status {exc.response.status_code}: {detail or 'no detail provided.'}"
        )
        typer.secho(message, fg=typer.colors.RED, err=True)
        raise typer.Exit(code=1)
