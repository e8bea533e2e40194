from __future__ import annotations

from typing import Any, Dict, List, Optional

import httpx
import typer

from cli.config import CLIConfig

USER_AGENT = "bitebox-cli"


class ApiClient:
    """Minimal HTTP client for the BiteBox JSON API."""

    def __init__(self, config: CLIConfig) -> None:
        self._config = config
        self._client = httpx.Client(
            base_url=config.base_url,
            timeout=config.timeout,
            headers={"User-Agent": USER_AGENT},
        )

    def close(self) -> None:
        self._client.close()

    def list_restaurants(
        self,
        sort: Optional[str] = None,
        search: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params = {key: value for key, value in (("sort", sort), ("search", search)) if value}
        return self._get("/api/restaurants", params=params)

    def get_restaurant(self, slug: str) -> Dict[str, Any]:
        return self._get(f"/api/restaurants/{slug}", missing=f"Restaurant {slug} was not found.")

    def get_public_profile(self, username: str) -> Dict[str, Any]:
        handle = username.lstrip("@")
        return self._get(
            f"/api/users/{handle}",
            missing=f"No public profile for @{handle}.",
        )

    def _get(
        self,
        path: str,
        params: Optional[Dict[str, str]] = None,
        missing: Optional[str] = None,
    ) -> Any:
        try:
            response = self._client.get(path, params=params)
            if response.status_code == 404 and missing:
                raise typer.BadParameter(missing)
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
        return response.json()

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
