from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from jalrakshak.domain.models import GeocodeResultRead

logger = logging.getLogger(__name__)

GEOCODER_BASE_URL = os.getenv("GEOCODER_BASE_URL", "https://nominatim.openstreetmap.org")
GEOCODER_USER_AGENT = os.getenv("GEOCODER_USER_AGENT", "jalrakshak/0.1")
GEOCODER_TIMEOUT_SECONDS = float(os.getenv("GEOCODER_TIMEOUT_SECONDS", "5"))
GEOCODER_RESULT_LIMIT = 5


class GeocoderError(Exception):
    pass


def _to_result(item: dict[str, Any]) -> GeocodeResultRead:
    try:
        return GeocodeResultRead(
            display_name=str(item.get("display_name") or ""),
            lat=float(item["lat"]),
            lon=float(item["lon"]),
        )
    except (KeyError, TypeError, ValueError) as exc:
        raise GeocoderError("malformed geocoder result") from exc


class GeocoderClient:
    """Nominatim-compatible search/reverse client."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout_seconds: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = (base_url or GEOCODER_BASE_URL).rstrip("/")
        self._timeout = GEOCODER_TIMEOUT_SECONDS if timeout_seconds is None else timeout_seconds
        self._transport = transport

    def _get(self, path: str, params: dict[str, Any]) -> Any:
        headers = {"User-Agent": GEOCODER_USER_AGENT, "Accept": "application/json"}
        try:
            with httpx.Client(
                base_url=self._base_url,
                timeout=self._timeout,
                transport=self._transport,
                headers=headers,
            ) as client:
                response = client.get(path, params={**params, "format": "jsonv2"})
                response.raise_for_status()
                return response.json()
        except httpx.HTTPError as exc:
            logger.warning("geocoder request %s failed: %s", path, exc)
            raise GeocoderError(f"geocoder request failed: {exc}") from exc
        except ValueError as exc:
            raise GeocoderError("geocoder returned invalid json") from exc

    def search(self, query: str, *, limit: int = GEOCODER_RESULT_LIMIT) -> list[GeocodeResultRead]:
        if not query.strip():
            raise GeocoderError("query is required")
        body = self._get("/search", {"q": query.strip(), "limit": limit})
        if not isinstance(body, list):
            raise GeocoderError("unexpected geocoder response")
        return [_to_result(item) for item in body]

    def reverse(self, lat: float, lon: float) -> GeocodeResultRead | None:
        body = self._get("/reverse", {"lat": lat, "lon": lon})
        if not isinstance(body, dict) or "error" in body:
            return None
        return _to_result(body)
