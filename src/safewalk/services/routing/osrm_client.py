"""HTTP client for the OSRM route service, used as the path provider."""

from __future__ import annotations

import logging
import time
from typing import Sequence

import httpx

from ...config import settings
from ...models.domain import Coordinates
from .models import PathCandidate
from .polyline import decode_polyline, encode_polyline

logger = logging.getLogger(__name__)


class OSRMClient:
    def __init__(
        self,
        base_url: str | None = None,
        profile: str | None = None,
        safe_profile: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        backoff_seconds: float | None = None,
        max_alternatives: int | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = (base_url or settings.osrm_base_url or "").rstrip("/")
        if not self.base_url:
            raise ValueError("OSRM base URL is not configured.")
        self.profile = profile or settings.osrm_profile
        self.safe_profile = safe_profile or settings.osrm_safe_profile or self.profile
        self.timeout = timeout if timeout is not None else settings.osrm_timeout_seconds
        self.max_retries = max_retries if max_retries is not None else settings.osrm_max_retries
        self.backoff_seconds = backoff_seconds if backoff_seconds is not None else settings.osrm_backoff_seconds
        self.max_alternatives = max_alternatives if max_alternatives is not None else settings.osrm_max_alternatives
        self._transport = transport

    def _get_client(self) -> httpx.Client:
        """Create a short-lived HTTP client; sessions may call from different threads."""
        return httpx.Client(
            timeout=httpx.Timeout(self.timeout, connect=min(self.timeout, 10.0)),
            transport=self._transport,
        )

    def _route_request(self, coordinates: Sequence[Coordinates], profile: str, alternatives: int) -> dict:
        if len(coordinates) < 2:
            raise ValueError("At least two coordinates are required for OSRM route.")

        # OSRM expects "lon,lat;lon,lat;..."
        coordinate_str = ";".join(f"{point.longitude},{point.latitude}" for point in coordinates)
        params = {
            "overview": "full",
            "geometries": "polyline",
            "steps": "false",
            "alternatives": str(alternatives) if alternatives > 0 else "false",
        }
        url = f"{self.base_url}/route/v1/{profile}/{coordinate_str}"

        client = self._get_client()
        try:
            attempt = 0
            while True:
                try:
                    response = client.get(url, params=params)
                    response.raise_for_status()
                    data = response.json()

                    if data.get("code") != "Ok":
                        error_msg = data.get("message", "Unknown OSRM route error")
                        raise ValueError(f"OSRM route request failed: {error_msg}")
                    if not data.get("routes"):
                        raise ValueError("OSRM returned no routes.")
                    return data
                except httpx.HTTPStatusError as e:
                    attempt += 1
                    # 4xx other than rate limiting will not improve on retry
                    if e.response.status_code < 500 and e.response.status_code != 429:
                        raise ValueError(f"OSRM rejected the route request: {e.response.status_code}") from e
                    if attempt > self.max_retries:
                        raise ConnectionError(f"OSRM route request failed with status {e.response.status_code}") from e
                    time.sleep(self.backoff_seconds * attempt)
                except httpx.TimeoutException as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        logger.warning(f"OSRM route request timed out after {self.max_retries} retries: {e}")
                        raise ConnectionError(f"OSRM route request timed out: {e}") from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM route timeout, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries})")
                    time.sleep(wait_time)
                except (httpx.TransportError, OSError) as e:
                    attempt += 1
                    if attempt > self.max_retries:
                        raise ConnectionError(
                            f"Failed to connect to OSRM service at {self.base_url}: {e}"
                        ) from e
                    wait_time = self.backoff_seconds * (2 ** (attempt - 1))
                    logger.debug(f"OSRM network error, retrying in {wait_time:.1f}s (attempt {attempt}/{self.max_retries}): {e}")
                    time.sleep(wait_time)
        finally:
            client.close()

    def _profile_for(self, prefer_safe: bool) -> str:
        return self.safe_profile if prefer_safe else self.profile

    @staticmethod
    def _to_candidate(route: dict, origin: Coordinates, destination: Coordinates) -> PathCandidate:
        geometry = route.get("geometry") or ""
        waypoints = decode_polyline(geometry) if isinstance(geometry, str) else []
        if len(waypoints) < 2:
            waypoints = [origin, destination]
            geometry = encode_polyline(waypoints)
        return PathCandidate(
            waypoints=waypoints,
            polyline=geometry,
            distance_meters=float(route.get("distance", 0.0)),
            duration_seconds=float(route.get("duration", 0.0)),
        )

    def get_route(self, origin: Coordinates, destination: Coordinates, prefer_safe: bool) -> PathCandidate:
        """Fetch the provider's primary path between two points."""
        profile = self._profile_for(prefer_safe)
        data = self._route_request([origin, destination], profile, alternatives=0)
        logger.debug(f"OSRM route ({profile}) returned {len(data['routes'])} route(s)")
        return self._to_candidate(data["routes"][0], origin, destination)

    def get_alternatives(
        self, origin: Coordinates, destination: Coordinates, prefer_safe: bool
    ) -> list[PathCandidate]:
        """Fetch up to ``max_alternatives`` candidate paths, primary first."""
        profile = self._profile_for(prefer_safe)
        data = self._route_request([origin, destination], profile, alternatives=self.max_alternatives)
        return [self._to_candidate(route, origin, destination) for route in data["routes"]]


def check_health(base_url: str | None = None) -> bool:
    """Check OSRM service health by requesting a minimal route.

    Public OSRM endpoints may not have a /health endpoint, so we test
    connectivity with a two-point route request.
    """
    base = base_url or settings.osrm_base_url
    if not base:
        return False
    try:
        test_coords = "13.388860,52.517037;13.385983,52.496891"
        url = f"{base.rstrip('/')}/route/v1/{settings.osrm_profile}/{test_coords}"
        response = httpx.get(url, params={"overview": "false"}, timeout=5.0)
        response.raise_for_status()
        data = response.json()
        return data.get("code") == "Ok"
    except (httpx.HTTPError, ValueError):
        return False
