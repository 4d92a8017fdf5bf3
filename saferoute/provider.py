import logging
from typing import List, Optional

import httpx

from .config import OSRM_BASE_URL, OSRM_PROFILE, PROVIDER_TIMEOUT_S
from .errors import EmptyResultSet, ProviderTimeout, ProviderUnavailable
from .models import LatLng, ProviderRoute, RouteStep

logger = logging.getLogger(__name__)


def _format_radiuses(radiuses: List[Optional[float]]) -> str:
    return ";".join("unlimited" if r is None else f"{r:g}" for r in radiuses)


def parse_osrm_routes(data: dict) -> List[ProviderRoute]:
    """Convert an OSRM `route` response body into ProviderRoutes."""
    routes: List[ProviderRoute] = []
    for route in data.get("routes") or []:
        # OSRM returns [lng, lat]
        coords = [LatLng(lat=lat, lng=lng) for lng, lat in route["geometry"]["coordinates"]]
        steps: List[RouteStep] = []
        for leg in route.get("legs") or []:
            for step in leg.get("steps") or []:
                maneuver = step.get("maneuver") or {}
                steps.append(
                    RouteStep(
                        maneuver_type=maneuver.get("type", ""),
                        modifier=maneuver.get("modifier", ""),
                        name=step.get("name", "") or "",
                        distance_m=float(step.get("distance") or 0.0),
                    )
                )
        routes.append(
            ProviderRoute(
                coordinates=coords,
                distance_m=float(route["distance"]),
                duration_s=float(route["duration"]),
                steps=steps,
            )
        )
    return routes


class OSRMProvider:
    """
    Walking directions from an OSRM-compatible server.

    Pass `client` to reuse a connection pool or to inject a mock transport.
    """

    def __init__(
        self,
        base_url: str = OSRM_BASE_URL,
        profile: str = OSRM_PROFILE,
        timeout_s: float = PROVIDER_TIMEOUT_S,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.profile = profile
        self.timeout_s = timeout_s
        self._client = client

    def build_request(self, coordinates: List[LatLng], radiuses: Optional[List[Optional[float]]] = None):
        path = ";".join(f"{p.lng},{p.lat}" for p in coordinates)
        url = f"{self.base_url}/route/v1/{self.profile}/{path}"
        params = {
            "overview": "full",
            "geometries": "geojson",
            "alternatives": "true",
            "steps": "true",
        }
        if radiuses:
            params["radiuses"] = _format_radiuses(radiuses)
        return url, params

    async def directions(
        self,
        coordinates: List[LatLng],
        radiuses: Optional[List[Optional[float]]] = None,
    ) -> List[ProviderRoute]:
        """
        Request routes through `coordinates` (origin, via-points..., destination).
        `radiuses` gives a snap radius per coordinate in meters, None for unlimited.
        """
        url, params = self.build_request(coordinates, radiuses)
        logger.info("[PROVIDER] %d points, radiuses=%s", len(coordinates), params.get("radiuses", "-"))

        try:
            if self._client is not None:
                resp = await self._client.get(url, params=params, timeout=self.timeout_s)
            else:
                async with httpx.AsyncClient(timeout=self.timeout_s) as client:
                    resp = await client.get(url, params=params)
        except httpx.TimeoutException as exc:
            raise ProviderTimeout(detail=str(exc)) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailable(message="Network error", hint="Check your internet connection", detail=str(exc)) from exc

        if resp.status_code != 200:
            # OSRM reports NoRoute and friends as 400 with a JSON body
            try:
                code = resp.json().get("code", "")
            except ValueError:
                code = ""
            if code in ("NoRoute", "NoSegment"):
                raise EmptyResultSet(detail=code)
            raise ProviderUnavailable(
                hint=f"Routing request failed (HTTP {resp.status_code})",
                detail=resp.text[:200],
            )

        try:
            data = resp.json()
        except ValueError as exc:
            raise ProviderUnavailable(detail="Invalid JSON from routing server") from exc

        routes = parse_osrm_routes(data)
        if not routes:
            raise EmptyResultSet(detail=data.get("code", ""))
        return routes
