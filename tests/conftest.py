import asyncio
import math
from typing import List, Optional

import pytest

from saferoute.danger_zones import DangerZoneModel, real_zone
from saferoute.errors import RoutingError
from saferoute.geo import distance_m
from saferoute.models import LatLng, ProviderRoute, RouteStep

# Ann Arbor scenario
ORIGIN = LatLng(lat=42.2808, lng=-83.7430)
DESTINATION = LatLng(lat=42.2760, lng=-83.7450)
ZONE_ON_PATH = real_zone(42.2780, -83.7440, category="assault", radius_m=100, severity=5, zone_id="on-path")

WALKING_SPEED_MPS = 1.4


def straight_polyline(points: List[LatLng], spacing_m: float = 10.0) -> List[LatLng]:
    """Straight segments through `points`, with a vertex every `spacing_m` meters."""
    out: List[LatLng] = []
    for a, b in zip(points, points[1:]):
        n = max(1, math.ceil(distance_m(a, b) / spacing_m))
        for k in range(n):
            t = k / n
            out.append(LatLng(lat=a.lat + (b.lat - a.lat) * t, lng=a.lng + (b.lng - a.lng) * t))
    out.append(points[-1])
    return out


def straight_route(points: List[LatLng], spacing_m: float = 10.0, street: str = "Main St") -> ProviderRoute:
    coords = straight_polyline(points, spacing_m)
    length = sum(distance_m(a, b) for a, b in zip(coords, coords[1:]))
    return ProviderRoute(
        coordinates=coords,
        distance_m=length,
        duration_s=length / WALKING_SPEED_MPS,
        steps=[
            RouteStep(maneuver_type="depart", name=street, distance_m=length),
            RouteStep(maneuver_type="arrive", distance_m=0.0),
        ],
    )


class StraightLineProvider:
    """
    Routing provider stand-in: walks straight lines through every requested
    coordinate, so a via-point is always honored exactly.
    """

    def __init__(self, spacing_m: float = 10.0, fail_on_call: Optional[int] = None, error: Optional[RoutingError] = None):
        self.spacing_m = spacing_m
        self.fail_on_call = fail_on_call
        self.error = error
        self.calls = []

    async def directions(self, coordinates, radiuses=None):
        self.calls.append((list(coordinates), radiuses))
        if self.fail_on_call is not None and len(self.calls) >= self.fail_on_call:
            raise self.error or RoutingError()
        return [straight_route(list(coordinates), self.spacing_m)]


class GatedProvider(StraightLineProvider):
    """Blocks its first call until `release` is set."""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def directions(self, coordinates, radiuses=None):
        first = not self.calls
        routes = await super().directions(coordinates, radiuses)
        if first:
            self.started.set()
            await self.release.wait()
        return routes


@pytest.fixture
def quiet_model():
    """Zone model without simulated hotspots, so only injected zones count."""
    return DangerZoneModel(simulate_hotspots=False)


@pytest.fixture
def scenario_model():
    return DangerZoneModel(simulate_hotspots=False, real_zones=[ZONE_ON_PATH])
