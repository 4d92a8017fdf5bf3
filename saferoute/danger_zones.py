"""
Danger Zone Model

Two kinds of zones feed the router:

Real zones
  - Normalized incident-feed records and community reports
  - Live for the session, replaced whenever the viewport is refreshed

Simulated hotspots
  - Generated per 0.01° grid cell from a PRNG seeded with the cell key
  - Same cell key → same hotspots, forever (cached per key)
"""

import logging
import math
from typing import Dict, List, Optional

from .config import (
    HOTSPOT_BBOX_PAD_DEG,
    HOTSPOT_CELL_DEG,
    REAL_ZONE_RADIUS_M,
    REAL_ZONE_SEVERITY,
    SIMULATE_HOTSPOTS,
)
from .models import BoundingBox, DangerZone, LatLng

logger = logging.getLogger(__name__)

_MASK32 = 0xFFFFFFFF

# (category, label, severity)
HOTSPOT_TYPES = [
    ("theft", "Theft", 3),
    ("assault", "Assault", 5),
    ("robbery", "Robbery", 5),
    ("vandalism", "Vandalism", 2),
    ("drugs", "Drug Activity", 3),
    ("burglary", "Burglary", 4),
    ("harassment", "Harassment", 4),
    ("auto_theft", "Vehicle Theft", 3),
    ("disturbance", "Public Disturbance", 1),
    ("weapons", "Weapons Offense", 5),
]


def hash_key(key: str) -> int:
    """32-bit string hash (h = h*31 + c), returned as an unsigned int."""
    h = 0
    for ch in key:
        h = (h * 31 + ord(ch)) & _MASK32
    return h


def _imul(a: int, b: int) -> int:
    return (a * b) & _MASK32


class Mulberry32:
    """Small seeded PRNG yielding floats in [0, 1). Bit-exact with the 32-bit reference."""

    def __init__(self, seed: int):
        self._state = seed & _MASK32

    def __call__(self) -> float:
        self._state = (self._state + 0x6D2B79F5) & _MASK32
        s = self._state
        t = _imul(s ^ (s >> 15), 1 | s)
        t = ((t + _imul(t ^ (t >> 7), 61 | t)) & _MASK32) ^ t
        return ((t ^ (t >> 14)) & _MASK32) / 4294967296.0


def cell_key(cell_lat: float, cell_lng: float) -> str:
    return f"{cell_lat:.3f}_{cell_lng:.3f}"


def generate_hotspots_for_cell(key: str, cell_lat: float, cell_lng: float, cell_deg: float = HOTSPOT_CELL_DEG) -> List[DangerZone]:
    """Generate the 0-2 hotspots of one grid cell. Pure: depends only on the arguments."""
    rng = Mulberry32(hash_key(key))
    count = math.floor(rng() * 2) + (1 if rng() < 0.4 else 0)

    hotspots: List[DangerZone] = []
    for i in range(count):
        lat = cell_lat + rng() * cell_deg
        lng = cell_lng + rng() * cell_deg
        category, label, severity = HOTSPOT_TYPES[math.floor(rng() * len(HOTSPOT_TYPES))]
        recent = math.floor(rng() * 8) + 1
        radius = 40 + rng() * 120
        hotspots.append(
            DangerZone(
                id=f"{key}_{i}",
                center=LatLng(lat=lat, lng=lng),
                radius_m=radius,
                severity=severity,
                recent_incident_count=recent,
                category=category,
                label=label,
                source="simulated",
            )
        )
    return hotspots


def real_zone(
    lat: float,
    lng: float,
    category: str = "other",
    label: str = "",
    source: str = "manual",
    zone_id: str = "",
    radius_m: float = REAL_ZONE_RADIUS_M,
    severity: int = REAL_ZONE_SEVERITY,
) -> DangerZone:
    return DangerZone(
        id=zone_id,
        center=LatLng(lat=lat, lng=lng),
        radius_m=radius_m,
        severity=severity,
        recent_incident_count=1,
        category=category,
        label=label or category.replace("-", " ").capitalize(),
        source=source,
    )


class DangerZoneModel:
    """
    In-memory zone store shared read-only by the scorer, detector and
    detour builder while a route is being planned.
    """

    def __init__(
        self,
        simulate_hotspots: bool = SIMULATE_HOTSPOTS,
        cell_deg: float = HOTSPOT_CELL_DEG,
        pad_deg: float = HOTSPOT_BBOX_PAD_DEG,
        real_zones: Optional[List[DangerZone]] = None,
    ):
        self.simulate_hotspots = simulate_hotspots
        self.cell_deg = cell_deg
        self.pad_deg = pad_deg
        self._real: List[DangerZone] = list(real_zones or [])
        self._cell_cache: Dict[str, List[DangerZone]] = {}

    @property
    def real_zones(self) -> List[DangerZone]:
        return list(self._real)

    def set_real_zones(self, zones: List[DangerZone]) -> None:
        self._real = list(zones)
        logger.info("[ZONES] %d real zones loaded", len(self._real))

    def add_real_zone(self, zone: DangerZone) -> None:
        self._real.append(zone)

    def hotspots_for_cell(self, key: str, cell_lat: float, cell_lng: float) -> List[DangerZone]:
        cached = self._cell_cache.get(key)
        if cached is None:
            cached = generate_hotspots_for_cell(key, cell_lat, cell_lng, self.cell_deg)
            self._cell_cache[key] = cached
        return cached

    def hotspots_in_bounds(self, bbox: BoundingBox) -> List[DangerZone]:
        padded = bbox.padded(self.pad_deg)
        step = self.cell_deg
        hotspots: List[DangerZone] = []
        for i in range(math.floor(padded.south / step), math.floor(padded.north / step) + 1):
            for j in range(math.floor(padded.west / step), math.floor(padded.east / step) + 1):
                cell_lat, cell_lng = i * step, j * step
                hotspots.extend(self.hotspots_for_cell(cell_key(cell_lat, cell_lng), cell_lat, cell_lng))
        return hotspots

    def zones_in_bounds(self, bbox: BoundingBox) -> List[DangerZone]:
        """Real zones whose center lies in `bbox`, followed by the simulated hotspots covering it."""
        zones = [z for z in self._real if bbox.contains(z.center)]
        if self.simulate_hotspots:
            zones.extend(self.hotspots_in_bounds(bbox))
        return zones
