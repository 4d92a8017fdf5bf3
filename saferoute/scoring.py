"""
Route Safety Scoring

For every sampled route point and every nearby zone:

    proximity = 1 - min(d / (2 × radius), 1)
    danger   += proximity × severity × recent_incidents × PROXIMITY_WEIGHT

Final score = clamp(round(BASELINE - danger), FLOOR, CEILING)

A route with no zones nearby lands on the baseline (90), never 100:
the score is a heuristic and should not read as a guarantee.
"""

import math
from typing import List

from .config import (
    EMPTY_ROUTE_SCORE,
    METERS_PER_DEGREE,
    PROXIMITY_WEIGHT,
    ROUTE_BBOX_PAD_DEG,
    SCORE_BASELINE,
    SCORE_CEILING,
    SCORE_FLOOR,
    SCORE_TARGET_SAMPLES,
)
from .danger_zones import DangerZoneModel
from .geo import quick_dist_deg
from .models import BoundingBox, DangerZone, LatLng


def sample_stride(n_points: int, target_samples: int) -> int:
    return max(1, n_points // target_samples)


def danger_along_route(
    coordinates: List[LatLng],
    zones: List[DangerZone],
    target_samples: int = SCORE_TARGET_SAMPLES,
    proximity_weight: float = PROXIMITY_WEIGHT,
    meters_per_degree: float = METERS_PER_DEGREE,
) -> float:
    """Accumulated danger of a polyline against an explicit zone list."""
    danger = 0.0
    step = sample_stride(len(coordinates), target_samples)
    for point in coordinates[::step]:
        for zone in zones:
            d = quick_dist_deg(point, zone.center)
            reach = 2 * zone.radius_m / meters_per_degree
            if d < reach:
                proximity = 1 - min(d / reach, 1.0)
                danger += proximity * zone.severity * zone.recent_incident_count * proximity_weight
    return danger


def safety_from_danger(
    danger: float,
    baseline: float = SCORE_BASELINE,
    floor: int = SCORE_FLOOR,
    ceiling: int = SCORE_CEILING,
) -> int:
    # half-up rounding
    return max(floor, min(ceiling, math.floor(baseline - danger + 0.5)))


def score_route_safety(
    coordinates: List[LatLng],
    zone_model: DangerZoneModel,
    pad_deg: float = ROUTE_BBOX_PAD_DEG,
    empty_score: int = EMPTY_ROUTE_SCORE,
) -> int:
    """Safety score in [15, 98] for a polyline; 85 for an empty one."""
    if not coordinates:
        return empty_score
    bbox = BoundingBox.around(coordinates, pad_deg)
    zones = zone_model.zones_in_bounds(bbox)
    return safety_from_danger(danger_along_route(coordinates, zones))


def safety_class(score: int) -> str:
    if score >= 75:
        return "high"
    if score >= 55:
        return "medium"
    return "low"
