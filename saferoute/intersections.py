from typing import List

from .config import DETECTOR_TARGET_SAMPLES, NEAR_MISS_BUFFER_M
from .geo import distance_m
from .models import DangerZone, IntersectionHit, LatLng


def find_danger_intersections(
    coordinates: List[LatLng],
    zones: List[DangerZone],
    buffer_m: float = NEAR_MISS_BUFFER_M,
    target_samples: int = DETECTOR_TARGET_SAMPLES,
) -> List[IntersectionHit]:
    """
    Sampled route points that fall inside a zone or within `buffer_m` of its edge.

    At most one hit per sampled point; the first matching zone wins.
    `sample_index` is the index into `coordinates`, so hits stay in route order.
    """
    hits: List[IntersectionHit] = []
    if not coordinates or not zones:
        return hits

    stride = max(1, len(coordinates) // target_samples)
    for idx in range(0, len(coordinates), stride):
        point = coordinates[idx]
        for zone in zones:
            if distance_m(point, zone.center) < zone.radius_m + buffer_m:
                hits.append(
                    IntersectionHit(
                        point=point,
                        zone_center=zone.center,
                        severity=zone.severity,
                        sample_index=idx,
                    )
                )
                break
    return hits
