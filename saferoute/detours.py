"""
Detour waypoint synthesis.

Intersection hits are grouped into encounters (clusters of hits close
together along the route). Each encounter yields three via-points pushed
off to the side of the road that faces away from the hazard:

    entry  ── a margin before the cluster
    bypass ── at the cluster middle, pushed a bit further out
    exit   ── a margin after the cluster

The routing provider snaps these to real paths, so they only need to be
plausible, not on a road.
"""

from typing import List, Optional

from .config import (
    BEARING_WINDOW,
    CLUSTER_GAP_SAMPLES,
    DETOUR_BASE_OFFSET_M,
    DETOUR_BYPASS_EXTRA_M,
    DETOUR_CLUSTER_SIZE_CAP,
    DETOUR_MARGIN_RATIO,
    DETOUR_MIN_MARGIN,
    DETOUR_PER_HIT_OFFSET_M,
    MAX_DETOUR_WAYPOINTS,
    MAX_VIA_POINTS,
    WAYPOINT_DEDUP_M,
)
from .geo import angle_diff, bearing_deg, destination_point, distance_m
from .models import DetourWaypoint, IntersectionHit, LatLng


def cluster_hits(hits: List[IntersectionHit], max_gap: int = CLUSTER_GAP_SAMPLES) -> List[List[IntersectionHit]]:
    """Split route-ordered hits wherever two successive sample indices are `max_gap` or more apart."""
    clusters: List[List[IntersectionHit]] = []
    for hit in hits:
        if clusters and hit.sample_index - clusters[-1][-1].sample_index < max_gap:
            clusters[-1].append(hit)
        else:
            clusters.append([hit])
    return clusters


def local_bearing(coordinates: List[LatLng], idx: int, window: int = BEARING_WINDOW) -> float:
    """Road heading at `idx`, measured across ±`window` points to smooth out jitter."""
    a = coordinates[max(0, idx - window)]
    b = coordinates[min(len(coordinates) - 1, idx + window)]
    if distance_m(a, b) == 0:
        return 0.0
    return bearing_deg(a, b)


def safe_side_bearing(point: LatLng, road_bearing: float, zone_center: LatLng) -> float:
    """The perpendicular to the road (left or right) pointing further away from the zone."""
    to_zone = bearing_deg(point, zone_center)
    left = (road_bearing + 270.0) % 360.0
    right = (road_bearing + 90.0) % 360.0
    if abs(angle_diff(left, to_zone)) > abs(angle_diff(right, to_zone)):
        return left
    return right


def waypoints_for_cluster(
    coordinates: List[LatLng],
    cluster: List[IntersectionHit],
    base_offset_m: float = DETOUR_BASE_OFFSET_M,
    per_hit_offset_m: float = DETOUR_PER_HIT_OFFSET_M,
    bypass_extra_m: float = DETOUR_BYPASS_EXTRA_M,
    size_cap: Optional[int] = DETOUR_CLUSTER_SIZE_CAP,
    min_margin: int = DETOUR_MIN_MARGIN,
    margin_ratio: float = DETOUR_MARGIN_RATIO,
    window: int = BEARING_WINDOW,
) -> List[DetourWaypoint]:
    """
    Entry, bypass and exit waypoints for one cluster, in route order.

    The safe side is chosen once, at the cluster middle, and shared by all
    three points. The offset is `base + hits × per_hit`; `size_cap` bounds
    the hit count when set.
    """
    first = cluster[0].sample_index
    last = cluster[-1].sample_index
    span = last - first
    margin = max(min_margin, int(margin_ratio * span))
    last_idx = len(coordinates) - 1

    entry_idx = max(0, first - margin)
    mid_idx = (first + last) // 2
    exit_idx = min(last_idx, last + margin)

    anchor = cluster[len(cluster) // 2]
    mid_road = local_bearing(coordinates, mid_idx, window)
    side = angle_diff(safe_side_bearing(coordinates[mid_idx], mid_road, anchor.zone_center), mid_road)

    hit_count = len(cluster) if size_cap is None else min(len(cluster), size_cap)
    offset = base_offset_m + hit_count * per_hit_offset_m
    plan = [
        (entry_idx, offset),
        (mid_idx, offset + bypass_extra_m),
        (exit_idx, offset),
    ]

    waypoints: List[DetourWaypoint] = []
    for idx, dist in plan:
        heading = (local_bearing(coordinates, idx, window) + side) % 360.0
        waypoints.append(
            DetourWaypoint(
                point=destination_point(coordinates[idx], heading, dist),
                route_order_hint=idx,
            )
        )
    return waypoints


def build_detour_waypoints(
    coordinates: List[LatLng],
    hits: List[IntersectionHit],
    max_waypoints: int = MAX_DETOUR_WAYPOINTS,
    max_gap: int = CLUSTER_GAP_SAMPLES,
    size_cap: Optional[int] = DETOUR_CLUSTER_SIZE_CAP,
) -> List[DetourWaypoint]:
    if not coordinates or not hits:
        return []
    waypoints: List[DetourWaypoint] = []
    for cluster in cluster_hits(hits, max_gap):
        waypoints.extend(waypoints_for_cluster(coordinates, cluster, size_cap=size_cap))
    waypoints.sort(key=lambda w: w.route_order_hint)
    return waypoints[:max_waypoints]


def merge_waypoints(
    existing: List[DetourWaypoint],
    new: List[DetourWaypoint],
    origin: LatLng,
    dedup_m: float = WAYPOINT_DEDUP_M,
    max_via: int = MAX_VIA_POINTS,
) -> List[DetourWaypoint]:
    """
    Add `new` to `existing`, dropping any new point within `dedup_m` of one
    already kept, then order by distance from `origin` and cap at `max_via`.
    """
    merged = list(existing)
    for wp in new:
        if any(distance_m(wp.point, kept.point) < dedup_m for kept in merged):
            continue
        merged.append(wp)
    merged.sort(key=lambda w: distance_m(origin, w.point))
    return merged[:max_via]
