"""
Spherical geometry on LatLng points.

Pure functions only. Distances are in meters, angles in degrees.
"""

import math

from .models import LatLng

EARTH_RADIUS_M = 6371000.0


def distance_m(a: LatLng, b: LatLng) -> float:
    """Great-circle (haversine) distance between two points."""
    phi1, phi2 = math.radians(a.lat), math.radians(b.lat)
    dphi = math.radians(b.lat - a.lat)
    dlambda = math.radians(b.lng - a.lng)
    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    return 2 * EARTH_RADIUS_M * math.atan2(math.sqrt(h), math.sqrt(1 - h))


def bearing_deg(a: LatLng, b: LatLng) -> float:
    """Initial forward azimuth from a to b, in [0, 360)."""
    phi1, phi2 = math.radians(a.lat), math.radians(b.lat)
    dlambda = math.radians(b.lng - a.lng)
    y = math.sin(dlambda) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlambda)
    return (math.degrees(math.atan2(y, x)) + 360.0) % 360.0


def destination_point(origin: LatLng, bearing: float, distance: float) -> LatLng:
    """
    Point reached by travelling `distance` meters from `origin` along the
    great circle with initial heading `bearing`.
    """
    delta = distance / EARTH_RADIUS_M
    theta = math.radians(bearing)
    phi1 = math.radians(origin.lat)
    lambda1 = math.radians(origin.lng)

    sin_phi2 = math.sin(phi1) * math.cos(delta) + math.cos(phi1) * math.sin(delta) * math.cos(theta)
    phi2 = math.asin(max(-1.0, min(1.0, sin_phi2)))
    lambda2 = lambda1 + math.atan2(
        math.sin(theta) * math.sin(delta) * math.cos(phi1),
        math.cos(delta) - math.sin(phi1) * sin_phi2,
    )
    lng = (math.degrees(lambda2) + 540.0) % 360.0 - 180.0
    return LatLng(lat=math.degrees(phi2), lng=lng)


def quick_dist_deg(a: LatLng, b: LatLng) -> float:
    """Planar distance in degrees with the longitude scaled by cos(lat)."""
    dlat = a.lat - b.lat
    dlng = (a.lng - b.lng) * math.cos(math.radians(a.lat))
    return math.sqrt(dlat * dlat + dlng * dlng)


def angle_diff(a: float, b: float) -> float:
    """Signed smallest difference a - b, in (-180, 180]."""
    d = (a - b) % 360.0
    if d > 180.0:
        d -= 360.0
    return d
