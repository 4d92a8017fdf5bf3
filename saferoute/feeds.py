"""
Real incident data → DangerZone.

Each external feed has its own record shape (and one of them changes key
names between API versions). The adapters below normalize records into
DangerZone so the routing core never sees feed formats. A record with
unusable coordinates is skipped; it never aborts the batch.

Feed selection follows the user's region:
  GB             → UK Police street-level crimes
  US, Detroit    → Detroit open-data incidents (FBI for Michigan on failure)
  US, elsewhere  → FBI agency locations for the state
  anywhere else  → no real zones, simulated hotspots and reports only
"""

import logging
import math
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

import httpx
from pydantic import BaseModel

from .config import (
    DETROIT_SODA_URL,
    FBI_API_KEY,
    FBI_BASE_URL,
    FEED_TIMEOUT_S,
    METERS_PER_DEGREE,
    NOMINATIM_URL,
    UK_POLICE_URL,
)
from .danger_zones import real_zone
from .geo import distance_m
from .models import BoundingBox, DangerZone, HazardReport, LatLng

logger = logging.getLogger(__name__)

THIN_MIN_DIST_M = 80.0
MAX_FEED_ZONES = 60
FBI_MAX_DIST_M = 15000.0
FBI_MAX_AGENCIES = 30
DETROIT_LOOKBACK_DAYS = 90

UK_PRIORITY = ["violent-crime", "robbery", "possession-of-weapons", "burglary", "criminal-damage-arson"]

REPORT_CATEGORIES = {
    "poor-lighting": "Poor Lighting",
    "harassment": "Harassment",
    "unsafe-road": "Unsafe Road",
    "suspicious": "Suspicious Activity",
    "closed-path": "Closed Path",
    "other": "Other",
}

# Keyword → category, checked in order against "category description"
DETROIT_KEYWORDS = [
    (("homicide", "murder"), "homicide"),
    (("csc", "rape", "sexual"), "sexual-assault"),
    (("robbery",), "robbery"),
    (("assault", "battery"), "assault"),
    (("shooting", "weapon", "firearm"), "weapons"),
    (("burglary", "breaking"), "burglary"),
    (("arson",), "arson"),
    (("vehicle", "carjack"), "vehicle-crime"),
    (("larceny", "theft", "steal"), "theft"),
    (("drug", "narcotic"), "drugs"),
    (("fraud", "forgery"), "fraud"),
    (("vandal", "damage"), "vandalism"),
    (("kidnap",), "kidnapping"),
]

US_STATES = {
    "alabama": "AL", "alaska": "AK", "arizona": "AZ", "arkansas": "AR", "california": "CA",
    "colorado": "CO", "connecticut": "CT", "delaware": "DE", "florida": "FL", "georgia": "GA",
    "hawaii": "HI", "idaho": "ID", "illinois": "IL", "indiana": "IN", "iowa": "IA", "kansas": "KS",
    "kentucky": "KY", "louisiana": "LA", "maine": "ME", "maryland": "MD", "massachusetts": "MA",
    "michigan": "MI", "minnesota": "MN", "mississippi": "MS", "missouri": "MO", "montana": "MT",
    "nebraska": "NE", "nevada": "NV", "new hampshire": "NH", "new jersey": "NJ", "new mexico": "NM",
    "new york": "NY", "north carolina": "NC", "north dakota": "ND", "ohio": "OH", "oklahoma": "OK",
    "oregon": "OR", "pennsylvania": "PA", "rhode island": "RI", "south carolina": "SC",
    "south dakota": "SD", "tennessee": "TN", "texas": "TX", "utah": "UT", "vermont": "VT",
    "virginia": "VA", "washington": "WA", "west virginia": "WV", "wisconsin": "WI", "wyoming": "WY",
    "district of columbia": "DC",
}


class Region(BaseModel):
    country_code: str = ""
    state: str = ""
    city: str = ""


def _to_float(value: Any) -> Optional[float]:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(f) or math.isinf(f):
        return None
    return f


def _make_zone(lat: Any, lng: Any, **kwargs) -> Optional[DangerZone]:
    flat, flng = _to_float(lat), _to_float(lng)
    if flat is None or flng is None or not (-90 <= flat <= 90 and -180 <= flng <= 180):
        logger.debug("[CRIME] skipping record with bad coordinates: %r, %r", lat, lng)
        return None
    return real_zone(flat, flng, **kwargs)


def thin_by_distance(
    zones: Iterable[DangerZone],
    min_dist_m: float = THIN_MIN_DIST_M,
    meters_per_degree: float = METERS_PER_DEGREE,
) -> List[DangerZone]:
    """Keep zones at least `min_dist_m` apart; earlier zones have priority."""
    kept: List[DangerZone] = []
    for zone in zones:
        too_close = False
        for k in kept:
            dlat = zone.center.lat - k.center.lat
            dlng = zone.center.lng - k.center.lng
            if math.sqrt(dlat * dlat + dlng * dlng) * meters_per_degree < min_dist_m:
                too_close = True
                break
        if not too_close:
            kept.append(zone)
    return kept


def zones_from_uk_crimes(crimes: List[Dict[str, Any]], limit: int = MAX_FEED_ZONES) -> List[DangerZone]:
    def priority(crime: Dict[str, Any]) -> int:
        cat = crime.get("category")
        return UK_PRIORITY.index(cat) if cat in UK_PRIORITY else 99

    zones: List[DangerZone] = []
    for i, crime in enumerate(sorted(crimes, key=priority)):
        location = crime.get("location") or {}
        street = (location.get("street") or {}).get("name", "")
        zone = _make_zone(
            location.get("latitude"),
            location.get("longitude"),
            category=crime.get("category") or "other-crime",
            label=street,
            source="uk-police",
            zone_id=f"uk_{crime.get('id', i)}",
        )
        if zone is not None:
            zones.append(zone)
    return thin_by_distance(zones)[:limit]


def detroit_category(category: str, description: str) -> str:
    text = f"{category} {description}".lower()
    for keywords, name in DETROIT_KEYWORDS:
        if any(k in text for k in keywords):
            return name
    return "other"


def zones_from_detroit(incidents: List[Dict[str, Any]], limit: int = MAX_FEED_ZONES) -> List[DangerZone]:
    zones: List[DangerZone] = []
    for i, inc in enumerate(incidents):
        cat = (inc.get("offense_category") or inc.get("category") or "").lower()
        desc = inc.get("offense_description") or inc.get("description") or cat or "Unknown offense"
        zone = _make_zone(
            inc.get("latitude"),
            inc.get("longitude"),
            category=detroit_category(cat, desc),
            label=desc,
            source="detroit",
            zone_id=f"detroit_{inc.get('crime_id') or inc.get('report_number') or i}",
        )
        if zone is not None:
            zones.append(zone)
    return thin_by_distance(zones)[:limit]


def _unwrap_rows(payload: Any) -> List[Dict[str, Any]]:
    # The agency endpoint has answered with all three shapes over time
    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        return payload.get("results") or payload.get("data") or []
    return []


def zones_from_fbi_agencies(
    payload: Any,
    position: LatLng,
    max_dist_m: float = FBI_MAX_DIST_M,
    limit: int = FBI_MAX_AGENCIES,
) -> List[DangerZone]:
    zones: List[DangerZone] = []
    for agency in _unwrap_rows(payload):
        zone = _make_zone(
            agency.get("latitude"),
            agency.get("longitude"),
            category="law-enforcement-agency",
            label=agency.get("agency_name") or agency.get("agency_type_name") or "Law Enforcement Agency",
            source="fbi",
            zone_id=f"fbi_{agency.get('ori') or agency.get('ORI') or len(zones)}",
        )
        if zone is None or distance_m(position, zone.center) > max_dist_m:
            continue
        zones.append(zone)
        if len(zones) >= limit:
            break
    return zones


def zone_from_report(report: HazardReport) -> DangerZone:
    label = REPORT_CATEGORIES.get(report.category)
    if label is None:
        raise ValueError(f"Unknown report category: {report.category}")
    return real_zone(
        report.location.lat,
        report.location.lng,
        category=report.category,
        label=label,
        source="report",
        zone_id=f"report_{report.category}_{report.location.lat:.5f}_{report.location.lng:.5f}",
    )


async def detect_region(client: httpx.AsyncClient, position: LatLng) -> Region:
    params = {
        "lat": position.lat,
        "lon": position.lng,
        "format": "json",
        "zoom": 10,
        "addressdetails": 1,
    }
    resp = await client.get(NOMINATIM_URL, params=params, headers={"Accept-Language": "en"})
    if resp.status_code != 200:
        return Region()
    data = resp.json()
    if not isinstance(data, dict):
        return Region()
    address = data.get("address") or {}
    if not isinstance(address, dict):
        return Region()
    return Region(
        country_code=address.get("country_code", ""),
        state=address.get("state", ""),
        city=(address.get("city") or address.get("town") or address.get("county") or "").lower(),
    )


async def load_uk_zones(client: httpx.AsyncClient, position: LatLng) -> List[DangerZone]:
    try:
        resp = await client.get(UK_POLICE_URL, params={"lat": position.lat, "lng": position.lng})
        if resp.status_code != 200:
            return []
        crimes = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("[CRIME] UK API error: %s", exc)
        return []
    if not isinstance(crimes, list):
        return []
    zones = zones_from_uk_crimes(crimes)
    logger.info("[CRIME] UK: %d street-level incidents loaded", len(zones))
    return zones


async def load_detroit_zones(
    client: httpx.AsyncClient,
    bounds: BoundingBox,
    now: Optional[datetime] = None,
) -> List[DangerZone]:
    """Raises httpx.HTTPError on failure so the caller can fall back to FBI data."""
    since = (now or datetime.now(timezone.utc)) - timedelta(days=DETROIT_LOOKBACK_DAYS)
    where = (
        "latitude IS NOT NULL "
        f"AND latitude > {bounds.south} AND latitude < {bounds.north} "
        f"AND longitude > {bounds.west} AND longitude < {bounds.east} "
        f"AND incident_timestamp > '{since.strftime('%Y-%m-%dT%H:%M:%S')}'"
    )
    params = {"$where": where, "$order": "incident_timestamp DESC", "$limit": 200}
    resp = await client.get(DETROIT_SODA_URL, params=params)
    resp.raise_for_status()
    incidents = resp.json()
    if not isinstance(incidents, list):
        return []
    zones = zones_from_detroit(incidents)
    logger.info("[CRIME] Detroit: %d street-level incidents loaded", len(zones))
    return zones


async def load_fbi_zones(
    client: httpx.AsyncClient,
    position: LatLng,
    state_name: str,
    api_key: str = FBI_API_KEY,
) -> List[DangerZone]:
    abbr = US_STATES.get(state_name.lower(), "")
    if not abbr:
        logger.warning("[CRIME] Could not determine US state abbreviation for %r", state_name)
        return []
    if not api_key:
        logger.info("[CRIME] FBI_API_KEY not configured, skipping agency data")
        return []
    try:
        resp = await client.get(f"{FBI_BASE_URL}/api/agencies/byStateAbbr/{abbr}", params={"API_KEY": api_key})
        if resp.status_code != 200:
            logger.warning("[CRIME] FBI agencies endpoint returned %d", resp.status_code)
            return []
        payload = resp.json()
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("[CRIME] FBI API error: %s", exc)
        return []
    zones = zones_from_fbi_agencies(payload, position)
    logger.info("[CRIME] FBI: %d agencies placed for %s", len(zones), abbr)
    return zones


async def load_real_zones(
    position: LatLng,
    bounds: BoundingBox,
    client: Optional[httpx.AsyncClient] = None,
) -> List[DangerZone]:
    """Pick the feed for the user's region and return its zones. Never raises on feed errors."""
    if client is None:
        async with httpx.AsyncClient(timeout=FEED_TIMEOUT_S) as own_client:
            return await load_real_zones(position, bounds, own_client)

    try:
        region = await detect_region(client, position)
    except (httpx.HTTPError, ValueError) as exc:
        logger.warning("[CRIME] Country detection failed, trying UK then FBI: %s", exc)
        zones = await load_uk_zones(client, position)
        return zones or await load_fbi_zones(client, position, "")

    if region.country_code == "gb":
        return await load_uk_zones(client, position)
    if region.country_code == "us" and "detroit" in region.city:
        try:
            return await load_detroit_zones(client, bounds)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("[CRIME] Detroit API error, falling back to FBI: %s", exc)
            return await load_fbi_zones(client, position, "Michigan")
    if region.country_code == "us":
        return await load_fbi_zones(client, position, region.state)

    logger.info("[CRIME] Location not in UK or US, using community reports only")
    return []
