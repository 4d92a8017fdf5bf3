import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Always load .env from the package folder
load_dotenv(Path(__file__).resolve().parent / ".env")


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(name, str(default)))


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(name, str(default)))


def _env_optional_int(name: str) -> Optional[int]:
    value = os.getenv(name, "").strip()
    return int(value) if value else None


def _env_bool(name: str, default: bool) -> bool:
    return os.getenv(name, "true" if default else "false").strip().lower() in ("1", "true", "yes", "on")


OSRM_BASE_URL = os.getenv("OSRM_BASE_URL", "https://router.project-osrm.org").rstrip("/")
OSRM_PROFILE = os.getenv("OSRM_PROFILE", "foot")
PROVIDER_TIMEOUT_S = _env_float("PROVIDER_TIMEOUT_S", 15.0)

FEED_TIMEOUT_S = _env_float("FEED_TIMEOUT_S", 10.0)
NOMINATIM_URL = os.getenv("NOMINATIM_URL", "https://nominatim.openstreetmap.org/reverse")
UK_POLICE_URL = os.getenv("UK_POLICE_URL", "https://data.police.uk/api/crimes-street/all-crime")
DETROIT_SODA_URL = os.getenv("DETROIT_SODA_URL", "https://data.detroitmi.gov/resource/wgv9-drfc.json")
FBI_BASE_URL = os.getenv("FBI_BASE_URL", "https://api.usa.gov/crime/fbi/sapi")
FBI_API_KEY = os.getenv("FBI_API_KEY", "").strip()

APP_HOST = os.getenv("APP_HOST", "127.0.0.1")
APP_PORT = _env_int("APP_PORT", 8000)
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
MAX_WALK_DISTANCE_M = _env_float("MAX_WALK_DISTANCE_M", 25000.0)
CORS_ORIGINS = [
    o.strip()
    for o in os.getenv("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173").split(",")
    if o.strip()
]
SIMULATE_HOTSPOTS = _env_bool("SIMULATE_HOTSPOTS", True)

# Heuristic tuning. These were picked by hand and have not been fitted to data.
METERS_PER_DEGREE = _env_float("METERS_PER_DEGREE", 111320.0)

# Scorer
ROUTE_BBOX_PAD_DEG = _env_float("ROUTE_BBOX_PAD_DEG", 0.005)
SCORE_TARGET_SAMPLES = _env_int("SCORE_TARGET_SAMPLES", 60)
PROXIMITY_WEIGHT = _env_float("PROXIMITY_WEIGHT", 0.4)
SCORE_BASELINE = _env_float("SCORE_BASELINE", 90.0)
SCORE_FLOOR = _env_int("SCORE_FLOOR", 15)
SCORE_CEILING = _env_int("SCORE_CEILING", 98)
EMPTY_ROUTE_SCORE = _env_int("EMPTY_ROUTE_SCORE", 85)

# Intersection detector
NEAR_MISS_BUFFER_M = _env_float("NEAR_MISS_BUFFER_M", 250.0)
DETECTOR_TARGET_SAMPLES = _env_int("DETECTOR_TARGET_SAMPLES", 250)

# Detour builder
CLUSTER_GAP_SAMPLES = _env_int("CLUSTER_GAP_SAMPLES", 20)
DETOUR_BASE_OFFSET_M = _env_float("DETOUR_BASE_OFFSET_M", 400.0)
DETOUR_PER_HIT_OFFSET_M = _env_float("DETOUR_PER_HIT_OFFSET_M", 100.0)
DETOUR_BYPASS_EXTRA_M = _env_float("DETOUR_BYPASS_EXTRA_M", 150.0)
# Unset: the offset grows with every hit in the cluster
DETOUR_CLUSTER_SIZE_CAP = _env_optional_int("DETOUR_CLUSTER_SIZE_CAP")
DETOUR_MIN_MARGIN = _env_int("DETOUR_MIN_MARGIN", 8)
DETOUR_MARGIN_RATIO = _env_float("DETOUR_MARGIN_RATIO", 0.4)
BEARING_WINDOW = _env_int("BEARING_WINDOW", 5)
MAX_DETOUR_WAYPOINTS = _env_int("MAX_DETOUR_WAYPOINTS", 9)

# Planner
MAX_REFINE_ITERATIONS = _env_int("MAX_REFINE_ITERATIONS", 3)
REFINE_BBOX_PAD_DEG = _env_float("REFINE_BBOX_PAD_DEG", 0.018)
WAYPOINT_DEDUP_M = _env_float("WAYPOINT_DEDUP_M", 120.0)
MAX_VIA_POINTS = _env_int("MAX_VIA_POINTS", 12)
VIA_SNAP_RADIUS_M = _env_float("VIA_SNAP_RADIUS_M", 1000.0)
DEDUP_DISTANCE_BUCKET_M = _env_float("DEDUP_DISTANCE_BUCKET_M", 50.0)
MAX_ROUTE_CANDIDATES = _env_int("MAX_ROUTE_CANDIDATES", 4)
ALTERNATIVE_MIN_SCORE = _env_int("ALTERNATIVE_MIN_SCORE", 55)

# Danger zones
HOTSPOT_CELL_DEG = _env_float("HOTSPOT_CELL_DEG", 0.01)
HOTSPOT_BBOX_PAD_DEG = _env_float("HOTSPOT_BBOX_PAD_DEG", 0.005)
REAL_ZONE_RADIUS_M = _env_float("REAL_ZONE_RADIUS_M", 100.0)
REAL_ZONE_SEVERITY = _env_int("REAL_ZONE_SEVERITY", 3)
