import logging
from typing import Dict

from fastapi import FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware

from .config import CORS_ORIGINS, LOG_LEVEL, MAX_WALK_DISTANCE_M
from .danger_zones import DangerZoneModel
from .directions import flatten_steps
from .errors import EmptyResultSet, RouteFetchSuperseded, RoutingError
from .feeds import load_real_zones, zone_from_report
from .geo import distance_m
from .models import (
    BoundingBox,
    DangerZone,
    DangerZonesResponse,
    HazardReport,
    RouteRequest,
    RoutesResponse,
    StepsResponse,
    ZoneRefreshRequest,
)
from .planner import RoutePlanner
from .provider import OSRMProvider

logging.basicConfig(level=LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(title="SafeRoute Backend", version="0.1.0")

# CORS: allow frontend dev server on localhost:5173, adjust as needed
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.state.zone_model = DangerZoneModel()
app.state.provider = OSRMProvider()
app.state.planners = {}


def get_planner(client_id: str) -> RoutePlanner:
    planners: Dict[str, RoutePlanner] = app.state.planners
    planner = planners.get(client_id)
    if planner is None:
        planner = RoutePlanner(app.state.provider, app.state.zone_model)
        planners[client_id] = planner
    return planner


@app.post("/api/routes", response_model=RoutesResponse)
async def get_routes(payload: RouteRequest) -> RoutesResponse:
    """
    Safety-aware walking routes:

    1. Direct origin → destination routes from the provider
    2. Up to three detour refinements around danger zones on the best route
    3. Deduplicated, scored and labeled candidates (Safest first)
    """
    if payload.origin.lat == 0 and payload.origin.lng == 0:
        raise HTTPException(
            status_code=400,
            detail="Invalid origin coordinates (0, 0). Please enable location access and try again.",
        )

    span_m = distance_m(payload.origin, payload.destination)
    if span_m > MAX_WALK_DISTANCE_M:
        raise HTTPException(
            status_code=400,
            detail=f"Destination is {span_m / 1000:.1f} km away, beyond the {MAX_WALK_DISTANCE_M / 1000:.0f} km walking limit.",
        )

    planner = get_planner(payload.client_id)
    try:
        session = await planner.plan(payload.origin, payload.destination)
    except RouteFetchSuperseded as exc:
        raise HTTPException(status_code=409, detail=exc.to_dict())
    except EmptyResultSet as exc:
        raise HTTPException(status_code=404, detail=exc.to_dict())
    except RoutingError as exc:
        raise HTTPException(status_code=502, detail=exc.to_dict())

    return RoutesResponse(
        session_id=session.session_id,
        state=session.state.value,
        iterations=session.iterations,
        routes=session.candidates,
    )


@app.get("/api/routes/{route_id}/steps", response_model=StepsResponse)
async def get_route_steps(route_id: str, client_id: str = "default") -> StepsResponse:
    planner = app.state.planners.get(client_id)
    session = planner.session if planner else None
    candidate = session.candidate(route_id) if session else None
    if candidate is None:
        raise HTTPException(status_code=404, detail=f"Route {route_id} not found")
    return StepsResponse(route_id=route_id, steps=flatten_steps(candidate))


@app.delete("/api/routes", status_code=204)
async def close_routes(client_id: str = "default") -> None:
    planner = app.state.planners.pop(client_id, None)
    if planner is not None:
        planner.close()


@app.get("/api/danger-zones", response_model=DangerZonesResponse)
async def get_danger_zones(
    south: float = Query(..., ge=-90, le=90),
    west: float = Query(..., ge=-180, le=180),
    north: float = Query(..., ge=-90, le=90),
    east: float = Query(..., ge=-180, le=180),
) -> DangerZonesResponse:
    if south > north or west > east:
        raise HTTPException(status_code=400, detail="Bounds are inverted")
    if (north - south) * (east - west) > 1.0:
        raise HTTPException(status_code=400, detail="Bounds too large, zoom in to see danger zones")
    bbox = BoundingBox(south=south, west=west, north=north, east=east)
    return DangerZonesResponse(zones=app.state.zone_model.zones_in_bounds(bbox))


@app.post("/api/danger-zones/refresh", response_model=DangerZonesResponse)
async def refresh_danger_zones(payload: ZoneRefreshRequest) -> DangerZonesResponse:
    """Reload real incident zones for the viewport. Community reports are kept."""
    zones = await load_real_zones(payload.position, payload.bounds)
    model: DangerZoneModel = app.state.zone_model
    reports = [z for z in model.real_zones if z.source == "report"]
    model.set_real_zones(zones + reports)
    return DangerZonesResponse(zones=model.real_zones)


@app.post("/api/reports", response_model=DangerZone, status_code=201)
async def submit_report(report: HazardReport) -> DangerZone:
    try:
        zone = zone_from_report(report)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    app.state.zone_model.add_real_zone(zone)
    logger.info("[REPORT] %s at %.5f, %.5f", zone.label, zone.center.lat, zone.center.lng)
    return zone
