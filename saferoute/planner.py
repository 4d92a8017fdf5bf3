"""
Safety-aware route planning.

    Idle → DirectFetchInFlight → Refining(1..MAX) → Done
                 │
                 └──────────→ Failed  (pass 1 only)

Pass 1 asks the provider for the plain origin → destination routes.
Each refinement iteration then checks the current best route against the
danger zones, turns the hits into detour waypoints, and asks the provider
again with those via-points. Iterations are strictly sequential because
each one needs the geometry returned by the previous one.

Zone queries, hit detection and scoring are CPU-bound and run in the
threadpool, so the event loop keeps serving other clients and the
provider timeout can still fire.
"""

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol

from fastapi.concurrency import run_in_threadpool

from .config import (
    ALTERNATIVE_MIN_SCORE,
    DEDUP_DISTANCE_BUCKET_M,
    MAX_REFINE_ITERATIONS,
    MAX_ROUTE_CANDIDATES,
    PROVIDER_TIMEOUT_S,
    REFINE_BBOX_PAD_DEG,
    VIA_SNAP_RADIUS_M,
)
from .danger_zones import DangerZoneModel
from .detours import build_detour_waypoints, merge_waypoints
from .directions import route_name
from .errors import ProviderTimeout, RouteFetchSuperseded, RoutingError
from .intersections import find_danger_intersections
from .models import BoundingBox, DetourWaypoint, LatLng, ProviderRoute, RouteCandidate
from .scoring import safety_class, score_route_safety

logger = logging.getLogger(__name__)

ROUTE_COLORS = ["#6C63FF", "#8B83FF", "#A59BFF", "#FFD600"]


class RoutingProvider(Protocol):
    async def directions(
        self,
        coordinates: List[LatLng],
        radiuses: Optional[List[Optional[float]]] = None,
    ) -> List[ProviderRoute]: ...


class FetchState(str, Enum):
    IDLE = "idle"
    DIRECT_FETCH_IN_FLIGHT = "direct_fetch_in_flight"
    REFINING = "refining"
    DONE = "done"
    FAILED = "failed"


@dataclass
class RouteSession:
    """Everything one fetch produces. Replaced wholesale by the next fetch."""

    origin: LatLng
    destination: LatLng
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex[:12])
    state: FetchState = FetchState.IDLE
    direct_routes: List[ProviderRoute] = field(default_factory=list)
    safe_pool: List[ProviderRoute] = field(default_factory=list)
    waypoints: List[DetourWaypoint] = field(default_factory=list)
    iterations: int = 0
    best_route: Optional[ProviderRoute] = None
    candidates: List[RouteCandidate] = field(default_factory=list)
    error: Optional[RoutingError] = None

    def candidate(self, route_id: str) -> Optional[RouteCandidate]:
        for c in self.candidates:
            if c.id == route_id:
                return c
        return None


def dedupe_by_distance(routes: List[ProviderRoute], bucket_m: float = DEDUP_DISTANCE_BUCKET_M) -> List[ProviderRoute]:
    """
    Drop routes whose length is within `bucket_m` of an earlier one. First occurrence wins.

    Stricter than rounding lengths into fixed 50 m buckets: 1000 m and 1049 m
    land in different buckets but still collapse here, so two routes less
    than `bucket_m` apart never both survive.
    """
    kept: List[ProviderRoute] = []
    for route in routes:
        if any(abs(route.distance_m - k.distance_m) < bucket_m for k in kept):
            continue
        kept.append(route)
    return kept


def label_candidates(scores: List[int], durations: List[float], min_ok_score: int = ALTERNATIVE_MIN_SCORE) -> List[str]:
    """Labels for candidates already sorted by score, best first."""
    if not scores:
        return []
    fastest = min(range(len(durations)), key=lambda i: durations[i])
    labels = []
    for i, score in enumerate(scores):
        if i == 0:
            labels.append("Safest")
        elif i == fastest:
            labels.append("Fastest")
        elif score >= min_ok_score:
            labels.append("Alternative")
        else:
            labels.append("Avoid")
    return labels


class RoutePlanner:
    """
    Owns the route session of one routing panel.

    Starting a new fetch supersedes the one in flight: the old task is
    cancelled and its results are never applied (last request wins).
    """

    def __init__(
        self,
        provider: RoutingProvider,
        zone_model: DangerZoneModel,
        max_iterations: int = MAX_REFINE_ITERATIONS,
        timeout_s: float = PROVIDER_TIMEOUT_S,
        max_candidates: int = MAX_ROUTE_CANDIDATES,
    ):
        self.provider = provider
        self.zone_model = zone_model
        self.max_iterations = max_iterations
        self.timeout_s = timeout_s
        self.max_candidates = max_candidates
        self.session: Optional[RouteSession] = None
        self._task: Optional[asyncio.Task] = None

    async def plan(self, origin: LatLng, destination: LatLng) -> RouteSession:
        session = RouteSession(origin=origin, destination=destination)
        if self._task is not None and not self._task.done():
            logger.info("[ROUTING] superseding session %s", self.session.session_id if self.session else "?")
            self._task.cancel()
        self.session = session

        task = asyncio.ensure_future(self._run(session))
        self._task = task
        try:
            await task
        except asyncio.CancelledError:
            if self.session is not session:
                raise RouteFetchSuperseded(detail=session.session_id)
            raise
        return session

    def close(self) -> None:
        """Routing panel closed: discard the session and cancel any fetch in flight."""
        if self._task is not None and not self._task.done():
            self._task.cancel()
        self._task = None
        self.session = None

    def _ensure_current(self, session: RouteSession) -> None:
        if self.session is not session:
            logger.info("[ROUTING] session %s is stale, dropping its result", session.session_id)
            raise RouteFetchSuperseded(detail=session.session_id)

    async def _request(
        self,
        session: RouteSession,
        coordinates: List[LatLng],
        radiuses: Optional[List[Optional[float]]] = None,
    ) -> List[ProviderRoute]:
        try:
            routes = await asyncio.wait_for(self.provider.directions(coordinates, radiuses), self.timeout_s)
        except asyncio.TimeoutError as exc:
            raise ProviderTimeout(detail=f"no response within {self.timeout_s}s") from exc
        self._ensure_current(session)
        return routes

    async def _run(self, session: RouteSession) -> None:
        session.state = FetchState.DIRECT_FETCH_IN_FLIGHT
        logger.info("[ROUTING] %s: %s → %s", session.session_id, session.origin, session.destination)
        try:
            session.direct_routes = await self._request(session, [session.origin, session.destination])
        except RouteFetchSuperseded:
            raise
        except RoutingError as exc:
            logger.warning("[ROUTING] pass 1 failed: %s (%s)", exc.message, exc.detail)
            session.state = FetchState.FAILED
            session.error = exc
            raise

        session.state = FetchState.REFINING
        await self._refine(session)

        self._ensure_current(session)
        candidates = await run_in_threadpool(self._finalize, session)
        self._ensure_current(session)
        session.candidates = candidates
        session.state = FetchState.DONE
        logger.info(
            "[ROUTING] %s done: %d candidates after %d refinement iterations",
            session.session_id,
            len(session.candidates),
            session.iterations,
        )

    async def _refine(self, session: RouteSession) -> None:
        best = session.direct_routes[0]
        session.best_route = best
        # One zone query for the whole loop
        bbox = BoundingBox.around(best.coordinates or [session.origin, session.destination], REFINE_BBOX_PAD_DEG)
        zones = await run_in_threadpool(self.zone_model.zones_in_bounds, bbox)

        waypoints: List[DetourWaypoint] = []
        for iteration in range(1, self.max_iterations + 1):
            hits = await run_in_threadpool(find_danger_intersections, best.coordinates, zones)
            self._ensure_current(session)
            if not hits:
                logger.info("[REFINE] iteration %d: route is clear", iteration)
                break

            waypoints = merge_waypoints(waypoints, build_detour_waypoints(best.coordinates, hits), session.origin)
            session.waypoints = waypoints
            session.iterations = iteration
            logger.info("[REFINE] iteration %d: %d hits, %d via-points", iteration, len(hits), len(waypoints))

            coords = [session.origin] + [w.point for w in waypoints] + [session.destination]
            radiuses: List[Optional[float]] = [None] + [VIA_SNAP_RADIUS_M] * len(waypoints) + [None]
            try:
                routes = await self._request(session, coords, radiuses)
            except RouteFetchSuperseded:
                raise
            except RoutingError as exc:
                logger.warning("[REFINE] iteration %d failed, keeping best route so far: %s", iteration, exc.message)
                break

            best = routes[0]
            session.best_route = best
            session.safe_pool.extend(routes)

    def _finalize(self, session: RouteSession) -> List[RouteCandidate]:
        pool = dedupe_by_distance(session.safe_pool + session.direct_routes)[: self.max_candidates]

        scored = [(score_route_safety(r.coordinates, self.zone_model), i, r) for i, r in enumerate(pool)]
        scored.sort(key=lambda item: -item[0])
        labels = label_candidates([s for s, _, _ in scored], [r.duration_s for _, _, r in scored])

        candidates: List[RouteCandidate] = []
        for rank, ((score, idx, route), label) in enumerate(zip(scored, labels)):
            recommended = rank == 0
            candidates.append(
                RouteCandidate(
                    id=f"{session.session_id}-{rank}",
                    label=label,
                    recommended=recommended,
                    name=route_name(route.steps, idx),
                    color=ROUTE_COLORS[rank % len(ROUTE_COLORS)],
                    weight=5 if recommended else 4,
                    safety_score=score,
                    safety_class=safety_class(score),
                    distance_m=route.distance_m,
                    duration_s=route.duration_s,
                    coordinates=route.coordinates,
                    steps=route.steps,
                )
            )
        return candidates
