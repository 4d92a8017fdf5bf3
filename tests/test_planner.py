import asyncio
import threading

import pytest
from conftest import (
    DESTINATION,
    ORIGIN,
    GatedProvider,
    StraightLineProvider,
    straight_route,
)

from saferoute.danger_zones import DangerZoneModel, real_zone
from saferoute.errors import EmptyResultSet, ProviderTimeout, ProviderUnavailable, RouteFetchSuperseded
from saferoute.intersections import find_danger_intersections
from saferoute.models import LatLng
from saferoute.planner import FetchState, RoutePlanner, dedupe_by_distance, label_candidates
from saferoute.scoring import score_route_safety

# 3 km due south; the zone sits 30 m east of the midpoint, far from both ends
LONG_ORIGIN = LatLng(lat=42.2900, lng=-83.7430)
LONG_DESTINATION = LatLng(lat=42.2630, lng=-83.7430)
MIDPOINT_ZONE = real_zone(42.2765, -83.74264, radius_m=100, severity=5, zone_id="mid")


def _plan(planner, origin=ORIGIN, destination=DESTINATION):
    return asyncio.run(planner.plan(origin, destination))


def test_end_to_end_detour_beats_direct_route(scenario_model):
    provider = StraightLineProvider()
    session = _plan(RoutePlanner(provider, scenario_model))

    assert session.state is FetchState.DONE
    direct_score = score_route_safety(session.direct_routes[0].coordinates, scenario_model)
    assert direct_score < 70, f"Direct route crosses a severity-5 zone, got {direct_score}"

    scores = [c.safety_score for c in session.candidates]
    assert max(scores) >= 80, f"Refinement should find a route scoring at least 80, got {scores}"
    assert scores == sorted(scores, reverse=True)

    best = session.candidates[0]
    assert best.label == "Safest"
    assert best.recommended
    assert best.weight == 5
    assert all(not c.recommended for c in session.candidates[1:])

    # the direct route is the quickest walk
    direct = [c for c in session.candidates if c.distance_m == session.direct_routes[0].distance_m]
    assert direct and direct[0].label == "Fastest"


def test_refinement_requests_carry_via_points_and_snap_radii(scenario_model):
    provider = StraightLineProvider()
    _plan(RoutePlanner(provider, scenario_model))

    first_coords, first_radiuses = provider.calls[0]
    assert first_coords == [ORIGIN, DESTINATION]
    assert first_radiuses is None

    coords, radiuses = provider.calls[1]
    assert coords[0] == ORIGIN and coords[-1] == DESTINATION
    assert 3 <= len(coords) - 2 <= 12
    assert radiuses[0] is None and radiuses[-1] is None
    assert all(r == 1000 for r in radiuses[1:-1])


def test_refinement_converges_around_single_zone():
    model = DangerZoneModel(simulate_hotspots=False, real_zones=[MIDPOINT_ZONE])
    provider = StraightLineProvider()
    session = _plan(RoutePlanner(provider, model), LONG_ORIGIN, LONG_DESTINATION)

    assert 1 <= session.iterations <= 3
    assert find_danger_intersections(session.best_route.coordinates, [MIDPOINT_ZONE]) == []
    assert len(provider.calls) == session.iterations + 1


def test_clear_route_skips_refinement(quiet_model):
    provider = StraightLineProvider()
    session = _plan(RoutePlanner(provider, quiet_model))

    assert session.iterations == 0
    assert len(provider.calls) == 1
    assert len(session.candidates) == 1
    assert session.candidates[0].label == "Safest"
    assert session.candidates[0].safety_score == 90


def test_iterations_bounded(scenario_model):
    provider = StraightLineProvider()
    session = _plan(RoutePlanner(provider, scenario_model, max_iterations=2))
    assert session.iterations <= 2
    assert len(provider.calls) <= 3


def test_direct_fetch_failure_is_fatal(scenario_model):
    planner = RoutePlanner(StraightLineProvider(fail_on_call=1, error=ProviderUnavailable()), scenario_model)
    with pytest.raises(ProviderUnavailable):
        _plan(planner)
    assert planner.session.state is FetchState.FAILED
    assert planner.session.error.retryable


def test_direct_fetch_empty_result(scenario_model):
    planner = RoutePlanner(StraightLineProvider(fail_on_call=1, error=EmptyResultSet()), scenario_model)
    with pytest.raises(EmptyResultSet):
        _plan(planner)


def test_refinement_failure_keeps_direct_route(scenario_model):
    provider = StraightLineProvider(fail_on_call=2, error=ProviderUnavailable())
    session = _plan(RoutePlanner(provider, scenario_model))

    assert session.state is FetchState.DONE
    assert session.iterations == 1
    assert len(session.candidates) == 1
    assert session.candidates[0].distance_m == session.direct_routes[0].distance_m


def test_provider_timeout(scenario_model):
    class SlowProvider:
        async def directions(self, coordinates, radiuses=None):
            await asyncio.sleep(1)
            return [straight_route(list(coordinates))]

    planner = RoutePlanner(SlowProvider(), scenario_model, timeout_s=0.01)
    with pytest.raises(ProviderTimeout):
        _plan(planner)


def test_newer_fetch_supersedes_older(quiet_model):
    other_destination = LatLng(lat=42.2850, lng=-83.7400)

    async def scenario():
        provider = GatedProvider()
        planner = RoutePlanner(provider, quiet_model)
        stale = asyncio.ensure_future(planner.plan(ORIGIN, DESTINATION))
        await provider.started.wait()

        fresh = await planner.plan(ORIGIN, other_destination)
        with pytest.raises(RouteFetchSuperseded):
            await stale
        return planner, fresh

    planner, fresh = asyncio.run(scenario())
    assert planner.session is fresh
    assert fresh.state is FetchState.DONE
    assert fresh.destination == other_destination


def test_close_discards_session(quiet_model):
    planner = RoutePlanner(StraightLineProvider(), quiet_model)
    _plan(planner)
    assert planner.session is not None
    planner.close()
    assert planner.session is None


def test_duplicate_alternatives_collapse(quiet_model):
    class TwinProvider:
        async def directions(self, coordinates, radiuses=None):
            a = straight_route(list(coordinates))
            b = a.model_copy(update={"distance_m": a.distance_m + 20, "duration_s": a.duration_s + 10})
            return [a, b]

    session = _plan(RoutePlanner(TwinProvider(), quiet_model))
    assert len(session.candidates) == 1


def test_dedupe_by_distance_first_wins():
    base = straight_route([ORIGIN, DESTINATION])
    routes = [base.model_copy(update={"distance_m": d}) for d in (1000, 1030, 1100, 1149, 1200)]
    kept = dedupe_by_distance(routes)
    assert [r.distance_m for r in kept] == [1000, 1100, 1200]


def test_labels():
    labels = label_candidates([90, 80, 50, 60], [600, 300, 500, 700])
    assert labels == ["Safest", "Fastest", "Avoid", "Alternative"]
    # fastest already first: nobody else is Fastest
    assert label_candidates([90, 70], [100, 200]) == ["Safest", "Alternative"]
    assert label_candidates([], []) == []


def test_candidates_capped_at_four(quiet_model):
    class ManyProvider:
        async def directions(self, coordinates, radiuses=None):
            a = straight_route(list(coordinates))
            return [a.model_copy(update={"distance_m": a.distance_m + 100 * i}) for i in range(6)]

    session = _plan(RoutePlanner(ManyProvider(), quiet_model))
    assert len(session.candidates) == 4
    assert len({c.id for c in session.candidates}) == 4


def test_zone_work_runs_off_the_event_loop_thread():
    class RecordingModel(DangerZoneModel):
        def __init__(self, **kwargs):
            super().__init__(**kwargs)
            self.threads = set()

        def zones_in_bounds(self, bbox):
            self.threads.add(threading.get_ident())
            return super().zones_in_bounds(bbox)

    model = RecordingModel(simulate_hotspots=False)
    _plan(RoutePlanner(StraightLineProvider(), model))
    assert model.threads, "Planning must query the zone model"
    assert threading.get_ident() not in model.threads


def test_dedupe_collapses_across_bucket_boundary():
    base = straight_route([ORIGIN, DESTINATION])
    routes = [base.model_copy(update={"distance_m": d}) for d in (1000, 1049)]
    assert [r.distance_m for r in dedupe_by_distance(routes)] == [1000]
