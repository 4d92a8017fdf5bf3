from saferoute.directions import (
    extract_street_names,
    flatten_steps,
    format_distance,
    format_duration,
    route_name,
    step_instruction,
)
from saferoute.models import LatLng, RouteCandidate, RouteStep


def test_step_instructions():
    assert step_instruction(RouteStep(maneuver_type="depart", name="State St")) == "Head on State St"
    assert step_instruction(RouteStep(maneuver_type="depart")) == "Depart"
    assert step_instruction(RouteStep(maneuver_type="arrive", name="State St")) == "Arrive at destination"
    assert step_instruction(RouteStep(maneuver_type="turn", modifier="left", name="Main St")) == "Turn left onto Main St"
    assert step_instruction(RouteStep(maneuver_type="turn", modifier="sharp right")) == "Sharp right"
    assert step_instruction(RouteStep(maneuver_type="new name", modifier="straight")) == "Continue straight"
    assert step_instruction(RouteStep(maneuver_type="continue", modifier="uturn")) == "Make a U-turn"
    assert step_instruction(RouteStep(maneuver_type="roundabout", modifier="right", name="Circle")) == (
        "Enter roundabout onto Circle"
    )
    assert step_instruction(RouteStep(maneuver_type="fork")) == "Continue"


def test_format_distance():
    assert format_distance(0) == ""
    assert format_distance(0.5) == ""
    assert format_distance(100) == "328 ft"
    assert format_distance(1000) == "0.6 mi"


def test_format_duration():
    assert format_duration(441) == "7 min"
    assert format_duration(5400) == "1h 30m"


def test_route_name_uses_first_three_streets():
    steps = [
        RouteStep(name="State St"),
        RouteStep(name="State St"),
        RouteStep(name=""),
        RouteStep(name="X"),
        RouteStep(name="Liberty St"),
        RouteStep(name="Main St"),
        RouteStep(name="Huron St"),
    ]
    assert extract_street_names(steps) == ["State St", "Liberty St", "Main St", "Huron St"]
    assert route_name(steps, 0) == "State St → Liberty St → Main St"
    assert route_name([RouteStep(name="")], 2) == "Route 3"


def test_flatten_steps():
    candidate = RouteCandidate(
        id="abc-0",
        label="Safest",
        recommended=True,
        name="State St",
        color="#6C63FF",
        weight=5,
        safety_score=90,
        safety_class="high",
        distance_m=400,
        duration_s=300,
        coordinates=[LatLng(lat=42.28, lng=-83.74), LatLng(lat=42.2836, lng=-83.74)],
        steps=[
            RouteStep(maneuver_type="depart", name="State St", distance_m=400),
            RouteStep(maneuver_type="arrive"),
        ],
    )
    steps = flatten_steps(candidate)
    assert [s.instruction for s in steps] == ["Head on State St", "Arrive at destination"]
    assert steps[0].distance == "0.2 mi"
    assert steps[0].street == "State St"
    assert steps[1].distance == ""
