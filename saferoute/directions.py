"""Turn-by-turn text for a route candidate."""

from typing import List

from .models import DirectionStep, RouteCandidate, RouteStep

METERS_PER_MILE = 1609.34
FEET_PER_METER = 3.28084


def step_instruction(step: RouteStep) -> str:
    name = step.name or ""
    kind = step.maneuver_type or ""
    mod = step.modifier or ""

    if kind == "depart":
        return f"Head on {name}" if name else "Depart"
    if kind == "arrive":
        return "Arrive at destination"

    action = "Continue"
    if "left" in mod and "sharp" in mod:
        action = "Sharp left"
    elif "right" in mod and "sharp" in mod:
        action = "Sharp right"
    elif "left" in mod:
        action = "Turn left"
    elif "right" in mod:
        action = "Turn right"
    elif "straight" in mod:
        action = "Continue straight"
    elif "uturn" in mod:
        action = "Make a U-turn"
    if kind in ("roundabout", "rotary"):
        action = "Enter roundabout"

    return f"{action} onto {name}" if name else action


def format_distance(meters: float) -> str:
    if not meters or meters < 1:
        return ""
    feet = meters * FEET_PER_METER
    if feet < 1000:
        return f"{round(feet)} ft"
    return f"{meters / METERS_PER_MILE:.1f} mi"


def format_duration(seconds: float) -> str:
    minutes = int(seconds / 60 + 0.5)
    if minutes < 60:
        return f"{minutes} min"
    return f"{minutes // 60}h {minutes % 60}m"


def extract_street_names(steps: List[RouteStep]) -> List[str]:
    """Distinct non-trivial street names in the order they are first travelled."""
    names: List[str] = []
    for step in steps:
        name = (step.name or "").strip()
        if len(name) > 1 and name not in names:
            names.append(name)
    return names


def route_name(steps: List[RouteStep], fallback_index: int) -> str:
    names = extract_street_names(steps)
    if names:
        return " → ".join(names[:3])
    return f"Route {fallback_index + 1}"


def flatten_steps(candidate: RouteCandidate) -> List[DirectionStep]:
    return [
        DirectionStep(
            instruction=step_instruction(step),
            distance=format_distance(step.distance_m),
            distance_m=step.distance_m,
            street=step.name,
            maneuver_type=step.maneuver_type,
        )
        for step in candidate.steps
    ]
