from typing import List, Literal, Optional
from pydantic import BaseModel, ConfigDict, Field


class LatLng(BaseModel):
    lat: float = Field(ge=-90.0, le=90.0)
    lng: float = Field(ge=-180.0, le=180.0)


class BoundingBox(BaseModel):
    south: float
    west: float
    north: float
    east: float

    @classmethod
    def around(cls, points: List[LatLng], pad_deg: float = 0.0) -> "BoundingBox":
        lats = [p.lat for p in points]
        lngs = [p.lng for p in points]
        return cls(
            south=min(lats) - pad_deg,
            west=min(lngs) - pad_deg,
            north=max(lats) + pad_deg,
            east=max(lngs) + pad_deg,
        )

    def padded(self, pad_deg: float) -> "BoundingBox":
        return BoundingBox(
            south=self.south - pad_deg,
            west=self.west - pad_deg,
            north=self.north + pad_deg,
            east=self.east + pad_deg,
        )

    def contains(self, point: LatLng) -> bool:
        return self.south <= point.lat <= self.north and self.west <= point.lng <= self.east


class DangerZone(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str = ""
    center: LatLng
    radius_m: float = Field(gt=0)
    severity: int = Field(ge=1, le=5)
    recent_incident_count: int = Field(default=1, ge=1)
    category: str = "other"
    label: str = ""
    source: Literal["simulated", "report", "uk-police", "detroit", "fbi", "manual"] = "manual"


class RouteStep(BaseModel):
    maneuver_type: str = ""
    modifier: str = ""
    name: str = ""
    distance_m: float = 0.0


class ProviderRoute(BaseModel):
    """One alternative as returned by the routing provider, before scoring."""

    coordinates: List[LatLng]
    distance_m: float
    duration_s: float
    steps: List[RouteStep] = Field(default_factory=list)


class DetourWaypoint(BaseModel):
    point: LatLng
    route_order_hint: int


class IntersectionHit(BaseModel):
    point: LatLng
    zone_center: LatLng
    severity: int
    sample_index: int


class RouteCandidate(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    label: Literal["Safest", "Fastest", "Alternative", "Avoid"]
    recommended: bool = False
    name: str
    color: str
    weight: int
    safety_score: int = Field(ge=0, le=100)
    safety_class: Literal["high", "medium", "low"]
    distance_m: float
    duration_s: float
    coordinates: List[LatLng]
    steps: List[RouteStep] = Field(default_factory=list)


class RouteRequest(BaseModel):
    origin: LatLng
    destination: LatLng
    client_id: str = Field(
        default="default",
        description="Routing panel identity. A newer request for the same client supersedes an older one.",
    )


class RoutesResponse(BaseModel):
    session_id: str
    state: str
    iterations: int
    routes: List[RouteCandidate]


class DirectionStep(BaseModel):
    instruction: str
    distance: str
    distance_m: float
    street: str = ""
    maneuver_type: str = ""


class StepsResponse(BaseModel):
    route_id: str
    steps: List[DirectionStep]


class DangerZonesResponse(BaseModel):
    zones: List[DangerZone]


class ZoneRefreshRequest(BaseModel):
    position: LatLng
    bounds: BoundingBox


class HazardReport(BaseModel):
    category: str
    location: LatLng
    note: Optional[str] = None
