from __future__ import annotations

import math
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ──────────────────────────────────────────────────────────────
# Shared
# ──────────────────────────────────────────────────────────────

class LatLng(BaseModel):
    lat: float
    lng: float


class BBox4(BaseModel):
    minLng: float
    minLat: float
    maxLng: float
    maxLat: float


RadiusPolicy = Literal["best_effort", "strict"]


# ──────────────────────────────────────────────────────────────
# Places
# ──────────────────────────────────────────────────────────────
# Mirrors the EasyTrip API row shape. Average rating is always
# derived from rating_sum / rating_count and never stored.
# ──────────────────────────────────────────────────────────────

PlaceId = Union[int, str]

PlaceSort = Literal["popularity", "rating", "newest", "name_asc", "name_desc"]


def _coerce_coord(v: Any) -> Optional[float]:
    if v is None or isinstance(v, bool):
        return None
    if isinstance(v, (int, float)):
        f = float(v)
    elif isinstance(v, str):
        try:
            f = float(v.strip())
        except ValueError:
            return None
    else:
        return None
    return f if math.isfinite(f) else None


class Place(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: PlaceId
    name: str = ""
    description: Optional[str] = None
    location: Optional[str] = None
    district: Optional[str] = None
    state: Optional[str] = None
    locality: Optional[str] = None
    pin_code: Optional[str] = None

    latitude: Optional[float] = None
    longitude: Optional[float] = None

    primary_image_url: Optional[str] = None
    image_url: Optional[str] = None

    rating_sum: float = 0
    rating_count: int = 0

    tags: List[str] = Field(default_factory=list)          # ≤10 by convention
    themes: List[str] = Field(default_factory=list)
    custom_keys: Dict[str, Any] = Field(default_factory=dict)  # ≤10 pairs

    created_by: Optional[str] = None
    created_at: Optional[str] = None
    updated_by: Optional[str] = None
    updated_at: Optional[str] = None
    previous_update: Optional[str] = None

    @field_validator("latitude", "longitude", mode="before")
    @classmethod
    def _numeric_coord(cls, v: Any) -> Optional[float]:
        return _coerce_coord(v)

    @field_validator("tags", "themes", mode="before")
    @classmethod
    def _str_list(cls, v: Any) -> List[str]:
        if not v:
            return []
        if isinstance(v, str):
            return [v]
        return [str(x) for x in v if x is not None]

    @field_validator("custom_keys", mode="before")
    @classmethod
    def _dict_or_empty(cls, v: Any) -> Dict[str, Any]:
        return v if isinstance(v, dict) else {}

    @field_validator("rating_sum", "rating_count", mode="before")
    @classmethod
    def _zero_if_null(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("pin_code", "created_at", "updated_at", "previous_update", mode="before")
    @classmethod
    def _as_text(cls, v: Any) -> Optional[str]:
        return None if v is None else str(v)

    @property
    def has_coords(self) -> bool:
        return self.latitude is not None and self.longitude is not None

    @property
    def average_rating(self) -> Optional[float]:
        if self.rating_count > 0:
            return round(self.rating_sum / self.rating_count, 1)
        return None


class DerivedPlace(Place):
    """Client-side view of a Place: distance from the user plus display placeholders."""

    distance: Optional[float] = None   # km from user
    visitors: int = 0

    @field_validator("visitors", mode="before")
    @classmethod
    def _visitors_default(cls, v: Any) -> int:
        return 0 if v is None else v


class MapViewState(BaseModel):
    center: LatLng
    zoom: float
    bearing: float = 0.0


# ──────────────────────────────────────────────────────────────
# Pipeline results
# ──────────────────────────────────────────────────────────────

class ProximityResult(BaseModel):
    places: List[DerivedPlace] = Field(default_factory=list)
    radius_mode: bool = True
    user: Optional[LatLng] = None
    radius_km: float = 300.0
    policy: RadiusPolicy = "best_effort"
    within_radius: int = 0


MarkerKind = Literal["rating", "pin"]
ClusterSize = Literal["small", "medium", "large"]


class MarkerSpec(BaseModel):
    place_id: PlaceId
    name: str
    lat: float
    lng: float
    kind: MarkerKind = "pin"
    rating_label: Optional[str] = None
    selected: bool = False
    z_index_offset: int = 0
    popup_html: str = ""


class ClusterSpec(BaseModel):
    lat: float
    lng: float
    count: int
    size: ClusterSize
    place_ids: List[PlaceId] = Field(default_factory=list)


class MarkerLayers(BaseModel):
    cluster_mode: bool
    zoom: float
    selected: Optional[MarkerSpec] = None
    markers: List[MarkerSpec] = Field(default_factory=list)   # non-selected, flat or cluster members
    clusters: List[ClusterSpec] = Field(default_factory=list)
    singles: List[MarkerSpec] = Field(default_factory=list)   # cluster layer members drawn individually
    skipped: List[Optional[PlaceId]] = Field(default_factory=list)


# ──────────────────────────────────────────────────────────────
# Stateless explore requests
# ──────────────────────────────────────────────────────────────

class NearbyRequest(BaseModel):
    places: Optional[List[Place]] = None
    user: Optional[LatLng] = None
    radius_km: Optional[float] = None
    policy: Optional[RadiusPolicy] = None
    query: Optional[str] = None


class NearbyResponse(BaseModel):
    proximity: ProximityResult
    places: List[DerivedPlace] = Field(default_factory=list)   # after text filter
    total: int = 0


class MarkersRequest(NearbyRequest):
    selected_id: Optional[PlaceId] = None
    cluster_mode: bool = True
    zoom: float = 10


class ViewportRequest(NearbyRequest):
    bounds: BBox4


class ViewportResponse(BaseModel):
    bounds: BBox4
    visible: List[DerivedPlace] = Field(default_factory=list)
    visible_count: int = 0
    total: int = 0


# ──────────────────────────────────────────────────────────────
# Explorer sessions
# ──────────────────────────────────────────────────────────────

ExplorerEventType = Literal["select_place", "zoom_change", "center_change"]


class ExplorerEvent(BaseModel):
    type: ExplorerEventType
    payload: Dict[str, Any] = Field(default_factory=dict)
    created_at: str


GeolocationStatus = Literal["pending", "located", "failed"]


class SessionCreateRequest(BaseModel):
    center: Optional[LatLng] = None
    zoom: Optional[float] = None
    user: Optional[LatLng] = None
    geolocation_error: Optional[str] = None
    policy: Optional[RadiusPolicy] = None
    cluster_mode: bool = True
    width_px: Optional[int] = None
    height_px: Optional[int] = None


class GeolocationRequest(BaseModel):
    coord: Optional[LatLng] = None
    error: Optional[str] = None


class SearchRequest(BaseModel):
    query: str = ""


class ClusterToggleRequest(BaseModel):
    enabled: bool


class SelectRequest(BaseModel):
    place_id: Optional[PlaceId] = None


class ClickRequest(BaseModel):
    place_id: PlaceId


class MoveRequest(BaseModel):
    center: LatLng
    zoom: float


class ExplorerState(BaseModel):
    session_id: Optional[str] = None
    map_ready: bool
    error: Optional[str] = None
    closed: bool = False
    view: Optional[MapViewState] = None
    bounds: Optional[BBox4] = None
    geolocation: GeolocationStatus = "pending"
    user: Optional[LatLng] = None
    radius_mode: bool = True
    radius_km: float = 300.0
    policy: RadiusPolicy = "best_effort"
    search_query: str = ""
    cluster_mode: bool = True
    selected_id: Optional[PlaceId] = None
    total_places: int = 0
    filtered: List[DerivedPlace] = Field(default_factory=list)
    visible_ids: List[PlaceId] = Field(default_factory=list)
    layers: Optional[MarkerLayers] = None


class EventsResponse(BaseModel):
    session_id: str
    events: List[ExplorerEvent] = Field(default_factory=list)
