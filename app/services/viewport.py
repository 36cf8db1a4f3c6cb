from __future__ import annotations

from typing import Sequence, TypeVar

from app.core.contracts import BBox4, Place
from app.core.geo import bbox_contains

P = TypeVar("P", bound=Place)

DEFAULT_MIN_ZOOM = 6.0
DEFAULT_MAX_ZOOM = 18.0


def clamp_zoom(zoom: float, *, min_zoom: float = DEFAULT_MIN_ZOOM, max_zoom: float = DEFAULT_MAX_ZOOM) -> float:
    """Zooming out past the floor snaps back to it."""
    return max(min_zoom, min(max_zoom, float(zoom)))


def visible_places(places: Sequence[P], bounds: BBox4) -> list[P]:
    """Places whose coordinates fall inside `bounds` (edges inclusive), in input order."""
    return [
        p for p in places
        if p.has_coords and bbox_contains(bounds, float(p.latitude), float(p.longitude))
    ]
