# app/core/geo.py
"""
Great-circle distance, bbox tests and web-mercator pixel math.

Pixel coordinates follow the Leaflet/OSM convention: 256 px tiles,
world size = 256 * 2^zoom, origin at the top-left (lng -180, lat ~85.05).
"""
from __future__ import annotations

import math
from typing import Tuple

from app.core.contracts import BBox4, LatLng

EARTH_RADIUS_KM = 6371.0
TILE_SIZE = 256
MAX_MERCATOR_LAT = 85.0511287798


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Distance in kilometres between two (lat, lng) points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lng2 - lng1)
    a = math.sin(dlat / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bbox_contains(b: BBox4, lat: float, lng: float) -> bool:
    return b.minLat <= lat <= b.maxLat and b.minLng <= lng <= b.maxLng


def _world_px(zoom: float) -> float:
    return TILE_SIZE * (2.0 ** zoom)


def project(lat: float, lng: float, zoom: float) -> Tuple[float, float]:
    """(lat, lng) → (x, y) pixels at `zoom`."""
    lat = max(-MAX_MERCATOR_LAT, min(MAX_MERCATOR_LAT, lat))
    size = _world_px(zoom)
    x = (lng + 180.0) / 360.0 * size
    s = math.sin(math.radians(lat))
    y = (0.5 - math.log((1 + s) / (1 - s)) / (4 * math.pi)) * size
    return x, y


def unproject(x: float, y: float, zoom: float) -> LatLng:
    size = _world_px(zoom)
    lng = x / size * 360.0 - 180.0
    n = math.pi - 2.0 * math.pi * y / size
    lat = math.degrees(math.atan(math.sinh(n)))
    return LatLng(lat=lat, lng=lng)


def bounds_for_view(center: LatLng, zoom: float, width_px: int, height_px: int) -> BBox4:
    """Geographic bbox covered by a `width_px` x `height_px` view centred on `center`."""
    cx, cy = project(center.lat, center.lng, zoom)
    size = _world_px(zoom)
    half_w = width_px / 2.0
    half_h = height_px / 2.0

    top = max(0.0, cy - half_h)
    bottom = min(size, cy + half_h)
    nw = unproject(cx - half_w, top, zoom)
    se = unproject(cx + half_w, bottom, zoom)

    # Views wider than the world are clamped rather than wrapped.
    return BBox4(
        minLng=max(-180.0, nw.lng),
        minLat=se.lat,
        maxLng=min(180.0, se.lng),
        maxLat=nw.lat,
    )
