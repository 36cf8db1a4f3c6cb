from __future__ import annotations

import logging
import math
from typing import Any, Dict, List, Optional

from app.core.contracts import BBox4, LatLng, MapViewState, MarkerLayers, MarkerSpec
from app.core.errors import MapEngineError
from app.core.geo import bounds_for_view
from app.services.viewport import clamp_zoom

logger = logging.getLogger(__name__)


class MapEngine:
    """
    In-process map view: centre/zoom/viewport plus the three marker layers
    (flat, cluster, selected) and the open popup.

    Mirrors the handful of operations the explorer needs from a Leaflet
    map. Animations are recorded rather than played.
    """

    def __init__(
        self,
        *,
        center: LatLng,
        zoom: float,
        min_zoom: float,
        max_zoom: float,
        width_px: int,
        height_px: int,
    ):
        if width_px <= 0 or height_px <= 0:
            raise MapEngineError(f"invalid viewport size {width_px}x{height_px}")
        if min_zoom > max_zoom:
            raise MapEngineError(f"min_zoom {min_zoom} > max_zoom {max_zoom}")
        if not (math.isfinite(center.lat) and math.isfinite(center.lng) and math.isfinite(zoom)):
            raise MapEngineError("non-finite initial view")
        if not (-90.0 <= center.lat <= 90.0):
            raise MapEngineError(f"initial latitude out of range: {center.lat}")

        self.min_zoom = float(min_zoom)
        self.max_zoom = float(max_zoom)
        self.width_px = int(width_px)
        self.height_px = int(height_px)

        self._center = LatLng(lat=center.lat, lng=center.lng)
        self._zoom = clamp_zoom(zoom, min_zoom=self.min_zoom, max_zoom=self.max_zoom)
        self._bearing = 0.0

        self.layers: Optional[MarkerLayers] = None
        self.popup_place_id: Any = None
        self.animations: List[Dict[str, Any]] = []
        self.removed = False

    # ──────────────────────────────────────────────────────────────
    # View
    # ──────────────────────────────────────────────────────────────

    @property
    def center(self) -> LatLng:
        return self._center

    @property
    def zoom(self) -> float:
        return self._zoom

    def view_state(self) -> MapViewState:
        return MapViewState(center=self._center, zoom=self._zoom, bearing=self._bearing)

    def set_view(self, center: LatLng, zoom: float) -> None:
        self._center = LatLng(lat=center.lat, lng=center.lng)
        self._zoom = clamp_zoom(zoom, min_zoom=self.min_zoom, max_zoom=self.max_zoom)

    def set_zoom(self, zoom: float) -> None:
        self._zoom = clamp_zoom(zoom, min_zoom=self.min_zoom, max_zoom=self.max_zoom)

    def fly_to(self, center: LatLng, zoom: float, *, duration_s: float = 1.5) -> None:
        self.set_view(center, zoom)
        self.animations.append(
            {"lat": center.lat, "lng": center.lng, "zoom": self._zoom, "duration_s": duration_s}
        )

    def get_bounds(self) -> BBox4:
        return bounds_for_view(self._center, self._zoom, self.width_px, self.height_px)

    # ──────────────────────────────────────────────────────────────
    # Layers
    # ──────────────────────────────────────────────────────────────

    def clear_layers(self) -> None:
        self.layers = None
        self.popup_place_id = None

    def show_layers(self, layers: MarkerLayers) -> None:
        self.layers = layers

    @property
    def selected_marker(self) -> Optional[MarkerSpec]:
        return self.layers.selected if self.layers else None

    def open_popup(self, place_id: Any) -> None:
        self.popup_place_id = place_id

    def remove(self) -> None:
        self.clear_layers()
        self.removed = True
