from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, Sequence

from app.core.contracts import (
    DerivedPlace,
    ExplorerState,
    GeolocationStatus,
    LatLng,
    MarkerLayers,
    Place,
    PlaceId,
    ProximityResult,
    RadiusPolicy,
)
from app.core.settings import settings
from app.services.map_engine import MapEngine
from app.services.markers import build_marker_layers, same_id
from app.services.proximity import filter_by_proximity
from app.services.search import filter_by_text
from app.services.viewport import clamp_zoom, visible_places

logger = logging.getLogger(__name__)

MAP_INIT_ERROR = "Could not initialize map. Please check your internet connection and reload the page."

EngineFactory = Callable[..., MapEngine]


def run_pipeline(
    places: Sequence[Place],
    user: Optional[LatLng],
    *,
    query: Optional[str] = None,
    radius_km: Optional[float] = None,
    policy: Optional[RadiusPolicy] = None,
) -> tuple[ProximityResult, list[DerivedPlace]]:
    """Proximity filter followed by the text filter."""
    prox = filter_by_proximity(
        places,
        user,
        radius_km=radius_km if radius_km is not None else settings.explorer_radius_km,
        policy=policy or settings.explorer_radius_policy,
    )
    return prox, filter_by_text(prox.places, query)


class MapExplorer:
    """
    Owns one map view: engine handle, marker layers, selection and the
    proximity/search/viewport pipeline feeding them.

    Parent code talks to it through the setters below; it talks back only
    through the three callbacks. Callback failures are logged, never raised.
    """

    def __init__(
        self,
        *,
        places: Sequence[Place] = (),
        selected: Optional[Place] = None,
        center: Optional[LatLng] = None,
        zoom: Optional[float] = None,
        on_select_place: Optional[Callable[[Place], Any]] = None,
        on_zoom_change: Optional[Callable[[float], Any]] = None,
        on_center_change: Optional[Callable[[dict], Any]] = None,
        radius_km: Optional[float] = None,
        policy: Optional[RadiusPolicy] = None,
        cluster_mode: bool = True,
        width_px: Optional[int] = None,
        height_px: Optional[int] = None,
        engine_factory: EngineFactory = MapEngine,
    ):
        self._places: List[Place] = list(places)
        self._selected: Optional[Place] = selected
        self._initial_center = center or LatLng(
            lat=settings.explorer_default_center_lat,
            lng=settings.explorer_default_center_lng,
        )
        self._initial_zoom = zoom if zoom is not None else settings.explorer_default_zoom

        self._on_select_place = on_select_place
        self._on_zoom_change = on_zoom_change
        self._on_center_change = on_center_change

        self.radius_km = radius_km if radius_km is not None else settings.explorer_radius_km
        self.policy: RadiusPolicy = policy or settings.explorer_radius_policy
        self.cluster_mode = cluster_mode
        self.search_query = ""

        self._width_px = width_px or settings.explorer_viewport_width_px
        self._height_px = height_px or settings.explorer_viewport_height_px
        self._engine_factory = engine_factory

        self._engine: Optional[MapEngine] = None
        self._animated_id: Any = None

        self.geolocation: GeolocationStatus = "pending"
        self.user: Optional[LatLng] = None
        self.error: Optional[str] = None
        self.closed = False

        self._proximity = ProximityResult(radius_km=self.radius_km, policy=self.policy)
        self._filtered: List[DerivedPlace] = []
        self._visible: List[DerivedPlace] = []
        self._layers: Optional[MarkerLayers] = None

    # ──────────────────────────────────────────────────────────────
    # Lifecycle
    # ──────────────────────────────────────────────────────────────

    def open(self) -> bool:
        if self.closed or self._engine is not None:
            return self._engine is not None

        center = self.user if self.user is not None else self._initial_center
        zoom = settings.explorer_located_zoom if self.user is not None else self._initial_zoom

        try:
            self._engine = self._engine_factory(
                center=center,
                zoom=zoom,
                min_zoom=settings.explorer_min_zoom,
                max_zoom=settings.explorer_max_zoom,
                width_px=self._width_px,
                height_px=self._height_px,
            )
        except Exception as e:
            logger.error("[explorer] map init failed: %s", e)
            self._engine = None
            self.error = MAP_INIT_ERROR
            return False

        self.error = None
        self._recompute()
        self._navigate_to_selection()
        return True

    def close(self) -> None:
        if self.closed:
            return
        self.closed = True
        if self._engine is not None:
            try:
                self._engine.remove()
            except Exception as e:
                logger.warning("[explorer] error removing map: %s", e)
        self._engine = None
        self._layers = None

    @property
    def map_ready(self) -> bool:
        return self._engine is not None and not self.closed

    # ──────────────────────────────────────────────────────────────
    # Geolocation (one-shot)
    # ──────────────────────────────────────────────────────────────

    def resolve_geolocation(self, coord: LatLng) -> None:
        if self.closed or self.geolocation != "pending":
            logger.debug("[explorer] ignoring late geolocation result")
            return
        self.geolocation = "located"
        self.user = LatLng(lat=coord.lat, lng=coord.lng)
        self._recompute()

    def fail_geolocation(self, reason: str = "") -> None:
        if self.closed or self.geolocation != "pending":
            logger.debug("[explorer] ignoring late geolocation error")
            return
        logger.info("[explorer] geolocation unavailable: %s", reason or "unknown")
        self.geolocation = "failed"
        self.user = None
        self._recompute()

    # ──────────────────────────────────────────────────────────────
    # Inputs from the parent
    # ──────────────────────────────────────────────────────────────

    def set_places(self, places: Sequence[Place]) -> None:
        if self.closed:
            return
        self._places = list(places)
        self._recompute()

    def set_search_query(self, query: str) -> None:
        if self.closed:
            return
        self.search_query = query or ""
        self._recompute()

    def set_cluster_mode(self, enabled: bool) -> None:
        if self.closed:
            return
        self.cluster_mode = bool(enabled)
        self._rebuild_layers()

    def set_selected(self, place: Optional[Place]) -> None:
        if self.closed:
            return
        self._selected = place
        if place is None:
            self._animated_id = None
        self._rebuild_layers()
        self._navigate_to_selection()

    # ──────────────────────────────────────────────────────────────
    # User interaction
    # ──────────────────────────────────────────────────────────────

    def click_marker(self, place_id: PlaceId) -> Optional[Place]:
        """Report a marker click to the parent. Selection itself is the parent's call."""
        if not self.map_ready:
            return None
        place = self.find_filtered(place_id)
        if place is None:
            logger.warning("[explorer] click on unknown marker id=%s", place_id)
            return None
        self._emit(self._on_select_place, place)
        return place

    def move_end(self, center: LatLng, zoom: float) -> None:
        if not self.map_ready:
            return
        engine = self._engine
        previous_zoom = engine.zoom
        engine.set_view(center, clamp_zoom(zoom, min_zoom=engine.min_zoom, max_zoom=engine.max_zoom))

        self._emit(self._on_center_change, {"lat": engine.center.lat, "lng": engine.center.lng})
        if engine.zoom != previous_zoom:
            self._emit(self._on_zoom_change, engine.zoom)

        # Cluster membership depends on zoom
        if engine.zoom != previous_zoom:
            self._rebuild_layers()
        self._update_visible()

    # ──────────────────────────────────────────────────────────────
    # Queries
    # ──────────────────────────────────────────────────────────────

    @property
    def places(self) -> List[Place]:
        return list(self._places)

    @property
    def filtered_places(self) -> List[DerivedPlace]:
        return list(self._filtered)

    @property
    def visible_places(self) -> List[DerivedPlace]:
        return list(self._visible)

    @property
    def layers(self) -> Optional[MarkerLayers]:
        return self._layers

    @property
    def radius_mode(self) -> bool:
        return self._proximity.radius_mode

    @property
    def selected(self) -> Optional[Place]:
        return self._selected

    @property
    def engine(self) -> Optional[MapEngine]:
        return self._engine

    def find_place(self, place_id: PlaceId) -> Optional[Place]:
        return next((p for p in self._places if same_id(p.id, place_id)), None)

    def find_filtered(self, place_id: PlaceId) -> Optional[DerivedPlace]:
        return next((p for p in self._filtered if same_id(p.id, place_id)), None)

    def state(self, session_id: Optional[str] = None) -> ExplorerState:
        engine = self._engine if self.map_ready else None
        return ExplorerState(
            session_id=session_id,
            map_ready=self.map_ready,
            error=self.error,
            closed=self.closed,
            view=engine.view_state() if engine else None,
            bounds=engine.get_bounds() if engine else None,
            geolocation=self.geolocation,
            user=self.user,
            radius_mode=self.radius_mode,
            radius_km=self.radius_km,
            policy=self.policy,
            search_query=self.search_query,
            cluster_mode=self.cluster_mode,
            selected_id=self._selected.id if self._selected is not None else None,
            total_places=len(self._places),
            filtered=self._filtered,
            visible_ids=[p.id for p in self._visible],
            layers=self._layers,
        )

    # ──────────────────────────────────────────────────────────────
    # Internals
    # ──────────────────────────────────────────────────────────────

    def _recompute(self) -> None:
        if self.geolocation == "pending":
            # Nothing is filtered until the location request settles.
            self._proximity = ProximityResult(radius_km=self.radius_km, policy=self.policy)
            self._filtered = []
        else:
            self._proximity, self._filtered = run_pipeline(
                self._places,
                self.user,
                query=self.search_query,
                radius_km=self.radius_km,
                policy=self.policy,
            )
        self._rebuild_layers()
        self._update_visible()

    def _rebuild_layers(self) -> None:
        if not self.map_ready:
            return
        engine = self._engine
        engine.clear_layers()
        self._layers = build_marker_layers(
            self._filtered,
            self._selected,
            cluster_mode=self.cluster_mode,
            zoom=engine.zoom,
            radius_px=settings.explorer_cluster_radius_px,
            disable_at_zoom=settings.explorer_cluster_disable_zoom,
        )
        engine.show_layers(self._layers)

    def _update_visible(self) -> None:
        if not self.map_ready:
            self._visible = []
            return
        self._visible = visible_places(self._filtered, self._engine.get_bounds())

    def _navigate_to_selection(self) -> None:
        place = self._selected
        if not self.map_ready or place is None or not place.has_coords:
            return
        if same_id(place.id, self._animated_id):
            return

        engine = self._engine
        previous_zoom = engine.zoom
        try:
            target = LatLng(lat=float(place.latitude), lng=float(place.longitude))
            engine.fly_to(target, max(engine.zoom, settings.explorer_select_min_zoom))
        except Exception as e:
            logger.error("[explorer] error flying to place id=%s: %s", place.id, e)
            return

        # Cluster membership depends on zoom; rebuilding clears the popup.
        if engine.zoom != previous_zoom:
            self._rebuild_layers()
        engine.open_popup(place.id)

        self._animated_id = place.id
        self._update_visible()

    def _emit(self, callback: Optional[Callable[[Any], Any]], arg: Any) -> None:
        if callback is None:
            return
        try:
            callback(arg)
        except Exception:
            logger.exception("[explorer] callback %s failed", getattr(callback, "__name__", callback))
