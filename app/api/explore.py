from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse

from app.core.contracts import (
    ClickRequest,
    ClusterToggleRequest,
    EventsResponse,
    ExplorerState,
    GeolocationRequest,
    MarkerLayers,
    MarkersRequest,
    MoveRequest,
    NearbyRequest,
    NearbyResponse,
    Place,
    SearchRequest,
    SelectRequest,
    SessionCreateRequest,
    ViewportRequest,
    ViewportResponse,
)
from app.core.errors import bad_request, not_found
from app.core.settings import settings
from app.services.explorer import run_pipeline
from app.services.map_render import render_error_panel, render_map
from app.services.markers import build_marker_layers, same_id
from app.services.places_source import PlacesSource
from app.services.sessions import ExplorerSession, ExplorerSessions
from app.services.viewport import visible_places
from app.api.places import get_places_source, load_places

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/explore")


def get_sessions() -> ExplorerSessions:
    raise RuntimeError("ExplorerSessions must be provided by app dependency override")


def _places_for(req: NearbyRequest, source: PlacesSource) -> list[Place]:
    if req.places is not None:
        return list(req.places)
    return load_places(source)


def _check_radius(req: NearbyRequest) -> None:
    if req.radius_km is not None and req.radius_km <= 0:
        bad_request("bad_radius", "radius_km must be positive")


# ──────────────────────────────────────────────────────────────
# Stateless pipeline
# ──────────────────────────────────────────────────────────────

@router.post("/nearby", response_model=NearbyResponse)
def explore_nearby(
    req: NearbyRequest,
    source: PlacesSource = Depends(get_places_source),
) -> NearbyResponse:
    _check_radius(req)
    places = _places_for(req, source)
    prox, filtered = run_pipeline(
        places, req.user, query=req.query, radius_km=req.radius_km, policy=req.policy
    )
    return NearbyResponse(proximity=prox, places=filtered, total=len(places))


@router.post("/markers", response_model=MarkerLayers)
def explore_markers(
    req: MarkersRequest,
    source: PlacesSource = Depends(get_places_source),
) -> MarkerLayers:
    _check_radius(req)
    places = _places_for(req, source)
    _, filtered = run_pipeline(
        places, req.user, query=req.query, radius_km=req.radius_km, policy=req.policy
    )
    selected: Optional[Place] = None
    if req.selected_id is not None:
        selected = next((p for p in places if same_id(p.id, req.selected_id)), None)

    return build_marker_layers(
        filtered,
        selected,
        cluster_mode=req.cluster_mode,
        zoom=req.zoom,
        radius_px=settings.explorer_cluster_radius_px,
        disable_at_zoom=settings.explorer_cluster_disable_zoom,
    )


@router.post("/viewport", response_model=ViewportResponse)
def explore_viewport(
    req: ViewportRequest,
    source: PlacesSource = Depends(get_places_source),
) -> ViewportResponse:
    _check_radius(req)
    b = req.bounds
    if b.minLat > b.maxLat or b.minLng > b.maxLng:
        bad_request("bad_bounds", "bounds min must not exceed max")

    places = _places_for(req, source)
    _, filtered = run_pipeline(
        places, req.user, query=req.query, radius_km=req.radius_km, policy=req.policy
    )
    visible = visible_places(filtered, b)
    return ViewportResponse(bounds=b, visible=visible, visible_count=len(visible), total=len(filtered))


# ──────────────────────────────────────────────────────────────
# Sessions
# ──────────────────────────────────────────────────────────────

def _session(sessions: ExplorerSessions, session_id: str) -> ExplorerSession:
    session = sessions.get(session_id)
    if session is None:
        not_found("session_missing", f"no explorer session {session_id}")
    return session


@router.post("/sessions", response_model=ExplorerState)
def create_session(
    req: SessionCreateRequest,
    sessions: ExplorerSessions = Depends(get_sessions),
    source: PlacesSource = Depends(get_places_source),
) -> ExplorerState:
    if req.user is not None and req.geolocation_error is not None:
        bad_request("bad_session_request", "send either user or geolocation_error, not both")
    places = load_places(source)
    session = sessions.create(req, places)
    return session.explorer.state(session.session_id)


@router.get("/sessions/{session_id}", response_model=ExplorerState)
def get_session(session_id: str, sessions: ExplorerSessions = Depends(get_sessions)) -> ExplorerState:
    with sessions.lock:
        s = _session(sessions, session_id)
        return s.explorer.state(s.session_id)


@router.delete("/sessions/{session_id}")
def delete_session(session_id: str, sessions: ExplorerSessions = Depends(get_sessions)) -> dict:
    if not sessions.close(session_id):
        not_found("session_missing", f"no explorer session {session_id}")
    return {"ok": True, "session_id": session_id}


@router.post("/sessions/{session_id}/geolocation", response_model=ExplorerState)
def session_geolocation(
    session_id: str,
    req: GeolocationRequest,
    sessions: ExplorerSessions = Depends(get_sessions),
) -> ExplorerState:
    if (req.coord is None) == (req.error is None):
        bad_request("bad_geolocation", "send exactly one of coord or error")
    with sessions.lock:
        s = _session(sessions, session_id)
        if req.coord is not None:
            s.explorer.resolve_geolocation(req.coord)
        else:
            s.explorer.fail_geolocation(req.error or "")
        return s.explorer.state(s.session_id)


@router.post("/sessions/{session_id}/search", response_model=ExplorerState)
def session_search(
    session_id: str,
    req: SearchRequest,
    sessions: ExplorerSessions = Depends(get_sessions),
) -> ExplorerState:
    with sessions.lock:
        s = _session(sessions, session_id)
        s.explorer.set_search_query(req.query)
        return s.explorer.state(s.session_id)


@router.post("/sessions/{session_id}/cluster", response_model=ExplorerState)
def session_cluster(
    session_id: str,
    req: ClusterToggleRequest,
    sessions: ExplorerSessions = Depends(get_sessions),
) -> ExplorerState:
    with sessions.lock:
        s = _session(sessions, session_id)
        s.explorer.set_cluster_mode(req.enabled)
        return s.explorer.state(s.session_id)


@router.post("/sessions/{session_id}/select", response_model=ExplorerState)
def session_select(
    session_id: str,
    req: SelectRequest,
    sessions: ExplorerSessions = Depends(get_sessions),
) -> ExplorerState:
    with sessions.lock:
        s = _session(sessions, session_id)
        place = None
        if req.place_id is not None:
            place = s.explorer.find_place(req.place_id)
            if place is None:
                not_found("place_missing", f"no place {req.place_id} in session")
        s.explorer.set_selected(place)
        return s.explorer.state(s.session_id)


@router.post("/sessions/{session_id}/click", response_model=ExplorerState)
def session_click(
    session_id: str,
    req: ClickRequest,
    sessions: ExplorerSessions = Depends(get_sessions),
) -> ExplorerState:
    with sessions.lock:
        s = _session(sessions, session_id)
        if s.explorer.click_marker(req.place_id) is None:
            not_found("marker_missing", f"no marker for place {req.place_id}")
        return s.explorer.state(s.session_id)


@router.post("/sessions/{session_id}/move", response_model=ExplorerState)
def session_move(
    session_id: str,
    req: MoveRequest,
    sessions: ExplorerSessions = Depends(get_sessions),
) -> ExplorerState:
    with sessions.lock:
        s = _session(sessions, session_id)
        s.explorer.move_end(req.center, req.zoom)
        return s.explorer.state(s.session_id)


@router.post("/sessions/{session_id}/refresh", response_model=ExplorerState)
def session_refresh(
    session_id: str,
    sessions: ExplorerSessions = Depends(get_sessions),
    source: PlacesSource = Depends(get_places_source),
) -> ExplorerState:
    places = load_places(source, force=True)
    with sessions.lock:
        s = _session(sessions, session_id)
        s.explorer.set_places(places)
        return s.explorer.state(s.session_id)


@router.get("/sessions/{session_id}/events", response_model=EventsResponse)
def session_events(session_id: str, sessions: ExplorerSessions = Depends(get_sessions)) -> EventsResponse:
    with sessions.lock:
        s = _session(sessions, session_id)
        return EventsResponse(session_id=s.session_id, events=s.drain())


@router.get("/sessions/{session_id}/map", response_class=HTMLResponse)
def session_map(session_id: str, sessions: ExplorerSessions = Depends(get_sessions)) -> HTMLResponse:
    with sessions.lock:
        s = _session(sessions, session_id)
        explorer = s.explorer
        if not explorer.map_ready or explorer.engine is None:
            return HTMLResponse(render_error_panel(explorer.error or "Map is not available."), status_code=503)

        fmap = render_map(
            view=explorer.engine.view_state(),
            layers=explorer.layers,
            user=explorer.user,
            radius_mode=explorer.radius_mode,
            radius_km=explorer.radius_km,
            filtered_count=len(explorer.filtered_places),
        )
        return HTMLResponse(fmap.get_root().render())
