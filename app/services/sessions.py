from __future__ import annotations

import logging
import threading
from collections import OrderedDict, deque
from dataclasses import dataclass, field
from typing import Any, Deque, Optional, Sequence

from app.core.contracts import ExplorerEvent, Place, SessionCreateRequest
from app.core.keying import new_session_id
from app.core.time import utc_now_iso
from app.services.explorer import EngineFactory, MapExplorer
from app.services.map_engine import MapEngine

logger = logging.getLogger(__name__)

MAX_EVENTS = 500


@dataclass
class ExplorerSession:
    session_id: str
    explorer: MapExplorer
    events: Deque[ExplorerEvent] = field(default_factory=lambda: deque(maxlen=MAX_EVENTS))
    created_at: str = field(default_factory=utc_now_iso)

    def record(self, type_: str, payload: dict[str, Any]) -> None:
        self.events.append(ExplorerEvent(type=type_, payload=payload, created_at=utc_now_iso()))

    def drain(self) -> list[ExplorerEvent]:
        out = list(self.events)
        self.events.clear()
        return out


class ExplorerSessions:
    """
    In-memory registry of explorer sessions.

    A single lock serialises every operation, so each explorer sees its
    events one at a time. Least recently used sessions are closed beyond
    `max_sessions`.
    """

    def __init__(self, *, max_sessions: int = 256, engine_factory: EngineFactory = MapEngine):
        self.max_sessions = max(1, int(max_sessions))
        self.engine_factory = engine_factory
        self.lock = threading.RLock()
        self._sessions: "OrderedDict[str, ExplorerSession]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._sessions)

    def create(self, req: SessionCreateRequest, places: Sequence[Place]) -> ExplorerSession:
        with self.lock:
            sid = new_session_id()
            holder: dict[str, ExplorerSession] = {}

            def on_select_place(place: Place) -> None:
                holder["s"].record("select_place", {"place_id": place.id, "name": place.name})
                # The session plays the parent: a click selects the place.
                holder["s"].explorer.set_selected(place)

            def on_zoom_change(zoom: float) -> None:
                holder["s"].record("zoom_change", {"zoom": zoom})

            def on_center_change(center: dict) -> None:
                holder["s"].record("center_change", dict(center))

            explorer = MapExplorer(
                places=places,
                center=req.center,
                zoom=req.zoom,
                on_select_place=on_select_place,
                on_zoom_change=on_zoom_change,
                on_center_change=on_center_change,
                policy=req.policy,
                cluster_mode=req.cluster_mode,
                width_px=req.width_px,
                height_px=req.height_px,
                engine_factory=self.engine_factory,
            )
            session = ExplorerSession(session_id=sid, explorer=explorer)
            holder["s"] = session

            # A location known up front lets the map open already centred on it.
            if req.user is not None:
                explorer.resolve_geolocation(req.user)
            elif req.geolocation_error is not None:
                explorer.fail_geolocation(req.geolocation_error)
            explorer.open()

            self._sessions[sid] = session
            while len(self._sessions) > self.max_sessions:
                old_id, old = self._sessions.popitem(last=False)
                logger.info("[sessions] evicting session=%s", old_id)
                old.explorer.close()

            logger.info("[sessions] created session=%s places=%d map_ready=%s", sid, len(places), explorer.map_ready)
            return session

    def get(self, session_id: str) -> Optional[ExplorerSession]:
        with self.lock:
            session = self._sessions.get(session_id)
            if session is not None:
                # Recently used sessions are evicted last.
                self._sessions.move_to_end(session_id)
            return session

    def close(self, session_id: str) -> bool:
        with self.lock:
            session = self._sessions.pop(session_id, None)
            if session is None:
                return False
            session.explorer.close()
            logger.info("[sessions] closed session=%s", session_id)
            return True

    def close_all(self) -> None:
        with self.lock:
            for session in self._sessions.values():
                session.explorer.close()
            self._sessions.clear()
