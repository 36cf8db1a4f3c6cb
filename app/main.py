# app/main.py
from __future__ import annotations

import logging
from pathlib import Path

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.gzip import GZipMiddleware

# Load <repo>/.env (main.py is <repo>/app/main.py)
BASE_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BASE_DIR / ".env")

from app.core.settings import settings
from app.core.storage import connect_sqlite, ensure_schema
from app.api import api_router

from app.services.places_source import PlacesSource
from app.services.sessions import ExplorerSessions

logger = logging.getLogger(__name__)

app = FastAPI(title="EasyTrip Explorer", version="1.0.0")

# ── Compression (must be added before CORS) ──
app.add_middleware(GZipMiddleware, minimum_size=1000)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        # Local web dev (Next.js client)
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:3001",
        "http://127.0.0.1:3001",
    ],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ──────────────────────────────────────────────────────────────
# Shared state
# ──────────────────────────────────────────────────────────────

# Cache DB (rw), SQLite, local to the instance
_cache_conn = connect_sqlite(settings.cache_db_path)
ensure_schema(_cache_conn)

_sessions = ExplorerSessions(max_sessions=settings.explorer_max_sessions)

# ──────────────────────────────────────────────────────────────
# Dependency providers
# ──────────────────────────────────────────────────────────────

def provide_places_source() -> PlacesSource:
    return PlacesSource(
        conn=_cache_conn,
        base_url=settings.easytrip_api_url,
        user=settings.easytrip_api_user,
        user_name=settings.easytrip_api_user_name,
        timeout_s=settings.easytrip_api_timeout_s,
        ttl_s=settings.places_cache_ttl_s,
    )


def provide_sessions() -> ExplorerSessions:
    return _sessions


# ──────────────────────────────────────────────────────────────
# Dependency overrides
# ──────────────────────────────────────────────────────────────

from app.api import places as places_api
from app.api import explore as explore_api

app.dependency_overrides[places_api.get_places_source] = provide_places_source
app.dependency_overrides[explore_api.get_sessions] = provide_sessions

# Routes
app.include_router(api_router)

# ──────────────────────────────────────────────────────────────
# Shutdown
# ──────────────────────────────────────────────────────────────

@app.on_event("shutdown")
def shutdown():
    logger.info("[app] Shutting down, closing sessions and connections")
    _sessions.close_all()
    try:
        _cache_conn.close()
    except Exception as e:
        logger.warning("[app] Error closing cache DB: %s", e)
