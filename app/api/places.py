from __future__ import annotations

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query

from app.core.contracts import Place, PlaceSort
from app.core.errors import PlacesSourceError, service_unavailable
from app.services.places_source import PlacesSource
from app.services.search import facet_values, filter_by_attributes, filter_by_text, sort_places

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/places")


def get_places_source() -> PlacesSource:
    raise RuntimeError("PlacesSource must be provided by app dependency override")


def load_places(source: PlacesSource, *, force: bool = False) -> list[Place]:
    try:
        return source.fetch_all(force=force)
    except PlacesSourceError as e:
        logger.error("load_places failed: %s", e)
        service_unavailable("places_unavailable", str(e))


# ──────────────────────────────────────────────────────────────
# /places: non-map listing (places without coordinates included)
# ──────────────────────────────────────────────────────────────

@router.get("", response_model=List[Place])
def list_places(
    q: Optional[str] = Query(default=None),
    location: Optional[List[str]] = Query(default=None),
    district: Optional[List[str]] = Query(default=None),
    state: Optional[List[str]] = Query(default=None),
    tag: Optional[List[str]] = Query(default=None),
    min_rating: float = Query(default=0, ge=0, le=5),
    sort: Optional[PlaceSort] = Query(default=None),
    source: PlacesSource = Depends(get_places_source),
) -> List[Place]:
    places = filter_by_text(load_places(source), q)
    places = filter_by_attributes(
        places,
        locations=location,
        districts=district,
        states=state,
        tags=tag,
        min_rating=min_rating,
    )
    return sort_places(places, sort)


# Facet lists for the listing filters
@router.get("/locations", response_model=List[str])
def list_locations(source: PlacesSource = Depends(get_places_source)) -> List[str]:
    return facet_values(load_places(source), "location")


@router.get("/districts", response_model=List[str])
def list_districts(source: PlacesSource = Depends(get_places_source)) -> List[str]:
    return facet_values(load_places(source), "district")


@router.get("/states", response_model=List[str])
def list_states(source: PlacesSource = Depends(get_places_source)) -> List[str]:
    return facet_values(load_places(source), "state")


@router.get("/tags", response_model=List[str])
def list_tags(source: PlacesSource = Depends(get_places_source)) -> List[str]:
    return facet_values(load_places(source), "tags")
