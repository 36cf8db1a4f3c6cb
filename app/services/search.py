from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence, TypeVar

from app.core.contracts import Place, PlaceSort
from app.core.time import parse_iso

P = TypeVar("P", bound=Place)

_FIELDS = ("name", "location", "district", "state")

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def matches(place: Place, query: str) -> bool:
    q = query.casefold()
    for field in _FIELDS:
        value = getattr(place, field, None)
        if value and q in str(value).casefold():
            return True
    return False


def filter_by_text(places: Sequence[P], query: Optional[str]) -> list[P]:
    """Case-insensitive substring filter over name/location/district/state."""
    if not query:
        return list(places)
    return [p for p in places if matches(p, query)]


# ──────────────────────────────────────────────────────────────
# Listing filters / sorting / facets
# ──────────────────────────────────────────────────────────────

def _raw_rating(place: Place) -> float:
    return place.rating_sum / place.rating_count if place.rating_count > 0 else 0.0


def filter_by_attributes(
    places: Sequence[P],
    *,
    locations: Optional[Iterable[str]] = None,
    districts: Optional[Iterable[str]] = None,
    states: Optional[Iterable[str]] = None,
    tags: Optional[Iterable[str]] = None,
    min_rating: float = 0,
) -> list[P]:
    """
    Exact-match facet filters. Empty facets are ignored; a place matches
    `tags` when it carries any of them. `min_rating` compares against the
    unrounded average and only applies when positive.
    """
    loc = set(locations or ())
    dist = set(districts or ())
    st = set(states or ())
    tg = set(tags or ())

    out: list[P] = []
    for p in places:
        if loc and p.location not in loc:
            continue
        if dist and p.district not in dist:
            continue
        if st and p.state not in st:
            continue
        if tg and not tg.intersection(p.tags):
            continue
        if min_rating > 0 and _raw_rating(p) < min_rating:
            continue
        out.append(p)
    return out


def sort_places(places: Sequence[P], sort: Optional[PlaceSort]) -> list[P]:
    """Stable sort; `None` keeps input order. Missing created_at sorts last for "newest"."""
    out = list(places)
    if sort == "popularity":
        out.sort(key=lambda p: p.rating_count, reverse=True)
    elif sort == "rating":
        out.sort(key=_raw_rating, reverse=True)
    elif sort == "newest":
        out.sort(key=lambda p: parse_iso(p.created_at) or _EPOCH, reverse=True)
    elif sort == "name_asc":
        out.sort(key=lambda p: (p.name or "").casefold())
    elif sort == "name_desc":
        out.sort(key=lambda p: (p.name or "").casefold(), reverse=True)
    return out


def facet_values(places: Iterable[Place], field: str) -> list[str]:
    """Distinct non-empty values of `field` ("tags" flattens the lists), sorted."""
    seen: set[str] = set()
    for p in places:
        value = getattr(p, field, None)
        if field == "tags":
            seen.update(t for t in value or () if t)
        elif value:
            seen.add(value)
    return sorted(seen)
