from __future__ import annotations

import logging
from typing import Optional, Sequence

from app.core.contracts import DerivedPlace, LatLng, Place, ProximityResult, RadiusPolicy
from app.core.geo import haversine_km

logger = logging.getLogger(__name__)

DEFAULT_RADIUS_KM = 300.0


def derive(place: Place, *, distance: Optional[float] = None) -> DerivedPlace:
    data = place.model_dump()
    data["distance"] = distance
    return DerivedPlace.model_validate(data)


def with_coords(places: Sequence[Place]) -> list[Place]:
    return [p for p in places if p.has_coords]


def filter_by_proximity(
    places: Sequence[Place],
    user: Optional[LatLng],
    *,
    radius_km: float = DEFAULT_RADIUS_KM,
    policy: RadiusPolicy = "best_effort",
) -> ProximityResult:
    """
    Restrict `places` to those near `user`.

    - No user coordinate: every place with coordinates, input order,
      radius_mode=False.
    - Some places within `radius_km`: only those, nearest first.
    - None within `radius_km`: "best_effort" returns all places nearest
      first and keeps radius_mode=True; "strict" returns nothing.
    """
    valid = with_coords(places)

    if user is None:
        return ProximityResult(
            places=[derive(p) for p in valid],
            radius_mode=False,
            user=None,
            radius_km=radius_km,
            policy=policy,
            within_radius=0,
        )

    annotated = [
        derive(p, distance=haversine_km(user.lat, user.lng, float(p.latitude), float(p.longitude)))
        for p in valid
    ]
    annotated.sort(key=lambda d: d.distance)

    within = [d for d in annotated if d.distance <= radius_km]

    if within:
        out = within
    elif policy == "strict":
        out = []
    else:
        out = annotated

    logger.debug(
        "proximity: valid=%d within=%d radius_km=%s policy=%s",
        len(valid), len(within), radius_km, policy,
    )

    return ProximityResult(
        places=out,
        radius_mode=True,
        user=user,
        radius_km=radius_km,
        policy=policy,
        within_radius=len(within),
    )
