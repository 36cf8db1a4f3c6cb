from __future__ import annotations

import html
import logging
from typing import Any, List, Optional, Sequence, Tuple

from app.core.contracts import ClusterSize, ClusterSpec, MarkerLayers, MarkerSpec, Place
from app.core.geo import project

logger = logging.getLogger(__name__)

DEFAULT_CLUSTER_RADIUS_PX = 50
DEFAULT_DISABLE_CLUSTERING_AT_ZOOM = 16
SELECTED_Z_INDEX = 1000
DESCRIPTION_PREVIEW_CHARS = 100


def same_id(a: Any, b: Any) -> bool:
    # Upstream ids arrive as ints or numeric strings depending on the caller.
    return a is not None and b is not None and str(a) == str(b)


def rating_label(place: Place) -> Optional[str]:
    if place.rating_count > 0:
        return f"{place.rating_sum / place.rating_count:.1f}"
    return None


def cluster_size(count: int) -> ClusterSize:
    if count > 50:
        return "large"
    if count > 20:
        return "medium"
    return "small"


# ──────────────────────────────────────────────────────────────
# Popup
# ──────────────────────────────────────────────────────────────

def popup_html(place: Place) -> str:
    name = html.escape(place.name or "")
    label = rating_label(place)

    where = ", ".join(html.escape(p) for p in (place.location, place.district, place.state) if p)

    parts = [
        '<div class="custom-popup">',
        f'<div class="popup-header"><h3>{name}</h3>',
    ]
    if label:
        parts.append(f'<div class="rating">&#9733; <span>{label}</span></div>')
    parts.append("</div>")
    parts.append(f'<div class="popup-body"><p>{where}</p>')
    if place.description:
        desc = place.description[:DESCRIPTION_PREVIEW_CHARS]
        if len(place.description) > DESCRIPTION_PREVIEW_CHARS:
            desc += "..."
        parts.append(f'<p class="description">{html.escape(desc)}</p>')
    parts.append("</div>")
    parts.append(
        f'<div class="popup-footer"><a href="/places/{html.escape(str(place.id))}" '
        f'class="view-button">View Details</a></div>'
    )
    parts.append("</div>")
    return "".join(parts)


# ──────────────────────────────────────────────────────────────
# Markers
# ──────────────────────────────────────────────────────────────

def marker_for(place: Place, *, selected: bool = False) -> MarkerSpec:
    lat = float(place.latitude)
    lng = float(place.longitude)
    label = rating_label(place)
    return MarkerSpec(
        place_id=place.id,
        name=place.name or "",
        lat=lat,
        lng=lng,
        kind="rating" if label else "pin",
        rating_label=label,
        selected=selected,
        z_index_offset=SELECTED_Z_INDEX if selected else 0,
        popup_html=popup_html(place),
    )


def cluster_markers(
    markers: Sequence[MarkerSpec],
    zoom: float,
    *,
    radius_px: int = DEFAULT_CLUSTER_RADIUS_PX,
    disable_at_zoom: float = DEFAULT_DISABLE_CLUSTERING_AT_ZOOM,
) -> Tuple[List[ClusterSpec], List[MarkerSpec]]:
    """
    Greedy pixel-radius clustering at `zoom`.

    Each marker joins the first group whose running pixel centroid lies
    within `radius_px`, otherwise it starts a new group. Groups of one are
    returned as singles. At or above `disable_at_zoom` nothing clusters.
    """
    if zoom >= disable_at_zoom:
        return [], list(markers)

    r2 = float(radius_px) ** 2
    # [sum_x, sum_y, members]
    groups: list[list[Any]] = []

    for m in markers:
        x, y = project(m.lat, m.lng, zoom)
        for g in groups:
            n = len(g[2])
            gx, gy = g[0] / n, g[1] / n
            if (x - gx) ** 2 + (y - gy) ** 2 <= r2:
                g[0] += x
                g[1] += y
                g[2].append(m)
                break
        else:
            groups.append([x, y, [m]])

    clusters: list[ClusterSpec] = []
    singles: list[MarkerSpec] = []
    for _, _, members in groups:
        if len(members) == 1:
            singles.append(members[0])
            continue
        n = len(members)
        clusters.append(
            ClusterSpec(
                lat=sum(m.lat for m in members) / n,
                lng=sum(m.lng for m in members) / n,
                count=n,
                size=cluster_size(n),
                place_ids=[m.place_id for m in members],
            )
        )
    return clusters, singles


def build_marker_layers(
    places: Sequence[Place],
    selected: Optional[Place],
    *,
    cluster_mode: bool,
    zoom: float,
    radius_px: int = DEFAULT_CLUSTER_RADIUS_PX,
    disable_at_zoom: float = DEFAULT_DISABLE_CLUSTERING_AT_ZOOM,
) -> MarkerLayers:
    """
    Full rebuild of the marker layers for `places`.

    The selected place goes to its own always-on-top layer and never
    clusters. A place that fails to render is logged and listed in
    `skipped`; the rest still render.
    """
    selected_id = selected.id if selected is not None else None

    selected_marker: Optional[MarkerSpec] = None
    others: list[MarkerSpec] = []
    skipped: list[Any] = []

    for place in places:
        try:
            if not place.has_coords:
                continue
            is_selected = same_id(place.id, selected_id)
            m = marker_for(place, selected=is_selected)
        except Exception as e:
            pid = getattr(place, "id", None)
            logger.warning("[markers] skipping place id=%s: %s", pid, e)
            skipped.append(pid)
            continue

        if is_selected:
            selected_marker = m
        else:
            others.append(m)

    clusters: list[ClusterSpec] = []
    singles: list[MarkerSpec] = []
    if cluster_mode:
        clusters, singles = cluster_markers(
            others, zoom, radius_px=radius_px, disable_at_zoom=disable_at_zoom
        )

    return MarkerLayers(
        cluster_mode=cluster_mode,
        zoom=zoom,
        selected=selected_marker,
        markers=others,
        clusters=clusters,
        singles=singles,
        skipped=skipped,
    )
