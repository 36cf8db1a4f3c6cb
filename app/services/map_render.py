from __future__ import annotations

import html
import logging
from typing import Optional

import folium
from folium.plugins import MarkerCluster

from app.core.contracts import LatLng, MapViewState, MarkerLayers, MarkerSpec
from app.core.settings import settings

logger = logging.getLogger(__name__)

USER_MARKER_COLOR = "#4F46E5"
SELECTED_COLOR = "#DC2626"
DEFAULT_COLOR = "#2563EB"

# Cluster bubble class follows the child count (see markers.cluster_size)
_CLUSTER_ICON_JS = """
function(cluster) {
    var count = cluster.getChildCount();
    var size = 'small';
    if (count > 50) { size = 'large'; }
    else if (count > 20) { size = 'medium'; }
    return L.divIcon({
        html: '<div class="cluster-marker ' + size + '"><span>' + count + '</span></div>',
        className: 'leaflet-marker-cluster',
        iconSize: L.point(40, 40)
    });
}
"""

_MARKER_CSS = """
<style>
.marker-pin { width: 30px; height: 42px; display: flex; align-items: center; justify-content: center;
  border-radius: 50%% 50%% 50%% 0; background: %(default)s; color: #fff; font: 600 11px sans-serif; }
.marker-pin.selected { background: %(selected)s; transform: scale(1.25); }
.marker-pulse { position: absolute; width: 42px; height: 42px; border-radius: 50%%;
  background: %(selected)s; opacity: .35; animation: pulse 1.5s infinite; }
@keyframes pulse { 0%% { transform: scale(.6); opacity: .5 } 100%% { transform: scale(1.6); opacity: 0 } }
.cluster-marker { border-radius: 50%%; display: flex; align-items: center; justify-content: center;
  color: #fff; font: 600 12px sans-serif; }
.cluster-marker.small { width: 32px; height: 32px; background: #3B82F6; }
.cluster-marker.medium { width: 38px; height: 38px; background: #8B5CF6; }
.cluster-marker.large { width: 44px; height: 44px; background: #EC4899; }
</style>
""" % {"default": DEFAULT_COLOR, "selected": SELECTED_COLOR}


def _icon(m: MarkerSpec) -> folium.DivIcon:
    cls = "marker-pin selected" if m.selected else "marker-pin"
    body = f"&#9733; {html.escape(m.rating_label)}" if m.kind == "rating" and m.rating_label else "&#9679;"
    pulse = '<div class="marker-pulse"></div>' if m.selected else ""
    return folium.DivIcon(
        html=f'<div class="{cls}">{body}{pulse}</div>',
        icon_size=(30, 42),
        icon_anchor=(15, 42),
        class_name=("rating-marker-icon" if m.kind == "rating" else "custom-marker-icon"),
    )


def _marker(m: MarkerSpec) -> folium.Marker:
    return folium.Marker(
        location=[m.lat, m.lng],
        icon=_icon(m),
        popup=folium.Popup(m.popup_html, max_width=300),
        tooltip=m.name,
        z_index_offset=m.z_index_offset,
    )


def render_map(
    *,
    view: MapViewState,
    layers: Optional[MarkerLayers],
    user: Optional[LatLng] = None,
    radius_mode: bool = False,
    radius_km: float = 300.0,
    filtered_count: int = 0,
) -> folium.Map:
    """Build the Leaflet map for an explorer view."""
    attribution = settings.map_tiles_attribution
    if settings.map_attribution_prefix:
        attribution = f"{html.escape(settings.map_attribution_prefix)} | {attribution}"

    m = folium.Map(
        location=[view.center.lat, view.center.lng],
        zoom_start=view.zoom,
        min_zoom=settings.explorer_min_zoom,
        max_zoom=settings.explorer_max_zoom,
        tiles=settings.map_tiles_url,
        attr=attribution,
        control_scale=True,
    )
    m.get_root().header.add_child(folium.Element(_MARKER_CSS))

    if user is not None:
        folium.CircleMarker(
            location=[user.lat, user.lng],
            radius=8,
            color=USER_MARKER_COLOR,
            fill=True,
            fill_color=USER_MARKER_COLOR,
            fill_opacity=0.9,
            popup="Your Location",
        ).add_to(m)

        if radius_mode and filtered_count > 0:
            folium.Circle(
                location=[user.lat, user.lng],
                radius=radius_km * 1000,
                color=USER_MARKER_COLOR,
                fill=True,
                fill_color=USER_MARKER_COLOR,
                fill_opacity=0.1,
            ).add_to(m)

    if layers is None:
        return m

    if layers.cluster_mode:
        group = MarkerCluster(
            name="places",
            icon_create_function=_CLUSTER_ICON_JS,
            options={
                "showCoverageOnHover": False,
                "spiderfyOnMaxZoom": True,
                "disableClusteringAtZoom": settings.explorer_cluster_disable_zoom,
                "maxClusterRadius": settings.explorer_cluster_radius_px,
            },
        )
    else:
        group = folium.FeatureGroup(name="places")

    for spec in layers.markers:
        try:
            _marker(spec).add_to(group)
        except Exception as e:
            logger.warning("[map_render] skipping marker place_id=%s: %s", spec.place_id, e)
    group.add_to(m)

    # Selected marker sits on the map itself, above every layer.
    if layers.selected is not None:
        try:
            _marker(layers.selected).add_to(m)
        except Exception as e:
            logger.warning("[map_render] skipping selected marker place_id=%s: %s", layers.selected.place_id, e)

    return m


def render_error_panel(message: str) -> str:
    return (
        "<!DOCTYPE html><html><head><meta charset='utf-8'><title>Map unavailable</title></head>"
        "<body><div class='map-error'>"
        f"<p>{html.escape(message)}</p>"
        "<button onclick='window.location.reload()'>Retry</button>"
        "</div></body></html>"
    )
