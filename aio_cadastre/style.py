"""Parcel styles and popup contents."""

from dataclasses import dataclass
from typing import Any

from aio_cadastre.parcel import Parcel


__docformat__ = "google"
__all__ = (
    "CLICK_STYLE",
    "DEFAULT_STYLE",
    "HOVER_STYLE",
    "LAND_USE_STYLES",
    "NORMAL_STYLE",
    "Popup",
    "Style",
    "parcel_style",
    "popup_fields",
)


Style = dict[str, Any]
"""Path options understood by web map libraries: ``color``, ``weight``, ``opacity``, etc."""


def _fill(color: str) -> Style:
    return {"color": color, "fillColor": color, "weight": 1, "opacity": 0.6, "fillOpacity": 0.4}


LAND_USE_STYLES: dict[str, Style] = {
    "Bâti": _fill("#2ecc71"),
    "Non Bâti": _fill("#f39c12"),
    "En Construction": _fill("#e74c3c"),
    "Inachevé": _fill("#9b59b6"),
    "Abandonné": _fill("#e67e22"),
    "Terrain Nu Clôturé": _fill("#f1c40f"),
}
"""Polygon style per land use category."""

DEFAULT_STYLE: Style = _fill("#95a5a6")

HOVER_STYLE: Style = {"weight": 3, "opacity": 0.9, "fillOpacity": 0.8, "color": "#2c3e50"}
"""Emphasis of the shape under the pointer."""

NORMAL_STYLE: Style = {"weight": 1, "opacity": 0.6, "fillOpacity": 0.6, "color": "#2c3e50"}
"""Emphasis of a shape after the pointer left it."""

CLICK_STYLE: Style = {"weight": 2, "opacity": 1, "fillOpacity": 0.7, "color": "#e74c3c"}
"""Emphasis of a clicked shape."""

_BADGE_COLORS = {
    "Bâti": "#2ecc71",
    "Non Bâti": "#f39c12",
    "En Construction": "#e74c3c",
    "Inachevé": "#9b59b6",
}

_MISSING = "N/A"


def parcel_style(parcel: Parcel) -> Style:
    """The polygon style of a parcel, based on its land use."""
    style = LAND_USE_STYLES.get(parcel.land_use or "", DEFAULT_STYLE)
    return dict(style)


@dataclass(kw_only=True, slots=True, frozen=True)
class Popup:
    """
    Data shown in a parcel's popup.

    Attributes:
        title: the heading, f.e. ``"Parcel 26244"``
        badge: the land use, or ``"N/A"``
        badge_color: background color of the badge
        fields: ``(label, value)`` pairs, with ``"N/A"`` for missing values
    """

    title: str
    badge: str
    badge_color: str
    fields: tuple[tuple[str, str], ...]


def popup_fields(parcel: Parcel) -> Popup:
    """The popup of a parcel."""
    parcel_no = parcel.properties.get("id", parcel.id)
    return Popup(
        title=f"Parcel {parcel_no}",
        badge=parcel.land_use or _MISSING,
        badge_color=_BADGE_COLORS.get(parcel.land_use or "", DEFAULT_STYLE["color"]),
        fields=(
            ("Municipality", parcel.municipality or _MISSING),
            ("District", parcel.district or _MISSING),
            ("Block", parcel.block or _MISSING),
            ("Lot", parcel.lot or _MISSING),
        ),
    )
