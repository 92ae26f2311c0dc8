"""
Conversion of projected parcel coordinates to longitude and latitude.

The conversion is a first-order local approximation around a reference point of the
municipality, not the inverse of the source projection. It is only acceptable because
the extent of the dataset is small compared to its distance from that reference point.
The constants must stay as they are: parcels rendered elsewhere are placed with the very
same formula.
"""

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from aio_cadastre.spatial import GeoJsonDict


__docformat__ = "google"
__all__ = (
    "ANYAMA",
    "LinearApproximation",
    "to_lng_lat",
    "transform",
    "transform_coords",
)


@dataclass(kw_only=True, slots=True, frozen=True)
class LinearApproximation:
    """
    Fixed parameters of the linear coordinate approximation.

    For a projected coordinate ``(e, n)``::

        lat = ref_lat + (e - avg_easting) * scale
        lng = ref_lng + (n - avg_northing) * scale

    Attributes:
        ref_lat: latitude of the municipality's reference point
        ref_lng: longitude of the municipality's reference point
        avg_easting: approximate easting centroid of the dataset
        avg_northing: approximate northing centroid of the dataset
        scale: empirical degrees per projected unit
    """

    ref_lat: float
    ref_lng: float
    avg_easting: float
    avg_northing: float
    scale: float


ANYAMA = LinearApproximation(
    ref_lat=5.4958,
    ref_lng=-4.0519,
    avg_easting=385_000,
    avg_northing=610_000,
    scale=0.00001,
)
"""Parameters for the parcel layer of Anyama, Côte d'Ivoire."""


def to_lng_lat(
    easting: float,
    northing: float,
    approx: LinearApproximation = ANYAMA,
) -> tuple[float, float]:
    """Convert a single projected point to ``(lng, lat)``."""
    lat = approx.ref_lat + (easting - approx.avg_easting) * approx.scale
    lng = approx.ref_lng + (northing - approx.avg_northing) * approx.scale
    return lng, lat


def transform_coords(coord: Sequence[Any], approx: LinearApproximation = ANYAMA) -> list[Any]:
    """
    Convert a coordinate tuple ``(e, n[, z])`` to ``[lng, lat[, z]]``.

    Tuples with fewer than two components are returned as they are.
    """
    if len(coord) < 2:
        return list(coord)
    lng, lat = to_lng_lat(coord[0], coord[1], approx)
    return [lng, lat, *coord[2:]]


def transform(
    geometry: GeoJsonDict | None,
    approx: LinearApproximation = ANYAMA,
) -> GeoJsonDict | None:
    """
    Convert a projected GeoJSON geometry to geographic coordinates.

    Only ``Polygon`` and ``MultiPolygon`` geometries are converted. Other geometry types,
    and geometries without coordinates, are returned unchanged: they are not supported.

    The input is never modified.
    """
    if not geometry or not geometry.get("coordinates"):
        return geometry

    match geometry.get("type"):
        case "Polygon":
            coordinates = _polygon(geometry["coordinates"], approx)
        case "MultiPolygon":
            coordinates = [_polygon(polygon, approx) for polygon in geometry["coordinates"]]
        case _:
            return geometry

    return {**geometry, "coordinates": coordinates}


def _polygon(rings: Sequence[Sequence[Sequence[Any]]], approx: LinearApproximation) -> list:
    return [[transform_coords(coord, approx) for coord in ring] for ring in rings]
