"""Basic definitions for (groups of) geospatial objects."""

import math
from abc import ABC, abstractmethod
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from typing import Any, TypeAlias

import shapely.geometry
from shapely.errors import ShapelyError
from shapely.geometry.base import BaseGeometry


__docformat__ = "google"
__all__ = (
    "Bbox",
    "GeoJsonDict",
    "SpatialDict",
    "Spatial",
    "feature_bounds",
)


GeoJsonDict: TypeAlias = dict[str, Any]
"""A dictionary representing a GeoJSON object."""

Bbox: TypeAlias = tuple[float, float, float, float]
"""
The bounding box of a spatial object.

This tuple can be understood as any of
    - ``(w, s, e, n)``
    - ``(minlon, minlat, maxlon, maxlat)``
    - ``(minx, miny, maxx, maxy)``
"""


@dataclass(kw_only=True, slots=True)
class SpatialDict:
    """
    Mapping of spatial objects with the ``__geo_interface__`` property.

    Objects of this class have the ``__geo_interface__`` property following a protocol
    [proposed](https://gist.github.com/sgillies/2217756) by Sean Gillies, which can make
    it easier to use spatial data in other Python software. An example of this is the ``shape()``
    function that builds Shapely geometries from any object with the ``__geo_interface__`` property.

    Attributes:
        __geo_interface__: this is the proposed property that contains the spatial data
    """

    __geo_interface__: dict


class Spatial(ABC):
    """
    Base class for (groups of) geospatial objects.

    Classes that represent spatial features extend this class and implement the
    ``geojson`` property, which is what gets handed to a map for rendering.
    """

    __slots__ = ()

    @property
    @abstractmethod
    def geojson(self) -> GeoJsonDict:
        """
        A mapping of this object, using the GeoJSON format.

        Coordinates are tuples of longitude and latitude (in that order),
        optionally followed by an elevation.

        References:
            - https://tools.ietf.org/html/rfc7946#section-4
        """
        raise NotImplementedError

    @property
    def geo_interfaces(self) -> Iterator[SpatialDict]:
        """A mapping of this object to ``SpatialDict``s that implement ``__geo_interface__``."""
        geojson = self.geojson
        match geojson["type"]:
            case "FeatureCollection":
                for feature in geojson["features"]:
                    yield SpatialDict(__geo_interface__=feature)
            case _:
                yield SpatialDict(__geo_interface__=geojson)

    @property
    def bounds(self) -> Bbox | None:
        """The bounding box of this object, or ``None`` if it has no geometry."""
        return feature_bounds(self.geojson)


def feature_bounds(geojson: GeoJsonDict) -> Bbox | None:
    """
    The bounding box of a GeoJSON geometry, feature or feature collection.

    Features without geometry are skipped.

    Returns:
        the bounding box, or ``None`` if there is no geometry at all
    """
    geoms = [_shape(geom) for geom in _geometries(geojson)]
    bounds = [geom.bounds for geom in geoms if geom is not None and not geom.is_empty]
    bounds = [b for b in bounds if not any(math.isnan(c) for c in b)]

    if not bounds:
        return None

    return (
        min(b[0] for b in bounds),
        min(b[1] for b in bounds),
        max(b[2] for b in bounds),
        max(b[3] for b in bounds),
    )


def _geometries(geojson: GeoJsonDict) -> Iterable[GeoJsonDict]:
    match geojson.get("type"):
        case "FeatureCollection":
            for feature in geojson.get("features") or ():
                yield from _geometries(feature)
        case "Feature":
            if geometry := geojson.get("geometry"):
                yield geometry
        case None:
            return
        case _:
            yield geojson


def _shape(geometry: GeoJsonDict) -> BaseGeometry | None:
    try:
        return shapely.geometry.shape(geometry)
    except (ShapelyError, ValueError, TypeError, AttributeError, KeyError, IndexError):
        return None
