"""Typed parcels and parcel collections."""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import Any

from aio_cadastre.spatial import GeoJsonDict, Spatial
from aio_cadastre.transform import ANYAMA, LinearApproximation, transform


__docformat__ = "google"
__all__ = (
    "AttributeSchema",
    "DEFAULT_SCHEMA",
    "Parcel",
    "ParcelCollection",
    "ParcelId",
    "collect_parcels",
    "feature_collection",
)


ParcelId = str | int
"""Parcel identifiers are opaque, but unique within a loaded collection."""


@dataclass(kw_only=True, slots=True, frozen=True)
class AttributeSchema:
    """
    Names of the feature properties that hold parcel attributes.

    Attributes:
        district: the broadest filterable area ("quartier")
        block: the area inside a district ("îlot")
        lot: the individual unit
        land_use: the land use category ("nature du lot")
        municipality: the municipality ("commune")
    """

    district: str = "quartiers"
    block: str = "ilot"
    lot: str = "lot"
    land_use: str = "nature_lot"
    municipality: str = "commune"


DEFAULT_SCHEMA = AttributeSchema()
"""Property names of the parcel layer served by the municipality's feature server."""


@dataclass(kw_only=True, slots=True, frozen=True, repr=False)
class Parcel(Spatial):
    """
    A cadastral land unit.

    Parcels are never modified after they were collected: filtering selects them,
    rendering converts a copy of their geometry.

    Attributes:
        id: identifier of the feature in the source layer
        geometry: GeoJSON geometry in the projected source coordinates, or ``None``
        district: district name, or ``None``
        block: block name, or ``None``
        lot: lot name, or ``None``
        land_use: land use category, or ``None``
        municipality: municipality name, or ``None``
        properties: all properties of the source feature
    """

    id: ParcelId
    geometry: GeoJsonDict | None
    district: str | None = None
    block: str | None = None
    lot: str | None = None
    land_use: str | None = None
    municipality: str | None = None
    properties: Mapping[str, Any] = field(default_factory=dict)

    def geographic_geometry(self, approx: LinearApproximation = ANYAMA) -> GeoJsonDict | None:
        """The geometry in longitude and latitude, computed on every call."""
        return transform(self.geometry, approx)

    @property
    def geojson(self) -> GeoJsonDict:
        """A ``Feature`` with geographic geometry and the source properties."""
        return self.feature()

    def feature(self, approx: LinearApproximation = ANYAMA) -> GeoJsonDict:
        """A ``Feature`` with the geometry converted by ``approx``."""
        return {
            "type": "Feature",
            "id": self.id,
            "geometry": self.geographic_geometry(approx),
            "properties": dict(self.properties),
        }

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.id!r})"

    def __hash__(self) -> int:
        return hash(self.id)


@dataclass(kw_only=True, slots=True, frozen=True, repr=False)
class ParcelCollection(Spatial):
    """
    All loaded parcels, and the currently visible subset.

    ``filtered`` only ever contains parcels of ``all``, in the same relative order.
    It is recomputed from ``all`` on every filter change (see ``apply_filter()``).

    Attributes:
        all: every parcel of the most recent load
        filtered: the visible parcels
    """

    all: tuple[Parcel, ...]
    filtered: tuple[Parcel, ...]

    @classmethod
    def of(cls, parcels: Iterable[Parcel]) -> "ParcelCollection":
        """A collection where every parcel is visible."""
        all_ = tuple(parcels)
        return cls(all=all_, filtered=all_)

    @classmethod
    def empty(cls) -> "ParcelCollection":
        return cls(all=(), filtered=())

    @property
    def geojson(self) -> GeoJsonDict:
        """The visible parcels as a ``FeatureCollection`` in geographic coordinates."""
        return feature_collection(self.filtered)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({len(self.filtered)}/{len(self.all)})"


def feature_collection(
    parcels: Iterable[Parcel],
    approx: LinearApproximation = ANYAMA,
) -> GeoJsonDict:
    """Map parcels to a ``FeatureCollection`` with geographic coordinates."""
    return {
        "type": "FeatureCollection",
        "features": [parcel.feature(approx) for parcel in parcels],
    }


def collect_parcels(
    features: Iterable[GeoJsonDict],
    schema: AttributeSchema = DEFAULT_SCHEMA,
) -> list[Parcel]:
    """
    Produce typed parcels from the features of a feature collection.

    Entries that are not GeoJSON features are skipped. The order of features is retained.
    Attribute values that are not strings are converted to strings, and empty values
    become ``None``.

    Args:
        features: the ``features`` array of a feature collection response
        schema: names of the properties that hold parcel attributes

    Returns:
        the parcels, in source order
    """
    parcels = []

    for idx, feature in enumerate(features):
        if not isinstance(feature, dict) or feature.get("type", "Feature") != "Feature":
            continue

        props = feature.get("properties") or {}

        parcels.append(
            Parcel(
                id=_parcel_id(feature, props, idx),
                geometry=feature.get("geometry"),
                district=_attribute(props, schema.district),
                block=_attribute(props, schema.block),
                lot=_attribute(props, schema.lot),
                land_use=_attribute(props, schema.land_use),
                municipality=_attribute(props, schema.municipality),
                properties=props,
            )
        )

    return parcels


def _parcel_id(feature: GeoJsonDict, props: Mapping[str, Any], idx: int) -> ParcelId:
    # feature ids look like "parcelle_anyama.26244"; fall back to the layer's own keys
    for candidate in (feature.get("id"), props.get("gid"), props.get("id")):
        if candidate is not None and candidate != "":
            return candidate
    return idx


def _attribute(props: Mapping[str, Any], key: str) -> str | None:
    value = props.get(key)
    if value is None:
        return None
    value = value if isinstance(value, str) else str(value)
    return value or None
