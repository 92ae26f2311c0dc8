import json
import re
from collections.abc import Callable
from typing import Any

from aio_cadastre.parcel import Parcel, ParcelCollection, ParcelId
from aio_cadastre.spatial import Bbox, GeoJsonDict, feature_bounds
from aio_cadastre.style import Popup, Style
from aio_cadastre.view import MapView

import geojson
import pytest
import shapely.geometry
from aioresponses import aioresponses


URL_WFS = "http://localhost:8000/geoserver/Projet_Rokia/ows"
URL_WFS_ALL = re.compile(rf"^{re.escape(URL_WFS)}\?(?!(.*&)?startIndex=).*$")


def url_wfs_page(start_index: int) -> re.Pattern:
    """Matches the request of the page that starts at ``start_index``."""
    return re.compile(rf"^{re.escape(URL_WFS)}\?(.*&)?startIndex={start_index}(&.*)?$")


@pytest.fixture
def mock_response():
    with aioresponses() as m:
        yield m


def make_feature(  # noqa: PLR0913
    idx: int,
    district: str | None = "AHOUABO",
    block: str | None = "11",
    lot: str | None = None,
    land_use: str | None = "Bâti",
    easting: float = 385_000.0,
    northing: float = 610_000.0,
    size: float = 20.0,
) -> GeoJsonDict:
    """A feature of the parcel layer with a square polygon in projected coordinates."""
    e, n, s = easting + idx * size, northing, size
    ring = [[e, n, 0], [e + s, n, 0], [e + s, n + s, 0], [e, n + s, 0], [e, n, 0]]
    return {
        "type": "Feature",
        "id": f"parcelle_anyama.{idx}",
        "geometry": {"type": "MultiPolygon", "coordinates": [[ring]]},
        "properties": {
            "gid": idx,
            "quartiers": district,
            "ilot": block,
            "lot": lot if lot is not None else str(idx),
            "nature_lot": land_use,
            "commune": "ANYAMA",
        },
    }


def make_collection(features: list[GeoJsonDict]) -> GeoJsonDict:
    return {"type": "FeatureCollection", "features": features}


class RecordingMapView(MapView):
    """A map that records every call of the view controller."""

    def __init__(self) -> None:
        self.layers: list[dict[str, Any]] = []
        self.removed: list[dict[str, Any]] = []
        self.handlers: dict[tuple[int, str], Callable[[ParcelId], None]] = {}
        self.styles: list[tuple[int, ParcelId, Style]] = []
        self.fits: list[tuple[Bbox, int, int]] = []
        self.views: list[tuple[tuple[float, float], int]] = []
        self._center = (5.4944, -4.0519)
        self._zoom = 19

    def add_layer(
        self,
        features: GeoJsonDict,
        style: Callable[[GeoJsonDict], Style],
        popup: Callable[[GeoJsonDict], Popup],
    ) -> Any:
        layer = {
            "id": len(self.layers),
            "features": features,
            "styles": [style(f) for f in features["features"]],
            "popups": [popup(f) for f in features["features"]],
        }
        self.layers.append(layer)
        return layer

    def remove_layer(self, layer: Any) -> None:
        self.removed.append(layer)

    def bind(self, layer: Any, event: str, handler: Callable[[ParcelId], None]) -> None:
        self.handlers[(layer["id"], event)] = handler

    def set_style(self, layer: Any, feature_id: ParcelId, style: Style) -> None:
        self.styles.append((layer["id"], feature_id, style))

    def fit_bounds(self, bbox: Bbox, padding: int, max_zoom: int) -> None:
        self.fits.append((bbox, padding, max_zoom))

    def set_view(self, center: tuple[float, float], zoom: int) -> None:
        self._center = center
        self._zoom = zoom
        self.views.append((center, zoom))

    def center(self) -> tuple[float, float]:
        return self._center

    def zoom(self) -> int:
        return self._zoom

    @property
    def current(self) -> dict[str, Any]:
        """The layer that was added last."""
        return self.layers[-1]

    def fire(self, event: str, feature_id: ParcelId) -> None:
        """Simulate a pointer event on a shape of the current layer."""
        self.handlers[(self.current["id"], event)](feature_id)


def verify_parcel(parcel: Parcel) -> None:
    msg = repr(parcel)

    assert parcel.id is not None, msg
    assert isinstance(parcel.properties, dict), msg

    for value in (parcel.district, parcel.block, parcel.lot, parcel.land_use):
        assert value is None or (isinstance(value, str) and value), msg

    feature = parcel.geojson
    assert feature["id"] == parcel.id, msg
    assert geojson.loads(json.dumps(feature)).is_valid, msg

    if parcel.geometry:
        w, s, e, n = feature_bounds(feature)
        assert -5.0 < w <= e < -3.0, msg  # in Côte d'Ivoire
        assert 5.0 < s <= n < 6.0, msg

        for spatial_dict in parcel.geo_interfaces:
            try:
                _ = shapely.geometry.shape(spatial_dict.__geo_interface__["geometry"])
            except BaseException as err:
                raise AssertionError(f"{msg}: bad __geo_interface__: {err}")

    assert repr(parcel), msg  # just test this doesn't raise


def verify_collection(collection: ParcelCollection) -> None:
    positions = {parcel.id: idx for idx, parcel in enumerate(collection.all)}
    assert all(parcel.id in positions for parcel in collection.filtered)
    indices = [positions[parcel.id] for parcel in collection.filtered]
    assert indices == sorted(indices), "filtered parcels out of order"

    for parcel in collection.all:
        verify_parcel(parcel)
