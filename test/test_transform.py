import copy

from aio_cadastre.transform import (
    ANYAMA,
    LinearApproximation,
    to_lng_lat,
    transform,
    transform_coords,
)

import pytest


@pytest.mark.xdist_group(name="fast")
def test_reference_point():
    lng, lat = to_lng_lat(385_572.35, 611_102.49)

    assert lat == pytest.approx(5.4958 + 572.35 * 0.00001, abs=1e-9)
    assert lng == pytest.approx(-4.0519 + 1102.49 * 0.00001, abs=1e-9)
    assert lat == pytest.approx(5.50152, abs=1e-5)
    assert lng == pytest.approx(-4.04088, abs=1e-5)


@pytest.mark.xdist_group(name="fast")
def test_average_maps_to_reference():
    assert to_lng_lat(ANYAMA.avg_easting, ANYAMA.avg_northing) == (ANYAMA.ref_lng, ANYAMA.ref_lat)


@pytest.mark.xdist_group(name="fast")
def test_custom_approximation():
    approx = LinearApproximation(ref_lat=1.0, ref_lng=2.0, avg_easting=0, avg_northing=0, scale=0.5)
    assert to_lng_lat(2.0, 4.0, approx) == (4.0, 2.0)


@pytest.mark.xdist_group(name="fast")
def test_coords_keep_elevation():
    coord = transform_coords([385_000, 610_000, 12.5])
    assert coord == [-4.0519, 5.4958, 12.5]

    assert transform_coords([385_000]) == [385_000]


@pytest.mark.xdist_group(name="fast")
def test_polygon():
    ring = [[385_000, 610_000], [385_100, 610_000], [385_100, 610_100], [385_000, 610_000]]
    geometry = {"type": "Polygon", "coordinates": [ring]}
    before = copy.deepcopy(geometry)

    result = transform(geometry)

    assert geometry == before  # input untouched
    assert result["type"] == "Polygon"
    assert len(result["coordinates"]) == 1
    assert len(result["coordinates"][0]) == len(ring)

    for (e, n), (lng, lat) in zip(ring, result["coordinates"][0], strict=True):
        assert (lng, lat) == to_lng_lat(e, n)


@pytest.mark.xdist_group(name="fast")
def test_multipolygon_structure():
    ring = [[385_000, 610_000, 0], [385_010, 610_000, 0], [385_000, 610_010, 0]]
    hole = [[385_001, 610_001, 0], [385_002, 610_001, 0], [385_001, 610_002, 0]]
    geometry = {
        "type": "MultiPolygon",
        "coordinates": [[ring, hole], [ring]],
    }

    result = transform(geometry)

    assert [len(polygon) for polygon in result["coordinates"]] == [2, 1]
    assert [len(r) for r in result["coordinates"][0]] == [3, 3]
    assert all(len(coord) == 3 for coord in result["coordinates"][1][0])


@pytest.mark.xdist_group(name="fast")
@pytest.mark.parametrize(
    "geometry",
    [
        None,
        {"type": "Point", "coordinates": [385_000, 610_000]},
        {"type": "LineString", "coordinates": [[385_000, 610_000], [385_001, 610_001]]},
        {"type": "Polygon", "coordinates": []},
        {"type": "MultiPolygon", "coordinates": None},
    ],
)
def test_unsupported_passthrough(geometry):
    assert transform(geometry) is geometry
