import json
import logging

from aio_cadastre.__main__ import main

import pytest

from test.util import (
    URL_WFS_ALL,
    make_collection,
    make_feature,
    mock_response,  # noqa: F401
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ("CADASTRE_SOURCE_URL", "CADASTRE_PAGE_SIZE", "CADASTRE_SRS_NAME"):
        monkeypatch.delenv(name, raising=False)

    yield

    # main() adds a handler that writes to the captured stderr of a single test
    logging.getLogger("aio_cadastre").handlers.clear()


@pytest.mark.xdist_group(name="fast")
def test_load(mock_response, tmp_path):
    mock_response.get(URL_WFS_ALL, payload=make_collection([make_feature(0), make_feature(1)]))
    out = tmp_path / "parcels.geojson"

    assert main(["load", "--out", str(out)]) == 0

    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["type"] == "FeatureCollection"
    assert [f["id"] for f in data["features"]] == ["parcelle_anyama.0", "parcelle_anyama.1"]

    lng, lat, _ = data["features"][0]["geometry"]["coordinates"][0][0][0]
    assert lng == pytest.approx(-4.0519)
    assert lat == pytest.approx(5.4958)


@pytest.mark.xdist_group(name="fast")
def test_load_fallback_to_stdout(mock_response, capsys):
    mock_response.get(URL_WFS_ALL, status=500)

    assert main(["load"]) == 1

    data = json.loads(capsys.readouterr().out)
    assert len(data["features"]) == 3


@pytest.mark.xdist_group(name="fast")
def test_invalid_option(capsys):
    with pytest.raises(SystemExit):
        main(["load", "--page-size", "0"])

    assert "'page_size' must be > 0" in capsys.readouterr().err
