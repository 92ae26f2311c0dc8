from aio_cadastre.filter import Dimension, FilterSelection, apply_filter, filter_options
from aio_cadastre.loader import FeatureLoader, LoadSource

import pytest

from test.util import (
    URL_WFS_ALL,
    make_collection,
    make_feature,
    mock_response,  # noqa: F401
    url_wfs_page,
)


def _features(start: int, stop: int) -> list[dict]:
    return [
        make_feature(idx, district=f"Q{idx % 7}", block=str(idx % 50), lot=str(idx))
        for idx in range(start, stop)
    ]


@pytest.mark.asyncio()
@pytest.mark.xdist_group(name="slow")
async def test_load_in_pages(mock_response):
    mock_response.get(URL_WFS_ALL, status=413, body="Payload Too Large")
    for start in (0, 1000, 2000):
        features = _features(start, start + 1000)
        mock_response.get(url_wfs_page(start), payload=make_collection(features))
    mock_response.get(url_wfs_page(3000), payload=make_collection(_features(3000, 3400)))

    async with FeatureLoader(page_size=1000) as loader:
        result = await loader.load()

    assert result.source is LoadSource.BATCHED
    assert result.nb_requests == 5  # the failed one, and four pages
    assert len(result.collection.all) == 3400
    assert [p.lot for p in result.collection.all] == [str(idx) for idx in range(3400)]


@pytest.mark.asyncio()
@pytest.mark.xdist_group(name="slow")
async def test_load_in_pages_right_away(mock_response):
    for start in (0, 1000, 2000):
        features = _features(start, start + 1000)
        mock_response.get(url_wfs_page(start), payload=make_collection(features))
    mock_response.get(url_wfs_page(3000), payload=make_collection(_features(3000, 3400)))

    async with FeatureLoader(page_size=1000) as loader:
        result = await loader.load(batched=True)

    assert result.nb_requests == 4
    assert len(result.collection.all) == 3400

    options = filter_options(result.collection)
    assert options[Dimension.DISTRICT] == [f"Q{i}" for i in range(7)]
    assert options[Dimension.BLOCK] == [str(i) for i in range(50)]
    assert len(options[Dimension.LOT]) == 3400

    filtered = apply_filter(result.collection, FilterSelection(district="Q3", block="10"))
    expected = [str(idx) for idx in range(3400) if idx % 7 == 3 and idx % 50 == 10]
    assert [p.lot for p in filtered.filtered] == expected
