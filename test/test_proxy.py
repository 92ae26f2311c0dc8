import json

from aio_cadastre.proxy import CORS_HEADERS, make_app

import pytest
from aiohttp import web


SAMPLE = {"type": "FeatureCollection", "features": [], "name": "sample"}


def _upstream() -> web.Application:
    async def ows(request: web.Request) -> web.Response:
        if request.query.get("typeName") == "broken":
            return web.Response(status=500, text="java.lang.NullPointerException")
        return web.json_response(
            {
                "type": "FeatureCollection",
                "features": [],
                "query": dict(request.query),
                "accept": request.headers.get("Accept"),
            }
        )

    app = web.Application()
    app.router.add_get("/geoserver/Projet_Rokia/ows", ows)
    return app


@pytest.fixture
def static_dir(tmp_path):
    (tmp_path / "index.html").write_text("<html>viewer</html>", encoding="utf-8")
    (tmp_path / "app.js").write_text("console.log('viewer');", encoding="utf-8")
    (tmp_path / "data.json").write_text(json.dumps(SAMPLE), encoding="utf-8")
    return tmp_path


@pytest.fixture
def unreachable_url(unused_tcp_port_factory):
    return f"http://127.0.0.1:{unused_tcp_port_factory()}"


def _assert_cors(response) -> None:
    for key, value in CORS_HEADERS.items():
        assert response.headers[key] == value


@pytest.mark.asyncio()
@pytest.mark.xdist_group(name="fast")
async def test_index(aiohttp_client, static_dir, unreachable_url):
    client = await aiohttp_client(make_app(static_dir, unreachable_url))

    response = await client.get("/")
    assert response.status == 200
    assert await response.text() == "<html>viewer</html>"
    _assert_cors(response)

    response = await client.get("/app.js")
    assert response.status == 200
    assert await response.text() == "console.log('viewer');"
    _assert_cors(response)


@pytest.mark.asyncio()
@pytest.mark.xdist_group(name="fast")
async def test_missing_file(aiohttp_client, static_dir, unreachable_url):
    client = await aiohttp_client(make_app(static_dir, unreachable_url))

    response = await client.get("/missing.js")
    assert response.status == 404
    _assert_cors(response)


@pytest.mark.asyncio()
@pytest.mark.xdist_group(name="fast")
async def test_preflight(aiohttp_client, static_dir, unreachable_url):
    client = await aiohttp_client(make_app(static_dir, unreachable_url))

    response = await client.options("/geoserver/Projet_Rokia/ows")
    assert response.status == 204
    _assert_cors(response)


@pytest.mark.asyncio()
@pytest.mark.xdist_group(name="fast")
async def test_forward(aiohttp_client, aiohttp_server, static_dir):
    upstream = await aiohttp_server(_upstream())
    upstream_url = f"http://{upstream.host}:{upstream.port}"

    client = await aiohttp_client(make_app(static_dir, upstream_url))

    response = await client.get(
        "/geoserver/Projet_Rokia/ows",
        params={"service": "WFS", "typeName": "Projet_Rokia:parcelle_anyama"},
    )
    assert response.status == 200
    assert response.content_type == "application/json"
    _assert_cors(response)

    data = await response.json()
    assert data["query"] == {"service": "WFS", "typeName": "Projet_Rokia:parcelle_anyama"}
    assert data["accept"] == "application/json"


@pytest.mark.asyncio()
@pytest.mark.xdist_group(name="fast")
async def test_forward_error_status(aiohttp_client, aiohttp_server, static_dir):
    upstream = await aiohttp_server(_upstream())
    upstream_url = f"http://{upstream.host}:{upstream.port}"

    client = await aiohttp_client(make_app(static_dir, upstream_url))

    response = await client.get("/geoserver/Projet_Rokia/ows", params={"typeName": "broken"})
    assert response.status == 500
    assert response.content_type == "text/plain"
    assert await response.text() == "java.lang.NullPointerException"

    response = await client.get("/geoserver/elsewhere")
    assert response.status == 404


@pytest.mark.asyncio()
@pytest.mark.xdist_group(name="fast")
async def test_unreachable_serves_fallback(aiohttp_client, static_dir, unreachable_url):
    client = await aiohttp_client(make_app(static_dir, unreachable_url))

    response = await client.get("/geoserver/Projet_Rokia/ows", params={"service": "WFS"})
    assert response.status == 200
    assert response.content_type == "application/json"
    assert await response.json() == SAMPLE
    _assert_cors(response)


@pytest.mark.asyncio()
@pytest.mark.xdist_group(name="fast")
async def test_unreachable_serves_bundled_sample(aiohttp_client, static_dir, unreachable_url):
    (static_dir / "data.json").unlink()

    client = await aiohttp_client(make_app(static_dir, unreachable_url))

    response = await client.get("/geoserver/Projet_Rokia/ows")
    assert response.status == 200
    data = await response.json()
    assert len(data["features"]) == 3


@pytest.mark.asyncio()
@pytest.mark.xdist_group(name="fast")
async def test_unreadable_fallback(aiohttp_client, static_dir, unreachable_url):
    app = make_app(static_dir, unreachable_url, fallback_file=static_dir / "missing.json")
    client = await aiohttp_client(app)

    response = await client.get("/geoserver/Projet_Rokia/ows")
    assert response.status == 500
    assert await response.json() == {"error": "unable to load data"}


@pytest.mark.asyncio()
@pytest.mark.xdist_group(name="fast")
async def test_custom_prefix(aiohttp_client, aiohttp_server, static_dir):
    upstream = await aiohttp_server(_upstream())
    upstream_url = f"http://{upstream.host}:{upstream.port}"

    app = make_app(static_dir, upstream_url, prefix="/wfs")
    client = await aiohttp_client(app)

    # the prefix is forwarded as well
    response = await client.get("/wfs/anything")
    assert response.status == 404

    response = await client.get("/geoserver/Projet_Rokia/ows")
    assert response.status == 404  # not forwarded, and no such file


@pytest.mark.xdist_group(name="fast")
def test_static_dir_must_exist(tmp_path):
    with pytest.raises(ValueError, match="is not a directory"):
        _ = make_app(tmp_path / "missing", "http://localhost:8080")
