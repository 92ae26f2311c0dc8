"""
Static file server and feature server proxy.

Browsers refuse to read responses of a feature server on another origin unless it sends
CORS headers. This server serves the viewer's static assets, and forwards requests under
a path prefix to the feature server, so that both share the same origin.
"""

import asyncio
import logging
from collections.abc import AsyncIterator
from dataclasses import dataclass
from pathlib import Path

from aio_cadastre.config import Settings
from aio_cadastre.loader import DEFAULT_USER_AGENT, FALLBACK_PATH

import aiohttp
from aiohttp import web


__docformat__ = "google"
__all__ = (
    "CORS_HEADERS",
    "make_app",
    "serve",
)


CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "GET, HEAD, OPTIONS",
    "Access-Control-Allow-Headers": "Accept, Content-Type",
}

_NULL_LOGGER = logging.getLogger("aio_cadastre.null")
_NULL_LOGGER.addHandler(logging.NullHandler())
_NULL_LOGGER.propagate = False


@dataclass(kw_only=True, slots=True, frozen=True)
class _ProxyConfig:
    static_dir: Path
    upstream_url: str
    prefix: str
    fallback_file: Path
    timeout: aiohttp.ClientTimeout
    logger: logging.Logger


_CONFIG = web.AppKey("config", _ProxyConfig)
_SESSION = web.AppKey("session", aiohttp.ClientSession)


def make_app(  # noqa: PLR0913
    static_dir: Path,
    upstream_url: str,
    prefix: str = "/geoserver",
    fallback_file: Path | None = None,
    timeout_secs: float = 60.0,
    logger: logging.Logger = _NULL_LOGGER,
) -> web.Application:
    """
    Create the server application.

    Args:
        static_dir: directory with ``index.html`` and the other assets
        upstream_url: scheme and host of the feature server, f.e. ``http://localhost:8080``
        prefix: requests whose path starts with this prefix are forwarded, path and query
                unchanged, to ``upstream_url``
        fallback_file: served instead of a forwarded response when the feature server
                       is unreachable; defaults to ``data.json`` in ``static_dir``,
                       or the bundled sample collection if there is no such file
        timeout_secs: timeout of a forwarded request
        logger: The logger to use for all logging output related to the server.

    Raises:
        ValueError: if ``static_dir`` is not a directory
    """
    if not static_dir.is_dir():
        msg = f"'{static_dir}' is not a directory"
        raise ValueError(msg)

    if fallback_file is None:
        fallback_file = static_dir / "data.json"
        if not fallback_file.is_file():
            fallback_file = FALLBACK_PATH

    app = web.Application(middlewares=[_cors_middleware])
    app[_CONFIG] = _ProxyConfig(
        static_dir=static_dir,
        upstream_url=upstream_url.rstrip("/"),
        prefix=prefix.rstrip("/"),
        fallback_file=fallback_file,
        timeout=aiohttp.ClientTimeout(total=timeout_secs),
        logger=logger,
    )
    app.cleanup_ctx.append(_client_session)

    app.router.add_get(f"{prefix.rstrip('/')}/{{tail:.*}}", _forward)
    app.router.add_get("/", _index)
    app.router.add_static("/", static_dir)

    return app


def serve(settings: Settings, logger: logging.Logger = _NULL_LOGGER) -> None:
    """Run the server until interrupted."""
    app = make_app(
        static_dir=settings.static_dir,
        upstream_url=settings.upstream_url,
        prefix=settings.proxy_prefix,
        timeout_secs=settings.timeout_secs,
        logger=logger,
    )

    logger.info(f"serving {settings.static_dir} on http://{settings.host}:{settings.port}")
    logger.info(f"forwarding {settings.proxy_prefix}/* to {settings.upstream_url}")

    web.run_app(app, host=settings.host, port=settings.port, access_log=logger, print=None)


async def _client_session(app: web.Application) -> AsyncIterator[None]:
    headers = {"User-Agent": DEFAULT_USER_AGENT}
    async with aiohttp.ClientSession(headers=headers) as session:
        app[_SESSION] = session
        yield


@web.middleware
async def _cors_middleware(request: web.Request, handler) -> web.StreamResponse:
    if request.method == "OPTIONS":
        return web.Response(status=204, headers=CORS_HEADERS)

    try:
        response = await handler(request)
    except web.HTTPException as exc:
        exc.headers.update(CORS_HEADERS)
        raise

    response.headers.update(CORS_HEADERS)
    return response


async def _index(request: web.Request) -> web.StreamResponse:
    config = request.app[_CONFIG]
    index = config.static_dir / "index.html"
    if not index.is_file():
        raise web.HTTPNotFound
    return web.FileResponse(index)


async def _forward(request: web.Request) -> web.StreamResponse:
    config = request.app[_CONFIG]
    session = request.app[_SESSION]
    logger = config.logger

    url = config.upstream_url + request.raw_path
    logger.info(f"forward request to {url}")

    try:
        async with session.get(
            url,
            headers={"Accept": "application/json"},
            timeout=config.timeout,
        ) as upstream:
            body = await upstream.read()
            return web.Response(
                status=upstream.status,
                body=body,
                content_type=upstream.content_type,
                charset=upstream.charset,
            )
    except (aiohttp.ClientError, asyncio.TimeoutError) as err:
        logger.warning(f"feature server unreachable, serve {config.fallback_file.name}: {err!r}")
        return await _fallback(config)


async def _fallback(config: _ProxyConfig) -> web.Response:
    try:
        body = await asyncio.to_thread(config.fallback_file.read_bytes)
    except OSError:
        config.logger.exception(f"failed to read {config.fallback_file}")
        return web.json_response({"error": "unable to load data"}, status=500)

    return web.Response(status=200, body=body, content_type="application/json")
