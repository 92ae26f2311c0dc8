"""Loading parcels from a WFS feature server."""

import asyncio
import json
import logging
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager, suppress
from dataclasses import dataclass
from enum import Enum, auto
from pathlib import Path
from typing import Any

from aio_cadastre import __version__
from aio_cadastre.error import (
    BatchError,
    CallTimeoutError,
    ClientError,
    EmptyResultWarning,
    LoadSupersededError,
    _features_or_raise,
    _json_or_raise,
    _raise_for_request_error,
    is_oversized,
)
from aio_cadastre.parcel import (
    DEFAULT_SCHEMA,
    AttributeSchema,
    Parcel,
    ParcelCollection,
    collect_parcels,
)
from aio_cadastre.spatial import GeoJsonDict

import aiohttp
from aiohttp import ClientTimeout


__docformat__ = "google"
__all__ = (
    "FeatureLoader",
    "LoadResult",
    "LoadSource",
    "RequestTimeout",
    "Subscription",
    "fallback_parcels",
    "DEFAULT_URL",
    "DEFAULT_TYPE_NAME",
    "DEFAULT_SRS_NAME",
    "DEFAULT_PAGE_SIZE",
    "DEFAULT_USER_AGENT",
    "FALLBACK_PATH",
)


DEFAULT_URL = "http://localhost:8000/geoserver/Projet_Rokia/ows"
"""WFS endpoint behind the proxy (see ``aio_cadastre.proxy``)."""

DEFAULT_TYPE_NAME = "Projet_Rokia:parcelle_anyama"
"""Name of the parcel layer."""

DEFAULT_SRS_NAME = "EPSG:404000"
"""Keeps the server from reprojecting coordinates; they are converted client-side."""

DEFAULT_PAGE_SIZE = 1000
"""Number of features per page when a collection is loaded in pages."""

DEFAULT_USER_AGENT = f"aio-cadastre/{__version__}"

FALLBACK_PATH = Path(__file__).parent / "data" / "fallback.json"
"""A small sample collection that is shown when the feature server cannot be used."""

_NULL_LOGGER = logging.getLogger("aio_cadastre.null")
_NULL_LOGGER.addHandler(logging.NullHandler())
_NULL_LOGGER.propagate = False


class LoadSource(Enum):
    """Where the parcels of a load came from."""

    PRIMARY = auto()
    """A single request for the entire collection."""

    BATCHED = auto()
    """Pages of the collection, requested one after another."""

    FALLBACK = auto()
    """The bundled sample collection."""


@dataclass(kw_only=True, slots=True)
class LoadResult:
    """
    Outcome of ``FeatureLoader.load()``.

    Attributes:
        collection: the loaded parcels, all of them visible
        source: where the parcels came from
        warning: the error that caused pagination or the fallback, or an
                 ``EmptyResultWarning`` if a valid response had no features
        nb_requests: the number of requests made to the feature server
    """

    collection: ParcelCollection
    source: LoadSource
    warning: ClientError | EmptyResultWarning | None
    nb_requests: int

    @property
    def is_fallback(self) -> bool:
        return self.source is LoadSource.FALLBACK

    def __repr__(self) -> str:
        warning = f", warning={type(self.warning).__name__}" if self.warning else ""
        return (
            f"{type(self).__name__}({self.source.name}, {len(self.collection.all)} parcels, "
            f"{self.nb_requests} requests{warning})"
        )


@dataclass(kw_only=True, slots=True)
class RequestTimeout:
    """
    Request timeout settings.

    Attributes:
        total_secs: The timeout of an entire request, including connection establishment,
                    request sending and response reading (``aiohttp.ClientTimeout.total``).
                    Defaults to 60 seconds.
        sock_connect_secs: The maximum number of seconds allowed for pure socket connection
                           establishment (same as ``aiohttp.ClientTimeout.sock_connect``).
        each_sock_read_secs: The maximum number of seconds allowed for the period between reading
                             a new chunk of data (same as ``aiohttp.ClientTimeout.sock_read``).
    """

    total_secs: float | None = 60.0
    sock_connect_secs: float | None = None
    each_sock_read_secs: float | None = None

    def __post_init__(self) -> None:
        if self.total_secs is not None and self.total_secs <= 0.0:
            msg = "'total_secs' has to be > 0"
            raise ValueError(msg)

        if self.sock_connect_secs is not None and self.sock_connect_secs <= 0.0:
            msg = "'sock_connect_secs' has to be > 0"
            raise ValueError(msg)

        if self.each_sock_read_secs is not None and self.each_sock_read_secs <= 0.0:
            msg = "'each_sock_read_secs' has to be > 0"
            raise ValueError(msg)

    def to_client_timeout(self) -> ClientTimeout:
        return ClientTimeout(
            total=self.total_secs,
            connect=None,
            sock_connect=self.sock_connect_secs,
            sock_read=self.each_sock_read_secs,
        )


class Subscription:
    """
    Listeners that are notified with a single value.

    Registering the same listener twice has no effect, so code that re-registers
    on every reload does not accumulate handlers.
    """

    __slots__ = ("_listeners",)

    def __init__(self) -> None:
        self._listeners: list[Callable[[Any], None]] = []

    def connect(self, listener: Callable[[Any], None]) -> Callable[[], None]:
        """Register a listener, and return a function that unregisters it."""
        if listener not in self._listeners:
            self._listeners.append(listener)

        def disconnect() -> None:
            with suppress(ValueError):
                self._listeners.remove(listener)

        return disconnect

    def emit(self, value: Any) -> None:
        for listener in list(self._listeners):
            listener(value)

    def __len__(self) -> int:
        return len(self._listeners)


class FeatureLoader:
    """
    Loads parcels from a WFS feature server.

    The entire collection is requested at once. If that fails in a way that suggests the
    collection is too large for a single request (see ``is_oversized()``), the collection
    is requested in pages instead. If the server cannot be used at all, the bundled
    sample collection is returned, so that there is always something to show.

    At most one load is in flight: starting a load cancels the previous one, whose caller
    receives a ``LoadSupersededError``.

    Args:
        url: The WFS endpoint, f.e. ``http://localhost:8000/geoserver/Projet_Rokia/ows``.
        type_name: The name of the parcel layer.
        srs_name: The spatial reference system to request, or ``None`` to not request one.
        page_size: The number of features per page when loading in pages.
        schema: The names of the properties that hold parcel attributes.
        timeout: Request timeout settings.
        user_agent: A string used for the User-Agent header.
        fallback_path: A GeoJSON file with the fallback collection.
        logger: The logger to use for all logging output related to loading.
    """

    __slots__ = (
        "_fallback_path",
        "_inflight",
        "_loading",
        "_loading_changed",
        "_logger",
        "_maybe_session",
        "_page_size",
        "_schema",
        "_srs_name",
        "_timeout",
        "_type_name",
        "_url",
        "_user_agent",
    )

    def __init__(  # noqa: PLR0913
        self,
        url: str = DEFAULT_URL,
        type_name: str = DEFAULT_TYPE_NAME,
        srs_name: str | None = DEFAULT_SRS_NAME,
        page_size: int = DEFAULT_PAGE_SIZE,
        schema: AttributeSchema = DEFAULT_SCHEMA,
        timeout: RequestTimeout | None = None,
        user_agent: str = DEFAULT_USER_AGENT,
        fallback_path: Path = FALLBACK_PATH,
        logger: logging.Logger = _NULL_LOGGER,
    ) -> None:
        if page_size <= 0:
            msg = "'page_size' must be > 0"
            raise ValueError(msg)

        self._url = url
        self._type_name = type_name
        self._srs_name = srs_name
        self._page_size = page_size
        self._schema = schema
        self._timeout = timeout or RequestTimeout()
        self._user_agent = user_agent
        self._fallback_path = fallback_path
        self._logger = logger

        self._loading = False
        self._loading_changed = Subscription()
        self._inflight: asyncio.Task | None = None
        self._maybe_session: aiohttp.ClientSession | None = None

    @property
    def url(self) -> str:
        return self._url

    @property
    def page_size(self) -> int:
        return self._page_size

    @property
    def loading(self) -> bool:
        """``True`` while a load is outstanding."""
        return self._loading

    def on_loading_change(self, listener: Callable[[bool], None]) -> Callable[[], None]:
        """
        Register a listener for changes of ``loading``.

        Returns:
            a function that unregisters the listener
        """
        return self._loading_changed.connect(listener)

    def _set_loading(self, loading: bool) -> None:
        if loading != self._loading:
            self._loading = loading
            self._loading_changed.emit(loading)

    def _session(self) -> aiohttp.ClientSession:
        """The session used for all requests of this loader."""
        if not self._maybe_session or self._maybe_session.closed:
            headers = {"User-Agent": self._user_agent, "Accept": "application/json"}
            self._maybe_session = aiohttp.ClientSession(headers=headers)

        return self._maybe_session

    async def close(self) -> None:
        """Cancel an outstanding load and close the underlying session."""
        if self._inflight and not self._inflight.done():
            self._inflight.cancel()
            with suppress(asyncio.CancelledError, ClientError):
                await self._inflight

        if self._maybe_session and not self._maybe_session.closed:
            await self._maybe_session.close()

    async def __aenter__(self) -> "FeatureLoader":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def load(self, batched: bool = False) -> LoadResult:
        """
        Load the parcel collection.

        Failures never propagate: they end up in ``LoadResult.warning``, next to either
        the collection loaded in pages, or the bundled sample collection.

        Args:
            batched: if ``True``, skip the request for the entire collection,
                     and load it in pages right away

        Raises:
            LoadSupersededError: if another load was started before this one finished
        """
        if self._inflight and not self._inflight.done():
            self._logger.info("cancel outstanding load in favor of a new one")
            self._inflight.cancel()

        self._set_loading(True)
        task = asyncio.ensure_future(self._load_batched(cause=None) if batched else self._load())
        self._inflight = task

        try:
            return await task
        except asyncio.CancelledError:
            if self._inflight is not task:
                raise LoadSupersededError from None
            raise
        finally:
            if self._inflight is task:
                self._inflight = None
                self._set_loading(False)

    async def _load(self) -> LoadResult:
        self._logger.info(f"load all parcels from {self._url}")

        try:
            features = await self._request(self._params())
        except ClientError as err:
            if is_oversized(err):
                self._logger.warning(f"loading at once failed, retry in pages: {err}")
                return await self._load_batched(cause=err)
            self._logger.error("loading parcels failed, use sample data", exc_info=err)
            return self._fallback(warning=err, nb_requests=1)

        parcels = collect_parcels(features, self._schema)
        self._logger.info(f"loaded {len(parcels)} parcels")

        warning = None if parcels else EmptyResultWarning("the feature server returned no parcels")

        return LoadResult(
            collection=ParcelCollection.of(parcels),
            source=LoadSource.PRIMARY,
            warning=warning,
            nb_requests=1,
        )

    async def _load_batched(self, cause: ClientError | None) -> LoadResult:
        features: list[GeoJsonDict] = []
        start_index = 0
        nb_requests = 0 if cause is None else 1  # the failed request for the whole collection

        while True:
            params = self._params(max_features=self._page_size, start_index=start_index)
            nb_requests += 1

            self._logger.info(f"load page {start_index // self._page_size + 1}")

            try:
                page = await self._request_page(params)
            except ClientError as err:
                batch_err = BatchError(start_index=start_index, cause=err)
                self._logger.error("loading in pages failed, use sample data", exc_info=batch_err)
                return self._fallback(warning=batch_err, nb_requests=nb_requests)

            if page is None:
                break

            features.extend(page)
            self._logger.debug(f"{len(page)} features in this page, {len(features)} in total")

            # a server that ignores maxFeatures sends everything in the first page
            if len(page) != self._page_size:
                break

            start_index += self._page_size

        parcels = collect_parcels(features, self._schema)
        nb_pages = start_index // self._page_size + 1
        self._logger.info(f"loaded {len(parcels)} parcels in {nb_pages} pages")

        return LoadResult(
            collection=ParcelCollection.of(parcels),
            source=LoadSource.BATCHED,
            warning=cause,
            nb_requests=nb_requests,
        )

    def _fallback(self, warning: ClientError, nb_requests: int) -> LoadResult:
        parcels = fallback_parcels(self._fallback_path, self._schema)
        return LoadResult(
            collection=ParcelCollection.of(parcels),
            source=LoadSource.FALLBACK,
            warning=warning,
            nb_requests=nb_requests,
        )

    def _params(
        self,
        max_features: int | None = None,
        start_index: int | None = None,
    ) -> dict[str, str]:
        params = {
            "service": "WFS",
            "version": "1.0.0",
            "request": "GetFeature",
            "typeName": self._type_name,
            "outputFormat": "application/json",
        }

        if self._srs_name:
            params["srsName"] = self._srs_name

        if max_features is not None:
            params["maxFeatures"] = str(max_features)

        if start_index is not None:
            params["startIndex"] = str(start_index)

        return params

    async def _request(self, params: dict[str, str]) -> list[GeoJsonDict]:
        """
        Request a feature collection, and return its features.

        Raises:
            CallError: if there was no response
            ResponseError: if the response status or body is unusable
        """
        timeout = self._timeout.to_client_timeout()
        async with _map_request_error(timeout), self._session().get(
            url=self._url, params=params, timeout=timeout
        ) as response:
            return await _features_or_raise(response)

    async def _request_page(self, params: dict[str, str]) -> list[GeoJsonDict] | None:
        """
        Request a page of a feature collection.

        Returns:
            the features of the page, or ``None`` if the response has no features array

        Raises:
            CallError: if there was no response
            ResponseError: if the response status is unsuccessful, or the body is not JSON
        """
        timeout = self._timeout.to_client_timeout()
        async with _map_request_error(timeout), self._session().get(
            url=self._url, params=params, timeout=timeout
        ) as response:
            data = await _json_or_raise(response)

        features = data.get("features") if isinstance(data, dict) else None
        return features if isinstance(features, list) else None

    def __repr__(self) -> str:
        return f"{type(self).__name__}(url={self._url!r}, page_size={self._page_size})"


def fallback_parcels(
    path: Path = FALLBACK_PATH,
    schema: AttributeSchema = DEFAULT_SCHEMA,
) -> list[Parcel]:
    """The parcels of the bundled sample collection."""
    with open(path, encoding="utf-8") as file:
        data = json.load(file)
    return collect_parcels(data["features"], schema)


@asynccontextmanager
async def _map_request_error(timeout: ClientTimeout | None = None) -> AsyncIterator[None]:
    """Context to make requests in; maps errors to our exception types."""
    try:
        yield
    except asyncio.TimeoutError as err:
        after_secs = timeout.total if timeout is not None else None
        raise CallTimeoutError(cause=err, after_secs=after_secs) from err
    except aiohttp.ClientError as err:
        await _raise_for_request_error(err)
