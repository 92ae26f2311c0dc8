"""
Pushing the visible parcels to a map.

The map itself is not part of this package. Any web map library can be plugged in
by implementing ``MapView``; the ``ViewController`` only talks to that interface,
and exposes the rest of its state (option lists, count, busy flag, notifications)
for whatever renders the surrounding page.
"""

import functools
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import Any

from aio_cadastre import _clock
from aio_cadastre.error import ClientError, EmptyResultWarning
from aio_cadastre.filter import Dimension, FilterSelection, apply_filter, filter_options
from aio_cadastre.loader import FeatureLoader, LoadResult, Subscription
from aio_cadastre.parcel import Parcel, ParcelCollection, ParcelId, feature_collection
from aio_cadastre.spatial import Bbox, GeoJsonDict, feature_bounds
from aio_cadastre.style import (
    CLICK_STYLE,
    HOVER_STYLE,
    NORMAL_STYLE,
    Popup,
    Style,
    parcel_style,
    popup_fields,
)
from aio_cadastre.transform import ANYAMA, LinearApproximation


__docformat__ = "google"
__all__ = (
    "DEFAULT_CENTER",
    "DEFAULT_ZOOM",
    "PAN_OFFSET_DEG",
    "VIEWPORTS",
    "Level",
    "MapView",
    "Notification",
    "NotificationCenter",
    "ViewController",
    "Viewport",
)


DEFAULT_CENTER = (5.4944, -4.0519)
"""Initial ``(lat, lng)`` of the map, in the center of Anyama."""

DEFAULT_ZOOM = 19

PAN_OFFSET_DEG = 0.01
"""Distance in degrees that ``ViewController.pan()`` moves the map."""

_PAN_DIRECTIONS = {
    "n": (1, 0),
    "ne": (1, 1),
    "e": (0, 1),
    "se": (-1, 1),
    "s": (-1, 0),
    "sw": (-1, -1),
    "w": (0, -1),
    "nw": (1, -1),
}

_EMPHASIS = (
    ("mouseover", HOVER_STYLE),
    ("mouseout", NORMAL_STYLE),
    ("click", CLICK_STYLE),
)
"""Shape style per pointer event."""

_NULL_LOGGER = logging.getLogger("aio_cadastre.null")
_NULL_LOGGER.addHandler(logging.NullHandler())
_NULL_LOGGER.propagate = False


@dataclass(kw_only=True, slots=True, frozen=True)
class Viewport:
    """
    Constraints for fitting the map to a set of parcels.

    Attributes:
        padding: padding in pixels around the bounding box
        max_zoom: the closest zoom level the map may use
    """

    padding: int
    max_zoom: int


VIEWPORTS: dict[Dimension | None, Viewport] = {
    None: Viewport(padding=20, max_zoom=16),
    Dimension.DISTRICT: Viewport(padding=15, max_zoom=15),
    Dimension.BLOCK: Viewport(padding=12, max_zoom=17),
    Dimension.LOT: Viewport(padding=10, max_zoom=18),
}
"""Viewport per selected dimension, where ``None`` stands for the whole visible set."""


class MapView(ABC):
    """
    The capabilities of a web map that the ``ViewController`` depends on.

    Layers are opaque objects returned by ``add_layer()``. Shapes inside a layer are
    identified by the ``id`` of the feature they were drawn from.
    """

    __slots__ = ()

    @abstractmethod
    def add_layer(
        self,
        features: GeoJsonDict,
        style: Callable[[GeoJsonDict], Style],
        popup: Callable[[GeoJsonDict], Popup],
    ) -> Any:
        """Draw a ``FeatureCollection``, styling each feature, and return the new layer."""
        raise NotImplementedError

    @abstractmethod
    def remove_layer(self, layer: Any) -> None:
        raise NotImplementedError

    @abstractmethod
    def bind(self, layer: Any, event: str, handler: Callable[[ParcelId], None]) -> None:
        """Call ``handler`` with the feature id when ``event`` occurs on a shape of ``layer``."""
        raise NotImplementedError

    @abstractmethod
    def set_style(self, layer: Any, feature_id: ParcelId, style: Style) -> None:
        """Change the style of a single shape."""
        raise NotImplementedError

    @abstractmethod
    def fit_bounds(self, bbox: Bbox, padding: int, max_zoom: int) -> None:
        """Move and zoom the map so that ``bbox`` (``w, s, e, n``) is visible."""
        raise NotImplementedError

    @abstractmethod
    def set_view(self, center: tuple[float, float], zoom: int) -> None:
        """Move the map to ``center`` (``lat, lng``) at the given zoom level."""
        raise NotImplementedError

    @abstractmethod
    def center(self) -> tuple[float, float]:
        """The current ``(lat, lng)`` center."""
        raise NotImplementedError

    @abstractmethod
    def zoom(self) -> int:
        raise NotImplementedError

    def bounds(self, features: GeoJsonDict) -> Bbox | None:
        """The bounding box of a ``FeatureCollection``, or ``None`` if it has no geometry."""
        return feature_bounds(features)


class Level(Enum):
    INFO = auto()
    WARNING = auto()
    ERROR = auto()


@dataclass(kw_only=True, slots=True, eq=False)
class Notification:
    """
    A message for the user that can be dismissed.

    Attributes:
        title: short heading
        message: the message body
        level: severity
        posted_at: when the notification was posted
        dismissed: ``True`` once the user closed it
    """

    title: str
    message: str
    level: Level
    posted_at: _clock.Instant = field(default_factory=_clock.Instant.now)
    dismissed: bool = False


class NotificationCenter:
    """
    Dismissible notifications that also expire on their own.

    Args:
        ttl_secs: the number of seconds after which a notification is no longer active
    """

    __slots__ = ("_notifications", "_ttl_secs")

    def __init__(self, ttl_secs: float = 10.0) -> None:
        if ttl_secs <= 0.0:
            msg = "'ttl_secs' must be > 0"
            raise ValueError(msg)
        self._ttl_secs = ttl_secs
        self._notifications: list[Notification] = []

    def post(self, title: str, message: str, level: Level = Level.WARNING) -> Notification:
        notification = Notification(title=title, message=message, level=level)
        self._notifications.append(notification)
        return notification

    def dismiss(self, notification: Notification) -> None:
        notification.dismissed = True

    @property
    def active(self) -> list[Notification]:
        """Notifications that were neither dismissed nor have expired, oldest first."""
        self._notifications = [
            n for n in self._notifications if n.posted_at.elapsed_secs_since < self._ttl_secs
        ]
        return [n for n in self._notifications if not n.dismissed]


class ViewController:
    """
    Keeps a map in sync with the visible parcels.

    The controller owns the current ``ParcelCollection`` and ``FilterSelection``.
    Every selection change recomputes the visible parcels, replaces the rendered layer,
    updates the count, and fits the map to the parcels of the selected value.
    Option lists are only derived after a load, so filtering never narrows them.

    Hovering or clicking a shape changes the shape's style, but nothing else.

    Args:
        map_view: the map to render to
        loader: the loader used by ``reload()``
        notifications: where load failures are reported
        approx: the coordinate conversion used for rendering
        logger: The logger to use for all logging output related to the view.
    """

    __slots__ = (
        "_approx",
        "_busy",
        "_changed",
        "_collection",
        "_layer",
        "_loader",
        "_logger",
        "_map",
        "_notifications",
        "_options",
        "_selection",
    )

    def __init__(
        self,
        map_view: MapView,
        loader: FeatureLoader | None = None,
        notifications: NotificationCenter | None = None,
        approx: LinearApproximation = ANYAMA,
        logger: logging.Logger = _NULL_LOGGER,
    ) -> None:
        self._map = map_view
        self._loader = loader
        self._notifications = notifications or NotificationCenter()
        self._approx = approx
        self._logger = logger

        self._collection = ParcelCollection.empty()
        self._selection = FilterSelection()
        self._options: dict[Dimension, list[str]] = {dim: [] for dim in Dimension}
        self._layer: Any = None
        self._busy = False
        self._changed = Subscription()

        if loader is not None:
            loader.on_loading_change(self._set_busy)

    @property
    def collection(self) -> ParcelCollection:
        return self._collection

    @property
    def selection(self) -> FilterSelection:
        return self._selection

    @property
    def options(self) -> dict[Dimension, list[str]]:
        """Selectable values for each dimension."""
        return self._options

    @property
    def count(self) -> int:
        """The number of visible parcels."""
        return len(self._collection.filtered)

    @property
    def count_label(self) -> str:
        n = self.count
        return f"{n} parcel" if n == 1 else f"{n} parcels"

    @property
    def busy(self) -> bool:
        """``True`` while a load is outstanding."""
        return self._busy

    @property
    def notifications(self) -> NotificationCenter:
        return self._notifications

    def on_change(self, listener: Callable[["ViewController"], None]) -> Callable[[], None]:
        """
        Register a listener that is called after every state change.

        Returns:
            a function that unregisters the listener
        """
        return self._changed.connect(listener)

    async def reload(self, batched: bool = False) -> LoadResult:
        """
        Load parcels, and show all of them.

        Raises:
            RuntimeError: if the controller was created without a loader
            LoadSupersededError: if another reload was started before this one finished
        """
        if self._loader is None:
            msg = "cannot reload without a loader"
            raise RuntimeError(msg)

        result = await self._loader.load(batched=batched)
        self.show(result)
        return result

    def show(self, result: LoadResult) -> None:
        """Replace the parcels with the result of a load, and clear the selection."""
        match result.warning:
            case ClientError() as err:
                self._logger.warning(f"showing {result!r}: {err}")
                detail = "Showing sample data instead."
                if not result.is_fallback:
                    detail = "Loaded in pages."
                self._notifications.post(
                    title="Failed to load parcel data",
                    message=f"{err}\n\n{detail}",
                    level=Level.ERROR if result.is_fallback else Level.WARNING,
                )
            case EmptyResultWarning() as warning:
                self._logger.info(f"showing {result!r}: {warning}")
            case _:
                self._logger.info(f"showing {result!r}")

        self._collection = result.collection
        self._selection = FilterSelection()
        self._options = filter_options(self._collection)

        self._render()
        self._fit(None)
        self._changed.emit(self)

    def on_selection_change(self, dimension: Dimension, value: str | None) -> None:
        """Apply a new value for one dimension; an empty value removes its constraint."""
        self._selection = self._selection.with_value(dimension, value)
        self._collection = apply_filter(self._collection, self._selection)

        self._logger.debug(
            f"filter {self._selection}: {self.count} of {len(self._collection.all)} parcels"
        )

        self._render()
        self._fit(dimension if value else None)
        self._changed.emit(self)

    def reset(self) -> None:
        """Clear the selection, and show all parcels."""
        self._selection = FilterSelection()
        self._collection = replace(self._collection, filtered=self._collection.all)

        self._logger.debug("filters reset")

        self._render()
        self._fit(None)
        self._changed.emit(self)

    def pan(self, direction: str) -> None:
        """
        Move the map by ``PAN_OFFSET_DEG`` without changing the zoom level.

        Args:
            direction: one of ``n``, ``ne``, ``e``, ``se``, ``s``, ``sw``, ``w``, ``nw``
        """
        try:
            d_lat, d_lng = _PAN_DIRECTIONS[direction]
        except KeyError:
            msg = f"unknown direction {direction!r}"
            raise ValueError(msg) from None

        lat, lng = self._map.center()
        center = (lat + d_lat * PAN_OFFSET_DEG, lng + d_lng * PAN_OFFSET_DEG)
        self._map.set_view(center, self._map.zoom())

    def home(self) -> None:
        """Move the map to its initial position."""
        self._map.set_view(DEFAULT_CENTER, DEFAULT_ZOOM)

    def zoom_in(self) -> None:
        """Zoom in by one level, keeping the center."""
        self._map.set_view(self._map.center(), self._map.zoom() + 1)

    def zoom_out(self) -> None:
        """Zoom out by one level, keeping the center."""
        self._map.set_view(self._map.center(), self._map.zoom() - 1)

    def _set_busy(self, busy: bool) -> None:
        self._busy = busy
        self._changed.emit(self)

    def _render(self) -> None:
        if self._layer is not None:
            self._map.remove_layer(self._layer)
            self._layer = None

        parcels = {parcel.id: parcel for parcel in self._collection.filtered}

        layer = self._map.add_layer(
            feature_collection(self._collection.filtered, self._approx),
            style=lambda feature: parcel_style(parcels[feature["id"]]),
            popup=lambda feature: popup_fields(parcels[feature["id"]]),
        )

        for event, style in _EMPHASIS:
            self._map.bind(layer, event, functools.partial(self._emphasize, layer, style))

        self._layer = layer

    def _emphasize(self, layer: Any, style: Style, feature_id: ParcelId) -> None:
        self._map.set_style(layer, feature_id, dict(style))

    def _fit(self, dimension: Dimension | None) -> None:
        value = self._selection.get(dimension) if dimension else None

        subset: Sequence[Parcel] = self._collection.filtered
        if dimension and value:
            subset = [parcel for parcel in subset if dimension.value_of(parcel) == value]
        else:
            dimension = None

        if not subset:
            self._logger.info(f"no parcels to fit the map to for {dimension or 'all'}={value}")
            return

        bbox = self._map.bounds(feature_collection(subset, self._approx))
        if bbox is None:
            self._logger.info("visible parcels have no geometry to fit the map to")
            return

        viewport = VIEWPORTS[dimension]
        self._map.fit_bounds(bbox, padding=viewport.padding, max_zoom=viewport.max_zoom)
        self._logger.debug(f"fit map to {len(subset)} parcels ({viewport})")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._collection!r}, {self._selection})"
