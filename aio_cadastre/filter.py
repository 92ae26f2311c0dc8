"""Filtering parcels by district, block and lot."""

import functools
import re
from collections.abc import Iterable
from dataclasses import dataclass, replace
from enum import Enum

from aio_cadastre.parcel import Parcel, ParcelCollection


__docformat__ = "google"
__all__ = (
    "Dimension",
    "FilterSelection",
    "apply_filter",
    "compare_values",
    "distinct_values",
    "filter_options",
)


_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


class Dimension(Enum):
    """The three hierarchical attributes parcels can be filtered by."""

    DISTRICT = "district"
    BLOCK = "block"
    LOT = "lot"

    def value_of(self, parcel: Parcel) -> str | None:
        """The attribute of ``parcel`` for this dimension."""
        return getattr(parcel, self.value)

    def __str__(self) -> str:
        return self.value


@dataclass(kw_only=True, slots=True, frozen=True)
class FilterSelection:
    """
    Current value of each filter dimension.

    ``None`` and the empty string both mean that there is no constraint on a dimension.
    """

    district: str | None = None
    block: str | None = None
    lot: str | None = None

    def get(self, dimension: Dimension) -> str | None:
        return getattr(self, dimension.value) or None

    def with_value(self, dimension: Dimension, value: str | None) -> "FilterSelection":
        """A copy of this selection with one dimension changed."""
        return replace(self, **{dimension.value: value or None})

    @property
    def is_empty(self) -> bool:
        return not any(self.get(dim) for dim in Dimension)

    def matches(self, parcel: Parcel) -> bool:
        """``True`` if the parcel satisfies every constrained dimension."""
        for dim in Dimension:
            wanted = self.get(dim)
            if wanted and dim.value_of(parcel) != wanted:
                return False
        return True


def apply_filter(collection: ParcelCollection, selection: FilterSelection) -> ParcelCollection:
    """
    Recompute the visible parcels of a collection.

    A parcel is visible iff its attribute equals the selected value exactly,
    for every dimension with a selected value. Parcels keep the order of ``collection.all``,
    which is left untouched.
    """
    filtered = tuple(parcel for parcel in collection.all if selection.matches(parcel))
    return replace(collection, filtered=filtered)


def compare_values(a: str, b: str) -> int:
    """
    Compare two block or lot values.

    If both values start with an integer, they are compared numerically;
    otherwise they are compared as strings.
    """
    num_a, num_b = _parse_int(a), _parse_int(b)
    if num_a is not None and num_b is not None:
        return (num_a > num_b) - (num_a < num_b)
    return (a > b) - (a < b)


def distinct_values(parcels: Iterable[Parcel], dimension: Dimension) -> list[str]:
    """
    The distinct, non-empty values of a dimension in sorted order.

    Districts are sorted as strings. Blocks and lots are sorted numerically where
    values are numbers (see ``compare_values()``), so ``["47", "9", "A12"]``
    becomes ``["9", "47", "A12"]``. Values that compare equal, like ``"12b"`` and
    ``"12a"``, keep the order in which they first appear.
    """
    values = list(
        dict.fromkeys(value for parcel in parcels if (value := dimension.value_of(parcel)))
    )

    if dimension is Dimension.DISTRICT:
        return sorted(values)

    return sorted(values, key=functools.cmp_to_key(compare_values))


def filter_options(collection: ParcelCollection) -> dict[Dimension, list[str]]:
    """
    Selectable values of every dimension.

    Options are always derived from ``collection.all``, so that filtering never
    narrows them.
    """
    return {dim: distinct_values(collection.all, dim) for dim in Dimension}


def _parse_int(value: str) -> int | None:
    if m := _LEADING_INT.match(value):
        return int(m.group(1))
    return None
