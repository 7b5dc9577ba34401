"""Closed intervals used to restrict range queries.

A restriction set maps an axis index to a ``Range``. Axes missing from the
mapping are unrestricted.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Union

from kdspace.errors import AxisOutOfRangeError

if TYPE_CHECKING:
    from kdspace.node import Node


@dataclass(frozen=True)
class Range:
    """Closed interval ``[min, max]`` on one axis.

    Infinite bounds express one-sided restrictions. The caller is
    responsible for ``min <= max``; an inverted range simply matches
    nothing.

    Attributes:
        min: Lower bound, inclusive.
        max: Upper bound, inclusive.
    """

    min: float
    max: float

    @classmethod
    def at_least(cls, value: float) -> Range:
        return cls(float(value), math.inf)

    @classmethod
    def at_most(cls, value: float) -> Range:
        return cls(-math.inf, float(value))

    @classmethod
    def unbounded(cls) -> Range:
        return cls(-math.inf, math.inf)

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max


RangeLike = Union[Range, tuple[float, float]]


def check_restrictions(
    restrictions: Mapping[int, RangeLike], dimensions: int
) -> dict[int, Range]:
    """Validate axis keys and normalise values to ``Range``.

    Args:
        restrictions: Axis index to ``Range`` or ``(min, max)`` pair.
        dimensions: Dimension of the tree being searched.

    Returns:
        A new dict of axis to Range.

    Raises:
        AxisOutOfRangeError: If any axis is negative or ``>= dimensions``.
    """
    checked: dict[int, Range] = {}
    for axis, bounds in restrictions.items():
        if axis < 0 or axis >= dimensions:
            raise AxisOutOfRangeError(axis, dimensions)
        if isinstance(bounds, Range):
            checked[axis] = bounds
        else:
            low, high = bounds
            checked[axis] = Range(float(low), float(high))
    return checked


def filter_range(
    nodes: Iterable[Node],
    restrictions: Mapping[int, RangeLike],
    dimensions: int,
) -> list[Node]:
    """Linear-scan equivalent of a tree range query.

    Applies the same closed-interval test as ``KDTree.find_range`` to a
    flat list. Useful as a reference when checking tree results.

    Raises:
        AxisOutOfRangeError: If any axis is negative or ``>= dimensions``.
    """
    checked = check_restrictions(restrictions, dimensions)
    return [node for node in nodes if node.matches(checked)]
