"""Sorting helpers for median-split construction."""

from __future__ import annotations

from collections.abc import Iterable
from operator import itemgetter
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from kdspace.node import Node


def sort_on_axis(nodes: Iterable[Node], axis: int) -> list[Node]:
    """Return a new list of *nodes* sorted ascending on one coordinate.

    The sort is stable, so nodes tied on *axis* keep their input order.
    """
    key = itemgetter(axis)
    return sorted(nodes, key=lambda node: key(node.coords))


def lower_median_index(count: int) -> int:
    """Index of the lower median in a sorted sequence of *count* >= 2 items."""
    if count < 2:
        raise ValueError(f"lower median needs at least 2 items, got {count}")
    return count // 2 - 1
