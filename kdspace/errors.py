"""Exception types raised by kdspace trees.

Recoverable errors leave the tree untouched. ``InvariantViolationError``
signals a structural contradiction found during a mutation; a tree that
raised it must be discarded.
"""

from __future__ import annotations


class KDTreeError(Exception):
    """Base class for all kdspace errors."""


class DimensionMismatchError(KDTreeError):
    """Raised when coordinates do not match the tree's dimension.

    Attributes:
        expected: Dimension of the tree.
        actual: Length of the offending coordinates.
    """

    def __init__(self, expected: int, actual: int) -> None:
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Node with {actual} dimensions can't be used with a tree of "
            f"{expected} dimensions."
        )


class AxisOutOfRangeError(KDTreeError):
    """Raised when a range restriction names an axis outside ``[0, k)``.

    Attributes:
        axis: The offending axis key.
        dimensions: Dimension of the tree.
    """

    def __init__(self, axis: int, dimensions: int) -> None:
        self.axis = axis
        self.dimensions = dimensions
        if axis < 0:
            message = f"Negative axis {axis} is invalid."
        else:
            message = f"Range on axis {axis} exceeds tree dimensions ({dimensions})."
        super().__init__(message)


class NotAMemberError(KDTreeError):
    """Raised when removing a node this tree has not adopted."""


class AlreadyAMemberError(KDTreeError):
    """Raised when inserting a node that already belongs to this tree."""


class InvariantViolationError(KDTreeError):
    """Raised when a mutation finds the tree structurally broken."""
