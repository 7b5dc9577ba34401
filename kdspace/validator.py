"""Structural checks for k-d trees.

Walks a tree and reports the first broken rule. Meant for tests and debug
assertions. Each node is checked against the tightest bound its ancestors
impose on every axis, so a full check is O(n * k).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from kdspace.node import Node


class ValidationCheck(str, Enum):
    """Rules a valid tree satisfies.

    Attributes:
        DIMENSION: Every node has the tree's dimension.
        LEFT_ORDER: Left descendants are strictly below the node on its axis.
        RIGHT_ORDER: Right descendants are at or above the node on its axis.
        AXIS_PROGRESSION: A child's axis is its parent's axis + 1 (mod k).
        PARENT_LINK: A child's parent link points back to its parent.
    """

    DIMENSION = "dimension"
    LEFT_ORDER = "left_order"
    RIGHT_ORDER = "right_order"
    AXIS_PROGRESSION = "axis_progression"
    PARENT_LINK = "parent_link"


@dataclass
class TreeValidationResult:
    """Outcome of validating a tree.

    Truthy when the tree is valid, so ``assert tree.validate()`` works.

    Args:
        is_valid: Whether every rule held.
        check: The first rule found broken, if any.
        node: The node at which it was found.
        error_message: Description of the violation.
    """

    is_valid: bool
    check: ValidationCheck | None = None
    node: Node | None = None
    error_message: str = ""

    def __bool__(self) -> bool:
        return self.is_valid

    @classmethod
    def ok(cls) -> TreeValidationResult:
        return cls(is_valid=True)

    @classmethod
    def failure(
        cls, check: ValidationCheck, node: Node, message: str
    ) -> TreeValidationResult:
        return cls(is_valid=False, check=check, node=node, error_message=message)


class TreeValidator:
    """Checks the k-d tree invariants below a root node.

    Example::

        result = TreeValidator().validate(tree.root)
        if not result:
            print(result.check, result.error_message)
    """

    def validate(self, root: Node | None) -> TreeValidationResult:
        """Validate the tree under *root*.

        Args:
            root: Root node, or None for an empty tree.

        Returns:
            TreeValidationResult describing the first violation found.
        """
        if root is None:
            return TreeValidationResult.ok()

        dimensions = len(root.coords)
        unbounded: tuple[Node | None, ...] = (None,) * dimensions
        # (node, lows, highs): per axis, the ancestor whose value is the
        # tightest inclusive lower bound / exclusive upper bound.
        stack = [(root, unbounded, unbounded)]
        while stack:
            node, lows, highs = stack.pop()
            result = self._check_node(node, dimensions, lows, highs)
            if not result:
                return result

            axis = node.axis
            value = node.coords[axis]
            if node.left is not None:
                bound = highs[axis]
                if bound is None or value <= bound.coords[axis]:
                    highs_left = highs[:axis] + (node,) + highs[axis + 1 :]
                else:
                    highs_left = highs
                stack.append((node.left, lows, highs_left))
            if node.right is not None:
                bound = lows[axis]
                if bound is None or value >= bound.coords[axis]:
                    lows_right = lows[:axis] + (node,) + lows[axis + 1 :]
                else:
                    lows_right = lows
                stack.append((node.right, lows_right, highs))
        return TreeValidationResult.ok()

    def _check_node(
        self,
        node: Node,
        dimensions: int,
        lows: tuple[Node | None, ...],
        highs: tuple[Node | None, ...],
    ) -> TreeValidationResult:
        if len(node.coords) != dimensions:
            return TreeValidationResult.failure(
                ValidationCheck.DIMENSION,
                node,
                f"{node.describe()} has {len(node.coords)} dimensions, "
                f"tree has {dimensions}",
            )

        for axis in range(dimensions):
            value = node.coords[axis]
            low = lows[axis]
            if low is not None and value < low.coords[axis]:
                return TreeValidationResult.failure(
                    ValidationCheck.RIGHT_ORDER,
                    low,
                    f"{node.describe()} is left of {low.describe()} on axis {axis}",
                )
            high = highs[axis]
            if high is not None and value >= high.coords[axis]:
                return TreeValidationResult.failure(
                    ValidationCheck.LEFT_ORDER,
                    high,
                    f"{node.describe()} is right of {high.describe()} on axis {axis}",
                )

        expected_axis = (node.axis + 1) % dimensions
        for child in node.children():
            if child.axis != expected_axis:
                return TreeValidationResult.failure(
                    ValidationCheck.AXIS_PROGRESSION,
                    child,
                    f"Child axis {child.axis} isn't parent axis + 1 ({expected_axis})",
                )
            parent = child.parent
            if parent is None:
                return TreeValidationResult.failure(
                    ValidationCheck.PARENT_LINK,
                    child,
                    f"Child {child.describe()} is missing parent {node.describe()}",
                )
            if parent is not node:
                return TreeValidationResult.failure(
                    ValidationCheck.PARENT_LINK,
                    child,
                    f"Child {child.describe()} has incorrect parent "
                    f"{parent.describe()}, should be {node.describe()}",
                )

        return TreeValidationResult.ok()
