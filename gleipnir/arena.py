"""
Index-addressed arena of binary nodes.

Nodes live in parallel host-side ``numpy`` buffers and are referred to by
integer index; writes update those buffers in place and the public array
views hand back ``jax.numpy`` snapshots. A missing child or parent is stored
as ``NULL_INDEX``. Positions held by a rope are plain indices into this
arena, so two positions never alias: every access is a lookup through the
arena itself.
"""

from __future__ import annotations

import logging
import weakref
from dataclasses import dataclass
from typing import Optional, Union

import jax
import jax.numpy as jnp
import numpy as np
from beartype import beartype
from jaxtyping import Array, Int, jaxtyped

from .dtypes import NULL_INDEX, as_index, as_value
from .errors import BorrowError
from .paths import Direction

logger = logging.getLogger(__name__)

# ``(value, left, right)`` with ``None`` for an empty child.
NestedNode = Optional[tuple[int, "NestedNode", "NestedNode"]]


def as_position(index: object) -> Optional[int]:
    """Return ``index`` as a Python int, or ``None`` if it is not an integer.

    Accepts Python and numpy integers as well as 0-d integer arrays such as
    ``as_index(3)``.
    """

    if isinstance(index, (int, np.integer)):
        return int(index)
    dtype = getattr(index, "dtype", None)
    if (
        dtype is not None
        and getattr(index, "shape", None) == ()
        and jnp.issubdtype(dtype, jnp.integer)
    ):
        return int(index)
    return None


@dataclass(frozen=True)
class ArenaConfig:
    """Buffer sizing options for ``BinaryTreeArena``."""

    initial_capacity: int = 16
    growth_factor: int = 2

    def __post_init__(self) -> None:
        if self.initial_capacity < 1:
            raise ValueError(
                f"initial_capacity must be positive, got {self.initial_capacity}"
            )
        if self.growth_factor < 2:
            raise ValueError(
                f"growth_factor must be at least 2, got {self.growth_factor}"
            )


class BinaryTreeArena:
    """
    Growable binary-tree store using parallel arrays.

    Attributes:
        value: Per-node integer payload
        left_child: Left child index for each node (-1 when absent)
        right_child: Right child index for each node (-1 when absent)
        parent: Parent index for each node (-1 for roots and detached nodes)
        num_nodes: Number of allocated nodes, reachable or not

    The array attributes are device snapshots taken when read. While lent to
    a rope, the public mutators refuse to run; the rope's scoped references
    are then the only way to change node data.
    """

    def __init__(self, config: Optional[ArenaConfig] = None):
        self.config = ArenaConfig() if config is None else config
        capacity = self.config.initial_capacity
        self._value = np.zeros((capacity,), dtype=np.int64)
        self._children = np.full((capacity, 2), NULL_INDEX, dtype=np.int64)
        self._parent = np.full((capacity,), NULL_INDEX, dtype=np.int64)
        self._size = 0
        self._lender: Optional[weakref.ref] = None

    # ---------------------------------------------
    # Buffers
    # ---------------------------------------------

    @property
    def num_nodes(self) -> int:
        return self._size

    @property
    def capacity(self) -> int:
        return int(self._value.shape[0])

    @property
    def value(self) -> Array:
        return as_value(self._value[: self._size].copy())

    @property
    def left_child(self) -> Array:
        return as_index(self._children[: self._size, int(Direction.LEFT)].copy())

    @property
    def right_child(self) -> Array:
        return as_index(self._children[: self._size, int(Direction.RIGHT)].copy())

    @property
    def parent(self) -> Array:
        return as_index(self._parent[: self._size].copy())

    def __len__(self) -> int:
        return self._size

    def __contains__(self, index: object) -> bool:
        position = as_position(index)
        return position is not None and 0 <= position < self._size

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(num_nodes={self._size}, "
            f"capacity={self.capacity}, lent={self.lent_to is not None})"
        )

    def _ensure_capacity(self, required: int) -> None:
        capacity = self.capacity
        if required <= capacity:
            return
        while capacity < required:
            capacity *= self.config.growth_factor
        extra = capacity - self.capacity
        logger.debug("Growing arena from %d to %d nodes", self.capacity, capacity)
        self._value = np.concatenate([self._value, np.zeros((extra,), np.int64)])
        self._children = np.concatenate(
            [self._children, np.full((extra, 2), NULL_INDEX, np.int64)]
        )
        self._parent = np.concatenate(
            [self._parent, np.full((extra,), NULL_INDEX, np.int64)]
        )

    def _check_index(self, index: int) -> int:
        position = as_position(index)
        if position is None:
            raise TypeError(
                f"node index must be an integer, got {type(index).__name__}"
            )
        if not 0 <= position < self._size:
            raise IndexError(
                f"node index {position} out of range for arena of {self._size} nodes"
            )
        return position

    # ---------------------------------------------
    # Lending
    # ---------------------------------------------

    @property
    def lent_to(self) -> Optional[object]:
        """Return the live owner this arena is lent to, if any."""

        if self._lender is None:
            return None
        owner = self._lender()
        if owner is None:
            # Owner was dropped without releasing; the loan ends with it.
            self._lender = None
        return owner

    def lend(self, owner: object) -> None:
        """Grant ``owner`` exclusive mutation rights over this arena."""

        current = self.lent_to
        if current is not None and current is not owner:
            raise BorrowError(f"arena is already lent to {current!r}")
        self._lender = weakref.ref(owner)

    def reclaim(self, owner: object) -> None:
        """End the loan held by ``owner``; a no-op for any other caller."""

        if self.lent_to is owner:
            self._lender = None

    def _check_unlent(self, action: str) -> None:
        owner = self.lent_to
        if owner is not None:
            raise BorrowError(f"cannot {action} while the arena is lent to {owner!r}")

    # ---------------------------------------------
    # Queries
    # ---------------------------------------------

    def get_value(self, index: int) -> int:
        return int(self._value[self._check_index(index)])

    def child(self, index: int, direction: Direction) -> int:
        """Return the child index in ``direction`` or ``NULL_INDEX``."""

        return int(self._children[self._check_index(index), int(Direction(direction))])

    def has_child(self, index: int, direction: Direction) -> bool:
        return self.child(index, direction) != NULL_INDEX

    def has_left(self, index: int) -> bool:
        return self.has_child(index, Direction.LEFT)

    def has_right(self, index: int) -> bool:
        return self.has_child(index, Direction.RIGHT)

    def num_children(self, index: int) -> int:
        row = self._children[self._check_index(index)]
        return int(np.count_nonzero(row != NULL_INDEX))

    def parent_of(self, index: int) -> int:
        return int(self._parent[self._check_index(index)])

    def subtree_contains(self, ancestor: int, node: int) -> bool:
        """Return ``True`` when ``node`` lies in the subtree rooted at ``ancestor``."""

        ancestor = self._check_index(ancestor)
        current = self._check_index(node)
        for _ in range(self._size):
            if current == ancestor:
                return True
            current = int(self._parent[current])
            if current == NULL_INDEX:
                return False
        return False

    def reachable(self, root: int) -> list[int]:
        """Return node indices reachable from ``root`` in pre-order."""

        order: list[int] = []
        stack = [self._check_index(root)]
        children = self._children
        while stack:
            index = stack.pop()
            order.append(index)
            left, right = children[index]
            if right != NULL_INDEX:
                stack.append(int(right))
            if left != NULL_INDEX:
                stack.append(int(left))
        return order

    def to_nested(self, root: int) -> NestedNode:
        """Export the subtree at ``root`` as ``(value, left, right)`` tuples."""

        values = self._value[: self._size].tolist()
        children = self._children[: self._size].tolist()
        root = self._check_index(root)
        built: dict[int, NestedNode] = {}

        # Post-order: a node is assembled once both of its children are.
        stack = [(root, False)]
        while stack:
            index, expanded = stack.pop()
            left, right = children[index]
            if expanded:
                built[index] = (
                    values[index],
                    built.pop(left) if left != NULL_INDEX else None,
                    built.pop(right) if right != NULL_INDEX else None,
                )
                continue
            stack.append((index, True))
            for child in (right, left):
                if child != NULL_INDEX:
                    stack.append((child, False))
        return built[root]

    # ---------------------------------------------
    # Mutation
    # ---------------------------------------------

    def add_node(
        self,
        value: int = 0,
        left: int = NULL_INDEX,
        right: int = NULL_INDEX,
    ) -> int:
        """Append a node, adopting ``left``/``right`` as its children."""

        self._check_unlent("add a node")
        for child in (left, right):
            if child != NULL_INDEX:
                self._check_detached(child)
        if left != NULL_INDEX and left == right:
            raise ValueError(f"node {left} cannot be both left and right child")

        index = self._size
        self._ensure_capacity(index + 1)
        self._size += 1
        self._value[index] = value
        self._children[index] = (left, right)
        for child in (left, right):
            if child != NULL_INDEX:
                self._parent[child] = index
        return index

    def set_value(self, index: int, value: int) -> None:
        self._check_unlent("set a node value")
        self._set_value(index, value)

    def replace_child(self, index: int, direction: Direction, child: int) -> int:
        """Attach ``child`` (or ``NULL_INDEX``) and return the previous child."""

        self._check_unlent("replace a child")
        return self._replace_child(index, direction, child)

    def detach_child(self, index: int, direction: Direction) -> int:
        """Detach and return the child in ``direction`` (``NULL_INDEX`` if none)."""

        return self.replace_child(index, direction, NULL_INDEX)

    def _set_value(self, index: int, value: int) -> None:
        self._value[self._check_index(index)] = value

    def _check_detached(self, child: int) -> None:
        child = self._check_index(child)
        owner = int(self._parent[child])
        if owner != NULL_INDEX:
            raise ValueError(f"node {child} is already a child of node {owner}")

    def _replace_child(self, index: int, direction: Direction, child: int) -> int:
        index = self._check_index(index)
        direction = int(Direction(direction))
        previous = int(self._children[index, direction])
        if child == previous:
            return previous
        if child != NULL_INDEX:
            self._check_detached(child)
            if self.subtree_contains(child, index):
                raise ValueError(
                    f"attaching node {child} under node {index} would form a cycle"
                )
        if previous != NULL_INDEX:
            self._parent[previous] = NULL_INDEX
        self._children[index, direction] = child
        if child != NULL_INDEX:
            self._parent[child] = index
        return previous

    # ---------------------------------------------
    # Construction
    # ---------------------------------------------

    def copy(self) -> "BinaryTreeArena":
        """Return an independent, unlent copy of this arena."""

        clone = type(self)(self.config)
        clone._value = self._value.copy()
        clone._children = self._children.copy()
        clone._parent = self._parent.copy()
        clone._size = self._size
        return clone

    @classmethod
    @jaxtyped(typechecker=beartype)
    def from_arrays(
        cls,
        value: Int[Array, "n"],
        left_child: Int[Array, "n"],
        right_child: Int[Array, "n"],
        *,
        config: Optional[ArenaConfig] = None,
    ) -> "BinaryTreeArena":
        """Build an arena from per-node value and child buffers."""

        values = np.asarray(jax.device_get(value), dtype=np.int64)
        children = np.stack(
            [
                np.asarray(jax.device_get(left_child), dtype=np.int64),
                np.asarray(jax.device_get(right_child), dtype=np.int64),
            ],
            axis=1,
        )
        n = values.shape[0]
        if np.any((children < NULL_INDEX) | (children >= n)):
            raise ValueError("child indices must be -1 or in [0, num_nodes)")

        parent = np.full((n,), NULL_INDEX, dtype=np.int64)
        for slot in (Direction.LEFT, Direction.RIGHT):
            owners = np.nonzero(children[:, slot] != NULL_INDEX)[0]
            kids = children[owners, slot]
            if np.any(parent[kids] != NULL_INDEX) or np.unique(kids).size != kids.size:
                raise ValueError("each node may have at most one parent")
            parent[kids] = owners

        # Every parent chain must end at a root within ``n`` hops.
        cursor = np.arange(n)
        for _ in range(n):
            cursor = np.where(
                cursor >= 0, parent[np.maximum(cursor, 0)], NULL_INDEX
            )
        if np.any(cursor != NULL_INDEX):
            raise ValueError("child buffers contain a cycle")

        arena = cls(config)
        arena._ensure_capacity(n)
        arena._size = n
        arena._value[:n] = values
        arena._children[:n] = children
        arena._parent[:n] = parent
        return arena

    @classmethod
    def from_nested(
        cls,
        nested: Union[tuple, list],
        *,
        config: Optional[ArenaConfig] = None,
    ) -> tuple["BinaryTreeArena", int]:
        """Build an arena from nested ``(value, left, right)`` tuples.

        Nodes are numbered in pre-order, so the returned root is always 0.
        """

        if nested is None:
            raise ValueError("nested tree must have a root node")

        values: list[int] = []
        links: list[list[int]] = []

        # Pre-order: pushing right before left numbers the left subtree first.
        stack = [(nested, NULL_INDEX, Direction.LEFT)]
        while stack:
            node, owner, side = stack.pop()
            node_value, left, right = node
            index = len(values)
            values.append(int(node_value))
            links.append([NULL_INDEX, NULL_INDEX])
            if owner != NULL_INDEX:
                links[owner][side] = index
            if right is not None:
                stack.append((right, index, Direction.RIGHT))
            if left is not None:
                stack.append((left, index, Direction.LEFT))

        children = np.asarray(links, dtype=np.int64).reshape(-1, 2)
        arena = cls.from_arrays(
            as_value(values),
            as_index(children[:, Direction.LEFT]),
            as_index(children[:, Direction.RIGHT]),
            config=config,
        )
        return arena, 0


def leaf(value: int) -> tuple[int, None, None]:
    """Return a nested leaf node."""
    return (value, None, None)


__all__ = ["ArenaConfig", "BinaryTreeArena", "NestedNode", "as_position", "leaf"]
