"""Scoped node references handed out by a rope.

A ``NodeRef`` is valid only while its ``BorrowScope`` is open. The rope opens
a scope around every step call and accessor block and closes it afterwards,
so a reference that escapes its call cannot be used to reach the arena again.
References derived with ``child``/``left``/``right`` share their parent's
scope; that shared scope is how a rope recognises a returned position as a
reborrow of the node it lent out.
"""

from __future__ import annotations

import weakref
from typing import TYPE_CHECKING, Optional

from .dtypes import NULL_INDEX
from .errors import BorrowError, InvalidPathError, StaleReferenceError
from .paths import Direction

if TYPE_CHECKING:
    from .arena import BinaryTreeArena


class BorrowScope:
    """Lifetime token shared by every reference created within one call."""

    def __init__(
        self, *, mutable: bool, label: str = "step", owner: Optional[object] = None
    ):
        self.mutable = mutable
        self.label = label
        self._owner = None if owner is None else weakref.ref(owner)
        self._open = True
        self._arena: Optional["BinaryTreeArena"] = None

    @property
    def is_open(self) -> bool:
        return self._open

    @property
    def owner(self) -> Optional[object]:
        """Loan holder this scope writes on behalf of, if it is still alive."""

        return None if self._owner is None else self._owner()

    def may_write(self, arena: "BinaryTreeArena") -> bool:
        """Return ``True`` when no one else holds the loan on ``arena``."""

        holder = arena.lent_to
        return holder is None or holder is self or holder is self.owner

    def hold(self, arena: "BinaryTreeArena") -> None:
        """Take over the arena loan for as long as this scope stays open."""

        arena.lend(self)
        self._arena = arena

    def close(self) -> None:
        self._open = False
        if self._arena is not None:
            self._arena.reclaim(self)
            self._arena = None

    def __repr__(self) -> str:
        state = "open" if self._open else "closed"
        kind = "mut" if self.mutable else "shared"
        return f"BorrowScope({self.label}, {kind}, {state})"


class NodeRef:
    """Access handle for one arena node, bounded by a ``BorrowScope``."""

    def __init__(self, arena: "BinaryTreeArena", index: int, scope: BorrowScope):
        self._arena = arena
        self._index = int(index)
        self._scope = scope

    @property
    def index(self) -> int:
        """Arena index of the node; a plain position that grants no access."""

        return self._index

    @property
    def scope(self) -> BorrowScope:
        return self._scope

    @property
    def arena(self) -> "BinaryTreeArena":
        return self._arena

    @property
    def is_live(self) -> bool:
        return self._scope.is_open

    def _live(self) -> "BinaryTreeArena":
        if not self._scope.is_open:
            raise StaleReferenceError(
                f"reference to node {self._index} outlived its "
                f"{self._scope.label} scope"
            )
        return self._arena

    def _writable(self) -> "BinaryTreeArena":
        arena = self._live()
        if not self._scope.mutable:
            raise BorrowError(f"reference to node {self._index} is read-only")
        if not self._scope.may_write(arena):
            raise BorrowError(
                f"reference to node {self._index} cannot write while the arena "
                f"is lent to {arena.lent_to!r}"
            )
        return arena

    # Reads

    @property
    def value(self) -> int:
        return self._live().get_value(self._index)

    def has_child(self, direction: Direction) -> bool:
        return self._live().has_child(self._index, direction)

    @property
    def has_left(self) -> bool:
        return self.has_child(Direction.LEFT)

    @property
    def has_right(self) -> bool:
        return self.has_child(Direction.RIGHT)

    @property
    def num_children(self) -> int:
        return self._live().num_children(self._index)

    @property
    def is_leaf(self) -> bool:
        return self.num_children == 0

    def child(self, direction: Direction) -> "NodeRef":
        """Reborrow the child in ``direction`` within this reference's scope."""

        child = self._live().child(self._index, direction)
        if child == NULL_INDEX:
            raise InvalidPathError(
                f"node {self._index} has no {Direction(direction).name.lower()} child"
            )
        return NodeRef(self._arena, child, self._scope)

    def left(self) -> "NodeRef":
        return self.child(Direction.LEFT)

    def right(self) -> "NodeRef":
        return self.child(Direction.RIGHT)

    # Writes

    def set_value(self, value: int) -> None:
        self._writable()._set_value(self._index, value)

    def increment(self, by: int = 1) -> int:
        arena = self._writable()
        updated = arena.get_value(self._index) + by
        arena._set_value(self._index, updated)
        return updated

    def replace_child(self, direction: Direction, child: int) -> int:
        """Attach detached node ``child`` and return the previous child index."""

        return self._writable()._replace_child(self._index, direction, child)

    def clear_child(self, direction: Direction) -> int:
        """Detach the subtree in ``direction`` and return its root index."""

        return self.replace_child(direction, NULL_INDEX)

    # Owned references (returned by consuming a rope) end their loan here.

    def release(self) -> None:
        self._scope.close()

    def __enter__(self) -> "NodeRef":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def __repr__(self) -> str:
        state = "live" if self._scope.is_open else "stale"
        return f"NodeRef(index={self._index}, {self._scope.label}, {state})"


class Slot:
    """Mutable holder for the reference a slot-style step may replace."""

    def __init__(self, ref: NodeRef):
        self.ref = ref

    def __repr__(self) -> str:
        return f"Slot({self.ref!r})"


__all__ = ["BorrowScope", "NodeRef", "Slot"]
