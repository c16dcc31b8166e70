"""Structural protocols for arena and tree capabilities."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from .paths import Direction


@runtime_checkable
class NodeStoreProtocol(Protocol):
    """Index-addressed node store that can be lent to a single owner."""

    @property
    def num_nodes(self) -> int: ...

    def __contains__(self, index: object) -> bool: ...

    def lend(self, owner: object) -> None: ...

    def reclaim(self, owner: object) -> None: ...


@runtime_checkable
class BinaryTreeProtocol(NodeStoreProtocol, Protocol):
    """Adds the child and payload accessors a prune-or-increment walk needs."""

    def has_left(self, index: int) -> bool: ...

    def has_right(self, index: int) -> bool: ...

    def child(self, index: int, direction: Direction) -> int: ...

    def replace_child(self, index: int, direction: Direction, child: int) -> int: ...

    def get_value(self, index: int) -> int: ...

    def set_value(self, index: int, value: int) -> None: ...


__all__ = ["BinaryTreeProtocol", "NodeStoreProtocol"]
