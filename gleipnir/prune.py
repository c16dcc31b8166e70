"""Prune-or-increment walk over a binary-tree arena.

Following a direction path from the root, the walk either removes the
dead-end run of single-child nodes it ends in, detaching it from the last
node above that run that still has two children, or, when the path lands on
a genuine branch, increments that branch node's value.

``prune_or_increment`` is the iterative rope-based walk;
``prune_or_increment_recursive`` is the post-order formulation it must agree
with.
"""

from __future__ import annotations

import logging
from typing import Iterable, Literal, NamedTuple, Optional

from .arena import BinaryTreeArena
from .borrow import NodeRef
from .dtypes import NULL_INDEX
from .errors import InvalidPathError, TreeInvariantError
from .paths import Direction
from .rope import Advance, Hold, Rope, RopeConfig

logger = logging.getLogger(__name__)

PruneAction = Literal["pruned", "incremented", "none"]

_PRUNE = "prune"
_INCREMENT = "increment"


class PruneOutcome(NamedTuple):
    """What a prune-or-increment walk did.

    Attributes:
        action: ``"pruned"``, ``"incremented"`` or ``"none"``
        node: Node the subtree was detached from, the incremented node, or
            the leaf the walk ended on
        direction: Side of ``node`` that was detached (``None`` otherwise)
    """

    action: PruneAction
    node: int
    direction: Optional[Direction] = None


def _only_child(node: NodeRef) -> NodeRef:
    return node.left() if node.has_left else node.right()


def _resolve_step(node: NodeRef) -> tuple[NodeRef, Optional[str]]:
    """Follow single-child links until a leaf or a two-child node."""

    count = node.num_children
    if count == 0:
        return node, _PRUNE
    if count == 2:
        node.increment()
        return node, _INCREMENT
    if count == 1:
        return _only_child(node), None
    raise TreeInvariantError(f"node {node.index} reports {count} children")


def prune_or_increment(
    arena: BinaryTreeArena,
    path: Iterable[Direction],
    root: int = 0,
    *,
    config: Optional[RopeConfig] = None,
) -> PruneOutcome:
    """Walk ``path`` from ``root`` and prune the dead end or bump the branch.

    Raises ``InvalidPathError`` when the path leaves the tree; nothing is
    mutated in that case.
    """

    with Rope(arena, root, config=config) as rope:
        prune_direction: Optional[Direction] = None
        for direction in path:
            direction = Direction(direction)

            def walk(node: NodeRef, direction: Direction = direction):
                potential_prune_point = node.num_children == 2
                child = node.child(direction)
                if potential_prune_point and child.num_children < 2:
                    return Advance(child)
                return Hold(child)

            if rope.descend_simul(walk):
                prune_direction = direction

        logger.debug(
            "Walk ended at node %d (anchor=%d, pending=%s)",
            rope.lead_position,
            rope.anchor_position,
            None if prune_direction is None else prune_direction.name,
        )

        verdict = None
        while verdict is None:
            verdict = rope.descend_with_output(_resolve_step)

        lead = rope.lead_position
        if verdict == _INCREMENT:
            logger.info("Incremented branch node %d", lead)
            return PruneOutcome("incremented", lead)
        if prune_direction is None:
            logger.debug("Dead end at node %d has no prune point above it", lead)
            return PruneOutcome("none", lead)

        with rope.consume_into_anchor() as anchor:
            detached = anchor.clear_child(prune_direction)
            logger.info(
                "Pruned %s subtree %d from node %d",
                prune_direction.name.lower(),
                detached,
                anchor.index,
            )
            return PruneOutcome("pruned", anchor.index, prune_direction)


def prune_or_increment_recursive(
    arena: BinaryTreeArena,
    path: Iterable[Direction],
    root: int = 0,
) -> PruneOutcome:
    """Recursive post-order formulation of ``prune_or_increment``."""

    directions = [Direction(direction) for direction in path]

    def resolve(index: int) -> tuple[bool, PruneOutcome]:
        count = arena.num_children(index)
        if count == 0:
            return True, PruneOutcome("none", index)
        if count == 2:
            arena.set_value(index, arena.get_value(index) + 1)
            return False, PruneOutcome("incremented", index)
        if count == 1:
            direction = Direction.LEFT if arena.has_left(index) else Direction.RIGHT
            return resolve(arena.child(index, direction))
        raise TreeInvariantError(f"node {index} reports {count} children")

    def walk(index: int, depth: int) -> tuple[bool, PruneOutcome]:
        if depth == len(directions):
            return resolve(index)
        direction = directions[depth]
        child = arena.child(index, direction)
        if child == NULL_INDEX:
            raise InvalidPathError(
                f"node {index} has no {direction.name.lower()} child"
            )
        dead_end, outcome = walk(child, depth + 1)
        if dead_end and arena.num_children(index) == 2:
            arena.detach_child(index, direction)
            return False, PruneOutcome("pruned", index, direction)
        return dead_end, outcome

    _, outcome = walk(root, 0)
    return outcome


__all__ = [
    "PruneAction",
    "PruneOutcome",
    "prune_or_increment",
    "prune_or_increment_recursive",
]
