"""
Traversal cursor ("rope") over an exclusively lent binary-tree arena.

A rope keeps two positions into one arena: ``anchor`` (a checkpoint) and
``lead`` (the current node). Callers move ``lead`` downward by passing step
functions that receive a scoped ``NodeRef`` and return a reborrow derived
from it. Every reference handed to a step goes stale when the step returns,
so at most one live path into the arena is ever reachable through the rope.
Consuming the rope is the only way to obtain a reference that outlives a
call.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Callable, Iterator, NamedTuple, Optional, TypeVar, Union

from .arena import BinaryTreeArena, as_position
from .borrow import BorrowScope, NodeRef, Slot
from .errors import BorrowError, RopeConsumedError

logger = logging.getLogger(__name__)

B = TypeVar("B")

_ALIVE = "alive"
_CONSUMED = "consumed"
_CLOSED = "closed"


@dataclass(frozen=True)
class RopeConfig:
    """Runtime checks and diagnostics for ``Rope`` walks.

    ``check_nesting`` verifies after every step that the new lead lies in the
    subtree of the previous one. ``log_steps`` emits a DEBUG record for each
    lead transition.
    """

    check_nesting: bool = False
    log_steps: bool = False


class Advance(NamedTuple):
    """Move ``lead`` to ``next`` and the anchor to the pre-step lead."""

    next: NodeRef


class Hold(NamedTuple):
    """Move only ``lead`` to ``next``; the anchor stays put."""

    next: NodeRef


Simul = Union[Advance, Hold]


class Rope:
    """Cursor holding an ``anchor`` checkpoint and a ``lead`` position.

    The arena is lent to the rope on construction and returned when the rope
    is consumed, closed, or garbage collected. A walk is written as a loop of
    ``descend*`` calls; ``checkpoint``/``rewind`` move between the two
    positions and ``consume_into_lead``/``consume_into_anchor`` end the walk.
    """

    def __init__(
        self,
        arena: BinaryTreeArena,
        root: int = 0,
        *,
        config: Optional[RopeConfig] = None,
    ):
        position = as_position(root)
        if position is None:
            raise TypeError(f"root must be an integer index, got {type(root).__name__}")
        if position not in arena:
            raise IndexError(
                f"root index {position} out of range for arena of "
                f"{arena.num_nodes} nodes"
            )
        self.config = RopeConfig() if config is None else config
        arena.lend(self)
        self._arena = arena
        self._anchor = position
        self._lead = position
        self._state = _ALIVE
        self._exclusive: Optional[str] = None
        self._shared_reads = 0

    def __repr__(self) -> str:
        return (
            f"Rope(anchor={self._anchor}, lead={self._lead}, state={self._state})"
        )

    # ---------------------------------------------
    # State guards
    # ---------------------------------------------

    @property
    def is_alive(self) -> bool:
        return self._state == _ALIVE

    def _ensure_alive(self, operation: str) -> None:
        if self._state != _ALIVE:
            raise RopeConsumedError(f"cannot {operation}: rope is {self._state}")
        if self._exclusive is not None:
            raise BorrowError(
                f"cannot {operation} while {self._exclusive} holds the rope"
            )

    def _ensure_unshared(self, operation: str) -> None:
        self._ensure_alive(operation)
        if self._shared_reads:
            raise BorrowError(
                f"cannot {operation} while {self._shared_reads} read_lead "
                "block(s) are open"
            )

    # ---------------------------------------------
    # Stepping
    # ---------------------------------------------

    def _accept(
        self, target: Any, scope: BorrowScope, start: int, operation: str
    ) -> int:
        if not isinstance(target, NodeRef):
            raise TypeError(
                f"{operation} step must return a NodeRef, got {type(target).__name__}"
            )
        if target.scope is not scope or target.arena is not self._arena:
            raise BorrowError(
                f"{operation} step returned a reference to node {target.index} "
                "that was not derived from the node it was given"
            )
        if self.config.check_nesting and not self._arena.subtree_contains(
            start, target.index
        ):
            raise BorrowError(
                f"{operation} step moved lead from node {start} to node "
                f"{target.index}, which is outside its subtree"
            )
        return target.index

    def _step(
        self,
        operation: str,
        invoke: Callable[[NodeRef], tuple[Any, B]],
    ) -> tuple[int, int, B]:
        """Run one step under a fresh mutable scope and return its transition.

        Positions are left untouched here; a step that raises leaves the rope
        where it was.
        """

        self._ensure_unshared(operation)
        start = self._lead
        scope = BorrowScope(mutable=True, label=operation, owner=self)
        self._exclusive = operation
        try:
            target, output = invoke(NodeRef(self._arena, start, scope))
            lead = self._accept(target, scope, start, operation)
        finally:
            scope.close()
            self._exclusive = None
        if self.config.log_steps:
            logger.debug("%s: lead %d -> %d", operation, start, lead)
        return start, lead, output

    def descend(self, step: Callable[[NodeRef], NodeRef]) -> None:
        """Move ``lead`` to the node returned by ``step``."""

        _, self._lead, _ = self._step("descend", lambda ref: (step(ref), None))

    def descend_with_output(self, step: Callable[[NodeRef], tuple[NodeRef, B]]) -> B:
        """Like ``descend``; ``step`` also returns a detached value passed back."""

        _, self._lead, output = self._step("descend_with_output", step)
        return output

    def descend_via_slot(self, step: Callable[[Slot], B]) -> B:
        """Like ``descend``; ``step`` may overwrite ``slot.ref`` in place."""

        def invoke(ref: NodeRef) -> tuple[NodeRef, B]:
            slot = Slot(ref)
            output = step(slot)
            return slot.ref, output

        _, self._lead, output = self._step("descend_via_slot", invoke)
        return output

    def descend_simul(self, step: Callable[[NodeRef], Simul]) -> bool:
        """Move ``lead`` and, on ``Advance``, the anchor to the pre-step lead.

        Returns ``True`` when the step advanced the anchor.
        """

        def invoke(ref: NodeRef) -> tuple[NodeRef, bool]:
            decision = step(ref)
            if isinstance(decision, Advance):
                return decision.next, True
            if isinstance(decision, Hold):
                return decision.next, False
            raise TypeError(
                "descend_simul step must return Advance or Hold, got "
                f"{type(decision).__name__}"
            )

        start, lead, advanced = self._step("descend_simul", invoke)
        if advanced:
            self._anchor = start
            logger.debug("Anchor advanced to node %d", start)
        self._lead = lead
        return advanced

    # ---------------------------------------------
    # Checkpointing
    # ---------------------------------------------

    def checkpoint(self) -> None:
        """Set ``anchor`` to ``lead``."""

        self._ensure_unshared("checkpoint")
        self._anchor = self._lead
        logger.debug("Checkpoint at node %d", self._anchor)

    def rewind(self) -> None:
        """Set ``lead`` back to ``anchor``; arena mutations are kept."""

        self._ensure_unshared("rewind")
        self._lead = self._anchor
        logger.debug("Rewound to node %d", self._lead)

    # ---------------------------------------------
    # Positions and scoped access
    # ---------------------------------------------

    def peek_anchor_position(self) -> int:
        self._ensure_alive("peek at the anchor")
        return self._anchor

    def peek_lead_position(self) -> int:
        self._ensure_alive("peek at the lead")
        return self._lead

    @property
    def anchor_position(self) -> int:
        return self.peek_anchor_position()

    @property
    def lead_position(self) -> int:
        return self.peek_lead_position()

    @contextmanager
    def read_lead(self) -> Iterator[NodeRef]:
        """Yield a read-only reference to ``lead`` valid inside the block."""

        self._ensure_alive("read_lead")
        scope = BorrowScope(mutable=False, label="read_lead", owner=self)
        self._shared_reads += 1
        try:
            yield NodeRef(self._arena, self._lead, scope)
        finally:
            scope.close()
            self._shared_reads -= 1

    @contextmanager
    def read_lead_mut(self) -> Iterator[NodeRef]:
        """Yield a mutable reference to ``lead``; excludes every other access."""

        self._ensure_unshared("read_lead_mut")
        scope = BorrowScope(mutable=True, label="read_lead_mut", owner=self)
        self._exclusive = "read_lead_mut"
        try:
            yield NodeRef(self._arena, self._lead, scope)
        finally:
            scope.close()
            self._exclusive = None

    # ---------------------------------------------
    # Termination
    # ---------------------------------------------

    def _consume(self, index: int, operation: str) -> NodeRef:
        self._ensure_unshared(operation)
        self._state = _CONSUMED
        scope = BorrowScope(mutable=True, label=operation)
        self._arena.reclaim(self)
        scope.hold(self._arena)
        logger.debug(
            "%s: returning node %d (anchor=%d, lead=%d)",
            operation,
            index,
            self._anchor,
            self._lead,
        )
        return NodeRef(self._arena, index, scope)

    def consume_into_lead(self) -> NodeRef:
        """End the walk and return an owned reference to ``lead``."""

        return self._consume(self._lead, "consume_into_lead")

    def consume_into_anchor(self) -> NodeRef:
        """End the walk and return an owned reference to ``anchor``.

        ``lead`` may lie inside the anchor's subtree; it is unreachable once the
        rope is consumed, and arena indices never alias, so detaching the
        subtree that contains it is safe.
        """

        return self._consume(self._anchor, "consume_into_anchor")

    def close(self) -> None:
        """Drop the walk in place and return the arena; idempotent."""

        if self._state != _ALIVE:
            return
        self._ensure_unshared("close")
        self._state = _CLOSED
        self._arena.reclaim(self)

    def __enter__(self) -> "Rope":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()


__all__ = ["Advance", "Hold", "Rope", "RopeConfig", "Simul"]
