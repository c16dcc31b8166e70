"""Tests for the rope traversal cursor."""

import logging

import pytest

from gleipnir import (
    Advance,
    BinaryTreeArena,
    BorrowError,
    Direction,
    Hold,
    InvalidPathError,
    Rope,
    RopeConfig,
    RopeConsumedError,
    StaleReferenceError,
    as_index,
    leaf,
)

from tests.unit.tree_fixtures import example_tree


def _chain_arena():
    """Root with a right-leaning spine 0 -> 2 -> 4 -> 6 and left leaves."""
    return BinaryTreeArena.from_nested(
        (0, leaf(1), (2, leaf(3), (4, leaf(5), leaf(6))))
    )


def test_new_rope_starts_with_anchor_at_lead():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    assert rope.peek_anchor_position() == root
    assert rope.peek_lead_position() == root
    assert rope.is_alive


def test_rope_rejects_out_of_range_root():
    arena, _ = _chain_arena()

    with pytest.raises(IndexError):
        Rope(arena, 99)
    assert arena.lent_to is None


def test_rope_accepts_integer_scalar_array_root():
    arena, _ = _chain_arena()
    rope = Rope(arena, as_index(2))

    assert rope.lead_position == 2
    assert isinstance(rope.anchor_position, int)


def test_rope_rejects_non_integer_root():
    arena, _ = _chain_arena()

    with pytest.raises(TypeError, match="integer index"):
        Rope(arena, 2.0)
    assert arena.lent_to is None


def test_second_rope_on_a_lent_arena_is_rejected():
    arena, root = _chain_arena()
    first = Rope(arena, root)

    with pytest.raises(BorrowError, match="already lent"):
        Rope(arena, root)

    first.close()
    Rope(arena, root).close()


def test_descend_moves_lead_only():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    rope.descend(lambda node: node.right())
    rope.descend(lambda node: node.right().left())

    assert rope.lead_position == 5
    assert rope.anchor_position == root


def test_descend_may_return_its_argument():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    rope.descend(lambda node: node)

    assert rope.lead_position == root


def test_descend_with_output_returns_step_value():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    seen = rope.descend_with_output(lambda node: (node.right(), node.value))

    assert seen == 0
    assert rope.lead_position == 2


def test_descend_via_slot_uses_final_slot_contents():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    def step(slot):
        hops = 0
        while slot.ref.has_right:
            slot.ref = slot.ref.right()
            hops += 1
        return hops

    assert rope.descend_via_slot(step) == 3
    assert rope.lead_position == 6


def test_steps_mutate_through_the_lent_reference():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    def bump_and_go_right(node):
        node.increment(10)
        return node.right()

    rope.descend(bump_and_go_right)
    rope.descend(bump_and_go_right)
    rope.close()

    assert arena.get_value(0) == 10
    assert arena.get_value(2) == 12
    assert arena.get_value(4) == 4


def test_descend_simul_hold_keeps_anchor():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    advanced = rope.descend_simul(lambda node: Hold(node.right()))

    assert advanced is False
    assert rope.anchor_position == root
    assert rope.lead_position == 2


def test_anchor_tracks_lead_before_most_recent_advance():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    rope.descend_simul(lambda node: Hold(node.right()))
    rope.descend_simul(lambda node: Advance(node.right()))
    rope.descend_simul(lambda node: Hold(node.right()))

    assert rope.anchor_position == 2
    assert rope.lead_position == 6


def test_descend_simul_rejects_other_results():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    with pytest.raises(TypeError, match="Advance or Hold"):
        rope.descend_simul(lambda node: node.right())
    assert rope.lead_position == root


def test_checkpoint_then_rewind_leaves_lead_in_place():
    arena, root = _chain_arena()
    rope = Rope(arena, root)
    rope.descend(lambda node: node.right())

    rope.checkpoint()
    rope.rewind()

    assert rope.lead_position == 2
    assert rope.anchor_position == 2


def test_rewind_is_idempotent():
    arena, root = _chain_arena()
    rope = Rope(arena, root)
    rope.descend(lambda node: node.right())
    rope.checkpoint()
    rope.descend(lambda node: node.right().right())

    rope.rewind()
    once = (rope.anchor_position, rope.lead_position)
    rope.rewind()

    assert (rope.anchor_position, rope.lead_position) == once == (2, 2)


def test_rewind_keeps_mutations():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    def bump(node):
        node.set_value(99)
        return node.left()

    rope.descend(bump)
    rope.rewind()
    with rope.read_lead() as node:
        assert node.value == 99


def test_failed_step_leaves_positions_unchanged():
    arena, root = _chain_arena()
    rope = Rope(arena, root)
    rope.descend(lambda node: node.right())

    with pytest.raises(InvalidPathError, match="no left child"):
        rope.descend(lambda node: node.left().left())

    assert rope.lead_position == 2
    rope.descend(lambda node: node.left())
    assert rope.lead_position == 3


def test_step_must_return_a_node_reference():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    with pytest.raises(TypeError, match="must return a NodeRef"):
        rope.descend(lambda node: node.index)


def test_read_lead_is_scoped_and_read_only():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    with rope.read_lead() as node:
        assert node.value == 0
        assert node.num_children == 2
        with pytest.raises(BorrowError, match="read-only"):
            node.set_value(1)

    with pytest.raises(StaleReferenceError):
        node.value


def test_shared_reads_may_overlap():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    with rope.read_lead() as first, rope.read_lead() as second:
        assert first.value == second.value == 0


def test_read_lead_mut_changes_the_lead_node():
    arena, root = _chain_arena()
    rope = Rope(arena, root)
    rope.descend(lambda node: node.right())

    with rope.read_lead_mut() as node:
        node.increment()

    with rope.read_lead() as node:
        assert node.value == 3


def test_operations_blocked_while_reading():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    with rope.read_lead():
        with pytest.raises(BorrowError):
            rope.descend(lambda node: node.right())
        with pytest.raises(BorrowError):
            rope.checkpoint()
        with pytest.raises(BorrowError):
            rope.consume_into_lead()


def test_rope_is_exclusively_borrowed_during_a_step():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    def reentrant(node):
        rope.checkpoint()
        return node

    with pytest.raises(BorrowError, match="holds the rope"):
        rope.descend(reentrant)
    assert rope.lead_position == root


def test_consume_into_lead_returns_owned_reference():
    arena, root = _chain_arena()
    rope = Rope(arena, root)
    rope.descend(lambda node: node.right().right())

    node = rope.consume_into_lead()

    assert node.index == 4
    node.increment()
    assert node.value == 5
    with pytest.raises(RopeConsumedError):
        rope.descend(lambda n: n)
    with pytest.raises(RopeConsumedError):
        rope.consume_into_anchor()


def test_consumed_reference_holds_the_loan_until_released():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    node = rope.consume_into_anchor()
    with pytest.raises(BorrowError):
        Rope(arena, root)

    node.release()
    with pytest.raises(StaleReferenceError):
        node.value
    Rope(arena, root).close()


def test_consume_into_anchor_detaches_subtree_containing_lead():
    arena, root = BinaryTreeArena.from_nested(example_tree(final_branch=False))
    rope = Rope(arena, root)
    rope.descend_simul(lambda node: Advance(node.right()))
    rope.descend(lambda node: node.left().right())

    with rope.consume_into_anchor() as anchor:
        assert anchor.index == root
        anchor.clear_child(Direction.RIGHT)

    assert arena.to_nested(root) == (0, leaf(1), None)


def test_close_is_idempotent_and_terminal():
    arena, root = _chain_arena()
    with Rope(arena, root) as rope:
        rope.descend(lambda node: node.right())

    rope.close()
    assert not rope.is_alive
    assert arena.lent_to is None
    with pytest.raises(RopeConsumedError, match="closed"):
        rope.peek_lead_position()


def test_nesting_check_rejects_leads_outside_the_subtree():
    arena, root = _chain_arena()
    rope = Rope(arena, root, config=RopeConfig(check_nesting=True))

    def detach_and_follow(node):
        child = node.right()
        node.clear_child(Direction.RIGHT)
        return child

    with pytest.raises(BorrowError, match="outside its subtree"):
        rope.descend(detach_and_follow)
    assert rope.lead_position == root


def test_unchecked_rope_follows_detached_nodes():
    arena, root = _chain_arena()
    rope = Rope(arena, root)

    def detach_and_follow(node):
        child = node.right()
        node.clear_child(Direction.RIGHT)
        return child

    rope.descend(detach_and_follow)
    assert rope.lead_position == 2


def test_nesting_check_allows_descendants():
    arena, root = _chain_arena()
    rope = Rope(arena, root, config=RopeConfig(check_nesting=True))

    rope.descend(lambda node: node.right().right().left())

    assert rope.lead_position == 5


def test_log_steps_emits_transitions(caplog):
    arena, root = _chain_arena()
    rope = Rope(arena, root, config=RopeConfig(log_steps=True))

    with caplog.at_level(logging.DEBUG, logger="gleipnir.rope"):
        rope.descend(lambda node: node.right())
        rope.descend_simul(lambda node: Advance(node.right()))

    messages = [record.getMessage() for record in caplog.records]
    assert "descend: lead 0 -> 2" in messages
    assert "descend_simul: lead 2 -> 4" in messages
    assert "Anchor advanced to node 2" in messages
