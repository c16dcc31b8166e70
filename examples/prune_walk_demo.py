"""Run prune-or-increment on a small tree and print the result.

Usage:
    python examples/prune_walk_demo.py --bits 0b1101 --depth 5
    python examples/prune_walk_demo.py --branch --verbose
"""

from __future__ import annotations

import argparse
import logging
import pprint

from gleipnir import (
    BinaryTreeArena,
    RopeConfig,
    directions_from_bits,
    leaf,
    prune_or_increment,
    prune_or_increment_recursive,
)


def _demo_tree(branch: bool) -> tuple:
    final = (5, leaf(6), leaf(6)) if branch else leaf(5)
    return (0, leaf(1), (1, (2, None, (3, None, (4, final, None))), None))


def main() -> None:
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument("--bits", type=lambda text: int(text, 0), default=0b1101)
    parser.add_argument("--depth", type=int, default=5)
    parser.add_argument(
        "--branch",
        action="store_true",
        help="end the demo path on a two-child node instead of a leaf",
    )
    parser.add_argument("--verbose", action="store_true")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    arena, root = BinaryTreeArena.from_nested(_demo_tree(args.branch))
    reference = arena.copy()
    path = directions_from_bits(args.bits, args.depth)
    print("path:", [direction.name for direction in path])
    print("before:")
    pprint.pprint(arena.to_nested(root))

    outcome = prune_or_increment(
        arena, path, root, config=RopeConfig(log_steps=args.verbose)
    )
    expected = prune_or_increment_recursive(reference, path, root)

    print("outcome:", outcome)
    print("after:")
    pprint.pprint(arena.to_nested(root))
    if outcome != expected or arena.to_nested(root) != reference.to_nested(root):
        raise SystemExit("iterative and recursive walks disagree")


if __name__ == "__main__":
    main()
