"""Direction paths for walking binary trees from the root."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum
from typing import Iterable, Iterator

import jax.numpy as jnp
import numpy as np
from beartype import beartype
from jaxtyping import Array

U64 = jnp.uint64

# Paths are read from a single uint64 word.
MAX_PATH_BITS = 64


class Direction(IntEnum):
    """Child selector for a binary node."""

    LEFT = 0
    RIGHT = 1

    @property
    def opposite(self) -> "Direction":
        return Direction.RIGHT if self is Direction.LEFT else Direction.LEFT


def _direction_codes(bits: int, depth: int) -> Array:
    """Extract ``depth`` low-order bits of ``bits``, least-significant first."""

    positions = jnp.arange(depth, dtype=U64)
    in_range = positions < U64(MAX_PATH_BITS)
    shifts = jnp.minimum(positions, U64(MAX_PATH_BITS - 1))
    raw = jnp.bitwise_and(jnp.right_shift(U64(bits), shifts), U64(1))
    return jnp.where(in_range, raw, U64(0)).astype(jnp.int8)


@dataclass(frozen=True)
class DirectionPath:
    """Restartable sequence of directions encoded in the low bits of an int.

    Iterating the path twice yields the same directions; nothing is consumed.
    Bits above position 63 read as zero, so overly deep paths continue LEFT.
    """

    bits: int
    depth: int

    def __post_init__(self) -> None:
        if self.bits < 0:
            raise ValueError(f"bits must be non-negative, got {self.bits}")
        if self.bits >= 1 << MAX_PATH_BITS:
            raise ValueError(
                f"bits must fit in {MAX_PATH_BITS} bits, got {self.bits}"
            )
        if self.depth < 0:
            raise ValueError(f"depth must be non-negative, got {self.depth}")

    def to_array(self) -> Array:
        """Return the direction codes (0 = LEFT, 1 = RIGHT) as an int8 array."""

        return _direction_codes(self.bits, self.depth)

    def __len__(self) -> int:
        return self.depth

    def __iter__(self) -> Iterator[Direction]:
        for code in np.asarray(self.to_array()).tolist():
            yield Direction(code)

    def __getitem__(self, position: int) -> Direction:
        if position < 0:
            position += self.depth
        if not 0 <= position < self.depth:
            raise IndexError(
                f"path position {position} out of range for depth {self.depth}"
            )
        if position >= MAX_PATH_BITS:
            return Direction.LEFT
        return Direction((self.bits >> position) & 1)


@beartype
def directions_from_bits(bits: int, depth: int) -> DirectionPath:
    """Read ``depth`` directions from ``bits``, LSB first (0 -> LEFT, 1 -> RIGHT)."""

    return DirectionPath(bits=bits, depth=depth)


def bits_from_directions(directions: Iterable[Direction]) -> tuple[int, int]:
    """Encode directions as ``(bits, depth)``; inverse of ``directions_from_bits``."""

    bits = 0
    depth = 0
    for depth, direction in enumerate(directions, start=1):
        if depth > MAX_PATH_BITS:
            raise ValueError(f"paths longer than {MAX_PATH_BITS} cannot be encoded")
        bits |= int(Direction(direction)) << (depth - 1)
    return bits, depth


__all__ = [
    "Direction",
    "DirectionPath",
    "MAX_PATH_BITS",
    "bits_from_directions",
    "directions_from_bits",
]
