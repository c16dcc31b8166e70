"""Gleipnir: iterative traversal cursors over index-addressed tree arenas."""

from jax import config as _jax_config

# Arena indices and node values are int64; path bits are read as uint64.
_jax_config.update("jax_enable_x64", True)

from .arena import ArenaConfig, BinaryTreeArena, NestedNode, as_position, leaf
from .borrow import BorrowScope, NodeRef, Slot
from .dtypes import INDEX_DTYPE, NULL_INDEX, VALUE_DTYPE, as_index, as_value
from .errors import (
    BorrowError,
    InvalidPathError,
    RopeConsumedError,
    RopeError,
    StaleReferenceError,
    TreeInvariantError,
)
from .paths import (
    MAX_PATH_BITS,
    Direction,
    DirectionPath,
    bits_from_directions,
    directions_from_bits,
)
from .protocols import BinaryTreeProtocol, NodeStoreProtocol
from .prune import (
    PruneAction,
    PruneOutcome,
    prune_or_increment,
    prune_or_increment_recursive,
)
from .rope import Advance, Hold, Rope, RopeConfig, Simul

__all__ = [
    "INDEX_DTYPE",
    "MAX_PATH_BITS",
    "NULL_INDEX",
    "VALUE_DTYPE",
    "Advance",
    "ArenaConfig",
    "BinaryTreeArena",
    "BinaryTreeProtocol",
    "BorrowError",
    "BorrowScope",
    "Direction",
    "DirectionPath",
    "Hold",
    "InvalidPathError",
    "NestedNode",
    "NodeRef",
    "NodeStoreProtocol",
    "PruneAction",
    "PruneOutcome",
    "Rope",
    "RopeConfig",
    "RopeConsumedError",
    "RopeError",
    "Simul",
    "Slot",
    "StaleReferenceError",
    "TreeInvariantError",
    "as_index",
    "as_position",
    "as_value",
    "bits_from_directions",
    "directions_from_bits",
    "leaf",
    "prune_or_increment",
    "prune_or_increment_recursive",
]
