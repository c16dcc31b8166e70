"""Local dtype policy for Gleipnir arenas."""

import jax.numpy as jnp

# Keep node/index buffers consistent across arena artifacts.
INDEX_DTYPE = jnp.int64
VALUE_DTYPE = jnp.int64

# Sentinel for "no node" in child and parent buffers.
NULL_INDEX = -1


def as_index(x):
    """Convert a scalar/array to the gleipnir index dtype."""
    return jnp.asarray(x, dtype=INDEX_DTYPE)


def as_value(x):
    """Convert a scalar/array to the node value dtype."""
    return jnp.asarray(x, dtype=VALUE_DTYPE)


__all__ = ["INDEX_DTYPE", "NULL_INDEX", "VALUE_DTYPE", "as_index", "as_value"]
