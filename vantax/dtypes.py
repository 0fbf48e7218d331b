"""Array dtypes for point indices and distances in query results."""

import jax.numpy as jnp

# Batched queries report positions into the input sequence and float64
# distances; both need the x64 switch set in ``vantax/__init__``.
INDEX_DTYPE = jnp.int64
DISTANCE_DTYPE = jnp.float64


def as_index(x):
    """Return ``x`` as an array of point positions."""
    return jnp.asarray(x, dtype=INDEX_DTYPE)


def as_distance(x):
    """Return ``x`` as an array of metric distances."""
    return jnp.asarray(x, dtype=DISTANCE_DTYPE)


__all__ = ["DISTANCE_DTYPE", "INDEX_DTYPE", "as_distance", "as_index"]
