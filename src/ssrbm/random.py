"""Injectable sources of Bernoulli and Gaussian draws.

Models never call `jax.random` directly for their conditional draws; they ask a `RandomSource`. The default wraps `jax.random`, and tests substitute deterministic sources to pin down exact outputs. Keys are always supplied by the caller, so reproducibility and per-worker independence come from how the caller splits its keys.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import override

import jax
import jax.numpy as jnp
from jax import Array


class RandomSource(ABC):
    """Capability to draw independent Bernoulli and Gaussian variables."""

    @abstractmethod
    def bernoulli(self, key: Array, p: Array) -> Array:
        """Draw one Bernoulli variable per entry of `p`.

        Args:
            key: JAX random key
            p: Success probabilities

        Returns:
            Array of 0.0/1.0 with the shape and dtype of `p`
        """

    @abstractmethod
    def normal(self, key: Array, mean: Array, variance: Array | float) -> Array:
        """Draw one Gaussian variable per entry of `mean`.

        Args:
            key: JAX random key
            mean: Means of the draws
            variance: Variance shared by (or broadcast against) the draws

        Returns:
            Array with the shape and dtype of `mean`
        """


@dataclass(frozen=True)
class JaxRandomSource(RandomSource):
    """Random source backed by `jax.random`."""

    @override
    def bernoulli(self, key: Array, p: Array) -> Array:
        p = jnp.asarray(p)
        return jax.random.bernoulli(key, p).astype(p.dtype)

    @override
    def normal(self, key: Array, mean: Array, variance: Array | float) -> Array:
        mean = jnp.asarray(mean)
        noise = jax.random.normal(key, mean.shape, dtype=mean.dtype)
        return mean + jnp.sqrt(variance) * noise
