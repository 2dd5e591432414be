"""Initialization rules for flat parameter arrays.

An initializer receives the zeroed parameter array of a model and returns a new array of the same length with every element written. Initializers never see the block structure of the array unless they are told about it, as `SpikeSlabInitialization` is through the hidden size.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import override

import jax
import jax.numpy as jnp
from jax import Array


class Initializer(ABC):
    """Strategy that fills a flat parameter array."""

    @abstractmethod
    def __call__(self, key: Array, params: Array) -> Array:
        """Return initialized parameters.

        Args:
            key: JAX random key
            params: Zeroed parameter array; only its length and dtype are used

        Returns:
            Array with the shape and dtype of `params`
        """


@dataclass(frozen=True)
class ZeroInitialization(Initializer):
    """Leave every parameter at zero."""

    @override
    def __call__(self, key: Array, params: Array) -> Array:
        return jnp.zeros_like(params)


@dataclass(frozen=True)
class ConstantInitialization(Initializer):
    """Set every parameter to the same value."""

    value: float

    @override
    def __call__(self, key: Array, params: Array) -> Array:
        return jnp.full_like(params, self.value)


@dataclass(frozen=True)
class GaussianInitialization(Initializer):
    """Draw every parameter from a normal distribution."""

    mean: float = 0.0
    std: float = 1.0

    @override
    def __call__(self, key: Array, params: Array) -> Array:
        noise = jax.random.normal(key, params.shape, dtype=params.dtype)
        return self.mean + self.std * noise


@dataclass(frozen=True)
class UniformInitialization(Initializer):
    """Draw every parameter uniformly from a bounded interval."""

    low: float = -1.0
    high: float = 1.0

    @override
    def __call__(self, key: Array, params: Array) -> Array:
        return jax.random.uniform(
            key, params.shape, dtype=params.dtype, minval=self.low, maxval=self.high
        )


@dataclass(frozen=True)
class SpikeSlabInitialization(Initializer):
    """Gaussian weights, constant spike bias, and a positive visible penalty.

    Relies on the spike-slab layout, where the last `n_hidden + 1` coordinates hold the spike bias followed by the visible penalty.
    """

    n_hidden: int
    weight_std: float = 0.1
    spike_bias: float = 0.0
    visible_penalty: float = 1.0

    @override
    def __call__(self, key: Array, params: Array) -> Array:
        n_weights = params.shape[0] - self.n_hidden - 1
        weights = self.weight_std * jax.random.normal(
            key, (n_weights,), dtype=params.dtype
        )
        spike_bias = jnp.full((self.n_hidden,), self.spike_bias, dtype=params.dtype)
        penalty = jnp.full((1,), self.visible_penalty, dtype=params.dtype)
        return jnp.concatenate([weights, spike_bias, penalty])
