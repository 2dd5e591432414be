"""Flat coordinate spaces and the blocks that partition them.

In practice, every model in this package stores its parameters as a single flat array. This module provides the objects that describe how that array is carved up: a `Block` is a shaped region of coordinates, and a `Triple` lays three blocks end to end and knows the offset of each one.

The blocks never own data. They are slice descriptors computed from dimensions alone, so the same layout applies to a parameter array and to any gradient array of the same length.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from typing import override

import jax
import jax.numpy as jnp
from jax import Array


class Manifold(ABC):
    """A space of points stored as flat coordinate arrays.

    In practice, a Manifold defines operations on arrays representing points and provides methods to create, transform and differentiate functions of them.
    """

    # Abstract methods

    @property
    @abstractmethod
    def dim(self) -> int:
        """The dimension of the manifold."""
        ...

    # Array operations

    def zeros(self) -> Array:
        """Create an array of zeros with the manifold's dimension."""
        return jnp.zeros(self.dim)

    def value_and_grad(
        self,
        f: Callable[[Array], Array],
        p: Array,
    ) -> tuple[Array, Array]:
        """Compute both value and gradient of a function at a point.

        Args:
            f: Function that takes an array and returns a scalar
            p: Point (array) at which to evaluate

        Returns:
            Tuple of (function value, gradient array)
        """
        value, grads = jax.value_and_grad(f)(p)
        return value, grads

    def grad(
        self,
        f: Callable[[Array], Array],
        p: Array,
    ) -> Array:
        """Compute gradients of a function at a point."""
        return self.value_and_grad(f, p)[1]


@dataclass(frozen=True)
class Block(Manifold):
    """A contiguous region of coordinates with a tensor shape.

    The shape is the mathematical interpretation of the region; storage is always flat and row-major. An empty shape describes a scalar that occupies a single coordinate.
    """

    shape: tuple[int, ...]
    """Tensor shape of the block."""

    @property
    @override
    def dim(self) -> int:
        return math.prod(self.shape)

    def to_tensor(self, coords: Array) -> Array:
        """Reshape flat block coordinates into the block's tensor shape."""
        return coords.reshape(self.shape)

    def from_tensor(self, tensor: Array) -> Array:
        """Flatten a tensor of the block's shape into coordinates."""
        return jnp.reshape(tensor, (self.dim,))


@dataclass(frozen=True)
class Triple[First: Manifold, Second: Manifold, Third: Manifold](Manifold, ABC):
    """Triple lays three coordinate spaces end to end in one flat array, providing methods to split coordinates into their respective components and join them back together.

    The three regions never overlap and together cover the array exactly once.
    """

    # Contract

    @property
    @abstractmethod
    def fst_man(self) -> First:
        """First component manifold."""

    @property
    @abstractmethod
    def snd_man(self) -> Second:
        """Second component manifold."""

    @property
    @abstractmethod
    def trd_man(self) -> Third:
        """Third component manifold."""

    # Overrides

    @property
    @override
    def dim(self) -> int:
        """Total dimension is the sum of component dimensions."""
        return self.fst_man.dim + self.snd_man.dim + self.trd_man.dim

    # Methods

    @property
    def offsets(self) -> tuple[int, int, int]:
        """Start offset of each component within the flat array."""
        first_dim = self.fst_man.dim
        return (0, first_dim, first_dim + self.snd_man.dim)

    def split_coords(self, coords: Array) -> tuple[Array, Array, Array]:
        """Split coordinates into first, second, and third components.

        Args:
            coords: Array of concatenated coordinates

        Returns:
            Tuple of (fst_coords, snd_coords, trd_coords)
        """
        _, snd_start, trd_start = self.offsets

        fst_coords = coords[:snd_start]
        snd_coords = coords[snd_start:trd_start]
        trd_coords = coords[trd_start:]

        return (fst_coords, snd_coords, trd_coords)

    def join_coords(
        self, fst_coords: Array, snd_coords: Array, trd_coords: Array
    ) -> Array:
        """Join component coordinates into a single array.

        Args:
            fst_coords: coordinates from first manifold
            snd_coords: coordinates from second manifold
            trd_coords: coordinates from third manifold

        Returns:
            Concatenated array
        """
        return jnp.concatenate([fst_coords, snd_coords, trd_coords])
