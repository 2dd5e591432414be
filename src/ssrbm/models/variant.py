"""Interface shared by restricted Boltzmann machine variants.

A host (parameter store, trainer) drives any RBM through this interface: it asks the variant for initial parameters, for hidden and visible samples, for the sufficient statistics of a phase, and for free energies. Variants hold only structure; parameters are flat arrays passed in on every call.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

import jax
import jax.numpy as jnp
from jax import Array

from ..geometry import Manifold
from ..initialization import Initializer


class RBMVariant(Manifold, ABC):
    """An RBM whose conditionals support block-Gibbs sampling and contrastive divergence.

    In practice, concrete variants implement the single-vector operations below, and inherit batch and chain templates built on top of them.
    """

    # Contract

    @property
    @abstractmethod
    def data_dim(self) -> int:
        """Number of visible units."""

    @property
    @abstractmethod
    def offsets(self) -> tuple[int, ...]:
        """Start offset of each parameter block within the flat array."""

    @abstractmethod
    def split_params(self, params: Array) -> tuple[Array, ...]:
        """Split a flat parameter array into its blocks, each in tensor shape.

        The order is weights, hidden bias, then visible parameters. Gradients share the layout.
        """

    @abstractmethod
    def default_initializer(self) -> Initializer:
        """Initialization rule used when the host does not supply one."""

    @abstractmethod
    def validate_params(self, params: Array) -> None:
        """Raise `ConfigurationError` if `params` is not a valid parameter array."""

    @abstractmethod
    def sample_hidden(self, key: Array, params: Array, visible: Array) -> Array:
        """Draw a hidden state given a visible vector."""

    @abstractmethod
    def sample_visible(self, key: Array, params: Array, hidden: Array) -> Array:
        """Draw a visible vector given a hidden state."""

    @abstractmethod
    def phase(self, key: Array, params: Array, visible: Array) -> Array:
        """Sufficient statistics of one visible vector, laid out like the parameters."""

    @abstractmethod
    def free_energy(self, params: Array, visible: Array) -> Array:
        """Free energy of one visible vector."""

    # Templates

    def initialize(self, key: Array, initializer: Initializer | None = None) -> Array:
        """Zero a parameter array and hand it to an initialization rule.

        Args:
            key: JAX random key
            initializer: Rule that writes every parameter (default: `default_initializer()`)

        Returns:
            Initialized parameter array
        """
        if initializer is None:
            initializer = self.default_initializer()
        return initializer(key, self.zeros())

    def mean_phase(self, key: Array, params: Array, xs: Array) -> Array:
        """Average sufficient statistics over a batch of visible vectors."""
        keys = jax.random.split(key, xs.shape[0])
        phases = jax.vmap(self.phase, in_axes=(0, None, 0))(keys, params, xs)
        return jnp.mean(phases, axis=0)

    def mean_free_energy(self, params: Array, xs: Array) -> Array:
        """Compute mean free energy over a batch of visible vectors."""
        return jnp.mean(jax.vmap(self.free_energy, in_axes=(None, 0))(params, xs))

    def gibbs_step(self, key: Array, params: Array, visible: Array) -> Array:
        """One block-Gibbs sweep, visible to hidden to visible."""
        hidden_key, visible_key = jax.random.split(key)
        hidden = self.sample_hidden(hidden_key, params, visible)
        return self.sample_visible(visible_key, params, hidden)

    def gibbs_chain(
        self, key: Array, params: Array, visible: Array, n_steps: int
    ) -> Array:
        """Run `n_steps` block-Gibbs sweeps from a visible vector.

        Args:
            key: JAX random key
            params: Model parameters
            visible: Starting visible vector
            n_steps: Number of sweeps

        Returns:
            Visible vector after the final sweep
        """
        for step_key in jax.random.split(key, n_steps):
            visible = self.gibbs_step(step_key, params, visible)
        return visible
