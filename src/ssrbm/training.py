"""Contrastive-divergence training on a parameter store.

The trainer evaluates the data phase on a batch, runs block-Gibbs chains to get negative samples, evaluates the model phase on those samples, and writes all three gradients into the store. With `persistent=True` the chains continue from where the previous step left them instead of restarting at the data.
"""

from __future__ import annotations

import logging

import jax
import jax.numpy as jnp
from jax import Array

from .errors import ConfigurationError
from .geometry import Optimizer, OptState
from .models import RBMVariant
from .store import ParameterStore

logger = logging.getLogger(__name__)


class ContrastiveDivergence:
    """CD-k and persistent CD for any RBM variant held in a parameter store.

    Attributes:
        store: Initialized parameter store that receives gradients and updates
        optimizer: Optimizer applied to the gradient
        n_steps: Gibbs sweeps per negative sample (the k of CD-k)
        batch_size: Number of visible vectors per training step
        persistent: Keep the negative chains between steps
        negative_samples: Negative samples of the last step (shape: batch_size x n_visible)
    """

    def __init__(
        self,
        store: ParameterStore,
        optimizer: Optimizer[RBMVariant],
        n_steps: int = 1,
        batch_size: int = 1,
        persistent: bool = False,
    ) -> None:
        if n_steps < 1:
            raise ConfigurationError(f"n_steps must be positive, got {n_steps}")
        if batch_size < 1:
            raise ConfigurationError(f"batch_size must be positive, got {batch_size}")
        self.store = store
        self.optimizer = optimizer
        self.n_steps = n_steps
        self.batch_size = batch_size
        self.persistent = persistent
        self.opt_state: OptState | None = None
        self.negative_samples = jnp.zeros((batch_size, store.model.data_dim))
        self._chain: Array | None = None

    @property
    def persistent_chain(self) -> Array | None:
        """End states of the persistent chains, or None before the first persistent step."""
        return self._chain

    def _chain_starts(self, batch: Array) -> Array:
        if self.persistent and self._chain is not None:
            if self._chain.shape == batch.shape:
                return self._chain
        return batch

    def gradient(self, key: Array, batch: Array) -> Array:
        """Contrastive-divergence gradient of a batch, written into the store.

        Args:
            key: JAX random key
            batch: Visible vectors (shape: n_samples x n_visible)

        Returns:
            Negative minus positive statistics, averaged over the batch
        """
        model = self.store.model
        params = self.store.params
        batch = jnp.atleast_2d(batch)
        pos_key, chain_key, neg_key = jax.random.split(key, 3)

        self.store.positive_gradient = model.mean_phase(pos_key, params, batch)

        starts = self._chain_starts(batch)
        chain_keys = jax.random.split(chain_key, starts.shape[0])
        negatives = jnp.stack(
            [
                model.gibbs_chain(start_key, params, start, self.n_steps)
                for start_key, start in zip(chain_keys, starts)
            ]
        )
        self.negative_samples = negatives
        if self.persistent:
            self._chain = negatives

        self.store.negative_gradient = model.mean_phase(neg_key, params, negatives)
        self.store.gradient = (
            self.store.negative_gradient - self.store.positive_gradient
        )
        return self.store.gradient

    def step(self, key: Array, batch: Array) -> Array:
        """Compute the gradient of a batch and apply one optimizer update.

        Returns:
            Updated parameters, also stored in the parameter store
        """
        grads = self.gradient(key, batch)
        if self.opt_state is None:
            self.opt_state = self.optimizer.init(self.store.params)
        self.opt_state, new_params = self.optimizer.update(
            self.opt_state, grads, self.store.params
        )
        self.store.params = new_params
        return new_params

    def train(self, key: Array, data: Array, n_epochs: int) -> list[float]:
        """Train for several epochs over shuffled mini-batches.

        Args:
            key: JAX random key
            data: Training set (shape: n_samples x n_visible)
            n_epochs: Number of passes over the data

        Returns:
            Mean free energy of the training set after each epoch
        """
        n_samples = data.shape[0]
        n_batches = n_samples // self.batch_size
        if n_batches == 0:
            raise ConfigurationError(
                f"Need at least batch_size={self.batch_size} samples, got {n_samples}"
            )

        free_energies: list[float] = []
        for epoch in range(n_epochs):
            key, shuffle_key, batches_key = jax.random.split(key, 3)
            perm = jax.random.permutation(shuffle_key, n_samples)
            batches = data[perm][: n_batches * self.batch_size].reshape(
                n_batches, self.batch_size, -1
            )
            for batch_key, batch in zip(
                jax.random.split(batches_key, n_batches), batches
            ):
                self.step(batch_key, batch)

            free_energy = float(self.store.mean_free_energy(data))
            free_energies.append(free_energy)
            logger.info(
                "Epoch %d/%d: mean free energy %.4f", epoch + 1, n_epochs, free_energy
            )

        return free_energies
