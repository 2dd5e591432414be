"""Owner of the flat parameter and gradient buffers of one model.

The store moves one way from Uninitialized to Initialized through `reset`. Before that, every read of parameters, views, or gradients raises `UninitializedError`. Views of the weight tensor, spike bias, and visible penalty are always derived from the model's block layout, and the three gradient buffers share that layout.

The store provides no locking. One owner mutates it per training step; parallel workers each need their own store.
"""

from __future__ import annotations

import logging

import jax.numpy as jnp
from jax import Array

from .errors import ConfigurationError, UninitializedError
from .initialization import Initializer
from .models.variant import RBMVariant

logger = logging.getLogger(__name__)


class ParameterStore:
    """Flat parameter buffer plus positive, negative, and difference gradient buffers.

    Attributes:
        model: RBM variant whose layout the buffers follow
        initializer: Rule applied to the zeroed parameter buffer on every reset
    """

    def __init__(
        self, model: RBMVariant, initializer: Initializer | None = None
    ) -> None:
        self.model = model
        self.initializer = (
            model.default_initializer() if initializer is None else initializer
        )
        self._params: Array | None = None
        self._positive_gradient: Array | None = None
        self._negative_gradient: Array | None = None
        self._gradient: Array | None = None

    # State

    @property
    def initialized(self) -> bool:
        """Whether `reset` has been called."""
        return self._params is not None

    def _require(self, buffer: Array | None) -> Array:
        if self._params is None or buffer is None:
            raise UninitializedError("Parameter store used before reset()")
        return buffer

    def reset(self, key: Array) -> Array:
        """Allocate and zero all buffers, then initialize the parameters.

        Calling again re-zeroes and re-initializes; the same key and initializer give identical buffers. If the initializer output is rejected, every buffer keeps its previous state.

        Args:
            key: JAX random key handed to the initializer

        Returns:
            The initialized parameter array
        """
        zeros = self.model.zeros()
        params = self.initializer(key, zeros)
        if params.shape != zeros.shape:
            raise ConfigurationError(
                f"Initializer returned shape {params.shape}, expected {zeros.shape}"
            )
        self.model.validate_params(params)

        self._params = params
        self._positive_gradient = zeros
        self._negative_gradient = zeros
        self._gradient = zeros
        logger.debug(
            "Reset parameter store with %d parameters (weights at %d, spike bias at %d, visible penalty at %d)",
            self.model.dim,
            *self.model.offsets,
        )
        return params

    # Buffers

    @property
    def params(self) -> Array:
        """Flat parameter array."""
        return self._require(self._params)

    @params.setter
    def params(self, params: Array) -> None:
        self._require(self._params)
        self.model.validate_params(params)
        self._params = params

    @property
    def positive_gradient(self) -> Array:
        """Data-phase statistics from the last gradient evaluation."""
        return self._require(self._positive_gradient)

    @positive_gradient.setter
    def positive_gradient(self, gradient: Array) -> None:
        self._positive_gradient = self._check_gradient(gradient)

    @property
    def negative_gradient(self) -> Array:
        """Model-phase statistics from the last gradient evaluation."""
        return self._require(self._negative_gradient)

    @negative_gradient.setter
    def negative_gradient(self, gradient: Array) -> None:
        self._negative_gradient = self._check_gradient(gradient)

    @property
    def gradient(self) -> Array:
        """Negative minus positive statistics; the direction of descent on the negative log-likelihood."""
        return self._require(self._gradient)

    @gradient.setter
    def gradient(self, gradient: Array) -> None:
        self._gradient = self._check_gradient(gradient)

    def _check_gradient(self, gradient: Array) -> Array:
        self._require(self._params)
        if gradient.shape != (self.model.dim,):
            raise ConfigurationError(
                f"Expected gradient of shape ({self.model.dim},), got {gradient.shape}"
            )
        return gradient

    # Views

    @property
    def weights(self) -> Array:
        """Weight tensor (shape: n_visible x n_pool x n_hidden for a spike-slab model)."""
        return self.model.split_params(self.params)[0]

    @property
    def spike_bias(self) -> Array:
        """Hidden bias; the spike bias of a spike-slab model (shape: n_hidden)."""
        return self.model.split_params(self.params)[1]

    @property
    def visible_penalty(self) -> Array:
        """Visible parameters; the scalar visible penalty of a spike-slab model."""
        return self.model.split_params(self.params)[2]

    # Model operations on the stored parameters

    def sample_hidden(self, key: Array, visible: Array) -> Array:
        return self.model.sample_hidden(key, self.params, visible)

    def hidden_mean(self, key: Array, visible: Array) -> Array:
        return self.model.hidden_mean(key, self.params, visible)

    def sample_visible(self, key: Array, hidden: Array) -> Array:
        return self.model.sample_visible(key, self.params, hidden)

    def phase(self, key: Array, visible: Array) -> Array:
        return self.model.phase(key, self.params, visible)

    def free_energy(self, visible: Array) -> Array:
        return self.model.free_energy(self.params, visible)

    def mean_free_energy(self, xs: Array) -> Array:
        return self.model.mean_free_energy(self.params, jnp.atleast_2d(xs))
