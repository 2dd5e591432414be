"""Spike-and-slab restricted Boltzmann machine.

Each hidden unit $h$ carries a binary spike $s_h$ and a real-valued slab vector $\\mathbf{z}_h \\in \\mathbb{R}^P$ that only matters while the spike is on. Visible units $\\mathbf{v} \\in \\mathbb{R}^V$ are Gaussian with precision $\\alpha$, and the three layers couple through a weight tensor $W$ of shape $(V, P, H)$:

$$E(\\mathbf{v}, \\mathbf{s}, \\mathbf{z}) = \\frac{\\alpha}{2} \\|\\mathbf{v}\\|^2 - \\sum_h \\mathbf{v}^T W_h \\mathbf{z}_h s_h + \\frac{\\lambda}{2} \\sum_h \\|\\mathbf{z}_h\\|^2 - \\sum_h b_h s_h$$

where $W_h = W[:, :, h]$ and $\\lambda$ is the fixed slab penalty. Integrating the slab out analytically gives closed-form conditionals for the spike, then the slab given the spike, then the visible layer given both. This is what makes block-Gibbs sampling and contrastive divergence cheap.

Parameters live in one flat array ``[W | b | alpha]``; hidden states live in one flat array ``[spike | slab]`` with the slab stored as a $(P, H)$ matrix.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import NamedTuple, override

import jax
import jax.numpy as jnp
from jax import Array

from ..errors import ConfigurationError, NumericalInstabilityError
from ..geometry import Block, Triple
from ..initialization import Initializer, SpikeSlabInitialization
from ..random import JaxRandomSource, RandomSource
from .variant import RBMVariant

logger = logging.getLogger(__name__)


def _check_finite(name: str, x: Array) -> Array:
    """Raise if a concrete array holds NaN or infinity; traced arrays pass through."""
    try:
        finite = bool(jnp.all(jnp.isfinite(x)))
    except jax.errors.ConcretizationTypeError:
        return x
    if not finite:
        raise NumericalInstabilityError(f"{name} contains non-finite values")
    return x


class VisibleSample(NamedTuple):
    """Outcome of rejection sampling a visible vector."""

    sample: Array
    """Last visible draw."""
    n_trials: int
    """Number of draws made, between 1 and `n_max_trials`."""
    accepted: bool
    """Whether the last draw lies strictly inside the radius."""


@dataclass(frozen=True)
class SpikeSlabRBM(Triple[Block, Block, Block], RBMVariant):
    """Spike-and-slab RBM with Gaussian visible units.

    As a triple of coordinate blocks:
    - fst_man: weight tensor $W$ of shape (n_visible, n_pool, n_hidden)
    - snd_man: spike bias $b$ of shape (n_hidden,)
    - trd_man: visible penalty $\\alpha$, a scalar

    The conditionals are:
    - $p(s_h = 1 | \\mathbf{v}) = \\sigma(\\|W_h^T \\mathbf{v}\\|^2 / 2\\lambda + b_h)$
    - $p(\\mathbf{z}_h | \\mathbf{v}, s_h) = \\mathcal{N}(s_h W_h^T \\mathbf{v} / \\lambda, \\lambda^{-1} I)$
    - $p(\\mathbf{v} | \\mathbf{s}, \\mathbf{z}) = \\mathcal{N}(\\alpha^{-1} \\sum_h W_h \\mathbf{z}_h s_h, \\alpha^{-1} I)$, restricted to the ball of the given radius

    Attributes:
        n_visible: Number of visible units
        n_hidden: Number of hidden units (spikes)
        n_pool: Number of slab variables per hidden unit
        slab_penalty: Precision of the slab Gaussian (fixed, not learned)
        radius: Bound on the L2 norm of accepted visible samples
        n_max_trials: Rejection sampling budget for visible samples
        random_source: Source of Bernoulli and Gaussian draws
    """

    n_visible: int
    """Number of visible units."""

    n_hidden: int
    """Number of hidden units."""

    n_pool: int = 2
    """Number of slab variables per hidden unit."""

    slab_penalty: float = 8.0
    """Precision of the slab Gaussian."""

    radius: float = 1.0
    """Visible samples are accepted only when their norm is below this bound."""

    n_max_trials: int = 10
    """Maximum number of draws per visible sample."""

    random_source: RandomSource = field(default_factory=JaxRandomSource)
    """Source of the conditional draws."""

    def __post_init__(self) -> None:
        for name in ("n_visible", "n_hidden", "n_pool", "n_max_trials"):
            if getattr(self, name) < 1:
                raise ConfigurationError(
                    f"{name} must be a positive integer, got {getattr(self, name)}"
                )
        if not self.slab_penalty > 0:
            raise ConfigurationError(
                f"slab_penalty must be positive, got {self.slab_penalty}"
            )
        if not self.radius > 0:
            raise ConfigurationError(f"radius must be positive, got {self.radius}")

    # Properties

    @property
    @override
    def fst_man(self) -> Block:
        """Weight tensor block."""
        return Block((self.n_visible, self.n_pool, self.n_hidden))

    @property
    @override
    def snd_man(self) -> Block:
        """Spike bias block."""
        return Block((self.n_hidden,))

    @property
    @override
    def trd_man(self) -> Block:
        """Visible penalty block."""
        return Block(())

    @property
    @override
    def data_dim(self) -> int:
        return self.n_visible

    @property
    def hidden_dim(self) -> int:
        """Length of a flat hidden state (spikes followed by slabs)."""
        return self.n_hidden + self.n_pool * self.n_hidden

    # Coordinates

    @override
    def split_params(self, params: Array) -> tuple[Array, Array, Array]:
        """Split parameters into weight tensor, spike bias, and visible penalty.

        Args:
            params: Flat parameter array

        Returns:
            Tuple of (weights (V, P, H), spike_bias (H,), visible_penalty ())
        """
        wgt_coords, bias_coords, pen_coords = self.split_coords(params)
        return (
            self.fst_man.to_tensor(wgt_coords),
            self.snd_man.to_tensor(bias_coords),
            self.trd_man.to_tensor(pen_coords),
        )

    def join_params(
        self, weights: Array, spike_bias: Array, visible_penalty: Array | float
    ) -> Array:
        """Join weight tensor, spike bias, and visible penalty into a flat array."""
        return self.join_coords(
            self.fst_man.from_tensor(weights),
            self.snd_man.from_tensor(spike_bias),
            self.trd_man.from_tensor(jnp.asarray(visible_penalty)),
        )

    def split_hidden(self, hidden: Array) -> tuple[Array, Array]:
        """Split a hidden state into spikes (H,) and slabs (P, H)."""
        spike = hidden[: self.n_hidden]
        slab = hidden[self.n_hidden :].reshape(self.n_pool, self.n_hidden)
        return spike, slab

    def join_hidden(self, spike: Array, slab: Array) -> Array:
        """Join spikes and slabs into a flat hidden state."""
        return jnp.concatenate([spike, slab.ravel()])

    # Parameter handling

    @override
    def default_initializer(self) -> Initializer:
        return SpikeSlabInitialization(self.n_hidden)

    @override
    def validate_params(self, params: Array) -> None:
        if params.shape != (self.dim,):
            raise ConfigurationError(
                f"Expected parameters of shape ({self.dim},), got {params.shape}"
            )
        if not bool(jnp.all(jnp.isfinite(params))):
            raise ConfigurationError("Parameters contain non-finite values")
        _, _, visible_penalty = self.split_params(params)
        if not float(visible_penalty) > 0:
            raise ConfigurationError(
                f"Visible penalty must be positive, got {float(visible_penalty)}"
            )

    # Conditional distributions

    def _pool_projection(self, weights: Array, visible: Array) -> Array:
        """Column h holds $W_h^T \\mathbf{v}$; shape (P, H)."""
        return jnp.einsum("v,vph->ph", visible, weights)

    def spike_mean(self, params: Array, visible: Array) -> Array:
        """Probability that each spike is on given the visible units, with slabs integrated out.

        Args:
            params: Model parameters
            visible: Visible vector (shape: n_visible)

        Returns:
            Spike probabilities (shape: n_hidden)
        """
        weights, spike_bias, _ = self.split_params(params)
        projection = self._pool_projection(weights, visible)
        quadratic = jnp.sum(jnp.square(projection), axis=0)
        _check_finite("spike activation", quadratic)
        return jax.nn.sigmoid(0.5 * (1.0 / self.slab_penalty) * quadratic + spike_bias)

    def sample_spike(self, key: Array, spike_mean: Array) -> Array:
        """Draw each spike independently from its probability."""
        return self.random_source.bernoulli(key, spike_mean)

    def slab_mean(self, params: Array, visible: Array, spike: Array) -> Array:
        """Mean of the slabs given the visible units and spikes.

        A hidden unit whose spike is off gets an all-zero slab mean.

        Args:
            params: Model parameters
            visible: Visible vector (shape: n_visible)
            spike: Spike states or probabilities (shape: n_hidden)

        Returns:
            Slab means (shape: n_pool x n_hidden)
        """
        weights, _, _ = self.split_params(params)
        projection = self._pool_projection(weights, visible)
        return _check_finite(
            "slab mean", (1.0 / self.slab_penalty) * spike[None, :] * projection
        )

    def sample_slab(self, key: Array, slab_mean: Array) -> Array:
        """Draw each slab variable from a Gaussian with variance 1/slab_penalty."""
        return self.random_source.normal(key, slab_mean, 1.0 / self.slab_penalty)

    def visible_mean(self, params: Array, spike: Array, slab: Array) -> Array:
        """Mean of the visible units given spikes and slabs.

        Args:
            params: Model parameters
            spike: Spike states (shape: n_hidden)
            slab: Slab states (shape: n_pool x n_hidden)

        Returns:
            Visible means (shape: n_visible)
        """
        weights, _, visible_penalty = self.split_params(params)
        total = jnp.einsum("vph,ph->v", weights, slab * spike[None, :])
        return _check_finite("visible mean", (1.0 / visible_penalty) * total)

    # Sampling

    @override
    def sample_hidden(self, key: Array, params: Array, visible: Array) -> Array:
        """Ancestral draw of spikes, then slabs given the sampled spikes.

        Returns:
            Flat hidden state (shape: n_hidden + n_pool * n_hidden)
        """
        spike_key, slab_key = jax.random.split(key)
        spike = self.sample_spike(spike_key, self.spike_mean(params, visible))
        slab = self.sample_slab(slab_key, self.slab_mean(params, visible, spike))
        return self.join_hidden(spike, slab)

    def hidden_mean(self, key: Array, params: Array, visible: Array) -> Array:
        """Spike probabilities joined with the slab mean given a sampled spike.

        The slab part is conditioned on spikes drawn from the spike probabilities, not on the probabilities themselves, so the result is stochastic and only approximates $E[\\mathbf{s}, \\mathbf{z} | \\mathbf{v}]$.

        Returns:
            Flat hidden state (shape: n_hidden + n_pool * n_hidden)
        """
        spike_mean = self.spike_mean(params, visible)
        spike = self.sample_spike(key, spike_mean)
        return self.join_hidden(spike_mean, self.slab_mean(params, visible, spike))

    def sample_visible_trials(
        self, key: Array, params: Array, hidden: Array
    ) -> VisibleSample:
        """Rejection-sample a visible vector inside the radius.

        The visible mean is computed once. Each trial draws every visible unit from $\\mathcal{N}(\\mu_i, 1/\\alpha)$ and stops at the first draw whose norm is below `radius`. When `n_max_trials` draws all fall outside, a warning is logged and the last draw is kept.

        Runs as a Python loop, so it must not be called under `jax.jit` or `jax.vmap`.

        Args:
            key: JAX random key
            params: Model parameters
            hidden: Flat hidden state

        Returns:
            The last draw with its trial count and acceptance flag
        """
        _, _, visible_penalty = self.split_params(params)
        if not float(visible_penalty) > 0:
            raise NumericalInstabilityError(
                f"Visible variance undefined for penalty {float(visible_penalty)}"
            )
        spike, slab = self.split_hidden(hidden)
        mean = self.visible_mean(params, spike, slab)
        variance = 1.0 / visible_penalty

        sample = mean
        norm = math.inf
        for trial in range(1, self.n_max_trials + 1):
            key, subkey = jax.random.split(key)
            sample = self.random_source.normal(subkey, mean, variance)
            norm = float(jnp.linalg.norm(sample))
            if norm < self.radius:
                return VisibleSample(sample, trial, True)

        logger.warning(
            "Visible sample norm %.4f still outside radius %.4f after %d trials; keeping last draw",
            norm,
            self.radius,
            self.n_max_trials,
        )
        return VisibleSample(sample, self.n_max_trials, False)

    @override
    def sample_visible(self, key: Array, params: Array, hidden: Array) -> Array:
        """Draw a visible vector given a hidden state; see `sample_visible_trials`."""
        return self.sample_visible_trials(key, params, hidden).sample

    # Free energy and gradients

    @override
    def free_energy(self, params: Array, visible: Array) -> Array:
        """Compute the free energy of a visible vector with spikes and slabs integrated out.

        $$F(\\mathbf{v}) = \\frac{\\alpha}{2}\\|\\mathbf{v}\\|^2 - \\frac{HP}{2}\\log\\frac{2\\pi}{\\lambda} - \\sum_h \\mathrm{softplus}\\left(b_h - \\frac{\\|W_h^T \\mathbf{v}\\|^2}{2\\lambda}\\right)$$

        Args:
            params: Model parameters
            visible: Visible vector

        Returns:
            Free energy (scalar)
        """
        weights, spike_bias, visible_penalty = self.split_params(params)
        _check_finite("free energy input", visible)
        free_energy = 0.5 * visible_penalty * jnp.dot(visible, visible)

        free_energy -= (
            0.5
            * self.n_hidden
            * self.n_pool
            * jnp.log((2.0 * jnp.pi) / self.slab_penalty)
        )

        projection = self._pool_projection(weights, visible)
        quadratic = jnp.sum(jnp.square(projection), axis=0) / (2.0 * self.slab_penalty)
        _check_finite("free energy activation", quadratic)
        return free_energy - jnp.sum(jax.nn.softplus(spike_bias - quadratic))

    @override
    def phase(self, key: Array, params: Array, visible: Array) -> Array:
        """Sufficient statistics of a visible vector, laid out like the parameters.

        Weight slice $h$ is $\\mathbf{v} \\otimes \\boldsymbol{\\mu}_h \\, p_h$, where $p_h$ is the spike probability and $\\boldsymbol{\\mu}_h$ the slab mean given a sampled spike. The spike-bias entry is the spike probability and the visible-penalty entry is $-\\|\\mathbf{v}\\|^2 / 2$.

        Args:
            key: JAX random key for the spike draw
            params: Model parameters
            visible: Visible vector

        Returns:
            Flat statistics array (shape: dim)
        """
        spike_mean = self.spike_mean(params, visible)
        spike = self.sample_spike(key, spike_mean)
        slab_mean = self.slab_mean(params, visible, spike)

        weight_grad = (
            visible[:, None, None] * slab_mean[None, :, :] * spike_mean[None, None, :]
        )
        penalty_grad = -0.5 * jnp.dot(visible, visible)
        return self.join_params(weight_grad, spike_mean, penalty_grad)

    # Monitoring

    def reconstruct(self, key: Array, params: Array, x: Array) -> Array:
        """Visible mean of the hidden mean of `x`."""
        spike, slab = self.split_hidden(self.hidden_mean(key, params, x))
        return self.visible_mean(params, spike, slab)

    def reconstruction_error(self, key: Array, params: Array, xs: Array) -> Array:
        """Compute mean squared reconstruction error over a batch.

        Args:
            key: JAX random key
            params: Model parameters
            xs: Batch of visible vectors (shape: n_samples, n_visible)

        Returns:
            Mean squared error (scalar)
        """
        keys = jax.random.split(key, xs.shape[0])
        recons = jax.vmap(self.reconstruct, in_axes=(0, None, 0))(keys, params, xs)
        return jnp.mean((xs - recons) ** 2)

    def get_filters(self, params: Array) -> Array:
        """Weight tensor rearranged as one (n_pool, n_visible) filter bank per hidden unit."""
        weights, _, _ = self.split_params(params)
        return jnp.transpose(weights, (2, 1, 0))


def spike_slab_rbm(
    n_visible: int,
    n_hidden: int,
    n_pool: int = 2,
    slab_penalty: float = 8.0,
    radius: float = 1.0,
    n_max_trials: int = 10,
    random_source: RandomSource | None = None,
) -> SpikeSlabRBM:
    """Create a spike-and-slab RBM.

    Args:
        n_visible: Number of visible units
        n_hidden: Number of hidden units
        n_pool: Number of slab variables per hidden unit
        slab_penalty: Precision of the slab Gaussian
        radius: Bound on the norm of accepted visible samples
        n_max_trials: Rejection sampling budget for visible samples
        random_source: Source of conditional draws (default: `JaxRandomSource()`)

    Returns:
        SpikeSlabRBM instance
    """
    return SpikeSlabRBM(
        n_visible=n_visible,
        n_hidden=n_hidden,
        n_pool=n_pool,
        slab_penalty=slab_penalty,
        radius=radius,
        n_max_trials=n_max_trials,
        random_source=random_source or JaxRandomSource(),
    )
