"""Tests for the spike-and-slab conditionals, free energy, and phase statistics."""

import math
from dataclasses import dataclass
from typing import override

import jax
import jax.numpy as jnp
import pytest
from jax import Array

from ssrbm import (
    NumericalInstabilityError,
    RandomSource,
    SpikeSlabInitialization,
    SpikeSlabRBM,
    spike_slab_rbm,
)

jax.config.update("jax_platform_name", "cpu")
jax.config.update("jax_enable_x64", True)

# Tolerances
RTOL = 1e-9
ATOL = 1e-12


@dataclass(frozen=True)
class ThresholdRandomSource(RandomSource):
    """Deterministic draws: spikes fire above one half, Gaussians return their mean."""

    @override
    def bernoulli(self, key: Array, p: Array) -> Array:
        return (p > 0.5).astype(p.dtype)

    @override
    def normal(self, key: Array, mean: Array, variance: Array | float) -> Array:
        return jnp.asarray(mean)


@pytest.fixture
def key() -> Array:
    """Random key for tests."""
    return jax.random.PRNGKey(0)


@pytest.fixture(params=[(6, 3, 2), (4, 5, 1), (10, 4, 3)])
def model(request: pytest.FixtureRequest) -> SpikeSlabRBM:
    """Create spike-slab RBMs with various (visible, hidden, pool) sizes."""
    n_vis, n_hid, n_pool = request.param
    return spike_slab_rbm(n_vis, n_hid, n_pool=n_pool, slab_penalty=2.0)


@pytest.fixture
def params(model: SpikeSlabRBM, key: Array) -> Array:
    """Random parameters with a positive visible penalty."""
    rule = SpikeSlabInitialization(
        model.n_hidden, weight_std=0.3, spike_bias=-0.5, visible_penalty=2.0
    )
    return model.initialize(key, rule)


@pytest.fixture
def visible(model: SpikeSlabRBM) -> Array:
    """A random visible vector."""
    return jax.random.normal(jax.random.PRNGKey(7), (model.n_visible,))


class TestSpikeMean:
    """Test spike probabilities."""

    def test_open_unit_interval(
        self, model: SpikeSlabRBM, params: Array, visible: Array
    ) -> None:
        """Test probabilities lie strictly inside (0, 1)."""
        spike_mean = model.spike_mean(params, visible)
        assert spike_mean.shape == (model.n_hidden,)
        assert jnp.all((spike_mean > 0) & (spike_mean < 1))

    def test_matches_quadratic_form(
        self, model: SpikeSlabRBM, params: Array, visible: Array
    ) -> None:
        """Test each unit is the logistic of v^T W_h W_h^T v / 2λ + b_h."""
        weights, spike_bias, _ = model.split_params(params)
        spike_mean = model.spike_mean(params, visible)

        for h in range(model.n_hidden):
            w_h = weights[:, :, h]
            quadratic = visible @ w_h @ w_h.T @ visible
            expected = jax.nn.sigmoid(quadratic / (2 * model.slab_penalty) + spike_bias[h])
            assert jnp.allclose(spike_mean[h], expected, rtol=RTOL, atol=ATOL)

    def test_sample_spike_binary(
        self, model: SpikeSlabRBM, params: Array, visible: Array, key: Array
    ) -> None:
        """Test spike samples are 0 or 1."""
        spike = model.sample_spike(key, model.spike_mean(params, visible))
        assert jnp.all((spike == 0) | (spike == 1))


class TestSlabMean:
    """Test slab means and samples."""

    def test_zero_spike_gives_zero_column(
        self, model: SpikeSlabRBM, params: Array, visible: Array
    ) -> None:
        """Test a unit whose spike is off has an exactly zero slab mean."""
        spike = jnp.ones(model.n_hidden).at[0].set(0.0)
        slab_mean = model.slab_mean(params, visible, spike)

        assert slab_mean.shape == (model.n_pool, model.n_hidden)
        assert jnp.all(slab_mean[:, 0] == 0)

    def test_active_column(
        self, model: SpikeSlabRBM, params: Array, visible: Array
    ) -> None:
        """Test an active unit has slab mean W_h^T v / λ."""
        weights, _, _ = model.split_params(params)
        slab_mean = model.slab_mean(params, visible, jnp.ones(model.n_hidden))

        for h in range(model.n_hidden):
            expected = weights[:, :, h].T @ visible / model.slab_penalty
            assert jnp.allclose(slab_mean[:, h], expected, rtol=RTOL, atol=ATOL)

    def test_sample_slab_variance(self, model: SpikeSlabRBM, key: Array) -> None:
        """Test slab samples scatter with variance 1/λ around their mean."""
        slab_mean = jnp.full((model.n_pool, model.n_hidden), 0.5)
        keys = jax.random.split(key, 4000)
        samples = jax.vmap(model.sample_slab, in_axes=(0, None))(keys, slab_mean)

        assert samples.shape == (4000, model.n_pool, model.n_hidden)
        assert jnp.allclose(jnp.mean(samples), 0.5, atol=0.02)
        assert jnp.allclose(jnp.var(samples), 1 / model.slab_penalty, rtol=0.05)


class TestVisibleMean:
    """Test visible means."""

    def test_matches_sum(self, model: SpikeSlabRBM, params: Array, key: Array) -> None:
        """Test the mean is (1/α) Σ_h W_h z_h s_h."""
        weights, _, visible_penalty = model.split_params(params)
        hidden = model.sample_hidden(key, params, jnp.ones(model.n_visible))
        spike, slab = model.split_hidden(hidden)

        expected = sum(
            weights[:, :, h] @ slab[:, h] * spike[h] for h in range(model.n_hidden)
        ) / visible_penalty
        result = model.visible_mean(params, spike, slab)
        assert jnp.allclose(result, expected, rtol=RTOL, atol=ATOL)

    def test_linear_in_slab(self, model: SpikeSlabRBM, params: Array, key: Array) -> None:
        """Test scaling the slabs scales the visible mean."""
        spike = jnp.ones(model.n_hidden).at[-1].set(0.0)
        slab = jax.random.normal(key, (model.n_pool, model.n_hidden))

        base = model.visible_mean(params, spike, slab)
        scaled = model.visible_mean(params, spike, 3.0 * slab)
        assert jnp.allclose(scaled, 3.0 * base, rtol=RTOL, atol=ATOL)

    def test_non_finite_raises(self, model: SpikeSlabRBM, params: Array) -> None:
        """Test a non-finite visible mean raises instead of propagating NaN."""
        slab = jnp.full((model.n_pool, model.n_hidden), jnp.nan)
        with pytest.raises(NumericalInstabilityError):
            model.visible_mean(params, jnp.ones(model.n_hidden), slab)


class TestHiddenStates:
    """Test hidden samples and hidden means."""

    def test_sample_hidden_shape(
        self, model: SpikeSlabRBM, params: Array, visible: Array, key: Array
    ) -> None:
        """Test hidden samples concatenate binary spikes and slabs."""
        hidden = model.sample_hidden(key, params, visible)
        spike, slab = model.split_hidden(hidden)

        assert hidden.shape == (model.hidden_dim,)
        assert jnp.all((spike == 0) | (spike == 1))
        assert jnp.all(jnp.isfinite(slab))

    def test_hidden_mean_uses_sampled_spike(
        self, model: SpikeSlabRBM, params: Array, visible: Array, key: Array
    ) -> None:
        """Test the slab part of the hidden mean is conditioned on a sampled spike."""
        stub = spike_slab_rbm(
            model.n_visible,
            model.n_hidden,
            n_pool=model.n_pool,
            slab_penalty=model.slab_penalty,
            random_source=ThresholdRandomSource(),
        )
        spike_mean, slab = stub.split_hidden(stub.hidden_mean(key, params, visible))
        sampled = (spike_mean > 0.5).astype(spike_mean.dtype)

        assert jnp.array_equal(spike_mean, stub.spike_mean(params, visible))
        assert jnp.array_equal(slab, stub.slab_mean(params, visible, sampled))

    def test_batched_under_vmap(
        self, model: SpikeSlabRBM, params: Array, key: Array
    ) -> None:
        """Test hidden sampling composes with vmap."""
        xs = jax.random.normal(key, (5, model.n_visible))
        keys = jax.random.split(key, 5)
        hiddens = jax.vmap(model.sample_hidden, in_axes=(0, None, 0))(keys, params, xs)
        assert hiddens.shape == (5, model.hidden_dim)


class TestFreeEnergy:
    """Test the free energy."""

    def test_reference_value(self) -> None:
        """Test a two-unit configuration against direct substitution into the formula."""
        model = spike_slab_rbm(2, 2, n_pool=1, slab_penalty=1.0)
        weights = jnp.array([[[1.0, 0.0]], [[0.0, 1.0]]])
        params = model.join_params(weights, jnp.zeros(2), 1.0)
        visible = jnp.array([1.0, 1.0])

        expected = 1.0 - math.log(2 * math.pi) - 2 * math.log1p(math.exp(-0.5))
        free_energy = model.free_energy(params, visible)

        assert free_energy.shape == ()
        assert jnp.allclose(free_energy, expected, rtol=RTOL, atol=ATOL)
        assert jnp.allclose(free_energy, -1.7860310347695, rtol=1e-9)

    def test_finite(self, model: SpikeSlabRBM, params: Array, visible: Array) -> None:
        """Test free energy is a finite scalar."""
        free_energy = model.free_energy(params, visible)
        assert free_energy.shape == ()
        assert jnp.isfinite(free_energy)

    def test_non_finite_raises(self, model: SpikeSlabRBM, params: Array) -> None:
        """Test a non-finite visible vector raises instead of returning NaN."""
        visible = jnp.full(model.n_visible, jnp.inf)
        with pytest.raises(NumericalInstabilityError):
            model.free_energy(params, visible)

    def test_mean_free_energy(
        self, model: SpikeSlabRBM, params: Array, key: Array
    ) -> None:
        """Test the batch mean agrees with per-vector free energies."""
        xs = jax.random.normal(key, (6, model.n_visible))
        expected = jnp.mean(jnp.array([model.free_energy(params, x) for x in xs]))
        assert jnp.allclose(model.mean_free_energy(params, xs), expected, rtol=RTOL)


class TestPhase:
    """Test the phase statistics."""

    def test_layout(
        self, model: SpikeSlabRBM, params: Array, visible: Array, key: Array
    ) -> None:
        """Test statistics share the parameter layout and have the documented entries."""
        grad = model.phase(key, params, visible)
        _, spike_bias_grad, penalty_grad = model.split_params(grad)

        assert grad.shape == params.shape
        assert jnp.array_equal(spike_bias_grad, model.spike_mean(params, visible))
        assert jnp.allclose(penalty_grad, -0.5 * jnp.dot(visible, visible))

    def test_penalty_matches_free_energy(
        self, model: SpikeSlabRBM, params: Array, visible: Array, key: Array
    ) -> None:
        """Test the penalty statistic is minus the free energy derivative in α."""
        fe_grad = model.grad(lambda p: model.free_energy(p, visible), params)
        grad = model.phase(key, params, visible)
        assert jnp.allclose(grad[-1], -fe_grad[-1], rtol=RTOL, atol=ATOL)

    def test_weight_slices_after_sample_hidden(
        self, model: SpikeSlabRBM, params: Array, visible: Array, key: Array
    ) -> None:
        """Test weight slice h equals v ⊗ slab_mean_h · spike_mean_h with deterministic draws."""
        stub = spike_slab_rbm(
            model.n_visible,
            model.n_hidden,
            n_pool=model.n_pool,
            slab_penalty=model.slab_penalty,
            random_source=ThresholdRandomSource(),
        )
        hidden = stub.sample_hidden(key, params, visible)
        grad = stub.phase(key, params, visible)

        spike, _ = stub.split_hidden(hidden)
        spike_mean = stub.spike_mean(params, visible)
        slab_mean = stub.slab_mean(params, visible, spike)
        weight_grad, _, _ = stub.split_params(grad)

        for h in range(stub.n_hidden):
            expected = jnp.outer(visible, slab_mean[:, h]) * spike_mean[h]
            assert jnp.array_equal(weight_grad[:, :, h], expected)

    def test_mean_phase(self, model: SpikeSlabRBM, params: Array, key: Array) -> None:
        """Test averaged statistics over a batch are finite and laid out like the parameters."""
        xs = jax.random.normal(key, (8, model.n_visible))
        grad = model.mean_phase(key, params, xs)
        assert grad.shape == params.shape
        assert jnp.all(jnp.isfinite(grad))


class TestMonitoring:
    """Test reconstruction helpers."""

    def test_reconstruction_error(
        self, model: SpikeSlabRBM, params: Array, key: Array
    ) -> None:
        xs = jax.random.normal(key, (4, model.n_visible))
        error = model.reconstruction_error(key, params, xs)
        assert error.shape == ()
        assert jnp.isfinite(error)

    def test_filters(self, model: SpikeSlabRBM, params: Array) -> None:
        filters = model.get_filters(params)
        weights, _, _ = model.split_params(params)
        assert filters.shape == (model.n_hidden, model.n_pool, model.n_visible)
        assert jnp.array_equal(filters[0], weights[:, :, 0].T)
