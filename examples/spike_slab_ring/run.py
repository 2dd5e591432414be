"""Train a spike-and-slab RBM on points scattered around a ring.

This example demonstrates:
1. Building a spike-slab RBM and a parameter store
2. Training with persistent contrastive divergence
3. Generating samples by block-Gibbs sampling inside the visible radius
4. Evaluating the unnormalized model density exp(-F) on a grid
"""

import logging

import jax
import jax.numpy as jnp
from jax import Array

from ssrbm import (
    ContrastiveDivergence,
    Optimizer,
    ParameterStore,
    SpikeSlabInitialization,
    spike_slab_rbm,
)

from ..shared import create_grid, example_paths, get_plot_bounds, initialize_jax
from .types import SpikeSlabRingResults

logger = logging.getLogger(__name__)

# Configuration
N_HIDDEN = 16
N_POOL = 2
SLAB_PENALTY = 2.0
RADIUS = 3.0
N_MAX_TRIALS = 10

N_DATA = 512
RING_RADIUS = 1.5
RING_NOISE = 0.15

BATCH_SIZE = 32
CD_STEPS = 1
LEARNING_RATE = 0.005
N_EPOCHS = 30

N_GENERATED = 200
N_GIBBS = 20


def ring_data(key: Array) -> Array:
    """Sample noisy points around a circle."""
    angle_key, noise_key = jax.random.split(key)
    angles = jax.random.uniform(angle_key, (N_DATA,), maxval=2 * jnp.pi)
    points = RING_RADIUS * jnp.stack([jnp.cos(angles), jnp.sin(angles)], axis=1)
    return points + RING_NOISE * jax.random.normal(noise_key, points.shape)


def generate(
    key: Array, store: ParameterStore, starts: Array
) -> tuple[Array, float]:
    """Run Gibbs chains and report the fraction of rejected visible draws."""
    model = store.model
    samples = []
    n_rejected = 0
    for chain_key, visible in zip(jax.random.split(key, starts.shape[0]), starts):
        for step_key in jax.random.split(chain_key, N_GIBBS):
            hidden_key, visible_key = jax.random.split(step_key)
            hidden = model.sample_hidden(hidden_key, store.params, visible)
            result = model.sample_visible_trials(visible_key, store.params, hidden)
            n_rejected += not result.accepted
            visible = result.sample
        samples.append(visible)
    return jnp.stack(samples), n_rejected / (starts.shape[0] * N_GIBBS)


def main():
    initialize_jax()
    paths = example_paths(__file__)
    key = jax.random.PRNGKey(0)

    key, data_key = jax.random.split(key)
    data = ring_data(data_key)

    model = spike_slab_rbm(
        2,
        N_HIDDEN,
        n_pool=N_POOL,
        slab_penalty=SLAB_PENALTY,
        radius=RADIUS,
        n_max_trials=N_MAX_TRIALS,
    )
    store = ParameterStore(
        model,
        SpikeSlabInitialization(N_HIDDEN, weight_std=0.5, spike_bias=-1.0),
    )
    key, init_key = jax.random.split(key)
    store.reset(init_key)
    logger.info("Created spike-slab RBM with %d parameters", model.dim)

    optimizer = Optimizer.adamw(man=model, learning_rate=LEARNING_RATE)
    trainer = ContrastiveDivergence(
        store, optimizer, n_steps=CD_STEPS, batch_size=BATCH_SIZE, persistent=True
    )

    free_energies: list[float] = []
    recon_errors: list[float] = []
    for _ in range(N_EPOCHS):
        key, epoch_key, recon_key = jax.random.split(key, 3)
        free_energies.extend(trainer.train(epoch_key, data, n_epochs=1))
        recon = model.reconstruction_error(recon_key, store.params, data)
        recon_errors.append(float(recon))

    key, start_key, gen_key = jax.random.split(key, 3)
    starts = jax.random.normal(start_key, (N_GENERATED, 2))
    generated, rejection_rate = generate(gen_key, store, starts)
    logger.info("Rejected %.1f%% of visible draws", 100 * rejection_rate)

    xs, ys = create_grid(get_plot_bounds(data), n_points=60)
    grid = jnp.stack([xs.ravel(), ys.ravel()], axis=1)
    energies = jax.vmap(model.free_energy, in_axes=(None, 0))(store.params, grid)
    density = jnp.exp(-(energies - jnp.min(energies))).reshape(xs.shape)

    results: SpikeSlabRingResults = {
        "free_energies": free_energies,
        "reconstruction_errors": recon_errors,
        "data": data.tolist(),
        "generated_samples": generated.tolist(),
        "plot_xs": xs.tolist(),
        "plot_ys": ys.tolist(),
        "model_density": density.tolist(),
        "rejection_rate": rejection_rate,
    }
    paths.save_analysis(results)
    logger.info("Results saved to %s", paths.analysis_path)


if __name__ == "__main__":
    main()
