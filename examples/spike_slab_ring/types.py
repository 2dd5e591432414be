"""Type definitions for the spike-slab ring example."""

from typing import TypedDict


class SpikeSlabRingResults(TypedDict):
    """Results from training a spike-slab RBM on a noisy ring."""

    # Training metrics
    free_energies: list[float]
    reconstruction_errors: list[float]

    # Data and model samples (n_samples x 2)
    data: list[list[float]]
    generated_samples: list[list[float]]

    # Unnormalized model density exp(-F) on a grid
    plot_xs: list[list[float]]
    plot_ys: list[list[float]]
    model_density: list[list[float]]

    # Fraction of visible draws rejected by the radius bound
    rejection_rate: float
