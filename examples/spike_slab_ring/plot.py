"""Visualization for the spike-slab ring example."""

import matplotlib.pyplot as plt
import numpy as np

from ..shared import (
    colors,
    example_paths,
    plot_density_contours,
    plot_training_history,
)


def main():
    paths = example_paths(__file__)
    results = paths.load_analysis()

    fig, axes = plt.subplots(1, 3, figsize=(15, 5))

    # Density
    ax = axes[0]
    plot_density_contours(
        ax,
        np.array(results["plot_xs"]),
        np.array(results["plot_ys"]),
        np.array(results["model_density"]),
        sample=np.array(results["data"]),
    )
    ax.set_title("Model density exp(-F)")

    # Generated samples
    ax = axes[1]
    data = np.array(results["data"])
    generated = np.array(results["generated_samples"])
    ax.scatter(data[:, 0], data[:, 1], s=8, alpha=0.3, color=colors["ground_truth"])
    ax.scatter(generated[:, 0], generated[:, 1], s=8, color=colors["fitted"])
    ax.set_aspect("equal")
    ax.set_title(f"Gibbs samples (rejected {100 * results['rejection_rate']:.1f}%)")

    # Training curves
    ax = axes[2]
    plot_training_history(
        ax,
        {
            "Free energy": results["free_energies"],
            "Reconstruction MSE": results["reconstruction_errors"],
        },
        ylabel="Value",
    )
    ax.set_title("Training")

    plt.tight_layout()
    paths.save_plot(fig)


if __name__ == "__main__":
    main()
