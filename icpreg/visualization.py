"""Visualization utilities for ICP results."""

import logging

import matplotlib.pyplot as plt
import numpy as np

logger = logging.getLogger(__name__)


def plot_convergence(results, title=None, save_path=None, show=False):
    """
    Plot the ICP error history.

    Args:
        results: IcpResults of a run
        title: Optional plot title
        save_path: Path to save the plot (not saved when None)
        show: Whether to open a window with the plot

    Returns:
        The matplotlib Figure
    """
    errors = results.registration_error
    fig, ax = plt.subplots(figsize=(12, 7))

    ax.plot(errors, marker='o', linewidth=2, markersize=4,
            color='#2E86AB', label='Registration error')

    ax.set_xlabel('Iteration', fontsize=12)
    ax.set_ylabel('Mean weighted residual', fontsize=12)

    if title is None:
        title = f'ICP Convergence ({results.state.value})'
    if errors:
        title += f"\nInitial: {errors[0]:.4g} → Final: {errors[-1]:.4g}"
    ax.set_title(title, fontsize=14, fontweight='bold')
    if errors and min(errors) > 0:
        ax.set_yscale('log')
    ax.grid(True, alpha=0.3)
    ax.legend(loc='best')

    fig.tight_layout()
    if save_path is not None:
        fig.savefig(save_path, dpi=150)
        logger.info("Convergence plot saved to '%s'", save_path)
    if show:
        plt.show()
    return fig


def plot_comparison(runs, save_path=None, show=False):
    """
    Compare several runs (for instance with different M-estimators) side-by-side.

    Args:
        runs: Mapping of description -> IcpResults
        save_path: Path to save the plot (not saved when None)
        show: Whether to open a window with the plot

    Returns:
        The matplotlib Figure
    """
    fig, (ax1, ax2) = plt.subplots(1, 2, figsize=(15, 6))

    colors = plt.rcParams['axes.prop_cycle'].by_key()['color']
    descriptions = list(runs)
    for i, description in enumerate(descriptions):
        ax1.plot(runs[description].registration_error, label=description,
                 color=colors[i % len(colors)], linewidth=2, marker='o', markersize=3)

    ax1.set_xlabel('Iteration', fontsize=12)
    ax1.set_ylabel('Mean weighted residual', fontsize=12)
    ax1.set_title('Convergence Comparison', fontsize=14, fontweight='bold')
    ax1.legend(loc='best')
    ax1.grid(True, alpha=0.3)

    # Bar chart of final errors
    final_errors = [runs[d].final_error or 0.0 for d in descriptions]
    iterations = [runs[d].iterations for d in descriptions]

    x_pos = np.arange(len(descriptions))
    ax2.bar(x_pos, final_errors, color=[colors[i % len(colors)] for i in range(len(descriptions))],
            alpha=0.7)
    ax2.set_xlabel('Run', fontsize=12)
    ax2.set_ylabel('Final error', fontsize=12)
    ax2.set_title('Final Error Comparison', fontsize=14, fontweight='bold')
    ax2.set_xticks(x_pos)
    ax2.set_xticklabels(descriptions, rotation=15, ha='right')
    ax2.grid(True, alpha=0.3, axis='y')

    # Add value labels on bars
    for i, (err, iters) in enumerate(zip(final_errors, iterations)):
        ax2.text(i, err, f'{err:.3g}\n({iters} iter)',
                 ha='center', va='bottom', fontsize=9)

    fig.tight_layout()
    if save_path is not None:
        fig.savefig(save_path, dpi=150)
        logger.info("Comparison plot saved to '%s'", save_path)
    if show:
        plt.show()
    return fig
