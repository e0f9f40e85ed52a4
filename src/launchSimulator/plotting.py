# Licensed under the PolyForm Noncommercial License 1.0.0
"""Plotting functions for recorded flights."""

from typing import Dict, Optional
import numpy as np
import matplotlib.pyplot as plt


def plot_results(results: Dict, show: bool = True, save_path: Optional[str] = None) -> None:
    """
    Plot a flight recorded by `fly`.

    Args:
        results: Dictionary returned by `fly`
        show: Whether to display the plot
        save_path: If provided, save the plot to this path
    """
    stages = results['stage']
    planet_radius = results['rocket'].world.planet_radius

    fig, axes = plt.subplots(2, 3, figsize=(18, 10))

    # Define colours for stages
    unique_stages = np.unique(stages)
    colors = plt.cm.viridis(np.linspace(0, 1, len(unique_stages)))

    # 1. Trajectory around the planet, coloured by stage
    for stage_num, color in zip(unique_stages, colors):
        mask = stages == stage_num
        axes[0, 0].plot(results['x'][mask], results['y'][mask], color=color, label=f"Stage {int(stage_num) + 1}")

    circle = plt.Circle((0, 0), planet_radius, color='blue', alpha=0.3)
    axes[0, 0].add_artist(circle)
    axes[0, 0].set_aspect('equal')
    axes[0, 0].set_title("Trajectory Around Planet")
    axes[0, 0].set_xlabel("x [m]")
    axes[0, 0].set_ylabel("y [m]")
    axes[0, 0].legend()

    # 2. Altitude vs Time
    for stage_num, color in zip(unique_stages, colors):
        mask = stages == stage_num
        axes[0, 1].plot(results['t'][mask], results['altitude'][mask] / 1000, color=color,
                        label=f"Stage {int(stage_num) + 1}")
    axes[0, 1].set_title("Altitude vs Time")
    axes[0, 1].set_xlabel("Time [s]")
    axes[0, 1].set_ylabel("Altitude [km]")
    axes[0, 1].legend()

    # 3. Speed vs Time
    for stage_num, color in zip(unique_stages, colors):
        mask = stages == stage_num
        axes[0, 2].plot(results['t'][mask], results['velocity'][mask], color=color,
                        label=f"Stage {int(stage_num) + 1}")
    axes[0, 2].set_title("Speed vs Time")
    axes[0, 2].set_xlabel("Time [s]")
    axes[0, 2].set_ylabel("Speed [m/s]")
    axes[0, 2].legend()

    # 4. Apoapsis and periapsis vs Time; escape and sub-surface values are masked
    for stage_num, color in zip(unique_stages, colors):
        mask = stages == stage_num
        apo = np.where(np.isfinite(results['apoapsis'][mask]), results['apoapsis'][mask], np.nan)
        peri = np.where(np.isfinite(results['periapsis'][mask]), results['periapsis'][mask], np.nan)
        axes[1, 0].plot(results['t'][mask], apo / 1000, color=color,
                        label=f"Stage {int(stage_num) + 1} apoapsis", ls='-')
        axes[1, 0].plot(results['t'][mask], peri / 1000, color=color,
                        label=f"Stage {int(stage_num) + 1} periapsis", ls='--')
    axes[1, 0].axhline(0, color='grey', lw=0.8)
    axes[1, 0].set_title("Apoapsis and Periapsis vs Time")
    axes[1, 0].set_xlabel("Time [s]")
    axes[1, 0].set_ylabel("Altitude [km]")
    axes[1, 0].legend()

    # 5. Throttle and heat vs Time
    heat_axis = axes[1, 1].twinx()
    for stage_num, color in zip(unique_stages, colors):
        mask = stages == stage_num
        axes[1, 1].plot(results['t'][mask], results['throttle'][mask], color=color,
                        label=f"Stage {int(stage_num) + 1} throttle", ls='-')
        heat_axis.plot(results['t'][mask], results['heat'][mask], color=color, ls=':')
    axes[1, 1].set_title("Throttle and Heat vs Time")
    axes[1, 1].set_xlabel("Time [s]")
    axes[1, 1].set_ylabel("Throttle [-]")
    heat_axis.set_ylabel("Heat [-]")
    axes[1, 1].legend()

    # 6. Speed vs Altitude
    for stage_num, color in zip(unique_stages, colors):
        mask = stages == stage_num
        axes[1, 2].plot(results['velocity'][mask],
                        results['altitude'][mask] / 1000,
                        color=color,
                        label=f"Stage {int(stage_num) + 1}")

    axes[1, 2].set_title("Speed vs Altitude")
    axes[1, 2].set_xlabel("Speed [m/s]")
    axes[1, 2].set_ylabel("Altitude [km]")
    axes[1, 2].legend()

    plt.tight_layout()

    if save_path:
        plt.savefig(save_path, dpi=300, bbox_inches='tight')
    if show:
        plt.show()

    plt.close(fig)
