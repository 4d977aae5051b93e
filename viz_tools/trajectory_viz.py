"""
Plots for recorded trajectories and IK solves.

  - Joint values over time for a trajectory
  - End-effector path in 3D
  - Solver convergence (distance to target per CCD iteration)

Each function returns the figure; pass out_path to also save it.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

import matplotlib.pyplot as plt
import numpy as np

from ik_tools.schemas import IKResult
from ik_tools.trajectory_models import Trajectory

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TrajectoryVizStyle:
    path_color: str = '#3498DB'       # Blue
    start_color: str = '#27AE60'      # Green
    end_color: str = '#E74C3C'        # Red
    tolerance_color: str = '#95A5A6'  # Muted gray
    joint_colors: tuple = (
        '#3498DB',  # Blue
        '#E67E22',  # Orange
        '#1ABC9C',  # Teal
        '#9B59B6',  # Purple
        '#F1C40F',  # Yellow
        '#E91E63',  # Pink
        '#607D8B',  # Blue gray
    )
    linewidth: float = 2.0
    marker_size: float = 60
    figsize: tuple = (10, 6)
    dpi: int = 150


STYLE = TrajectoryVizStyle()


def _save(fig: plt.Figure, out_path: Path | str | None, dpi: int = STYLE.dpi) -> None:
    if out_path is None:
        return
    out_path = Path(out_path)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(out_path, dpi=dpi, bbox_inches='tight', facecolor='white')
    logger.info(f'Saved plot: {out_path}')


def plot_joint_trajectories(
    trajectory: Trajectory,
    joint_names: Sequence[str] | None = None,
    out_path: Path | str | None = None,
) -> plt.Figure:
    """Joint value vs. time, one line per joint (keyframes marked)."""
    names = list(joint_names) if joint_names is not None else trajectory.joint_names
    times = np.array([kf.timestamp for kf in trajectory.keyframes], dtype=float)

    fig, ax = plt.subplots(figsize=STYLE.figsize)
    for i, name in enumerate(names):
        values = np.array([kf.joint_values.get(name, np.nan) for kf in trajectory.keyframes], dtype=float)
        ax.plot(
            times, values,
            marker='o', markersize=4,
            linewidth=STYLE.linewidth,
            color=STYLE.joint_colors[i % len(STYLE.joint_colors)],
            label=name,
        )

    ax.set_xlabel('Time (ms)')
    ax.set_ylabel('Joint value')
    ax.set_title(f"Trajectory '{trajectory.name}' ({trajectory.duration} ms)")
    if names:
        ax.legend(loc='best')

    _save(fig, out_path)
    return fig


def plot_end_effector_path(
    trajectory: Trajectory,
    out_path: Path | str | None = None,
) -> plt.Figure:
    """3D end-effector path with start (green) and end (red) markers."""
    fig = plt.figure(figsize=STYLE.figsize)
    ax = fig.add_subplot(projection='3d')

    points = np.array([p.position.to_array() for p in trajectory.end_effector_path]).reshape(-1, 3)
    if len(points):
        ax.plot(points[:, 0], points[:, 1], points[:, 2], color=STYLE.path_color, linewidth=STYLE.linewidth)
        ax.scatter(*points[0], color=STYLE.start_color, s=STYLE.marker_size, label='start')
        ax.scatter(*points[-1], color=STYLE.end_color, s=STYLE.marker_size, label='end')
        ax.legend(loc='best')
    else:
        logger.warning(f"Trajectory '{trajectory.name}' has no end-effector path to plot")

    ax.set_xlabel('X')
    ax.set_ylabel('Y')
    ax.set_zlabel('Z')
    ax.set_title(f"End-effector path: '{trajectory.name}'")

    _save(fig, out_path)
    return fig


def plot_convergence_history(
    result: IKResult,
    out_path: Path | str | None = None,
) -> plt.Figure:
    """Distance to target per CCD iteration, with the tolerance line."""
    fig, ax = plt.subplots(figsize=STYLE.figsize)
    history = np.asarray(result.distance_history + [result.final_distance], dtype=float)

    ax.plot(np.arange(len(history)), history, marker='o', color=STYLE.path_color, linewidth=STYLE.linewidth)
    ax.axhline(
        result.settings.tolerance,
        color=STYLE.tolerance_color, linestyle='--',
        label=f'tolerance = {result.settings.tolerance:g}',
    )
    if np.all(history > 0):
        ax.set_yscale('log')

    status = 'converged' if result.converged else 'iteration limit'
    ax.set_xlabel('Iteration')
    ax.set_ylabel('Distance to target')
    ax.set_title(f'CCD convergence ({status}, {result.iterations} iterations)')
    ax.legend(loc='best')

    _save(fig, out_path)
    return fig
