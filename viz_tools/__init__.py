"""
Visualization tools for IK solves and recorded trajectories.

Modules:
- trajectory_viz: Joint curves, end-effector path, solver convergence
"""
from __future__ import annotations

from viz_tools.trajectory_viz import plot_convergence_history
from viz_tools.trajectory_viz import plot_end_effector_path
from viz_tools.trajectory_viz import plot_joint_trajectories
from viz_tools.trajectory_viz import STYLE
from viz_tools.trajectory_viz import TrajectoryVizStyle

__all__ = [
    'plot_joint_trajectories',
    'plot_end_effector_path',
    'plot_convergence_history',
    'TrajectoryVizStyle',
    'STYLE',
]
