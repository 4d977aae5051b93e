"""
test_trajectory_viz.py - Plot functions return figures and save images headlessly.
"""
from __future__ import annotations

from configs.matplotlib_config import configure_matplotlib_for_backend

BACKEND = configure_matplotlib_for_backend(force_headless=True)

import matplotlib.pyplot as plt  # noqa: E402
import pytest  # noqa: E402

from ik_tools.ik_solver import CCDSolver  # noqa: E402
from ik_tools.trajectory_models import Keyframe  # noqa: E402
from ik_tools.trajectory_models import Trajectory  # noqa: E402
from ik_tools.trajectory_utils import build_end_effector_path  # noqa: E402
from viz_tools import plot_convergence_history  # noqa: E402
from viz_tools import plot_end_effector_path  # noqa: E402
from viz_tools import plot_joint_trajectories  # noqa: E402


@pytest.fixture
def trajectory() -> Trajectory:
    keyframes = [
        Keyframe(timestamp=0, joint_values={'j1': 0.0, 'j2': 0.0}, end_effector_position={'x': 1.5, 'y': 0.0}),
        Keyframe(timestamp=100, joint_values={'j1': 0.5, 'j2': -0.2}, end_effector_position={'x': 1.3, 'y': 0.6}),
        Keyframe(timestamp=200, joint_values={'j1': 1.0, 'j2': -0.4}, end_effector_position={'x': 0.9, 'y': 1.1}),
    ]
    return Trajectory(name='wave', keyframes=keyframes, duration=200,
                      end_effector_path=build_end_effector_path(keyframes))


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close('all')


def test_headless_backend():
    assert BACKEND.lower() == 'agg', f'Expected Agg backend, got {BACKEND}'


def test_plot_joint_trajectories(trajectory, tmp_path):
    out = tmp_path / 'joints.png'
    fig = plot_joint_trajectories(trajectory, out_path=out)
    ax = fig.axes[0]
    assert [line.get_label() for line in ax.get_lines()] == ['j1', 'j2']
    assert out.exists(), 'Plot should be saved when out_path is given'


def test_plot_joint_subset(trajectory):
    fig = plot_joint_trajectories(trajectory, joint_names=['j2'])
    assert len(fig.axes[0].get_lines()) == 1


def test_plot_end_effector_path(trajectory, tmp_path):
    out = tmp_path / 'nested' / 'path.png'
    fig = plot_end_effector_path(trajectory, out_path=out)
    assert fig.axes[0].name == '3d'
    assert out.exists()


def test_plot_end_effector_path_empty():
    fig = plot_end_effector_path(Trajectory(name='empty'))
    assert fig is not None


def test_plot_convergence_history(planar_tree, tmp_path):
    result = CCDSolver().solve_detailed(planar_tree, (1.2, 0.3, 0.0), max_iterations=30, tolerance=0.01)
    out = tmp_path / 'convergence.png'
    fig = plot_convergence_history(result, out_path=out)
    line = fig.axes[0].get_lines()[0]
    assert len(line.get_ydata()) == len(result.distance_history) + 1
    assert out.exists()
