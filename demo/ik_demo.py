#!/usr/bin/env python3
"""
IK Demo - Solve, animate, record and replay a robot arm.

WHAT THIS DEMO DOES:
====================
1. Loads a bundled robot and inspects its structure (DOF, reach, tuned settings)
2. Solves CCD IK for a target and animates the arm there
3. Records the animated motion as a trajectory (sampled every frame interval)
4. Replays the trajectory at double speed and exports it to JSON
5. Saves joint, end-effector path and convergence plots

Frames run on a virtual clock, so the demo finishes instantly.

RUN THIS DEMO:
==============
    python demo/ik_demo.py

Output saved to: user/demo/
"""
from __future__ import annotations

from datetime import datetime

import numpy as np

from configs.appconfig import USER_DIR
from configs.logging_config import setup_logging
from configs.matplotlib_config import configure_matplotlib_for_backend
from demo.helpers import format_angles
from demo.helpers import load_robot
from demo.helpers import print_section
from ik_tools.activity import ActivityGuard
from ik_tools.chain import estimate_max_reach
from ik_tools.ik_api import IKController
from ik_tools.ik_solver import analyze_robot_structure
from ik_tools.scheduler import FrameScheduler
from ik_tools.trajectory_api import TrajectoryManager


# =============================================================================
# CONFIGURATION - Edit these to change demo behavior
# =============================================================================

ROBOT = 'planar'              # Options: 'planar', 'arm6'
ANIMATION_MS = 600            # IK animation length
SAMPLING_INTERVAL_MS = 50     # Recorder sampling interval
PLAYBACK_SPEED = 2.0
FRAME_INTERVAL_MS = 1000 / 60


class VirtualClock:
    """Millisecond clock advanced by the demo's frame loop."""

    def __init__(self):
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def run_frames(scheduler: FrameScheduler, clock: VirtualClock, max_frames: int = 10_000) -> int:
    frames = 0
    while not scheduler.idle and frames < max_frames:
        clock.now += FRAME_INTERVAL_MS
        scheduler.step()
        frames += 1
    return frames


def main():
    setup_logging('WARNING')
    configure_matplotlib_for_backend(force_headless=True)
    from viz_tools.trajectory_viz import plot_convergence_history
    from viz_tools.trajectory_viz import plot_end_effector_path
    from viz_tools.trajectory_viz import plot_joint_trajectories

    print_section('IK DEMO')

    print_section('Step 1: Load Robot')
    tree, target, description = load_robot(ROBOT)
    analysis = analyze_robot_structure(tree)
    print(f'\nRobot: {description}')
    print(f'End effector: {tree.end_effector}')
    print(f'DOF: {analysis.dof}, estimated reach: {estimate_max_reach(tree):.3f}')
    print(f'Tuned solver settings: {analysis.settings.to_dict()}')

    clock = VirtualClock()
    scheduler = FrameScheduler(clock=clock)
    guard = ActivityGuard()
    controller = IKController(guard=guard, scheduler=scheduler, clock=clock)
    manager = TrajectoryManager(guard=guard, scheduler=scheduler, clock=clock)

    print_section('Step 2: Solve IK')
    result = controller.solver.solve_detailed(tree, target)
    print(f'\nTarget: {target}')
    print(f'Start: {format_angles(result.start_angles)}')
    print(f'Goal:  {format_angles(result.goal_angles)}')
    print(f'Converged: {result.converged} after {result.iterations} iterations '
          f'(distance {result.final_distance:.5f})')

    print_section('Step 3: Animate While Recording')
    manager.start_recording('demo_move', chain=tree, sampling_interval_ms=SAMPLING_INTERVAL_MS)
    controller.execute_ik(tree, target, duration=ANIMATION_MS)
    frames = 0
    while controller.is_animating:
        clock.now += FRAME_INTERVAL_MS
        scheduler.step()
        frames += 1
    manager.record_keyframe()
    trajectory = manager.stop_recording()
    scheduler.step()
    reached = tree.get_end_effector_world_position()
    print(f'\nAnimated {frames} frames, end effector at {np.round(reached, 4).tolist()}')
    print(f'Recorded {trajectory.keyframe_count} keyframes over {trajectory.duration} ms')

    print_section('Step 4: Replay')
    tree.set_joint_values(result.start_angles)
    manager.play_trajectory('demo_move', tree, speed=PLAYBACK_SPEED)
    frames = run_frames(scheduler, clock)
    print(f'\nReplayed at {PLAYBACK_SPEED}x in {frames} frames')
    print(f'Final pose: {format_angles(tree.get_joint_values())}')

    print_section('Step 5: Save Outputs')
    time_mark = datetime.now().strftime('%Y%m%d_%H%M%S')
    output_dir = USER_DIR / 'demo' / f'ik_{ROBOT}_{time_mark}'
    output_dir.mkdir(parents=True, exist_ok=True)

    path = manager.store.save_to_file('demo_move', output_dir)
    print(f'\nTrajectory: {path}')
    plot_joint_trajectories(trajectory, out_path=output_dir / 'joints.png')
    plot_end_effector_path(trajectory, out_path=output_dir / 'end_effector_path.png')
    plot_convergence_history(result, out_path=output_dir / 'convergence.png')
    print(f'Plots saved to: {output_dir}')


if __name__ == '__main__':
    main()
