"""
test_interpolator.py - Easing, animation tasks and frame scheduling.
"""
from __future__ import annotations

import pytest

from ik_tools.interpolator import calculate_animation_duration
from ik_tools.interpolator import ease_in_out_cubic
from ik_tools.interpolator import interpolate_angles
from ik_tools.interpolator import MotionInterpolator
from ik_tools.interpolator import TaskStatus
from ik_tools.robot_model import KinematicTree
from ik_tools.scheduler import FrameScheduler
from tests.conftest import planar_description

START = {'j1': 0.0, 'j2': 0.0}
GOAL = {'j1': 1.0, 'j2': -0.5}


# =============================================================================
# Easing
# =============================================================================

def test_ease_in_out_cubic_shape():
    assert ease_in_out_cubic(0.0) == 0.0
    assert ease_in_out_cubic(1.0) == 1.0
    assert ease_in_out_cubic(0.5) == pytest.approx(0.5)
    assert ease_in_out_cubic(0.25) == pytest.approx(0.0625)
    assert ease_in_out_cubic(0.75) == pytest.approx(0.9375)
    assert ease_in_out_cubic(-1.0) == 0.0 and ease_in_out_cubic(2.0) == 1.0


def test_interpolate_angles_exact_endpoints():
    start = {'a': 0.1, 'b': -2.7}
    goal = {'a': 0.3, 'b': 1.9}
    assert interpolate_angles(start, goal, 0.0) == start, 'Progress 0 must reproduce start exactly'
    assert interpolate_angles(start, goal, 1.0) == goal, 'Progress 1 must reproduce goal exactly'


def test_interpolate_angles_one_sided_joints():
    frame = interpolate_angles({'a': 1.0, 'held': 2.0}, {'a': 3.0, 'new': 5.0}, 0.5)
    assert frame == {'a': 2.0, 'held': 2.0, 'new': 5.0}


# =============================================================================
# Animation Task
# =============================================================================

def test_animation_runs_to_goal(planar_tree, clock):
    completed = []
    task = MotionInterpolator(clock).animate(planar_tree, START, GOAL, 1000, on_complete=lambda: completed.append(1))

    assert task.tick(clock()) is True
    assert planar_tree.get_joint_values() == START

    assert task.tick(clock.advance(500)) is True
    assert planar_tree.get_joint_value('j1') == pytest.approx(0.5)

    assert task.tick(clock.advance(500)) is False
    assert planar_tree.get_joint_values() == GOAL
    assert task.status == TaskStatus.COMPLETED and task.done
    assert completed == [1]

    assert task.tick(clock.advance(100)) is False
    assert completed == [1], 'on_complete fires exactly once'


def test_animation_overshooting_time_completes(planar_tree, clock):
    task = MotionInterpolator(clock).animate(planar_tree, START, GOAL, 100)
    assert task.tick(clock.advance(5000)) is False
    assert planar_tree.get_joint_values() == GOAL


def test_zero_duration_completes_on_first_tick(planar_tree, clock):
    completed = []
    task = MotionInterpolator(clock).animate(planar_tree, START, GOAL, 0, on_complete=lambda: completed.append(1))
    assert task.tick(clock()) is False
    assert planar_tree.get_joint_values() == GOAL
    assert completed == [1]


def test_stop_is_idempotent(planar_tree, clock):
    finished = []
    completed = []
    task = MotionInterpolator(clock).animate(
        planar_tree, START, GOAL, 1000,
        on_complete=lambda: completed.append(1),
        on_finish=finished.append,
    )
    task.tick(clock.advance(250))
    partial = planar_tree.get_joint_values()

    task.stop()
    task.stop()
    assert task.status == TaskStatus.CANCELLED
    assert finished == [task], 'on_finish fires once'
    assert task.tick(clock.advance(1000)) is False
    assert planar_tree.get_joint_values() == partial, 'Cancelled task no longer writes'
    assert completed == [], 'Cancelled task never completes'


def test_frame_at_progress(planar_tree, clock):
    task = MotionInterpolator(clock).animate(planar_tree, START, GOAL, 1000)
    assert task.frame_at(0.0) == START
    assert task.frame_at(1.0) == GOAL
    assert task.frame_at(0.25)['j1'] == pytest.approx(0.0625)


# =============================================================================
# Duration
# =============================================================================

def test_animation_duration_from_velocity():
    description = planar_description(j1_limit=(-3.0, 3.0))
    description['joints'][0]['limit']['velocity'] = 2.0
    tree = KinematicTree.from_dict(description)

    assert calculate_animation_duration(tree, {'j1': 0.0}, {'j1': 4.0}) == pytest.approx(2000.0)
    assert calculate_animation_duration(tree, {'j2': 0.0}, {'j2': 3.0}) == pytest.approx(3000.0), \
        'Joints without a velocity limit use 1 rad/s'
    assert calculate_animation_duration(tree, START, {'j1': 0.1, 'j2': 0.1}) == 800.0, 'Floored at 800 ms'


# =============================================================================
# Scheduler
# =============================================================================

def test_scheduler_drives_animation_headless(planar_tree, clock):
    scheduler = FrameScheduler(clock)
    task = MotionInterpolator(clock, scheduler=scheduler).animate(planar_tree, START, GOAL, 500)
    assert len(scheduler) == 1

    frames = scheduler.run_until_idle(frame_interval_ms=20)
    assert task.status == TaskStatus.COMPLETED
    assert scheduler.idle
    assert frames == 26, 'Frames at t=0, 20, ..., 500'
    assert planar_tree.get_joint_values() == GOAL


def test_scheduler_keeps_task_readded_during_step(clock):
    scheduler = FrameScheduler(clock)

    class Restarting:
        def __init__(self):
            self.runs = 0

        def tick(self, now_ms=None):
            self.runs += 1
            if self.runs == 1:
                scheduler.add(self)
            return False

    task = Restarting()
    scheduler.add(task)
    scheduler.step()
    assert len(scheduler) == 1, 'Re-added task survives the step that finished it'
    scheduler.step()
    assert scheduler.idle
