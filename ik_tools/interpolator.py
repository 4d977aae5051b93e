"""
interpolator.py - Eased joint-space animation between two poses.

An animation is an explicit AnimationTask: each tick computes

    progress = clamp(elapsed / duration, 0, 1)
    eased    = ease_in_out_cubic(progress)
    value    = start * (1 - eased) + goal * eased

and writes the frame to the chain. The task reports its status as an
enum (running / completed / cancelled); completion fires on_complete
exactly once, on the tick where progress first reaches 1.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import Enum
from typing import Callable

from configs.ik_config import DEFAULT_JOINT_VELOCITY
from configs.ik_config import MIN_ANIMATION_DURATION_MS
from ik_tools.chain import SceneChain
from ik_tools.scheduler import FrameScheduler
from ik_tools.scheduler import monotonic_ms

logger = logging.getLogger(__name__)


# =============================================================================
# Easing
# =============================================================================

def ease_in_out_cubic(t: float) -> float:
    """Cubic ease-in-out on [0, 1]: 4t^3 below 0.5, 1 - (-2t + 2)^3 / 2 above."""
    t = min(1.0, max(0.0, t))
    if t < 0.5:
        return 4 * t * t * t
    return 1 - (-2 * t + 2) ** 3 / 2


def interpolate_angles(
    start: Mapping[str, float],
    goal: Mapping[str, float],
    eased: float,
) -> dict[str, float]:
    """
    Blend two joint-value maps.

    Joints present only in `goal` jump to the goal value; joints present
    only in `start` hold. eased=0 gives start exactly, eased=1 gives goal.
    """
    frame = {}
    for name in {**start, **goal}:
        if name not in goal:
            frame[name] = float(start[name])
        elif name not in start:
            frame[name] = float(goal[name])
        else:
            frame[name] = float(start[name]) * (1.0 - eased) + float(goal[name]) * eased
    return frame


def calculate_animation_duration(
    chain: SceneChain,
    start: Mapping[str, float],
    goal: Mapping[str, float],
) -> float:
    """
    Animation length (ms) that keeps every joint within its velocity limit.

    Each joint needs |delta| / velocity seconds (velocity from the joint
    limit, DEFAULT_JOINT_VELOCITY otherwise). The slowest joint sets the
    duration, floored at MIN_ANIMATION_DURATION_MS.
    """
    slowest = 0.0
    for name, goal_value in goal.items():
        delta = abs(float(goal_value) - float(start.get(name, goal_value)))
        velocity = None
        try:
            velocity = chain.get_joint(name).max_velocity
        except KeyError:
            pass
        seconds = delta / (velocity or DEFAULT_JOINT_VELOCITY)
        slowest = max(slowest, seconds)
    return max(MIN_ANIMATION_DURATION_MS, slowest * 1000.0)


# =============================================================================
# Animation Task
# =============================================================================

class TaskStatus(str, Enum):
    RUNNING = 'running'
    COMPLETED = 'completed'
    CANCELLED = 'cancelled'


class AnimationTask:
    """
    Cancelable handle for one animation.

    Usage:
        task = MotionInterpolator(clock).animate(chain, start, goal, 1000)
        while task.tick(clock()):
            ...  # one call per rendered frame
        task.status  # TaskStatus.COMPLETED
    """

    def __init__(
        self,
        chain: SceneChain,
        start: Mapping[str, float],
        goal: Mapping[str, float],
        duration_ms: float,
        start_ms: float,
        on_complete: Callable[[], None] | None = None,
        on_finish: Callable[[AnimationTask], None] | None = None,
    ):
        self.chain = chain
        self.start = dict(start)
        self.goal = dict(goal)
        self.duration_ms = float(duration_ms)
        self.start_ms = start_ms
        self.status = TaskStatus.RUNNING
        self.progress = 0.0
        self._on_complete = on_complete
        self._on_finish = on_finish

    @property
    def done(self) -> bool:
        return self.status != TaskStatus.RUNNING

    @property
    def is_running(self) -> bool:
        return self.status == TaskStatus.RUNNING

    def frame_at(self, progress: float) -> dict[str, float]:
        """Joint values at a raw (un-eased) progress in [0, 1]."""
        return interpolate_angles(self.start, self.goal, ease_in_out_cubic(progress))

    def tick(self, now_ms: float | None = None) -> bool:
        """Apply one frame. Returns True while the animation is still running."""
        if self.done:
            return False

        if self.duration_ms <= 0:
            progress = 1.0
        else:
            elapsed = (now_ms if now_ms is not None else monotonic_ms()) - self.start_ms
            progress = min(1.0, max(0.0, elapsed / self.duration_ms))

        self.progress = progress
        self.chain.set_joint_values(self.frame_at(progress))

        if progress >= 1.0:
            self._finish(TaskStatus.COMPLETED)
            logger.debug('Animation completed')
            if self._on_complete is not None:
                self._on_complete()
            return False
        return True

    def stop(self) -> None:
        """Halt future ticks. The chain keeps whatever frame was last applied."""
        if self.done:
            return
        self._finish(TaskStatus.CANCELLED)
        logger.debug(f'Animation cancelled at progress {self.progress:.2f}')

    def _finish(self, status: TaskStatus) -> None:
        self.status = status
        if self._on_finish is not None:
            self._on_finish(self)


class MotionInterpolator:
    """Creates animation tasks, registering them with a scheduler when given one."""

    def __init__(
        self,
        clock: Callable[[], float] = monotonic_ms,
        scheduler: FrameScheduler | None = None,
    ):
        self.clock = clock
        self.scheduler = scheduler

    def animate(
        self,
        chain: SceneChain,
        start: Mapping[str, float],
        goal: Mapping[str, float],
        duration_ms: float,
        on_complete: Callable[[], None] | None = None,
        on_finish: Callable[[AnimationTask], None] | None = None,
    ) -> AnimationTask:
        task = AnimationTask(
            chain, start, goal, duration_ms,
            start_ms=self.clock(),
            on_complete=on_complete,
            on_finish=on_finish,
        )
        logger.debug(f'Animating {len(task.goal)} joints over {task.duration_ms:.0f} ms')
        if self.scheduler is not None:
            self.scheduler.add(task)
        return task
