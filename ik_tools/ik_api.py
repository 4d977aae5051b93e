"""
ik_api.py - Solve-then-move pipeline used by the application layer.

IKController chains the CCD solver with the motion interpolator:

    solve(target) -> goal angles -> animate (or apply instantly)

Solver, interpolator, activity guard and scheduler are injected so that
several chains (or tests) can run side by side without shared state.
"""
from __future__ import annotations

import logging
from typing import Callable

from configs.ik_config import ANGLE_CHANGE_EPSILON
from ik_tools.activity import Activity
from ik_tools.activity import ActivityGuard
from ik_tools.chain import SceneChain
from ik_tools.errors import ConcurrentOperationConflict
from ik_tools.ik_solver import CCDSolver
from ik_tools.interpolator import AnimationTask
from ik_tools.interpolator import calculate_animation_duration
from ik_tools.interpolator import MotionInterpolator
from ik_tools.scheduler import FrameScheduler
from ik_tools.scheduler import monotonic_ms

logger = logging.getLogger(__name__)


class IKController:
    """
    Application-facing IK entry point for one chain (or a set of chains
    sharing one activity guard).

    Usage:
        controller = IKController(scheduler=scheduler)
        controller.execute_ik(tree, (1.2, 0.3, 0.0), duration=500)
        scheduler.run_until_idle()
    """

    def __init__(
        self,
        solver: CCDSolver | None = None,
        interpolator: MotionInterpolator | None = None,
        guard: ActivityGuard | None = None,
        scheduler: FrameScheduler | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.solver = solver or CCDSolver()
        self.scheduler = scheduler
        self.interpolator = interpolator or MotionInterpolator(clock=clock, scheduler=scheduler)
        self.guard = guard or ActivityGuard()
        self._animation: AnimationTask | None = None

    @property
    def animation(self) -> AnimationTask | None:
        return self._animation

    @property
    def is_animating(self) -> bool:
        return self._animation is not None and self._animation.is_running

    def solve(self, chain: SceneChain, target, **overrides) -> dict[str, float] | None:
        """Goal joint values for `target`, or None when IK is unavailable for the chain."""
        return self.solver.solve(chain, target, **overrides)

    def execute_ik(
        self,
        chain: SceneChain,
        target,
        animate: bool = True,
        duration: float | None = None,
        max_iterations: int | None = None,
        tolerance: float | None = None,
        damping_factor: float | None = None,
        on_complete: Callable[[], None] | None = None,
    ) -> bool:
        """
        Solve for `target` and move the chain there.

        Returns:
            True when a solve + apply pipeline ran (converged or not),
            False when IK was unavailable or a playback owns the chain
        """
        if self.guard.is_active(Activity.PLAYBACK):
            logger.warning('Cannot execute IK while a trajectory is playing')
            return False

        result = self.solver.solve_detailed(
            chain, target,
            max_iterations=max_iterations,
            tolerance=tolerance,
            damping_factor=damping_factor,
        )
        if result is None:
            return False

        self.stop_animation()

        start, goal = result.start_angles, result.goal_angles
        changed = any(abs(goal[name] - start[name]) > ANGLE_CHANGE_EPSILON for name in goal)
        if not changed:
            logger.info('IK goal matches current pose, nothing to animate')
            if on_complete is not None:
                on_complete()
            return True

        if not animate:
            chain.set_joint_values(goal)
            if on_complete is not None:
                on_complete()
            return True

        if duration is None:
            duration = calculate_animation_duration(chain, start, goal)

        try:
            self.guard.acquire(Activity.ANIMATION)
        except ConcurrentOperationConflict as e:
            logger.warning(f'IK animation rejected: {e}')
            return False

        self._animation = self.interpolator.animate(
            chain, start, goal, duration,
            on_complete=on_complete,
            on_finish=lambda task: self.guard.release(Activity.ANIMATION),
        )
        return True

    def stop_animation(self) -> None:
        """Cancel the running animation, if any. Safe to call repeatedly."""
        if self._animation is not None:
            self._animation.stop()
