"""
ik_solver.py - Cyclic Coordinate Descent (CCD) inverse kinematics.

CCD adjusts one joint at a time so the end effector moves toward the
target. Every joint update is written to the chain immediately, so later
joints in the same sweep see the updated pose.

A solve never leaves the chain modified: the goal angles are captured and
the start angles restored. Applying the goal is the caller's job
(see ik_tools.interpolator / ik_tools.ik_api).

=============================================================================
SELF-TUNING
=============================================================================

Parameters are derived per solve from the number of movable joints (dof):

    max_iterations = clamp(10 + 2*dof, 10, 30)
    complexity     = min(1, dof / 7)
    tolerance      = clamp(0.01 / complexity, 0.001, 0.02)
    damping_factor = clamp(0.7 - 0.4*complexity, 0.2, 0.8)

Explicit per-call overrides replace the tuned values for that call only.
=============================================================================
"""
from __future__ import annotations

import logging
import math
import warnings

import numpy as np

from configs.ik_config import COMPLEXITY_DOF
from configs.ik_config import COS_CLAMP
from configs.ik_config import DEGENERATE_EPSILON
from configs.ik_config import FALLBACK_DAMPING_FACTOR
from configs.ik_config import FALLBACK_MAX_ITERATIONS
from configs.ik_config import FALLBACK_TOLERANCE
from configs.ik_config import LARGE_ERROR_DAMPING_BOOST
from configs.ik_config import LARGE_ERROR_DISTANCE
from configs.ik_config import MAX_STEP
from configs.ik_config import STUCK_DAMPING_GROWTH
from configs.ik_config import STUCK_ITERATION
from configs.ik_config import TUNED_MAX_DAMPING
from configs.ik_config import TUNED_MAX_ITERATIONS
from configs.ik_config import TUNED_MAX_TOLERANCE
from configs.ik_config import TUNED_MIN_DAMPING
from configs.ik_config import TUNED_MIN_ITERATIONS
from configs.ik_config import TUNED_MIN_TOLERANCE
from ik_tools.chain import estimate_max_reach
from ik_tools.chain import is_target_reachable
from ik_tools.chain import movable_joints
from ik_tools.chain import resolve_end_effector
from ik_tools.chain import SceneChain
from ik_tools.errors import NoEndEffectorFound
from ik_tools.errors import UnreachableTargetWarning
from ik_tools.schemas import as_vector
from ik_tools.schemas import IKResult
from ik_tools.schemas import SolverSettings
from ik_tools.schemas import StructureAnalysis

logger = logging.getLogger(__name__)


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


# =============================================================================
# Structure Analysis
# =============================================================================

def default_parameters() -> SolverSettings:
    """Parameters used when a chain offers nothing to tune from."""
    return SolverSettings(
        max_iterations=FALLBACK_MAX_ITERATIONS,
        tolerance=FALLBACK_TOLERANCE,
        damping_factor=FALLBACK_DAMPING_FACTOR,
    )


def analyze_robot_structure(chain: SceneChain | None) -> StructureAnalysis:
    """
    Inspect a chain's non-fixed joints and derive solver parameters.

    Returns:
        StructureAnalysis with tuned settings, dof and estimated max reach
    """
    if chain is None or not chain.link_names():
        return StructureAnalysis(settings=default_parameters(), dof=0, max_reach=0.0)

    # Every non-fixed joint counts, including side branches the solver never moves
    dof = sum(1 for name in chain.joint_names() if chain.get_joint(name).is_movable)
    if dof == 0:
        return StructureAnalysis(settings=default_parameters(), dof=0, max_reach=0.0)

    complexity = min(1.0, dof / COMPLEXITY_DOF)
    settings = SolverSettings(
        max_iterations=int(_clamp(round(10 + dof * 2), TUNED_MIN_ITERATIONS, TUNED_MAX_ITERATIONS)),
        tolerance=_clamp(0.01 / complexity, TUNED_MIN_TOLERANCE, TUNED_MAX_TOLERANCE),
        damping_factor=_clamp(0.7 - complexity * 0.4, TUNED_MIN_DAMPING, TUNED_MAX_DAMPING),
    )
    return StructureAnalysis(settings=settings, dof=dof, max_reach=estimate_max_reach(chain))


# =============================================================================
# Per-Joint Correction
# =============================================================================

def rotation_correction(
    joint_pos: np.ndarray,
    joint_axis: np.ndarray,
    end_pos: np.ndarray,
    target: np.ndarray,
) -> float | None:
    """
    Signed angle rotating (end - joint) onto (target - joint) about the axis.

    Returns None when either vector is degenerate (shorter than epsilon).
    """
    to_end = end_pos - joint_pos
    to_target = target - joint_pos
    end_len = np.linalg.norm(to_end)
    target_len = np.linalg.norm(to_target)
    if end_len < DEGENERATE_EPSILON or target_len < DEGENERATE_EPSILON:
        return None

    to_end = to_end / end_len
    to_target = to_target / target_len
    cross = np.cross(to_end, to_target)
    dot = float(np.dot(to_end, to_target))

    if abs(dot) < COS_CLAMP:
        angle = math.acos(_clamp(dot, -COS_CLAMP, COS_CLAMP))
    else:
        # near-parallel: acos of the clamped cosine would floor the angle at acos(0.999)
        angle = math.atan2(float(np.linalg.norm(cross)), dot)

    if float(np.dot(cross, joint_axis)) < 0:
        angle = -angle
    return angle


def translation_correction(joint_axis: np.ndarray, end_pos: np.ndarray, target: np.ndarray) -> float:
    """Displacement along a prismatic axis that best moves the end toward the target."""
    return float(np.dot(target - end_pos, joint_axis))


# =============================================================================
# Solver
# =============================================================================

class CCDSolver:
    """
    Cyclic Coordinate Descent IK solver.

    State: Idle -> Solving -> {Converged | IterationLimitReached} -> Idle.
    Only the last start/goal angle sets survive between calls.
    """

    def __init__(self, settings: SolverSettings | None = None):
        self.settings = settings or SolverSettings()
        self.solving = False
        self.last_start_angles: dict[str, float] = {}
        self.last_goal_angles: dict[str, float] = {}
        self.last_result: IKResult | None = None

    def configure(self, **settings) -> SolverSettings:
        """Change the caller-visible default settings."""
        self.settings = self.settings.with_overrides(**settings)
        return self.settings

    def solve(
        self,
        chain: SceneChain,
        target,
        max_iterations: int | None = None,
        tolerance: float | None = None,
        damping_factor: float | None = None,
    ) -> dict[str, float] | None:
        """
        Solve IK for a target point.

        Returns:
            Map of joint name -> goal value, or None when the chain is unavailable
        """
        result = self.solve_detailed(
            chain, target,
            max_iterations=max_iterations,
            tolerance=tolerance,
            damping_factor=damping_factor,
        )
        return result.goal_angles if result is not None else None

    def solve_detailed(
        self,
        chain: SceneChain,
        target,
        max_iterations: int | None = None,
        tolerance: float | None = None,
        damping_factor: float | None = None,
    ) -> IKResult | None:
        """Solve IK and return the full IKResult (None when the chain is unavailable)."""
        if chain is None or not chain.link_names():
            logger.warning('IK unavailable: chain has no links')
            return None

        end_effector = resolve_end_effector(chain)
        joints = movable_joints(chain, end_effector) if end_effector is not None else []
        if end_effector is None:
            logger.warning('IK unavailable: no end effector found')
            return None
        if not joints:
            logger.warning('IK unavailable: chain has no movable joints')
            return None

        target_pos = as_vector(target)
        analysis = analyze_robot_structure(chain)
        params = analysis.settings.with_overrides(
            max_iterations=max_iterations,
            tolerance=tolerance,
            damping_factor=damping_factor,
        )
        logger.debug(f'Using tuned parameters: {params} (dof={analysis.dof})')

        reachable = is_target_reachable(target_pos, chain)
        if not reachable:
            message = (
                f'Target {target_pos.tolist()} may be unreachable, '
                f'maximum reach is {analysis.max_reach:.4f}'
            )
            logger.warning(message)
            warnings.warn(message, UnreachableTargetWarning, stacklevel=3)

        caller_settings = self.settings
        self.settings = params
        self.solving = True
        start = {name: chain.get_joint_value(name) for name in joints}
        try:
            iterations, history = self._iterate(chain, joints, target_pos, params)
            goal = {name: chain.get_joint_value(name) for name in joints}
            final_distance = float(np.linalg.norm(chain.get_end_effector_world_position() - target_pos))
        except NoEndEffectorFound:
            logger.warning('IK unavailable: end effector position could not be computed')
            return None
        finally:
            for name, value in start.items():
                chain.set_joint_value(name, value)
            self.settings = caller_settings
            self.solving = False

        converged = final_distance < params.tolerance
        if converged:
            logger.info(f'IK converged after {iterations} iterations (distance={final_distance:.5f})')
        else:
            logger.info(
                f'IK reached iteration limit ({params.max_iterations}) '
                f'with distance={final_distance:.5f}',
            )

        self.last_start_angles = start
        self.last_goal_angles = goal
        self.last_result = IKResult(
            start_angles=dict(start),
            goal_angles=dict(goal),
            converged=converged,
            iterations=iterations,
            final_distance=final_distance,
            settings=params,
            reachable=reachable,
            distance_history=history,
        )
        return self.last_result

    def _iterate(
        self,
        chain: SceneChain,
        joints: list[str],
        target: np.ndarray,
        params: SolverSettings,
    ) -> tuple[int, list[float]]:
        """Run CCD sweeps on the chain in place. Returns (iterations run, distance per iteration)."""
        damping = params.damping_factor
        history: list[float] = []

        for iteration in range(params.max_iterations):
            distance = float(np.linalg.norm(chain.get_end_effector_world_position() - target))
            history.append(distance)
            logger.debug(f'Iteration {iteration}: distance = {distance:.4f}')

            if distance < params.tolerance:
                return iteration, history

            if iteration > STUCK_ITERATION and distance > LARGE_ERROR_DISTANCE:
                damping = min(1.0, damping * STUCK_DAMPING_GROWTH)

            # distal to proximal
            for name in reversed(joints):
                end_pos = chain.get_end_effector_world_position()
                joint = chain.get_joint(name)
                axis = chain.get_joint_world_axis(name)

                if joint.type == 'prismatic':
                    step = translation_correction(axis, end_pos, target)
                else:
                    step = rotation_correction(chain.get_joint_world_position(name), axis, end_pos, target)
                    if step is None:
                        continue

                error = float(np.linalg.norm(end_pos - target))
                adjusted = damping * LARGE_ERROR_DAMPING_BOOST if error > LARGE_ERROR_DISTANCE else damping
                step = _clamp(step * adjusted, -MAX_STEP, MAX_STEP)

                new_value = joint.clamp(chain.get_joint_value(name) + step)
                chain.set_joint_value(name, new_value)

        return params.max_iterations, history
