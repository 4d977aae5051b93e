"""
Inverse kinematics and trajectory record/playback for articulated chains.

Modules:
- robot_model: KinematicTree, an in-memory chain with forward kinematics
- chain: End-effector/base discovery, movable joints, reachability
- ik_solver: Self-tuning CCD solver
- interpolator / scheduler: Eased joint animation driven per frame
- ik_api: IKController (solve -> animate pipeline)
- recorder / player / trajectory_store / trajectory_api: Trajectories
"""
from __future__ import annotations

from ik_tools.activity import Activity
from ik_tools.activity import ActivityGuard
from ik_tools.chain import estimate_max_reach
from ik_tools.chain import find_base_link
from ik_tools.chain import find_end_effector
from ik_tools.chain import is_target_reachable
from ik_tools.chain import movable_joints
from ik_tools.chain import SceneChain
from ik_tools.errors import ConcurrentOperationConflict
from ik_tools.errors import IKToolsError
from ik_tools.errors import InvalidTrajectoryDocument
from ik_tools.errors import NoEndEffectorFound
from ik_tools.errors import TrajectoryNotFound
from ik_tools.errors import UnreachableTargetWarning
from ik_tools.ik_api import IKController
from ik_tools.ik_solver import analyze_robot_structure
from ik_tools.ik_solver import CCDSolver
from ik_tools.interpolator import AnimationTask
from ik_tools.interpolator import ease_in_out_cubic
from ik_tools.interpolator import MotionInterpolator
from ik_tools.interpolator import TaskStatus
from ik_tools.player import TrajectoryPlayer
from ik_tools.recorder import TrajectoryRecorder
from ik_tools.robot_model import KinematicTree
from ik_tools.scheduler import FrameScheduler
from ik_tools.schemas import IKResult
from ik_tools.schemas import Position
from ik_tools.schemas import RobotDescription
from ik_tools.schemas import SolverSettings
from ik_tools.trajectory_api import TrajectoryManager
from ik_tools.trajectory_models import Keyframe
from ik_tools.trajectory_models import Trajectory
from ik_tools.trajectory_store import TrajectoryStore
from ik_tools.trajectory_utils import TrajectoryAnalysis
from ik_tools.trajectory_utils import analyze_trajectory

__all__ = [
    'Activity',
    'ActivityGuard',
    'AnimationTask',
    'CCDSolver',
    'ConcurrentOperationConflict',
    'FrameScheduler',
    'IKController',
    'IKResult',
    'IKToolsError',
    'InvalidTrajectoryDocument',
    'Keyframe',
    'KinematicTree',
    'MotionInterpolator',
    'NoEndEffectorFound',
    'Position',
    'RobotDescription',
    'SceneChain',
    'SolverSettings',
    'TaskStatus',
    'Trajectory',
    'TrajectoryAnalysis',
    'TrajectoryManager',
    'TrajectoryNotFound',
    'TrajectoryPlayer',
    'TrajectoryRecorder',
    'TrajectoryStore',
    'UnreachableTargetWarning',
    'analyze_robot_structure',
    'analyze_trajectory',
    'ease_in_out_cubic',
    'estimate_max_reach',
    'find_base_link',
    'find_end_effector',
    'is_target_reachable',
    'movable_joints',
]
