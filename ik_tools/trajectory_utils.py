"""
trajectory_utils.py - Sampling, analysis and (de)serialization of recorded trajectories.

Sampling at time t:
  1. prev = last keyframe with timestamp <= t, next = first keyframe with
     timestamp >= t (the first keyframe holds before t=0 of the recording,
     the last one holds past its end)
  2. s = (t - prev.timestamp) / (next.timestamp - prev.timestamp), or prev's
     values unchanged when the interval has zero length
  3. joint values and end-effector position are blended linearly

Document shape (export/import):

    {
        "name": "wave",
        "keyframes": [{"timestamp": 0, "jointValues": {...},
                       "endEffectorPosition": {"x": .., "y": .., "z": ..}}, ...],
        "duration": 200,
        "endEffectorPath": [{"time": 0, "position": {...}}, ...]
    }
"""
from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import dataclass
from dataclasses import field
from typing import Any
from typing import Optional

import numpy as np
from pydantic import TypeAdapter
from pydantic import ValidationError

from ik_tools.errors import InvalidTrajectoryDocument
from ik_tools.schemas import Position
from ik_tools.trajectory_models import Keyframe
from ik_tools.trajectory_models import PathPoint
from ik_tools.trajectory_models import Trajectory

logger = logging.getLogger(__name__)

_KEYFRAME_LIST = TypeAdapter(list[Keyframe])
_PATH_LIST = TypeAdapter(list[PathPoint])


# =============================================================================
# Sampling
# =============================================================================

@dataclass
class TrajectorySample:
    """Interpolated state of a trajectory at one point in time."""
    time: float
    joint_values: dict[str, float]
    end_effector_position: Optional[Position] = None


def find_bracketing_keyframes(
    keyframes: Sequence[Keyframe],
    time_ms: float,
) -> tuple[Keyframe, Keyframe]:
    """
    Keyframes surrounding `time_ms`.

    Keyframes must be ordered by timestamp. Before the first keyframe both
    sides are the first keyframe; after the last, both are the last.
    """
    if not keyframes:
        raise ValueError('Cannot sample a trajectory without keyframes')

    timestamps = np.array([kf.timestamp for kf in keyframes], dtype=float)
    prev_idx = int(np.searchsorted(timestamps, time_ms, side='right')) - 1
    next_idx = int(np.searchsorted(timestamps, time_ms, side='left'))
    prev_idx = min(max(prev_idx, 0), len(keyframes) - 1)
    next_idx = min(max(next_idx, 0), len(keyframes) - 1)
    return keyframes[prev_idx], keyframes[next_idx]


def interpolate_joint_values(
    a: Mapping[str, float],
    b: Mapping[str, float],
    t: float,
) -> dict[str, float]:
    """Linear blend over the union of joint names; one-sided joints hold their value."""
    values = {}
    for name in {**a, **b}:
        if name in a and name in b:
            values[name] = float(a[name]) + (float(b[name]) - float(a[name])) * t
        else:
            values[name] = float(a[name] if name in a else b[name])
    return values


def interpolate_position(
    a: Optional[Position],
    b: Optional[Position],
    t: float,
) -> Optional[Position]:
    if a is None or b is None:
        return a if a is not None else b
    start, end = a.to_array(), b.to_array()
    return Position.from_array(start + (end - start) * t)


def sample_trajectory(trajectory: Trajectory, time_ms: float) -> TrajectorySample:
    """Interpolated joint values (and end-effector position) at `time_ms`."""
    prev, nxt = find_bracketing_keyframes(trajectory.keyframes, time_ms)
    span = nxt.timestamp - prev.timestamp
    if span <= 0:
        return TrajectorySample(
            time=time_ms,
            joint_values=dict(prev.joint_values),
            end_effector_position=prev.end_effector_position,
        )

    t = (time_ms - prev.timestamp) / span
    return TrajectorySample(
        time=time_ms,
        joint_values=interpolate_joint_values(prev.joint_values, nxt.joint_values, t),
        end_effector_position=interpolate_position(prev.end_effector_position, nxt.end_effector_position, t),
    )


def build_end_effector_path(keyframes: Sequence[Keyframe]) -> list[PathPoint]:
    """Path of the keyframes that carry an end-effector position."""
    return [
        PathPoint(time=kf.timestamp, position=kf.end_effector_position)
        for kf in keyframes
        if kf.end_effector_position is not None
    ]


# =============================================================================
# Analysis
# =============================================================================

@dataclass
class JointStats:
    min: float
    max: float
    range: float
    final: float

    def to_dict(self) -> dict:
        return {'min': self.min, 'max': self.max, 'range': self.range, 'final': self.final}


@dataclass
class TrajectoryAnalysis:
    """
    Summary statistics of a recorded trajectory.

    Velocities are in distance units per second, measured between
    consecutive end-effector path points with a positive time step.
    Bounds are None when the trajectory has no end-effector path.
    """
    name: str
    keyframe_count: int
    duration: int
    joint_stats: dict[str, JointStats] = field(default_factory=dict)
    total_distance: float = 0.0
    max_velocity: float = 0.0
    average_velocity: float = 0.0
    bounds_min: Optional[Position] = None
    bounds_max: Optional[Position] = None

    def to_dict(self) -> dict:
        return {
            'name': self.name,
            'keyframe_count': self.keyframe_count,
            'duration': self.duration,
            'joint_stats': {name: stats.to_dict() for name, stats in self.joint_stats.items()},
            'end_effector': {
                'total_distance': self.total_distance,
                'max_velocity': self.max_velocity,
                'average_velocity': self.average_velocity,
                'bounds': None if self.bounds_min is None else {
                    'min': self.bounds_min.model_dump(),
                    'max': self.bounds_max.model_dump(),
                },
            },
        }


def analyze_trajectory(trajectory: Trajectory) -> TrajectoryAnalysis:
    """
    Per-joint value ranges plus end-effector travel, speed and workspace bounds.

    Joints are those of the first keyframe; a keyframe missing one of them
    counts as 0.0 for it.
    """
    analysis = TrajectoryAnalysis(
        name=trajectory.name,
        keyframe_count=trajectory.keyframe_count,
        duration=trajectory.duration,
    )

    if trajectory.keyframes:
        for name in trajectory.keyframes[0].joint_values:
            values = np.array([kf.joint_values.get(name, 0.0) for kf in trajectory.keyframes], dtype=float)
            analysis.joint_stats[name] = JointStats(
                min=float(values.min()),
                max=float(values.max()),
                range=float(values.max() - values.min()),
                final=float(values[-1]),
            )

    path = trajectory.end_effector_path
    if not path:
        return analysis

    points = np.array([point.position.to_array() for point in path], dtype=float)
    analysis.bounds_min = Position.from_array(points.min(axis=0))
    analysis.bounds_max = Position.from_array(points.max(axis=0))

    if len(path) > 1:
        steps = np.linalg.norm(np.diff(points, axis=0), axis=1)
        dt = np.diff(np.array([point.time for point in path], dtype=float)) / 1000.0
        velocities = steps[dt > 0] / dt[dt > 0]
        analysis.total_distance = float(steps.sum())
        if velocities.size:
            analysis.max_velocity = float(velocities.max())
            analysis.average_velocity = float(velocities.mean())
    return analysis


# =============================================================================
# Documents
# =============================================================================

def trajectory_to_document(trajectory: Trajectory) -> dict[str, Any]:
    """Self-describing, JSON-ready export of a trajectory."""
    return trajectory.model_dump(mode='json', by_alias=True, exclude_none=True)


def parse_trajectory_document(document: str | bytes | Mapping[str, Any]) -> Trajectory:
    """
    Build a Trajectory from an exported document.

    A missing `duration` is the largest keyframe timestamp; a missing or
    empty `endEffectorPath` is rebuilt from the keyframes.

    Raises:
        InvalidTrajectoryDocument: unparseable JSON or invalid content
    """
    if isinstance(document, (str, bytes, bytearray)):
        try:
            document = json.loads(document)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise InvalidTrajectoryDocument(f'Trajectory document is not valid JSON: {e}') from e

    if not isinstance(document, Mapping):
        raise InvalidTrajectoryDocument(
            f'Trajectory document must be an object, got {type(document).__name__}',
        )
    if 'name' not in document or 'keyframes' not in document:
        raise InvalidTrajectoryDocument("Trajectory document requires 'name' and 'keyframes'")

    try:
        keyframes = _KEYFRAME_LIST.validate_python(document['keyframes'])

        duration = document.get('duration')
        if duration is None:
            duration = max((kf.timestamp for kf in keyframes), default=0)

        raw_path = document.get('endEffectorPath', document.get('end_effector_path'))
        path = _PATH_LIST.validate_python(raw_path) if raw_path else build_end_effector_path(keyframes)

        return Trajectory(
            name=document['name'],
            keyframes=keyframes,
            duration=duration,
            end_effector_path=path,
        )
    except ValidationError as e:
        raise InvalidTrajectoryDocument(f'Invalid trajectory document: {e}') from e
