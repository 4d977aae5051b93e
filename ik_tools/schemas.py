"""
schemas.py - Data structures for kinematic chains and IK solving.

Robot descriptions are pydantic models (validated on load, frozen once
built). Solver settings and results are plain dataclasses.
"""
from __future__ import annotations

import math
from collections.abc import Mapping
from collections.abc import Sequence
from dataclasses import asdict
from dataclasses import dataclass
from dataclasses import field
from dataclasses import replace
from typing import Any
from typing import Literal
from typing import Optional

import numpy as np
from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator

from configs.ik_config import DEFAULT_DAMPING_FACTOR
from configs.ik_config import DEFAULT_MAX_ITERATIONS
from configs.ik_config import DEFAULT_TOLERANCE

JointType = Literal['fixed', 'revolute', 'continuous', 'prismatic']
Vector3 = tuple[float, float, float]


# =============================================================================
# Geometry
# =============================================================================

class Position(BaseModel):
    """A point in world space."""
    model_config = ConfigDict(frozen=True)

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    @classmethod
    def from_array(cls, arr) -> Position:
        return cls(x=float(arr[0]), y=float(arr[1]), z=float(arr[2]))

    def to_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)


def as_vector(point: Any) -> np.ndarray:
    """
    Coerce a target/position into a float numpy array of shape (3,).

    Accepts numpy arrays, 3-element sequences, {x, y, z} mappings
    (missing keys default to 0) and Position models.
    """
    if isinstance(point, Position):
        return point.to_array()
    if isinstance(point, Mapping):
        return np.array([float(point.get(k) or 0.0) for k in ('x', 'y', 'z')], dtype=float)
    if isinstance(point, (np.ndarray, Sequence)):
        arr = np.asarray(point, dtype=float).reshape(-1)
        if arr.shape != (3,):
            raise ValueError(f'Expected a 3D point, got shape {arr.shape}')
        return arr
    raise TypeError(f'Cannot interpret {type(point).__name__} as a 3D point')


# =============================================================================
# Robot Description
# =============================================================================

class LinkSpec(BaseModel):
    """A rigid link of the kinematic tree."""
    model_config = ConfigDict(frozen=True, extra='forbid')

    name: str = Field(min_length=1, description='Link name, unique within the robot')
    is_tcp: bool = Field(default=False, description='Tagged as the tool-center-point link')


class JointLimit(BaseModel):
    model_config = ConfigDict(frozen=True, extra='forbid')

    lower: Optional[float] = None
    upper: Optional[float] = None
    velocity: Optional[float] = Field(default=None, gt=0)

    @model_validator(mode='after')
    def validate_order(self) -> JointLimit:
        if self.lower is not None and self.upper is not None and self.lower > self.upper:
            raise ValueError(f'Joint limit lower ({self.lower}) exceeds upper ({self.upper})')
        return self


class JointSpec(BaseModel):
    """A joint connecting a parent link to a child link."""
    model_config = ConfigDict(frozen=True, extra='forbid')

    name: str = Field(min_length=1)
    type: JointType = 'revolute'
    parent: str
    child: str
    origin_xyz: Vector3 = (0.0, 0.0, 0.0)
    origin_rpy: Vector3 = (0.0, 0.0, 0.0)
    axis: Vector3 = Field(default=(1.0, 0.0, 0.0), description='Unit axis in the joint frame')
    limit: Optional[JointLimit] = None
    ignore_limits: bool = False

    @field_validator('axis')
    @classmethod
    def validate_axis(cls, axis: Vector3) -> Vector3:
        norm = math.sqrt(sum(a * a for a in axis))
        if norm < 1e-12:
            raise ValueError('Joint axis must be non-zero')
        return tuple(a / norm for a in axis)

    @property
    def is_movable(self) -> bool:
        return self.type != 'fixed'

    @property
    def enforces_limits(self) -> bool:
        return (
            self.type in ('revolute', 'prismatic')
            and not self.ignore_limits
            and self.limit is not None
            and self.limit.lower is not None
            and self.limit.upper is not None
        )

    @property
    def max_velocity(self) -> Optional[float]:
        return self.limit.velocity if self.limit else None

    def clamp(self, value: float) -> float:
        """Clamp a joint value into [lower, upper] when limits are enforced."""
        if not self.enforces_limits:
            return float(value)
        return float(min(max(value, self.limit.lower), self.limit.upper))


class RobotDescription(BaseModel):
    """Full description of a robot as a tree of links and joints."""
    model_config = ConfigDict(extra='forbid')

    name: str = 'robot'
    links: list[LinkSpec]
    joints: list[JointSpec] = Field(default_factory=list)
    tcp_offset: Vector3 = (0.0, 0.0, 0.0)
    end_effector: Optional[str] = None
    joint_values: dict[str, float] = Field(default_factory=dict)

    @model_validator(mode='after')
    def validate_tree(self) -> RobotDescription:
        link_names = [link.name for link in self.links]
        if len(set(link_names)) != len(link_names):
            raise ValueError('Link names must be unique')

        joint_names = [joint.name for joint in self.joints]
        if len(set(joint_names)) != len(joint_names):
            raise ValueError('Joint names must be unique')

        known = set(link_names)
        parent_of: dict[str, str] = {}
        for joint in self.joints:
            for end in (joint.parent, joint.child):
                if end not in known:
                    raise ValueError(f"Joint '{joint.name}' references unknown link '{end}'")
            if joint.child in parent_of:
                raise ValueError(
                    f"Link '{joint.child}' has two parent joints: "
                    f"'{parent_of[joint.child]}' and '{joint.name}'",
                )
            parent_of[joint.child] = joint.name

        if self.end_effector is not None and self.end_effector not in known:
            raise ValueError(f"End effector '{self.end_effector}' is not a declared link")

        unknown_values = set(self.joint_values) - set(joint_names)
        if unknown_values:
            raise ValueError(f'Initial values given for unknown joints: {sorted(unknown_values)}')
        return self


# =============================================================================
# Solver Settings & Results
# =============================================================================

@dataclass(frozen=True)
class SolverSettings:
    """
    CCD solver parameters.

    Attributes:
        max_iterations: Maximum full sweeps over the movable joints
        tolerance: End-effector distance at which the solve counts as converged
        damping_factor: Scale applied to each joint correction, in (0, 1]
    """
    max_iterations: int = DEFAULT_MAX_ITERATIONS
    tolerance: float = DEFAULT_TOLERANCE
    damping_factor: float = DEFAULT_DAMPING_FACTOR

    def __post_init__(self):
        if int(self.max_iterations) != self.max_iterations or self.max_iterations <= 0:
            raise ValueError(f'max_iterations must be a positive integer, got {self.max_iterations}')
        if not self.tolerance > 0:
            raise ValueError(f'tolerance must be > 0, got {self.tolerance}')
        if not 0 < self.damping_factor <= 1:
            raise ValueError(f'damping_factor must be in (0, 1], got {self.damping_factor}')

    def with_overrides(self, **overrides) -> SolverSettings:
        """Return a copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class StructureAnalysis:
    """Result of inspecting a chain to tune solver parameters."""
    settings: SolverSettings
    dof: int
    max_reach: float


@dataclass
class IKResult:
    """Outcome of one CCD solve."""
    start_angles: dict[str, float]
    goal_angles: dict[str, float]
    converged: bool
    iterations: int
    final_distance: float
    settings: SolverSettings
    reachable: bool = True
    distance_history: list[float] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'start_angles': self.start_angles,
            'goal_angles': self.goal_angles,
            'converged': self.converged,
            'iterations': self.iterations,
            'final_distance': self.final_distance,
            'settings': self.settings.to_dict(),
            'reachable': self.reachable,
            'distance_history': self.distance_history,
        }
