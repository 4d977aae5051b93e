"""
robot_model.py - In-memory kinematic tree with forward kinematics.

KinematicTree is the reference implementation of the SceneChain protocol,
used when no rendering layer owns the robot (backend, demos, tests).

Frames follow the usual robot-description conventions:
  - A joint frame is its parent link frame composed with the joint origin
    (translation + fixed-axis roll/pitch/yaw)
  - Revolute/continuous joints rotate the child about the joint axis,
    prismatic joints translate it along the axis
  - The end-effector position is the end-effector link frame applied to
    the tool-center-point offset
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import networkx as nx
import numpy as np
from scipy.spatial.transform import Rotation

from ik_tools.chain import find_end_effector
from ik_tools.errors import NoEndEffectorFound
from ik_tools.schemas import as_vector
from ik_tools.schemas import JointSpec
from ik_tools.schemas import LinkSpec
from ik_tools.schemas import RobotDescription

logger = logging.getLogger(__name__)


# =============================================================================
# Homogeneous Transforms
# =============================================================================

def make_transform(rotation: np.ndarray | None = None, translation=None) -> np.ndarray:
    """Build a 4x4 homogeneous transform from a 3x3 rotation and a translation."""
    tf = np.eye(4)
    if rotation is not None:
        tf[:3, :3] = rotation
    if translation is not None:
        tf[:3, 3] = translation
    return tf


def origin_transform(joint: JointSpec) -> np.ndarray:
    """Transform from the parent link frame to the joint frame."""
    rotation = Rotation.from_euler('xyz', joint.origin_rpy).as_matrix()
    return make_transform(rotation, joint.origin_xyz)


def motion_transform(joint: JointSpec, value: float) -> np.ndarray:
    """Transform produced by moving a joint to `value`."""
    axis = np.asarray(joint.axis, dtype=float)
    if joint.type in ('revolute', 'continuous'):
        return make_transform(Rotation.from_rotvec(axis * value).as_matrix())
    if joint.type == 'prismatic':
        return make_transform(translation=axis * value)
    return np.eye(4)


# =============================================================================
# Kinematic Tree
# =============================================================================

class KinematicTree:
    """
    A robot modeled as a tree of named links connected by joints.

    Usage:
        tree = KinematicTree.from_dict({
            'name': 'planar',
            'links': [{'name': 'base_link'}, {'name': 'upper'}, {'name': 'tcp'}],
            'joints': [
                {'name': 'j1', 'type': 'revolute', 'parent': 'base_link',
                 'child': 'upper', 'axis': [0, 0, 1]},
                {'name': 'tip', 'type': 'fixed', 'parent': 'upper',
                 'child': 'tcp', 'origin_xyz': [1, 0, 0]},
            ],
        })
        tree.set_joint_value('j1', 0.5)
        tree.get_end_effector_world_position()
    """

    def __init__(self, description: RobotDescription):
        self.description = description
        self.name = description.name
        self._links: dict[str, LinkSpec] = {link.name: link for link in description.links}
        self._joints: dict[str, JointSpec] = {joint.name: joint for joint in description.joints}
        self._parent_joint: dict[str, str] = {joint.child: joint.name for joint in description.joints}
        self._values: dict[str, float] = {
            name: joint.clamp(description.joint_values.get(name, 0.0))
            for name, joint in self._joints.items()
        }
        self._origins: dict[str, np.ndarray] = {
            name: origin_transform(joint) for name, joint in self._joints.items()
        }
        self._tcp_offset = np.asarray(description.tcp_offset, dtype=float)
        self._link_world: dict[str, np.ndarray] = {}
        self._warned_unknown: set[str] = set()

        self.graph = nx.DiGraph(name=self.name)
        self.graph.add_nodes_from(self._links)
        for joint in description.joints:
            self.graph.add_edge(joint.parent, joint.child, joint=joint.name)
        if not nx.is_directed_acyclic_graph(self.graph):
            raise ValueError(f"Robot '{self.name}' contains a joint cycle")

        self._end_effector = description.end_effector or find_end_effector(self)
        logger.debug(
            f"Built kinematic tree '{self.name}': {len(self._links)} links, "
            f"{len(self._joints)} joints, end effector={self._end_effector}",
        )

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> KinematicTree:
        return cls(RobotDescription.model_validate(data))

    # -------------------------------------------------------------------------
    # Structure
    # -------------------------------------------------------------------------

    def link_names(self) -> list[str]:
        return list(self._links)

    def joint_names(self) -> list[str]:
        return list(self._joints)

    def get_link(self, name: str) -> LinkSpec:
        return self._links[name]

    def get_joint(self, name: str) -> JointSpec:
        return self._joints[name]

    @property
    def end_effector(self) -> str | None:
        return self._end_effector

    @property
    def tcp_offset(self) -> np.ndarray:
        return self._tcp_offset.copy()

    def set_tcp_offset(self, offset) -> None:
        """Set the tool-center-point offset, expressed in the end-effector link frame."""
        self._tcp_offset = as_vector(offset)

    # -------------------------------------------------------------------------
    # Joint Values
    # -------------------------------------------------------------------------

    def get_joint_value(self, name: str) -> float:
        if name not in self._joints:
            raise KeyError(f"Joint '{name}' not found in robot '{self.name}'")
        return self._values[name]

    def set_joint_value(self, name: str, value: float) -> None:
        """Set one joint, clamped into its limits when they are enforced."""
        joint = self._joints.get(name)
        if joint is None:
            raise KeyError(f"Joint '{name}' not found in robot '{self.name}'")
        if not joint.is_movable:
            logger.debug(f"Ignoring write to fixed joint '{name}'")
            return
        self._values[name] = joint.clamp(value)
        self._link_world.clear()

    def get_joint_values(self) -> dict[str, float]:
        """Values of all non-fixed joints."""
        return {name: self._values[name] for name, joint in self._joints.items() if joint.is_movable}

    def set_joint_values(self, values: Mapping[str, float]) -> None:
        """Apply a batch of joint values; unknown names are skipped, with one warning per name."""
        unknown = [name for name in values if name not in self._joints]
        if unknown:
            unseen = [name for name in unknown if name not in self._warned_unknown]
            if unseen:
                self._warned_unknown.update(unseen)
                logger.warning(f"Skipping unknown joints for robot '{self.name}': {unseen}")
            else:
                logger.debug(f"Skipping unknown joints for robot '{self.name}': {unknown}")
        for name, value in values.items():
            if name in self._joints:
                self.set_joint_value(name, value)

    # -------------------------------------------------------------------------
    # Forward Kinematics
    # -------------------------------------------------------------------------

    def get_link_world_transform(self, name: str) -> np.ndarray:
        """World transform of a link (cached until the next joint write)."""
        cached = self._link_world.get(name)
        if cached is not None:
            return cached
        if name not in self._links:
            raise KeyError(f"Link '{name}' not found in robot '{self.name}'")

        joint_name = self._parent_joint.get(name)
        if joint_name is None:
            tf = np.eye(4)
        else:
            joint = self._joints[joint_name]
            tf = self.get_joint_world_transform(joint_name) @ motion_transform(joint, self._values[joint_name])
        self._link_world[name] = tf
        return tf

    def get_joint_world_transform(self, name: str) -> np.ndarray:
        """World transform of a joint frame (before the joint's own motion)."""
        joint = self._joints[name]
        return self.get_link_world_transform(joint.parent) @ self._origins[name]

    def get_link_world_position(self, name: str) -> np.ndarray:
        return self.get_link_world_transform(name)[:3, 3].copy()

    def get_joint_world_position(self, name: str) -> np.ndarray:
        return self.get_joint_world_transform(name)[:3, 3].copy()

    def get_joint_world_axis(self, name: str) -> np.ndarray:
        tf = self.get_joint_world_transform(name)
        axis = tf[:3, :3] @ np.asarray(self._joints[name].axis, dtype=float)
        return axis / np.linalg.norm(axis)

    def get_end_effector_world_position(self) -> np.ndarray:
        if self._end_effector is None:
            raise NoEndEffectorFound(f"Robot '{self.name}' has no end-effector link")
        tf = self.get_link_world_transform(self._end_effector)
        return (tf @ np.append(self._tcp_offset, 1.0))[:3]

    def snapshot(self) -> dict[str, Any]:
        """JSON-friendly summary of the current pose."""
        ee = None
        if self._end_effector is not None:
            ee = [float(v) for v in self.get_end_effector_world_position()]
        return {
            'name': self.name,
            'joint_values': self.get_joint_values(),
            'end_effector': self._end_effector,
            'end_effector_position': ee,
        }
