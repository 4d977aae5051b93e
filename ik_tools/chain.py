"""
chain.py - Read-only queries over a kinematic chain.

The chain itself (links, joints, world transforms) is owned by the scene
layer and consumed through the SceneChain protocol. This module provides:
  - Base link and end-effector discovery
  - Traversal order and the movable joint set used by the solver
  - Reachability estimation (advisory only)

Links and joints are identified by name throughout.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Protocol
from typing import runtime_checkable

import networkx as nx
import numpy as np

from configs.ik_config import BASE_LINK_NAMES
from configs.ik_config import END_EFFECTOR_NAMES
from ik_tools.errors import NoEndEffectorFound
from ik_tools.schemas import as_vector
from ik_tools.schemas import JointSpec
from ik_tools.schemas import LinkSpec

logger = logging.getLogger(__name__)


@runtime_checkable
class SceneChain(Protocol):
    """Interface consumed from the scene/rendering collaborator."""

    def link_names(self) -> list[str]: ...

    def joint_names(self) -> list[str]: ...

    def get_link(self, name: str) -> LinkSpec: ...

    def get_joint(self, name: str) -> JointSpec: ...

    def get_link_world_position(self, name: str) -> np.ndarray: ...

    def get_joint_world_position(self, name: str) -> np.ndarray: ...

    def get_joint_world_axis(self, name: str) -> np.ndarray: ...

    def get_joint_value(self, name: str) -> float: ...

    def set_joint_value(self, name: str, value: float) -> None: ...

    def get_joint_values(self) -> dict[str, float]: ...

    def set_joint_values(self, values: Mapping[str, float]) -> None: ...

    def get_end_effector_world_position(self) -> np.ndarray: ...


# =============================================================================
# Graph Helpers
# =============================================================================

def chain_graph(chain: SceneChain) -> nx.DiGraph:
    """
    Directed link graph: links are nodes, joints are parent -> child edges
    carrying the joint name. Uses the chain's own graph when it keeps one.
    """
    graph = getattr(chain, 'graph', None)
    if isinstance(graph, nx.DiGraph):
        return graph

    graph = nx.DiGraph()
    graph.add_nodes_from(chain.link_names())
    for joint_name in chain.joint_names():
        joint = chain.get_joint(joint_name)
        graph.add_edge(joint.parent, joint.child, joint=joint_name)
    return graph


def find_base_link(chain: SceneChain) -> str | None:
    """
    Find the base link of a chain.

    Priority:
      1. A conventionally named base link (base_link, world, ...)
      2. The unique link with no parent joint
      3. The first link encountered
    """
    links = chain.link_names()
    if not links:
        return None

    for name in BASE_LINK_NAMES:
        if name in links:
            return name

    graph = chain_graph(chain)
    roots = [link for link in links if graph.in_degree(link) == 0]
    if len(roots) == 1:
        return roots[0]
    return links[0]


def find_end_effector(chain: SceneChain) -> str | None:
    """
    Find the end-effector link of a chain.

    Priority:
      1. A link named with an end-effector convention (tcp, tool0, ...)
      2. Among leaf links (no outgoing joint), one tagged as TCP
      3. The deepest leaf by traversal depth (first discovered on ties)
      4. The last link discovered

    Branching chains still yield a single candidate.
    """
    links = chain.link_names()
    if not links:
        return None

    for name in END_EFFECTOR_NAMES:
        if name in links:
            return name

    graph = chain_graph(chain)
    base = find_base_link(chain)
    leaves = [link for link in links if graph.out_degree(link) == 0 and link != base]

    for link in leaves:
        if chain.get_link(link).is_tcp:
            return link

    if leaves:
        # in a tree, the ancestor count is the depth
        depths = {link: len(nx.ancestors(graph, link)) for link in leaves}
        max_depth = max(depths.values())
        return next(link for link in leaves if depths[link] == max_depth)

    return links[-1]


def resolve_end_effector(chain: SceneChain) -> str | None:
    """The end effector a chain declares (e.g. KinematicTree.end_effector), else the discovered one."""
    declared = getattr(chain, 'end_effector', None)
    if isinstance(declared, str) and declared:
        return declared
    return find_end_effector(chain)


def traversal_order(chain: SceneChain) -> list[str]:
    """Breadth-first link order from the base link; other roots follow."""
    links = chain.link_names()
    if not links:
        return []

    graph = chain_graph(chain)
    base = find_base_link(chain)
    order = list(nx.bfs_tree(graph, base)) if base is not None else []
    seen = set(order)
    for root in links:
        if root in seen or graph.in_degree(root) != 0:
            continue
        for link in nx.bfs_tree(graph, root):
            if link not in seen:
                order.append(link)
                seen.add(link)
    order.extend(link for link in links if link not in seen)
    return order


def movable_joints(chain: SceneChain, end_effector: str | None = None) -> list[str]:
    """
    Non-fixed joints the solver may adjust, ordered base -> tip.

    Restricted to the path from the base link to the end effector; when no
    such path exists, every non-fixed joint in traversal order.
    """
    graph = chain_graph(chain)
    base = find_base_link(chain)
    if end_effector is None:
        end_effector = resolve_end_effector(chain)

    if base is not None and end_effector is not None and nx.has_path(graph, base, end_effector):
        path = nx.shortest_path(graph, base, end_effector)
        joint_names = [graph.edges[u, v]['joint'] for u, v in zip(path[:-1], path[1:])]
    else:
        rank = {link: i for i, link in enumerate(traversal_order(chain))}
        joint_names = sorted(
            chain.joint_names(),
            key=lambda name: rank.get(chain.get_joint(name).child, len(rank)),
        )

    return [name for name in joint_names if chain.get_joint(name).is_movable]


# =============================================================================
# Reachability (advisory)
# =============================================================================

def estimate_max_reach(chain: SceneChain) -> float:
    """
    Sum of straight-line distances between consecutive movable joints,
    plus the distance from the last joint to the end effector.
    """
    joints = movable_joints(chain)
    if not joints:
        return 0.0

    positions = [chain.get_joint_world_position(name) for name in joints]
    total = sum(float(np.linalg.norm(b - a)) for a, b in zip(positions[:-1], positions[1:]))

    try:
        end_pos = chain.get_end_effector_world_position()
    except NoEndEffectorFound:
        return total
    return total + float(np.linalg.norm(end_pos - positions[-1]))


def is_target_reachable(target, chain: SceneChain) -> bool:
    """True iff the base-to-target distance does not exceed the estimated reach."""
    base = find_base_link(chain)
    if base is None:
        return False
    base_pos = chain.get_link_world_position(base)
    distance = float(np.linalg.norm(as_vector(target) - base_pos))
    return distance <= estimate_max_reach(chain)
