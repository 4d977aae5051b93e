"""
Shared fixtures: small robots and a controllable millisecond clock.
"""
from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from ik_tools.robot_model import KinematicTree  # noqa: E402


class FakeClock:
    """Millisecond clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> float:
        self.now += ms
        return self.now


def planar_description(j1_limit=None, j2_limit=None) -> dict:
    """
    2-joint planar arm: links of length 1.0 and 0.5 along local +X,
    both joints rotating about Z, base at the origin.
    """
    j1 = {'name': 'j1', 'type': 'revolute', 'parent': 'base_link', 'child': 'link1', 'axis': [0, 0, 1]}
    j2 = {
        'name': 'j2', 'type': 'revolute', 'parent': 'link1', 'child': 'link2',
        'origin_xyz': [1.0, 0, 0], 'axis': [0, 0, 1],
    }
    if j1_limit is not None:
        j1['limit'] = {'lower': j1_limit[0], 'upper': j1_limit[1]}
    if j2_limit is not None:
        j2['limit'] = {'lower': j2_limit[0], 'upper': j2_limit[1]}
    return {
        'name': 'planar',
        'links': [{'name': 'base_link'}, {'name': 'link1'}, {'name': 'link2'}, {'name': 'tcp'}],
        'joints': [
            j1,
            j2,
            {'name': 'tip', 'type': 'fixed', 'parent': 'link2', 'child': 'tcp', 'origin_xyz': [0.5, 0, 0]},
        ],
    }


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def planar_tree() -> KinematicTree:
    return KinematicTree.from_dict(planar_description())


@pytest.fixture
def limited_tree() -> KinematicTree:
    return KinematicTree.from_dict(planar_description(j1_limit=(-0.1, 0.1), j2_limit=(-0.5, 0.5)))


@pytest.fixture
def fixed_only_tree() -> KinematicTree:
    return KinematicTree.from_dict({
        'name': 'rigid',
        'links': [{'name': 'base_link'}, {'name': 'tcp'}],
        'joints': [{'name': 'weld', 'type': 'fixed', 'parent': 'base_link', 'child': 'tcp', 'origin_xyz': [1, 0, 0]}],
    })


@pytest.fixture
def slider_tree() -> KinematicTree:
    return KinematicTree.from_dict({
        'name': 'slider',
        'links': [{'name': 'base_link'}, {'name': 'carriage'}, {'name': 'tcp'}],
        'joints': [
            {'name': 'rail', 'type': 'prismatic', 'parent': 'base_link', 'child': 'carriage',
             'axis': [1, 0, 0], 'limit': {'lower': 0.0, 'upper': 2.0}},
            {'name': 'mount', 'type': 'fixed', 'parent': 'carriage', 'child': 'tcp'},
        ],
    })
