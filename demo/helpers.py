"""
Shared utilities for demo scripts.

This module provides common functions used across demos:
- Robot loading from test_robots/
- Formatted output helpers
"""
from __future__ import annotations

import json

from configs.appconfig import ROBOTS_DIR
from ik_tools.robot_model import KinematicTree


# =============================================================================
# ROBOT REGISTRY
# =============================================================================
# Bundled robots with a reachable demo target each.

ROBOTS = {
    'planar': {
        'file': ROBOTS_DIR / 'planar_2link.json',
        'target': (1.2, 0.3, 0.0),
        'description': 'Planar 2-link arm (links 1.0 and 0.5, 2 DOF)',
    },
    'arm6': {
        'file': ROBOTS_DIR / 'arm_6dof.json',
        'target': (0.35, 0.2, 0.55),
        'description': '6-DOF articulated arm with joint limits',
    },
}


def load_robot(robot_type: str) -> tuple[KinematicTree, tuple, str]:
    """
    Load a robot from test_robots/.

    Args:
        robot_type: One of 'planar', 'arm6'

    Returns:
        (tree, demo_target, description)

    Raises:
        ValueError: If robot_type is unknown
        FileNotFoundError: If the robot file doesn't exist
    """
    if robot_type not in ROBOTS:
        available = list(ROBOTS.keys())
        raise ValueError(f"Unknown robot '{robot_type}'. Available: {available}")

    config = ROBOTS[robot_type]
    json_path = config['file']

    if not json_path.exists():
        raise FileNotFoundError(f'Robot file not found: {json_path}')

    with open(json_path) as f:
        description = json.load(f)

    return KinematicTree.from_dict(description), config['target'], config['description']


def format_angles(values: dict[str, float]) -> str:
    return ', '.join(f'{name}={value:+.3f}' for name, value in values.items())


def print_section(title: str, width: int = 70):
    """Print a formatted section header."""
    print('\n' + '=' * width)
    print(f'  {title}')
    print('=' * width)
