"""
errors.py - Error taxonomy for IK solving and trajectory handling.

All of these are recoverable at the public call boundary: the boundary
catches them, logs, and reports via a None/False return.
"""
from __future__ import annotations


class IKToolsError(Exception):
    """Base class for ik_tools errors."""


class NoEndEffectorFound(IKToolsError):
    """The chain has no links, or no end-effector candidate could be identified."""


class ConcurrentOperationConflict(IKToolsError):
    """An operation was requested while a conflicting one drives the chain."""


class InvalidTrajectoryDocument(IKToolsError, ValueError):
    """A trajectory document could not be parsed or failed validation."""


class TrajectoryNotFound(IKToolsError, KeyError):
    """No trajectory is stored under the requested name."""

    def __str__(self) -> str:
        # KeyError quotes its argument
        return str(self.args[0]) if self.args else ''


class UnreachableTargetWarning(UserWarning):
    """Advisory: the target lies beyond the chain's estimated reach."""
