"""
activity.py - Mutual exclusion between the operations that drive a chain.

Recording, playback and IK animation all touch the chain's joint values.
One ActivityGuard is shared by everything driving the same chain; it
replaces per-component boolean flags with a single conflict table.
"""
from __future__ import annotations

import logging
from collections import Counter
from enum import Enum

from ik_tools.errors import ConcurrentOperationConflict

logger = logging.getLogger(__name__)


class Activity(str, Enum):
    RECORDING = 'recording'
    PLAYBACK = 'playback'
    ANIMATION = 'animation'


CONFLICTS: dict[Activity, frozenset[Activity]] = {
    Activity.RECORDING: frozenset({Activity.RECORDING, Activity.PLAYBACK}),
    Activity.PLAYBACK: frozenset({Activity.RECORDING, Activity.PLAYBACK, Activity.ANIMATION}),
    Activity.ANIMATION: frozenset({Activity.PLAYBACK}),
}


class ActivityGuard:
    """
    Tracks active operations and rejects conflicting starts.

    Holders are counted: several controllers may hold ANIMATION at once, and
    the activity stays active until each of them has released it.
    """

    def __init__(self):
        self._holders: Counter[Activity] = Counter()

    @property
    def active(self) -> frozenset[Activity]:
        return frozenset(self._holders)

    def holder_count(self, activity: Activity) -> int:
        return self._holders[Activity(activity)]

    def is_active(self, activity: Activity | None = None) -> bool:
        if activity is None:
            return bool(self._holders)
        return Activity(activity) in self._holders

    def conflicts_with(self, activity: Activity) -> frozenset[Activity]:
        return CONFLICTS[Activity(activity)] & self.active

    def can_start(self, activity: Activity) -> bool:
        return not self.conflicts_with(activity)

    def acquire(self, activity: Activity) -> None:
        """
        Add a holder for an activity.

        Raises:
            ConcurrentOperationConflict: a conflicting activity is already active
        """
        activity = Activity(activity)
        blocking = self.conflicts_with(activity)
        if blocking:
            names = ', '.join(sorted(a.value for a in blocking))
            raise ConcurrentOperationConflict(f'Cannot start {activity.value} while {names} is active')
        self._holders[activity] += 1
        logger.debug(f'Activity started: {activity.value} ({self._holders[activity]} holders)')

    def release(self, activity: Activity) -> None:
        """Drop one holder; releasing an inactive activity does nothing."""
        activity = Activity(activity)
        if activity not in self._holders:
            return
        self._holders[activity] -= 1
        if self._holders[activity] <= 0:
            del self._holders[activity]
            logger.debug(f'Activity ended: {activity.value}')
