"""
player.py - Replay stored trajectories onto a chain.

Each tick maps wall time to trajectory time,

    elapsed      = (now - start) * speed
    current_time = elapsed mod duration        (looping)
                 = min(elapsed, duration)      (otherwise)

samples the trajectory there and writes the joint values to the chain.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any
from typing import Callable
from typing import Optional

from ik_tools.activity import Activity
from ik_tools.activity import ActivityGuard
from ik_tools.chain import SceneChain
from ik_tools.errors import ConcurrentOperationConflict
from ik_tools.errors import TrajectoryNotFound
from ik_tools.scheduler import monotonic_ms
from ik_tools.schemas import Position
from ik_tools.trajectory_models import Trajectory
from ik_tools.trajectory_store import TrajectoryStore
from ik_tools.trajectory_utils import sample_trajectory

logger = logging.getLogger(__name__)


@dataclass
class PlaybackState:
    trajectory_name: str
    start_ms: float
    speed: float = 1.0
    loop: bool = False
    current_time: float = 0.0
    current_position: Optional[Position] = None

    def to_dict(self) -> dict:
        return {
            'trajectory_name': self.trajectory_name,
            'start_ms': self.start_ms,
            'speed': self.speed,
            'loop': self.loop,
            'current_time': self.current_time,
            'current_position': self.current_position.model_dump() if self.current_position else None,
        }


class TrajectoryPlayer:
    """Idle -> Playing -> {Idle | Looping -> Playing}."""

    def __init__(
        self,
        store: TrajectoryStore,
        guard: ActivityGuard | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.store = store
        self.guard = guard or ActivityGuard()
        self.clock = clock
        self.on_update: Callable[[dict[str, Any]], None] | None = None
        self._state: PlaybackState | None = None
        self._trajectory: Trajectory | None = None
        self._chain: SceneChain | None = None
        self._on_complete: Callable[[], None] | None = None

    @property
    def state(self) -> PlaybackState | None:
        return self._state

    @property
    def is_playing(self) -> bool:
        return self._state is not None

    def play(
        self,
        name: str,
        chain: SceneChain,
        speed: float = 1.0,
        loop: bool = False,
        on_complete: Callable[[], None] | None = None,
    ) -> bool:
        """Start playback; the first frame is applied immediately."""
        if not (speed > 0 and math.isfinite(speed)):
            logger.warning(f'Cannot play trajectory: speed must be positive, got {speed}')
            return False
        try:
            trajectory = self.store.require(name)
        except TrajectoryNotFound as e:
            logger.warning(f'Cannot play trajectory: {e}')
            return False
        if not trajectory.keyframes:
            logger.warning(f"Cannot play trajectory '{name}': it has no keyframes")
            return False

        try:
            self.guard.acquire(Activity.PLAYBACK)
        except ConcurrentOperationConflict as e:
            logger.warning(f"Playback of '{name}' rejected: {e}")
            return False

        self._trajectory = trajectory
        self._chain = chain
        self._on_complete = on_complete
        self._state = PlaybackState(trajectory_name=name, start_ms=self.clock(), speed=speed, loop=loop)
        logger.info(
            f"Playing trajectory '{name}' ({trajectory.keyframe_count} keyframes, "
            f'{trajectory.duration} ms, speed={speed}, loop={loop})',
        )
        self._apply(0.0)
        return True

    def tick(self, now_ms: float | None = None) -> bool:
        """Apply the frame for `now_ms`. Returns False once playback has ended."""
        state = self._state
        if state is None:
            return False

        now = self.clock() if now_ms is None else now_ms
        elapsed = max(0.0, (now - state.start_ms) * state.speed)
        duration = self._trajectory.duration

        if not state.loop and elapsed >= duration:
            self._apply(float(duration))
            on_complete = self._on_complete
            name = state.trajectory_name
            self._finish()
            logger.info(f"Playback of '{name}' completed")
            if on_complete is not None:
                on_complete()
            return False

        if state.loop:
            current = elapsed % duration if duration > 0 else 0.0
        else:
            current = min(elapsed, float(duration))
        self._apply(current)
        return True

    def stop(self) -> bool:
        """Cancel playback. True only when a playback was actually stopped."""
        if self._state is None:
            return False
        name = self._state.trajectory_name
        self._finish()
        logger.info(f"Stopped playback of '{name}'")
        return True

    def _apply(self, time_ms: float) -> None:
        sample = sample_trajectory(self._trajectory, time_ms)
        self._chain.set_joint_values(sample.joint_values)
        self._state.current_time = time_ms
        self._state.current_position = sample.end_effector_position
        self._notify()

    def _finish(self) -> None:
        self._state = None
        self._trajectory = None
        self._chain = None
        self._on_complete = None
        self.guard.release(Activity.PLAYBACK)

    def _notify(self) -> None:
        if self.on_update is None:
            return
        state = self._state
        duration = self._trajectory.duration
        position = state.current_position
        self.on_update({
            'trajectory_name': state.trajectory_name,
            'current_time': state.current_time,
            'duration': duration,
            'progress': state.current_time / duration if duration > 0 else 1.0,
            'end_effector_position': position.model_dump() if position else None,
        })
