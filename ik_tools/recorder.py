"""
recorder.py - Capture joint configurations as timestamped keyframes.

Keyframes are added either explicitly (record_keyframe) or by sampling an
attached chain every `sampling_interval_ms` (sample / tick, driven by a
FrameScheduler or any periodic timer).
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from typing import Callable

from configs.ik_config import MAX_RECORDED_KEYFRAMES
from ik_tools.activity import Activity
from ik_tools.activity import ActivityGuard
from ik_tools.chain import SceneChain
from ik_tools.errors import ConcurrentOperationConflict
from ik_tools.errors import NoEndEffectorFound
from ik_tools.scheduler import monotonic_ms
from ik_tools.schemas import as_vector
from ik_tools.schemas import Position
from ik_tools.trajectory_models import Keyframe
from ik_tools.trajectory_models import Trajectory
from ik_tools.trajectory_store import TrajectoryStore
from ik_tools.trajectory_utils import build_end_effector_path

logger = logging.getLogger(__name__)


class TrajectoryRecorder:
    """
    Idle -> Recording -> Idle.

    Stopping freezes the buffer into a Trajectory stored under the
    recording name (replacing any trajectory of that name).
    """

    def __init__(
        self,
        store: TrajectoryStore,
        guard: ActivityGuard | None = None,
        clock: Callable[[], float] = monotonic_ms,
        max_keyframes: int = MAX_RECORDED_KEYFRAMES,
    ):
        self.store = store
        self.guard = guard or ActivityGuard()
        self.clock = clock
        self.max_keyframes = max_keyframes
        self.on_update: Callable[[dict[str, Any]], None] | None = None
        self._reset()

    def _reset(self) -> None:
        self._name: str | None = None
        self._chain: SceneChain | None = None
        self._keyframes: list[Keyframe] = []
        self._duration = 0
        self._start_ms = 0.0
        self._interval_ms: float | None = None
        self._last_sample_ms: float | None = None

    @property
    def is_recording(self) -> bool:
        return self._name is not None

    @property
    def recording_name(self) -> str | None:
        return self._name

    @property
    def keyframe_count(self) -> int:
        return len(self._keyframes)

    @property
    def recording_duration_ms(self) -> int:
        return self._duration

    def start_recording(
        self,
        name: str,
        chain: SceneChain | None = None,
        sampling_interval_ms: float | None = None,
    ) -> bool:
        """
        Begin a new recording.

        Without a sampling interval, keyframes come only from explicit
        record_keyframe() calls. Rejected (False, state untouched) while a
        recording or playback is active.
        """
        if not name:
            logger.warning('Cannot start recording: a trajectory name is required')
            return False
        if sampling_interval_ms is not None and sampling_interval_ms <= 0:
            logger.warning(f'Cannot start recording: invalid sampling interval {sampling_interval_ms}')
            return False
        if sampling_interval_ms is not None and chain is None:
            logger.warning('Cannot start recording: sampling requires a chain')
            return False

        try:
            self.guard.acquire(Activity.RECORDING)
        except ConcurrentOperationConflict as e:
            logger.warning(f"Recording '{name}' rejected: {e}")
            return False

        self._reset()
        self._name = name
        self._chain = chain
        self._interval_ms = sampling_interval_ms
        self._start_ms = self.clock()
        logger.info(f"Started recording trajectory '{name}'")
        return True

    def record_keyframe(
        self,
        joint_values: Mapping[str, float] | None = None,
        timestamp_ms: float | None = None,
        end_effector_position=None,
    ) -> Keyframe | None:
        """
        Append one keyframe.

        Args:
            joint_values: Joint name -> value; read from the attached chain when omitted
            timestamp_ms: Time since recording start; from the clock when omitted
            end_effector_position: Optional position; read from the chain along
                with default joint values

        Returns:
            The stored Keyframe, or None when rejected
        """
        if not self.is_recording:
            logger.warning('Cannot record keyframe: not recording')
            return None

        if joint_values is None:
            if self._chain is None:
                logger.warning('Cannot record keyframe: no joint values and no chain attached')
                return None
            joint_values = self._chain.get_joint_values()
            if end_effector_position is None:
                try:
                    end_effector_position = self._chain.get_end_effector_world_position()
                except NoEndEffectorFound:
                    pass

        if timestamp_ms is None:
            timestamp_ms = self.clock() - self._start_ms
        timestamp = int(round(timestamp_ms))
        if timestamp < 0:
            logger.warning(f'Cannot record keyframe: negative timestamp {timestamp_ms}')
            return None
        if self._keyframes and timestamp < self._keyframes[-1].timestamp:
            logger.warning(
                f'Cannot record keyframe: timestamp {timestamp} precedes '
                f'the previous keyframe ({self._keyframes[-1].timestamp})',
            )
            return None

        position = None
        if end_effector_position is not None:
            position = Position.from_array(as_vector(end_effector_position))

        keyframe = Keyframe(
            timestamp=timestamp,
            joint_values={name: float(value) for name, value in joint_values.items()},
            end_effector_position=position,
        )
        self._keyframes.append(keyframe)
        self._duration = max(self._duration, timestamp)
        self._notify()

        if len(self._keyframes) >= self.max_keyframes:
            logger.warning(f'Recording reached {self.max_keyframes} keyframes, stopping')
            self.stop_recording()
        return keyframe

    def sample(self, now_ms: float | None = None) -> Keyframe | None:
        """Capture from the attached chain unless the sampling interval has not elapsed."""
        if not self.is_recording or self._chain is None:
            return None
        now = self.clock() if now_ms is None else now_ms
        if (
            self._interval_ms is not None
            and self._last_sample_ms is not None
            and now - self._last_sample_ms < self._interval_ms
        ):
            return None
        self._last_sample_ms = now
        return self.record_keyframe(timestamp_ms=max(0.0, now - self._start_ms))

    def tick(self, now_ms: float | None = None) -> bool:
        """Per-frame hook: samples when an interval is set. False once recording ends."""
        if not self.is_recording:
            return False
        if self._interval_ms is not None:
            self.sample(now_ms)
        return self.is_recording

    def stop_recording(self) -> Trajectory | None:
        """Freeze and store the recording. None when not recording."""
        if not self.is_recording:
            logger.debug('stop_recording called while idle')
            return None

        trajectory = Trajectory(
            name=self._name,
            keyframes=list(self._keyframes),
            duration=self._duration,
            end_effector_path=build_end_effector_path(self._keyframes),
        )
        self.store.put(trajectory)
        self._reset()
        self.guard.release(Activity.RECORDING)
        logger.info(
            f"Stopped recording '{trajectory.name}': {trajectory.keyframe_count} keyframes, "
            f'{trajectory.duration} ms',
        )
        return trajectory

    def _notify(self) -> None:
        if self.on_update is None:
            return
        self.on_update({
            'trajectory_name': self._name,
            'keyframe_count': len(self._keyframes),
            'duration': self._duration,
        })
