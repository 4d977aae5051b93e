"""
trajectory_api.py - Application-facing trajectory record/playback facade.

TrajectoryManager owns one store, recorder and player that share an
activity guard (normally the same guard as the chain's IKController).
When a FrameScheduler is given, sampling recorders and players are
registered with it automatically; otherwise call tick() once per frame.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any
from typing import Callable

from ik_tools.activity import ActivityGuard
from ik_tools.chain import SceneChain
from ik_tools.player import PlaybackState
from ik_tools.player import TrajectoryPlayer
from ik_tools.recorder import TrajectoryRecorder
from ik_tools.scheduler import FrameScheduler
from ik_tools.scheduler import monotonic_ms
from ik_tools.trajectory_models import Keyframe
from ik_tools.trajectory_models import PathPoint
from ik_tools.trajectory_models import Trajectory
from ik_tools.trajectory_store import TrajectoryStore
from ik_tools.trajectory_utils import TrajectoryAnalysis
from ik_tools.trajectory_utils import analyze_trajectory

logger = logging.getLogger(__name__)


class TrajectoryManager:
    """
    Usage:
        manager = TrajectoryManager(guard=controller.guard, scheduler=scheduler)
        manager.start_recording('wave')
        manager.record_keyframe({'j1': 0.0}, timestamp_ms=0)
        manager.record_keyframe({'j1': 1.0}, timestamp_ms=200)
        manager.stop_recording()
        manager.play_trajectory('wave', tree, speed=2.0)
        scheduler.run_until_idle()
    """

    def __init__(
        self,
        store: TrajectoryStore | None = None,
        guard: ActivityGuard | None = None,
        scheduler: FrameScheduler | None = None,
        clock: Callable[[], float] = monotonic_ms,
    ):
        self.store = store or TrajectoryStore()
        self.guard = guard or ActivityGuard()
        self.scheduler = scheduler
        self.recorder = TrajectoryRecorder(self.store, guard=self.guard, clock=clock)
        self.player = TrajectoryPlayer(self.store, guard=self.guard, clock=clock)

    # -------------------------------------------------------------------------
    # Recording
    # -------------------------------------------------------------------------

    @property
    def is_recording(self) -> bool:
        return self.recorder.is_recording

    def start_recording(
        self,
        name: str,
        chain: SceneChain | None = None,
        sampling_interval_ms: float | None = None,
    ) -> bool:
        started = self.recorder.start_recording(name, chain=chain, sampling_interval_ms=sampling_interval_ms)
        if started and sampling_interval_ms is not None and self.scheduler is not None:
            self.scheduler.add(self.recorder)
        return started

    def record_keyframe(
        self,
        joint_values: Mapping[str, float] | None = None,
        timestamp_ms: float | None = None,
        end_effector_position=None,
    ) -> Keyframe | None:
        return self.recorder.record_keyframe(joint_values, timestamp_ms, end_effector_position)

    def stop_recording(self) -> Trajectory | None:
        return self.recorder.stop_recording()

    def on_record_update(self, callback: Callable[[dict[str, Any]], None] | None) -> None:
        self.recorder.on_update = callback

    # -------------------------------------------------------------------------
    # Playback
    # -------------------------------------------------------------------------

    @property
    def is_playing(self) -> bool:
        return self.player.is_playing

    @property
    def playback_state(self) -> PlaybackState | None:
        return self.player.state

    def play_trajectory(
        self,
        name: str,
        chain: SceneChain,
        speed: float = 1.0,
        loop: bool = False,
        on_complete: Callable[[], None] | None = None,
    ) -> bool:
        started = self.player.play(name, chain, speed=speed, loop=loop, on_complete=on_complete)
        if started and self.scheduler is not None:
            self.scheduler.add(self.player)
        return started

    def stop_playback(self) -> bool:
        return self.player.stop()

    def on_playback_update(self, callback: Callable[[dict[str, Any]], None] | None) -> None:
        self.player.on_update = callback

    def tick(self, now_ms: float | None = None) -> None:
        """Advance recorder sampling and playback by one frame (when no scheduler drives them)."""
        self.recorder.tick(now_ms)
        self.player.tick(now_ms)

    # -------------------------------------------------------------------------
    # Storage
    # -------------------------------------------------------------------------

    def get_trajectory(self, name: str) -> Trajectory | None:
        return self.store.get(name)

    def get_trajectory_names(self) -> list[str]:
        return self.store.names()

    def get_end_effector_path(self, name: str) -> list[PathPoint] | None:
        return self.store.get_end_effector_path(name)

    def delete_trajectory(self, name: str) -> bool:
        return self.store.delete(name)

    def export_trajectory(self, name: str) -> str | None:
        return self.store.export_trajectory(name)

    def import_trajectory(self, document) -> Trajectory | None:
        return self.store.import_trajectory(document)

    def analyze_trajectory(self, name: str) -> TrajectoryAnalysis | None:
        trajectory = self.store.get(name)
        if trajectory is None:
            logger.warning(f"Cannot analyze trajectory '{name}': not found")
            return None
        return analyze_trajectory(trajectory)
