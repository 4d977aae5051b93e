"""
scheduler.py - Cooperative per-frame task scheduling.

Time-based components (animations, playback, sampling recorders) expose
`tick(now_ms) -> bool` and return False once finished. The host calls
FrameScheduler.step() once per rendered frame; headless callers (backend,
demos, tests) use run_until_idle() which advances a virtual frame clock.

All times are milliseconds.
"""
from __future__ import annotations

import logging
import time
from typing import Callable
from typing import Protocol

from configs.ik_config import DEFAULT_FRAME_INTERVAL_MS

logger = logging.getLogger(__name__)


def monotonic_ms() -> float:
    """Default millisecond clock."""
    return time.monotonic() * 1000.0


class FrameTask(Protocol):
    def tick(self, now_ms: float | None = None) -> bool: ...


class FrameScheduler:
    """
    Ticks registered tasks once per frame and drops the finished ones.

    A task that finishes during a step and is re-added in the same step
    (e.g. a looping demo restarting playback from its completion callback)
    stays registered.
    """

    def __init__(self, clock: Callable[[], float] = monotonic_ms):
        self.clock = clock
        self._tasks: list[FrameTask] = []
        self._readded: set[int] = set()
        self.frame_count = 0

    def add(self, task: FrameTask) -> FrameTask:
        if any(t is task for t in self._tasks):
            self._readded.add(id(task))
        else:
            self._tasks.append(task)
        return task

    def remove(self, task: FrameTask) -> None:
        self._tasks = [t for t in self._tasks if t is not task]

    def clear(self) -> None:
        self._tasks.clear()

    def __len__(self) -> int:
        return len(self._tasks)

    @property
    def idle(self) -> bool:
        return not self._tasks

    def step(self, now_ms: float | None = None) -> int:
        """Tick every task once. Returns the number of tasks still registered."""
        now = self.clock() if now_ms is None else now_ms
        self._readded = set()
        finished = [task for task in list(self._tasks) if not task.tick(now)]
        for task in finished:
            if id(task) not in self._readded:
                self.remove(task)
        self._readded = set()
        self.frame_count += 1
        return len(self._tasks)

    def run_until_idle(
        self,
        frame_interval_ms: float = DEFAULT_FRAME_INTERVAL_MS,
        max_frames: int = 100_000,
        sleep: Callable[[float], None] | None = None,
    ) -> int:
        """
        Drive tasks until none remain or max_frames is reached.

        Without `sleep`, frame times are virtual: clock() at the first frame
        plus frame_interval_ms per frame, so no wall time passes. With
        `sleep` (e.g. time.sleep), frames wait in real time and read the clock.

        Returns:
            Number of frames stepped
        """
        start = self.clock()
        frames = 0
        while self._tasks and frames < max_frames:
            if sleep is None:
                self.step(start + frames * frame_interval_ms)
            else:
                sleep(frame_interval_ms / 1000.0)
                self.step()
            frames += 1

        if self._tasks:
            logger.warning(f'Scheduler stopped after {frames} frames with {len(self._tasks)} tasks pending')
        return frames
