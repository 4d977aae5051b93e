"""
trajectory_store.py - Named trajectory storage with export/import.

An explicitly constructed store (no module-level singleton) so independent
sessions and tests never share trajectories.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any

from ik_tools.errors import InvalidTrajectoryDocument
from ik_tools.errors import TrajectoryNotFound
from ik_tools.trajectory_models import PathPoint
from ik_tools.trajectory_models import Trajectory
from ik_tools.trajectory_utils import parse_trajectory_document
from ik_tools.trajectory_utils import trajectory_to_document

logger = logging.getLogger(__name__)


class TrajectoryStore:
    """In-memory map of trajectory name -> Trajectory."""

    def __init__(self):
        self._trajectories: dict[str, Trajectory] = {}

    def __contains__(self, name: str) -> bool:
        return name in self._trajectories

    def __len__(self) -> int:
        return len(self._trajectories)

    def put(self, trajectory: Trajectory) -> None:
        """Store a private copy, replacing any existing trajectory with the same name."""
        if trajectory.name in self._trajectories:
            logger.info(f"Overwriting trajectory '{trajectory.name}'")
        self._trajectories[trajectory.name] = trajectory.model_copy(deep=True)

    def get(self, name: str) -> Trajectory | None:
        """A copy of the stored trajectory; edits to it never reach the store."""
        trajectory = self._trajectories.get(name)
        return trajectory.model_copy(deep=True) if trajectory is not None else None

    def require(self, name: str) -> Trajectory:
        trajectory = self.get(name)
        if trajectory is None:
            raise TrajectoryNotFound(f"Trajectory '{name}' not found")
        return trajectory

    def delete(self, name: str) -> bool:
        if self._trajectories.pop(name, None) is None:
            logger.warning(f"Cannot delete trajectory '{name}': not found")
            return False
        logger.info(f"Deleted trajectory '{name}'")
        return True

    def names(self) -> list[str]:
        return list(self._trajectories)

    def clear(self) -> None:
        self._trajectories.clear()

    def get_end_effector_path(self, name: str) -> list[PathPoint] | None:
        trajectory = self.get(name)
        return list(trajectory.end_effector_path) if trajectory is not None else None

    # -------------------------------------------------------------------------
    # Export / Import
    # -------------------------------------------------------------------------

    def export_document(self, name: str) -> dict[str, Any] | None:
        try:
            return trajectory_to_document(self.require(name))
        except TrajectoryNotFound as e:
            logger.warning(f'Export failed: {e}')
            return None

    def export_trajectory(self, name: str) -> str | None:
        """Serialized JSON document for `name`, or None when unknown."""
        document = self.export_document(name)
        if document is None:
            return None
        return json.dumps(document, indent=2)

    def import_trajectory(self, document) -> Trajectory | None:
        """Parse and store a document. Nothing is stored when it is invalid."""
        try:
            trajectory = parse_trajectory_document(document)
        except InvalidTrajectoryDocument as e:
            logger.warning(f'Import rejected: {e}')
            return None
        self.put(trajectory)
        logger.info(f"Imported trajectory '{trajectory.name}' ({trajectory.keyframe_count} keyframes)")
        return trajectory

    # -------------------------------------------------------------------------
    # Files
    # -------------------------------------------------------------------------

    def save_to_file(self, name: str, directory: str | Path, filename: str | None = None) -> Path | None:
        """Write the exported document as JSON under `directory`."""
        document = self.export_document(name)
        if document is None:
            return None

        directory = Path(directory)
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / (filename or f'{name}.json')
        with open(path, 'w') as f:
            json.dump(document, f, indent=2)
        logger.info(f"Saved trajectory '{name}' to {path}")
        return path

    def load_from_file(self, path: str | Path) -> Trajectory | None:
        path = Path(path)
        if not path.exists():
            logger.warning(f'Trajectory file not found: {path}')
            return None
        with open(path) as f:
            return self.import_trajectory(f.read())
