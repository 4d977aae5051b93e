"""
trajectory_models.py - Immutable keyframe and trajectory records.

Keyframes and path points are held in tuples; stores hand out deep copies
so joint-value mappings are never shared with callers.

Field names are snake_case in Python; documents use the camelCase aliases
(jointValues, endEffectorPosition, endEffectorPath). Both spellings are
accepted on input.
"""
from __future__ import annotations

from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator

from ik_tools.schemas import Position


def _whole_ms(value):
    if isinstance(value, float):
        return int(round(value))
    return value


class Keyframe(BaseModel):
    """A timestamped snapshot of joint values."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    timestamp: int = Field(ge=0, description='Milliseconds since recording start')
    joint_values: dict[str, float] = Field(default_factory=dict, alias='jointValues')
    end_effector_position: Optional[Position] = Field(default=None, alias='endEffectorPosition')

    @field_validator('timestamp', mode='before')
    @classmethod
    def validate_timestamp(cls, value):
        return _whole_ms(value)


class PathPoint(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    time: int = Field(ge=0)
    position: Position

    @field_validator('time', mode='before')
    @classmethod
    def validate_time(cls, value):
        return _whole_ms(value)


class Trajectory(BaseModel):
    """
    A named, ordered sequence of keyframes.

    `duration` is at least the largest keyframe timestamp; `end_effector_path` lists
    the end-effector positions captured with the keyframes.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str = Field(min_length=1)
    keyframes: tuple[Keyframe, ...] = ()
    duration: int = Field(default=0, ge=0)
    end_effector_path: tuple[PathPoint, ...] = Field(default=(), alias='endEffectorPath')

    @field_validator('duration', mode='before')
    @classmethod
    def validate_duration(cls, value):
        return _whole_ms(value)

    @model_validator(mode='after')
    def validate_order(self) -> Trajectory:
        timestamps = [kf.timestamp for kf in self.keyframes]
        if any(b < a for a, b in zip(timestamps, timestamps[1:])):
            raise ValueError(f"Keyframes of '{self.name}' are not in timestamp order")
        if timestamps and self.duration < timestamps[-1]:
            raise ValueError(
                f"Duration {self.duration} ms of '{self.name}' is shorter than its last keyframe "
                f'({timestamps[-1]} ms)',
            )
        return self

    @property
    def keyframe_count(self) -> int:
        return len(self.keyframes)

    @property
    def joint_names(self) -> list[str]:
        names: dict[str, None] = {}
        for keyframe in self.keyframes:
            names.update(dict.fromkeys(keyframe.joint_values))
        return list(names)
