"""
Relative pose samples and the recording line format.

A sample stores the pose of a moving frame expressed in an anchor frame's
local coordinates, so a recording can be replayed against an anchor that
sits somewhere else in the scene.

Line format (no header, '.' decimal separator):
    timestamp,px,py,pz,rx,ry,rz,rw
"""

from typing import Dict, Any, Iterable, Sequence, Tuple
from dataclasses import dataclass

import numpy as np
from scipy.spatial.transform import Rotation


FIELD_COUNT = 8


def format_number(value) -> str:
    """Shortest round-trip representation, independent of locale."""
    return repr(float(value))


@dataclass(frozen=True, eq=False)
class RelativePoseSample:
    """One timestamped anchor-relative pose."""
    timestamp: float  # seconds of session time
    position: np.ndarray  # 3D position in anchor space
    rotation: np.ndarray  # unit quaternion [x, y, z, w] relative to the anchor

    def __post_init__(self):
        position = np.array(self.position, dtype=np.float64).reshape(3)
        quat = np.array(self.rotation, dtype=np.float64).reshape(4)
        timestamp = float(self.timestamp)

        if not np.isfinite(timestamp):
            raise ValueError(f"timestamp must be finite, got {timestamp}")
        if not np.all(np.isfinite(position)):
            raise ValueError("position must be finite")
        norm = float(np.linalg.norm(quat))
        if not np.isfinite(norm) or norm < 1e-12:
            raise ValueError("rotation must be a non-zero finite quaternion")

        quat = quat / norm
        position.flags.writeable = False
        quat.flags.writeable = False

        object.__setattr__(self, "timestamp", timestamp)
        object.__setattr__(self, "position", position)
        object.__setattr__(self, "rotation", quat)

    @classmethod
    def from_rotation(cls, timestamp: float, position, rotation: Rotation) -> "RelativePoseSample":
        return cls(timestamp=timestamp, position=position, rotation=rotation.as_quat())

    def as_rotation(self) -> Rotation:
        return Rotation.from_quat(self.rotation)

    def to_line(self) -> str:
        values = [self.timestamp, *self.position, *self.rotation]
        return ",".join(format_number(v) for v in values)

    @classmethod
    def from_line(cls, line: str) -> "RelativePoseSample":
        """
        Parse one recording line.

        Raises:
            ValueError: If the line does not hold exactly 8 finite numbers
                or the quaternion is degenerate
        """
        timestamp, position, quat = parse_fields(line)
        return cls(timestamp=timestamp, position=position, rotation=quat)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "position": self.position.tolist(),
            "quaternion": self.rotation.tolist(),
        }


Trajectory = Tuple[RelativePoseSample, ...]


def parse_fields(line: str) -> Tuple[float, np.ndarray, np.ndarray]:
    """Split a recording line into (timestamp, position, raw quaternion)."""
    fields = [f.strip() for f in line.strip().split(",")]
    if len(fields) != FIELD_COUNT:
        raise ValueError(f"expected {FIELD_COUNT} fields, got {len(fields)}")

    try:
        values = [float(f) for f in fields]
    except ValueError:
        raise ValueError(f"non-numeric field in {fields!r}") from None

    if not all(np.isfinite(values)):
        raise ValueError("non-finite value")

    return values[0], np.array(values[1:4]), np.array(values[4:8])


def sort_samples(samples: Iterable[RelativePoseSample]) -> Trajectory:
    """Stable sort by timestamp; equal timestamps keep their file order."""
    return tuple(sorted(samples, key=lambda s: s.timestamp))


def trajectory_duration(trajectory: Sequence[RelativePoseSample]) -> float:
    if len(trajectory) < 2:
        return 0.0
    return trajectory[-1].timestamp - trajectory[0].timestamp
