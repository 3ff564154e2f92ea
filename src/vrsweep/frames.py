"""
Scene frame module.

Provides a minimal transform hierarchy for the harness:
- Frames with a local pose relative to an optional parent frame
- World pose get/set, resolved through the parent chain on every access
- Point transforms between a frame's local space and world space
- Re-parenting while keeping the world pose

Scale is not modelled; every frame is a rigid transform.
"""

from typing import Optional, Dict, Any
from dataclasses import dataclass

import numpy as np
from scipy.spatial.transform import Rotation


def _vec3(value) -> np.ndarray:
    vec = np.asarray(value, dtype=np.float64).reshape(3)
    return vec.copy()


@dataclass
class Pose:
    """Position and orientation of a frame in some reference space."""
    position: np.ndarray  # 3D position
    rotation: Rotation

    @classmethod
    def identity(cls) -> "Pose":
        return cls(position=np.zeros(3), rotation=Rotation.identity())

    @property
    def quaternion(self) -> np.ndarray:
        """Rotation as [x, y, z, w]."""
        return self.rotation.as_quat()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "position": self.position.tolist(),
            "quaternion": self.quaternion.tolist(),
        }


class Frame:
    """
    A node in the scene transform hierarchy.

    The world pose is never cached: it is recomputed from the parent chain
    each time it is read, so a moving or re-parented parent is always seen
    in its current state.

    Usage:
        anchor = Frame("anchor", position=[0, 0, 2])
        head = Frame("head", parent=anchor)
        head.position = [0.1, 1.6, 2.0]     # world space
        local = anchor.inverse_transform_point(head.position)
    """

    def __init__(
        self,
        name: str = "frame",
        position=None,
        rotation: Optional[Rotation] = None,
        parent: Optional["Frame"] = None
    ):
        """
        Initialize a frame.

        Args:
            name: Display name used in logs
            position: Local position relative to the parent (default origin)
            rotation: Local rotation relative to the parent (default identity)
            parent: Optional parent frame
        """
        self.name = name
        self.parent = parent
        self.local_position = np.zeros(3) if position is None else _vec3(position)
        self.local_rotation = Rotation.identity() if rotation is None else rotation

    def __repr__(self) -> str:
        pos = self.position
        return f"Frame({self.name!r}, position=({pos[0]:.4f}, {pos[1]:.4f}, {pos[2]:.4f}))"

    @property
    def position(self) -> np.ndarray:
        """World-space position."""
        if self.parent is None:
            return self.local_position.copy()
        return self.parent.transform_point(self.local_position)

    @position.setter
    def position(self, value) -> None:
        if self.parent is None:
            self.local_position = _vec3(value)
        else:
            self.local_position = self.parent.inverse_transform_point(value)

    @property
    def rotation(self) -> Rotation:
        """World-space rotation."""
        if self.parent is None:
            return self.local_rotation
        return self.parent.rotation * self.local_rotation

    @rotation.setter
    def rotation(self, value: Rotation) -> None:
        if self.parent is None:
            self.local_rotation = value
        else:
            self.local_rotation = self.parent.rotation.inv() * value

    def transform_point(self, point) -> np.ndarray:
        """Map a point from this frame's local space to world space."""
        return self.rotation.apply(_vec3(point)) + self.position

    def inverse_transform_point(self, point) -> np.ndarray:
        """Map a world-space point into this frame's local space."""
        return self.rotation.inv().apply(_vec3(point) - self.position)

    def get_world_pose(self) -> Pose:
        return Pose(position=self.position, rotation=self.rotation)

    def set_world_pose(self, pose: Pose) -> None:
        # Rotation first so the position is resolved against the final parent state
        self.rotation = pose.rotation
        self.position = pose.position

    def get_local_pose(self) -> Pose:
        return Pose(position=self.local_position.copy(), rotation=self.local_rotation)

    def set_local_pose(self, pose: Pose) -> None:
        self.local_position = _vec3(pose.position)
        self.local_rotation = pose.rotation

    def reset_local(self) -> None:
        """Move to the parent's origin with identity local orientation."""
        self.local_position = np.zeros(3)
        self.local_rotation = Rotation.identity()

    def set_parent(self, parent: Optional["Frame"], keep_world: bool = True) -> None:
        """
        Attach this frame to a new parent.

        Args:
            parent: New parent frame (None to detach)
            keep_world: Preserve the current world pose instead of the local pose
        """
        node = parent
        while node is not None:
            if node is self:
                raise ValueError(f"Cannot parent {self.name!r} under its own descendant")
            node = node.parent

        world = self.get_world_pose()
        self.parent = parent
        if keep_world:
            self.set_world_pose(world)
