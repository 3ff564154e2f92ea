import sys
from pathlib import Path

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from vrsweep.frames import Frame, Pose


def _angle_between(a: Rotation, b: Rotation) -> float:
    return float((a.inv() * b).magnitude())


def test_transform_point_round_trip() -> None:
    anchor = Frame("anchor", position=[1.0, 2.0, 3.0], rotation=Rotation.from_euler("y", 90, degrees=True))

    world = anchor.transform_point([1.0, 0.0, 0.0])
    # +x in anchor space points along -z in world after a 90 deg yaw
    assert np.allclose(world, [1.0, 2.0, 2.0])
    assert np.allclose(anchor.inverse_transform_point(world), [1.0, 0.0, 0.0])


def test_child_follows_moving_parent() -> None:
    parent = Frame("parent")
    child = Frame("child", position=[0.0, 0.0, 1.0], parent=parent)

    assert np.allclose(child.position, [0.0, 0.0, 1.0])

    parent.position = [5.0, 0.0, 0.0]
    parent.rotation = Rotation.from_euler("z", 90, degrees=True)

    assert np.allclose(child.position, [5.0, 0.0, 1.0])
    assert _angle_between(child.rotation, parent.rotation) < 1e-12


def test_world_pose_setter_resolves_through_parent() -> None:
    parent = Frame("parent", position=[1.0, 0.0, 0.0], rotation=Rotation.from_euler("x", 30, degrees=True))
    child = Frame("child", parent=parent)
    target = Pose(position=np.array([0.0, 4.0, -2.0]), rotation=Rotation.from_euler("xyz", [10, 20, 30], degrees=True))

    child.set_world_pose(target)

    assert np.allclose(child.position, target.position)
    assert _angle_between(child.rotation, target.rotation) < 1e-9


def test_set_parent_keeps_world_pose() -> None:
    frame = Frame("frame", position=[1.0, 1.0, 1.0])
    new_parent = Frame("parent", position=[-2.0, 0.0, 0.0], rotation=Rotation.from_euler("y", 45, degrees=True))

    frame.set_parent(new_parent)

    assert frame.parent is new_parent
    assert np.allclose(frame.position, [1.0, 1.0, 1.0])

    frame.set_parent(None, keep_world=False)
    assert not np.allclose(frame.position, [1.0, 1.0, 1.0])


def test_set_parent_rejects_cycles() -> None:
    root = Frame("root")
    child = Frame("child", parent=root)

    with pytest.raises(ValueError):
        root.set_parent(child)


def test_reset_local_moves_to_parent_origin() -> None:
    parent = Frame("parent", position=[3.0, 0.0, 0.0])
    child = Frame("child", position=[1.0, 1.0, 1.0], rotation=Rotation.from_euler("z", 10, degrees=True), parent=parent)

    child.reset_local()

    assert np.allclose(child.position, [3.0, 0.0, 0.0])
    assert child.local_rotation.magnitude() == pytest.approx(0.0)
