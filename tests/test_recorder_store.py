"""
Recording and loading of movement logs.
"""

import os
import sys
from datetime import datetime
from pathlib import Path

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from vrsweep.errors import NotFoundError, ParseError, InsufficientDataError, WriteFailure
from vrsweep.frames import Frame, Pose
from vrsweep.recorder import MovementRecorder
from vrsweep.scheduler import FrameClock
from vrsweep.store import TrajectoryStore, list_recordings, validate_recording


FIXED_NOW = datetime(2024, 5, 1, 12, 30, 0)


class _Indicator:
    active = False


def _random_poses(n: int, seed: int = 0) -> list:
    rng = np.random.default_rng(seed)
    return [
        Pose(position=rng.uniform(-2.0, 2.0, size=3), rotation=Rotation.from_rotvec(rng.uniform(-2.0, 2.0, size=3)))
        for i in range(n)
    ]


def _write(path: Path, lines: list) -> Path:
    path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    return path


def test_record_then_load_round_trip(tmp_path) -> None:
    anchor = Frame("anchor", position=[1.0, 0.0, 2.0], rotation=Rotation.from_euler("y", 90, degrees=True))
    camera = Frame("camera")
    recorder = MovementRecorder(camera, anchor, output_dir=str(tmp_path), now=lambda: FIXED_NOW)
    clock = FrameClock()
    poses = _random_poses(20)

    recorder.arm()
    for pose in poses:
        clock.advance(1.0 / 72.0)
        camera.set_world_pose(pose)
        recorder.update(clock)
    meta = recorder.disarm()

    assert meta["sample_count"] == 20
    assert Path(meta["log_file"]).name == "MovementData_2024-05-01_12-30-00.csv"

    trajectory = TrajectoryStore().load_latest(str(tmp_path))
    assert len(trajectory) == 20

    timestamps = [s.timestamp for s in trajectory]
    assert timestamps == sorted(timestamps)

    for sample, pose in zip(trajectory, poses):
        world_pos = anchor.transform_point(sample.position)
        world_rot = anchor.rotation * sample.as_rotation()
        assert np.allclose(world_pos, pose.position, atol=1e-9)
        assert (world_rot.inv() * pose.rotation).magnitude() < 1e-6


def test_file_body_format(tmp_path) -> None:
    anchor = Frame("anchor")
    camera = Frame("camera")
    recorder = MovementRecorder(camera, anchor, output_dir=str(tmp_path), now=lambda: FIXED_NOW)
    clock = FrameClock()

    recorder.arm()
    camera.position = [0.5, 1.5, -0.25]
    clock.advance(0.5)
    recorder.update(clock)
    meta = recorder.disarm()

    lines = Path(meta["log_file"]).read_text(encoding="utf-8").splitlines()
    assert len(lines) == 1
    assert " " not in lines[0]
    assert [float(v) for v in lines[0].split(",")] == [0.5, 0.5, 1.5, -0.25, 0.0, 0.0, 0.0, 1.0]


def test_arm_and_disarm_are_idempotent(tmp_path) -> None:
    anchor = Frame("anchor", position=[0.0, 0.0, 3.0])
    camera = Frame("camera", position=[9.0, 9.0, 9.0])
    indicator = _Indicator()
    recorder = MovementRecorder(camera, anchor, output_dir=str(tmp_path), indicator=indicator)
    clock = FrameClock()

    assert recorder.disarm() == {"status": "not_recording"}

    recorder.arm()
    assert indicator.active
    # Armed recording resets the moving frame onto the anchor
    assert np.allclose(camera.position, anchor.position)

    for _ in range(3):
        clock.advance(0.1)
        recorder.update(clock)
    recorder.arm()
    assert recorder.sample_count == 3

    recorder.disarm()
    assert not indicator.active
    assert not recorder.is_recording
    assert recorder.sample_count == 0
    assert recorder.disarm() == {"status": "not_recording"}


def test_update_while_idle_records_nothing(tmp_path) -> None:
    recorder = MovementRecorder(Frame("camera"), Frame("anchor"), output_dir=str(tmp_path))
    clock = FrameClock()
    clock.advance(0.1)
    recorder.update(clock)
    assert recorder.sample_count == 0


def test_write_failure_is_reported_not_raised(tmp_path) -> None:
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("", encoding="utf-8")
    errors = []
    indicator = _Indicator()
    recorder = MovementRecorder(Frame("camera"), Frame("anchor"), output_dir=str(blocker), indicator=indicator)
    recorder.set_error_callback(errors.append)
    clock = FrameClock()

    recorder.arm()
    clock.advance(0.1)
    recorder.update(clock)
    meta = recorder.disarm()

    assert meta["log_file"] is None
    assert "error" in meta
    assert len(errors) == 1 and isinstance(errors[0], WriteFailure)
    assert not recorder.is_recording
    assert not indicator.active


def test_load_latest_without_recordings_raises(tmp_path) -> None:
    (tmp_path / "RecordedData_VFX_PassthroughFalse_2024-05-01_12-30-00.csv").write_text("1, 2\n")

    with pytest.raises(NotFoundError):
        TrajectoryStore().load_latest(str(tmp_path))
    with pytest.raises(NotFoundError):
        TrajectoryStore().load_latest(str(tmp_path / "missing"))


def test_malformed_line_names_line_number(tmp_path) -> None:
    path = _write(tmp_path / "MovementData_2024-05-01_12-30-00.csv", [
        "0.0,0,0,0,0,0,0,1",
        "0.1,0,0,zero,0,0,0,1",
        "0.2,0,0,0,0,0,0,1",
    ])

    with pytest.raises(ParseError) as exc:
        TrajectoryStore().load(str(path))
    assert exc.value.line_number == 2
    assert exc.value.path == str(path)
    assert ":2:" in str(exc.value)


@pytest.mark.parametrize("bad_line", [
    "0.1,0,0,0,0,0,1",
    "0.1,0,0,0,0,0,0,1,7",
    "0.1,0,0,0,0,0,0,0",
    "0.1,nan,0,0,0,0,0,1",
])
def test_rejects_bad_field_sets(tmp_path, bad_line) -> None:
    path = _write(tmp_path / "MovementData_a.csv", ["0.0,0,0,0,0,0,0,1", bad_line])

    with pytest.raises(ParseError):
        TrajectoryStore().load(str(path))


def test_single_sample_is_insufficient(tmp_path) -> None:
    path = _write(tmp_path / "MovementData_a.csv", ["0.0,0,0,0,0,0,0,1"])

    with pytest.raises(InsufficientDataError):
        TrajectoryStore().load(str(path))


def test_load_sorts_stably_and_normalizes(tmp_path) -> None:
    path = _write(tmp_path / "MovementData_a.csv", [
        "0.2,2,0,0,0,0,0,1",
        "0.1,1,0,0,0,0,0,2",
        "",
        "0.1,1.5,0,0,0,0,0,1",
        "0.0,0,0,0,0,0,0,1",
    ])

    trajectory = TrajectoryStore().load(str(path))

    assert [s.timestamp for s in trajectory] == [0.0, 0.1, 0.1, 0.2]
    # Equal timestamps keep file order
    assert trajectory[1].position[0] == 1.0
    assert trajectory[2].position[0] == 1.5
    assert np.allclose(trajectory[1].rotation, [0.0, 0.0, 0.0, 1.0])


def test_find_latest_prefers_newest_mtime_then_name(tmp_path) -> None:
    older = _write(tmp_path / "MovementData_2024-05-02_00-00-00.csv", ["0,0,0,0,0,0,0,1", "1,0,0,0,0,0,0,1"])
    newer = _write(tmp_path / "MovementData_2024-05-01_00-00-00.csv", ["0,0,0,0,0,0,0,1", "1,0,0,0,0,0,0,1"])
    os.utime(older, (1_000_000, 1_000_000))
    os.utime(newer, (2_000_000, 2_000_000))

    store = TrajectoryStore()
    assert store.find_latest(str(tmp_path)) == newer

    os.utime(older, (2_000_000, 2_000_000))
    assert store.find_latest(str(tmp_path)) == older


def test_validate_and_list_recordings(tmp_path) -> None:
    path = _write(tmp_path / "MovementData_a.csv", [
        "0.1,0,0,0,0,0,0,1",
        "0.0,0,0,0,0,0,0,2",
        "0.0,1,0,0,0,0,0,1",
    ])
    broken = _write(tmp_path / "MovementData_b.csv", ["oops"])
    os.utime(path, (1_000_000, 1_000_000))
    os.utime(broken, (2_000_000, 2_000_000))

    report = validate_recording(str(path))
    assert report["valid"]
    assert report["stats"]["sample_count"] == 3
    assert report["stats"]["out_of_order"] == 1
    assert report["stats"]["duplicate_timestamps"] == 1
    assert len(report["warnings"]) == 3

    bad = validate_recording(str(broken))
    assert not bad["valid"]

    listing = list_recordings(str(tmp_path))
    assert [r["name"] for r in listing] == ["MovementData_b", "MovementData_a"]
    assert listing[0]["sample_count"] is None
    assert listing[1]["sample_count"] == 3


def test_invalid_utf8_maps_to_parse_error(tmp_path) -> None:
    path = tmp_path / "MovementData_a.csv"
    path.write_bytes(b"0.0,0,0,0,0,0,0,1\n\xff\xfe0.1,0,0,0,0,0,0,1\n0.2,0,0,0,0,0,0,1\n")

    with pytest.raises(ParseError) as exc:
        TrajectoryStore().load(str(path))
    assert exc.value.line_number == 2

    report = validate_recording(str(path))
    assert not report["valid"]
    assert report["errors"][0].startswith("line 2:")


def test_listing_survives_corrupt_recording(tmp_path) -> None:
    (tmp_path / "MovementData_x.csv").write_bytes(b"\xff\xfe\x00")
    _write(tmp_path / "MovementData_y.csv", ["0,0,0,0,0,0,0,1", "1,0,0,0,0,0,0,1"])

    listing = {r["name"]: r["sample_count"] for r in list_recordings(str(tmp_path))}

    assert listing == {"MovementData_x": None, "MovementData_y": 2}


def test_toggle_arms_and_disarms(tmp_path) -> None:
    recorder = MovementRecorder(Frame("camera"), Frame("anchor"), output_dir=str(tmp_path), now=lambda: FIXED_NOW)
    clock = FrameClock()

    assert recorder.toggle(True) is None
    assert recorder.is_recording
    clock.advance(0.1)
    recorder.update(clock)

    meta = recorder.toggle(False)
    assert meta["sample_count"] == 1
    assert Path(meta["log_file"]).is_file()
    assert not recorder.is_recording
