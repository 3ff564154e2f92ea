"""
Replay module for reproducing recorded headset motion.

Provides functionality to:
- Drive a mover frame through a trajectory, one step per rendered frame
- Interpolate linearly in position and spherically in rotation between samples
- Resolve every sample against the anchor's live transform on every tick
- Stop early between segments when a cancel event is set
"""

import logging
import threading
from typing import Optional, Generator, Sequence

import numpy as np
from scipy.spatial.transform import Rotation, Slerp

from .errors import InsufficientDataError
from .frames import Frame, Pose
from .pose import RelativePoseSample
from .scheduler import FrameClock


logger = logging.getLogger(__name__)


def slerp(start: Rotation, end: Rotation, t: float) -> Rotation:
    """Shortest-arc spherical interpolation, `t` clamped to [0, 1]."""
    t = min(max(float(t), 0.0), 1.0)
    interpolator = Slerp([0.0, 1.0], Rotation.concatenate([start, end]))
    return interpolator([t])[0]


def interpolate_pose(
    anchor: Frame,
    start: RelativePoseSample,
    end: RelativePoseSample,
    t: float
) -> Pose:
    """
    World pose between two anchor-relative samples.

    Args:
        anchor: Frame the samples are expressed in (read at call time)
        start: Sample at t = 0
        end: Sample at t = 1
        t: Interpolation parameter, clamped to [0, 1]

    Returns:
        Interpolated world-space pose
    """
    t = min(max(float(t), 0.0), 1.0)
    p0 = anchor.transform_point(start.position)
    p1 = anchor.transform_point(end.position)
    r0 = anchor.rotation * start.as_rotation()
    r1 = anchor.rotation * end.as_rotation()
    return Pose(position=p0 + (p1 - p0) * t, rotation=slerp(r0, r1, t))


def sample_world_pose(anchor: Frame, sample: RelativePoseSample) -> Pose:
    """A single sample composed with the anchor's current pose."""
    return Pose(
        position=anchor.transform_point(sample.position),
        rotation=anchor.rotation * sample.as_rotation(),
    )


class TrajectoryReplayer:
    """
    Reconstructs continuous motion from discrete relative-pose samples.

    Segment timing follows the recording: a segment between samples `i` and
    `i + 1` lasts `t[i + 1] - t[i]` seconds of frame time.

    Usage:
        replayer = TrajectoryReplayer(scheduler.clock)
        task = scheduler.start(replayer.replay(trajectory, anchor, mover))
        scheduler.run_until_complete(task)
    """

    def __init__(self, clock: FrameClock):
        """
        Initialize the replayer.

        Args:
            clock: Frame clock whose `delta_time` advances each segment
        """
        self.clock = clock
        self.segments_completed = 0
        self.total_segments = 0

    def replay(
        self,
        trajectory: Sequence[RelativePoseSample],
        anchor: Frame,
        mover: Frame,
        cancel: Optional[threading.Event] = None
    ) -> Generator[float, None, int]:
        """
        Move `mover` along `trajectory`, yielding once per frame.

        Args:
            trajectory: Samples sorted by timestamp (not modified)
            anchor: Frame the samples are relative to
            mover: Frame to drive
            cancel: Optional event; when set, replay stops before the next segment

        Yields:
            The interpolation parameter applied on this frame

        Returns:
            Number of segments completed

        Raises:
            InsufficientDataError: If the trajectory has fewer than two samples
        """
        if len(trajectory) < 2:
            raise InsufficientDataError(
                f"Replay needs at least 2 samples, got {len(trajectory)}"
            )

        self.segments_completed = 0
        self.total_segments = len(trajectory) - 1

        for i in range(self.total_segments):
            if cancel is not None and cancel.is_set():
                logger.info(
                    "Replay cancelled after %d/%d segments",
                    self.segments_completed, self.total_segments
                )
                return self.segments_completed

            start = trajectory[i]
            end = trajectory[i + 1]
            duration = end.timestamp - start.timestamp

            elapsed = 0.0
            while elapsed < duration:
                t = elapsed / duration
                mover.set_world_pose(interpolate_pose(anchor, start, end, t))
                yield t
                elapsed += self.clock.delta_time

            # Snap to the endpoint so drift never carries into the next segment
            mover.set_world_pose(sample_world_pose(anchor, end))
            self.segments_completed += 1

        return self.segments_completed

    @property
    def progress(self) -> float:
        if self.total_segments == 0:
            return 0.0
        return self.segments_completed / self.total_segments


def replay_positions(
    trajectory: Sequence[RelativePoseSample],
    anchor: Frame,
    dt: float
) -> np.ndarray:
    """
    World positions the replay visits at a fixed frame rate.

    Runs the replay against a detached mover at max speed; handy for
    previews and checks without a scheduler.
    """
    clock = FrameClock()
    mover = Frame("preview")
    replayer = TrajectoryReplayer(clock)
    positions = []
    for _ in replayer.replay(trajectory, anchor, mover):
        positions.append(mover.position)
        clock.advance(dt)
    positions.append(mover.position)
    return np.array(positions)
