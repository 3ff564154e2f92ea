"""
Recorder module for capturing a headset trajectory relative to an anchor.

Provides functionality to:
- Sample a moving frame's pose every tick while armed
- Express each sample in the anchor frame's local coordinates
- Flush the buffered samples to a timestamped CSV log on disarm
"""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Dict, Any, List, Callable

from .errors import WriteFailure
from .files import format_timestamp, unique_path, write_lines
from .frames import Frame
from .pose import RelativePoseSample
from .scheduler import FrameClock


logger = logging.getLogger(__name__)

MOVEMENT_FILE_PREFIX = "MovementData_"


class MovementRecorder:
    """
    Records the pose of a moving frame relative to an anchor frame.

    Register `update` as a per-frame hook; it does nothing while idle.

    Usage:
        recorder = MovementRecorder(camera, anchor, output_dir="./recordings")
        scheduler.add_update(recorder.update)
        recorder.arm()
        # ... frames tick ...
        metadata = recorder.disarm()
    """

    def __init__(
        self,
        moving: Frame,
        anchor: Frame,
        output_dir: str = "./recordings",
        indicator: Optional[Any] = None,
        now: Callable[[], datetime] = datetime.now
    ):
        """
        Initialize the recorder.

        Args:
            moving: Frame whose pose is captured (the headset camera)
            anchor: Frame the pose is expressed in
            output_dir: Directory for MovementData logs
            indicator: Optional object with an `active` flag shown while recording
            now: Wall-clock source used to name log files
        """
        self.moving = moving
        self.anchor = anchor
        self.output_dir = Path(output_dir)
        self.indicator = indicator
        self._now = now

        self._recording = False
        self._samples: List[RelativePoseSample] = []
        self._start_time: Optional[datetime] = None
        self._error_callback: Optional[Callable[[Exception], None]] = None

    def set_error_callback(self, callback: Callable[[Exception], None]) -> None:
        """Set callback for non-fatal errors (failed writes)."""
        self._error_callback = callback

    def arm(self) -> None:
        """Start a new recording. No-op if already recording."""
        if self._recording:
            return

        self.moving.set_world_pose(self.anchor.get_world_pose())
        self._samples = []
        self._start_time = self._now()
        self._set_indicator(True)
        self._recording = True
        logger.info("Starting recording movement")

    def disarm(self) -> Dict[str, Any]:
        """
        Stop recording and write the buffered samples.

        Returns:
            Metadata about the recording session
        """
        if not self._recording:
            return {"status": "not_recording"}

        self._recording = False
        logger.info("Stopping recording movement")

        start_time = self._start_time or self._now()
        stem = f"{MOVEMENT_FILE_PREFIX}{format_timestamp(start_time)}"
        log_file = unique_path(self.output_dir, stem)

        metadata: Dict[str, Any] = {
            "log_file": str(log_file),
            "start_time": start_time.isoformat(),
            "end_time": self._now().isoformat(),
            "sample_count": len(self._samples),
        }

        try:
            write_lines(log_file, (s.to_line() for s in self._samples))
        except WriteFailure as e:
            logger.error("Movement log not saved: %s", e)
            metadata["log_file"] = None
            metadata["error"] = str(e)
            if self._error_callback:
                self._error_callback(e)
        finally:
            self._samples = []
            self._start_time = None
            self._set_indicator(False)

        return metadata

    def toggle(self, should_record: bool) -> Optional[Dict[str, Any]]:
        """UI binding: arm when True, disarm when False."""
        if should_record:
            self.arm()
            return None
        return self.disarm()

    def capture(self, timestamp: float) -> RelativePoseSample:
        """Current pose of the moving frame in anchor coordinates."""
        position = self.anchor.inverse_transform_point(self.moving.position)
        rotation = self.anchor.rotation.inv() * self.moving.rotation
        return RelativePoseSample.from_rotation(timestamp, position, rotation)

    def update(self, clock: FrameClock) -> None:
        if not self._recording:
            return
        self._samples.append(self.capture(clock.time))

    def _set_indicator(self, active: bool) -> None:
        if self.indicator is not None:
            self.indicator.active = active

    @property
    def is_recording(self) -> bool:
        return self._recording

    @property
    def sample_count(self) -> int:
        return len(self._samples)

    @property
    def samples(self) -> List[RelativePoseSample]:
        return list(self._samples)
