"""Head-tracking input that writes the sensor pose onto the camera frame."""

import logging
from typing import Optional, Callable

from .frames import Frame, Pose
from .scheduler import FrameClock


logger = logging.getLogger(__name__)


class HeadPoseDriver:
    """
    Copies the tracked headset pose onto a camera's local pose every frame.

    Disable it while replaying so synthetic motion is not overwritten by
    live sensor input.
    """

    def __init__(
        self,
        camera: Frame,
        source: Optional[Callable[[float], Pose]] = None,
        enabled: bool = True
    ):
        """
        Args:
            camera: Frame receiving the tracked pose
            source: Callable returning the sensor pose for a session time
            enabled: Initial state
        """
        self.camera = camera
        self.source = source
        self._enabled = enabled

    @property
    def enabled(self) -> bool:
        return self._enabled

    @enabled.setter
    def enabled(self, value: bool) -> None:
        if value != self._enabled:
            logger.info("Head tracking %s", "enabled" if value else "disabled")
        self._enabled = bool(value)

    def update(self, clock: FrameClock) -> None:
        if not self._enabled or self.source is None:
            return
        self.camera.set_local_pose(self.source(clock.time))
