"""Immersive / passthrough environment switching."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple


class EnvironmentMode(Enum):
    IMMERSIVE = "immersive"
    PASSTHROUGH = "passthrough"

    @property
    def passthrough(self) -> bool:
        return self is EnvironmentMode.PASSTHROUGH


class ClearMode(Enum):
    SKYBOX = "skybox"
    SOLID_COLOR = "solid_color"


@dataclass
class SceneEnvironment:
    """3D environment visibility and camera background."""
    environment_visible: bool = True
    clear_mode: ClearMode = ClearMode.SKYBOX
    # RGBA; alpha 0 lets the passthrough video show through
    passthrough_color: Tuple[float, float, float, float] = (0.0, 0.0, 0.0, 0.0)
    background_color: Tuple[float, float, float, float] = field(default=(0.0, 0.0, 0.0, 1.0))
    mode: EnvironmentMode = EnvironmentMode.IMMERSIVE

    def apply(self, mode: EnvironmentMode) -> None:
        if mode.passthrough:
            self.environment_visible = False
            self.clear_mode = ClearMode.SOLID_COLOR
            self.background_color = self.passthrough_color
        else:
            self.environment_visible = True
            self.clear_mode = ClearMode.SKYBOX
        self.mode = mode
