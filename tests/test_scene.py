"""
Effect exclusivity, environment switching, head tracking and refresh rate.
"""

import sys
from pathlib import Path

import numpy as np
import pytest
from scipy.spatial.transform import Rotation

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from vrsweep.display import set_highest_refresh_rate
from vrsweep.effects import EffectRig, EffectVariant
from vrsweep.environment import ClearMode, EnvironmentMode, SceneEnvironment
from vrsweep.frames import Frame, Pose
from vrsweep.scheduler import FrameClock
from vrsweep.sim import SimulatedDisplay, SimulatedParticleSystem, SimulatedVisualEffect
from vrsweep.tracking import HeadPoseDriver


def _spawn(effect, clock: FrameClock, ticks: int = 5) -> None:
    effect.emission_rate = 100.0
    for _ in range(ticks):
        clock.advance(0.1)
        effect.update(clock)


def test_select_resets_previous_effect() -> None:
    clock = FrameClock()
    vfx = SimulatedVisualEffect(clock)
    builtin = SimulatedParticleSystem(clock)
    rig = EffectRig(custom=vfx, builtin=builtin)

    assert rig.select(EffectVariant.VFX) is vfx
    _spawn(vfx, clock)
    assert vfx.particle_count > 0

    assert rig.select(EffectVariant.BUILTIN) is builtin
    assert not vfx.active
    assert vfx.particle_count == 0
    assert vfx.emission_rate == 0.0
    assert rig.active_variants() == [EffectVariant.BUILTIN]
    assert rig.selected is EffectVariant.BUILTIN


def test_select_none_deactivates_everything() -> None:
    clock = FrameClock()
    builtin = SimulatedParticleSystem(clock)
    rig = EffectRig(custom=SimulatedVisualEffect(clock), builtin=builtin)
    rig.select(EffectVariant.BUILTIN)
    _spawn(builtin, clock)

    assert rig.select(EffectVariant.NONE) is None
    assert rig.active_variants() == []
    assert rig.selected is None
    assert builtin.particle_count == 0

    # Stopped and inactive: no new particles
    _spawn(builtin, clock)
    assert builtin.particle_count == 0


def test_missing_effect_runs_without_particles() -> None:
    rig = EffectRig(builtin=SimulatedParticleSystem(FrameClock()))

    assert rig.select(EffectVariant.VFX) is None
    assert rig.particle_count(EffectVariant.VFX) is None
    assert rig.particle_count(EffectVariant.BUILTIN) == 0


def test_particles_expire_after_lifetime() -> None:
    clock = FrameClock()
    effect = SimulatedParticleSystem(clock, lifetime=0.25)
    effect.active = True
    effect.play()
    _spawn(effect, clock, ticks=1)
    assert effect.particle_count == 10

    effect.stop()
    for _ in range(3):
        clock.advance(0.1)
        effect.update(clock)
    assert effect.particle_count == 0


def test_environment_modes() -> None:
    env = SceneEnvironment(passthrough_color=(0.0, 0.0, 0.0, 0.0))

    env.apply(EnvironmentMode.PASSTHROUGH)
    assert not env.environment_visible
    assert env.clear_mode is ClearMode.SOLID_COLOR
    assert env.background_color == (0.0, 0.0, 0.0, 0.0)
    assert env.mode.passthrough

    env.apply(EnvironmentMode.IMMERSIVE)
    assert env.environment_visible
    assert env.clear_mode is ClearMode.SKYBOX
    assert not env.mode.passthrough


def test_head_pose_driver_respects_enabled() -> None:
    camera = Frame("camera")
    pose = Pose(position=np.array([0.0, 1.7, 0.0]), rotation=Rotation.from_euler("y", 45, degrees=True))
    driver = HeadPoseDriver(camera, source=lambda t: pose)
    clock = FrameClock()

    driver.enabled = False
    clock.advance(0.1)
    driver.update(clock)
    assert np.allclose(camera.local_position, 0.0)

    driver.enabled = True
    driver.update(clock)
    assert np.allclose(camera.local_position, [0.0, 1.7, 0.0])


@pytest.mark.parametrize("rates, max_rate, expected", [
    ((72.0, 90.0, 120.0), None, 120.0),
    ((72.0, 90.0, 120.0), 90.0, 90.0),
    ((72.0,), 60.0, None),
    (None, None, None),
])
def test_highest_refresh_rate(rates, max_rate, expected) -> None:
    display = SimulatedDisplay(rates=rates)

    assert set_highest_refresh_rate(display, max_rate=max_rate) == expected
    assert display.current_rate == expected


def test_refresh_rate_rejected_or_missing_display() -> None:
    assert set_highest_refresh_rate(None) is None

    display = SimulatedDisplay(accept=False)
    assert set_highest_refresh_rate(display) is None
    assert display.current_rate is None
