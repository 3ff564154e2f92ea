import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from vrsweep.config import SweepConfig
from vrsweep.effects import EffectVariant
from vrsweep.environment import EnvironmentMode


def test_defaults() -> None:
    config = SweepConfig()
    assert config.repetitions == 3
    assert config.wait_time == 5.0
    assert config.ceiling(EffectVariant.VFX, EnvironmentMode.PASSTHROUGH) == 200.0


def test_ramp_is_linear_and_clamped() -> None:
    config = SweepConfig(
        particle_start_rate=20.0,
        time_to_increase_particles=4.0,
        max_rate_builtin_passthrough=100.0,
    )
    variant, mode = EffectVariant.BUILTIN, EnvironmentMode.PASSTHROUGH

    assert config.emission_rate(variant, mode, 0.0) == 20.0
    assert config.emission_rate(variant, mode, 2.0) == pytest.approx(60.0)
    assert config.emission_rate(variant, mode, 4.0) == 100.0
    assert config.emission_rate(variant, mode, 40.0) == 100.0
    assert config.emission_rate(variant, EnvironmentMode.IMMERSIVE, 40.0) == 200.0


def test_zero_ramp_time_starts_at_ceiling() -> None:
    config = SweepConfig(time_to_increase_particles=0.0)
    assert config.emission_rate(EffectVariant.VFX, EnvironmentMode.IMMERSIVE, 0.0) == 200.0


@pytest.mark.parametrize("kwargs", [
    {"repetitions": 0},
    {"wait_time": -1.0},
    {"time_to_increase_particles": -0.5},
    {"fps_window": 0.0},
])
def test_rejects_invalid_values(kwargs) -> None:
    with pytest.raises(ValueError):
        SweepConfig(**kwargs)


def test_load_json(tmp_path) -> None:
    path = tmp_path / "sweep.json"
    path.write_text(json.dumps({"repetitions": 2, "max_rate_vfx_immersive": 500.0}), encoding="utf-8")

    config = SweepConfig.load(str(path))

    assert config.repetitions == 2
    assert config.ceiling(EffectVariant.VFX, EnvironmentMode.IMMERSIVE) == 500.0
    assert SweepConfig.from_dict(config.to_dict()) == config


def test_load_rejects_unknown_keys_and_non_objects(tmp_path) -> None:
    unknown = tmp_path / "unknown.json"
    unknown.write_text(json.dumps({"repetitons": 2}), encoding="utf-8")
    listing = tmp_path / "list.json"
    listing.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(ValueError, match="repetitons"):
        SweepConfig.load(str(unknown))
    with pytest.raises(ValueError):
        SweepConfig.load(str(listing))
