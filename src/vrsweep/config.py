"""
Sweep configuration.

Defaults follow the thesis test protocol: particles ramp from 20/s to the
per-variant ceiling over 5 s, each configuration runs 3 times, with a 5 s
settle pause between runs.
"""

import json
from dataclasses import dataclass, asdict, fields
from pathlib import Path
from typing import Optional, Dict, Any

from .effects import EffectVariant
from .environment import EnvironmentMode


@dataclass
class SweepConfig:
    recordings_dir: str = "./recordings"
    output_dir: str = "./results"
    wait_time: float = 5.0  # settle pause after each run (s)
    particle_start_rate: float = 20.0
    particle_max_rate: float = 200.0  # ceiling used when no per-variant value is set
    max_rate_vfx_passthrough: Optional[float] = None
    max_rate_vfx_immersive: Optional[float] = None
    max_rate_builtin_passthrough: Optional[float] = None
    max_rate_builtin_immersive: Optional[float] = None
    time_to_increase_particles: float = 5.0
    repetitions: int = 3
    fps_window: float = 0.5

    def __post_init__(self):
        if self.repetitions < 1:
            raise ValueError("repetitions must be >= 1")
        if self.wait_time < 0.0:
            raise ValueError("wait_time must be >= 0")
        if self.time_to_increase_particles < 0.0:
            raise ValueError("time_to_increase_particles must be >= 0")
        if self.fps_window <= 0.0:
            raise ValueError("fps_window must be > 0")

    def ceiling(self, variant: EffectVariant, mode: EnvironmentMode) -> float:
        """Emission rate the ramp ends at for a variant/environment pair."""
        per_variant = {
            (EffectVariant.VFX, EnvironmentMode.PASSTHROUGH): self.max_rate_vfx_passthrough,
            (EffectVariant.VFX, EnvironmentMode.IMMERSIVE): self.max_rate_vfx_immersive,
            (EffectVariant.BUILTIN, EnvironmentMode.PASSTHROUGH): self.max_rate_builtin_passthrough,
            (EffectVariant.BUILTIN, EnvironmentMode.IMMERSIVE): self.max_rate_builtin_immersive,
        }
        value = per_variant.get((variant, mode))
        return float(self.particle_max_rate if value is None else value)

    def emission_rate(self, variant: EffectVariant, mode: EnvironmentMode, elapsed: float) -> float:
        """
        Linear ramp from the start rate to the ceiling.

        The ramp parameter is clamped to [0, 1], so the rate holds at the
        ceiling once `time_to_increase_particles` has passed.
        """
        if self.time_to_increase_particles <= 0.0:
            t = 1.0
        else:
            t = min(max(elapsed / self.time_to_increase_particles, 0.0), 1.0)
        start = self.particle_start_rate
        return start + (self.ceiling(variant, mode) - start) * t

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SweepConfig":
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ValueError(f"Unknown config key(s): {', '.join(unknown)}")
        return cls(**data)

    @classmethod
    def load(cls, filepath: str) -> "SweepConfig":
        """Load a config from a JSON object file."""
        with open(Path(filepath), 'r', encoding='utf-8') as f:
            data = json.load(f)
        if not isinstance(data, dict):
            raise ValueError(f"{filepath}: expected a JSON object")
        return cls.from_dict(data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
