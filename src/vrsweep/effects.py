"""
Particle effect variants under test.

Each variant implements the small `ParticleEffect` capability interface.
`EffectRig` keeps the variants mutually exclusive: selecting one first
stops, clears and re-initialises every effect so no residual particles
leak from one run into the next.
"""

import logging
from enum import Enum
from typing import Optional, Dict, List, Protocol


logger = logging.getLogger(__name__)


class EffectVariant(Enum):
    VFX = "VFX"  # custom visual effect graph
    BUILTIN = "BuiltIn"  # built-in particle system
    NONE = "none"

    @property
    def label(self) -> str:
        return self.value


class ParticleEffect(Protocol):
    active: bool
    emission_rate: float

    @property
    def particle_count(self) -> int:
        ...

    def play(self) -> None:
        ...

    def stop(self) -> None:
        ...

    def clear(self) -> None:
        ...

    def reinit(self) -> None:
        ...


class EffectRig:
    """
    Holds the effect variants and enforces that at most one is active.

    Usage:
        rig = EffectRig(custom=vfx, builtin=particles)
        effect = rig.select(EffectVariant.BUILTIN)
        effect.emission_rate = 50.0
    """

    def __init__(
        self,
        custom: Optional[ParticleEffect] = None,
        builtin: Optional[ParticleEffect] = None
    ):
        self._effects: Dict[EffectVariant, Optional[ParticleEffect]] = {
            EffectVariant.VFX: custom,
            EffectVariant.BUILTIN: builtin,
        }
        self._selected: Optional[EffectVariant] = None

    def get(self, variant: EffectVariant) -> Optional[ParticleEffect]:
        return self._effects.get(variant)

    def reset_all(self) -> None:
        """Stop, clear, re-initialise and deactivate every effect."""
        for effect in self._effects.values():
            if effect is None:
                continue
            effect.clear()
            effect.stop()
            effect.reinit()
            effect.active = False
        self._selected = None

    def select(self, variant: EffectVariant) -> Optional[ParticleEffect]:
        """
        Make `variant` the only active effect.

        Returns:
            The activated effect, or None for `EffectVariant.NONE` or a
            variant with no effect attached
        """
        self.reset_all()
        if variant is EffectVariant.NONE:
            return None

        effect = self._effects.get(variant)
        if effect is None:
            logger.warning("No %s effect attached; running without particles", variant.label)
            return None

        effect.active = True
        effect.play()
        self._selected = variant
        return effect

    @property
    def selected(self) -> Optional[EffectVariant]:
        return self._selected

    def active_variants(self) -> List[EffectVariant]:
        return [v for v, e in self._effects.items() if e is not None and e.active]

    def particle_count(self, variant: EffectVariant) -> Optional[int]:
        effect = self._effects.get(variant)
        if effect is None:
            return None
        return int(effect.particle_count)
