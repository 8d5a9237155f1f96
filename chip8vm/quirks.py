"""
Quirk profiles: the documented behaviour differences between CHIP-8
interpreters that a single core can switch between.
"""

from dataclasses import dataclass, asdict
from typing import Dict

from .errors import ConfigError


@dataclass(frozen=True)
class QuirkProfile:
    sprite_wrap: bool = False          # DXYN wraps pixels past the edge instead of clipping
    shift_uses_vy: bool = False        # 8XY6/8XYE shift VY into VX (COSMAC VIP)
    index_overflow_flag: bool = False  # FX1E sets VF when I passes 0xFFF (Amiga)

    @classmethod
    def named(cls, name: str) -> "QuirkProfile":
        try:
            return PROFILES[name.lower()]
        except KeyError:
            raise ConfigError(
                f"unknown quirk profile '{name}' (choose from {', '.join(sorted(PROFILES))})"
            ) from None

    def as_dict(self) -> Dict[str, bool]:
        return asdict(self)


PROFILES = {
    'chip8': QuirkProfile(),
    'cosmac': QuirkProfile(shift_uses_vy=True),
    'amiga': QuirkProfile(index_overflow_flag=True),
    'wrap': QuirkProfile(sprite_wrap=True),
}

DEFAULT_QUIRKS = PROFILES['chip8']
