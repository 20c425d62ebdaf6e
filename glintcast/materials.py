"""
Surface light response.

A surface point answers four independent questions about light, each as a
per-channel color:

- emittance: light the surface gives off by itself
- transparency: fraction of light passed through to farther hits
- reflectiveness: fraction of a specular bounce added
- scattering: fraction spread over the scattering directions

The channels are not required to sum to one.
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Callable, Generic, Optional, TypeVar

from .color import Color
from .textures import Texture, SolidColor

T = TypeVar('T')
U = TypeVar('U')


@dataclass(frozen=True)
class LightChannels(Generic[T]):
    """The four light channels, holding any value type."""
    emittance: T
    transparency: T
    reflectiveness: T
    scattering: T

    def convert(self, f: Callable[[T], U]) -> 'LightChannels[U]':
        """Map every channel through f."""
        return LightChannels(
            emittance=f(self.emittance),
            transparency=f(self.transparency),
            reflectiveness=f(self.reflectiveness),
            scattering=f(self.scattering),
        )


# Light response resolved at one exact surface point
PointLightProperties = LightChannels[Color]


class Material(LightChannels[Texture]):
    """Per-channel textures for a surface, resolved at (u, v)."""

    @classmethod
    def flat(
        cls,
        emittance: Optional[Color] = None,
        transparency: Optional[Color] = None,
        reflectiveness: Optional[Color] = None,
        scattering: Optional[Color] = None
    ) -> 'Material':
        """Create a material that is the same everywhere.

        Channels left out are transparent (no contribution).
        """
        def solid(color: Optional[Color]) -> Texture:
            return SolidColor(color if color is not None else Color.transparent())

        return cls(
            emittance=solid(emittance),
            transparency=solid(transparency),
            reflectiveness=solid(reflectiveness),
            scattering=solid(scattering),
        )

    def resolve(self, u: float, v: float) -> PointLightProperties:
        """Sample every channel at texture coordinates (u, v) in [0, 1]."""
        return self.convert(lambda texture: texture.value(u, v))
