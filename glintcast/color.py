"""
Four-channel linear color.

Colors are accumulated unclamped (channels may exceed 1.0 or go negative
while tracing) and only clamped when encoded to 8-bit pixels. The alpha
channel is carried through arithmetic but always encoded as opaque.
"""

from __future__ import annotations
from typing import Sequence, Tuple, Union
import numpy as np


class Color:
    """An (r, g, b, a) intensity value with per-channel arithmetic."""

    __slots__ = ('_data',)

    def __init__(self, r: float = 0.0, g: float = 0.0, b: float = 0.0, a: float = 1.0):
        self._data = np.array([r, g, b, a], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> Color:
        """Create Color from a numpy array of four channels."""
        c = cls.__new__(cls)
        c._data = np.asarray(arr, dtype=np.float64)
        return c

    @classmethod
    def transparent(cls) -> Color:
        """The all-zero color: no light, no alpha."""
        return cls(0.0, 0.0, 0.0, 0.0)

    @classmethod
    def all(cls, v: float) -> Color:
        """All four channels set to v."""
        return cls(v, v, v, v)

    @classmethod
    def rgb(cls, v: float) -> Color:
        """Grey level v with opaque alpha."""
        return cls(v, v, v, 1.0)

    @classmethod
    def rgba(cls, v: float, a: float) -> Color:
        """Grey level v with the given alpha."""
        return cls(v, v, v, a)

    @classmethod
    def from_u8s(cls, u8s: Sequence[int]) -> Color:
        """Decode an 8-bit RGBA pixel."""
        return cls.from_array(np.asarray(u8s[:4], dtype=np.float64) / 255.0)

    @property
    def r(self) -> float:
        return float(self._data[0])

    @property
    def g(self) -> float:
        return float(self._data[1])

    @property
    def b(self) -> float:
        return float(self._data[2])

    @property
    def a(self) -> float:
        return float(self._data[3])

    def __repr__(self) -> str:
        return f"Color({self.r:.4f}, {self.g:.4f}, {self.b:.4f}, {self.a:.4f})"

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Color):
            return NotImplemented
        return bool(np.allclose(self._data, other._data))

    def __hash__(self) -> int:
        return hash(tuple(self._data))

    def __add__(self, other: Color) -> Color:
        return Color.from_array(self._data + other._data)

    def __sub__(self, other: Color) -> Color:
        return Color.from_array(self._data - other._data)

    def __mul__(self, other: Union[Color, float]) -> Color:
        if isinstance(other, Color):
            return Color.from_array(self._data * other._data)
        return Color.from_array(self._data * other)

    def __rmul__(self, other: float) -> Color:
        return Color.from_array(other * self._data)

    def __truediv__(self, other: Union[Color, float]) -> Color:
        if isinstance(other, Color):
            return Color.from_array(self._data / other._data)
        return Color.from_array(self._data / other)

    def is_transparent(self) -> bool:
        """True only if every channel is exactly zero."""
        return not self._data.any()

    def max_rgb(self) -> float:
        """Largest of the three light channels (alpha excluded)."""
        return float(self._data[:3].max())

    def u8s(self) -> Tuple[int, int, int, int]:
        """Encode as an 8-bit RGBA pixel.

        r, g and b are clamped to [0, 1] and truncated after scaling;
        alpha is always 255.
        """
        r, g, b = (np.clip(self._data[:3], 0.0, 1.0) * 255.0).astype(np.uint8)
        return int(r), int(g), int(b), 255

    def to_array(self) -> np.ndarray:
        """Return the underlying numpy array (copy)."""
        return self._data.copy()
