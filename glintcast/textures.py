"""
Texture system for surface materials.

Implements:
- Solid color textures
- Image textures (from files, PIL images or numpy arrays), nearest-pixel sampled
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Union
import math

import numpy as np
from PIL import Image

from .color import Color


class Texture(ABC):
    """Abstract base class for textures."""

    @abstractmethod
    def value(self, u: float, v: float) -> Color:
        """Get the texture color at the given UV coordinates.

        Args:
            u: Horizontal texture coordinate [0, 1], 0 is the left edge
            v: Vertical texture coordinate [0, 1], 0 is the top edge

        Returns:
            Color at this location
        """
        pass


class SolidColor(Texture):
    """A solid color texture."""

    def __init__(self, color: Color):
        self.color = color

    @classmethod
    def from_rgba(cls, r: float, g: float, b: float, a: float = 1.0) -> 'SolidColor':
        return cls(Color(r, g, b, a))

    def value(self, u: float, v: float) -> Color:
        return self.color

    def __repr__(self) -> str:
        return f"SolidColor({self.color})"


class ImageTexture(Texture):
    """A texture backed by an RGBA raster.

    Pixels are stored as floats in [0, 1]. Lookups pick the nearest pixel,
    no filtering is applied.
    """

    def __init__(self, data: np.ndarray, name: str = '<array>'):
        """Wrap an already decoded raster.

        Args:
            data: Float array of shape (height, width, 4)
            name: Label used in repr and error messages
        """
        data = np.asarray(data, dtype=np.float64)
        if data.ndim != 3 or data.shape[2] != 4 or data.shape[0] == 0 or data.shape[1] == 0:
            raise ValueError(f"Texture {name} must have shape (height, width, 4), got {data.shape}")
        self._data = data
        self._height, self._width = data.shape[:2]
        self.name = name

    @classmethod
    def from_image(cls, image: Image.Image, gamma: float = 1.0, name: str = '<image>') -> 'ImageTexture':
        """Build a texture from a PIL image.

        Args:
            image: Any PIL image; converted to RGBA
            gamma: Gamma for converting sRGB to linear (1.0 keeps values as stored)
            name: Label used in repr and error messages
        """
        data = np.array(image.convert('RGBA'), dtype=np.float64) / 255.0
        if gamma != 1.0:
            data[..., :3] = np.power(data[..., :3], gamma)
        return cls(data, name=name)

    @classmethod
    def from_file(cls, filename: Union[str, Path], gamma: float = 1.0) -> 'ImageTexture':
        """Load a texture from an image file."""
        path = Path(filename)
        if not path.exists():
            raise FileNotFoundError(f"Texture file not found: {filename}")

        with Image.open(path) as img:
            return cls.from_image(img, gamma=gamma, name=str(path))

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    def value(self, u: float, v: float) -> Color:
        # Round half up, then clamp to the raster
        i = int(math.floor(u * (self._width - 1) + 0.5))
        j = int(math.floor(v * (self._height - 1) + 0.5))
        i = max(0, min(self._width - 1, i))
        j = max(0, min(self._height - 1, j))

        return Color.from_array(self._data[j, i].copy())

    def __repr__(self) -> str:
        return f"ImageTexture({self.name}, {self._width}x{self._height})"
