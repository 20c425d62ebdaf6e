"""
Camera module for generating primary rays.

A planar pinhole camera: the image plane sits one unit in front of the
camera position, spanned by the right and down vectors. Their lengths set
the field of view.
"""

from __future__ import annotations
import math
from typing import Tuple
from .vec3 import Vec3, Point3
from .ray import Ray


class Camera:
    """A pinhole camera described by its position and image-plane basis."""

    def __init__(self, position: Point3, right: Vec3, down: Vec3):
        """Create a camera.

        Args:
            position: Camera position in world space
            right: Half-width of the image plane, pointing right
            down: Half-height of the image plane, pointing down
        """
        self.position = position
        self.right = right
        self.down = down
        self.forward = down.cross(right).normalize()

    @classmethod
    def look_at(
        cls,
        position: Point3,
        target: Point3,
        up: Vec3 = Vec3(0, 0, 1),
        vfov: float = 90.0,
        aspect_ratio: float = 16.0 / 9.0
    ) -> 'Camera':
        """Create a camera from a look-at pose.

        Args:
            position: Camera position in world space
            target: Point the camera is looking at
            up: World up vector
            vfov: Vertical field of view in degrees
            aspect_ratio: Width / Height ratio
        """
        half_height = math.tan(math.radians(vfov) / 2)
        half_width = aspect_ratio * half_height

        forward = (target - position).normalize()
        right = up.cross(forward).normalize()
        down = right.cross(forward)

        return cls(position, right * half_width, down * half_height)

    @staticmethod
    def ndc(x: int, y: int, width: int, height: int) -> Tuple[float, float]:
        """Map a pixel to normalized device coordinates in [-1, 1].

        Pixel (0, 0) maps to (-1, -1) and (width-1, height-1) to (1, 1).
        A dimension of a single pixel maps to the center.
        """
        rf = 2.0 * x / (width - 1) - 1.0 if width > 1 else 0.0
        df = 2.0 * y / (height - 1) - 1.0 if height > 1 else 0.0
        return rf, df

    def get_ray(self, x: int, y: int, width: int, height: int) -> Ray:
        """Get the primary ray through pixel (x, y)."""
        rf, df = self.ndc(x, y, width, height)
        return Ray(self.position, self.forward + self.down * df + self.right * rf)

    def __repr__(self) -> str:
        return f"Camera(position={self.position}, right={self.right}, down={self.down})"
