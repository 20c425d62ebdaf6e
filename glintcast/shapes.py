"""
Drawable scene objects.

Each shape implements the Drawable contract: report where a ray first
meets it and what the surface looks like there.
"""

from __future__ import annotations
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

from .vec3 import Vec3, Point3, DegenerateGeometryError
from .ray import Ray
from .materials import Material, PointLightProperties


@dataclass
class PointRayProperties:
    """Stores information about a ray-object intersection.

    Attributes:
        orientation: Outgoing direction of the specular bounce
        light_properties: Light response at the exact hit point
        scattering_orientations: Extra outgoing directions (empty = no scattering)
    """
    orientation: Vec3
    light_properties: PointLightProperties
    scattering_orientations: List[Vec3] = field(default_factory=list)


# Distance along the ray (in multiples of its direction) and the surface response
Intersection = Tuple[float, PointRayProperties]


class Drawable(ABC):
    """Abstract base class for all objects that can be rendered.

    Drawables are immutable once built and are shared read-only between
    all concurrently traced rays.
    """

    @abstractmethod
    def get_intersection(self, ray: Ray) -> Optional[Intersection]:
        """Test if ray intersects this object.

        Args:
            ray: The ray to test

        Returns:
            (distance, properties) if the ray hits, None otherwise. The
            distance is the non-negative multiple of ray.direction from
            ray.origin to the hit point.
        """
        pass

    @abstractmethod
    def get_outer_bounds(self) -> Tuple[Point3, float]:
        """Get a bounding sphere for this object.

        Returns:
            (center, radius)
        """
        pass


class Rect(Drawable):
    """A single-sided rectangle.

    The rectangle spans center +- right and center +- down. It is visible
    only from the side that right x down points to.
    """

    def __init__(self, center: Point3, right: Vec3, down: Vec3, material: Material):
        """Create a rectangle.

        Args:
            center: Center point of the rectangle
            right: Half-extent vector towards the right edge
            down: Half-extent vector towards the bottom edge
            material: Per-channel textures, sampled in rectangle-local (u, v)

        Raises:
            DegenerateGeometryError: if an edge has zero length or the edges are parallel
        """
        self.center = center
        self.right = right
        self.down = down
        self.material = material

        self._right_len_sq = right.length_squared()
        self._down_len_sq = down.length_squared()
        if self._right_len_sq == 0 or self._down_len_sq == 0:
            raise DegenerateGeometryError(f"Rect edges must be non-zero: right={right}, down={down}")
        self.normal = right.cross(down).normalize()

    def get_intersection(self, ray: Ray) -> Optional[Intersection]:
        """Intersect the ray with the rectangle's front face.

        The origin must lie on the visible side of the plane and the ray
        must point towards it, otherwise the rectangle is not seen.
        """
        normal = self.normal

        # Height of the ray origin over the plane, negative on the visible side
        height = (self.center - ray.origin) * normal
        if height >= 0:
            return None

        # Zero cosine means the ray runs parallel to the plane
        facing = normal * ray.direction
        cos = facing / ray.direction.length()
        if cos >= 0:
            return None

        dist = height / facing
        point = ray.at(dist)

        from_center = point - self.center
        u = (from_center * self.right) / self._right_len_sq
        v = (from_center * self.down) / self._down_len_sq
        if abs(u) > 1.0 or abs(v) > 1.0:
            return None

        # Mirror the incoming direction about the normal
        mirror = normal * (normal * -ray.direction)
        reflect = mirror + (mirror + ray.direction)

        light = self.material.resolve((u + 1.0) / 2.0, (v + 1.0) / 2.0)
        return dist, PointRayProperties(orientation=reflect, light_properties=light)

    def get_outer_bounds(self) -> Tuple[Point3, float]:
        """Return a sphere around the center reaching every corner."""
        return self.center, (self.right + self.down).length()

    def __repr__(self) -> str:
        return f"Rect(center={self.center}, right={self.right}, down={self.down})"
