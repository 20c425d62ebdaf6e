"""
Renderer module - the heart of the ray tracer.

Implements:
- Recursive radiance accumulation (emission, transparency, reflection, scattering)
- Multi-threaded tile-based rendering
- RGBA8 output
"""

from __future__ import annotations
import logging
import math
import os
import platform
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, replace
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, Union

import numpy as np
from PIL import Image

from .vec3 import Vec3, Point3
from .ray import Ray
from .color import Color
from .camera import Camera
from .shapes import Drawable, Intersection

logger = logging.getLogger(__name__)

# Remaining strength below which farther hits are skipped
MIN_STRENGTH = 0.002

Tile = Tuple[int, int, int, int]


class NonFiniteDistanceError(ArithmeticError):
    """Raised when a drawable reports a NaN hit distance."""
    pass


@dataclass(frozen=True)
class RenderEnv:
    """Context passed down every traced ray.

    Attributes:
        frame: Opaque frame counter, passed through unchanged
        max_light_rays: Remaining budget of secondary (reflected/scattered) bounces
    """
    frame: int = 0
    max_light_rays: int = 1

    def __post_init__(self):
        if isinstance(self.max_light_rays, bool) or not isinstance(self.max_light_rays, int):
            raise ValueError(f"max_light_rays must be an int, got {self.max_light_rays!r}")
        if self.max_light_rays < 0:
            raise ValueError(f"max_light_rays must be non-negative, got {self.max_light_rays}")

    def with_budget(self, max_light_rays: int) -> 'RenderEnv':
        """Return a copy with a different bounce budget."""
        return replace(self, max_light_rays=max_light_rays)


@dataclass
class RenderSettings:
    """Configuration for the renderer."""
    tile_size: int = 32
    num_threads: int = 0  # 0 = auto-detect

    def __post_init__(self):
        if self.tile_size < 1:
            raise ValueError(f"tile_size must be positive, got {self.tile_size}")
        if self.num_threads < 0:
            raise ValueError(f"num_threads must not be negative, got {self.num_threads}")
        if self.num_threads == 0:
            self.num_threads = os.cpu_count() or 4


class Renderer:
    """Recursive ray tracer over a list of drawables."""

    def __init__(self, drawables: Optional[Iterable[Drawable]] = None, settings: RenderSettings = None):
        """Create a renderer.

        Args:
            drawables: Scene objects; their order only affects tie-breaking
            settings: Render configuration (uses defaults if None)
        """
        self._drawables: List[Drawable] = list(drawables) if drawables is not None else []
        self.settings = settings if settings else RenderSettings()
        self._progress_callback: Optional[Callable[[float], None]] = None

    # Scene mutation is only safe between render calls.

    @property
    def drawables(self) -> Tuple[Drawable, ...]:
        return tuple(self._drawables)

    def add(self, drawable: Drawable) -> None:
        """Add an object to the scene."""
        self._drawables.append(drawable)

    def remove(self, drawable: Drawable) -> None:
        """Remove an object from the scene (ValueError if absent)."""
        self._drawables.remove(drawable)

    def clear(self) -> None:
        """Remove all objects."""
        self._drawables.clear()

    def __len__(self) -> int:
        return len(self._drawables)

    def set_progress_callback(self, callback: Callable[[float], None]) -> None:
        """Set a callback function for progress updates.

        Args:
            callback: Function that takes progress as float (0.0 to 1.0)
        """
        self._progress_callback = callback

    def render(
        self,
        env: RenderEnv,
        resolution: Sequence[int],
        position: Point3,
        right: Vec3,
        down: Vec3
    ) -> np.ndarray:
        """Render the scene and return the image as a numpy array.

        Args:
            env: Frame counter and bounce budget
            resolution: (width, height) in pixels
            position: Camera position
            right: Half-width of the image plane, pointing right
            down: Half-height of the image plane, pointing down

        Returns:
            RGBA8 image as uint8 array of shape (height, width, 4)
        """
        width, height = resolution
        if width < 1 or height < 1:
            raise ValueError(f"Resolution must be positive, got {width}x{height}")

        camera = Camera(position, right, down)
        scene = tuple(self._drawables)

        image = np.zeros((height, width, 4), dtype=np.uint8)

        # Generate tiles for parallel processing
        tiles = self._generate_tiles(width, height)
        total_tiles = len(tiles)
        completed_tiles = [0]
        progress_lock = threading.Lock()

        logger.debug("Rendering %dx%d in %d tiles, %d objects, env=%s",
                     width, height, total_tiles, len(scene), env)
        start_time = time.perf_counter()

        def render_tile(tile: Tile) -> Tuple[Tile, np.ndarray]:
            """Render a single tile."""
            x0, y0, x1, y1 = tile
            tile_image = np.empty((y1 - y0, x1 - x0, 4), dtype=np.uint8)

            for y in range(y0, y1):
                for x in range(x0, x1):
                    ray = camera.get_ray(x, y, width, height)
                    tile_image[y - y0, x - x0] = self._trace(scene, env, ray).u8s()

            # Reported under the lock so values arrive in order and end at 1.0
            with progress_lock:
                completed_tiles[0] += 1
                if self._progress_callback:
                    self._progress_callback(completed_tiles[0] / total_tiles)

            return tile, tile_image

        # Render tiles in parallel
        if self.settings.num_threads > 1 and total_tiles > 1:
            with ThreadPoolExecutor(max_workers=self.settings.num_threads) as executor:
                results = list(executor.map(render_tile, tiles))
        else:
            results = [render_tile(tile) for tile in tiles]

        # Combine tiles into final image
        for tile, tile_image in results:
            x0, y0, x1, y1 = tile
            image[y0:y1, x0:x1] = tile_image

        logger.info("Rendered %dx%d in %.2fs", width, height, time.perf_counter() - start_time)
        return image

    def trace(self, env: RenderEnv, ray: Ray) -> Color:
        """Compute the light arriving along a ray.

        Args:
            env: Frame counter and remaining bounce budget
            ray: The ray to trace

        Returns:
            The accumulated (unclamped) color
        """
        return self._trace(tuple(self._drawables), env, ray)

    def _trace(self, scene: Tuple[Drawable, ...], env: RenderEnv, ray: Ray) -> Color:
        hits = self._sorted_hits(scene, ray)

        color = Color.transparent()
        strength = Color(1.0, 1.0, 1.0, 1.0)

        for dist, props in hits:
            if strength.max_rgb() < MIN_STRENGTH:
                break

            light = props.light_properties

            # Emission, dimmed by everything in front of it
            color = color + light.emittance * strength

            # Light from farther hits passes through this surface
            strength = strength * light.transparency

            budget = env.max_light_rays
            if budget == 0:
                continue
            point = ray.at(dist)

            # Specular bounce
            if not light.reflectiveness.is_transparent():
                bounce = Ray(point, props.orientation)
                color = color + self._trace(scene, env.with_budget(budget - 1), bounce) * light.reflectiveness

            # Scattering, budget split between the directions
            n = len(props.scattering_orientations)
            if n:
                per_ray = light.scattering / n
                if not per_ray.is_transparent():
                    scatter_env = env.with_budget(min(budget // n, budget - 1))
                    for orientation in props.scattering_orientations:
                        scattered = self._trace(scene, scatter_env, Ray(point, orientation))
                        color = color + scattered * per_ray

        return color

    @staticmethod
    def _sorted_hits(scene: Tuple[Drawable, ...], ray: Ray) -> List[Intersection]:
        """Intersect every drawable and order the hits nearest first."""
        hits = []
        for drawable in scene:
            hit = drawable.get_intersection(ray)
            if hit is not None:
                if math.isnan(hit[0]):
                    raise NonFiniteDistanceError(f"{drawable!r} returned a NaN distance for {ray!r}")
                hits.append(hit)

        hits.sort(key=lambda hit: hit[0])
        return hits

    def _generate_tiles(self, width: int, height: int) -> List[Tile]:
        """Generate tiles for parallel rendering.

        Args:
            width: Image width
            height: Image height

        Returns:
            List of tiles as (x0, y0, x1, y1) tuples
        """
        tile_size = self.settings.tile_size
        tiles = []

        for y in range(0, height, tile_size):
            for x in range(0, width, tile_size):
                x1 = min(x + tile_size, width)
                y1 = min(y + tile_size, height)
                tiles.append((x, y, x1, y1))

        return tiles


def to_pil_image(image: np.ndarray) -> Image.Image:
    """Wrap an RGBA8 raster in a PIL image."""
    return Image.fromarray(np.ascontiguousarray(image, dtype=np.uint8))


def save_image(image: np.ndarray, filename: Union[str, Path]) -> None:
    """Save an RGBA8 raster to file.

    Args:
        image: uint8 array of shape (height, width, 4)
        filename: Output filename (extension determines format)
    """
    path = Path(filename)
    path.parent.mkdir(parents=True, exist_ok=True)
    to_pil_image(image).save(path)
    logger.info("Saved %s", path)


def get_platform_info() -> dict:
    """Get information about the current platform.

    Returns:
        Dictionary with platform details
    """
    return {
        'system': platform.system(),
        'machine': platform.machine(),
        'processor': platform.processor(),
        'python_version': platform.python_version(),
        'cpu_count': os.cpu_count(),
    }
