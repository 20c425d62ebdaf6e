"""
Glintcast - A Python Ray Tracing Renderer

A recursive ray tracer for scenes of light-emitting, reflective,
transparent and scattering surfaces:
- One primary ray per pixel through a planar pinhole camera
- Nearest-first radiance accumulation with transparency
- Recursive reflection and scattering bounded by a bounce budget
- Multi-threaded tile rendering to RGBA8 images
"""

__version__ = "0.1.0"
__author__ = "Glintcast Team"

from .vec3 import Vec3, Point3, DegenerateGeometryError
from .ray import Ray
from .color import Color
from .textures import Texture, SolidColor, ImageTexture
from .materials import LightChannels, PointLightProperties, Material
from .shapes import Drawable, PointRayProperties, Rect
from .camera import Camera
from .renderer import (
    Renderer, RenderEnv, RenderSettings, NonFiniteDistanceError,
    save_image, to_pil_image, get_platform_info
)
from .scene_parser import Scene, SceneParser, SceneParseError, load_scene, parse_scene
