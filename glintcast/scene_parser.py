"""
Scene description language parser.

Supports a YAML or JSON scene description format with:
- Render settings (resolution, bounce budget, frame, tiling)
- Camera configuration
- Materials library
- Objects (rectangles with materials)

Example scene file:
```yaml
render:
  width: 320
  height: 180
  max_light_rays: 1

camera:
  position: [0, 0, 0]
  right: [0, 0.89, 0]
  down: [0, 0, -0.5]

materials:
  red_glass:
    emittance: [0.5, 0, 0]
    transparency: 0.3
    reflectiveness: 0.5
  poster:
    emittance: {texture: poster.png}

objects:
  - type: rect
    center: [2.5, 0, 0]
    right: [0, 1, 0]
    down: [0, 0, -0.5]
    material: red_glass
```

Texture paths are resolved relative to the scene file.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import json
import logging

import yaml

from .vec3 import Vec3, Point3, DegenerateGeometryError
from .color import Color
from .camera import Camera
from .textures import Texture, SolidColor, ImageTexture
from .materials import Material
from .shapes import Drawable, Rect
from .renderer import RenderEnv, RenderSettings

logger = logging.getLogger(__name__)

CHANNELS = ('emittance', 'transparency', 'reflectiveness', 'scattering')


class SceneParseError(Exception):
    """Error during scene parsing."""
    pass


def _to_float(value: Any, what: str) -> float:
    if isinstance(value, bool):
        raise SceneParseError(f"{what} must be a number, got: {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise SceneParseError(f"{what} must be a number, got: {value!r}") from e


def _to_int(value: Any, what: str) -> int:
    """Convert a whole number, rejecting fractional or non-numeric values."""
    if isinstance(value, bool):
        raise SceneParseError(f"{what} must be an integer, got: {value!r}")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            pass
    raise SceneParseError(f"{what} must be an integer, got: {value!r}")


def _require(value: Any, kind: type, what: str) -> Any:
    if not isinstance(value, kind):
        name = "mapping" if kind is dict else "list"
        raise SceneParseError(f"{what} must be a {name}, got: {value!r}")
    return value


@dataclass
class Scene:
    """Everything needed to render one image."""
    drawables: List[Drawable] = field(default_factory=list)
    camera: Optional[Camera] = None
    env: RenderEnv = field(default_factory=RenderEnv)
    resolution: Tuple[int, int] = (320, 180)
    settings: RenderSettings = field(default_factory=RenderSettings)


class SceneParser:
    """Parser for scene description files."""

    def __init__(self, base_dir: Optional[Path] = None):
        """Create a parser.

        Args:
            base_dir: Directory that relative texture paths are resolved against
        """
        self.base_dir = base_dir if base_dir is not None else Path.cwd()
        self.materials: Dict[str, Material] = {}
        self.scene = Scene()

    def parse_file(self, filepath: str) -> Scene:
        """Parse a scene file.

        Args:
            filepath: Path to the scene file (YAML or JSON)

        Returns:
            The parsed scene
        """
        path = Path(filepath)
        if not path.exists():
            raise SceneParseError(f"Scene file not found: {filepath}")

        self.base_dir = path.parent
        content = path.read_text()

        try:
            if path.suffix == '.json':
                data = json.loads(content)
            else:
                data = yaml.safe_load(content)
        except (json.JSONDecodeError, yaml.YAMLError) as e:
            raise SceneParseError(f"Cannot read scene file {filepath}: {e}") from e

        if not isinstance(data, dict):
            raise SceneParseError(f"Scene file {filepath} must contain a mapping")

        return self.parse_dict(data)

    def parse_dict(self, data: Dict[str, Any]) -> Scene:
        """Parse a scene from a dictionary.

        Args:
            data: Scene description dictionary

        Returns:
            The parsed scene
        """
        if 'render' in data:
            self._parse_settings(_require(data['render'], dict, "render section"))

        # Parse materials first (objects reference them)
        if 'materials' in data:
            self._parse_materials(_require(data['materials'], dict, "materials section"))

        if 'objects' in data:
            self._parse_objects(_require(data['objects'], list, "objects section"))

        if 'camera' in data:
            self._parse_camera(_require(data['camera'], dict, "camera section"))
        else:
            width, height = self.scene.resolution
            self.scene.camera = Camera.look_at(
                position=Point3(0, 0, 0),
                target=Point3(1, 0, 0),
                vfov=60,
                aspect_ratio=width / height
            )

        logger.debug("Parsed scene with %d objects and %d materials",
                     len(self.scene.drawables), len(self.materials))
        return self.scene

    def _parse_vec3(self, data: Any) -> Vec3:
        """Parse a Vec3 from various formats."""
        if isinstance(data, (list, tuple)):
            if len(data) != 3:
                raise SceneParseError(f"Vec3 must have 3 components, got {len(data)}")
            return Vec3(*(_to_float(c, "Vec3 component") for c in data))
        elif isinstance(data, dict):
            return Vec3(*(_to_float(data.get(axis, 0), "Vec3 component") for axis in 'xyz'))
        else:
            raise SceneParseError(f"Cannot parse Vec3 from: {data}")

    def _parse_color(self, data: Any) -> Color:
        """Parse a Color from various formats."""
        if isinstance(data, bool):
            raise SceneParseError(f"Cannot parse Color from: {data}")
        if isinstance(data, (int, float)):
            return Color.rgb(_to_float(data, "Color component"))
        elif isinstance(data, (list, tuple)):
            if len(data) in (3, 4):
                return Color(*(_to_float(c, "Color component") for c in data))
            raise SceneParseError(f"Color must have 3 or 4 components, got {len(data)}")
        elif isinstance(data, dict):
            return Color(
                _to_float(data.get('r', 0), "Color component"),
                _to_float(data.get('g', 0), "Color component"),
                _to_float(data.get('b', 0), "Color component"),
                _to_float(data.get('a', 1), "Color component")
            )
        elif isinstance(data, str):
            # Handle hex colors
            if data.startswith('#'):
                hex_color = data[1:]
                if len(hex_color) in (6, 8):
                    try:
                        u8s = [int(hex_color[i:i + 2], 16) for i in range(0, len(hex_color), 2)]
                    except ValueError:
                        raise SceneParseError(f"Cannot parse color from string: {data}")
                    return Color.from_u8s(u8s + [255] * (4 - len(u8s)))
            raise SceneParseError(f"Cannot parse color from string: {data}")
        else:
            raise SceneParseError(f"Cannot parse Color from: {data}")

    def _parse_texture(self, data: Any) -> Texture:
        """Parse a channel: a color, or a mapping naming an image texture."""
        if isinstance(data, dict) and 'texture' in data:
            path = Path(data['texture'])
            if not path.is_absolute():
                path = self.base_dir / path
            try:
                return ImageTexture.from_file(path, gamma=_to_float(data.get('gamma', 1.0), "gamma"))
            except FileNotFoundError as e:
                raise SceneParseError(str(e)) from e
        return SolidColor(self._parse_color(data))

    def _build_material(self, mat_data: Dict[str, Any]) -> Material:
        if not isinstance(mat_data, dict):
            raise SceneParseError(f"Material must be a mapping, got: {mat_data}")
        unknown = set(mat_data) - set(CHANNELS)
        if unknown:
            raise SceneParseError(f"Unknown material channels: {sorted(unknown)}")

        channels = {
            name: self._parse_texture(mat_data[name]) if name in mat_data else SolidColor(Color.transparent())
            for name in CHANNELS
        }
        return Material(**channels)

    def _parse_materials(self, materials_data: Dict[str, Any]) -> None:
        """Parse materials section."""
        for name, mat_data in materials_data.items():
            self.materials[name] = self._build_material(mat_data)

    def _get_material(self, mat_ref: Any) -> Material:
        """Get a material by name or inline definition."""
        if isinstance(mat_ref, str):
            if mat_ref not in self.materials:
                raise SceneParseError(f"Unknown material: {mat_ref}")
            return self.materials[mat_ref]
        elif isinstance(mat_ref, dict):
            return self._build_material(mat_ref)
        else:
            raise SceneParseError(f"Invalid material reference: {mat_ref}")

    def _parse_objects(self, objects_data: list) -> None:
        """Parse objects section."""
        for obj_data in objects_data:
            _require(obj_data, dict, "Object entry")
            obj_type = str(obj_data.get('type', 'rect')).lower()
            material = self._get_material(obj_data.get('material'))

            if obj_type == 'rect':
                center = self._parse_vec3(obj_data.get('center', [0, 0, 0]))
                right = self._parse_vec3(obj_data.get('right', [0, 1, 0]))
                down = self._parse_vec3(obj_data.get('down', [0, 0, -1]))
                try:
                    self.scene.drawables.append(Rect(center, right, down, material))
                except DegenerateGeometryError as e:
                    raise SceneParseError(f"Invalid rect: {e}") from e

            else:
                raise SceneParseError(f"Unknown object type: {obj_type}")

    def _parse_camera(self, camera_data: Dict[str, Any]) -> None:
        """Parse camera section.

        Accepts either an explicit basis (position, right, down) or a
        look-at pose (position, look_at, up, vfov).
        """
        position = self._parse_vec3(camera_data.get('position', [0, 0, 0]))
        try:
            if 'right' in camera_data or 'down' in camera_data:
                right = self._parse_vec3(camera_data.get('right', [0, 1, 0]))
                down = self._parse_vec3(camera_data.get('down', [0, 0, -1]))
                self.scene.camera = Camera(position, right, down)
            else:
                width, height = self.scene.resolution
                self.scene.camera = Camera.look_at(
                    position=position,
                    target=self._parse_vec3(camera_data.get('look_at', [1, 0, 0])),
                    up=self._parse_vec3(camera_data.get('up', [0, 0, 1])),
                    vfov=_to_float(camera_data.get('vfov', 60), "vfov"),
                    aspect_ratio=_to_float(camera_data.get('aspect_ratio', width / height), "aspect_ratio")
                )
        except DegenerateGeometryError as e:
            raise SceneParseError(f"Invalid camera: {e}") from e

    def _parse_settings(self, settings_data: Dict[str, Any]) -> None:
        """Parse render settings section."""
        try:
            self.scene.resolution = (
                _to_int(settings_data.get('width', 320), "width"),
                _to_int(settings_data.get('height', 180), "height")
            )
            self.scene.env = RenderEnv(
                frame=_to_int(settings_data.get('frame', 0), "frame"),
                max_light_rays=_to_int(settings_data.get('max_light_rays', 1), "max_light_rays")
            )
            self.scene.settings = RenderSettings(
                tile_size=_to_int(settings_data.get('tile_size', 32), "tile_size"),
                num_threads=_to_int(settings_data.get('threads', 0), "threads")
            )
        except ValueError as e:
            raise SceneParseError(f"Invalid render settings: {e}") from e

        width, height = self.scene.resolution
        if width < 1 or height < 1:
            raise SceneParseError(f"Resolution must be positive, got {width}x{height}")


def load_scene(filepath: str) -> Scene:
    """Convenience function to load a scene file.

    Args:
        filepath: Path to the scene file

    Returns:
        The parsed scene
    """
    parser = SceneParser()
    return parser.parse_file(filepath)


def parse_scene(data: Dict[str, Any], base_dir: Optional[Path] = None) -> Scene:
    """Convenience function to parse a scene from a dictionary.

    Args:
        data: Scene description dictionary
        base_dir: Directory that relative texture paths are resolved against

    Returns:
        The parsed scene
    """
    parser = SceneParser(base_dir)
    return parser.parse_dict(data)
