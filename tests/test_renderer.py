"""Tests for Renderer class."""

import pytest
import math
import time
from collections import Counter
import numpy as np
from PIL import Image

from glintcast.vec3 import Vec3, Point3
from glintcast.ray import Ray
from glintcast.color import Color
from glintcast.materials import Material, LightChannels
from glintcast.shapes import Drawable, Rect, PointRayProperties
from glintcast.renderer import (
    Renderer, RenderEnv, RenderSettings, NonFiniteDistanceError,
    save_image, to_pil_image, get_platform_info
)

ORIGIN = Point3(0, 0, 0)
FORWARD = Ray(ORIGIN, Vec3(1, 0, 0))


def facing_rect(x: float, material: Material, y: float = 0.0) -> Rect:
    """A rectangle at depth x that faces a camera at the origin looking along +x."""
    return Rect(Point3(x, y, 0), Vec3(0, 1, 0), Vec3(0, 0, -0.5), material)


def behind_rect(material: Material) -> Rect:
    """A rectangle behind the origin, facing +x."""
    return Rect(Point3(-2, 0, 0), Vec3(0, -1, 0), Vec3(0, 0, -0.5), material)


def light(emittance=None, transparency=None, reflectiveness=None, scattering=None) -> LightChannels:
    blank = Color.transparent()
    return LightChannels(
        emittance=emittance if emittance is not None else blank,
        transparency=transparency if transparency is not None else blank,
        reflectiveness=reflectiveness if reflectiveness is not None else blank,
        scattering=scattering if scattering is not None else blank,
    )


class AlwaysHit(Drawable):
    """Hits every ray at a fixed distance."""

    def __init__(self, dist, light_properties, orientation=Vec3(1, 0, 0), scattering_orientations=()):
        self.dist = dist
        self.light_properties = light_properties
        self.orientation = orientation
        self.scattering_orientations = list(scattering_orientations)

    def get_intersection(self, ray):
        return self.dist, PointRayProperties(
            orientation=self.orientation,
            light_properties=self.light_properties,
            scattering_orientations=list(self.scattering_orientations),
        )

    def get_outer_bounds(self):
        return ORIGIN, math.inf


class HitsDirection(AlwaysHit):
    """Hits only rays travelling along one direction."""

    def __init__(self, direction, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.direction = direction

    def get_intersection(self, ray):
        if ray.direction.normalize() != self.direction.normalize():
            return None
        return super().get_intersection(ray)


class SpyRenderer(Renderer):
    """Records the bounce budget of every traced ray."""

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.budgets = []

    def _trace(self, scene, env, ray):
        self.budgets.append(env.max_light_rays)
        return super()._trace(scene, env, ray)


class TestRenderEnv:
    """Test RenderEnv configuration."""

    def test_defaults(self):
        env = RenderEnv()
        assert env.frame == 0
        assert env.max_light_rays == 1

    def test_negative_budget_raises(self):
        with pytest.raises(ValueError):
            RenderEnv(max_light_rays=-1)

    def test_non_int_budget_raises(self):
        with pytest.raises(ValueError):
            RenderEnv(max_light_rays=1.5)
        with pytest.raises(ValueError):
            RenderEnv(max_light_rays=True)

    def test_with_budget_keeps_frame(self):
        env = RenderEnv(frame=2 ** 100, max_light_rays=5).with_budget(2)
        assert env.frame == 2 ** 100
        assert env.max_light_rays == 2


class TestRenderSettings:
    """Test RenderSettings configuration."""

    def test_default_values(self):
        settings = RenderSettings()
        assert settings.tile_size == 32

    def test_auto_thread_detection(self):
        settings = RenderSettings(num_threads=0)
        import os
        assert settings.num_threads == (os.cpu_count() or 4)

    def test_bad_tile_size(self):
        with pytest.raises(ValueError):
            RenderSettings(tile_size=0)

    def test_negative_threads_rejected(self):
        with pytest.raises(ValueError):
            RenderSettings(num_threads=-2)

    def test_explicit_threads_kept(self):
        assert RenderSettings(num_threads=3).num_threads == 3


class TestRendererScene:
    """Test scene mutation."""

    def test_add_remove(self):
        rect = facing_rect(2, Material.flat())
        renderer = Renderer()
        assert len(renderer) == 0
        renderer.add(rect)
        assert renderer.drawables == (rect,)
        renderer.remove(rect)
        assert len(renderer) == 0

    def test_remove_missing_raises(self):
        with pytest.raises(ValueError):
            Renderer().remove(facing_rect(2, Material.flat()))

    def test_clear(self):
        renderer = Renderer([facing_rect(2, Material.flat()), facing_rect(3, Material.flat())])
        renderer.clear()
        assert len(renderer) == 0

    def test_constructor_copies_list(self):
        scene = [facing_rect(2, Material.flat())]
        renderer = Renderer(scene)
        scene.clear()
        assert len(renderer) == 1


class TestTraceEmission:
    """Test direct emission and transparency."""

    def test_empty_scene_is_transparent(self):
        assert Renderer().trace(RenderEnv(), FORWARD).is_transparent()

    def test_direct_emission_formula(self):
        e = [Color(0.5, 0, 0, 0), Color(0, 0.5, 0, 0), Color(0, 0, 0.5, 0.2)]
        t = [Color(0.3, 0.4, 0.5, 0), Color(0.5, 0.6, 0.7, 1), Color(0, 0, 0, 0)]
        rects = [facing_rect(2 + i, Material.flat(emittance=e[i], transparency=t[i])) for i in range(3)]

        result = Renderer(rects).trace(RenderEnv(max_light_rays=0), FORWARD)

        expected = e[0] + e[1] * t[0] + e[2] * t[0] * t[1]
        assert result == expected

    def test_order_of_drawables_does_not_matter(self):
        rects = [
            facing_rect(2, Material.flat(emittance=Color(0.5, 0, 0, 0), transparency=Color.all(0.5))),
            facing_rect(3, Material.flat(emittance=Color(0, 0.5, 0, 0), transparency=Color.all(0.5))),
        ]
        env = RenderEnv(max_light_rays=0)
        assert Renderer(rects).trace(env, FORWARD) == Renderer(rects[::-1]).trace(env, FORWARD)

    def test_opaque_surface_occludes(self):
        front = facing_rect(2, Material.flat(emittance=Color(0.2, 0.2, 0.2, 1)))
        back = facing_rect(3, Material.flat(emittance=Color(1, 1, 1, 1)))

        result = Renderer([back, front]).trace(RenderEnv(max_light_rays=0), FORWARD)

        assert result == Color(0.2, 0.2, 0.2, 1)

    def test_energy_cutoff_skips_far_hits(self):
        front = facing_rect(2, Material.flat(transparency=Color.all(0.001)))
        back = facing_rect(3, Material.flat(emittance=Color.all(1000.0)))

        result = Renderer([front, back]).trace(RenderEnv(max_light_rays=0), FORWARD)

        assert result.is_transparent()

    def test_above_cutoff_passes_light(self):
        front = facing_rect(2, Material.flat(transparency=Color.all(0.01)))
        back = facing_rect(3, Material.flat(emittance=Color.all(1.0)))

        result = Renderer([front, back]).trace(RenderEnv(max_light_rays=0), FORWARD)

        assert result == Color.all(0.01)

    def test_nan_distance_fails_loudly(self):
        renderer = Renderer([AlwaysHit(float('nan'), light()), AlwaysHit(1.0, light())])
        with pytest.raises(NonFiniteDistanceError):
            renderer.trace(RenderEnv(), FORWARD)

    def test_infinite_distance_sorts_last(self):
        near = AlwaysHit(1.0, light(emittance=Color.all(0.25)))
        far = AlwaysHit(math.inf, light(emittance=Color.all(1.0)))
        result = Renderer([far, near]).trace(RenderEnv(max_light_rays=0), FORWARD)
        assert result == Color.all(0.25)


class TestTraceReflection:
    """Test recursive specular bounces."""

    def _mirror_scene(self):
        mirror = facing_rect(2.5, Material.flat(reflectiveness=Color.all(0.5)))
        lamp = behind_rect(Material.flat(emittance=Color.all(1.0)))
        return [mirror, lamp]

    def test_reflection_adds_reflected_light(self):
        result = Renderer(self._mirror_scene()).trace(RenderEnv(max_light_rays=1), FORWARD)
        assert result == Color.all(0.5)

    def test_zero_budget_disables_reflection(self):
        result = Renderer(self._mirror_scene()).trace(RenderEnv(max_light_rays=0), FORWARD)
        assert result.is_transparent()

    def test_budget_decreases_by_one_per_bounce(self):
        renderer = SpyRenderer([AlwaysHit(1.0, light(reflectiveness=Color.all(0.5)))])
        renderer.trace(RenderEnv(max_light_rays=3), FORWARD)
        assert renderer.budgets == [3, 2, 1, 0]

    def test_no_bounce_at_zero_budget(self):
        renderer = SpyRenderer([AlwaysHit(1.0, light(reflectiveness=Color.all(0.5)))])
        renderer.trace(RenderEnv(max_light_rays=0), FORWARD)
        assert renderer.budgets == [0]

    def test_non_reflective_surface_does_not_bounce(self):
        renderer = SpyRenderer([AlwaysHit(1.0, light(emittance=Color.all(1.0)))])
        renderer.trace(RenderEnv(max_light_rays=5), FORWARD)
        assert renderer.budgets == [5]

    def test_reflection_terminates_with_gain_above_one(self):
        renderer = SpyRenderer([AlwaysHit(1.0, light(
            emittance=Color.all(1.0), reflectiveness=Color.all(2.0), transparency=Color.all(2.0)
        ))])
        result = renderer.trace(RenderEnv(max_light_rays=4), FORWARD)
        assert len(renderer.budgets) == 5
        # 1 + 2 * (1 + 2 * (1 + 2 * (1 + 2 * 1)))
        assert result.r == pytest.approx(31.0)


class TestTraceScattering:
    """Test scattering into several directions."""

    def test_scattered_light_split_between_rays(self):
        back = Vec3(-1, 0, 0)
        splitter = HitsDirection(
            Vec3(1, 0, 0), 2.5, light(scattering=Color.all(0.6)),
            scattering_orientations=[back, back]
        )
        lamp = behind_rect(Material.flat(emittance=Color.all(1.0)))

        result = Renderer([splitter, lamp]).trace(RenderEnv(max_light_rays=2), FORWARD)

        assert result == Color.all(0.6)

    def test_budget_split_by_integer_division(self):
        stub = AlwaysHit(1.0, light(scattering=Color.all(1.0)),
                         scattering_orientations=[Vec3(1, 0, 0), Vec3(0, 1, 0)])
        renderer = SpyRenderer([stub])
        renderer.trace(RenderEnv(max_light_rays=4), FORWARD)

        assert Counter(renderer.budgets) == Counter({4: 1, 2: 2, 1: 4, 0: 8})

    def test_at_most_n_calls_per_hit(self):
        stub = AlwaysHit(1.0, light(scattering=Color.all(1.0)),
                         scattering_orientations=[Vec3(1, 0, 0)] * 3)
        renderer = SpyRenderer([stub])
        renderer.trace(RenderEnv(max_light_rays=2), FORWARD)

        assert renderer.budgets == [2, 0, 0, 0]

    def test_single_direction_consumes_a_bounce(self):
        stub = AlwaysHit(1.0, light(scattering=Color.all(1.0)),
                         scattering_orientations=[Vec3(1, 0, 0)])
        renderer = SpyRenderer([stub])
        renderer.trace(RenderEnv(max_light_rays=3), FORWARD)

        assert renderer.budgets == [3, 2, 1, 0]

    def test_zero_scattering_color_skips_rays(self):
        stub = AlwaysHit(1.0, light(), scattering_orientations=[Vec3(1, 0, 0)] * 2)
        renderer = SpyRenderer([stub])
        renderer.trace(RenderEnv(max_light_rays=4), FORWARD)

        assert renderer.budgets == [4]

    def test_zero_budget_skips_scattering(self):
        stub = AlwaysHit(1.0, light(scattering=Color.all(1.0)),
                         scattering_orientations=[Vec3(1, 0, 0)] * 2)
        renderer = SpyRenderer([stub])
        renderer.trace(RenderEnv(max_light_rays=0), FORWARD)

        assert renderer.budgets == [0]


class TestRendererImage:
    """Test full image rendering."""

    WHITE = Material.flat(emittance=Color(1, 1, 1, 1))

    def _single_rect_renderer(self, **settings):
        rect = Rect(Point3(2.5, 0, 0), Vec3(0, 1, 0), Vec3(0, 0, -0.5), self.WHITE)
        return Renderer([rect], RenderSettings(**settings)), rect

    def test_render_produces_image(self):
        renderer, _ = self._single_rect_renderer(num_threads=1)
        image = renderer.render(RenderEnv(max_light_rays=0), (8, 6), ORIGIN, Vec3(0, 1, 0), Vec3(0, 0, -1))

        assert image.shape == (6, 8, 4)
        assert image.dtype == np.uint8
        assert (image[..., 3] == 255).all()

    def test_rect_filling_view_is_white(self):
        renderer, _ = self._single_rect_renderer(num_threads=1)
        image = renderer.render(RenderEnv(max_light_rays=0), (9, 7), ORIGIN, Vec3(0, 0.39, 0), Vec3(0, 0, -0.19))

        assert (image == 255).all()

    def test_hit_pixels_white_others_black(self):
        renderer, rect = self._single_rect_renderer(num_threads=1)
        width, height = 21, 15
        right, down = Vec3(0, 1, 0), Vec3(0, 0, -1)

        image = renderer.render(RenderEnv(max_light_rays=0), (width, height), ORIGIN, right, down)

        forward = down.cross(right).normalize()
        hit_count = 0
        for y in range(height):
            for x in range(width):
                rf = 2 * x / (width - 1) - 1
                df = 2 * y / (height - 1) - 1
                ray = Ray(ORIGIN, forward + down * df + right * rf)
                if rect.get_intersection(ray) is not None:
                    hit_count += 1
                    assert tuple(image[y, x]) == (255, 255, 255, 255)
                else:
                    assert tuple(image[y, x]) == (0, 0, 0, 255)
        assert 0 < hit_count < width * height

    def test_pixel_addressing(self):
        # Rectangle covers only the right-hand side of the view
        rect = facing_rect(2.5, self.WHITE, y=1.5)
        renderer = Renderer([rect], RenderSettings(num_threads=1))
        image = renderer.render(RenderEnv(max_light_rays=0), (11, 5), ORIGIN, Vec3(0, 0.9, 0), Vec3(0, 0, -0.1))

        assert (image[:, -1, :3] == 255).all()
        assert (image[:, 0, :3] == 0).all()

    def test_single_pixel(self):
        renderer, _ = self._single_rect_renderer(num_threads=1)
        image = renderer.render(RenderEnv(max_light_rays=0), (1, 1), ORIGIN, Vec3(0, 1, 0), Vec3(0, 0, -1))
        assert tuple(image[0, 0]) == (255, 255, 255, 255)

    def test_invalid_resolution(self):
        renderer, _ = self._single_rect_renderer(num_threads=1)
        with pytest.raises(ValueError):
            renderer.render(RenderEnv(), (0, 4), ORIGIN, Vec3(0, 1, 0), Vec3(0, 0, -1))

    def test_threaded_matches_single_threaded(self):
        scene = [
            facing_rect(2.5, Material.flat(
                emittance=Color(0.5, 0, 0, 0),
                transparency=Color.all(0.3),
                reflectiveness=Color.all(0.5)
            )),
            facing_rect(3.0, Material.flat(emittance=Color(0, 0.5, 0, 0), transparency=Color.all(0.5)), y=1.0),
            Rect(Point3(-2, -0.5, 0.25), Vec3(0, -1, 0), Vec3(0, 0, -0.5),
                 Material.flat(emittance=Color(0, 0, 0.5, 0), transparency=Color.all(0.5))),
        ]
        args = (RenderEnv(max_light_rays=1), (24, 14), ORIGIN, Vec3(0, 1.2, 0), Vec3(0, 0, -0.55))

        single = Renderer(scene, RenderSettings(tile_size=5, num_threads=1)).render(*args)
        threaded = Renderer(scene, RenderSettings(tile_size=5, num_threads=4)).render(*args)

        np.testing.assert_array_equal(single, threaded)
        assert single[..., :3].any()

    def test_frame_does_not_change_output(self):
        renderer, _ = self._single_rect_renderer(num_threads=1)
        view = ((6, 4), ORIGIN, Vec3(0, 1, 0), Vec3(0, 0, -1))
        a = renderer.render(RenderEnv(frame=0, max_light_rays=0), *view)
        b = renderer.render(RenderEnv(frame=12345, max_light_rays=0), *view)
        np.testing.assert_array_equal(a, b)


class TestRendererProgress:
    """Test renderer progress reporting."""

    def test_progress_callback(self):
        renderer = Renderer([], RenderSettings(tile_size=5, num_threads=1))
        progress_values = []
        renderer.set_progress_callback(progress_values.append)

        renderer.render(RenderEnv(), (10, 10), ORIGIN, Vec3(0, 1, 0), Vec3(0, 0, -1))

        assert len(progress_values) == 4
        assert progress_values[-1] == 1.0

    def test_progress_callback_threaded(self):
        renderer = Renderer([], RenderSettings(tile_size=4, num_threads=3))
        progress_values = []
        renderer.set_progress_callback(progress_values.append)

        renderer.render(RenderEnv(), (12, 8), ORIGIN, Vec3(0, 1, 0), Vec3(0, 0, -1))

        assert progress_values == [i / 6 for i in range(1, 7)]
        assert progress_values[-1] == 1.0

    def test_slow_callback_still_ends_at_one(self):
        """A worker stalled in the callback cannot report after the final tile."""
        renderer = Renderer([], RenderSettings(tile_size=4, num_threads=2))
        progress_values = []

        def slow_callback(progress):
            if progress < 1.0:
                time.sleep(0.05)
            progress_values.append(progress)

        renderer.set_progress_callback(slow_callback)
        renderer.render(RenderEnv(), (8, 4), ORIGIN, Vec3(0, 1, 0), Vec3(0, 0, -1))

        assert progress_values == [0.5, 1.0]


class TestImageOutput:
    """Test handing the raster to Pillow."""

    def test_to_pil_image(self):
        image = np.zeros((3, 5, 4), dtype=np.uint8)
        image[..., 3] = 255
        pil = to_pil_image(image)
        assert pil.mode == 'RGBA'
        assert pil.size == (5, 3)

    def test_save_image(self, tmp_path):
        image = np.full((4, 6, 4), 255, dtype=np.uint8)
        image[1, 2] = (10, 20, 30, 255)
        path = tmp_path / 'out' / 'render.png'

        save_image(image, path)

        with Image.open(path) as loaded:
            assert loaded.size == (6, 4)
            assert loaded.convert('RGBA').getpixel((2, 1)) == (10, 20, 30, 255)


class TestPlatformInfo:
    """Test platform information."""

    def test_keys(self):
        info = get_platform_info()
        for key in ('system', 'machine', 'processor', 'python_version', 'cpu_count'):
            assert key in info
