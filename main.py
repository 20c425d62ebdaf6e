#!/usr/bin/env python3
"""
Glintcast - A Python Ray Tracing Renderer

Main entry point for rendering scenes.
"""

import argparse
import logging
import sys
import time
from dataclasses import replace

from glintcast.vec3 import Vec3, Point3
from glintcast.color import Color
from glintcast.materials import Material
from glintcast.shapes import Rect
from glintcast.camera import Camera
from glintcast.renderer import Renderer, RenderEnv, RenderSettings, save_image, get_platform_info
from glintcast.scene_parser import SceneParseError, load_scene


def create_demo_scene() -> list:
    """Create a demo scene: three translucent rectangles, the front one reflective."""
    # Red, in front of the camera, mirrors part of the blue one
    red = Rect(
        center=Point3(2.5, 0.0, 0.0),
        right=Vec3(0.0, 1.0, 0.0),
        down=Vec3(0.0, 0.0, -0.5),
        material=Material.flat(
            emittance=Color(0.5, 0.0, 0.0, 0.0),
            transparency=Color(0.3, 0.3, 0.3, 0.0),
            reflectiveness=Color(0.5, 0.5, 0.5, 0.0)
        )
    )

    # Green, partly behind red
    green = Rect(
        center=Point3(3.0, 1.0, 0.0),
        right=Vec3(0.0, 1.0, 0.0),
        down=Vec3(0.0, 0.0, -0.5),
        material=Material.flat(
            emittance=Color(0.0, 0.5, 0.0, 0.0),
            transparency=Color(0.5, 0.5, 0.5, 0.0)
        )
    )

    # Blue, behind the camera; right is flipped so it faces the camera
    blue = Rect(
        center=Point3(-2.0, -0.5, 0.25),
        right=Vec3(0.0, -1.0, 0.0),
        down=Vec3(0.0, 0.0, -0.5),
        material=Material.flat(
            emittance=Color(0.0, 0.0, 0.5, 0.0),
            transparency=Color(0.5, 0.5, 0.5, 0.0)
        )
    )

    return [red, green, blue]


def apply_overrides(args, env, resolution, settings):
    """Replace scene or demo render values with any flags given on the command line."""
    width, height = resolution
    resolution = (
        args.width if args.width is not None else width,
        args.height if args.height is not None else height
    )
    env = replace(
        env,
        frame=args.frame if args.frame is not None else env.frame,
        max_light_rays=args.rays if args.rays is not None else env.max_light_rays
    )
    settings = replace(
        settings,
        tile_size=args.tile_size if args.tile_size is not None else settings.tile_size,
        num_threads=args.threads if args.threads is not None else settings.num_threads
    )
    return env, resolution, settings


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description='Glintcast - A Python Ray Tracing Renderer',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog='''
Examples:
  python main.py --output render.png
  python main.py --width 1920 --height 1080 --rays 2 --output hd_render.png
  python main.py --scene scenes/gallery.yaml --output gallery.png
        '''
    )

    parser.add_argument('--width', type=int, default=None, help='Image width (default: 480)')
    parser.add_argument('--height', type=int, default=None, help='Image height (default: 270)')
    parser.add_argument('--rays', type=int, default=None, help='Max secondary light rays per hit (default: 1)')
    parser.add_argument('--frame', type=int, default=None, help='Frame counter (default: 0)')
    parser.add_argument('--threads', type=int, default=None, help='Number of threads (default: 0=auto)')
    parser.add_argument('--tile-size', type=int, default=None, help='Tile size in pixels (default: 32)')
    parser.add_argument('--output', type=str, default='output/render.png', help='Output filename')
    parser.add_argument('--scene', type=str, default=None,
                        help='Scene file (YAML or JSON); the built-in demo scene if omitted. '
                             'Render flags given on the command line override its render section')
    parser.add_argument('--info', action='store_true', help='Show platform info and exit')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable debug logging')

    args = parser.parse_args()
    if args.rays is not None and args.rays < 0:
        parser.error('--rays must be non-negative')
    if (args.width is not None and args.width < 1) or (args.height is not None and args.height < 1):
        parser.error('--width and --height must be positive')
    if args.threads is not None and args.threads < 0:
        parser.error('--threads must be non-negative')
    if args.tile_size is not None and args.tile_size < 1:
        parser.error('--tile-size must be positive')

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    # Show platform info
    if args.info:
        info = get_platform_info()
        print("Glintcast Platform Info:")
        print(f"  System: {info['system']}")
        print(f"  Machine: {info['machine']}")
        print(f"  Processor: {info['processor']}")
        print(f"  Python: {info['python_version']}")
        print(f"  CPU Cores: {info['cpu_count']}")
        return 0

    # Print header
    print("=" * 60)
    print("Glintcast Ray Tracer")
    print("=" * 60)

    if args.scene:
        print(f"\nLoading scene: {args.scene}")
        try:
            scene = load_scene(args.scene)
        except SceneParseError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        drawables = scene.drawables
        camera = scene.camera
        env = scene.env
        resolution = scene.resolution
        settings = scene.settings
    else:
        print("\nCreating demo scene")
        drawables = create_demo_scene()
        camera = Camera(Point3(0, 0, 0), right=Vec3(0, 1.2, 0), down=Vec3(0, 0, -0.55))
        env = RenderEnv()
        resolution = (480, 270)
        settings = RenderSettings()

    env, resolution, settings = apply_overrides(args, env, resolution, settings)

    print(f"\nRender Settings:")
    print(f"  Resolution: {resolution[0]}x{resolution[1]}")
    print(f"  Max light rays: {env.max_light_rays}")
    print(f"  Threads: {settings.num_threads}")
    print(f"  Objects in scene: {len(drawables)}")

    renderer = Renderer(drawables, settings)

    # Progress tracking
    last_progress = [0]

    def progress_callback(progress: float):
        pct = int(progress * 100)
        if pct > last_progress[0]:
            last_progress[0] = pct
            bar_len = 40
            filled = int(bar_len * progress)
            bar = '█' * filled + '░' * (bar_len - filled)
            print(f'\rRendering: [{bar}] {pct}%', end='', flush=True)

    renderer.set_progress_callback(progress_callback)

    # Render
    print("\nRendering...")
    start_time = time.time()

    image = renderer.render(env, resolution, camera.position, camera.right, camera.down)

    elapsed = time.time() - start_time
    print(f"\nRender completed in {elapsed:.2f} seconds")
    print(f"  Primary rays per second: {(resolution[0] * resolution[1]) / max(elapsed, 1e-9):.0f}")

    print(f"\nSaving to: {args.output}")
    save_image(image, args.output)

    print("\nDone!")
    return 0


if __name__ == '__main__':
    sys.exit(main())
