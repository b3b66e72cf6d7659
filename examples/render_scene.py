#!/usr/bin/env python3
"""Render one of the preset scenes.

This script demonstrates end-to-end rendering: it builds a preset scene,
selects the BVH or the linear list, renders with a progress display and
writes the tone-mapped image as PPM or PNG.

Usage:
    python -m examples.render_scene [options]

Options:
    --scene NAME        random_spheres, two_spheres or two_perlin_spheres
                        (default: random_spheres)
    --width WIDTH       Image width in pixels (default: 256)
    --height HEIGHT     Image height in pixels (default: 256)
    --samples SAMPLES   Number of samples per pixel (default: 50)
    --max-depth DEPTH   Bounce budget per path (default: 50)
    --output OUTPUT     Output file path, .ppm or .png (default: image.ppm)
    --seed SEED         Seed for the scene, the BVH and the sampler
    --no-bvh            Intersect with a linear scan instead of the BVH
    --cpu               Force the CPU backend
    --quiet             Suppress progress output

Example:
    python -m examples.render_scene --scene two_spheres --width 400 --height 225 --samples 20
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path

import taichi as ti


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a preset scene with the path tracer.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--scene",
        type=str,
        default="random_spheres",
        choices=["random_spheres", "two_spheres", "two_perlin_spheres"],
        help="Preset scene to render (default: random_spheres)",
    )
    parser.add_argument(
        "--width",
        type=int,
        default=256,
        help="Image width in pixels (default: 256)",
    )
    parser.add_argument(
        "--height",
        type=int,
        default=256,
        help="Image height in pixels (default: 256)",
    )
    parser.add_argument(
        "--samples",
        type=int,
        default=50,
        help="Number of samples per pixel (default: 50)",
    )
    parser.add_argument(
        "--max-depth",
        type=int,
        default=50,
        help="Bounce budget per path (default: 50)",
    )
    parser.add_argument(
        "--output",
        type=str,
        default="image.ppm",
        help="Output file path, .ppm or .png (default: image.ppm)",
    )
    parser.add_argument(
        "--seed",
        type=int,
        default=None,
        help="Seed for the scene, the BVH and the sampler",
    )
    parser.add_argument(
        "--no-bvh",
        action="store_true",
        help="Intersect with a linear scan instead of the BVH",
    )
    parser.add_argument(
        "--cpu",
        action="store_true",
        help="Force the CPU backend",
    )
    parser.add_argument(
        "--quiet",
        action="store_true",
        help="Suppress progress output",
    )
    return parser.parse_args(argv)


def render_scene(
    scene_name: str = "random_spheres",
    width: int = 256,
    height: int = 256,
    num_samples: int = 50,
    max_depth: int = 50,
    output_path: str = "image.ppm",
    seed: int | None = None,
    use_bvh: bool = True,
    quiet: bool = False,
) -> Path:
    """Render a preset scene and save it to a file.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports to allow Taichi initialization first
    from pathtracer.core.config import RenderConfig
    from pathtracer.core.renderer import render
    from pathtracer.preview.export import save_image
    from pathtracer.scene.presets import create_scene

    config = RenderConfig(
        width=width,
        height=height,
        samples_per_pixel=num_samples,
        max_depth=max_depth,
        use_bvh=use_bvh,
        seed=seed,
    )

    if not quiet:
        print(f"Creating {scene_name} scene ({width}x{height})...")

    scene, camera = create_scene(scene_name, config.aspect_ratio, seed)

    if not quiet:
        structure = "BVH" if use_bvh else "linear list"
        print(
            f"Rendering {scene.get_sphere_count()} spheres with a {structure}, "
            f"{num_samples} samples per pixel, max depth {max_depth}..."
        )

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        if not quiet:
            elapsed = time.time() - start_time
            progress_pct = (current / target) * 100 if target > 0 else 0
            samples_per_sec = current / elapsed if elapsed > 0 else 0
            print(
                f"\r  Progress: {current}/{target} samples "
                f"({progress_pct:.1f}%) - {samples_per_sec:.1f} spp/s",
                end="",
                flush=True,
            )

    pixels = render(config, progress_callback, scene=scene, camera=camera)

    if not quiet:
        print()  # Newline after progress

    output_file = save_image(output_path, pixels)

    total_time = time.time() - start_time
    if not quiet:
        print(f"Saved to: {output_file.absolute()}")
        print(f"Total rendering time: {total_time:.2f}s")

    return output_file


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    init_kwargs = {"fast_math": False}
    if args.seed is not None:
        init_kwargs["random_seed"] = args.seed

    # Use GPU if available, fall back to CPU
    if args.cpu:
        ti.init(arch=ti.cpu, **init_kwargs)
    else:
        try:
            ti.init(arch=ti.gpu, **init_kwargs)
            if not args.quiet:
                print("Using GPU backend")
        except Exception:
            ti.init(arch=ti.cpu, **init_kwargs)
            if not args.quiet:
                print("Using CPU backend")

    try:
        render_scene(
            scene_name=args.scene,
            width=args.width,
            height=args.height,
            num_samples=args.samples,
            max_depth=args.max_depth,
            output_path=args.output,
            seed=args.seed,
            use_bvh=not args.no_bvh,
            quiet=args.quiet,
        )
        return 0
    except Exception as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
