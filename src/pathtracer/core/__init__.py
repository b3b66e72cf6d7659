"""Core rendering module.

Components:
    ray: Ray data structure, vector utilities and random sampling
    config: Render configuration (no Taichi state)
    integrator: Depth-bounded radiance estimator and sampling kernels
    renderer: Render driver with progress callbacks
    tonemap: Averaging, gamma correction and 8-bit quantization

All compute-intensive operations use Taichi kernels for GPU acceleration.
"""

from .config import DEFAULT_MAX_DEPTH, MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH, RenderConfig
from .ray import (
    Ray,
    cross,
    dot,
    length,
    length_squared,
    make_ray,
    near_zero,
    normalize,
    random_in_unit_disk,
    random_in_unit_sphere,
    random_unit_vector,
    ray_at,
    reflect,
    refract,
    schlick_fresnel,
    vec3,
)
from .tonemap import tone_map, tone_map_color

# Note: integrator and renderer are NOT imported here; they declare Taichi
# fields and depend on the scene and camera packages.
#
# For rendering, use:
#   from pathtracer.core.renderer import Renderer, render

__all__ = [
    "RenderConfig",
    "DEFAULT_MAX_DEPTH",
    "MAX_IMAGE_WIDTH",
    "MAX_IMAGE_HEIGHT",
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length",
    "length_squared",
    "normalize",
    "dot",
    "cross",
    "reflect",
    "refract",
    "schlick_fresnel",
    "near_zero",
    "random_in_unit_sphere",
    "random_unit_vector",
    "random_in_unit_disk",
    "tone_map",
    "tone_map_color",
]
