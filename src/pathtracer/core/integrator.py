"""Depth-bounded Monte Carlo radiance estimator and pixel sampling kernels.

This module implements the rendering kernels. Rays are traced from the
camera through the scene, scattered by each hit surface according to its
material, and end either in the sky or when the bounce budget runs out.

The estimator follows the classic recursive definition

    ray_color(r, 0)     = black
    ray_color(r, depth) = attenuation * ray_color(scattered, depth - 1)   on a hit
                        = black                                         if absorbed
                        = sky(r)                                        on a miss

evaluated as a loop that multiplies a throughput by every attenuation.
Paths still alive after depth scatter events contribute black, which
biases long paths toward darkness; there is no Russian roulette.

Key features:
    - Material dispatch (Lambertian, Metal, Dielectric)
    - Vertical white-to-blue sky gradient as the only light source
    - Per-pixel sum accumulation, one sample per pixel per kernel launch
    - Jittered sampling through the thin-lens camera

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.integrator import render_image, setup_render_target
    >>> from pathtracer.scene.presets import create_two_spheres_scene
    >>> from pathtracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_two_spheres_scene()
    >>> setup_camera(camera)
    >>> setup_render_target(400, 225)
    >>> render_image(num_samples=100, max_depth=50)
"""

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.camera.thin_lens import get_ray, is_camera_ready
from pathtracer.core.config import DEFAULT_MAX_DEPTH, MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH
from pathtracer.materials.dielectric import (
    get_dielectric_ior,
    scatter_dielectric,
)
from pathtracer.materials.lambertian import (
    get_lambertian_texture,
    scatter_lambertian,
)
from pathtracer.materials.metal import (
    get_metal_albedo,
    get_metal_fuzz,
    scatter_metal,
)
from pathtracer.materials.texture import texture_value
from pathtracer.scene.intersection import SceneHitRecord, intersect_scene
from pathtracer.scene.manager import (
    MaterialType,
    get_material_type,
    get_material_type_index,
)

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# t_min and t_max for ray intersection; T_MIN keeps scattered rays off the
# surface they leave
T_MIN = 1e-3
T_MAX = 1e10

# Sky gradient endpoints, blended by the height of the unit direction
SKY_BOTTOM_COLOR = vec3(1.0, 1.0, 1.0)
SKY_TOP_COLOR = vec3(0.5, 0.7, 1.0)

# =============================================================================
# Render Target (Image Buffer)
# =============================================================================

# Image dimensions (actual active size)
_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Sum of all samples per pixel, indexed (i, j) with j = 0 at the bottom row
_color_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Sample count per pixel (preallocated to max size)
_sample_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Flag to track if render target is initialized
_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Initialize the render target buffers.

    Sets the active image dimensions and clears the buffers.
    The buffers are preallocated to MAX_IMAGE_WIDTH x MAX_IMAGE_HEIGHT
    to avoid Taichi kernel recompilation issues.

    Args:
        width: Image width in pixels (1 to MAX_IMAGE_WIDTH).
        height: Image height in pixels (1 to MAX_IMAGE_HEIGHT).

    Raises:
        ValueError: If dimensions are not positive or exceed the maximum.
    """
    if width < 1 or height < 1:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1

    clear_render_target()


def clear_render_target() -> None:
    """Clear the render target buffers to zero."""
    _color_buffer.fill(0.0)
    _sample_count.fill(0)


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions.

    Returns:
        Tuple of (width, height).
    """
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    """Check if render target is initialized and raise if not."""
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


def _check_camera_ready() -> None:
    if not is_camera_ready():
        raise RuntimeError("Camera not set up. Call setup_camera() first.")


def _check_max_depth(max_depth: int) -> None:
    if max_depth < 1:
        raise ValueError(f"max_depth must be at least 1, got {max_depth}")


# =============================================================================
# Material Dispatch
# =============================================================================


@ti.func
def _scatter_material(incident_direction: vec3, rec: SceneHitRecord):
    """Dispatch to the scattering function of the hit material.

    Args:
        incident_direction: The incoming ray direction.
        rec: The nearest hit.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where:
        - scattered_direction: The new ray direction.
        - attenuation: The color attenuation for this bounce.
        - did_scatter: 1 if ray scattered, 0 if absorbed.
    """
    mat_type = get_material_type(rec.material_id)
    type_index = get_material_type_index(rec.material_id)

    # Unknown materials absorb
    scattered_direction = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(0.0, 0.0, 0.0)
    did_scatter = 0

    if mat_type == int(MaterialType.LAMBERTIAN):
        albedo = texture_value(get_lambertian_texture(type_index), rec.u, rec.v, rec.point)
        scattered_direction, attenuation, did_scatter = scatter_lambertian(albedo, rec.normal)

    elif mat_type == int(MaterialType.METAL):
        scattered_direction, attenuation, did_scatter = scatter_metal(
            get_metal_albedo(type_index),
            get_metal_fuzz(type_index),
            incident_direction,
            rec.normal,
        )

    elif mat_type == int(MaterialType.DIELECTRIC):
        scattered_direction, attenuation, did_scatter = scatter_dielectric(
            get_dielectric_ior(type_index),
            incident_direction,
            rec.normal,
            rec.front_face,
        )

    return scattered_direction, attenuation, did_scatter


# =============================================================================
# Radiance Estimator
# =============================================================================


@ti.func
def sky_color(direction: vec3) -> vec3:
    """Background radiance for a ray that escapes the scene."""
    unit_direction = tm.normalize(direction)
    a = 0.5 * (unit_direction.y + 1.0)
    return (1.0 - a) * SKY_BOTTOM_COLOR + a * SKY_TOP_COLOR


@ti.func
def trace_ray(origin: vec3, direction: vec3, time: ti.f32, max_depth: ti.i32) -> vec3:
    """Estimate the radiance arriving along a ray.

    Args:
        origin: Ray origin.
        direction: Ray direction (any non-zero length).
        time: Ray time, shared by every bounce of the path.
        max_depth: Number of scene queries the path may make. A path that
            scatters on all of them contributes black.

    Returns:
        The estimated radiance (RGB).
    """
    radiance = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    ray_origin = origin
    ray_direction = direction

    # Active flag for path continuation (Taichi doesn't support break in ti.func loops)
    active = 1

    for _ in range(max_depth):
        if active == 1:
            rec = intersect_scene(ray_origin, ray_direction, time, T_MIN, T_MAX)

            if rec.hit == 0:
                radiance = throughput * sky_color(ray_direction)
                active = 0
            else:
                scattered_direction, attenuation, did_scatter = _scatter_material(
                    ray_direction, rec
                )
                if did_scatter == 0:
                    active = 0
                else:
                    throughput *= attenuation
                    ray_origin = rec.point
                    ray_direction = scattered_direction

    return radiance


@ti.func
def pixel_coordinates(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
):
    """Jittered normalized image coordinates (s, t) of a pixel sample.

    Pixel i maps to (i + jitter) / (width - 1); the denominator is at least
    1 so single-pixel images stay finite.
    """
    s = (ti.cast(pixel_i, ti.f32) + ti.random(ti.f32)) / ti.cast(ti.max(width - 1, 1), ti.f32)
    t = (ti.cast(pixel_j, ti.f32) + ti.random(ti.f32)) / ti.cast(ti.max(height - 1, 1), ti.f32)
    return s, t


@ti.func
def render_sample_impl(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    max_depth: ti.i32,
) -> vec3:
    """Render a single camera sample for a pixel.

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).
        width: Image width in pixels.
        height: Image height in pixels.
        max_depth: Bounce budget.

    Returns:
        The estimated radiance (RGB) for this sample.
    """
    s, t = pixel_coordinates(pixel_i, pixel_j, width, height)
    ray = get_ray(s, t)
    return trace_ray(ray.origin, ray.direction, ray.time, max_depth)


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_one_spp(width: ti.i32, height: ti.i32, max_depth: ti.i32):
    """Render one sample per pixel and add it to the pixel sums.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
        max_depth: Bounce budget.
    """
    for i, j in ti.ndrange(width, height):
        color = render_sample_impl(i, j, width, height, max_depth)

        # Check for NaN/Inf and replace with zero
        for c in ti.static(range(3)):
            if tm.isnan(color[c]) or tm.isinf(color[c]):
                color[c] = 0.0

        _color_buffer[i, j] += color
        _sample_count[i, j] += 1


@ti.kernel
def _render_single_pixel(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    max_depth: ti.i32,
) -> vec3:
    """Render a single sample for a specific pixel."""
    return render_sample_impl(pixel_i, pixel_j, width, height, max_depth)


@ti.kernel
def _trace_single_ray(
    ox: ti.f32,
    oy: ti.f32,
    oz: ti.f32,
    dx: ti.f32,
    dy: ti.f32,
    dz: ti.f32,
    time: ti.f32,
    max_depth: ti.i32,
) -> vec3:
    """Run the estimator for one explicit ray."""
    return trace_ray(vec3(ox, oy, oz), vec3(dx, dy, dz), time, max_depth)


# =============================================================================
# Public Rendering API
# =============================================================================


def ray_color(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    depth: int,
    time: float = 0.0,
) -> tuple[float, float, float]:
    """Estimate the radiance along one ray (one stochastic sample).

    Args:
        origin: Ray origin.
        direction: Ray direction.
        depth: Bounce budget; 0 always yields black.
        time: Ray time.

    Returns:
        Tuple of (R, G, B).

    Raises:
        ValueError: If depth is negative.
    """
    if depth < 0:
        raise ValueError(f"depth must be non-negative, got {depth}")
    color = _trace_single_ray(
        origin[0],
        origin[1],
        origin[2],
        direction[0],
        direction[1],
        direction[2],
        time,
        depth,
    )
    return (float(color[0]), float(color[1]), float(color[2]))


def render_sample(
    pixel_i: int,
    pixel_j: int,
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> tuple[float, float, float]:
    """Render a single sample for a specific pixel.

    This is a Python-callable function for testing. For production rendering,
    use render_image() which processes all pixels in parallel.

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).
        max_depth: Bounce budget.

    Returns:
        Tuple of (R, G, B) color values.

    Raises:
        RuntimeError: If the render target or the camera has not been set up.
    """
    _check_render_target_initialized()
    _check_camera_ready()
    _check_max_depth(max_depth)

    width, height = get_image_dimensions()
    color = _render_single_pixel(pixel_i, pixel_j, width, height, max_depth)

    return (float(color[0]), float(color[1]), float(color[2]))


def render_image(num_samples: int = 1, max_depth: int = DEFAULT_MAX_DEPTH) -> None:
    """Add num_samples samples per pixel to the pixel sums.

    Each sample is one parallel pass over all pixels. Can be called
    multiple times to add more samples.

    Args:
        num_samples: Number of samples to render per pixel.
        max_depth: Bounce budget.

    Raises:
        RuntimeError: If the render target or the camera has not been set up.
        ValueError: If max_depth is less than 1.
    """
    _check_render_target_initialized()
    _check_camera_ready()
    _check_max_depth(max_depth)

    width, height = get_image_dimensions()

    for _ in range(num_samples):
        _render_one_spp(width, height, max_depth)


def get_total_samples() -> int:
    """Get the number of samples per pixel rendered so far.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    return int(_sample_count[0, 0])


def get_sum_image_numpy() -> npt.NDArray[np.float32]:
    """Get the per-pixel sample sums as a NumPy array.

    The array shape is (height, width, 3) with the top image row first.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()

    # Extract active region
    image = _color_buffer.to_numpy()[:width, :height, :]

    # Transpose from (width, height, 3) to (height, width, 3) for standard image format
    image = np.transpose(image, (1, 0, 2))

    # Flip vertically (pixel j = 0 is the bottom row, images start at the top)
    image = np.flipud(image)

    return np.ascontiguousarray(image, dtype=np.float32)
