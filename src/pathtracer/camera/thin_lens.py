"""Thin-lens camera model with depth of field and motion-blur shutter.

This module implements a thin-lens camera that generates primary rays for
rendering. The camera supports:
- Look-at positioning (lookfrom, lookat, vup)
- Vertical field of view specification
- Arbitrary aspect ratios
- Depth of field through a finite aperture focused at focus_dist
- A shutter interval [time0, time1]; each ray carries a uniform random time

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from lookat toward lookfrom (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

The viewport lies on the focus plane, focus_dist in front of the camera.
Ray origins are jittered over a disk of radius aperture / 2 in the (u, v)
plane, so only points on the focus plane stay sharp. With aperture 0 the
camera degenerates to a pinhole.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.camera.thin_lens import ThinLensCamera, setup_camera, get_ray
    >>>
    >>> camera = ThinLensCamera(
    ...     lookfrom=(13.0, 2.0, 3.0),
    ...     lookat=(0.0, 0.0, 0.0),
    ...     vup=(0.0, 1.0, 0.0),
    ...     vfov=20.0,
    ...     aspect_ratio=16.0 / 9.0,
    ...     aperture=0.1,
    ...     focus_dist=10.0,
    ... )
    >>> setup_camera(camera)
    >>>
    >>> @ti.kernel
    ... def render():
    ...     ray = get_ray(0.5, 0.5)  # Ray through image center
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti

from pathtracer.core.ray import Ray, make_ray, normalize, random_in_unit_disk, vec3

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class ThinLensCamera:
    """Configuration for a thin-lens (perspective) camera.

    Attributes:
        lookfrom: Camera position in world space (x, y, z).
        lookat: Point the camera is looking at in world space (x, y, z).
        vup: Up direction vector for camera orientation (typically (0, 1, 0)).
        vfov: Vertical field of view in degrees, in (0, 180).
        aspect_ratio: Width divided by height of the output image.
        aperture: Lens diameter. 0 gives a pinhole with everything in focus.
        focus_dist: Distance from the camera to the plane of perfect focus.
        time0: Shutter open time.
        time1: Shutter close time (>= time0).
    """

    lookfrom: tuple[float, float, float]
    lookat: tuple[float, float, float]
    vup: tuple[float, float, float]
    vfov: float
    aspect_ratio: float
    aperture: float = 0.0
    focus_dist: float = 1.0
    time0: float = 0.0
    time1: float = 0.0

    @property
    def lens_radius(self) -> float:
        return self.aperture / 2.0


# =============================================================================
# Taichi Fields for Camera State (GPU-accessible)
# =============================================================================

# Camera origin (position)
_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())

# Orthonormal basis vectors
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())  # Right
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())  # Up
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())  # Backward (opposite view)

# Viewport vectors on the focus plane
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())  # Full width
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())  # Full height
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())  # Lower-left of viewport

_lens_radius = ti.field(dtype=ti.f32, shape=())
_shutter_open = ti.field(dtype=ti.f32, shape=())
_shutter_close = ti.field(dtype=ti.f32, shape=())

# 1 once setup_camera() has run
_camera_ready = ti.field(dtype=ti.i32, shape=())


# =============================================================================
# Camera Setup (Python-side, called once per camera configuration)
# =============================================================================


def validate_camera(camera: ThinLensCamera) -> None:
    """Check camera parameters.

    Raises:
        ValueError: If any parameter is out of range or the view direction
            or up vector is degenerate.
    """
    if not 0.0 < camera.vfov < 180.0:
        raise ValueError(f"vfov must be in (0, 180) degrees, got {camera.vfov}")
    if camera.aspect_ratio <= 0.0:
        raise ValueError(f"aspect_ratio must be positive, got {camera.aspect_ratio}")
    if camera.aperture < 0.0:
        raise ValueError(f"aperture must be non-negative, got {camera.aperture}")
    if camera.focus_dist <= 0.0:
        raise ValueError(f"focus_dist must be positive, got {camera.focus_dist}")
    if camera.time1 < camera.time0:
        raise ValueError(f"Shutter interval [{camera.time0}, {camera.time1}] is reversed")

    view = np.subtract(camera.lookfrom, camera.lookat)
    if np.linalg.norm(view) == 0.0:
        raise ValueError("lookfrom and lookat must differ")
    if np.linalg.norm(np.cross(camera.vup, view)) == 0.0:
        raise ValueError("vup must not be parallel to the view direction")


def setup_camera(camera: ThinLensCamera) -> None:
    """Initialize camera state from configuration.

    Computes the camera's orthonormal basis (u, v, w) and the viewport on
    the focus plane. This must be called before rendering.

    Args:
        camera: Camera configuration.

    Raises:
        ValueError: If the configuration is invalid (see validate_camera).

    Note:
        This function writes to Taichi fields and should be called from
        Python (not from within a Taichi kernel).
    """
    validate_camera(camera)

    theta = math.radians(camera.vfov)
    h = math.tan(theta / 2.0)

    # Viewport dimensions at unit distance
    viewport_height = 2.0 * h
    viewport_width = camera.aspect_ratio * viewport_height

    lookfrom = np.array(camera.lookfrom, dtype=np.float64)
    lookat = np.array(camera.lookat, dtype=np.float64)
    vup = np.array(camera.vup, dtype=np.float64)

    # w points from lookat toward lookfrom (backward)
    w = lookfrom - lookat
    w = w / np.linalg.norm(w)

    # u points right (perpendicular to w and vup)
    u = np.cross(vup, w)
    u = u / np.linalg.norm(u)

    # v points up in the camera's frame
    v = np.cross(w, u)

    _camera_origin[None] = lookfrom.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()

    # Viewport scaled out to the focus plane
    horizontal = camera.focus_dist * viewport_width * u
    vertical = camera.focus_dist * viewport_height * v
    lower_left = lookfrom - horizontal / 2.0 - vertical / 2.0 - camera.focus_dist * w

    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()

    _lens_radius[None] = camera.lens_radius
    _shutter_open[None] = camera.time0
    _shutter_close[None] = camera.time1
    _camera_ready[None] = 1


def reset_camera() -> None:
    """Mark the camera as not configured."""
    _camera_ready[None] = 0


def is_camera_ready() -> bool:
    """Check whether setup_camera() has been called."""
    return bool(_camera_ready[None])


# =============================================================================
# Ray Generation (Taichi-compatible, GPU-callable)
# =============================================================================


@ti.func
def get_ray(s: ti.f32, t: ti.f32) -> Ray:
    """Generate a ray through normalized image coordinates (s, t).

    - s = 0: left edge of image, s = 1: right edge
    - t = 0: bottom edge of image, t = 1: top edge

    The origin is offset by a random point on the lens disk, the direction
    aims at the matching point on the focus plane, and the time is uniform
    over the shutter interval.

    Args:
        s: Horizontal coordinate in [0, 1] (left to right).
        t: Vertical coordinate in [0, 1] (bottom to top).

    Returns:
        A Ray with a normalized direction.
    """
    rd = _lens_radius[None] * random_in_unit_disk()
    offset = _camera_u[None] * rd.x + _camera_v[None] * rd.y

    origin = _camera_origin[None] + offset
    target = (
        _lower_left_corner[None] + s * _viewport_horizontal[None] + t * _viewport_vertical[None]
    )
    direction = normalize(target - origin)

    time = _shutter_open[None] + ti.random(ti.f32) * (_shutter_close[None] - _shutter_open[None])

    return make_ray(origin, direction, time)


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, float, float] | float]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with origin, u, v, w, horizontal, vertical, lower_left
        vectors and lens_radius, time0, time1 scalars.
    """

    def as_tuple(field) -> tuple[float, float, float]:
        value = field[None]
        return (float(value[0]), float(value[1]), float(value[2]))

    return {
        "origin": as_tuple(_camera_origin),
        "u": as_tuple(_camera_u),
        "v": as_tuple(_camera_v),
        "w": as_tuple(_camera_w),
        "horizontal": as_tuple(_viewport_horizontal),
        "vertical": as_tuple(_viewport_vertical),
        "lower_left": as_tuple(_lower_left_corner),
        "lens_radius": float(_lens_radius[None]),
        "time0": float(_shutter_open[None]),
        "time1": float(_shutter_close[None]),
    }
