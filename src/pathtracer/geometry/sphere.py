"""Sphere and moving-sphere primitives with robust ray-sphere intersection.

A single Sphere dataclass covers both variants. A static sphere has
center0 == center1; a moving sphere interpolates linearly from center0 at
time0 to center1 at time1 and is intersected at the ray's own time, which
produces motion blur when camera rays carry random shutter times.

The roots of the quadratic are computed with the robust formula from
Ray Tracing Gems to avoid catastrophic cancellation when half_b^2 is nearly
equal to a*c.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.geometry.sphere import make_sphere, hit_sphere, vec3
    >>> # Use hit_sphere within a Taichi kernel
"""

import math

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.aabb import AABB

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class Sphere:
    """A sphere whose center may move linearly over a time window.

    Attributes:
        center0: Center at time0 (vec3).
        center1: Center at time1 (vec3). Equal to center0 for static spheres.
        time0: Start of the motion window.
        time1: End of the motion window.
        radius: The radius of the sphere (positive float).
    """

    center0: vec3
    center1: vec3
    time0: ti.f32
    time1: ti.f32
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection.

    Attributes:
        hit: Whether the ray intersected the primitive (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
            Always inside the queried (t_min, t_max) interval.
        point: The 3D point where the ray intersected the surface.
        normal: The unit surface normal, oriented against the incoming ray.
        front_face: 1 if the ray approached from the outward side, else 0.
        u: Horizontal texture coordinate in [0, 1].
        v: Vertical texture coordinate in [0, 1].

    All fields except hit are only valid if hit == 1.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    u: ti.f32
    v: ti.f32


@ti.func
def sphere_center(sphere: Sphere, time: ti.f32) -> vec3:
    """Return the sphere center at the given time.

    Static spheres (or a degenerate zero-length window) always return
    center0.
    """
    center = sphere.center0
    if sphere.time1 > sphere.time0:
        s = (time - sphere.time0) / (sphere.time1 - sphere.time0)
        center = sphere.center0 + s * (sphere.center1 - sphere.center0)
    return center


@ti.func
def sphere_uv(outward_normal: vec3):
    """Spherical texture coordinates of a point on the unit sphere.

    u is the longitude measured from -x around the y axis, v the latitude
    from the south pole (v = 0) to the north pole (v = 1).

    Args:
        outward_normal: Unit vector from the center to the surface point.

    Returns:
        A tuple (u, v), both in [0, 1].
    """
    phi = tm.atan2(outward_normal.z, outward_normal.x)
    theta = ti.asin(tm.clamp(outward_normal.y, -1.0, 1.0))
    u = 1.0 - (phi + tm.pi) / (2.0 * tm.pi)
    v = (theta + tm.pi / 2.0) / tm.pi
    return u, v


@ti.func
def sphere_discriminant(
    ray_origin: vec3,
    ray_direction: vec3,
    center: vec3,
    radius: ti.f32,
) -> ti.f32:
    """Discriminant half_b^2 - a*c of the ray-sphere quadratic.

    Negative means the ray's line misses the sphere, zero means tangent.
    """
    oc = ray_origin - center
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - radius * radius
    return h * h - a * c


@ti.func
def _solve_quadratic_robust(h: ti.f32, a: ti.f32, c: ti.f32, sqrt_d: ti.f32):
    """Solve a*t^2 + 2*h*t + c = 0 using a numerically stable method.

    Args:
        h: Half of the linear coefficient.
        a: Quadratic coefficient.
        c: Constant term.
        sqrt_d: Square root of discriminant (h^2 - a*c).

    Returns:
        Tuple of (t0, t1) where t0 <= t1.
    """
    # q = -(h + sign(h) * sqrt(discriminant))
    sign_h = ti.select(h < 0.0, -1.0, 1.0)
    q = -(h + sign_h * sqrt_d)

    t0 = 0.0
    t1 = 0.0

    if ti.abs(q) < 1e-10:
        # Tangent ray through the origin plane; fall back to the textbook formula
        t0 = (-h - sqrt_d) / a
        t1 = (-h + sqrt_d) / a
    else:
        t0 = q / a
        t1 = c / q

    if t0 > t1:
        temp = t0
        t0 = t1
        t1 = temp

    return t0, t1


@ti.func
def hit_sphere_at(
    ray_origin: vec3,
    ray_direction: vec3,
    center: vec3,
    radius: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Intersect a ray with a sphere at a fixed center.

    Solves |ray_origin + t * ray_direction - center|^2 = radius^2, i.e.

        a*t^2 + 2*h*t + c = 0

    with a = |d|^2, h = d . (o - center), c = |o - center|^2 - radius^2.
    A negative discriminant is a miss, not an error. Of the two roots the
    smallest one strictly inside (t_min, t_max) is reported.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray (need not be unit).
        center: Sphere center.
        radius: Sphere radius.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A HitRecord; check the hit field to determine if intersection occurred.
    """
    oc = ray_origin - center
    a = tm.dot(ray_direction, ray_direction)
    h = tm.dot(ray_direction, oc)
    c = tm.dot(oc, oc) - radius * radius
    discriminant = h * h - a * c

    # Taichi requires outer-scope declaration
    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    hit_u = 0.0
    hit_v = 0.0

    if discriminant >= 0.0:
        sqrt_d = ti.sqrt(discriminant)
        t0, t1 = _solve_quadratic_robust(h, a, c, sqrt_d)

        t = t0
        valid = (t > t_min) and (t < t_max)
        if not valid:
            t = t1
            valid = (t > t_min) and (t < t_max)

        if valid:
            did_hit = 1
            hit_t = t
            hit_point = ray_origin + t * ray_direction

            outward_normal = (hit_point - center) / radius
            hit_u, hit_v = sphere_uv(outward_normal)

            if tm.dot(ray_direction, outward_normal) > 0.0:
                # Ray is inside the sphere, hitting the back face
                is_front_face = 0
                hit_normal = -outward_normal
            else:
                is_front_face = 1
                hit_normal = outward_normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        u=hit_u,
        v=hit_v,
    )


@ti.func
def hit_sphere(
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    sphere: Sphere,
    t_min: ti.f32,
    t_max: ti.f32,
) -> HitRecord:
    """Test for ray-sphere intersection at the ray's time.

    Static and moving spheres share this entry point; the center is
    evaluated with sphere_center(sphere, ray_time).

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        ray_time: The ray's sample time.
        sphere: The sphere to test intersection against.
        t_min: Minimum t value to consider a valid hit (avoids self-intersection).
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A HitRecord containing intersection information.
    """
    center = sphere_center(sphere, ray_time)
    return hit_sphere_at(ray_origin, ray_direction, center, sphere.radius, t_min, t_max)


@ti.func
def make_sphere(center: vec3, radius: ti.f32) -> Sphere:
    """Create a static sphere from center and radius."""
    return Sphere(center0=center, center1=center, time0=0.0, time1=0.0, radius=radius)


@ti.func
def make_moving_sphere(
    center0: vec3,
    center1: vec3,
    time0: ti.f32,
    time1: ti.f32,
    radius: ti.f32,
) -> Sphere:
    """Create a sphere moving from center0 at time0 to center1 at time1."""
    return Sphere(center0=center0, center1=center1, time0=time0, time1=time1, radius=radius)


# =============================================================================
# Host-side Bounding Boxes
# =============================================================================


def sphere_bounding_box(center: tuple[float, float, float], radius: float) -> AABB:
    """Bounding box of a static sphere: center +/- radius on every axis."""
    r = abs(radius)
    return AABB(
        (center[0] - r, center[1] - r, center[2] - r),
        (center[0] + r, center[1] + r, center[2] + r),
    )


def moving_sphere_center(
    center0: tuple[float, float, float],
    center1: tuple[float, float, float],
    time0: float,
    time1: float,
    time: float,
) -> tuple[float, float, float]:
    """Host-side counterpart of sphere_center()."""
    if not time1 > time0:
        return center0
    s = (time - time0) / (time1 - time0)
    return (
        center0[0] + s * (center1[0] - center0[0]),
        center0[1] + s * (center1[1] - center0[1]),
        center0[2] + s * (center1[2] - center0[2]),
    )


def moving_sphere_bounding_box(
    center0: tuple[float, float, float],
    center1: tuple[float, float, float],
    time0: float,
    time1: float,
    radius: float,
    box_time0: float,
    box_time1: float,
) -> AABB:
    """Bounding box of a moving sphere over [box_time0, box_time1].

    The sphere sweeps linearly, so the box is the union of its boxes at
    both ends of the queried window.
    """
    start = moving_sphere_center(center0, center1, time0, time1, box_time0)
    end = moving_sphere_center(center0, center1, time0, time1, box_time1)
    return AABB.surrounding_box(
        sphere_bounding_box(start, radius),
        sphere_bounding_box(end, radius),
    )


def is_valid_radius(radius: float) -> bool:
    """Return True if radius is a finite positive number."""
    return math.isfinite(radius) and radius > 0.0
