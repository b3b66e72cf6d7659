"""Axis-aligned bounding boxes.

Bounding boxes exist on both sides of the Taichi boundary:

- On the host, AABB is an immutable Python dataclass produced by primitives
  at scene-build time and merged while constructing the BVH.
- In kernels, hit_aabb() runs the slab test against box corners stored in
  Taichi fields.

The slab test divides by each direction component. A zero component gives
+/-infinity under IEEE semantics, which the interval comparisons handle
without a special case.

Example:
    >>> box = AABB.surrounding_box(
    ...     AABB((0.0, 0.0, 0.0), (1.0, 1.0, 1.0)),
    ...     AABB((-1.0, 0.5, 0.0), (0.5, 2.0, 0.5)),
    ... )
    >>> box.minimum, box.maximum
    ((-1.0, 0.0, 0.0), (1.0, 2.0, 1.0))
"""

from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors
vec3 = tm.vec3


@dataclass(frozen=True)
class AABB:
    """Host-side axis-aligned bounding box.

    Attributes:
        minimum: The minimum corner (x, y, z).
        maximum: The maximum corner (x, y, z). Componentwise >= minimum.
    """

    minimum: tuple[float, float, float]
    maximum: tuple[float, float, float]

    def __post_init__(self) -> None:
        for axis in range(3):
            if self.minimum[axis] > self.maximum[axis]:
                raise ValueError(
                    f"AABB minimum {self.minimum} exceeds maximum {self.maximum} on axis {axis}"
                )

    @staticmethod
    def surrounding_box(box0: "AABB", box1: "AABB") -> "AABB":
        """Return the smallest box enclosing both boxes.

        The merge is exact and commutative: componentwise min of the minimum
        corners and max of the maximum corners.
        """
        small = (
            min(box0.minimum[0], box1.minimum[0]),
            min(box0.minimum[1], box1.minimum[1]),
            min(box0.minimum[2], box1.minimum[2]),
        )
        big = (
            max(box0.maximum[0], box1.maximum[0]),
            max(box0.maximum[1], box1.maximum[1]),
            max(box0.maximum[2], box1.maximum[2]),
        )
        return AABB(small, big)

    def centroid(self) -> tuple[float, float, float]:
        return (
            0.5 * (self.minimum[0] + self.maximum[0]),
            0.5 * (self.minimum[1] + self.maximum[1]),
            0.5 * (self.minimum[2] + self.maximum[2]),
        )


@ti.func
def hit_aabb(
    box_min: vec3,
    box_max: vec3,
    ray_origin: vec3,
    ray_direction: vec3,
    t_min: ti.f32,
    t_max: ti.f32,
) -> ti.i32:
    """Slab test of a ray against an axis-aligned box.

    For each axis the two slab-entry distances are computed, ordered, and
    used to narrow the running [t_min, t_max] interval. The box is missed
    as soon as the interval inverts.

    This is a rejection test only; a positive result never stands for a
    surface hit.

    Args:
        box_min: Minimum corner of the box.
        box_max: Maximum corner of the box.
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        t_min: Lower bound of the query interval.
        t_max: Upper bound of the query interval.

    Returns:
        1 if the ray overlaps the box inside the interval, 0 otherwise.
    """
    result = 1
    lo = t_min
    hi = t_max
    for a in ti.static(range(3)):
        inv_d = 1.0 / ray_direction[a]
        t0 = (box_min[a] - ray_origin[a]) * inv_d
        t1 = (box_max[a] - ray_origin[a]) * inv_d
        lo = tm.max(lo, tm.min(t0, t1))
        hi = tm.min(hi, tm.max(t0, t1))
        if hi <= lo:
            result = 0
    return result
