"""Scene-level ray intersection over all spheres.

This module stores the scene's spheres in Taichi fields and answers
nearest-hit queries in two ways:

- intersect_list(): linear scan, shrinking the search interval to each
  nearer hit. O(n) per ray.
- intersect_bvh(): stackless walk of the flattened bounding volume
  hierarchy uploaded by pathtracer.geometry.bvh. O(log n) per ray on
  average.

intersect_scene() dispatches to whichever structure is active. Both paths
return the globally nearest hit inside the queried interval.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene.intersection import add_sphere, intersect_scene, clear_scene
    >>> clear_scene()
    >>> add_sphere((0.0, 0.0, -1.0), (0.0, 0.0, -1.0), 0.0, 0.0, 0.5, material_id=0)
    >>> # Use intersect_scene within a Taichi kernel
"""

import taichi as ti
import taichi.math as tm

from pathtracer.geometry.aabb import hit_aabb
from pathtracer.geometry.bvh import (
    ENTRY_NODE,
    MAX_BVH_PRIMITIVES,
    bvh_box_max,
    bvh_box_min,
    bvh_kind,
    bvh_primitive,
    bvh_skip,
    clear_bvh,
    num_bvh_entries,
)
from pathtracer.geometry.sphere import HitRecord, Sphere, hit_sphere

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Attributes:
        hit: Whether the ray intersected any primitive (1 if hit, 0 if miss).
        t: Parameter along the ray of the nearest intersection.
        point: The 3D point where the ray intersected the surface.
        normal: Unit surface normal, facing against the ray.
        front_face: 1 if the ray hit the outside of the surface, else 0.
        u: Horizontal texture coordinate of the hit.
        v: Vertical texture coordinate of the hit.
        material_id: The material ID of the hit primitive, -1 on a miss.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    u: ti.f32
    v: ti.f32
    material_id: ti.i32


# Maximum number of spheres supported in the scene
MAX_SPHERES = MAX_BVH_PRIMITIVES

# Sphere storage: Structure of Arrays layout
sphere_centers0 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_centers1 = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_times0 = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_times1 = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_material_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# 1 when intersect_scene() should walk the BVH instead of the list
_use_bvh = ti.field(dtype=ti.i32, shape=())


def clear_scene() -> None:
    """Clear all primitives and the acceleration structure.

    Resets the counts to zero. Field data is overwritten when new
    primitives are added.
    """
    num_spheres[None] = 0
    _use_bvh[None] = 0
    clear_bvh()


def add_sphere(
    center0: tuple[float, float, float],
    center1: tuple[float, float, float],
    time0: float,
    time1: float,
    radius: float,
    material_id: int = 0,
) -> int:
    """Add a (possibly moving) sphere to the scene.

    A static sphere passes center1 == center0; time0 and time1 are then
    irrelevant.

    Args:
        center0: Center at time0.
        center1: Center at time1.
        time0: Start of the motion window.
        time1: End of the motion window.
        radius: The radius of the sphere.
        material_id: The material ID to associate with this sphere.

    Returns:
        The index of the added sphere.

    Raises:
        RuntimeError: If the maximum number of spheres is exceeded.
    """
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")
    sphere_centers0[idx] = [center0[0], center0[1], center0[2]]
    sphere_centers1[idx] = [center1[0], center1[1], center1[2]]
    sphere_times0[idx] = time0
    sphere_times1[idx] = time1
    sphere_radii[idx] = radius
    sphere_material_ids[idx] = material_id
    num_spheres[None] = idx + 1
    return idx


def get_sphere_count() -> int:
    """Get the number of spheres in the scene."""
    return int(num_spheres[None])


def set_use_bvh(enabled: bool) -> None:
    """Select the BVH (True) or the linear list (False) for scene queries."""
    _use_bvh[None] = 1 if enabled else 0


def is_using_bvh() -> bool:
    """Check whether scene queries walk the BVH."""
    return bool(_use_bvh[None])


@ti.func
def _load_sphere(i: ti.i32) -> Sphere:
    return Sphere(
        center0=sphere_centers0[i],
        center1=sphere_centers1[i],
        time0=sphere_times0[i],
        time1=sphere_times1[i],
        radius=sphere_radii[i],
    )


@ti.func
def _hit_record_to_scene_hit_record(rec: HitRecord, material_id: ti.i32) -> SceneHitRecord:
    """Convert a primitive HitRecord to a SceneHitRecord with material ID."""
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        u=rec.u,
        v=rec.v,
        material_id=material_id,
    )


@ti.func
def _make_miss_record() -> SceneHitRecord:
    """Create a SceneHitRecord indicating no intersection."""
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        u=0.0,
        v=0.0,
        material_id=-1,
    )


@ti.func
def intersect_list(
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Test the ray against every sphere, keeping the closest hit.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        ray_time: The ray's sample time (for moving spheres).
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        The nearest hit, or a miss record.
    """
    closest_t = t_max
    result = _make_miss_record()

    for i in range(num_spheres[None]):
        rec = hit_sphere(ray_origin, ray_direction, ray_time, _load_sphere(i), t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = _hit_record_to_scene_hit_record(rec, sphere_material_ids[i])

    return result


@ti.func
def intersect_bvh(
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Walk the flattened BVH and return the nearest hit.

    Box nodes are tested against (t_min, closest_t); a miss skips the
    whole subtree. Leaves test their sphere and shrink closest_t. An empty
    hierarchy has no entries and always misses.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        ray_time: The ray's sample time (for moving spheres).
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        The nearest hit, or a miss record.
    """
    closest_t = t_max
    result = _make_miss_record()

    n_entries = num_bvh_entries[None]
    entry = 0
    while entry < n_entries:
        next_entry = bvh_skip[entry]
        if bvh_kind[entry] == ENTRY_NODE:
            if hit_aabb(
                bvh_box_min[entry],
                bvh_box_max[entry],
                ray_origin,
                ray_direction,
                t_min,
                closest_t,
            ):
                next_entry = entry + 1
        else:
            i = bvh_primitive[entry]
            rec = hit_sphere(
                ray_origin, ray_direction, ray_time, _load_sphere(i), t_min, closest_t
            )
            if rec.hit == 1:
                closest_t = rec.t
                result = _hit_record_to_scene_hit_record(rec, sphere_material_ids[i])
        entry = next_entry

    return result


@ti.func
def intersect_scene(
    ray_origin: vec3,
    ray_direction: vec3,
    ray_time: ti.f32,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Nearest hit using the active acceleration structure.

    Args:
        ray_origin: The starting point of the ray.
        ray_direction: The direction vector of the ray.
        ray_time: The ray's sample time.
        t_min: Minimum t value to consider a valid hit.
        t_max: Maximum t value to consider a valid hit.

    Returns:
        A SceneHitRecord containing the closest intersection, or a miss
        record if no intersection was found.
    """
    result = _make_miss_record()
    if _use_bvh[None] == 1:
        result = intersect_bvh(ray_origin, ray_direction, ray_time, t_min, t_max)
    else:
        result = intersect_list(ray_origin, ray_direction, ray_time, t_min, t_max)
    return result
