"""Geometry module for shape primitives and spatial acceleration.

Components:
    aabb: Axis-aligned bounding boxes and the slab test
    sphere: Static and moving spheres with ray-sphere intersection
    bvh: Randomized bounding volume hierarchy, flattened for kernels

Intersection routines are Taichi functions (@ti.func); bounding boxes and
BVH construction run on the host.
"""

from .aabb import AABB, hit_aabb
from .bvh import (
    MAX_BVH_PRIMITIVES,
    BVHNode,
    FlatBVH,
    build_bvh,
    bvh_depth,
    bvh_primitives,
    clear_bvh,
    flatten_bvh,
    upload_bvh,
)
from .sphere import (
    HitRecord,
    Sphere,
    hit_sphere,
    make_moving_sphere,
    make_sphere,
    moving_sphere_bounding_box,
    sphere_bounding_box,
    sphere_center,
    sphere_uv,
)

__all__ = [
    "AABB",
    "hit_aabb",
    "BVHNode",
    "FlatBVH",
    "MAX_BVH_PRIMITIVES",
    "build_bvh",
    "flatten_bvh",
    "upload_bvh",
    "clear_bvh",
    "bvh_depth",
    "bvh_primitives",
    "Sphere",
    "HitRecord",
    "hit_sphere",
    "make_sphere",
    "make_moving_sphere",
    "sphere_center",
    "sphere_uv",
    "sphere_bounding_box",
    "moving_sphere_bounding_box",
]
