"""Scene module for scene storage and construction.

Components:
    intersection: Sphere storage and nearest-hit queries (list or BVH)
    manager: Scene manager coordinating textures, materials and spheres
    presets: Ready-made scenes with matching cameras

Scene data is organized for efficient GPU access:
    - Structure-of-Arrays layout for sphere data
    - A unified material ID space mapped to per-type registries
"""

from .intersection import (
    MAX_SPHERES,
    SceneHitRecord,
    add_sphere,
    clear_scene,
    get_sphere_count,
    intersect_bvh,
    intersect_list,
    intersect_scene,
    is_using_bvh,
    set_use_bvh,
)
from .manager import (
    MAX_MATERIALS,
    MaterialInfo,
    MaterialType,
    SceneConfig,
    SceneManager,
    SphereInfo,
    TextureInfo,
    get_material_type,
    get_material_type_index,
)
from .presets import (
    SCENES,
    create_random_spheres_scene,
    create_scene,
    create_two_perlin_spheres_scene,
    create_two_spheres_scene,
)

__all__ = [
    # Intersection module
    "SceneHitRecord",
    "add_sphere",
    "clear_scene",
    "get_sphere_count",
    "intersect_scene",
    "intersect_list",
    "intersect_bvh",
    "set_use_bvh",
    "is_using_bvh",
    "MAX_SPHERES",
    # Manager module
    "SceneManager",
    "MaterialType",
    "MaterialInfo",
    "TextureInfo",
    "SphereInfo",
    "SceneConfig",
    "MAX_MATERIALS",
    "get_material_type",
    "get_material_type_index",
    # Presets
    "SCENES",
    "create_scene",
    "create_random_spheres_scene",
    "create_two_spheres_scene",
    "create_two_perlin_spheres_scene",
]
