"""Lambertian (ideal diffuse) material implementation.

A Lambertian surface scatters incoming light around the surface normal.
The scattered direction is the normal plus a random unit vector, which
approximates a cosine-weighted hemisphere sample, and the attenuation is
the material's texture evaluated at the hit point.

The scatter never absorbs: every hit produces a new ray.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.lambertian import scatter_lambertian
    >>> # Use within a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_lambertian(albedo, normal)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import near_zero, random_unit_vector

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter_lambertian(
    albedo: vec3,
    normal: vec3,
):
    """Sample a scattered ray direction for a Lambertian surface.

    Args:
        albedo: The diffuse reflectance at the hit point (each component in
            [0, 1]), usually a texture lookup.
        normal: The surface normal at the hit point (should be normalized).

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where:
        - scattered_direction: normal + random unit vector, or the normal
          itself when that sum is degenerate.
        - attenuation: The albedo.
        - did_scatter: Always 1.
    """
    scattered_direction = normal + random_unit_vector()

    # The random vector can almost cancel the normal
    if near_zero(scattered_direction):
        scattered_direction = normal

    attenuation = albedo
    did_scatter = 1

    return scattered_direction, attenuation, did_scatter


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of Lambertian materials in the scene
MAX_LAMBERTIAN_MATERIALS = 1024

# Storage for Lambertian material properties
lambertian_texture_ids = ti.field(dtype=ti.i32, shape=MAX_LAMBERTIAN_MATERIALS)
num_lambertian_materials = ti.field(dtype=ti.i32, shape=())


def clear_lambertian_materials() -> None:
    """Clear all Lambertian materials.

    Resets the material count to zero. Existing data in the field will be
    overwritten when new materials are added.
    """
    num_lambertian_materials[None] = 0


def add_lambertian_material(texture_id: int) -> int:
    """Add a Lambertian material to the material registry.

    Args:
        texture_id: ID of a registered texture supplying the albedo.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If texture_id is negative.
    """
    if texture_id < 0:
        raise ValueError(f"Invalid texture_id: {texture_id}")

    idx = num_lambertian_materials[None]
    if idx >= MAX_LAMBERTIAN_MATERIALS:
        raise RuntimeError(
            f"Maximum number of Lambertian materials ({MAX_LAMBERTIAN_MATERIALS}) exceeded"
        )

    lambertian_texture_ids[idx] = texture_id
    num_lambertian_materials[None] = idx + 1
    return idx


def get_lambertian_material_count() -> int:
    """Get the number of Lambertian materials in the registry."""
    return int(num_lambertian_materials[None])


@ti.func
def get_lambertian_texture(material_idx: ti.i32) -> ti.i32:
    """Get the texture ID of a Lambertian material by index."""
    return lambertian_texture_ids[material_idx]
