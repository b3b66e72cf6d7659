"""Dielectric (glass/water) material implementation.

This module implements clear dielectrics that either reflect or refract
each incoming ray:

    - Snell's law for refraction: n1 * sin(theta1) = n2 * sin(theta2)
    - Schlick's approximation for the Fresnel reflectance
    - Total internal reflection when the refraction ratio times sin(theta)
      exceeds 1

Reflection is chosen on total internal reflection or with probability
equal to the reflectance. Dielectrics absorb nothing: the attenuation is
always white.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.materials.dielectric import scatter_dielectric
    >>> # Use within a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_dielectric(
    >>> #     ior, incident_dir, normal, front_face
    >>> # )
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import (
    reflect,
    refract,
    schlick_fresnel,
)

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def refraction_ratio_for(ior: ti.f32, front_face: ti.i32) -> ti.f32:
    """Ratio n_incident / n_transmitted for a hit on the given side.

    Entering the material from outside (front face) gives 1/ior; leaving it
    gives ior.
    """
    ratio = 1.0 / ior
    if front_face == 0:
        ratio = ior
    return ratio


@ti.func
def scatter_dielectric(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """Compute the scattered ray direction for a dielectric surface.

    Args:
        ior: Index of refraction of the material.
        incident_direction: The incoming ray direction (any length).
        normal: The surface normal (normalized, facing the incident ray).
        front_face: 1 if the ray hits the outside of the surface,
            0 if it hits from within the material.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where:
        - scattered_direction: The reflected or refracted direction (normalized).
        - attenuation: Always white.
        - did_scatter: Always 1.
    """
    attenuation = vec3(1.0, 1.0, 1.0)

    refraction_ratio = refraction_ratio_for(ior, front_face)
    unit_direction = tm.normalize(incident_direction)

    cos_theta = tm.min(-tm.dot(unit_direction, normal), 1.0)
    sin_theta = tm.sqrt(tm.max(1.0 - cos_theta * cos_theta, 0.0))

    cannot_refract = refraction_ratio * sin_theta > 1.0
    reflectance = schlick_fresnel(cos_theta, refraction_ratio)

    scattered_direction = vec3(0.0, 0.0, 0.0)
    if cannot_refract or ti.random() < reflectance:
        scattered_direction = reflect(unit_direction, normal)
    else:
        scattered_direction = refract(unit_direction, normal, refraction_ratio)

    scattered_direction = tm.normalize(scattered_direction)
    did_scatter = 1

    return scattered_direction, attenuation, did_scatter


@ti.func
def will_reflect(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
) -> ti.i32:
    """Return 1 if the ray is totally internally reflected.

    Args:
        ior: Index of refraction of the material.
        incident_direction: The incoming ray direction (should be normalized).
        normal: The surface normal (should be normalized).
        front_face: 1 for a hit from outside, 0 from within.
    """
    refraction_ratio = refraction_ratio_for(ior, front_face)
    cos_theta = tm.min(-tm.dot(incident_direction, normal), 1.0)
    sin_theta = tm.sqrt(tm.max(1.0 - cos_theta * cos_theta, 0.0))

    return 1 if refraction_ratio * sin_theta > 1.0 else 0


@ti.func
def fresnel_reflectance(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
) -> ti.f32:
    """Schlick reflectance for the given incidence.

    The reflectance is the same whether expressed with ior or with its
    reciprocal, so the side only matters through cos(theta).
    """
    refraction_ratio = refraction_ratio_for(ior, front_face)
    cos_theta = tm.min(-tm.dot(incident_direction, normal), 1.0)
    return schlick_fresnel(cos_theta, refraction_ratio)


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of dielectric materials in the scene
MAX_DIELECTRIC_MATERIALS = 1024

# Storage for dielectric material properties
dielectric_iors = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    """Clear all dielectric materials."""
    num_dielectric_materials[None] = 0


def add_dielectric_material(ior: float = 1.5) -> int:
    """Add a dielectric material to the material registry.

    Args:
        ior: Index of refraction. Default is 1.5 (typical glass). Must be
            positive; values below 1 model a medium optically thinner than
            its surroundings (e.g. an air bubble).

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If IOR is not positive.
    """
    if ior <= 0.0:
        raise ValueError(f"Index of refraction = {ior} must be positive.")

    idx = num_dielectric_materials[None]
    if idx >= MAX_DIELECTRIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of dielectric materials ({MAX_DIELECTRIC_MATERIALS}) exceeded"
        )

    dielectric_iors[idx] = ior
    num_dielectric_materials[None] = idx + 1
    return idx


def get_dielectric_material_count() -> int:
    """Get the number of dielectric materials in the registry."""
    return int(num_dielectric_materials[None])


@ti.func
def get_dielectric_ior(material_idx: ti.i32) -> ti.f32:
    """Get the IOR for a dielectric material by index."""
    return dielectric_iors[material_idx]
