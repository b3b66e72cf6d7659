"""Materials module for scattering models and textures.

Components:
    lambertian: Ideal diffuse reflection with a textured albedo
    metal: Specular reflection with optional fuzz
    dielectric: Glass-like refraction with Schlick reflectance
    texture: Solid, checker and Perlin noise textures
    perlin: Perlin noise tables and turbulence

Each material provides a scatter function returning
(scattered_direction, attenuation, did_scatter) and a registry of
per-material parameters in Taichi fields.
"""

from .dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
    fresnel_reflectance,
    get_dielectric_ior,
    get_dielectric_material_count,
    scatter_dielectric,
    will_reflect,
)
from .lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
    get_lambertian_material_count,
    get_lambertian_texture,
    scatter_lambertian,
)
from .metal import (
    add_metal_material,
    clear_metal_materials,
    get_metal_albedo,
    get_metal_fuzz,
    get_metal_material_count,
    scatter_metal,
)
from .texture import (
    TextureType,
    add_checker_texture,
    add_noise_texture,
    add_solid_texture,
    clear_textures,
    get_texture_count,
    get_texture_type,
    texture_value,
)

__all__ = [
    # Lambertian
    "scatter_lambertian",
    "add_lambertian_material",
    "clear_lambertian_materials",
    "get_lambertian_material_count",
    "get_lambertian_texture",
    # Metal
    "scatter_metal",
    "add_metal_material",
    "clear_metal_materials",
    "get_metal_material_count",
    "get_metal_albedo",
    "get_metal_fuzz",
    # Dielectric
    "scatter_dielectric",
    "add_dielectric_material",
    "clear_dielectric_materials",
    "get_dielectric_material_count",
    "get_dielectric_ior",
    "fresnel_reflectance",
    "will_reflect",
    # Textures
    "TextureType",
    "add_solid_texture",
    "add_checker_texture",
    "add_noise_texture",
    "clear_textures",
    "get_texture_count",
    "get_texture_type",
    "texture_value",
]
