"""Unified scene manager for coordinating textures, materials and spheres.

This module provides a high-level scene management API on top of the
type-specific registries. It tracks which material type (Lambertian, Metal,
Dielectric) each material ID corresponds to, enabling material dispatch in
the path tracer, and keeps host-side descriptions of every primitive so the
bounding volume hierarchy can be built in Python.

The SceneManager maintains:
- A texture registry (solid, checker, noise) referenced by Lambertian materials
- A unified material_id space across all material types
- Mapping from material_id to (material_type, type_local_index)
- Host-side sphere descriptions with bounding boxes
- Selection between the linear list and the BVH for scene queries
- Scene serialization/configuration support

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> mat_id = scene.add_lambertian_material(albedo=(0.8, 0.3, 0.3))
    >>> scene.add_sphere(center=(0, 0, -1), radius=0.5, material_id=mat_id)
    >>> scene.build_bvh(seed=7)
"""

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.geometry.aabb import AABB
from pathtracer.geometry.bvh import BVHNode, build_bvh, flatten_bvh, upload_bvh
from pathtracer.geometry.sphere import (
    is_valid_radius,
    moving_sphere_bounding_box,
    sphere_bounding_box,
)
from pathtracer.materials import texture as _texture
from pathtracer.materials.dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
)
from pathtracer.materials.lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
)
from pathtracer.materials.metal import (
    add_metal_material,
    clear_metal_materials,
)
from pathtracer.materials.texture import TextureType
from pathtracer.scene.intersection import (
    MAX_SPHERES,
    add_sphere,
    clear_scene,
    get_sphere_count,
    is_using_bvh,
    set_use_bvh,
)

# Type alias for 3D vectors
vec3 = tm.vec3


class MaterialType(IntEnum):
    """Enumeration of supported material types.

    Used for material dispatch in the path tracer to determine which
    scattering function to call.
    """

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2


# Maximum number of materials across all types
MAX_MATERIALS = 1024

# Taichi fields for GPU-side material type lookup
# material_types[i] stores the MaterialType for material_id i
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# material_type_indices[i] stores the type-local index for material_id i
# (e.g., if material_id 5 is the 2nd metal material, material_type_indices[5] = 1)
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def _clear_material_tracking() -> None:
    """Clear the material tracking fields."""
    num_materials[None] = 0


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Get the material type for a given material ID.

    This is a Taichi function for use in GPU kernels.

    Args:
        material_id: The unified material ID.

    Returns:
        The material type as an integer (see MaterialType enum).
        Returns -1 for invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Get the type-local index for a given material ID.

    Args:
        material_id: The unified material ID.

    Returns:
        The index into the type-specific material array.
        Returns -1 for invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


@dataclass
class TextureInfo:
    """Information about a registered texture.

    Attributes:
        texture_id: The texture ID.
        texture_type: Solid, checker or noise.
        params: The texture parameters as provided during creation.
    """

    texture_id: int
    texture_type: TextureType
    params: dict[str, Any]


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The type of material (Lambertian, Metal, Dielectric).
        type_index: The index within the type-specific material array.
        params: The material parameters as provided during creation.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


@dataclass
class SphereInfo:
    """Information about a sphere in the scene.

    Static spheres have center1 == center0.

    Attributes:
        sphere_index: The index in the sphere storage arrays.
        center0: The center at time0.
        center1: The center at time1.
        time0: Start of the motion window.
        time1: End of the motion window.
        radius: The radius of the sphere.
        material_id: The material ID assigned to the sphere.
    """

    sphere_index: int
    center0: tuple[float, float, float]
    center1: tuple[float, float, float]
    time0: float
    time1: float
    radius: float
    material_id: int

    @property
    def is_moving(self) -> bool:
        return tuple(self.center0) != tuple(self.center1)

    def bounding_box(self, time0: float | None = None, time1: float | None = None) -> AABB | None:
        """Box enclosing the sphere over the shutter interval [time0, time1].

        Omitted ends default to the sphere's own motion window.
        """
        if not self.is_moving:
            return sphere_bounding_box(self.center0, self.radius)
        return moving_sphere_bounding_box(
            self.center0,
            self.center1,
            self.time0,
            self.time1,
            self.radius,
            self.time0 if time0 is None else time0,
            self.time1 if time1 is None else time1,
        )


@dataclass
class SceneConfig:
    """Configuration for scene serialization.

    Attributes:
        textures: List of texture configurations.
        materials: List of material configurations.
        spheres: List of sphere configurations.
    """

    textures: list[dict[str, Any]] = field(default_factory=list)
    materials: list[dict[str, Any]] = field(default_factory=list)
    spheres: list[dict[str, Any]] = field(default_factory=list)


def _as_vec3_tuple(values: Any, default: tuple[float, float, float]) -> tuple[float, float, float]:
    if values is None:
        return default
    return (float(values[0]), float(values[1]), float(values[2]))


class SceneManager:
    """Unified scene manager coordinating textures, materials and spheres.

    The SceneManager provides a high-level API for building scenes with
    automatic material tracking. It maintains a unified material_id space
    that maps to type-specific material registries, enabling the path tracer
    to dispatch to the correct scattering function.

    Attributes:
        textures: List of TextureInfo for all registered textures.
        materials: List of MaterialInfo for all registered materials.
        spheres: List of SphereInfo for all spheres in the scene.
        bvh_root: Root of the last hierarchy built, or None.

    Example:
        >>> scene = SceneManager()
        >>> checker = scene.add_checker_colors((0.2, 0.3, 0.1), (0.9, 0.9, 0.9))
        >>> ground = scene.add_lambertian_material(texture_id=checker)
        >>> gold = scene.add_metal_material(albedo=(0.8, 0.6, 0.2), fuzz=0.3)
        >>> glass = scene.add_dielectric_material(ior=1.5)
        >>> scene.add_sphere((0, -1000, 0), 1000, ground)
        >>> scene.add_sphere((1, 1, 0), 1.0, gold)
        >>> scene.add_sphere((-1, 1, 0), 1.0, glass)
        >>> scene.build_bvh(seed=0)
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.textures: list[TextureInfo] = []
        self.materials: list[MaterialInfo] = []
        self.spheres: list[SphereInfo] = []
        self.bvh_root: BVHNode | None = None
        self._clear_all()

    def _clear_all(self) -> None:
        """Clear all scene data including Taichi fields."""
        # Clear primitive storage and the acceleration structure
        clear_scene()
        # Clear textures before the materials that reference them
        _texture.clear_textures()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        _clear_material_tracking()
        self.textures.clear()
        self.materials.clear()
        self.spheres.clear()
        self.bvh_root = None

    def clear(self) -> None:
        """Clear the entire scene (textures, materials and primitives).

        Resets all Taichi fields and internal tracking structures.
        """
        self._clear_all()

    # =========================================================================
    # Texture Management
    # =========================================================================

    def add_solid_texture(self, color: tuple[float, float, float]) -> int:
        """Add a constant-color texture.

        Args:
            color: The (R, G, B) color, each component in [0, 1].

        Returns:
            The texture ID.

        Raises:
            RuntimeError: If the maximum number of textures is exceeded.
            ValueError: If any component is outside [0, 1].
        """
        texture_id = _texture.add_solid_texture(color)
        self.textures.append(
            TextureInfo(texture_id, TextureType.SOLID, {"color": tuple(color)})
        )
        return texture_id

    def add_checker_texture(self, even_id: int, odd_id: int) -> int:
        """Add a 3D checker alternating between two registered textures.

        Raises:
            RuntimeError: If the maximum number of textures is exceeded.
            ValueError: If a sub-texture is unknown or is itself a checker.
        """
        texture_id = _texture.add_checker_texture(even_id, odd_id)
        self.textures.append(
            TextureInfo(
                texture_id,
                TextureType.CHECKER,
                {"even_id": even_id, "odd_id": odd_id},
            )
        )
        return texture_id

    def add_checker_colors(
        self,
        even_color: tuple[float, float, float],
        odd_color: tuple[float, float, float],
    ) -> int:
        """Add a checker of two solid colors (three textures in total).

        Returns:
            The texture ID of the checker.
        """
        even_id = self.add_solid_texture(even_color)
        odd_id = self.add_solid_texture(odd_color)
        return self.add_checker_texture(even_id, odd_id)

    def add_noise_texture(self, scale: float = 1.0, seed: int | None = None) -> int:
        """Add a Perlin turbulence texture.

        Args:
            scale: Spatial frequency multiplier. Must be positive.
            seed: Seed of the noise table. A random seed is drawn when
                omitted and recorded so the scene can be serialized.

        Returns:
            The texture ID.

        Raises:
            RuntimeError: If textures or noise tables run out.
            ValueError: If scale is not positive.
        """
        if seed is None:
            seed = int(np.random.SeedSequence().generate_state(1)[0])
        texture_id = _texture.add_noise_texture(scale, np.random.default_rng(seed))
        self.textures.append(
            TextureInfo(texture_id, TextureType.NOISE, {"scale": scale, "seed": seed})
        )
        return texture_id

    def get_texture_count(self) -> int:
        """Get the number of textures in the scene."""
        return _texture.get_texture_count()

    # =========================================================================
    # Material Management
    # =========================================================================

    def _register_material(
        self,
        material_type: MaterialType,
        type_index: int,
        params: dict[str, Any],
    ) -> int:
        """Assign a unified material ID to a type-local material."""
        material_id = num_materials[None]
        if material_id >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

        material_types[material_id] = int(material_type)
        material_type_indices[material_id] = type_index
        num_materials[None] = material_id + 1

        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material_type,
                type_index=type_index,
                params=params,
            )
        )
        return material_id

    def add_lambertian_material(
        self,
        albedo: tuple[float, float, float] | None = None,
        texture_id: int | None = None,
    ) -> int:
        """Add a Lambertian (diffuse) material to the scene.

        Exactly one of albedo and texture_id must be given. An albedo is
        registered as a new solid texture.

        Args:
            albedo: The diffuse reflectance color as (R, G, B) tuple.
                Each component should be in [0, 1] for energy conservation.
            texture_id: A registered texture supplying the albedo.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If both or neither argument is given, the albedo is
                outside [0, 1], or the texture is unknown.
        """
        if (albedo is None) == (texture_id is None):
            raise ValueError("Pass exactly one of albedo or texture_id")

        if texture_id is None:
            texture_id = self.add_solid_texture(albedo)  # type: ignore[arg-type]
        elif texture_id < 0 or texture_id >= self.get_texture_count():
            raise ValueError(f"Invalid texture_id: {texture_id}")

        type_index = add_lambertian_material(texture_id)
        return self._register_material(
            MaterialType.LAMBERTIAN, type_index, {"texture_id": texture_id}
        )

    def add_metal_material(
        self,
        albedo: tuple[float, float, float],
        fuzz: float = 0.0,
    ) -> int:
        """Add a metal (specular reflective) material to the scene.

        Args:
            albedo: The reflective color as (R, G, B) tuple.
                Each component should be in [0, 1].
            fuzz: The reflection perturbation radius in [0, 1]. Default is 0
                (perfect mirror).

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If any albedo component or fuzz is outside [0, 1].
        """
        type_index = add_metal_material(albedo, fuzz)
        return self._register_material(
            MaterialType.METAL, type_index, {"albedo": tuple(albedo), "fuzz": fuzz}
        )

    def add_dielectric_material(self, ior: float = 1.5) -> int:
        """Add a dielectric (glass/water) material to the scene.

        Args:
            ior: Index of refraction. Default is 1.5 (typical glass).
                Common values: Air=1.0, Water=1.33, Glass=1.5, Diamond=2.4

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If IOR is not positive.
        """
        type_index = add_dielectric_material(ior)
        return self._register_material(MaterialType.DIELECTRIC, type_index, {"ior": ior})

    def get_material_count(self) -> int:
        """Get the total number of materials in the scene."""
        return int(num_materials[None])

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        """Get information about a material by ID, or None if not found."""
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    def get_material_type_python(self, material_id: int) -> MaterialType | None:
        """Get the material type for a given material ID (Python side).

        For GPU-side lookup, use the get_material_type() Taichi function.
        """
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id].material_type
        return None

    # =========================================================================
    # Primitive Management
    # =========================================================================

    def add_moving_sphere(
        self,
        center0: tuple[float, float, float],
        center1: tuple[float, float, float],
        time0: float,
        time1: float,
        radius: float,
        material_id: int,
    ) -> int:
        """Add a sphere moving linearly from center0 at time0 to center1 at time1.

        Args:
            center0: Center at time0.
            center1: Center at time1.
            time0: Start of the motion window.
            time1: End of the motion window (>= time0).
            radius: The radius of the sphere (must be positive).
            material_id: The unified material ID to assign to the sphere.

        Returns:
            The index of the added sphere.

        Raises:
            RuntimeError: If the maximum number of spheres is exceeded.
            ValueError: If radius, motion window or material_id is invalid.
        """
        if material_id < 0 or material_id >= num_materials[None]:
            raise ValueError(f"Invalid material_id: {material_id}")
        if not is_valid_radius(radius):
            raise ValueError(f"Sphere radius must be positive, got {radius}")
        if time1 < time0:
            raise ValueError(f"Motion window [{time0}, {time1}] is reversed")

        c0 = _as_vec3_tuple(center0, (0.0, 0.0, 0.0))
        c1 = _as_vec3_tuple(center1, c0)
        sphere_index = add_sphere(c0, c1, time0, time1, radius, material_id)

        self.spheres.append(
            SphereInfo(
                sphere_index=sphere_index,
                center0=c0,
                center1=c1,
                time0=time0,
                time1=time1,
                radius=radius,
                material_id=material_id,
            )
        )
        # Any previously built hierarchy no longer covers every sphere
        self.use_list()
        return sphere_index

    def add_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        material_id: int,
    ) -> int:
        """Add a static sphere to the scene.

        Raises:
            RuntimeError: If the maximum number of spheres is exceeded.
            ValueError: If radius or material_id is invalid.
        """
        return self.add_moving_sphere(center, center, 0.0, 0.0, radius, material_id)

    # =========================================================================
    # Convenience Methods (add object with material in one call)
    # =========================================================================

    def add_lambertian_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        albedo: tuple[float, float, float],
    ) -> tuple[int, int]:
        """Add a sphere with a new solid-color Lambertian material.

        Returns:
            Tuple of (sphere_index, material_id).
        """
        material_id = self.add_lambertian_material(albedo=albedo)
        sphere_index = self.add_sphere(center, radius, material_id)
        return sphere_index, material_id

    def add_metal_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        albedo: tuple[float, float, float],
        fuzz: float = 0.0,
    ) -> tuple[int, int]:
        """Add a sphere with a new metal material.

        Returns:
            Tuple of (sphere_index, material_id).
        """
        material_id = self.add_metal_material(albedo, fuzz)
        sphere_index = self.add_sphere(center, radius, material_id)
        return sphere_index, material_id

    def add_dielectric_sphere(
        self,
        center: tuple[float, float, float],
        radius: float,
        ior: float = 1.5,
    ) -> tuple[int, int]:
        """Add a sphere with a new dielectric material.

        Returns:
            Tuple of (sphere_index, material_id).
        """
        material_id = self.add_dielectric_material(ior)
        sphere_index = self.add_sphere(center, radius, material_id)
        return sphere_index, material_id

    # =========================================================================
    # Acceleration Structure
    # =========================================================================

    def get_bounding_boxes(
        self, time0: float | None = None, time1: float | None = None
    ) -> list[AABB | None]:
        """Per-sphere bounding boxes over the shutter interval.

        Without an interval each sphere is bounded over its own motion window.
        """
        return [sphere.bounding_box(time0, time1) for sphere in self.spheres]

    def bounding_box(self, time0: float | None = None, time1: float | None = None) -> AABB | None:
        """Box enclosing the whole scene, or None when it is empty."""
        result: AABB | None = None
        for box in self.get_bounding_boxes(time0, time1):
            if box is None:
                return None
            result = box if result is None else AABB.surrounding_box(result, box)
        return result

    def build_bvh(
        self,
        time0: float | None = None,
        time1: float | None = None,
        seed: int | None = None,
        rng: np.random.Generator | None = None,
    ) -> BVHNode | None:
        """Build a BVH over all spheres, upload it and query through it.

        Args:
            time0: Shutter open time used for moving-sphere boxes. None
                bounds each sphere over its own motion window.
            time1: Shutter close time used for moving-sphere boxes.
            seed: Seed for the random split axes.
            rng: Generator for the split axes; takes precedence over seed.

        Returns:
            The root node, or None for an empty scene.

        Raises:
            RuntimeError: If the flattened tree exceeds the field capacity.
        """
        root = build_bvh(self.get_bounding_boxes(time0, time1), rng=rng, seed=seed)
        upload_bvh(flatten_bvh(root))
        set_use_bvh(True)
        self.bvh_root = root
        return root

    def use_list(self) -> None:
        """Answer scene queries with a linear scan over all spheres."""
        set_use_bvh(False)

    def is_using_bvh(self) -> bool:
        """Check whether scene queries walk the BVH."""
        return is_using_bvh()

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_sphere_count(self) -> int:
        """Get the number of spheres in the scene."""
        return get_sphere_count()

    def get_primitive_count(self) -> int:
        """Get the total number of primitives in the scene."""
        return self.get_sphere_count()

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Export the scene to a configuration object."""
        config = SceneConfig()

        for tex in self.textures:
            params = dict(tex.params)
            if "color" in params:
                params["color"] = list(params["color"])
            config.textures.append({"type": tex.texture_type.name.lower(), **params})

        for mat in self.materials:
            params = dict(mat.params)
            if "albedo" in params:
                params["albedo"] = list(params["albedo"])
            config.materials.append({"type": mat.material_type.name.lower(), **params})

        for sphere in self.spheres:
            sphere_config: dict[str, Any] = {
                "center": list(sphere.center0),
                "radius": sphere.radius,
                "material_id": sphere.material_id,
            }
            if sphere.is_moving:
                sphere_config["center1"] = list(sphere.center1)
                sphere_config["time0"] = sphere.time0
                sphere_config["time1"] = sphere.time1
            config.spheres.append(sphere_config)

        return config

    def from_config(self, config: SceneConfig) -> None:
        """Load a scene from a configuration object.

        Clears the current scene and loads the configuration. The loaded
        scene uses the linear list until build_bvh() is called.

        Raises:
            ValueError: If the configuration contains invalid data.
        """
        self.clear()

        # Textures first (materials reference them)
        for tex_config in config.textures:
            tex_type = tex_config.get("type", "").lower()
            if tex_type == "solid":
                self.add_solid_texture(_as_vec3_tuple(tex_config.get("color"), (0.5, 0.5, 0.5)))
            elif tex_type == "checker":
                self.add_checker_texture(tex_config["even_id"], tex_config["odd_id"])
            elif tex_type == "noise":
                self.add_noise_texture(tex_config.get("scale", 1.0), tex_config.get("seed"))
            else:
                raise ValueError(f"Unknown texture type: {tex_type}")

        # Materials next (needed for primitives)
        for mat_config in config.materials:
            mat_type = mat_config.get("type", "").lower()
            if mat_type == "lambertian":
                if "texture_id" in mat_config:
                    self.add_lambertian_material(texture_id=mat_config["texture_id"])
                else:
                    albedo = _as_vec3_tuple(mat_config.get("albedo"), (0.5, 0.5, 0.5))
                    self.add_lambertian_material(albedo=albedo)
            elif mat_type == "metal":
                albedo = _as_vec3_tuple(mat_config.get("albedo"), (0.8, 0.8, 0.8))
                self.add_metal_material(albedo, mat_config.get("fuzz", 0.0))
            elif mat_type == "dielectric":
                self.add_dielectric_material(mat_config.get("ior", 1.5))
            else:
                raise ValueError(f"Unknown material type: {mat_type}")

        for sphere_config in config.spheres:
            center = _as_vec3_tuple(sphere_config.get("center"), (0.0, 0.0, 0.0))
            radius = sphere_config.get("radius", 1.0)
            material_id = sphere_config.get("material_id", 0)
            if "center1" in sphere_config:
                self.add_moving_sphere(
                    center,
                    _as_vec3_tuple(sphere_config["center1"], center),
                    sphere_config.get("time0", 0.0),
                    sphere_config.get("time1", 1.0),
                    radius,
                    material_id,
                )
            else:
                self.add_sphere(center, radius, material_id)

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization)."""
        config = self.to_config()
        return {
            "textures": config.textures,
            "materials": config.materials,
            "spheres": config.spheres,
        }

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary.

        Args:
            data: Dictionary with 'textures', 'materials', 'spheres' keys.
        """
        config = SceneConfig(
            textures=data.get("textures", []),
            materials=data.get("materials", []),
            spheres=data.get("spheres", []),
        )
        self.from_config(config)

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_spheres() -> int:
        """Get the maximum number of spheres supported."""
        return MAX_SPHERES

    @staticmethod
    def get_max_materials() -> int:
        """Get the maximum number of materials supported."""
        return MAX_MATERIALS

    @staticmethod
    def get_max_textures() -> int:
        """Get the maximum number of textures supported."""
        return _texture.MAX_TEXTURES
