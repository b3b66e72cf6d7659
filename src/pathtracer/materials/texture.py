"""Textures: solid colors, 3D checkers and Perlin noise.

Textures live in a registry indexed by texture ID and are evaluated inside
kernels by texture_value(). The set of texture kinds is closed:

- SOLID: a constant color.
- CHECKER: picks between an even and an odd sub-texture by the sign of
  sin(10x) * sin(10y) * sin(10z) at the hit point.
- NOISE: white scaled by Perlin turbulence of scale * p, capped at 1.

Taichi functions cannot recurse, so checker sub-textures must themselves
be solid or noise textures; nested checkers are rejected at registration.

Example:
    >>> black = add_solid_texture((0.0, 0.0, 0.0))
    >>> white = add_solid_texture((0.9, 0.9, 0.9))
    >>> checker = add_checker_texture(black, white)
    >>> # In a kernel: color = texture_value(checker, rec.u, rec.v, rec.point)
"""

from enum import IntEnum

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.materials.perlin import (
    TURBULENCE_DEPTH,
    add_perlin_table,
    clear_perlin_tables,
    turbulence,
)

# Type alias for 3D vectors
vec3 = tm.vec3


class TextureType(IntEnum):
    """Enumeration of supported texture kinds."""

    SOLID = 0
    CHECKER = 1
    NOISE = 2


# Frequency of the checker sign function
CHECKER_FREQUENCY = 10.0

# Maximum number of textures in the registry
MAX_TEXTURES = 1024

texture_types = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_colors = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_even = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_odd = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_scales = ti.field(dtype=ti.f32, shape=MAX_TEXTURES)
texture_noise_tables = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())


def clear_textures() -> None:
    """Clear all textures and their noise tables."""
    num_textures[None] = 0
    clear_perlin_tables()


def get_texture_count() -> int:
    """Get the number of textures in the registry."""
    return int(num_textures[None])


def get_texture_type(texture_id: int) -> TextureType:
    """Get the kind of a registered texture (Python side).

    Raises:
        ValueError: If texture_id is not registered.
    """
    _check_texture_id(texture_id)
    return TextureType(int(texture_types[texture_id]))


def _check_texture_id(texture_id: int) -> None:
    if texture_id < 0 or texture_id >= num_textures[None]:
        raise ValueError(f"Invalid texture_id: {texture_id}")


def _next_texture_id() -> int:
    idx = num_textures[None]
    if idx >= MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")
    return idx


def add_solid_texture(color: tuple[float, float, float]) -> int:
    """Add a constant-color texture.

    Args:
        color: The (R, G, B) color. Each component should be in [0, 1].

    Returns:
        The texture ID.

    Raises:
        RuntimeError: If the maximum number of textures is exceeded.
        ValueError: If any component is outside [0, 1].
    """
    for i, component in enumerate(color):
        if component < 0.0 or component > 1.0:
            raise ValueError(
                f"Color component {i} = {component} is outside [0, 1]. "
                "This would violate energy conservation."
            )

    idx = _next_texture_id()
    texture_types[idx] = int(TextureType.SOLID)
    texture_colors[idx] = [color[0], color[1], color[2]]
    num_textures[None] = idx + 1
    return idx


def add_checker_texture(even_id: int, odd_id: int) -> int:
    """Add a 3D checker alternating between two registered textures.

    Args:
        even_id: Texture used where the sign function is >= 0.
        odd_id: Texture used where the sign function is < 0.

    Returns:
        The texture ID.

    Raises:
        RuntimeError: If the maximum number of textures is exceeded.
        ValueError: If a sub-texture is unknown or is itself a checker.
    """
    for sub_id in (even_id, odd_id):
        if get_texture_type(sub_id) == TextureType.CHECKER:
            raise ValueError(f"Checker sub-texture {sub_id} cannot itself be a checker")

    idx = _next_texture_id()
    texture_types[idx] = int(TextureType.CHECKER)
    texture_even[idx] = even_id
    texture_odd[idx] = odd_id
    num_textures[None] = idx + 1
    return idx


def add_noise_texture(scale: float = 1.0, rng: np.random.Generator | None = None) -> int:
    """Add a Perlin turbulence texture with its own noise table.

    Args:
        scale: Spatial frequency multiplier. Must be positive.
        rng: Generator for the noise table; unseeded when omitted.

    Returns:
        The texture ID.

    Raises:
        RuntimeError: If textures or noise tables run out.
        ValueError: If scale is not positive.
    """
    if scale <= 0.0:
        raise ValueError(f"Noise scale = {scale} must be positive")

    idx = _next_texture_id()
    table = add_perlin_table(rng)
    texture_types[idx] = int(TextureType.NOISE)
    texture_scales[idx] = scale
    texture_noise_tables[idx] = table
    num_textures[None] = idx + 1
    return idx


@ti.func
def _leaf_texture_value(texture_id: ti.i32, p: vec3) -> vec3:
    """Value of a solid or noise texture."""
    color = vec3(0.0, 0.0, 0.0)
    if texture_types[texture_id] == int(TextureType.NOISE):
        scaled = texture_scales[texture_id] * p
        turb = turbulence(texture_noise_tables[texture_id], scaled, TURBULENCE_DEPTH)
        # Octave sums can slightly exceed 1; keep the albedo energy conserving
        color = vec3(1.0, 1.0, 1.0) * tm.min(turb, 1.0)
    else:
        color = texture_colors[texture_id]
    return color


@ti.func
def checker_sign(p: vec3) -> ti.f32:
    """Sign function of the 3D checker pattern."""
    return (
        ti.sin(CHECKER_FREQUENCY * p.x)
        * ti.sin(CHECKER_FREQUENCY * p.y)
        * ti.sin(CHECKER_FREQUENCY * p.z)
    )


@ti.func
def texture_value(texture_id: ti.i32, u: ti.f32, v: ti.f32, p: vec3) -> vec3:
    """Evaluate a texture at a surface point.

    Args:
        texture_id: The texture ID.
        u: Horizontal texture coordinate of the hit.
        v: Vertical texture coordinate of the hit.
        p: The hit point in world space.

    Returns:
        The texture color (RGB).
    """
    leaf_id = texture_id
    if texture_types[texture_id] == int(TextureType.CHECKER):
        if checker_sign(p) < 0.0:
            leaf_id = texture_odd[texture_id]
        else:
            leaf_id = texture_even[texture_id]
    return _leaf_texture_value(leaf_id, p)
