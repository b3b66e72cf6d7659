"""Perlin gradient noise for procedural textures.

Each noise texture owns a table of 256 random gradient vectors and three
random permutations of 0..255, generated on the host from a numpy
generator and uploaded into Taichi fields. Noise is evaluated with a
Hermite-smoothed trilinear interpolation of gradient dot products, and
turbulence sums several octaves of it.

Example:
    >>> import numpy as np
    >>> table = add_perlin_table(np.random.default_rng(3))
    >>> # In a kernel: turbulence(table, p * scale, TURBULENCE_DEPTH)
"""

import numpy as np
import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors
vec3 = tm.vec3

# Number of gradient vectors / permutation entries per table
POINT_COUNT = 256

# Octaves summed by noise textures
TURBULENCE_DEPTH = 7

# Maximum number of independent noise tables
MAX_PERLIN_TABLES = 16

perlin_gradients = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_PERLIN_TABLES, POINT_COUNT))
perlin_perm_x = ti.field(dtype=ti.i32, shape=(MAX_PERLIN_TABLES, POINT_COUNT))
perlin_perm_y = ti.field(dtype=ti.i32, shape=(MAX_PERLIN_TABLES, POINT_COUNT))
perlin_perm_z = ti.field(dtype=ti.i32, shape=(MAX_PERLIN_TABLES, POINT_COUNT))
num_perlin_tables = ti.field(dtype=ti.i32, shape=())


def clear_perlin_tables() -> None:
    """Forget all noise tables."""
    num_perlin_tables[None] = 0


def generate_perlin_table(rng: np.random.Generator):
    """Generate the host-side data of one noise table.

    Args:
        rng: Source of randomness.

    Returns:
        Tuple (gradients, perm_x, perm_y, perm_z): a (256, 3) float32
        array with components in [-1, 1) and three int32 permutations.
    """
    gradients = rng.uniform(-1.0, 1.0, size=(POINT_COUNT, 3)).astype(np.float32)
    perm_x = rng.permutation(POINT_COUNT).astype(np.int32)
    perm_y = rng.permutation(POINT_COUNT).astype(np.int32)
    perm_z = rng.permutation(POINT_COUNT).astype(np.int32)
    return gradients, perm_x, perm_y, perm_z


def add_perlin_table(rng: np.random.Generator | None = None) -> int:
    """Generate a noise table and upload it.

    Args:
        rng: Source of randomness. A fresh unseeded generator when omitted.

    Returns:
        The table index to pass to noise() and turbulence().

    Raises:
        RuntimeError: If the maximum number of tables is exceeded.
    """
    idx = num_perlin_tables[None]
    if idx >= MAX_PERLIN_TABLES:
        raise RuntimeError(f"Maximum number of Perlin tables ({MAX_PERLIN_TABLES}) exceeded")
    if rng is None:
        rng = np.random.default_rng()

    gradients, perm_x, perm_y, perm_z = generate_perlin_table(rng)
    for k in range(POINT_COUNT):
        perlin_gradients[idx, k] = gradients[k].tolist()
        perlin_perm_x[idx, k] = int(perm_x[k])
        perlin_perm_y[idx, k] = int(perm_y[k])
        perlin_perm_z[idx, k] = int(perm_z[k])

    num_perlin_tables[None] = idx + 1
    return idx


@ti.func
def noise(table: ti.i32, p: vec3) -> ti.f32:
    """Gradient noise at point p, roughly in [-1, 1].

    Args:
        table: Index of the noise table.
        p: Sample point.

    Returns:
        The interpolated noise value.
    """
    fx = ti.floor(p.x)
    fy = ti.floor(p.y)
    fz = ti.floor(p.z)
    u = p.x - fx
    v = p.y - fy
    w = p.z - fz
    i = ti.cast(fx, ti.i32)
    j = ti.cast(fy, ti.i32)
    k = ti.cast(fz, ti.i32)

    uu = u * u * (3.0 - 2.0 * u)
    vv = v * v * (3.0 - 2.0 * v)
    ww = w * w * (3.0 - 2.0 * w)

    accum = 0.0
    for di in ti.static(range(2)):
        for dj in ti.static(range(2)):
            for dk in ti.static(range(2)):
                hashed = (
                    perlin_perm_x[table, (i + di) & 255]
                    ^ perlin_perm_y[table, (j + dj) & 255]
                    ^ perlin_perm_z[table, (k + dk) & 255]
                )
                gradient = perlin_gradients[table, hashed]
                weight = vec3(u - di, v - dj, w - dk)
                accum += (
                    (di * uu + (1 - di) * (1.0 - uu))
                    * (dj * vv + (1 - dj) * (1.0 - vv))
                    * (dk * ww + (1 - dk) * (1.0 - ww))
                    * tm.dot(gradient, weight)
                )
    return accum


@ti.func
def turbulence(table: ti.i32, p: vec3, depth: ti.i32) -> ti.f32:
    """Sum of depth noise octaves with halving weight, absolute value.

    Args:
        table: Index of the noise table.
        p: Sample point.
        depth: Number of octaves.

    Returns:
        A non-negative turbulence value.
    """
    accum = 0.0
    temp_p = p
    weight = 1.0
    for _ in range(depth):
        accum += weight * noise(table, temp_p)
        weight *= 0.5
        temp_p *= 2.0
    return ti.abs(accum)
