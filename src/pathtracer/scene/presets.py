"""Ready-made scenes.

Each factory clears the global scene state, fills a SceneManager and
returns it together with a ThinLensCamera framing the scene:

- create_random_spheres_scene(): a checkered ground sphere under a grid of
  small randomly placed spheres (bouncing diffuse, metal and glass) and
  three large spheres.
- create_two_spheres_scene(): two large checkered spheres touching at the
  origin.
- create_two_perlin_spheres_scene(): a Perlin-noise ground and a Perlin
  noise sphere.

All randomness comes from a numpy generator seeded by the seed argument,
so the same seed always builds the same scene.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.scene.presets import create_random_spheres_scene
    >>> from pathtracer.camera.thin_lens import setup_camera
    >>>
    >>> scene, camera = create_random_spheres_scene(aspect_ratio=16 / 9, seed=3)
    >>> setup_camera(camera)
    >>> scene.build_bvh(camera.time0, camera.time1, seed=3)
"""

from collections.abc import Callable

import numpy as np

from pathtracer.camera.thin_lens import ThinLensCamera
from pathtracer.scene.manager import SceneManager

# =============================================================================
# Shared View
# =============================================================================

LOOKFROM = (13.0, 2.0, 3.0)
LOOKAT = (0.0, 0.0, 0.0)
VUP = (0.0, 1.0, 0.0)
VFOV = 20.0
FOCUS_DIST = 10.0

# Checker colors shared by the checkered scenes
CHECKER_EVEN_COLOR = (0.0, 0.0, 0.0)
CHECKER_ODD_COLOR = (0.9, 0.9, 0.9)

# Random spheres layout
GRID_EXTENT = 11
SMALL_RADIUS = 0.2
# Small spheres closer than this to CLEAR_POINT are skipped
CLEAR_POINT = (4.0, 0.2, 0.0)
CLEAR_DISTANCE = 0.9
# Material choice thresholds: below DIFFUSE_FRACTION diffuse, below
# METAL_FRACTION metal, otherwise glass
DIFFUSE_FRACTION = 0.8
METAL_FRACTION = 0.95
GLASS_IOR = 1.5

# Noise frequency of the Perlin scene
PERLIN_SCALE = 4.0


def _default_camera(aspect_ratio: float, aperture: float, time1: float) -> ThinLensCamera:
    return ThinLensCamera(
        lookfrom=LOOKFROM,
        lookat=LOOKAT,
        vup=VUP,
        vfov=VFOV,
        aspect_ratio=aspect_ratio,
        aperture=aperture,
        focus_dist=FOCUS_DIST,
        time0=0.0,
        time1=time1,
    )


def create_random_spheres_scene(
    aspect_ratio: float = 16.0 / 9.0,
    seed: int | None = None,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create the random spheres scene.

    For every grid cell (a, b) with a, b in [-11, 11) a small sphere is
    dropped at a random offset inside the cell, unless it would crowd the
    large metal sphere. Diffuse spheres bounce upward over the shutter
    interval [0, 1]; metal spheres get a random albedo in [0.5, 1) and fuzz
    in [0, 0.5); glass spheres have IOR 1.5.

    Args:
        aspect_ratio: Width / height of the image.
        seed: Seed for sphere placement and materials.

    Returns:
        A tuple of (SceneManager, ThinLensCamera). The camera has aperture
        0.1 focused at distance 10 and a [0, 1] shutter.
    """
    rng = np.random.default_rng(seed)
    scene = SceneManager()

    ground_texture = scene.add_checker_colors(CHECKER_EVEN_COLOR, CHECKER_ODD_COLOR)
    ground = scene.add_lambertian_material(texture_id=ground_texture)
    scene.add_sphere((0.0, -1000.0, 0.0), 1000.0, ground)

    clear_point = np.array(CLEAR_POINT)
    for a in range(-GRID_EXTENT, GRID_EXTENT):
        for b in range(-GRID_EXTENT, GRID_EXTENT):
            choose_mat = rng.random()
            center = np.array([a + 0.9 * rng.random(), SMALL_RADIUS, b + 0.9 * rng.random()])

            if np.linalg.norm(center - clear_point) <= CLEAR_DISTANCE:
                continue

            center0 = tuple(float(x) for x in center)
            if choose_mat < DIFFUSE_FRACTION:
                albedo = tuple(float(x) for x in rng.random(3) * rng.random(3))
                material = scene.add_lambertian_material(albedo=albedo)
                center1 = (center0[0], center0[1] + float(rng.uniform(0.0, 0.5)), center0[2])
                scene.add_moving_sphere(center0, center1, 0.0, 1.0, SMALL_RADIUS, material)
            elif choose_mat < METAL_FRACTION:
                albedo = tuple(float(x) for x in rng.uniform(0.5, 1.0, size=3))
                fuzz = float(rng.uniform(0.0, 0.5))
                material = scene.add_metal_material(albedo, fuzz)
                scene.add_sphere(center0, SMALL_RADIUS, material)
            else:
                material = scene.add_dielectric_material(GLASS_IOR)
                scene.add_sphere(center0, SMALL_RADIUS, material)

    scene.add_dielectric_sphere((0.0, 1.0, 0.0), 1.0, GLASS_IOR)
    scene.add_lambertian_sphere((-4.0, 1.0, 0.0), 1.0, (0.4, 0.2, 0.1))
    scene.add_metal_sphere((4.0, 1.0, 0.0), 1.0, (0.7, 0.6, 0.5), 0.0)

    return scene, _default_camera(aspect_ratio, aperture=0.1, time1=1.0)


def create_two_spheres_scene(
    aspect_ratio: float = 16.0 / 9.0,
    seed: int | None = None,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create two radius-10 checkered spheres stacked at y = -10 and y = 10.

    The seed is accepted for a uniform factory signature; the scene has no
    randomness.

    Returns:
        A tuple of (SceneManager, ThinLensCamera) with a pinhole camera.
    """
    scene = SceneManager()

    checker = scene.add_checker_colors(CHECKER_EVEN_COLOR, CHECKER_ODD_COLOR)
    material = scene.add_lambertian_material(texture_id=checker)
    scene.add_sphere((0.0, -10.0, 0.0), 10.0, material)
    scene.add_sphere((0.0, 10.0, 0.0), 10.0, material)

    return scene, _default_camera(aspect_ratio, aperture=0.0, time1=0.0)


def create_two_perlin_spheres_scene(
    aspect_ratio: float = 16.0 / 9.0,
    seed: int | None = None,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create a noise-textured ground sphere and a radius-2 noise sphere.

    Args:
        aspect_ratio: Width / height of the image.
        seed: Seed of the noise table.

    Returns:
        A tuple of (SceneManager, ThinLensCamera) with a pinhole camera.
    """
    scene = SceneManager()

    noise = scene.add_noise_texture(PERLIN_SCALE, seed=seed)
    material = scene.add_lambertian_material(texture_id=noise)
    scene.add_sphere((0.0, -1000.0, 0.0), 1000.0, material)
    scene.add_sphere((0.0, 2.0, 0.0), 2.0, material)

    return scene, _default_camera(aspect_ratio, aperture=0.0, time1=0.0)


SceneFactory = Callable[..., tuple[SceneManager, ThinLensCamera]]

# Scene names accepted by the example script
SCENES: dict[str, SceneFactory] = {
    "random_spheres": create_random_spheres_scene,
    "two_spheres": create_two_spheres_scene,
    "two_perlin_spheres": create_two_perlin_spheres_scene,
}


def create_scene(
    name: str,
    aspect_ratio: float = 16.0 / 9.0,
    seed: int | None = None,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create a preset scene by name.

    Raises:
        ValueError: If the name is unknown.
    """
    try:
        factory = SCENES[name]
    except KeyError:
        raise ValueError(
            f"Unknown scene {name!r}; choose one of {', '.join(sorted(SCENES))}"
        ) from None
    return factory(aspect_ratio, seed)
