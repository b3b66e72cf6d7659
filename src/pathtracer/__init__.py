"""Monte Carlo path tracer built on Taichi.

This package renders scenes of static and moving spheres with GPU-accelerated
path tracing, with support for:
- Diffuse, metal and glass materials
- Solid, checker and Perlin noise textures
- A thin-lens camera with depth of field and motion blur
- A randomized bounding volume hierarchy

Subpackages:
    core: Rays, render configuration, the radiance estimator and tone mapping
    geometry: Spheres, bounding boxes and the BVH
    materials: Scattering models and textures
    scene: Scene storage, the scene manager and preset scenes
    camera: Thin-lens camera with ray generation
    preview: Image export
"""

__version__ = "0.1.0"
