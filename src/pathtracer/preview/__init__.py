"""Preview module for image output.

Components:
    export: Plain-text PPM and PNG writers for tone-mapped images

Example:
    >>> from pathtracer.preview import save_image
    >>> save_image("image.ppm", pixels)
"""

from pathtracer.preview.export import format_ppm, save_image, save_png, write_ppm

__all__ = [
    "format_ppm",
    "write_ppm",
    "save_png",
    "save_image",
]
