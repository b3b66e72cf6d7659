"""Camera module for view and ray generation.

Components:
    thin_lens: Look-at camera with a finite aperture and a shutter interval

Ray generation uses normalized image coordinates:
    s in [0, 1]: left to right across image
    t in [0, 1]: bottom to top across image
"""

from .thin_lens import (
    ThinLensCamera,
    get_camera_info,
    get_ray,
    is_camera_ready,
    reset_camera,
    setup_camera,
    validate_camera,
)

__all__ = [
    "ThinLensCamera",
    "setup_camera",
    "reset_camera",
    "is_camera_ready",
    "validate_camera",
    "get_ray",
    "get_camera_info",
]
