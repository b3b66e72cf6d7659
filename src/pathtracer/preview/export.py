"""Image export utilities for rendered images.

Images are uint8 arrays of shape (height, width, 3) with the top row first,
as returned by pathtracer.core.renderer.render().

Supported formats:
    - PPM (plain-text P3, one "r g b" triplet per line)
    - PNG (8-bit RGB via Pillow)

Example:
    >>> from pathtracer.preview.export import save_image
    >>> pixels = render(config, scene=scene, camera=camera)
    >>> save_image("image.ppm", pixels)
"""

from __future__ import annotations

from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

# Maximum channel value written to PPM headers
PPM_MAX_VALUE = 255


def _check_pixels(pixels: npt.NDArray[np.uint8]) -> npt.NDArray[np.uint8]:
    """Validate an image array.

    Raises:
        ValueError: If the array is not (H, W, 3) of uint8.
    """
    array = np.asarray(pixels)
    if array.ndim != 3 or array.shape[2] != 3:
        raise ValueError(f"Expected an image of shape (height, width, 3), got {array.shape}")
    if array.dtype != np.uint8:
        raise ValueError(f"Expected dtype uint8, got {array.dtype}")
    return array


def format_ppm(pixels: npt.NDArray[np.uint8]) -> str:
    """Encode an image as plain-text PPM (P3).

    The header is "P3\\n{width} {height}\\n255\\n", followed by one line
    per pixel, rows top to bottom.

    Raises:
        ValueError: If the array is not (H, W, 3) of uint8.
    """
    array = _check_pixels(pixels)
    height, width, _ = array.shape

    lines = [f"P3\n{width} {height}\n{PPM_MAX_VALUE}"]
    lines.extend(f"{r} {g} {b}" for r, g, b in array.reshape(-1, 3).tolist())
    return "\n".join(lines) + "\n"


def write_ppm(filepath: str | Path, pixels: npt.NDArray[np.uint8]) -> Path:
    """Write an image as plain-text PPM.

    Returns:
        The path written.
    """
    path = Path(filepath)
    path.write_text(format_ppm(pixels), encoding="ascii")
    return path


def save_png(filepath: str | Path, pixels: npt.NDArray[np.uint8]) -> Path:
    """Save an image as an 8-bit RGB PNG.

    Returns:
        The path written.
    """
    path = Path(filepath)
    pil_image = PILImage.fromarray(_check_pixels(pixels))
    pil_image.save(path)
    return path


def save_image(filepath: str | Path, pixels: npt.NDArray[np.uint8]) -> Path:
    """Save an image, choosing the format from the file extension.

    ".ppm" writes plain-text PPM; any other extension is handed to Pillow.

    Returns:
        The path written.
    """
    path = Path(filepath)
    if path.suffix.lower() == ".ppm":
        return write_ppm(path, pixels)
    return save_png(path, pixels)
