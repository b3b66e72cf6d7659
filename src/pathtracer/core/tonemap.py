"""Tone mapping of accumulated pixel sums to 8-bit color.

Each channel of each pixel is averaged over the sample count, gamma
corrected with gamma 2 (a square root), clamped to [0, 0.999] and scaled
by 256, so every value lands in [0, 255].

Example:
    >>> import numpy as np
    >>> sums = np.full((1, 1, 3), 4.0, dtype=np.float32)
    >>> tone_map(sums, samples_per_pixel=4)
    array([[[255, 255, 255]]], dtype=uint8)
"""

import numpy as np
import numpy.typing as npt

# Upper clamp before scaling by 256
MAX_INTENSITY = 0.999


def tone_map(
    sums: npt.NDArray[np.floating],
    samples_per_pixel: int,
) -> npt.NDArray[np.uint8]:
    """Convert per-pixel sample sums to 8-bit RGB.

    Args:
        sums: Array of shape (..., 3) holding the sum of all samples of
            each pixel. Row order is preserved.
        samples_per_pixel: Number of samples in each sum.

    Returns:
        A uint8 array of the same shape.

    Raises:
        ValueError: If samples_per_pixel is not positive.
    """
    if samples_per_pixel < 1:
        raise ValueError(f"samples_per_pixel must be positive, got {samples_per_pixel}")

    mean = np.asarray(sums, dtype=np.float64) / samples_per_pixel
    # Negative or NaN sums cannot come from the estimator; map them to black
    mean = np.nan_to_num(np.maximum(mean, 0.0), nan=0.0, posinf=MAX_INTENSITY)
    corrected = np.clip(np.sqrt(mean), 0.0, MAX_INTENSITY)
    return (256.0 * corrected).astype(np.uint8)


def tone_map_color(
    color_sum: tuple[float, float, float],
    samples_per_pixel: int,
) -> tuple[int, int, int]:
    """Tone map a single pixel sum.

    Returns:
        Tuple of (R, G, B) integers in [0, 255].
    """
    mapped = tone_map(np.asarray(color_sum, dtype=np.float64).reshape(1, 3), samples_per_pixel)
    return int(mapped[0, 0]), int(mapped[0, 1]), int(mapped[0, 2])
