"""Render configuration.

This module has no Taichi state, so a RenderConfig can be built and
validated before ti.init() is called.
"""

from dataclasses import dataclass

# Maximum supported image dimensions (render buffers are preallocated to this size)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

# Default bounce budget
DEFAULT_MAX_DEPTH = 50


@dataclass(frozen=True)
class RenderConfig:
    """Image size and sampling parameters of a render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Camera samples averaged into each pixel.
        max_depth: Scene queries allowed per path before it is cut off.
        use_bvh: Query the scene through the BVH rather than a linear scan.
        seed: Seed for the BVH split axes; None for a random tree.

    Raises:
        ValueError: If any value is out of range.
    """

    width: int = 256
    height: int = 256
    samples_per_pixel: int = 50
    max_depth: int = DEFAULT_MAX_DEPTH
    use_bvh: bool = True
    seed: int | None = None

    def __post_init__(self) -> None:
        if not 1 <= self.width <= MAX_IMAGE_WIDTH:
            raise ValueError(f"width must be in [1, {MAX_IMAGE_WIDTH}], got {self.width}")
        if not 1 <= self.height <= MAX_IMAGE_HEIGHT:
            raise ValueError(f"height must be in [1, {MAX_IMAGE_HEIGHT}], got {self.height}")
        if self.samples_per_pixel < 1:
            raise ValueError(
                f"samples_per_pixel must be positive, got {self.samples_per_pixel}"
            )
        if self.max_depth < 1:
            raise ValueError(f"max_depth must be positive, got {self.max_depth}")

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height
