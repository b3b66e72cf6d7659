"""Render driver: sample accumulation, progress reporting and tone mapping.

This module provides a convenient wrapper around the integrator that supports:
- Accumulating samples one parallel pass at a time
- Progress callbacks after every pass (or batch of passes)
- Tone mapping the pixel sums into an 8-bit image

The Renderer class encapsulates the render target state; render() runs a
complete render from a RenderConfig.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.cpu)
    >>> from pathtracer.core.config import RenderConfig
    >>> from pathtracer.core.renderer import render
    >>> from pathtracer.scene.presets import create_random_spheres_scene
    >>>
    >>> config = RenderConfig(width=400, height=225, samples_per_pixel=50)
    >>> scene, camera = create_random_spheres_scene(config.aspect_ratio, seed=1)
    >>> pixels = render(config, scene=scene, camera=camera)
    >>> pixels.shape
    (225, 400, 3)
"""

from __future__ import annotations

from collections.abc import Callable, Generator
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from pathtracer.camera.thin_lens import get_camera_info, is_camera_ready, setup_camera
from pathtracer.core.config import RenderConfig
from pathtracer.core.integrator import (
    clear_render_target,
    get_sum_image_numpy,
    get_total_samples,
    render_image,
    setup_render_target,
)
from pathtracer.core.tonemap import tone_map

if TYPE_CHECKING:
    from pathtracer.camera.thin_lens import ThinLensCamera
    from pathtracer.scene.manager import SceneManager

# Type alias for progress callback
# Callback receives (current_samples, total_target_samples)
ProgressCallback = Callable[[int, int], None]


class Renderer:
    """A renderer that accumulates samples into the integrator's buffers.

    The renderer delegates to the global integrator buffers (which are
    Taichi fields), so only one Renderer should be active at a time.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        max_depth: Bounce budget of every path.
    """

    def __init__(self, width: int, height: int, max_depth: int) -> None:
        """Initialize the renderer.

        Raises:
            ValueError: If dimensions are out of range.
        """
        self._width = width
        self._height = height
        self.max_depth = max_depth
        setup_render_target(width, height)

    @classmethod
    def from_config(cls, config: RenderConfig) -> Renderer:
        return cls(config.width, config.height, config.max_depth)

    @property
    def width(self) -> int:
        """Get the image width."""
        return self._width

    @property
    def height(self) -> int:
        """Get the image height."""
        return self._height

    @property
    def sample_count(self) -> int:
        """Get the current number of accumulated samples per pixel."""
        return get_total_samples()

    def reset(self) -> None:
        """Clear the pixel sums and sample counts."""
        clear_render_target()

    def render(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Add samples with an optional progress callback.

        Args:
            num_samples: Total number of samples per pixel to add.
            batch_size: Number of passes to render before each callback.
            callback: Optional callback called after each batch with
                (current_total_samples, target_total_samples).

        Raises:
            RuntimeError: If the camera has not been set up.
        """
        for current, target in self.render_progressive(num_samples, batch_size):
            if callback is not None:
                callback(current, target)

    def render_progressive(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
    ) -> Generator[tuple[int, int], None, None]:
        """Add samples, yielding progress after each batch.

        Yields:
            Tuple of (current_total_samples, target_total_samples).
        """
        if num_samples <= 0:
            return

        start_samples = self.sample_count
        target_samples = start_samples + num_samples

        remaining = num_samples
        while remaining > 0:
            batch = min(max(batch_size, 1), remaining)
            render_image(batch, self.max_depth)
            remaining -= batch
            yield (start_samples + num_samples - remaining, target_samples)

    def get_sums_numpy(self) -> npt.NDArray[np.float32]:
        """Pixel sample sums of shape (height, width, 3), top row first."""
        return get_sum_image_numpy()

    def get_image_uint8(self) -> npt.NDArray[np.uint8]:
        """Tone-mapped image of shape (height, width, 3), top row first.

        Raises:
            ValueError: If no samples have been rendered yet.
        """
        return tone_map(self.get_sums_numpy(), self.sample_count)

    def __repr__(self) -> str:
        return (
            f"Renderer(width={self.width}, height={self.height}, "
            f"max_depth={self.max_depth}, samples={self.sample_count})"
        )


def render(
    config: RenderConfig,
    callback: ProgressCallback | None = None,
    scene: SceneManager | None = None,
    camera: ThinLensCamera | None = None,
) -> npt.NDArray[np.uint8]:
    """Render an image.

    When scene is given, its acceleration structure is selected from
    config (a BVH over the camera's shutter interval, or the linear list).
    When camera is given it is set up first; otherwise the camera already
    configured with setup_camera() is used.

    Args:
        config: Image size and sampling parameters.
        callback: Optional progress callback, called after every sample
            pass with (done_samples, total_samples).
        scene: The scene to render.
        camera: The camera to render through.

    Returns:
        A uint8 array of shape (height, width, 3), top row first.

    Raises:
        RuntimeError: If no camera has been set up.
        ValueError: If the camera is invalid.
    """
    if camera is not None:
        setup_camera(camera)
    elif not is_camera_ready():
        raise RuntimeError("Camera not set up. Pass camera or call setup_camera() first.")

    if scene is not None:
        if config.use_bvh:
            # Boxes cover the shutter that ray times are drawn from
            info = get_camera_info()
            scene.build_bvh(info["time0"], info["time1"], seed=config.seed)
        else:
            scene.use_list()

    renderer = Renderer.from_config(config)
    renderer.render(config.samples_per_pixel, batch_size=1, callback=callback)
    return renderer.get_image_uint8()
