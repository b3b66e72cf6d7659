"""Unit tests for tone mapping.

Tests cover:
- Averaging, gamma 2 and the 0.999 clamp
- Non-finite and negative inputs
- Validation of the sample count
"""

import numpy as np
import pytest

from pathtracer.core.tonemap import tone_map, tone_map_color


class TestToneMap:
    """Tests for tone_map()."""

    def test_white_maps_to_255(self):
        assert tone_map_color((1.0, 1.0, 1.0), 1) == (255, 255, 255)

    def test_black_maps_to_0(self):
        assert tone_map_color((0.0, 0.0, 0.0), 10) == (0, 0, 0)

    def test_averages_over_samples(self):
        assert tone_map_color((4.0, 4.0, 4.0), 4) == (255, 255, 255)

    def test_gamma_two(self):
        """Test a mean of 0.25 becomes sqrt(0.25) * 256 = 128."""
        assert tone_map_color((0.25, 0.25, 0.25), 1) == (128, 128, 128)

    def test_overbright_clamped(self):
        assert tone_map_color((50.0, 2.0, 1.0), 1) == (255, 255, 255)

    def test_non_finite_and_negative(self):
        assert tone_map_color((float("nan"), -1.0, float("inf")), 1) == (0, 0, 255)

    def test_preserves_shape_and_dtype(self):
        sums = np.zeros((3, 5, 3), dtype=np.float32)
        sums[0, 0] = (1.0, 0.0, 0.25)
        image = tone_map(sums, 1)
        assert image.shape == (3, 5, 3)
        assert image.dtype == np.uint8
        assert tuple(image[0, 0]) == (255, 0, 128)

    @pytest.mark.parametrize("spp", [0, -3])
    def test_invalid_sample_count(self, spp):
        with pytest.raises(ValueError):
            tone_map(np.zeros((1, 1, 3)), spp)
