"""Unit tests for RenderConfig."""

import pytest

from pathtracer.core.config import DEFAULT_MAX_DEPTH, MAX_IMAGE_WIDTH, RenderConfig


class TestRenderConfig:
    """Tests for defaults and validation."""

    def test_defaults(self):
        config = RenderConfig()
        assert (config.width, config.height) == (256, 256)
        assert config.samples_per_pixel == 50
        assert config.max_depth == DEFAULT_MAX_DEPTH == 50
        assert config.use_bvh is True
        assert config.seed is None

    def test_aspect_ratio(self):
        assert RenderConfig(width=400, height=200).aspect_ratio == pytest.approx(2.0)

    def test_frozen(self):
        config = RenderConfig()
        with pytest.raises(AttributeError):
            config.width = 10

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"width": 0},
            {"height": 0},
            {"width": MAX_IMAGE_WIDTH + 1},
            {"samples_per_pixel": 0},
            {"max_depth": 0},
        ],
    )
    def test_invalid_values(self, kwargs):
        with pytest.raises(ValueError):
            RenderConfig(**kwargs)
