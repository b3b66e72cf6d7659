"""Unit tests for the Metal material module.

Tests cover:
- Perfect specular reflection (fuzz=0)
- Fuzzy reflection (fuzz>0)
- Ray absorption when scattered below surface
- Attenuation equals albedo
- Material registry operations and validation
"""

import math

import pytest
import taichi as ti


class TestPerfectReflection:
    """Tests for perfect specular reflection (fuzz=0)."""

    def test_perfect_reflection_normal_incidence(self):
        """Test reflection of ray hitting surface head-on."""
        from pathtracer.materials.metal import scatter_metal

        result_dir = ti.Vector.field(3, dtype=ti.f32, shape=())
        result_scatter = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            albedo = ti.math.vec3(1.0, 1.0, 1.0)
            # Ray going straight down (-Y) onto an upward normal
            incident = ti.math.vec3(0.0, -1.0, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            direction, _, did_scatter = scatter_metal(albedo, 0.0, incident, normal)
            result_dir[None] = direction
            result_scatter[None] = did_scatter

        test_kernel()
        d = result_dir[None]
        assert abs(d[0]) < 1e-5
        assert abs(d[1] - 1.0) < 1e-5
        assert abs(d[2]) < 1e-5
        assert result_scatter[None] == 1

    def test_perfect_reflection_45_degrees(self):
        """Test reflection at 45 degrees with an unnormalized incident ray."""
        from pathtracer.materials.metal import scatter_metal

        result_dir = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            incident = ti.math.vec3(3.0, -3.0, 0.0)
            normal = ti.math.vec3(0.0, 1.0, 0.0)
            direction, _, _ = scatter_metal(ti.math.vec3(1.0), 0.0, incident, normal)
            result_dir[None] = direction

        test_kernel()
        d = result_dir[None]
        inv_sqrt2 = 1.0 / math.sqrt(2.0)
        assert abs(d[0] - inv_sqrt2) < 1e-5
        assert abs(d[1] - inv_sqrt2) < 1e-5

    def test_attenuation_is_albedo(self):
        from pathtracer.materials.metal import scatter_metal

        result = ti.Vector.field(3, dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            _, attenuation, _ = scatter_metal(
                ti.math.vec3(0.8, 0.6, 0.2),
                0.0,
                ti.math.vec3(0.0, -1.0, 0.0),
                ti.math.vec3(0.0, 1.0, 0.0),
            )
            result[None] = attenuation

        test_kernel()
        a = result[None]
        assert abs(a[0] - 0.8) < 1e-6
        assert abs(a[1] - 0.6) < 1e-6
        assert abs(a[2] - 0.2) < 1e-6


class TestFuzzyReflection:
    """Tests for fuzzy reflection."""

    def test_fuzz_stays_within_radius(self):
        """Test the perturbation never exceeds the fuzz radius."""
        import numpy as np

        from pathtracer.materials.metal import scatter_metal

        n = 1000
        fuzz = 0.3
        offsets = ti.field(dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                incident = ti.math.vec3(0.0, -1.0, 0.0)
                normal = ti.math.vec3(0.0, 1.0, 0.0)
                direction, _, _ = scatter_metal(ti.math.vec3(1.0), fuzz, incident, normal)
                offsets[i] = (direction - ti.math.vec3(0.0, 1.0, 0.0)).norm()

        test_kernel()
        values = offsets.to_numpy()
        assert values.max() < fuzz + 1e-5
        assert np.any(values > 0.0)

    def test_grazing_fuzzy_reflection_can_be_absorbed(self):
        """Test directions pushed below the surface report no scatter."""
        from pathtracer.materials.metal import scatter_metal

        n = 2000
        scattered = ti.field(dtype=ti.i32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                # Nearly grazing incidence
                incident = ti.math.vec3(1.0, -0.01, 0.0)
                normal = ti.math.vec3(0.0, 1.0, 0.0)
                _, _, did_scatter = scatter_metal(ti.math.vec3(1.0), 1.0, incident, normal)
                scattered[i] = did_scatter

        test_kernel()
        values = scattered.to_numpy()
        assert values.min() == 0
        assert values.max() == 1


class TestMetalRegistry:
    """Tests for the metal material registry."""

    def test_add_and_read_back(self):
        from pathtracer.materials.metal import (
            add_metal_material,
            get_metal_albedo,
            get_metal_fuzz,
            get_metal_material_count,
        )

        idx = add_metal_material((0.7, 0.6, 0.5), 0.25)
        assert get_metal_material_count() == 1

        albedo = ti.Vector.field(3, dtype=ti.f32, shape=())
        fuzz = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(i: ti.i32):
            albedo[None] = get_metal_albedo(i)
            fuzz[None] = get_metal_fuzz(i)

        test_kernel(idx)
        assert abs(albedo[None][0] - 0.7) < 1e-6
        assert abs(fuzz[None] - 0.25) < 1e-6

    @pytest.mark.parametrize("fuzz", [-0.1, 1.5])
    def test_fuzz_out_of_range_rejected(self, fuzz):
        from pathtracer.materials.metal import add_metal_material

        with pytest.raises(ValueError):
            add_metal_material((0.5, 0.5, 0.5), fuzz)

    def test_albedo_out_of_range_rejected(self):
        from pathtracer.materials.metal import add_metal_material

        with pytest.raises(ValueError):
            add_metal_material((1.5, 0.5, 0.5), 0.0)
