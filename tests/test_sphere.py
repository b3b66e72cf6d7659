"""Unit tests for sphere intersection.

Tests cover:
- Ray hitting sphere from outside (front face)
- Ray missing sphere
- Ray starting inside sphere (back face)
- Ray tangent to sphere
- Moving spheres evaluated at the ray time
- Spherical texture coordinates
- Host-side bounding boxes
"""

import pytest
import taichi as ti


class TestSphereBasics:
    """Tests for Sphere dataclass and construction helpers."""

    def test_make_sphere(self):
        """Test make_sphere gives a static sphere."""
        from pathtracer.geometry.sphere import make_sphere, vec3

        center0 = ti.field(dtype=ti.math.vec3, shape=())
        center1 = ti.field(dtype=ti.math.vec3, shape=())
        radius_result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            sphere = make_sphere(vec3(1.0, 2.0, 3.0), 0.5)
            center0[None] = sphere.center0
            center1[None] = sphere.center1
            radius_result[None] = sphere.radius

        test_kernel()
        c0 = center0[None]
        c1 = center1[None]
        for axis, expected in enumerate((1.0, 2.0, 3.0)):
            assert abs(c0[axis] - expected) < 1e-6
            assert abs(c1[axis] - expected) < 1e-6
        assert abs(radius_result[None] - 0.5) < 1e-6

    def test_sphere_center_interpolates(self):
        """Test a moving sphere's center is linear in time."""
        from pathtracer.geometry.sphere import make_moving_sphere, sphere_center, vec3

        start = ti.field(dtype=ti.math.vec3, shape=())
        middle = ti.field(dtype=ti.math.vec3, shape=())
        end = ti.field(dtype=ti.math.vec3, shape=())

        @ti.kernel
        def test_kernel():
            sphere = make_moving_sphere(vec3(0.0, 0.0, 0.0), vec3(2.0, 4.0, 0.0), 0.0, 1.0, 1.0)
            start[None] = sphere_center(sphere, 0.0)
            middle[None] = sphere_center(sphere, 0.5)
            end[None] = sphere_center(sphere, 1.0)

        test_kernel()
        assert abs(start[None][0]) < 1e-6
        assert abs(middle[None][0] - 1.0) < 1e-6
        assert abs(middle[None][1] - 2.0) < 1e-6
        assert abs(end[None][1] - 4.0) < 1e-6


class TestSphereIntersection:
    """Tests for ray-sphere intersection."""

    def test_hit_sphere_direct_hit(self):
        """Test ray hitting sphere head-on from outside."""
        from pathtracer.geometry.sphere import hit_sphere, make_sphere, vec3

        hit = ti.field(dtype=ti.i32, shape=())
        t_val = ti.field(dtype=ti.f32, shape=())
        point = ti.field(dtype=ti.math.vec3, shape=())
        normal = ti.field(dtype=ti.math.vec3, shape=())
        front_face = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            # Ray from z=5 pointing toward origin
            sphere = make_sphere(vec3(0.0, 0.0, 0.0), 1.0)
            record = hit_sphere(
                vec3(0.0, 0.0, 5.0), vec3(0.0, 0.0, -1.0), 0.0, sphere, 0.001, 1000.0
            )
            hit[None] = record.hit
            t_val[None] = record.t
            point[None] = record.point
            normal[None] = record.normal
            front_face[None] = record.front_face

        test_kernel()
        assert hit[None] == 1
        # Should hit at z=1 (front of sphere), so t=4
        assert abs(t_val[None] - 4.0) < 1e-5
        p = point[None]
        assert abs(p[0]) < 1e-5
        assert abs(p[1]) < 1e-5
        assert abs(p[2] - 1.0) < 1e-5
        # Normal should point outward: (0, 0, 1)
        n = normal[None]
        assert abs(n[2] - 1.0) < 1e-5
        assert front_face[None] == 1

    def test_hit_sphere_far_root_when_near_excluded(self):
        """Test the far root (d + r) is reported when t_min excludes the near one."""
        from pathtracer.geometry.sphere import hit_sphere, make_sphere, vec3

        hit = ti.field(dtype=ti.i32, shape=())
        t_val = ti.field(dtype=ti.f32, shape=())
        front_face = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            sphere = make_sphere(vec3(0.0, 0.0, 0.0), 1.0)
            record = hit_sphere(
                vec3(0.0, 0.0, 5.0), vec3(0.0, 0.0, -1.0), 0.0, sphere, 4.5, 1000.0
            )
            hit[None] = record.hit
            t_val[None] = record.t
            front_face[None] = record.front_face

        test_kernel()
        assert hit[None] == 1
        assert abs(t_val[None] - 6.0) < 1e-5
        assert front_face[None] == 0

    def test_hit_sphere_miss(self):
        """Test ray passing beside the sphere."""
        from pathtracer.geometry.sphere import hit_sphere, make_sphere, vec3

        hit = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            sphere = make_sphere(vec3(0.0, 0.0, 0.0), 1.0)
            record = hit_sphere(
                vec3(2.0, 0.0, 5.0), vec3(0.0, 0.0, -1.0), 0.0, sphere, 0.001, 1000.0
            )
            hit[None] = record.hit

        test_kernel()
        assert hit[None] == 0

    def test_hit_sphere_outside_interval(self):
        """Test both roots outside (t_min, t_max) is a miss."""
        from pathtracer.geometry.sphere import hit_sphere, make_sphere, vec3

        hit = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            sphere = make_sphere(vec3(0.0, 0.0, 0.0), 1.0)
            record = hit_sphere(
                vec3(0.0, 0.0, 5.0), vec3(0.0, 0.0, -1.0), 0.0, sphere, 0.001, 3.0
            )
            hit[None] = record.hit

        test_kernel()
        assert hit[None] == 0

    def test_hit_sphere_from_inside(self):
        """Test ray starting inside the sphere hits the back face."""
        from pathtracer.geometry.sphere import hit_sphere, make_sphere, vec3

        hit = ti.field(dtype=ti.i32, shape=())
        t_val = ti.field(dtype=ti.f32, shape=())
        normal = ti.field(dtype=ti.math.vec3, shape=())
        front_face = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            sphere = make_sphere(vec3(0.0, 0.0, 0.0), 2.0)
            record = hit_sphere(
                vec3(0.0, 0.0, 0.0), vec3(1.0, 0.0, 0.0), 0.0, sphere, 0.001, 1000.0
            )
            hit[None] = record.hit
            t_val[None] = record.t
            normal[None] = record.normal
            front_face[None] = record.front_face

        test_kernel()
        assert hit[None] == 1
        assert abs(t_val[None] - 2.0) < 1e-5
        assert front_face[None] == 0
        # Normal flipped to face the ray
        assert abs(normal[None][0] + 1.0) < 1e-5

    def test_tangent_discriminant_is_zero(self):
        """Test a ray grazing the sphere has a near-zero discriminant."""
        from pathtracer.geometry.sphere import sphere_discriminant, vec3

        result = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            result[None] = sphere_discriminant(
                vec3(1.0, 0.0, 5.0), vec3(0.0, 0.0, -1.0), vec3(0.0, 0.0, 0.0), 1.0
            )

        test_kernel()
        assert abs(result[None]) < 1e-5

    def test_unnormalized_direction(self):
        """Test t scales with the direction length."""
        from pathtracer.geometry.sphere import hit_sphere, make_sphere, vec3

        t_val = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel():
            sphere = make_sphere(vec3(0.0, 0.0, 0.0), 1.0)
            record = hit_sphere(
                vec3(0.0, 0.0, 5.0), vec3(0.0, 0.0, -2.0), 0.0, sphere, 0.001, 1000.0
            )
            t_val[None] = record.t

        test_kernel()
        assert abs(t_val[None] - 2.0) < 1e-5

    def test_moving_sphere_hit_depends_on_time(self):
        """Test a moving sphere is hit where it is at the ray's time."""
        from pathtracer.geometry.sphere import hit_sphere, make_moving_sphere, vec3

        hit_early = ti.field(dtype=ti.i32, shape=())
        hit_late = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            sphere = make_moving_sphere(
                vec3(0.0, 0.0, 0.0), vec3(0.0, 10.0, 0.0), 0.0, 1.0, 1.0
            )
            origin = vec3(0.0, 10.0, 5.0)
            direction = vec3(0.0, 0.0, -1.0)
            hit_early[None] = hit_sphere(origin, direction, 0.0, sphere, 0.001, 1000.0).hit
            hit_late[None] = hit_sphere(origin, direction, 1.0, sphere, 0.001, 1000.0).hit

        test_kernel()
        assert hit_early[None] == 0
        assert hit_late[None] == 1


class TestSphereUV:
    """Tests for spherical texture coordinates."""

    @pytest.mark.parametrize(
        "normal, expected_u, expected_v",
        [
            ((1.0, 0.0, 0.0), 0.5, 0.5),
            ((0.0, 0.0, 1.0), 0.25, 0.5),
            ((0.0, 0.0, -1.0), 0.75, 0.5),
            ((0.0, 1.0, 0.0), None, 1.0),
            ((0.0, -1.0, 0.0), None, 0.0),
        ],
    )
    def test_sphere_uv(self, normal, expected_u, expected_v):
        """Test u wraps around the y axis and v runs pole to pole."""
        from pathtracer.geometry.sphere import sphere_uv, vec3

        u_val = ti.field(dtype=ti.f32, shape=())
        v_val = ti.field(dtype=ti.f32, shape=())

        @ti.kernel
        def test_kernel(x: ti.f32, y: ti.f32, z: ti.f32):
            u, v = sphere_uv(vec3(x, y, z))
            u_val[None] = u
            v_val[None] = v

        test_kernel(*normal)
        if expected_u is not None:
            assert abs(u_val[None] - expected_u) < 1e-5
        assert abs(v_val[None] - expected_v) < 1e-5
        assert 0.0 <= u_val[None] <= 1.0


class TestSphereBoundingBox:
    """Tests for host-side sphere bounds."""

    def test_static_sphere_box(self):
        from pathtracer.geometry.sphere import sphere_bounding_box

        box = sphere_bounding_box((1.0, 2.0, 3.0), 0.5)
        assert box.minimum == (0.5, 1.5, 2.5)
        assert box.maximum == (1.5, 2.5, 3.5)

    def test_moving_sphere_box_covers_both_ends(self):
        from pathtracer.geometry.sphere import moving_sphere_bounding_box

        box = moving_sphere_bounding_box(
            (0.0, 0.0, 0.0), (0.0, 2.0, 0.0), 0.0, 1.0, 0.5, 0.0, 1.0
        )
        assert box.minimum == (-0.5, -0.5, -0.5)
        assert box.maximum == (0.5, 2.5, 0.5)

    def test_is_valid_radius(self):
        from pathtracer.geometry.sphere import is_valid_radius

        assert is_valid_radius(0.5)
        assert not is_valid_radius(0.0)
        assert not is_valid_radius(-1.0)
        assert not is_valid_radius(float("nan"))
        assert not is_valid_radius(float("inf"))
