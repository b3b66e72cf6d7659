"""Unit tests for scene-level intersection.

Tests cover:
- SceneHitRecord with material_id and texture coordinates
- Sphere storage and clearing
- Closest hit selection over several spheres
- Moving spheres sampled at the ray's time
- Dispatch between the list and the BVH
"""

import pytest
import taichi as ti


def _query(origin, direction, time=0.0, t_min=0.001, t_max=1e10, use="scene"):
    """Run one scene query in a kernel and return (hit, t, material_id, front_face)."""
    from pathtracer.scene.intersection import intersect_bvh, intersect_list, intersect_scene

    ray = ti.Vector.field(3, dtype=ti.f32, shape=2)
    ray[0] = list(origin)
    ray[1] = list(direction)
    hit = ti.field(dtype=ti.i32, shape=())
    t_val = ti.field(dtype=ti.f32, shape=())
    material_id = ti.field(dtype=ti.i32, shape=())
    front_face = ti.field(dtype=ti.i32, shape=())

    @ti.kernel
    def query_list(tm: ti.f32, lo: ti.f32, hi: ti.f32):
        rec = intersect_list(ray[0], ray[1], tm, lo, hi)
        hit[None] = rec.hit
        t_val[None] = rec.t
        material_id[None] = rec.material_id
        front_face[None] = rec.front_face

    @ti.kernel
    def query_bvh(tm: ti.f32, lo: ti.f32, hi: ti.f32):
        rec = intersect_bvh(ray[0], ray[1], tm, lo, hi)
        hit[None] = rec.hit
        t_val[None] = rec.t
        material_id[None] = rec.material_id
        front_face[None] = rec.front_face

    @ti.kernel
    def query_scene(tm: ti.f32, lo: ti.f32, hi: ti.f32):
        rec = intersect_scene(ray[0], ray[1], tm, lo, hi)
        hit[None] = rec.hit
        t_val[None] = rec.t
        material_id[None] = rec.material_id
        front_face[None] = rec.front_face

    kernel = {"list": query_list, "bvh": query_bvh, "scene": query_scene}[use]
    kernel(time, t_min, t_max)
    return hit[None], t_val[None], material_id[None], front_face[None]


def _add_static(center, radius, material_id):
    from pathtracer.scene.intersection import add_sphere

    return add_sphere(center, center, 0.0, 1.0, radius, material_id)


def _build_bvh_from_fields(seed=0):
    """Build and upload a BVH over the spheres currently in the fields."""
    from pathtracer.geometry.aabb import AABB
    from pathtracer.geometry.bvh import build_bvh, flatten_bvh, upload_bvh
    from pathtracer.scene.intersection import (
        get_sphere_count,
        set_use_bvh,
        sphere_centers0,
        sphere_radii,
    )

    boxes = []
    for i in range(get_sphere_count()):
        c = sphere_centers0[i]
        r = sphere_radii[i]
        boxes.append(AABB((c[0] - r, c[1] - r, c[2] - r), (c[0] + r, c[1] + r, c[2] + r)))
    upload_bvh(flatten_bvh(build_bvh(boxes, seed=seed)))
    set_use_bvh(True)


class TestSceneHitRecordBasics:
    """Tests for SceneHitRecord dataclass."""

    def test_scene_hit_record_fields(self):
        from pathtracer.scene.intersection import SceneHitRecord, vec3

        result = ti.field(dtype=ti.f32, shape=3)

        @ti.kernel
        def test_kernel():
            rec = SceneHitRecord(
                hit=1,
                t=5.0,
                point=vec3(0.0, 0.0, 0.0),
                normal=vec3(0.0, 0.0, 1.0),
                front_face=1,
                u=0.25,
                v=0.75,
                material_id=42,
            )
            result[0] = rec.material_id
            result[1] = rec.u
            result[2] = rec.v

        test_kernel()
        assert result[0] == 42
        assert result[1] == pytest.approx(0.25)
        assert result[2] == pytest.approx(0.75)

    def test_miss_record_has_negative_material_id(self):
        from pathtracer.scene.intersection import _make_miss_record

        result_hit = ti.field(dtype=ti.i32, shape=())
        result_material_id = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            rec = _make_miss_record()
            result_hit[None] = rec.hit
            result_material_id[None] = rec.material_id

        test_kernel()
        assert result_hit[None] == 0
        assert result_material_id[None] == -1


class TestSphereStorage:
    """Tests for scene primitive storage and management."""

    def test_add_and_clear(self):
        from pathtracer.scene.intersection import clear_scene, get_sphere_count

        assert get_sphere_count() == 0
        assert _add_static((0.0, 0.0, 0.0), 1.0, 0) == 0
        assert _add_static((2.0, 0.0, 0.0), 0.5, 1) == 1
        assert get_sphere_count() == 2

        clear_scene()
        assert get_sphere_count() == 0

    def test_clear_disables_bvh(self):
        from pathtracer.geometry.bvh import get_bvh_entry_count
        from pathtracer.scene.intersection import clear_scene, is_using_bvh

        _add_static((0.0, 0.0, -3.0), 1.0, 0)
        _build_bvh_from_fields()
        assert is_using_bvh()

        clear_scene()
        assert not is_using_bvh()
        assert get_bvh_entry_count() == 0

    def test_capacity_exceeded(self):
        from pathtracer.scene.intersection import MAX_SPHERES, num_spheres

        num_spheres[None] = MAX_SPHERES
        with pytest.raises(RuntimeError):
            _add_static((0.0, 0.0, 0.0), 1.0, 0)


class TestListIntersection:
    """Tests for the linear closest-hit query."""

    def test_empty_scene_misses(self):
        hit, _, material_id, _ = _query((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), use="list")
        assert hit == 0
        assert material_id == -1

    def test_single_sphere(self):
        _add_static((0.0, 0.0, -3.0), 1.0, 5)

        hit, t, material_id, front_face = _query((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), use="list")
        assert hit == 1
        assert t == pytest.approx(2.0, abs=1e-4)
        assert material_id == 5
        assert front_face == 1

    def test_closest_of_several(self):
        """Test the nearest sphere wins regardless of insertion order."""
        _add_static((0.0, 0.0, -10.0), 1.0, 1)
        _add_static((0.0, 0.0, -4.0), 1.0, 2)
        _add_static((0.0, 0.0, -7.0), 1.0, 3)

        hit, t, material_id, _ = _query((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), use="list")
        assert hit == 1
        assert t == pytest.approx(3.0, abs=1e-4)
        assert material_id == 2

    def test_t_max_excludes_far_sphere(self):
        _add_static((0.0, 0.0, -10.0), 1.0, 1)

        hit, _, _, _ = _query((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), t_max=5.0, use="list")
        assert hit == 0

    def test_moving_sphere_uses_ray_time(self):
        from pathtracer.scene.intersection import add_sphere

        add_sphere((0.0, 0.0, -3.0), (0.0, 4.0, -3.0), 0.0, 1.0, 0.5, 7)

        hit_start, _, _, _ = _query((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), time=0.0, use="list")
        hit_end, _, _, _ = _query((0.0, 0.0, 0.0), (0.0, 0.0, -1.0), time=1.0, use="list")
        hit_up, _, material_id, _ = _query((0.0, 4.0, 0.0), (0.0, 0.0, -1.0), time=1.0, use="list")

        assert hit_start == 1
        assert hit_end == 0
        assert hit_up == 1
        assert material_id == 7


class TestSceneDispatch:
    """Tests for intersect_scene choosing between list and BVH."""

    def test_defaults_to_list(self):
        from pathtracer.scene.intersection import is_using_bvh

        _add_static((0.0, 0.0, -3.0), 1.0, 4)
        assert not is_using_bvh()

        hit, t, material_id, _ = _query((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert hit == 1
        assert t == pytest.approx(2.0, abs=1e-4)
        assert material_id == 4

    def test_bvh_matches_list(self):
        for i in range(8):
            _add_static((float(i) * 3.0 - 10.0, 0.0, -5.0 - i), 1.0, i)
        _build_bvh_from_fields(seed=2)

        for x in (-10.0, -4.0, 0.5, 8.0, 30.0):
            expected = _query((x, 0.0, 5.0), (0.0, 0.0, -1.0), use="list")
            actual = _query((x, 0.0, 5.0), (0.0, 0.0, -1.0))
            assert actual[0] == expected[0]
            assert actual[2] == expected[2]
            if expected[0]:
                assert actual[1] == pytest.approx(expected[1], abs=1e-4)

    def test_bvh_switch_off(self):
        from pathtracer.scene.intersection import is_using_bvh, set_use_bvh

        _add_static((0.0, 0.0, -3.0), 1.0, 0)
        _build_bvh_from_fields()
        set_use_bvh(False)
        assert not is_using_bvh()

        hit, _, _, _ = _query((0.0, 0.0, 0.0), (0.0, 0.0, -1.0))
        assert hit == 1
