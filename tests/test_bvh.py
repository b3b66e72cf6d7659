"""Unit tests for the bounding volume hierarchy.

Tests cover:
- Host-side construction (empty, single, pair and larger scenes)
- Box containment and primitive coverage
- Pre-order flattening with skip indices
- Agreement between BVH traversal and the linear list
"""

import pytest
import taichi as ti


def _unit_boxes(n):
    from pathtracer.geometry.aabb import AABB

    return [AABB((float(i), 0.0, 0.0), (i + 1.0, 1.0, 1.0)) for i in range(n)]


def _contains(outer, inner) -> bool:
    return all(outer.minimum[a] <= inner.minimum[a] for a in range(3)) and all(
        outer.maximum[a] >= inner.maximum[a] for a in range(3)
    )


class TestBuildBVH:
    """Tests for host-side BVH construction."""

    def test_empty_scene(self):
        """Test an empty primitive list gives no tree."""
        from pathtracer.geometry.bvh import build_bvh, flatten_bvh

        assert build_bvh([], seed=0) is None
        assert flatten_bvh(None).num_entries == 0

    def test_missing_box_rejected(self):
        """Test a primitive without bounds fails the build."""
        from pathtracer.geometry.bvh import build_bvh

        boxes = _unit_boxes(2) + [None]
        with pytest.raises(ValueError):
            build_bvh(boxes, seed=0)

    def test_single_primitive_duplicated(self):
        """Test one primitive becomes a node with both children equal."""
        from pathtracer.geometry.bvh import build_bvh

        root = build_bvh(_unit_boxes(1), seed=0)
        assert root.left == 0
        assert root.right == 0

    def test_pair_ordered_by_axis(self):
        """Test two primitives become the two children directly."""
        from pathtracer.geometry.bvh import build_bvh

        root = build_bvh(_unit_boxes(2), seed=3)
        assert sorted([root.left, root.right]) == [0, 1]

    @pytest.mark.parametrize("n", [3, 7, 16, 100])
    def test_every_primitive_referenced(self, n):
        """Test each primitive appears in the tree."""
        from pathtracer.geometry.bvh import build_bvh, bvh_primitives

        root = build_bvh(_unit_boxes(n), seed=1)
        assert set(bvh_primitives(root)) == set(range(n))

    def test_node_boxes_contain_children(self):
        """Test every node box encloses its children's boxes."""
        from pathtracer.geometry.bvh import BVHNode, build_bvh

        boxes = _unit_boxes(20)
        root = build_bvh(boxes, seed=5)

        def check(node):
            for child in (node.left, node.right):
                if isinstance(child, BVHNode):
                    assert _contains(node.box, child.box)
                    check(child)
                else:
                    assert _contains(node.box, boxes[child])

        check(root)

    def test_depth_is_logarithmic(self):
        """Test the median split keeps the tree balanced."""
        from pathtracer.geometry.bvh import build_bvh, bvh_depth

        root = build_bvh(_unit_boxes(64), seed=2)
        assert bvh_depth(root) == 6

    def test_same_seed_same_tree(self):
        """Test construction is reproducible for a fixed seed."""
        from pathtracer.geometry.bvh import build_bvh, flatten_bvh

        a = flatten_bvh(build_bvh(_unit_boxes(30), seed=9))
        b = flatten_bvh(build_bvh(_unit_boxes(30), seed=9))
        assert (a.primitive == b.primitive).all()
        assert (a.skip == b.skip).all()


class TestFlattenBVH:
    """Tests for the pre-order skip layout."""

    def test_root_skip_is_end(self):
        """Test the root's subtree spans every entry."""
        from pathtracer.geometry.bvh import build_bvh, flatten_bvh

        flat = flatten_bvh(build_bvh(_unit_boxes(10), seed=4))
        assert flat.skip[0] == flat.num_entries

    def test_leaf_skip_is_next_entry(self):
        """Test leaves skip to the entry right after themselves."""
        from pathtracer.geometry.bvh import ENTRY_PRIMITIVE, build_bvh, flatten_bvh

        flat = flatten_bvh(build_bvh(_unit_boxes(10), seed=4))
        for index in range(flat.num_entries):
            if flat.kind[index] == ENTRY_PRIMITIVE:
                assert flat.skip[index] == index + 1
                assert flat.primitive[index] >= 0
            else:
                assert flat.primitive[index] == -1
                assert index + 1 < flat.skip[index] <= flat.num_entries

    def test_entry_count_bounded(self):
        """Test the layout fits in 4n entries."""
        from pathtracer.geometry.bvh import build_bvh, flatten_bvh

        for n in (1, 2, 3, 5, 33):
            flat = flatten_bvh(build_bvh(_unit_boxes(n), seed=0))
            assert flat.num_entries <= 4 * n

    def test_upload_sets_entry_count(self):
        from pathtracer.geometry.bvh import (
            build_bvh,
            clear_bvh,
            flatten_bvh,
            get_bvh_entry_count,
            upload_bvh,
        )

        flat = flatten_bvh(build_bvh(_unit_boxes(5), seed=0))
        upload_bvh(flat)
        assert get_bvh_entry_count() == flat.num_entries
        clear_bvh()
        assert get_bvh_entry_count() == 0


def _compare_bvh_and_list(n_rays, time=0.0):
    """Trace random rays through both structures and return numpy arrays."""
    from pathtracer.scene.intersection import intersect_bvh, intersect_list

    list_hit = ti.field(dtype=ti.i32, shape=n_rays)
    bvh_hit = ti.field(dtype=ti.i32, shape=n_rays)
    list_t = ti.field(dtype=ti.f32, shape=n_rays)
    bvh_t = ti.field(dtype=ti.f32, shape=n_rays)
    list_mat = ti.field(dtype=ti.i32, shape=n_rays)
    bvh_mat = ti.field(dtype=ti.i32, shape=n_rays)

    @ti.kernel
    def test_kernel(ray_time: ti.f32):
        for i in range(n_rays):
            origin = ti.Vector([ti.random() * 30.0 - 15.0, ti.random() * 4.0, 20.0])
            target = ti.Vector([ti.random() * 30.0 - 15.0, ti.random() * 2.0, ti.random() * 30.0 - 15.0])
            direction = (target - origin).normalized()
            a = intersect_list(origin, direction, ray_time, 0.001, 1e10)
            b = intersect_bvh(origin, direction, ray_time, 0.001, 1e10)
            list_hit[i] = a.hit
            bvh_hit[i] = b.hit
            list_t[i] = a.t
            bvh_t[i] = b.t
            list_mat[i] = a.material_id
            bvh_mat[i] = b.material_id

    test_kernel(time)
    return (
        list_hit.to_numpy(),
        bvh_hit.to_numpy(),
        list_t.to_numpy(),
        bvh_t.to_numpy(),
        list_mat.to_numpy(),
        bvh_mat.to_numpy(),
    )


class TestBVHTraversal:
    """Tests that the BVH answers queries exactly like the list."""

    @pytest.mark.parametrize("n", [1, 2, 3, 60])
    def test_matches_list_static_spheres(self, n):
        """Test single, paired, uneven and large hierarchies against the list."""
        import numpy as np

        from pathtracer.scene.manager import SceneManager

        rng = np.random.default_rng(11)
        # Small scenes use large spheres near the ray targets
        extent, r_lo, r_hi = (12.0, 0.2, 1.0) if n > 3 else (4.0, 1.5, 2.5)
        scene = SceneManager()
        for i in range(n):
            material = scene.add_metal_material((0.5, 0.5, 0.5), 0.0)
            center = (rng.uniform(-extent, extent), rng.uniform(0, 2), rng.uniform(-extent, extent))
            scene.add_sphere(center, float(rng.uniform(r_lo, r_hi)), material)
        scene.build_bvh(seed=3)
        assert scene.is_using_bvh()

        list_hit, bvh_hit, list_t, bvh_t, list_mat, bvh_mat = _compare_bvh_and_list(2000)

        assert list_hit.sum() > 0
        np.testing.assert_array_equal(list_hit, bvh_hit)
        hits = list_hit == 1
        np.testing.assert_allclose(list_t[hits], bvh_t[hits], rtol=1e-6)
        np.testing.assert_array_equal(list_mat[hits], bvh_mat[hits])

    def test_matches_list_moving_spheres(self):
        """Test boxes built over the shutter cover moving spheres at any time."""
        import numpy as np

        from pathtracer.scene.manager import SceneManager

        rng = np.random.default_rng(5)
        scene = SceneManager()
        material = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        for i in range(40):
            c0 = (rng.uniform(-12, 12), rng.uniform(0, 1), rng.uniform(-12, 12))
            c1 = (c0[0], c0[1] + rng.uniform(0, 1.5), c0[2])
            scene.add_moving_sphere(c0, c1, 0.0, 1.0, 0.4, material)
        scene.build_bvh(0.0, 1.0, seed=8)

        for time in (0.0, 0.5, 1.0):
            list_hit, bvh_hit, list_t, bvh_t, _, _ = _compare_bvh_and_list(1000, time)
            np.testing.assert_array_equal(list_hit, bvh_hit)
            hits = list_hit == 1
            np.testing.assert_allclose(list_t[hits], bvh_t[hits], rtol=1e-6)

    def test_empty_bvh_misses(self):
        import numpy as np

        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        assert scene.build_bvh(seed=0) is None

        _, bvh_hit, _, _, _, bvh_mat = _compare_bvh_and_list(100)
        assert bvh_hit.sum() == 0
        assert (bvh_mat == -1).all()

    def test_nearest_of_overlapping_spheres(self):
        """Test the nearer of two spheres on the same line is reported."""
        from pathtracer.scene.intersection import intersect_scene
        from pathtracer.scene.manager import SceneManager

        scene = SceneManager()
        near_mat = scene.add_dielectric_material(1.5)
        far_mat = scene.add_metal_material((1.0, 1.0, 1.0))
        scene.add_sphere((0.0, 0.0, -10.0), 1.0, far_mat)
        scene.add_sphere((0.0, 0.0, -3.0), 1.0, near_mat)
        scene.build_bvh(seed=0)

        t_val = ti.field(dtype=ti.f32, shape=())
        mat = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel():
            rec = intersect_scene(
                ti.Vector([0.0, 0.0, 0.0]), ti.Vector([0.0, 0.0, -1.0]), 0.0, 0.001, 1e10
            )
            t_val[None] = rec.t
            mat[None] = rec.material_id

        test_kernel()
        assert abs(t_val[None] - 2.0) < 1e-5
        assert mat[None] == near_mat
