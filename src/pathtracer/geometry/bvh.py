"""Bounding volume hierarchy over scene primitives.

The hierarchy is built on the host with a randomized median split:

1. Pick one of the three axes uniformly at random.
2. Sort the current primitive range by the minimum coordinate of each
   primitive's bounding box on that axis.
3. Split at the midpoint index and recurse on both halves.

A single-primitive range becomes a node whose two children are the same
primitive; a two-primitive range orders the pair by the axis comparator
directly. Every node stores the surrounding box of its two children.

Kernels cannot follow Python references, so the tree is flattened in
depth-first pre-order into Taichi fields. Each entry is either a box node
or a primitive leaf and carries a skip index: the position of the first
entry after its subtree. Traversal walks the array forward, descending
into a node (entry + 1) when its box is hit and jumping to its skip index
when it is missed. Because the left subtree precedes the right one, the
right child is always tested against the nearest hit found on the left,
without needing a traversal stack.

Example:
    >>> import numpy as np
    >>> from pathtracer.geometry.aabb import AABB
    >>> boxes = [AABB((i, 0.0, 0.0), (i + 1.0, 1.0, 1.0)) for i in range(4)]
    >>> root = build_bvh(boxes, rng=np.random.default_rng(7))
    >>> flat = flatten_bvh(root)
    >>> upload_bvh(flat)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from pathtracer.geometry.aabb import AABB

# Type alias for 3D vectors
vec3 = tm.vec3

# A child is either a nested node or the index of a primitive
BVHChild = Union["BVHNode", int]

# Entry kinds in the flattened layout
ENTRY_NODE = 0
ENTRY_PRIMITIVE = 1

# Maximum number of primitives the flattened hierarchy can index
MAX_BVH_PRIMITIVES = 1024

# Nodes and leaves (including duplicated single-primitive leaves) stay
# below 2n each, so 4n entries always suffice
MAX_BVH_ENTRIES = 4 * MAX_BVH_PRIMITIVES


@dataclass
class BVHNode:
    """Internal node of the host-side hierarchy.

    Attributes:
        left: Left child (node or primitive index).
        right: Right child (node or primitive index). Equal to left for a
            single-primitive leaf.
        box: Surrounding box of both children.
    """

    left: BVHChild
    right: BVHChild
    box: AABB


@dataclass
class FlatBVH:
    """Pre-order array layout of a hierarchy, ready for upload.

    Attributes:
        kind: ENTRY_NODE or ENTRY_PRIMITIVE per entry.
        box_min: Minimum corner per entry (zero for primitive leaves).
        box_max: Maximum corner per entry (zero for primitive leaves).
        primitive: Primitive index for leaves, -1 for nodes.
        skip: Index of the first entry after this entry's subtree.
    """

    kind: npt.NDArray[np.int32]
    box_min: npt.NDArray[np.float32]
    box_max: npt.NDArray[np.float32]
    primitive: npt.NDArray[np.int32]
    skip: npt.NDArray[np.int32]

    @property
    def num_entries(self) -> int:
        return int(self.kind.shape[0])


def _axis_key(boxes: list[AABB], axis: int):
    """Sort key on the minimum box coordinate along one axis.

    This ordering is deliberately coarse: only the chosen axis is compared.
    It fixes the partition, not a general box ordering.
    """

    def key(index: int) -> float:
        return boxes[index].minimum[axis]

    return key


def _child_box(child: BVHChild, boxes: list[AABB]) -> AABB:
    if isinstance(child, BVHNode):
        return child.box
    return boxes[child]


def _build_range(
    indices: list[int],
    boxes: list[AABB],
    rng: np.random.Generator,
) -> BVHNode:
    axis = int(rng.integers(0, 3))
    key = _axis_key(boxes, axis)
    span = len(indices)

    left: BVHChild
    right: BVHChild
    if span == 1:
        left = right = indices[0]
    elif span == 2:
        if key(indices[0]) < key(indices[1]):
            left, right = indices[0], indices[1]
        else:
            left, right = indices[1], indices[0]
    else:
        ordered = sorted(indices, key=key)
        mid = span // 2
        left = _build_range(ordered[:mid], boxes, rng)
        right = _build_range(ordered[mid:], boxes, rng)

    box = AABB.surrounding_box(_child_box(left, boxes), _child_box(right, boxes))
    return BVHNode(left=left, right=right, box=box)


def build_bvh(
    boxes: list[AABB | None],
    rng: np.random.Generator | None = None,
    seed: int | None = None,
) -> BVHNode | None:
    """Build a randomized hierarchy over primitive bounding boxes.

    Args:
        boxes: One bounding box per primitive, indexed by primitive index.
        rng: Generator used for the axis choices. Takes precedence over seed.
        seed: Seed for a fresh generator when rng is not given. Without
            either, tree shape differs from run to run.

    Returns:
        The root node, or None for an empty scene.

    Raises:
        ValueError: If a primitive has no bounding box.
    """
    if not boxes:
        return None
    for index, box in enumerate(boxes):
        if box is None:
            raise ValueError(f"Primitive {index} has no bounding box; cannot build BVH")
    if rng is None:
        rng = np.random.default_rng(seed)
    return _build_range(list(range(len(boxes))), boxes, rng)  # type: ignore[arg-type]


def bvh_depth(node: BVHChild | None) -> int:
    """Number of node levels from node down to its deepest leaf."""
    if node is None or not isinstance(node, BVHNode):
        return 0
    return 1 + max(bvh_depth(node.left), bvh_depth(node.right))


def bvh_primitives(node: BVHChild | None) -> list[int]:
    """Primitive indices referenced by the subtree, in left-to-right order.

    Single-primitive leaves contribute their primitive twice.
    """
    if node is None:
        return []
    if not isinstance(node, BVHNode):
        return [node]
    return bvh_primitives(node.left) + bvh_primitives(node.right)


def flatten_bvh(root: BVHNode | None) -> FlatBVH:
    """Flatten a hierarchy into the pre-order skip-index layout.

    Args:
        root: Root returned by build_bvh(); None gives an empty layout.

    Returns:
        A FlatBVH with one entry per node and per leaf reference.
    """
    kind: list[int] = []
    box_min: list[tuple[float, float, float]] = []
    box_max: list[tuple[float, float, float]] = []
    primitive: list[int] = []
    skip: list[int] = []

    def emit(child: BVHChild) -> None:
        index = len(kind)
        if isinstance(child, BVHNode):
            kind.append(ENTRY_NODE)
            box_min.append(child.box.minimum)
            box_max.append(child.box.maximum)
            primitive.append(-1)
            skip.append(-1)
            emit(child.left)
            emit(child.right)
            skip[index] = len(kind)
        else:
            kind.append(ENTRY_PRIMITIVE)
            box_min.append((0.0, 0.0, 0.0))
            box_max.append((0.0, 0.0, 0.0))
            primitive.append(child)
            skip.append(index + 1)

    if root is not None:
        emit(root)

    return FlatBVH(
        kind=np.asarray(kind, dtype=np.int32),
        box_min=np.asarray(box_min, dtype=np.float32).reshape(-1, 3),
        box_max=np.asarray(box_max, dtype=np.float32).reshape(-1, 3),
        primitive=np.asarray(primitive, dtype=np.int32),
        skip=np.asarray(skip, dtype=np.int32),
    )


# =============================================================================
# Flattened Hierarchy Storage (GPU-accessible)
# =============================================================================

bvh_kind = ti.field(dtype=ti.i32, shape=MAX_BVH_ENTRIES)
bvh_box_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_ENTRIES)
bvh_box_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_ENTRIES)
bvh_primitive = ti.field(dtype=ti.i32, shape=MAX_BVH_ENTRIES)
bvh_skip = ti.field(dtype=ti.i32, shape=MAX_BVH_ENTRIES)
num_bvh_entries = ti.field(dtype=ti.i32, shape=())


def clear_bvh() -> None:
    """Drop the uploaded hierarchy. Queries against it then miss."""
    num_bvh_entries[None] = 0


def upload_bvh(flat: FlatBVH) -> None:
    """Copy a flattened hierarchy into the Taichi fields.

    Args:
        flat: Layout produced by flatten_bvh().

    Raises:
        RuntimeError: If the layout exceeds MAX_BVH_ENTRIES.
    """
    n = flat.num_entries
    if n > MAX_BVH_ENTRIES:
        raise RuntimeError(f"BVH has {n} entries; maximum is {MAX_BVH_ENTRIES}")

    # Pad to the full field size so from_numpy() sees matching shapes
    kind = np.zeros(MAX_BVH_ENTRIES, dtype=np.int32)
    box_min = np.zeros((MAX_BVH_ENTRIES, 3), dtype=np.float32)
    box_max = np.zeros((MAX_BVH_ENTRIES, 3), dtype=np.float32)
    primitive = np.full(MAX_BVH_ENTRIES, -1, dtype=np.int32)
    skip = np.zeros(MAX_BVH_ENTRIES, dtype=np.int32)

    kind[:n] = flat.kind
    box_min[:n] = flat.box_min
    box_max[:n] = flat.box_max
    primitive[:n] = flat.primitive
    skip[:n] = flat.skip

    bvh_kind.from_numpy(kind)
    bvh_box_min.from_numpy(box_min)
    bvh_box_max.from_numpy(box_max)
    bvh_primitive.from_numpy(primitive)
    bvh_skip.from_numpy(skip)
    num_bvh_entries[None] = n


def get_bvh_entry_count() -> int:
    """Get the number of entries in the uploaded hierarchy."""
    return int(num_bvh_entries[None])
