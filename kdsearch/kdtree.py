from __future__ import annotations

import heapq
import math
from dataclasses import dataclass
from typing import Iterator, Sequence, Union

import numpy as np

from .config import DEFAULT_LEAF_SIZE
from .errors import EmptyIndexError
from .neighbors import (
    DataItem,
    SearchResult,
    check_k,
    prepare_query,
    squared_distances,
    stack_vectors,
)


@dataclass(frozen=True)
class Leaf:
    start: int
    stop: int

    @property
    def size(self) -> int:
        return self.stop - self.start


@dataclass(frozen=True)
class Internal:
    axis: int
    value: float
    pivot: int
    left: "Node | None"
    right: "Node | None"


Node = Union[Leaf, Internal]

NODE_OVERHEAD_BYTES = 96  # approximate size of one node object and its attributes


class KDTreeIndex:
    """Bulk-loaded KD-tree over a fixed dataset.

    Construction sorts each slice of a permutation array on ``depth % D`` and
    splits at the median. The median item stays in the internal node as its
    pivot; ranges of at most ``leaf_size`` items become leaves. Equal
    coordinates are ordered by dataset position, so for a split on axis ``a``
    with value ``s`` the left side holds items with coordinate below ``s`` (or
    equal and earlier than the pivot) and the right side the rest.

    Search descends into the child on the query's side of the splitting plane
    first and only visits the other child when the plane is closer than the
    current best. All comparisons use squared distances; the square root is
    taken once per returned result.
    """

    def __init__(self, leaf_size: int = DEFAULT_LEAF_SIZE, dim: int | None = None):
        if leaf_size < 1:
            raise ValueError(f"leaf_size must be at least 1, got {leaf_size}")
        self.leaf_size = leaf_size
        self.dim = dim
        self.dataset: Sequence[DataItem] = []
        self.root: Node | None = None
        self._matrix = np.empty((0, dim or 0), dtype=np.float64)
        self._order = np.empty(0, dtype=np.intp)
        self.node_count = 0
        self.leaf_count = 0

    # ----------------------------
    # Construction
    # ----------------------------
    def build(self, dataset: Sequence[DataItem]) -> "KDTreeIndex":
        self._matrix, self.dim = stack_vectors(dataset, self.dim)
        if len(dataset) and self.dim < 1:
            raise ValueError("cannot split vectors of dimension 0")
        self.dataset = dataset
        self.node_count = 0
        self.leaf_count = 0
        self._order = np.arange(len(dataset), dtype=np.intp)
        self.root = self._partition(0, len(dataset), 0) if len(dataset) else None
        return self

    def _partition(self, lo: int, hi: int, depth: int) -> Node | None:
        if hi <= lo:
            return None
        if hi - lo <= self.leaf_size:
            self.node_count += 1
            self.leaf_count += 1
            return Leaf(lo, hi)

        axis = depth % self.dim
        segment = self._order[lo:hi]
        # lexsort keys go last-is-primary: coordinate first, dataset position breaks ties
        perm = np.lexsort((segment, self._matrix[segment, axis]))
        self._order[lo:hi] = segment[perm]

        mid = lo + (hi - lo) // 2
        pivot = int(self._order[mid])
        self.node_count += 1
        return Internal(
            axis=axis,
            value=float(self._matrix[pivot, axis]),
            pivot=pivot,
            left=self._partition(lo, mid, depth + 1),
            right=self._partition(mid + 1, hi, depth + 1),
        )

    # ----------------------------
    # Introspection
    # ----------------------------
    def __len__(self) -> int:
        return len(self.dataset)

    def leaf_items(self, leaf: Leaf) -> np.ndarray:
        return self._order[leaf.start : leaf.stop]

    def walk(self) -> Iterator[int]:
        """Yield every dataset index held by the tree, in-order (left, pivot, right)."""
        stack: list[Node] = []
        node = self.root
        while stack or node is not None:
            while isinstance(node, Internal):
                stack.append(node)
                node = node.left
            if isinstance(node, Leaf):
                for idx in self.leaf_items(node):
                    yield int(idx)
            if not stack:
                break
            parent = stack.pop()
            yield parent.pivot
            node = parent.right

    def estimated_memory_kb(self) -> int:
        """Rough footprint: the stacked vectors, the permutation and the node objects."""
        nodes = self.node_count * NODE_OVERHEAD_BYTES
        return (self._matrix.nbytes + self._order.nbytes + nodes) // 1024

    def depth(self) -> int:
        def _depth(node: Node | None) -> int:
            if node is None:
                return 0
            if isinstance(node, Leaf):
                return 1
            return 1 + max(_depth(node.left), _depth(node.right))

        return _depth(self.root)

    # ----------------------------
    # Queries
    # ----------------------------
    def _validate(self, query) -> np.ndarray:
        if self.root is None:
            raise EmptyIndexError("KD-tree holds no items")
        return prepare_query(query, self.dim)

    def _sq(self, idx: int, query: np.ndarray) -> float:
        return float(squared_distances(self._matrix[idx : idx + 1], query)[0])

    def _result(self, idx: int, sq_dist: float) -> SearchResult:
        return SearchResult(distance=math.sqrt(sq_dist), text=self.dataset[idx].text, index=idx)

    def nearest(self, query) -> SearchResult:
        q = self._validate(query)
        best = [math.inf, -1]  # squared distance, dataset index

        def visit(node: Node | None) -> None:
            if node is None:
                return
            if isinstance(node, Leaf):
                items = self.leaf_items(node)
                for idx, sq in zip(items, squared_distances(self._matrix[items], q)):
                    # an unset best accepts inf, so overflowed distances still yield an item
                    if best[1] < 0 or sq < best[0]:
                        best[0], best[1] = float(sq), int(idx)
                return

            sq = self._sq(node.pivot, q)
            if best[1] < 0 or sq < best[0]:
                best[0], best[1] = sq, node.pivot
            diff = float(q[node.axis]) - node.value
            near, far = (node.left, node.right) if diff < 0 else (node.right, node.left)
            visit(near)
            if diff * diff < best[0]:
                visit(far)

        visit(self.root)
        return self._result(best[1], best[0])

    def k_nearest(self, query, k: int) -> list[SearchResult]:
        check_k(k)
        if k == 0:
            return []
        q = self._validate(query)
        # max-heap through negated keys: heap[0] is the worst of the current best k
        heap: list[tuple[float, int]] = []

        def offer(idx: int, sq: float) -> None:
            if len(heap) < k:
                heapq.heappush(heap, (-sq, idx))
            elif sq < -heap[0][0]:
                heapq.heapreplace(heap, (-sq, idx))

        def visit(node: Node | None) -> None:
            if node is None:
                return
            if isinstance(node, Leaf):
                items = self.leaf_items(node)
                for idx, sq in zip(items, squared_distances(self._matrix[items], q)):
                    offer(int(idx), float(sq))
                return

            offer(node.pivot, self._sq(node.pivot, q))
            diff = float(q[node.axis]) - node.value
            near, far = (node.left, node.right) if diff < 0 else (node.right, node.left)
            visit(near)
            if len(heap) < k or diff * diff < -heap[0][0]:
                visit(far)

        visit(self.root)
        ranked = sorted((-neg_sq, idx) for neg_sq, idx in heap)
        return [self._result(idx, sq) for sq, idx in ranked]


__all__ = ["KDTreeIndex", "Leaf", "Internal", "Node"]
