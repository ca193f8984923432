from __future__ import annotations

from dataclasses import dataclass
from typing import NamedTuple, Protocol, Sequence

import numpy as np

from .errors import DimensionMismatchError, EmptyIndexError, InvalidKError


@dataclass(frozen=True, eq=False)
class DataItem:
    text: str
    vector: np.ndarray

    def __post_init__(self) -> None:
        vec = np.array(self.vector, dtype=np.float64).reshape(-1)
        vec.flags.writeable = False
        object.__setattr__(self, "vector", vec)

    @property
    def dim(self) -> int:
        return int(self.vector.shape[0])


class SearchResult(NamedTuple):
    distance: float
    text: str
    index: int  # position of the item in the dataset the index was built from


class NeighborIndex(Protocol):
    def build(self, dataset: Sequence[DataItem]) -> "NeighborIndex":
        ...

    def nearest(self, query: np.ndarray) -> SearchResult:
        ...

    def k_nearest(self, query: np.ndarray, k: int) -> list[SearchResult]:
        ...

    def __len__(self) -> int:
        ...


def stack_vectors(dataset: Sequence[DataItem], dim: int | None = None) -> tuple[np.ndarray, int | None]:
    """Stack item vectors into an (n, D) matrix, checking that every item shares D.

    ``dim`` pins D up front; when it is None, D is taken from the first item
    and stays None for an empty dataset.
    """
    if not dataset:
        return np.empty((0, dim or 0), dtype=np.float64), dim
    expected = dim if dim is not None else dataset[0].dim
    for item in dataset:
        if item.dim != expected:
            raise DimensionMismatchError(expected, item.dim, what=f"item {item.text[:40]!r}")
    return np.vstack([item.vector for item in dataset]), expected


def prepare_query(query: np.ndarray | Sequence[float], dim: int) -> np.ndarray:
    vec = np.asarray(query, dtype=np.float64)
    if vec.ndim != 1 or vec.shape[0] != dim:
        raise DimensionMismatchError(dim, int(vec.shape[-1]) if vec.ndim else 0)
    return vec


def check_k(k: int) -> None:
    if k < 0:
        raise InvalidKError(k)


def squared_distances(matrix: np.ndarray, query: np.ndarray) -> np.ndarray:
    # coordinates near the float64 limit overflow to inf rather than warn
    with np.errstate(over="ignore", invalid="ignore"):
        diff = matrix - query
        return np.einsum("ij,ij->i", diff, diff)


class LinearIndex:
    """Exhaustive scan over the dataset. Exact, and the reference for the KD-tree."""

    def __init__(self, dim: int | None = None):
        self.dim = dim
        self.dataset: Sequence[DataItem] = []
        self.matrix = np.empty((0, dim or 0), dtype=np.float64)

    def build(self, dataset: Sequence[DataItem]) -> "LinearIndex":
        self.matrix, self.dim = stack_vectors(dataset, self.dim)
        self.dataset = dataset
        return self

    def __len__(self) -> int:
        return len(self.dataset)

    def estimated_memory_kb(self) -> int:
        text_bytes = sum(len(item.text.encode("utf-8")) for item in self.dataset)
        return (self.matrix.nbytes + text_bytes) // 1024

    def _validate(self, query) -> np.ndarray:
        if not self.dataset:
            raise EmptyIndexError("linear index holds no items")
        return prepare_query(query, self.dim)

    def _result(self, idx: int, sq_dist: float) -> SearchResult:
        return SearchResult(distance=float(np.sqrt(sq_dist)), text=self.dataset[idx].text, index=idx)

    def nearest(self, query) -> SearchResult:
        q = self._validate(query)
        sq = squared_distances(self.matrix, q)
        # argmin keeps the first occurrence, so ties resolve to dataset order
        best = int(np.argmin(sq))
        return self._result(best, sq[best])

    def k_nearest(self, query, k: int) -> list[SearchResult]:
        check_k(k)
        if k == 0:
            return []
        q = self._validate(query)
        sq = squared_distances(self.matrix, q)
        order = np.argsort(sq, kind="stable")[:k]
        return [self._result(int(i), sq[i]) for i in order]


__all__ = [
    "DataItem",
    "SearchResult",
    "NeighborIndex",
    "LinearIndex",
    "stack_vectors",
    "prepare_query",
    "check_k",
    "squared_distances",
]
