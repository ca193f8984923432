from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Sequence

import numpy as np

from .config import SearchConfig
from .embedding import EmbeddingModel, HashVectorizer
from .kdtree import KDTreeIndex
from .log import get_logger
from .neighbors import DataItem, LinearIndex, NeighborIndex, SearchResult

logger = get_logger(__name__)


@dataclass
class Comparison:
    query: str
    kdtree: SearchResult
    linear: SearchResult
    kdtree_us: float
    linear_us: float
    top_k: list[SearchResult] = field(default_factory=list)

    @property
    def speedup(self) -> float:
        if self.kdtree_us <= 0:
            return float("inf")
        return self.linear_us / self.kdtree_us

    @property
    def agree(self) -> bool:
        return self.kdtree.text == self.linear.text or bool(
            np.isclose(self.kdtree.distance, self.linear.distance, rtol=0.0, atol=1e-9)
        )


def _timed_nearest(index: NeighborIndex, vec: np.ndarray) -> tuple[SearchResult, float]:
    start = time.perf_counter()
    result = index.nearest(vec)
    return result, (time.perf_counter() - start) * 1e6


class SemanticSearch:
    """Text-in, neighbors-out facade over the KD-tree and the linear scan.

    Queries are embedded with the same vectorizer that produced the stored
    vectors. The vectorizer is injected (or built from config), never global.
    """

    def __init__(self, cfg: SearchConfig | None = None, vectorizer: EmbeddingModel | None = None):
        self.cfg = cfg or SearchConfig()
        self.vectorizer: EmbeddingModel = vectorizer or HashVectorizer(self.cfg.vectorizer)
        self.tree = KDTreeIndex(leaf_size=self.cfg.index.leaf_size, dim=self.vectorizer.dim)
        self.linear: NeighborIndex = LinearIndex(dim=self.vectorizer.dim)
        self.build_ms = 0.0

    def build(self, dataset: Sequence[DataItem]) -> "SemanticSearch":
        start = time.perf_counter()
        self.tree.build(dataset)
        self.build_ms = (time.perf_counter() - start) * 1000
        self.linear.build(dataset)
        logger.info(
            "built KD-tree over %d items (leaf_size=%d, nodes=%d) in %.1f ms",
            len(dataset),
            self.tree.leaf_size,
            self.tree.node_count,
            self.build_ms,
        )
        return self

    def __len__(self) -> int:
        return len(self.tree)

    def embed(self, text: str) -> np.ndarray:
        return self.vectorizer.embed(text)

    def nearest(self, text: str) -> SearchResult:
        return self.tree.nearest(self.embed(text))

    def k_nearest(self, text: str, k: int | None = None) -> list[SearchResult]:
        return self.tree.k_nearest(self.embed(text), self.cfg.index.top_k if k is None else k)

    def linear_nearest(self, text: str) -> SearchResult:
        return self.linear.nearest(self.embed(text))

    def compare(self, text: str, k: int | None = None) -> Comparison:
        """Run one query through both indices and time each."""
        vec = self.embed(text)

        kd, kd_us = _timed_nearest(self.tree, vec)
        lin, lin_us = _timed_nearest(self.linear, vec)

        top = self.tree.k_nearest(vec, self.cfg.index.top_k if k is None else k)
        result = Comparison(query=text, kdtree=kd, linear=lin, kdtree_us=kd_us, linear_us=lin_us, top_k=top)
        if not result.agree:
            logger.warning(
                "KD-tree and linear scan disagree for %r: %.6f vs %.6f", text, kd.distance, lin.distance
            )
        return result


__all__ = ["SemanticSearch", "Comparison"]
