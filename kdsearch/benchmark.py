from __future__ import annotations

import csv
import math
import time
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Callable, Sequence

import numpy as np

from .config import BenchmarkConfig, DEFAULT_LEAF_SIZE
from .datasets import sample_queries
from .kdtree import KDTreeIndex
from .log import get_logger
from .neighbors import DataItem, LinearIndex

logger = get_logger(__name__)

SIZE_RESULTS_FILE = "database_size_results.csv"
LEAF_RESULTS_FILE = "leaf_size_results.csv"


@dataclass
class PerformanceStats:
    mean: float
    stddev: float
    min: float
    max: float
    median: float
    p90: float
    memory_kb: int = 0


@dataclass
class SizeResult:
    size: int
    kdtree: PerformanceStats
    linear: PerformanceStats
    build_ms: float

    @property
    def speedup(self) -> float:
        return self.linear.mean / self.kdtree.mean if self.kdtree.mean > 0 else math.inf


@dataclass
class LeafSizeResult:
    leaf_size: int
    stats: PerformanceStats
    build_ms: float


def compute_stats(times: Sequence[float], memory_kb: int = 0) -> PerformanceStats:
    """Summary statistics over per-query timings.

    Standard deviation is the population one. Median and p90 are read off the
    sorted samples at ``n // 2`` and ``int(n * 0.9)``.
    """
    if not times:
        raise ValueError("no timings to summarize")
    ordered = sorted(times)
    n = len(ordered)
    mean = sum(ordered) / n
    var = sum((t - mean) ** 2 for t in ordered) / n
    return PerformanceStats(
        mean=mean,
        stddev=math.sqrt(var),
        min=ordered[0],
        max=ordered[-1],
        median=ordered[n // 2],
        p90=ordered[min(int(n * 0.9), n - 1)],
        memory_kb=memory_kb,
    )


def time_queries(search: Callable[[np.ndarray], object], queries: Sequence[np.ndarray], runs: int) -> list[float]:
    """Microseconds per query, each averaged over ``runs`` repetitions."""
    runs = max(1, runs)
    per_query: list[float] = []
    for q in queries:
        total = 0.0
        for _ in range(runs):
            start = time.perf_counter()
            search(q)
            total += (time.perf_counter() - start) * 1e6
        per_query.append(total / runs)
    return per_query


def significantly_different(times1: Sequence[float], times2: Sequence[float], critical: float = 1.96) -> bool:
    """Welch-style t statistic against a normal critical value (95% by default)."""
    if not times1 or not times2:
        raise ValueError("both samples must be non-empty")
    s1, s2 = compute_stats(times1), compute_stats(times2)
    se = math.sqrt(s1.stddev**2 / len(times1) + s2.stddev**2 / len(times2))
    if se == 0:
        return s1.mean != s2.mean
    return abs(s1.mean - s2.mean) / se > critical


def _build_timed(items: Sequence[DataItem], leaf_size: int) -> tuple[KDTreeIndex, float]:
    start = time.perf_counter()
    tree = KDTreeIndex(leaf_size=leaf_size).build(items)
    return tree, (time.perf_counter() - start) * 1000


def _stats_row(stats: PerformanceStats) -> list:
    return [stats.mean, stats.stddev, stats.min, stats.max, stats.median, stats.p90, stats.memory_kb]


def experiment_database_size(
    items: Sequence[DataItem], cfg: BenchmarkConfig, leaf_size: int = DEFAULT_LEAF_SIZE
) -> list[SizeResult]:
    """Compare KD-tree and linear scan on growing prefixes of the dataset."""
    sizes = sorted({s for s in cfg.sizes if 0 < s <= len(items)})
    if items and (not cfg.sizes or len(items) > max(cfg.sizes)):
        sizes.append(len(items))
    queries = sample_queries(items, cfg.num_queries, cfg.query_seed)

    results: list[SizeResult] = []
    for size in sizes:
        subset = items[:size]
        tree, build_ms = _build_timed(subset, leaf_size)
        linear = LinearIndex().build(subset)
        logger.info("size %d: KD-tree built in %.1f ms (%d nodes)", size, build_ms, tree.node_count)

        kd_stats = compute_stats(time_queries(tree.nearest, queries, cfg.num_runs), tree.estimated_memory_kb())
        lin_stats = compute_stats(time_queries(linear.nearest, queries, cfg.num_runs), linear.estimated_memory_kb())
        row = SizeResult(size=size, kdtree=kd_stats, linear=lin_stats, build_ms=build_ms)
        logger.info(
            "size %d: KD-tree %.1f us, linear %.1f us, speedup %.2fx", size, kd_stats.mean, lin_stats.mean, row.speedup
        )
        results.append(row)

    _write_csv(
        Path(cfg.output_dir) / SIZE_RESULTS_FILE,
        [
            "Size",
            "KDTree_Mean_Time", "KDTree_StdDev", "KDTree_Min", "KDTree_Max", "KDTree_Median", "KDTree_P90",
            "KDTree_Memory_KB",
            "Linear_Mean_Time", "Linear_StdDev", "Linear_Min", "Linear_Max", "Linear_Median", "Linear_P90",
            "Linear_Memory_KB",
            "Speedup",
        ],
        [[r.size, *_stats_row(r.kdtree), *_stats_row(r.linear), r.speedup] for r in results],
    )
    return results


def experiment_leaf_size(items: Sequence[DataItem], cfg: BenchmarkConfig) -> list[LeafSizeResult]:
    """Time KD-tree queries on the full dataset for each configured leaf size."""
    queries = sample_queries(items, cfg.num_queries, cfg.query_seed)

    results: list[LeafSizeResult] = []
    for leaf_size in cfg.leaf_sizes:
        tree, build_ms = _build_timed(items, leaf_size)
        stats = compute_stats(time_queries(tree.nearest, queries, cfg.num_runs), tree.estimated_memory_kb())
        logger.info("leaf_size %d: %.1f us per query, built in %.1f ms", leaf_size, stats.mean, build_ms)
        results.append(LeafSizeResult(leaf_size=leaf_size, stats=stats, build_ms=build_ms))

    _write_csv(
        Path(cfg.output_dir) / LEAF_RESULTS_FILE,
        ["LeafSize", "Mean_Time", "StdDev", "Min", "Max", "Median", "P90", "Memory_KB", "Build_Time_ms"],
        [[r.leaf_size, *_stats_row(r.stats), r.build_ms] for r in results],
    )
    return results


def _write_csv(path: Path, header: list[str], rows: list[list]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(header)
        writer.writerows(rows)
    logger.info("results written to %s", path)


def stats_to_dict(stats: PerformanceStats) -> dict:
    return asdict(stats)


__all__ = [
    "PerformanceStats",
    "SizeResult",
    "LeafSizeResult",
    "compute_stats",
    "time_queries",
    "significantly_different",
    "experiment_database_size",
    "experiment_leaf_size",
    "stats_to_dict",
]
