from __future__ import annotations

import json
from typing import Sequence

from .benchmark import LeafSizeResult, SizeResult, stats_to_dict
from .neighbors import SearchResult
from .search import Comparison


def _result_dict(r: SearchResult) -> dict:
    return {"distance": r.distance, "text": r.text, "index": r.index}


class ReportFormatter:
    def __init__(self, comparison: Comparison):
        self.comparison = comparison

    def to_json(self, indent: int = 2) -> str:
        c = self.comparison
        payload = {
            "query": c.query,
            "kdtree": {**_result_dict(c.kdtree), "time_us": c.kdtree_us},
            "linear": {**_result_dict(c.linear), "time_us": c.linear_us},
            "speedup": c.speedup,
            "agree": c.agree,
            "top_k": [_result_dict(r) for r in c.top_k],
        }
        return json.dumps(payload, indent=indent, ensure_ascii=False)

    def to_markdown_tables(self) -> str:
        c = self.comparison
        lines = [f"### Query: {c.query}", "| Index | Distance | Time (us) | Text |", "| --- | --- | --- | --- |"]
        lines.append(f"| KD-tree | {c.kdtree.distance:.4f} | {c.kdtree_us:.1f} | {c.kdtree.text} |")
        lines.append(f"| Linear | {c.linear.distance:.4f} | {c.linear_us:.1f} | {c.linear.text} |")
        lines.append("")
        lines.append(f"Speedup: {c.speedup:.2f}x")
        if c.top_k:
            lines.append("")
            lines.append("| Rank | Distance | Text |")
            lines.append("| --- | --- | --- |")
            for rank, r in enumerate(c.top_k, 1):
                lines.append(f"| {rank} | {r.distance:.4f} | {r.text} |")
        lines.append("")
        return "\n".join(lines)


class BenchmarkFormatter:
    def __init__(
        self, sizes: Sequence[SizeResult] | None = None, leaf_sizes: Sequence[LeafSizeResult] | None = None
    ):
        self.sizes = list(sizes or [])
        self.leaf_sizes = list(leaf_sizes or [])

    def to_json(self, indent: int = 2) -> str:
        payload = {
            "database_size": [
                {
                    "size": r.size,
                    "build_ms": r.build_ms,
                    "kdtree": stats_to_dict(r.kdtree),
                    "linear": stats_to_dict(r.linear),
                    "speedup": r.speedup,
                }
                for r in self.sizes
            ],
            "leaf_size": [
                {"leaf_size": r.leaf_size, "build_ms": r.build_ms, **stats_to_dict(r.stats)} for r in self.leaf_sizes
            ],
        }
        return json.dumps(payload, indent=indent)

    def to_markdown_tables(self) -> str:
        lines = []
        if self.sizes:
            lines.append("### Database size")
            lines.append("| Size | KD-tree mean (us) | Linear mean (us) | Speedup | KD-tree KB | Linear KB |")
            lines.append("| --- | --- | --- | --- | --- | --- |")
            for r in self.sizes:
                lines.append(
                    f"| {r.size} | {r.kdtree.mean:.2f} | {r.linear.mean:.2f} | {r.speedup:.2f} "
                    f"| {r.kdtree.memory_kb} | {r.linear.memory_kb} |"
                )
            lines.append("")
        if self.leaf_sizes:
            lines.append("### Leaf size")
            lines.append("| Leaf size | Mean (us) | StdDev | Median | P90 | Build (ms) |")
            lines.append("| --- | --- | --- | --- | --- | --- |")
            for r in self.leaf_sizes:
                s = r.stats
                lines.append(
                    f"| {r.leaf_size} | {s.mean:.2f} | {s.stddev:.2f} | {s.median:.2f} | {s.p90:.2f} | {r.build_ms:.1f} |"
                )
            lines.append("")
        return "\n".join(lines)


__all__ = ["ReportFormatter", "BenchmarkFormatter"]
