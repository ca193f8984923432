from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any
import json

import yaml

DEFAULT_DIM = 384
DEFAULT_SEED = 42
DEFAULT_LEAF_SIZE = 1


@dataclass
class VectorizerConfig:
    dim: int = DEFAULT_DIM
    seed: int = DEFAULT_SEED
    cache_size: int = 4096  # token vectors kept per vectorizer; 0 disables caching


@dataclass
class IndexConfig:
    leaf_size: int = DEFAULT_LEAF_SIZE
    top_k: int = 5
    compare_linear: bool = True  # also run the linear scan in interactive/query mode


@dataclass
class LoaderConfig:
    max_lines: int | None = None
    mock_size: int = 1000
    snapshot_out: str | None = None


@dataclass
class BenchmarkConfig:
    sizes: list[int] = field(default_factory=lambda: [100, 500, 1000, 5000, 10000])
    leaf_sizes: list[int] = field(default_factory=lambda: [1, 5, 10, 20, 50, 100])
    num_queries: int = 100
    num_runs: int = 10
    query_seed: int | None = None  # None draws a fresh sample each run
    output_dir: str = "results"


@dataclass
class SearchConfig:
    vectorizer: VectorizerConfig = field(default_factory=VectorizerConfig)
    index: IndexConfig = field(default_factory=IndexConfig)
    loader: LoaderConfig = field(default_factory=LoaderConfig)
    benchmark: BenchmarkConfig = field(default_factory=BenchmarkConfig)
    debug: bool = False

    @classmethod
    def from_mapping(cls, data: dict[str, Any]) -> "SearchConfig":
        return cls(
            vectorizer=VectorizerConfig(**data.get("vectorizer", {})),
            index=IndexConfig(**data.get("index", {})),
            loader=LoaderConfig(**data.get("loader", {})),
            benchmark=BenchmarkConfig(**data.get("benchmark", {})),
            debug=data.get("debug", False),
        )

    @classmethod
    def load(cls, path: str | Path) -> "SearchConfig":
        path = Path(path)
        if path.suffix.lower() in {".yaml", ".yml"}:
            data = yaml.safe_load(path.read_text())
        else:
            data = json.loads(path.read_text())
        return cls.from_mapping(data or {})

    def to_dict(self) -> dict[str, Any]:
        return {
            "vectorizer": dict(self.vectorizer.__dict__),
            "index": dict(self.index.__dict__),
            "loader": dict(self.loader.__dict__),
            "benchmark": {
                **self.benchmark.__dict__,
                "sizes": list(self.benchmark.sizes),
                "leaf_sizes": list(self.benchmark.leaf_sizes),
            },
            "debug": self.debug,
        }


__all__ = [
    "DEFAULT_DIM",
    "DEFAULT_SEED",
    "DEFAULT_LEAF_SIZE",
    "VectorizerConfig",
    "IndexConfig",
    "LoaderConfig",
    "BenchmarkConfig",
    "SearchConfig",
]
