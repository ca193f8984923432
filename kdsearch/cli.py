from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import TextIO

from .benchmark import experiment_database_size, experiment_leaf_size
from .config import SearchConfig
from .datasets import LoadedDataset, generate_mock_dataset, load_dataset, save_snapshot
from .embedding import HashVectorizer
from .errors import KDSearchError, SnapshotError
from .log import configure_logging, get_logger
from .report import BenchmarkFormatter, ReportFormatter
from .search import SemanticSearch

logger = get_logger("cli")

EXIT_WORDS = {"exit", "quit", "q"}


def _load_items(path: str | None, vectorizer: HashVectorizer, cfg: SearchConfig) -> LoadedDataset:
    """Load the dataset at ``path``, or fall back to a mock dataset.

    The fallback also applies when the file cannot be read or yields no items.
    """
    if path:
        try:
            loaded = load_dataset(path, vectorizer, max_lines=cfg.loader.max_lines)
        except (OSError, SnapshotError) as e:
            logger.error("could not load %s: %s", path, e)
        else:
            if loaded.items:
                return loaded
            logger.warning("%s contained no usable items", path)
        logger.info("falling back to a mock dataset of %d items", cfg.loader.mock_size)
    return generate_mock_dataset(cfg.loader.mock_size, vectorizer)


def _render(formatter, markdown: bool) -> str:
    return formatter.to_markdown_tables() if markdown else formatter.to_json()


def interactive(
    engine: SemanticSearch, *, markdown: bool = True, stdin: TextIO | None = None, stdout: TextIO | None = None
) -> int:
    """Prompt loop: one query per line until an exit word or EOF. Returns the number of queries answered."""
    stdin = stdin or sys.stdin
    stdout = stdout or sys.stdout
    print(f"Loaded {len(engine)} items. Type a query, or 'exit' to quit.", file=stdout)
    answered = 0
    while True:
        stdout.write("\nquery> ")
        stdout.flush()
        line = stdin.readline()
        if not line:
            break
        query = line.strip()
        if query.lower() in EXIT_WORDS:
            break
        if not query:
            continue
        print(_render(ReportFormatter(engine.compare(query)), markdown), file=stdout)
        answered += 1
    return answered


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="KD-tree semantic search over hash-embedded text")

    parser.add_argument("dataset", nargs="?", default=None, help="JSONL file or binary snapshot (mock data if omitted)")

    parser.add_argument("--config", "-c", help="Path to YAML/JSON search config", default=None)
    parser.add_argument("--max-lines", "-m", type=int, default=None, help="Read at most this many JSONL lines")
    parser.add_argument("--leaf-size", type=int, default=None, help="KD-tree leaf size")
    parser.add_argument("--query", "-q", default=None, help="Run a single query and exit")
    parser.add_argument("--top-k", "-k", type=int, default=None, help="Number of neighbors to list")
    parser.add_argument("--markdown", action="store_true", help="Output markdown tables instead of JSON")

    parser.add_argument("--interactive", "-i", action="store_true", help="Start the interactive prompt")
    parser.add_argument("--exp-db-size", "-d", action="store_true", help="Benchmark over growing dataset sizes")
    parser.add_argument("--exp-leaf-size", "-l", action="store_true", help="Benchmark over leaf sizes")
    parser.add_argument("--output-dir", default=None, help="Directory for benchmark CSV files")
    parser.add_argument("--snapshot-out", default=None, help="Save a JSONL dataset as a binary snapshot here")

    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")

    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    cfg = SearchConfig.load(args.config) if args.config else SearchConfig()
    if args.max_lines is not None:
        cfg.loader.max_lines = args.max_lines
    if args.leaf_size is not None:
        cfg.index.leaf_size = args.leaf_size
    if args.top_k is not None:
        cfg.index.top_k = args.top_k
    if args.output_dir is not None:
        cfg.benchmark.output_dir = args.output_dir
    if args.snapshot_out is not None:
        cfg.loader.snapshot_out = args.snapshot_out

    vectorizer = HashVectorizer(cfg.vectorizer)
    try:
        loaded = _load_items(args.dataset, vectorizer, cfg)
        if cfg.loader.snapshot_out and args.dataset and Path(args.dataset).suffix.lower() == ".jsonl":
            save_snapshot(cfg.loader.snapshot_out, loaded.items, loaded.processed_lines)

        ran_experiment = args.exp_db_size or args.exp_leaf_size
        if ran_experiment:
            sizes = []
            if args.exp_db_size:
                sizes = experiment_database_size(loaded.items, cfg.benchmark, cfg.index.leaf_size)
            leaves = experiment_leaf_size(loaded.items, cfg.benchmark) if args.exp_leaf_size else []
            print(_render(BenchmarkFormatter(sizes, leaves), args.markdown))

        if args.query is not None or args.interactive or not ran_experiment:
            engine = SemanticSearch(cfg, vectorizer).build(loaded.items)
            if args.query is not None:
                print(_render(ReportFormatter(engine.compare(args.query)), args.markdown))
            if args.interactive or (args.query is None and not ran_experiment):
                interactive(engine, markdown=args.markdown)
    except (KDSearchError, ValueError) as e:
        logger.error("%s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
