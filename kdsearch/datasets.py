from __future__ import annotations

import json
import os
import struct
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO, Sequence

import numpy as np

from .embedding import EmbeddingModel
from .errors import SnapshotError
from .log import get_logger
from .neighbors import DataItem

logger = get_logger(__name__)

_HEADER = struct.Struct("<iii")  # processed_lines, item_count, dimension
_INT = struct.Struct("<i")
_FLOAT64 = np.dtype("<f8")


@dataclass
class LoadedDataset:
    items: list[DataItem]
    processed_lines: int
    source: str | None = None

    def __len__(self) -> int:
        return len(self.items)

    @property
    def dim(self) -> int:
        return self.items[0].dim if self.items else 0


# ----------------------------
# Line-delimited JSON
# ----------------------------
def _payload_text(value) -> str | None:
    """Second element of a JSON array, when it is a string."""
    if isinstance(value, list) and len(value) >= 2 and isinstance(value[1], str):
        return value[1]
    return None


def load_jsonl(path: str | Path, vectorizer: EmbeddingModel, max_lines: int | None = None) -> LoadedDataset:
    """Embed the text of every ``[title, text, ...]`` line in ``path``.

    ``max_lines`` caps the number of lines read, whether or not they parse.
    Malformed lines and values of any other shape are skipped.
    """
    path = Path(path)
    items: list[DataItem] = []
    processed = 0
    skipped = 0
    with path.open("r", encoding="utf-8", errors="replace") as f:
        for line in f:
            if max_lines is not None and max_lines >= 0 and processed >= max_lines:
                break
            processed += 1
            try:
                value = json.loads(line)
            except json.JSONDecodeError:
                skipped += 1
                logger.debug("skipping malformed line %d of %s", processed, path)
                continue
            text = _payload_text(value)
            if text is None:
                skipped += 1
                continue
            items.append(DataItem(text=text, vector=vectorizer.embed(text)))
            if len(items) % 1000 == 0:
                logger.debug("embedded %d items from %s", len(items), path)

    logger.info("loaded %d items from %s (%d lines read, %d skipped)", len(items), path, processed, skipped)
    return LoadedDataset(items=items, processed_lines=processed, source=str(path))


# ----------------------------
# Binary snapshot
# ----------------------------
def _read_exact(f: BinaryIO, size: int, what: str) -> bytes:
    data = f.read(size)
    if len(data) != size:
        raise SnapshotError(f"truncated snapshot while reading {what}: wanted {size} bytes, got {len(data)}")
    return data


def save_snapshot(path: str | Path, items: Sequence[DataItem], processed_lines: int = 0) -> Path:
    """Write ``items`` in the packed little-endian snapshot layout.

    Layout: int32 processed_lines, int32 item_count, int32 dimension, then per
    item int32 byte length, the UTF-8 text, and ``dimension`` float64 values.
    """
    path = Path(path)
    dim = items[0].dim if items else 0
    path.parent.mkdir(parents=True, exist_ok=True)
    with path.open("wb") as f:
        f.write(_HEADER.pack(processed_lines, len(items), dim))
        for item in items:
            if item.dim != dim:
                raise SnapshotError(f"item {item.text[:40]!r} has dimension {item.dim}, snapshot uses {dim}")
            raw = item.text.encode("utf-8")
            f.write(_INT.pack(len(raw)))
            f.write(raw)
            f.write(item.vector.astype(_FLOAT64, copy=False).tobytes())
    logger.info("saved %d items to %s", len(items), path)
    return path


def load_snapshot(path: str | Path) -> LoadedDataset:
    path = Path(path)
    with path.open("rb") as f:
        processed, count, dim = _HEADER.unpack(_read_exact(f, _HEADER.size, "header"))
        if count < 0 or dim < 0:
            raise SnapshotError(f"bad snapshot header: item_count={count}, dimension={dim}")
        vec_bytes = dim * _FLOAT64.itemsize
        size = os.fstat(f.fileno()).st_size
        if count * (_INT.size + vec_bytes) > size - f.tell():
            raise SnapshotError(
                f"snapshot header promises {count} items of dimension {dim}, file holds {size} bytes"
            )
        items: list[DataItem] = []
        for i in range(count):
            (length,) = _INT.unpack(_read_exact(f, _INT.size, f"length of item {i}"))
            if length < 0:
                raise SnapshotError(f"negative text length {length} for item {i}")
            if length > size - f.tell():
                raise SnapshotError(f"text length {length} of item {i} runs past the end of the snapshot")
            text = _read_exact(f, length, f"text of item {i}").decode("utf-8", errors="replace")
            vec = np.frombuffer(_read_exact(f, vec_bytes, f"vector of item {i}"), dtype=_FLOAT64)
            items.append(DataItem(text=text, vector=vec))

    logger.info("loaded %d items of dimension %d from snapshot %s", len(items), dim, path)
    return LoadedDataset(items=items, processed_lines=processed, source=str(path))


# ----------------------------
# Synthetic data and queries
# ----------------------------
def generate_mock_dataset(size: int, vectorizer: EmbeddingModel) -> LoadedDataset:
    items = [DataItem(text=f"Sample text {i}", vector=vectorizer.embed(f"Sample text {i}")) for i in range(size)]
    logger.info("generated mock dataset of %d items (dimension %d)", size, vectorizer.dim)
    return LoadedDataset(items=items, processed_lines=0, source=None)


def sample_queries(items: Sequence[DataItem], n: int, seed: int | None = None) -> list[np.ndarray]:
    """Draw ``n`` stored vectors, with replacement, to use as queries."""
    if not items:
        raise ValueError("cannot sample queries from an empty dataset")
    rng = np.random.default_rng(seed)
    return [items[int(i)].vector for i in rng.integers(0, len(items), size=n)]


def load_dataset(path: str | Path, vectorizer: EmbeddingModel, max_lines: int | None = None) -> LoadedDataset:
    path = Path(path)
    if path.suffix.lower() == ".jsonl":
        return load_jsonl(path, vectorizer, max_lines=max_lines)
    return load_snapshot(path)


__all__ = [
    "LoadedDataset",
    "load_jsonl",
    "save_snapshot",
    "load_snapshot",
    "generate_mock_dataset",
    "sample_queries",
    "load_dataset",
]
