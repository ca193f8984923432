from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from typing import Iterable, Protocol

import numpy as np

from .config import VectorizerConfig
from .preprocess import Tokenizer

_MASK64 = (1 << 64) - 1


def rolling_hash(text: str) -> int:
    """Polynomial hash with multiplier 31 over the UTF-8 bytes, wrapped to 64 bits."""
    h = 0
    for b in text.encode("utf-8"):
        h = (h * 31 + b) & _MASK64
    return h


def l2_normalize(vec: np.ndarray) -> np.ndarray:
    norm = float(np.linalg.norm(vec))
    if norm > 0:
        return vec / norm
    return vec


class EmbeddingModel(Protocol):
    def embed(self, text: str) -> np.ndarray:
        ...

    @property
    def dim(self) -> int:
        ...


@dataclass
class HashVectorizer:
    """Bag-of-words vectorizer built from per-token Gaussian vectors.

    Each token seeds a generator with ``seed ^ rolling_hash(token)`` and draws
    ``dim`` standard-normal values, normalized to unit length. A text is the
    normalized sum of its token vectors. Two instances with the same seed and
    dimension produce bit-identical output.
    """

    cfg: VectorizerConfig = field(default_factory=VectorizerConfig)
    tokenizer: Tokenizer = field(default_factory=Tokenizer)

    def __post_init__(self) -> None:
        if self.cfg.dim < 1:
            raise ValueError(f"vector dimension must be positive, got {self.cfg.dim}")
        if self.cfg.seed < 0:
            raise ValueError(f"seed must be non-negative, got {self.cfg.seed}")
        self._cache: OrderedDict[str, np.ndarray] = OrderedDict()

    @property
    def dim(self) -> int:
        return self.cfg.dim

    @property
    def seed(self) -> int:
        return self.cfg.seed

    def tokenize(self, text: str) -> list[str]:
        return self.tokenizer.tokenize(text)

    def _draw(self, token: str) -> np.ndarray:
        rng = np.random.default_rng(self.cfg.seed ^ rolling_hash(token))
        vec = l2_normalize(rng.standard_normal(self.cfg.dim))
        vec.flags.writeable = False
        return vec

    def _token_vector(self, token: str) -> np.ndarray:
        if self.cfg.cache_size <= 0:
            return self._draw(token)
        vec = self._cache.get(token)
        if vec is not None:
            self._cache.move_to_end(token)
            return vec
        vec = self._draw(token)
        self._cache[token] = vec
        if len(self._cache) > self.cfg.cache_size:
            self._cache.popitem(last=False)
        return vec

    def token_vector(self, token: str) -> np.ndarray:
        return self._token_vector(token).copy()

    def embed(self, text: str) -> np.ndarray:
        tokens = self.tokenize(text)
        if not tokens:
            # No usable token: embed the raw string as if it were one.
            return self.token_vector(text)
        total = np.zeros(self.cfg.dim, dtype=np.float64)
        for token in tokens:
            total += self._token_vector(token)
        return l2_normalize(total)

    def embed_many(self, texts: Iterable[str]) -> np.ndarray:
        rows = [self.embed(t) for t in texts]
        if not rows:
            return np.empty((0, self.cfg.dim), dtype=np.float64)
        return np.vstack(rows)


__all__ = ["EmbeddingModel", "HashVectorizer", "rolling_hash", "l2_normalize"]
