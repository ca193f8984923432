from __future__ import annotations


class KDSearchError(Exception):
    """Base class for every failure raised by kdsearch."""


class EmptyIndexError(KDSearchError):
    """A query was issued against an index built from zero items."""


class DimensionMismatchError(KDSearchError, ValueError):
    def __init__(self, expected: int, got: int, what: str = "query vector"):
        super().__init__(f"{what} has dimension {got}, index expects {expected}")
        self.expected = expected
        self.got = got


class InvalidKError(KDSearchError, ValueError):
    def __init__(self, k: int):
        super().__init__(f"k must be non-negative, got {k}")
        self.k = k


class SnapshotError(KDSearchError):
    """A binary snapshot file is truncated or internally inconsistent."""


__all__ = [
    "KDSearchError",
    "EmptyIndexError",
    "DimensionMismatchError",
    "InvalidKError",
    "SnapshotError",
]
