"""Matching engine and description similarity."""

from .engine import ConsumedIndex, ReconciliationEngine
from .similarity import description_similarity

__all__ = [
    "ConsumedIndex",
    "ReconciliationEngine",
    "description_similarity",
]
