"""
Results Subsystem

Aggregation, caching and persistence of verification results.
"""

from .cache import CacheEntry, ResultsCache
from .processor import ResultsProcessor, classify_risk, fingerprint
from .store import InMemoryResultStore, ResultStore

__all__ = [
    "CacheEntry",
    "ResultsCache",
    "ResultsProcessor",
    "classify_risk",
    "fingerprint",
    "ResultStore",
    "InMemoryResultStore",
]
