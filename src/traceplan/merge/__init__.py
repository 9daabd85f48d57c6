"""
TracePlan Merge Module

Consolidates per-batch partial artifacts into one test plan using exact
and fuzzy (Levenshtein) key grouping.
"""

from .keys import KeyNormalizer, levenshtein, similarity, find_similar_key, UNSPECIFIED_KEY
from .merger import PlanMerger, join_lines

__all__ = [
    'PlanMerger',
    'KeyNormalizer',
    'levenshtein',
    'similarity',
    'find_similar_key',
    'join_lines',
    'UNSPECIFIED_KEY',
]
