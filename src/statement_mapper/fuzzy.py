#!/usr/bin/env python3
"""
Fuzzy matching algorithms and header normalization for statement-mapper.

Contains the string similarity logic used by header matching:
- Levenshtein distance calculation (case-insensitive)
- Normalized 0-100 similarity scoring
- Header normalization
- Half-up rounding for confidence scores
"""

import math
import re


def round_score(value: float) -> int:
    """Round a score half-up (2.5 -> 3), the way confidence values are reported."""
    return int(math.floor(value + 0.5))


class FieldNormalizer:
    """Normalizes column headers before matching."""

    @staticmethod
    def normalize_header(header: str) -> str:
        """
        Normalize a column header for comparison:
        - Strip surrounding whitespace
        - Collapse internal whitespace runs
        - Convert to lowercase
        """
        if not header:
            return ""

        return re.sub(r"\s+", " ", str(header).strip()).lower()


class FuzzyMatcher:
    """Implements fuzzy string matching algorithms."""

    @staticmethod
    def levenshtein_distance(s1: str, s2: str) -> int:
        """Calculate case-insensitive Levenshtein distance between two strings."""
        s1 = s1.lower()
        s2 = s2.lower()

        if len(s1) < len(s2):
            s1, s2 = s2, s1

        if len(s2) == 0:
            return len(s1)

        previous_row = list(range(len(s2) + 1))
        for i, c1 in enumerate(s1):
            current_row = [i + 1]
            for j, c2 in enumerate(s2):
                insertions = previous_row[j + 1] + 1
                deletions = current_row[j] + 1
                substitutions = previous_row[j] + (c1 != c2)
                current_row.append(min(insertions, deletions, substitutions))
            previous_row = current_row

        return previous_row[-1]

    @staticmethod
    def similarity(s1: str, s2: str) -> int:
        """
        Calculate normalized similarity between two strings (0 to 100).

        The edit distance is scaled by the longer string's length, so the
        result does not depend on argument order. Two empty strings are
        identical.
        """
        max_len = max(len(s1), len(s2))
        if max_len == 0:
            return 100

        distance = FuzzyMatcher.levenshtein_distance(s1, s2)
        return round_score(100 * (max_len - distance) / max_len)


def levenshtein_distance(s1: str, s2: str) -> int:
    """Module-level shortcut for FuzzyMatcher.levenshtein_distance."""
    return FuzzyMatcher.levenshtein_distance(s1, s2)


def similarity(s1: str, s2: str) -> int:
    """Module-level shortcut for FuzzyMatcher.similarity."""
    return FuzzyMatcher.similarity(s1, s2)
