"""Fuzzy string matching for column names and field names."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum
from typing import Protocol

from thefuzz import fuzz

logger = logging.getLogger(__name__)

_NORMALIZE_PATTERN = re.compile(r"[\s_\-/]+")


class MatchReason(str, Enum):
    EXACT = "Exact"
    CASE_INSENSITIVE = "CaseInsensitive"
    NORMALIZED = "Normalized"
    LEVENSHTEIN = "Levenshtein"
    JARO_WINKLER = "JaroWinkler"
    HYBRID = "Hybrid"
    NO_MATCH = "NoMatch"


@dataclass(frozen=True)
class FuzzyMatchResult:
    source: str
    target: str
    score: float
    reason: MatchReason

    @property
    def display_text(self) -> str:
        return f"{self.target} ({self.score:.0%} - {self.reason.value})"


class FuzzyMatcher(Protocol):
    def match(self, source: str, target: str, case_sensitive: bool = False) -> FuzzyMatchResult: ...

    def find_best_matches(
        self,
        query: str,
        candidates: Iterable[str],
        max_results: int = 5,
        min_score: float = 0.0,
        case_sensitive: bool = False,
    ) -> list[FuzzyMatchResult]: ...


def normalize(value: str) -> str:
    """Lowercase and drop whitespace, underscores, hyphens and slashes."""
    return _NORMALIZE_PATTERN.sub("", value).lower()


def levenshtein_similarity(left: str, right: str) -> float:
    if not left and not right:
        return 1.0
    return fuzz.ratio(left, right) / 100.0


def jaro_winkler_similarity(left: str, right: str, prefix_scale: float = 0.1) -> float:
    """Jaro similarity boosted by the length of the common prefix (up to 4 chars)."""
    if left == right:
        return 1.0
    if not left or not right:
        return 0.0

    window = max(max(len(left), len(right)) // 2 - 1, 0)
    left_flags = [False] * len(left)
    right_flags = [False] * len(right)

    matches = 0
    for i, char in enumerate(left):
        start = max(0, i - window)
        end = min(i + window + 1, len(right))
        for j in range(start, end):
            if right_flags[j] or right[j] != char:
                continue
            left_flags[i] = right_flags[j] = True
            matches += 1
            break

    if matches == 0:
        return 0.0

    transpositions = 0
    k = 0
    for i, flagged in enumerate(left_flags):
        if not flagged:
            continue
        while not right_flags[k]:
            k += 1
        if left[i] != right[k]:
            transpositions += 1
        k += 1

    jaro = (
        matches / len(left) + matches / len(right) + (matches - transpositions / 2) / matches
    ) / 3.0

    prefix = 0
    for a, b in zip(left[:4], right[:4]):
        if a != b:
            break
        prefix += 1

    return jaro + prefix * prefix_scale * (1.0 - jaro)


class HybridFuzzyMatcher:
    """Scores two strings with an exact/normalized ladder, then a weighted
    blend of Jaro-Winkler and Levenshtein similarity.

    Short strings (four characters or fewer) lean on Jaro-Winkler, which
    rewards a shared prefix.
    """

    EXACT_SCORE = 1.0
    CASE_INSENSITIVE_SCORE = 0.98
    NORMALIZED_SCORE = 0.96
    SHORT_STRING_LENGTH = 4
    SHORT_STRING_JW_WEIGHT = 0.6
    DEFAULT_JW_WEIGHT = 0.5

    def match(self, source: str, target: str, case_sensitive: bool = False) -> FuzzyMatchResult:
        if not source or not target:
            return FuzzyMatchResult(source, target, 0.0, MatchReason.NO_MATCH)

        if source == target:
            return FuzzyMatchResult(source, target, self.EXACT_SCORE, MatchReason.EXACT)

        if not case_sensitive and source.lower() == target.lower():
            return FuzzyMatchResult(
                source, target, self.CASE_INSENSITIVE_SCORE, MatchReason.CASE_INSENSITIVE
            )

        if normalize(source) == normalize(target):
            return FuzzyMatchResult(source, target, self.NORMALIZED_SCORE, MatchReason.NORMALIZED)

        left, right = (source, target) if case_sensitive else (source.lower(), target.lower())
        lev = levenshtein_similarity(left, right)
        jw = jaro_winkler_similarity(left, right)

        short = min(len(left), len(right)) <= self.SHORT_STRING_LENGTH
        jw_weight = self.SHORT_STRING_JW_WEIGHT if short else self.DEFAULT_JW_WEIGHT
        score = jw * jw_weight + lev * (1.0 - jw_weight)

        if abs(lev - jw) < 0.05:
            reason = MatchReason.HYBRID
        elif jw > lev:
            reason = MatchReason.JARO_WINKLER
        else:
            reason = MatchReason.LEVENSHTEIN

        return FuzzyMatchResult(source, target, round(score, 4), reason)

    def find_best_matches(
        self,
        query: str,
        candidates: Iterable[str],
        max_results: int = 5,
        min_score: float = 0.0,
        case_sensitive: bool = False,
    ) -> list[FuzzyMatchResult]:
        """Rank ``candidates`` against ``query``, best first.

        Ties on score prefer the shorter candidate.
        """
        if not query:
            return []

        results = [
            result
            for result in (
                self.match(query, candidate, case_sensitive)
                for candidate in candidates
                if candidate
            )
            if result.score >= min_score and result.reason != MatchReason.NO_MATCH
        ]
        results.sort(key=lambda r: (-r.score, len(r.target)))
        logger.debug("Fuzzy query '%s' produced %d match(es)", query, len(results))
        return results[:max_results]
