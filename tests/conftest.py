"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from collections.abc import Iterable

import pytest

from schemamap.fuzzy import FuzzyMatchResult, MatchReason
from schemamap.mapping import MappingDocument
from schemamap.schema import (
    DataTypeDescriptor,
    FieldDescriptor,
    SchemaCatalog,
    SchemaRegistry,
    default_registry,
)
from schemamap.settings import VisibilitySettings


class StubMatcher:
    """Fuzzy matcher returning fixed scores for (query, candidate) pairs."""

    def __init__(self, scores: dict[tuple[str, str], float] | None = None) -> None:
        self.scores = {(q.lower(), c.lower()): s for (q, c), s in (scores or {}).items()}
        self.queries: list[str] = []

    def match(self, source: str, target: str, case_sensitive: bool = False) -> FuzzyMatchResult:
        score = self.scores.get((source.lower(), target.lower()), 0.0)
        reason = MatchReason.HYBRID if score else MatchReason.NO_MATCH
        return FuzzyMatchResult(source, target, score, reason)

    def find_best_matches(
        self,
        query: str,
        candidates: Iterable[str],
        max_results: int = 5,
        min_score: float = 0.0,
        case_sensitive: bool = False,
    ) -> list[FuzzyMatchResult]:
        self.queries.append(query)
        results = [self.match(query, c) for c in candidates]
        results = [r for r in results if r.score > 0 and r.score >= min_score]
        results.sort(key=lambda r: -r.score)
        return results[:max_results]


@pytest.fixture
def registry() -> SchemaRegistry:
    """The packaged registry of electrical data types."""
    return default_registry()


@pytest.fixture
def small_registry() -> SchemaRegistry:
    """A compact registry with predictable fields for auto-map tests."""
    return SchemaRegistry(
        [
            DataTypeDescriptor(
                name="Panel",
                fields=[
                    FieldDescriptor(name="Id", description="Panel identifier", required=True),
                    FieldDescriptor(name="Voltage", type="float", description="Rated voltage"),
                    FieldDescriptor(name="Location", description="Room", hidden_by_default=True),
                    FieldDescriptor(name="Load", computed=True, hidden_by_default=True),
                ],
            ),
            DataTypeDescriptor(
                name="Switch",
                fields=[
                    FieldDescriptor(name="Bus", required=True),
                    FieldDescriptor(name="Rating", type="float"),
                ],
            ),
        ]
    )


@pytest.fixture
def settings(registry: SchemaRegistry) -> VisibilitySettings:
    return VisibilitySettings.from_registry(registry)


@pytest.fixture
def catalog(registry: SchemaRegistry, settings: VisibilitySettings) -> SchemaCatalog:
    return SchemaCatalog(registry, settings)


@pytest.fixture
def small_settings(small_registry: SchemaRegistry) -> VisibilitySettings:
    return VisibilitySettings.from_registry(small_registry)


@pytest.fixture
def small_catalog(small_registry: SchemaRegistry, small_settings: VisibilitySettings) -> SchemaCatalog:
    return SchemaCatalog(small_registry, small_settings)


@pytest.fixture
def document() -> MappingDocument:
    """Provide a fresh, clean MappingDocument for each test."""
    return MappingDocument()
