"""Automatic best-guess mapping of source columns onto a data type's properties."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from schemamap.fuzzy import FuzzyMatcher, HybridFuzzyMatcher, MatchReason
from schemamap.io import ColumnInfo
from schemamap.mapping.document import MappingDocument
from schemamap.schema.catalog import PropertyInfo, SchemaCatalog
from schemamap.settings import AutoMapConfig

logger = logging.getLogger(__name__)

FIRST_COLUMN_CONFIDENCE = 1.0
ALLOW_LIST_CONFIDENCE = 0.95

_IDENTIFIER_NAMES = frozenset({"id", "identifier"})


class AutoMapOutcome(str, Enum):
    NO_COLUMNS = "no_columns"
    ALL_MAPPED = "all_mapped"
    COMPLETED = "completed"


@dataclass(frozen=True)
class MatchProposal:
    property_name: str
    column_name: str
    score: float
    reason: MatchReason | str
    threshold: float


@dataclass
class AutoMapResult:
    """Accumulates what an auto-map pass bound and what it only reported."""

    data_type: str
    outcome: AutoMapOutcome = AutoMapOutcome.COMPLETED
    accepted: list[MatchProposal] = field(default_factory=list)
    low_confidence: list[MatchProposal] = field(default_factory=list)
    no_match: list[str] = field(default_factory=list)
    fallback: MatchProposal | None = None

    @property
    def changes(self) -> int:
        return len(self.accepted) + (1 if self.fallback is not None else 0)

    @property
    def message(self) -> str:
        if self.outcome == AutoMapOutcome.NO_COLUMNS:
            return "No columns available for auto-mapping."
        if self.outcome == AutoMapOutcome.ALL_MAPPED:
            return f"All properties for {self.data_type} are already mapped."

        parts = [f"Auto-mapped {self.changes} propert{'y' if self.changes == 1 else 'ies'}"]
        if self.low_confidence:
            parts.append(f"{len(self.low_confidence)} low-confidence suggestion(s)")
        if self.no_match:
            parts.append(f"{len(self.no_match)} without a match")
        return ", ".join(parts) + "."


class AutoMapper:
    """Proposes and applies column bindings for one data type at a time.

    Properties are processed alphabetically. Each is scored against the
    remaining columns and only its best candidate is considered: it is bound
    if it clears its effective threshold, and the column is then no longer
    offered to later properties; otherwise it is reported as low-confidence.
    A property with no candidate at all is reported as no-match. Finally, the
    type's identifier field, if still unbound, may be filled from the first
    unbound column or from a name allow-list.
    """

    def __init__(
        self,
        catalog: SchemaCatalog,
        matcher: FuzzyMatcher | None = None,
        config: AutoMapConfig | None = None,
    ) -> None:
        self._catalog = catalog
        self._matcher = matcher or HybridFuzzyMatcher()
        self._config = config or AutoMapConfig()

    @property
    def config(self) -> AutoMapConfig:
        return self._config

    def auto_map(
        self, document: MappingDocument, data_type: str, columns: Sequence[ColumnInfo]
    ) -> AutoMapResult:
        result = AutoMapResult(data_type=data_type)

        if not columns:
            result.outcome = AutoMapOutcome.NO_COLUMNS
            logger.info("Auto-map skipped for %s: no source columns", data_type)
            return result

        properties = self._catalog.get_properties_for_type(data_type)
        mapped = document.mapped_properties(data_type)
        unmapped_properties = sorted(
            (p for p in properties if p.property_name not in mapped),
            key=lambda p: p.property_name,
        )
        if not unmapped_properties:
            result.outcome = AutoMapOutcome.ALL_MAPPED
            logger.info("Auto-map skipped for %s: all properties mapped", data_type)
            return result

        bound_columns = document.mapped_columns(data_type)
        remaining = sorted(
            (c for c in columns if c.column_name not in bound_columns),
            key=lambda c: c.column_index,
        )

        for prop in unmapped_properties:
            if not remaining:
                result.no_match.append(prop.property_name)
                continue

            candidates = self._rank_candidates(prop, remaining)
            if not candidates:
                result.no_match.append(prop.property_name)
                continue

            chosen = candidates[0]
            if chosen.score < chosen.threshold:
                result.low_confidence.append(chosen)
                logger.debug(
                    "Low confidence for %s.%s: best %s at %.2f (needs %.2f)",
                    data_type,
                    prop.property_name,
                    chosen.column_name,
                    chosen.score,
                    chosen.threshold,
                )
                continue

            document.update_mapping(data_type, prop.property_name, chosen.column_name, chosen.score)
            result.accepted.append(chosen)
            remaining = [c for c in remaining if c.column_name != chosen.column_name]

        result.fallback = self._identifier_fallback(document, data_type, properties, columns)

        logger.info("Auto-map for %s: %s", data_type, result.message)
        return result

    def is_identifier_like(self, prop: PropertyInfo, data_type: str) -> bool:
        return prop.is_required or self._is_named_identifier(prop.property_name, data_type)

    def _is_named_identifier(self, property_name: str, data_type: str) -> bool:
        name = property_name.lower()
        type_name = data_type.lower()
        return name in _IDENTIFIER_NAMES or name in (type_name, type_name + "s")

    def _is_descriptor_column(self, column_name: str) -> bool:
        lowered = column_name.lower()
        return any(keyword.lower() in lowered for keyword in self._config.descriptor_keywords)

    def _effective_threshold(self, prop: PropertyInfo, column_name: str) -> float:
        if self.is_identifier_like(prop, prop.data_type) and self._is_descriptor_column(column_name):
            return max(self._config.threshold, self._config.identifier_threshold)
        return self._config.threshold

    def _rank_candidates(self, prop: PropertyInfo, remaining: list[ColumnInfo]) -> list[MatchProposal]:
        """Score every remaining column by property name and description, best first."""
        index_by_name: dict[str, int] = {}
        for column in remaining:
            index_by_name.setdefault(column.column_name, column.column_index)
        names = list(index_by_name)

        best: dict[str, tuple[float, MatchReason]] = {}
        queries = [prop.property_name]
        if prop.description and prop.description != prop.property_name:
            queries.append(prop.description)

        for query in queries:
            matches = self._matcher.find_best_matches(
                query,
                names,
                max_results=len(names),
                min_score=self._config.min_score,
                case_sensitive=False,
            )
            for match in matches:
                if match.target not in index_by_name:
                    continue
                current = best.get(match.target)
                if current is None or match.score > current[0]:
                    best[match.target] = (match.score, match.reason)

        proposals = [
            MatchProposal(
                property_name=prop.property_name,
                column_name=column_name,
                score=score,
                reason=reason,
                threshold=self._effective_threshold(prop, column_name),
            )
            for column_name, (score, reason) in best.items()
        ]
        proposals.sort(key=lambda p: (-p.score, index_by_name[p.column_name]))
        return proposals

    def _identifier_fallback(
        self,
        document: MappingDocument,
        data_type: str,
        properties: list[PropertyInfo],
        columns: Sequence[ColumnInfo],
    ) -> MatchProposal | None:
        identifiers = [p for p in properties if self.is_identifier_like(p, data_type)]
        if not identifiers:
            return None

        # The target is fixed per type: named identifiers (Id, Buses, ...) before
        # fields that are merely required. Once it is bound the fallback is spent.
        target = min(
            identifiers,
            key=lambda p: (not self._is_named_identifier(p.property_name, data_type), p.property_name),
        )
        if document.get_mapping(data_type, target.property_name) is not None:
            return None

        bound = document.mapped_columns(data_type)
        unbound = sorted(
            (c for c in columns if c.column_name not in bound),
            key=lambda c: c.column_index,
        )

        column_name: str | None = None
        confidence = FIRST_COLUMN_CONFIDENCE
        if self._config.first_column_fallback and unbound:
            column_name = unbound[0].column_name
        else:
            allowed = {name.lower() for name in self._config.identifier_column_names}
            column_name = next((c.column_name for c in unbound if c.column_name.lower() in allowed), None)
            confidence = ALLOW_LIST_CONFIDENCE

        if column_name is None:
            logger.debug("No identifier fallback column for %s.%s", data_type, target.property_name)
            return None

        document.update_mapping(data_type, target.property_name, column_name, confidence)
        logger.debug(
            "Identifier fallback bound %s.%s -> %s at %.2f",
            data_type,
            target.property_name,
            column_name,
            confidence,
        )
        reason = "FirstColumn" if confidence == FIRST_COLUMN_CONFIDENCE else "AllowList"
        return MatchProposal(target.property_name, column_name, confidence, reason, 0.0)
