"""Required-field validation and detection of mappings made stale by outside changes."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from schemamap.mapping.document import MappingDocument, MappingEntry
from schemamap.schema.catalog import SchemaCatalog

logger = logging.getLogger(__name__)


@dataclass
class ValidationResult:
    unmapped_required: dict[str, list[str]] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.unmapped_required

    @property
    def error_message(self) -> str:
        if self.is_valid:
            return ""
        count = sum(len(props) for props in self.unmapped_required.values())
        return (
            f"{count} required propert{'y is' if count == 1 else 'ies are'} not mapped "
            f"across {len(self.unmapped_required)} data type(s)."
        )

    def summary(self) -> str:
        if self.is_valid:
            return "All required properties are mapped."

        lines = ["Missing required mappings:"]
        for data_type in sorted(self.unmapped_required):
            lines.append(f"  {data_type}:")
            lines.extend(f"    - {name}" for name in self.unmapped_required[data_type])
        return "\n".join(lines)


class RequiredMappingValidator:
    """Checks that every required property of every enabled type is mapped."""

    def __init__(self, catalog: SchemaCatalog) -> None:
        self._catalog = catalog

    def validate(self, document: MappingDocument) -> ValidationResult:
        result = ValidationResult()
        for data_type in self._catalog.get_available_data_types():
            if not self._catalog.settings.is_data_type_enabled(data_type):
                logger.debug("Skipping disabled data type %s", data_type)
                continue

            required = self._catalog.get_required_properties(data_type)
            if not required:
                continue

            mapped = {name.lower() for name in document.mapped_properties(data_type)}
            missing = sorted(p.property_name for p in required if p.property_name.lower() not in mapped)
            if missing:
                result.unmapped_required[data_type] = missing

        if result.is_valid:
            logger.info("Mapping validation passed")
        else:
            logger.info("Mapping validation failed: %s", result.error_message)
        return result


@dataclass
class MappingIssueReport:
    """Mappings flagged by an auditor, grouped by data type."""

    title: str
    affected: dict[str, list[MappingEntry]] = field(default_factory=dict)

    @property
    def count(self) -> int:
        return sum(len(entries) for entries in self.affected.values())

    @property
    def is_empty(self) -> bool:
        return self.count == 0

    def add(self, entry: MappingEntry) -> None:
        self.affected.setdefault(entry.target_type, []).append(entry)

    def summary(self) -> str:
        if self.is_empty:
            return f"{self.title}: none."

        lines = [f"{self.title}: {self.count}"]
        for data_type in sorted(self.affected):
            lines.append(f"  {data_type}:")
            lines.extend(
                f"    - {e.property_name} <- {e.column_header}" for e in self.affected[data_type]
            )
        return "\n".join(lines)


def remove_reported(document: MappingDocument, report: MappingIssueReport) -> int:
    removed = 0
    for data_type, entries in report.affected.items():
        for entry in entries:
            current = document.get_mapping(data_type, entry.property_name)
            if current is not None and current.column_header == entry.column_header:
                document.remove_mapping(data_type, entry.property_name)
                removed += 1
    if removed:
        logger.info("Removed %d mapping(s): %s", removed, report.title)
    return removed


class InvalidMappingDetector:
    """Finds mappings whose property is no longer visible under current settings."""

    TITLE = "Mappings to hidden properties"

    def __init__(self, catalog: SchemaCatalog) -> None:
        self._catalog = catalog

    def find(self, document: MappingDocument) -> MappingIssueReport:
        report = MappingIssueReport(self.TITLE)
        for data_type, entries in document.mappings_by_data_type.items():
            visible = {p.property_name.lower() for p in self._catalog.get_properties_for_type(data_type)}
            for entry in entries:
                if entry.property_name.lower() not in visible:
                    report.add(entry)

        if not report.is_empty:
            logger.warning("Found %d mapping(s) to hidden properties", report.count)
        return report

    def remove(self, document: MappingDocument, report: MappingIssueReport) -> int:
        return remove_reported(document, report)


class OrphanedMappingDetector:
    """Finds mappings whose column came only from a removed referenced file.

    Works from the column headers recorded on the document when each file
    was registered; the removed file is never read again.
    """

    TITLE = "Orphaned mappings"

    def find(self, document: MappingDocument, file_path: Path | str) -> MappingIssueReport:
        report = MappingIssueReport(self.TITLE)

        removed = document.get_referenced_file(file_path)
        if removed is None or not removed.tables:
            logger.warning("No recorded tables for %s; cannot detect orphaned mappings", file_path)
            return report

        elsewhere = {
            column.lower()
            for referenced in document.referenced_files
            if referenced is not removed
            for column in referenced.recorded_columns()
        }
        only_here = {c.lower() for c in removed.recorded_columns()} - elsewhere

        for entry in document.all_mappings():
            if entry.column_header.lower() in only_here:
                report.add(entry)

        if not report.is_empty:
            logger.warning("Found %d orphaned mapping(s) for %s", report.count, removed.file_name)
        return report

    def remove(self, document: MappingDocument, report: MappingIssueReport) -> int:
        return remove_reported(document, report)
