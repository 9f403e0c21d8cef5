"""Mapping document: the authoritative state of a column-to-field map."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path

from schemamap.schema.catalog import SchemaCatalog

logger = logging.getLogger(__name__)

DEFAULT_MAP_NAME = "Untitled Map"
DEFAULT_SOFTWARE_VERSION = "3.0.0"


class MappingSeverity(str, Enum):
    INFO = "Info"
    WARNING = "Warning"
    ERROR = "Error"


class FileStatus(str, Enum):
    UNKNOWN = "Unknown"
    VALID = "Valid"
    MISSING = "Missing"
    INACCESSIBLE = "Inaccessible"


class MappingStatus(str, Enum):
    UNMAPPED = "Unmapped"
    PARTIAL = "Partial"
    COMPLETE = "Complete"


@dataclass
class MappingEntry:
    target_type: str
    property_name: str
    column_header: str
    confidence: float | None = None
    required: bool = False
    severity: MappingSeverity = MappingSeverity.INFO


@dataclass
class ReferencedFile:
    file_path: str
    status: FileStatus = FileStatus.UNKNOWN
    # table name -> column headers, recorded when the file was last read
    tables: dict[str, list[str]] = field(default_factory=dict)

    @property
    def file_name(self) -> str:
        return Path(self.file_path).name

    def matches(self, path: Path | str) -> bool:
        return _same_path(self.file_path, path)

    def recorded_columns(self) -> set[str]:
        return {column for columns in self.tables.values() for column in columns}


@dataclass(frozen=True)
class TableReference:
    """A table within a referenced file.

    ``display_name`` ("FileName | TableName") is the key stored on the
    document to restore the selected table for a data type.
    """

    file_path: str
    table_name: str
    is_multi_table_file: bool = False

    @property
    def file_name(self) -> str:
        return Path(self.file_path).name

    @property
    def display_name(self) -> str:
        return f"{self.file_name} | {self.table_name}"


@dataclass
class MappingDocument:
    map_name: str = DEFAULT_MAP_NAME
    description: str = ""
    software_version: str = DEFAULT_SOFTWARE_VERSION
    date_modified: datetime = field(default_factory=datetime.now)
    file_path: Path | None = None
    is_dirty: bool = False
    referenced_files: list[ReferencedFile] = field(default_factory=list)
    mappings_by_data_type: dict[str, list[MappingEntry]] = field(default_factory=dict)
    table_references_by_data_type: dict[str, str] = field(default_factory=dict)

    def mark_dirty(self) -> None:
        self.is_dirty = True
        self.date_modified = datetime.now()

    def mark_clean(self) -> None:
        self.is_dirty = False

    # -- mappings ---------------------------------------------------------

    def update_mapping(
        self,
        data_type: str,
        property_name: str,
        column_header: str,
        confidence: float | None = None,
    ) -> MappingEntry:
        """Bind ``property_name`` to ``column_header``, replacing any prior binding.

        Omitting ``confidence`` records a manual mapping, which is trusted.
        """
        if confidence is not None and not 0.0 <= confidence <= 1.0:
            raise ValueError(f"confidence must be within [0, 1], got {confidence}")

        entries = self.mappings_by_data_type.setdefault(data_type, [])
        entry = MappingEntry(
            target_type=data_type,
            property_name=property_name,
            column_header=column_header,
            confidence=confidence,
        )
        for index, existing in enumerate(entries):
            if existing.property_name == property_name:
                entry.required = existing.required
                entry.severity = existing.severity
                entries[index] = entry
                break
        else:
            entries.append(entry)

        self.mark_dirty()
        logger.debug("Mapped %s.%s -> %s", data_type, property_name, column_header)
        return entry

    def remove_mapping(self, data_type: str, property_name: str) -> bool:
        entries = self.mappings_by_data_type.get(data_type)
        if not entries:
            return False

        remaining = [e for e in entries if e.property_name != property_name]
        if len(remaining) == len(entries):
            return False

        if remaining:
            self.mappings_by_data_type[data_type] = remaining
        else:
            del self.mappings_by_data_type[data_type]
        self.mark_dirty()
        logger.debug("Unmapped %s.%s", data_type, property_name)
        return True

    def clear_mappings(self, data_type: str) -> int:
        entries = self.mappings_by_data_type.pop(data_type, [])
        if entries:
            self.mark_dirty()
            logger.info("Cleared %d mapping(s) for %s", len(entries), data_type)
        return len(entries)

    def get_mapping(self, data_type: str, property_name: str) -> MappingEntry | None:
        for entry in self.mappings_by_data_type.get(data_type, []):
            if entry.property_name == property_name:
                return entry
        return None

    def get_mappings(self, data_type: str) -> list[MappingEntry]:
        return list(self.mappings_by_data_type.get(data_type, []))

    def mapped_properties(self, data_type: str) -> set[str]:
        return {e.property_name for e in self.mappings_by_data_type.get(data_type, [])}

    def mapped_columns(self, data_type: str) -> set[str]:
        return {e.column_header for e in self.mappings_by_data_type.get(data_type, [])}

    def find_property_for_column(self, data_type: str, column_header: str) -> str | None:
        """Return the property already bound to ``column_header``, if any."""
        for entry in self.mappings_by_data_type.get(data_type, []):
            if entry.column_header == column_header:
                return entry.property_name
        return None

    def all_mappings(self) -> list[MappingEntry]:
        return [e for entries in self.mappings_by_data_type.values() for e in entries]

    # -- referenced files -------------------------------------------------

    def get_referenced_file(self, path: Path | str) -> ReferencedFile | None:
        for referenced in self.referenced_files:
            if referenced.matches(path):
                return referenced
        return None

    def add_referenced_file(
        self, path: Path | str, tables: dict[str, list[str]] | None = None
    ) -> ReferencedFile:
        """Register a source file, or refresh the recorded tables of a known one."""
        existing = self.get_referenced_file(path)
        if existing is not None:
            if tables is not None:
                existing.tables = {name: list(cols) for name, cols in tables.items()}
                existing.status = FileStatus.VALID
                self.mark_dirty()
            return existing

        referenced = ReferencedFile(
            file_path=str(path),
            status=FileStatus.VALID if tables is not None else FileStatus.UNKNOWN,
            tables={name: list(cols) for name, cols in (tables or {}).items()},
        )
        self.referenced_files.append(referenced)
        self.mark_dirty()
        logger.info("Added referenced file: %s", referenced.file_name)
        return referenced

    def remove_referenced_file(self, path: Path | str) -> bool:
        for index, referenced in enumerate(self.referenced_files):
            if referenced.matches(path):
                del self.referenced_files[index]
                self._drop_table_references_for(referenced.file_path)
                self.mark_dirty()
                logger.info("Removed referenced file: %s", referenced.file_name)
                return True
        return False

    def update_referenced_file_path(self, old_path: Path | str, new_path: Path | str) -> bool:
        """Point a referenced file at its new location, keeping recorded tables."""
        referenced = self.get_referenced_file(old_path)
        if referenced is None:
            return False

        old_name = referenced.file_name
        referenced.file_path = str(new_path)
        referenced.status = FileStatus.VALID if Path(new_path).exists() else FileStatus.MISSING

        new_name = referenced.file_name
        if new_name != old_name:
            prefix = f"{old_name} | "
            for data_type, key in list(self.table_references_by_data_type.items()):
                if key.startswith(prefix):
                    self.table_references_by_data_type[data_type] = (
                        f"{new_name} | {key[len(prefix):]}"
                    )

        self.mark_dirty()
        logger.info("Updated referenced file path: %s -> %s", old_path, new_path)
        return True

    def validate_referenced_files(self) -> list[str]:
        """Refresh each referenced file's status and return the missing paths."""
        missing: list[str] = []
        for referenced in self.referenced_files:
            path = Path(referenced.file_path)
            try:
                if not path.exists():
                    referenced.status = FileStatus.MISSING
                    missing.append(referenced.file_path)
                elif path.is_file():
                    referenced.status = FileStatus.VALID
                else:
                    referenced.status = FileStatus.INACCESSIBLE
            except OSError as exc:
                logger.warning("Cannot access referenced file %s: %s", referenced.file_path, exc)
                referenced.status = FileStatus.INACCESSIBLE

        if missing:
            logger.warning("%d referenced file(s) missing", len(missing))
        return missing

    # -- table selection --------------------------------------------------

    def set_table_reference(self, data_type: str, reference: TableReference | str | None) -> None:
        if reference is None:
            if self.table_references_by_data_type.pop(data_type, None) is not None:
                self.mark_dirty()
            return

        key = reference.display_name if isinstance(reference, TableReference) else reference
        if self.table_references_by_data_type.get(data_type) != key:
            self.table_references_by_data_type[data_type] = key
            self.mark_dirty()

    def get_table_reference(self, data_type: str) -> str | None:
        return self.table_references_by_data_type.get(data_type)

    def _drop_table_references_for(self, file_path: str) -> None:
        prefix = f"{Path(file_path).name} | "
        for data_type, key in list(self.table_references_by_data_type.items()):
            if key.startswith(prefix):
                del self.table_references_by_data_type[data_type]


def mapping_status(document: MappingDocument, catalog: SchemaCatalog, data_type: str) -> MappingStatus:
    """Status of a type: visible properties against mapped properties."""
    visible = {p.property_name for p in catalog.get_properties_for_type(data_type)}
    mapped = document.mapped_properties(data_type) & visible
    if not mapped:
        return MappingStatus.UNMAPPED
    if len(mapped) >= len(visible):
        return MappingStatus.COMPLETE
    return MappingStatus.PARTIAL


def summarize_status(document: MappingDocument, catalog: SchemaCatalog) -> dict[str, MappingStatus]:
    """Mapping status of every enabled data type.

    Read-only, so a caller may run it on a worker thread and hand the result
    back to the document's owner.
    """
    return {
        data_type: mapping_status(document, catalog, data_type)
        for data_type in catalog.get_enabled_data_types()
    }


def _same_path(left: Path | str, right: Path | str) -> bool:
    return str(left).lower() == str(right).lower()
