"""Bookkeeping between a mapping document and its source files."""

from __future__ import annotations

import logging
from pathlib import Path

from schemamap.errors import SchemaMapError
from schemamap.io import ColumnInfo, extract_columns
from schemamap.mapping.document import FileStatus, MappingDocument, ReferencedFile, TableReference

logger = logging.getLogger(__name__)


def register_source_file(document: MappingDocument, path: Path | str) -> ReferencedFile:
    """Read the tables of ``path`` and record them on the document.

    Extraction errors propagate; the document is left untouched on failure.
    """
    tables = extract_columns(path)
    recorded = {name: [c.column_name for c in columns] for name, columns in tables.items()}
    return document.add_referenced_file(path, recorded)


def refresh_referenced_files(document: MappingDocument) -> list[str]:
    """Re-read every referenced file, returning the paths that could not be read.

    A file that fails keeps its previously recorded tables so orphan
    detection still works against it.
    """
    failed: list[str] = []
    for referenced in document.referenced_files:
        try:
            tables = extract_columns(referenced.file_path)
        except FileNotFoundError:
            referenced.status = FileStatus.MISSING
            failed.append(referenced.file_path)
            logger.warning("Referenced file missing: %s", referenced.file_path)
            continue
        except SchemaMapError as exc:
            referenced.status = FileStatus.INACCESSIBLE
            failed.append(referenced.file_path)
            logger.warning("Could not read referenced file %s: %s", referenced.file_path, exc)
            continue

        referenced.tables = {name: [c.column_name for c in cols] for name, cols in tables.items()}
        referenced.status = FileStatus.VALID
    return failed


def list_table_references(document: MappingDocument) -> list[TableReference]:
    references: list[TableReference] = []
    for referenced in document.referenced_files:
        multi = len(referenced.tables) > 1
        for table_name in referenced.tables:
            references.append(TableReference(referenced.file_path, table_name, multi))
    return references


def resolve_table_reference(document: MappingDocument, data_type: str) -> TableReference | None:
    """Find the table previously selected for ``data_type`` among the referenced files."""
    key = document.get_table_reference(data_type)
    if key is None:
        return None

    for reference in list_table_references(document):
        if reference.display_name == key:
            return reference

    logger.debug("Selected table '%s' for %s is no longer available", key, data_type)
    return None


def columns_for_table(reference: TableReference) -> list[ColumnInfo]:
    tables = extract_columns(reference.file_path)
    return tables.get(reference.table_name, [])
