"""JSON persistence for mapping documents.

``ImportMap`` is the payload consumed by the import step. Everything else in
the file is editor metadata and may be absent, so files produced by other
tools (or containing only ``ImportMap``) still load.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

from schemamap.errors import InvalidFormatError, MapFileNotFoundError
from schemamap.mapping.document import (
    FileStatus,
    MappingDocument,
    MappingSeverity,
    ReferencedFile,
)

logger = logging.getLogger(__name__)

MAP_SCHEMA_URL = "https://easyaf.app/schemas/mapping-v3.json"
MAP_VERSION = "1.0"
UNKNOWN_SOFTWARE_VERSION = "Unknown"
MAP_FILE_SUFFIX = ".ezmap"


def document_to_dict(document: MappingDocument) -> dict[str, Any]:
    data: dict[str, Any] = {
        "$schema": MAP_SCHEMA_URL,
        "MapName": document.map_name,
    }
    if document.description.strip():
        data["Description"] = document.description
    data["DateModified"] = document.date_modified.isoformat()
    data["ReferencedFiles"] = [_referenced_file_to_dict(f) for f in document.referenced_files]
    data["SoftwareVersion"] = document.software_version
    data["MapVersion"] = MAP_VERSION
    if document.table_references_by_data_type:
        data["TableReferences"] = dict(document.table_references_by_data_type)
    data["ImportMap"] = [
        {
            "TargetType": data_type,
            "PropertyName": entry.property_name,
            "ColumnHeader": entry.column_header,
            "Required": entry.required,
            "Severity": entry.severity.value,
        }
        for data_type, entries in document.mappings_by_data_type.items()
        for entry in entries
    ]
    return data


def save_map(document: MappingDocument, path: Path | str) -> None:
    """Write ``document`` to ``path`` atomically.

    The JSON is written to a temporary file beside the destination and then
    moved over it, so a failed save leaves any previous file intact.
    """
    path = Path(path)
    document.date_modified = datetime.now()
    payload = json.dumps(document_to_dict(document), indent=2)

    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
        os.replace(tmp_name, path)
    except OSError:
        logger.error("Failed to save map document to %s", path)
        Path(tmp_name).unlink(missing_ok=True)
        raise

    document.file_path = path
    document.mark_clean()
    logger.info(
        "Saved map document to %s (%d mappings across %d data types)",
        path,
        len(document.all_mappings()),
        len(document.mappings_by_data_type),
    )


def load_map(path: Path | str) -> MappingDocument:
    """Load a mapping document.

    Raises:
        MapFileNotFoundError: if ``path`` does not exist
        InvalidFormatError: if the content is not JSON or not a JSON object,
            or ``ImportMap`` is present but not a list
    """
    path = Path(path)
    if not path.exists():
        raise MapFileNotFoundError(path)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        logger.error("Failed to parse JSON from %s", path)
        raise InvalidFormatError(f"Invalid JSON format in file: {path}") from exc

    if not isinstance(data, dict):
        raise InvalidFormatError(f"Map file must contain a JSON object: {path}")

    import_map = data.get("ImportMap", [])
    if not isinstance(import_map, list):
        raise InvalidFormatError(f"'ImportMap' must be an array in file: {path}")

    document = MappingDocument(
        map_name=_text(data.get("MapName")) or path.stem,
        description=_text(data.get("Description")),
        software_version=_text(data.get("SoftwareVersion")) or UNKNOWN_SOFTWARE_VERSION,
        date_modified=_parse_date(data.get("DateModified"), path),
    )

    referenced_files = data.get("ReferencedFiles") or []
    if not isinstance(referenced_files, list):
        logger.warning("Ignoring malformed ReferencedFiles in %s: %r", path, referenced_files)
        referenced_files = []
    for item in referenced_files:
        _load_referenced_file(document, item, path)

    for entry in import_map:
        _load_entry(document, entry, path)

    table_references = data.get("TableReferences")
    if table_references is not None and not isinstance(table_references, dict):
        logger.warning("Ignoring malformed TableReferences in %s: %r", path, table_references)
    elif table_references:
        for data_type, key in table_references.items():
            if isinstance(key, str) and key.strip():
                document.table_references_by_data_type[str(data_type)] = key.strip()

    document.file_path = path
    document.mark_clean()
    logger.info(
        "Loaded map document from %s (%d mappings across %d data types)",
        path,
        len(document.all_mappings()),
        len(document.mappings_by_data_type),
    )
    return document


def is_valid_map_file(path: Path | str) -> bool:
    """Cheap check: the file parses as JSON and has an ``ImportMap`` array."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, json.JSONDecodeError):
        return False
    return isinstance(data, dict) and isinstance(data.get("ImportMap"), list)


def _load_entry(document: MappingDocument, entry: object, path: Path) -> None:
    if not isinstance(entry, dict):
        logger.warning("Skipping malformed mapping entry in %s: %r", path, entry)
        return

    data_type = _text(entry.get("TargetType"))
    property_name = _text(entry.get("PropertyName"))
    column_header = _text(entry.get("ColumnHeader"))
    if not (data_type and property_name and column_header):
        logger.warning(
            "Skipping invalid mapping entry in %s: TargetType=%s, PropertyName=%s, ColumnHeader=%s",
            path,
            data_type,
            property_name,
            column_header,
        )
        return

    previous = document.get_mapping(data_type, property_name)
    if previous is not None:
        logger.warning(
            "Duplicate mapping for %s.%s in %s; using '%s'",
            data_type,
            property_name,
            path,
            column_header,
        )

    mapped = document.update_mapping(data_type, property_name, column_header)
    required = entry.get("Required", False)
    if not isinstance(required, bool):
        logger.warning(
            "Non-boolean Required %r for %s.%s in %s; treating as false",
            required,
            data_type,
            property_name,
            path,
        )
        required = False
    mapped.required = required
    mapped.severity = _parse_severity(entry.get("Severity"))


def _referenced_file_to_dict(referenced: ReferencedFile) -> dict[str, Any]:
    item: dict[str, Any] = {"FilePath": referenced.file_path}
    if referenced.tables:
        item["Tables"] = {name: list(columns) for name, columns in referenced.tables.items()}
    return item


def _load_referenced_file(document: MappingDocument, item: object, path: Path) -> None:
    file_path = _text(item.get("FilePath")) if isinstance(item, dict) else ""
    if not file_path or document.get_referenced_file(file_path) is not None:
        return

    # recorded headers let orphan detection work without rereading the source
    tables: dict[str, list[str]] = {}
    raw_tables = item.get("Tables")
    if isinstance(raw_tables, dict):
        for table_name, columns in raw_tables.items():
            if isinstance(columns, list):
                tables[str(table_name)] = [_text(c) for c in columns if _text(c)]
    elif raw_tables is not None:
        logger.warning("Ignoring malformed Tables for %s in %s", file_path, path)

    status = FileStatus.VALID if Path(file_path).exists() else FileStatus.MISSING
    document.referenced_files.append(
        ReferencedFile(file_path=file_path, status=status, tables=tables)
    )


def _text(value: object) -> str:
    return str(value).strip() if value is not None else ""


def _parse_date(value: object, path: Path) -> datetime:
    if isinstance(value, str) and value.strip():
        try:
            return datetime.fromisoformat(value.strip())
        except ValueError:
            logger.warning("Unreadable DateModified '%s' in %s; using file time", value, path)
    return datetime.fromtimestamp(path.stat().st_mtime)


def _parse_severity(value: object) -> MappingSeverity:
    if isinstance(value, str):
        for severity in MappingSeverity:
            if severity.value.lower() == value.strip().lower():
                return severity
    if isinstance(value, int) and not isinstance(value, bool):
        members = list(MappingSeverity)
        if 0 <= value < len(members):
            return members[value]
    return MappingSeverity.INFO
