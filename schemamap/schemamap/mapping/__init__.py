"""Mapping document, auto-mapping, auditing and persistence."""

from schemamap.mapping.audit import (
    InvalidMappingDetector,
    MappingIssueReport,
    OrphanedMappingDetector,
    RequiredMappingValidator,
    ValidationResult,
)
from schemamap.mapping.automap import AutoMapOutcome, AutoMapper, AutoMapResult, MatchProposal
from schemamap.mapping.document import (
    FileStatus,
    MappingDocument,
    MappingEntry,
    MappingSeverity,
    MappingStatus,
    ReferencedFile,
    TableReference,
    mapping_status,
    summarize_status,
)
from schemamap.mapping.serializer import is_valid_map_file, load_map, save_map


__all__ = [
    "AutoMapOutcome",
    "AutoMapResult",
    "AutoMapper",
    "FileStatus",
    "InvalidMappingDetector",
    "MappingDocument",
    "MappingEntry",
    "MappingIssueReport",
    "MappingSeverity",
    "MappingStatus",
    "MatchProposal",
    "OrphanedMappingDetector",
    "ReferencedFile",
    "RequiredMappingValidator",
    "TableReference",
    "ValidationResult",
    "is_valid_map_file",
    "load_map",
    "mapping_status",
    "save_map",
    "summarize_status",
]
