"""Error kinds raised by schemamap."""

from __future__ import annotations

from pathlib import Path


class SchemaMapError(Exception):
    """Base class for all schemamap errors."""


class SourceNotFoundError(SchemaMapError, FileNotFoundError):
    """A source data file does not exist."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"File not found: {path}")
        self.path = Path(path)


class MapFileNotFoundError(SchemaMapError, FileNotFoundError):
    """A mapping file does not exist."""

    def __init__(self, path: Path | str) -> None:
        super().__init__(f"Map file not found: {path}")
        self.path = Path(path)


class UnsupportedFormatError(SchemaMapError, ValueError):
    """The file extension is not a supported source format."""

    def __init__(self, path: Path | str, supported: tuple[str, ...]) -> None:
        super().__init__(
            f"File type '{''.join(Path(path).suffixes) or Path(path).name}' is not supported. "
            f"Supported formats: {', '.join(supported)}"
        )
        self.path = Path(path)


class ReadFailureError(SchemaMapError, OSError):
    """A file exists but could not be read or parsed."""

    def __init__(self, path: Path | str, reason: str) -> None:
        super().__init__(f"Failed to read file {path}: {reason}")
        self.path = Path(path)


class InvalidFormatError(SchemaMapError, ValueError):
    """A mapping file is not valid JSON or lacks the expected shape."""


class ArgumentInvalidError(SchemaMapError, ValueError):
    """An argument is outside the accepted range or refers to nothing."""


class TypeNotFoundError(SchemaMapError, KeyError):
    """A data type name is not in the schema registry."""

    def __init__(self, data_type: str) -> None:
        super().__init__(data_type)
        self.data_type = data_type

    def __str__(self) -> str:
        return f"Unknown data type '{self.data_type}'"
