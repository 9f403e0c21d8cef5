"""Statically declared registry of mappable data types and their fields."""

from __future__ import annotations

import logging
from importlib import resources
from pathlib import Path

import yaml
from pydantic import BaseModel, Field

from schemamap.errors import TypeNotFoundError

logger = logging.getLogger(__name__)

DEFAULT_REGISTRY_RESOURCE = "default_registry.yml"


class FieldDescriptor(BaseModel):
    """A mappable field on a data type."""

    name: str = Field(..., description="Property name")
    type: str = Field("str", description="Value type of the property")
    description: str = Field("", description="Human readable description")
    category: str = Field("General", description="Grouping used by the field picker")
    required: bool = Field(False, description="Field must be mapped before import")
    computed: bool = Field(False, description="Value is derived rather than entered")
    hidden_by_default: bool = Field(False, description="Not visible until enabled")


class DataTypeDescriptor(BaseModel):
    """A target record type."""

    name: str = Field(..., description="Data type name")
    display_name: str | None = Field(None, description="Friendly name shown to users")
    category: str = Field("Equipment", description="Data type category")
    has_scenarios: bool = Field(False, description="Records are keyed per study scenario")
    fields: list[FieldDescriptor] = Field(default_factory=list, description="Mappable fields")

    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


class RegistryDocument(BaseModel):
    version: str = Field("1", description="Registry format version")
    data_types: list[DataTypeDescriptor] = Field(default_factory=list)


class SchemaRegistry:
    """Lookup of data type descriptors by name."""

    def __init__(self, data_types: list[DataTypeDescriptor]) -> None:
        self._types: dict[str, DataTypeDescriptor] = {}
        for descriptor in data_types:
            if descriptor.name in self._types:
                logger.warning("Duplicate data type '%s' in registry; keeping last", descriptor.name)
            self._types[descriptor.name] = descriptor

    def names(self) -> list[str]:
        return sorted(self._types)

    def __contains__(self, name: object) -> bool:
        return name in self._types

    def __len__(self) -> int:
        return len(self._types)

    def get(self, name: str) -> DataTypeDescriptor:
        try:
            return self._types[name]
        except KeyError:
            raise TypeNotFoundError(name) from None


def load_registry(path: Path | str) -> SchemaRegistry:
    """Load a registry from a YAML file with a top-level ``data_types`` list."""
    path = Path(path)
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    registry = _build_registry(data)
    logger.info("Loaded %d data type(s) from %s", len(registry), path)
    return registry


def default_registry() -> SchemaRegistry:
    """Return the registry packaged with schemamap."""
    source = resources.files("schemamap.schema").joinpath("data").joinpath(DEFAULT_REGISTRY_RESOURCE)
    data = yaml.safe_load(source.read_text(encoding="utf-8")) or {}
    return _build_registry(data)


def _build_registry(data: dict) -> SchemaRegistry:
    document = RegistryDocument(**data)
    return SchemaRegistry(document.data_types)
