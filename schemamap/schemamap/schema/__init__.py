"""Schema registry and catalog of mappable data types."""

from schemamap.schema.catalog import PropertyInfo, RequiredFieldPolicy, SchemaCatalog
from schemamap.schema.registry import (
    DataTypeDescriptor,
    FieldDescriptor,
    SchemaRegistry,
    default_registry,
    load_registry,
)


__all__ = [
    "DataTypeDescriptor",
    "FieldDescriptor",
    "PropertyInfo",
    "RequiredFieldPolicy",
    "SchemaCatalog",
    "SchemaRegistry",
    "default_registry",
    "load_registry",
]
