"""Schema catalog: data types and their mappable properties under current settings."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from enum import Enum

from schemamap.errors import TypeNotFoundError
from schemamap.schema.registry import DataTypeDescriptor, FieldDescriptor, SchemaRegistry
from schemamap.settings import SettingsProvider

logger = logging.getLogger(__name__)


class RequiredFieldPolicy(str, Enum):
    """How a property is judged required.

    MARKER uses the ``required`` flag declared in the registry. LEGACY is the
    older name-based rule: the universal names plus a hand-maintained
    per-type table. LEGACY drifts whenever the registry changes and is kept
    only for maps authored against it.
    """

    MARKER = "marker"
    LEGACY = "legacy"


LEGACY_UNIVERSAL_REQUIRED: frozenset[str] = frozenset({"Id", "Name"})

LEGACY_REQUIRED_FIELDS: dict[str, frozenset[str]] = {
    "Bus": frozenset({"Buses"}),
    "LVCB": frozenset({"Bus"}),
    "Fuse": frozenset({"Fuses", "OnBus"}),
    "Cable": frozenset({"Cables", "FromBusId", "ToBusId"}),
    "ArcFlash": frozenset({"Scenario"}),
    "ShortCircuit": frozenset({"BusName", "Scenario"}),
}


@dataclass(frozen=True)
class PropertyInfo:
    property_name: str
    property_type: str
    description: str
    is_required: bool
    is_computed: bool
    data_type: str
    category: str = "General"


class SchemaCatalog:
    """Answers schema questions for the mapping editor and the auto-mapper.

    Property lists are memoized per type. The catalog listens to the settings
    provider and drops the cached visible list of only the type whose
    visibility changed.
    """

    def __init__(
        self,
        registry: SchemaRegistry,
        settings: SettingsProvider,
        required_policy: RequiredFieldPolicy = RequiredFieldPolicy.MARKER,
    ) -> None:
        self._registry = registry
        self._settings = settings
        self._required_policy = required_policy
        self._lock = threading.RLock()
        self._all_cache: dict[str, list[PropertyInfo]] = {}
        self._visible_cache: dict[str, list[PropertyInfo]] = {}
        settings.subscribe(self._on_visibility_changed)

    @property
    def settings(self) -> SettingsProvider:
        return self._settings

    @property
    def required_policy(self) -> RequiredFieldPolicy:
        return self._required_policy

    def get_available_data_types(self) -> list[str]:
        return self._registry.names()

    def get_enabled_data_types(self) -> list[str]:
        return [t for t in self._registry.names() if self._settings.is_data_type_enabled(t)]

    def is_valid_data_type(self, name: str) -> bool:
        return bool(name) and name in self._registry

    def get_data_type_description(self, data_type: str) -> str:
        try:
            descriptor = self._registry.get(data_type)
        except TypeNotFoundError:
            return data_type
        return descriptor.display_name or descriptor.name

    def get_all_properties_for_type(self, data_type: str) -> list[PropertyInfo]:
        """Every property of ``data_type`` regardless of visibility settings."""
        with self._lock:
            cached = self._all_cache.get(data_type)
            if cached is None:
                descriptor = self._descriptor_or_none(data_type)
                if descriptor is None:
                    return []
                cached = [self._to_property_info(descriptor, f) for f in descriptor.fields]
                cached.sort(key=lambda p: p.property_name)
                self._all_cache[data_type] = cached
                logger.debug("Discovered %d properties for %s", len(cached), data_type)
            return list(cached)

    def get_properties_for_type(self, data_type: str) -> list[PropertyInfo]:
        """Properties of ``data_type`` visible under the current settings.

        Computed properties are always included.
        """
        with self._lock:
            cached = self._visible_cache.get(data_type)
            if cached is None:
                visibility = self._settings.get_visibility(data_type)
                cached = [
                    p
                    for p in self.get_all_properties_for_type(data_type)
                    if p.is_computed or visibility.allows(p.property_name)
                ]
                self._visible_cache[data_type] = cached
            return list(cached)

    def get_required_properties(self, data_type: str) -> list[PropertyInfo]:
        return [p for p in self.get_properties_for_type(data_type) if p.is_required]

    def invalidate(self, data_type: str | None = None) -> None:
        with self._lock:
            if data_type is None:
                self._all_cache.clear()
                self._visible_cache.clear()
            else:
                self._all_cache.pop(data_type, None)
                self._visible_cache.pop(data_type, None)

    def _on_visibility_changed(self, data_type: str) -> None:
        with self._lock:
            self._visible_cache.pop(data_type, None)
        logger.debug("Property cache invalidated for %s", data_type)

    def _descriptor_or_none(self, data_type: str) -> DataTypeDescriptor | None:
        try:
            return self._registry.get(data_type)
        except TypeNotFoundError:
            logger.warning("Unknown data type '%s'; no properties available", data_type)
            return None

    def _to_property_info(self, descriptor: DataTypeDescriptor, field: FieldDescriptor) -> PropertyInfo:
        return PropertyInfo(
            property_name=field.name,
            property_type=field.type,
            description=field.description,
            is_required=self._is_required(descriptor.name, field),
            is_computed=field.computed,
            data_type=descriptor.name,
            category=field.category,
        )

    def _is_required(self, data_type: str, field: FieldDescriptor) -> bool:
        if self._required_policy == RequiredFieldPolicy.MARKER:
            return field.required
        legacy = LEGACY_UNIVERSAL_REQUIRED | LEGACY_REQUIRED_FIELDS.get(data_type, frozenset())
        return field.name in legacy
