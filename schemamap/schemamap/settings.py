"""Mapping settings: per-type visibility, enabled types and auto-map tuning."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

import yaml
from pydantic import BaseModel, Field

if TYPE_CHECKING:
    from schemamap.schema.registry import SchemaRegistry

logger = logging.getLogger(__name__)

WILDCARD = "*"


@dataclass(frozen=True)
class AllFields:
    """Every field of the type is visible."""

    def allows(self, property_name: str) -> bool:
        return True


@dataclass(frozen=True)
class FieldSubset:
    """Only the named fields are visible (names compare case-insensitively)."""

    names: frozenset[str]

    def allows(self, property_name: str) -> bool:
        return property_name.lower() in {name.lower() for name in self.names}


Visibility = AllFields | FieldSubset


class DataTypeConfig(BaseModel):
    """Settings for a single data type."""

    enabled: bool = Field(True, description="Data type is offered for mapping")
    enabled_properties: list[str] = Field(
        default_factory=lambda: [WILDCARD],
        description="Visible property names, or '*' for all",
    )

    @property
    def visibility(self) -> Visibility:
        if WILDCARD in self.enabled_properties:
            return AllFields()
        return FieldSubset(frozenset(self.enabled_properties))

    @classmethod
    def from_visibility(cls, visibility: Visibility, enabled: bool = True) -> DataTypeConfig:
        if isinstance(visibility, AllFields):
            return cls(enabled=enabled)
        return cls(enabled=enabled, enabled_properties=sorted(visibility.names))


class AutoMapConfig(BaseModel):
    """Tuning knobs for the auto-mapper."""

    threshold: float = Field(0.6, ge=0.0, le=1.0, description="Minimum score to accept a match")
    identifier_threshold: float = Field(
        0.85,
        ge=0.0,
        le=1.0,
        description="Threshold when an identifier field meets a descriptor-like column",
    )
    min_score: float = Field(0.4, ge=0.0, le=1.0, description="Scores below this are ignored")
    descriptor_keywords: list[str] = Field(
        default_factory=lambda: ["style", "type", "category", "class", "kind", "mode"],
        description="Column name fragments that mark a descriptor rather than an identifier",
    )
    identifier_column_names: list[str] = Field(
        default_factory=lambda: ["ID", "Id", "id", "ID Name", "Id Name", "Identifier", "UniqueID"],
        description="Column names tried for identifier fields when no positional fallback applies",
    )
    first_column_fallback: bool = Field(
        True,
        description="Bind an unmapped identifier field to the first remaining column",
    )


class MapSettings(BaseModel):
    """Top-level settings document."""

    data_types: dict[str, DataTypeConfig] = Field(default_factory=dict)
    auto_map: AutoMapConfig = Field(default_factory=AutoMapConfig)


class SettingsManager:
    """Loads and saves ``MapSettings`` as YAML."""

    def __init__(self, settings_path: Path | str) -> None:
        self.settings_path = Path(settings_path)

    def load(self) -> MapSettings:
        """Load settings, falling back to defaults when the file does not exist.

        Raises:
            yaml.YAMLError: If the file is not valid YAML
            pydantic.ValidationError: If the content does not match the settings schema
        """
        if not self.settings_path.exists():
            logger.info("Settings file not found, using defaults: %s", self.settings_path)
            return MapSettings()

        with open(self.settings_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        settings = MapSettings(**data)
        logger.debug("Loaded settings for %d data type(s)", len(settings.data_types))
        return settings

    def save(self, settings: MapSettings) -> None:
        self.settings_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.settings_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(settings.model_dump(), f, sort_keys=False)
        logger.info("Saved settings to %s", self.settings_path)


VisibilityListener = Callable[[str], None]


class SettingsProvider(Protocol):
    def is_data_type_enabled(self, data_type: str) -> bool: ...

    def get_visibility(self, data_type: str) -> Visibility: ...

    def subscribe(self, listener: VisibilityListener) -> None: ...


class VisibilitySettings:
    """In-process settings provider.

    Types without an explicit entry fall back to a per-type default (seeded
    from the registry's ``hidden_by_default`` flags) and then to all fields.
    Listeners are called with the data type name whenever that type's
    visibility or enabled state changes.
    """

    def __init__(
        self,
        settings: MapSettings | None = None,
        defaults: dict[str, Visibility] | None = None,
    ) -> None:
        self._settings = settings if settings is not None else MapSettings()
        self._defaults: dict[str, Visibility] = dict(defaults or {})
        self._listeners: list[VisibilityListener] = []

    @classmethod
    def from_registry(
        cls, registry: SchemaRegistry, settings: MapSettings | None = None
    ) -> VisibilitySettings:
        defaults: dict[str, Visibility] = {}
        for name in registry.names():
            descriptor = registry.get(name)
            if any(f.hidden_by_default and not f.computed for f in descriptor.fields):
                defaults[name] = FieldSubset(
                    frozenset(f.name for f in descriptor.fields if f.computed or not f.hidden_by_default)
                )
        return cls(settings, defaults)

    @property
    def settings(self) -> MapSettings:
        return self._settings

    @property
    def auto_map(self) -> AutoMapConfig:
        return self._settings.auto_map

    def subscribe(self, listener: VisibilityListener) -> None:
        self._listeners.append(listener)

    def is_data_type_enabled(self, data_type: str) -> bool:
        config = self._settings.data_types.get(data_type)
        return True if config is None else config.enabled

    def get_visibility(self, data_type: str) -> Visibility:
        config = self._settings.data_types.get(data_type)
        if config is not None:
            return config.visibility
        return self._defaults.get(data_type, AllFields())

    def set_visibility(self, data_type: str, visibility: Visibility) -> None:
        enabled = self.is_data_type_enabled(data_type)
        self._settings.data_types[data_type] = DataTypeConfig.from_visibility(visibility, enabled)
        logger.debug("Visibility changed for %s", data_type)
        self._notify([data_type])

    def set_enabled(self, data_type: str, enabled: bool) -> None:
        visibility = self.get_visibility(data_type)
        self._settings.data_types[data_type] = DataTypeConfig.from_visibility(visibility, enabled)
        logger.debug("Data type %s %s", data_type, "enabled" if enabled else "disabled")
        self._notify([data_type])

    def replace(self, settings: MapSettings) -> None:
        """Swap in a whole settings document, notifying every affected type."""
        affected = set(self._settings.data_types) | set(settings.data_types)
        self._settings = settings
        self._notify(sorted(affected))

    def _notify(self, data_types: Iterable[str]) -> None:
        for data_type in data_types:
            for listener in list(self._listeners):
                listener(data_type)
