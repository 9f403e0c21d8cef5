"""Tests for the AutoMapper."""

from __future__ import annotations

from schemamap.io import ColumnInfo
from schemamap.mapping import AutoMapOutcome, AutoMapper, MappingDocument
from schemamap.schema import (
    DataTypeDescriptor,
    FieldDescriptor,
    SchemaCatalog,
    SchemaRegistry,
)
from schemamap.settings import AutoMapConfig, VisibilitySettings

from conftest import StubMatcher


def _columns(*names: str, table: str = "Sheet1") -> list[ColumnInfo]:
    return [ColumnInfo(name, index, table, 1) for index, name in enumerate(names)]


def _bindings(document: MappingDocument, data_type: str) -> dict[str, tuple[str, float | None]]:
    return {
        e.property_name: (e.column_header, e.confidence) for e in document.get_mappings(data_type)
    }


class TestAutoMapOutcomes:
    """Early exits are distinct outcomes."""

    def test_no_columns(self, small_catalog: SchemaCatalog, document: MappingDocument) -> None:
        result = AutoMapper(small_catalog, StubMatcher()).auto_map(document, "Panel", [])

        assert result.outcome == AutoMapOutcome.NO_COLUMNS
        assert result.changes == 0
        assert not document.is_dirty

    def test_all_mapped(self, small_catalog: SchemaCatalog, document: MappingDocument) -> None:
        for prop in small_catalog.get_properties_for_type("Switch"):
            document.update_mapping("Switch", prop.property_name, "X")
        document.mark_clean()

        result = AutoMapper(small_catalog, StubMatcher()).auto_map(
            document, "Switch", _columns("A")
        )

        assert result.outcome == AutoMapOutcome.ALL_MAPPED
        assert "already mapped" in result.message
        assert not document.is_dirty

    def test_outcomes_differ(self, small_catalog: SchemaCatalog, document: MappingDocument) -> None:
        """Test that zero columns is not reported as everything mapped."""
        mapper = AutoMapper(small_catalog, StubMatcher())

        no_columns = mapper.auto_map(document, "Switch", [])

        assert no_columns.outcome != AutoMapOutcome.ALL_MAPPED
        assert no_columns.message != ""


class TestFuzzyAcceptance:
    """Threshold-based acceptance of fuzzy matches."""

    def test_accepts_above_threshold_with_confidence(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        matcher = StubMatcher({("Voltage", "Volts"): 0.82, ("Id", "Panel ID"): 0.9})

        result = AutoMapper(small_catalog, matcher).auto_map(
            document, "Panel", _columns("Panel ID", "Volts")
        )

        assert result.outcome == AutoMapOutcome.COMPLETED
        assert _bindings(document, "Panel") == {
            "Id": ("Panel ID", 0.9),
            "Voltage": ("Volts", 0.82),
        }
        assert result.fallback is None

    def test_below_threshold_reported_low_confidence(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        matcher = StubMatcher({("Voltage", "Volts"): 0.5})
        config = AutoMapConfig(first_column_fallback=False)

        result = AutoMapper(small_catalog, matcher, config).auto_map(
            document, "Panel", _columns("Volts")
        )

        assert document.get_mapping("Panel", "Voltage") is None
        assert [(p.property_name, p.column_name) for p in result.low_confidence] == [
            ("Voltage", "Volts")
        ]
        assert "Load" in result.no_match

    def test_description_match_used(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        """Test that the better of name and description scores wins."""
        matcher = StubMatcher({("Voltage", "Rated V"): 0.3, ("Rated voltage", "Rated V"): 0.8})

        AutoMapper(small_catalog, matcher).auto_map(document, "Panel", _columns("Tag", "Rated V"))

        assert _bindings(document, "Panel")["Voltage"] == ("Rated V", 0.8)
        assert "Rated voltage" in matcher.queries

    def test_column_consumed_once(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        """Test that a bound column is not offered to later properties."""
        matcher = StubMatcher({("Load", "kW"): 0.9, ("Voltage", "kW"): 0.95})
        config = AutoMapConfig(first_column_fallback=False)

        AutoMapper(small_catalog, matcher, config).auto_map(document, "Panel", _columns("kW"))

        # Load sorts before Voltage, so it claims the column first
        assert _bindings(document, "Panel") == {"Load": ("kW", 0.9)}

    def test_hidden_properties_not_mapped(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        matcher = StubMatcher({("Location", "Room"): 1.0})
        config = AutoMapConfig(first_column_fallback=False)

        AutoMapper(small_catalog, matcher, config).auto_map(document, "Panel", _columns("Room"))

        assert document.get_mapping("Panel", "Location") is None

    def test_existing_bound_columns_skipped(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        document.update_mapping("Panel", "Id", "Volts")
        matcher = StubMatcher({("Voltage", "Volts"): 0.9})

        result = AutoMapper(small_catalog, matcher).auto_map(document, "Panel", _columns("Volts"))

        assert document.get_mapping("Panel", "Voltage") is None
        assert result.changes == 0


class TestSemanticGuard:
    """Identifier fields resist descriptor-like columns."""

    def test_bus_style_rejected_then_identifier_fallback(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        """Test the required field 'Bus' against BusId (0.55) and BusStyle (0.7)."""
        matcher = StubMatcher({("Bus", "BusStyle"): 0.7, ("Bus", "BusId"): 0.55})

        result = AutoMapper(small_catalog, matcher).auto_map(
            document, "Switch", _columns("BusId", "BusStyle")
        )

        assert _bindings(document, "Switch")["Bus"] == ("BusId", 1.0)
        assert "BusStyle" not in document.mapped_columns("Switch")
        low = [(p.property_name, p.column_name, p.threshold) for p in result.low_confidence]
        assert low == [("Bus", "BusStyle", 0.85)]
        assert result.fallback is not None
        assert result.fallback.column_name == "BusId"

    def test_only_best_candidate_considered(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        """Test that a rejected best column does not fall through to the runner-up."""
        matcher = StubMatcher({("Bus", "BusStyle"): 0.7, ("Bus", "BusId"): 0.65})

        result = AutoMapper(small_catalog, matcher).auto_map(
            document, "Switch", _columns("Tag", "BusStyle", "BusId")
        )

        assert [(p.property_name, p.column_name) for p in result.low_confidence] == [
            ("Bus", "BusStyle")
        ]
        assert result.accepted == []
        assert _bindings(document, "Switch") == {"Bus": ("Tag", 1.0)}
        assert "BusId" not in document.mapped_columns("Switch")

    def test_descriptor_column_accepted_above_raised_threshold(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        matcher = StubMatcher({("Bus", "Bus Type"): 0.9})

        AutoMapper(small_catalog, matcher).auto_map(document, "Switch", _columns("Bus Type"))

        assert _bindings(document, "Switch") == {"Bus": ("Bus Type", 0.9)}

    def test_guard_does_not_apply_to_plain_fields(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        matcher = StubMatcher({("Rating", "Rating Type"): 0.7})
        config = AutoMapConfig(first_column_fallback=False)

        AutoMapper(small_catalog, matcher, config).auto_map(
            document, "Switch", _columns("Rating Type")
        )

        assert _bindings(document, "Switch") == {"Rating": ("Rating Type", 0.7)}


class TestIdentifierFallback:
    """Positional and allow-list identifier fallbacks."""

    def test_single_name_column_bound_at_full_confidence(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        result = AutoMapper(small_catalog, StubMatcher()).auto_map(
            document, "Panel", _columns("Name")
        )

        assert _bindings(document, "Panel") == {"Id": ("Name", 1.0)}
        assert result.changes == 1

    def test_fallback_uses_first_remaining_column(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        matcher = StubMatcher({("Voltage", "Tag"): 0.9})

        AutoMapper(small_catalog, matcher).auto_map(
            document, "Panel", _columns("Tag", "Room", "Circuit")
        )

        assert _bindings(document, "Panel")["Id"] == ("Room", 1.0)

    def test_allow_list_when_positional_disabled(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        config = AutoMapConfig(first_column_fallback=False)

        result = AutoMapper(small_catalog, StubMatcher(), config).auto_map(
            document, "Panel", _columns("Room", "unique id", "UniqueID")
        )

        assert _bindings(document, "Panel") == {"Id": ("UniqueID", 0.95)}
        assert result.fallback is not None

    def test_allow_list_skips_columns_bound_this_run(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        """Test that a column claimed by fuzzy matching is not reused for the identifier."""
        matcher = StubMatcher({("Voltage", "ID"): 0.9})

        result = AutoMapper(small_catalog, matcher).auto_map(document, "Panel", _columns("ID"))

        assert _bindings(document, "Panel") == {"Voltage": ("ID", 0.9)}
        assert result.fallback is None

    def test_fallback_targets_named_identifier_when_other_required_mapped(
        self, document: MappingDocument
    ) -> None:
        registry = SchemaRegistry(
            [
                DataTypeDescriptor(
                    name="Meter",
                    fields=[
                        FieldDescriptor(name="Id", required=True),
                        FieldDescriptor(name="Name", required=True),
                    ],
                )
            ]
        )
        catalog = SchemaCatalog(registry, VisibilitySettings.from_registry(registry))
        matcher = StubMatcher({("Name", "Name"): 1.0})
        mapper = AutoMapper(catalog, matcher)

        result = mapper.auto_map(document, "Meter", _columns("Tag", "Name"))

        assert _bindings(document, "Meter") == {"Id": ("Tag", 1.0), "Name": ("Name", 1.0)}
        assert result.fallback is not None
        assert mapper.auto_map(document, "Meter", _columns("Tag", "Name")).changes == 0

    def test_no_fallback_when_identifier_mapped(
        self, small_catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        document.update_mapping("Panel", "Id", "Panel ID")

        result = AutoMapper(small_catalog, StubMatcher()).auto_map(
            document, "Panel", _columns("Panel ID", "Room")
        )

        assert result.fallback is None
        assert _bindings(document, "Panel") == {"Id": ("Panel ID", None)}


class TestAutoMapProperties:
    """Determinism and idempotence."""

    def test_idempotent(self, catalog: SchemaCatalog, document: MappingDocument) -> None:
        """Test that a second run with the same columns changes nothing."""
        columns = _columns("Bus Name", "Base kV", "Area", "Zone", "Device Type", "Notes")
        mapper = AutoMapper(catalog)

        mapper.auto_map(document, "Bus", columns)
        before = _bindings(document, "Bus")
        document.mark_clean()

        second = mapper.auto_map(document, "Bus", columns)

        assert second.changes == 0
        assert _bindings(document, "Bus") == before
        assert not document.is_dirty

    def test_deterministic(self, catalog: SchemaCatalog) -> None:
        columns = _columns("Fuse", "Phases", "On Bus", "Mfr", "Amps", "Kind")
        first, second = MappingDocument(), MappingDocument()

        AutoMapper(catalog).auto_map(first, "Fuse", columns)
        AutoMapper(catalog).auto_map(second, "Fuse", columns)

        assert _bindings(first, "Fuse") == _bindings(second, "Fuse")

    def test_real_matcher_binds_obvious_columns(
        self, catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        AutoMapper(catalog).auto_map(document, "Bus", _columns("Buses", "base_kv", "Zone"))

        assert _bindings(document, "Bus")["Buses"] == ("Buses", 1.0)
        assert _bindings(document, "Bus")["BaseKV"] == ("base_kv", 0.96)
        assert _bindings(document, "Bus")["Zone"] == ("Zone", 1.0)

    def test_auto_entries_carry_confidence(
        self, catalog: SchemaCatalog, document: MappingDocument
    ) -> None:
        AutoMapper(catalog).auto_map(document, "Bus", _columns("Buses", "Zone"))

        assert all(e.confidence is not None for e in document.get_mappings("Bus"))

        document.update_mapping("Bus", "Zone", "Zone")
        assert document.get_mapping("Bus", "Zone").confidence is None
