from __future__ import annotations

import argparse
import logging
from pathlib import Path

from schemamap.errors import SchemaMapError
from schemamap.io import discover_source_files, extract_columns, get_sample_data
from schemamap.mapping import (
    AutoMapOutcome,
    AutoMapper,
    InvalidMappingDetector,
    MappingDocument,
    RequiredMappingValidator,
    TableReference,
    load_map,
    save_map,
    summarize_status,
)
from schemamap.mapping.sources import columns_for_table, register_source_file, resolve_table_reference
from schemamap.schema import SchemaCatalog, default_registry, load_registry
from schemamap.settings import SettingsManager, VisibilitySettings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="schemamap",
        description="Map columns of CSV/Excel files onto known data types.",
    )
    parser.add_argument(
        "--settings",
        type=Path,
        default=None,
        metavar="PATH",
        help="Optional YAML settings file (visibility, enabled types, auto-map tuning).",
    )
    parser.add_argument(
        "--registry",
        type=Path,
        default=None,
        metavar="PATH",
        help="Optional YAML schema registry replacing the built-in data types.",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    columns = subparsers.add_parser("columns", help="List the tables and columns of source files.")
    columns.add_argument("input_path", type=Path, help="Source file or folder.")

    preview = subparsers.add_parser("preview", help="Show the first rows of a table.")
    preview.add_argument("input_path", type=Path, help="Source file.")
    preview.add_argument("table", nargs="?", default=None, help="Table (worksheet) name.")
    preview.add_argument("--rows", type=int, default=5, help="Number of rows (default: 5).")

    subparsers.add_parser("types", help="List mappable data types.")

    automap = subparsers.add_parser("automap", help="Auto-map a source table onto a data type.")
    automap.add_argument("input_path", type=Path, help="Source file.")
    automap.add_argument("--type", dest="data_type", required=True, help="Target data type.")
    automap.add_argument("--table", default=None, help="Table name (default: selected or first).")
    automap.add_argument(
        "--map",
        dest="map_path",
        type=Path,
        required=True,
        help="Map file to update (created if missing).",
    )

    validate = subparsers.add_parser("validate", help="Check a map file for missing or hidden fields.")
    validate.add_argument("map_path", type=Path, help="Map file.")
    validate.add_argument(
        "--fix",
        action="store_true",
        help="Remove mappings to hidden properties and save the map.",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        registry = load_registry(args.registry) if args.registry else default_registry()
        map_settings = SettingsManager(args.settings).load() if args.settings else None
        settings = VisibilitySettings.from_registry(registry, map_settings)
        catalog = SchemaCatalog(registry, settings)

        if args.command == "columns":
            return _cmd_columns(parser, args.input_path)
        if args.command == "preview":
            return _cmd_preview(args.input_path, args.table, args.rows)
        if args.command == "types":
            return _cmd_types(catalog)
        if args.command == "automap":
            return _cmd_automap(parser, catalog, settings, args)
        return _cmd_validate(catalog, args.map_path, args.fix)
    except SchemaMapError as exc:
        parser.error(str(exc))
    return 2


def _cmd_columns(parser: argparse.ArgumentParser, input_path: Path) -> int:
    files = discover_source_files(input_path)
    if not files:
        parser.error("No supported input files found (.csv, .csv.gz, .xlsx, .xlsm, .xls).")

    for source in files:
        print(f"{source}")
        for table_name, columns in extract_columns(source).items():
            print(f"  [{table_name}]")
            for column in columns:
                print(f"    {column.column_index:>3}  {column.column_name}  ({column.sample_value_count} values)")
    return 0


def _cmd_preview(input_path: Path, table: str | None, rows: int) -> int:
    if table is None:
        tables = list(extract_columns(input_path))
        if not tables:
            print("No tables found.")
            return 0
        table = tables[0]

    frame = get_sample_data(input_path, table, rows)
    print(f"{input_path.name} | {table}")
    print(frame.to_string(index=False) if not frame.empty else "(empty)")
    return 0


def _cmd_types(catalog: SchemaCatalog) -> int:
    for data_type in catalog.get_enabled_data_types():
        required = ", ".join(p.property_name for p in catalog.get_required_properties(data_type))
        visible = len(catalog.get_properties_for_type(data_type))
        total = len(catalog.get_all_properties_for_type(data_type))
        print(f"{data_type}: {catalog.get_data_type_description(data_type)}")
        print(f"  fields: {visible} visible of {total}; required: {required or '-'}")
    return 0


def _cmd_automap(
    parser: argparse.ArgumentParser,
    catalog: SchemaCatalog,
    settings: VisibilitySettings,
    args: argparse.Namespace,
) -> int:
    data_type: str = args.data_type
    map_path: Path = args.map_path
    if not catalog.is_valid_data_type(data_type):
        parser.error(f"Unknown data type '{data_type}'. Choose from: {', '.join(catalog.get_available_data_types())}")

    if map_path.exists():
        document = load_map(map_path)
        print(f"Loaded map: {map_path}")
    else:
        document = MappingDocument(map_name=map_path.stem)

    referenced = register_source_file(document, args.input_path)
    if not referenced.tables:
        parser.error(f"No tables found in {args.input_path}")

    reference = _select_table(document, data_type, referenced.file_path, referenced.tables, args.table)
    if reference is None:
        parser.error(f"Table '{args.table}' not found in {args.input_path}")
    document.set_table_reference(data_type, reference)

    result = AutoMapper(catalog, config=settings.auto_map).auto_map(
        document, data_type, columns_for_table(reference)
    )
    print(result.message)
    if result.outcome == AutoMapOutcome.COMPLETED:
        for proposal in result.accepted:
            print(f"  + {proposal.property_name} <- {proposal.column_name} ({proposal.score:.0%})")
        if result.fallback is not None:
            print(f"  + {result.fallback.property_name} <- {result.fallback.column_name} (identifier)")
        for proposal in result.low_confidence:
            print(f"  ? {proposal.property_name} ~ {proposal.column_name} ({proposal.score:.0%})")

    save_map(document, map_path)
    print(f"Map written to: {map_path}")
    return 0


def _select_table(
    document: MappingDocument,
    data_type: str,
    file_path: str,
    tables: dict[str, list[str]],
    requested: str | None,
) -> TableReference | None:
    multi = len(tables) > 1
    if requested is not None:
        return TableReference(file_path, requested, multi) if requested in tables else None

    previous = resolve_table_reference(document, data_type)
    if previous is not None and previous.file_path.lower() == file_path.lower():
        return previous
    return TableReference(file_path, next(iter(tables)), multi)


def _cmd_validate(catalog: SchemaCatalog, map_path: Path, fix: bool) -> int:
    document = load_map(map_path)

    for data_type, status in summarize_status(document, catalog).items():
        print(f"{data_type}: {status.value}")

    detector = InvalidMappingDetector(catalog)
    report = detector.find(document)
    if not report.is_empty:
        print(report.summary())
        if fix:
            removed = detector.remove(document, report)
            save_map(document, map_path)
            print(f"Removed {removed} mapping(s); map written to: {map_path}")

    result = RequiredMappingValidator(catalog).validate(document)
    print(result.summary())
    return 0 if result.is_valid else 1


if __name__ == "__main__":
    raise SystemExit(main())
