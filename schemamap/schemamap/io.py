from __future__ import annotations

import logging
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum
from pathlib import Path

import pandas as pd

from schemamap.errors import (
    ArgumentInvalidError,
    ReadFailureError,
    SourceNotFoundError,
    UnsupportedFormatError,
)

logger = logging.getLogger(__name__)


class SourceFormat(str, Enum):
    CSV = "csv"
    WORKBOOK = "workbook"


SUPPORTED_INPUT_EXTENSIONS: tuple[str, ...] = (".csv", ".csv.gz", ".xlsx", ".xlsm", ".xls")

# CSV files carry a single table under this implicit name.
CSV_TABLE_NAME = "Sheet1"

# Data rows read after the header when counting sample values.
SAMPLE_ROW_LIMIT = 100


@dataclass(frozen=True)
class ColumnInfo:
    """A column discovered in a source table."""

    column_name: str
    column_index: int
    source_table: str
    sample_value_count: int = 0


def discover_source_files(input_path: Path) -> list[Path]:
    if not input_path.exists():
        raise SourceNotFoundError(input_path)

    if input_path.is_file():
        if is_supported_source(input_path):
            return [input_path]
        return []

    files: list[Path] = []
    for candidate in sorted(input_path.rglob("*")):
        if candidate.is_file() and is_supported_source(candidate):
            files.append(candidate)
    return files


def detect_format(path: Path) -> SourceFormat:
    name = path.name.lower()
    if name.endswith(".csv") or name.endswith(".csv.gz"):
        return SourceFormat.CSV
    if name.endswith((".xlsx", ".xlsm", ".xls")):
        return SourceFormat.WORKBOOK
    raise UnsupportedFormatError(path, SUPPORTED_INPUT_EXTENSIONS)


def is_supported_source(path: Path) -> bool:
    name = path.name.lower()
    return name.endswith(SUPPORTED_INPUT_EXTENSIONS)


def extract_columns(path: Path | str) -> dict[str, list[ColumnInfo]]:
    """Return the columns of every table in ``path`` keyed by table name.

    Only the header row and the first ``SAMPLE_ROW_LIMIT`` data rows are read.
    ``sample_value_count`` is the number of non-empty cells of the column
    within that sample.

    Raises:
        SourceNotFoundError: if the file does not exist
        UnsupportedFormatError: if the extension is not supported
        ReadFailureError: if the file cannot be read or parsed
    """
    path = Path(path)
    source_format = _check_source(path)
    logger.info("Extracting columns from %s file: %s", source_format.value, path.name)

    if source_format == SourceFormat.CSV:
        frame = _read_csv_head(path, SAMPLE_ROW_LIMIT + 1)
        if frame is None:
            logger.warning("CSV file has no header row: %s", path)
            return {}
        columns = _columns_from_frame(frame, CSV_TABLE_NAME)
        logger.debug("Extracted %d columns from CSV", len(columns))
        return {CSV_TABLE_NAME: columns} if columns else {}

    result: dict[str, list[ColumnInfo]] = {}
    for sheet_name, frame in _iter_workbook_sheets(path, SAMPLE_ROW_LIMIT + 1):
        columns = _columns_from_frame(frame, sheet_name)
        if not columns:
            logger.debug("Worksheet has no columns: %s", sheet_name)
            continue
        result[sheet_name] = columns
        logger.debug("Extracted %d columns from sheet '%s'", len(columns), sheet_name)

    if not result:
        logger.warning("Workbook contains no readable sheets: %s", path)
    return result


def list_tables(path: Path | str) -> list[str]:
    return list(extract_columns(path))


def get_sample_data(path: Path | str, table_name: str, max_rows: int = 5) -> pd.DataFrame:
    """Return a preview grid of ``table_name``: header plus up to ``max_rows`` rows."""
    if max_rows < 0:
        raise ArgumentInvalidError(f"max_rows must be zero or positive, got {max_rows}")

    path = Path(path)
    source_format = _check_source(path)
    row_budget = max(max_rows, SAMPLE_ROW_LIMIT) + 1

    if source_format == SourceFormat.CSV:
        if table_name != CSV_TABLE_NAME:
            raise ArgumentInvalidError(
                f"CSV file {path.name} has a single table '{CSV_TABLE_NAME}', got '{table_name}'"
            )
        frame = _read_csv_head(path, row_budget)
    else:
        frame = None
        for _, sheet_frame in _iter_workbook_sheets(path, row_budget, only_sheet=table_name):
            frame = sheet_frame

    if frame is None or frame.empty:
        return pd.DataFrame()

    header = _header_names(frame.iloc[0].tolist())
    body = frame.iloc[1:, : len(header)].dropna(how="all").head(max_rows)
    preview = pd.DataFrame(body.to_numpy(), columns=header).fillna("")
    return preview.reset_index(drop=True)


def _check_source(path: Path) -> SourceFormat:
    if not path.exists():
        logger.error("File not found: %s", path)
        raise SourceNotFoundError(path)
    return detect_format(path)


def _read_csv_head(path: Path, nrows: int) -> pd.DataFrame | None:
    try:
        frame = pd.read_csv(
            path,
            header=None,
            dtype=str,
            nrows=nrows,
            keep_default_na=False,
            na_values=[""],
            skipinitialspace=True,
            on_bad_lines="skip",
        )
    except pd.errors.EmptyDataError:
        return None
    except (OSError, UnicodeDecodeError, pd.errors.ParserError) as exc:
        logger.error("Error reading CSV file %s: %s", path, exc)
        raise ReadFailureError(path, str(exc)) from exc

    frame = _strip_cells(frame)
    if frame.empty:
        return None
    return frame


def _iter_workbook_sheets(
    path: Path, nrows: int, only_sheet: str | None = None
) -> Iterator[tuple[str, pd.DataFrame]]:
    """Yield ``(sheet_name, frame)`` for each non-empty worksheet.

    A sheet that fails to parse is skipped with a warning; failing to open the
    workbook at all raises ``ReadFailureError``. With ``only_sheet`` set, a
    missing sheet raises ``ArgumentInvalidError``.
    """
    engine = None if path.name.lower().endswith(".xls") else "openpyxl"
    try:
        workbook = pd.ExcelFile(path, engine=engine)
    except Exception as exc:
        logger.error("Error reading workbook %s: %s", path, exc)
        raise ReadFailureError(path, str(exc)) from exc

    with workbook:
        if only_sheet is not None and only_sheet not in [str(n) for n in workbook.sheet_names]:
            raise ArgumentInvalidError(f"Sheet '{only_sheet}' not found in workbook {path.name}")

        for sheet_name in workbook.sheet_names:
            sheet_name = str(sheet_name)
            if only_sheet is not None and sheet_name != only_sheet:
                continue
            try:
                frame = workbook.parse(sheet_name, header=None, dtype=str, nrows=nrows)
            except Exception as exc:
                logger.warning("Skipping unreadable worksheet '%s' in %s: %s", sheet_name, path, exc)
                continue

            frame = _strip_cells(frame).dropna(how="all").reset_index(drop=True)
            if frame.empty:
                logger.debug("Skipping empty worksheet: %s", sheet_name)
                continue
            yield sheet_name, frame


def _columns_from_frame(frame: pd.DataFrame, table_name: str) -> list[ColumnInfo]:
    header = _header_names(frame.iloc[0].tolist())
    sample = frame.iloc[1 : SAMPLE_ROW_LIMIT + 1, : len(header)]
    counts = sample.notna().sum().tolist() if not sample.empty else [0] * len(header)

    return [
        ColumnInfo(
            column_name=name,
            column_index=index,
            source_table=table_name,
            sample_value_count=int(counts[index]) if index < len(counts) else 0,
        )
        for index, name in enumerate(header)
    ]


def _header_names(values: list[object]) -> list[str]:
    """Trim trailing blank header cells and name the remaining blanks ``ColumnN``."""
    cells = ["" if pd.isna(value) else str(value).strip() for value in values]
    while cells and not cells[-1]:
        cells.pop()
    return [cell or f"Column{index + 1}" for index, cell in enumerate(cells)]


def _strip_cells(frame: pd.DataFrame) -> pd.DataFrame:
    return frame.apply(lambda column: column.map(_strip_value))


def _strip_value(value: object) -> object:
    if isinstance(value, str):
        stripped = value.strip()
        return stripped if stripped else None
    return value
