"""Spreadsheet reading for organization workbooks.

The first row of a sheet is the header of Chinese field labels; every
following row becomes one source record (label -> value, blanks -> None).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import pandas as pd

from ngomigrate.canonical.normalize import is_blank

logger = logging.getLogger(__name__)


class SpreadsheetError(ValueError):
    """Workbook cannot be read or the requested sheet does not exist."""


# Workbooks are read with openpyxl; legacy .xls is not supported.
EXCEL_SUFFIXES = (".xlsx", ".xlsm")


def _cell(value: Any) -> Any:
    if is_blank(value) or value is pd.NaT:
        return None
    if isinstance(value, str):
        return value.strip() or None
    if hasattr(value, "item") and not isinstance(value, pd.Timestamp):
        # numpy scalar -> Python scalar
        return value.item()
    return value


def _read_frame(file_path: Path, sheet_name: Optional[str]) -> pd.DataFrame:
    if not file_path.exists():
        raise FileNotFoundError(f"Spreadsheet not found: {file_path}")

    if file_path.suffix.lower() == ".csv":
        return pd.read_csv(file_path, dtype=object)

    sheets = get_sheet_names(file_path)
    logger.info("Found sheets: %s", ", ".join(sheets))
    target = sheet_name or sheets[0]
    if target not in sheets:
        raise SpreadsheetError(f'Sheet "{target}" does not exist in {file_path.name}')
    logger.info("Using sheet: %s", target)
    return pd.read_excel(file_path, sheet_name=target, dtype=object)


def get_sheet_names(file_path: Path) -> list[str]:
    if file_path.suffix.lower() not in EXCEL_SUFFIXES:
        raise SpreadsheetError(f"Unsupported file format: {file_path.suffix}")
    try:
        with pd.ExcelFile(file_path) as workbook:
            return [str(name) for name in workbook.sheet_names]
    except (OSError, ValueError) as exc:
        raise SpreadsheetError(f"Cannot open workbook {file_path}: {exc}") from exc


def read_rows(
    file_path: Path,
    sheet_name: Optional[str] = None,
    max_rows: int = 0,
) -> list[dict[str, Any]]:
    """Read a sheet (default: the first) into ordered source records.

    Args:
        file_path: Path to an XLSX/XLSM workbook or a CSV file
        sheet_name: Sheet to read; None selects the first sheet
        max_rows: Read at most this many data rows (0 = all)

    Raises:
        FileNotFoundError: If the file does not exist
        SpreadsheetError: If the format or sheet is invalid
    """
    df = _read_frame(Path(file_path), sheet_name)
    total = len(df)
    if max_rows > 0:
        df = df.head(max_rows)
        logger.info("Limiting import to %s of %s rows", len(df), total)

    columns = [str(column) for column in df.columns]
    rows = [
        {column: _cell(value) for column, value in zip(columns, record)}
        for record in df.itertuples(index=False, name=None)
    ]
    logger.info("Read %s rows with %s columns", len(rows), len(columns))
    return rows


@dataclass
class ColumnProfile:
    name: str
    non_empty: int
    total: int
    types: list[str] = field(default_factory=list)
    samples: list[Any] = field(default_factory=list)


@dataclass
class SheetProfile:
    name: str
    row_count: int
    columns: list[ColumnProfile] = field(default_factory=list)


def analyze_workbook(file_path: Path, sample_size: int = 2) -> list[SheetProfile]:
    """Profile every sheet: row count, columns, value types and samples."""
    file_path = Path(file_path)
    if not file_path.exists():
        raise FileNotFoundError(f"Spreadsheet not found: {file_path}")

    profiles = []
    for sheet in get_sheet_names(file_path):
        df = pd.read_excel(file_path, sheet_name=sheet, dtype=object)
        profile = SheetProfile(name=sheet, row_count=len(df))
        for column in df.columns:
            values = [v for v in (_cell(v) for v in df[column].tolist()) if v is not None]
            types = sorted({type(v).__name__ for v in values})
            profile.columns.append(
                ColumnProfile(
                    name=str(column),
                    non_empty=len(values),
                    total=len(df),
                    types=types,
                    samples=values[:sample_size],
                )
            )
        profiles.append(profile)
    return profiles
