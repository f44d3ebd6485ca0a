"""
Excel → tab-separated text for allele definition workbooks.

The parser only ever sees delimited text; this adapter turns the first
worksheet of a workbook into those lines:
  - numbers as plain decimals (no exponent, no trailing ".0")
  - booleans as "true"/"false", dates as MM/DD/YY, text trimmed
  - empty rows skipped, three empty rows in a row end the sheet
  - every line padded to the width of the first non-empty row
"""

from __future__ import annotations

import datetime
import decimal
import logging
import pathlib
import re
import typing
import zipfile
from typing import Iterator, Optional

import openpyxl
from openpyxl.utils.exceptions import InvalidFileException

logger = logging.getLogger(__name__)

MAX_EMPTY_ROWS = 3
EXCEL_SUFFIXES = (".xlsx", ".xlsm")
TSV_SUFFIX = ".allele.translation.tsv"

_GENE_FROM_FILENAME = re.compile(r"^([A-Z0-9]+)")


def format_number(value: typing.Union[int, float]) -> str:
    """
    Render a numeric cell without exponent or trailing ".0".

        3.0 -> "3", 0.25 -> "0.25", 1e-07 -> "0.0000001", 1e20 -> "100000000000000000000"
    """
    if isinstance(value, int):
        return str(value)
    if value.is_integer():
        return str(int(value))
    # repr gives the shortest round-tripping digits; Decimal drops the exponent
    return format(decimal.Decimal(repr(value)), "f")


def cell_to_text(value: typing.Any) -> str:
    """Render one openpyxl cell value as table text ("" for empty cells)."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return format_number(value)
    if isinstance(value, (datetime.datetime, datetime.date)):
        return value.strftime("%m/%d/%y")
    return str(value).strip()


def iter_sheet_rows(workbook_path: typing.Union[str, pathlib.Path], sheet_index: int = 0) -> Iterator[list[str]]:
    """
    Yield the non-empty rows of one worksheet as lists of cell text.

    Trailing empty cells are dropped; iteration stops after MAX_EMPTY_ROWS
    consecutive empty rows.
    """
    workbook = openpyxl.load_workbook(workbook_path, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[sheet_index]
        empty_rows = 0
        for values in sheet.iter_rows(values_only=True):
            cells = [cell_to_text(v) for v in values]
            while cells and not cells[-1]:
                cells.pop()
            if not cells:
                empty_rows += 1
                if empty_rows >= MAX_EMPTY_ROWS:
                    break
                continue
            empty_rows = 0
            yield cells
    finally:
        workbook.close()


def gene_from_filename(path: typing.Union[str, pathlib.Path]) -> Optional[str]:
    """Leading upper-case gene symbol of a workbook name ("CYP2C9 allele table.xlsx" -> "CYP2C9")."""
    m = _GENE_FROM_FILENAME.match(pathlib.Path(path).name)
    return m.group(1) if m else None


def is_excel_file(path: typing.Union[str, pathlib.Path]) -> bool:
    path = pathlib.Path(path)
    return path.suffix.lower() in EXCEL_SUFFIXES and not path.name.startswith("~")


def convert_to_tsv(
    workbook_path: typing.Union[str, pathlib.Path],
    tsv_path: typing.Union[str, pathlib.Path, None] = None,
) -> pathlib.Path:
    """
    Convert the first worksheet of `workbook_path` to a tab-separated file.

    Without `tsv_path`, writes `<GENE>.allele.translation.tsv` next to the
    workbook. Raises ValueError for non-Excel or unreadable input, or when no
    gene symbol can be taken from the file name.
    """
    workbook_path = pathlib.Path(workbook_path)
    if not workbook_path.is_file():
        raise ValueError(f"Not a file: {str(workbook_path)!r}")
    if workbook_path.suffix.lower() not in EXCEL_SUFFIXES:
        raise ValueError(f"Not an Excel file (does not end with .xlsx or .xlsm): {workbook_path}")

    if tsv_path is None:
        gene = gene_from_filename(workbook_path)
        if gene is None:
            raise ValueError(f"Cannot take a gene symbol from file name {workbook_path.name!r}")
        tsv_path = workbook_path.parent / f"{gene}{TSV_SUFFIX}"
    tsv_path = pathlib.Path(tsv_path)

    # read everything first so a broken workbook never leaves a half-written file
    try:
        rows = list(iter_sheet_rows(workbook_path))
    except (zipfile.BadZipFile, InvalidFileException, KeyError) as e:
        raise ValueError(f"Cannot read workbook {workbook_path.name!r}: {e}") from e
    min_columns = len(rows[0]) if rows else 0
    lines = []
    for cells in rows:
        cells = cells + [""] * (min_columns - len(cells))
        lines.append("\t".join(cells))

    with open(tsv_path, "w", encoding="utf-8", newline="") as fh:
        for line in lines:
            fh.write(line + "\n")
    logger.info(f"Converted {workbook_path} -> {tsv_path} ({len(lines)} lines)")
    return tsv_path
