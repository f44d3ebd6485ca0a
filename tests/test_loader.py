"""
Tests for the Excel adapter (ATT.loader). Workbooks are built with openpyxl
inside tmp_path so no binary fixtures are needed.
"""

import datetime

import openpyxl
import pytest

from ATT.loader import cell_to_text, convert_to_tsv, format_number, gene_from_filename, is_excel_file, iter_sheet_rows
from ATT.parser import TableParser


def _write_workbook(path, rows):
    """rows: {1-based row index: list of cell values}; missing indexes stay empty."""
    wb = openpyxl.Workbook()
    ws = wb.active
    for row_index, values in rows.items():
        for col_index, value in enumerate(values, start=1):
            if value not in (None, ""):
                ws.cell(row=row_index, column=col_index, value=value)
    wb.save(path)
    return path


@pytest.mark.parametrize(
    "value, expected",
    [
        (3, "3"),
        (3.0, "3"),
        (0.25, "0.25"),
        (1e-07, "0.0000001"),
        (1e20, "100000000000000000000"),
        (-2.5, "-2.5"),
    ],
)
def test_format_number(value, expected):
    assert format_number(value) == expected


@pytest.mark.parametrize(
    "value, expected",
    [
        (None, ""),
        (True, "true"),
        (False, "false"),
        ("  *1 ", "*1"),
        (42, "42"),
        (datetime.datetime(2016, 7, 13), "07/13/16"),
        (datetime.date(2017, 1, 2), "01/02/17"),
    ],
)
def test_cell_to_text(value, expected):
    assert cell_to_text(value) == expected


def test_gene_from_filename():
    assert gene_from_filename("CYP2C9 allele definition table.xlsx") == "CYP2C9"
    assert gene_from_filename("/some/dir/TPMT-2017.xlsx") == "TPMT"
    assert gene_from_filename("allele table.xlsx") is None


def test_is_excel_file():
    assert is_excel_file("CYP2C9.xlsx")
    assert is_excel_file("CYP2C9.XLSM")
    assert not is_excel_file("~$CYP2C9.xlsx")
    assert not is_excel_file("CYP2C9.allele.translation.tsv")


def test_iter_sheet_rows_skips_short_gaps(tmp_path):
    path = _write_workbook(tmp_path / "T.xlsx", {1: ["a", "b", None], 4: ["c"]})
    assert list(iter_sheet_rows(path)) == [["a", "b"], ["c"]]


def test_iter_sheet_rows_stops_after_three_empty_rows(tmp_path):
    path = _write_workbook(tmp_path / "T.xlsx", {1: ["a"], 2: ["b"], 6: ["ignored"]})
    assert list(iter_sheet_rows(path)) == [["a"], ["b"]]


def test_convert_pads_to_first_row_width(tmp_path):
    path = _write_workbook(
        tmp_path / "TPMT allele definitions.xlsx",
        {1: ["GENE: TPMT", "01/02/17", "x"], 2: ["y"], 3: [None, 1.5, 2.0, "z"]},
    )
    out = convert_to_tsv(path)
    assert out == tmp_path / "TPMT.allele.translation.tsv"
    assert out.read_text(encoding="utf-8").splitlines() == [
        "GENE: TPMT\t01/02/17\tx",
        "y\t\t",
        "\t1.5\t2\tz",
    ]


def test_convert_explicit_target(tmp_path):
    path = _write_workbook(tmp_path / "book.xlsx", {1: ["a", "b"]})
    out = convert_to_tsv(path, tmp_path / "custom.tsv")
    assert out.read_text(encoding="utf-8") == "a\tb\n"


def test_convert_rejects_non_excel(tmp_path):
    txt = tmp_path / "CYP2C9.txt"
    txt.write_text("hello", encoding="utf-8")
    with pytest.raises(ValueError, match="Not an Excel file"):
        convert_to_tsv(txt)
    with pytest.raises(ValueError, match="Not a file"):
        convert_to_tsv(tmp_path / "missing.xlsx")


def test_convert_requires_gene_in_name(tmp_path):
    path = _write_workbook(tmp_path / "allele table.xlsx", {1: ["a"]})
    with pytest.raises(ValueError, match="gene symbol"):
        convert_to_tsv(path)


def test_converted_workbook_parses(tmp_path, table_lines, resolver):
    rows = {}
    for index, line in enumerate(table_lines, start=1):
        if line.strip():
            rows[index] = line.split("\t")
    path = _write_workbook(tmp_path / "CYP2C9.xlsx", rows)

    out = convert_to_tsv(path)
    with open(out, encoding="utf-8") as fh:
        converted = fh.read().splitlines()

    parser = TableParser(haplotype_resolver=resolver, builds=["b38"])
    original = parser.parse(table_lines)
    assert parser.parse(converted) == original


def test_convert_corrupt_workbook_raises_value_error(tmp_path):
    broken = tmp_path / "CYP2C9 broken.xlsx"
    broken.write_bytes(b"not a zip")
    with pytest.raises(ValueError, match="Cannot read workbook"):
        convert_to_tsv(broken)
    assert not (tmp_path / "CYP2C9.allele.translation.tsv").exists()
