from __future__ import annotations

from pathlib import Path

import pytest

from sheetload.excel.reader import ReadError, read_file_rows, staged_copy


def test_first_row_is_header(tmp_path: Path, make_xlsx):
    p = make_xlsx(
        tmp_path / "prices.xlsx",
        [{"Sku": "A-1", "Price": 1.5, "Keyword": "x"}, {"Sku": "A-2", "Price": None, "Keyword": "y"}],
    )
    rows = read_file_rows(p)
    assert rows == [
        {"Sku": "A-1", "Price": 1.5, "Keyword": "x"},
        {"Sku": "A-2", "Price": None, "Keyword": "y"},
    ]
    assert list(rows[0]) == ["Sku", "Price", "Keyword"]


def test_integer_cells_are_plain_python(tmp_path: Path, make_xlsx):
    p = make_xlsx(tmp_path / "q.xlsx", [{"Qty": 3}])
    (row,) = read_file_rows(p)
    assert row["Qty"] == 3
    assert type(row["Qty"]) in (int, float)


def test_named_sheet_case_insensitive(tmp_path: Path, make_xlsx):
    p = make_xlsx(tmp_path / "s.xlsx", [{"A": 1}], sheet_name="Data")
    assert read_file_rows(p, "data") == [{"A": 1}]
    with pytest.raises(ReadError, match="sheet 'Other' not found"):
        read_file_rows(p, "Other")


def test_interior_blank_rows_kept_trailing_dropped(tmp_path: Path, make_xlsx):
    p = make_xlsx(tmp_path / "gaps.xlsx", [{"A": "x"}, {"A": None}, {"A": "y"}, {"A": None}, {"A": None}])
    assert [r["A"] for r in read_file_rows(p)] == ["x", None, "y"]


def test_na_like_text_is_not_missing(tmp_path: Path, make_xlsx):
    p = make_xlsx(
        tmp_path / "regions.xlsx",
        [
            {"Region": "NA", "Keyword": "k1"},
            {"Region": "EU", "Keyword": "NA"},
            {"Region": "null", "Keyword": "k3"},
            {"Region": "#N/A", "Keyword": "n/a"},
            {"Region": "None", "Keyword": "NaN"},
        ],
    )
    assert read_file_rows(p) == [
        {"Region": "NA", "Keyword": "k1"},
        {"Region": "EU", "Keyword": "NA"},
        {"Region": "null", "Keyword": "k3"},
        {"Region": "#N/A", "Keyword": "n/a"},
        {"Region": "None", "Keyword": "NaN"},
    ]


def test_glob_metacharacters_in_name(tmp_path: Path, make_xlsx):
    p = make_xlsx(tmp_path / "[draft] prices*.xlsx", [{"A": "x"}])
    assert read_file_rows(p) == [{"A": "x"}]


def test_staged_copy_is_removed(tmp_path: Path):
    odd = tmp_path / "report[1].xlsx"
    odd.write_bytes(b"data")
    with staged_copy(odd) as staged:
        assert staged != odd
        assert staged.name == "report_1_.xlsx"
        assert staged.read_bytes() == b"data"
    assert not staged.exists()
    assert not staged.parent.exists()


def test_staged_copy_passthrough(tmp_path: Path):
    plain = tmp_path / "plain.xlsx"
    plain.write_bytes(b"data")
    with staged_copy(plain) as staged:
        assert staged == plain
    assert plain.exists()


@pytest.mark.parametrize("content", [b"", b"this is not a workbook"])
def test_unreadable_files(tmp_path: Path, content: bytes):
    p = tmp_path / "bad.xlsx"
    p.write_bytes(content)
    with pytest.raises(ReadError):
        read_file_rows(p)


def test_missing_file(tmp_path: Path):
    with pytest.raises(ReadError, match="not found"):
        read_file_rows(tmp_path / "gone.xlsx")
