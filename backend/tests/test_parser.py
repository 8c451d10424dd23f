"""
Unit tests for the parser service.
"""
import json
from io import BytesIO
import pandas as pd
import pytest
from fastapi import UploadFile, HTTPException
from openpyxl import Workbook
from stylematcher.services.parser import (
    clean_dataframe,
    dataframe_to_rows,
    find_header_row,
    parse_file,
    validate_file_content,
    validate_file_extension,
    validate_mime_type,
)


def _upload(filename, content):
    return UploadFile(filename=filename, file=BytesIO(content))


def _xlsx_bytes(build):
    wb = Workbook()
    build(wb)
    buf = BytesIO()
    wb.save(buf)
    return buf.getvalue()


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_csv():
    df = await parse_file(_upload("test.csv", b"name,age,city\nJohn,30,Boston\nJane,25,London"))
    assert len(df) == 2
    assert list(df.columns) == ["name", "age", "city"]
    assert df.iloc[0]["name"] == "John"
    assert df.iloc[0]["age"] == 30


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_csv_latin1_fallback():
    content = "name,value\nJosé,100\nMaría,200".encode('latin1')
    df = await parse_file(_upload("test.csv", content))
    assert len(df) == 2
    assert df.iloc[0]["name"] == "José"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_csv_skips_title_row():
    content = b"Quarterly Sales Report,,\nname,age,score\nJohn,30,88.5\nJane,25,91.0"
    df = await parse_file(_upload("report.csv", content))
    assert list(df.columns) == ["name", "age", "score"]
    assert len(df) == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_json_array():
    payload = [{"Category": "Books", "Value": 3}, {"Category": "Sports", "Value": 5}]
    df = await parse_file(_upload("data.json", json.dumps(payload).encode()))
    assert list(df.columns) == ["Category", "Value"]
    assert len(df) == 2


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_json_data_envelope():
    payload = {"data": [{"a": 1}, {"a": 2}]}
    df = await parse_file(_upload("data.json", json.dumps(payload).encode()))
    assert df["a"].tolist() == [1, 2]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_json_rejects_scalars():
    with pytest.raises(HTTPException) as exc_info:
        await parse_file(_upload("data.json", b"[1, 2, 3]"))
    assert exc_info.value.status_code == 400
    assert exc_info.value.detail["code"] == "PARSE_ERROR"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_malformed_json():
    with pytest.raises(HTTPException) as exc_info:
        await parse_file(_upload("data.json", b"{not json"))
    assert exc_info.value.detail["code"] == "PARSE_ERROR"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_xlsx_largest_sheet_and_merged_cells():
    def build(wb):
        notes = wb.active
        notes.title = "Notes"
        notes.append(["just a note"])

        data = wb.create_sheet("Data")
        data.append(["Region", "Quarter", "Revenue"])
        data.append(["Northeast", "Q1", 100])
        data.append([None, "Q2", 120])
        data.append(["Pacific", "Q1", 90])
        data.merge_cells("A2:A3")

    df = await parse_file(_upload("sales.xlsx", _xlsx_bytes(build)))
    assert list(df.columns) == ["Region", "Quarter", "Revenue"]
    assert df["Region"].tolist() == ["Northeast", "Northeast", "Pacific"]


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_empty_file():
    with pytest.raises(HTTPException) as exc_info:
        await parse_file(_upload("test.csv", b""))
    assert exc_info.value.status_code == 400
    assert exc_info.value.detail["code"] == "FILE_EMPTY"


@pytest.mark.asyncio
@pytest.mark.unit
async def test_parse_invalid_extension():
    with pytest.raises(HTTPException) as exc_info:
        await parse_file(_upload("test.txt", b"some content"))
    assert exc_info.value.status_code == 400
    assert exc_info.value.detail["code"] == "INVALID_FILE_TYPE"
    assert "Unsupported file format" in exc_info.value.detail["detail"]


@pytest.mark.unit
def test_validate_file_extension():
    assert validate_file_extension("Data.CSV") == ".csv"
    assert validate_file_extension("book.xlsx") == ".xlsx"
    with pytest.raises(HTTPException):
        validate_file_extension("noext")
    with pytest.raises(HTTPException):
        validate_file_extension("")


@pytest.mark.unit
def test_validate_mime_type():
    validate_mime_type("text/csv", ".csv")
    validate_mime_type(None, ".csv")
    # mismatch is only logged
    validate_mime_type("application/json", ".csv")
    with pytest.raises(HTTPException):
        validate_mime_type("text/html", ".csv")


@pytest.mark.unit
def test_find_header_row_defaults_to_first():
    raw = pd.DataFrame([["name", "age"], ["John", "30"], ["Jane", "25"]])
    assert find_header_row(raw) == 0


@pytest.mark.unit
def test_find_header_row_after_title():
    raw = pd.DataFrame([["Report", None, None], ["a", "b", "c"], ["1", "2", "3"]])
    assert find_header_row(raw) == 1


@pytest.mark.unit
def test_clean_dataframe():
    df = pd.DataFrame({"  Unit   Price ": [1.0, None, 3.0], "empty": [None, None, None]})
    cleaned = clean_dataframe(df)
    assert list(cleaned.columns) == ["Unit Price"]
    assert len(cleaned) == 2


@pytest.mark.unit
def test_validate_file_content_limits(monkeypatch):
    from stylematcher.core.config import reload_settings

    monkeypatch.setenv("MAX_FILE_COLUMNS", "10")
    reload_settings()
    try:
        wide = pd.DataFrame([[i for i in range(11)]], columns=[f"c{i}" for i in range(11)])
        with pytest.raises(HTTPException) as exc_info:
            validate_file_content(wide)
        assert exc_info.value.detail["code"] == "FILE_TOO_LARGE"
        validate_file_content(wide.iloc[:, :10])
    finally:
        monkeypatch.delenv("MAX_FILE_COLUMNS")
        reload_settings()


@pytest.mark.unit
def test_validate_file_content_rejects_bad_column_names():
    df = pd.DataFrame({"../secret": [1]})
    with pytest.raises(HTTPException):
        validate_file_content(df)


@pytest.mark.unit
def test_dataframe_to_rows():
    df = pd.DataFrame({
        "when": pd.to_datetime(["2024-01-05", "2024-02-05"]),
        "value": [1.5, float("nan")],
        7: ["x", None],
    })
    rows = dataframe_to_rows(df)
    assert rows == [
        {"when": "2024-01-05T00:00:00", "value": 1.5, "7": "x"},
        {"when": "2024-02-05T00:00:00", "value": None, "7": None},
    ]
