import json
import logging
from io import BytesIO
from pathlib import Path
from typing import Any, Dict, List, Optional
import pandas as pd
from fastapi import UploadFile, HTTPException
from openpyxl import load_workbook
from stylematcher.core.config import get_settings
from stylematcher.core.errors import ErrorCodes, get_error_response
from stylematcher.core.performance import track_performance
from stylematcher.core.sanitization import sanitize_filename, sanitize_for_logging, validate_column_name
from stylematcher.services.classifier import is_numeric_value

logger = logging.getLogger(__name__)

ALLOWED_EXTENSIONS = {'.csv', '.xlsx', '.json'}

# Declared MIME type -> extension it should come with
MIME_TYPE_MAP = {
    'text/csv': '.csv',
    'application/json': '.json',
    'application/vnd.openxmlformats-officedocument.spreadsheetml.sheet': '.xlsx',
}

DANGEROUS_MIME_TYPES = {
    'application/x-executable',
    'application/x-sharedlib',
    'application/x-msdownload',
    'text/html',
    'application/javascript',
}


def _bad_request(code: str, detail: Optional[str] = None) -> HTTPException:
    return HTTPException(status_code=400, detail=get_error_response(code, detail))


def read_xlsx(contents: bytes) -> Optional[pd.DataFrame]:
    """
    Read the largest sheet of an .xlsx workbook with openpyxl.

    Merged ranges are filled with their top-left value so grouped headers
    and labels aren't lost. Returns None when openpyxl can't read the file.
    """
    try:
        wb = load_workbook(BytesIO(contents), data_only=True)
    except Exception as e:
        logger.warning(f"openpyxl could not open workbook: {e}")
        return None

    ws = max(wb.worksheets, key=lambda sheet: sheet.max_row)

    merged_ranges = list(ws.merged_cells.ranges)
    for merged in merged_ranges:
        value = ws.cell(merged.min_row, merged.min_col).value
        ws.unmerge_cells(str(merged))
        for row in range(merged.min_row, merged.max_row + 1):
            for col in range(merged.min_col, merged.max_col + 1):
                ws.cell(row, col, value)
    if merged_ranges:
        logger.info(f"Filled {len(merged_ranges)} merged ranges in sheet '{ws.title}'")

    values = list(ws.values)
    if not values:
        return pd.DataFrame()
    header, body = values[0], values[1:]
    return pd.DataFrame(body, columns=list(header))


def find_header_row(df: pd.DataFrame, max_scan_rows: int = 10) -> int:
    """
    Guess which of the first rows holds the column headers.

    Exports often open with a title line or notes. A header row spans most of
    the columns and holds unique, non-numeric labels. Numeric strings count
    as numbers since the raw scan reads every cell as text.
    """
    if len(df) < 2:
        return 0

    width = len(df.columns)
    best_row, best_score = 0, 0.0
    for row_idx in range(min(max_scan_rows, len(df))):
        cells = [v for v in df.iloc[row_idx] if pd.notna(v)]
        if not cells:
            continue

        numeric = sum(1 for v in cells if is_numeric_value(v))
        labels = sum(1 for v in cells if isinstance(v, str) and v.strip() and not is_numeric_value(v))
        unique = len({str(v).strip().lower() for v in cells})

        score = (
            0.3 * labels / len(cells)
            + 0.3 * unique / len(cells)
            + 0.1 * (1 - numeric / len(cells))
            + 0.3 * len(cells) / width
        )
        if row_idx == 0:
            score += 0.05
        if score > best_score:
            best_row, best_score = row_idx, score

    return best_row


def validate_file_extension(filename: str) -> str:
    """Return the lower-cased extension, or raise 400 if it isn't supported."""
    if not filename:
        raise _bad_request(ErrorCodes.INVALID_FILE_TYPE, "Filename is required.")

    file_ext = Path(filename).suffix.lower()
    if file_ext not in ALLOWED_EXTENSIONS:
        raise _bad_request(
            ErrorCodes.INVALID_FILE_TYPE,
            f"Unsupported file format: {file_ext or 'none'}. Allowed formats: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
        )
    return file_ext


def validate_mime_type(content_type: Optional[str], file_ext: str) -> None:
    """Reject executable/script MIME types; only warn on a plain mismatch."""
    if not content_type:
        return

    content_type = content_type.lower()
    expected_ext = MIME_TYPE_MAP.get(content_type)
    if expected_ext and expected_ext != file_ext:
        logger.warning(f"MIME type {content_type} doesn't match extension {file_ext}")

    if content_type in DANGEROUS_MIME_TYPES:
        raise _bad_request(ErrorCodes.INVALID_FILE_TYPE, f"File type '{content_type}' is not allowed.")


def _read_csv(contents: bytes) -> pd.DataFrame:
    encoding = 'utf-8'
    try:
        raw = pd.read_csv(BytesIO(contents), header=None, encoding=encoding)
    except UnicodeDecodeError:
        encoding = 'latin1'
        raw = pd.read_csv(BytesIO(contents), header=None, encoding=encoding)

    header_row = find_header_row(raw)
    if header_row > 0:
        logger.info(f"Auto-detected header at row {header_row}, skipping {header_row} leading rows")
    return pd.read_csv(BytesIO(contents), skiprows=header_row, header=0, encoding=encoding)


def _read_json(contents: bytes) -> pd.DataFrame:
    payload = json.loads(contents)
    # Accept a bare array or {"data": [...]}
    if isinstance(payload, dict) and isinstance(payload.get('data'), list):
        payload = payload['data']
    if not isinstance(payload, list) or not all(isinstance(item, dict) for item in payload):
        raise _bad_request(ErrorCodes.PARSE_ERROR, "JSON files must contain an array of objects.")
    return pd.DataFrame.from_records(payload)


@track_performance("parse_file")
async def parse_file(file: UploadFile) -> pd.DataFrame:
    """
    Parse an uploaded data file into a DataFrame.

    Supports CSV (utf-8, falling back to latin-1), XLSX and JSON arrays of
    objects. Validates extension and MIME type first.
    """
    file_ext = validate_file_extension(file.filename)
    validate_mime_type(file.content_type, file_ext)

    contents = await file.read()
    if len(contents) == 0:
        raise HTTPException(status_code=400, detail=get_error_response(ErrorCodes.FILE_EMPTY))

    try:
        if file_ext == '.csv':
            df = _read_csv(contents)
        elif file_ext == '.json':
            df = _read_json(contents)
        else:
            df = read_xlsx(contents)
            if df is None:
                df = pd.read_excel(BytesIO(contents))
    except HTTPException:
        raise
    except pd.errors.EmptyDataError:
        raise HTTPException(status_code=400, detail=get_error_response(ErrorCodes.FILE_EMPTY))
    except Exception as e:
        logger.error(f"Error parsing {file_ext} file {sanitize_for_logging(file.filename)}: {e}")
        raise _bad_request(ErrorCodes.PARSE_ERROR)

    if df.empty:
        raise HTTPException(status_code=400, detail=get_error_response(ErrorCodes.FILE_EMPTY))

    logger.info(f"Successfully parsed file: {sanitize_filename(file.filename)}, shape: {df.shape}")
    return df


def validate_file_content(df: pd.DataFrame) -> None:
    """
    Enforce row, column and cell-size limits and safe column names.

    Raises:
        HTTPException: 400 when a limit is exceeded
    """
    settings = get_settings()

    if len(df) > settings.max_file_rows:
        raise _bad_request(
            ErrorCodes.FILE_TOO_LARGE,
            f"File contains {len(df):,} rows. Maximum allowed: {settings.max_file_rows:,} rows."
        )

    if len(df.columns) > settings.max_file_columns:
        raise _bad_request(
            ErrorCodes.FILE_TOO_LARGE,
            f"File contains {len(df.columns)} columns. Maximum allowed: {settings.max_file_columns} columns."
        )

    for col in df.columns:
        if not validate_column_name(str(col)):
            raise _bad_request(ErrorCodes.PARSE_ERROR, f"Invalid column name: '{sanitize_for_logging(str(col), 80)}'.")

    for col in df.columns:
        if df[col].dtype == 'object':
            max_length = df[col].astype(str).str.len().max()
            if pd.notna(max_length) and max_length > settings.max_cell_size_bytes:
                raise _bad_request(
                    ErrorCodes.FILE_TOO_LARGE,
                    f"Column '{col}' holds values over {settings.max_cell_size_bytes} bytes."
                )


def clean_dataframe(df: pd.DataFrame) -> pd.DataFrame:
    """Drop fully empty rows/columns and collapse whitespace in headers."""
    df = df.dropna(how='all', axis=0).dropna(how='all', axis=1)
    df.columns = [' '.join(col.split()) if isinstance(col, str) else col for col in df.columns]
    return df


def dataframe_to_rows(df: pd.DataFrame) -> List[Dict[str, Any]]:
    """
    Convert a DataFrame into JSON-safe row objects.

    Missing values become None, datetimes become ISO strings and column
    names are always strings.
    """
    out = df.copy()
    out.columns = [str(col) for col in out.columns]

    for col in out.columns:
        if pd.api.types.is_datetime64_any_dtype(out[col]):
            out[col] = out[col].dt.strftime('%Y-%m-%dT%H:%M:%S')

    out = out.astype(object).where(out.notna(), None)
    return out.to_dict(orient='records')
