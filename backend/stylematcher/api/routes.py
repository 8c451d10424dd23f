import logging
from typing import Optional
from fastapi import APIRouter, UploadFile, File, Form, HTTPException, Request
from stylematcher.core.schemas import (
    AnalysisResult,
    ClassificationRequest,
    ClassificationResponse,
    StyleDetection,
    SuggestionRequest,
    SuggestionResponse,
)
from stylematcher.core.errors import ErrorCodes, get_error_response
from stylematcher.core.config import get_settings
from stylematcher.core.rate_limit import limiter, analysis_rate_limit
from stylematcher.core.sanitization import sanitize_filename, sanitize_for_logging, sanitize_style_label
from stylematcher.services.classifier import classify_columns
from stylematcher.services.parser import parse_file, clean_dataframe, validate_file_content, dataframe_to_rows
from stylematcher.services.suggestions import generate_suggestions
from stylematcher.services.vision import detect_style

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/health")
async def health_check():
    return {"status": "ok"}


async def _check_file_size_streaming(file: UploadFile, limit_bytes: int) -> int:
    """
    Measure an upload in 1MB chunks, stopping early once it passes the limit.
    Leaves the file pointer at the start.
    """
    file_size = 0
    chunk_size = 1024 * 1024

    await file.seek(0)
    while True:
        chunk = await file.read(chunk_size)
        if not chunk:
            break
        file_size += len(chunk)
        if file_size > limit_bytes:
            break

    await file.seek(0)
    return file_size


async def _require_size(file: UploadFile, limit_bytes: int, limit_mb: int, correlation_id: str) -> int:
    file_size = await _check_file_size_streaming(file, limit_bytes)
    if file_size > limit_bytes:
        raise HTTPException(
            status_code=413,
            detail=get_error_response(
                ErrorCodes.FILE_TOO_LARGE,
                f"Maximum size is {limit_mb}MB.",
                correlation_id=correlation_id
            )
        )
    if file_size == 0:
        raise HTTPException(
            status_code=400,
            detail=get_error_response(ErrorCodes.FILE_EMPTY, correlation_id=correlation_id)
        )
    return file_size


@router.post("/classify", response_model=ClassificationResponse)
async def classify(payload: ClassificationRequest):
    """Classify every column of a JSON dataset."""
    profiles = classify_columns(payload.rows)
    return ClassificationResponse(columns=list(profiles.values()))


@router.post("/suggest", response_model=SuggestionResponse)
async def suggest(payload: SuggestionRequest):
    """Chart suggestions for a JSON dataset, optionally favouring a style."""
    preferred_style = sanitize_style_label(payload.preferred_style)
    profiles = classify_columns(payload.rows)
    suggestions = generate_suggestions(payload.rows, preferred_style, profiles=profiles)
    return SuggestionResponse(
        columns=list(profiles.values()),
        suggestions=suggestions,
        preferred_style=preferred_style,
    )


@router.post("/detect-style", response_model=StyleDetection)
async def detect_style_endpoint(request: Request, image: UploadFile = File(...)):
    """Detect the chart style shown in a reference image."""
    settings = get_settings()
    correlation_id = getattr(request.state, 'correlation_id', 'unknown')
    await _require_size(image, settings.max_image_size_bytes, settings.max_image_size_mb, correlation_id)
    content = await image.read()
    return detect_style(sanitize_filename(image.filename), content)


@router.post("/analyze", response_model=AnalysisResult)
@limiter.limit(analysis_rate_limit)
async def analyze(
    request: Request,
    file: UploadFile = File(...),
    image: Optional[UploadFile] = File(None),
    preferred_style: Optional[str] = Form(None),
):
    """
    Full flow: parse a data file, optionally read a reference image, and
    return column profiles plus suggestions.

    An explicit ``preferred_style`` wins over the style detected in the image.
    """
    settings = get_settings()
    correlation_id = getattr(request.state, 'correlation_id', 'unknown')

    file_size = await _require_size(file, settings.max_file_size_bytes, settings.max_file_size_mb, correlation_id)
    safe_filename = sanitize_filename(file.filename)
    logger.info(f"Processing file: {sanitize_for_logging(safe_filename)}, size: {file_size / 1024:.2f}KB")

    df = await parse_file(file)
    validate_file_content(df)
    df = clean_dataframe(df)
    if df.empty:
        raise HTTPException(
            status_code=400,
            detail=get_error_response(
                ErrorCodes.PARSE_ERROR,
                "File contains no data after removing empty rows and columns.",
                correlation_id=correlation_id
            )
        )

    if len(df) > settings.max_dataset_rows:
        logger.info(f"Dataset truncated from {len(df)} to {settings.max_dataset_rows} rows")
        df = df.iloc[:settings.max_dataset_rows]
    rows = dataframe_to_rows(df)

    detected: Optional[StyleDetection] = None
    if image is not None and image.filename:
        await _require_size(image, settings.max_image_size_bytes, settings.max_image_size_mb, correlation_id)
        detected = detect_style(sanitize_filename(image.filename), await image.read())

    style = sanitize_style_label(preferred_style)
    if style is None and detected is not None:
        style = detected.detected_label

    try:
        profiles = classify_columns(rows)
        suggestions = generate_suggestions(rows, style, profiles=profiles)
    except Exception as e:
        logger.error(f"Suggestion generation failed for {sanitize_for_logging(safe_filename)}: {e}", exc_info=True)
        raise HTTPException(
            status_code=500,
            detail=get_error_response(ErrorCodes.PROCESSING_ERROR, correlation_id=correlation_id)
        )

    logger.info(f"Analyzed {sanitize_for_logging(safe_filename)}: {len(rows)} rows, {len(suggestions)} suggestions")

    return AnalysisResult(
        filename=safe_filename,
        row_count=len(rows),
        columns=list(profiles.values()),
        suggestions=suggestions,
        preferred_style=style,
        detected_style=detected,
        dataset=rows,
    )
