"""
Error codes and user-facing error bodies.
"""
from typing import Dict, Optional


class ErrorCodes:
    FILE_TOO_LARGE = "FILE_TOO_LARGE"
    FILE_EMPTY = "FILE_EMPTY"
    INVALID_FILE_TYPE = "INVALID_FILE_TYPE"
    INVALID_IMAGE = "INVALID_IMAGE"
    PARSE_ERROR = "PARSE_ERROR"
    PROCESSING_ERROR = "PROCESSING_ERROR"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    TIMEOUT = "TIMEOUT"
    UNKNOWN_ERROR = "UNKNOWN_ERROR"


ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    ErrorCodes.FILE_TOO_LARGE: {
        "message": "Your file is too large",
        "detail": "The uploaded file exceeds the size limit for a single analysis.",
        "suggestion": "💡 Upload a sample of your data or only the columns you want to chart. A few thousand rows are plenty to pick a chart style."
    },
    ErrorCodes.FILE_EMPTY: {
        "message": "Your file looks empty",
        "detail": "We couldn't find any rows in the file you uploaded.",
        "suggestion": "💡 Make sure the file was saved with data in it and that the first row holds the column names."
    },
    ErrorCodes.INVALID_FILE_TYPE: {
        "message": "We need a CSV, Excel or JSON file",
        "detail": "Data files must be .csv, .xlsx or .json.",
        "suggestion": "💡 Most spreadsheet tools can export to CSV from the File menu."
    },
    ErrorCodes.INVALID_IMAGE: {
        "message": "We couldn't read your reference image",
        "detail": "The style reference must be a PNG, JPEG, GIF or WebP image.",
        "suggestion": "💡 Take a screenshot of the chart you like and upload that instead."
    },
    ErrorCodes.PARSE_ERROR: {
        "message": "We're having trouble reading your file",
        "detail": "The file format looks damaged or unexpected.",
        "suggestion": "💡 Save the file again as a fresh CSV or Excel file and make sure column names sit in the first row."
    },
    ErrorCodes.PROCESSING_ERROR: {
        "message": "Something went wrong while processing",
        "detail": "We hit a snag while analyzing your data.",
        "suggestion": "💡 Remove completely empty rows or columns and try again."
    },
    ErrorCodes.RATE_LIMIT_EXCEEDED: {
        "message": "Slow down a bit",
        "detail": "You're sending analyses faster than we allow per minute.",
        "suggestion": "💡 Wait about a minute and try again."
    },
    ErrorCodes.TIMEOUT: {
        "message": "This is taking longer than expected",
        "detail": "Your request took too long to process.",
        "suggestion": "💡 Try a smaller sample of your data."
    },
    ErrorCodes.UNKNOWN_ERROR: {
        "message": "Something unexpected happened",
        "detail": "We encountered an issue we weren't expecting.",
        "suggestion": "💡 Give it another try in a moment. If it keeps happening, try a different file."
    }
}


def get_error_response(
    error_code: str,
    additional_detail: Optional[str] = None,
    correlation_id: Optional[str] = None
) -> Dict[str, str]:
    """
    Build the error body for an error code.

    Args:
        error_code: One of the ErrorCodes constants (unknown codes fall back to UNKNOWN_ERROR text)
        additional_detail: Optional detail appended to the canned one
        correlation_id: Request correlation id, included when given

    Returns:
        Dictionary with code, message, detail and suggestion
    """
    error_info = ERROR_MESSAGES.get(error_code, ERROR_MESSAGES[ErrorCodes.UNKNOWN_ERROR])

    response = {
        "code": error_code,
        "message": error_info["message"],
        "detail": error_info["detail"],
        "suggestion": error_info["suggestion"]
    }

    if additional_detail:
        response["detail"] = f"{response['detail']} {additional_detail}"
    if correlation_id:
        response["correlation_id"] = correlation_id

    return response
