"""
Per-client rate limiting (slowapi).
"""
from fastapi import Request
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from stylematcher.core.config import get_settings
from stylematcher.core.errors import ErrorCodes, get_error_response

limiter = Limiter(key_func=get_remote_address)


def analysis_rate_limit() -> str:
    """Limit string read at request time so settings reloads take effect."""
    return f"{get_settings().rate_limit_per_minute}/minute"


def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Structured 429 body instead of slowapi's plain-text default."""
    correlation_id = getattr(request.state, 'correlation_id', 'unknown')
    return JSONResponse(
        status_code=429,
        content=get_error_response(ErrorCodes.RATE_LIMIT_EXCEEDED, correlation_id=correlation_id),
        headers={
            "Retry-After": str(getattr(exc, 'retry_after', 60)),
            "X-Correlation-ID": correlation_id
        }
    )
