"""
Security headers for API responses.
"""
import logging
from typing import Dict, Optional
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response

logger = logging.getLogger(__name__)

DOCS_PATHS = ("/docs", "/redoc")

DEFAULT_CSP = {
    "default-src": "'none'",
    "frame-ancestors": "'none'",
    "base-uri": "'none'",
}


def build_csp_header(csp: Dict[str, str]) -> str:
    return "; ".join(f"{key} {value}" for key, value in csp.items())


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add CSP, nosniff, frame and referrer headers to every response."""

    def __init__(self, app, csp_overrides: Optional[Dict[str, str]] = None):
        super().__init__(app)
        csp = DEFAULT_CSP.copy()
        if csp_overrides:
            csp.update(csp_overrides)
        self.headers = {
            "Content-Security-Policy": build_csp_header(csp),
            "X-Content-Type-Options": "nosniff",
            "X-Frame-Options": "DENY",
            "Referrer-Policy": "no-referrer",
        }

    async def dispatch(self, request: Request, call_next) -> Response:
        response = await call_next(request)
        for name, value in self.headers.items():
            # Interactive docs pull their UI from a CDN
            if name == "Content-Security-Policy" and request.url.path in DOCS_PATHS:
                continue
            response.headers.setdefault(name, value)
        return response
