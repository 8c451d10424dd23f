import sys
import logging
from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from slowapi.errors import RateLimitExceeded
from stylematcher.api.routes import router
from stylematcher.api.metrics import router as metrics_router
from stylematcher.core.config import get_settings
from stylematcher.core.logging import configure_logging
from stylematcher.core.middleware import CorrelationIDMiddleware, TimeoutMiddleware, install_correlation_record_factory
from stylematcher.core.rate_limit import limiter, rate_limit_handler
from stylematcher.core.security import SecurityHeadersMiddleware

# Load environment variables
load_dotenv()

# Load and validate configuration
try:
    settings = get_settings()
except Exception as e:
    logging.basicConfig(level=logging.ERROR)
    logging.getLogger(__name__).error(f"Failed to load configuration: {e}")
    sys.exit(1)

install_correlation_record_factory()
configure_logging(settings.log_level)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Style Matcher API",
    description="Column classification and chart suggestions for tabular data",
    version="1.0.0"
)

app.state.limiter = limiter
app.state.settings = settings
app.add_exception_handler(RateLimitExceeded, rate_limit_handler)

# Last added runs first: correlation ids wrap everything else
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(TimeoutMiddleware, timeout_seconds=settings.request_timeout_seconds)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST"],
    allow_headers=["Content-Type", "Authorization", "X-Correlation-ID"],
    expose_headers=["X-Correlation-ID", "X-Response-Time"]
)
app.add_middleware(GZipMiddleware, minimum_size=1000)
app.add_middleware(CorrelationIDMiddleware)

logger.info(f"CORS allowed origins: {settings.allowed_origins_list}")

app.include_router(router, prefix="/api")
app.include_router(metrics_router, prefix="/api")


@app.get("/")
async def root():
    return {"message": "Style Matcher API is running"}

logger.info("Application started successfully")
