import logging
import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
import structlog
from prometheus_fastapi_instrumentator import Instrumentator

from route_planner.api import routes
from route_planner.core.ai_client import AiRouteClient
from route_planner.core.gazetteer import default_gazetteer
from route_planner.core.orchestrator import ItineraryValidationError
from route_planner.core.settings import get_settings
from route_planner.middleware.logging import RequestLoggingMiddleware

settings = get_settings()

BEARER_RE = re.compile(r'(Bearer\s+)[A-Za-z0-9\-._~+/]+=*')
API_KEY_RE = re.compile(r'\bsk-[A-Za-z0-9\-_]{8,}')


# Redaction processor to scrub provider credentials from any string values in the event dict
def redact_api_keys(logger, method_name, event_dict):

    def scrub(v):
        if isinstance(v, str):
            v = BEARER_RE.sub(r'\1REDACTED', v)
            v = API_KEY_RE.sub('REDACTED', v)
            if settings.OPENAI_API_KEY and settings.OPENAI_API_KEY.strip():
                v = v.replace(settings.OPENAI_API_KEY.strip(), 'REDACTED')
            return v
        if isinstance(v, list):
            return [scrub(x) for x in v]
        if isinstance(v, dict):
            return {k: scrub(vv) for k, vv in v.items()}
        return v

    for k, v in list(event_dict.items()):
        event_dict[k] = scrub(v)
    return event_dict


def configure_logging():
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            redact_api_keys,
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    handlers = [logging.StreamHandler()]
    if settings.LOG_FILE:
        handlers.append(logging.FileHandler(settings.LOG_FILE))
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format='%(message)s',  # structlog handles formatting
        handlers=handlers
    )


configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Starting application...")
    gazetteer = default_gazetteer()
    logger.info("Gazetteer loaded", entries=len(gazetteer))
    if not AiRouteClient().is_available():
        logger.info("AI route generation disabled or not configured; rule-based itineraries will be served")

    yield

    logger.info("Shutting down application...")


app = FastAPI(
    title="Route Planner API",
    description="Itinerary generation and trending routes for the travel community",
    version="1.0.0",
    lifespan=lifespan
)

# Add rate limiter to app state
app.state.limiter = routes.limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Add request logging middleware
app.add_middleware(RequestLoggingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Initialize Prometheus metrics instrumentation
Instrumentator().instrument(app).expose(app, endpoint="/metrics")


@app.exception_handler(ItineraryValidationError)
async def validation_exception_handler(request: Request, exc: ItineraryValidationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(
        "unhandled_exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        exc_info=True
    )
    return JSONResponse(
        status_code=500,
        content={"detail": "Internal server error"}
    )


# Health check endpoint
@app.get("/")
def health_check():
    return {"status": "API active", "version": "1.0.0"}


@app.get("/health")
def health_check_detailed():
    """Detailed health check endpoint"""
    return {
        "status": "healthy",
        "version": "1.0.0",
        "components": {
            "ai_generation": "available" if AiRouteClient().is_available() else "fallback_only",
            "gazetteer": f"{len(default_gazetteer())} entries",
            "api": "healthy"
        },
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


prefix = "/api/v1"

app.include_router(routes.router, prefix=prefix)
