# This project was developed with assistance from AI tools.
"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.config import log_config_status, settings
from .core.logging import configure_logging
from .middleware.cors import OpenCORSMiddleware
from .routes import health, parse_report, referral, switchboard, validators
from .schemas.errors import GENERIC_MESSAGE

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI):
    """Application startup/shutdown lifecycle."""
    configure_logging(settings.LOG_LEVEL)
    log_config_status()
    from .services.crm import init_crm_client
    from .services.dedupe import init_dedupe_store
    from .services.extraction import init_extraction_service
    from .services.storage import init_storage_service

    store = init_dedupe_store(settings)
    init_extraction_service(store)
    init_storage_service(settings)
    crm = init_crm_client(settings)
    yield
    if crm is not None:
        await crm.aclose()
    await store.aclose()


app = FastAPI(
    title="UnderwriteIQ Lite API",
    description="Credit report analyzer: extraction, underwriting, and dispute letters",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(OpenCORSMiddleware)

_HTTP_STATUS_MESSAGES: dict[int, str] = {
    404: "Not found",
    405: "Method not allowed",
}


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Convert HTTPException to the ``{ok: false}`` envelope."""
    msg = _HTTP_STATUS_MESSAGES.get(exc.status_code, str(exc.detail))
    return JSONResponse(status_code=exc.status_code, content={"ok": False, "msg": msg})


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Malformed bodies are a validation rejection, answered with 200."""
    logger.info("Request validation failed on %s: %d errors", request.url.path, len(exc.errors()))
    return JSONResponse(status_code=200, content={"ok": False, "msg": "Invalid request."})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Catch-all for unhandled exceptions -- log and return the fallback body."""
    logger.exception("Unhandled exception on %s", request.url.path)
    # Rendered outside the middleware stack, so the CORS header is set here
    return JSONResponse(
        status_code=200,
        content={"ok": False, "msg": GENERIC_MESSAGE},
        headers={"Access-Control-Allow-Origin": "*"},
    )


# Include routers
app.include_router(health.router, tags=["health"])
app.include_router(switchboard.router, tags=["switchboard"])
app.include_router(parse_report.router, tags=["parse"])
app.include_router(validators.router, tags=["validators"])
app.include_router(referral.router, tags=["referral"])
