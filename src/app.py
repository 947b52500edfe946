"""Main FastAPI application module.

This module initializes the FastAPI application, maps core errors onto HTTP
status codes and registers all route handlers.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from api.routes import admin, auth, flags, messages, questions, reviews
from config import API_HOST, API_PORT, CORS_ALLOWED_ORIGINS
from core.exceptions import (
    ConflictError,
    InvariantViolationError,
    NotFoundError,
    PermissionDeniedError,
    PersistenceError,
    QAPlatformError,
    ValidationError,
)
from core.logging_config import setup_logging

# Setup logging
setup_logging()
logger = logging.getLogger(__name__)

# Most specific first; the first matching class decides the status
_STATUS_BY_ERROR = (
    (ValidationError, status.HTTP_400_BAD_REQUEST),
    (PermissionDeniedError, status.HTTP_403_FORBIDDEN),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (InvariantViolationError, status.HTTP_409_CONFLICT),
    (PersistenceError, status.HTTP_500_INTERNAL_SERVER_ERROR),
)

# Initialize FastAPI application
app = FastAPI(
    title="Q&A Platform API",
    description="Role-based question and answer platform with versioned peer reviews.",
    version="1.0.0",
)

# Configure CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(QAPlatformError)
async def platform_error_handler(request: Request, exc: QAPlatformError) -> JSONResponse:
    """Turn a core error into a JSON error response."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_cls, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_cls):
            status_code = code
            break
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status_code,
        content={"detail": str(exc), "error": type(exc).__name__},
    )


# Register route handlers
app.include_router(auth.router)
app.include_router(admin.router)
app.include_router(questions.router)
app.include_router(reviews.router)
app.include_router(reviews.trust_router)
app.include_router(reviews.request_router)
app.include_router(messages.router)
app.include_router(flags.router)


@app.get("/", summary="API root", tags=["Info"])
def root() -> dict:
    """API root, returns API information and documentation links."""
    return {
        "name": "Q&A Platform API",
        "version": "1.0.0",
        "docs": {
            "swagger": "/docs",
            "redoc": "/redoc",
        },
        "health": "/api/health",
    }


@app.get("/api/health", summary="Health check", tags=["Health"])
def health() -> dict:
    return {"status": "ok"}


# --- Startup code for direct execution ---
if __name__ == "__main__":
    import uvicorn

    logger.info("Starting Q&A Platform API on http://%s:%s", API_HOST, API_PORT)
    uvicorn.run("app:app", host=API_HOST, port=API_PORT, reload=True)
