"""Exception handlers mapping service and identity errors to JSON responses.

Every error body has the shape:
    {"success": false, "error": "<kind>", "message": "<text>", "status_code": <int>}
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from crawler_api.identity.errors import (
    ClockRegressedError,
    GeneratorConfigError,
    SlugConflictError,
    SlugExhaustedError,
    SlugResolutionAbortedError,
)
from crawler_api.services.category_scraper import ScrapeError
from crawler_api.services.sites import (
    CategoryNotFoundError,
    CategoryOwnershipError,
    CrawlValidationError,
    SiteNotFoundError,
)

logger = logging.getLogger(__name__)

# exception type -> (status code, error kind)
ERROR_STATUS: dict[type[Exception], tuple[int, str]] = {
    SiteNotFoundError: (status.HTTP_404_NOT_FOUND, "Not Found"),
    CategoryNotFoundError: (status.HTTP_404_NOT_FOUND, "Not Found"),
    CategoryOwnershipError: (status.HTTP_400_BAD_REQUEST, "Bad Request"),
    CrawlValidationError: (status.HTTP_400_BAD_REQUEST, "Bad Request"),
    SlugExhaustedError: (status.HTTP_409_CONFLICT, "Slug Exhausted"),
    SlugConflictError: (status.HTTP_409_CONFLICT, "Slug Conflict"),
    SlugResolutionAbortedError: (status.HTTP_504_GATEWAY_TIMEOUT, "Slug Resolution Aborted"),
    ClockRegressedError: (status.HTTP_503_SERVICE_UNAVAILABLE, "Clock Regressed"),
    GeneratorConfigError: (status.HTTP_500_INTERNAL_SERVER_ERROR, "Id Generator Misconfigured"),
    ScrapeError: (status.HTTP_502_BAD_GATEWAY, "Crawl Failed"),
}


def error_body(status_code: int, error: str, message: str) -> dict:
    return {
        "success": False,
        "error": error,
        "message": message,
        "status_code": status_code,
    }


async def handle_known_error(request: Request, exc: Exception) -> JSONResponse:
    """Translate a known exception into its status code and error body."""
    exc_type = next(klass for klass in type(exc).__mro__ if klass in ERROR_STATUS)
    status_code, error = ERROR_STATUS[exc_type]
    message = getattr(exc, "message", None) or str(exc)

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {message}")
    else:
        logger.info(f"{request.method} {request.url.path} -> {status_code}: {message}")

    return JSONResponse(
        status_code=status_code,
        content=error_body(status_code, error, message),
    )


async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unhandled error on {request.method} {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "Internal Server Error",
            "An unexpected error occurred",
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    for exc_type in ERROR_STATUS:
        app.add_exception_handler(exc_type, handle_known_error)
    app.add_exception_handler(Exception, handle_unexpected_error)
