"""JSON error envelopes: every failure renders as ``{code, message, details}``."""

import logging

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from toe_review.exceptions import TOEError

logger = logging.getLogger(__name__)


def _envelope(status_code: int, code: str, message: str, details=None):
    return JSONResponse(
        status_code=status_code,
        content={"code": code, "message": message, "details": details},
    )


def _validation_details(exc: RequestValidationError) -> list[dict]:
    # pydantic puts the raw exception in ctx; only its text is useful to clients
    return [
        {
            "field": ".".join(str(part) for part in err.get("loc", ())),
            "type": err.get("type"),
            "message": err.get("msg"),
            **({"ctx": str(err["ctx"])} if "ctx" in err else {}),
        }
        for err in exc.errors()
    ]


def register_error_handlers(app) -> None:
    @app.exception_handler(TOEError)
    async def toe_error_handler(request: Request, exc: TOEError):
        logger.warning(
            "%s on %s %s: %s",
            exc.code,
            request.method,
            request.url.path,
            exc.message,
            extra={"error_code": exc.code},
        )
        return _envelope(exc.status_code, exc.code, exc.message, exc.details)

    @app.exception_handler(HTTPException)
    async def http_error_handler(request: Request, exc: HTTPException):
        detail = exc.detail
        if isinstance(detail, dict):
            return _envelope(
                exc.status_code,
                detail.get("code", f"http_{exc.status_code}"),
                detail.get("message", "Request failed"),
                detail.get("details"),
            )
        if isinstance(detail, str):
            return _envelope(exc.status_code, f"http_{exc.status_code}", detail)
        return _envelope(
            exc.status_code, f"http_{exc.status_code}", "Request failed", detail
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ):
        return _envelope(
            422,
            "validation_error",
            "Request body or parameters are invalid",
            _validation_details(exc),
        )

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(
            "Unexpected error on %s %s", request.method, request.url.path
        )
        return _envelope(500, "internal_error", "Internal server error")
