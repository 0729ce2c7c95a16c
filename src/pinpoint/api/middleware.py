"""Middleware — CORS, request logging, error handling."""

from __future__ import annotations

import time
import uuid

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from pinpoint.api.schemas import ErrorResponse, IssueResponse
from pinpoint.core.exceptions import (
    AlreadySubmittedError,
    DiffParseError,
    FileNotInDiffError,
    GitHubAuthError,
    GitHubError,
    GitHubRateLimitError,
    GitHubTransportError,
    InvalidPRURLError,
    InvalidRepositoryError,
    PinpointError,
    PRNotFoundError,
    ProtocolError,
    ReviewValidationError,
    ValidationError,
)
from pinpoint.core.logging import get_logger

logger = get_logger(__name__)


def setup_middleware(app: FastAPI) -> None:
    """Attach all middleware to the FastAPI app."""

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def request_logging(request: Request, call_next):
        """Log every request with timing and a correlation ID.

        The ID is bound to the structlog context, so every log line emitted
        while handling the request carries it.
        """
        request_id = str(uuid.uuid4())[:8]
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)
        start = time.perf_counter_ns()

        response = await call_next(request)

        duration_ms = (time.perf_counter_ns() - start) // 1_000_000
        logger.info(
            "http_request",
            method=request.method,
            path=str(request.url.path),
            status=response.status_code,
            duration_ms=duration_ms,
        )
        response.headers["X-Request-ID"] = request_id
        return response


def _error(status_code: int, body: ErrorResponse) -> JSONResponse:
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_defaults=True))


def setup_exception_handlers(app: FastAPI) -> None:
    """Register domain exception → HTTP response mappings.

    Starlette picks the handler registered for the closest class in the
    exception's MRO, so subclasses map independently of their parents.
    """

    @app.exception_handler(InvalidPRURLError)
    @app.exception_handler(InvalidRepositoryError)
    async def handle_invalid_reference(request: Request, exc: ValidationError):
        return _error(400, ErrorResponse(error="Invalid Reference", detail=str(exc)))

    @app.exception_handler(ReviewValidationError)
    async def handle_review_validation(request: Request, exc: ReviewValidationError):
        return _error(
            422,
            ErrorResponse(
                error="Review Validation Error",
                detail=str(exc),
                issues=[IssueResponse.from_issue(issue) for issue in exc.issues],
            ),
        )

    @app.exception_handler(ValidationError)
    async def handle_validation(request: Request, exc: ValidationError):
        return _error(422, ErrorResponse(error="Validation Error", detail=str(exc)))

    @app.exception_handler(FileNotInDiffError)
    async def handle_file_not_in_diff(request: Request, exc: FileNotInDiffError):
        return _error(
            404,
            ErrorResponse(
                error="File Not In Diff",
                detail=str(exc),
                available_files=list(exc.available_files),
            ),
        )

    @app.exception_handler(DiffParseError)
    async def handle_diff_parse(request: Request, exc: DiffParseError):
        return _error(422, ErrorResponse(error="Malformed Diff", detail=str(exc)))

    @app.exception_handler(GitHubAuthError)
    async def handle_auth(request: Request, exc: GitHubAuthError):
        return _error(401, ErrorResponse(error="GitHub Auth Error", detail=str(exc)))

    @app.exception_handler(PRNotFoundError)
    async def handle_not_found(request: Request, exc: PRNotFoundError):
        return _error(404, ErrorResponse(error="Not Found", detail=str(exc)))

    @app.exception_handler(GitHubRateLimitError)
    async def handle_rate_limit(request: Request, exc: GitHubRateLimitError):
        return _error(429, ErrorResponse(error="Rate Limited", detail=str(exc)))

    @app.exception_handler(AlreadySubmittedError)
    async def handle_already_submitted(request: Request, exc: AlreadySubmittedError):
        return _error(
            409,
            ErrorResponse(
                error="Review Already Submitted",
                detail=str(exc),
                hint=exc.hint,
                review_state=exc.review_state,
            ),
        )

    @app.exception_handler(ProtocolError)
    async def handle_protocol(request: Request, exc: ProtocolError):
        logger.warning("protocol_error", error=str(exc), field=exc.field, review_state=exc.review_state)
        return _error(
            422,
            ErrorResponse(
                error="Review Protocol Error",
                detail=str(exc),
                hint=exc.hint,
                review_state=exc.review_state,
            ),
        )

    @app.exception_handler(GitHubTransportError)
    @app.exception_handler(GitHubError)
    async def handle_upstream(request: Request, exc: GitHubError):
        return _error(502, ErrorResponse(error="GitHub Error", detail=str(exc)))

    @app.exception_handler(PinpointError)
    async def handle_pinpoint(request: Request, exc: PinpointError):
        logger.error("unhandled_domain_error", error=str(exc), detail=exc.detail)
        return _error(500, ErrorResponse(error="Internal Error", detail=str(exc)))
