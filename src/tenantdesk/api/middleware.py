"""Custom middleware and exception handlers for API request/response processing."""

import time
from typing import Callable, Optional
from uuid import uuid4

from fastapi import FastAPI, Request, Response, status
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from ..services.errors import record_error_event
from ..utils.logging_config import get_logger, log_exception

logger = get_logger("api")

PROBLEM_MEDIA_TYPE = "application/problem+json"

STATUS_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    405: "Method Not Allowed",
    409: "Conflict",
    413: "Payload Too Large",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
    502: "Bad Gateway",
    503: "Service Unavailable",
}


class ProblemDetailsException(HTTPException):
    """HTTPException carrying RFC 9457 Problem Details fields."""

    def __init__(
        self,
        status_code: int,
        title: str,
        detail: Optional[str] = None,
        type_uri: Optional[str] = None,
        instance: Optional[str] = None,
        headers: Optional[dict] = None,
        **extra_fields,
    ):
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.title = title
        self.type_uri = type_uri or f"https://httpstatuses.com/{status_code}"
        self.instance = instance
        self.extra_fields = extra_fields


def default_title(status_code: int) -> str:
    """Get default title for HTTP status codes."""
    return STATUS_TITLES.get(status_code, "HTTP Error")


def problem_response(
    status_code: int,
    title: Optional[str] = None,
    detail: Optional[str] = None,
    type_uri: Optional[str] = None,
    instance: Optional[str] = None,
    headers: Optional[dict] = None,
    **extra_fields,
) -> JSONResponse:
    """Create a JSON response in RFC 9457 Problem Details format."""
    problem = {
        "type": type_uri or f"https://httpstatuses.com/{status_code}",
        "title": title or default_title(status_code),
        "status": status_code,
    }

    if detail:
        problem["detail"] = detail
    if instance:
        problem["instance"] = instance

    problem.update({k: v for k, v in extra_fields.items() if v is not None})

    return JSONResponse(
        status_code=status_code,
        content=jsonable_encoder(problem),
        media_type=PROBLEM_MEDIA_TYPE,
        headers=headers,
    )


def _request_id(request: Request) -> Optional[str]:
    return getattr(request.state, "request_id", None)


async def problem_details_exception_handler(
    request: Request, exc: ProblemDetailsException
) -> JSONResponse:
    return problem_response(
        status_code=exc.status_code,
        title=exc.title,
        detail=exc.detail,
        type_uri=exc.type_uri,
        instance=exc.instance or request.url.path,
        headers=exc.headers,
        request_id=_request_id(request),
        **exc.extra_fields,
    )


async def http_exception_handler(
    request: Request, exc: StarletteHTTPException
) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else None
    extra = {} if isinstance(exc.detail, str) else {"errors": exc.detail}
    return problem_response(
        status_code=exc.status_code,
        detail=detail,
        instance=request.url.path,
        headers=getattr(exc, "headers", None),
        request_id=_request_id(request),
        **extra,
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    return problem_response(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        title="Validation Error",
        detail="Request validation failed",
        instance=request.url.path,
        request_id=_request_id(request),
        errors=exc.errors(),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Route every handled HTTP error through the Problem Details format."""
    app.add_exception_handler(ProblemDetailsException, problem_details_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)


class RequestIdMiddleware(BaseHTTPMiddleware):
    """Assign a request id, log the request and echo the id in the response."""

    header_name = "X-Request-Id"

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(self.header_name) or str(uuid4())
        request.state.request_id = request_id
        start = time.time()
        logger.info(f"[{request_id}] {request.method} {request.url.path}")

        response = await call_next(request)

        elapsed_ms = (time.time() - start) * 1000
        logger.debug(f"[{request_id}] {response.status_code} in {elapsed_ms:.1f}ms")
        response.headers[self.header_name] = request_id
        return response


class ProblemDetailsMiddleware(BaseHTTPMiddleware):
    """Turn unhandled exceptions into 500 Problem Details and persist them as error events."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)
        except Exception as exc:
            request_id = _request_id(request) or str(uuid4())
            ctx = getattr(request.state, "context", None)
            account_id = getattr(ctx, "account_id", None)

            log_exception(
                "api",
                exc,
                {"request_id": request_id, "method": request.method, "path": request.url.path},
            )
            record_error_event(
                exc,
                request_id=request_id,
                path=request.url.path,
                account_id=account_id,
                metadata={"method": request.method, "url": str(request.url)},
            )
            return problem_response(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                title="Internal Server Error",
                detail="An unexpected error occurred",
                instance=request.url.path,
                request_id=request_id,
            )


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Reject request bodies larger than the configured limit."""

    def __init__(self, app: ASGIApp, max_body_bytes: int = 1_048_576):
        super().__init__(app)
        self.max_body_bytes = max_body_bytes

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        content_length = request.headers.get("content-length")
        if content_length:
            try:
                length = int(content_length)
            except ValueError:
                return problem_response(
                    status_code=status.HTTP_400_BAD_REQUEST,
                    detail="Invalid Content-Length header",
                    request_id=_request_id(request),
                )
            if length > self.max_body_bytes:
                return problem_response(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    title="Request Entity Too Large",
                    detail=(
                        f"Request size {length} bytes exceeds limit of "
                        f"{self.max_body_bytes} bytes"
                    ),
                    type_uri="https://datatracker.ietf.org/doc/html/rfc9110#section-15.5.14",
                    request_id=_request_id(request),
                )

        # Chunked bodies without Content-Length are measured after reading
        elif request.method in ("POST", "PUT", "PATCH"):
            body = await request.body()
            if len(body) > self.max_body_bytes:
                return problem_response(
                    status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
                    title="Request Entity Too Large",
                    detail=(
                        f"Request size {len(body)} bytes exceeds limit of "
                        f"{self.max_body_bytes} bytes"
                    ),
                    request_id=_request_id(request),
                )

        return await call_next(request)
