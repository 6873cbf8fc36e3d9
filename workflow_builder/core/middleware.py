"""Request context, timing and error translation for the HTTP surface."""

import re
import time
import uuid
from typing import Callable, Optional
from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from .exceptions import WorkflowBuilderError, create_error_response, get_status_code_for_error
from .logging import bind_logging_context, get_logger, reset_logging_context


logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"
RESPONSE_TIME_HEADER = "X-Response-Time"

_SESSION_PATH = re.compile(r"/sessions/([^/]+)")


def session_id_from_path(path: str) -> Optional[str]:
    """Session addressed by a ``/sessions/{id}/...`` route, if any."""
    match = _SESSION_PATH.search(path)
    return match.group(1) if match else None


async def workflow_builder_error_handler(request: Request, error: WorkflowBuilderError) -> JSONResponse:
    """Translate a WorkflowBuilderError raised by an endpoint into a JSON response."""
    status_code = get_status_code_for_error(error)
    log = logger.warning if status_code >= 500 else logger.info
    log(
        f"Workflow builder error: {request.method} {request.url.path} - "
        f"Error: {error.error_code} - {error.message}",
        extra={"extra_fields": {"error_details": error.to_dict()}}
    )
    return JSONResponse(status_code=status_code, content=create_error_response(error))


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Binds a request ID, and the session a route addresses, to every log record of a request.

    The request ID is taken from the ``X-Request-ID`` header when the client
    sends one and is echoed back on the response. When a slow-request
    threshold is configured the elapsed time is reported in
    ``X-Response-Time`` and slow requests are logged as warnings.
    Exceptions that are not builder errors become a JSON 500.
    """

    def __init__(self, app, slow_request_threshold: Optional[float] = None):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        fields = {"request_id": request_id}
        session_id = session_id_from_path(request.url.path)
        if session_id:
            fields["session_id"] = session_id

        token = bind_logging_context(**fields)
        started = time.perf_counter()
        try:
            try:
                response = await call_next(request)
            except Exception:
                logger.exception(f"Unhandled error in {request.method} {request.url.path}")
                response = JSONResponse(
                    status_code=500,
                    content={
                        "error": "InternalServerError",
                        "message": "An unexpected error occurred",
                        "details": {"request_id": request_id},
                        "context": {},
                    },
                )

            elapsed = time.perf_counter() - started
            response.headers[REQUEST_ID_HEADER] = request_id
            if self.slow_request_threshold is not None:
                response.headers[RESPONSE_TIME_HEADER] = f"{elapsed:.3f}s"
                if elapsed > self.slow_request_threshold:
                    logger.warning(
                        f"Slow request {request.method} {request.url.path}: "
                        f"{elapsed:.3f}s (threshold {self.slow_request_threshold}s)"
                    )
            logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {elapsed:.3f}s")
            return response
        finally:
            reset_logging_context(token)
