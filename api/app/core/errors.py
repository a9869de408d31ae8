"""
Structured error types for upstream collaborators.

Service wrappers translate SDK exceptions into these types so the
orchestrator and the HTTP layer never inspect raw transport errors.
Caller-visible replies stay generic; details are only logged.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

RATE_LIMIT_REPLY = "Too many requests. Please try again soon."
GENERIC_ERROR_REPLY = "An error occurred while generating a response."


class UpstreamError(Exception):
    """A call to the search, embedding or completion service failed."""

    def __init__(self, service: str, detail: str = "") -> None:
        self.service = service
        self.detail = detail
        super().__init__(f"{service} failed: {detail}" if detail else f"{service} failed")


class RateLimitedError(UpstreamError):
    """The upstream service signalled throttling (HTTP 429)."""


class UpstreamTimeoutError(UpstreamError):
    """The upstream call did not finish within the configured timeout."""


async def rate_limited_handler(request: Request, exc: RateLimitedError) -> JSONResponse:
    logger.warning("Rate limited by %s: %s", exc.service, exc.detail)
    return JSONResponse(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        content={"error": True, "reply": RATE_LIMIT_REPLY},
    )


async def upstream_error_handler(request: Request, exc: UpstreamError) -> JSONResponse:
    logger.error("Chat error from %s: %s", exc.service, exc.detail)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": True, "reply": GENERIC_ERROR_REPLY},
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error while serving %s", request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": True, "reply": GENERIC_ERROR_REPLY},
    )


def register_error_handlers(application: FastAPI) -> None:
    """Map every pipeline failure to the `{error, reply}` response contract."""
    # Starlette resolves handlers by MRO, so the subclass wins for 429s.
    application.add_exception_handler(RateLimitedError, rate_limited_handler)
    application.add_exception_handler(UpstreamError, upstream_error_handler)
    application.add_exception_handler(Exception, unexpected_error_handler)
