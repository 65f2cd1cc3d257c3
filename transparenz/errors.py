"""HTTP problem-detail errors and a guard that turns failures into responses."""

from __future__ import annotations

import functools
import logging
import traceback
from http import HTTPStatus
from typing import Any, Callable

UNEXPECTED_DETAIL = "An unexpected error occurred. Please try again later."


class ApiError(Exception):
    """An error that maps onto an HTTP problem response."""

    status: int = HTTPStatus.INTERNAL_SERVER_ERROR
    problem_type: str = "internal_error"

    def __init__(self, detail: str = "") -> None:
        super().__init__(detail)
        self.detail = detail

    @property
    def title(self) -> str:
        return HTTPStatus(self.status).phrase

    def to_problem(self) -> dict[str, Any]:
        """Return the problem-detail body for this error."""
        return {
            "type": self.problem_type,
            "title": self.title,
            "status": int(self.status),
            "detail": self.detail,
        }


class BadRequest(ApiError):
    status = HTTPStatus.BAD_REQUEST
    problem_type = "bad_request"


class Unauthorized(ApiError):
    status = HTTPStatus.UNAUTHORIZED
    problem_type = "unauthorized"


class NotFound(ApiError):
    status = HTTPStatus.NOT_FOUND
    problem_type = "not_found"


class Conflict(ApiError):
    status = HTTPStatus.CONFLICT
    problem_type = BadRequest.problem_type


class InternalError(ApiError):
    status = HTTPStatus.INTERNAL_SERVER_ERROR
    problem_type = "internal_error"

    def __init__(self, detail: str = UNEXPECTED_DETAIL) -> None:
        super().__init__(detail)


def recover_errors(
    handler: Callable[..., Any], logger: logging.Logger | None = None
) -> Callable[..., Any]:
    """Wrap a handler so failures become (status, problem) responses.

    An ApiError yields its own status and problem body; any other exception is
    logged with its stack and answered with a generic internal error.
    """
    log = logger if logger is not None else logging.getLogger(__name__)

    @functools.wraps(handler)
    def guarded(*args: Any, **kwargs: Any) -> Any:
        try:
            return handler(*args, **kwargs)
        except ApiError as err:
            return int(err.status), err.to_problem()
        except Exception as exc:
            log.error(
                "panic recovered",
                extra={
                    "fields": {
                        "error": repr(exc),
                        "stack": traceback.format_exc(),
                        "handler": getattr(handler, "__name__", repr(handler)),
                    }
                },
            )
            err = InternalError()
            return int(err.status), err.to_problem()

    return guarded