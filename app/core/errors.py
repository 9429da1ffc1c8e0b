from typing import Any

from fastapi import Request
from fastapi.responses import JSONResponse


class WorkflowError(Exception):
    """Base for the typed failures the workflow engines return to callers."""

    status_code: int = 400
    error_code: str = "WORKFLOW_ERROR"

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        self.message = message
        self.details = details
        super().__init__(message)


class NotFoundError(WorkflowError):
    status_code = 404
    error_code = "NOT_FOUND"


class UnauthorizedError(WorkflowError):
    """Caller does not hold the ownership/management relation the operation needs."""

    status_code = 403
    error_code = "UNAUTHORIZED"


class InvalidStateError(WorkflowError):
    status_code = 409
    error_code = "INVALID_STATE"


class InvalidInputError(WorkflowError):
    status_code = 400
    error_code = "INVALID_INPUT"


class AlreadySubmittedError(WorkflowError):
    status_code = 409
    error_code = "ALREADY_SUBMITTED"


class NoActiveCycleError(WorkflowError):
    status_code = 404
    error_code = "NO_ACTIVE_CYCLE"


class StaleVersionError(WorkflowError):
    status_code = 409
    error_code = "STALE_VERSION"


async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    body: dict[str, Any] = {"detail": exc.message, "error_code": exc.error_code}
    if exc.details:
        body["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=body)
