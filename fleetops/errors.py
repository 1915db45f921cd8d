"""
Application exceptions and the handler that renders them.

Every error raised by the domain or service layer carries an error code and
an HTTP status so the API can report it uniformly.
"""

from typing import Any, Dict, Optional

from fastapi import Request, status
from fastapi.responses import JSONResponse


class AppException(Exception):
    """Base application exception."""

    def __init__(
        self,
        message: str,
        error_code: str,
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.error_code = error_code
        self.status_code = status_code
        self.details = details or {}
        super().__init__(message)


class ResourceNotFound(AppException):
    def __init__(self, resource: str, resource_id: Any = None):
        message = f"{resource} not found"
        if resource_id is not None:
            message = f"{resource} with ID {resource_id} not found"
        super().__init__(
            message=message,
            error_code="ERR_NOT_FOUND_001",
            status_code=status.HTTP_404_NOT_FOUND,
            details={"resource": resource, "id": resource_id},
        )


class InvalidStateTransition(AppException):
    """Raised when a trip status change violates the state machine."""

    def __init__(self, current: Any, event: Any):
        current_value = getattr(current, "value", current)
        event_value = getattr(event, "value", event)
        super().__init__(
            message=f"Cannot {event_value} a trip in status {current_value}",
            error_code="ERR_STATE_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"status": current_value, "event": event_value},
        )


class GuardViolation(AppException):
    """A transition or operation precondition failed; nothing was written."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message,
            error_code="ERR_VALIDATION_001",
            status_code=422,
            details=details,
        )


class ReassignConfirmationRequired(AppException):
    def __init__(self, vehicle_number: str, holder_name: str):
        super().__init__(
            message=(
                f"Vehicle {vehicle_number} is assigned to {holder_name}; "
                "confirm to unassign and reassign"
            ),
            error_code="ERR_ASSIGN_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"vehicle_number": vehicle_number, "holder": holder_name},
        )


class ConsentError(AppException):
    def __init__(self, message: str):
        super().__init__(
            message=message,
            error_code="ERR_MERGE_001",
            status_code=status.HTTP_403_FORBIDDEN,
        )


class ResourceBusy(AppException):
    def __init__(self, resource: str):
        super().__init__(
            message=f"{resource} is being modified by another operation, retry",
            error_code="ERR_BUSY_001",
            status_code=status.HTTP_409_CONFLICT,
            details={"resource": resource},
        )


class SagaFailed(AppException):
    def __init__(self, saga: str, step: str, cause: Exception):
        super().__init__(
            message=f"{saga} failed at step '{step}': {cause}",
            error_code="ERR_SAGA_001",
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details={"saga": saga, "step": step},
        )


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error_code": exc.error_code,
            "message": exc.message,
            "details": exc.details,
        },
    )
