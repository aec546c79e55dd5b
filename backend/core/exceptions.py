"""
Scheduling errors raised by the booking core.

Every error is recoverable at the API boundary: routes convert them with
``to_http_exception()`` and the core never retries on its own.
"""

from typing import Any

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class SchedulingError(Exception):
    """Base class for all scheduling failures."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(
        self,
        message: str,
        code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        return {
            'message': self.message,
            'code': self.code,
            'details': self.details,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class NotFoundError(SchedulingError):
    """A branch, treatment, room, staff member, patient or booking is missing."""

    status_code = status.HTTP_404_NOT_FOUND


class InvalidInputError(SchedulingError):
    """Unsupported gender value or malformed date/time."""

    status_code = HTTP_422_UNPROCESSABLE


class NoCompatibleResourceError(SchedulingError):
    """No certified room or no certified staff for a branch/treatment pair."""


class BranchClosedError(SchedulingError):
    """The branch is flagged as closed."""


class GenderMismatchError(SchedulingError):
    status_code = status.HTTP_409_CONFLICT


class SlotUnavailableError(SchedulingError):
    """The room lost the race to a concurrent booking."""

    status_code = status.HTTP_409_CONFLICT


class StaffBusyError(SchedulingError):
    """The staff member is already with a patient at the requested start."""

    status_code = status.HTTP_409_CONFLICT


# Failures where re-running the slot search gives the caller a useful alternative.
CONFLICT_ERRORS = (SlotUnavailableError, StaffBusyError)
