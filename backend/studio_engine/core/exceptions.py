# backend/studio_engine/core/exceptions.py
"""
Domain-specific exceptions for the studio booking engine.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from datetime import date
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from fastapi import HTTPException, status

if TYPE_CHECKING:
    from ..schemas.conflict import ConflictEntry

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)
HTTP_423_LOCKED: int = getattr(status, "HTTP_423_LOCKED", 423)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)

    def to_http_exception(self) -> HTTPException:
        """Convert to an HTTPException using the class status code."""
        return HTTPException(
            status_code=self.status_code,
            detail={
                "message": self.message,
                "code": self.code,
                "details": self.details,
            },
        )


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ServiceException(DomainException):
    """Raised when a service operation fails."""

    def to_http_exception(self) -> HTTPException:
        return HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class ConflictError(ConflictException):
    """
    Raised when a room or staff member is already booked for the window.

    Carries every overlapping booking so the caller can render them or retry
    with an explicit override.
    """

    def __init__(
        self,
        conflicts: Sequence["ConflictEntry"],
        message: Optional[str] = None,
    ):
        self.conflicts: List["ConflictEntry"] = list(conflicts)
        super().__init__(
            message=message or "This time slot conflicts with an existing booking",
            code="BOOKING_CONFLICT",
            details={
                "conflicts": [entry.model_dump(mode="json") for entry in self.conflicts],
                "requires_confirmation": True,
            },
        )


class DuplicateBookingError(ConflictException):
    """Raised when the client already holds an active registration for the class."""

    def __init__(self, occurrence_id: int, client_id: int, registration_id: int):
        super().__init__(
            message="Client is already registered for this class",
            code="DUPLICATE_BOOKING",
            details={
                "occurrence_id": occurrence_id,
                "client_id": client_id,
                "registration_id": registration_id,
            },
        )


class OccurrenceCancelledError(BusinessRuleException):
    """Raised when booking onto a class that has been cancelled."""

    def __init__(self, occurrence_id: int):
        super().__init__(
            message="Cannot book a cancelled class",
            code="OCCURRENCE_CANCELLED",
            details={"occurrence_id": occurrence_id},
        )


class MissingPricingError(BusinessRuleException):
    """Raised when no price can be resolved and no fallback default exists."""

    def __init__(self, message: Optional[str] = None, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            message=message or "No pricing configuration found",
            code="MISSING_PRICING",
            details=details or {},
        )


class RecurrenceFailure(BusinessRuleException):
    """Raised when a recurring request would create no sessions at all."""

    def __init__(self, skipped_dates: Sequence[date], message: Optional[str] = None):
        self.skipped_dates = list(skipped_dates)
        super().__init__(
            message=message or "The recurring request did not produce any session",
            code="RECURRENCE_EMPTY",
            details={"skipped_dates": [d.isoformat() for d in self.skipped_dates]},
        )


class InvalidStateTransition(BusinessRuleException):
    """Raised when a status change is not allowed from the current status."""

    def __init__(self, entity: str, entity_id: int, current: str, target: str):
        super().__init__(
            message=f"Cannot move {entity} {entity_id} from '{current}' to '{target}'",
            code="INVALID_STATE_TRANSITION",
            details={
                "entity": entity,
                "entity_id": entity_id,
                "current_status": current,
                "target_status": target,
            },
        )


class CapacityBelowBookedError(BusinessRuleException):
    """Raised when a class capacity would drop below its confirmed seats."""

    def __init__(self, occurrence_id: int, capacity: int, confirmed: int):
        super().__init__(
            message=(
                f"Capacity {capacity} is below the {confirmed} confirmed seats "
                f"of class occurrence {occurrence_id}"
            ),
            code="CAPACITY_BELOW_BOOKED",
            details={"occurrence_id": occurrence_id, "capacity": capacity, "confirmed": confirmed},
        )


class CancellationWindowClosed(DomainException):
    """Raised when a self-service cancellation arrives too close to class start."""

    status_code = HTTP_423_LOCKED

    def __init__(self, window_hours: int, hours_until_start: float):
        super().__init__(
            message=f"Cannot cancel within {window_hours} hours of class start",
            code="CANCELLATION_WINDOW_CLOSED",
            details={
                "window_hours": window_hours,
                "hours_until_start": round(hours_until_start, 2),
            },
        )


class InsufficientCreditsError(BusinessRuleException):
    """Raised by the credit ledger when no active pass can cover a deduction."""

    def __init__(self, client_id: int, reason: str = ""):
        super().__init__(
            message="No active pass with available credits found",
            code="INSUFFICIENT_CREDITS",
            details={"client_id": client_id, "reason": reason},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
