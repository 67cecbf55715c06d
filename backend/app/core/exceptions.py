# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the BookOn settlement backend.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


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
            status_code=self.status_code,
            detail={
                "message": self.message or "An error occurred processing your request",
                "code": self.code,
                "details": self.details if self.details else {},
            },
        )


# Specific business exceptions


class InsufficientCreditsException(BusinessRuleException):
    """Raised when a wallet cannot cover the requested credit amount."""

    def __init__(self, requested_pence: int, available_pence: int):
        super().__init__(
            message="Insufficient credits available",
            code="INSUFFICIENT_CREDITS",
            details={
                "requested_pence": requested_pence,
                "available_pence": available_pence,
            },
        )


class InvalidPaymentStateException(BusinessRuleException):
    """Raised when a payment-status transition is not allowed."""

    def __init__(self, booking_id: str, current: Optional[str], attempted: str):
        super().__init__(
            message=f"Booking payment cannot move from '{current}' to '{attempted}'",
            code="INVALID_PAYMENT_STATE",
            details={
                "booking_id": booking_id,
                "current_status": current,
                "attempted_status": attempted,
            },
        )


class TfcNotEnabledException(ValidationException):
    """Raised when a venue has not opted into Tax-Free Childcare payments."""

    def __init__(self, venue_id: str):
        super().__init__(
            message="TFC not enabled for this provider",
            code="TFC_NOT_ENABLED",
            details={"venue_id": venue_id},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
