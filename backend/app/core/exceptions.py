# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the practice space platform.

These exceptions provide clear, business-focused error messages
that can be caught and handled appropriately at the API layer.
"""

from typing import Any, Dict, List, Optional

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

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# Specific business exceptions


class ReservationValidationException(ValidationException):
    """
    Raised when a reservation request fails validation.

    ``errors`` holds human-readable reasons meant to be shown verbatim;
    ``conflicts`` is non-empty when at least one reason is a time conflict.
    """

    def __init__(self, errors: List[str], conflicts: Optional[List[Dict[str, Any]]] = None):
        self.errors = list(errors)
        self.conflicts = list(conflicts or [])
        super().__init__(
            message="Validation failed: " + " ".join(self.errors),
            code="RESERVATION_VALIDATION_FAILED",
            details={"errors": self.errors, "conflicts": self.conflicts},
        )

    @property
    def is_conflict(self) -> bool:
        return bool(self.conflicts)


class InsufficientCreditsException(BusinessRuleException):
    """Raised when a spend exceeds the current balance."""

    def __init__(self, have: int, need: int, credit_type: Optional[str] = None):
        self.have = have
        self.need = need
        super().__init__(
            message=f"User has {have} credits but needs {need}",
            code="INSUFFICIENT_CREDITS",
            details={"have": have, "need": need, "credit_type": credit_type},
        )


class PromoCodeNotFoundException(NotFoundException):
    """Raised when a promo code doesn't exist, is inactive or has expired."""

    def __init__(self, code: str):
        super().__init__(
            message=f"Promo code '{code}' is not valid",
            code="PROMO_CODE_NOT_FOUND",
            details={"promo_code": code},
        )


class PromoCodeAlreadyRedeemedException(ConflictException):
    """Raised when the same member redeems a promo code twice."""

    def __init__(self, code: str):
        super().__init__(
            message=f"Promo code '{code}' has already been redeemed",
            code="PROMO_CODE_ALREADY_REDEEMED",
            details={"promo_code": code},
        )


class PromoCodeMaxUsesException(ConflictException):
    """Raised when a capped promo code has no uses left."""

    def __init__(self, code: str, max_uses: int):
        super().__init__(
            message=f"Promo code '{code}' has reached its maximum number of uses",
            code="PROMO_CODE_MAX_USES",
            details={"promo_code": code, "max_uses": max_uses},
        )


class RepositoryException(Exception):
    """
    Exception raised for repository layer errors.

    This exception is used when data access operations fail,
    such as database connection issues, query failures, or
    constraint violations.
    """
