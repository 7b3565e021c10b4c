from fastapi import HTTPException, status
from typing import Optional, Dict, Any

class BaseAPIException(HTTPException):
    """Base exception for API errors"""
    def __init__(
        self,
        status_code: int,
        error_code: str,
        message: str,
        details: Optional[Dict[str, Any]] = None
    ):
        self.error_code = error_code
        self.message = message
        self.details = details or {}

        super().__init__(
            status_code=status_code,
            detail={
                "success": False,
                "error": {
                    "code": error_code,
                    "message": message,
                    "details": self.details
                }
            }
        )

    def __str__(self) -> str:  # Ensure str(e) returns the human message
        return self.message

class AuthorizationError(BaseAPIException):
    """Authorization related errors (blocked accounts)"""
    def __init__(self, message: str = "Access forbidden", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_403_FORBIDDEN,
            error_code="AUTH_002",
            message=message,
            details=details
        )

class ValidationError(BaseAPIException):
    """Validation errors"""
    def __init__(self, message: str = "Validation failed", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            error_code="VALIDATION_001",
            message=message,
            details=details
        )

class BusinessLogicError(BaseAPIException):
    """Business logic errors"""
    def __init__(self, error_code: str, message: str, details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_400_BAD_REQUEST,
            error_code=error_code,
            message=message,
            details=details
        )

class NotFoundError(BaseAPIException):
    """Resource not found errors"""
    def __init__(self, message: str = "Resource not found", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            error_code="NOT_FOUND_001",
            message=message,
            details=details
        )

class ConflictError(BaseAPIException):
    """Resource conflict errors"""
    def __init__(self, message: str = "Resource conflict", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_409_CONFLICT,
            error_code="CONFLICT_001",
            message=message,
            details=details
        )

class StorageFailureError(BaseAPIException):
    """Persistence layer failures - the whole operation was rolled back"""
    def __init__(self, message: str = "Storage failure", details: Optional[Dict] = None):
        super().__init__(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            error_code="STORAGE_001",
            message=message,
            details=details
        )

class InsufficientBalanceError(BusinessLogicError):
    """Insufficient balance errors"""
    def __init__(self, message: str = "Insufficient balance", details: Optional[Dict] = None):
        super().__init__("BALANCE_001", message, details)

class InvalidAmountError(BusinessLogicError):
    """Amounts must be strictly positive"""
    def __init__(self, message: str = "Amount must be positive", details: Optional[Dict] = None):
        super().__init__("BALANCE_002", message, details)

class AlreadySubscribedError(BusinessLogicError):
    def __init__(self, message: str = "Plan already active", details: Optional[Dict] = None):
        super().__init__("PLAN_001", message, details)

class NoActivePlanError(BusinessLogicError):
    def __init__(self, message: str = "An active plan is required to watch videos", details: Optional[Dict] = None):
        super().__init__("PLAN_002", message, details)

class QuotaExceededError(BusinessLogicError):
    def __init__(self, message: str = "Daily video quota reached", details: Optional[Dict] = None):
        super().__init__("WATCH_001", message, details)

class IncompleteWatchError(BusinessLogicError):
    def __init__(self, message: str = "Video was not watched to the end", details: Optional[Dict] = None):
        super().__init__("WATCH_002", message, details)

class AlreadyWatchedTodayError(BusinessLogicError):
    def __init__(self, message: str = "Video already watched today", details: Optional[Dict] = None):
        super().__init__("WATCH_003", message, details)

class AlreadyProcessedError(BusinessLogicError):
    def __init__(self, message: str = "Request already processed", details: Optional[Dict] = None):
        super().__init__("PAYMENT_001", message, details)
