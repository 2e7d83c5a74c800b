from typing import Dict, Any, Optional
from fastapi import status
import logging

logger = logging.getLogger(__name__)


class BaseCustomException(Exception):
    """Base class for custom exceptions"""

    def __init__(
        self,
        message: str,
        status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        self.error_code = error_code
        super().__init__(self.message)


class ValidationError(BaseCustomException):
    """Exception for malformed prescription input"""

    def __init__(
        self,
        message: str = "Validation failed",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            details=details,
            error_code=error_code or "VALIDATION_ERROR"
        )


class NotFoundError(BaseCustomException):
    """Exception for resource not found errors"""

    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_404_NOT_FOUND,
            details=details,
            error_code=error_code or "NOT_FOUND_ERROR"
        )


class ConflictError(BaseCustomException):
    """Exception for conflict errors"""

    def __init__(
        self,
        message: str = "Resource conflict",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_409_CONFLICT,
            details=details,
            error_code=error_code or "CONFLICT_ERROR"
        )


class StorageError(BaseCustomException):
    """Exception for record store load/save failures"""

    def __init__(
        self,
        message: str = "Record store operation failed",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
            error_code=error_code or "STORAGE_ERROR"
        )


class ConfigurationError(BaseCustomException):
    """Exception for configuration errors"""

    def __init__(
        self,
        message: str = "Configuration error",
        details: Optional[Dict[str, Any]] = None,
        error_code: Optional[str] = None
    ):
        super().__init__(
            message=message,
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            details=details,
            error_code=error_code or "CONFIGURATION_ERROR"
        )


def create_error_response(exception: BaseCustomException) -> Dict[str, Any]:
    """Create standardized error response"""
    from datetime import datetime, timezone

    response = {
        "error": exception.__class__.__name__.replace("Error", " Error"),
        "message": exception.message,
        "error_code": exception.error_code,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }

    if exception.details:
        response["details"] = exception.details

    return response


def handle_storage_error(error: Exception, operation: str = "record store operation") -> StorageError:
    """Handle backend errors and convert to StorageError"""
    logger.error(f"Storage error during {operation}: {error}")

    error_message = "Record store operation failed"
    if "connection" in str(error).lower():
        error_message = "Record store connection failed"
    elif "timeout" in str(error).lower():
        error_message = "Record store operation timed out"
    elif isinstance(error, (TypeError, ValueError)):
        error_message = "Record serialization failed"

    return StorageError(
        message=error_message,
        details={"operation": operation, "original_error": str(error)},
        error_code="STORAGE_OPERATION_ERROR"
    )
