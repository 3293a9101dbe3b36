"""
Exception hierarchy for the test execution service.

Every error raised by the services carries an ``ErrorCode`` so the HTTP layer
can map it to a status code and clients can tell failures apart without
parsing messages.
"""
from enum import Enum
from typing import Optional, Dict, Any


class ErrorCode(Enum):
    """Error code definitions"""
    GENERAL_ERROR = 1000

    VALIDATION_ERROR = 2000
    NOT_FOUND = 3000
    CONFLICT = 4000
    TRANSACTION_ERROR = 5000


class ExecutionError(Exception):
    """Base class for test execution errors"""

    status_code = 500

    def __init__(
        self,
        message: str = "Test execution error",
        error_code: ErrorCode = ErrorCode.GENERAL_ERROR,
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.error_code = error_code
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        return f"[{self.error_code.name}:{self.error_code.value}] {self.message}"

    def to_dict(self) -> Dict[str, Any]:
        """Return the error as a JSON-serializable dict"""
        return {
            "detail": self.message,
            "error_code": self.error_code.value,
            "error_name": self.error_code.name,
            "details": self.details
        }


class ValidationError(ExecutionError):
    """A required field is missing or malformed"""

    status_code = 400

    def __init__(
        self,
        message: str = "Invalid request",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.VALIDATION_ERROR, details)


class NotFoundError(ExecutionError):
    """A referenced suite, item, run or test case does not exist"""

    status_code = 404

    def __init__(
        self,
        message: str = "Resource not found",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.NOT_FOUND, details)


class ConflictError(ExecutionError):
    """The request contradicts the current execution state (e.g. an open run)"""

    status_code = 409

    def __init__(
        self,
        message: str = "Conflicting execution state",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.CONFLICT, details)


class TransactionError(ExecutionError):
    """A multi-step write failed and was rolled back"""

    status_code = 500

    def __init__(
        self,
        message: str = "Transaction failed and was rolled back",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message, ErrorCode.TRANSACTION_ERROR, details)
