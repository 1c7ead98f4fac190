from typing import Optional, Any

class PlatewiseError(Exception):
    """
    Base exception for the Platewise backend.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)

class ResourceNotFoundError(PlatewiseError):
    """
    Raised when a requested resource is not found.
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)

class AuthenticationError(PlatewiseError):
    """
    Raised when authentication fails.
    """
    def __init__(self, message: str = "Authentication failed", details: Optional[Any] = None):
        super().__init__(message, code="AUTHENTICATION_FAILED", status_code=401, details=details)

class PermissionDeniedError(PlatewiseError):
    """
    Raised when an authenticated caller lacks the required role.
    """
    def __init__(self, message: str = "Permission denied", details: Optional[Any] = None):
        super().__init__(message, code="FORBIDDEN", status_code=403, details=details)

class ValidationError(PlatewiseError):
    """
    Raised when input validation fails.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)

class ConflictError(PlatewiseError):
    """
    Raised on duplicate unique fields, already-claimed rewards and
    lifecycle operations attempted from the wrong state.
    """
    def __init__(self, message: str = "Conflict", details: Optional[Any] = None):
        super().__init__(message, code="CONFLICT", status_code=409, details=details)

class ExpiredError(PlatewiseError):
    """
    Raised when a reward or token is used past its expiry.
    """
    def __init__(self, message: str = "Resource has expired", details: Optional[Any] = None):
        super().__init__(message, code="EXPIRED", status_code=410, details=details)

class DatabaseError(PlatewiseError):
    """
    Raised when the document store is unavailable or a write could not be applied.
    """
    def __init__(self, message: str = "Database error", details: Optional[Any] = None):
        super().__init__(message, code="DATABASE_ERROR", status_code=503, details=details)
