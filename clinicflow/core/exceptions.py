"""Custom exception classes for ClinicFlow access control."""

from fastapi import HTTPException, status


class ClinicFlowError(Exception):
    """Base exception for ClinicFlow."""

    def __init__(self, message: str = "An error occurred"):
        self.message = message
        super().__init__(self.message)


class AuthorizationError(ClinicFlowError):
    """Raised when user lacks permission."""
    pass


class ResourceNotFoundError(ClinicFlowError):
    """Raised when a requested resource is not found."""
    pass


class ResourceConflictError(ClinicFlowError):
    """Raised when a resource already exists."""
    pass


class ValidationError(ClinicFlowError):
    """Raised when input validation fails."""
    pass


ERROR_STATUS_CODES = {
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    ResourceNotFoundError: status.HTTP_404_NOT_FOUND,
    ResourceConflictError: status.HTTP_409_CONFLICT,
    ValidationError: status.HTTP_400_BAD_REQUEST,
}


def status_code_for(exc: ClinicFlowError) -> int:
    for exc_type, code in ERROR_STATUS_CODES.items():
        if isinstance(exc, exc_type):
            return code
    return status.HTTP_400_BAD_REQUEST


# HTTP exception shortcuts
def forbidden(detail: str = "Insufficient permissions") -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def unauthorized(detail: str = "Not authenticated") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )
