"""
prize_portal/exceptions.py
Domain exceptions for the disbursement core.

One class per error kind. Routes never translate these by hand: a single
exception handler in main.py renders any PortalError in the standard shape.
"""
from typing import Any, Dict, List, Optional

from prize_portal.errors import ErrorCode, error_content


class PortalError(Exception):
    """Base exception for the portal"""
    status_code: int = 500
    error: str = "Internal Error"
    code: str = ErrorCode.INTERNAL_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return error_content(self.error, self.message, self.code, self.details)


class InvalidInputError(PortalError):
    """
    Raised when request fields are malformed.

    Carries every violation found, not just the first one.
    """
    status_code = 400
    error = "Bad Request"
    code = ErrorCode.INVALID_INPUT

    def __init__(self, message: str = "Invalid input", errors: Optional[List[str]] = None):
        self.errors = errors or []
        details = {"errors": self.errors} if self.errors else None
        super().__init__(message, details)


class InvalidTeamCompositionError(PortalError):
    """Raised when a team does not have exactly one leader, or references unknown students."""
    status_code = 400
    error = "Invalid Team Composition"
    code = ErrorCode.INVALID_TEAM_COMPOSITION


class UnauthorizedError(PortalError):
    status_code = 401
    error = "Unauthorized"
    code = ErrorCode.AUTH_INVALID

    def __init__(self, message: str = "Invalid credentials", code: str = ErrorCode.INVALID_CREDENTIALS):
        self.code = code
        super().__init__(message)


class ForbiddenError(PortalError):
    """
    Raised when the acting user may not perform the operation.

    Denials never say whether the target exists beyond what the caller
    already supplied.
    """
    status_code = 403
    error = "Forbidden"
    code = ErrorCode.FORBIDDEN

    def __init__(self, message: str = "Access forbidden"):
        super().__init__(message)


class NotFoundError(PortalError):
    status_code = 404
    error = "Not Found"
    code = ErrorCode.NOT_FOUND

    def __init__(self, resource: str, identifier: Any = None):
        message = f"{resource} not found"
        if identifier is not None:
            message = f"{resource} with id '{identifier}' not found"
        super().__init__(message)


class AlreadySubmittedError(PortalError):
    """Raised on a second bank-details submission for the same team."""
    status_code = 409
    error = "Already Submitted"
    code = ErrorCode.ALREADY_SUBMITTED

    def __init__(self, message: str = "Bank details already submitted for this team"):
        super().__init__(message)


class InvalidTransitionError(PortalError):
    """Raised when a disbursement state transition is not allowed from the current state."""
    status_code = 409
    error = "Invalid Transition"
    code = ErrorCode.INVALID_TRANSITION


class DuplicateEmailError(PortalError):
    status_code = 409
    error = "Conflict"
    code = ErrorCode.DUPLICATE_EMAIL

    def __init__(self, email: str):
        self.email = email
        super().__init__("Email already exists")


class CipherError(PortalError):
    """
    Base for cipher-layer failures.

    Messages are fixed strings: no ciphertext, plaintext or key material.
    """
    status_code = 500
    error = "Cipher Error"


class InvalidFormatError(CipherError):
    """Envelope does not parse into iv:tag:ciphertext."""
    code = ErrorCode.CIPHER_INVALID_FORMAT

    def __init__(self, message: str = "Invalid encrypted data format"):
        super().__init__(message)


class AuthenticationFailureError(CipherError):
    """Authentication tag did not verify: data corrupted/tampered or the key has changed."""
    code = ErrorCode.CIPHER_AUTHENTICATION_FAILURE

    def __init__(self, message: str = "Encrypted data failed authentication"):
        super().__init__(message)


class StorageUnavailableError(PortalError):
    """Raised when the relational store cannot be reached. Never retried by the core."""
    status_code = 503
    error = "Service Unavailable"
    code = ErrorCode.STORAGE_UNAVAILABLE

    def __init__(self, message: str = "Storage is unavailable"):
        super().__init__(message)
