# backend/utils/exceptions.py
from typing import Any, Dict, List, Optional


class ApiException(Exception):
    """Error that maps straight onto an HTTP status and an envelope ``error.code``."""

    status_code = 500
    code = "INTERNAL_SERVER_ERROR"
    default_message = "Internal server error"

    def __init__(self, message: Optional[str] = None, code: Optional[str] = None):
        self.message = message or self.default_message
        if code:
            self.code = code
        super().__init__(self.message)

    def to_error(self) -> Dict[str, Any]:
        return {"code": self.code}


class InternalServerException(ApiException):
    pass


class UnauthorizedException(ApiException):
    status_code = 401
    code = "UNAUTHORIZED"
    default_message = "You are not authenticated"


class ForbiddenException(ApiException):
    status_code = 403
    code = "FORBIDDEN"
    default_message = "You don't have permission to access this resource"


class NotFoundException(ApiException):
    status_code = 404
    code = "NOT_FOUND"
    default_message = "Resource not found"


class BadRequestException(ApiException):
    status_code = 400
    code = "BAD_REQUEST"
    default_message = "Bad request"


class ConflictException(ApiException):
    status_code = 409
    code = "CONFLICT"
    default_message = "Resource already exists"


class ValidationException(ApiException):
    status_code = 400
    code = "VALIDATION_ERROR"
    default_message = "Validation error"

    def __init__(self, details: List[Dict[str, str]], message: Optional[str] = None):
        self.details = details
        super().__init__(message)

    def to_error(self) -> Dict[str, Any]:
        return {"code": self.code, "details": self.details}
