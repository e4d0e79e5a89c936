"""Application error type shared by services and routes.

Every failure the API reports to a client is an ``ApiError`` carrying the
HTTP status it maps to. The handlers in ``api/error_handlers.py`` render it
as ``{"error": message}``.
"""
from fastapi import status


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message

    def to_response(self) -> dict:
        return {"error": self.message}

    def __repr__(self):
        return f"<ApiError {self.status_code}: {self.message}>"

    @classmethod
    def bad_request(cls, message: str = "Bad request") -> "ApiError":
        return cls(status.HTTP_400_BAD_REQUEST, message)

    @classmethod
    def unauthorized(cls, message: str = "Unauthorized") -> "ApiError":
        return cls(status.HTTP_401_UNAUTHORIZED, message)

    @classmethod
    def forbidden(cls, message: str = "Access denied") -> "ApiError":
        return cls(status.HTTP_403_FORBIDDEN, message)

    @classmethod
    def not_found(cls, message: str = "Not found") -> "ApiError":
        return cls(status.HTTP_404_NOT_FOUND, message)

    @classmethod
    def method_not_allowed(cls, message: str = "Method not allowed") -> "ApiError":
        return cls(status.HTTP_405_METHOD_NOT_ALLOWED, message)

    @classmethod
    def internal(cls, message: str = "Internal server error") -> "ApiError":
        return cls(status.HTTP_500_INTERNAL_SERVER_ERROR, message)
