from typing import Any

from fastapi import status


class ArgumentError(ValueError):
    """Raised when a public call receives arguments of the wrong shape or type.

    Always raised before any backend interaction, so it never masks a storage
    failure.
    """


class RoleCycleError(RuntimeError):
    """Raised when a hierarchy walk revisits a role through its own parents."""

    def __init__(self, roles: set[str]) -> None:
        self.roles = roles
        super().__init__(
            f"Role hierarchy contains a cycle among: {', '.join(sorted(map(str, roles)))}"
        )


class AccessError(Exception):
    """Base for errors raised by the HTTP guard; carries its response status."""

    code: str = "ACCESS_ERROR"
    message: str = "Access check failed"
    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str | None = None, *, details: Any | None = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)


class AuthError(AccessError):
    code = "AUTH_ERROR"
    message = "User not authenticated"
    status_code = status.HTTP_401_UNAUTHORIZED


class PermissionError(AccessError):  # type: ignore[override]
    code = "PERMISSION_DENIED"
    message = "Insufficient permissions to access resource"
    status_code = status.HTTP_403_FORBIDDEN


class InternalError(AccessError):
    code = "INTERNAL_ERROR"
    message = "Error checking permissions to access resource"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def error_payload(exc: AccessError) -> dict[str, Any]:
    return {"error": {"code": exc.code, "message": exc.message, "details": exc.details}}
