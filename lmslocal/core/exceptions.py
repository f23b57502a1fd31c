from typing import Optional


class LmsApiError(Exception):
    """The remote API answered with a return_code this service does not treat as success."""

    def __init__(self, return_code: str, message: Optional[str] = None, status_code: Optional[int] = None):
        self.return_code = return_code
        self.message = message or return_code
        self.status_code = status_code
        super().__init__(f"{return_code}: {self.message}")


class AuthenticationError(LmsApiError):
    """Token missing, expired or rejected. The session has been invalidated."""


class PermissionDeniedError(LmsApiError):
    """The user is authenticated but may not act on this resource."""


class TransportError(LmsApiError):
    """The remote API could not be reached or did not answer with an envelope."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__("TRANSPORT_ERROR", message, status_code)


class RollbackError(LmsApiError):
    """A mutation failed after optimistic changes were shown; they have been reverted."""

    def __init__(self, cause: LmsApiError):
        self.cause = cause
        super().__init__(cause.return_code, cause.message, cause.status_code)
