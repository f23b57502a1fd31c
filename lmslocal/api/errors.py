import logging

from fastapi import HTTPException, Request, status

from lmslocal.core.exceptions import (
    AuthenticationError,
    LmsApiError,
    PermissionDeniedError,
    RollbackError,
    TransportError,
)

logger = logging.getLogger(__name__)


def to_http_exception(error: Exception, request: Request) -> HTTPException:
    """Maps service and remote API failures onto the responses this service returns."""
    if isinstance(error, AuthenticationError):
        request.session.clear()
        return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=error.message)
    if isinstance(error, RollbackError):
        if isinstance(error.cause, TransportError):
            return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                                 detail=f"Remote API unavailable, changes were reverted. Please retry. ({error.message})")
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY,
                             detail=f"Changes were reverted: {error.message}")
    if isinstance(error, TransportError):
        return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
                             detail=f"Remote API unavailable. Please retry. ({error.message})")
    if isinstance(error, PermissionDeniedError):
        return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=error.message)
    if isinstance(error, LmsApiError):
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY,
                             detail={"return_code": error.return_code, "message": error.message})
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))
    logger.exception("Unexpected error handling %s", request.url.path)
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                         detail=f"An unexpected error occurred: {error}")
