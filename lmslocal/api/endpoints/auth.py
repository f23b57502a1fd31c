import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status

from lmslocal.api.dependencies import SESSION_KEY, get_api_client, get_competition_service
from lmslocal.api.errors import to_http_exception
from lmslocal.core.exceptions import LmsApiError, TransportError
from lmslocal.core.security import ApiSession
from lmslocal.schemas.envelope import LoginRequest, SessionInfo
from lmslocal.services.api_client import LmsApiClient
from lmslocal.services.competition_service import CompetitionService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=SessionInfo)
def login(
    credentials: LoginRequest,
    request: Request,
    client: LmsApiClient = Depends(get_api_client),
):
    """Signs in against the remote API and keeps the token in the signed session cookie."""
    try:
        session = client.login(credentials.email, credentials.password)
    except LmsApiError as e:
        # Wrong credentials come back as a plain return code
        if not isinstance(e, TransportError):
            request.session.clear()
            raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=e.message) from e
        raise to_http_exception(e, request) from e

    request.session[SESSION_KEY] = session.to_cookie()
    logger.info("User %s signed in", session.user_id)
    return SessionInfo(
        user_id=session.user_id,
        display_name=session.display_name,
        expires_at=session.expires_at.isoformat() if session.expires_at else None,
    )


@router.post("/logout", status_code=204)
def logout(
    request: Request,
    client: LmsApiClient = Depends(get_api_client),
    service: CompetitionService = Depends(get_competition_service),
):
    session = ApiSession.from_cookie(request.session.get(SESSION_KEY) or {})
    if session is not None:
        client.logout(session)
        service.forget_user(session.user_id)
    request.session.clear()
