from typing import Optional

from fastapi import Depends, HTTPException, Request, status

from lmslocal.core.config import Settings, settings
from lmslocal.core.security import ApiSession
from lmslocal.services.api_client import LmsApiClient
from lmslocal.services.competition_service import CompetitionService

SESSION_KEY = "lms_session"

_api_client: Optional[LmsApiClient] = None
_competition_service: Optional[CompetitionService] = None


def get_settings() -> Settings:
    return settings


def get_api_client() -> LmsApiClient:
    global _api_client
    if _api_client is None:
        _api_client = LmsApiClient()
    return _api_client


def get_competition_service(client: LmsApiClient = Depends(get_api_client)) -> CompetitionService:
    global _competition_service
    if _competition_service is None or _competition_service.client is not client:
        _competition_service = CompetitionService(client)
    return _competition_service


def get_current_session(request: Request) -> ApiSession:
    """
    Reads the remote API session from the signed cookie.
    Raises HTTPException(401) and clears the cookie if it is missing or expired.
    """
    session = ApiSession.from_cookie(request.session.get(SESSION_KEY) or {})
    if session is None or not session.is_usable():
        request.session.clear()
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return session
