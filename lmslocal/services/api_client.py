"""
Client for the LMS remote API.

Every endpoint is a JSON POST answering with an envelope whose `return_code`
decides the outcome; the HTTP status only matters for 401. Reads go through a
TtlCache, writes invalidate the keys they affect. Nothing is retried here.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional

import httpx

from lmslocal.core.config import settings
from lmslocal.core.exceptions import (
    AuthenticationError,
    LmsApiError,
    PermissionDeniedError,
    TransportError,
)
from lmslocal.core.security import ApiSession
from lmslocal.schemas.envelope import AUTH_FAILURE_CODES, ApiEnvelope, ReturnCode
from lmslocal.services.cache import TtlCache

logger = logging.getLogger(__name__)


def _cacheable(envelope: ApiEnvelope) -> bool:
    return envelope.is_success


class LmsApiClient:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.BaseTransport] = None,
        cache: Optional[TtlCache] = None,
    ):
        self.base_url = (base_url or settings.API_BASE_URL).rstrip("/")
        self.cache = cache or TtlCache()
        self._client = httpx.Client(
            base_url=self.base_url,
            timeout=timeout or settings.API_TIMEOUT_SECONDS,
            transport=transport,
        )

    def close(self) -> None:
        self._client.close()

    # --- Transport ---

    def _auth_failed(self, session: Optional[ApiSession], return_code: str, message: Optional[str],
                     status_code: Optional[int]) -> None:
        logger.warning("Remote API rejected credentials (%s); invalidating session", return_code)
        if session is not None:
            session.invalidate()
        self.cache.clear()
        raise AuthenticationError(return_code, message or "Authentication required", status_code)

    def _post(self, path: str, payload: Dict[str, Any], session: Optional[ApiSession] = None) -> ApiEnvelope:
        headers = {}
        if session is not None:
            if not session.is_usable():
                self._auth_failed(session, ReturnCode.TOKEN_EXPIRED.value, "Session expired", None)
            headers = session.auth_headers()

        logger.debug("POST %s %s", path, payload)
        try:
            response = self._client.post(path, json=payload, headers=headers)
        except httpx.TimeoutException as e:
            logger.error("Timed out calling %s", path)
            raise TransportError(f"Request to {path} timed out") from e
        except httpx.HTTPError as e:
            logger.error("Could not reach remote API for %s: %s", path, e)
            raise TransportError(f"Could not reach remote API: {e}") from e

        if response.status_code == 401:
            code = ReturnCode.INVALID_TOKEN.value
            try:
                code = response.json().get("return_code") or code
            except ValueError:
                pass
            self._auth_failed(session, code, None, 401)

        try:
            body = response.json()
        except ValueError as e:
            logger.error("Non-JSON response from %s (HTTP %s)", path, response.status_code)
            raise TransportError(f"Invalid response from {path}", response.status_code) from e
        if not isinstance(body, dict) or "return_code" not in body:
            logger.error("Response from %s carried no return_code (HTTP %s)", path, response.status_code)
            raise TransportError(f"Invalid response from {path}", response.status_code)

        envelope = ApiEnvelope.model_validate(body)
        return self._check(envelope, session, response.status_code)

    def _check(self, envelope: ApiEnvelope, session: Optional[ApiSession], status_code: int) -> ApiEnvelope:
        code = envelope.return_code
        if envelope.is_success:
            return envelope
        if envelope.is_empty_state:
            logger.info("Remote API returned empty state %s", code)
            return envelope
        if code in AUTH_FAILURE_CODES:
            self._auth_failed(session, code, envelope.message, status_code)
        if code == ReturnCode.UNAUTHORIZED.value:
            raise PermissionDeniedError(code, envelope.message or "Not permitted", status_code)
        raise LmsApiError(code, envelope.message, status_code)

    # --- Authentication ---

    def login(self, email: str, password: str) -> ApiSession:
        envelope = self._post("/login", {"email": email, "password": password})
        token = envelope.payload("token")
        user = envelope.payload("user") or {}
        if not token or user.get("id") is None:
            raise LmsApiError(envelope.return_code, "Login response missing token or user")
        # Never serve one user's cached data to another
        self.cache.clear()
        return ApiSession(token=token, user_id=user["id"], display_name=user.get("display_name"))

    def logout(self, session: ApiSession) -> None:
        session.invalidate()
        self.cache.clear()

    # --- Reads ---

    def get_user_dashboard(self, session: ApiSession) -> ApiEnvelope:
        return self.cache.with_cache(
            f"user-dashboard-{session.user_id}",
            settings.CACHE_TTL_DASHBOARD,
            lambda: self._post("/get-user-dashboard", {}, session),
            _cacheable,
        )

    # Keys carry the user id: the remote API decides per user what may be read

    def get_rounds(self, session: ApiSession, competition_id: int) -> ApiEnvelope:
        return self.cache.with_cache(
            f"rounds-{session.user_id}-{competition_id}",
            settings.CACHE_TTL_ROUNDS,
            lambda: self._post("/get-rounds", {"competition_id": competition_id}, session),
            _cacheable,
        )

    def get_fixtures(self, session: ApiSession, round_id: int) -> ApiEnvelope:
        return self.cache.with_cache(
            f"fixtures-{session.user_id}-{round_id}",
            settings.CACHE_TTL_FIXTURES,
            lambda: self._post("/get-fixtures", {"round_id": round_id}, session),
            _cacheable,
        )

    def get_competition_standings(self, session: ApiSession, competition_id: int) -> ApiEnvelope:
        """All players of a competition, gathered from every server-side page."""
        return self.cache.with_cache(
            f"competition-standings-{session.user_id}-{competition_id}",
            settings.CACHE_TTL_STANDINGS,
            lambda: self._load_all_standings(session, competition_id),
            _cacheable,
        )

    def _load_all_standings(self, session: ApiSession, competition_id: int) -> ApiEnvelope:
        page_size = settings.STANDINGS_FETCH_PAGE_SIZE

        def fetch(page: int) -> ApiEnvelope:
            return self._post(
                "/get-competition-standings",
                {"competition_id": competition_id, "page": page, "page_size": page_size},
                session,
            )

        first = fetch(1)
        if not first.is_success:
            return first
        players = list(first.payload("players") or [])
        total_pages = (first.payload("pagination") or {}).get("total_pages") or 1
        for page in range(2, total_pages + 1):
            envelope = fetch(page)
            if not envelope.is_success:
                logger.info("Standings page %d of %d for competition %s came back %s",
                            page, total_pages, competition_id, envelope.return_code)
                break
            players.extend(envelope.payload("players") or [])
        return ApiEnvelope.model_validate({**first.model_dump(), "players": players})

    def get_player_history(self, session: ApiSession, competition_id: int, player_id: int) -> ApiEnvelope:
        return self._post(
            "/get-player-history",
            {"competition_id": competition_id, "player_id": player_id},
            session,
        )

    def get_current_pick(self, session: ApiSession, round_id: int, competition_id: int) -> ApiEnvelope:
        return self.cache.with_cache(
            f"current-pick-{session.user_id}-{round_id}-{competition_id}",
            settings.CACHE_TTL_PICKS,
            lambda: self._post("/get-current-pick", {"round_id": round_id}, session),
            _cacheable,
        )

    def get_pick_counts(self, session: ApiSession, round_id: int) -> ApiEnvelope:
        return self.cache.with_cache(
            f"pick-counts-{session.user_id}-{round_id}",
            settings.CACHE_TTL_PICKS,
            lambda: self._post("/get-fixture-pick-count", {"round_id": round_id}, session),
            _cacheable,
        )

    # --- Writes ---

    def join_competition_by_code(self, session: ApiSession, competition_code: str) -> ApiEnvelope:
        envelope = self._post("/join-competition-by-code", {"competition_code": competition_code.strip()}, session)
        self.cache.delete(f"user-dashboard-{session.user_id}")
        return envelope

    def set_pick(self, session: ApiSession, competition_id: int, round_id: int,
                 fixture_id: int, team: str) -> ApiEnvelope:
        try:
            return self._post("/set-pick", {"fixture_id": fixture_id, "team": team}, session)
        finally:
            self.cache.delete(f"current-pick-{session.user_id}-{round_id}-{competition_id}")
            # Other members see the new pick in counts and standings too
            self.cache.delete_pattern(f"pick-counts-*-{round_id}")
            self.cache.delete_pattern(f"competition-standings-*-{competition_id}")

    def submit_results(self, session: ApiSession, competition_id: int, round_id: int,
                       results: Iterable[Dict[str, Any]]) -> ApiEnvelope:
        payload: List[Dict[str, Any]] = [
            {"fixture_id": r["fixture_id"], "result": r["result"]} for r in results
        ]
        try:
            return self._post("/submit-results", {"competition_id": competition_id, "results": payload}, session)
        finally:
            # Processing touches fixtures, players and possibly the next round for every member
            self.cache.delete_pattern(f"fixtures-*-{round_id}")
            self.cache.delete_pattern(f"rounds-*-{competition_id}")
            self.cache.delete_pattern(f"competition-standings-*-{competition_id}")
            self.cache.delete_pattern(f"pick-counts-*-{round_id}")
            self.cache.delete_pattern("user-dashboard-*")
