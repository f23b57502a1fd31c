from datetime import datetime, timezone
from typing import Optional, Dict, Any

from jose import JWTError, jwt


def read_token_expiry(token: str) -> Optional[datetime]:
    """
    Returns the `exp` claim of a remote API token as an aware UTC datetime.
    The signature is not verified here: the remote API owns the signing key and
    rejects bad tokens itself. Returns None when the token carries no usable expiry.
    """
    try:
        claims = jwt.get_unverified_claims(token)
    except JWTError:
        return None
    exp = claims.get("exp")
    if exp is None:
        return None
    try:
        return datetime.fromtimestamp(int(exp), tz=timezone.utc)
    except (TypeError, ValueError, OverflowError):
        return None


class ApiSession:
    """
    Explicit authentication context handed to every remote API call.

    Created at login, invalidated at logout or when the API answers 401.
    Everything else only reads it.
    """

    def __init__(self, token: str, user_id: int, display_name: Optional[str] = None,
                 created_at: Optional[datetime] = None):
        if not token:
            raise ValueError("A session requires a token.")
        self._token = token
        self._user_id = user_id
        self._display_name = display_name
        self._created_at = created_at or datetime.now(timezone.utc)
        self._expires_at = read_token_expiry(token)
        self._invalidated = False

    @property
    def token(self) -> str:
        return self._token

    @property
    def user_id(self) -> int:
        return self._user_id

    @property
    def display_name(self) -> Optional[str]:
        return self._display_name

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def expires_at(self) -> Optional[datetime]:
        return self._expires_at

    @property
    def is_invalidated(self) -> bool:
        return self._invalidated

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        if self._expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        return now >= self._expires_at

    def is_usable(self, now: Optional[datetime] = None) -> bool:
        return not self._invalidated and not self.is_expired(now)

    def invalidate(self) -> None:
        self._invalidated = True

    def auth_headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self._token}"}

    def to_cookie(self) -> Dict[str, Any]:
        return {
            "token": self._token,
            "user_id": self._user_id,
            "display_name": self._display_name,
            "created_at": self._created_at.isoformat(),
        }

    @classmethod
    def from_cookie(cls, data: Dict[str, Any]) -> Optional["ApiSession"]:
        token = data.get("token")
        user_id = data.get("user_id")
        if not token or user_id is None:
            return None
        created_at = None
        if data.get("created_at"):
            try:
                created_at = datetime.fromisoformat(data["created_at"])
            except ValueError:
                created_at = None
        return cls(token=token, user_id=user_id, display_name=data.get("display_name"),
                   created_at=created_at)
