import hashlib
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from jose import JWTError, jwt

from studio_auth.config import Settings

ACCESS = "access"
REFRESH = "refresh"


class InvalidTokenError(Exception):
    pass


@dataclass(frozen=True)
class TokenPair:
    access_token: str
    refresh_token: str

    def as_dict(self) -> dict:
        return {"accessToken": self.access_token, "refreshToken": self.refresh_token}


class TokenIssuer:
    """Signs access and refresh tokens with separate secrets."""

    def __init__(self, settings: Settings):
        self._algorithm = settings.ALGORITHM
        self._secrets = {
            ACCESS: settings.JWT_SECRET,
            REFRESH: settings.JWT_REFRESH_SECRET,
        }
        self._lifetimes = {
            ACCESS: timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
            REFRESH: timedelta(days=settings.REFRESH_TOKEN_EXPIRE_DAYS),
        }

    @property
    def refresh_lifetime(self) -> timedelta:
        return self._lifetimes[REFRESH]

    def _encode(self, token_type: str, user_id: int, session_key: str) -> str:
        now = datetime.now(timezone.utc)
        claims = {
            "userId": user_id,
            "sid": session_key,
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + self._lifetimes[token_type],
        }
        return jwt.encode(claims, self._secrets[token_type], algorithm=self._algorithm)

    def _decode(self, token_type: str, token: str) -> dict:
        try:
            payload = jwt.decode(token, self._secrets[token_type], algorithms=[self._algorithm])
        except JWTError as exc:
            raise InvalidTokenError(str(exc)) from exc
        if payload.get("type") != token_type:
            raise InvalidTokenError("Invalid token type")
        if not isinstance(payload.get("userId"), int) or not payload.get("sid"):
            raise InvalidTokenError("Invalid token payload")
        return payload

    def issue_token_pair(self, user_id: int, session_key: str) -> TokenPair:
        return TokenPair(
            access_token=self._encode(ACCESS, user_id, session_key),
            refresh_token=self._encode(REFRESH, user_id, session_key),
        )

    def decode_access_token(self, token: str) -> dict:
        return self._decode(ACCESS, token)

    def decode_refresh_token(self, token: str) -> dict:
        return self._decode(REFRESH, token)

    @staticmethod
    def fingerprint(token: str) -> str:
        return hashlib.sha256(token.encode("utf-8")).hexdigest()


def new_session_key() -> str:
    return uuid.uuid4().hex
