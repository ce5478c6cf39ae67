from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from studio_auth.dependencies import get_credential_store, get_token_issuer
from studio_auth.services.credential_store import CredentialStore
from studio_auth.services.token_service import InvalidTokenError, TokenIssuer

bearer_scheme = HTTPBearer(auto_error=False)


def _get_auth_context(token: str, store: CredentialStore, tokens: TokenIssuer):
    try:
        payload = tokens.decode_access_token(token)
    except InvalidTokenError:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    session = store.get_session_by_key(payload["sid"])
    if not session or not session.is_active or session.user_id != payload["userId"]:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Session expired or logged out")

    user = store.get_user(payload["userId"])
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid or expired token")

    return {"user": user, "session": session, "payload": payload}


def get_current_session(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    store: CredentialStore = Depends(get_credential_store),
    tokens: TokenIssuer = Depends(get_token_issuer),
):
    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Access token required")
    context = _get_auth_context(credentials.credentials, store, tokens)
    context["token"] = credentials.credentials
    return context


def get_current_user(auth_context=Depends(get_current_session)):
    return auth_context["user"]
