from fastapi import Depends
from sqlalchemy.orm import Session

from studio_auth.config import Settings, get_settings
from studio_auth.database import get_db
from studio_auth.services.auth_service import AuthService
from studio_auth.services.credential_store import CredentialStore
from studio_auth.services.email_services import EmailService
from studio_auth.services.password_service import PasswordHasher
from studio_auth.services.token_service import TokenIssuer


def get_token_issuer(settings: Settings = Depends(get_settings)) -> TokenIssuer:
    return TokenIssuer(settings)


def get_password_hasher(settings: Settings = Depends(get_settings)) -> PasswordHasher:
    return PasswordHasher(rounds=settings.BCRYPT_ROUNDS)


def get_email_service(settings: Settings = Depends(get_settings)) -> EmailService:
    return EmailService(settings)


def get_credential_store(db: Session = Depends(get_db)) -> CredentialStore:
    return CredentialStore(db)


def get_auth_service(
    store: CredentialStore = Depends(get_credential_store),
    hasher: PasswordHasher = Depends(get_password_hasher),
    tokens: TokenIssuer = Depends(get_token_issuer),
    mailer: EmailService = Depends(get_email_service),
    settings: Settings = Depends(get_settings),
) -> AuthService:
    return AuthService(store, hasher, tokens, mailer, settings)
