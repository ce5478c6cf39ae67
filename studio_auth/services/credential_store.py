import logging
from datetime import datetime

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from studio_auth.models.user import AuthUser
from studio_auth.models.user_session import UserSession

logger = logging.getLogger(__name__)


class DuplicateCredentialError(Exception):
    pass


def normalize_email(email: str) -> str:
    """Canonical form used for every stored and looked-up address."""
    return email.strip().lower()


class CredentialStore:
    """Row-level access to credential records and their sessions."""

    def __init__(self, db: Session):
        self.db = db

    # ---- users ----

    def get_user(self, user_id: int) -> AuthUser | None:
        return self.db.query(AuthUser).filter(AuthUser.id == user_id).first()

    def get_user_by_email(self, email: str) -> AuthUser | None:
        return self.db.query(AuthUser).filter(AuthUser.email == normalize_email(email)).first()

    def get_user_by_phone(self, phone_number: str) -> AuthUser | None:
        return self.db.query(AuthUser).filter(AuthUser.phone_number == phone_number).first()

    def get_user_by_verification_token(self, token: str) -> AuthUser | None:
        return (
            self.db.query(AuthUser)
            .filter(AuthUser.email_verification_token == token)
            .first()
        )

    def create_user(self, **fields) -> AuthUser:
        if fields.get("email"):
            fields["email"] = normalize_email(fields["email"])
        user = AuthUser(**fields)
        self.db.add(user)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            logger.info("Insert rejected by unique constraint for email=%s", fields.get("email"))
            raise DuplicateCredentialError(str(exc.orig)) from exc
        self.db.refresh(user)
        return user

    def update_user(self, user: AuthUser, **fields) -> AuthUser:
        """Apply all fields in one commit."""
        for name, value in fields.items():
            setattr(user, name, value)
        self.db.commit()
        self.db.refresh(user)
        return user

    # ---- sessions ----

    def open_session(
        self,
        user_id: int,
        session_key: str,
        refresh_token_hash: str,
        expires_at: datetime,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> UserSession:
        session_record = UserSession(
            user_id=user_id,
            session_key=session_key,
            refresh_token_hash=refresh_token_hash,
            expires_at=expires_at,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        self.db.add(session_record)
        self.db.commit()
        self.db.refresh(session_record)
        return session_record

    def get_session_by_key(self, session_key: str) -> UserSession | None:
        return (
            self.db.query(UserSession)
            .filter(UserSession.session_key == session_key)
            .first()
        )

    def rotate_session(
        self,
        session_key: str,
        expected_hash: str,
        new_hash: str,
        expires_at: datetime,
    ) -> bool:
        """Swap the stored refresh hash only if it still equals ``expected_hash``."""
        updated = (
            self.db.query(UserSession)
            .filter(
                UserSession.session_key == session_key,
                UserSession.refresh_token_hash == expected_hash,
                UserSession.is_active.is_(True),
            )
            .update(
                {
                    UserSession.refresh_token_hash: new_hash,
                    UserSession.expires_at: expires_at,
                    UserSession.last_used_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        return updated == 1

    def revoke_session(self, session_record: UserSession) -> None:
        session_record.is_active = False
        session_record.revoked_at = datetime.utcnow()
        self.db.commit()

    def revoke_all_sessions(self, user_id: int) -> int:
        revoked = (
            self.db.query(UserSession)
            .filter(UserSession.user_id == user_id, UserSession.is_active.is_(True))
            .update(
                {UserSession.is_active: False, UserSession.revoked_at: datetime.utcnow()},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return revoked

    def list_active_sessions(self, user_id: int) -> list[UserSession]:
        return (
            self.db.query(UserSession)
            .filter(
                UserSession.user_id == user_id,
                UserSession.is_active.is_(True),
                UserSession.expires_at > datetime.utcnow(),
            )
            .order_by(UserSession.last_used_at.desc())
            .all()
        )
