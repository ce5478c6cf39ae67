import logging
import secrets
from datetime import datetime, timedelta

from studio_auth.config import Settings
from studio_auth.models.user import AuthUser
from studio_auth.schemas.user import PublicUser
from studio_auth.services.credential_store import CredentialStore, DuplicateCredentialError
from studio_auth.services.email_services import EmailService
from studio_auth.services.password_service import PasswordHasher
from studio_auth.services.results import AuthResult, ErrorKind
from studio_auth.services.token_service import (
    InvalidTokenError,
    TokenIssuer,
    TokenPair,
    new_session_key,
)

logger = logging.getLogger(__name__)

GENERIC_OTP_MESSAGE = "If the email exists, a verification code has been sent"
INVALID_REFRESH_MESSAGE = "Invalid refresh token"


def _now() -> datetime:
    return datetime.utcnow()


def _is_live(expires_at: datetime | None) -> bool:
    return expires_at is not None and _now() < expires_at


def _codes_match(stored: str, presented: str) -> bool:
    return secrets.compare_digest(stored.encode("utf-8"), presented.encode("utf-8"))


def public_user(user: AuthUser) -> dict:
    return PublicUser.model_validate(user).model_dump(by_alias=True)


class AuthService:
    """Signup/signin, refresh rotation, email verification and OTP flows."""

    def __init__(
        self,
        store: CredentialStore,
        hasher: PasswordHasher,
        tokens: TokenIssuer,
        mailer: EmailService,
        settings: Settings,
    ):
        self.store = store
        self.hasher = hasher
        self.tokens = tokens
        self.mailer = mailer
        self.settings = settings

    # ---- sessions ----

    def _open_session(self, user: AuthUser, user_agent: str | None, ip_address: str | None) -> TokenPair:
        session_key = new_session_key()
        pair = self.tokens.issue_token_pair(user.id, session_key)
        self.store.open_session(
            user_id=user.id,
            session_key=session_key,
            refresh_token_hash=self.tokens.fingerprint(pair.refresh_token),
            expires_at=_now() + self.tokens.refresh_lifetime,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        logger.info("Opened session for user_id=%s", user.id)
        return pair

    # ---- signup / signin ----

    def signup(
        self,
        full_name: str,
        phone_number: str,
        email: str,
        password: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AuthResult:
        if self.store.get_user_by_email(email):
            logger.info("Signup rejected, email already registered: %s", email)
            return AuthResult.failure(ErrorKind.conflict, "Email already exists")
        if self.store.get_user_by_phone(phone_number):
            logger.info("Signup rejected, phone number already registered")
            return AuthResult.failure(ErrorKind.conflict, "Number already exists")

        verification_token = self.mailer.generate_token()
        try:
            user = self.store.create_user(
                full_name=full_name,
                phone_number=phone_number,
                email=email,
                password_hash=self.hasher.hash(password),
                email_verification_token=verification_token,
                email_verification_expires=_now()
                + timedelta(hours=self.settings.EMAIL_VERIFICATION_EXPIRE_HOURS),
            )
        except DuplicateCredentialError:
            return AuthResult.failure(ErrorKind.conflict, "Email or number already exists")
        logger.info("Created user_id=%s", user.id)

        pair = self._open_session(user, user_agent, ip_address)

        try:
            self.mailer.send_verification_email(user.email, verification_token, full_name)
        except Exception:
            # Signup stands even if the verification email cannot be delivered.
            logger.exception("Failed to send verification email to user_id=%s", user.id)

        return AuthResult.success(
            "Signup successful",
            user=public_user(user),
            tokens=pair.as_dict(),
        )

    def signin(
        self,
        email: str,
        password: str,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AuthResult:
        user = self.store.get_user_by_email(email)
        if not user:
            logger.info("Signin for unknown email: %s", email)
            return AuthResult.failure(ErrorKind.not_found, "User not found")
        if not self.hasher.verify(password, user.password_hash):
            logger.info("Signin with wrong password for user_id=%s", user.id)
            return AuthResult.failure(ErrorKind.invalid_credentials, "Invalid credentials")

        pair = self._open_session(user, user_agent, ip_address)
        return AuthResult.success(
            "Signin successful",
            user=public_user(user),
            tokens=pair.as_dict(),
        )

    # ---- refresh ----

    def refresh(
        self,
        refresh_token: str | None,
        user_agent: str | None = None,
        ip_address: str | None = None,
    ) -> AuthResult:
        if not refresh_token:
            return AuthResult.failure(ErrorKind.token_required, "Refresh token required")

        try:
            payload = self.tokens.decode_refresh_token(refresh_token)
        except InvalidTokenError as exc:
            logger.info("Refresh token rejected: %s", exc)
            return AuthResult.failure(ErrorKind.unauthorized, INVALID_REFRESH_MESSAGE)

        session_record = self.store.get_session_by_key(payload["sid"])
        presented_hash = self.tokens.fingerprint(refresh_token)
        if (
            session_record is None
            or not session_record.is_active
            or session_record.user_id != payload["userId"]
            or not _is_live(session_record.expires_at)
            or not _codes_match(session_record.refresh_token_hash, presented_hash)
        ):
            logger.info("Refresh token does not match an open session for user_id=%s", payload["userId"])
            return AuthResult.failure(ErrorKind.token_invalid, INVALID_REFRESH_MESSAGE)

        user = self.store.get_user(payload["userId"])
        if not user:
            return AuthResult.failure(ErrorKind.token_invalid, INVALID_REFRESH_MESSAGE)

        pair = self.tokens.issue_token_pair(user.id, session_record.session_key)
        rotated = self.store.rotate_session(
            session_record.session_key,
            expected_hash=presented_hash,
            new_hash=self.tokens.fingerprint(pair.refresh_token),
            expires_at=_now() + self.tokens.refresh_lifetime,
        )
        if not rotated:
            logger.warning("Concurrent refresh lost the race for session of user_id=%s", user.id)
            return AuthResult.failure(ErrorKind.token_invalid, INVALID_REFRESH_MESSAGE)

        logger.info("Rotated refresh token for user_id=%s", user.id)
        return AuthResult.success("Token refreshed", tokens=pair.as_dict())

    # ---- email verification ----

    def verify_email(self, token: str | None) -> AuthResult:
        if not token:
            return AuthResult.failure(ErrorKind.validation, "Verification token is required")

        user = self.store.get_user_by_verification_token(token)
        if not user or not _is_live(user.email_verification_expires):
            return AuthResult.failure(
                ErrorKind.invalid_credentials, "Invalid or expired verification token"
            )

        self.store.update_user(
            user,
            is_email_verified=True,
            email_verification_token=None,
            email_verification_expires=None,
        )
        logger.info("Email verified for user_id=%s", user.id)
        return AuthResult.success("Email verified successfully")

    # ---- OTP ----

    def send_otp(self, email: str | None) -> AuthResult:
        if not email:
            return AuthResult.failure(ErrorKind.validation, "Email is required")

        user = self.store.get_user_by_email(email)
        if not user:
            # Same answer as for a real account.
            logger.info("OTP requested for unknown email: %s", email)
            return AuthResult.success(GENERIC_OTP_MESSAGE)

        otp = self.mailer.generate_otp()
        self.store.update_user(
            user,
            otp_code=otp,
            otp_expires=_now() + timedelta(minutes=self.settings.OTP_EXPIRE_MINUTES),
        )
        logger.info("Issued OTP for user_id=%s", user.id)

        try:
            self.mailer.send_otp_email(user.email, otp, user.full_name)
        except Exception:
            logger.exception("Failed to send OTP email to user_id=%s", user.id)
            return AuthResult.failure(ErrorKind.delivery_failed, "Failed to send verification code")

        return AuthResult.success(GENERIC_OTP_MESSAGE)

    def forgot_password(self, email: str | None) -> AuthResult:
        return self.send_otp(email)

    def verify_otp(self, email: str | None, otp: str | None) -> AuthResult:
        if not email or not otp:
            return AuthResult.failure(ErrorKind.validation, "Email and OTP are required")

        user = self.store.get_user_by_email(email)
        if not user or not user.otp_code or not _is_live(user.otp_expires):
            return AuthResult.failure(ErrorKind.invalid_credentials, "Invalid or expired OTP")
        if not _codes_match(user.otp_code, otp):
            return AuthResult.failure(ErrorKind.invalid_credentials, "Invalid OTP code")

        # The code stays stored; reset_password consumes it.
        logger.info("OTP verified for user_id=%s", user.id)
        return AuthResult.success("OTP verified successfully", user=public_user(user))

    def reset_password(self, email: str | None, otp: str | None, password: str | None) -> AuthResult:
        if not email or not otp or not password:
            return AuthResult.failure(ErrorKind.validation, "Email, OTP, and password are required")
        if len(password) < self.settings.PASSWORD_MIN_LENGTH:
            return AuthResult.failure(
                ErrorKind.validation,
                f"Password must be at least {self.settings.PASSWORD_MIN_LENGTH} characters long",
            )

        user = self.store.get_user_by_email(email)
        if not user or not user.otp_code or not _is_live(user.otp_expires):
            return AuthResult.failure(
                ErrorKind.invalid_credentials, "Invalid or expired verification code"
            )
        if not _codes_match(user.otp_code, otp):
            return AuthResult.failure(ErrorKind.invalid_credentials, "Invalid verification code")

        self.store.update_user(
            user,
            password_hash=self.hasher.hash(password),
            otp_code=None,
            otp_expires=None,
        )
        revoked = self.store.revoke_all_sessions(user.id)
        logger.info("Password reset for user_id=%s, revoked %s sessions", user.id, revoked)
        return AuthResult.success("Password reset successful")

    # ---- session management ----

    def logout(self, session_key: str) -> AuthResult:
        session_record = self.store.get_session_by_key(session_key)
        if session_record and session_record.is_active:
            self.store.revoke_session(session_record)
            logger.info("Session closed for user_id=%s", session_record.user_id)
        return AuthResult.success("Logout successful")

    def logout_all(self, user_id: int) -> AuthResult:
        revoked = self.store.revoke_all_sessions(user_id)
        logger.info("Revoked %s sessions for user_id=%s", revoked, user_id)
        return AuthResult.success("Logged out of all sessions", revoked=revoked)

    def list_sessions(self, user_id: int) -> list:
        return self.store.list_active_sessions(user_id)
