import os
from pathlib import Path
from dotenv import load_dotenv

BASE_DIR = Path(__file__).resolve().parent.parent  # -> project root

# Load .env explicitly from project root
load_dotenv(BASE_DIR / ".env")


class ConfigurationError(RuntimeError):
    """Raised when the process environment cannot run the service."""


class Settings:
    PROJECT_NAME = "Studio Auth"

    REFRESH_COOKIE_NAME = "refreshToken"

    def __init__(self):
        self.ENVIRONMENT = os.getenv("APP_ENV", "development").lower()

        self.DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{BASE_DIR / 'studio_auth.db'}")

        self.JWT_SECRET = os.getenv("JWT_SECRET")
        self.JWT_REFRESH_SECRET = os.getenv("JWT_REFRESH_SECRET")
        self.ALGORITHM = os.getenv("ALGORITHM", "HS256")
        self.ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 15))
        self.REFRESH_TOKEN_EXPIRE_DAYS = int(os.getenv("REFRESH_TOKEN_EXPIRE_DAYS", 7))

        self.EMAIL_VERIFICATION_EXPIRE_HOURS = int(os.getenv("EMAIL_VERIFICATION_EXPIRE_HOURS", 24))
        self.OTP_EXPIRE_MINUTES = int(os.getenv("OTP_EXPIRE_MINUTES", 10))
        self.PASSWORD_MIN_LENGTH = int(os.getenv("PASSWORD_MIN_LENGTH", 8))
        self.BCRYPT_ROUNDS = int(os.getenv("BCRYPT_ROUNDS", 10))

        self.SMTP_HOST = os.getenv("SMTP_HOST")
        self.SMTP_PORT = int(os.getenv("SMTP_PORT", 587))
        self.SMTP_USER = os.getenv("SMTP_USER")
        self.SMTP_PASS = os.getenv("SMTP_PASS")
        self.SMTP_TIMEOUT = float(os.getenv("SMTP_TIMEOUT", 10))
        self.FROM_EMAIL = os.getenv("FROM_EMAIL", self.SMTP_USER)
        self.FRONTEND_URL = os.getenv("FRONTEND_URL", "http://localhost:5173").rstrip("/")

        self.LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
        self.cors_origins = [
            origin.strip()
            for origin in os.getenv("CORS_ORIGINS", "*").split(",")
            if origin.strip()
        ]

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def refresh_cookie_max_age(self) -> int:
        return self.REFRESH_TOKEN_EXPIRE_DAYS * 24 * 60 * 60

    def require_secrets(self) -> "Settings":
        missing = [
            name
            for name in ("JWT_SECRET", "JWT_REFRESH_SECRET")
            if not getattr(self, name)
        ]
        if missing:
            raise ConfigurationError(f"{', '.join(missing)} must be set in the environment")
        if self.JWT_SECRET == self.JWT_REFRESH_SECRET:
            raise ConfigurationError("JWT_SECRET and JWT_REFRESH_SECRET must differ")
        return self


settings = Settings()


def get_settings() -> Settings:
    return settings
