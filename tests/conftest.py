import os
import sys
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

# Ensure predictable environment variables for tests before importing the app.
BASE_DIR = Path(__file__).resolve().parents[1]
TEST_DB_PATH = BASE_DIR / "test.db"

if str(BASE_DIR) not in sys.path:
    sys.path.insert(0, str(BASE_DIR))

os.environ.setdefault("DATABASE_URL", f"sqlite:///{TEST_DB_PATH}")
os.environ.setdefault("JWT_SECRET", "test-access-secret")
os.environ.setdefault("JWT_REFRESH_SECRET", "test-refresh-secret")
os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("APP_ENV", "test")
os.environ.pop("SMTP_HOST", None)

import studio_auth.main as main  # noqa: E402  (import after env vars are set)
from studio_auth.database import Base, SessionLocal, engine  # noqa: E402
from studio_auth.dependencies import get_email_service  # noqa: E402


class RecordingMailer:
    """Stands in for SMTP delivery and keeps every message it was asked to send."""

    def __init__(self):
        self.outbox = []
        self.fail = False
        self._otp_counter = 0

    def generate_token(self):
        return f"verify-token-{len(self.outbox)}-{os.urandom(4).hex()}"

    def generate_otp(self):
        self._otp_counter += 1
        return f"{123450 + self._otp_counter}"

    def send_verification_email(self, email, token, name):
        if self.fail:
            raise ConnectionError("SMTP unavailable")
        self.outbox.append({"kind": "verification", "email": email, "token": token, "name": name})

    def send_otp_email(self, email, otp, name):
        if self.fail:
            raise ConnectionError("SMTP unavailable")
        self.outbox.append({"kind": "otp", "email": email, "otp": otp, "name": name})

    def last(self, kind):
        return [message for message in self.outbox if message["kind"] == kind][-1]


@pytest.fixture()
def mailer():
    return RecordingMailer()


@pytest.fixture()
def client(mailer):
    """Provide a TestClient on fresh tables with email delivery recorded."""
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    main.app.dependency_overrides[get_email_service] = lambda: mailer

    with TestClient(main.app) as test_client:
        yield test_client

    main.app.dependency_overrides.pop(get_email_service, None)


@pytest.fixture()
def db_session():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


ALICE = {
    "fullName": "Alice",
    "phoneNumber": "555-0100",
    "email": "alice@x.com",
    "password": "Passw0rd!",
}


@pytest.fixture()
def alice(client):
    response = client.post("/api/auth/signup", json=ALICE)
    assert response.status_code == 201
    return response.json()
