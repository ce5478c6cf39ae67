from datetime import datetime, timedelta

import pytest

from studio_auth.models.user import AuthUser
from studio_auth.services.password_service import PasswordHasher

EMAIL = "alice@x.com"
GENERIC = "If the email exists, a verification code has been sent"


def _user(db_session, email=EMAIL):
    db_session.expire_all()
    return db_session.query(AuthUser).filter(AuthUser.email == email).first()


def _expire(db_session, **fields):
    user = _user(db_session)
    for name, value in fields.items():
        setattr(user, name, value)
    db_session.commit()


def _past():
    return datetime.utcnow() - timedelta(seconds=1)


# ---- forgot-password / send-otp ----

@pytest.mark.parametrize("path", ["/api/auth/forgot-password", "/api/auth/send-otp"])
def test_otp_request_stores_code_with_ten_minute_expiry(client, alice, mailer, db_session, path):
    before = datetime.utcnow()
    response = client.post(path, json={"email": EMAIL})

    assert response.status_code == 200
    assert response.json()["message"] == GENERIC

    user = _user(db_session)
    sent = mailer.last("otp")
    assert sent["email"] == EMAIL
    assert sent["name"] == "Alice"
    assert user.otp_code == sent["otp"]
    assert before + timedelta(minutes=9) < user.otp_expires <= datetime.utcnow() + timedelta(minutes=10)


@pytest.mark.parametrize("path", ["/api/auth/forgot-password", "/api/auth/send-otp"])
def test_otp_request_for_unknown_email_looks_identical(client, alice, mailer, db_session, path):
    known = client.post(path, json={"email": EMAIL})
    mailer.outbox.clear()
    unknown = client.post(path, json={"email": "ghost@x.com"})

    assert unknown.status_code == known.status_code == 200
    assert unknown.json() == known.json()
    assert mailer.outbox == []
    assert db_session.query(AuthUser).count() == 1


@pytest.mark.parametrize("path", ["/api/auth/forgot-password", "/api/auth/send-otp"])
def test_otp_request_requires_email(client, path):
    response = client.post(path, json={})

    assert response.status_code == 400
    assert response.json()["message"] == "Email is required"


@pytest.mark.parametrize("path", ["/api/auth/forgot-password", "/api/auth/send-otp"])
def test_otp_request_surfaces_delivery_failure(client, alice, mailer, path):
    mailer.fail = True

    response = client.post(path, json={"email": EMAIL})

    assert response.status_code == 500
    assert response.json()["message"] == "Failed to send verification code"


# ---- verify-otp ----

def test_verify_otp_success_keeps_code(client, alice, mailer, db_session):
    client.post("/api/auth/send-otp", json={"email": EMAIL})
    otp = mailer.last("otp")["otp"]

    response = client.post("/api/auth/verify-otp", json={"email": EMAIL, "otp": otp})

    assert response.status_code == 200
    payload = response.json()
    assert payload["message"] == "OTP verified successfully"
    assert payload["user"] == alice["user"]
    user = _user(db_session)
    assert user.otp_code == otp
    assert user.otp_expires is not None


def test_verify_otp_mismatch(client, alice, mailer):
    client.post("/api/auth/send-otp", json={"email": EMAIL})

    response = client.post("/api/auth/verify-otp", json={"email": EMAIL, "otp": "000000"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid OTP code"


def test_verify_otp_without_outstanding_code(client, alice):
    response = client.post("/api/auth/verify-otp", json={"email": EMAIL, "otp": "123456"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired OTP"


def test_verify_otp_unknown_user(client):
    response = client.post("/api/auth/verify-otp", json={"email": "ghost@x.com", "otp": "123456"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired OTP"


def test_verify_otp_requires_fields(client):
    response = client.post("/api/auth/verify-otp", json={"email": EMAIL})

    assert response.status_code == 400
    assert response.json()["message"] == "Email and OTP are required"


def test_verify_otp_rejects_expired_code(client, alice, mailer, db_session):
    client.post("/api/auth/send-otp", json={"email": EMAIL})
    otp = mailer.last("otp")["otp"]
    _expire(db_session, otp_expires=_past())

    response = client.post("/api/auth/verify-otp", json={"email": EMAIL, "otp": otp})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired OTP"


# ---- reset-password ----

def test_reset_password_scenario(client, alice, mailer, db_session):
    forgot = client.post("/api/auth/forgot-password", json={"email": EMAIL})
    assert forgot.status_code == 200
    otp = mailer.last("otp")["otp"]

    response = client.post(
        "/api/auth/reset-password",
        json={"email": EMAIL, "otp": otp, "password": "NewPass1!"},
    )

    assert response.status_code == 200
    assert response.json()["message"] == "Password reset successful"

    user = _user(db_session)
    hasher = PasswordHasher(rounds=4)
    assert not hasher.verify("Passw0rd!", user.password_hash)
    assert hasher.verify("NewPass1!", user.password_hash)
    assert user.otp_code is None
    assert user.otp_expires is None

    assert client.post("/api/auth/signin", json={"email": EMAIL, "password": "Passw0rd!"}).status_code == 400
    assert client.post("/api/auth/signin", json={"email": EMAIL, "password": "NewPass1!"}).status_code == 200


def test_reset_password_after_verify_otp(client, alice, mailer):
    client.post("/api/auth/send-otp", json={"email": EMAIL})
    otp = mailer.last("otp")["otp"]
    assert client.post("/api/auth/verify-otp", json={"email": EMAIL, "otp": otp}).status_code == 200

    response = client.post(
        "/api/auth/reset-password",
        json={"email": EMAIL, "otp": otp, "password": "NewPass1!"},
    )

    assert response.status_code == 200


def test_mixed_case_address_reaches_the_same_account_everywhere(client, mailer, db_session):
    typed = "Carol.Smith@Example.COM"
    signup = client.post(
        "/api/auth/signup",
        json={"fullName": "Carol", "phoneNumber": "555-0300", "email": typed, "password": "Passw0rd!"},
    )
    assert signup.status_code == 201
    assert signup.json()["user"]["email"] == "carol.smith@example.com"
    assert _user(db_session, "carol.smith@example.com") is not None

    assert client.post("/api/auth/signin", json={"email": typed, "password": "Passw0rd!"}).status_code == 200

    forgot = client.post("/api/auth/forgot-password", json={"email": typed})
    assert forgot.status_code == 200
    sent = mailer.last("otp")
    assert sent["email"] == "carol.smith@example.com"

    verified = client.post("/api/auth/verify-otp", json={"email": "CAROL.SMITH@example.com", "otp": sent["otp"]})
    assert verified.status_code == 200

    reset = client.post(
        "/api/auth/reset-password",
        json={"email": typed, "otp": sent["otp"], "password": "NewPass1!"},
    )
    assert reset.status_code == 200
    assert client.post(
        "/api/auth/signin", json={"email": "carol.smith@example.com", "password": "NewPass1!"}
    ).status_code == 200


def test_signup_rejects_address_differing_only_in_case(client, alice):
    response = client.post(
        "/api/auth/signup",
        json={"fullName": "Alice Two", "phoneNumber": "555-0199", "email": "ALICE@X.com", "password": "Passw0rd!"},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Email already exists"


def test_reset_password_consumes_code(client, alice, mailer):
    client.post("/api/auth/forgot-password", json={"email": EMAIL})
    otp = mailer.last("otp")["otp"]
    body = {"email": EMAIL, "otp": otp, "password": "NewPass1!"}

    assert client.post("/api/auth/reset-password", json=body).status_code == 200
    again = client.post("/api/auth/reset-password", json={**body, "password": "Another1!"})

    assert again.status_code == 400
    assert again.json()["message"] == "Invalid or expired verification code"


def test_reset_password_rejects_short_password_even_with_valid_code(client, alice, mailer, db_session):
    client.post("/api/auth/forgot-password", json={"email": EMAIL})
    otp = mailer.last("otp")["otp"]

    response = client.post(
        "/api/auth/reset-password",
        json={"email": EMAIL, "otp": otp, "password": "short7!"},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Password must be at least 8 characters long"
    assert _user(db_session).otp_code == otp


def test_reset_password_requires_fields(client):
    response = client.post("/api/auth/reset-password", json={"email": EMAIL, "otp": "123456"})

    assert response.status_code == 400
    assert response.json()["message"] == "Email, OTP, and password are required"


def test_reset_password_wrong_code(client, alice, mailer):
    client.post("/api/auth/forgot-password", json={"email": EMAIL})

    response = client.post(
        "/api/auth/reset-password",
        json={"email": EMAIL, "otp": "000000", "password": "NewPass1!"},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid verification code"


def test_reset_password_rejects_expired_code(client, alice, mailer, db_session):
    client.post("/api/auth/forgot-password", json={"email": EMAIL})
    otp = mailer.last("otp")["otp"]
    _expire(db_session, otp_expires=_past())

    response = client.post(
        "/api/auth/reset-password",
        json={"email": EMAIL, "otp": otp, "password": "NewPass1!"},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired verification code"


def test_reset_password_unknown_user(client):
    response = client.post(
        "/api/auth/reset-password",
        json={"email": "ghost@x.com", "otp": "123456", "password": "NewPass1!"},
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired verification code"


# ---- verify-email ----

def test_verify_email_marks_user_and_clears_token(client, alice, mailer, db_session):
    token = mailer.last("verification")["token"]

    response = client.post("/api/auth/verify-email", json={"token": token})

    assert response.status_code == 200
    assert response.json()["message"] == "Email verified successfully"
    user = _user(db_session)
    assert user.is_email_verified is True
    assert user.email_verification_token is None
    assert user.email_verification_expires is None

    reused = client.post("/api/auth/verify-email", json={"token": token})
    assert reused.status_code == 400


def test_verify_email_rejects_expired_token(client, alice, mailer, db_session):
    token = mailer.last("verification")["token"]
    _expire(db_session, email_verification_expires=_past())

    response = client.post("/api/auth/verify-email", json={"token": token})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired verification token"
    assert _user(db_session).is_email_verified is False


def test_verify_email_unknown_token(client):
    response = client.post("/api/auth/verify-email", json={"token": "nope"})

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid or expired verification token"


def test_verify_email_requires_token(client):
    response = client.post("/api/auth/verify-email", json={})

    assert response.status_code == 400
    assert response.json()["message"] == "Verification token is required"
