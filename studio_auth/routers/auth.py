import logging

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse

from studio_auth.config import Settings, get_settings
from studio_auth.dependencies import get_auth_service
from studio_auth.schemas.user import (
    EmailRequest,
    ResetPasswordRequest,
    SessionResponse,
    SigninRequest,
    SignupRequest,
    VerifyEmailRequest,
    VerifyOtpRequest,
)
from studio_auth.services.auth_middleware import get_current_session
from studio_auth.services.auth_service import AuthService, public_user
from studio_auth.utils.response import create_response, error_response, handle_exception, result_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])


def _client_meta(request: Request) -> dict:
    return {
        "user_agent": request.headers.get("user-agent"),
        "ip_address": request.client.host if request.client else None,
    }


def _set_refresh_cookie(response: JSONResponse, token: str, settings: Settings) -> None:
    response.set_cookie(
        key=settings.REFRESH_COOKIE_NAME,
        value=token,
        max_age=settings.refresh_cookie_max_age,
        path="/",
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
    )


@router.post("/signup")
def signup(
    body: SignupRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    try:
        logger.info("Signup request: %s", body.model_dump())
        result = service.signup(
            full_name=body.full_name,
            phone_number=body.phone_number,
            email=body.email,
            password=body.password,
            **_client_meta(request),
        )
        return result_response(result, status.HTTP_201_CREATED)
    except Exception as exc:
        return handle_exception(exc, "signup", settings)


@router.post("/signin")
def signin(
    body: SigninRequest,
    request: Request,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    try:
        logger.info("Signin request: %s", body.model_dump())
        result = service.signin(body.email, body.password, **_client_meta(request))
        if not result.ok:
            return error_response(result.error)

        tokens = result.data["tokens"]
        # Refresh token travels only in the httpOnly cookie.
        response = create_response(
            result.message,
            {"user": result.data["user"], "accessToken": tokens["accessToken"]},
        )
        _set_refresh_cookie(response, tokens["refreshToken"], settings)
        return response
    except Exception as exc:
        return handle_exception(exc, "signin", settings)


@router.post("/refresh")
def refresh(
    request: Request,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    try:
        result = service.refresh(
            request.cookies.get(settings.REFRESH_COOKIE_NAME), **_client_meta(request)
        )
        if not result.ok:
            return error_response(result.error)

        tokens = result.data["tokens"]
        response = create_response(result.message, {"accessToken": tokens["accessToken"]})
        _set_refresh_cookie(response, tokens["refreshToken"], settings)
        return response
    except Exception as exc:
        return handle_exception(exc, "refresh", settings)


@router.post("/forgot-password")
def forgot_password(
    body: EmailRequest,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    try:
        return result_response(service.forgot_password(body.email))
    except Exception as exc:
        return handle_exception(exc, "forgot-password", settings)


@router.post("/reset-password")
def reset_password(
    body: ResetPasswordRequest,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    try:
        logger.info("Reset password request: %s", body.model_dump())
        return result_response(service.reset_password(body.email, body.otp, body.password))
    except Exception as exc:
        return handle_exception(exc, "reset-password", settings)


@router.post("/verify-email")
def verify_email(
    body: VerifyEmailRequest,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    try:
        return result_response(service.verify_email(body.token))
    except Exception as exc:
        return handle_exception(exc, "verify-email", settings)


@router.post("/send-otp")
def send_otp(
    body: EmailRequest,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    try:
        return result_response(service.send_otp(body.email))
    except Exception as exc:
        return handle_exception(exc, "send-otp", settings)


@router.post("/verify-otp")
def verify_otp(
    body: VerifyOtpRequest,
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    try:
        logger.info("Verify OTP request: %s", body.model_dump())
        return result_response(service.verify_otp(body.email, body.otp))
    except Exception as exc:
        return handle_exception(exc, "verify-otp", settings)


@router.post("/logout")
def logout(
    auth_context=Depends(get_current_session),
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    try:
        result = service.logout(auth_context["session"].session_key)
        response = result_response(result)
        response.delete_cookie(settings.REFRESH_COOKIE_NAME, path="/")
        return response
    except Exception as exc:
        return handle_exception(exc, "logout", settings)


@router.post("/logout-all")
def logout_all(
    auth_context=Depends(get_current_session),
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    try:
        result = service.logout_all(auth_context["user"].id)
        response = result_response(result)
        response.delete_cookie(settings.REFRESH_COOKIE_NAME, path="/")
        return response
    except Exception as exc:
        return handle_exception(exc, "logout-all", settings)


@router.get("/me")
def me(auth_context=Depends(get_current_session), settings: Settings = Depends(get_settings)):
    try:
        user = auth_context["user"]
        return create_response(
            "User fetched successfully",
            {"user": {**public_user(user), "isEmailVerified": user.is_email_verified}},
        )
    except Exception as exc:
        return handle_exception(exc, "me", settings)


@router.get("/sessions")
def list_sessions(
    auth_context=Depends(get_current_session),
    service: AuthService = Depends(get_auth_service),
    settings: Settings = Depends(get_settings),
):
    try:
        current_key = auth_context["session"].session_key
        sessions = [
            {
                **SessionResponse.model_validate(record).model_dump(by_alias=True),
                "current": record.session_key == current_key,
            }
            for record in service.list_sessions(auth_context["user"].id)
        ]
        return create_response("Sessions fetched successfully", {"sessions": sessions})
    except Exception as exc:
        return handle_exception(exc, "sessions", settings)
