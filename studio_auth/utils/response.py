import logging
import traceback

from fastapi import status
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from studio_auth.config import Settings, get_settings
from studio_auth.services.results import AuthError, AuthResult

logger = logging.getLogger(__name__)


def create_response(
    message: str,
    data: dict | None = None,
    status_code: int = status.HTTP_200_OK,
    status_text: str | None = None
) -> JSONResponse:
    """Return the shared payload: message and status plus the data keys at top level."""
    payload_status = status_text or ("success" if status_code < 400 else "error")
    content = {"message": message, "status": payload_status}
    if data:
        content.update(jsonable_encoder(data))
    return JSONResponse(status_code=status_code, content=content)


def error_response(error: AuthError) -> JSONResponse:
    return create_response(error.message, None, error.status_code, status_text="error")


def result_response(result: AuthResult, status_code: int = status.HTTP_200_OK, data: dict | None = None) -> JSONResponse:
    """Render a flow result; ``data`` replaces the result's own payload when given."""
    if not result.ok:
        return error_response(result.error)
    return create_response(result.message, result.data if data is None else data, status_code)


def handle_exception(error: Exception, context: str = "request", settings: Settings | None = None) -> JSONResponse:
    """Coerce raised errors into the shared response structure."""
    if isinstance(error, HTTPException):
        detail = error.detail if isinstance(error.detail, str) else str(error.detail)
        return create_response(detail, None, error.status_code, status_text="error")

    logger.exception("Unexpected error in %s", context)
    data = None
    settings = settings or get_settings()
    if not settings.is_production:
        data = {"stack": "".join(traceback.format_exception(type(error), error, error.__traceback__))}
    message = str(error) or "Internal server error"
    return create_response(message, data, status.HTTP_500_INTERNAL_SERVER_ERROR, status_text="error")
