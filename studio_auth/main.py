from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from studio_auth.config import settings
from studio_auth.database import Base, engine
from studio_auth.models import user, user_session  # noqa: F401  (register tables)
from studio_auth.routers import auth
from studio_auth.utils.log_redaction import configure_logging
from studio_auth.utils.response import create_response, handle_exception

# Refuse to start without both signing secrets
settings.require_secrets()
configure_logging(settings)

app = FastAPI(title=settings.PROJECT_NAME)

# CORS for SPA / API access; credentials so the refresh cookie is sent
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
def startup_event():
    # Auto create tables
    Base.metadata.create_all(bind=engine)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {"field": ".".join(str(part) for part in error["loc"] if part != "body"), "message": error["msg"]}
        for error in exc.errors()
    ]
    return create_response(
        "Validation error",
        {"errors": errors},
        status.HTTP_400_BAD_REQUEST,
        status_text="error",
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return handle_exception(exc)


# Add routes
app.include_router(auth.router)


@app.get("/")
def home():
    try:
        return create_response(
            message="Studio Auth API running",
            data={"service": "studio-auth"},
            status_code=status.HTTP_200_OK
        )
    except Exception as exc:
        return handle_exception(exc)
