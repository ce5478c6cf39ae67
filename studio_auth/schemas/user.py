from datetime import datetime

from pydantic import BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class SignupRequest(CamelModel):
    full_name: str
    phone_number: str
    email: EmailStr
    password: str


class SigninRequest(CamelModel):
    email: EmailStr
    password: str


# The remaining bodies are checked field-by-field in the flow controller so that
# a missing field yields the endpoint's own 400 message.
class EmailRequest(CamelModel):
    email: str | None = None


class ResetPasswordRequest(CamelModel):
    email: str | None = None
    otp: str | None = None
    password: str | None = None


class VerifyEmailRequest(CamelModel):
    token: str | None = None


class VerifyOtpRequest(CamelModel):
    email: str | None = None
    otp: str | None = None


class PublicUser(CamelModel):
    id: int
    full_name: str
    email: EmailStr

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class SessionResponse(CamelModel):
    id: int
    user_agent: str | None
    ip_address: str | None
    created_at: datetime
    last_used_at: datetime
    expires_at: datetime

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )
