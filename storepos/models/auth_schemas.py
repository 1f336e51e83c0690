from pydantic import BaseModel, ConfigDict, EmailStr, Field
from pydantic.alias_generators import to_camel
from typing import Optional, Literal


class CamelModel(BaseModel):
    """Request bodies arrive camelCase from the web and mobile clients."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# -------- OTP --------
class RequestOTP(CamelModel):
    email: EmailStr


class VerifyOTP(CamelModel):
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=10)


# -------- Tokens --------
class RefreshBody(CamelModel):
    refresh_token: Optional[str] = None


class LogoutBody(CamelModel):
    refresh_token: str


# -------- Users --------
class UserUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    role: Optional[Literal["user", "admin", "superadmin"]] = None
