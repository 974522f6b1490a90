import re
from datetime import datetime
from typing import Annotated, Optional
from email_validator import EmailNotValidError, validate_email
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError
from craftlink.auth.tokens import TokenPair
from craftlink.auth.utils import is_valid_password
from craftlink.config.settings import config_settings
from craftlink.schema.full_schema import Role, Users

OTP_LENGTH = config_settings.OTP_LENGTH

# ascii digits only, \d would also take arabic-indic and other unicode digits
PHONE_RE = re.compile(r"^[6-9][0-9]{9}$")
OTP_RE = re.compile(rf"^[0-9]{{{OTP_LENGTH}}}$")


def normalize_email_address(email: str) -> str:
    """Validate with email-validator and return the lower-cased address."""
    try:
        v = validate_email(email.strip(), check_deliverability=False)
    except EmailNotValidError as e:
        raise PydanticCustomError("email", "Invalid email address: {reason}", {"reason": str(e)})
    return v.normalized.lower()


def check_phone(phone: str) -> str:
    phone = phone.strip()
    if not PHONE_RE.fullmatch(phone):
        raise PydanticCustomError("phone", "Phone number must be a valid 10 digit Indian mobile number")
    return phone


def check_otp(otp: str) -> str:
    if not OTP_RE.fullmatch(otp):
        raise PydanticCustomError("otp", f"OTP must be exactly {OTP_LENGTH} digits")
    return otp


def check_password_policy(password: str) -> str:
    result = is_valid_password(password)
    if not result.valid:
        # carries every violated rule , the validation handler expands them
        raise PydanticCustomError("password_policy", "; ".join(result.errors), {"errors": result.errors})
    return password


Email = Annotated[str, AfterValidator(normalize_email_address)]
Phone = Annotated[str, AfterValidator(check_phone)]
OtpCode = Annotated[str, AfterValidator(check_otp)]
StrongPassword = Annotated[str, AfterValidator(check_password_policy)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ------------------------------------------------------------------ requests

class EmailRegisterIn(CamelModel):
    email: Email = Field(..., examples=["user@example.com"])
    password: StrongPassword = Field(..., examples=["Secure123"])


class EmailLoginIn(CamelModel):
    email: Email
    password: str = Field(..., min_length=1)


class PhoneIn(CamelModel):
    phone: Phone = Field(..., examples=["9876543210"])


class VerifyOtpIn(CamelModel):
    phone: Optional[Phone] = None
    email: Optional[Email] = None
    otp: OtpCode

    @model_validator(mode="after")
    def _one_identifier(self):
        if not self.phone and not self.email:
            raise PydanticCustomError("identifier", "Either phone or email is required")
        return self


class RefreshTokenIn(CamelModel):
    refresh_token: str = Field(..., min_length=1)


class LogoutIn(CamelModel):
    refresh_token: Optional[str] = None


class ForgotPasswordIn(CamelModel):
    email: Email


class ResetPasswordIn(CamelModel):
    email: Email
    otp: OtpCode
    new_password: StrongPassword


# ------------------------------------------------------------------ responses

class UserOut(CamelModel):
    id: str
    email: Optional[str] = None
    phone_number: Optional[str] = None
    role: Role
    is_verified: bool
    created_at: datetime
    updated_at: datetime
    last_login_at: Optional[datetime] = None

    @classmethod
    def from_row(cls, user: Users) -> "UserOut":
        # password_hash never leaves the service
        return cls(
            id=user.id,
            email=user.email,
            phone_number=user.phone_number,
            role=user.role,
            is_verified=user.is_verified,
            created_at=user.created_at,
            updated_at=user.updated_at,
            last_login_at=user.last_login_at,
        )


class AuthOut(CamelModel):
    tokens: TokenPair
    user: UserOut
    has_provider: bool


class OtpSentOut(CamelModel):
    message: str
    otp_id: Optional[str] = None


class MessageOut(CamelModel):
    message: str
