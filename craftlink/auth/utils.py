import asyncio
import secrets
from datetime import datetime, timedelta
from typing import List, NamedTuple, Optional
from passlib.context import CryptContext
from craftlink.common.utils import now
from craftlink.config.settings import config_settings

OTP_LENGTH = config_settings.OTP_LENGTH
OTP_EXPIRY_MINUTES = config_settings.OTP_EXPIRY_MINUTES
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128

pwd_context = CryptContext(
    schemes=[config_settings.PASS_HASH_SCHEME],
    deprecated="auto",
    bcrypt__rounds=config_settings.PASS_HASH_ROUNDS,
)


class PasswordCheck(NamedTuple):
    valid: bool
    errors: List[str]


async def hash_password(plain_password: str) -> str:
    # bcrypt at cost 12 is ~250ms of cpu, keep it off the event loop
    return await asyncio.to_thread(pwd_context.hash, plain_password)


async def compare_password(plain_password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    try:
        return await asyncio.to_thread(pwd_context.verify, plain_password, password_hash)
    except (ValueError, TypeError):
        # unknown scheme or malformed hash
        return False


def is_valid_password(password: str, min_length: int = PASSWORD_MIN_LENGTH,
                      max_length: int = PASSWORD_MAX_LENGTH) -> PasswordCheck:
    errors = []
    if len(password) < min_length:
        errors.append(f"Password must be at least {min_length} characters long")
    if len(password) > max_length:
        # passlib refuses secrets over 4096 bytes
        errors.append(f"Password must be at most {max_length} characters long")
    if not any(c.isupper() for c in password):
        errors.append("Password must contain at least one uppercase letter")
    if not any(c.islower() for c in password):
        errors.append("Password must contain at least one lowercase letter")
    if not any(c.isdigit() for c in password):
        errors.append("Password must contain at least one number")
    return PasswordCheck(valid=not errors, errors=errors)


def generate_otp(length: int = OTP_LENGTH) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


def get_otp_expiry(minutes: int = OTP_EXPIRY_MINUTES) -> datetime:
    return now() + timedelta(minutes=minutes)


def is_otp_expired(expires_at: datetime) -> bool:
    return now() > expires_at


def mask_email(email: str) -> str:
    local, sep, domain = email.partition("@")
    if not sep:
        return email
    if len(local) <= 2:
        return f"{local[:1]}***@{domain}"
    return f"{local[0]}{'*' * (len(local) - 2)}{local[-1]}@{domain}"


def mask_phone(phone: str) -> str:
    if len(phone) <= 4:
        return phone
    return f"{phone[:2]}{'*' * (len(phone) - 4)}{phone[-2:]}"
