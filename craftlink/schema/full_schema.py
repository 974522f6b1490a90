import enum
from datetime import datetime
from typing import Optional
from sqlalchemy import Boolean, Column, Enum, ForeignKey, Integer, String, Text
from sqlmodel import SQLModel, Field
from craftlink.schema.utils import TZDateTime, new_id, now


class Role(str, enum.Enum):
    PROVIDER = "PROVIDER"
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"


class OtpType(str, enum.Enum):
    LOGIN = "LOGIN"
    REGISTER = "REGISTER"
    RESET_PASSWORD = "RESET_PASSWORD"


class ServiceType(str, enum.Enum):
    CARPENTER = "CARPENTER"
    INTERIOR_DESIGNER = "INTERIOR_DESIGNER"
    HOME_DECOR = "HOME_DECOR"
    FURNITURE_MAKER = "FURNITURE_MAKER"


class Users(SQLModel, table=True):
    __tablename__ = "users"

    id: str = Field(default_factory=new_id, primary_key=True)
    #* nullable on both, a user carries at least one of email / phone_number
    email: Optional[str] = Field(default=None, sa_column=Column(String(320), nullable=True, unique=True, index=True))
    phone_number: Optional[str] = Field(default=None, sa_column=Column(String(20), nullable=True, unique=True, index=True))
    # absent for phone-only accounts, those can only log in via otp
    password_hash: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    role: Role = Field(default=Role.PROVIDER,
        sa_column=Column(Enum(Role, native_enum=False, length=16), nullable=False, default=Role.PROVIDER))
    is_verified: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))

    created_at: datetime = Field(default_factory=now,
        sa_column=Column(TZDateTime(), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(TZDateTime(), nullable=False, default=now, onupdate=now))
    last_login_at: Optional[datetime] = Field(default=None, sa_column=Column(TZDateTime(), nullable=True))


class Otp(SQLModel, table=True):
    __tablename__ = "otps"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    code: str = Field(sa_column=Column(String(12), nullable=False))
    type: OtpType = Field(sa_column=Column(Enum(OtpType, native_enum=False, length=32), nullable=False))
    expires_at: datetime = Field(sa_column=Column(TZDateTime(), nullable=False, index=True))
    verified: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    attempts: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(TZDateTime(), nullable=False, default=now, index=True))


class UserSession(SQLModel, table=True):
    """Binds a user to the one refresh token currently allowed to mint new pairs."""
    __tablename__ = "sessions"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False))
    # overwritten in place on every rotation
    refresh_token: str = Field(sa_column=Column(String(1024), nullable=False, unique=True, index=True))
    user_agent: Optional[str] = Field(default=None, sa_column=Column(String(512), nullable=True))
    ip_address: Optional[str] = Field(default=None, sa_column=Column(String(64), nullable=True))
    expires_at: datetime = Field(sa_column=Column(TZDateTime(), nullable=False, index=True))
    created_at: datetime = Field(default_factory=now,
        sa_column=Column(TZDateTime(), nullable=False, default=now))


class Provider(SQLModel, table=True):
    """Service-provider business profile, one per user. Managed outside the auth flows."""
    __tablename__ = "providers"

    id: str = Field(default_factory=new_id, primary_key=True)
    user_id: str = Field(sa_column=Column(ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False))
    business_name: str = Field(sa_column=Column(String(200), nullable=False))
    slug: str = Field(sa_column=Column(String(220), nullable=False, unique=True, index=True))
    service_type: ServiceType = Field(sa_column=Column(Enum(ServiceType, native_enum=False, length=32), nullable=False))
    city: str = Field(sa_column=Column(String(120), nullable=False))
    whatsapp_number: str = Field(sa_column=Column(String(20), nullable=False))
    experience_years: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))
    description: Optional[str] = Field(default=None, sa_column=Column(Text(), nullable=True))
    is_verified: bool = Field(default=False, sa_column=Column(Boolean, nullable=False, default=False))
    is_active: bool = Field(default=True, sa_column=Column(Boolean, nullable=False, default=True))
    profile_views: int = Field(default=0, sa_column=Column(Integer, nullable=False, default=0))

    created_at: datetime = Field(default_factory=now,
        sa_column=Column(TZDateTime(), nullable=False, default=now))
    updated_at: datetime = Field(default_factory=now,
        sa_column=Column(TZDateTime(), nullable=False, default=now, onupdate=now))
