from datetime import timedelta
from typing import Optional
from craftlink.common.utils import now
from craftlink.db.store import RecordStore
from craftlink.schema.full_schema import Otp, OtpType, Provider, UserSession, Users


async def user_by_email(store: RecordStore, email: str) -> Optional[Users]:
    return await store.find_one(Users, Users.email == email.strip().lower())


async def user_by_phone(store: RecordStore, phone: str) -> Optional[Users]:
    return await store.find_one(Users, Users.phone_number == phone)


async def latest_live_otp(store: RecordStore, user_id: str, otp_type: Optional[OtpType] = None) -> Optional[Otp]:
    """Most recently created unverified otp of the user. Older pending ones are never consulted."""
    where = [Otp.user_id == user_id, Otp.verified.is_(False)]
    if otp_type is not None:
        where.append(Otp.type == otp_type)
    # uuid7 ids are time ordered , tie-break on the same created_at
    return await store.find_one(Otp, *where, order_by=(Otp.created_at.desc(), Otp.id.desc()))


async def session_by_refresh_token(store: RecordStore, refresh_token: str) -> Optional[UserSession]:
    return await store.find_one(UserSession, UserSession.refresh_token == refresh_token)


async def has_provider_profile(store: RecordStore, user_id: str) -> bool:
    return await store.count(Provider, Provider.user_id == user_id) > 0


async def provider_for_user(store: RecordStore, user_id: str) -> Optional[Provider]:
    return await store.find_one(Provider, Provider.user_id == user_id)


async def create_session(store: RecordStore, user_id: str, refresh_token: str, expire_days: int,
                         user_agent: Optional[str] = None, ip_address: Optional[str] = None) -> UserSession:
    row = UserSession(
        user_id=user_id,
        refresh_token=refresh_token,
        user_agent=user_agent,
        ip_address=ip_address,
        expires_at=now() + timedelta(days=expire_days),
    )
    return await store.create(row)


async def rotate_session(store: RecordStore, session_id: str, refresh_token: str, expire_days: int) -> Optional[UserSession]:
    return await store.update(UserSession, session_id,
                              refresh_token=refresh_token,
                              expires_at=now() + timedelta(days=expire_days))
