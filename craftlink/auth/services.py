import secrets
from dataclasses import dataclass
from typing import Optional
from craftlink.auth import repository as repo
from craftlink.auth.constants import (
    EMAIL_TAKEN, INVALID_CREDENTIALS, INVALID_REFRESH, OTP_EXPIRED, OTP_INVALID, OTP_LOCKED,
    OTP_NOT_FOUND, OTP_SENT, OTP_SENT_EMAIL, RESET_REQUESTED, SESSION_EXPIRED, SESSION_NOT_FOUND,
    USER_NOT_FOUND, logger,
)
from craftlink.auth.tokens import TokenIssuer, TokenPair
from craftlink.auth.utils import (
    compare_password, generate_otp, get_otp_expiry, hash_password, is_otp_expired, mask_email, mask_phone,
)
from craftlink.common.errors import AppError, ErrorKind, not_found
from craftlink.common.utils import now
from craftlink.config.settings import Settings
from craftlink.db.store import RecordStore
from craftlink.schema.full_schema import Otp, OtpType, Role, UserSession, Users


@dataclass
class AuthResult:
    tokens: TokenPair
    user: Users
    has_provider: bool


@dataclass
class OtpDispatch:
    message: str
    otp_id: Optional[str] = None


class AuthService:
    """
    Registration, login, otp and session lifecycle.
    Raises AppError only , mapping to http statuses lives in the exception handlers.
    """

    def __init__(self, store: RecordStore, tokens: TokenIssuer, settings: Settings):
        self.store = store
        self.tokens = tokens
        self.settings = settings
        self.default_role = Role(settings.DEFAULT_ROLE)

    # ------------------------------------------------------------------ helpers

    async def _open_session(self, user: Users, user_agent: Optional[str],
                            ip_address: Optional[str]) -> TokenPair:
        pair = self.tokens.generate_token_pair(user.id, user.role)
        await repo.create_session(self.store, user.id, pair.refresh_token,
                                  self.settings.SESSION_EXPIRE_DAYS,
                                  user_agent=user_agent, ip_address=ip_address)
        return pair

    async def _issue_otp(self, user_id: str, otp_type: OtpType) -> Otp:
        otp = Otp(
            user_id=user_id,
            code=generate_otp(self.settings.OTP_LENGTH),
            type=otp_type,
            expires_at=get_otp_expiry(self.settings.OTP_EXPIRY_MINUTES),
        )
        return await self.store.create(otp)

    def _deliver(self, otp: Otp, destination: str, masked: str, channel: str):
        # no sms / mail provider wired in , the code only ever reaches the log
        if self.settings.is_dev:
            logger.info("otp.issued %s code for %s via %s: %s", otp.type.value, destination, channel, otp.code,
                        extra={"otp_id": otp.id, "user_id": otp.user_id})
        else:
            logger.info("otp.dispatch.stub", extra={
                "otp_id": otp.id,
                "user_id": otp.user_id,
                "otp_type": otp.type.value,
                "channel": channel,
                "destination": masked,
            })

    async def _check_otp(self, otp: Optional[Otp], code: str) -> Otp:
        if otp is None:
            raise AppError(ErrorKind.BAD_REQUEST, OTP_NOT_FOUND)

        if is_otp_expired(otp.expires_at):
            logger.info("otp.verify.expired", extra={"otp_id": otp.id})
            raise AppError(ErrorKind.BAD_REQUEST, OTP_EXPIRED)

        if otp.attempts >= self.settings.OTP_MAX_ATTEMPTS:
            logger.warning("otp.verify.locked", extra={"otp_id": otp.id, "attempts": otp.attempts})
            raise AppError(ErrorKind.BAD_REQUEST, OTP_LOCKED)

        if not secrets.compare_digest(otp.code.encode(), code.encode()):
            # read-modify-write , concurrent wrong guesses may undercount by one
            await self.store.update(Otp, otp.id, attempts=otp.attempts + 1)
            logger.warning("otp.verify.mismatch", extra={"otp_id": otp.id, "attempts": otp.attempts + 1})
            raise AppError(ErrorKind.BAD_REQUEST, OTP_INVALID)

        await self.store.update(Otp, otp.id, verified=True)
        return otp

    # ------------------------------------------------------------------ email / password

    async def register_with_email(self, email: str, password: str, *, user_agent: Optional[str] = None,
                                  ip_address: Optional[str] = None) -> AuthResult:
        email = email.strip().lower()
        if await repo.user_by_email(self.store, email):
            logger.info("auth.register.duplicate_email", extra={"email": mask_email(email)})
            raise AppError(ErrorKind.CONFLICT, EMAIL_TAKEN)

        password_hash = await hash_password(password)
        user = await self.store.create(Users(
            email=email,
            password_hash=password_hash,
            role=self.default_role,
            is_verified=False,
            last_login_at=now(),
        ))

        # tokens are granted before the email is confirmed
        pair = await self._open_session(user, user_agent, ip_address)
        await self.send_email_otp(user.id, email, OtpType.REGISTER)
        has_provider = await repo.has_provider_profile(self.store, user.id)

        logger.info("auth.register.success", extra={"user_id": user.id})
        return AuthResult(tokens=pair, user=user, has_provider=has_provider)

    async def login_with_email(self, email: str, password: str, *, user_agent: Optional[str] = None,
                               ip_address: Optional[str] = None) -> AuthResult:
        email = email.strip().lower()
        user = await repo.user_by_email(self.store, email)

        # unknown account, otp-only account and bad password all look the same from outside
        if user is None or not user.password_hash or not await compare_password(password, user.password_hash):
            logger.warning("auth.login.failed", extra={"email": mask_email(email)})
            raise AppError(ErrorKind.UNAUTHORIZED, INVALID_CREDENTIALS)

        user = await self.store.update(Users, user.id, last_login_at=now())
        pair = await self._open_session(user, user_agent, ip_address)
        has_provider = await repo.has_provider_profile(self.store, user.id)

        logger.info("auth.login.success", extra={"user_id": user.id})
        return AuthResult(tokens=pair, user=user, has_provider=has_provider)

    # ------------------------------------------------------------------ otp

    async def send_phone_otp(self, phone_number: str) -> OtpDispatch:
        user = await repo.user_by_phone(self.store, phone_number)
        if user is None:
            # phone login doubles as registration
            user = await self.store.create(Users(
                phone_number=phone_number,
                role=self.default_role,
                is_verified=False,
            ))
            logger.info("auth.phone.user_created", extra={"user_id": user.id})

        otp = await self._issue_otp(user.id, OtpType.LOGIN)
        self._deliver(otp, phone_number, mask_phone(phone_number), "sms")
        return OtpDispatch(message=OTP_SENT, otp_id=otp.id)

    async def send_email_otp(self, user_id: str, email: str, otp_type: OtpType) -> OtpDispatch:
        otp = await self._issue_otp(user_id, otp_type)
        self._deliver(otp, email, mask_email(email), "email")
        return OtpDispatch(message=OTP_SENT_EMAIL, otp_id=otp.id)

    async def verify_otp(self, code: str, phone: Optional[str] = None, email: Optional[str] = None, *,
                         user_agent: Optional[str] = None, ip_address: Optional[str] = None) -> AuthResult:
        if phone:
            user = await repo.user_by_phone(self.store, phone)
        elif email:
            user = await repo.user_by_email(self.store, email)
        else:
            raise AppError(ErrorKind.BAD_REQUEST, "Phone or email is required")

        if user is None:
            raise not_found("User")

        otp = await repo.latest_live_otp(self.store, user.id)
        await self._check_otp(otp, code)

        user = await self.store.update(Users, user.id, is_verified=True, last_login_at=now())
        pair = await self._open_session(user, user_agent, ip_address)
        has_provider = await repo.has_provider_profile(self.store, user.id)

        logger.info("auth.otp.verified", extra={"user_id": user.id, "otp_id": otp.id})
        return AuthResult(tokens=pair, user=user, has_provider=has_provider)

    # ------------------------------------------------------------------ password reset

    async def request_password_reset(self, email: str) -> OtpDispatch:
        """Same answer whether or not the email exists , only password accounts get a code."""
        user = await repo.user_by_email(self.store, email)
        if user is None or not user.password_hash:
            logger.info("auth.reset.unknown_email", extra={"email": mask_email(email)})
            return OtpDispatch(message=RESET_REQUESTED)

        dispatch = await self.send_email_otp(user.id, user.email, OtpType.RESET_PASSWORD)
        return OtpDispatch(message=RESET_REQUESTED, otp_id=dispatch.otp_id)

    async def reset_password(self, email: str, code: str, new_password: str) -> None:
        user = await repo.user_by_email(self.store, email)
        if user is None:
            raise not_found("User")

        otp = await repo.latest_live_otp(self.store, user.id, OtpType.RESET_PASSWORD)
        await self._check_otp(otp, code)

        password_hash = await hash_password(new_password)
        await self.store.update(Users, user.id, password_hash=password_hash)
        await self.logout_all(user.id)
        logger.info("auth.reset.success", extra={"user_id": user.id})

    # ------------------------------------------------------------------ sessions

    async def refresh_token(self, refresh_token: str) -> TokenPair:
        try:
            payload = self.tokens.verify_refresh_token(refresh_token)
        except AppError as exc:
            logger.info("auth.refresh.rejected", extra={"reason": exc.code})
            raise AppError(ErrorKind.UNAUTHORIZED, INVALID_REFRESH)

        session = await repo.session_by_refresh_token(self.store, refresh_token)
        if session is None:
            raise AppError(ErrorKind.UNAUTHORIZED, SESSION_NOT_FOUND)

        if session.expires_at < now():
            await self.store.delete(UserSession, session.id)
            logger.info("auth.refresh.session_expired", extra={"session_id": session.id})
            raise AppError(ErrorKind.UNAUTHORIZED, SESSION_EXPIRED)

        user = await self.store.find_by_id(Users, payload.sub)
        if user is None:
            raise AppError(ErrorKind.UNAUTHORIZED, USER_NOT_FOUND)

        pair = self.tokens.generate_token_pair(user.id, user.role)
        await repo.rotate_session(self.store, session.id, pair.refresh_token, self.settings.SESSION_EXPIRE_DAYS)

        logger.info("auth.refresh.rotated", extra={"user_id": user.id, "session_id": session.id})
        return pair

    async def logout(self, refresh_token: str) -> None:
        removed = await self.store.delete_where(UserSession, UserSession.refresh_token == refresh_token)
        logger.info("auth.logout", extra={"sessions_removed": removed})

    async def logout_all(self, user_id: str) -> None:
        removed = await self.store.delete_where(UserSession, UserSession.user_id == user_id)
        logger.info("auth.logout_all", extra={"user_id": user_id, "sessions_removed": removed})

    async def get_user_by_id(self, user_id: str) -> Optional[Users]:
        return await self.store.find_by_id(Users, user_id)

    # ------------------------------------------------------------------ maintenance

    async def cleanup_expired_otps(self) -> int:
        return await self.store.delete_where(Otp, Otp.expires_at < now())

    async def cleanup_expired_sessions(self) -> int:
        return await self.store.delete_where(UserSession, UserSession.expires_at < now())
