from datetime import timedelta
import pytest
from craftlink.auth.constants import (
    EMAIL_TAKEN, INVALID_CREDENTIALS, INVALID_REFRESH, OTP_EXPIRED, OTP_INVALID, OTP_LOCKED, OTP_NOT_FOUND,
    RESET_REQUESTED, SESSION_EXPIRED, SESSION_NOT_FOUND, USER_NOT_FOUND,
)
from craftlink.common.errors import AppError, ErrorKind
from craftlink.common.utils import now
from craftlink.schema.full_schema import Otp, OtpType, Provider, Role, ServiceType, UserSession, Users

email = "maker@example.com"
password = "Secure123"
phone = "9876543210"


async def _otp_code(store, otp_id) -> str:
    return (await store.find_by_id(Otp, otp_id)).code


async def test_register_creates_user_session_and_otp(auth_service, store):
    result = await auth_service.register_with_email("  Maker@Example.com ", password,
                                                    user_agent="pytest", ip_address="10.0.0.1")

    assert result.has_provider is False
    assert result.user.email == email
    assert result.user.role is Role.PROVIDER
    assert result.user.is_verified is False
    assert result.user.password_hash and result.user.password_hash != password
    assert result.user.last_login_at is not None

    sessions = await store.find_where(UserSession, UserSession.user_id == result.user.id)
    assert len(sessions) == 1
    assert sessions[0].refresh_token == result.tokens.refresh_token
    assert sessions[0].user_agent == "pytest"
    assert sessions[0].ip_address == "10.0.0.1"
    assert sessions[0].expires_at > now() + timedelta(days=29)

    otps = await store.find_where(Otp, Otp.user_id == result.user.id)
    assert [o.type for o in otps] == [OtpType.REGISTER]

    # tokens are usable before the otp is confirmed
    payload = auth_service.tokens.verify_access_token(result.tokens.access_token)
    assert payload.sub == result.user.id
    assert payload.role == "PROVIDER"


async def test_register_duplicate_email_conflicts(auth_service, store):
    await auth_service.register_with_email(email, password)
    with pytest.raises(AppError) as exc:
        await auth_service.register_with_email(email.upper(), "Different123")
    assert exc.value.kind is ErrorKind.CONFLICT
    assert exc.value.message == EMAIL_TAKEN
    assert await store.count(Users) == 1


async def test_login_success_opens_new_session(auth_service, store):
    registered = await auth_service.register_with_email(email, password)
    result = await auth_service.login_with_email(email, password)

    assert result.user.id == registered.user.id
    assert result.tokens.refresh_token != registered.tokens.refresh_token
    assert await store.count(UserSession, UserSession.user_id == result.user.id) == 2


async def test_login_failures_share_one_message(auth_service, store):
    await auth_service.register_with_email(email, password)
    await store.create(Users(email="otp-only@example.com", role=Role.PROVIDER))

    attempts = [
        ("nonexistent@x.com", "whatever"),
        (email, "wrongpass"),
        ("otp-only@example.com", password),
    ]
    for addr, pw in attempts:
        with pytest.raises(AppError) as exc:
            await auth_service.login_with_email(addr, pw)
        assert exc.value.kind is ErrorKind.UNAUTHORIZED
        assert exc.value.message == INVALID_CREDENTIALS


async def test_has_provider_reflects_profile(auth_service, store):
    registered = await auth_service.register_with_email(email, password)
    await store.create(Provider(
        user_id=registered.user.id, business_name="Oak & Pine", slug="oak-and-pine",
        service_type=ServiceType.CARPENTER, city="Pune", whatsapp_number=phone,
    ))
    result = await auth_service.login_with_email(email, password)
    assert result.has_provider is True


async def test_phone_otp_creates_user_once(auth_service, store):
    first = await auth_service.send_phone_otp(phone)
    second = await auth_service.send_phone_otp(phone)

    assert first.otp_id != second.otp_id
    users = await store.find_where(Users, Users.phone_number == phone)
    assert len(users) == 1
    assert users[0].password_hash is None
    assert users[0].email is None
    assert await store.count(Otp, Otp.user_id == users[0].id, Otp.type == OtpType.LOGIN) == 2


async def test_verify_otp_succeeds_exactly_once(auth_service, store):
    dispatch = await auth_service.send_phone_otp(phone)
    code = await _otp_code(store, dispatch.otp_id)

    result = await auth_service.verify_otp(code, phone=phone)
    assert result.user.is_verified is True
    assert result.has_provider is False
    assert (await store.find_by_id(Otp, dispatch.otp_id)).verified is True

    with pytest.raises(AppError) as exc:
        await auth_service.verify_otp(code, phone=phone)
    assert exc.value.kind is ErrorKind.BAD_REQUEST
    assert exc.value.message == OTP_NOT_FOUND


async def test_verify_otp_by_email(auth_service, store):
    registered = await auth_service.register_with_email(email, password)
    otp = await store.find_one(Otp, Otp.user_id == registered.user.id)

    result = await auth_service.verify_otp(otp.code, email=email)
    assert result.user.is_verified is True


async def test_three_wrong_codes_lock_the_otp(auth_service, store):
    dispatch = await auth_service.send_phone_otp(phone)
    code = await _otp_code(store, dispatch.otp_id)
    wrong = "000000" if code != "000000" else "111111"

    for _ in range(3):
        with pytest.raises(AppError) as exc:
            await auth_service.verify_otp(wrong, phone=phone)
        assert exc.value.message == OTP_INVALID

    assert (await store.find_by_id(Otp, dispatch.otp_id)).attempts == 3

    with pytest.raises(AppError) as exc:
        await auth_service.verify_otp(code, phone=phone)
    assert exc.value.kind is ErrorKind.BAD_REQUEST
    assert exc.value.message == OTP_LOCKED


async def test_expired_otp_is_rejected(auth_service, store):
    dispatch = await auth_service.send_phone_otp(phone)
    code = await _otp_code(store, dispatch.otp_id)
    await store.update(Otp, dispatch.otp_id, expires_at=now() - timedelta(seconds=1))

    with pytest.raises(AppError) as exc:
        await auth_service.verify_otp(code, phone=phone)
    assert exc.value.message == OTP_EXPIRED


async def test_only_latest_otp_is_live(auth_service, store):
    older = await auth_service.send_phone_otp(phone)
    newer = await auth_service.send_phone_otp(phone)
    await store.update(Otp, older.otp_id, code="111111")
    await store.update(Otp, newer.otp_id, code="222222")

    with pytest.raises(AppError) as exc:
        await auth_service.verify_otp("111111", phone=phone)
    assert exc.value.message == OTP_INVALID

    result = await auth_service.verify_otp("222222", phone=phone)
    assert result.user.phone_number == phone


async def test_verify_otp_unknown_user(auth_service):
    with pytest.raises(AppError) as exc:
        await auth_service.verify_otp("123456", phone="9999999999")
    assert exc.value.kind is ErrorKind.NOT_FOUND
    assert exc.value.message == USER_NOT_FOUND


async def test_verify_otp_without_pending_code(auth_service, store):
    await store.create(Users(phone_number=phone, role=Role.PROVIDER))
    with pytest.raises(AppError) as exc:
        await auth_service.verify_otp("123456", phone=phone)
    assert exc.value.message == OTP_NOT_FOUND


async def test_refresh_rotates_and_old_token_dies(auth_service, store):
    registered = await auth_service.register_with_email(email, password)
    old_refresh = registered.tokens.refresh_token

    pair = await auth_service.refresh_token(old_refresh)
    assert pair.refresh_token != old_refresh

    session = await store.find_one(UserSession, UserSession.user_id == registered.user.id)
    assert session.refresh_token == pair.refresh_token

    with pytest.raises(AppError) as exc:
        await auth_service.refresh_token(old_refresh)
    assert exc.value.kind is ErrorKind.UNAUTHORIZED
    assert exc.value.message == SESSION_NOT_FOUND


async def test_refresh_rejects_invalid_tokens(auth_service):
    registered = await auth_service.register_with_email(email, password)
    for bad in ("garbage", registered.tokens.access_token):
        with pytest.raises(AppError) as exc:
            await auth_service.refresh_token(bad)
        assert exc.value.kind is ErrorKind.UNAUTHORIZED
        assert exc.value.message == INVALID_REFRESH


async def test_refresh_with_expired_session_deletes_it(auth_service, store):
    registered = await auth_service.register_with_email(email, password)
    session = await store.find_one(UserSession, UserSession.user_id == registered.user.id)
    await store.update(UserSession, session.id, expires_at=now() - timedelta(seconds=1))

    with pytest.raises(AppError) as exc:
        await auth_service.refresh_token(registered.tokens.refresh_token)
    assert exc.value.message == SESSION_EXPIRED
    assert await store.find_by_id(UserSession, session.id) is None


async def test_refresh_for_deleted_user(auth_service, store):
    registered = await auth_service.register_with_email(email, password)
    await store.delete(Users, registered.user.id)

    with pytest.raises(AppError) as exc:
        await auth_service.refresh_token(registered.tokens.refresh_token)
    assert exc.value.kind is ErrorKind.UNAUTHORIZED
    assert exc.value.message == USER_NOT_FOUND


async def test_logout_and_logout_all(auth_service, store):
    registered = await auth_service.register_with_email(email, password)
    second = await auth_service.login_with_email(email, password)
    third = await auth_service.login_with_email(email, password)
    user_id = registered.user.id
    assert await store.count(UserSession, UserSession.user_id == user_id) == 3

    await auth_service.logout(second.tokens.refresh_token)
    assert await store.count(UserSession, UserSession.user_id == user_id) == 2

    # unknown tokens are a no-op
    await auth_service.logout("never-issued")

    await auth_service.logout_all(user_id)
    assert await store.count(UserSession, UserSession.user_id == user_id) == 0

    with pytest.raises(AppError):
        await auth_service.refresh_token(third.tokens.refresh_token)


async def test_cleanup_counts(auth_service, store):
    registered = await auth_service.register_with_email(email, password)
    await auth_service.send_phone_otp(phone)
    otp = await store.find_one(Otp, Otp.user_id == registered.user.id)
    await store.update(Otp, otp.id, expires_at=now() - timedelta(minutes=1))

    assert await auth_service.cleanup_expired_otps() == 1
    assert await auth_service.cleanup_expired_sessions() == 0
    assert await store.count(Otp) == 1


async def test_get_user_by_id(auth_service):
    registered = await auth_service.register_with_email(email, password)
    user = await auth_service.get_user_by_id(registered.user.id)
    assert user.email == email
    assert await auth_service.get_user_by_id("missing") is None


async def test_password_reset_flow(auth_service, store):
    registered = await auth_service.register_with_email(email, password)
    await auth_service.login_with_email(email, password)

    dispatch = await auth_service.request_password_reset(email)
    assert dispatch.message == RESET_REQUESTED
    otp = await store.find_by_id(Otp, dispatch.otp_id)
    assert otp.type is OtpType.RESET_PASSWORD

    await auth_service.reset_password(email, otp.code, "NewSecure456")

    assert await store.count(UserSession, UserSession.user_id == registered.user.id) == 0
    with pytest.raises(AppError):
        await auth_service.login_with_email(email, password)
    result = await auth_service.login_with_email(email, "NewSecure456")
    assert result.user.id == registered.user.id


async def test_password_reset_ignores_other_otp_types(auth_service, store):
    registered = await auth_service.register_with_email(email, password)
    register_otp = await store.find_one(Otp, Otp.user_id == registered.user.id)

    with pytest.raises(AppError) as exc:
        await auth_service.reset_password(email, register_otp.code, "NewSecure456")
    assert exc.value.message == OTP_NOT_FOUND


async def test_password_reset_request_for_unknown_email(auth_service, store):
    dispatch = await auth_service.request_password_reset("ghost@example.com")
    assert dispatch.message == RESET_REQUESTED
    assert dispatch.otp_id is None
    assert await store.count(Otp) == 0


async def test_non_ascii_code_counts_as_a_wrong_guess(auth_service, store):
    dispatch = await auth_service.send_phone_otp(phone)

    with pytest.raises(AppError) as exc:
        await auth_service.verify_otp("١٢٣٤٥٦", phone=phone)
    assert exc.value.message == OTP_INVALID
    assert (await store.find_by_id(Otp, dispatch.otp_id)).attempts == 1
