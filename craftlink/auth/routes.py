from typing import Optional
from fastapi import APIRouter, Depends, Request, status
from craftlink.auth.constants import logger
from craftlink.auth.dependencies import get_auth_service, get_current_user
from craftlink.auth.models import (
    AuthOut, EmailLoginIn, EmailRegisterIn, ForgotPasswordIn, LogoutIn, MessageOut, OtpSentOut, PhoneIn,
    RefreshTokenIn, ResetPasswordIn, UserOut, VerifyOtpIn,
)
from craftlink.auth.services import AuthResult, AuthService, OtpDispatch
from craftlink.common.utils import success_response
from craftlink.rate_limiting.dependencies import auth_rate_limit
from craftlink.rate_limiting.utils import client_ip
from craftlink.schema.full_schema import Users

auth_router = APIRouter()


def _auth_body(result: AuthResult) -> dict:
    out = AuthOut(tokens=result.tokens, user=UserOut.from_row(result.user), has_provider=result.has_provider)
    return out.model_dump(mode="json", by_alias=True)


def _otp_body(dispatch: OtpDispatch) -> dict:
    return OtpSentOut(message=dispatch.message, otp_id=dispatch.otp_id).model_dump(mode="json", by_alias=True)


def _message(text: str) -> dict:
    return MessageOut(message=text).model_dump(by_alias=True)


def _client_meta(request: Request) -> dict:
    return {"user_agent": request.headers.get("user-agent"), "ip_address": client_ip(request)}


@auth_router.post("/register/email", status_code=status.HTTP_201_CREATED, dependencies=[Depends(auth_rate_limit)])
async def register_email(request: Request, payload: EmailRegisterIn,
                         service: AuthService = Depends(get_auth_service)):

    logger.info("register.attempt", extra={"channel": "email"})
    result = await service.register_with_email(payload.email, payload.password, **_client_meta(request))
    return success_response(_auth_body(result), status.HTTP_201_CREATED)


#* phone signup and phone login are the same flow, an unknown number gets an account
@auth_router.post("/register/phone", dependencies=[Depends(auth_rate_limit)])
async def register_phone(payload: PhoneIn, service: AuthService = Depends(get_auth_service)):

    dispatch = await service.send_phone_otp(payload.phone)
    return success_response(_otp_body(dispatch))


@auth_router.post("/login/email", dependencies=[Depends(auth_rate_limit)])
async def login_email(request: Request, payload: EmailLoginIn,
                      service: AuthService = Depends(get_auth_service)):

    logger.info("login.attempt", extra={"channel": "email"})
    result = await service.login_with_email(payload.email, payload.password, **_client_meta(request))
    return success_response(_auth_body(result))


@auth_router.post("/login/phone", dependencies=[Depends(auth_rate_limit)])
async def login_phone(payload: PhoneIn, service: AuthService = Depends(get_auth_service)):

    dispatch = await service.send_phone_otp(payload.phone)
    return success_response(_otp_body(dispatch))


@auth_router.post("/verify-otp", dependencies=[Depends(auth_rate_limit)])
async def verify_otp(request: Request, payload: VerifyOtpIn,
                     service: AuthService = Depends(get_auth_service)):

    result = await service.verify_otp(payload.otp, phone=payload.phone, email=payload.email,
                                      **_client_meta(request))
    return success_response(_auth_body(result))


@auth_router.post("/refresh-token", dependencies=[Depends(auth_rate_limit)])
async def refresh_token(payload: RefreshTokenIn, service: AuthService = Depends(get_auth_service)):

    pair = await service.refresh_token(payload.refresh_token)
    return success_response(pair.model_dump(by_alias=True))


@auth_router.post("/logout")
async def logout(payload: Optional[LogoutIn] = None, service: AuthService = Depends(get_auth_service)):

    if payload is not None and payload.refresh_token:
        await service.logout(payload.refresh_token)
    return success_response(_message("Logged out successfully"))


@auth_router.post("/logout-all")
async def logout_all(user: Users = Depends(get_current_user), service: AuthService = Depends(get_auth_service)):

    await service.logout_all(user.id)
    return success_response(_message("Logged out from all devices"))


@auth_router.get("/me")
async def me(user: Users = Depends(get_current_user)):
    return success_response(UserOut.from_row(user).model_dump(mode="json", by_alias=True))


@auth_router.post("/forgot-password", dependencies=[Depends(auth_rate_limit)])
async def forgot_password(payload: ForgotPasswordIn, service: AuthService = Depends(get_auth_service)):

    # otp id stays server side , the answer is the same for unknown emails
    dispatch = await service.request_password_reset(payload.email)
    return success_response(_message(dispatch.message))


@auth_router.post("/reset-password", dependencies=[Depends(auth_rate_limit)])
async def reset_password(payload: ResetPasswordIn, service: AuthService = Depends(get_auth_service)):

    await service.reset_password(payload.email, payload.otp, payload.new_password)
    return success_response(_message("Password reset successfully. Please login again."))
