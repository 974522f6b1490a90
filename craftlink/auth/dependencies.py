from typing import Optional
from fastapi import Depends, Header, Request
from craftlink.auth import repository as repo
from craftlink.auth.constants import INSUFFICIENT_PERMISSIONS, MISSING_BEARER, PROVIDER_REQUIRED, USER_NOT_FOUND, logger
from craftlink.auth.services import AuthService
from craftlink.common.errors import AppError, ErrorKind
from craftlink.schema.full_schema import Provider, Role, Users


def get_auth_service(request: Request) -> AuthService:
    return request.app.state.auth_service


def bearer_token(authorization: Optional[str] = Header(None)) -> Optional[str]:
    if not authorization:
        return None
    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        return None
    return token


async def get_current_user(request: Request, token: Optional[str] = Depends(bearer_token),
                           service: AuthService = Depends(get_auth_service)) -> Users:
    if not token:
        raise AppError(ErrorKind.UNAUTHORIZED, MISSING_BEARER)

    # expired / forged tokens surface as TOKEN_EXPIRED / INVALID_TOKEN
    payload = service.tokens.verify_access_token(token)

    user = await service.get_user_by_id(payload.sub)
    if user is None:
        logger.warning("auth.bearer.user_missing", extra={"user_id": payload.sub})
        raise AppError(ErrorKind.UNAUTHORIZED, USER_NOT_FOUND)

    request.state.user_id = user.id
    request.state.user_role = user.role
    return user


async def optional_current_user(token: Optional[str] = Depends(bearer_token),
                                service: AuthService = Depends(get_auth_service)) -> Optional[Users]:
    """Attach the user when a valid token is present, stay anonymous otherwise."""
    if not token:
        return None
    try:
        payload = service.tokens.verify_access_token(token)
    except AppError:
        return None
    return await service.get_user_by_id(payload.sub)


def require_role(*roles: Role):
    async def _dep(user: Users = Depends(get_current_user)) -> Users:
        if user.role not in roles:
            logger.warning("auth.role.denied", extra={"user_id": user.id, "role": user.role.value})
            raise AppError(ErrorKind.FORBIDDEN, INSUFFICIENT_PERMISSIONS)
        return user
    return _dep


async def require_provider(request: Request, user: Users = Depends(get_current_user),
                           service: AuthService = Depends(get_auth_service)) -> Provider:
    provider = await repo.provider_for_user(service.store, user.id)
    if provider is None:
        raise AppError(ErrorKind.FORBIDDEN, PROVIDER_REQUIRED)
    request.state.provider_id = provider.id
    return provider
