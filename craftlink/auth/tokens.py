import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from craftlink.auth.constants import ACCESS_TOKEN_TYPE, REFRESH_TOKEN_TYPE, logger
from craftlink.common.errors import AppError, ErrorKind
from craftlink.common.utils import now, parse_duration
from craftlink.config.settings import Settings


class TokenPair(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    access_token: str
    refresh_token: str


class TokenPayload(BaseModel):
    sub: str
    role: str
    iat: int
    exp: int
    typ: str
    jti: str


class TokenIssuer:
    """
    Signs and verifies the two token classes.
    Access and refresh tokens use different keys , a leaked access key cannot mint refresh tokens.
    """

    def __init__(self, settings: Settings):
        self.algorithm = settings.JWT_ALGO
        self._keys = {
            ACCESS_TOKEN_TYPE: settings.JWT_SECRET,
            REFRESH_TOKEN_TYPE: settings.JWT_REFRESH_SECRET,
        }
        self._lifetimes = {
            ACCESS_TOKEN_TYPE: parse_duration(settings.ACCESS_TOKEN_EXPIRE),
            REFRESH_TOKEN_TYPE: parse_duration(settings.REFRESH_TOKEN_EXPIRE),
        }

    def _sign(self, user_id: str, role: str, typ: str) -> str:
        issued = now()
        expiry = issued + timedelta(seconds=self._lifetimes[typ])
        claims = {
            "sub": str(user_id),
            "role": getattr(role, "value", role),
            "iat": int(issued.timestamp()),
            "exp": int(expiry.timestamp()),
            "typ": typ,
            # two pairs minted in the same second must still differ
            "jti": secrets.token_hex(16),
        }
        return jwt.encode(claims, self._keys[typ], algorithm=self.algorithm)

    def _verify(self, token: str, typ: str) -> TokenPayload:
        try:
            claims = jwt.decode(token, self._keys[typ], algorithms=[self.algorithm])
        except ExpiredSignatureError:
            logger.debug("token.expired", extra={"token_type": typ})
            raise AppError(ErrorKind.TOKEN_EXPIRED, "Token has expired")
        except JWTError:
            logger.debug("token.invalid", extra={"token_type": typ})
            raise AppError(ErrorKind.INVALID_TOKEN, "Invalid token")

        if claims.get("typ") != typ:
            raise AppError(ErrorKind.INVALID_TOKEN, "Invalid token")
        try:
            return TokenPayload.model_validate(claims)
        except ValueError:
            raise AppError(ErrorKind.INVALID_TOKEN, "Invalid token")

    def generate_access_token(self, user_id: str, role: str) -> str:
        return self._sign(user_id, role, ACCESS_TOKEN_TYPE)

    def generate_refresh_token(self, user_id: str, role: str) -> str:
        return self._sign(user_id, role, REFRESH_TOKEN_TYPE)

    def generate_token_pair(self, user_id: str, role: str) -> TokenPair:
        return TokenPair(
            access_token=self.generate_access_token(user_id, role),
            refresh_token=self.generate_refresh_token(user_id, role),
        )

    def verify_access_token(self, token: str) -> TokenPayload:
        return self._verify(token, ACCESS_TOKEN_TYPE)

    def verify_refresh_token(self, token: str) -> TokenPayload:
        return self._verify(token, REFRESH_TOKEN_TYPE)

    @staticmethod
    def decode_token(token: str) -> Optional[Dict[str, Any]]:
        """Claims without signature check. Diagnostics only , never authorize on this."""
        try:
            return jwt.get_unverified_claims(token)
        except JWTError:
            return None

    def get_token_expiry(self, token: str) -> Optional[datetime]:
        claims = self.decode_token(token)
        if not claims or "exp" not in claims:
            return None
        return datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
