import math
from fastapi import Request
from craftlink.common.errors import AppError, ErrorKind
from craftlink.rate_limiting.constants import AUTH_KEY_PREFIX, AUTH_LIMIT_MESSAGE, logger
from craftlink.rate_limiting.utils import client_ip, rate_limit_headers


async def auth_rate_limit(request: Request):
    """Stricter budget for credential endpoints, counted apart from the general per-ip budget."""
    limiter = request.app.state.rate_limiter
    settings = request.app.state.settings
    window = settings.AUTH_RATE_LIMIT_WINDOW_SECONDS

    ip = client_ip(request)
    decision = limiter.hit(f"{AUTH_KEY_PREFIX}:{ip}", settings.AUTH_RATE_LIMIT_MAX, window)
    # picked up by RateLimitMiddleware for the response headers
    request.state.rate_limit = decision

    if not decision.allowed:
        logger.warning("ratelimit.auth.blocked", extra={
            "client_ip": ip,
            "path": request.url.path,
            "retry_after": decision.retry_after,
        })
        raise AppError(ErrorKind.RATE_LIMIT,
                       AUTH_LIMIT_MESSAGE.format(minutes=math.ceil(window / 60)),
                       headers=rate_limit_headers(decision))
