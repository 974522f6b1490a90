from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from craftlink.common.constants import request_id_ctx
from craftlink.common.errors import ErrorKind
from craftlink.common.utils import build_error, json_error
from craftlink.rate_limiting.constants import GENERAL_LIMIT_MESSAGE
from craftlink.rate_limiting.limiter import FixedWindowRateLimiter
from craftlink.rate_limiting.utils import client_ip, rate_limit_headers
from craftlink.middlewares.constants import logger


class RateLimitMiddleware(BaseHTTPMiddleware):
    """General per-ip budget applied to every route."""

    def __init__(self, app, *, limiter: FixedWindowRateLimiter, limit: int, window: int):
        super().__init__(app)
        self.limiter = limiter
        self.limit = limit
        self.window = window

    async def dispatch(self, request: Request, call_next):

        ip = client_ip(request)
        decision = self.limiter.hit(ip, self.limit, self.window)

        if not decision.allowed:
            logger.warning("ratelimit.general.blocked", extra={
                "client_ip": ip,
                "path": request.url.path,
                "retry_after": decision.retry_after,
            })
            payload = build_error(code=ErrorKind.RATE_LIMIT.code, message=GENERAL_LIMIT_MESSAGE,
                                  request_id=request_id_ctx.get())
            return json_error(payload, status_code=ErrorKind.RATE_LIMIT.status_code,
                              headers=rate_limit_headers(decision))

        response = await call_next(request)

        # a per-route policy that ran during the call reports its own budget instead
        rl = getattr(request.state, "rate_limit", None) or decision
        for name, value in rate_limit_headers(rl).items():
            response.headers[name] = value
        return response
