from typing import Dict
from fastapi import Request
from craftlink.rate_limiting.constants import (
    LIMIT_HEADER, REMAINING_HEADER, RESET_HEADER, RETRY_AFTER_HEADER, UNKNOWN_CLIENT,
)


def client_ip(request: Request) -> str:
    """First hop of X-Forwarded-For when behind a proxy, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    if request.client and request.client.host:
        return request.client.host
    return UNKNOWN_CLIENT


def rate_limit_headers(decision) -> Dict[str, str]:
    headers = {
        LIMIT_HEADER: str(decision.limit),
        REMAINING_HEADER: str(decision.remaining),
        RESET_HEADER: str(decision.reset),
    }
    if not decision.allowed:
        headers[RETRY_AFTER_HEADER] = str(decision.retry_after)
    return headers
