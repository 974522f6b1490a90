from craftlink.common.logging_setup import get_logger

logger = get_logger("craftlink.ratelimit")

AUTH_KEY_PREFIX = "auth"
UNKNOWN_CLIENT = "unknown"

LIMIT_HEADER = "X-RateLimit-Limit"
REMAINING_HEADER = "X-RateLimit-Remaining"
RESET_HEADER = "X-RateLimit-Reset"
RETRY_AFTER_HEADER = "Retry-After"

GENERAL_LIMIT_MESSAGE = "Too many requests from this IP, please try again later."
AUTH_LIMIT_MESSAGE = "Too many login attempts. Please try again in {minutes} minutes."
