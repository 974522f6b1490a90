from craftlink.common.logging_setup import get_logger

logger = get_logger("craftlink.middleware")

REQUEST_ID_HEADER = "X-Request-ID"
