from craftlink.common.logging_setup import get_logger

logger = get_logger("craftlink.auth")

ACCESS_TOKEN_TYPE = "access"
REFRESH_TOKEN_TYPE = "refresh"

INVALID_CREDENTIALS = "Invalid email or password"
EMAIL_TAKEN = "Email already registered"
USER_NOT_FOUND = "User not found"

OTP_NOT_FOUND = "No OTP found. Please request a new one."
OTP_EXPIRED = "OTP has expired. Please request a new one."
OTP_LOCKED = "Too many failed attempts. Please request a new OTP."
OTP_INVALID = "Invalid OTP"
OTP_SENT = "OTP sent successfully"
OTP_SENT_EMAIL = "OTP sent to your email"
RESET_REQUESTED = "If the email is registered, a password reset code has been sent"

INVALID_REFRESH = "Invalid refresh token"
SESSION_NOT_FOUND = "Session not found"
SESSION_EXPIRED = "Session expired. Please login again."

MISSING_BEARER = "No authentication token provided"
INSUFFICIENT_PERMISSIONS = "Insufficient permissions"
PROVIDER_REQUIRED = "Provider profile required"
