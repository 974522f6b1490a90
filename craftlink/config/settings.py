from typing import List
from pydantic_settings import BaseSettings


class Settings(BaseSettings):

    ENV: str = "dev"                # "dev" / "staging" / "prod" / "test"
    SERVICE_NAME: str = "craftlink"
    API_PREFIX: str = "/api/v1"
    LOG_LEVEL: str | None = None

    DATABASE_URL: str = "sqlite+aiosqlite:///./craftlink.db"

    # separate keys per token class so a leaked access key cannot mint refresh tokens
    JWT_SECRET: str = "default-dev-secret-change-in-production"
    JWT_REFRESH_SECRET: str = "default-refresh-secret-change"
    JWT_ALGO: str = "HS256"
    ACCESS_TOKEN_EXPIRE: str = "7d"
    REFRESH_TOKEN_EXPIRE: str = "30d"
    SESSION_EXPIRE_DAYS: int = 30

    OTP_LENGTH: int = 6
    OTP_EXPIRY_MINUTES: int = 10
    OTP_MAX_ATTEMPTS: int = 3

    PASS_HASH_SCHEME: str = "bcrypt"
    PASS_HASH_ROUNDS: int = 12
    DEFAULT_ROLE: str = "PROVIDER"

    RATE_LIMIT_WINDOW_SECONDS: int = 900
    RATE_LIMIT_MAX: int = 100
    AUTH_RATE_LIMIT_WINDOW_SECONDS: int = 900
    AUTH_RATE_LIMIT_MAX: int = 10
    RATE_LIMIT_SWEEP_SECONDS: int = 60

    CLEANUP_INTERVAL_SECONDS: int = 3600   # 0 disables the expiry sweeper

    CORS_ORIGINS: List[str] = ["http://localhost:3000"]

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def is_dev(self) -> bool:
        return self.ENV.lower() == "dev"

    @property
    def is_prod(self) -> bool:
        return self.ENV.lower() == "prod"


config_settings = Settings()
