"""
Bonafide Portal — Configuration
All settings are read from environment variables (or .env file).
"""
from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # ── Service ──────────────────────────────────────────────
    SERVICE_NAME: str = "bonafide-portal"
    SERVICE_VERSION: str = "1.0.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "INFO"

    # ── JWT ──────────────────────────────────────────────────
    JWT_SECRET_KEY: str = "CHANGE_ME_IN_PRODUCTION"
    JWT_ALGORITHM: str = "HS256"
    JWT_ACCESS_TOKEN_EXPIRE_MINUTES: int = 60

    # ── Passwords ─────────────────────────────────────────────
    BCRYPT_ROUNDS: int = 12
    PASSWORD_MIN_LENGTH: int = 6

    # ── Identity DB (PostgreSQL) ──────────────────────────────
    POSTGRES_HOST: str = "identity-db"
    POSTGRES_PORT: int = 5432
    POSTGRES_DB: str = "portal_identity"
    POSTGRES_USER: str = "portal_user"
    POSTGRES_PASSWORD: str = "portal_pass"
    IDENTITY_DB_URL: str = ""

    @property
    def database_url(self) -> str:
        if self.IDENTITY_DB_URL:
            return self.IDENTITY_DB_URL
        return (
            f"postgresql+asyncpg://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_HOST}:{self.POSTGRES_PORT}/{self.POSTGRES_DB}"
        )

    # ── Redis (KV store) ──────────────────────────────────────
    REDIS_HOST: str = "redis"
    REDIS_PORT: int = 6379
    REDIS_DB: int = 0
    REDIS_PASSWORD: str = ""

    @property
    def redis_url(self) -> str:
        if self.REDIS_PASSWORD:
            return f"redis://:{self.REDIS_PASSWORD}@{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/{self.REDIS_DB}"

    # ── Remote call timeouts ──────────────────────────────────
    KV_TIMEOUT_SECONDS: float = 3.0
    IDENTITY_TIMEOUT_SECONDS: float = 5.0
    SMS_TIMEOUT_SECONDS: float = 5.0

    # ── OTP / phone verification ──────────────────────────────
    OTP_TTL_SECONDS: int = 600
    OTP_DEV_MODE: bool = False            # echo codes + tolerate SMS failures
    PHONE_VERIFICATION_TTL_SECONDS: int = 900
    SMS_COUNTRY_CODE: str = "+91"

    # ── Twilio ────────────────────────────────────────────────
    TWILIO_ACCOUNT_SID: str = ""
    TWILIO_AUTH_TOKEN: str = ""
    TWILIO_PHONE_NUMBER: str = ""
    TWILIO_API_BASE: str = "https://api.twilio.com/2010-04-01"

    # ── Admin enrollment ──────────────────────────────────────
    ADMIN_SECRET_CODE: str = "gat"

    # ── Certificate workflow ──────────────────────────────────
    CERTIFICATE_NUMBER_PREFIX: str = "GAT/GEN/BC"
    LIST_ALL_REQUIRES_ADMIN: bool = True
    REQUEST_LOCK_TTL_SECONDS: int = 10
    LOCK_MAX_RETRIES: int = 5
    LOCK_BASE_DELAY_MS: int = 50          # base exponential backoff delay in ms
    LOCK_MAX_DELAY_MS: int = 1000         # max backoff cap in ms
    LOCK_JITTER_MS: int = 50              # random jitter range in ms

    # ── Rate Limiting ─────────────────────────────────────────
    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_MAX_ATTEMPTS: int = 3
    RATE_LIMIT_WINDOW_SECONDS: int = 60

    # ── Observability ─────────────────────────────────────────
    METRICS_ENABLED: bool = True
    HEALTH_CHECK_TIMEOUT: float = 5.0


@lru_cache()
def get_settings() -> Settings:
    return Settings()
