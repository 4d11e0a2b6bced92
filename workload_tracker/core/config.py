"""Application configuration loaded from environment variables."""

from functools import lru_cache
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Placeholder secret shipped for local development; never valid in production.
DEFAULT_JWT_SECRET = "change-me-in-production"

# Only HMAC-SHA256 is accepted; the algorithm is pinned on verification too.
SUPPORTED_JWT_ALGORITHMS = ("HS256",)


class Settings(BaseSettings):
    """Validated application settings from env and optional .env file."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    APP_ENV: Literal["dev", "prod"] = "dev"
    DEBUG: bool = False
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"
    # Comma-separated list of allowed browser origins (the Vite dev server by default)
    CORS_ORIGINS: str = "http://localhost:5173,http://127.0.0.1:5173"

    # Database backend: embedded SQLite file or networked MySQL
    DB_TYPE: Literal["sqlite", "mysql"] = "sqlite"
    DB_PATH: str = "data/workload.db"

    # MySQL connection; required only when DB_TYPE=mysql (missing values trigger SQLite fallback)
    DB_HOST: str | None = None
    DB_PORT: int = 3306
    DB_USER: str | None = None
    DB_PASSWORD: SecretStr | None = None
    DB_NAME: str | None = None
    DB_CONNECTION_LIMIT: int = 20
    DB_ACQUIRE_TIMEOUT_SEC: float = 60.0
    DB_CONNECT_TIMEOUT_SEC: float = 60.0
    DB_MAX_RETRIES: int = 5
    DB_RETRY_DELAY_SEC: float = 2.0
    DB_RETRY_MAX_DELAY_SEC: float = 30.0
    DB_FALLBACK_TO_SQLITE: bool = True

    # JWT authentication
    JWT_SECRET: SecretStr = SecretStr(DEFAULT_JWT_SECRET)
    JWT_ALGORITHM: str = "HS256"
    JWT_EXPIRE_MINUTES: int = 1440
    # Responses get X-Token-Expiring-Soon when the token expires within this window.
    TOKEN_EXPIRY_WARNING_SEC: int = 300

    # Bcrypt cost (rounds); 12 is a good default for security vs speed.
    BCRYPT_ROUNDS: int = 12

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "prod"

    @property
    def cors_origin_list(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

    @property
    def uses_default_jwt_secret(self) -> bool:
        return self.JWT_SECRET.get_secret_value() == DEFAULT_JWT_SECRET

    def missing_mysql_settings(self) -> list[str]:
        """Names of MySQL connection settings that are unset or blank."""
        values = {
            "DB_HOST": self.DB_HOST,
            "DB_USER": self.DB_USER,
            "DB_PASSWORD": self.DB_PASSWORD.get_secret_value() if self.DB_PASSWORD else None,
            "DB_NAME": self.DB_NAME,
        }
        return [name for name, value in values.items() if not value or not value.strip()]

    @field_validator("API_PREFIX")
    @classmethod
    def validate_api_prefix(cls, v: str) -> str:
        v = v.strip().rstrip("/")
        if v and not v.startswith("/"):
            raise ValueError("API_PREFIX must start with '/' (e.g. /api)")
        return v

    @field_validator("DB_PATH")
    @classmethod
    def validate_db_path(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("DB_PATH must be set and non-empty")
        return v.strip()

    @field_validator("DB_PORT")
    @classmethod
    def validate_db_port(cls, v: int) -> int:
        if v < 1 or v > 65535:
            raise ValueError("DB_PORT must be between 1 and 65535")
        return v

    @field_validator("DB_CONNECTION_LIMIT")
    @classmethod
    def validate_connection_limit(cls, v: int) -> int:
        if v < 1 or v > 500:
            raise ValueError("DB_CONNECTION_LIMIT must be between 1 and 500")
        return v

    @field_validator("DB_ACQUIRE_TIMEOUT_SEC", "DB_CONNECT_TIMEOUT_SEC")
    @classmethod
    def validate_db_timeouts(cls, v: float) -> float:
        if v <= 0 or v > 600:
            raise ValueError("Database timeouts must be greater than 0 and at most 600 seconds")
        return v

    @field_validator("DB_MAX_RETRIES")
    @classmethod
    def validate_max_retries(cls, v: int) -> int:
        if v < 1 or v > 20:
            raise ValueError("DB_MAX_RETRIES must be between 1 and 20")
        return v

    @field_validator("DB_RETRY_DELAY_SEC", "DB_RETRY_MAX_DELAY_SEC")
    @classmethod
    def validate_retry_delays(cls, v: float) -> float:
        if v < 0 or v > 300:
            raise ValueError("Retry delays must be between 0 and 300 seconds")
        return v

    @field_validator("JWT_SECRET")
    @classmethod
    def validate_jwt_secret(cls, v: SecretStr) -> SecretStr:
        if not v.get_secret_value() or not v.get_secret_value().strip():
            raise ValueError("JWT_SECRET must be set and non-empty")
        return v

    @field_validator("JWT_ALGORITHM")
    @classmethod
    def validate_jwt_algorithm(cls, v: str) -> str:
        v = (v or "").strip().upper()
        if v not in SUPPORTED_JWT_ALGORITHMS:
            raise ValueError(f"JWT_ALGORITHM must be one of: {', '.join(SUPPORTED_JWT_ALGORITHMS)}")
        return v

    @field_validator("JWT_EXPIRE_MINUTES")
    @classmethod
    def validate_jwt_expire_minutes(cls, v: int) -> int:
        if v < 1 or v > 10080:
            raise ValueError(
                "JWT_EXPIRE_MINUTES must be between 1 and 10080 (1 min to 7 days)"
            )
        return v

    @field_validator("TOKEN_EXPIRY_WARNING_SEC")
    @classmethod
    def validate_expiry_warning(cls, v: int) -> int:
        if v < 0 or v > 3600:
            raise ValueError("TOKEN_EXPIRY_WARNING_SEC must be between 0 and 3600")
        return v

    @field_validator("BCRYPT_ROUNDS")
    @classmethod
    def validate_bcrypt_rounds(cls, v: int) -> int:
        if v < 4 or v > 31:
            raise ValueError("BCRYPT_ROUNDS must be between 4 and 31")
        return v


@lru_cache
def get_settings() -> Settings:
    """Return cached settings instance (safe to call from dependencies)."""
    return Settings()
