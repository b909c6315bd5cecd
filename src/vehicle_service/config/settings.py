from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import make_url

from ..validators.config_validators import (
    ensure_positive,
    strip_trailing_slash,
    to_lowercase,
    to_uppercase,
)


class Settings(BaseSettings):
    """
    Service settings loaded from the environment (or a local .env file).
    """

    # Environment
    ENV: Literal["development", "testing", "staging", "production"] = "development"

    # HTTP server
    HOST: str = "0.0.0.0"
    PORT: int = 3000
    REQUEST_TIMEOUT_MS: int = 10_000

    # Document store
    DATABASE_URL: str = "sqlite+aiosqlite:///./vehicle_store.db"
    DATABASE_MASTER_KEY: SecretStr | None = None
    DATABASE_ID: str = "vehicles"
    DATABASE_MAX_QUERY_RETRIES: int = 3
    DATABASE_RETRY_DELAY_SECONDS: float = 0.0
    DATABASE_COLLECTION_THROUGHPUT: int = 400
    DATABASE_PROCEDURE_BATCH_SIZE: int = 100
    # Upper bound for bulk-delete round trips in remove_all(); None = until the store reports done.
    DATABASE_BULK_DELETE_MAX_ITERATIONS: int | None = None

    # SQLAlchemy
    SQLALCHEMY_ECHO: bool = False

    # Damage backend
    DAMAGE_ENDPOINT: str = "http://localhost:8080"
    DAMAGE_BACKEND_BASIC_AUTH: SecretStr = SecretStr("AUTH")
    DAMAGE_REQUEST_TIMEOUT_MS: int = 6_000

    # Logging
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    LOG_FORMAT: Literal["json", "text"] = "json"
    LOG_TO_STDOUT: bool = True
    LOG_DIR: Path = Path("/var/log/vehicle-service")
    LOG_MAX_BYTES: int = 10_000_000  # 10 MB
    LOG_BACKUP_COUNT: int = 5
    ENABLE_SQL_LOGGING: bool = False
    LOG_USE_QUEUE: bool = False
    LOG_QUEUE_MAX_SIZE: int = 0  # 0 = unbounded
    LOG_QUEUE_BLOCKING: bool = False
    LOG_QUEUE_DROP_WARNING_THRESHOLD: int = 100

    # --- Derived settings ---
    @property
    def DATABASE_ENGINE_URL(self) -> str:
        """
        DATABASE_URL with DATABASE_MASTER_KEY applied as the connection password.

        The key is kept out of DATABASE_URL so the URL itself can be logged.
        """
        if self.DATABASE_MASTER_KEY is None:
            return self.DATABASE_URL
        url = make_url(self.DATABASE_URL).set(password=self.DATABASE_MASTER_KEY.get_secret_value())
        return url.render_as_string(hide_password=False)

    @property
    def AUTHORIZATION_HEADER(self) -> str:
        return f"Basic {self.DAMAGE_BACKEND_BASIC_AUTH.get_secret_value()}"

    @property
    def REQUEST_TIMEOUT_SECONDS(self) -> float:
        return self.REQUEST_TIMEOUT_MS / 1000

    @property
    def DAMAGE_REQUEST_TIMEOUT_SECONDS(self) -> float:
        return self.DAMAGE_REQUEST_TIMEOUT_MS / 1000

    # --- Validators ---
    @field_validator("LOG_LEVEL", mode="before")
    def normalize_log_level(cls, v: str | None) -> str | None:
        """
        Normalize LOG_LEVEL to uppercase before the Literal check, so "debug" works too.
        """
        return to_uppercase(v)

    @field_validator("LOG_FORMAT", mode="before")
    def normalize_log_format(cls, v: str | None) -> str | None:
        return to_lowercase(v)

    @field_validator("DAMAGE_ENDPOINT", mode="after")
    def normalize_damage_endpoint(cls, v: str) -> str:
        return strip_trailing_slash(v)

    @field_validator(
        "REQUEST_TIMEOUT_MS",
        "DAMAGE_REQUEST_TIMEOUT_MS",
        "DATABASE_MAX_QUERY_RETRIES",
        "DATABASE_PROCEDURE_BATCH_SIZE",
        "DATABASE_COLLECTION_THROUGHPUT",
        "DATABASE_BULK_DELETE_MAX_ITERATIONS",
        mode="after",
    )
    def check_positive(cls, v: int | None, info) -> int | None:
        return ensure_positive(v, info.field_name)

    @field_validator("DATABASE_RETRY_DELAY_SECONDS", mode="after")
    def check_non_negative_delay(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"DATABASE_RETRY_DELAY_SECONDS must not be negative, got {v}")
        return v

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


# get_settings() takes no arguments and always returns the same settings from the environment,
# so caching it with @lru_cache() avoids re-reading the environment.
@lru_cache()
def get_settings() -> Settings:
    return Settings()
