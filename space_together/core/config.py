import json
from datetime import timedelta
from typing import Annotated, List, Optional

from pydantic import AliasChoices, Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from space_together.core.errors import ConfigMissing


class Settings(BaseSettings):
    # Application Settings
    APP_NAME: str = "Space Together API"
    VERSION: str = "0.1.0"
    DEBUG: bool = False
    HOST: str = "0.0.0.0"
    PORT: int = 8080

    # Database Settings
    MONGO_URI: Optional[str] = None
    MAIN_DB_NAME: str = "space_together"
    MONGO_CONNECT_RETRIES: int = 3
    MONGO_SERVER_SELECTION_TIMEOUT_MS: int = 5000

    # Token Settings
    USER_SECRET: Optional[SecretStr] = None
    SCHOOL_SECRET: Optional[SecretStr] = None
    ALGORITHM: str = "HS256"
    USER_TOKEN_EXPIRE_DAYS: int = 7
    SCHOOL_TOKEN_EXPIRE_HOURS: int = 24
    TOKEN_LEEWAY_SECONDS: int = 0

    # Event stream Settings
    EVENT_QUEUE_SIZE: int = 64
    SSE_HEARTBEAT_SECONDS: float = 30.0

    # CORS Settings
    ALLOWED_ORIGINS: Annotated[List[str], NoDecode] = Field(default=["*"])

    # Logging Settings
    LOG_LEVEL: str = Field(
        default="INFO",
        validation_alias=AliasChoices("LOG_LEVEL", "RUST_LOG"),
    )
    LOG_DIR: Optional[str] = None

    @field_validator("ALLOWED_ORIGINS", mode="before")
    @classmethod
    def parse_allowed_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(",") if origin.strip()]
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def parse_log_level(cls, v):
        # RUST_LOG style values look like "debug,mongodb=info"
        if not v:
            return "INFO"
        level = str(v).split(",")[0].split("=")[-1].strip().upper()
        if level == "TRACE":
            level = "DEBUG"
        if level not in {"CRITICAL", "ERROR", "WARNING", "WARN", "INFO", "DEBUG"}:
            return "INFO"
        return "WARNING" if level == "WARN" else level

    @field_validator("EVENT_QUEUE_SIZE")
    @classmethod
    def validate_queue_size(cls, v: int) -> int:
        if v < 1:
            raise ValueError("EVENT_QUEUE_SIZE must be at least 1")
        return v

    def require(self, *names: str) -> None:
        """Raise ConfigMissing for the first unset setting in ``names``."""
        for name in names:
            value = getattr(self, name, None)
            if isinstance(value, SecretStr):
                value = value.get_secret_value()
            if not value:
                raise ConfigMissing(f"{name} is not set")

    def validate_startup(self) -> None:
        self.require("MONGO_URI", "USER_SECRET", "SCHOOL_SECRET")

    @property
    def user_token_ttl(self) -> timedelta:
        return timedelta(days=self.USER_TOKEN_EXPIRE_DAYS)

    @property
    def school_token_ttl(self) -> timedelta:
        return timedelta(hours=self.SCHOOL_TOKEN_EXPIRE_HOURS)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=True,
        populate_by_name=True,
    )


# Initialize settings
settings = Settings()
