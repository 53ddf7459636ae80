from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import (
    CHAT_CONTEXT_LIMIT,
    CHAT_TIMEOUT_SECONDS,
    OPENROUTER_CHAT_URL,
    STREAM_TIMEOUT_SECONDS,
)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    app_env: str = "dev"
    log_level: str = "INFO"
    host: str = Field(default="127.0.0.1", validation_alias="HOST")
    port: int = Field(default=8787, validation_alias="PORT")
    openrouter_api_key: str | None = Field(default=None, validation_alias="OPENROUTER_API_KEY")
    openrouter_http_referer: str | None = Field(
        default=None, validation_alias="OPENROUTER_HTTP_REFERER"
    )
    openrouter_x_title: str | None = Field(default=None, validation_alias="OPENROUTER_X_TITLE")
    openrouter_chat_url: str = Field(
        default=OPENROUTER_CHAT_URL, validation_alias="OPENROUTER_CHAT_URL"
    )
    chat_timeout_seconds: float = Field(
        default=CHAT_TIMEOUT_SECONDS, validation_alias="CHAT_TIMEOUT_SECONDS"
    )
    stream_timeout_seconds: float = Field(
        default=STREAM_TIMEOUT_SECONDS, validation_alias="STREAM_TIMEOUT_SECONDS"
    )
    chat_context_limit: int = Field(default=CHAT_CONTEXT_LIMIT, validation_alias="CHAT_CONTEXT_LIMIT")
    max_body_bytes: int = Field(default=1_048_576, validation_alias="MAX_BODY_BYTES")

    @field_validator("chat_timeout_seconds", "stream_timeout_seconds")
    @classmethod
    def _timeout_positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("timeouts must be positive")
        return value

    @field_validator("chat_context_limit")
    @classmethod
    def _limit_positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("CHAT_CONTEXT_LIMIT must be at least 1")
        return value


@lru_cache
def get_settings() -> Settings:
    return Settings()
