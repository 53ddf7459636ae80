from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.constants import STREAM_TIMEOUT_SECONDS


class ClientSettings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    relay_url: str = Field(default="http://localhost:8787", validation_alias="CHAT_RELAY_URL")
    relay_timeout_seconds: float = Field(
        default=STREAM_TIMEOUT_SECONDS, validation_alias="RELAY_TIMEOUT_SECONDS"
    )

    @field_validator("relay_url")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        return value.rstrip("/")


@lru_cache
def get_client_settings() -> ClientSettings:
    return ClientSettings()
