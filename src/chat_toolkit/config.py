from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict

from chat_toolkit.results import ErrorPolicy


class Settings(BaseSettings):
    """Application settings loaded from 'CHAT_*' environment variables or '.env'."""

    app_name: str = "chat-toolkit"
    log_level: str = "INFO"

    # How caught failures reach the caller: tagged results or legacy empty successes
    error_policy: ErrorPolicy = ErrorPolicy.REPORT

    # Background notification fan-out
    fanout_workers: int = 4
    fanout_queue_size: int = 1000

    # Created on start-up if missing (channel id == name); empty disables it
    default_channel_name: str = "general"

    # Firebase Cloud Messaging; push is only logged when either value is empty
    fcm_project_id: str = ""
    fcm_access_token: str = ""
    fcm_timeout: float = 10.0

    model_config = SettingsConfigDict(env_prefix="CHAT_", env_file=".env", env_file_encoding="utf-8", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
