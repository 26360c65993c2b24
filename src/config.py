from functools import lru_cache
from typing import ClassVar

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables / .env file."""

    # Cachet status page API
    cachet_url: str
    cachet_api_key: str
    cachet_verify_ssl: bool = True
    cachet_ca_cert: str = ""

    # Bearer token Alertmanager must send (empty string means no check)
    prometheus_token: str = ""

    # Alert label whose value is the Cachet component name
    label_name: str = "alertname"

    # Keep a single incident per component across firing/resolved flaps
    squash_incident: bool = False

    # "info" or "debug"; affects diagnostics only
    log_level: str = "info"

    http_host: str = "0.0.0.0"
    http_port: int = 8080

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    @property
    def debug(self) -> bool:
        return self.log_level.lower() == "debug"


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Lazily load and cache settings. Fails at first call, not at import time."""
    return Settings()  # type: ignore[call-arg]  # pyright: ignore[reportCallIssue] - fields loaded from env
