from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# ECDHE/RSA AES-256 suites accepted by the extractor fleet.
DEFAULT_SSL_CIPHERS = "ECDHE-RSA-AES256-GCM-SHA384:ECDHE-RSA-AES256-SHA:AES256-GCM-SHA384:AES256-SHA"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    proxy_api_key: str = Field(default="", alias="PROXY_API_KEY")
    proxy_host: str = Field(default="0.0.0.0", alias="PROXY_HOST")
    proxy_port: int = Field(default=4443, alias="PROXY_PORT", ge=1, le=65535)
    server_crt: str = Field(default="cert.pem", alias="SERVER_CRT")
    server_key: str = Field(default="key.pem", alias="SERVER_KEY")
    ssl_ciphers: str = Field(default=DEFAULT_SSL_CIPHERS, alias="SSL_CIPHERS")
    auth_header: str = Field(default="Authorization", alias="PROXY_AUTH_HEADER")

    fetch_timeout_seconds: float = Field(default=10.0, alias="FETCH_TIMEOUT_SECONDS", gt=0)
    max_redirects: int = Field(default=10, alias="MAX_REDIRECTS", ge=0)
    stats_buffer_size: int = Field(default=4096, alias="STATS_BUFFER_SIZE", gt=0)
    stats_interval_seconds: float = Field(default=60.0, alias="STATS_INTERVAL_SECONDS", gt=0)

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_file: str | None = Field(default=None, alias="LOG_FILE")

    @property
    def cert_path(self) -> Path:
        return Path(self.server_crt)

    @property
    def key_path(self) -> Path:
        return Path(self.server_key)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
