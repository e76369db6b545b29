"""
Runtime configuration for stressbench.

Values are read from environment variables prefixed with ``STRESSBENCH_``
(or a local ``.env`` file) and exposed through the module-level ``settings``.
"""

from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    model_config = SettingsConfigDict(
        env_prefix="STRESSBENCH_",
        env_file=".env",
        extra="ignore",
    )

    # Target backend
    BASE_URL: str = Field(default="http://localhost:8000")
    USER_INFO_PATH: str = Field(default="/api/users/userInfo")

    # Auth header layout
    AUTH_SCHEME: str = Field(default="Token")
    ANTI_FORGERY_HEADER: str = Field(default="X-XSRF-TOKEN-WEBAPI")
    BEARER_TOKEN: Optional[str] = Field(default=None)
    ANTI_FORGERY_TOKEN: Optional[str] = Field(default=None)

    # HTTP client (None disables the per-request timeout)
    HTTP_TIMEOUT_SECONDS: Optional[float] = Field(default=None)

    # Metrics
    RPS_WINDOW_MS: float = Field(default=1000.0)

    # Result store change notification
    SUBSCRIBER_QUEUE_SIZE: int = Field(default=500)

    # Expression sandbox
    MAX_EXPRESSION_LENGTH: int = Field(default=4000)

    # Logging
    LOG_LEVEL: str = Field(default="INFO")
    LOG_FORMAT: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    LOG_FILE: Optional[str] = Field(default=None)


settings = Settings()
