"""API client configuration."""

from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, FrozenSet, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict

from .retry import RetryConfig, DEFAULT_RETRY


class ClientSettings(BaseSettings):
    """Client configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="RESILIENT_CLIENT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    base_url: str = "http://localhost:3001/api"

    # Timeout per transport attempt (seconds)
    timeout: float = 15.0

    # Retry settings
    max_retries: int = 3
    retry_delay: float = 1.0
    max_retry_delay: float = 30.0

    # Auth settings
    refresh_path: str = "/auth/refresh"
    credential_file: Optional[Path] = None
    expiry_leeway: float = 30.0

    # Logging
    log_level: str = "INFO"
    log_json: bool = False


@dataclass
class APIConfig:
    """Configuration for API client transport, retry and auth behavior."""

    base_url: Optional[str] = None

    # Timeout per transport attempt (seconds)
    timeout: float = 15.0

    retry_config: RetryConfig = field(default_factory=lambda: DEFAULT_RETRY)

    # Connection settings
    max_connections: int = 10
    max_keepalive_connections: int = 5
    keepalive_expiry: float = 30.0

    # Default headers
    default_headers: Optional[Dict[str, str]] = None

    # Auth settings
    refresh_path: str = "/auth/refresh"
    refresh_on_status: FrozenSet[int] = frozenset({401, 403})
    expiry_leeway: float = 0.0

    def __post_init__(self):
        """Initialize default values."""
        if self.default_headers is None:
            self.default_headers = {
                "Content-Type": "application/json",
                "Accept": "application/json",
                "User-Agent": "resilient-client/1.0",
            }

    @classmethod
    def from_settings(cls, settings: Optional[ClientSettings] = None) -> "APIConfig":
        """Build a config from environment-backed settings."""
        settings = settings or ClientSettings()
        return cls(
            base_url=settings.base_url,
            timeout=settings.timeout,
            retry_config=RetryConfig(
                max_attempts=settings.max_retries,
                base_delay=settings.retry_delay,
                max_delay=settings.max_retry_delay,
            ),
            refresh_path=settings.refresh_path,
            expiry_leeway=settings.expiry_leeway,
        )

    def with_base_url(self, base_url: str) -> "APIConfig":
        """Create a new config with different base URL."""
        return replace(
            self,
            base_url=base_url,
            default_headers=self.default_headers.copy() if self.default_headers else None,
        )

    def with_headers(self, headers: Dict[str, str]) -> "APIConfig":
        """Create a new config with additional headers."""
        new_headers = self.default_headers.copy() if self.default_headers else {}
        new_headers.update(headers)
        return replace(self, default_headers=new_headers)

    def with_retry_config(self, retry_config: RetryConfig) -> "APIConfig":
        """Create a new config with different retry configuration."""
        return replace(
            self,
            retry_config=retry_config,
            default_headers=self.default_headers.copy() if self.default_headers else None,
        )
