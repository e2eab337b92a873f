"""
Config Provider Port - Abstract interface for configuration sources.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional


DEFAULT_API_URL = "https://api.cloudflare.com/client/v4"


@dataclass
class ApiConfig:
    """External API connection settings."""

    url: str = DEFAULT_API_URL
    api_token: str = ""
    timeout: float = 30.0
    max_retries: int = 3

    def is_valid(self) -> bool:
        return bool(self.url and self.api_token)


@dataclass
class EngineConfig:
    """Reconciliation tuning."""

    debounce_seconds: float = 0.5
    success_requeue_seconds: float = 600.0
    error_requeue_base_seconds: float = 10.0
    error_requeue_max_seconds: float = 300.0
    conflict_attempts: int = 5
    workers: int = 4


@dataclass
class AppConfig:
    """Complete application configuration."""

    api: ApiConfig = field(default_factory=ApiConfig)
    engine: EngineConfig = field(default_factory=EngineConfig)
    state_file: Optional[Path] = None
    verbose: bool = False

    def validate(self) -> list[str]:
        errors = []
        if not self.api.api_token:
            errors.append("Missing CLOUDFLARE_API_TOKEN - set in environment or .env file")
        if self.engine.conflict_attempts < 1:
            errors.append("UNISYNC_CONFLICT_ATTEMPTS must be at least 1")
        if self.engine.workers < 1:
            errors.append("UNISYNC_WORKERS must be at least 1")
        if self.engine.error_requeue_base_seconds > self.engine.error_requeue_max_seconds:
            errors.append("Error requeue base must not exceed the maximum")
        return errors


class ConfigProviderPort(ABC):
    """Abstract interface for configuration providers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the provider name."""
        ...

    @abstractmethod
    def load(self) -> AppConfig:
        """Load complete configuration."""
        ...

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Get a single configuration value."""
        ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Override a configuration value."""
        ...

    @abstractmethod
    def validate(self) -> list[str]:
        """Return a list of validation error messages (empty if valid)."""
        ...
