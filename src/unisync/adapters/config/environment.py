"""
Environment Config Provider - Load configuration from environment variables.

Supports:
- Environment variables (CLOUDFLARE_API_TOKEN, UNISYNC_WORKERS, ...)
- .env files
- Command line argument overrides
"""

import os
from pathlib import Path
from typing import Any, Callable, Optional

from ...core.exceptions import ConfigError
from ...core.ports.config_provider import (
    DEFAULT_API_URL,
    ApiConfig,
    AppConfig,
    ConfigProviderPort,
    EngineConfig,
)


# Environment variable -> config key
ENV_MAPPING = {
    "CLOUDFLARE_API_TOKEN": "api_token",
    "CLOUDFLARE_API_URL": "api_url",
    "CLOUDFLARE_API_TIMEOUT": "api_timeout",
    "CLOUDFLARE_API_RETRIES": "api_retries",
    "UNISYNC_DEBOUNCE_SECONDS": "debounce_seconds",
    "UNISYNC_SUCCESS_REQUEUE_SECONDS": "success_requeue_seconds",
    "UNISYNC_ERROR_REQUEUE_BASE_SECONDS": "error_requeue_base_seconds",
    "UNISYNC_ERROR_REQUEUE_MAX_SECONDS": "error_requeue_max_seconds",
    "UNISYNC_CONFLICT_ATTEMPTS": "conflict_attempts",
    "UNISYNC_WORKERS": "workers",
    "UNISYNC_STATE_FILE": "state_file",
    "UNISYNC_VERBOSE": "verbose",
}

# Named credentials: UNISYNC_CREDENTIALS_PROD_ACCOUNT=... -> "prod-account"
CREDENTIALS_PREFIX = "UNISYNC_CREDENTIALS_"


class EnvironmentConfigProvider(ConfigProviderPort):
    """
    Configuration provider that loads from environment variables and .env files.

    Precedence: CLI overrides > environment > .env file > defaults.
    """

    def __init__(
        self,
        env_file: Optional[Path] = None,
        cli_overrides: Optional[dict[str, Any]] = None,
        environ: Optional[dict[str, str]] = None,
    ):
        """
        Initialize the config provider.

        Args:
            env_file: Path to .env file (auto-detected if not specified)
            cli_overrides: Command line argument overrides
            environ: Environment to read instead of os.environ (tests)
        """
        self._values: dict[str, Any] = {}
        self._credentials: dict[str, str] = {}
        self._env_file = env_file
        self._cli_overrides = cli_overrides or {}
        self._environ = os.environ if environ is None else environ

        # Load configuration
        self._load_env_file()
        self._load_environment()
        self._apply_cli_overrides()

    # -------------------------------------------------------------------------
    # ConfigProviderPort Implementation
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return "Environment"

    def load(self) -> AppConfig:
        """
        Load complete configuration.

        Raises:
            ConfigError: If a numeric setting cannot be parsed.
        """
        api = ApiConfig(
            url=self.get("api_url") or DEFAULT_API_URL,
            api_token=self.get("api_token", ""),
            timeout=self._number("api_timeout", 30.0, float),
            max_retries=self._number("api_retries", 3, int),
        )

        defaults = EngineConfig()
        engine = EngineConfig(
            debounce_seconds=self._number("debounce_seconds", defaults.debounce_seconds, float),
            success_requeue_seconds=self._number(
                "success_requeue_seconds", defaults.success_requeue_seconds, float
            ),
            error_requeue_base_seconds=self._number(
                "error_requeue_base_seconds", defaults.error_requeue_base_seconds, float
            ),
            error_requeue_max_seconds=self._number(
                "error_requeue_max_seconds", defaults.error_requeue_max_seconds, float
            ),
            conflict_attempts=self._number("conflict_attempts", defaults.conflict_attempts, int),
            workers=self._number("workers", defaults.workers, int),
        )

        state_file = self.get("state_file")
        return AppConfig(
            api=api,
            engine=engine,
            state_file=Path(state_file) if state_file else None,
            verbose=self._flag("verbose"),
        )

    def get(self, key: str, default: Any = None) -> Any:
        """Get a configuration value."""
        # Normalize key
        key = key.lower().replace("-", "_")

        # Check CLI overrides first
        if key in self._cli_overrides and self._cli_overrides[key] is not None:
            return self._cli_overrides[key]

        # Check loaded values
        return self._values.get(key, default)

    def set(self, key: str, value: Any) -> None:
        """Set a configuration value."""
        key = key.lower().replace("-", "_")
        self._values[key] = value

    def validate(self) -> list[str]:
        """Validate configuration."""
        try:
            return self.load().validate()
        except ConfigError as e:
            return [str(e)]

    def credentials(self) -> dict[str, str]:
        """Named API tokens for SyncStates that carry a credentials ref."""
        return dict(self._credentials)

    # -------------------------------------------------------------------------
    # Private Methods
    # -------------------------------------------------------------------------

    def _load_env_file(self) -> None:
        """Load values from .env file."""
        env_file = self._find_env_file()
        if not env_file:
            return

        for line in env_file.read_text().splitlines():
            line = line.strip()

            # Skip empty lines and comments
            if not line or line.startswith("#"):
                continue

            # Parse key=value
            if "=" not in line:
                continue

            key, value = line.split("=", 1)
            self._store(key.strip(), value.strip().strip('"').strip("'"))

    def _find_env_file(self) -> Optional[Path]:
        """Find .env file."""
        if self._env_file is not None:
            return self._env_file if self._env_file.exists() else None

        # Check current directory
        cwd_env = Path.cwd() / ".env"
        if cwd_env.exists():
            return cwd_env

        return None

    def _load_environment(self) -> None:
        """Load values from environment variables."""
        for env_key, raw_value in self._environ.items():
            if env_key in ENV_MAPPING or env_key.startswith(CREDENTIALS_PREFIX):
                self._store(env_key, raw_value)

    def _store(self, env_key: str, value: str) -> None:
        env_key = env_key.upper()
        if env_key.startswith(CREDENTIALS_PREFIX):
            ref = env_key[len(CREDENTIALS_PREFIX):].lower().replace("_", "-")
            if ref:
                self._credentials[ref] = value
            return

        config_key = ENV_MAPPING.get(env_key)
        if config_key:
            self._values[config_key] = value

    def _apply_cli_overrides(self) -> None:
        """Apply CLI argument overrides."""
        # Map CLI args to config keys
        cli_mapping = {
            "state_file": "state_file",
            "workers": "workers",
            "debounce": "debounce_seconds",
            "api_url": "api_url",
            "verbose": "verbose",
        }

        for cli_key, config_key in cli_mapping.items():
            if cli_key in self._cli_overrides and self._cli_overrides[cli_key] is not None:
                self._values[config_key] = self._cli_overrides[cli_key]

    def _flag(self, key: str) -> bool:
        value = self.get(key, False)
        if isinstance(value, bool):
            return value
        return str(value).lower() in ("true", "1", "yes")

    def _number(self, key: str, default: Any, cast: Callable[[Any], Any]) -> Any:
        value = self.get(key)
        if value is None or value == "":
            return default
        try:
            return cast(value)
        except (TypeError, ValueError):
            raise ConfigError(f"Invalid value for {key}: {value!r}") from None
