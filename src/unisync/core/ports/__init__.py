"""
Ports - Abstract interfaces for external dependencies.

Ports define the contracts that adapters must implement.
This enables dependency inversion and easy testing.
"""

from .config_provider import ApiConfig, AppConfig, ConfigProviderPort, EngineConfig
from .declared_objects import DeclaredObjectPort
from .external_api import (
    AuthenticationError,
    ExternalApiError,
    ExternalApiFactoryPort,
    ExternalApiPort,
    NotFoundError,
    PermissionDeniedError,
    RateLimitError,
    TransientError,
)
from .state_repository import (
    AlreadyExistsError,
    ConflictError,
    StoreError,
    SyncStateNotFoundError,
    SyncStateRepositoryPort,
    WatchCallback,
)

__all__ = [
    "ApiConfig",
    "AppConfig",
    "ConfigProviderPort",
    "EngineConfig",
    "DeclaredObjectPort",
    "AuthenticationError",
    "ExternalApiError",
    "ExternalApiFactoryPort",
    "ExternalApiPort",
    "NotFoundError",
    "PermissionDeniedError",
    "RateLimitError",
    "TransientError",
    "AlreadyExistsError",
    "ConflictError",
    "StoreError",
    "SyncStateNotFoundError",
    "SyncStateRepositoryPort",
    "WatchCallback",
]
