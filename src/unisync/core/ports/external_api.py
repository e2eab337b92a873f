"""
External API Port - Abstract interface to the external service, per resource kind.

The engine only needs Create/Update/Delete/Get/FindByName and the ability to
tell "not found" apart from every other failure.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional

from ..domain import SyncState
from ..exceptions import UnisyncError


class ExternalApiError(UnisyncError):
    """Base exception for external API errors."""

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        status_code: Optional[int] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message, cause=cause)
        self.resource = resource
        self.status_code = status_code


class NotFoundError(ExternalApiError):
    """The external resource does not exist."""


class AuthenticationError(ExternalApiError):
    """Credentials were rejected."""


class PermissionDeniedError(ExternalApiError):
    """Credentials lack permission for the operation."""


class RateLimitError(ExternalApiError):
    """The API rate limit was exceeded."""

    def __init__(self, message: str, retry_after: Optional[float] = None, **kwargs: Any):
        super().__init__(message, **kwargs)
        self.retry_after = retry_after


class TransientError(ExternalApiError):
    """Timeouts, connection failures and 5xx responses."""


class ExternalApiPort(ABC):
    """
    Abstract interface for one resource kind of the external API.

    Implementations raise NotFoundError for missing resources and another
    ExternalApiError subclass for any other failure.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Get the API name (e.g. 'Cloudflare GatewayRule')."""
        ...

    @abstractmethod
    def create(self, params: dict[str, Any]) -> dict[str, Any]:
        """Create the resource. The result contains the new 'id'."""
        ...

    @abstractmethod
    def update(self, external_id: str, params: dict[str, Any]) -> dict[str, Any]:
        """Replace the resource's configuration."""
        ...

    @abstractmethod
    def delete(self, external_id: str) -> None:
        """Delete the resource."""
        ...

    @abstractmethod
    def get(self, external_id: str) -> dict[str, Any]:
        """Fetch the resource."""
        ...

    @abstractmethod
    def find_by_name(self, name: str) -> Optional[dict[str, Any]]:
        """
        Find a resource by display name.

        Returns:
            The single match, or None when nothing matches.

        Raises:
            AmbiguousReferenceError: If more than one resource matches.
        """
        ...


class ExternalApiFactoryPort(ABC):
    """Builds the API for a SyncState from its type, scope and credentials."""

    @abstractmethod
    def for_state(self, sync_state: SyncState) -> ExternalApiPort:
        ...
