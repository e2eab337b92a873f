"""
Reference Resolver - Turn a user-facing reference into an external id.

A reference may name the external resource three ways, tried in order:

1. the external id itself, used verbatim;
2. a local declared object, whose populated external id is used;
3. the external display name, looked up through the API.

An empty identifier is never returned: a local object that exists but has
not been synced yet yields NotReadyError.
"""

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from ...core.domain import OwnerRef, is_placeholder
from ...core.exceptions import (
    AmbiguousReferenceError,
    InvalidReferenceError,
    NotReadyError,
    ReferenceNotFoundError,
    ResolutionError,
)
from ...core.ports import DeclaredObjectPort, ExternalApiError, ExternalApiPort


@dataclass(frozen=True)
class Reference:
    """A reference to an external resource of a known kind."""

    external_id: str = ""
    name: str = ""
    display_name: str = ""
    namespace: str = ""

    @property
    def is_empty(self) -> bool:
        return not (self.external_id or self.name or self.display_name)

    def __str__(self) -> str:
        if self.external_id:
            return f"id={self.external_id}"
        if self.name:
            return f"name={self.namespace + '/' if self.namespace else ''}{self.name}"
        return f"displayName={self.display_name}"


class ReferenceResolver:
    """
    Resolves references for one resource kind.

    Usage:
        resolver = ReferenceResolver("AccessGroup", objects, api)
        group_id = resolver.resolve(Reference(name="team-a"))
    """

    def __init__(
        self,
        kind: str,
        objects: DeclaredObjectPort,
        api: Optional[ExternalApiPort] = None,
    ):
        """
        Initialize the resolver.

        Args:
            kind: Kind of the local declared objects referenced by name
            objects: Declared object lookup
            api: External API used for display-name lookups (optional)
        """
        self.kind = kind
        self.objects = objects
        self.api = api
        self.logger = logging.getLogger("ReferenceResolver")

    def resolve(self, ref: Optional[Reference]) -> str:
        """
        Resolve ``ref`` to an external id.

        Raises:
            InvalidReferenceError: If the reference is empty.
            NotReadyError: If the local object has no external id yet.
            ReferenceNotFoundError: If nothing matches.
            AmbiguousReferenceError: If several resources share the display name.
        """
        if ref is None or ref.is_empty:
            raise InvalidReferenceError(
                f"Invalid {self.kind} reference: must specify an external id, a name or a display name"
            )

        if ref.external_id:
            return ref.external_id

        if ref.name:
            return self._resolve_local(ref)

        return self._resolve_display_name(ref.display_name)

    def _resolve_local(self, ref: Reference) -> str:
        owner = OwnerRef(kind=self.kind, name=ref.name, namespace=ref.namespace)
        obj = self.objects.get(owner)
        if obj is None:
            raise ReferenceNotFoundError(f"{owner} not found")
        if not obj.external_id or is_placeholder(obj.external_id):
            raise NotReadyError(f"{owner} not ready (no external id in status)")
        return obj.external_id

    def _resolve_display_name(self, display_name: str) -> str:
        if self.api is None:
            raise ResolutionError(f"Cannot look up {self.kind} {display_name!r}: no API configured")

        try:
            found = self.api.find_by_name(display_name)
        except AmbiguousReferenceError:
            raise
        except ExternalApiError as e:
            raise ResolutionError(f"Failed to find {self.kind} by name {display_name!r}: {e}", cause=e)

        if not found or not found.get("id"):
            raise ReferenceNotFoundError(f"{self.kind} {display_name!r} not found externally")
        self.logger.debug(f"Resolved {self.kind} {display_name!r} to {found['id']}")
        return str(found["id"])

    def resolve_all(
        self,
        refs: Iterable[Reference],
        direct_ids: Iterable[str] = (),
    ) -> tuple[list[str], list[ResolutionError]]:
        """
        Resolve many references, deduplicating in first-seen order.

        Direct ids come first. A failing reference is reported with its index
        and does not stop the rest.

        Returns:
            (resolved ids, errors)
        """
        seen: set[str] = set()
        ids: list[str] = []
        errors: list[ResolutionError] = []

        for external_id in direct_ids:
            if external_id and external_id not in seen:
                seen.add(external_id)
                ids.append(external_id)

        for index, ref in enumerate(refs):
            try:
                external_id = self.resolve(ref)
            except ResolutionError as e:
                errors.append(type(e)(f"{self.kind} ref at index {index}: {e.message}", cause=e))
                continue
            if external_id not in seen:
                seen.add(external_id)
                ids.append(external_id)

        if errors:
            self.logger.warning(f"{len(errors)} of the {self.kind} references could not be resolved")
        return ids, errors
