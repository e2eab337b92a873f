"""
Content Hashing - Deterministic hash of a configuration payload.

Equal configurations always hash equally regardless of dict key order, so
the engine can skip external calls when nothing changed.
"""

import hashlib
import json
from dataclasses import asdict, is_dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class ContentHasher:
    """
    SHA-256 over canonical JSON.

    Canonical form: dataclasses become dicts, enums their values, datetimes
    ISO strings; keys are sorted and separators are compact. List order is
    preserved because it is meaningful (priority order of merged entries).
    """

    algorithm = "sha256"

    def hash(self, payload: Any) -> str:
        """Hex digest of ``payload``."""
        return hashlib.sha256(self.canonical(payload)).hexdigest()

    def canonical(self, payload: Any) -> bytes:
        """Canonical JSON bytes of ``payload``."""
        return json.dumps(
            self._normalize(payload),
            sort_keys=True,
            separators=(",", ":"),
            ensure_ascii=False,
        ).encode("utf-8")

    def changed(self, previous: Optional[str], current: str) -> bool:
        """A missing previous hash always counts as a change."""
        if not previous:
            return True
        return previous != current

    def _normalize(self, value: Any) -> Any:
        if is_dataclass(value) and not isinstance(value, type):
            return self._normalize(asdict(value))
        if isinstance(value, Enum):
            return self._normalize(value.value)
        if isinstance(value, datetime):
            return value.isoformat()
        if isinstance(value, dict):
            return {str(k): self._normalize(v) for k, v in value.items()}
        if isinstance(value, (list, tuple)):
            return [self._normalize(v) for v in value]
        if isinstance(value, (set, frozenset)):
            return sorted(self._normalize(v) for v in value)
        return value


def compute_config_hash(payload: Any) -> str:
    """Hash with a default ContentHasher."""
    return ContentHasher().hash(payload)
