"""
Config Extraction - Merge contributor payloads into one typed config.

Two merge policies exist, chosen by the resource type:

- SINGLE: the highest-priority source (lowest priority value) wins outright.
- ENTRIES: the list field named by the config class is unioned across all
  sources in priority order, first occurrence of a key wins; every other
  field comes from the highest-priority source.
"""

import logging
from typing import Any

from ...core.domain import (
    ConfigSource,
    MergePolicy,
    ResourceConfig,
    SyncState,
    config_type_for,
)
from ...core.exceptions import ExtractionError


class ConfigExtractor:
    """Priority-ordered merge of a SyncState's sources into a ResourceConfig."""

    def __init__(self):
        self.logger = logging.getLogger("ConfigExtractor")

    def extract(self, sync_state: SyncState) -> ResourceConfig:
        """
        Build the merged, validated config for ``sync_state``.

        Raises:
            ExtractionError: If there are no sources or a payload is malformed.
                The error names the offending owner.
        """
        sources = sync_state.sorted_sources()
        if not sources:
            raise ExtractionError(f"SyncState {sync_state.name} has no sources")

        config_cls = config_type_for(sync_state.resource_type)
        primary = self._parse(config_cls, sources[0])

        if sync_state.resource_type.merge_policy is MergePolicy.SINGLE:
            if len(sources) > 1:
                self.logger.debug(
                    f"{sync_state.name}: {len(sources)} sources, using {sources[0].owner} "
                    f"(priority {sources[0].priority})"
                )
            return primary

        seen: set[str] = set()
        merged: list[Any] = []
        for source in sources:
            config = primary if source is sources[0] else self._parse(config_cls, source)
            for entry in config.entries():
                key = config_cls.entry_key(entry)
                if key in seen:
                    continue
                seen.add(key)
                merged.append(entry)

        self.logger.debug(
            f"{sync_state.name}: merged {len(merged)} entries from {len(sources)} source(s)"
        )
        return primary.with_entries(merged)

    def _parse(self, config_cls: type[ResourceConfig], source: ConfigSource) -> ResourceConfig:
        try:
            return config_cls.from_dict(source.config)
        except ExtractionError as e:
            raise ExtractionError(f"Invalid config from {source.owner}: {e.message}", owner=str(source.owner), cause=e)
