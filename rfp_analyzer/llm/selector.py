#!/usr/bin/env python3
# CUI // SP-PROPIN
"""Provider selection.

A caller preference wins when that provider is available; otherwise the
configured priority order decides. Keys registered but missing from the
priority list rank after it, in registry order.
"""

import logging
from typing import Iterable, List, Optional

from rfp_analyzer.llm.provider import NoProviderAvailable
from rfp_analyzer.llm.registry import DEFAULT_PRIORITY, ProviderRegistry

logger = logging.getLogger("rfp_analyzer.llm.selector")


class ProviderSelector:
    """Chooses which provider to attempt."""

    def __init__(self, registry: ProviderRegistry, priority: Optional[List[str]] = None):
        self._registry = registry
        self._priority = list(priority if priority is not None else DEFAULT_PRIORITY)

    @property
    def priority(self) -> List[str]:
        return list(self._priority)

    def ordered_keys(self) -> List[str]:
        """Every registered key in priority order."""
        ranked = [k for k in self._priority if k in self._registry]
        rest = [d.key for d in self._registry.list_all() if d.key not in ranked]
        return ranked + rest

    def available_in_order(self, exclude: Iterable[str] = ()) -> List[str]:
        excluded = set(exclude)
        return [
            k for k in self.ordered_keys()
            if k not in excluded and self._registry.get(k).available
        ]

    def best(self) -> Optional[str]:
        available = self.available_in_order()
        return available[0] if available else None

    def choose(self, preferred_key: Optional[str] = None) -> str:
        """Return the provider key to attempt first."""
        if preferred_key:
            if preferred_key in self._registry and self._registry.get(preferred_key).available:
                return preferred_key
            logger.info("Preferred provider %s unavailable - using priority order",
                        preferred_key)
        best = self.best()
        if best is None:
            raise NoProviderAvailable()
        return best
