"""Storage capability probes with a cached snapshot."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Optional

from .backends import StorageTier

logger = logging.getLogger(__name__)

SENTINEL_KEY = "testItem"
SENTINEL_VALUE = "testValue"


@dataclass
class TierCapabilities:
    checked_at: float
    durable: bool
    ephemeral: bool


def probe_tier(storage: Optional[StorageTier], max_items_to_store: Optional[int]) -> bool:
    """Round-trip a sentinel value through a tier.

    A zero or missing max_items_to_store means the site has switched
    client-side storage off, whatever the browser could do.
    """
    if not max_items_to_store or storage is None:
        return False
    try:
        storage.set_item(SENTINEL_KEY, SENTINEL_VALUE)
        if storage.get_item(SENTINEL_KEY) == SENTINEL_VALUE:
            storage.remove_item(SENTINEL_KEY)
            return True
        return False
    except Exception as exc:  # noqa: BLE001
        logger.debug(f"{storage.name} storage probe failed: {exc}")
        return False


class CapabilityProbe:
    def __init__(
        self,
        durable: Optional[StorageTier],
        ephemeral: Optional[StorageTier],
        max_items_to_store: Optional[int],
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._durable = durable
        self._ephemeral = ephemeral
        self._max_items = max_items_to_store
        self._clock = clock
        self._snapshot: Optional[TierCapabilities] = None

    def snapshot(self) -> TierCapabilities:
        """Probe once, then answer from the cached result."""
        if self._snapshot is None:
            return self.refresh()
        return self._snapshot

    def refresh(self) -> TierCapabilities:
        self._snapshot = TierCapabilities(
            checked_at=self._clock(),
            durable=probe_tier(self._durable, self._max_items),
            ephemeral=probe_tier(self._ephemeral, self._max_items),
        )
        logger.debug(
            f"Storage probe: durable={self._snapshot.durable} "
            f"ephemeral={self._snapshot.ephemeral}"
        )
        return self._snapshot

    def disable(self) -> TierCapabilities:
        """Mark both tiers unusable until the next refresh()."""
        self._snapshot = TierCapabilities(
            checked_at=self._clock(), durable=False, ephemeral=False
        )
        return self._snapshot
