"""Delivery tracking for the deduplicate policy.

Linear retries a webhook when it does not receive a 2xx in time, so the
same ``linear-delivery`` ID can arrive more than once. Under the
``deduplicate`` policy the pipeline records each delivery ID here when it
is accepted and ignores repeats until the entry expires. A delivery that
ends in a 500 is forgotten again so that Linear's re-send is processed.
"""

import logging
import time
from typing import Callable, Dict, Protocol, runtime_checkable


logger = logging.getLogger(__name__)


@runtime_checkable
class DeliveryStore(Protocol):
    """Interface for remembering processed delivery IDs."""

    async def seen(self, delivery_id: str) -> bool:
        """Return True if the ID was already recorded and has not expired."""
        ...

    async def remember(self, delivery_id: str) -> None:
        """Record a delivery ID as processed."""
        ...

    async def forget(self, delivery_id: str) -> None:
        """Drop a delivery ID so that a re-send is processed again."""
        ...


class InMemoryDeliveryStore:
    """Process-local DeliveryStore with a fixed time-to-live.

    Entries are swept lazily on access. Not shared across processes or
    replicas.

    Attributes:
        ttl_seconds: How long a delivery ID is remembered.
    """

    def __init__(
        self,
        ttl_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        if ttl_seconds <= 0:
            raise ValueError(f"ttl_seconds must be positive, got {ttl_seconds}")
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: Dict[str, float] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def _sweep(self, now: float) -> None:
        expired = [key for key, expires in self._entries.items() if expires <= now]
        for key in expired:
            del self._entries[key]

    async def seen(self, delivery_id: str) -> bool:
        self._sweep(self._clock())
        return delivery_id in self._entries

    async def remember(self, delivery_id: str) -> None:
        now = self._clock()
        self._sweep(now)
        self._entries[delivery_id] = now + self.ttl_seconds
        logger.debug(
            "Delivery recorded",
            extra={"delivery_id": delivery_id, "tracked": len(self._entries)},
        )

    async def forget(self, delivery_id: str) -> None:
        self._entries.pop(delivery_id, None)
