"""
Account poller service.

Periodically refreshes the account snapshot so that balance displays and
pre-trade checks see recent numbers.  Each poll overwrites the previous
snapshot; a failed poll is logged and leaves the last good snapshot in
place.  Reads and writes of the snapshot go through an asyncio lock so
the poller can be shared across coroutines.

Usage:

    poller = AccountPoller(client, interval=30)
    asyncio.create_task(poller.run())
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional

from ..models import AccountSnapshot

logger = logging.getLogger(__name__)


class AccountPoller:
    """Keep the most recent :class:`AccountSnapshot` for a client."""

    def __init__(self, client, interval: Optional[float] = None) -> None:
        """Initialize the poller.

        Args:
            client: A ``SignedRequestClient`` (or anything exposing
                ``fetch_account_info()``).
            interval: Seconds between polls; defaults to the client's
                ``settings.poll_interval``.
        """
        self.client = client
        self.interval = interval if interval is not None else client.settings.poll_interval
        self._snapshot: Optional[AccountSnapshot] = None
        self._lock = asyncio.Lock()
        self._running = False
        self.failures = 0

    async def poll_once(self) -> Optional[AccountSnapshot]:
        snapshot = await self.client.fetch_account_info()
        if snapshot is None:
            self.failures += 1
            logger.warning("Account poll failed (%d consecutive)", self.failures)
            return None
        self.failures = 0
        async with self._lock:
            self._snapshot = snapshot
        return snapshot

    async def latest(self) -> Optional[AccountSnapshot]:
        async with self._lock:
            return self._snapshot

    async def run(self) -> None:
        """Poll until :meth:`stop` is called or the task is cancelled."""
        self._running = True
        logger.info("Account poller started (interval=%.1fs)", self.interval)
        while self._running:
            await self.poll_once()
            await asyncio.sleep(self.interval)
        logger.info("Account poller stopped")

    def stop(self) -> None:
        self._running = False
