"""Liveness monitor reclaiming locks of peers that left the bus."""

from __future__ import annotations

from typing import FrozenSet, Iterable, List, Optional, Protocol

from inhibit_bridge.core.exceptions import PeerQueryError
from inhibit_bridge.core.models import Lock
from inhibit_bridge.core.registry import LockRegistry
from inhibit_bridge.workers.base import BaseWorker


DEFAULT_INTERVAL_SECONDS = 10.0


class PeerDirectory(Protocol):
    """Source of the identities currently connected to the bus."""

    def list_peers(self) -> Iterable[str]:
        ...


class LivenessMonitor(BaseWorker):
    """Periodically drops locks whose requesting peer has disconnected.

    Not every peer implements ``org.freedesktop.DBus.Peer``, so instead of
    pinging each owner the monitor lists every name on the bus and checks
    lock owners against that set.
    """

    def __init__(
        self,
        registry: LockRegistry,
        directory: PeerDirectory,
        *,
        interval: float = DEFAULT_INTERVAL_SECONDS,
        name: Optional[str] = None,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be positive")
        super().__init__(name=name or "LivenessMonitor")
        self._registry = registry
        self._directory = directory
        self.interval = interval

    def setup(self) -> None:
        self.logger.info("Heartbeat checker started (interval %.1fs).", self.interval)

    def teardown(self) -> None:
        self.logger.info("Heartbeat checker stopping.")

    def run(self) -> None:
        while not self.wait(self.interval):
            try:
                self.check_once()
            except Exception as exc:
                self.logger.exception("Heartbeat check failed: %s", exc)

    def check_once(self) -> Optional[List[Lock]]:
        """Run one tick. Returns the reclaimed locks, or None if the tick was skipped."""
        self.logger.debug("Heartbeat checker running.")
        candidates = self._registry.snapshot()
        try:
            peers = self._query_peers()
        except PeerQueryError as exc:
            self.logger.warning("Skipping heartbeat check: %s", exc)
            return None
        return self._registry.reclaim_missing(peers, candidates=candidates)

    def _query_peers(self) -> FrozenSet[str]:
        return frozenset(str(peer) for peer in self._directory.list_peers())
