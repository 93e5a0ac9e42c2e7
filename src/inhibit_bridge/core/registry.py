"""Registry of outstanding inhibit locks."""

from __future__ import annotations

import threading
from typing import Dict, Iterable, List, Optional, Protocol

from inhibit_bridge.core.exceptions import InvalidHandle, ResourceReleaseError, ResourceUnavailable
from inhibit_bridge.core.models import HeldResource, Lock, LockEvent
from inhibit_bridge.services.audit_logger import AuditLogger
from inhibit_bridge.utils.logging import get_logger


MAX_HANDLE = 0xFFFFFFFF


class InhibitorClient(Protocol):
    """Session manager client that performs the actual inhibition."""

    def connect(self) -> None:
        ...

    def inhibit(self, what: str, who: str, why: str, mode: str) -> HeldResource:
        ...

    def close(self) -> None:
        ...


class LockRegistry:
    """Thread-safe mapping from cookie to :class:`Lock`.

    Every entry owns exactly one unreleased resource. All reads and writes of
    the mapping happen under a single mutex; calls to the session manager
    happen outside of it.
    """

    def __init__(
        self,
        client: InhibitorClient,
        *,
        program: str,
        what: str = "idle",
        mode: str = "block",
        audit_logger: Optional[AuditLogger] = None,
    ) -> None:
        self._client = client
        self._program = program
        self._what = what
        self._mode = mode
        self._audit_logger = audit_logger
        self._locks: Dict[int, Lock] = {}
        self._mutex = threading.Lock()
        self._next_handle = 1
        self.logger = get_logger("LockRegistry")

    def __len__(self) -> int:
        with self._mutex:
            return len(self._locks)

    def __contains__(self, handle: object) -> bool:
        with self._mutex:
            return handle in self._locks

    def get(self, handle: int) -> Optional[Lock]:
        with self._mutex:
            return self._locks.get(handle)

    def acquire(self, owner: str, reason: str, peer: str = "") -> int:
        """Obtain an inhibitor for ``owner`` and return its cookie.

        Raises :class:`ResourceUnavailable` when the session manager refuses;
        nothing is recorded in that case.
        """
        resource = self._client.inhibit(self._what, self._program, f"{owner} {reason}", self._mode)

        with self._mutex:
            handle = self._allocate_handle_locked()
            if handle is not None:
                lock = Lock(handle=handle, owner=owner, reason=reason, peer=peer, resource=resource)
                self._locks[handle] = lock

        if handle is None:
            self._release_quietly(resource, handle=0)
            raise ResourceUnavailable("no free inhibit cookie", f"{len(self)} locks are live")

        self.logger.info("Inhibit: %s", lock)
        self._audit(LockEvent.INHIBIT, lock)
        return lock.handle

    def release(self, handle: int, requested_by: str = "") -> Lock:
        """Remove ``handle`` and close its inhibitor.

        Any peer may release any cookie. The entry is removed even when
        closing the inhibitor fails.
        """
        with self._mutex:
            lock = self._locks.pop(handle, None)
            if lock is None:
                raise InvalidHandle(handle)
            failure: Optional[Exception] = None
            try:
                lock.resource.release()
            except Exception as exc:
                failure = exc

        self._audit(LockEvent.UNINHIBIT, lock, requested_by=requested_by)
        if failure is not None:
            self.logger.error("UnInhibit: failed to close inhibitor for %s: %s", lock, failure)
            raise ResourceReleaseError(handle, str(failure)) from failure
        self.logger.info("UnInhibit: %s", lock)
        return lock

    def snapshot(self) -> List[Lock]:
        with self._mutex:
            return list(self._locks.values())

    def reclaim(self, lock: Lock, reason: str = "peer gone") -> bool:
        """Release ``lock`` only if the registry still holds that exact lock.

        Returns False when it was released concurrently or its cookie now
        names a different lock.
        """
        with self._mutex:
            if self._locks.get(lock.handle) is not lock:
                return False
            del self._locks[lock.handle]
            self._release_quietly(lock.resource, handle=lock.handle)

        self._audit(LockEvent.RECLAIMED, lock, reason=reason)
        return True

    def reclaim_missing(
        self, live_peers: Iterable[str], candidates: Optional[Iterable[Lock]] = None
    ) -> List[Lock]:
        """Reclaim every lock whose requesting peer is not in ``live_peers``.

        Only ``candidates`` are considered when given; pass a snapshot taken
        before the peers were listed so locks created after the query are
        never swept. Locks without a known peer are always kept.
        """
        peers = frozenset(live_peers)
        reclaimed: List[Lock] = []
        for lock in self.snapshot() if candidates is None else list(candidates):
            self.logger.debug("Heartbeat checking: %s", lock)
            if not lock.peer or lock.peer in peers:
                continue
            if self.reclaim(lock, reason=f"missing peer {lock.peer}"):
                self.logger.info("Missing peer %r; dropping: %s", lock.peer, lock)
                reclaimed.append(lock)
        return reclaimed

    def drain(self) -> List[Lock]:
        """Release every outstanding lock."""
        with self._mutex:
            drained = list(self._locks.values())
            self._locks.clear()
            for lock in drained:
                self._release_quietly(lock.resource, handle=lock.handle)

        for lock in drained:
            self.logger.info("Drained: %s", lock)
            self._audit(LockEvent.DRAINED, lock)
        return drained

    def _allocate_handle_locked(self) -> Optional[int]:
        if len(self._locks) >= MAX_HANDLE:
            return None
        handle = self._next_handle
        while handle in self._locks:
            handle = handle + 1 if handle < MAX_HANDLE else 1
        self._next_handle = handle + 1 if handle < MAX_HANDLE else 1
        return handle

    def _release_quietly(self, resource: HeldResource, *, handle: int) -> None:
        try:
            resource.release()
        except Exception:
            self.logger.exception("Failed to release inhibitor for cookie %d", handle)

    def _audit(self, event: LockEvent, lock: Lock, **extra: str) -> None:
        if self._audit_logger is None:
            return
        payload = lock.payload()
        payload.update(extra)
        self._audit_logger.log(event=event.value, handle=lock.handle, payload=payload)
