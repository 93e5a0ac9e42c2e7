from __future__ import annotations

import threading
import time
from typing import Callable, Iterable, List, Optional, Sequence

import pytest

from inhibit_bridge.core.exceptions import PeerQueryError, ResourceUnavailable, TransportSetupError
from inhibit_bridge.core.registry import LockRegistry
from inhibit_bridge.core.settings import BridgeSettings


class FakeResource:
    def __init__(self, description: str, *, fail_release: bool = False) -> None:
        self.description = description
        self.fail_release = fail_release
        self.release_count = 0
        self._lock = threading.Lock()

    def release(self) -> None:
        with self._lock:
            self.release_count += 1
        if self.fail_release:
            raise OSError("bad file descriptor")


class FakeInhibitorClient:
    def __init__(self, events: Optional[List[str]] = None) -> None:
        self.events = events if events is not None else []
        self.resources: List[FakeResource] = []
        self.calls: List[tuple] = []
        self.fail = False
        self.fail_connect = False
        self.fail_release = False
        self._lock = threading.Lock()

    def connect(self) -> None:
        self.events.append("client.connect")
        if self.fail_connect:
            raise ResourceUnavailable("cannot reach systemd-logind")

    def inhibit(self, what: str, who: str, why: str, mode: str) -> FakeResource:
        if self.fail:
            raise ResourceUnavailable("logind refused idle inhibitor")
        resource = FakeResource(why, fail_release=self.fail_release)
        with self._lock:
            self.calls.append((what, who, why, mode))
            self.resources.append(resource)
        return resource

    def close(self) -> None:
        self.events.append("client.close")


class FakeTransport:
    def __init__(self, events: Optional[List[str]] = None, peers: Iterable[str] = ()) -> None:
        self.events = events if events is not None else []
        self.peers = set(peers)
        self.handler = None
        self.exported: List[str] = []
        self.claimed: Optional[str] = None
        self.fail_on: Optional[str] = None
        self.query_error = False
        self.list_calls = 0

    def _step(self, name: str) -> None:
        self.events.append(f"transport.{name}")
        if self.fail_on == name:
            raise TransportSetupError(f"{name} failed")

    def connect(self) -> None:
        self._step("connect")

    def claim_name(self, name: str) -> None:
        self._step("claim_name")
        self.claimed = name

    def export(self, handler, paths: Sequence[str]) -> None:
        self._step("export")
        self.handler = handler
        self.exported = list(paths)

    def list_peers(self) -> Iterable[str]:
        self.list_calls += 1
        if self.query_error:
            raise PeerQueryError("ListNames failed")
        return set(self.peers)

    def close(self) -> None:
        self.events.append("transport.close")
        self.handler = None
        self.exported = []
        self.claimed = None


@pytest.fixture
def client() -> FakeInhibitorClient:
    return FakeInhibitorClient()


@pytest.fixture
def registry(client: FakeInhibitorClient) -> LockRegistry:
    return LockRegistry(client, program="inhibit-bridge")


@pytest.fixture
def settings() -> BridgeSettings:
    return BridgeSettings(heartbeat_interval=60, program_name="inhibit-bridge")


def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
