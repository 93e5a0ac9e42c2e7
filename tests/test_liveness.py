from __future__ import annotations

import time

import pytest

from conftest import FakeTransport, wait_until
from inhibit_bridge.workers.liveness import LivenessMonitor


def test_tick_reclaims_lock_of_disconnected_peer(registry, client):
    transport = FakeTransport(peers={"P1", "P2"})
    monitor = LivenessMonitor(registry, transport, interval=60)
    h1 = registry.acquire("browser", "playing video", "P1")
    h2 = registry.acquire("player", "music", "P2")

    assert monitor.check_once() == []
    assert h1 in registry

    transport.peers.discard("P1")
    reclaimed = monitor.check_once()

    assert [lock.handle for lock in reclaimed] == [h1]
    assert h1 not in registry
    assert h2 in registry
    assert client.resources[0].release_count == 1


def test_released_after_reclaim_is_invalid(registry):
    from inhibit_bridge.core.exceptions import InvalidHandle

    transport = FakeTransport(peers=set())
    monitor = LivenessMonitor(registry, transport, interval=60)
    handle = registry.acquire("browser", "video", "P1")

    monitor.check_once()

    with pytest.raises(InvalidHandle):
        registry.release(handle)


def test_unknown_peer_is_never_reclaimed(registry):
    transport = FakeTransport(peers=set())
    monitor = LivenessMonitor(registry, transport, interval=60)
    handle = registry.acquire("legacy", "presentation", "")

    assert monitor.check_once() == []
    assert handle in registry


def test_peer_query_failure_skips_tick(registry, client):
    transport = FakeTransport(peers=set())
    transport.query_error = True
    monitor = LivenessMonitor(registry, transport, interval=60)
    handle = registry.acquire("browser", "video", "P1")

    assert monitor.check_once() is None
    assert handle in registry
    assert client.resources[0].release_count == 0


def test_background_ticks_reclaim(registry):
    transport = FakeTransport(peers={"P1"})
    monitor = LivenessMonitor(registry, transport, interval=0.02)
    handle = registry.acquire("browser", "video", "P1")
    monitor.start()
    try:
        assert wait_until(lambda: transport.list_calls >= 2)
        assert handle in registry
        transport.peers.clear()
        assert wait_until(lambda: handle not in registry)
    finally:
        monitor.stop(timeout=2)
    assert not monitor.running


def test_background_loop_survives_query_errors(registry):
    transport = FakeTransport(peers=set())
    transport.query_error = True
    monitor = LivenessMonitor(registry, transport, interval=0.01)
    monitor.start()
    try:
        assert wait_until(lambda: transport.list_calls >= 3)
        assert monitor.running
    finally:
        monitor.stop(timeout=2)


def test_stop_preempts_the_wait(registry):
    transport = FakeTransport()
    monitor = LivenessMonitor(registry, transport, interval=3600)
    monitor.start()
    assert monitor.running

    started = time.monotonic()
    monitor.stop(timeout=5)

    assert time.monotonic() - started < 1.0
    assert not monitor.running
    assert transport.list_calls == 0


def test_start_and_stop_are_idempotent(registry):
    monitor = LivenessMonitor(registry, FakeTransport(), interval=3600)
    monitor.stop()
    monitor.start()
    thread = monitor._thread
    monitor.start()
    assert monitor._thread is thread
    monitor.stop(timeout=2)
    monitor.stop(timeout=2)
    assert not monitor.running


def test_interval_must_be_positive(registry):
    with pytest.raises(ValueError):
        LivenessMonitor(registry, FakeTransport(), interval=0)


def test_lock_created_after_peer_query_is_kept(registry):
    class LateJoiner(FakeTransport):
        def list_peers(self):
            peers = super().list_peers()
            self.late_handle = registry.acquire("firefox", "video", ":1.99")
            return peers

    transport = LateJoiner(peers={":1.1"})
    monitor = LivenessMonitor(registry, transport, interval=60)
    early = registry.acquire("player", "music", ":1.2")

    reclaimed = monitor.check_once()

    assert [lock.handle for lock in reclaimed] == [early]
    assert transport.late_handle in registry
