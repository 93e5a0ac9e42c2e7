"""Common background worker abstractions."""

from __future__ import annotations

import abc
import threading
from typing import Optional

from inhibit_bridge.utils.logging import get_logger


class BaseWorker(abc.ABC):
    """Abstract thread-backed worker with lifecycle helpers.

    ``stop()`` sets the stop event and joins the thread, so a worker parked
    in :meth:`wait` wakes up immediately instead of finishing its sleep.
    """

    def __init__(self, *, name: Optional[str] = None) -> None:
        self._name = name or self.__class__.__name__
        self.logger = get_logger(self._name)
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()
        self._lifecycle = threading.Lock()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        with self._lifecycle:
            if self.running:
                return
            self._stop_event.clear()
            self._thread = threading.Thread(target=self._run_wrapper, name=self._name, daemon=True)
            self._thread.start()

    def stop(self, timeout: Optional[float] = None) -> None:
        with self._lifecycle:
            self._stop_event.set()
            thread = self._thread
        if thread is None:
            return
        self.logger.debug("Stopping %s", self._name)
        if thread is not threading.current_thread():
            thread.join(timeout)
            if thread.is_alive():
                # Keep the reference so start() cannot launch a second thread.
                self.logger.warning("%s did not stop within %.1fs", self._name, timeout or 0)
                return
        with self._lifecycle:
            if self._thread is thread:
                self._thread = None

    def _run_wrapper(self) -> None:
        try:
            self.setup()
            self.run()
        except Exception as exc:  # pragma: no cover - ensure errors are logged
            self.logger.exception("Unhandled exception: %s", exc)
        finally:
            self.teardown()

    def should_stop(self) -> bool:
        return self._stop_event.is_set()

    def wait(self, timeout: float) -> bool:
        """Sleep up to ``timeout`` seconds; True when a stop was requested."""
        return self._stop_event.wait(timeout)

    def setup(self) -> None:
        """Optional hook executed once before run loop."""

    def teardown(self) -> None:
        """Optional hook executed once after run loop."""

    @abc.abstractmethod
    def run(self) -> None:
        """Main worker body."""
