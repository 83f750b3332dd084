"""
Process lifecycle: RUNNING -> SHUTTING_DOWN -> TERMINATED.

A termination signal sets the shutdown token, which every request checks on
entry. shutdown() then waits for in-flight requests up to a bounded drain
window and closes the datastore. A close failure is fatal for the process.
"""

import logging
import signal
import threading
import time
from enum import Enum
from typing import Protocol

from user_api.core.errors import ShutdownError, ShuttingDown

logger = logging.getLogger(__name__)


class Closable(Protocol):
    def close(self) -> None: ...


class LifecycleState(str, Enum):
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    TERMINATED = "terminated"


class LifecycleController:
    def __init__(self, datastore: Closable, drain_timeout: float = 10.0) -> None:
        self._datastore = datastore
        self._drain_timeout = drain_timeout
        self._state = LifecycleState.RUNNING
        self._token = threading.Event()
        self._cond = threading.Condition()
        self._in_flight = 0
        self.failure: Exception | None = None

    @property
    def state(self) -> LifecycleState:
        return self._state

    @property
    def in_flight(self) -> int:
        with self._cond:
            return self._in_flight

    def is_shutting_down(self) -> bool:
        return self._token.is_set()

    def request_shutdown(self, signum: int | None = None) -> None:
        """Broadcast the shutdown token. Safe to call more than once."""
        with self._cond:
            if self._state is not LifecycleState.RUNNING:
                return
            self._state = LifecycleState.SHUTTING_DOWN
            self._token.set()
            self._cond.notify_all()
        if signum is not None:
            logger.info("Received %s, shutting down", signal.Signals(signum).name)
        else:
            logger.info("Shutdown requested")

    def enter(self) -> None:
        """Count a request as in flight; refuse it once the shutdown token is set."""
        with self._cond:
            if self._token.is_set():
                raise ShuttingDown("service is shutting down")
            self._in_flight += 1

    def leave(self) -> None:
        with self._cond:
            self._in_flight -= 1
            self._cond.notify_all()

    def drain(self) -> int:
        """Wait for in-flight requests; returns how many were still running at the deadline."""
        deadline = time.monotonic() + self._drain_timeout
        with self._cond:
            while self._in_flight > 0:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    break
                self._cond.wait(remaining)
            return self._in_flight

    def shutdown(self) -> None:
        """
        Drain, then close the datastore.

        Raises ShutdownError (and records it in ``failure``) when close fails;
        there is no state to roll back to, so the caller must exit nonzero.
        """
        if self._state is LifecycleState.TERMINATED:
            return
        self.request_shutdown()
        abandoned = self.drain()
        if abandoned:
            logger.warning(
                "Drain window of %.1fs elapsed with %d request(s) in flight",
                self._drain_timeout,
                abandoned,
            )
        try:
            self._datastore.close()
        except Exception as e:
            self.failure = e
            logger.critical("Datastore close failed: %s", e)
            raise ShutdownError(str(e)) from e
        finally:
            self._state = LifecycleState.TERMINATED
        logger.info("Datastore closed")
