"""Export lifecycle state shared by the metric and span exporters."""

from __future__ import annotations

import threading
import time
from enum import Enum


class ExporterState(str, Enum):
    """Observable state of an exporter."""

    READY = "ready"
    EXPORTING = "exporting"
    SHUTDOWN = "shutdown"


class ExportLifecycle:
    """Tracks in-flight exports and the shutdown barrier.

    Exports may run concurrently. Once :meth:`shutdown` has set the flag,
    :meth:`begin_export` refuses every new export, so nothing that starts
    after shutdown returns can reach the backend.
    """

    def __init__(self) -> None:
        self._cond = threading.Condition()
        self._in_flight = 0
        self._shutdown = False

    @property
    def state(self) -> ExporterState:
        with self._cond:
            if self._shutdown:
                return ExporterState.SHUTDOWN
            if self._in_flight:
                return ExporterState.EXPORTING
            return ExporterState.READY

    @property
    def is_shutdown(self) -> bool:
        with self._cond:
            return self._shutdown

    def begin_export(self) -> bool:
        """Enter EXPORTING. Returns False if the exporter is shut down."""
        with self._cond:
            if self._shutdown:
                return False
            self._in_flight += 1
            return True

    def end_export(self) -> None:
        """Leave EXPORTING and wake anyone waiting for idle."""
        with self._cond:
            self._in_flight -= 1
            if self._in_flight == 0:
                self._cond.notify_all()

    def wait_idle(self, timeout: float | None = None) -> bool:
        """Wait for in-flight exports to finish.

        Args:
            timeout: Seconds to wait, or None to wait indefinitely.

        Returns:
            True when no export is in flight. False on timeout or when the
            exporter is already shut down.
        """
        with self._cond:
            if self._shutdown:
                return False
            return self._wait_for_idle(timeout)

    def shutdown(self, timeout: float | None = None) -> bool:
        """Move to SHUTDOWN and wait up to ``timeout`` for in-flight exports.

        Returns:
            True for the call that performed the transition, False for
            repeated calls.
        """
        with self._cond:
            if self._shutdown:
                return False
            self._shutdown = True
            self._wait_for_idle(timeout)
            return True

    def _wait_for_idle(self, timeout: float | None) -> bool:
        # Caller holds self._cond
        deadline = None if timeout is None else time.monotonic() + timeout
        while self._in_flight:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            self._cond.wait(remaining)
        return True
