"""
Capture session: lifecycle of one flow-collector process.

A session owns exactly one collector process bound to one endpoint and
writing into one scratch directory. It exposes:
  - start(endpoint, scratch_dir): spawn, then wait a bounded grace period,
  - stop(): SIGTERM, then wait for the process to exit (its flush signal),
  - running(...): scoped start/stop that always stops on the way out.

Flush barrier
-------------
The collector writes its final file when it handles SIGTERM, so process
exit is the completion signal. stop() polls for it up to `flush_timeout`;
on timeout the process is killed and CollectorFlushTimeout is raised so the
caller never reads half-written scratch state silently. A collector that
exited on its own before stop() (crash, OOM kill) raises CollectorDied for
the same reason.
"""

from __future__ import annotations

import errno
import logging
import socket
import time
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

from ..dto import Endpoint
from ..errors import (
    CollectorDied,
    CollectorError,
    CollectorFlushTimeout,
    CollectorSpawnFailed,
    EndpointBindFailed,
    ScratchDirNotEmpty,
)
from ..ports import CollectorPort, ProcessHandle
from ..utils import dir_is_empty

log = logging.getLogger(__name__)


class CaptureSession:
    """
    Manages one collector process at a time.

    Parameters
    ----------
    collector : CollectorPort
        Spawns the actual process.
    startup_grace : float
        Seconds to watch a fresh process; exiting within this window is a
        spawn failure (missing binary, port taken, bad arguments).
    flush_timeout : float
        Seconds to wait for exit after SIGTERM before killing it.
    poll_interval : float
        Sleep between process polls.
    probe_endpoint : bool
        Check the UDP endpoint is free before spawning.
    """

    def __init__(
        self,
        collector: CollectorPort,
        *,
        startup_grace: float = 0.5,
        flush_timeout: float = 10.0,
        poll_interval: float = 0.1,
        probe_endpoint: bool = True,
    ) -> None:
        self._collector = collector
        self._startup_grace = float(startup_grace)
        self._flush_timeout = float(flush_timeout)
        self._poll = float(poll_interval)
        self._probe = probe_endpoint

        self.endpoint: Optional[Endpoint] = None
        self.scratch_dir: Optional[Path] = None
        self._proc: Optional[ProcessHandle] = None

    # --- state ---

    @property
    def active(self) -> bool:
        return self._proc is not None

    @property
    def pid(self) -> Optional[int]:
        return self._proc.pid if self._proc is not None else None

    # --- control plane ---

    def start(self, endpoint: Endpoint, scratch_dir: Path) -> None:
        """
        Launch the collector and return once it survived the startup grace.

        Raises
        ------
        CollectorError
            If this session already has a running process.
        ScratchDirNotEmpty
            If `scratch_dir` holds leftovers from a previous unit.
        EndpointBindFailed
            If the endpoint is already bound.
        CollectorSpawnFailed
            If the process cannot be created or dies during startup.
        """
        if self._proc is not None:
            raise CollectorError(f"Capture session already active (pid={self._proc.pid})")
        if not dir_is_empty(scratch_dir):
            raise ScratchDirNotEmpty(scratch_dir)
        if self._probe:
            probe_udp_endpoint(endpoint)

        proc = self._collector.spawn(endpoint, scratch_dir)
        self._proc = proc
        self.endpoint = endpoint
        self.scratch_dir = scratch_dir
        log.info("Collector started (pid=%s) on %s -> %s", proc.pid, endpoint, scratch_dir)

        try:
            self._await_startup(proc)
        except BaseException:
            if proc.poll() is not None:
                # already gone; nothing to signal or flush
                self._proc = None
                self.endpoint = None
                self.scratch_dir = None
            else:
                self.stop_quietly()
            raise

    def _await_startup(self, proc: ProcessHandle) -> None:
        deadline = time.monotonic() + self._startup_grace
        while True:
            rc = proc.poll()
            if rc is not None:
                raise CollectorSpawnFailed(
                    f"Collector exited during startup with status {rc} (endpoint {self.endpoint})"
                )
            if time.monotonic() >= deadline:
                return
            time.sleep(min(self._poll, max(0.0, deadline - time.monotonic())))

    def stop(self) -> None:
        """
        Terminate the collector and wait for it to flush and exit.

        No-op when nothing is running. Raises CollectorDied if the process
        had already exited before SIGTERM, and CollectorFlushTimeout if it
        had to be killed.
        """
        proc = self._proc
        if proc is None:
            log.debug("stop(): no active collector")
            return

        self._proc = None
        endpoint = self.endpoint
        self.endpoint = None
        self.scratch_dir = None

        rc = proc.poll()
        if rc is not None:
            raise CollectorDied(proc.pid, rc)

        proc.terminate()
        deadline = time.monotonic() + self._flush_timeout
        while proc.poll() is None:
            if time.monotonic() >= deadline:
                proc.kill()
                proc.wait()
                raise CollectorFlushTimeout(
                    f"Collector (pid={proc.pid}) did not exit within "
                    f"{self._flush_timeout:g}s of SIGTERM; killed"
                )
            time.sleep(self._poll)
        log.info("Collector stopped (pid=%s) on %s", proc.pid, endpoint)

    def stop_quietly(self) -> None:
        """Best-effort stop for error paths: failures are logged, never raised."""
        try:
            self.stop()
        except Exception:
            log.warning("Collector shutdown failed during cleanup", exc_info=True)

    @contextmanager
    def running(self, endpoint: Endpoint, scratch_dir: Path) -> Generator["CaptureSession", None, None]:
        """
        Scoped session: start on entry, stop on exit.

        A clean exit calls stop() and lets its errors propagate; an exit by
        exception (including KeyboardInterrupt) stops quietly and re-raises
        the original error.
        """
        self.start(endpoint, scratch_dir)
        try:
            yield self
        except BaseException:
            self.stop_quietly()
            raise
        self.stop()


# === Helpers ===


def probe_udp_endpoint(endpoint: Endpoint) -> None:
    """Raise EndpointBindFailed if a UDP socket cannot bind `endpoint` right now."""
    try:
        infos = socket.getaddrinfo(endpoint.host, endpoint.port, type=socket.SOCK_DGRAM)
    except socket.gaierror as e:
        raise EndpointBindFailed(f"Cannot resolve collector endpoint {endpoint}: {e}") from e

    family, socktype, proto, _name, addr = infos[0]
    sock = socket.socket(family, socktype, proto)
    try:
        sock.bind(addr)
    except OSError as e:
        if e.errno == errno.EADDRINUSE:
            raise EndpointBindFailed(f"Endpoint {endpoint} is already in use") from e
        raise EndpointBindFailed(f"Cannot bind endpoint {endpoint}: {e}") from e
    finally:
        sock.close()
