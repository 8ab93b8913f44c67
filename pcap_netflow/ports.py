"""
Hexagonal interfaces (Ports) for the external flow tools.

The pipeline never shells out directly: it drives a collector, an exporter and
a dump tool through these small Protocols. The concrete adapters live in
`pcap_netflow.tools`; tests swap in in-process fakes.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Protocol

from .dto import Endpoint


class ProcessHandle(Protocol):
    """The subset of `subprocess.Popen` the capture session relies on."""

    pid: int

    def poll(self) -> Optional[int]:
        ...

    def terminate(self) -> None:
        ...

    def kill(self) -> None:
        ...

    def wait(self, timeout: Optional[float] = None) -> int:
        ...


class CollectorPort(Protocol):
    """
    Launches a flow collector bound to an endpoint, writing into a directory.
    The returned process runs detached from the caller until terminated.
    """

    def spawn(self, endpoint: Endpoint, scratch_dir: Path) -> ProcessHandle:
        """
        Start the collector. Implementations raise CollectorSpawnFailed when
        the process cannot be created at all.
        """
        ...


class ExporterPort(Protocol):
    """Replays a packet trace as flow-export datagrams."""

    def replay(self, trace_path: Path, endpoint: Endpoint) -> None:
        """
        Block until the replay has finished. Raise ExportSendFailed when the
        tool cannot be run or exits unsuccessfully.
        """
        ...


class DumpToolPort(Protocol):
    """Converts the collector's binary files into a long-format text dump."""

    def dump(self, scratch_dir: Path) -> str:
        """
        Return the full text dump (header, records, summary) for every
        collector file in `scratch_dir`. Raise DumpToolFailed on failure.
        """
        ...
