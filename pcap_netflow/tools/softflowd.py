"""
softflowd adapter: replays a pcap file as NetFlow export datagrams.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Optional

from ..dto import Endpoint
from ..errors import ExportSendFailed, describe_tool_failure
from ..ports import ExporterPort

log = logging.getLogger(__name__)


def format_host_port(endpoint: Endpoint) -> str:
    """'host:port', bracketing IPv6 literals."""
    host = f"[{endpoint.host}]" if ":" in endpoint.host else endpoint.host
    return f"{host}:{endpoint.port}"


class SoftflowdExporter(ExporterPort):
    """Runs `softflowd -n HOST:PORT -v VERSION -r TRACE` to completion."""

    def __init__(
        self,
        binary: str = "softflowd",
        *,
        netflow_version: int = 5,
        timeout: Optional[float] = None,
    ) -> None:
        self.binary = binary
        self.netflow_version = int(netflow_version)
        self.timeout = timeout

    def argv(self, trace_path: Path, endpoint: Endpoint) -> List[str]:
        return [
            self.binary,
            "-n", format_host_port(endpoint),
            "-v", str(self.netflow_version),
            "-r", str(trace_path),
        ]

    def replay(self, trace_path: Path, endpoint: Endpoint) -> None:
        argv = self.argv(trace_path, endpoint)
        log.debug("replay: %s", " ".join(argv))
        try:
            proc = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=self.timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ExportSendFailed(f"'{self.binary}' timed out after {e.timeout}s on {trace_path}") from e
        except OSError as e:
            raise ExportSendFailed(f"Cannot run '{self.binary}': {e}") from e

        if proc.stdout:
            log.debug("%s: %s", self.binary, proc.stdout.strip())
        if proc.returncode != 0:
            raise ExportSendFailed(describe_tool_failure(argv, proc.returncode, proc.stderr))
