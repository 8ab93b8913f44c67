"""
nfcapd adapter: the flow collector.

nfcapd listens on a UDP endpoint and rotates binary `nfcapd.*` files into its
output directory; on SIGTERM it flushes the current file and exits.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List, Sequence

from ..dto import Endpoint
from ..errors import CollectorSpawnFailed
from ..ports import CollectorPort

log = logging.getLogger(__name__)


class NfcapdCollector(CollectorPort):
    """Spawns `nfcapd -b HOST -p PORT -l DIR` as a detached child process."""

    def __init__(self, binary: str = "nfcapd", extra_args: Sequence[str] = ()) -> None:
        self.binary = binary
        self.extra_args = tuple(extra_args)

    def argv(self, endpoint: Endpoint, scratch_dir: Path) -> List[str]:
        return [
            self.binary,
            "-b", endpoint.host,
            "-p", str(endpoint.port),
            "-l", str(scratch_dir),
            *self.extra_args,
        ]

    def spawn(self, endpoint: Endpoint, scratch_dir: Path) -> subprocess.Popen:
        argv = self.argv(endpoint, scratch_dir)
        log.debug("spawn: %s", " ".join(argv))
        try:
            # New session: a Ctrl-C on the batch must not kill the collector
            # before it has been stopped (and flushed) explicitly.
            return subprocess.Popen(
                argv,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                start_new_session=True,
            )
        except OSError as e:
            raise CollectorSpawnFailed(f"Cannot start '{self.binary}': {e}") from e
