"""
nfdump adapter: reads every collector file in a directory as one stream.
"""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import List

from ..errors import DumpToolFailed, describe_tool_failure
from ..ports import DumpToolPort

log = logging.getLogger(__name__)


class NfdumpReader(DumpToolPort):
    """Runs `nfdump -N -o long -R DIR` and returns its stdout."""

    def __init__(self, binary: str = "nfdump", output_format: str = "long") -> None:
        self.binary = binary
        self.output_format = output_format

    def argv(self, scratch_dir: Path) -> List[str]:
        return [self.binary, "-N", "-o", self.output_format, "-R", str(scratch_dir)]

    def dump(self, scratch_dir: Path) -> str:
        argv = self.argv(scratch_dir)
        log.debug("dump: %s", " ".join(argv))
        try:
            proc = subprocess.run(
                argv,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                errors="replace",
            )
        except OSError as e:
            raise DumpToolFailed(f"Cannot run '{self.binary}': {e}") from e

        if proc.returncode != 0:
            raise DumpToolFailed(describe_tool_failure(argv, proc.returncode, proc.stderr))
        return proc.stdout
