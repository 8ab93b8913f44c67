"""
Exception hierarchy for the PCAP -> NetFlow conversion pipeline.

Every failure the batch can report derives from ConversionError, so callers
can catch one type and still tell the stages apart.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional, Sequence


class ConversionError(Exception):
    """Base exception for all conversion failures."""
    pass


class MalformedInputName(ConversionError):
    """Raised when a trace path carries no usable ordering key."""

    def __init__(self, path: str | Path, reason: str) -> None:
        self.path = str(path)
        self.reason = reason
        super().__init__(f"Cannot derive sort key from '{self.path}': {reason}")


class DuplicateOutputName(ConversionError):
    """Raised when two traces would write the same per-trace FlowFile."""

    def __init__(self, output_name: str, first: str | Path, second: str | Path) -> None:
        self.output_name = output_name
        super().__init__(f"Traces '{first}' and '{second}' both map to output '{output_name}'")


class ScratchDirNotEmpty(ConversionError):
    """Raised when a capture session would start over leftover collector state."""

    def __init__(self, scratch_dir: str | Path) -> None:
        self.scratch_dir = str(scratch_dir)
        super().__init__(f"Scratch directory is not empty: {self.scratch_dir}")


# === Collector ===

class CollectorError(ConversionError):
    """Base exception for collector process failures."""
    pass


class CollectorSpawnFailed(CollectorError):
    """Raised when the collector binary is missing or exits during startup."""
    pass


class EndpointBindFailed(CollectorSpawnFailed):
    """Raised when the collector endpoint is already bound by someone else."""
    pass


class CollectorDied(CollectorError):
    """Raised when the collector exited on its own before it was asked to stop."""

    def __init__(self, pid: int, returncode: int) -> None:
        self.pid = pid
        self.returncode = returncode
        super().__init__(
            f"Collector (pid={pid}) exited with status {returncode} before it was stopped; "
            "captured flows are incomplete"
        )


class CollectorFlushTimeout(CollectorError):
    """Raised when the collector does not exit within the flush timeout after SIGTERM."""
    pass


# === Transmitter ===

class TransmitError(ConversionError):
    """Base exception for trace replay failures."""
    pass


class TraceReadFailed(TransmitError):
    """Raised when a trace is missing, unreadable, or not a capture file."""
    pass


class ExportSendFailed(TransmitError):
    """Raised when the flow-export tool fails to replay a trace."""
    pass


# === Normalizer ===

class DumpToolFailed(ConversionError):
    """Raised when the dump tool cannot read the scratch directory."""
    pass


def describe_tool_failure(
    argv: Sequence[str],
    returncode: Optional[int],
    stderr: str | bytes | None = None,
    *,
    tail_lines: int = 5,
) -> str:
    """Render a one-line description of a failed tool invocation."""
    if isinstance(stderr, bytes):
        stderr = stderr.decode("utf-8", errors="replace")
    msg = f"'{' '.join(str(a) for a in argv)}' exited with status {returncode}"
    if stderr:
        tail = [ln for ln in stderr.strip().splitlines() if ln.strip()][-tail_lines:]
        if tail:
            msg += ": " + " | ".join(tail)
    return msg
