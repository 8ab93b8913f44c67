"""
Data Transfer Objects (DTOs) used across the conversion pipeline.

These are intentionally small, immutable (where sensible), and independent
of any subprocess or filesystem handling.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from enum import Enum
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple

Compressor = Literal["none", "gzip", "zstd"]


# === Endpoint ===
@dataclass(frozen=True)
class Endpoint:
    """UDP endpoint the collector listens on and the exporter sends to."""
    host: str
    port: int

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"

    @classmethod
    def parse(cls, value: str) -> "Endpoint":
        """Parse 'host:port' (the host part may not be empty)."""
        host, sep, port = value.rpartition(":")
        if not sep or not host or not port.isdigit():
            raise ValueError(f"Expected 'host:port', got '{value}'")
        return cls(host=host, port=int(port))


# === Intake ===
@dataclass(frozen=True)
class InputTrace:
    """One packet-capture file, positioned in the batch order."""
    path: Path
    sort_key: int            # integer taken from the positional filename field
    stem: str                # filename without trace/compression suffix
    compressor: Compressor = "none"


# === Output ===
@dataclass(frozen=True)
class FlowFile:
    """A finalized, sorted flow-record file handed back to the caller."""
    path: Path
    record_count: int
    sources: Tuple[Path, ...]


# === Batch ===
class BatchMode(str, Enum):
    MERGED = "merged"
    PER_INPUT = "per_input"


class BatchState(str, Enum):
    IDLE = "idle"
    SEQUENCING = "sequencing"
    MERGED_RUN = "merged_run"
    PER_INPUT_RUN = "per_input_run"
    FINALIZING = "finalizing"
    DONE = "done"
    FAILED = "failed"


@dataclass
class BatchReport:
    """Outcome of one batch: committed FlowFiles plus the failing unit, if any."""
    mode: BatchMode
    state: BatchState = BatchState.IDLE
    traces: List[Path] = field(default_factory=list)
    flow_files: List[FlowFile] = field(default_factory=list)
    failed_unit: Optional[str] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.state is BatchState.DONE

    def to_dict(self) -> Dict[str, object]:
        """JSON-friendly view (paths as strings, enums as values)."""
        raw = asdict(self)
        return {
            "mode": self.mode.value,
            "state": self.state.value,
            "traces": [str(p) for p in self.traces],
            "flow_files": [
                {
                    "path": str(ff["path"]),
                    "record_count": ff["record_count"],
                    "sources": [str(s) for s in ff["sources"]],
                }
                for ff in raw["flow_files"]
            ],
            "failed_unit": self.failed_unit,
            "error": self.error,
        }
