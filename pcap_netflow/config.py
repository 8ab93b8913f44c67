"""
Configuration schema for one PCAP -> NetFlow batch.

Only the knobs the conversion needs: where traces come from, where the
collector may scribble, where FlowFiles go, how traces are ordered, and how
the three external tools are reached.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .dto import BatchMode, Endpoint


class ConverterConfig(BaseModel):
    """
    Centralized, validated configuration for one batch run.
    All durations are in seconds.
    """

    model_config = ConfigDict(frozen=True)

    # === Filesystem ===
    input_dir: Path = Field(
        description="Directory scanned recursively for trace files.",
    )
    output_dir: Path = Field(
        description="Directory receiving the FlowFile(s).",
    )
    scratch_dir: Path = Field(
        default=Path("nf-binary"),
        description="Temporary collector output; drained between units, removed at batch end.",
    )
    purge_scratch: bool = Field(
        default=False,
        description="Drain a non-empty scratch directory at batch start instead of failing.",
    )

    # === Batch mode ===
    merge_all: bool = Field(
        default=False,
        description="Replay every trace into one collector session and emit a single FlowFile.",
    )
    merged_filename: str = Field(
        default="merged.nf",
        description="Filename of the merged FlowFile inside output_dir; unused unless merge_all.",
    )
    output_suffix: str = Field(
        default=".nf",
        description="Extension of per-trace FlowFiles.",
    )
    trace_suffixes: tuple[str, ...] = Field(
        default=(
            ".pcap",
            ".pcapng",
            ".pcap.gz",
            ".pcapng.gz",
            ".pcap.zst",
            ".pcapng.zst",
        ),
        description="Filename suffixes that identify trace files during discovery.",
    )

    # === Sequencing ===
    sort_delimiter: str = Field(
        default="_",
        min_length=1,
        description="Delimiter splitting a trace path into positional tokens.",
    )
    sort_field: int = Field(
        default=3,
        ge=1,
        description="1-based index of the token holding the numeric ordering key.",
    )
    sort_relative_to_input: bool = Field(
        default=False,
        description=(
            "Count fields in the path relative to input_dir instead of the path as "
            "discovered (input_dir as given, joined with the trace's location)."
        ),
    )

    # === Collector endpoint / export ===
    endpoint_host: str = Field(default="127.0.0.1")
    endpoint_port: int = Field(default=9995, ge=1, le=65535)
    probe_endpoint: bool = Field(
        default=True,
        description="Refuse to start a collector when the UDP endpoint is already bound.",
    )
    netflow_version: Literal[1, 5, 9, 10] = Field(
        default=5,
        description="Export protocol version passed to the replay tool.",
    )

    # === External tools ===
    collector_bin: str = Field(default="nfcapd")
    exporter_bin: str = Field(default="softflowd")
    dump_bin: str = Field(default="nfdump")

    # === Timing ===
    startup_grace_seconds: float = Field(
        default=0.5,
        ge=0.0,
        description="Bounded wait after spawning the collector; an exit in this window is a spawn failure.",
    )
    flush_timeout_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Maximum wait for the collector to exit (and flush) after SIGTERM.",
    )
    poll_interval_seconds: float = Field(
        default=0.1,
        gt=0.0,
        description="Polling period while waiting on the collector process.",
    )

    # === UI ===
    show_progress: bool = Field(default=True)

    @field_validator("merged_filename")
    @classmethod
    def _bare_filename(cls, v: str) -> str:
        if not v or Path(v).name != v or v in (".", ".."):
            raise ValueError("merged_filename must be a bare filename without directories")
        return v

    @field_validator("output_suffix")
    @classmethod
    def _dotted_suffix(cls, v: str) -> str:
        if not v.startswith(".") or len(v) < 2 or "/" in v:
            raise ValueError("output_suffix must look like '.nf'")
        return v

    @field_validator("trace_suffixes")
    @classmethod
    def _normalize_suffixes(cls, v: tuple[str, ...]) -> tuple[str, ...]:
        if not v:
            raise ValueError("trace_suffixes must not be empty")
        out = tuple(s.lower() if s.startswith(".") else "." + s.lower() for s in v)
        # Longest first so ".pcap.gz" wins over ".gz"-style shorter matches.
        return tuple(sorted(set(out), key=lambda s: (-len(s), s)))

    # --- derived ---

    @property
    def endpoint(self) -> Endpoint:
        return Endpoint(host=self.endpoint_host, port=self.endpoint_port)

    @property
    def mode(self) -> BatchMode:
        return BatchMode.MERGED if self.merge_all else BatchMode.PER_INPUT

    @property
    def merged_output_path(self) -> Path:
        return self.output_dir / self.merged_filename
