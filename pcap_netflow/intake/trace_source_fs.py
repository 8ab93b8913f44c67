"""
Filesystem-backed trace source.

Enumerates trace files under a root directory, recursively, keeping only
names that end in one of the configured trace suffixes:
  <root>/**/*.(pcap|pcapng)[.(gz|zst)]

This module does NOT open files and does NOT order them; validation happens
right before replay and ordering is the sequencer's job.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Literal, Sequence, Tuple

from ..dto import Compressor

# Compression suffixes, checked after the trace suffix has matched
COMP_SUFFIXES: Tuple[Tuple[str, Literal["gzip", "zstd"]], ...] = (
    (".zst", "zstd"),
    (".gz", "gzip"),
)


@dataclass(frozen=True)
class FilesystemTraceSource:
    """
    Enumerate trace files from a filesystem tree.

    Parameters
    ----------
    root : str | os.PathLike
        Directory scanned recursively.
    suffixes : Sequence[str]
        Lower-case filename suffixes that mark a trace (e.g. ".pcap", ".pcap.gz").
    """

    root: str | os.PathLike
    suffixes: Sequence[str] = (".pcap", ".pcapng")

    def discover(self) -> List[Path]:
        """
        Return every matching regular file below root. A missing root yields
        an empty list. The returned order is incidental; callers sequence it.
        """
        root_path = Path(self.root)
        if not root_path.is_dir():
            return []

        found: List[Path] = []
        for p in root_path.rglob("*"):
            if not p.is_file():
                continue
            # macOS resource forks ride along in copied datasets
            if p.name.startswith("._"):
                continue
            if matching_suffix(p.name, self.suffixes) is None:
                continue
            found.append(p)
        return found


# === Helpers ===


def matching_suffix(name: str, suffixes: Sequence[str]) -> str | None:
    """Return the longest suffix in `suffixes` that `name` ends with, if any."""
    lower = name.lower()
    best = None
    for suffix in suffixes:
        if lower.endswith(suffix) and (best is None or len(suffix) > len(best)):
            best = suffix
    return best


def strip_trace_suffix(name: str, suffixes: Sequence[str]) -> str:
    """
    Filename without its trace suffix: "a_b_1.pcap.gz" -> "a_b_1".
    Names without a known suffix lose only their last extension.
    """
    suffix = matching_suffix(name, suffixes)
    if suffix is not None and len(name) > len(suffix):
        return name[: -len(suffix)]
    stem = Path(name).stem
    return stem or name


def infer_compressor(name: str) -> Compressor:
    lower = name.lower()
    for suffix, comp in COMP_SUFFIXES:
        if lower.endswith(suffix):
            return comp
    return "none"
