"""
Basic trace validation.

Goal: fast, side-effect-free checks that a trace *looks* like a PCAP/PCAPNG
file (optionally compressed with gzip or zstd) before the replay tool is
pointed at it. The replay tool does the real parsing.
"""

from __future__ import annotations

import os
from typing import Final, Optional

from ..dto import InputTrace

# --- Magic numbers (byte order as they appear on disk) ---

MAGIC_PCAP: Final[tuple[bytes, ...]] = (
    bytes.fromhex("a1b2c3d4"),  # usec, big-endian
    bytes.fromhex("d4c3b2a1"),  # usec, little-endian
    bytes.fromhex("a1b23c4d"),  # nsec, big-endian
    bytes.fromhex("4d3cb2a1"),  # nsec, little-endian
)
MAGIC_PCAPNG: Final[bytes] = bytes.fromhex("0a0d0d0a")
MAGIC_GZIP: Final[bytes] = bytes.fromhex("1f8b")
MAGIC_ZSTD: Final[bytes] = bytes.fromhex("28b52ffd")

# pcap global header is 24 bytes; anything shorter cannot hold a packet
_MIN_SIZE = 24


def _read_head(path: str, n: int) -> bytes:
    with open(path, "rb") as f:
        return f.read(n)


def looks_like_capture(head: bytes) -> bool:
    sig4 = head[:4]
    return len(sig4) == 4 and (sig4 in MAGIC_PCAP or sig4 == MAGIC_PCAPNG)


def validate_trace(trace: InputTrace) -> Optional[str]:
    """
    Quick validation of a trace path.

    Returns None if the trace passes, otherwise a short reason string:
    - file missing or unreadable,
    - smaller than a pcap global header,
    - magic bytes that do not match the expected container.
    """
    path = str(trace.path)
    try:
        st = os.stat(path)
    except OSError as e:
        return f"cannot stat trace: {e.strerror or e}"

    if st.st_size < _MIN_SIZE:
        return f"trace is only {st.st_size} bytes"

    try:
        head = _read_head(path, 16)
    except OSError as e:
        return f"cannot read trace: {e.strerror or e}"

    if trace.compressor == "gzip":
        return None if head[:2] == MAGIC_GZIP else "not a gzip file"
    if trace.compressor == "zstd":
        return None if head[:4] == MAGIC_ZSTD else "not a zstd file"
    return None if looks_like_capture(head) else "not a pcap/pcapng file"
