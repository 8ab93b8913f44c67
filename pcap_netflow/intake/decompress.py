"""
Compressed trace opener and stager.

`open_trace_stream(trace)` returns a binary file-like object over the raw
capture bytes regardless of gzip/zstd compression. The replay tool only reads
plain files, so `staged_trace(trace)` materializes compressed traces into a
private temporary directory for the duration of a replay.
"""

from __future__ import annotations

import gzip
import shutil
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, IO

import zstandard  # type: ignore

from ..dto import InputTrace

_COPY_CHUNK = 1 << 20


@contextmanager
def open_trace_stream(trace: InputTrace) -> Generator[IO[bytes], None, None]:
    """
    Context manager yielding a readable binary stream for the given trace.

    - trace.compressor == "none": open() in 'rb'
    - trace.compressor == "gzip": gzip.open(..., 'rb')
    - trace.compressor == "zstd": zstd stream reader over the file
    """
    if trace.compressor == "gzip":
        f = gzip.open(trace.path, "rb")
        try:
            yield f
        finally:
            f.close()
        return

    if trace.compressor == "zstd":
        raw = open(trace.path, "rb")
        dctx = zstandard.ZstdDecompressor()
        stream = dctx.stream_reader(raw)
        try:
            yield stream
        finally:
            try:
                stream.close()
            finally:
                raw.close()
        return

    f = open(trace.path, "rb")
    try:
        yield f
    finally:
        f.close()


@contextmanager
def staged_trace(trace: InputTrace) -> Generator[Path, None, None]:
    """
    Yield a path to an uncompressed copy of `trace`.

    Uncompressed traces are yielded as-is. Compressed ones are decompressed
    into a temporary directory that is removed on exit.
    """
    if trace.compressor == "none":
        yield trace.path
        return

    with tempfile.TemporaryDirectory(prefix="pcap_netflow_") as tmp:
        target = Path(tmp) / f"{trace.stem}.pcap"
        with open_trace_stream(trace) as src, open(target, "wb") as dst:
            shutil.copyfileobj(src, dst, _COPY_CHUNK)
        yield target
