"""
Trace transmitter: replay one trace into an active collector endpoint.

Validation and decompression happen here so the exporter only ever sees a
plain, readable capture file. The replay is synchronous.
"""

from __future__ import annotations

import logging
import time

import zstandard  # type: ignore

from ..dto import Endpoint, InputTrace
from ..errors import TraceReadFailed
from ..intake.decompress import staged_trace
from ..intake.validator import validate_trace
from ..ports import ExporterPort

log = logging.getLogger(__name__)


class TraceTransmitter:
    """Drives an ExporterPort for one trace at a time."""

    def __init__(self, exporter: ExporterPort) -> None:
        self._exporter = exporter

    def transmit(self, trace: InputTrace, endpoint: Endpoint) -> None:
        """
        Replay `trace` towards `endpoint` and return when the replay is done.

        Raises
        ------
        TraceReadFailed
            Missing, unreadable, or non-capture trace; broken compression.
        ExportSendFailed
            Propagated from the exporter.
        """
        reason = validate_trace(trace)
        if reason is not None:
            raise TraceReadFailed(f"{trace.path}: {reason}")

        t0 = time.monotonic()
        try:
            with staged_trace(trace) as plain_path:
                self._exporter.replay(plain_path, endpoint)
        except (OSError, EOFError, zstandard.ZstdError) as e:
            raise TraceReadFailed(f"{trace.path}: {e}") from e

        log.info("Transmitted %s -> %s in %.2fs", trace.path, endpoint, time.monotonic() - t0)
