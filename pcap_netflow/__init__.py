"""
pcap_netflow: batch conversion of packet traces into sorted NetFlow record files.

Public API (stable):
- ConverterConfig          (configuration)
- run_batch                (orchestrates one batch, merged or per-input)
- CollectorPort / ExporterPort / DumpToolPort  (external tool interfaces)
- NfcapdCollector / SoftflowdExporter / NfdumpReader  (tool adapters)
- FilesystemTraceSource    (recursive trace discovery)
- sequence_traces          (deterministic trace ordering)
- DTOs: Endpoint, InputTrace, FlowFile, BatchReport, BatchMode, BatchState
"""

from __future__ import annotations

# Configuration
from .config import ConverterConfig

# Orchestration
from .orchestration.runner import run_batch

# Ports
from .ports import CollectorPort, DumpToolPort, ExporterPort

# Adapters
from .intake.trace_source_fs import FilesystemTraceSource
from .tools.nfcapd import NfcapdCollector
from .tools.nfdump import NfdumpReader
from .tools.softflowd import SoftflowdExporter

# Stages
from .intake.sequencer import sequence_traces

# DTOs
from .dto import (
    BatchMode,
    BatchReport,
    BatchState,
    Endpoint,
    FlowFile,
    InputTrace,
)

__all__ = [
    "ConverterConfig",
    "run_batch",
    "CollectorPort",
    "DumpToolPort",
    "ExporterPort",
    "FilesystemTraceSource",
    "NfcapdCollector",
    "NfdumpReader",
    "SoftflowdExporter",
    "sequence_traces",
    "BatchMode",
    "BatchReport",
    "BatchState",
    "Endpoint",
    "FlowFile",
    "InputTrace",
]
