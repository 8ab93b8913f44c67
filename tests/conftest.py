from __future__ import annotations

import gzip
import itertools
from pathlib import Path
from typing import Callable, Dict, List, Optional

import pytest
import zstandard

from pcap_netflow.config import ConverterConfig
from pcap_netflow.dto import Endpoint
from pcap_netflow.errors import DumpToolFailed, ExportSendFailed

# Little-endian usec pcap global header (24 bytes)
PCAP_HEADER = bytes.fromhex("d4c3b2a1") + b"\x02\x00\x04\x00" + b"\x00" * 8 + b"\xff\xff\x00\x00" + b"\x01\x00\x00\x00"

DUMP_HEADER = "Date first seen          Duration Proto      Src IP Addr:Port          Dst IP Addr:Port   Flags Tos  Packets    Bytes Flows"
DUMP_SUMMARY = [
    "Summary: total flows: {n}, total bytes: 0, total packets: 0, avg bps: 0, avg pps: 0, avg bpp: 0",
    "Time window: 2019-01-12 07:50:00 - 2019-01-12 08:18:00",
    "Total flows processed: {n}, Blocks skipped: 0, Bytes read: 0",
]

_pids = itertools.count(4000)


def write_trace(path: Path, records: List[str], compressor: str = "none") -> Path:
    """A capture file whose 'packets' are the given record lines (read back by FakeExporter)."""
    path.parent.mkdir(parents=True, exist_ok=True)
    data = PCAP_HEADER + "".join(f"{r}\n" for r in records).encode()
    if compressor == "gzip":
        data = gzip.compress(data)
    elif compressor == "zstd":
        data = zstandard.ZstdCompressor().compress(data)
    path.write_bytes(data)
    return path


class FakeProcess:
    """Stands in for a collector Popen; flushes its buffer into scratch on SIGTERM."""

    def __init__(self, scratch_dir: Path, *, exit_on_start: Optional[int] = None, hang: bool = False) -> None:
        self.pid = next(_pids)
        self.scratch_dir = scratch_dir
        self.buffer: List[str] = []
        self.returncode: Optional[int] = exit_on_start
        self.hang = hang
        self.terminated = False
        self.killed = False

    def poll(self) -> Optional[int]:
        return self.returncode

    def terminate(self) -> None:
        self.terminated = True
        if self.hang:
            return
        if self.buffer:
            (self.scratch_dir / f"nfcapd.{self.pid}").write_text("".join(f"{r}\n" for r in self.buffer))
        self.returncode = 0

    def kill(self) -> None:
        self.killed = True
        self.returncode = -9

    def wait(self, timeout: Optional[float] = None) -> int:
        assert self.returncode is not None
        return self.returncode


class FakeCollector:
    """CollectorPort fake; keeps every process it spawned."""

    def __init__(self) -> None:
        self.processes: List[FakeProcess] = []
        self.spawned: List[tuple] = []
        self.exit_on_start: Optional[int] = None
        self.hang = False

    def spawn(self, endpoint: Endpoint, scratch_dir: Path) -> FakeProcess:
        proc = FakeProcess(scratch_dir, exit_on_start=self.exit_on_start, hang=self.hang)
        self.processes.append(proc)
        self.spawned.append((endpoint, scratch_dir))
        return proc

    @property
    def live(self) -> List[FakeProcess]:
        return [p for p in self.processes if p.returncode is None]

    def deliver(self, endpoint: Endpoint, records: List[str]) -> None:
        for proc, (ep, _scratch) in zip(self.processes, self.spawned):
            if ep == endpoint and proc.returncode is None:
                proc.buffer.extend(records)
                return


class FakeExporter:
    """ExporterPort fake; reads record lines back out of a fake trace."""

    def __init__(self, collector: FakeCollector) -> None:
        self.collector = collector
        self.replayed: List[Path] = []
        self.fail_on: Dict[str, str] = {}

    def replay(self, trace_path: Path, endpoint: Endpoint) -> None:
        if trace_path.name in self.fail_on:
            raise ExportSendFailed(self.fail_on[trace_path.name])
        self.replayed.append(trace_path)
        body = trace_path.read_bytes()[len(PCAP_HEADER):].decode()
        self.collector.deliver(endpoint, [ln for ln in body.splitlines() if ln])


class FakeDumpTool:
    """DumpToolPort fake; renders scratch files like `nfdump -o long`."""

    def __init__(self) -> None:
        self.calls: List[Path] = []
        self.fail = False

    def dump(self, scratch_dir: Path) -> str:
        self.calls.append(scratch_dir)
        if self.fail:
            raise DumpToolFailed("nfdump: cannot read directory")
        records: List[str] = []
        for f in sorted(scratch_dir.iterdir()):
            records.extend(f.read_text().splitlines())
        lines = [DUMP_HEADER, *records, ""]
        lines += [s.format(n=len(records)) for s in DUMP_SUMMARY]
        return "\n".join(lines) + "\n"


@pytest.fixture
def collector() -> FakeCollector:
    return FakeCollector()


@pytest.fixture
def exporter(collector: FakeCollector) -> FakeExporter:
    return FakeExporter(collector)


@pytest.fixture
def dump_tool() -> FakeDumpTool:
    return FakeDumpTool()


@pytest.fixture
def make_config(tmp_path: Path, monkeypatch) -> Callable[..., ConverterConfig]:
    # Relative dirs under a chdir'd tmp_path: keys come from the path as
    # discovered, and pytest's own tmp dirs contain underscores.
    monkeypatch.chdir(tmp_path)

    def _make(**overrides) -> ConverterConfig:
        params = dict(
            input_dir=Path("pcap"),
            output_dir=Path("nf"),
            scratch_dir=Path("nf-binary"),
            startup_grace_seconds=0.0,
            flush_timeout_seconds=0.05,
            poll_interval_seconds=0.01,
            probe_endpoint=False,
            show_progress=False,
        )
        params.update(overrides)
        return ConverterConfig(**params)

    return _make
