from __future__ import annotations

import socket
from pathlib import Path

import pytest

from pcap_netflow.dto import Endpoint
from pcap_netflow.errors import (
    CollectorDied,
    CollectorError,
    CollectorFlushTimeout,
    CollectorSpawnFailed,
    EndpointBindFailed,
    ScratchDirNotEmpty,
)
from pcap_netflow.pipeline.capture import CaptureSession, probe_udp_endpoint

from .conftest import FakeCollector

EP = Endpoint("127.0.0.1", 9995)


def _session(collector: FakeCollector, **kw) -> CaptureSession:
    params = dict(startup_grace=0.0, flush_timeout=0.05, poll_interval=0.01, probe_endpoint=False)
    params.update(kw)
    return CaptureSession(collector, **params)


def test_stop_without_process_is_noop(collector: FakeCollector):
    session = _session(collector)
    session.stop()
    session.stop()
    assert not session.active
    assert collector.processes == []


def test_start_stop_flushes_to_scratch(collector: FakeCollector, tmp_path: Path):
    session = _session(collector)
    session.start(EP, tmp_path)
    assert session.active and session.endpoint == EP
    collector.deliver(EP, ["1 a", "2 b"])

    session.stop()
    proc = collector.processes[0]
    assert proc.terminated and not proc.killed
    assert not session.active
    assert (tmp_path / f"nfcapd.{proc.pid}").read_text() == "1 a\n2 b\n"


def test_only_one_process_per_session(collector: FakeCollector, tmp_path: Path):
    session = _session(collector)
    session.start(EP, tmp_path)
    with pytest.raises(CollectorError):
        session.start(EP, tmp_path)
    session.stop()
    assert len(collector.processes) == 1


def test_non_empty_scratch_is_rejected(collector: FakeCollector, tmp_path: Path):
    (tmp_path / "nfcapd.old").write_text("x")
    with pytest.raises(ScratchDirNotEmpty):
        _session(collector).start(EP, tmp_path)
    assert collector.processes == []


def test_exit_during_startup_is_spawn_failure(collector: FakeCollector, tmp_path: Path):
    collector.exit_on_start = 255
    session = _session(collector, startup_grace=0.02)
    with pytest.raises(CollectorSpawnFailed):
        session.start(EP, tmp_path)
    assert not session.active


def test_flush_timeout_kills_and_reports(collector: FakeCollector, tmp_path: Path):
    collector.hang = True
    session = _session(collector)
    session.start(EP, tmp_path)
    with pytest.raises(CollectorFlushTimeout):
        session.stop()
    proc = collector.processes[0]
    assert proc.killed
    assert not session.active


def test_collector_that_exited_on_its_own_is_reported(collector: FakeCollector, tmp_path: Path):
    session = _session(collector)
    session.start(EP, tmp_path)
    collector.processes[0].returncode = 139

    with pytest.raises(CollectorDied, match="status 139"):
        session.stop()
    assert not session.active
    assert not collector.processes[0].terminated


def test_running_clean_exit_reports_dead_collector(collector: FakeCollector, tmp_path: Path):
    with pytest.raises(CollectorDied):
        with _session(collector).running(EP, tmp_path):
            collector.processes[0].returncode = -9


def test_running_stops_on_error_and_keeps_original(collector: FakeCollector, tmp_path: Path):
    collector.hang = True  # stop() would time out; must not mask the real error
    session = _session(collector)
    with pytest.raises(RuntimeError, match="boom"):
        with session.running(EP, tmp_path):
            raise RuntimeError("boom")
    assert collector.live == []
    assert not session.active


def test_running_stops_on_keyboard_interrupt(collector: FakeCollector, tmp_path: Path):
    session = _session(collector)
    with pytest.raises(KeyboardInterrupt):
        with session.running(EP, tmp_path):
            raise KeyboardInterrupt
    assert collector.processes[0].terminated
    assert collector.live == []


def test_running_clean_exit_propagates_flush_timeout(collector: FakeCollector, tmp_path: Path):
    collector.hang = True
    with pytest.raises(CollectorFlushTimeout):
        with _session(collector).running(EP, tmp_path):
            pass


def test_probe_detects_bound_endpoint():
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    try:
        port = sock.getsockname()[1]
        with pytest.raises(EndpointBindFailed):
            probe_udp_endpoint(Endpoint("127.0.0.1", port))
    finally:
        sock.close()


def test_bound_endpoint_prevents_spawn(collector: FakeCollector, tmp_path: Path):
    sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
    sock.bind(("127.0.0.1", 0))
    try:
        port = sock.getsockname()[1]
        with pytest.raises(EndpointBindFailed):
            _session(collector, probe_endpoint=True).start(Endpoint("127.0.0.1", port), tmp_path)
    finally:
        sock.close()
    assert collector.processes == []
