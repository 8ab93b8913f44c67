"""
Batch orchestration: traces in, FlowFiles out.

State machine per batch:

    Idle -> Sequencing -> {MergedRun | PerInputRun} -> Finalizing -> Done
                  \\______________________\\___________________\\-> Failed

- Sequencing: discover and order traces. Any bad name fails the batch
  before a directory is created or a process is spawned.
- MergedRun: one collector session, every trace replayed in order, one
  normalize over the shared scratch directory, one FlowFile.
- PerInputRun: start/replay/stop/normalize/drain repeated per trace, one
  FlowFile per trace named after it.
- Finalizing: remove the drained scratch directory.

Only one collector runs at a time; every session is stopped on every exit
path (including Ctrl-C) before the error propagates. FlowFiles committed by
earlier units survive a later failure; the failing unit writes nothing.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional, Sequence

from tqdm import tqdm  # type: ignore

from ..config import ConverterConfig
from ..dto import BatchMode, BatchReport, BatchState, InputTrace
from ..errors import ConversionError, DuplicateOutputName, MalformedInputName, ScratchDirNotEmpty
from ..intake.sequencer import sequence_traces
from ..intake.trace_source_fs import FilesystemTraceSource
from ..pipeline.capture import CaptureSession
from ..pipeline.normalizer import RecordNormalizer
from ..pipeline.transmitter import TraceTransmitter
from ..ports import CollectorPort, DumpToolPort, ExporterPort
from ..tools.nfcapd import NfcapdCollector
from ..tools.nfdump import NfdumpReader
from ..tools.softflowd import SoftflowdExporter
from ..utils import dir_is_empty, drain_dir, ensure_dirs

log = logging.getLogger(__name__)


def run_batch(
    cfg: ConverterConfig,
    *,
    collector: Optional[CollectorPort] = None,
    exporter: Optional[ExporterPort] = None,
    dump_tool: Optional[DumpToolPort] = None,
) -> BatchReport:
    """
    Convert every trace under cfg.input_dir according to cfg.merge_all.

    Tool ports default to the nfcapd/softflowd/nfdump adapters built from
    the config. Conversion failures are recorded in the returned report
    (state == FAILED); KeyboardInterrupt is re-raised after cleanup.
    """
    runner = BatchRunner(
        cfg,
        collector=collector or NfcapdCollector(cfg.collector_bin),
        exporter=exporter or SoftflowdExporter(cfg.exporter_bin, netflow_version=cfg.netflow_version),
        dump_tool=dump_tool or NfdumpReader(cfg.dump_bin),
    )
    return runner.run()


class BatchRunner:
    """One-shot executor for a single batch; use run_batch() instead of instantiating directly."""

    def __init__(
        self,
        cfg: ConverterConfig,
        *,
        collector: CollectorPort,
        exporter: ExporterPort,
        dump_tool: DumpToolPort,
    ) -> None:
        self.cfg = cfg
        self.report = BatchReport(mode=cfg.mode)
        self.session = CaptureSession(
            collector,
            startup_grace=cfg.startup_grace_seconds,
            flush_timeout=cfg.flush_timeout_seconds,
            poll_interval=cfg.poll_interval_seconds,
            probe_endpoint=cfg.probe_endpoint,
        )
        self.transmitter = TraceTransmitter(exporter)
        self.normalizer = RecordNormalizer(dump_tool)
        self._unit: Optional[str] = None

    # --- state ---

    def _enter(self, state: BatchState) -> None:
        self.report.state = state
        log.info("Batch state -> %s", state.value)

    def _fail(self, unit: Optional[str], error: BaseException | str) -> BatchReport:
        self.report.failed_unit = unit
        self.report.error = str(error)
        self._enter(BatchState.FAILED)
        log.error("Batch failed%s: %s", f" on {unit}" if unit else "", error)
        return self.report

    # --- entry ---

    def run(self) -> BatchReport:
        cfg = self.cfg

        # === Sequencing ===
        self._enter(BatchState.SEQUENCING)
        paths = FilesystemTraceSource(cfg.input_dir, cfg.trace_suffixes).discover()
        try:
            traces = sequence_traces(
                paths,
                delimiter=cfg.sort_delimiter,
                field=cfg.sort_field,
                suffixes=cfg.trace_suffixes,
                root=cfg.input_dir if cfg.sort_relative_to_input else None,
            )
            if cfg.mode is BatchMode.PER_INPUT:
                self._check_output_names(traces)
        except MalformedInputName as e:
            return self._fail(e.path, e)
        except DuplicateOutputName as e:
            return self._fail(e.output_name, e)

        self.report.traces = [t.path for t in traces]
        log.info("Sequenced %d trace(s) from %s", len(traces), cfg.input_dir)

        try:
            ensure_dirs(cfg.output_dir)
        except OSError as e:
            return self._fail(str(cfg.output_dir), e)
        if not traces:
            self._enter(BatchState.FINALIZING)
            self._enter(BatchState.DONE)
            return self.report

        try:
            self._prepare_scratch()
        except (ScratchDirNotEmpty, OSError) as e:
            return self._fail(str(cfg.scratch_dir), e)

        pbar = tqdm(total=len(traces), unit="trace", disable=not cfg.show_progress)
        completed = False
        try:
            if cfg.mode is BatchMode.MERGED:
                self._enter(BatchState.MERGED_RUN)
                self._run_merged(traces, pbar)
            else:
                self._enter(BatchState.PER_INPUT_RUN)
                self._run_per_input(traces, pbar)
            completed = True
        except (ConversionError, OSError) as e:
            self._fail(self._unit, e)
        except KeyboardInterrupt:
            self._fail(self._unit, "cancelled")
            raise
        except Exception as e:
            self._fail(self._unit, e)
            raise
        finally:
            pbar.close()
            self._finalize(completed)

        return self.report

    # --- runs ---

    def _run_merged(self, traces: Sequence[InputTrace], pbar: tqdm) -> None:
        cfg = self.cfg
        out_path = cfg.merged_output_path
        with self.session.running(cfg.endpoint, cfg.scratch_dir) as session:
            for trace in traces:
                self._unit = str(trace.path)
                pbar.set_description(f"Transmitting {trace.path.name}")
                self.transmitter.transmit(trace, session.endpoint)
                pbar.update()

        self._unit = str(out_path)
        pbar.set_description(f"Normalizing {out_path.name}")
        flow_file = self.normalizer.normalize(
            cfg.scratch_dir, out_path, sources=[t.path for t in traces]
        )
        drain_dir(cfg.scratch_dir)
        self.report.flow_files.append(flow_file)
        self._unit = None

    def _run_per_input(self, traces: Sequence[InputTrace], pbar: tqdm) -> None:
        cfg = self.cfg
        for trace in traces:
            self._unit = str(trace.path)
            pbar.set_description(f"Converting {trace.path.name}")

            with self.session.running(cfg.endpoint, cfg.scratch_dir) as session:
                self.transmitter.transmit(trace, session.endpoint)

            out_path = self._output_path(trace)
            flow_file = self.normalizer.normalize(cfg.scratch_dir, out_path, sources=[trace.path])
            drain_dir(cfg.scratch_dir)
            self.report.flow_files.append(flow_file)
            pbar.update()
        self._unit = None

    # --- scratch / output helpers ---

    def _output_path(self, trace: InputTrace) -> Path:
        return self.cfg.output_dir / f"{trace.stem}{self.cfg.output_suffix}"

    def _check_output_names(self, traces: Sequence[InputTrace]) -> None:
        seen: Dict[str, InputTrace] = {}
        for trace in traces:
            name = self._output_path(trace).name
            if name in seen:
                raise DuplicateOutputName(name, seen[name].path, trace.path)
            seen[name] = trace

    def _prepare_scratch(self) -> None:
        scratch = self.cfg.scratch_dir
        ensure_dirs(scratch)
        if dir_is_empty(scratch):
            return
        if not self.cfg.purge_scratch:
            raise ScratchDirNotEmpty(scratch)
        removed = drain_dir(scratch)
        log.warning("Purged %d leftover entr(y/ies) from %s", removed, scratch)

    def _finalize(self, completed: bool) -> None:
        """Drain and remove the scratch directory; failures here are only logged."""
        failed = not completed
        if not failed:
            self._enter(BatchState.FINALIZING)

        scratch = self.cfg.scratch_dir
        try:
            if failed:
                drain_dir(scratch)
            scratch.rmdir()
        except FileNotFoundError:
            pass
        except OSError:
            log.warning("Could not remove scratch directory %s", scratch, exc_info=True)

        if not failed:
            self._enter(BatchState.DONE)
