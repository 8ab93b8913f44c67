"""
Command-line entry point: `pcap-netflow`.

Defaults come from environment variables (PCAP_NETFLOW_*), flags override:

    pcap-netflow -i CIC-DDoS-2019/PCAP -o NetFlow-unlabeled
    pcap-netflow -i traces/ -o out/ --merge --merged-filename 0112_750-818.nf
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Optional, Sequence

from pydantic import ValidationError

from .config import ConverterConfig
from .dto import BatchReport, Endpoint
from .orchestration.runner import run_batch
from .utils import init_logging

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_USAGE = 2
EXIT_CANCELLED = 130


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "y", "yes", "true", "on")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        prog="pcap-netflow",
        description="Convert PCAP traces into sorted NetFlow record files (nfcapd + softflowd + nfdump).",
    )
    ap.add_argument("--input", "-i", default=os.getenv("PCAP_NETFLOW_INPUT_DIR"),
                    help="Directory scanned recursively for traces.")
    ap.add_argument("--output", "-o", default=os.getenv("PCAP_NETFLOW_OUTPUT_DIR"),
                    help="Directory receiving the .nf file(s).")
    ap.add_argument("--scratch", default=os.getenv("PCAP_NETFLOW_SCRATCH_DIR", "nf-binary"),
                    help="Temporary collector directory; removed at the end.")
    ap.add_argument("--purge-scratch", action="store_true",
                    help="Erase leftovers in the scratch directory instead of refusing to run.")
    ap.add_argument("--merge", action="store_true", default=_env_flag("PCAP_NETFLOW_MERGE"),
                    help="Merge all traces into a single .nf file.")
    ap.add_argument("--merged-filename", default=os.getenv("PCAP_NETFLOW_MERGED_FILENAME", "merged.nf"),
                    help="Filename of the merged output (with --merge).")
    ap.add_argument("--endpoint", default="127.0.0.1:9995",
                    help="UDP host:port for the collector.")
    ap.add_argument("--netflow-version", type=int, default=5, help="Export protocol version.")
    ap.add_argument("--sort-delimiter", default="_", help="Delimiter for the ordering field.")
    ap.add_argument("--sort-field", type=int, default=3, help="1-based ordering field index.")
    ap.add_argument("--sort-relative", action="store_true",
                    help="Count ordering fields from the path below --input, not the path as given.")
    ap.add_argument("--flush-timeout", type=float, default=10.0,
                    help="Seconds to wait for the collector to exit after SIGTERM.")
    ap.add_argument("--startup-grace", type=float, default=0.5,
                    help="Seconds to watch the collector for an early exit.")
    ap.add_argument("--collector-bin", default="nfcapd")
    ap.add_argument("--exporter-bin", default="softflowd")
    ap.add_argument("--dump-bin", default="nfdump")
    ap.add_argument("--report-json", help="Write the batch report as JSON to this path.")
    ap.add_argument("--no-progress", action="store_true", help="Disable the progress bar.")
    ap.add_argument("--log-level", default=os.getenv("PCAP_NETFLOW_LOG_LEVEL", "INFO"))
    ap.add_argument("--log-file", default=os.getenv("PCAP_NETFLOW_LOG_FILE"),
                    help="Also log to this rotating file.")
    return ap


def config_from_args(args: argparse.Namespace) -> ConverterConfig:
    """Build a validated config; raises ValueError / ValidationError on bad input."""
    if not args.input:
        raise ValueError("--input is required (or set PCAP_NETFLOW_INPUT_DIR)")
    if not args.output:
        raise ValueError("--output is required (or set PCAP_NETFLOW_OUTPUT_DIR)")
    endpoint = Endpoint.parse(args.endpoint)
    return ConverterConfig(
        input_dir=Path(args.input),
        output_dir=Path(args.output),
        scratch_dir=Path(args.scratch),
        purge_scratch=args.purge_scratch,
        merge_all=args.merge,
        merged_filename=args.merged_filename,
        endpoint_host=endpoint.host,
        endpoint_port=endpoint.port,
        netflow_version=args.netflow_version,
        sort_delimiter=args.sort_delimiter,
        sort_field=args.sort_field,
        sort_relative_to_input=args.sort_relative,
        flush_timeout_seconds=args.flush_timeout,
        startup_grace_seconds=args.startup_grace,
        collector_bin=args.collector_bin,
        exporter_bin=args.exporter_bin,
        dump_bin=args.dump_bin,
        show_progress=not args.no_progress,
    )


def print_report(report: BatchReport, out=None) -> None:
    out = out or sys.stdout
    for ff in report.flow_files:
        print(f"[+] {ff.path} ({ff.record_count} records, {len(ff.sources)} trace(s))", file=out)
    if report.ok:
        print(f"[+] Done: {len(report.flow_files)} file(s) from {len(report.traces)} trace(s)", file=out)
    else:
        print(f"[-] Failed on {report.failed_unit or '<batch>'}: {report.error}", file=out)


def main(argv: Optional[Sequence[str]] = None) -> int:
    ap = build_parser()
    args = ap.parse_args(argv)

    try:
        cfg = config_from_args(args)
    except (ValueError, ValidationError) as e:
        ap.print_usage(sys.stderr)
        print(f"{ap.prog}: error: {e}", file=sys.stderr)
        return EXIT_USAGE

    logger = init_logging(args.log_level, Path(args.log_file) if args.log_file else None)
    logger.info("Converting %s -> %s (%s)", cfg.input_dir, cfg.output_dir, cfg.mode.value)

    try:
        report = run_batch(cfg)
    except KeyboardInterrupt:
        logger.warning("Interrupted; collector stopped and scratch cleaned")
        return EXIT_CANCELLED

    if args.report_json:
        report_path = Path(args.report_json)
        report_path.parent.mkdir(parents=True, exist_ok=True)
        with report_path.open("w", encoding="utf-8") as f:
            json.dump(report.to_dict(), f, indent=2)

    print_report(report)
    return EXIT_OK if report.ok else EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
