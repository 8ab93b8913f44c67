"""
Record normalizer: collector dump -> one clean, sorted FlowFile.

The dump tool prints a long-format table: a column header on the first line,
one flow record per line, then a non-numeric summary block. Normalization:
  1. drop the first line (header),
  2. drop every line not starting with a digit (summary/footer),
  3. drop blank lines,
  4. sort by the leading number, then by the whole line.

Step 4 mirrors `sort -n`: ties on the leading number (nfdump's records all
start with the year) fall back to plain line order, which is chronological
for ISO timestamps and makes the output fully deterministic.
"""

from __future__ import annotations

import logging
import os
import re
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import Iterable, List, Sequence, Tuple

from ..dto import FlowFile
from ..ports import DumpToolPort

log = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"[0-9]+(?:\.[0-9]+)?")


def record_sort_key(line: str) -> Tuple[Decimal, str]:
    """(leading numeric value, full line); non-numeric lines sort as 0."""
    m = _LEADING_NUMBER.match(line)
    value = Decimal(m.group(0)) if m else Decimal(0)
    return value, line


def normalize_dump(text: str) -> List[str]:
    """Apply the four normalization steps to a raw dump; returns record lines."""
    # records may carry form feeds and other separators splitlines() would cut on
    lines = [ln[:-1] if ln.endswith("\r") else ln for ln in text.split("\n")][1:]
    records = [ln for ln in lines if "0" <= ln[:1] <= "9"]
    records = [ln for ln in records if ln.strip()]
    return sorted(records, key=record_sort_key)


def render_records(records: Iterable[str]) -> str:
    return "".join(f"{r}\n" for r in records)


def write_atomic(path: Path, content: str) -> None:
    """Write `content` to a sibling temp file and rename it over `path`."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="\n") as f:
            f.write(content)
        os.replace(tmp_name, path)
    except BaseException:
        try:
            os.unlink(tmp_name)
        except FileNotFoundError:
            pass
        raise


class RecordNormalizer:
    """Reads a scratch directory through a DumpToolPort and writes a FlowFile."""

    def __init__(self, dump_tool: DumpToolPort) -> None:
        self._dump_tool = dump_tool

    def normalize(
        self,
        scratch_dir: Path,
        output_path: Path,
        *,
        sources: Sequence[Path] = (),
    ) -> FlowFile:
        """
        Dump `scratch_dir`, normalize it, and write `output_path` (overwriting).

        Re-running against unchanged scratch contents produces byte-identical
        output. DumpToolFailed propagates and leaves `output_path` untouched.
        """
        raw = self._dump_tool.dump(scratch_dir)
        records = normalize_dump(raw)
        write_atomic(output_path, render_records(records))
        log.info("Wrote %d flow records to %s", len(records), output_path)
        return FlowFile(path=output_path, record_count=len(records), sources=tuple(sources))
