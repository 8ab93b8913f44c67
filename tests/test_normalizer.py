from __future__ import annotations

import random
from pathlib import Path

import pytest

from pcap_netflow.errors import DumpToolFailed
from pcap_netflow.pipeline.normalizer import RecordNormalizer, normalize_dump, record_sort_key

from .conftest import FakeDumpTool

NFDUMP_LINES = [
    "2019-01-12 07:52:10.512     0.000 UDP     172.16.0.5:634   ->    192.168.50.1:41208        1      423     1",
    "2019-01-12 07:50:01.001     1.204 TCP     172.16.0.5:80    ->    192.168.50.4:5566   .AP.SF   12     7430     1",
    "2019-01-12 07:51:33.900     0.001 UDP     192.168.50.1:53  ->    172.16.0.5:34022          1       90     1",
]


def test_example_dump():
    assert normalize_dump("hdr\n5 x\n2 y\n\nSummary: 2 flows\n") == ["2 y", "5 x"]


def test_drops_header_even_if_numeric():
    assert normalize_dump("1 header\n3 c\n") == ["3 c"]


def test_empty_and_header_only_dumps():
    assert normalize_dump("") == []
    assert normalize_dump("Date first seen ...\n") == []


def test_crlf_dump():
    assert normalize_dump("hdr\r\n7 b\r\n3 a\r\n\r\nSummary\r\n") == ["3 a", "7 b"]


def test_non_ascii_digits_are_not_records():
    text = "hdr\n\u00b2 superscript\n\u0663 arabic-indic\n4 d\n"
    assert normalize_dump(text) == ["4 d"]


def test_only_newline_separates_records():
    text = "hdr\n2 a\x0cform feed\n1 b\x1crecord sep\u2028more\n"
    assert normalize_dump(text) == ["1 b\x1crecord sep\u2028more", "2 a\x0cform feed"]


def test_nfdump_records_sort_chronologically():
    text = "Date first seen ...\n" + "\n".join(NFDUMP_LINES) + "\n\nSummary: total flows: 3\nTime window: x\n"
    out = normalize_dump(text)
    assert [ln[:23] for ln in out] == [
        "2019-01-12 07:50:01.001",
        "2019-01-12 07:51:33.900",
        "2019-01-12 07:52:10.512",
    ]


@pytest.mark.parametrize("seed", range(6))
def test_output_is_sorted_and_clean_for_any_permutation(seed):
    rng = random.Random(seed)
    records = [f"{rng.randint(0, 500)} rec{i}" for i in range(40)]
    rng.shuffle(records)
    text = "header line\n" + "\n".join(records) + "\n\n  \nSummary: 40 flows\nTotal flows processed: 40\n"
    out = normalize_dump(text)

    assert len(out) == 40
    assert all(ln and ln[0].isdigit() for ln in out)
    assert out == sorted(out, key=record_sort_key)
    leading = [int(ln.split()[0]) for ln in out]
    assert leading == sorted(leading)


def test_numeric_not_lexicographic():
    assert normalize_dump("h\n10 a\n9 b\n100 c\n") == ["9 b", "10 a", "100 c"]


def _scratch(tmp_path: Path) -> Path:
    scratch = tmp_path / "scratch"
    scratch.mkdir()
    (scratch / "nfcapd.201901120750").write_text("\n".join(NFDUMP_LINES[:2]) + "\n")
    (scratch / "nfcapd.201901120755").write_text(NFDUMP_LINES[2] + "\n")
    return scratch


def test_normalize_writes_flow_file(tmp_path: Path):
    scratch = _scratch(tmp_path)
    out = tmp_path / "out" / "a_b_1.nf"
    flow_file = RecordNormalizer(FakeDumpTool()).normalize(scratch, out, sources=[Path("a_b_1.pcap")])

    assert flow_file.path == out
    assert flow_file.record_count == 3
    assert flow_file.sources == (Path("a_b_1.pcap"),)
    lines = out.read_text().splitlines()
    assert len(lines) == 3 and lines == sorted(lines)
    assert out.read_text().endswith("\n")
    # no temp files left beside the output
    assert [p.name for p in out.parent.iterdir()] == ["a_b_1.nf"]


def test_normalize_is_idempotent(tmp_path: Path):
    scratch = _scratch(tmp_path)
    out = tmp_path / "merged.nf"
    normalizer = RecordNormalizer(FakeDumpTool())

    normalizer.normalize(scratch, out)
    first = out.read_bytes()
    normalizer.normalize(scratch, out)
    assert out.read_bytes() == first


def test_normalize_overwrites_existing(tmp_path: Path):
    scratch = _scratch(tmp_path)
    out = tmp_path / "x.nf"
    out.write_text("stale\n")
    RecordNormalizer(FakeDumpTool()).normalize(scratch, out)
    assert "stale" not in out.read_text()


def test_dump_failure_leaves_no_output(tmp_path: Path):
    scratch = _scratch(tmp_path)
    out = tmp_path / "x.nf"
    tool = FakeDumpTool()
    tool.fail = True
    with pytest.raises(DumpToolFailed):
        RecordNormalizer(tool).normalize(scratch, out)
    assert not out.exists()
