"""
Filename sequencer: deterministic batch order from trace paths.

Each path is split on a fixed delimiter and the N-th token (1-based) must
start with a decimal integer; that integer is the ordering key. With the
defaults ("_", 3) the path "a_b_3.pcap" sorts by 3.

Merged output is only correct if traces are replayed in this order, so a
path that yields no key is an error, never a guess.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, Optional, Sequence, Tuple

from ..dto import InputTrace
from ..errors import MalformedInputName
from .trace_source_fs import infer_compressor, strip_trace_suffix

_LEADING_INT = re.compile(r"\d+")


def sort_key(path: str | Path, *, delimiter: str = "_", field: int = 3) -> int:
    """
    Extract the integer ordering key from `path`.

    Raises
    ------
    MalformedInputName
        If the path has fewer than `field` tokens or the token does not
        begin with a digit.
    """
    text = str(path)
    tokens = text.split(delimiter)
    if len(tokens) < field:
        raise MalformedInputName(
            text, f"expected at least {field} '{delimiter}'-separated fields, found {len(tokens)}"
        )
    token = tokens[field - 1]
    m = _LEADING_INT.match(token)
    if m is None:
        raise MalformedInputName(text, f"field {field} ('{token}') is not numeric")
    return int(m.group(0))


def sequence_traces(
    paths: Iterable[str | Path],
    *,
    delimiter: str = "_",
    field: int = 3,
    suffixes: Sequence[str] = (".pcap", ".pcapng"),
    root: Optional[str | Path] = None,
) -> Tuple[InputTrace, ...]:
    """
    Order traces ascending by their positional key.

    With `root`, keys are read from the path relative to it, so where the
    input directory lives never shifts the field index. Equal keys fall back
    to the path string so the result never depends on discovery order.
    Every path is checked before anything is returned.
    """
    traces = []
    for p in paths:
        path = Path(p)
        key_text = path.relative_to(root) if root is not None else p
        try:
            key = sort_key(key_text, delimiter=delimiter, field=field)
        except MalformedInputName as e:
            raise MalformedInputName(p, e.reason) from None
        traces.append(
            InputTrace(
                path=path,
                sort_key=key,
                stem=strip_trace_suffix(path.name, suffixes),
                compressor=infer_compressor(path.name),
            )
        )
    traces.sort(key=lambda t: (t.sort_key, str(t.path)))
    return tuple(traces)
