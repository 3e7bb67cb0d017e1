import gzip
import io

import pytest

from memtrace.framing import write_frame
from memtrace.records import MAGIC, TraceEvent, TraceHeader, encode_header, encode_packet
from memtrace.sources import SourceStream


def gem5_trace_bytes(events, tick_freq=1_000_000_000_000, obj_id="objid"):
    """events: iterable of TraceEvent or (tick, address, opcode) tuples."""
    out = io.BytesIO()
    out.write(MAGIC)
    write_frame(out, encode_header(TraceHeader(tick_freq=tick_freq, obj_id=obj_id)))
    for e in events:
        if not isinstance(e, TraceEvent):
            tick, address, opcode = e
            e = TraceEvent(tick=tick, address=address, size=64, opcode=opcode)
        write_frame(out, encode_packet(e))
    return out.getvalue()


@pytest.fixture
def make_trace():
    return gem5_trace_bytes


@pytest.fixture
def make_source():
    def _make(events, index=0):
        source = SourceStream(io.BytesIO(gem5_trace_bytes(events)), index=index)
        source.read_header()
        return source
    return _make


@pytest.fixture
def write_trace(tmp_path):
    def _write(name, events, compress=False):
        path = tmp_path / name
        data = gem5_trace_bytes(events)
        if compress:
            data = gzip.compress(data)
        path.write_bytes(data)
        return str(path)
    return _write
