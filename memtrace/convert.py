"""
Conversion between gem5 packet traces and flat QEMU memory traces.

QEMU traces are 18 byte little endian records::

    u64 address | u64 tick | u8 type | u8 size      (type 2 write, 3 fetch, else read)

The gem5 -> QEMU direction writes replay records, also 18 bytes::

    u64 tick | u64 address | u8 access type | u8 cpu   (access type 0 read, 1 write, 2 fetch)
"""
import logging
import struct
from dataclasses import dataclass

from memtrace.classify import READ_REQ, WRITE_REQ, AccessClass
from memtrace.framing import write_frame
from memtrace.records import (DEFAULT_OBJ_ID, DEFAULT_TICK_FREQ, MAGIC, TraceEvent,
                              TraceHeader, encode_header, encode_packet)

logger = logging.getLogger(__name__)

RECORD = struct.Struct("<QQBB")

QEMU_READ = 0
QEMU_WRITE = 2
QEMU_FETCH = 3

ACCESS_TYPE_CODES = {
    AccessClass.READ: 0,
    AccessClass.WRITE: 1,
    AccessClass.FETCH: 2,
}
REPLAY_TO_QEMU = {0: QEMU_READ, 1: QEMU_WRITE, 2: QEMU_FETCH}

PACKET_SIZE = 8


@dataclass(frozen=True)
class AddressRange:
    start: int
    end: int  # inclusive

    def __contains__(self, address):
        return self.start <= address <= self.end


DEFAULT_MEMORY_RANGES = (
    AddressRange(0x0, 0xC0000000),
    AddressRange(0x100000000, 0x240000000),
)


def in_ranges(address, ranges):
    return any(address in r for r in ranges)


@dataclass(frozen=True)
class FlatRecord:
    address: int
    tick: int
    type: int
    size: int = 0

    @property
    def access_class(self):
        if self.type == QEMU_WRITE:
            return AccessClass.WRITE
        if self.type == QEMU_FETCH:
            return AccessClass.FETCH
        return AccessClass.READ


def _iter_raw_records(stream):
    size = RECORD.size
    while True:
        data = stream.read(size)
        # read() on buffered files only comes back short at EOF
        while data and len(data) < size:
            more = stream.read(size - len(data))
            if not more:
                break
            data += more
        if not data:
            return
        if len(data) < size:
            logger.warning("Trailing partial record of %d bytes ignored", len(data))
            return
        yield RECORD.unpack(data)


def read_flat_records(stream):
    """Yield FlatRecords from a QEMU trace until the stream ends."""
    for address, tick, type_, size in _iter_raw_records(stream):
        yield FlatRecord(address, tick, type_, size)


def read_replay_records(stream):
    """Read records written by FlatRecordWriter back as FlatRecords. The cpu byte is dropped."""
    for tick, address, access_type, _cpu in _iter_raw_records(stream):
        yield FlatRecord(address, tick, REPLAY_TO_QEMU.get(access_type, QEMU_READ))


def encode_flat_record(address, tick, type_, size=0):
    return RECORD.pack(address, tick, type_, size)


class FlatRecordWriter:
    """Writes gem5 events as fixed width QEMU replay records."""

    def __init__(self, out):
        self.out = out
        self.count = 0

    def write(self, tick, address, access_class, cpu):
        if access_class is AccessClass.IGNORE:
            return False
        self.out.write(RECORD.pack(tick, address, ACCESS_TYPE_CODES[access_class], cpu))
        self.count += 1
        return True


class Gem5TraceWriter:
    """Writes a gem5 packet trace: magic, header frame, then one frame per packet."""

    def __init__(self, out, tick_freq=DEFAULT_TICK_FREQ, obj_id=DEFAULT_OBJ_ID):
        self.out = out
        self.count = 0
        out.write(MAGIC)
        write_frame(out, encode_header(TraceHeader(tick_freq=tick_freq, obj_id=obj_id)))

    def write(self, event: TraceEvent):
        write_frame(self.out, encode_packet(event))
        self.count += 1

    def write_flat(self, record: FlatRecord):
        cmd = WRITE_REQ if record.type == QEMU_WRITE else READ_REQ
        self.write(TraceEvent(tick=record.tick, address=record.address,
                              size=PACKET_SIZE, opcode=cmd))


def cpu_for_source(index, first_core_source=1):
    """Logical CPU of a core source: each CPU contributes a fetch and a data stream."""
    return (index - first_core_source) // 2


def is_fetch_source(index, first_core_source=1):
    return (index - first_core_source) % 2 == 0
