"""
gem5 packet trace records.

Payloads follow gem5's ``packet.proto``::

    message PacketHeader {
      required string obj_id = 1;
      required uint32 ver = 2 [default = 0];
      required uint64 tick_freq = 3;
      repeated IdStringEntry id_strings = 4;
    }

    message Packet {
      required uint64 tick = 1;
      required uint32 cmd = 2;
      required uint64 addr = 3;
      required uint32 size = 4;
      optional uint32 flags = 5;
      optional uint64 pkt_id = 6;
      optional uint64 pc = 7;
    }

Only the fields used by the analyser are kept, the rest are skipped.
"""
import struct
from dataclasses import dataclass

from memtrace.errors import MalformedRecord
from memtrace.framing import decode_varint, encode_varint

MAGIC = b"gem5"
DEFAULT_TICK_FREQ = 1_000_000_000_000
DEFAULT_OBJ_ID = "objid"

WIRE_VARINT = 0
WIRE_FIXED64 = 1
WIRE_BYTES = 2
WIRE_FIXED32 = 5

# Packet field numbers
PKT_TICK = 1
PKT_CMD = 2
PKT_ADDR = 3
PKT_SIZE = 4

# Header field numbers
HDR_OBJ_ID = 1
HDR_VER = 2
HDR_TICK_FREQ = 3


@dataclass(frozen=True)
class TraceEvent:
    tick: int
    address: int
    size: int = 0
    opcode: int = 0


@dataclass(frozen=True)
class TraceHeader:
    tick_freq: int
    obj_id: str
    version: int = 0


def iter_fields(payload):
    """Yield (field_number, wire_type, value) for every field in a protobuf payload."""
    pos = 0
    end = len(payload)
    while pos < end:
        key, pos = decode_varint(payload, pos)
        field, wire_type = key >> 3, key & 0x7
        if field == 0:
            raise MalformedRecord("field number 0 is not allowed")
        if wire_type == WIRE_VARINT:
            value, pos = decode_varint(payload, pos)
        elif wire_type == WIRE_FIXED64:
            if pos + 8 > end:
                raise MalformedRecord(f"field {field} runs past end of payload")
            value = struct.unpack_from("<Q", payload, pos)[0]
            pos += 8
        elif wire_type == WIRE_FIXED32:
            if pos + 4 > end:
                raise MalformedRecord(f"field {field} runs past end of payload")
            value = struct.unpack_from("<L", payload, pos)[0]
            pos += 4
        elif wire_type == WIRE_BYTES:
            length, pos = decode_varint(payload, pos)
            if pos + length > end:
                raise MalformedRecord(f"field {field} runs past end of payload")
            value = bytes(payload[pos:pos + length])
            pos += length
        else:
            raise MalformedRecord(f"unsupported wire type {wire_type} for field {field}")
        yield field, wire_type, value


def _expect(field, wire_type, expected):
    if wire_type != expected:
        raise MalformedRecord(f"field {field} has wire type {wire_type}, expected {expected}")


def decode_packet(payload) -> TraceEvent:
    tick = addr = None
    cmd = size = 0
    for field, wire_type, value in iter_fields(payload):
        if field == PKT_TICK:
            _expect(field, wire_type, WIRE_VARINT)
            tick = value
        elif field == PKT_CMD:
            _expect(field, wire_type, WIRE_VARINT)
            cmd = value & 0xFFFFFFFF
        elif field == PKT_ADDR:
            _expect(field, wire_type, WIRE_VARINT)
            addr = value
        elif field == PKT_SIZE:
            _expect(field, wire_type, WIRE_VARINT)
            size = value & 0xFFFFFFFF
    if tick is None:
        raise MalformedRecord("packet has no tick")
    if addr is None:
        raise MalformedRecord("packet has no address")
    return TraceEvent(tick=tick, address=addr, size=size, opcode=cmd)


def decode_header(payload) -> TraceHeader:
    obj_id = tick_freq = None
    version = 0
    for field, wire_type, value in iter_fields(payload):
        if field == HDR_OBJ_ID:
            _expect(field, wire_type, WIRE_BYTES)
            try:
                obj_id = value.decode("utf-8")
            except UnicodeDecodeError as e:
                raise MalformedRecord(f"obj_id is not valid UTF-8: {e}") from e
        elif field == HDR_VER:
            _expect(field, wire_type, WIRE_VARINT)
            version = value
        elif field == HDR_TICK_FREQ:
            _expect(field, wire_type, WIRE_VARINT)
            tick_freq = value
    if tick_freq is None:
        raise MalformedRecord("trace header has no tick frequency")
    if obj_id is None:
        raise MalformedRecord("trace header has no object id")
    return TraceHeader(tick_freq=tick_freq, obj_id=obj_id, version=version)


def _varint_field(field, value):
    return encode_varint(field << 3 | WIRE_VARINT) + encode_varint(value)


def encode_packet(event: TraceEvent) -> bytes:
    return b"".join([
        _varint_field(PKT_TICK, event.tick),
        _varint_field(PKT_CMD, event.opcode),
        _varint_field(PKT_ADDR, event.address),
        _varint_field(PKT_SIZE, event.size),
    ])


def encode_header(header: TraceHeader) -> bytes:
    obj_id = header.obj_id.encode("utf-8")
    return b"".join([
        encode_varint(HDR_OBJ_ID << 3 | WIRE_BYTES),
        encode_varint(len(obj_id)),
        obj_id,
        _varint_field(HDR_VER, header.version),
        _varint_field(HDR_TICK_FREQ, header.tick_freq),
    ])
