"""
Length-delimited framing used by gem5 protobuf traces.

Every frame is a base-128 varint byte count followed by that many payload bytes.
"""
from memtrace.errors import EndOfStream, MalformedRecord, TruncatedStream

MAX_VARINT_BITS = 64
# upper bound on a single read so a corrupt length cannot force a huge allocation
READ_CHUNK = 1 << 20


def encode_varint(value: int) -> bytes:
    if value < 0:
        raise ValueError(f"varint must be unsigned, got {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


def decode_varint(buf, pos=0):
    """Decode a varint from buf starting at pos. Returns (value, new_pos)."""
    value = 0
    shift = 0
    while True:
        if pos >= len(buf):
            raise MalformedRecord("varint runs past end of payload")
        byte = buf[pos]
        pos += 1
        value |= (byte & 0x7F) << shift
        if not byte & 0x80:
            break
        shift += 7
        if shift >= MAX_VARINT_BITS:
            raise MalformedRecord("varint longer than 64 bits")
    if value >> MAX_VARINT_BITS:
        raise MalformedRecord("varint longer than 64 bits")
    return value, pos


def write_frame(out, payload: bytes) -> int:
    """Write one length-prefixed frame, returns the number of bytes written."""
    prefix = encode_varint(len(payload))
    out.write(prefix)
    out.write(payload)
    return len(prefix) + len(payload)


class FrameReader:
    """Reads frames from a binary stream without consuming past the frame end."""

    def __init__(self, stream):
        self.stream = stream
        self.bytes_read = 0

    def read_exact(self, n):
        """Read exactly n bytes. Returns fewer only when the stream is exhausted."""
        chunks = []
        remaining = n
        while remaining > 0:
            chunk = self.stream.read(min(remaining, READ_CHUNK))
            if not chunk:
                break
            chunks.append(chunk)
            remaining -= len(chunk)
        data = b"".join(chunks)
        self.bytes_read += len(data)
        return data

    def read_length(self):
        value = 0
        shift = 0
        first = True
        while True:
            byte = self.read_exact(1)
            if not byte:
                if first:
                    raise EndOfStream("no more frames")
                raise TruncatedStream("stream ended inside frame length")
            first = False
            b = byte[0]
            value |= (b & 0x7F) << shift
            if not b & 0x80:
                break
            shift += 7
            if shift >= MAX_VARINT_BITS:
                raise MalformedRecord("frame length longer than 64 bits")
        if value >> MAX_VARINT_BITS:
            raise MalformedRecord("frame length longer than 64 bits")
        return value

    def read_frame(self):
        length = self.read_length()
        payload = self.read_exact(length)
        if len(payload) != length:
            raise TruncatedStream(
                f"Unable to read next packet: wanted {length} bytes, got {len(payload)}"
            )
        return payload

    def __iter__(self):
        while True:
            try:
                yield self.read_frame()
            except EndOfStream:
                return
