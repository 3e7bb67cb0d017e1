"""
Tests for length-delimited frame reading and varint coding.
"""
import io

import pytest

from memtrace.errors import EndOfStream, MalformedRecord, TruncatedStream
from memtrace.framing import READ_CHUNK, FrameReader, decode_varint, encode_varint, write_frame


class TestVarint:

    def test_known_encodings(self):
        assert encode_varint(0) == b"\x00"
        assert encode_varint(1) == b"\x01"
        assert encode_varint(127) == b"\x7f"
        assert encode_varint(128) == b"\x80\x01"
        assert encode_varint(300) == b"\xac\x02"

    def test_max_u64(self):
        data = encode_varint(2**64 - 1)
        assert len(data) == 10
        assert decode_varint(data) == (2**64 - 1, 10)

    def test_decode_from_offset(self):
        assert decode_varint(b"\xff\xac\x02\x05", 1) == (300, 3)

    def test_negative_rejected(self):
        with pytest.raises(ValueError):
            encode_varint(-1)

    def test_unterminated(self):
        with pytest.raises(MalformedRecord):
            decode_varint(b"\x80\x80")

    def test_too_long(self):
        with pytest.raises(MalformedRecord):
            decode_varint(b"\xff" * 10 + b"\x01")

    def test_overflow_in_last_byte(self):
        with pytest.raises(MalformedRecord):
            decode_varint(b"\xff" * 9 + b"\x02")


class TestFrameReader:

    def test_reads_frames_in_order(self):
        buf = io.BytesIO()
        write_frame(buf, b"abc")
        write_frame(buf, b"")
        write_frame(buf, b"x" * 300)
        reader = FrameReader(io.BytesIO(buf.getvalue()))

        assert reader.read_frame() == b"abc"
        assert reader.read_frame() == b""
        assert reader.read_frame() == b"x" * 300
        with pytest.raises(EndOfStream):
            reader.read_frame()
        assert reader.bytes_read == len(buf.getvalue())

    def test_does_not_read_past_frame(self):
        stream = io.BytesIO(b"\x02hirest")
        reader = FrameReader(stream)
        assert reader.read_frame() == b"hi"
        assert stream.read() == b"rest"

    def test_length_needing_more_than_eight_bytes(self):
        # Prefix padded with continuation bytes, legal varint longer than an 8 byte window
        stream = io.BytesIO(b"\x83\x80\x80\x80\x80\x80\x80\x80\x00abc")
        reader = FrameReader(stream)
        assert reader.read_frame() == b"abc"

    def test_truncated_length(self):
        reader = FrameReader(io.BytesIO(b"\x80"))
        with pytest.raises(TruncatedStream):
            reader.read_frame()

    def test_truncated_payload(self):
        reader = FrameReader(io.BytesIO(b"\x05ab"))
        with pytest.raises(TruncatedStream):
            reader.read_frame()

    def test_empty_stream_is_end_of_stream(self):
        with pytest.raises(EndOfStream):
            FrameReader(io.BytesIO(b"")).read_frame()

    def test_iteration_stops_at_end(self):
        buf = io.BytesIO()
        for payload in (b"a", b"bb", b"ccc"):
            write_frame(buf, payload)
        assert list(FrameReader(io.BytesIO(buf.getvalue()))) == [b"a", b"bb", b"ccc"]

    def test_short_reads_are_retried(self):
        class Trickle(io.RawIOBase):
            def __init__(self, data):
                self.data = data

            def readable(self):
                return True

            def read(self, n=-1):
                chunk, self.data = self.data[:1], self.data[1:]
                return chunk

        reader = FrameReader(Trickle(b"\x04abcd"))
        assert reader.read_frame() == b"abcd"

    def test_reads_are_bounded_by_chunk_size(self):
        class Recording(io.BytesIO):
            def __init__(self, data):
                super().__init__(data)
                self.requests = []

            def read(self, n=-1):
                self.requests.append(n)
                return super().read(n)

        stream = Recording(encode_varint(2**40) + b"xyz")
        reader = FrameReader(stream)
        with pytest.raises(TruncatedStream):
            reader.read_frame()
        assert max(stream.requests) <= READ_CHUNK
        assert reader.bytes_read == len(encode_varint(2**40)) + 3
