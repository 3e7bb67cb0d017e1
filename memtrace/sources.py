import gzip
import logging
from contextlib import ExitStack

from memtrace.errors import UnrecognizedFormat
from memtrace.framing import FrameReader
from memtrace.records import MAGIC, decode_header, decode_packet

logger = logging.getLogger(__name__)


def open_input(path):
    """Open a trace file for binary reading, decompressing ``.gz`` files on the fly."""
    path = str(path)
    if path.endswith(".gz"):
        logger.info("Input file is gz: %s", path)
        return gzip.open(path, "rb")
    return open(path, "rb")


class SourceStream:
    """One gem5 input: its frame reader, decoded header and at most one pending event."""

    def __init__(self, stream, index=0):
        self.reader = FrameReader(stream)
        self.index = index
        self.pending = None
        self.header = None

    @property
    def bytes_read(self):
        return self.reader.bytes_read

    def read_header(self):
        magic = self.reader.read_exact(len(MAGIC))
        if magic != MAGIC:
            raise UnrecognizedFormat(f"Input not recognized: magic {magic!r}, expected {MAGIC!r}")
        # Any framing failure before the first event is fatal for the whole run
        self.header = decode_header(self.reader.read_frame())
        logger.info("%d: tick frequency %d, objid %s",
                    self.index, self.header.tick_freq, self.header.obj_id)
        return self.header

    def next_event(self):
        return decode_packet(self.reader.read_frame())

    def fill(self):
        """Decode the next event into the pending slot if it is empty."""
        if self.pending is None:
            self.pending = self.next_event()
        return self.pending


def open_gem5_sources(paths, stack: ExitStack):
    """
    Open and validate every gem5 trace in paths, in order.

    Files are registered on stack so the caller controls their lifetime. The
    position in paths becomes the source index.
    """
    sources = []
    for index, path in enumerate(paths):
        stream = stack.enter_context(open_input(path))
        logger.info("%d:%s", index, path)
        source = SourceStream(stream, index=index)
        source.read_header()
        sources.append(source)
    return sources
