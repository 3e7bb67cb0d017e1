class TraceError(Exception):
    """Base class for everything that can go wrong while reading a trace."""


class UnrecognizedFormat(TraceError):
    """The input does not start with the expected magic bytes."""


class StreamEnded(TraceError):
    """The input ran out of bytes. Ends a merge cleanly."""


class EndOfStream(StreamEnded):
    """No bytes left at a frame boundary."""


class TruncatedStream(StreamEnded):
    """The input ended in the middle of a frame or record."""


class MalformedRecord(TraceError):
    """A frame was read but its payload does not match the schema."""


class UnknownOpcode(TraceError):
    def __init__(self, opcode):
        super().__init__(f"Unknown event: {opcode}")
        self.opcode = opcode


class ConfigError(ValueError):
    """Invalid run configuration."""
