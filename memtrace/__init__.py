from memtrace.classify import AccessClass, Classifier
from memtrace.config import InputSource, RunConfig
from memtrace.convert import AddressRange, FlatRecord, FlatRecordWriter, Gem5TraceWriter
from memtrace.errors import (ConfigError, EndOfStream, MalformedRecord, StreamEnded, TraceError,
                             TruncatedStream, UnknownOpcode, UnrecognizedFormat)
from memtrace.merge import MergedEvent, merge_sources
from memtrace.pipeline import convert_gem5_to_qemu, process_gem5_trace, process_qemu_trace, run
from memtrace.records import TraceEvent, TraceHeader
from memtrace.sources import SourceStream, open_gem5_sources, open_input
from memtrace.stats import MissCounter, PageStats

__version__ = "0.1.0"
