import json
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import List, Optional, Tuple

from memtrace.convert import DEFAULT_MEMORY_RANGES, AddressRange
from memtrace.errors import ConfigError
from memtrace.stats import FLUSH_INTERVAL, PAGE_SHIFT

# gem5 runs record instruction fetches on the second trace
DEFAULT_FETCH_SOURCES = (1,)


class InputSource(Enum):
    GEM5 = "gem5"
    QEMU = "qemu"


def parse_input_source(value):
    if isinstance(value, InputSource):
        return value
    try:
        return InputSource(str(value).lower())
    except ValueError:
        raise ConfigError(f"Unknown input source: {value!r} (expected gem5 or qemu)") from None


def _parse_int(value):
    if isinstance(value, int):
        return value
    try:
        return int(str(value), 0)
    except ValueError:
        raise ConfigError(f"Not an integer: {value!r}") from None


def parse_ranges(value):
    """Accepts [[start, end], ...] or "start-end,start-end"; ints or hex strings."""
    if isinstance(value, str):
        pairs = [part.split("-") for part in value.split(",") if part.strip()]
    else:
        pairs = value
    ranges = []
    for pair in pairs:
        if isinstance(pair, AddressRange):
            ranges.append(pair)
            continue
        if len(pair) != 2:
            raise ConfigError(f"Memory range needs a start and an end: {pair!r}")
        start, end = (_parse_int(p.strip() if isinstance(p, str) else p) for p in pair)
        if start > end:
            raise ConfigError(f"Memory range start {start:#x} is after its end {end:#x}")
        ranges.append(AddressRange(start, end))
    return tuple(ranges)


def parse_index_list(value):
    if isinstance(value, str):
        return tuple(_parse_int(v) for v in value.split(",") if v.strip())
    return tuple(_parse_int(v) for v in value)


@dataclass
class RunConfig:
    inputs: List[str] = field(default_factory=list)
    output: str = "output.csv"
    input_source: InputSource = InputSource.GEM5
    trace_output: Optional[str] = None
    heatmap_output: Optional[str] = None
    page_shift: int = PAGE_SHIFT
    flush_interval: int = FLUSH_INTERVAL
    memory_ranges: Tuple[AddressRange, ...] = DEFAULT_MEMORY_RANGES
    fetch_sources: Tuple[int, ...] = DEFAULT_FETCH_SOURCES
    max_events: Optional[int] = None
    verbose: bool = False

    def __post_init__(self):
        if isinstance(self.inputs, str):
            self.inputs = [p for p in self.inputs.split(",") if p]
        else:
            self.inputs = [str(p) for p in self.inputs]
        self.input_source = parse_input_source(self.input_source)
        self.memory_ranges = parse_ranges(self.memory_ranges)
        self.fetch_sources = parse_index_list(self.fetch_sources)
        self.page_shift = _parse_int(self.page_shift)
        self.flush_interval = _parse_int(self.flush_interval)
        if self.page_shift < 0:
            raise ConfigError(f"page_shift must not be negative: {self.page_shift}")
        if self.flush_interval <= 0:
            raise ConfigError(f"flush_interval must be positive: {self.flush_interval}")
        if self.max_events is not None:
            self.max_events = _parse_int(self.max_events)
            if self.max_events < 0:
                raise ConfigError(f"max_events must not be negative: {self.max_events}")

    def validate(self):
        if not self.inputs:
            raise ConfigError("No input files given")
        if self.input_source is InputSource.QEMU and len(self.inputs) > 1:
            raise ConfigError("qemu input takes a single trace file")

    @classmethod
    def from_json(cls, path, **overrides):
        """Load a config file; keyword overrides that are not None win over file values."""
        with open(path, "r") as f:
            data = json.load(f)
        known = {fld.name for fld in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigError(f"Unknown config keys in {Path(path).name}: {sorted(unknown)}")
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**data)
