#!/usr/bin/env python3
import argparse
import logging
import sys
from contextlib import ExitStack

from memtrace.convert import FlatRecordWriter
from memtrace.errors import TraceError
from memtrace.pipeline import convert_gem5_to_qemu
from memtrace.sources import open_gem5_sources
from memtrace.stats import FLUSH_INTERVAL, MissCounter


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Convert gem5 cache traces into a qemu replay trace. The first input is the "
                    "cache-miss trace, the others come in (fetch, data) pairs per CPU."
    )
    parser.add_argument("--input", required=True, help="Comma separated input files (.gz is decompressed)")
    parser.add_argument("--out", required=True, help="Replay trace output location")
    parser.add_argument("--misses", default=None,
                        help="CSV for windowed miss counts (default: stdout)")
    parser.add_argument("--no-miss-trace", action="store_true",
                        help="Treat every input as a core trace")
    parser.add_argument("--max-events", type=int, default=None, help="Stop after this many core-stream events")
    parser.add_argument("--interval", type=int, default=FLUSH_INTERVAL,
                        help="Converted records per miss-count row")
    parser.add_argument("--debug", action="store_true")
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    paths = [p for p in args.input.split(",") if p]
    print(f"🧪 Converting {len(paths)} gem5 traces to {args.out}")
    with ExitStack() as stack:
        out = stack.enter_context(open(args.out, "wb"))
        writer = FlatRecordWriter(out)
        misses = None
        if not args.no_miss_trace:
            miss_out = stack.enter_context(open(args.misses, "w", newline="")) if args.misses else sys.stdout
            misses = MissCounter(miss_out, flush_interval=args.interval)
        try:
            sources = open_gem5_sources(paths, stack)
            convert_gem5_to_qemu(sources, writer, misses=misses, max_events=args.max_events)
        except TraceError as e:
            print(f"❌ {type(e).__name__}: {e}")
            return 1
        except OSError as e:
            print(f"❌ Unable to open input: {e}")
            return 1

    if misses is not None:
        print(f"Read miss: {misses.total_read_misses}")
        print(f"Write miss: {misses.total_write_misses}")
    print(f"✅ Wrote {writer.count} replay records to {args.out}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
