#!/usr/bin/env python3
import argparse
import logging
import sys

from memtrace.config import RunConfig
from memtrace.errors import ConfigError, TraceError
from memtrace.pipeline import run


def build_config(args):
    overrides = dict(
        inputs=args.input,
        output=args.output,
        input_source=args.inputsource,
        trace_output=args.gemtraceout,
        heatmap_output=args.heatmap,
        page_shift=args.page_shift,
        fetch_sources=args.fetch_sources,
        max_events=args.max_events,
        verbose=True if args.debug else None,
    )
    if args.config:
        return RunConfig.from_json(args.config, **overrides)
    return RunConfig(**{k: v for k, v in overrides.items() if v is not None})


def main(argv=None):
    parser = argparse.ArgumentParser(
        description="Merge gem5 or qemu memory traces into per-page access statistics."
    )
    parser.add_argument("--input", help="Comma separated input files (.gz is decompressed)")
    parser.add_argument("--output", default=None, help="Statistics CSV output (default: output.csv)")
    parser.add_argument("--inputsource", choices=["gem5", "qemu"], default=None,
                        help="Input trace format (default: gem5)")
    parser.add_argument("--gemtraceout", default=None,
                        help="Converted trace output: qemu replay records for gem5 input, "
                             "a gem5 trace for qemu input")
    parser.add_argument("--heatmap", default=None, help="Per-page access count CSV written at the end")
    parser.add_argument("--page-shift", type=int, default=None,
                        help="Page size as a bit shift (default: 12)")
    parser.add_argument("--fetch-sources", default=None,
                        help="Comma separated gem5 source indices carrying instruction fetches (default: 1)")
    parser.add_argument("--max-events", type=int, default=None,
                        help="Write at most this many records to --gemtraceout")
    parser.add_argument("--config", default=None, help="JSON run config, flags override its values")
    parser.add_argument("--debug", action="store_true",
                        help="If set additional debugging info will be logged")
    args = parser.parse_args(argv)

    try:
        config = build_config(args)
        config.validate()
    except ConfigError as e:
        print(f"❌ {e}")
        return 2

    logging.basicConfig(
        level=logging.DEBUG if config.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    logging.getLogger(__name__).debug("Using input files located at: %s for inputsource: %s",
                                      config.inputs, config.input_source.value)

    print(f"🧪 Reading {config.input_source.value} trace from {', '.join(config.inputs)}")
    try:
        stats = run(config)
    except TraceError as e:
        print(f"❌ {type(e).__name__}: {e}")
        print(f"⚠️  Partial statistics may have been written to {config.output}")
        return 1
    except OSError as e:
        print(f"❌ Unable to open input: {e}")
        return 1

    print(f"✅ Wrote statistics for {stats.total} accesses over {len(stats.accessed)} pages to {config.output}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
