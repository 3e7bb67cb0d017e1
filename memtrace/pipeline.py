"""
Processing modes: gem5 statistics (with optional qemu replay output), qemu
statistics (with optional gem5 output), and gem5 to qemu replay conversion.
"""
import logging
from contextlib import ExitStack

from memtrace.classify import Classifier
from memtrace.config import InputSource, RunConfig
from memtrace.convert import (FlatRecordWriter, Gem5TraceWriter, cpu_for_source, in_ranges,
                              is_fetch_source, read_flat_records)
from memtrace.merge import merge_sources
from memtrace.sources import open_gem5_sources, open_input
from memtrace.stats import PageStats

logger = logging.getLogger(__name__)


def process_gem5_trace(sources, stats: PageStats, classifier=None, fetch_sources=(),
                       writer: FlatRecordWriter = None, max_events=None):
    """
    Merge the sources and feed every event into stats.

    With a writer, classified events are also written as qemu replay records,
    at most max_events of them. Sources pair up as (fetch, data) per CPU for
    the cpu byte. The final snapshot is written even when a malformed record
    aborts the merge. Returns the number of merged events.
    """
    classifier = classifier or Classifier()
    fetch_sources = set(fetch_sources)
    count = 0
    cur_tick = 0
    try:
        for merged in merge_sources(sources):
            count += 1
            cur_tick = merged.tick
            access_class = classifier.classify(merged.event.opcode,
                                               fetch=merged.index in fetch_sources)
            stats.record(merged.event.address, merged.tick, access_class)
            if writer is not None and (max_events is None or writer.count < max_events):
                writer.write(merged.tick, merged.event.address, access_class,
                             cpu_for_source(merged.index, 0))
    finally:
        if count:
            stats.finish(cur_tick)
    return count


def process_qemu_trace(records, stats: PageStats, memory_ranges, trace_writer=None,
                       max_events=None):
    """
    Feed flat qemu records into stats, dropping those outside memory_ranges.

    In-range records are also written to trace_writer when given, at most
    max_events of them. Returns the number of records recorded.
    """
    count = 0
    start_tick = None
    cur_tick = 0
    try:
        for record in records:
            if not in_ranges(record.address, memory_ranges):
                stats.outside_region += 1
                continue
            if start_tick is None:
                start_tick = record.tick
            cur_tick = record.tick - start_tick
            count += 1
            stats.record(record.address, cur_tick, record.access_class)
            if trace_writer is not None and (max_events is None or trace_writer.count < max_events):
                trace_writer.write_flat(record)
    finally:
        if count:
            stats.finish(cur_tick)
    return count


def convert_gem5_to_qemu(sources, writer: FlatRecordWriter, classifier=None, misses=None,
                         max_events=None):
    """
    Merge gem5 sources into qemu replay records.

    With a MissCounter, source 0 is the cache-miss stream and is only counted;
    the remaining sources come in (fetch, data) pairs per CPU. Without one every
    source is a core stream. Every core-stream event, ignored ones included,
    advances the miss-row cadence. Conversion stops once max_events core-stream
    events were seen. Returns the number of records written.
    """
    classifier = classifier or Classifier()
    first_core = 1 if misses is not None else 0
    seen = 0
    for merged in merge_sources(sources):
        event = merged.event
        if merged.index < first_core:
            misses.record_miss(classifier.classify(event.opcode))
            continue
        seen += 1
        fetch = is_fetch_source(merged.index, first_core)
        access_class = classifier.classify(event.opcode, fetch=fetch)
        writer.write(merged.tick, event.address, access_class,
                     cpu_for_source(merged.index, first_core))
        if misses is not None:
            misses.record_event()
        if max_events is not None and seen >= max_events:
            logger.info("Reached %d converted events, stopping", max_events)
            break
    return writer.count


def run(config: RunConfig, classifier=None):
    """Run the statistics pass described by config. Returns the PageStats."""
    config.validate()
    classifier = classifier or Classifier()
    with ExitStack() as stack:
        out = stack.enter_context(open(config.output, "w", newline=""))
        logger.info("Writing output to: %s", config.output)

        if config.input_source is InputSource.GEM5:
            sources = open_gem5_sources(config.inputs, stack)
            writer = None
            if config.trace_output:
                writer = FlatRecordWriter(stack.enter_context(open(config.trace_output, "wb")))
                logger.info("Writing qemu replay trace to: %s", config.trace_output)
            stats = PageStats(out, page_shift=config.page_shift,
                              flush_interval=config.flush_interval,
                              bytes_read=lambda: sum(s.bytes_read for s in sources))
            try:
                process_gem5_trace(sources, stats, classifier, config.fetch_sources,
                                   writer=writer, max_events=config.max_events)
            finally:
                _finish_run(config, stats)
        else:
            stream = stack.enter_context(open_input(config.inputs[0]))
            trace_writer = None
            if config.trace_output:
                trace_out = stack.enter_context(open(config.trace_output, "wb"))
                trace_writer = Gem5TraceWriter(trace_out)
                logger.info("Writing gem5 trace to: %s", config.trace_output)
            stats = PageStats(out, page_shift=config.page_shift,
                              flush_interval=config.flush_interval,
                              bytes_read=lambda: stream.tell())
            try:
                process_qemu_trace(read_flat_records(stream), stats,
                                   config.memory_ranges, trace_writer,
                                   max_events=config.max_events)
            finally:
                _finish_run(config, stats)
    return stats


def _finish_run(config, stats):
    if config.heatmap_output:
        with open(config.heatmap_output, "w", newline="") as f:
            stats.write_heatmap(f, stats.total)
    stats.log_summary()
