import logging
from dataclasses import dataclass

from memtrace.errors import StreamEnded
from memtrace.records import TraceEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergedEvent:
    index: int
    event: TraceEvent
    tick: int  # relative to the first merged event


def _pick_smallest(sources):
    smallest = None
    for source in sources:
        if source.pending is None:
            continue
        if smallest is None or source.pending.tick < smallest.pending.tick:
            smallest = source
    return smallest


def merge_sources(sources):
    """
    k-way merge of already opened sources by tick.

    Ties go to the source registered first. As soon as any source runs out no
    further input is read, since all sources cover the same simulation window;
    events already decoded from the other sources are still emitted in order.
    Malformed payloads propagate to the caller.
    """
    start_tick = None
    exhausted = False
    while True:
        if not exhausted:
            for source in sources:
                try:
                    source.fill()
                except StreamEnded as e:
                    logger.info("Source %d ended, stopping merge: %s", source.index, e)
                    exhausted = True
                    break
        smallest = _pick_smallest(sources)
        if smallest is None:
            return
        event = smallest.pending
        smallest.pending = None
        if start_tick is None:
            start_tick = event.tick
        yield MergedEvent(smallest.index, event, event.tick - start_tick)
