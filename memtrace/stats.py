"""
Per-page access statistics.

Pages are ``address >> page_shift``. Every recorded access bumps the page's
access count and exactly one of its read, write or fetch counts. Snapshot rows
are appended to a CSV every ``flush_interval`` classified accesses and once more
when the run finishes.
"""
import csv
import logging
from collections import defaultdict

import numpy as np

from memtrace.classify import AccessClass

logger = logging.getLogger(__name__)

PAGE_SHIFT = 12
FLUSH_INTERVAL = 10_000_000

CSV_HEADER = [
    "timestamp",
    "total_accesses",
    "total_reads",
    "total_writes",
    "total_pages_accessed",
    "total_pages_written",
    "total_pages_read",
    "total_pages_fetched",
]

HEATMAP_HEADER = ["timestamp", "page_address", "accesses"]


class PageStats:
    def __init__(self, out, page_shift=PAGE_SHIFT, flush_interval=FLUSH_INTERVAL,
                 bytes_read=None):
        """
        out: text stream the statistics CSV is written to.
        bytes_read: optional callable returning the number of input bytes consumed,
        only used for progress logging.
        """
        self.out = out
        self.writer = csv.writer(out, lineterminator="\n")
        self.page_shift = page_shift
        self.flush_interval = flush_interval
        self.bytes_read = bytes_read

        self.accessed = defaultdict(int)
        self.read = defaultdict(int)
        self.written = defaultdict(int)
        self.fetched = defaultdict(int)
        self.total_reads = 0
        self.total_writes = 0
        self.total_fetches = 0
        self.outside_region = 0

        self.writer.writerow(CSV_HEADER)
        self.writer.writerow([0] * len(CSV_HEADER))

    @property
    def total(self):
        return self.total_reads + self.total_writes + self.total_fetches

    def record(self, address, tick, access_class):
        if access_class is AccessClass.IGNORE:
            return
        page = address >> self.page_shift
        self.accessed[page] += 1
        if access_class is AccessClass.WRITE:
            self.written[page] += 1
            self.total_writes += 1
        elif access_class is AccessClass.FETCH:
            self.fetched[page] += 1
            self.total_fetches += 1
        else:
            self.read[page] += 1
            self.total_reads += 1

        total = self.total
        if total % self.flush_interval == 0:
            logger.info("Processed: %d million accesses", total // 1_000_000)
            if self.bytes_read is not None:
                logger.info("Total bytes read: %d", self.bytes_read())
            logger.info("Total pages accessed: %d", len(self.accessed))
            self.write_row(tick)
            self.out.flush()

    def write_row(self, tick):
        self.writer.writerow([
            tick,
            self.total,
            self.total_reads,
            self.total_writes,
            len(self.accessed),
            len(self.written),
            len(self.read),
            len(self.fetched),
        ])

    def finish(self, tick):
        self.write_row(tick)
        self.out.flush()

    def page_range(self):
        """Lowest and highest page touched, or None when nothing was recorded."""
        if not self.accessed:
            return None
        return min(self.accessed), max(self.accessed)

    def average_reads_per_page(self):
        if not self.read:
            return 0.0
        return float(np.mean(list(self.read.values())))

    def average_writes_per_page(self):
        if not self.written:
            return 0.0
        return float(np.mean(list(self.written.values())))

    def write_heatmap(self, out, timestamp, header=True):
        writer = csv.writer(out, lineterminator="\n")
        if header:
            writer.writerow(HEATMAP_HEADER)
        for page in sorted(self.accessed):
            writer.writerow([timestamp, page << self.page_shift, self.accessed[page]])
        out.flush()

    def summary(self):
        return {
            "total_accesses": self.total,
            "total_reads": self.total_reads,
            "total_writes": self.total_writes,
            "total_fetches": self.total_fetches,
            "ratio": self.total_writes / self.total_reads if self.total_reads else float("nan"),
            "pages": len(self.accessed),
            "outside_region": self.outside_region,
            "avg_reads_per_page": self.average_reads_per_page(),
            "avg_writes_per_page": self.average_writes_per_page(),
        }

    def log_summary(self):
        s = self.summary()
        logger.info("Total accesses:  %d", s["total_accesses"])
        logger.info("Total reads:     %d", s["total_reads"])
        logger.info("Total writes:    %d", s["total_writes"])
        logger.info("Total fetch:     %d", s["total_fetches"])
        logger.info("Ratio:           %f", s["ratio"])
        logger.info("Pages amount:    %d", s["pages"])
        logger.info("Outside region:  %d", s["outside_region"])
        logger.info("Reads per page:  %f", s["avg_reads_per_page"])
        logger.info("Writes per page: %f", s["avg_writes_per_page"])
        span = self.page_range()
        if span is not None:
            logger.info("Min:%x, max:%x", *span)


MISS_HEADER = ["million_events", "misses", "read_misses", "write_misses"]


class MissCounter:
    """
    Windowed cache-miss counts for the cache-analyser conversion.

    Misses are counted as they arrive; every ``flush_interval`` converted events
    a row is written and the window starts over.
    """

    def __init__(self, out, flush_interval=FLUSH_INTERVAL):
        self.out = out
        self.writer = csv.writer(out, lineterminator="\n")
        self.flush_interval = flush_interval
        self.events = 0
        self.misses = 0
        self.read_misses = 0
        self.write_misses = 0
        self.total_read_misses = 0
        self.total_write_misses = 0
        self.writer.writerow(MISS_HEADER)

    def record_miss(self, access_class):
        if access_class is AccessClass.WRITE:
            self.write_misses += 1
            self.total_write_misses += 1
        elif access_class is AccessClass.IGNORE:
            return
        else:
            self.read_misses += 1
            self.total_read_misses += 1
        self.misses += 1

    def record_event(self):
        self.events += 1
        if self.events % self.flush_interval == 0:
            self.writer.writerow([
                self.events // 1_000_000,
                self.misses,
                self.read_misses,
                self.write_misses,
            ])
            self.out.flush()
            self.misses = 0
            self.read_misses = 0
            self.write_misses = 0
