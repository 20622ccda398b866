"""Guess the best swap page size for a dataset.

We take VMPAGE_PAGES pages of every candidate size and fill them with items
whose sizes are drawn at random from the sampled dataset, placing each item
at a random offset. Once an item can't be placed after RETRY_LIMIT tries the
swap file is considered full and we score how well that page size used it.

The number of pages is the fixed quantity since the server keeps one bit of
RAM for every page in the swap file.
"""
import random
from collections import namedtuple

from redis_errors import ConfigError

VMPAGE_PAGES = 1000000
RETRY_LIMIT = 200
MIN_PAGE_SIZE = 8
MAX_PAGE_SIZE = 1024 * 64


class PageTable:
    def __init__(self, total_pages):
        if total_pages <= 0:
            raise ConfigError(f"total pages must be positive, got {total_pages}")
        self.pages = bytearray(total_pages)

    def __len__(self):
        return len(self.pages)

    def _check(self, offset, count):
        if offset < 0 or count < 0 or offset + count > len(self.pages):
            raise IndexError(
                f"pages {offset}..{offset + count} outside table of {len(self.pages)}"
            )

    def is_free(self, offset, count):
        self._check(offset, count)
        return self.pages.find(1, offset, offset + count) == -1

    def occupy(self, offset, count):
        self._check(offset, count)
        self.pages[offset : offset + count] = b"\x01" * count

    def used(self):
        return self.pages.count(1)


def candidate_page_sizes():
    sizes = []
    page_size = MIN_PAGE_SIZE
    while page_size <= MAX_PAGE_SIZE:
        sizes.append(page_size)
        page_size *= 2
    return sizes


def fragmentation_score(stored_bytes, total_pages, page_size):
    bytes_per_page = stored_bytes / total_pages
    efficiency = stored_bytes * 100 / (total_pages * page_size)
    return bytes_per_page * efficiency


class CandidateResult(
    namedtuple(
        "CandidateResult",
        ["page_size", "stored_bytes", "used_pages", "total_pages", "score"],
    )
):
    __slots__ = ()

    @property
    def bytes_per_page(self):
        return self.stored_bytes / self.total_pages

    @property
    def efficiency(self):
        return self.stored_bytes * 100 / (self.total_pages * self.page_size)


def select_best(results):
    best = None
    for result in results:
        if best is None or result.score > best.score:
            best = result
    return best


class PageSizeSimulator:
    def __init__(
        self,
        samples,
        total_pages=VMPAGE_PAGES,
        retry_limit=RETRY_LIMIT,
        rng=None,
        seed=None,
    ):
        if not samples:
            raise ConfigError("can't simulate without samples")
        if total_pages <= 0:
            raise ConfigError(f"total pages must be positive, got {total_pages}")
        if retry_limit <= 0:
            raise ConfigError(f"retry limit must be positive, got {retry_limit}")
        self.samples = list(samples)
        self.total_pages = total_pages
        self.retry_limit = retry_limit
        self.rng = rng if rng is not None else random.Random(seed)

    def pages_needed(self, bytes_needed, page_size):
        return max(1, -(-bytes_needed // page_size))

    def place(self, table, pages_needed):
        """Return the offset the item was stored at, or None if the table is full."""
        last_offset = len(table) - pages_needed
        if last_offset < 0:
            return None
        for _ in range(self.retry_limit):
            offset = self.rng.randint(0, last_offset)
            if table.is_free(offset, pages_needed):
                table.occupy(offset, pages_needed)
                return offset
        return None

    def run_candidate(self, page_size, table=None):
        if table is None:
            table = PageTable(self.total_pages)
        stored_bytes = used_pages = 0
        while True:
            bytes_needed = self.samples[self.rng.randrange(len(self.samples))]
            pages_needed = self.pages_needed(bytes_needed, page_size)
            if self.place(table, pages_needed) is None:
                break
            stored_bytes += bytes_needed
            used_pages += pages_needed
        return CandidateResult(
            page_size,
            stored_bytes,
            used_pages,
            len(table),
            fragmentation_score(stored_bytes, len(table), page_size),
        )

    def simulate(self, report=None):
        results = []
        for page_size in candidate_page_sizes():
            result = self.run_candidate(page_size)
            if report is not None:
                report(result)
            results.append(result)
        return select_best(results).page_size, results
