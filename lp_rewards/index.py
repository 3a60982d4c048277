"""
Interval aggregation index over per-share reward values.
"""
from __future__ import annotations

from .errors import IndexConsistencyViolation
from .storage import RewardsStorage
from .utils import MAX_LEVEL, PAGE_SIZE, PER_SHARE_MAX, checked_add


# =============================================================================
# Paged, fixed-fan-out aggregation index
# =============================================================================

class IntervalIndex:
    """
    Multi-level index of per-share values, one level-0 entry per accrual epoch.

    Layout:
      • Level L holds entries keyed by their first epoch; each is the exact sum of
        the level-0 values over the B^L epochs starting there (B = `page_size`).
      • Entries are stored in pages of B per level: page number at level L is
        epoch // B^(L+1).

    Cost:
      • `record` touches one page per completed level, O(log_B epochs).
      • `range_sum(a, b)` reads O(B · log_B(b - a)) entries.

    Contract:
      • Epochs are recorded in order, each exactly once.
      • Aggregates are an optimisation only: `range_sum` over recorded epochs
        equals the plain sum of their level-0 values.
    """

    def __init__(self, storage: RewardsStorage, page_size: int = PAGE_SIZE, max_level: int = MAX_LEVEL):
        self.storage = storage
        self.page_size = page_size
        self.max_level = max_level

    # ----- geometry -----
    def block_size(self, level: int) -> int:
        return self.page_size ** level

    def page_number(self, level: int, epoch: int) -> int:
        return epoch // self.page_size ** (level + 1)

    # ----- entries -----
    def _write(self, level: int, start: int, value: int) -> None:
        page_number = self.page_number(level, start)
        if start % self.page_size ** (level + 1) == 0:
            # first entry of a fresh page
            page = {}
        else:
            page = self.storage.get_index_page(level, page_number)
        page[start] = value
        self.storage.set_index_page(level, page_number, page)

    def _read(self, level: int, start: int) -> int:
        page = self.storage.get_index_page(level, self.page_number(level, start))
        try:
            return page[start]
        except KeyError:
            raise IndexConsistencyViolation(level, start) from None

    # ----- public API -----
    def record(self, epoch: int, value: int) -> None:
        """Store `value` for `epoch` and fold every block it completes into the levels above."""
        self._write(0, epoch, value)

        if (epoch + 1) % self.page_size != 0:
            return

        for level in range(1, self.max_level + 1):
            size = self.block_size(level)
            if (epoch + 1) % size != 0:
                break
            block_start = epoch + 1 - size
            aggregate = self.range_sum(block_start, epoch, allow_top_level=False)
            self._write(level, block_start, aggregate)

    def range_sum(self, start: int, end: int, allow_top_level: bool = True) -> int:
        """
        Sum of the per-share values for epochs start..=end.

        `allow_top_level=False` caps the walk one level below the largest block that
        fits the range; `record` needs that while the block it is aggregating is unwritten.
        """
        B = self.page_size

        max_level = 0
        for level in range(1, self.max_level + 1):
            if start + self.block_size(level) - 1 > end:
                break
            max_level = level
        cap = max_level if allow_top_level else max_level - 1

        result = 0
        epoch = start
        while epoch <= end:
            level_used = 0
            if epoch % B == 0:
                for level in range(cap, 0, -1):
                    size = self.block_size(level)
                    if epoch % size == 0 and epoch + size - 1 <= end:
                        level_used = level
                        break

            result = checked_add(result, self._read(level_used, epoch), PER_SHARE_MAX)
            epoch += self.block_size(level_used)
        return result
