"""Per-item height bookkeeping for variable-height virtual scrolling.

Entries live in a list sorted by logical index, with an id lookup kept in
step on every insert and removal. The visibility pass walks items strictly
in index order and accumulates offsets additively, so indices must stay
dense: a gap or a duplicate index corrupts every offset after it.
"""

from bisect import bisect_left, insort
from dataclasses import dataclass


@dataclass
class OffsetEntry:
    id: object
    index: int
    height: float
    pending_measurement: bool = True


def _by_index(entry: OffsetEntry) -> int:
    return entry.index


class OffsetTable:
    """Index-ordered offset entries plus an id -> entry lookup."""

    def __init__(self):
        self._entries: list[OffsetEntry] = []
        self._by_id: dict = {}

    # Lookup ---------------------------------------------------------
    def get(self, item_id) -> OffsetEntry | None:
        return self._by_id.get(item_id)

    def position_of(self, item_id) -> int:
        """Position of the entry in the ordered array, -1 when unknown."""
        entry = self._by_id.get(item_id)
        if entry is None:
            return -1
        return self._bisect(entry.index)

    def entry_at_index(self, index: int) -> OffsetEntry | None:
        pos = self._bisect(index)
        if pos < len(self._entries) and self._entries[pos].index == index:
            return self._entries[pos]
        return None

    def __len__(self):
        return len(self._entries)

    def __contains__(self, item_id):
        return item_id in self._by_id

    def __iter__(self):
        return iter(list(self._entries))

    def ids(self) -> list:
        return [entry.id for entry in self._entries]

    # Mutation -------------------------------------------------------
    def upsert(self, item_id, index: int, height: float, pending: bool = True) -> OffsetEntry:
        if not height or height <= 0:
            raise ValueError(f"Offset height must be positive, got {height!r} for {item_id!r}")
        if index < 0:
            raise ValueError(f"Offset index must be >= 0, got {index!r} for {item_id!r}")
        owner = self.entry_at_index(index)
        if owner is not None and owner.id != item_id:
            raise ValueError(f"Index {index} already belongs to {owner.id!r}")

        entry = self._by_id.get(item_id)
        if entry is None:
            entry = OffsetEntry(id=item_id, index=index, height=height, pending_measurement=pending)
            insort(self._entries, entry, key=_by_index)
            self._by_id[item_id] = entry
            return entry

        if entry.index != index:
            del self._entries[self._bisect(entry.index)]
            entry.index = index
            insort(self._entries, entry, key=_by_index)
        entry.height = height
        entry.pending_measurement = pending
        return entry

    def remove(self, item_id) -> OffsetEntry | None:
        """Drop an entry without shifting the others (see `reindex_after_removal`)."""
        entry = self._by_id.pop(item_id, None)
        if entry is None:
            return None
        del self._entries[self._bisect(entry.index)]
        return entry

    def reindex_after_removal(self, removed_index: int):
        for entry in self._entries:
            if entry.index > removed_index:
                entry.index -= 1

    def rekey(self, ordered_ids) -> list:
        """Reassign indices from a registry order; returns ids that were pruned."""
        positions = {item_id: index for index, item_id in enumerate(ordered_ids)}
        pruned = [entry.id for entry in self._entries if entry.id not in positions]
        for item_id in pruned:
            del self._by_id[item_id]
        kept = [entry for entry in self._entries if entry.id in positions]
        for entry in kept:
            entry.index = positions[entry.id]
        kept.sort(key=_by_index)
        self._entries = kept
        return pruned

    def clear(self):
        self._entries.clear()
        self._by_id.clear()

    # Geometry -------------------------------------------------------
    def item_top(self, index: int, estimate: float) -> float:
        """Sum of heights of every item above `index`; unknown items count as `estimate`."""
        # Accumulates in the same order as the visibility pass so both agree exactly.
        offset = 0.0
        expected = 0
        for entry in self._entries[:self._bisect(index)]:
            for _ in range(entry.index - expected):
                offset += estimate
            offset += entry.height
            expected = entry.index + 1
        for _ in range(index - expected):
            offset += estimate
        return offset

    def total_height(self) -> float:
        return sum(entry.height for entry in self._entries)

    def known_bottom(self, estimate: float) -> float:
        """Bottom offset of the deepest item that has an entry."""
        if not self._entries:
            return 0.0
        last = self._entries[-1]
        return self.item_top(last.index, estimate) + last.height

    def measured_heights(self) -> list[float]:
        return [entry.height for entry in self._entries if not entry.pending_measurement]

    def measured_count(self) -> int:
        return sum(1 for entry in self._entries if not entry.pending_measurement)

    def pending_count(self) -> int:
        return len(self._entries) - self.measured_count()

    def _bisect(self, index: int) -> int:
        return bisect_left(self._entries, index, key=_by_index)
