"""
Statistics sink and reporting helpers.

``Stats`` receives one record per tick from the network. ``Distribution``
and ``Aggregator`` are read-only views computed by scanning the current
partition map (node ages, section sizes, prefix lengths); they are used
for reporting only and play no part in the simulation itself.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List

import numpy as np


@dataclass
class Record:
    """Snapshot of the network recorded once per tick."""
    iteration: int
    nodes: int
    sections: int
    merges: int
    splits: int
    relocations: int
    rejections: int


class Stats:
    """Per-tick history of the simulation."""

    COLUMNS = ("iteration", "nodes", "sections", "merges", "splits", "relocations", "rejections")

    def __init__(self):
        self.records: List[Record] = []

    def record(
        self,
        iteration: int,
        nodes: int,
        sections: int,
        merges: int,
        splits: int,
        relocations: int,
        rejections: int,
    ) -> None:
        self.records.append(
            Record(iteration, nodes, sections, merges, splits, relocations, rejections)
        )

    def __len__(self) -> int:
        return len(self.records)

    def last(self) -> Record:
        if not self.records:
            raise IndexError("no ticks recorded yet")
        return self.records[-1]

    def as_array(self) -> np.ndarray:
        """Return the history as an ``(n_ticks, len(COLUMNS))`` integer array."""
        rows = [[getattr(rec, col) for col in self.COLUMNS] for rec in self.records]
        return np.array(rows, dtype=np.int64).reshape(len(rows), len(self.COLUMNS))

    def totals(self) -> Dict[str, int]:
        """Sum the event counters over all recorded ticks."""
        table = self.as_array()
        return {
            col: int(table[:, idx].sum())
            for idx, col in enumerate(self.COLUMNS)
            if col in ("merges", "splits", "relocations", "rejections")
        }

    def summary(self) -> str:
        if not self.records:
            return "no ticks recorded"
        last = self.last()
        totals = self.totals()
        return (
            f"iterations: {len(self.records)}, nodes: {last.nodes}, sections: {last.sections}, "
            f"merges: {totals['merges']}, splits: {totals['splits']}, "
            f"relocations: {totals['relocations']}, rejections: {totals['rejections']}"
        )


class Distribution:
    """Histogram mapping each observed value to its number of occurrences."""

    def __init__(self, values: Iterable[int]):
        data = np.fromiter(values, dtype=np.int64)
        keys, counts = np.unique(data, return_counts=True)
        self.counts: Dict[int, int] = {int(k): int(c) for k, c in zip(keys, counts)}

    def __getitem__(self, value: int) -> int:
        return self.counts.get(value, 0)

    def total(self) -> int:
        return sum(self.counts.values())

    def __str__(self) -> str:
        return ", ".join(f"{k}: {v}" for k, v in sorted(self.counts.items()))


class Aggregator:
    """Count, minimum, maximum and mean of a sequence of values.

    An empty sequence aggregates to zeros.
    """

    def __init__(self, values: Iterable[int]):
        data = np.fromiter(values, dtype=np.int64)
        self.count = int(data.size)
        if self.count:
            self.min = int(data.min())
            self.max = int(data.max())
            self.mean = float(data.mean())
        else:
            self.min = 0
            self.max = 0
            self.mean = 0.0

    def __str__(self) -> str:
        return f"min: {self.min}, max: {self.max}, avg: {self.mean:.2f}"
