from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True, slots=True)
class TimedItemLayoutInput:
    item: Any
    start_minute: int
    duration_minutes: int

    @property
    def end_minute(self) -> int:
        return self.start_minute + self.duration_minutes


@dataclass(frozen=True, slots=True)
class TimedItemLayout:
    item: Any
    start_minute: int
    duration_minutes: int
    overlap_index: int
    overlap_count: int


def _assign_columns(cluster: list[TimedItemLayoutInput]) -> list[TimedItemLayout]:
    column_ends: list[int] = []
    indexes: list[int] = []
    for entry in cluster:
        column = next((idx for idx, end in enumerate(column_ends) if end <= entry.start_minute), None)
        if column is None:
            column = len(column_ends)
            column_ends.append(entry.end_minute)
        else:
            column_ends[column] = entry.end_minute
        indexes.append(column)

    count = len(column_ends)
    return [
        TimedItemLayout(
            item=entry.item,
            start_minute=entry.start_minute,
            duration_minutes=entry.duration_minutes,
            overlap_index=column,
            overlap_count=count,
        )
        for entry, column in zip(cluster, indexes)
    ]


def assign_overlap_layout(entries: list[TimedItemLayoutInput]) -> list[TimedItemLayout]:
    """
    Place timed items into side-by-side columns.
    - items that transitively overlap form a cluster
    - inside a cluster each item takes the lowest free column
    - overlap_count is the number of columns its cluster needed
    """
    if not entries:
        return []

    ordered = sorted(entries, key=lambda e: (e.start_minute, e.end_minute))
    result: list[TimedItemLayout] = []
    cluster: list[TimedItemLayoutInput] = []
    cluster_end = 0

    for entry in ordered:
        if cluster and entry.start_minute < cluster_end:
            cluster.append(entry)
            cluster_end = max(cluster_end, entry.end_minute)
            continue
        if cluster:
            result.extend(_assign_columns(cluster))
        cluster = [entry]
        cluster_end = entry.end_minute

    result.extend(_assign_columns(cluster))
    return result
