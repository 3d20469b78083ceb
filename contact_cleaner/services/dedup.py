from __future__ import annotations

from collections.abc import Collection, Sequence
from dataclasses import dataclass

from ..models.field_result import CleanedRow

"""Duplicate detection over cleaned rows.

Rows are keyed by the lower-cased (firstname, lastname) pair of their
cleaned values. Only successful rows take part; only groups with at least
two members are reported. Nothing here calls the completion service again.
"""

__all__ = [
    "DuplicateGroup",
    "DEFAULT_GROUP_TITLE",
    "KEEP_STRATEGIES",
    "dedupe_key",
    "find_groups",
    "apply",
    "select_keepers",
]

DEDUPE_FIELDS = ("firstname", "lastname")
DEFAULT_GROUP_TITLE = "Doublons détectés"
KEEP_STRATEGIES = ("first", "best", "all")


@dataclass(frozen=True)
class DuplicateGroup:
    key: tuple[str, ...]
    indices: tuple[int, ...]  # positions in the cleaned-row collection
    title: str = DEFAULT_GROUP_TITLE


def dedupe_key(row: CleanedRow) -> tuple[str, ...]:
    parts = []
    for name in DEDUPE_FIELDS:
        item = row.get(name)
        parts.append((item.value or "").strip().lower() if item is not None else "")
    return tuple(parts)


def _group_title(row: CleanedRow) -> str:
    item = row.get("fullname")
    if item is not None and item.value:
        return item.value
    return DEFAULT_GROUP_TITLE


def find_groups(cleaned_rows: Sequence[CleanedRow]) -> list[DuplicateGroup]:
    """Group successful rows by (firstname, lastname), in first-appearance order."""
    buckets: dict[tuple[str, ...], list[int]] = {}
    for index, row in enumerate(cleaned_rows):
        if not row.success:
            continue
        buckets.setdefault(dedupe_key(row), []).append(index)

    return [
        DuplicateGroup(key=key, indices=tuple(indices), title=_group_title(cleaned_rows[indices[0]]))
        for key, indices in buckets.items()
        if len(indices) > 1
    ]


def apply(
    cleaned_rows: Sequence[CleanedRow],
    groups: Sequence[DuplicateGroup],
    keep: Collection[int],
) -> list[CleanedRow]:
    """Drop grouped rows not in ``keep``; ungrouped rows always stay, order preserved."""
    grouped = {i for group in groups for i in group.indices}
    keep_set = set(keep)
    return [
        row for index, row in enumerate(cleaned_rows)
        if index not in grouped or index in keep_set
    ]


def _mean_confidence(row: CleanedRow) -> float:
    if not row.cleaned_data:
        return 0.0
    return sum(item.confidence for item in row.cleaned_data) / len(row.cleaned_data)


def select_keepers(
    cleaned_rows: Sequence[CleanedRow],
    groups: Sequence[DuplicateGroup],
    strategy: str = "first",
) -> set[int]:
    """Indices to keep for a non-interactive run.

    - first: first member of each group
    - best: member with the highest mean confidence (earliest on ties)
    - all: every member
    """
    if strategy not in KEEP_STRATEGIES:
        raise ValueError(f"unknown keep strategy: {strategy!r} (expected one of {KEEP_STRATEGIES})")
    keep: set[int] = set()
    for group in groups:
        if strategy == "all":
            keep.update(group.indices)
        elif strategy == "first":
            keep.add(group.indices[0])
        else:
            best = max(group.indices, key=lambda i: (_mean_confidence(cleaned_rows[i]), -i))
            keep.add(best)
    return keep
