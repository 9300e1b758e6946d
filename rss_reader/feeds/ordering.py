"""
Reorder resolution.

Every drag gesture, at any level of the category tree, is translated back
into one new flat list. Each operation computes the new relative order of a
sub-collection and splices it back where that sub-collection used to start,
so the result, fed into `build_tree`, reproduces the requested arrangement
while every other level keeps its order.

All functions are pure: they return a new list and never mutate the input.
"""

from __future__ import annotations

import logging
from typing import Callable, Dict, List, Optional, Protocol, Sequence, Union

from .errors import ValidationError
from .models import FeedRecord, OrderMap
from .tree import ROOT_PATH, normalize_category, split_category

logger = logging.getLogger(__name__)

FeedRef = Union[FeedRecord, str]


class ReorderGesture(Protocol):
    """A drag handler: receives item identifiers in their new order and nothing else."""

    def __call__(self, ordered_ids: List[str]) -> None:
        ...


def _ranker(order: Sequence[str]) -> Callable[[str], int]:
    index: Dict[str, int] = {}
    for position, name in enumerate(order):
        index.setdefault(name, position)
    not_found = len(order)
    # Names missing from `order` rank after every known one; sorted() is
    # stable, so they keep their original relative order.
    return lambda name: index.get(name, not_found)


def _splice(flat: Sequence[FeedRecord], indices: List[int], block: List[FeedRecord]) -> List[FeedRecord]:
    taken = set(indices)
    remaining = [record for position, record in enumerate(flat) if position not in taken]
    start = indices[0]
    return remaining[:start] + block + remaining[start:]


def reorder_top_level(flat: Sequence[FeedRecord], new_group_order: Sequence[str]) -> List[FeedRecord]:
    """
    Grouped records are sorted by their top-level group; ungrouped records
    always follow every grouped one, wherever they were before.
    """
    grouped: List[FeedRecord] = []
    ungrouped: List[FeedRecord] = []
    for record in flat:
        (grouped if split_category(record.category) else ungrouped).append(record)

    rank = _ranker(new_group_order)
    grouped.sort(key=lambda record: rank(split_category(record.category)[0]))
    return grouped + ungrouped


def reorder_child(
    flat: Sequence[FeedRecord], parent_path: str, new_child_order: Sequence[str]
) -> List[FeedRecord]:
    parent = split_category(parent_path)
    if not parent:
        raise ValidationError("parent_path must name a category")
    depth = len(parent)

    indices: List[int] = []
    for position, record in enumerate(flat):
        segments = split_category(record.category)
        if len(segments) > depth and segments[:depth] == parent:
            indices.append(position)
    if not indices:
        logger.debug("No nested feeds under %s; nothing to reorder", parent_path)
        return list(flat)

    rank = _ranker(new_child_order)
    block = sorted(
        (flat[position] for position in indices),
        key=lambda record: rank(split_category(record.category)[depth]),
    )
    return _splice(flat, indices, block)


def reorder_leaves(
    flat: Sequence[FeedRecord], parent_path: str, new_feed_order: Sequence[FeedRef]
) -> List[FeedRecord]:
    """
    Replace the feeds filed directly under `parent_path` with `new_feed_order`,
    starting where the first of them used to be. `new_feed_order` may hold
    records or ids; either way it must name exactly the same feeds.
    """
    parent = split_category(parent_path)
    indices = [position for position, record in enumerate(flat) if split_category(record.category) == parent]
    current = {flat[position].id: flat[position] for position in indices}

    block: List[FeedRecord] = []
    for ref in new_feed_order:
        if isinstance(ref, FeedRecord):
            block.append(ref)
        elif ref in current:
            block.append(current[ref])
        else:
            raise ValidationError(f"Feed '{ref}' is not filed under '{parent_path}'")

    if sorted(record.id for record in block) != sorted(current):
        raise ValidationError(f"New order for '{parent_path}' must contain exactly its current feeds")
    if not indices:
        return list(flat)
    return _splice(flat, indices, block)


def update_order_map(order_map: OrderMap, parent_path: Optional[str], new_child_order: Sequence[str]) -> OrderMap:
    """Return a copy of `order_map` with the sibling order of one parent replaced."""
    key = normalize_category(parent_path) or ROOT_PATH
    updated = {path: list(names) for path, names in order_map.items()}
    updated[key] = list(dict.fromkeys(new_child_order))
    return updated
