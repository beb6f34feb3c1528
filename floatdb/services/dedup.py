"""
Batch-local identity dedup.

The items table has a unique index on the identity key, but one bulk upsert
that touches the same key twice is not merged by the database (PostgreSQL
rejects it outright, SQLite silently applies both). Duplicates are dropped
here first; the unique index only arbitrates between batches and processes.
"""

from __future__ import annotations

from typing import Iterable, List, Set, Tuple, TypeVar

from floatdb.schemas.item import CanonicalItem

T = TypeVar("T")


def identity_key(item: CanonicalItem) -> str:
    return f"{item.defindex}_{item.paintindex}_{item.paintwear}_{item.paintseed}"


def dedupe_batch(entries: Iterable[Tuple[CanonicalItem, T]]) -> List[Tuple[CanonicalItem, T]]:
    """Keep the first entry per identity key, in arrival order."""
    seen: Set[str] = set()
    unique: List[Tuple[CanonicalItem, T]] = []
    for entry in entries:
        key = identity_key(entry[0])
        if key in seen:
            continue
        seen.add(key)
        unique.append(entry)
    return unique
