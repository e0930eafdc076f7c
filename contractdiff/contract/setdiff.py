"""Name-keyed set difference shared by every level of contract comparison."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Protocol, TypeVar


class Named(Protocol):
    @property
    def name(self) -> str: ...


T = TypeVar("T", bound=Named)


def by_name(items: Iterable[T]) -> dict[str, T]:
    """Index items by name; the first item with a given name wins."""
    index: dict[str, T] = {}
    for item in items:
        index.setdefault(item.name, item)
    return index


def partition(
    old: Mapping[str, T], new: Mapping[str, T]
) -> tuple[list[T], list[T], list[tuple[T, T]]]:
    """Split two name-keyed maps into removed, added and common entries.

    Each list is sorted by name; common entries are ``(old, new)`` pairs.
    """
    removed = [old[name] for name in sorted(old.keys() - new.keys())]
    added = [new[name] for name in sorted(new.keys() - old.keys())]
    common = [(old[name], new[name]) for name in sorted(old.keys() & new.keys())]
    return removed, added, common
