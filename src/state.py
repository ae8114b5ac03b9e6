"""Helpers used when comparing declared and stored resource state."""

from __future__ import annotations

from typing import Iterable, Optional


def equal_ignoring_order(old: Optional[Iterable[str]], new: Optional[Iterable[str]]) -> bool:
    """True when both lists hold the same elements, in any order.

    Duplicates count: ["a", "a"] and ["a"] differ.
    """
    old_list = list(old or [])
    new_list = list(new or [])
    if len(old_list) != len(new_list):
        return False
    return sorted(old_list) == sorted(new_list)


def sorted_unique(values: Optional[Iterable[str]]) -> list[str]:
    return sorted({value for value in values or [] if value})
