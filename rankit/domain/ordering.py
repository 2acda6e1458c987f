from __future__ import annotations

from typing import List, Sequence, TypeVar

from .entities import RankingItemDraft


T = TypeVar("T")


def _score_key(item: RankingItemDraft) -> tuple:
    # Unscored items sort after every scored one.
    if item.score is None:
        return (1, 0)
    return (0, -item.score)


def _date_key(item: RankingItemDraft) -> tuple:
    year = item.media.release_year if item.media else None
    if year is None:
        return (1, 0)
    return (0, year)


def insertion_order(items: Sequence[RankingItemDraft]) -> List[RankingItemDraft]:
    return sorted(items, key=lambda item: item.sequence)


def sort_by_score(items: Sequence[RankingItemDraft]) -> List[RankingItemDraft]:
    """Stable sort by descending score; ties keep their relative order."""
    return sorted(insertion_order(items), key=_score_key)


def sort_by_date(items: Sequence[RankingItemDraft]) -> List[RankingItemDraft]:
    """Stable chronological sort on the originating media's release year."""
    return sorted(insertion_order(items), key=_date_key)


def move(items: Sequence[T], from_index: int, to_index: int) -> List[T]:
    """Return a copy with the element at from_index moved to to_index."""
    result = list(items)
    result.insert(to_index, result.pop(from_index))
    return result
