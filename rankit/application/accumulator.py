import logging
from typing import Any, Dict, List, Optional

from rankit.domain import ordering
from rankit.domain.entities import MediaSearchResult, RankingItemDraft, SortMode, validate_score
from rankit.domain.errors import ValidationFailure

logger = logging.getLogger(__name__)


class ItemAccumulator:
    """Working set of ranking items and the session-wide sort mode.

    In score mode the items are kept sorted by descending score, ties in
    insertion order. Any reorder switches the whole session to manual mode
    and marks every item as manually positioned; only restore_score_order()
    (or sort_by_date()) leaves manual mode again.
    """

    def __init__(self):
        self._items: List[RankingItemDraft] = []
        self._sort_mode = SortMode.SCORE
        self._next_sequence = 1
        self._closed = False

    @property
    def sort_mode(self) -> SortMode:
        return self._sort_mode

    @property
    def items(self) -> List[RankingItemDraft]:
        """Items in effective ranking order (position = index + 1)."""
        return list(self._items)

    @property
    def closed(self) -> bool:
        return self._closed

    def __len__(self) -> int:
        return len(self._items)

    def get(self, item_id: str) -> Optional[RankingItemDraft]:
        return next((item for item in self._items if item.id == item_id), None)

    def index_of(self, item_id: str) -> int:
        for index, item in enumerate(self._items):
            if item.id == item_id:
                return index
        return -1

    def _ensure_open(self) -> None:
        if self._closed:
            raise ValidationFailure("This ranking was already published")

    def _resort(self) -> None:
        if self._sort_mode is SortMode.SCORE:
            self._items = ordering.sort_by_score(self._items)
        elif self._sort_mode is SortMode.DATE:
            self._items = ordering.sort_by_date(self._items)

    def add_item(self, media: MediaSearchResult, score: int, review: Optional[str] = None) -> RankingItemDraft:
        self._ensure_open()
        validate_score(score)

        sequence = self._next_sequence
        self._next_sequence += 1
        draft = RankingItemDraft(
            id=f"item-{sequence}",
            title=media.title,
            sequence=sequence,
            score=score,
            review=review or None,
            image_url=media.cover_image_url,
            link_url=media.link_url,
            media=media,
            is_manual_position=self._sort_mode is SortMode.MANUAL,
        )
        self._items.append(draft)
        self._resort()
        logger.debug(f"Added {draft.id} '{draft.title}' with score {score}")
        return draft

    def remove_item(self, item_id: str) -> None:
        """Remove the item; an unknown id is ignored (double clicks race)."""
        self._ensure_open()
        before = len(self._items)
        self._items = [item for item in self._items if item.id != item_id]
        if len(self._items) == before:
            logger.debug(f"Ignoring removal of unknown item {item_id}")

    def update_score(self, item_id: str, score: int) -> None:
        """Change a score in place; re-sorts in score mode, never changes the mode."""
        self._ensure_open()
        validate_score(score)
        item = self.get(item_id)
        if item is None:
            logger.debug(f"Ignoring score update for unknown item {item_id}")
            return
        item.score = score
        if self._sort_mode is SortMode.SCORE:
            self._resort()

    def update_review(self, item_id: str, review: Optional[str]) -> None:
        self._ensure_open()
        item = self.get(item_id)
        if item is not None:
            item.review = review or None

    def reorder(self, from_index: int, to_index: int) -> None:
        self._ensure_open()
        size = len(self._items)
        if not (0 <= from_index < size and 0 <= to_index < size):
            raise IndexError(f"Reorder {from_index}->{to_index} out of range for {size} items")

        self._items = ordering.move(self._items, from_index, to_index)
        self._sort_mode = SortMode.MANUAL
        for item in self._items:
            item.is_manual_position = True
        logger.debug(f"Moved item {from_index}->{to_index}, ordering is now manual")

    def restore_score_order(self) -> None:
        self._ensure_open()
        self._sort_mode = SortMode.SCORE
        for item in self._items:
            item.is_manual_position = False
        self._resort()

    def sort_by_date(self) -> None:
        self._ensure_open()
        self._sort_mode = SortMode.DATE
        for item in self._items:
            item.is_manual_position = False
        self._resort()

    def close(self) -> None:
        """Discard the session after a successful publication."""
        self._items = []
        self._closed = True

    def to_json(self) -> Dict[str, Any]:
        return {
            "sort_mode": self._sort_mode.value,
            "items": [
                dict(item.to_json(), position=index + 1)
                for index, item in enumerate(self._items)
            ],
        }
