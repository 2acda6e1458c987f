import logging
from typing import Callable, Optional

from rankit.application.accumulator import ItemAccumulator

logger = logging.getLogger(__name__)


class DragReorderSurface:
    """Translates pointer and keyboard drag gestures into accumulator reorders.

    A completed gesture that changes the position calls reorder() exactly once.
    Dropping at the origin, dropping outside any item, or cancelling calls
    nothing. Both input paths end in the same reorder() call.
    """

    def __init__(self, accumulator: ItemAccumulator,
                 on_drop: Optional[Callable[[str, int], None]] = None):
        self._accumulator = accumulator
        self._on_drop = on_drop
        self._active_id: Optional[str] = None
        self._origin: Optional[int] = None
        self._cursor: Optional[int] = None

    @property
    def active_id(self) -> Optional[str]:
        return self._active_id

    @property
    def is_dragging(self) -> bool:
        return self._active_id is not None

    @property
    def cursor(self) -> Optional[int]:
        """Target index of a keyboard drag in progress."""
        return self._cursor

    def _begin(self, item_id: str) -> bool:
        index = self._accumulator.index_of(item_id)
        if index < 0:
            return False
        self._active_id = item_id
        self._origin = index
        self._cursor = index
        return True

    def _reset(self) -> None:
        self._active_id = None
        self._origin = None
        self._cursor = None

    def _complete(self, item_id: str, from_index: int, to_index: int) -> bool:
        if from_index == to_index:
            return False
        self._accumulator.reorder(from_index, to_index)
        if self._on_drop is not None:
            self._on_drop(item_id, to_index)
        return True

    def cancel(self) -> None:
        self._reset()

    # Pointer path

    def start_drag(self, item_id: str) -> bool:
        return self._begin(item_id)

    def drop_on(self, over_id: Optional[str]) -> bool:
        """Finish a pointer drag over another item (None when dropped outside)."""
        active_id = self._active_id
        self._reset()
        if active_id is None or over_id is None or over_id == active_id:
            return False

        from_index = self._accumulator.index_of(active_id)
        to_index = self._accumulator.index_of(over_id)
        if from_index < 0 or to_index < 0:
            logger.debug(f"Drop of {active_id} over {over_id} refers to a removed item")
            return False
        return self._complete(active_id, from_index, to_index)

    # Keyboard path

    def pick_up(self, item_id: str) -> bool:
        return self._begin(item_id)

    def move_up(self) -> None:
        if self._cursor is not None and self._cursor > 0:
            self._cursor -= 1

    def move_down(self) -> None:
        if self._cursor is not None and self._cursor < len(self._accumulator) - 1:
            self._cursor += 1

    def drop(self) -> bool:
        """Finish a keyboard drag at the current cursor position."""
        active_id, cursor = self._active_id, self._cursor
        self._reset()
        if active_id is None:
            return False
        from_index = self._accumulator.index_of(active_id)
        if from_index < 0:
            return False
        to_index = min(cursor, len(self._accumulator) - 1)
        return self._complete(active_id, from_index, to_index)
