from unittest.mock import Mock

import pytest

from rankit.application.accumulator import ItemAccumulator
from rankit.application.drag import DragReorderSurface
from rankit.domain.entities import SortMode


class TestDragReorderSurface:
    """Tests for pointer and keyboard drag gestures."""

    @pytest.fixture(autouse=True)
    def _setup(self, make_movie):
        self.acc = ItemAccumulator()
        self.a = self.acc.add_item(make_movie(external_id="a", title="A"), 9)
        self.b = self.acc.add_item(make_movie(external_id="b", title="B"), 7)
        self.c = self.acc.add_item(make_movie(external_id="c", title="C"), 5)
        self.on_drop = Mock()
        self.surface = DragReorderSurface(self.acc, on_drop=self.on_drop)

    def _ids(self):
        return [item.id for item in self.acc.items]

    def test_pointer_drop_over_other_item_reorders(self):
        assert self.surface.start_drag(self.c.id)
        assert self.surface.is_dragging

        assert self.surface.drop_on(self.a.id) is True
        assert self._ids() == [self.c.id, self.a.id, self.b.id]
        assert self.acc.sort_mode is SortMode.MANUAL
        assert not self.surface.is_dragging
        self.on_drop.assert_called_once_with(self.c.id, 0)

    def test_pointer_drop_on_itself_does_nothing(self):
        self.surface.start_drag(self.b.id)
        assert self.surface.drop_on(self.b.id) is False
        assert self._ids() == [self.a.id, self.b.id, self.c.id]
        assert self.acc.sort_mode is SortMode.SCORE
        self.on_drop.assert_not_called()

    def test_pointer_drop_outside_does_nothing(self):
        self.surface.start_drag(self.a.id)
        assert self.surface.drop_on(None) is False
        assert self.acc.sort_mode is SortMode.SCORE
        assert not self.surface.is_dragging

    def test_drop_without_drag(self):
        assert self.surface.drop_on(self.a.id) is False
        assert self.surface.drop() is False

    def test_start_drag_unknown_item(self):
        assert self.surface.start_drag("item-404") is False
        assert not self.surface.is_dragging

    def test_drop_after_item_removed(self):
        self.surface.start_drag(self.a.id)
        self.acc.remove_item(self.a.id)
        assert self.surface.drop_on(self.b.id) is False
        self.on_drop.assert_not_called()

    def test_keyboard_drag(self):
        assert self.surface.pick_up(self.a.id)
        self.surface.move_down()
        self.surface.move_down()
        assert self.surface.cursor == 2

        assert self.surface.drop() is True
        assert self._ids() == [self.b.id, self.c.id, self.a.id]
        assert all(item.is_manual_position for item in self.acc.items)

    def test_keyboard_cursor_is_clamped(self):
        self.surface.pick_up(self.b.id)
        for _ in range(5):
            self.surface.move_down()
        assert self.surface.cursor == 2
        for _ in range(5):
            self.surface.move_up()
        assert self.surface.cursor == 0

    def test_keyboard_drop_at_origin(self):
        self.surface.pick_up(self.b.id)
        self.surface.move_up()
        self.surface.move_down()
        assert self.surface.drop() is False
        assert self.acc.sort_mode is SortMode.SCORE

    def test_cancel_discards_gesture(self):
        self.surface.pick_up(self.a.id)
        self.surface.move_down()
        self.surface.cancel()
        assert self.surface.drop() is False
        assert self._ids() == [self.a.id, self.b.id, self.c.id]

    def test_keyboard_and_pointer_paths_agree(self, make_movie):
        other = ItemAccumulator()
        ids = [other.add_item(make_movie(external_id=t, title=t), s).id
               for t, s in (("A", 9), ("B", 7), ("C", 5))]

        pointer = DragReorderSurface(other)
        pointer.start_drag(ids[2])
        pointer.drop_on(ids[0])

        self.surface.pick_up(self.c.id)
        self.surface.move_up()
        self.surface.move_up()
        self.surface.drop()

        assert [i.title for i in other.items] == [i.title for i in self.acc.items]

    def test_reorder_called_once_per_gesture(self):
        acc = Mock(spec=ItemAccumulator)
        acc.index_of.side_effect = lambda item_id: {"x": 0, "y": 2}.get(item_id, -1)
        surface = DragReorderSurface(acc)

        surface.start_drag("x")
        surface.drop_on("y")

        acc.reorder.assert_called_once_with(0, 2)
