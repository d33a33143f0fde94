"""
Tests for the open/closed frontier store.
"""

import pytest

from terrapath.core.routing.cost import Cost
from terrapath.core.routing.frontier import FrontierStore


def cost(weighted: float) -> Cost:
    return Cost((0, 0), accumulated_cost=weighted, distance_to_goal=0.0)


class TestFrontierStore:
    """Tests for FrontierStore."""

    def test_pops_lowest_weighted_cost(self):
        """Test the open list is a min-priority queue."""
        frontier = FrontierStore("start")
        frontier.push(0, cost(5.0))
        frontier.push(1, cost(2.0))
        frontier.push(2, cost(8.0))

        assert [frontier.pop(), frontier.pop(), frontier.pop()] == [1, 0, 2]

    def test_ties_pop_in_insertion_order(self):
        """Test equal weighted costs are first in, first out."""
        frontier = FrontierStore("start")
        for index in (4, 2, 9):
            frontier.push(index, cost(3.0))

        assert [frontier.pop(), frontier.pop(), frontier.pop()] == [4, 2, 9]

    def test_pop_empty_raises(self):
        """Test popping an empty open list raises IndexError."""
        with pytest.raises(IndexError):
            FrontierStore("end").pop()

    def test_peek_does_not_remove(self):
        """Test peek reports the cheapest entries in order."""
        frontier = FrontierStore("start")
        frontier.push(0, cost(5.0))
        frontier.push(1, cost(2.0))

        assert frontier.peek(2) == [(2.0, 1), (5.0, 0)]
        assert frontier.open_count == 2
        assert len(frontier) == 2

    def test_close(self):
        """Test closing records the accepted node."""
        frontier = FrontierStore("start")
        frontier.close((1, 2), 7)

        assert frontier.is_closed((1, 2))
        assert frontier.closed_index((1, 2)) == 7
        assert frontier.closed_index((0, 0)) is None

    def test_close_twice_raises(self):
        """Test a closed position cannot be closed again."""
        frontier = FrontierStore("start")
        frontier.close((1, 2), 7)

        with pytest.raises(KeyError):
            frontier.close((1, 2), 8)
        assert frontier.closed_index((1, 2)) == 7

    def test_try_close(self):
        """Test try_close keeps the first node closed at a position."""
        frontier = FrontierStore("start")

        assert frontier.try_close((0, 0), 1)
        assert not frontier.try_close((0, 0), 2)
        assert frontier.closed_index((0, 0)) == 1

    def test_clear(self):
        """Test clearing resets both sets."""
        frontier = FrontierStore("end")
        frontier.push(0, cost(1.0))
        frontier.close((0, 0), 0)

        frontier.clear()

        assert frontier.open_count == 0
        assert list(frontier.closed_items()) == []

    def test_repr(self):
        """Test repr shows the direction and sizes."""
        frontier = FrontierStore("end")
        frontier.push(0, cost(1.0))

        assert repr(frontier) == "FrontierStore(name='end', open=1, closed=0)"
