"""
Open and closed sets for one search direction.
"""

import heapq
import itertools
from typing import Dict, Iterator, List, Optional, Tuple

from terrapath.core.routing.cost import Cost, GridPosition


class FrontierStore:
    """
    Priority-ordered open list paired with a closed map.

    The open list holds arena indices ordered by weighted cost; ties pop
    in insertion order. The closed map goes from grid position to the
    arena index of the node accepted there. Closing is permanent: a
    position is never re-opened or re-parented.
    """

    def __init__(self, name: str):
        """
        Initialize the frontier.

        Args:
            name: Direction label used in logs ("start" or "end")
        """
        self.name = name
        self._open: List[Tuple[float, int, int]] = []
        self._sequence = itertools.count()
        self.closed: Dict[GridPosition, int] = {}

    def push(self, index: int, cost: Cost) -> None:
        """Enqueue the node at arena ``index`` with priority ``cost``."""
        heapq.heappush(self._open, (cost.weighted_cost, next(self._sequence), index))

    def pop(self) -> int:
        """
        Dequeue the arena index with the lowest weighted cost.

        Raises:
            IndexError: If the open list is empty
        """
        _, _, index = heapq.heappop(self._open)
        return index

    def peek(self, count: int = 1) -> List[Tuple[float, int]]:
        """(weighted cost, arena index) of the ``count`` cheapest open entries."""
        return [(weight, index) for weight, _, index in heapq.nsmallest(count, self._open)]

    @property
    def open_count(self) -> int:
        return len(self._open)

    def is_closed(self, position: GridPosition) -> bool:
        return position in self.closed

    def closed_index(self, position: GridPosition) -> Optional[int]:
        return self.closed.get(position)

    def close(self, position: GridPosition, index: int) -> None:
        """
        Close ``position`` on the node at ``index``.

        Raises:
            KeyError: If the position is already closed
        """
        if position in self.closed:
            raise KeyError(f"{position} is already closed on the {self.name} side")
        self.closed[position] = index

    def try_close(self, position: GridPosition, index: int) -> bool:
        """Close ``position`` unless it already is; returns True if it was closed now."""
        if position in self.closed:
            return False
        self.closed[position] = index
        return True

    def closed_items(self) -> Iterator[Tuple[GridPosition, int]]:
        return iter(self.closed.items())

    def clear(self) -> None:
        self._open.clear()
        self._sequence = itertools.count()
        self.closed.clear()

    def __len__(self) -> int:
        return len(self._open)

    def __repr__(self) -> str:
        return (
            f"FrontierStore(name='{self.name}', open={len(self._open)}, "
            f"closed={len(self.closed)})"
        )
