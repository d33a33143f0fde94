"""
Cost records for the weighted best-first search.
"""

import functools
from dataclasses import dataclass, replace
from typing import Any, Optional, Tuple

GridPosition = Tuple[int, int]


@functools.total_ordering
@dataclass(frozen=True, eq=False)
class Cost:
    """
    Accumulated and estimated cost of reaching a node.

    Costs compare by :attr:`weighted_cost` only, so a priority queue of
    costs pops the cheapest weighted entry first. Hashing follows the same
    rule, so equal costs hash alike.

    Attributes:
        parent_position: Grid position the node was reached from (a head's own position)
        accumulated_cost: Sum of the edge weights travelled up to this node
        distance_to_goal: Heuristic distance from this node to the goal
        cost_weight: Coefficient of the accumulated cost
        distance_weight: Coefficient of the distance to the goal
        is_tunnel: Whether the edge into the node is a tunnel
        is_bridge: Whether the edge into the node is a bridge
        parent: Arena index of the parent node, None for heads
    """

    parent_position: GridPosition
    accumulated_cost: float
    distance_to_goal: float
    cost_weight: float = 1.0
    distance_weight: float = 1.0
    is_tunnel: bool = False
    is_bridge: bool = False
    parent: Optional[int] = None

    @property
    def weighted_cost(self) -> float:
        """Priority of the node in the open list."""
        return (
            self.cost_weight * self.accumulated_cost
            + self.distance_weight * self.distance_to_goal
        )

    @property
    def is_structure(self) -> bool:
        """Whether the inbound edge is a tunnel or a bridge."""
        return self.is_tunnel or self.is_bridge

    def with_distance_to_goal(self, distance_to_goal: float) -> "Cost":
        """Copy of this cost with a new heuristic distance."""
        return replace(self, distance_to_goal=distance_to_goal)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Cost):
            return NotImplemented
        return self.weighted_cost == other.weighted_cost

    def __hash__(self) -> int:
        return hash(self.weighted_cost)

    def __lt__(self, other: "Cost") -> bool:
        if not isinstance(other, Cost):
            return NotImplemented
        return self.weighted_cost < other.weighted_cost

    def __str__(self) -> str:
        return str(self.weighted_cost)
