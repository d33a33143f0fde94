"""
Search nodes and the arena that owns them.

Nodes are immutable. Parent links are integer indices into a
:class:`NodeArena`, so replacing the node stored at an index (for example
when a meeting point is aligned) is seen by every child that refers to it.
"""

import math
from dataclasses import dataclass, field, replace
from typing import Any, Iterator, List, Optional, Sequence, Tuple

from terrapath.core.routing.cost import Cost, GridPosition

WorldPosition = Tuple[float, float, float]


def discretize(point: Sequence[float]) -> GridPosition:
    """
    Snap a planar or world point onto the integer search grid.

    Only the first two coordinates are used; elevation is discarded.

    Args:
        point: (x, y) or (x, y, elevation)

    Returns:
        Grid position (x, y)
    """
    return (int(round(point[0])), int(round(point[1])))


def distance(a: Sequence[float], b: Sequence[float]) -> float:
    """Straight-line distance between two world positions."""
    return math.dist(a, b)


@dataclass(frozen=True, eq=False)
class Node:
    """
    A discretized position reached by the search.

    Attributes:
        position: Grid position (x, y)
        cost: Cost record of the edge into this node
        goal: World position the node's frontier is searching towards
        priority: Path priority selecting the per-priority settings
        head: True only for the two search origins
        elevation: Height of the node (terrain, or the held grade of a structure)
    """

    position: GridPosition
    cost: Cost
    goal: WorldPosition
    priority: int = 0
    head: bool = False
    elevation: float = 0.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "position", discretize(self.position))

    @property
    def world_position(self) -> WorldPosition:
        """(x, y, elevation) of the node."""
        return (float(self.position[0]), float(self.position[1]), self.elevation)

    def with_height(self, elevation: float) -> "Node":
        """Copy of this node standing at ``elevation``."""
        return replace(self, elevation=elevation)

    def with_cost(self, cost: Cost) -> "Node":
        """Copy of this node with another cost record."""
        return replace(self, cost=cost)

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Node):
            return NotImplemented
        return self.position == other.position

    def __hash__(self) -> int:
        return hash(self.position)

    def __str__(self) -> str:
        return str(self.position)


@dataclass
class NodeArena:
    """
    Append-only store of nodes with stable indices.

    One arena is shared by both frontiers of a search so parent chains
    can be walked from either side of a meeting point.
    """

    _nodes: List[Node] = field(default_factory=list)

    def add(self, node: Node) -> int:
        """Store ``node`` and return its index."""
        self._nodes.append(node)
        return len(self._nodes) - 1

    def replace(self, index: int, node: Node) -> None:
        """Replace the node stored at ``index``."""
        if node.position != self._nodes[index].position:
            raise ValueError(
                f"Cannot move node {index} from {self._nodes[index].position} to {node.position}"
            )
        self._nodes[index] = node

    def parent_of(self, node: Node) -> Optional[Node]:
        """Parent node of ``node``, or None for a head."""
        if node.cost.parent is None:
            return None
        return self._nodes[node.cost.parent]

    def chain(self, index: int) -> Iterator[Node]:
        """Yield the node at ``index``, then its parent, up to the head."""
        current: Optional[int] = index
        while current is not None:
            node = self._nodes[current]
            yield node
            if node.head:
                return
            current = node.cost.parent

    def clear(self) -> None:
        self._nodes.clear()

    def __getitem__(self, index: int) -> Node:
        return self._nodes[index]

    def __len__(self) -> int:
        return len(self._nodes)

    def __iter__(self) -> Iterator[Node]:
        return iter(self._nodes)
