"""
Ordered routes assembled from search solutions.

A solved search leaves either one terminal node (the goal was reached) or
two nodes sharing a meeting position (the frontiers met). This module
walks the parent chains of those nodes and produces a start-to-destination
:class:`RoutePath`.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence, Tuple

import numpy as np
from shapely.geometry import LineString

from terrapath.core.routing.node import Node, NodeArena, WorldPosition


@dataclass
class RouteSegment:
    """
    One edge of a route.

    Attributes:
        start: World position the segment starts at
        end: World position the segment ends at
        is_tunnel: Whether the segment is a tunnel
        is_bridge: Whether the segment is a bridge
    """

    start: WorldPosition
    end: WorldPosition
    is_tunnel: bool = False
    is_bridge: bool = False

    @property
    def length(self) -> float:
        return float(np.linalg.norm(np.subtract(self.end, self.start)))

    @property
    def horizontal_length(self) -> float:
        return float(np.hypot(self.end[0] - self.start[0], self.end[1] - self.start[1]))

    @property
    def grade(self) -> float:
        """Grade of the segment in percent."""
        horizontal = self.horizontal_length
        if horizontal < 0.1:
            return 0.0
        return abs(self.end[2] - self.start[2]) / horizontal * 100.0

    def reversed(self) -> "RouteSegment":
        return RouteSegment(self.end, self.start, self.is_tunnel, self.is_bridge)


@dataclass
class RoutePath:
    """
    A route from the search start to its destination.

    Attributes:
        nodes: Ordered nodes along the route
        segments: Edges between consecutive nodes
        total_cost: Accumulated search cost of the route
        total_length: Total 3D length in world units
        max_grade: Maximum grade along the route (%)
        avg_grade: Average grade along the route (%)
        tunnel_length: Length of tunnel segments
        bridge_length: Length of bridge segments
        metadata: Additional route metadata
    """

    nodes: List[Node]
    segments: List[RouteSegment] = field(default_factory=list)
    total_cost: float = 0.0
    total_length: float = 0.0
    max_grade: float = 0.0
    avg_grade: float = 0.0
    tunnel_length: float = 0.0
    bridge_length: float = 0.0
    metadata: Dict[str, Any] = field(default_factory=dict)

    def get_geometry(self) -> LineString:
        """
        Get route as a 3D Shapely LineString.

        Returns:
            LineString geometry (empty for routes with fewer than two nodes)
        """
        if len(self.nodes) < 2:
            return LineString()
        return LineString([node.world_position for node in self.nodes])

    def get_waypoints(self) -> List[Tuple[float, float]]:
        return [(float(node.position[0]), float(node.position[1])) for node in self.nodes]

    def get_elevations(self) -> List[float]:
        return [float(node.elevation) for node in self.nodes]

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert route to dictionary.

        Returns:
            Dictionary representation
        """
        return {
            "num_nodes": len(self.nodes),
            "total_cost": float(self.total_cost),
            "total_length": float(self.total_length),
            "max_grade": float(self.max_grade),
            "avg_grade": float(self.avg_grade),
            "tunnel_length": float(self.tunnel_length),
            "bridge_length": float(self.bridge_length),
            "waypoints": self.get_waypoints(),
            "elevations": self.get_elevations(),
            "segments": [
                {
                    "start": list(segment.start),
                    "end": list(segment.end),
                    "is_tunnel": segment.is_tunnel,
                    "is_bridge": segment.is_bridge,
                }
                for segment in self.segments
            ],
            "metadata": self.metadata,
        }


def assemble_route(solution: Sequence[int], arena: NodeArena, reverse: bool = False) -> RoutePath:
    """
    Build an ordered route from the solution nodes of a search.

    Args:
        solution: Arena indices of the solution nodes (one terminal node, or
            the two nodes of a meeting point)
        arena: Arena holding the nodes and their ancestors
        reverse: True when the solution was found by the end-side frontier,
            so the route is flipped to run from the start

    Returns:
        RoutePath instance

    Raises:
        ValueError: If the solution does not have one or two nodes
    """
    if len(solution) not in (1, 2):
        raise ValueError(f"A solution has one or two nodes, got {len(solution)}")

    # First half: origin of the solving side up to the goal or meeting point
    first_half = list(arena.chain(solution[0]))
    first_half.reverse()

    nodes: List[Node] = list(first_half)
    segments = [
        RouteSegment(parent.world_position, child.world_position, child.cost.is_tunnel, child.cost.is_bridge)
        for parent, child in zip(first_half, first_half[1:])
    ]
    total_cost = first_half[-1].cost.accumulated_cost

    if len(solution) == 2:
        # Second half: the opposite node shares the meeting position, so only
        # its ancestors are appended
        second_half = list(arena.chain(solution[1]))
        previous = nodes[-1]
        for child, parent in zip(second_half, second_half[1:]):
            segments.append(
                RouteSegment(
                    previous.world_position,
                    parent.world_position,
                    child.cost.is_tunnel,
                    child.cost.is_bridge,
                )
            )
            nodes.append(parent)
            previous = parent
        total_cost += second_half[0].cost.accumulated_cost

    if reverse:
        nodes.reverse()
        segments = [segment.reversed() for segment in reversed(segments)]

    return _with_metrics(nodes, segments, total_cost, meeting_point=len(solution) == 2)


def _with_metrics(
    nodes: List[Node], segments: List[RouteSegment], total_cost: float, meeting_point: bool
) -> RoutePath:
    lengths = [segment.length for segment in segments]
    grades = [segment.grade for segment in segments if segment.horizontal_length > 0.1]

    return RoutePath(
        nodes=nodes,
        segments=segments,
        total_cost=total_cost,
        total_length=float(sum(lengths)),
        max_grade=max(grades) if grades else 0.0,
        avg_grade=float(np.mean(grades)) if grades else 0.0,
        tunnel_length=float(sum(s.length for s in segments if s.is_tunnel)),
        bridge_length=float(sum(s.length for s in segments if s.is_bridge)),
        metadata={"meeting_point": meeting_point},
    )
