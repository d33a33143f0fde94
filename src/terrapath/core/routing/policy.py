"""
Extension points of the route search.

The :class:`~terrapath.core.routing.driver.SearchDriver` owns the search
state and delegates height assignment, node processing and endpoint
expansion to a :class:`SearchPolicy`. Policies in turn reach the terrain
only through the narrow :class:`TerrainModel` interface.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol, Tuple, runtime_checkable

from terrapath.core.routing.cost import GridPosition
from terrapath.core.routing.frontier import FrontierStore
from terrapath.core.routing.node import Node, NodeArena, WorldPosition
from terrapath.models.settings import PathfinderSettings

# (edge weight, grid position) candidates produced by endpoint generators
Endpoint = Tuple[float, GridPosition]


@runtime_checkable
class TerrainModel(Protocol):
    """Terrain queries the search needs."""

    def height_at(self, position: GridPosition) -> float:
        """Terrain elevation at a grid position."""
        ...

    def segment_is_legal(
        self,
        previous: WorldPosition,
        current: WorldPosition,
        endpoint: WorldPosition,
        path_priority: int = 0,
    ) -> bool:
        """Whether previous -> current -> endpoint satisfies slope and curvature limits."""
        ...

    def distance_over_terrain(
        self, start: WorldPosition, end: WorldPosition, max_segments: int = 40
    ) -> float:
        """Length of the straight line from start to end draped over the terrain."""
        ...

    def surface_endpoints(self, node: Node, path_priority: int) -> List[Endpoint]:
        """Weighted surface road endpoints around a node."""
        ...

    def tunnel_endpoints(self, node: Node, resolution: int, mask_value: int) -> List[Endpoint]:
        """Weighted tunnel endpoints around a node."""
        ...

    def bridge_endpoints(self, node: Node, resolution: int, mask_value: int) -> List[Endpoint]:
        """Weighted bridge endpoints around a node."""
        ...


@dataclass
class SearchContext:
    """
    Per-run parameters shared by the driver and its policy.

    Attributes:
        arena: Node storage for both frontiers
        priority: Path priority of the run
        surface_solve_distance: Goal proximity threshold after a surface edge
        tunnel_solve_distance: Goal proximity threshold after a tunnel or bridge edge
        tunnel_mask_value: Half-width of the tunnel/bridge endpoint mask
        tunnel_mask_resolution: Scale of the tunnel/bridge endpoint mask
        allow_meeting_point: Whether the frontiers may be joined where they meet
    """

    arena: NodeArena
    priority: int = 0
    surface_solve_distance: float = 0.0
    tunnel_solve_distance: float = 0.0
    tunnel_mask_value: int = 1
    tunnel_mask_resolution: int = 1
    allow_meeting_point: bool = False


class OutcomeKind(str, Enum):
    """What processing a dequeued node led to."""

    DUPLICATE = "duplicate"  # position was already closed
    EXPANDED = "expanded"
    GOAL_REACHED = "goal_reached"
    MEETING_POINT = "meeting_point"


@dataclass
class NodeOutcome:
    """
    Result of :meth:`SearchPolicy.process_node`.

    Attributes:
        kind: Outcome classification
        closed: Arena index of the node closed by this step, if any
        solution: Arena indices of the solution nodes when the search is solved
    """

    kind: OutcomeKind
    closed: Optional[int] = None
    solution: List[int] = field(default_factory=list)

    @property
    def is_solution(self) -> bool:
        return self.kind in (OutcomeKind.GOAL_REACHED, OutcomeKind.MEETING_POINT)


class SearchPolicy(ABC):
    """
    Base class for search policies.

    Attributes:
        terrain: Terrain collaborator
        settings: Pathfinding settings
    """

    def __init__(self, terrain: TerrainModel, settings: PathfinderSettings):
        self.terrain = terrain
        self.settings = settings

    @abstractmethod
    def get_height(self, node: Node, arena: NodeArena) -> float:
        """
        Calculate the elevation of a node.

        Args:
            node: Node whose elevation is needed
            arena: Arena holding the node's ancestors

        Returns:
            Elevation for the node
        """

    @abstractmethod
    def add_neighbours(
        self,
        node: Node,
        index: int,
        frontier: FrontierStore,
        goal: WorldPosition,
        context: SearchContext,
    ) -> int:
        """
        Find candidate endpoints around a node and add them to the open list.

        Returns:
            Number of nodes enqueued
        """

    @abstractmethod
    def process_node(
        self,
        frontier: FrontierStore,
        opposite: FrontierStore,
        goal: WorldPosition,
        context: SearchContext,
    ) -> NodeOutcome:
        """
        Dequeue the best node of ``frontier`` and process it.

        Args:
            frontier: Frontier being stepped
            opposite: Frontier of the other direction
            goal: World position this frontier searches towards
            context: Per-run parameters

        Returns:
            Outcome of the step
        """

    @abstractmethod
    def process_endpoints(
        self,
        endpoints: List[Endpoint],
        node: Node,
        index: int,
        frontier: FrontierStore,
        goal: WorldPosition,
        context: SearchContext,
        is_tunnel: bool = False,
        is_bridge: bool = False,
    ) -> int:
        """
        Create nodes for weighted endpoints and enqueue the unclosed ones.

        Returns:
            Number of nodes enqueued
        """
