"""
Bidirectional best-first search driver.

This module implements the search loop for terrain routing, including:
- Seeding a start-side and an end-side frontier
- Explicit single steps and a cooperative batch-then-yield generator
- Cooperative cancellation through a stop flag
- Solution and node-closed events for external observers
"""

import logging
import math
import uuid
from dataclasses import replace
from enum import Enum
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import networkx as nx

from terrapath.core.config import settings as runtime_settings
from terrapath.core.errors import SearchStateError, ValidationError
from terrapath.core.routing.cost import Cost, GridPosition
from terrapath.core.routing.frontier import FrontierStore
from terrapath.core.routing.node import Node, NodeArena, WorldPosition, discretize
from terrapath.core.routing.policy import NodeOutcome, OutcomeKind, SearchContext, SearchPolicy
from terrapath.core.routing.route import RoutePath, assemble_route
from terrapath.models.settings import PathfinderSettings
from terrapath.utils.logging import log_performance

logger = logging.getLogger(__name__)


class SearchState(str, Enum):
    """Lifecycle of a search."""

    IDLE = "idle"
    RUNNING = "running"
    SOLVED = "solved"
    EXHAUSTED = "exhausted"
    STOPPED = "stopped"


class StepResult(str, Enum):
    """Result of a single search step."""

    CONTINUE = "continue"
    SOLVED = "solved"
    EXHAUSTED = "exhausted"
    STOPPED = "stopped"


_FINAL_STATES = {
    StepResult.SOLVED: SearchState.SOLVED,
    StepResult.EXHAUSTED: SearchState.EXHAUSTED,
    StepResult.STOPPED: SearchState.STOPPED,
}

SolutionListener = Callable[["SearchDriver"], None]
NodeListener = Callable[[str, Node], None]


class SearchDriver:
    """
    Runs a bidirectional weighted best-first search.

    The driver owns the search state (both frontiers, the node arena, the
    solution) and delegates node processing to a :class:`SearchPolicy`.
    It is single-threaded: a host either calls :meth:`step` at its own
    cadence or iterates :meth:`graph`, which yields after every batch of
    steps.
    """

    def __init__(self, policy: SearchPolicy, batch_size: Optional[int] = None):
        """
        Initialize the driver.

        Args:
            policy: Search policy used to process nodes
            batch_size: Steps per cooperative batch (uses runtime settings if not provided)
        """
        if batch_size is not None and batch_size <= 0:
            raise ValidationError("batch_size must be positive", field="batch_size")

        self.policy = policy
        self.batch_size = batch_size or runtime_settings.search_batch_size

        self.arena = NodeArena()
        self.start_frontier = FrontierStore("start")
        self.end_frontier = FrontierStore("end")
        self.context = SearchContext(arena=self.arena)

        self._solution_listeners: List[SolutionListener] = []
        self._node_listeners: List[NodeListener] = []

        self._init_run_state()

    def _init_run_state(self) -> None:
        self.state = SearchState.IDLE
        self.is_solved = False
        self.solution_kind: Optional[OutcomeKind] = None
        self.solved_by: Optional[str] = None
        self.steps = 0
        self.search_id: Optional[str] = None
        self.start_position: Optional[GridPosition] = None
        self.destination: Optional[GridPosition] = None
        self._start_goal: Optional[WorldPosition] = None
        self._end_goal: Optional[WorldPosition] = None
        self._solution: List[int] = []
        self._should_keep_graphing = True

    @property
    def settings(self) -> PathfinderSettings:
        return self.policy.settings

    @property
    def bidirectional(self) -> bool:
        return self.settings.search_from_both_directions

    @property
    def solution(self) -> List[Node]:
        """
        Solution nodes of a solved search.

        One terminal node when the goal was reached, or the two nodes of
        the meeting point (the solving side's first). Parent chains run
        back towards the origins; use :meth:`route` for an ordered path.
        """
        return [self.arena[index] for index in self._solution]

    def on_solution(self, callback: SolutionListener) -> None:
        """Register a callback fired once when a run is solved."""
        self._solution_listeners.append(callback)

    def on_node_closed(self, callback: NodeListener) -> None:
        """Register a callback fired with (side, node) for every closed node."""
        self._node_listeners.append(callback)

    def begin(self, start: Sequence[float], end: Sequence[float], priority: int = 0) -> None:
        """
        Seed both frontiers for a search from ``start`` to ``end``.

        Args:
            start: Start point, (x, y) or (x, y, elevation)
            end: Destination point, (x, y) or (x, y, elevation)
            priority: Path priority selecting the per-priority settings

        Raises:
            SearchStateError: If the driver is not idle
            ValidationError: If the input points or priority are invalid
            ConfigurationError: If the settings have no entry for ``priority``
        """
        if self.state is not SearchState.IDLE:
            raise SearchStateError(
                "A search can only begin from the idle state",
                current_state=self.state.value,
                expected_state=SearchState.IDLE.value,
            )
        self._validate_point(start, "start")
        self._validate_point(end, "end")
        if priority < 0:
            raise ValidationError("Path priority must be non-negative", field="priority")

        config = self.settings
        mask_value = config.get_segment_mask_value(priority)
        mask_resolution = config.get_segment_mask_resolution(priority)
        tunnel_mask_value = config.get_tunnel_segment_mask_value(priority)
        tunnel_mask_resolution = config.get_tunnel_segment_mask_resolution(priority)

        self.context = SearchContext(
            arena=self.arena,
            priority=priority,
            surface_solve_distance=float(mask_resolution * mask_value),
            tunnel_solve_distance=float(tunnel_mask_resolution * tunnel_mask_value),
            tunnel_mask_value=tunnel_mask_value,
            tunnel_mask_resolution=tunnel_mask_resolution,
            allow_meeting_point=(
                self.bidirectional and config.get_allow_both_sides_connection(priority)
            ),
        )

        self.start_position = discretize(start)
        self.destination = discretize(end)
        start_node = self._head(self.start_position, priority)
        end_node = self._head(self.destination, priority)

        initial_distance = self.policy.terrain.distance_over_terrain(
            start_node.world_position,
            end_node.world_position,
            max_segments=runtime_settings.initial_distance_segments,
        )
        self._start_goal = end_node.world_position
        self._end_goal = start_node.world_position

        start_node = replace(
            start_node,
            goal=self._start_goal,
            cost=start_node.cost.with_distance_to_goal(initial_distance),
        )
        end_node = replace(
            end_node,
            goal=self._end_goal,
            cost=end_node.cost.with_distance_to_goal(initial_distance),
        )
        self.start_frontier.push(self.arena.add(start_node), start_node.cost)
        self.end_frontier.push(self.arena.add(end_node), end_node.cost)

        self.search_id = uuid.uuid4().hex[:8]
        self.state = SearchState.RUNNING
        logger.info(
            f"Search started from {self.start_position} to {self.destination} "
            f"(priority={priority}, bidirectional={self.bidirectional}, "
            f"estimated distance={initial_distance:.1f})",
            extra={"search_id": self.search_id},
        )

    def step(self) -> StepResult:
        """
        Advance the search by one node on each active side.

        The stop flag is checked before anything is dequeued.

        Returns:
            StepResult of this step

        Raises:
            SearchStateError: If the search is not running
        """
        if self.state is not SearchState.RUNNING:
            raise SearchStateError(
                "Only a running search can be stepped",
                current_state=self.state.value,
                expected_state=SearchState.RUNNING.value,
            )

        if not self._should_keep_graphing:
            return self._finish(StepResult.STOPPED)

        end_active = self.bidirectional and self.end_frontier.open_count > 0
        if self.start_frontier.open_count == 0 and not end_active:
            return self._finish(StepResult.EXHAUSTED)

        self.steps += 1

        if self.start_frontier.open_count > 0:
            outcome = self.policy.process_node(
                self.start_frontier, self.end_frontier, self._start_goal, self.context
            )
            if self._handle_outcome(outcome, self.start_frontier):
                return self._finish(StepResult.SOLVED)

        if self.bidirectional and self.end_frontier.open_count > 0:
            outcome = self.policy.process_node(
                self.end_frontier, self.start_frontier, self._end_goal, self.context
            )
            if self._handle_outcome(outcome, self.end_frontier):
                return self._finish(StepResult.SOLVED)

        return StepResult.CONTINUE

    def graph(
        self, start: Sequence[float], end: Sequence[float], priority: int = 0
    ) -> Iterator[int]:
        """
        Run a search cooperatively.

        Steps until the search is solved, exhausted or stopped, yielding the
        total step count after every ``batch_size`` steps so the caller can
        interleave other work (or call :meth:`stop_graph`). A generator whose
        run was reset ends quietly and never steps a later search.

        Args:
            start: Start point
            end: Destination point
            priority: Path priority

        Yields:
            Number of steps taken so far
        """
        self.begin(start, end, priority)
        run_id = self.search_id
        batch = 0
        while self.search_id == run_id and self.state is SearchState.RUNNING:
            if self.step() is not StepResult.CONTINUE:
                break
            batch += 1
            if batch >= self.batch_size:
                batch = 0
                yield self.steps

    @log_performance(log_level=logging.DEBUG)
    def solve(
        self, start: Sequence[float], end: Sequence[float], priority: int = 0
    ) -> Optional[RoutePath]:
        """
        Run a search to completion and assemble the route.

        Args:
            start: Start point
            end: Destination point
            priority: Path priority

        Returns:
            RoutePath if a route was found, None otherwise
        """
        for _ in self.graph(start, end, priority):
            pass
        return self.route() if self.is_solved else None

    def route(self) -> RoutePath:
        """
        Ordered start-to-destination route of a solved search.

        Raises:
            SearchStateError: If the search is not solved
        """
        if not self.is_solved:
            raise SearchStateError(
                "No route available, the search is not solved",
                current_state=self.state.value,
                expected_state=SearchState.SOLVED.value,
            )
        path = assemble_route(self._solution, self.arena, reverse=self.solved_by == "end")
        path.metadata.update({"search_id": self.search_id, "steps": self.steps})
        return path

    def reset(self) -> None:
        """Clear all run state; the driver can start a new search afterwards."""
        self.start_frontier.clear()
        self.end_frontier.clear()
        self.arena.clear()
        self.context = SearchContext(arena=self.arena)
        self._init_run_state()

    def stop_graph(self) -> None:
        """Ask the running search to stop at its next step."""
        self._should_keep_graphing = False
        logger.debug("Stop requested", extra={"search_id": self.search_id})

    def exploration_graph(self) -> nx.DiGraph:
        """
        Explored search trees of both frontiers.

        Nodes are keyed by (side, grid position); edges run from parent to
        child and carry the tunnel/bridge tags of the child's inbound edge.

        Returns:
            Directed graph of closed nodes
        """
        tree = nx.DiGraph()
        for side, frontier in (("start", self.start_frontier), ("end", self.end_frontier)):
            for position, index in frontier.closed_items():
                node = self.arena[index]
                tree.add_node(
                    (side, position),
                    side=side,
                    position=position,
                    elevation=node.elevation,
                    head=node.head,
                    accumulated_cost=node.cost.accumulated_cost,
                    weighted_cost=node.cost.weighted_cost,
                )
                parent = self.arena.parent_of(node)
                if parent is not None:
                    tree.add_edge(
                        (side, parent.position),
                        (side, position),
                        weight=node.cost.accumulated_cost - parent.cost.accumulated_cost,
                        is_tunnel=node.cost.is_tunnel,
                        is_bridge=node.cost.is_bridge,
                    )
        return tree

    def export_to_geojson(self) -> Dict[str, Any]:
        """
        Export the explored search trees to GeoJSON.

        Returns:
            GeoJSON FeatureCollection
        """
        tree = self.exploration_graph()
        features = []

        for key, data in tree.nodes(data=True):
            if "position" not in data:
                continue
            x, y = data["position"]
            features.append(
                {
                    "type": "Feature",
                    "geometry": {"type": "Point", "coordinates": [x, y, data["elevation"]]},
                    "properties": {
                        "side": data["side"],
                        "head": data["head"],
                        "accumulated_cost": data["accumulated_cost"],
                        "type": "node",
                    },
                }
            )

        for parent_key, child_key, data in tree.edges(data=True):
            parent = tree.nodes[parent_key]
            child = tree.nodes[child_key]
            if "position" not in parent or "position" not in child:
                continue
            features.append(
                {
                    "type": "Feature",
                    "geometry": {
                        "type": "LineString",
                        "coordinates": [
                            [*parent["position"], parent["elevation"]],
                            [*child["position"], child["elevation"]],
                        ],
                    },
                    "properties": {
                        "side": child["side"],
                        "weight": data["weight"],
                        "is_tunnel": data["is_tunnel"],
                        "is_bridge": data["is_bridge"],
                        "type": "edge",
                    },
                }
            )

        return {"type": "FeatureCollection", "features": features}

    def _head(self, position: GridPosition, priority: int) -> Node:
        config = self.settings
        cost = Cost(
            parent_position=position,
            accumulated_cost=0.0,
            distance_to_goal=0.0,
            cost_weight=config.heuristic_cost_coefficient,
            distance_weight=config.heuristic_distance_coefficient,
        )
        node = Node(position=position, cost=cost, goal=(0.0, 0.0, 0.0), priority=priority, head=True)
        node = node.with_height(self.policy.get_height(node, self.arena))
        if not math.isfinite(node.elevation):
            raise ValidationError(
                f"No terrain height at {position}",
                field="position",
                details={"position": position},
                suggestions=["Choose start and end points inside the terrain bounds"],
            )
        return node

    def _handle_outcome(self, outcome: NodeOutcome, frontier: FrontierStore) -> bool:
        if outcome.closed is not None:
            node = self.arena[outcome.closed]
            for listener in self._node_listeners:
                listener(frontier.name, node)

        if not outcome.is_solution:
            return False

        self.is_solved = True
        self._solution = list(outcome.solution)
        self.solution_kind = outcome.kind
        self.solved_by = frontier.name
        return True

    def _finish(self, result: StepResult) -> StepResult:
        self.state = _FINAL_STATES[result]
        logger.info(
            f"Search {result.value} after {self.steps} steps "
            f"(closed start={len(self.start_frontier.closed)}, "
            f"end={len(self.end_frontier.closed)})",
            extra={"search_id": self.search_id},
        )
        if result is StepResult.SOLVED:
            for listener in self._solution_listeners:
                listener(self)
        return result

    @staticmethod
    def _validate_point(point: Sequence[float], name: str) -> None:
        if len(point) < 2 or not all(math.isfinite(float(value)) for value in point[:2]):
            raise ValidationError(
                f"{name} must have finite x and y coordinates",
                field=name,
                details={name: list(point)},
            )
