"""
Terrain-following search policy with tunnels and bridges.

This module implements the search policy used for road routing:
- Surface nodes follow the terrain, tunnel and bridge nodes hold the grade
  of the node they were reached from
- A node close enough to the goal finishes the search if the final
  approach is legal
- When both frontiers close the same position, the meeting point is
  aligned and accepted if the slope and curvature limits still hold
"""

import logging
import math
from typing import List, Optional

from terrapath.core.routing.cost import Cost
from terrapath.core.routing.driver import SearchDriver
from terrapath.core.routing.frontier import FrontierStore
from terrapath.core.routing.node import Node, NodeArena, WorldPosition, discretize, distance
from terrapath.core.routing.policy import (
    Endpoint,
    NodeOutcome,
    OutcomeKind,
    SearchContext,
    SearchPolicy,
    TerrainModel,
)
from terrapath.models.settings import PathfinderSettings

logger = logging.getLogger(__name__)


class TerrainPathPolicy(SearchPolicy):
    """
    Search policy for roads over a terrain.

    Closed nodes are never relaxed: a cheaper path to an already closed
    position is logged and dropped.
    """

    def get_height(self, node: Node, arena: NodeArena) -> float:
        if node.head or not node.cost.is_structure:
            return self.terrain.height_at(node.position)

        parent = arena.parent_of(node)
        if parent is None:
            return self.terrain.height_at(node.position)
        return parent.elevation

    def add_neighbours(
        self,
        node: Node,
        index: int,
        frontier: FrontierStore,
        goal: WorldPosition,
        context: SearchContext,
    ) -> int:
        added = 0

        if self.settings.generate_surface_paths:
            endpoints = self.terrain.surface_endpoints(node, node.priority)
            if endpoints:
                added += self.process_endpoints(endpoints, node, index, frontier, goal, context)

        if self.settings.generate_tunnel_paths:
            endpoints = self.terrain.tunnel_endpoints(
                node, context.tunnel_mask_resolution, context.tunnel_mask_value
            )
            if endpoints:
                added += self.process_endpoints(
                    endpoints, node, index, frontier, goal, context, is_tunnel=True
                )

        if self.settings.generate_bridge_paths:
            endpoints = self.terrain.bridge_endpoints(
                node, context.tunnel_mask_resolution, context.tunnel_mask_value
            )
            if endpoints:
                added += self.process_endpoints(
                    endpoints, node, index, frontier, goal, context, is_bridge=True
                )

        return added

    def process_node(
        self,
        frontier: FrontierStore,
        opposite: FrontierStore,
        goal: WorldPosition,
        context: SearchContext,
    ) -> NodeOutcome:
        arena = context.arena
        index = frontier.pop()
        node = arena[index]

        # Stale duplicate left in the open list
        if frontier.is_closed(node.position):
            return NodeOutcome(OutcomeKind.DUPLICATE)

        frontier.close(node.position, index)

        if node.cost.is_structure:
            solve_distance = context.tunnel_solve_distance
        else:
            solve_distance = context.surface_solve_distance

        if distance(node.world_position, goal) <= 2 * solve_distance:
            terminal = self._connect_to_goal(node, index, frontier, goal, context)
            if terminal is not None:
                return NodeOutcome(OutcomeKind.GOAL_REACHED, closed=index, solution=[terminal])

        if context.allow_meeting_point:
            other = opposite.closed_index(node.position)
            if other is not None:
                if self.try_align_nodes(index, other, arena, node.priority):
                    logger.info(
                        f"Frontiers met at {node.position}",
                        extra={"direction": frontier.name},
                    )
                    return NodeOutcome(
                        OutcomeKind.MEETING_POINT, closed=index, solution=[index, other]
                    )
                logger.debug(
                    f"Frontiers met at {node.position} but the nodes cannot be aligned",
                    extra={"direction": frontier.name},
                )

        self.add_neighbours(node, index, frontier, goal, context)
        return NodeOutcome(OutcomeKind.EXPANDED, closed=index)

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
        arena = context.arena
        added = 0

        for weight, position in endpoints:
            accumulated = node.cost.accumulated_cost + weight
            if accumulated == math.inf:
                continue

            cost = Cost(
                parent_position=node.position,
                accumulated_cost=accumulated,
                distance_to_goal=0.0,
                cost_weight=self.settings.heuristic_cost_coefficient,
                distance_weight=self.settings.heuristic_distance_coefficient,
                is_tunnel=is_tunnel,
                is_bridge=is_bridge,
                parent=index,
            )
            candidate = Node(position=position, cost=cost, goal=node.goal, priority=node.priority)
            candidate = candidate.with_height(self.get_height(candidate, arena))
            cost = cost.with_distance_to_goal(distance(candidate.world_position, goal))
            candidate = candidate.with_cost(cost)

            closed_index = frontier.closed_index(candidate.position)
            if closed_index is None:
                frontier.push(arena.add(candidate), cost)
                added += 1
            elif cost < arena[closed_index].cost:
                logger.debug(
                    f"Cheaper path to closed position {candidate.position} "
                    f"({cost.weighted_cost:.2f} < {arena[closed_index].cost.weighted_cost:.2f}), "
                    "keeping the closed node",
                    extra={"direction": frontier.name},
                )

        return added

    def try_align_nodes(self, index1: int, index2: int, arena: NodeArena, path_priority: int) -> bool:
        """
        Join two nodes of opposite frontiers that share a grid position.

        A three point window taken from whichever side has a deep enough
        parent chain is checked for slope and curvature. On success the
        elevation of one node is overwritten with the other's so the two
        halves meet at the same height. Only this window is checked, the
        rest of the overwritten side's chain is not revalidated.

        Args:
            index1: Arena index of the node just closed
            index2: Arena index of the opposite frontier's node
            arena: Node arena
            path_priority: Priority selecting the slope and curvature limits

        Returns:
            True if the nodes were aligned
        """
        node1 = arena[index1]
        node2 = arena[index2]
        if node1.head and node2.head:
            return False

        if node1.head:
            parent2 = arena.parent_of(node2)
            grandparent2 = arena.parent_of(parent2) if parent2 is not None else None
            if parent2 is None or parent2.head or grandparent2 is None:
                return False
            if self.terrain.segment_is_legal(
                grandparent2.world_position,
                parent2.world_position,
                node1.world_position,
                path_priority,
            ):
                arena.replace(index2, node2.with_height(node1.elevation))
                return True
            return False

        parent1 = arena.parent_of(node1)
        if parent1 is None:
            return False

        if node2.head:
            grandparent1 = arena.parent_of(parent1)
            if parent1.head or grandparent1 is None:
                return False
            previous = grandparent1.world_position
            current = parent1.world_position
            endpoint = node2.world_position
        else:
            parent2 = arena.parent_of(node2)
            if parent2 is None:
                return False
            # slope is measured between current and endpoint
            previous = parent2.world_position
            current = node2.world_position
            endpoint = parent1.world_position

        if self.terrain.segment_is_legal(previous, current, endpoint, path_priority):
            arena.replace(index1, node1.with_height(node2.elevation))
            return True
        return False

    def _connect_to_goal(
        self,
        node: Node,
        index: int,
        frontier: FrontierStore,
        goal: WorldPosition,
        context: SearchContext,
    ) -> Optional[int]:
        """Finish the path at ``goal`` if the final approach is legal."""
        arena = context.arena
        parent = arena.parent_of(node)
        previous = parent.world_position if parent is not None else node.world_position

        if not self.terrain.segment_is_legal(
            previous, node.world_position, goal, node.priority
        ):
            logger.debug(
                f"Goal within reach of {node.position} but the final segment is not legal",
                extra={"direction": frontier.name},
            )
            return None

        final_distance = self.terrain.distance_over_terrain(node.world_position, goal)
        cost = Cost(
            parent_position=node.position,
            accumulated_cost=node.cost.accumulated_cost + final_distance,
            distance_to_goal=0.0,
            cost_weight=self.settings.heuristic_cost_coefficient,
            distance_weight=self.settings.heuristic_distance_coefficient,
            parent=index,
        )
        terminal = Node(position=discretize(goal), cost=cost, goal=node.goal, priority=node.priority)
        terminal = terminal.with_height(self.get_height(terminal, arena))

        terminal_index = arena.add(terminal)
        frontier.try_close(terminal.position, terminal_index)
        logger.info(
            f"Goal {terminal.position} reached from {node.position}",
            extra={"direction": frontier.name},
        )
        return terminal_index


def create_terrain_pathfinder(
    terrain: TerrainModel,
    settings: Optional[PathfinderSettings] = None,
    batch_size: Optional[int] = None,
) -> SearchDriver:
    """
    Build a search driver running a :class:`TerrainPathPolicy`.

    Args:
        terrain: Terrain collaborator
        settings: Pathfinding settings (uses defaults if not provided)
        batch_size: Steps per cooperative batch (uses runtime settings if not provided)

    Returns:
        SearchDriver instance
    """
    policy = TerrainPathPolicy(terrain, settings if settings is not None else PathfinderSettings())
    return SearchDriver(policy, batch_size=batch_size)
