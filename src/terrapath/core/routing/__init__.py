"""
Route search over terrain.

This module provides the bidirectional search used for road routing, including:
- Cost records and immutable search nodes in a shared arena
- Open/closed frontiers for the start and end directions
- A driver with explicit stepping, cooperative batches and cancellation
- The terrain path policy with tunnels, bridges and meeting points
- Route assembly from a solved search
"""

from terrapath.core.routing.cost import Cost, GridPosition
from terrapath.core.routing.node import Node, NodeArena, WorldPosition, discretize, distance
from terrapath.core.routing.frontier import FrontierStore
from terrapath.core.routing.policy import (
    Endpoint,
    NodeOutcome,
    OutcomeKind,
    SearchContext,
    SearchPolicy,
    TerrainModel,
)
from terrapath.core.routing.route import RoutePath, RouteSegment, assemble_route
from terrapath.core.routing.driver import SearchDriver, SearchState, StepResult
from terrapath.core.routing.terrain_policy import TerrainPathPolicy, create_terrain_pathfinder

__all__ = [
    "Cost",
    "GridPosition",
    "Node",
    "NodeArena",
    "WorldPosition",
    "discretize",
    "distance",
    "FrontierStore",
    "Endpoint",
    "NodeOutcome",
    "OutcomeKind",
    "SearchContext",
    "SearchPolicy",
    "TerrainModel",
    "RoutePath",
    "RouteSegment",
    "assemble_route",
    "SearchDriver",
    "SearchState",
    "StepResult",
    "TerrainPathPolicy",
    "create_terrain_pathfinder",
]
