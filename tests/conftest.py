"""
Shared fixtures for terrapath tests.
"""

import math
from typing import Any, Dict, List, Optional, Tuple

import pytest

from terrapath.models.settings import PathfinderSettings

NEIGHBOUR_DIRECTIONS = [
    (1, 0),
    (1, 1),
    (0, 1),
    (-1, 1),
    (-1, 0),
    (-1, -1),
    (0, -1),
    (1, -1),
]


class StubTerrain:
    """
    Flat terrain with eight-neighbour surface moves.

    Edge weights are the planar step length. Legality is a fixed answer so
    tests can force goal connections and alignments to succeed or fail.
    Every legality query is recorded as (previous, current, endpoint, priority).
    """

    def __init__(
        self,
        step: int = 1,
        bound: Optional[int] = None,
        legal: bool = True,
        height: float = 0.0,
    ):
        self.step = step
        self.bound = bound
        self.legal = legal
        self.height = height
        self.heights: Dict[Tuple[int, int], float] = {}
        self.tunnels: Dict[Tuple[int, int], List[Tuple[float, Tuple[int, int]]]] = {}
        self.bridges: Dict[Tuple[int, int], List[Tuple[float, Tuple[int, int]]]] = {}
        self.legality_checks: List[Tuple[Any, Any, Any, int]] = []

    def _in_bounds(self, position) -> bool:
        if self.bound is None:
            return True
        return abs(position[0]) <= self.bound and abs(position[1]) <= self.bound

    def height_at(self, position) -> float:
        key = (int(position[0]), int(position[1]))
        if not self._in_bounds(key):
            return math.inf
        return self.heights.get(key, self.height)

    def segment_is_legal(self, previous, current, endpoint, path_priority=0) -> bool:
        self.legality_checks.append((previous, current, endpoint, path_priority))
        return self.legal

    def distance_over_terrain(self, start, end, max_segments=40) -> float:
        return math.dist(start[:2], end[:2])

    def surface_endpoints(self, node, path_priority):
        endpoints = []
        for dx, dy in NEIGHBOUR_DIRECTIONS:
            position = (node.position[0] + dx * self.step, node.position[1] + dy * self.step)
            if self._in_bounds(position):
                endpoints.append((math.hypot(dx, dy) * self.step, position))
        return endpoints

    def tunnel_endpoints(self, node, resolution, mask_value):
        return list(self.tunnels.get(node.position, []))

    def bridge_endpoints(self, node, resolution, mask_value):
        return list(self.bridges.get(node.position, []))


@pytest.fixture
def stub_terrain():
    """Unbounded, permissive flat terrain."""
    return StubTerrain()


@pytest.fixture
def surface_settings():
    """Surface-only settings with a unit mask."""
    return PathfinderSettings(
        generate_tunnel_paths=False,
        generate_bridge_paths=False,
        segment_mask_value=[1],
        segment_mask_resolution=[1],
        tunnel_segment_mask_value=[1],
        tunnel_segment_mask_resolution=[1],
    )


@pytest.fixture
def one_way_settings(surface_settings):
    """Surface-only settings searching from the start side only."""
    return surface_settings.model_copy(update={"search_from_both_directions": False})


@pytest.fixture
def make_terrain():
    """Factory for stub terrains with custom step, bounds or legality."""
    return StubTerrain
