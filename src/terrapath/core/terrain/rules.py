"""
Road construction rules over a height map.

This module scores candidate road segments for the search:
- Segment masks: the coprime grid offsets a road may branch to
- Slope and curvature costs, infinite beyond the per-priority limits
- Surface roads follow the terrain and may not cross water
- Tunnels hold their grade and must run well underground
- Bridges hold their grade, may not cut into terrain and are priced by
  how much water they span
"""

import functools
import logging
import math
from typing import List, Sequence, Tuple

import numpy as np

from terrapath.core.routing.cost import GridPosition
from terrapath.core.routing.node import Node, WorldPosition
from terrapath.core.routing.policy import Endpoint
from terrapath.core.terrain.heightmap import HeightMap
from terrapath.models.settings import PathfinderSettings

logger = logging.getLogger(__name__)

# Structure segments are sampled at this many evenly spaced points
STRUCTURE_SAMPLES = 10
# A sample counts as underground when it is deeper than this
MIN_DEPTH_UNDERGROUND = 2.0
# Share of underground samples a tunnel needs
MIN_TUNNEL_FRACTION = 0.2


@functools.lru_cache(maxsize=64)
def segment_mask_offsets(value: int, resolution: int = 1) -> Tuple[GridPosition, ...]:
    """
    Grid offsets of a segment mask.

    All (i, j) in [-value, value]^2 except the origin whose absolute values
    are coprime, scaled by ``resolution``. Coprimality keeps one offset per
    direction.

    Args:
        value: Half-width of the mask
        resolution: Grid scale of the offsets

    Returns:
        Tuple of (dx, dy) offsets
    """
    offsets = []
    for i in range(-value, value + 1):
        for j in range(-value, value + 1):
            if i == 0 and j == 0:
                continue
            if math.gcd(abs(i), abs(j)) != 1:
                continue
            offsets.append((i * resolution, j * resolution))
    return tuple(offsets)


def slope_cost(start: Sequence[float], end: Sequence[float], max_slope: float) -> float:
    """
    Slope cost of the segment start -> end.

    Args:
        start: World position (x, y, elevation)
        end: World position (x, y, elevation)
        max_slope: Maximum slope in degrees

    Returns:
        Slope angle divided by ``max_slope``, inf at or above the limit
    """
    rise = abs(end[2] - start[2])
    run = math.hypot(end[0] - start[0], end[1] - start[1])
    degrees = math.degrees(math.atan2(rise, run))
    if math.isnan(degrees) or degrees >= max_slope:
        return math.inf
    return degrees / max_slope


def curvature_cost(
    previous: Sequence[float],
    current: Sequence[float],
    endpoint: Sequence[float],
    max_angle: float,
) -> float:
    """
    Horizontal turning cost at ``current``.

    Only the planar direction change between previous -> current and
    current -> endpoint counts. A zero-length leg is treated as straight.

    Args:
        previous: Position before current
        current: Pivot position
        endpoint: Position after current
        max_angle: Maximum turning angle in degrees

    Returns:
        Turning angle divided by 180, inf above ``max_angle``
    """
    ax, ay = current[0] - previous[0], current[1] - previous[1]
    bx, by = endpoint[0] - current[0], endpoint[1] - current[1]
    norm = math.hypot(ax, ay) * math.hypot(bx, by)
    if norm < 1e-12:
        return 0.0

    cosine = max(-1.0, min(1.0, (ax * bx + ay * by) / norm))
    angle = math.degrees(math.acos(cosine))
    if angle > max_angle:
        return math.inf
    return angle / 180.0


class TerrainRules:
    """
    Terrain model backed by a :class:`HeightMap`.

    Implements the :class:`~terrapath.core.routing.policy.TerrainModel`
    interface used by the search policy.

    Attributes:
        height_map: Elevation and water raster
        settings: Pathfinding settings with the per-priority limits
    """

    def __init__(self, height_map: HeightMap, settings: PathfinderSettings):
        self.height_map = height_map
        self.settings = settings

    def height_at(self, position: Sequence[float]) -> float:
        return self.height_map.height_at(position[0], position[1])

    def in_bounds(self, position: Sequence[float]) -> bool:
        return self.height_map.in_bounds(position[0], position[1])

    def segment_is_legal(
        self,
        previous: WorldPosition,
        current: WorldPosition,
        endpoint: WorldPosition,
        path_priority: int = 0,
    ) -> bool:
        """Whether current -> endpoint respects the slope and curvature limits."""
        return self._shape_cost(previous, current, endpoint, path_priority) != math.inf

    def distance_over_terrain(
        self, start: WorldPosition, end: WorldPosition, max_segments: int = 40
    ) -> float:
        """
        Length of the straight line start -> end draped over the terrain.

        Elevations of ``start`` and ``end`` are ignored; every sample
        (endpoints included) is placed on the terrain.

        Args:
            start: Start position
            end: End position
            max_segments: Number of polyline segments

        Returns:
            Polyline length, inf if any sample falls outside the raster
        """
        steps = np.linspace(0.0, 1.0, max(1, max_segments) + 1)
        xs = start[0] + (end[0] - start[0]) * steps
        ys = start[1] + (end[1] - start[1]) * steps
        zs = self.height_map.heights_along(xs, ys)
        if not np.all(np.isfinite(zs)):
            return math.inf

        points = np.column_stack((xs, ys, zs))
        return float(np.linalg.norm(np.diff(points, axis=0), axis=1).sum())

    def segment_goes_over_water(
        self, start: Sequence[float], end: Sequence[float]
    ) -> Tuple[bool, float]:
        """
        Sample the segment for water.

        Returns:
            (any sample over water, fraction of samples over water)
        """
        xs, ys, _ = self._structure_samples(start, end)
        wet = self.height_map.water_along(xs, ys)
        return bool(wet.any()), float(wet.sum()) / STRUCTURE_SAMPLES

    def segment_goes_through_terrain(
        self, start: Sequence[float], end: Sequence[float]
    ) -> Tuple[bool, float, float]:
        """
        Sample the segment for terrain above it.

        Returns:
            (any sample underground, fraction of samples underground, sum of
            depth over all samples)
        """
        xs, ys, zs = self._structure_samples(start, end)
        depths = self.height_map.heights_along(xs, ys) - zs
        underground = depths > MIN_DEPTH_UNDERGROUND
        return (
            bool(underground.any()),
            float(underground.sum()) / STRUCTURE_SAMPLES,
            float(depths.sum()),
        )

    def surface_endpoints(self, node: Node, path_priority: int) -> List[Endpoint]:
        """
        Weighted surface road endpoints around a node.

        A node below the terrain cannot continue as a surface road.
        """
        current = node.world_position
        if current[2] < self.height_at(current):
            return []

        previous = self._previous(node)
        offsets = segment_mask_offsets(
            self.settings.get_segment_mask_value(path_priority),
            self.settings.get_segment_mask_resolution(path_priority),
        )

        endpoints = []
        for dx, dy in offsets:
            position = (node.position[0] + dx, node.position[1] + dy)
            if not self.in_bounds(position):
                continue
            endpoint = (float(position[0]), float(position[1]), self.height_at(position))
            over_water, _ = self.segment_goes_over_water(current, endpoint)
            if over_water:
                continue

            weight = self.distance_over_terrain(current, endpoint) + self._shape_cost(
                previous, current, endpoint, path_priority
            )
            if math.isfinite(weight):
                endpoints.append((weight, position))
        return endpoints

    def tunnel_endpoints(self, node: Node, resolution: int, mask_value: int) -> List[Endpoint]:
        """
        Weighted tunnel endpoints at the node's elevation.

        A tunnel is priced by its depth under the terrain and only allowed
        when enough of it is deep underground.
        """
        current = node.world_position
        previous = self._previous(node)
        scaler = self.settings.get_tunnel_cost_scaler(node.priority)

        endpoints = []
        for dx, dy in segment_mask_offsets(mask_value, resolution):
            position = (node.position[0] + dx, node.position[1] + dy)
            if not self.in_bounds(position):
                continue
            endpoint = (float(position[0]), float(position[1]), node.elevation)

            underground, fraction, depth = self.segment_goes_through_terrain(current, endpoint)
            if not underground or fraction <= MIN_TUNNEL_FRACTION:
                continue

            weight = max(depth, 0.0) * scaler + self._shape_cost(
                previous, current, endpoint, node.priority
            )
            if math.isfinite(weight):
                endpoints.append((weight, position))
        return endpoints

    def bridge_endpoints(self, node: Node, resolution: int, mask_value: int) -> List[Endpoint]:
        """
        Weighted bridge endpoints at the node's elevation.

        A bridge may not start underground or cut into terrain and is
        priced by the share of its span over water.
        """
        current = node.world_position
        if current[2] < self.height_at(current):
            return []

        previous = self._previous(node)
        scaler = self.settings.get_bridge_cost_scaler(node.priority)

        endpoints = []
        for dx, dy in segment_mask_offsets(mask_value, resolution):
            position = (node.position[0] + dx, node.position[1] + dy)
            if not self.in_bounds(position):
                continue
            endpoint = (float(position[0]), float(position[1]), node.elevation)

            underground, _, _ = self.segment_goes_through_terrain(current, endpoint)
            if underground:
                continue
            over_water, fraction = self.segment_goes_over_water(current, endpoint)
            if not over_water:
                continue

            weight = (1.0 + 10.0 * fraction) * scaler + self._shape_cost(
                previous, current, endpoint, node.priority
            )
            if math.isfinite(weight):
                endpoints.append((weight, position))
        return endpoints

    def _shape_cost(
        self,
        previous: Sequence[float],
        current: Sequence[float],
        endpoint: Sequence[float],
        path_priority: int,
    ) -> float:
        slope = slope_cost(current, endpoint, self.settings.get_max_slope(path_priority))
        curvature = curvature_cost(
            previous, current, endpoint, self.settings.get_max_curvature(path_priority)
        )
        return slope + curvature

    @staticmethod
    def _previous(node: Node) -> Tuple[float, float, float]:
        # Curvature is planar, so the parent's elevation is not needed
        x, y = node.position if node.head else node.cost.parent_position
        return (float(x), float(y), 0.0)

    @staticmethod
    def _structure_samples(
        start: Sequence[float], end: Sequence[float]
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        steps = np.linspace(0.0, 1.0, STRUCTURE_SAMPLES)
        return (
            start[0] + (end[0] - start[0]) * steps,
            start[1] + (end[1] - start[1]) * steps,
            start[2] + (end[2] - start[2]) * steps,
        )
