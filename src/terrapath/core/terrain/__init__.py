"""
Terrain collaborators for the route search.

- Height map sampling over a georeferenced raster
- Slope, curvature, tunnel and bridge rules for candidate road segments
"""

from terrapath.core.terrain.heightmap import HeightMap
from terrapath.core.terrain.rules import (
    TerrainRules,
    curvature_cost,
    segment_mask_offsets,
    slope_cost,
)

__all__ = [
    "HeightMap",
    "TerrainRules",
    "curvature_cost",
    "segment_mask_offsets",
    "slope_cost",
]
