"""
Pathfinding settings model.

Most search parameters are indexed by *path priority*: a road class such
as highway (0) or local street (1) picks its own mask sizes, slope and
curvature limits from the same settings object.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator

from terrapath.core.errors import ConfigurationError


class PathfinderSettings(BaseModel):
    """
    Configuration for a terrain-aware route search.

    Attributes:
        generate_surface_paths: Expand surface road endpoints
        generate_tunnel_paths: Expand tunnel endpoints
        generate_bridge_paths: Expand bridge endpoints
        search_from_both_directions: Advance an end-side frontier as well
        heuristic_cost_coefficient: Weight of the accumulated path cost
        heuristic_distance_coefficient: Weight of the distance to the goal
        max_slope: Maximum slope in degrees, per priority
        max_curvature: Maximum turning angle in degrees, per priority
        allow_both_sides_connection: Join the frontiers where they meet, per priority
        segment_mask_value: Half-width of the surface endpoint mask, per priority
        segment_mask_resolution: Scale of the surface endpoint mask, per priority
        tunnel_segment_mask_value: Half-width of the tunnel/bridge mask, per priority
        tunnel_segment_mask_resolution: Scale of the tunnel/bridge mask, per priority
        tunnel_cost: Multiplier applied to tunnel costs, per priority
        bridge_cost: Multiplier applied to bridge costs, per priority
    """

    model_config = ConfigDict(validate_assignment=True)

    generate_surface_paths: bool = True
    generate_tunnel_paths: bool = True
    generate_bridge_paths: bool = True
    search_from_both_directions: bool = True

    # A larger cost coefficient makes the search more accurate and slower;
    # a larger distance coefficient makes it greedier.
    heuristic_cost_coefficient: float = Field(default=1.0, ge=0.0)
    heuristic_distance_coefficient: float = Field(default=1.0, ge=0.0)

    max_slope: List[float] = Field(default_factory=lambda: [10.0])
    max_curvature: List[float] = Field(default_factory=lambda: [10.0])
    allow_both_sides_connection: List[bool] = Field(default_factory=lambda: [True])

    segment_mask_value: List[int] = Field(default_factory=lambda: [5])
    segment_mask_resolution: List[int] = Field(default_factory=lambda: [4])
    tunnel_segment_mask_value: List[int] = Field(default_factory=lambda: [10])
    tunnel_segment_mask_resolution: List[int] = Field(default_factory=lambda: [4])

    tunnel_cost: List[float] = Field(default_factory=lambda: [10.0])
    bridge_cost: List[float] = Field(default_factory=lambda: [10.0])

    @field_validator(
        "max_slope",
        "max_curvature",
        "allow_both_sides_connection",
        "segment_mask_value",
        "segment_mask_resolution",
        "tunnel_segment_mask_value",
        "tunnel_segment_mask_resolution",
        "tunnel_cost",
        "bridge_cost",
    )
    @classmethod
    def validate_not_empty(cls, v: list) -> list:
        """Every per-priority setting needs at least one entry."""
        if not v:
            raise ValueError("per-priority settings need at least one entry")
        return v

    @field_validator(
        "segment_mask_value",
        "segment_mask_resolution",
        "tunnel_segment_mask_value",
        "tunnel_segment_mask_resolution",
    )
    @classmethod
    def validate_mask(cls, v: List[int]) -> List[int]:
        """Mask sizes must be positive."""
        if any(value <= 0 for value in v):
            raise ValueError("segment mask values and resolutions must be positive")
        return v

    @field_validator("max_slope", "max_curvature")
    @classmethod
    def validate_limits(cls, v: List[float]) -> List[float]:
        """Slope and curvature limits are angles in (0, 180] degrees."""
        if any(value <= 0 or value > 180 for value in v):
            raise ValueError("slope and curvature limits must be in (0, 180] degrees")
        return v

    @field_validator("tunnel_cost", "bridge_cost")
    @classmethod
    def validate_scalers(cls, v: List[float]) -> List[float]:
        """Cost multipliers must be non-negative."""
        if any(value < 0 for value in v):
            raise ValueError("tunnel and bridge cost multipliers must be non-negative")
        return v

    def _lookup(self, name: str, path_priority: int):
        values = getattr(self, name)
        if path_priority < 0 or path_priority >= len(values):
            raise ConfigurationError(
                f"No {name} configured for path priority {path_priority}",
                config_key=name,
                details={"path_priority": path_priority, "configured": len(values)},
            )
        return values[path_priority]

    def get_max_slope(self, path_priority: int) -> float:
        return self._lookup("max_slope", path_priority)

    def get_max_curvature(self, path_priority: int) -> float:
        return self._lookup("max_curvature", path_priority)

    def get_allow_both_sides_connection(self, path_priority: int) -> bool:
        return self._lookup("allow_both_sides_connection", path_priority)

    def get_segment_mask_value(self, path_priority: int) -> int:
        return self._lookup("segment_mask_value", path_priority)

    def get_segment_mask_resolution(self, path_priority: int) -> int:
        return self._lookup("segment_mask_resolution", path_priority)

    def get_tunnel_segment_mask_value(self, path_priority: int) -> int:
        return self._lookup("tunnel_segment_mask_value", path_priority)

    def get_tunnel_segment_mask_resolution(self, path_priority: int) -> int:
        return self._lookup("tunnel_segment_mask_resolution", path_priority)

    def get_tunnel_cost_scaler(self, path_priority: int) -> float:
        return self._lookup("tunnel_cost", path_priority)

    def get_bridge_cost_scaler(self, path_priority: int) -> float:
        return self._lookup("bridge_cost", path_priority)
