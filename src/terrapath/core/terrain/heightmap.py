"""
Raster height map sampled in world coordinates.

The elevation grid is georeferenced with a rasterio affine transform, so
any raster read with rasterio (or built with
:func:`rasterio.transform.from_bounds`) can back a search.
"""

import math
from typing import Any, Optional, Tuple

import numpy as np
from numpy.typing import NDArray
from rasterio.transform import Affine, from_bounds

from terrapath.core.errors import TerrainError, ValidationError


class HeightMap:
    """
    Elevation raster with an optional water mask.

    Attributes:
        elevation: 2D elevation array (rows, cols)
        transform: Affine transform from raster to world coordinates
        water_mask: Optional boolean array, True where a cell is water
        max_height: When given, ``elevation`` holds normalized values in
            [0, 1] that are scaled by it
    """

    def __init__(
        self,
        elevation: NDArray[np.floating[Any]],
        transform: Affine,
        water_mask: Optional[NDArray[np.bool_]] = None,
        max_height: Optional[float] = None,
    ):
        """
        Initialize the height map.

        Args:
            elevation: 2D elevation array
            transform: Affine transform of the raster
            water_mask: Optional boolean water mask of the same shape
            max_height: Optional scale for normalized elevation values

        Raises:
            ValidationError: If the arrays are not 2D or max_height is not positive
            TerrainError: If the water mask does not match the elevation shape
        """
        elevation = np.asarray(elevation, dtype=float)
        if elevation.ndim != 2:
            raise ValidationError("Elevation must be a 2D array", field="elevation")
        if elevation.size == 0:
            raise ValidationError("Elevation array is empty", field="elevation")
        if max_height is not None:
            if max_height <= 0:
                raise ValidationError("max_height must be positive", field="max_height")
            elevation = elevation * max_height

        if water_mask is not None:
            water_mask = np.asarray(water_mask, dtype=bool)
            if water_mask.shape != elevation.shape:
                raise TerrainError(
                    "Water mask shape does not match the elevation raster",
                    details={
                        "elevation_shape": list(elevation.shape),
                        "water_mask_shape": list(water_mask.shape),
                    },
                )

        self.elevation = elevation
        self.transform = transform
        self.water_mask = water_mask

    @classmethod
    def from_bounds(
        cls,
        elevation: NDArray[np.floating[Any]],
        bounds: Tuple[float, float, float, float],
        water_mask: Optional[NDArray[np.bool_]] = None,
        max_height: Optional[float] = None,
    ) -> "HeightMap":
        """
        Build a height map covering ``bounds``.

        Args:
            elevation: 2D elevation array (row 0 is the north edge)
            bounds: (west, south, east, north) in world units
            water_mask: Optional boolean water mask
            max_height: Optional scale for normalized elevation values

        Returns:
            HeightMap instance
        """
        elevation = np.asarray(elevation, dtype=float)
        if elevation.ndim != 2:
            raise ValidationError("Elevation must be a 2D array", field="elevation")
        west, south, east, north = bounds
        rows, cols = elevation.shape
        transform = from_bounds(west, south, east, north, cols, rows)
        return cls(elevation, transform, water_mask=water_mask, max_height=max_height)

    @property
    def shape(self) -> Tuple[int, int]:
        return self.elevation.shape

    def _cell(self, x: float, y: float) -> Tuple[int, int]:
        col, row = ~self.transform * (x, y)
        return int(math.floor(row)), int(math.floor(col))

    def _cells(
        self, xs: NDArray[np.floating[Any]], ys: NDArray[np.floating[Any]]
    ) -> Tuple[NDArray[np.int_], NDArray[np.int_], NDArray[np.bool_]]:
        inverse = ~self.transform
        cols = np.floor(inverse.a * xs + inverse.b * ys + inverse.c).astype(int)
        rows = np.floor(inverse.d * xs + inverse.e * ys + inverse.f).astype(int)
        valid = (
            (rows >= 0)
            & (rows < self.elevation.shape[0])
            & (cols >= 0)
            & (cols < self.elevation.shape[1])
        )
        return np.where(valid, rows, 0), np.where(valid, cols, 0), valid

    def in_bounds(self, x: float, y: float) -> bool:
        """Whether (x, y) falls on a raster cell."""
        row, col = self._cell(x, y)
        return 0 <= row < self.elevation.shape[0] and 0 <= col < self.elevation.shape[1]

    def height_at(self, x: float, y: float) -> float:
        """
        Sample elevation at a world position.

        Args:
            x: World x coordinate
            y: World y coordinate

        Returns:
            Elevation of the containing cell, +inf outside the raster
        """
        row, col = self._cell(x, y)
        if not (0 <= row < self.elevation.shape[0] and 0 <= col < self.elevation.shape[1]):
            return math.inf
        return float(self.elevation[row, col])

    def is_water(self, x: float, y: float) -> bool:
        """Whether (x, y) lies on a water cell; False outside the raster."""
        if self.water_mask is None:
            return False
        row, col = self._cell(x, y)
        if not (0 <= row < self.elevation.shape[0] and 0 <= col < self.elevation.shape[1]):
            return False
        return bool(self.water_mask[row, col])

    def __repr__(self) -> str:
        return f"HeightMap(shape={self.elevation.shape}, bounds={self.bounds})"

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """(west, south, east, north) of the raster."""
        rows, cols = self.elevation.shape
        x0, y0 = self.transform * (0, 0)
        x1, y1 = self.transform * (cols, rows)
        return (min(x0, x1), min(y0, y1), max(x0, x1), max(y0, y1))

    def heights_along(
        self, xs: NDArray[np.floating[Any]], ys: NDArray[np.floating[Any]]
    ) -> NDArray[np.floating[Any]]:
        """
        Vectorized :meth:`height_at`.

        Args:
            xs: World x coordinates
            ys: World y coordinates

        Returns:
            Elevations, +inf where a point is outside the raster
        """
        xs = np.asarray(xs, dtype=float)
        ys = np.asarray(ys, dtype=float)
        rows, cols, valid = self._cells(xs, ys)
        return np.where(valid, self.elevation[rows, cols], np.inf)

    def water_along(
        self, xs: NDArray[np.floating[Any]], ys: NDArray[np.floating[Any]]
    ) -> NDArray[np.bool_]:
        """Vectorized :meth:`is_water`."""
        xs = np.asarray(xs, dtype=float)
        ys = np.asarray(ys, dtype=float)
        if self.water_mask is None:
            return np.zeros(xs.shape, dtype=bool)
        rows, cols, valid = self._cells(xs, ys)
        return valid & self.water_mask[rows, cols]
