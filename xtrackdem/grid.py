# Copyright (c) 2024 xTrackDEM developers
#
# This file is part of the xTrackDEM project.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
#
# You may obtain a copy of the License at
#
# http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""Reference raster grid model: cell-center coordinates, windowed lookup and bilinear interpolation."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, NamedTuple, Union

import numpy as np
import pyproj
import scipy.interpolate

from xtrackdem._typing import ArrayLike, NDArrayf

# Valid range of reference elevations, anything outside is treated as nodata
ELEVATION_RANGE = (-10.0, 10000.0)

# Half-width of the raster window extracted around each footprint (georeferenced unit)
WINDOW_HALF_WIDTH = 60.0


@dataclass(frozen=True)
class ProjectedReference:
    """Spatial reference of a raster defined directly in a projected coordinate system."""

    x_limits: tuple[float, float]
    y_limits: tuple[float, float]
    cell_extent_x: float
    cell_extent_y: float
    # Whether the first row of the arrays is the northernmost or southernmost one
    rows_start_from: Literal["north", "south"] = "north"

    def __post_init__(self) -> None:
        if self.rows_start_from not in ["north", "south"]:
            raise ValueError(f"Argument `rows_start_from` must be 'north' or 'south', got '{self.rows_start_from}'.")


@dataclass(frozen=True)
class GeographicReference:
    """Spatial reference of a raster defined in latitude/longitude, with rows starting from north."""

    latitude_limits: tuple[float, float]
    longitude_limits: tuple[float, float]
    cell_extent_latitude: float
    cell_extent_longitude: float


SpatialReference = Union[ProjectedReference, GeographicReference]


class Subgrid(NamedTuple):
    """Raster cells inside a window, flattened."""

    x: NDArrayf
    y: NDArrayf
    elevation: NDArrayf
    slope: NDArrayf
    aspect: NDArrayf


def clean_elevation(
    elevation: ArrayLike, vmin: float = ELEVATION_RANGE[0], vmax: float = ELEVATION_RANGE[1]
) -> NDArrayf:
    """
    Set elevations outside the valid range to NaN.

    Only meant for the elevation raster, slope and aspect are used as provided.

    :param elevation: Elevation array.
    :param vmin: Minimum valid elevation.
    :param vmax: Maximum valid elevation.

    :returns: Float copy of the elevation array with invalid values set to NaN.
    """
    cleaned = np.array(elevation, dtype=float)
    with np.errstate(invalid="ignore"):
        cleaned[(cleaned < vmin) | (cleaned > vmax)] = np.nan
    return cleaned


def utm_crs(latitude: float, longitude: float) -> pyproj.CRS:
    """Return the WGS84 UTM CRS of the zone containing a geographic location."""
    zone = int((longitude + 180) // 6) % 60 + 1
    epsg = 32600 + zone if latitude >= 0 else 32700 + zone
    return pyproj.CRS.from_epsg(epsg)


def _cell_centers(limits: tuple[float, float], cell_extent: float, size: int, name: str) -> NDArrayf:
    """Ascending cell-center coordinates between two limits, checked against the array size."""

    nb_cells = int(round((limits[1] - limits[0]) / cell_extent))
    if nb_cells != size:
        raise ValueError(
            f"The {name} limits {limits} and cell extent {cell_extent} describe {nb_cells} cells, "
            f"but the raster has {size}."
        )
    return limits[0] + (np.arange(size) + 0.5) * cell_extent


class RasterGrid:
    """
    Reference elevation raster with co-registered slope and aspect, and the projected coordinates of each cell center.

    The spatial reference variant is resolved once at instantiation: a projected reference gives coordinate grids
    directly, a geographic reference is projected with pyproj to `projected_crs` (by default, the UTM zone of the
    raster center).
    """

    def __init__(
        self,
        elevation: ArrayLike,
        slope: ArrayLike,
        aspect: ArrayLike,
        reference: SpatialReference,
        projected_crs: pyproj.CRS | str | int | None = None,
    ) -> None:
        """
        Instantiate a raster grid.

        :param elevation: 2D elevation array, already cleaned (see `clean_elevation`).
        :param slope: 2D slope array of the same shape.
        :param aspect: 2D aspect array of the same shape.
        :param reference: Projected or geographic spatial reference of the arrays.
        :param projected_crs: Projected CRS of the track coordinates, only used for a geographic reference.
        """

        self.elevation = np.asarray(elevation, dtype=float)
        self.slope = np.asarray(slope, dtype=float)
        self.aspect = np.asarray(aspect, dtype=float)

        if self.elevation.ndim != 2:
            raise ValueError(f"Elevation must be a 2D array, got {self.elevation.ndim} dimensions.")
        if self.slope.shape != self.elevation.shape or self.aspect.shape != self.elevation.shape:
            raise ValueError(
                f"Elevation, slope and aspect must have identical shapes, got {self.elevation.shape}, "
                f"{self.slope.shape} and {self.aspect.shape}."
            )
        if min(self.elevation.shape) < 2:
            raise ValueError(f"Raster must have at least 2 rows and 2 columns, got {self.elevation.shape}.")

        self.reference = reference
        nrows, ncols = self.elevation.shape

        if isinstance(reference, ProjectedReference):
            x = _cell_centers(reference.x_limits, reference.cell_extent_x, ncols, "X")
            y = _cell_centers(reference.y_limits, reference.cell_extent_y, nrows, "Y")
            if reference.rows_start_from == "north":
                y = y[::-1]
            self.x_grid, self.y_grid = np.meshgrid(x, y)
            self.crs = pyproj.CRS.from_user_input(projected_crs) if projected_crs is not None else None
            self._to_native = None
            native_axes = (y, x)

        elif isinstance(reference, GeographicReference):
            lon = _cell_centers(reference.longitude_limits, reference.cell_extent_longitude, ncols, "longitude")
            lat = _cell_centers(reference.latitude_limits, reference.cell_extent_latitude, nrows, "latitude")[::-1]
            if projected_crs is None:
                self.crs = utm_crs(float(np.mean(lat)), float(np.mean(lon)))
            else:
                self.crs = pyproj.CRS.from_user_input(projected_crs)
            logging.debug("Projecting geographic reference grid to %s", self.crs.name)

            to_projected = pyproj.Transformer.from_crs("EPSG:4326", self.crs, always_xy=True)
            lon_grid, lat_grid = np.meshgrid(lon, lat)
            self.x_grid, self.y_grid = to_projected.transform(lon_grid, lat_grid)
            self._to_native = pyproj.Transformer.from_crs(self.crs, "EPSG:4326", always_xy=True)
            native_axes = (lat, lon)

        else:
            raise TypeError(
                "Argument `reference` must be a ProjectedReference or GeographicReference, "
                "got {}.".format(type(reference))
            )

        # Coordinate range covered by each column and each row, to find windows without scanning the full grid
        self._col_xmin = np.min(self.x_grid, axis=0)
        self._col_xmax = np.max(self.x_grid, axis=0)
        self._row_ymin = np.min(self.y_grid, axis=1)
        self._row_ymax = np.max(self.y_grid, axis=1)

        self._interpolator = self._build_interpolator(*native_axes)

    @property
    def shape(self) -> tuple[int, int]:
        return self.elevation.shape  # type: ignore

    def _build_interpolator(
        self, axis_rows: NDArrayf, axis_cols: NDArrayf
    ) -> scipy.interpolate.RegularGridInterpolator:
        """Bilinear interpolator of elevation on the native (row, column) axes, sorted ascending."""

        values = self.elevation
        if axis_rows[0] > axis_rows[-1]:
            axis_rows = axis_rows[::-1]
            values = values[::-1, :]
        if axis_cols[0] > axis_cols[-1]:
            axis_cols = axis_cols[::-1]
            values = values[:, ::-1]

        return scipy.interpolate.RegularGridInterpolator(
            (axis_rows, axis_cols), values, method="linear", bounds_error=False, fill_value=np.nan
        )

    def window(self, x: float, y: float, half_width: float = WINDOW_HALF_WIDTH) -> tuple[slice, slice]:
        """
        Find the rows and columns of cells lying within a square window around a center coordinate.

        Both axes are derived independently: columns from the X coordinate, rows from the Y coordinate.

        :param x: Easting of the window center.
        :param y: Northing of the window center.
        :param half_width: Half-width of the window (georeferenced unit).

        :returns: Row slice and column slice of the window, empty if the window does not overlap the raster.
        """
        if not (np.isfinite(x) and np.isfinite(y)):
            return slice(0, 0), slice(0, 0)

        cols = np.flatnonzero((self._col_xmax >= x - half_width) & (self._col_xmin <= x + half_width))
        rows = np.flatnonzero((self._row_ymax >= y - half_width) & (self._row_ymin <= y + half_width))

        if cols.size == 0 or rows.size == 0:
            return slice(0, 0), slice(0, 0)

        return slice(rows[0], rows[-1] + 1), slice(cols[0], cols[-1] + 1)

    def subgrid(self, x: float, y: float, half_width: float = WINDOW_HALF_WIDTH) -> Subgrid:
        """Return the flattened coordinates, elevation, slope and aspect of the cells in a window."""

        rows, cols = self.window(x, y, half_width=half_width)
        return Subgrid(
            x=self.x_grid[rows, cols].ravel(),
            y=self.y_grid[rows, cols].ravel(),
            elevation=self.elevation[rows, cols].ravel(),
            slope=self.slope[rows, cols].ravel(),
            aspect=self.aspect[rows, cols].ravel(),
        )

    def interpolate(self, x: ArrayLike, y: ArrayLike) -> NDArrayf:
        """
        Bilinear interpolation of elevation at projected coordinates, from the full raster grid.

        :param x: Eastings of the points.
        :param y: Northings of the points.

        :returns: Interpolated elevations, NaN outside the raster or next to missing cells.
        """
        x = np.atleast_1d(np.asarray(x, dtype=float))
        y = np.atleast_1d(np.asarray(y, dtype=float))

        interp = np.full(x.shape, np.nan)
        valid = np.isfinite(x) & np.isfinite(y)
        if not np.any(valid):
            return interp

        if self._to_native is None:
            rows_coord, cols_coord = y[valid], x[valid]
        else:
            cols_coord, rows_coord = self._to_native.transform(x[valid], y[valid])

        interp[valid] = self._interpolator(np.column_stack((rows_coord, cols_coord)))
        return interp
