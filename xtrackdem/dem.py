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

"""Loading of reference elevation, slope and aspect rasters into a raster grid."""
from __future__ import annotations

import logging
import os

import geoutils as gu
import numpy as np
import pyproj

from xtrackdem._typing import NDArrayf
from xtrackdem.grid import (
    GeographicReference,
    ProjectedReference,
    RasterGrid,
    SpatialReference,
    clean_elevation,
)
from xtrackdem.terrain import slope_aspect

# Approximate length of a degree of latitude (meters)
_DEGREE_LENGTH = 111320.0


def _raster_array(raster: gu.Raster) -> NDArrayf:
    """Float array of the first band of a raster, with masked values as NaN."""
    data = np.ma.filled(np.ma.masked_array(raster.data).astype(float), np.nan)
    if data.ndim == 3:
        data = data[0]
    return data


def spatial_reference(raster: gu.Raster) -> SpatialReference:
    """
    Spatial reference of a raster: geographic if its CRS is geographic, projected otherwise.

    :param raster: Input raster.
    """
    left, bottom, right, top = raster.bounds
    transform = raster.transform
    cell_x, cell_y = abs(transform.a), abs(transform.e)
    rows_start_from = "north" if transform.e < 0 else "south"

    if raster.crs is not None and raster.crs.is_geographic:
        if rows_start_from != "north":
            raise ValueError("Rasters in geographic coordinates must have rows starting from north.")
        return GeographicReference(
            latitude_limits=(min(bottom, top), max(bottom, top)),
            longitude_limits=(min(left, right), max(left, right)),
            cell_extent_latitude=cell_y,
            cell_extent_longitude=cell_x,
        )

    return ProjectedReference(
        x_limits=(min(left, right), max(left, right)),
        y_limits=(min(bottom, top), max(bottom, top)),
        cell_extent_x=cell_x,
        cell_extent_y=cell_y,
        rows_start_from=rows_start_from,
    )


def _metric_resolution(reference: SpatialReference) -> tuple[float, float]:
    """Cell size in meters, approximated at the raster center for a geographic reference."""
    if isinstance(reference, ProjectedReference):
        return reference.cell_extent_x, reference.cell_extent_y

    lat_center = np.radians(np.mean(reference.latitude_limits))
    return (
        reference.cell_extent_longitude * _DEGREE_LENGTH * np.cos(lat_center),
        reference.cell_extent_latitude * _DEGREE_LENGTH,
    )


def load_reference(
    path_to_elev: str,
    path_to_slope: str | None = None,
    path_to_aspect: str | None = None,
    projected_crs: pyproj.CRS | str | int | None = None,
) -> RasterGrid:
    """
    Load a reference DTM and its slope and aspect rasters into a raster grid.

    Elevations outside the valid range are set to NaN once here. Slope and aspect are used as provided, or derived
    from the elevation if no path is given.

    :param path_to_elev: Path to the reference elevation raster.
    :param path_to_slope: Path to the slope raster (degrees).
    :param path_to_aspect: Path to the aspect raster (degrees).
    :param projected_crs: Projected CRS of the track, for a reference in geographic coordinates. Defaults to the CRS
        of a projected raster, or the UTM zone of the center of a geographic raster.

    :returns: Raster grid of the reference.
    :raises FileNotFoundError: If one of the raster paths does not exist.
    """
    for path in [path_to_elev, path_to_slope, path_to_aspect]:
        if path is not None and not os.path.exists(path):
            raise FileNotFoundError(f"Reference raster path does not exist: {path}")

    logging.info("Loading reference DTM: %s", path_to_elev)
    dem = gu.Raster(path_to_elev)
    reference = spatial_reference(dem)
    elevation = clean_elevation(_raster_array(dem))

    if path_to_slope is not None and path_to_aspect is not None:
        slope = _raster_array(gu.Raster(path_to_slope))
        aspect = _raster_array(gu.Raster(path_to_aspect))
    else:
        logging.info("Deriving slope and aspect from the reference DTM")
        rows_start_from = reference.rows_start_from if isinstance(reference, ProjectedReference) else "north"
        slope, aspect = slope_aspect(
            elevation, resolution=_metric_resolution(reference), rows_start_from=rows_start_from
        )
        if path_to_slope is not None:
            slope = _raster_array(gu.Raster(path_to_slope))
        if path_to_aspect is not None:
            aspect = _raster_array(gu.Raster(path_to_aspect))

    if projected_crs is None and isinstance(reference, ProjectedReference) and dem.crs is not None:
        projected_crs = dem.crs.to_wkt()

    return RasterGrid(elevation, slope, aspect, reference=reference, projected_crs=projected_crs)
