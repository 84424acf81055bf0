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

"""Windowed sampling of the reference raster inside footprints, with bisquare-weighted and unweighted statistics."""
from __future__ import annotations

import logging
from typing import Any

import numpy as np
import pandas as pd
import shapely
from tqdm import tqdm

from xtrackdem._typing import ArrayLike, NDArrayf
from xtrackdem.footprint import FOOTWIDTH, Footprints
from xtrackdem.grid import WINDOW_HALF_WIDTH, RasterGrid

# Columns of the per-point sampling table
SAMPLE_COLUMNS = [
    "unweighted_mean_elevation",
    "weighted_mean_elevation",
    "interpolated_elevation",
    "elevation_std",
    "mean_slope",
    "std_slope",
    "mean_aspect",
    "std_aspect",
    "count",
]


def centerline_distance(x: ArrayLike, y: ArrayLike, x0: float, y0: float, heading: float) -> NDArrayf:
    """
    Perpendicular distance of points to the along-track line passing through (x0, y0).

    :param x: Eastings of the points.
    :param y: Northings of the points.
    :param x0: Easting of the footprint center.
    :param y0: Northing of the footprint center.
    :param heading: Along-track heading in degrees, counter-clockwise from east.
    """
    dx = np.asarray(x, dtype=float) - x0
    dy = np.asarray(y, dtype=float) - y0
    bearing = np.arctan2(dy, dx)
    return np.abs(np.hypot(dx, dy) * np.sin(bearing - np.radians(heading)))


def bisquare_weights(dist: ArrayLike, maxdist: float) -> NDArrayf:
    """
    Bisquare (Tukey) kernel weights, 15/16 * (1 - (d / maxdist)^2)^2 within `maxdist` and zero beyond.

    :param dist: Distances to the kernel center.
    :param maxdist: Cutoff distance.
    """
    dist = np.asarray(dist, dtype=float)
    weights = 15 / 16 * (1 - (dist / maxdist) ** 2) ** 2
    return np.where(dist <= maxdist, weights, 0.0)


def _mean_std(values: NDArrayf) -> tuple[float, float]:
    """Mean and sample standard deviation ignoring NaNs: zero std for a single valid value, NaN for none."""
    nb_valid = np.count_nonzero(np.isfinite(values))
    if nb_valid == 0:
        return np.nan, np.nan
    if nb_valid == 1:
        return float(np.nanmean(values)), 0.0
    return float(np.nanmean(values)), float(np.nanstd(values, ddof=1))


def sample_footprint(
    grid: RasterGrid,
    x0: float,
    y0: float,
    corners: NDArrayf,
    heading: float,
    footwidth: float = FOOTWIDTH,
    window_half_width: float = WINDOW_HALF_WIDTH,
) -> dict[str, Any]:
    """
    Statistics of the raster cells whose center falls inside one footprint.

    The weighted mean elevation uses a bisquare kernel of the cross-track distance of each cell to the along-track
    line through the point, with a cutoff at half the footprint width. Other statistics are unweighted. If no cell
    falls inside the footprint, all statistics are NaN.

    :param grid: Reference raster grid.
    :param x0: Easting of the point (center of the footprint).
    :param y0: Northing of the point.
    :param corners: Footprint corners of shape (4, 2).
    :param heading: Footprint heading in degrees, counter-clockwise from east.
    :param footwidth: Cross-track footprint width.
    :param window_half_width: Half-width of the raster window searched around the point.

    :returns: Dictionary of statistics (all columns of `SAMPLE_COLUMNS` except the interpolated elevation).
    """

    stats: dict[str, Any] = {col: np.nan for col in SAMPLE_COLUMNS if col != "interpolated_elevation"}
    stats["count"] = 0

    corners = np.asarray(corners, dtype=float)
    if not (np.all(np.isfinite(corners)) and np.isfinite(heading)):
        return stats

    sub = grid.subgrid(x0, y0, half_width=window_half_width)

    # Bounding box of the footprint first, the polygon test then runs on a few cells only
    xmin, ymin = corners.min(axis=0)
    xmax, ymax = corners.max(axis=0)
    in_box = (sub.x >= xmin) & (sub.x <= xmax) & (sub.y >= ymin) & (sub.y <= ymax)
    if not np.any(in_box):
        return stats

    # Cells on the footprint boundary are included
    polygon = shapely.Polygon(corners)
    inside = np.zeros(sub.x.shape, dtype=bool)
    inside[in_box] = shapely.intersects_xy(polygon, sub.x[in_box], sub.y[in_box])
    if not np.any(inside):
        return stats

    elevation = sub.elevation[inside]
    dist = centerline_distance(sub.x[inside], sub.y[inside], x0, y0, heading)
    weights = bisquare_weights(dist, maxdist=footwidth / 2)

    valid = np.isfinite(elevation)
    sum_weights = np.sum(weights[valid])
    if sum_weights > 0:
        stats["weighted_mean_elevation"] = float(np.sum(weights[valid] * elevation[valid]) / sum_weights)

    stats["unweighted_mean_elevation"], stats["elevation_std"] = _mean_std(elevation)
    stats["mean_slope"], stats["std_slope"] = _mean_std(sub.slope[inside])
    stats["mean_aspect"], stats["std_aspect"] = _mean_std(sub.aspect[inside])
    stats["count"] = int(np.count_nonzero(inside))

    return stats


def sample_footprints(
    grid: RasterGrid,
    easting: ArrayLike,
    northing: ArrayLike,
    footprints: Footprints,
    footwidth: float = FOOTWIDTH,
    window_half_width: float = WINDOW_HALF_WIDTH,
    progress: bool = False,
) -> pd.DataFrame:
    """
    Sample the reference raster in the footprint of every point.

    In addition to the footprint statistics, the elevation is bilinearly interpolated at the exact point location
    from the full raster.

    :param grid: Reference raster grid.
    :param easting: Eastings of the points (already offset, if any).
    :param northing: Northings of the points.
    :param footprints: Footprints of the points, built from the same coordinates.
    :param footwidth: Cross-track footprint width.
    :param window_half_width: Half-width of the raster window searched around each point.
    :param progress: Whether to show a progress bar (only if the logging level is INFO or lower).

    :returns: Table of statistics per point, with columns `SAMPLE_COLUMNS`.
    """
    easting = np.asarray(easting, dtype=float)
    northing = np.asarray(northing, dtype=float)
    if not (len(easting) == len(northing) == len(footprints.heading)):
        raise ValueError("Coordinates and footprints must all have the same length.")

    disable = not progress or logging.getLogger().getEffectiveLevel() > logging.INFO
    rows = [
        sample_footprint(
            grid,
            x0=easting[i],
            y0=northing[i],
            corners=footprints.corners[i],
            heading=footprints.heading[i],
            footwidth=footwidth,
            window_half_width=window_half_width,
        )
        for i in tqdm(range(len(easting)), disable=disable, desc="   Sampling footprints")
    ]

    table = pd.DataFrame(rows, columns=[col for col in SAMPLE_COLUMNS if col != "interpolated_elevation"])
    table["count"] = table["count"].astype(int)
    table["interpolated_elevation"] = grid.interpolate(easting, northing)

    return table[SAMPLE_COLUMNS]
