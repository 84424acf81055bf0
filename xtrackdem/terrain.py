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

"""Terrain attributes derived from the reference elevation when no companion raster is available."""
from __future__ import annotations

from typing import Literal

import numpy as np

from xtrackdem._typing import ArrayLike, NDArrayf


def slope_aspect(
    elevation: ArrayLike,
    resolution: float | tuple[float, float],
    rows_start_from: Literal["north", "south"] = "north",
) -> tuple[NDArrayf, NDArrayf]:
    """
    Calculate slope and aspect of an elevation array from its centered gradient.

    :param elevation: 2D elevation array.
    :param resolution: Cell size (x, y), or a single value for square cells, in the unit of elevations.
    :param rows_start_from: Whether the first row of the array is the northernmost or southernmost one.

    :returns: Slope in degrees, Aspect in degrees clockwise from north of the downslope direction (NaN on flat cells).
    """
    if isinstance(resolution, (int, float, np.floating)):
        resolution = (float(resolution), float(resolution))

    gradient_row, gradient_x = np.gradient(np.asarray(elevation, dtype=float), resolution[1], resolution[0])
    gradient_north = -gradient_row if rows_start_from == "north" else gradient_row

    slope = np.degrees(np.arctan(np.hypot(gradient_x, gradient_north)))
    aspect = np.degrees(np.arctan2(-gradient_x, -gradient_north)) % 360
    aspect[(gradient_x == 0) & (gradient_north == 0)] = np.nan

    return slope, aspect
