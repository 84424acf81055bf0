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

"""Along-track rectangular footprints of altimetry points."""
from __future__ import annotations

from typing import NamedTuple

import numpy as np

from xtrackdem._typing import ArrayLike, NDArrayf
from xtrackdem.transects import TransectFlags

# Along-track footprint length of each altimetry product (georeferenced unit)
PRODUCT_FOOTPRINT_LENGTHS = {"ATL08": 100.0, "ATL06": 40.0, "ATL06-20": 20.0}

# Approximate cross-track width of a laser shot footprint (georeferenced unit)
FOOTWIDTH = 11.0

# Order in which corners are walked around the rectangle: (along-track sign, cross-track sign)
_CORNER_SIGNS = ((1, 1), (-1, 1), (-1, -1), (1, -1))


class Footprints(NamedTuple):
    """Footprint rectangles of a track."""

    # Corner coordinates of shape (N, 4, 2), last axis being (easting, northing)
    corners: NDArrayf
    # Along-track heading in degrees, counter-clockwise from east
    heading: NDArrayf


def product_footprint_length(product: str) -> float:
    """
    Along-track footprint length of an altimetry product.

    :param product: Product acronym, one of "ATL08", "ATL06" or "ATL06-20" (reduced-resolution ATL06).

    :raises ValueError: If the acronym is not recognized.
    """
    if product not in PRODUCT_FOOTPRINT_LENGTHS:
        raise ValueError(
            "Product acronym must be one of {}, got '{}'.".format(", ".join(PRODUCT_FOOTPRINT_LENGTHS.keys()), product)
        )
    return PRODUCT_FOOTPRINT_LENGTHS[product]


def track_headings(easting: ArrayLike, northing: ArrayLike, flags: TransectFlags) -> NDArrayf:
    """
    Along-track heading of each point.

    Inside a transect, the heading is the direction from the previous to the next point. At the start of a transect,
    it is the direction from the point to the next one, and at the end, from the previous point to the point, so that
    neighbors from another transect are never used. Single-point transects have an undefined (NaN) heading.

    :param easting: Eastings of the points, in along-track order.
    :param northing: Northings of the points.
    :param flags: Transect start and end flags of the points.

    :returns: Headings in degrees, counter-clockwise from east.
    """
    easting = np.asarray(easting, dtype=float)
    northing = np.asarray(northing, dtype=float)
    nb_pts = len(easting)
    if len(northing) != nb_pts or len(flags.start) != nb_pts or len(flags.end) != nb_pts:
        raise ValueError("Coordinates and transect flags must all have the same length.")
    if nb_pts == 0:
        return np.array([], dtype=float)

    start = np.array(flags.start, dtype=bool)
    end = np.array(flags.end, dtype=bool)
    start[0] = True
    end[-1] = True

    ind = np.arange(nb_pts)
    ind_before = np.where(start, ind, ind - 1)
    ind_after = np.where(end, ind, ind + 1)

    de = easting[ind_after] - easting[ind_before]
    dn = northing[ind_after] - northing[ind_before]

    heading = np.degrees(np.arctan2(dn, de))
    heading[(de == 0) & (dn == 0)] = np.nan

    return heading


def footprint_corners(
    easting: ArrayLike,
    northing: ArrayLike,
    length: float,
    flags: TransectFlags,
    width: float = FOOTWIDTH,
) -> Footprints:
    """
    Build the rectangular footprint of each point, centered on the point and oriented along the track.

    :param easting: Eastings of the points (already offset, if any), in along-track order.
    :param northing: Northings of the points.
    :param length: Along-track footprint length.
    :param flags: Transect start and end flags of the points.
    :param width: Cross-track footprint width.

    :returns: Corners and headings of the footprints. Corners are NaN where the heading is undefined.
    """
    if length <= 0 or width <= 0:
        raise ValueError(f"Footprint length and width must be strictly positive, got {length} and {width}.")

    easting = np.asarray(easting, dtype=float)
    northing = np.asarray(northing, dtype=float)
    heading = track_headings(easting, northing, flags)

    theta = np.radians(heading)
    along = (np.cos(theta), np.sin(theta))
    across = (-np.sin(theta), np.cos(theta))
    half_length = length / 2
    half_width = width / 2

    corners = np.empty((len(easting), 4, 2))
    for k, (sign_along, sign_across) in enumerate(_CORNER_SIGNS):
        corners[:, k, 0] = easting + sign_along * half_length * along[0] + sign_across * half_width * across[0]
        corners[:, k, 1] = northing + sign_along * half_length * along[1] + sign_across * half_width * across[1]

    return Footprints(corners=corners, heading=heading)
