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

"""Segmentation of an along-track point sequence into transects (one pass per calendar date)."""
from __future__ import annotations

from typing import NamedTuple

import numpy as np
import pandas as pd

from xtrackdem._typing import ArrayLike, NDArrayb


class TransectFlags(NamedTuple):
    """Flags of the first and last point of each transect, parallel to the track."""

    start: NDArrayb
    end: NDArrayb

    @property
    def boundary(self) -> NDArrayb:
        """True for any point at the start or the end of a transect."""
        return self.start | self.end


def transect_dates(times: ArrayLike) -> np.ndarray:
    """
    Calendar date of each point, used as the pass identity of a transect.

    :param times: Timestamps of the points, in any format understood by `pandas.to_datetime`.

    :returns: Array of datetime64 truncated to the day.
    """
    return pd.to_datetime(pd.Series(times)).dt.normalize().to_numpy()


def transect_flags(times: ArrayLike) -> TransectFlags:
    """
    Flag the first and last point of each transect.

    A transect is a maximal run of consecutive points sharing the same calendar date. The first and last point of the
    whole track are always flagged. Missing timestamps form single-point transects.

    :param times: Timestamps of the points, in along-track order.

    :returns: Start and end flags.
    """
    dates = transect_dates(times)
    nb_pts = len(dates)

    start = np.zeros(nb_pts, dtype=bool)
    end = np.zeros(nb_pts, dtype=bool)
    if nb_pts == 0:
        return TransectFlags(start=start, end=end)

    # NaT never equals itself, so missing dates always break the transect
    change = dates[1:] != dates[:-1]
    start[0] = True
    start[1:] = change
    end[-1] = True
    end[:-1] = change

    return TransectFlags(start=start, end=end)


def transect_boundaries(times: ArrayLike) -> NDArrayb:
    """Boolean sequence flagging the points at the start or end of each transect, see `transect_flags`."""
    return transect_flags(times).boundary
