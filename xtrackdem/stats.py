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

"""Residuals between altimetry and reference elevations, their robust dispersion, and simple residual corrections."""
from __future__ import annotations

import logging
from typing import Any, Callable

import numpy as np

from xtrackdem._typing import ArrayLike, NDArrayf

# Scaling of the median absolute deviation to the standard deviation of a normal distribution
NMAD_FACTOR = 1.4826


def residuals(point_elevation: ArrayLike, sampled_elevation: ArrayLike) -> NDArrayf:
    """Elevation residuals, point minus reference."""
    return np.asarray(point_elevation, dtype=float) - np.asarray(sampled_elevation, dtype=float)


def nmad(data: ArrayLike, nfact: float = NMAD_FACTOR) -> float:
    """
    Calculate the normalized median absolute deviation (NMAD) of residuals around their mean.

    NMAD = nfact * median(|r - mean(r)|), ignoring NaNs. The default factor of 1.4826 scales the median absolute
    deviation to the standard deviation of a normal distribution (Höhle and Höhle, 2009,
    http://dx.doi.org/10.1016/j.isprsjprs.2009.02.003).

    :param data: Residuals.
    :param nfact: Normalization factor.

    :returns: NMAD of the residuals, NaN if no residual is finite.
    """
    data = np.asarray(data, dtype=float)
    valid = data[np.isfinite(data)]
    if valid.size == 0:
        return np.nan
    return float(nfact * np.median(np.abs(valid - np.mean(valid))))


def residual_statistics(data: ArrayLike) -> dict[str, float]:
    """
    Calculate standard statistics of residuals, ignoring NaNs: count, mean, median, NMAD and std.

    :param data: Residuals.

    :returns: Dictionary of statistics.
    """
    data = np.asarray(data, dtype=float)
    valid = data[np.isfinite(data)]

    return {
        "count": int(valid.size),
        "mean": float(np.mean(valid)) if valid.size > 0 else np.nan,
        "median": float(np.median(valid)) if valid.size > 0 else np.nan,
        "nmad": nmad(valid),
        "std": float(np.std(valid, ddof=1)) if valid.size > 1 else np.nan,
    }


def vertical_bias(data: ArrayLike, reduc_func: Callable[[NDArrayf], np.floating[Any]] = np.nanmedian) -> float:
    """
    Vertical bias of residuals, by default their median.

    :param data: Residuals, usually on snow-free points only.
    :param reduc_func: Reduction function, ignoring NaNs.
    """
    data = np.asarray(data, dtype=float)
    if not np.any(np.isfinite(data)):
        return np.nan
    return float(reduc_func(data))


def remove_vertical_bias(data: ArrayLike, bias: float) -> NDArrayf:
    """Subtract a vertical bias from residuals (no other vertical datum correction is applied)."""
    return np.asarray(data, dtype=float) - bias


def fit_slope_correction(slope: ArrayLike, data: ArrayLike, order: int = 2) -> NDArrayf:
    """
    Fit a polynomial of residuals as a function of terrain slope.

    :param slope: Footprint mean slopes.
    :param data: Residuals at the same points, usually on snow-free points only.
    :param order: Polynomial order, quadratic by default.

    :returns: Polynomial coefficients, highest power first.

    :raises ValueError: If there are not enough valid points to fit the polynomial.
    """
    slope = np.asarray(slope, dtype=float)
    data = np.asarray(data, dtype=float)
    valid = np.isfinite(slope) & np.isfinite(data)
    if np.count_nonzero(valid) <= order:
        raise ValueError(
            f"At least {order + 1} valid slope and residual values are needed to fit a polynomial of order {order}, "
            f"got {np.count_nonzero(valid)}."
        )

    coefs = np.polyfit(slope[valid], data[valid], deg=order)
    logging.debug("Slope correction polynomial coefficients: %s", coefs)
    return coefs


def apply_slope_correction(slope: ArrayLike, data: ArrayLike, coefs: NDArrayf) -> NDArrayf:
    """Subtract the residuals predicted by a slope polynomial (see `fit_slope_correction`)."""
    return np.asarray(data, dtype=float) - np.polyval(coefs, np.asarray(slope, dtype=float))
