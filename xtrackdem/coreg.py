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

"""Horizontal offset calibration of an altimetry track against a reference raster, by NMAD minimization."""
from __future__ import annotations

import logging
import warnings
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Literal, Mapping, TypedDict, overload

import numpy as np
import pandas as pd
import scipy.optimize

from xtrackdem._typing import ArrayLike, NDArrayf
from xtrackdem.footprint import FOOTWIDTH, footprint_corners, product_footprint_length
from xtrackdem.grid import WINDOW_HALF_WIDTH, RasterGrid
from xtrackdem.sampling import sample_footprints
from xtrackdem.stats import nmad, residuals
from xtrackdem.track import snow_free_subset
from xtrackdem.transects import TransectFlags, transect_flags

# Map each key name to a descriptor string
dict_key_to_str = {
    "product": "Altimetry product acronym",
    "footprint_length": "Along-track footprint length",
    "footwidth": "Cross-track footprint width",
    "window_half_width": "Half-width of raster search window",
    "fit_minimizer": "Minimizer of method",
    "fit_loss_func": "Loss function of method",
    "initial_step": "Initial simplex step (georeferenced unit)",
    "xatol": "Absolute tolerance on offset",
    "fatol": "Absolute tolerance on loss",
    "max_iterations": "Maximum number of iterations",
    "shift_x": "Eastward shift estimated (georeferenced unit)",
    "shift_y": "Northward shift estimated (georeferenced unit)",
    "nmad": "Loss at estimated shift",
    "success": "Minimizer converged",
    "last_iteration": "Iteration at which algorithm stopped",
    "nb_evaluations": "Number of loss evaluations",
    "nb_points": "Number of snow-free points used",
}


class InFootprintDict(TypedDict, total=False):
    """Keys and types of inputs associated with footprint sampling."""

    product: str | None
    footprint_length: float
    footwidth: float
    window_half_width: float


class InFitDict(TypedDict, total=False):
    """Keys and types of inputs associated with the minimization."""

    fit_minimizer: Callable[..., Any]
    fit_loss_func: Callable[[NDArrayf], float]
    initial_step: float
    xatol: float
    fatol: float
    max_iterations: int


class OutCalibrationDict(TypedDict, total=False):
    """Keys and types of outputs of the calibration."""

    shift_x: float
    shift_y: float
    nmad: float
    success: bool
    last_iteration: int
    nb_evaluations: int
    nb_points: int


class CoregDict(TypedDict, total=False):
    """Metadata of a footprint coregistration."""

    inputs: dict[str, InFootprintDict | InFitDict]
    outputs: dict[str, OutCalibrationDict]


@dataclass(frozen=True)
class CalibrationResult:
    """Outcome of a horizontal offset calibration."""

    # Offset added to (easting, northing) of the track to align it on the raster
    offset: tuple[float, float]
    nmad: float
    success: bool = True
    n_iterations: int = 0
    n_evaluations: int = 0
    message: str = ""


def reference_elevations(
    easting: ArrayLike,
    northing: ArrayLike,
    elevation: ArrayLike,
    flags: TransectFlags,
    grid: RasterGrid,
    footprint_length: float,
    offset: tuple[float, float] = (0.0, 0.0),
    footwidth: float = FOOTWIDTH,
    window_half_width: float = WINDOW_HALF_WIDTH,
    loss_func: Callable[[NDArrayf], float] = nmad,
    progress: bool = False,
) -> tuple[pd.DataFrame, float]:
    """
    Sample reference elevations in the footprints of a track shifted by an offset, and the dispersion of residuals.

    Residuals are the point elevations minus the unweighted mean reference elevation of each footprint.

    :param easting: Eastings of the points, in along-track order.
    :param northing: Northings of the points.
    :param elevation: Elevations of the points.
    :param flags: Transect start and end flags of the points (independent of the offset).
    :param grid: Reference raster grid.
    :param footprint_length: Along-track footprint length.
    :param offset: Offset (dx, dy) added to eastings and northings.
    :param footwidth: Cross-track footprint width.
    :param window_half_width: Half-width of the raster window searched around each point.
    :param loss_func: Dispersion statistic of the residuals, NMAD by default.
    :param progress: Whether to show a progress bar.

    :returns: Table of footprint statistics per point, Dispersion of the residuals.
    """
    x = np.asarray(easting, dtype=float) + offset[0]
    y = np.asarray(northing, dtype=float) + offset[1]

    footprints = footprint_corners(x, y, length=footprint_length, flags=flags, width=footwidth)
    table = sample_footprints(
        grid, x, y, footprints, footwidth=footwidth, window_half_width=window_half_width, progress=progress
    )

    dh = residuals(elevation, table["unweighted_mean_elevation"].to_numpy())
    return table, float(loss_func(dh))


def _footprint_fit_func(
    offset: tuple[float, float],
    easting: NDArrayf,
    northing: NDArrayf,
    elevation: NDArrayf,
    flags: TransectFlags,
    grid: RasterGrid,
    footprint_length: float,
    footwidth: float,
    window_half_width: float,
    loss_func: Callable[[NDArrayf], float],
) -> float:
    """
    Loss of the calibration at a trial offset, re-running footprint construction and sampling on all points.

    A loss that cannot be computed (e.g., no footprint overlaps the raster) is returned as infinity, so that the
    minimizer moves away from it.
    """
    _, loss = reference_elevations(
        easting,
        northing,
        elevation,
        flags=flags,
        grid=grid,
        footprint_length=footprint_length,
        offset=(offset[0], offset[1]),
        footwidth=footwidth,
        window_half_width=window_half_width,
        loss_func=loss_func,
    )
    logging.debug("Offset (%.3f, %.3f): loss %.4f", offset[0], offset[1], loss)

    return loss if np.isfinite(loss) else np.inf


def calibrate_offset(
    track: pd.DataFrame,
    grid: RasterGrid,
    footprint_length: float,
    footwidth: float = FOOTWIDTH,
    window_half_width: float = WINDOW_HALF_WIDTH,
    fit_minimizer: Callable[..., Any] = scipy.optimize.minimize,
    fit_loss_func: Callable[[NDArrayf], float] = nmad,
    initial_step: float = 5.0,
    xatol: float = 0.01,
    fatol: float = 1e-4,
    max_iterations: int = 200,
    **kwargs: Any,
) -> CalibrationResult:
    """
    Estimate the horizontal offset of a track that minimizes the NMAD of its residuals to the reference raster.

    The minimization starts from a zero offset and only uses snow-free points. Transect flags are derived once from
    the snow-free points, and footprints and samples are recomputed at every evaluation. With the default SciPy
    minimizer, the Nelder-Mead simplex starts from [(0, 0), (step, 0), (0, step)] and stops when both the offset and
    the loss vary by less than `xatol` and `fatol` within the simplex, or after `max_iterations`.

    :param track: Standard track table (see `xtrackdem.track.normalize_track`).
    :param grid: Reference raster grid.
    :param footprint_length: Along-track footprint length.
    :param footwidth: Cross-track footprint width.
    :param window_half_width: Half-width of the raster window searched around each point.
    :param fit_minimizer: Minimizer with the signature of `scipy.optimize.minimize`.
    :param fit_loss_func: Loss function of the residuals.
    :param initial_step: Size of the initial simplex (georeferenced unit).
    :param xatol: Absolute tolerance on the offset.
    :param fatol: Absolute tolerance on the loss.
    :param max_iterations: Maximum number of iterations.
    :param kwargs: Keyword arguments passed to the minimizer.

    :returns: Best offset found and its loss.

    :raises ValueError: If the track has no snow-free point.
    """

    if "snow_free" in track.columns:
        track = snow_free_subset(track)
    if len(track) == 0:
        raise ValueError("The track has no snow-free point to calibrate the offset on.")

    logging.info("Running footprint NMAD minimization on %d snow-free points", len(track))

    flags = transect_flags(track["time"])
    easting = track["easting"].to_numpy(dtype=float)
    northing = track["northing"].to_numpy(dtype=float)
    elevation = track["elevation"].to_numpy(dtype=float)

    nb_evaluations = 0

    def fit_func(offset: NDArrayf) -> float:
        nonlocal nb_evaluations
        nb_evaluations += 1
        return _footprint_fit_func(
            offset,
            easting=easting,
            northing=northing,
            elevation=elevation,
            flags=flags,
            grid=grid,
            footprint_length=footprint_length,
            footwidth=footwidth,
            window_half_width=window_half_width,
            loss_func=fit_loss_func,
        )

    init_offsets = np.zeros(2)

    # Default parameters depending on optimizer used
    if fit_minimizer == scipy.optimize.minimize:
        kwargs.setdefault("method", "Nelder-Mead")
        if kwargs["method"] == "Nelder-Mead":
            options = {
                "xatol": xatol,
                "fatol": fatol,
                "maxiter": max_iterations,
                # The default simplex around zero is too small to see footprint cells change
                "initial_simplex": np.array([[0.0, 0.0], [initial_step, 0.0], [0.0, initial_step]]),
            }
            options.update(kwargs.pop("options", {}))
            kwargs["options"] = options

    results = fit_minimizer(fit_func, init_offsets, **kwargs)

    loss = float(results.fun)
    result = CalibrationResult(
        offset=(float(results.x[0]), float(results.x[1])),
        nmad=loss if np.isfinite(loss) else np.nan,
        success=bool(getattr(results, "success", True)),
        n_iterations=int(getattr(results, "nit", 0)),
        n_evaluations=nb_evaluations,
        message=str(getattr(results, "message", "")),
    )

    if not result.success:
        warnings.warn(
            f"Offset minimization did not converge ({result.message}), returning the best offset found: "
            f"{result.offset}."
        )

    logging.info(
        "x-offset = %5.2f & y-offset = %5.2f with NMAD = %5.2f", result.offset[0], result.offset[1], result.nmad
    )

    return result


class FootprintCoreg:
    """
    Footprint-based horizontal coregistration of an altimetry track to a reference raster.

    Estimates the easting and northing translation of the track minimizing the NMAD of the residuals between point
    elevations and mean reference elevations in the point footprints.

    The translation is stored in the `self.meta["outputs"]["calibration"]` keys "shift_x" and "shift_y" (in
    georeferenced units), and as a `CalibrationResult` in `self.result`.
    """

    _fit_called: bool = False  # Flag to check if the .fit() method has been called.

    def __init__(
        self,
        product: str | None = "ATL06",
        footprint_length: float | None = None,
        footwidth: float = FOOTWIDTH,
        window_half_width: float = WINDOW_HALF_WIDTH,
        fit_minimizer: Callable[..., Any] = scipy.optimize.minimize,
        fit_loss_func: Callable[[NDArrayf], float] = nmad,
        initial_step: float = 5.0,
        xatol: float = 0.01,
        fatol: float = 1e-4,
        max_iterations: int = 200,
    ) -> None:
        """
        Instantiate a footprint coregistration object.

        :param product: Altimetry product acronym defining the footprint length ("ATL08", "ATL06" or "ATL06-20").
        :param footprint_length: Along-track footprint length, overrides the one of the product.
        :param footwidth: Cross-track footprint width.
        :param window_half_width: Half-width of the raster window searched around each point.
        :param fit_minimizer: Minimizer for the coregistration function.
        :param fit_loss_func: Loss function for the minimization of residuals.
        :param initial_step: Size of the initial simplex (georeferenced unit).
        :param xatol: Absolute tolerance on the offset.
        :param fatol: Absolute tolerance on the loss.
        :param max_iterations: Maximum number of iterations.
        """

        if footprint_length is None:
            if product is None:
                raise ValueError("Either `product` or `footprint_length` must be defined.")
            footprint_length = product_footprint_length(product)

        # The raster window must contain the whole footprint around its center
        half_diagonal = float(np.hypot(footprint_length / 2, footwidth / 2))
        if window_half_width < half_diagonal:
            raise ValueError(
                f"Argument `window_half_width` ({window_half_width}) must be at least the footprint half-diagonal "
                f"({half_diagonal:.2f}) to contain whole footprints."
            )

        if not callable(fit_minimizer):
            raise TypeError(
                "Argument `fit_minimizer` must be a function (callable), " "got {}.".format(type(fit_minimizer))
            )
        if not callable(fit_loss_func):
            raise TypeError(
                "Argument `fit_loss_func` must be a function (callable), " "got {}.".format(type(fit_loss_func))
            )

        self._meta: CoregDict = {
            "inputs": {
                "footprint": InFootprintDict(
                    product=product,
                    footprint_length=float(footprint_length),
                    footwidth=footwidth,
                    window_half_width=window_half_width,
                ),
                "fit": InFitDict(
                    fit_minimizer=fit_minimizer,
                    fit_loss_func=fit_loss_func,
                    initial_step=initial_step,
                    xatol=xatol,
                    fatol=fatol,
                    max_iterations=max_iterations,
                ),
            },
            "outputs": {},
        }
        self._result: CalibrationResult | None = None

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(footprint_length={self._meta['inputs']['footprint']['footprint_length']})"

    @property
    def meta(self) -> CoregDict:
        """Metadata dictionary of the coregistration."""
        return self._meta

    @property
    def result(self) -> CalibrationResult:
        """Result of the calibration."""
        if not self._fit_called or self._result is None:
            raise AssertionError(".fit() does not seem to have been called yet")
        return self._result

    @property
    def offset(self) -> tuple[float, float]:
        """Estimated (easting, northing) offset."""
        return self.result.offset

    def fit(self, track: pd.DataFrame, grid: RasterGrid, **kwargs: Any) -> FootprintCoreg:
        """
        Estimate the horizontal offset of a track relative to a reference raster.

        :param track: Standard track table (see `xtrackdem.track.normalize_track`).
        :param grid: Reference raster grid.
        :param kwargs: Keyword arguments passed to `calibrate_offset` (e.g., `max_iterations`), overriding the ones of
            the instantiation for this fit only, or to the minimizer.

        :returns: The fitted coregistration.
        """
        params_footprint = self._meta["inputs"]["footprint"]
        params_fit = self._meta["inputs"]["fit"]

        result = calibrate_offset(
            track,
            grid,
            footprint_length=params_footprint["footprint_length"],  # type: ignore
            footwidth=params_footprint["footwidth"],  # type: ignore
            window_half_width=params_footprint["window_half_width"],  # type: ignore
            **{**params_fit, **kwargs},  # type: ignore
        )

        nb_points = int(np.count_nonzero(track["snow_free"])) if "snow_free" in track.columns else len(track)
        self._meta["outputs"]["calibration"] = OutCalibrationDict(
            shift_x=result.offset[0],
            shift_y=result.offset[1],
            nmad=result.nmad,
            success=result.success,
            last_iteration=result.n_iterations,
            nb_evaluations=result.n_evaluations,
            nb_points=nb_points,
        )
        self._result = result
        self._fit_called = True

        return self

    def reference_elevations(self, track: pd.DataFrame, grid: RasterGrid, progress: bool = True) -> pd.DataFrame:
        """
        Sample reference elevations for all points of a track (snow-free or not) at the estimated offset.

        If .fit() was not called, the track is sampled at its original location.

        :param track: Standard track table (see `xtrackdem.track.normalize_track`).
        :param grid: Reference raster grid.
        :param progress: Whether to show a progress bar (only if the logging level is INFO or lower).

        :returns: Track table completed with the footprint statistics and the residuals, with the index of `track`.
        """
        params_footprint = self._meta["inputs"]["footprint"]
        offset = self.offset if self._fit_called else (0.0, 0.0)

        logging.info("Sampling reference elevations of %d points at offset %s", len(track), offset)
        table, _ = reference_elevations(
            track["easting"].to_numpy(dtype=float),
            track["northing"].to_numpy(dtype=float),
            track["elevation"].to_numpy(dtype=float),
            flags=transect_flags(track["time"]),
            grid=grid,
            footprint_length=params_footprint["footprint_length"],  # type: ignore
            offset=offset,
            footwidth=params_footprint["footwidth"],  # type: ignore
            window_half_width=params_footprint["window_half_width"],  # type: ignore
            loss_func=self._meta["inputs"]["fit"]["fit_loss_func"],  # type: ignore
            progress=progress,
        )
        table.index = track.index

        output = pd.concat([track, table], axis=1)
        output["residual"] = residuals(output["elevation"], output["unweighted_mean_elevation"])

        return output

    @overload
    def info(self, as_str: Literal[False] = ...) -> None: ...

    @overload
    def info(self, as_str: Literal[True]) -> str: ...

    def info(self, as_str: bool = False) -> None | str:
        """Summarize information about this coregistration."""

        # Define max tabulation: longest name + 2 spaces
        tab = np.max([len(v) for v in dict_key_to_str.values()]) + 2

        def format_values(val: Any) -> str:
            if isinstance(val, (float, np.floating)):
                return f"{val:.4g}"
            elif callable(val):
                return val.__name__
            return str(val)

        def level_lines(level: Mapping[str, Any]) -> Iterable[str]:
            return [f"    {dict_key_to_str[k]}:".ljust(tab) + f"{format_values(v)}\n" for k, v in level.items()]

        final_str = [
            "Footprint coregistration information \n",
            f"  Method:       {self.__class__.__name__} \n",
            f"  Fit called?   {self._fit_called} \n",
            "Inputs\n",
            "  Footprint\n",
            *level_lines(self._meta["inputs"]["footprint"]),
            "  Minimization\n",
            *level_lines(self._meta["inputs"]["fit"]),
            "Outputs\n",
        ]
        if "calibration" in self._meta["outputs"]:
            final_str += ["  Calibration\n", *level_lines(self._meta["outputs"]["calibration"])]
        else:
            final_str += ["  None yet (fit not called)"]

        # Return as string or print (default)
        if as_str:
            return "".join(final_str)
        else:
            print("".join(final_str))
            return None
