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

"""
Calibration workflow: horizontal offset calibration of a track and reference elevations of all its points
"""
from __future__ import annotations

import logging
from typing import Any, Dict

import pandas as pd

from xtrackdem.coreg import FootprintCoreg
from xtrackdem.dem import load_reference
from xtrackdem.stats import (
    apply_slope_correction,
    fit_slope_correction,
    remove_vertical_bias,
    residual_statistics,
    vertical_bias,
)
from xtrackdem.track import read_track_csv, write_reference_elevations
from xtrackdem.workflows.schemas import CALIBRATION_SCHEMA
from xtrackdem.workflows.workflows import Workflows


class Calibration(Workflows):
    """
    Calibration workflow class
    """

    schema = CALIBRATION_SCHEMA

    def __init__(self, user_config: str | Dict[str, Any]) -> None:
        """
        Initialize the calibration workflow
        :param user_config: str path to a config file or dict as config
        """
        super().__init__(user_config)

        self.coreg = FootprintCoreg(
            product=self.config["inputs"]["product"],
            footwidth=self.config["calibration"]["footwidth"],
            window_half_width=self.config["calibration"]["window_half_width"],
            initial_step=self.config["calibration"]["initial_step"],
            xatol=self.config["calibration"]["xatol"],
            fatol=self.config["calibration"]["fatol"],
            max_iterations=self.config["calibration"]["max_iterations"],
        )
        self.corrections: Dict[str, Any] = {}

    def apply_corrections(self, table: pd.DataFrame) -> pd.DataFrame:
        """
        Remove the vertical bias of residuals and their dependency to slope, both estimated on snow-free points
        :param table: Reference elevations table with residuals
        :return: Table completed with corrected residuals
        """
        config = self.config["corrections"]
        snow_free = table["snow_free"].to_numpy(dtype=bool)
        corrected = table["residual"].to_numpy(dtype=float)

        if config["vertical"]:
            bias = vertical_bias(corrected[snow_free])
            corrected = remove_vertical_bias(corrected, bias)
            table["residual_vertcoreg"] = corrected
            self.corrections["vertical_bias"] = bias
            logging.info("Vertical bias of snow-free residuals: %.3f", bias)

        if config["slope"]:
            slope = table["mean_slope"].to_numpy(dtype=float)
            coefs = fit_slope_correction(slope[snow_free], corrected[snow_free], order=config["slope_order"])
            corrected = apply_slope_correction(slope, corrected, coefs)
            table["residual_slopecorr"] = corrected
            self.corrections["slope_coefficients"] = coefs.tolist()
            logging.info("Slope correction applied")

        return table

    def run(self) -> pd.DataFrame:
        """
        Run the calibration workflow
        :return: Reference elevations table of all points
        """
        config_ref = self.config["inputs"]["reference_elev"]
        grid = load_reference(
            config_ref["path_to_elev"],
            path_to_slope=config_ref["path_to_slope"],
            path_to_aspect=config_ref["path_to_aspect"],
            projected_crs=config_ref["projected_crs"],
        )
        config_track = self.config["inputs"]["track"]
        track = read_track_csv(config_track["path_to_csv"], columns=config_track["columns"])

        if self.config["calibration"]["run"]:
            self.coreg.fit(track, grid)
            logging.info(self.coreg.info(as_str=True))
        else:
            logging.info("Calibration disabled, sampling the track at its original location")

        table = self.coreg.reference_elevations(track, grid)
        table = self.apply_corrections(table)

        write_reference_elevations(table, str(self.outputs_folder / "tables" / "reference_elevations.csv"))

        snow_free = table["snow_free"].to_numpy(dtype=bool)
        outputs: Dict[str, Any] = {
            "statistics": {
                "snow_free": residual_statistics(table["residual"].to_numpy()[snow_free]),
                "snow_on": residual_statistics(table["residual"].to_numpy()[~snow_free]),
            },
            "corrections": self.corrections,
        }
        if self.config["calibration"]["run"]:
            result = self.coreg.result
            outputs["calibration"] = {
                "offset": result.offset,
                "nmad": result.nmad,
                "success": result.success,
                "iterations": result.n_iterations,
                "evaluations": result.n_evaluations,
            }

        self.save_yaml({"config": self.config, "outputs": outputs}, "calibration.yaml")

        return table
