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

from __future__ import annotations

import logging
from typing import Any, Dict

from xtrackdem import coreg, footprint, grid, sampling, stats, terrain, track, transects  # noqa
from xtrackdem._version import __version__  # noqa
from xtrackdem.coreg import (  # noqa
    CalibrationResult,
    FootprintCoreg,
    calibrate_offset,
    reference_elevations,
)
from xtrackdem.dem import load_reference  # noqa
from xtrackdem.footprint import footprint_corners, product_footprint_length  # noqa
from xtrackdem.grid import GeographicReference, ProjectedReference, RasterGrid  # noqa
from xtrackdem.transects import transect_boundaries, transect_flags  # noqa
from xtrackdem.workflows import Calibration


def calibrate(user_config: str | Dict[str, Any]) -> None:
    """
    Calibrate the horizontal offset of an altimetry track against a reference DTM, and save the reference
    elevations of all its points.

    :param user_config: Path to a YAML configuration file, or configuration dictionary.
    :return:
    :raises FileNotFoundError: if the configuration file does not exist.
    :raises ValueError: if the configuration is not valid.
    """
    logging.info("Starting calibration workflow...")
    workflow = Calibration(user_config)
    workflow.run()
    logging.info("Calibration workflow completed, outputs saved in %s", workflow.outputs_folder)
