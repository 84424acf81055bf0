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
Schema constants and validation function
"""
from __future__ import annotations

import copy
import logging
import os
from typing import Any, Dict

import pyproj
from cerberus import Validator
from pyproj.exceptions import CRSError

from xtrackdem.footprint import FOOTWIDTH, PRODUCT_FOOTPRINT_LENGTHS
from xtrackdem.grid import WINDOW_HALF_WIDTH
from xtrackdem.track import DEFAULT_COLUMNS


class CustomValidator(Validator):  # type: ignore
    def _validate_path_exists(self, path_exists: bool, field: str, value: str) -> bool:
        """
        {'type': 'boolean'}
        """
        if value is not None:
            if path_exists and not os.path.exists(value):
                self._error(field, f"Path does not exist: {value}")
        return True

    def _validate_crs(self, crs: bool, field: str, value: str | int) -> bool:
        """
        {'type': 'boolean'}
        """
        if value is not None and crs:
            try:
                pyproj.CRS.from_user_input(value)
            except CRSError as e:
                logging.error(f"'{field}' field is not a valid CRS. {e}")
                self._error(field, f"Invalid CRS: {value}")
                return False
        return True


PRODUCTS = list(PRODUCT_FOOTPRINT_LENGTHS.keys())

INPUTS_REFERENCE = {
    "path_to_elev": {"type": "string", "required": True, "path_exists": True},
    "path_to_slope": {"type": "string", "required": False, "nullable": True, "default": None, "path_exists": True},
    "path_to_aspect": {"type": "string", "required": False, "nullable": True, "default": None, "path_exists": True},
    "projected_crs": {"type": ["integer", "string"], "required": False, "nullable": True, "default": None, "crs": True},
}

INPUTS_TRACK = {
    "path_to_csv": {"type": "string", "required": True, "path_exists": True},
    "columns": {
        "type": "dict",
        "required": False,
        "default": {},
        "keysrules": {"type": "string", "allowed": list(DEFAULT_COLUMNS.keys())},
        "valuesrules": {"type": "string", "nullable": True},
    },
}

CALIBRATION_DEFAULT = {
    "run": True,
    "initial_step": 5.0,
    "xatol": 0.01,
    "fatol": 1e-4,
    "max_iterations": 200,
    "window_half_width": WINDOW_HALF_WIDTH,
    "footwidth": FOOTWIDTH,
}

CORRECTIONS_DEFAULT = {"vertical": True, "slope": False, "slope_order": 2}

CALIBRATION_SCHEMA = {
    "inputs": {
        "type": "dict",
        "required": True,
        "schema": {
            "reference_elev": {"type": "dict", "schema": INPUTS_REFERENCE, "required": True},
            "track": {"type": "dict", "schema": INPUTS_TRACK, "required": True},
            "product": {"type": "string", "allowed": PRODUCTS, "required": True},
        },
    },
    "calibration": {
        "type": "dict",
        "required": False,
        "default": CALIBRATION_DEFAULT,
        "schema": {
            "run": {"type": "boolean", "default": True},
            "initial_step": {"type": ["integer", "float"], "default": 5.0, "min": 0, "forbidden": [0]},
            "xatol": {"type": ["integer", "float"], "default": 0.01, "min": 0},
            "fatol": {"type": ["integer", "float"], "default": 1e-4, "min": 0},
            "max_iterations": {"type": "integer", "default": 200, "min": 1},
            "window_half_width": {"type": ["integer", "float"], "default": WINDOW_HALF_WIDTH, "min": 0},
            "footwidth": {"type": ["integer", "float"], "default": FOOTWIDTH, "min": 0, "forbidden": [0]},
        },
    },
    "corrections": {
        "type": "dict",
        "required": False,
        "default": CORRECTIONS_DEFAULT,
        "schema": {
            "vertical": {"type": "boolean", "default": True},
            "slope": {"type": "boolean", "default": False},
            "slope_order": {"type": "integer", "default": 2, "min": 1},
        },
    },
    "outputs": {
        "type": "dict",
        "required": False,
        "default": {"path": "outputs"},
        "schema": {
            "path": {"type": "string", "default": "outputs"},
        },
    },
}


def validate_configuration(user_config: dict[str, Any], schema: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validate the configuration:
    :param user_config: Configuration dict or YAML string
    :param schema: Schema dict for validating configuration
    :return: Completed configuration dictionary
    """
    validator = CustomValidator(schema)
    if not validator.validate(user_config):
        for field, errors in validator.errors.items():
            raise ValueError(f"User configuration mistakes in '{field}': {errors}")

    return copy.deepcopy(validator.document)
