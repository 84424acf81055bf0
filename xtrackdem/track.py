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

"""Altimetry track tables: normalization of column names, snow-free selection and CSV input/output."""
from __future__ import annotations

import logging
import os
from typing import Mapping

import numpy as np
import pandas as pd

# Standard column of the track table -> column name in the ICESat-2 CSV exports
DEFAULT_COLUMNS = {
    "easting": "Easting",
    "northing": "Northing",
    "elevation": "h_mean",
    "time": "time",
    "snow_cover": "snowcover",
}

TRACK_COLUMNS = ["easting", "northing", "elevation", "time", "snow_free"]


def normalize_track(df: pd.DataFrame, columns: Mapping[str, str | None] | None = None) -> pd.DataFrame:
    """
    Convert a table of altimetry points to the standard track table.

    The standard table has columns "easting", "northing", "elevation", "time" (datetime64) and "snow_free" (bool,
    true where the snow cover flag is 0, or everywhere if no snow cover column is given). Row order is kept, as it
    encodes the along-track trajectory.

    :param df: Table of altimetry points.
    :param columns: Mapping of standard names to the names in `df`, completed by `DEFAULT_COLUMNS`. Map
        "snow_cover" to None to consider all points snow-free.

    :returns: Standard track table, with the index of `df`.
    """
    names = dict(DEFAULT_COLUMNS)
    if columns is not None:
        unknown = set(columns.keys()) - set(DEFAULT_COLUMNS.keys())
        if len(unknown) > 0:
            raise ValueError(
                "Unknown track column keys {}, must be among {}.".format(sorted(unknown), list(DEFAULT_COLUMNS.keys()))
            )
        names.update(columns)

    required = [names[key] for key in ["easting", "northing", "elevation", "time"]]
    missing = [col for col in required if col not in df.columns]
    if len(missing) > 0:
        raise ValueError(f"Track table is missing the columns {missing}.")

    track = pd.DataFrame(
        {
            "easting": df[names["easting"]].astype(float),
            "northing": df[names["northing"]].astype(float),
            "elevation": df[names["elevation"]].astype(float),
            "time": pd.to_datetime(df[names["time"]]),
        },
        index=df.index,
    )

    snow_col = names["snow_cover"]
    if snow_col is not None and snow_col in df.columns:
        track["snow_free"] = df[snow_col].to_numpy() == 0
    else:
        logging.info("No snow cover column found, considering all points as snow-free.")
        track["snow_free"] = np.ones(len(df), dtype=bool)

    return track


def snow_free_subset(track: pd.DataFrame) -> pd.DataFrame:
    """Select the snow-free points of a track table, keeping their along-track order and index."""
    return track[track["snow_free"].to_numpy(dtype=bool)]


def read_track_csv(path: str, columns: Mapping[str, str | None] | None = None) -> pd.DataFrame:
    """
    Read an altimetry CSV file into a standard track table (see `normalize_track`).

    :param path: Path to the CSV file.
    :param columns: Mapping of standard names to the names in the file.
    """
    if not os.path.exists(path):
        raise FileNotFoundError(f"Track file does not exist: {path}")

    logging.info("Loading track: %s", path)
    return normalize_track(pd.read_csv(path), columns=columns)


def write_reference_elevations(table: pd.DataFrame, path: str) -> None:
    """Write a table of reference elevations to a CSV file."""
    table.to_csv(path, index=False)
    logging.info("Reference elevations saved at %s", path)
