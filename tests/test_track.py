"""Functions to test the track tables."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from xtrackdem.track import (
    TRACK_COLUMNS,
    normalize_track,
    read_track_csv,
    snow_free_subset,
    write_reference_elevations,
)


class TestTrack:
    raw = pd.DataFrame(
        {
            "Easting": [500000.0, 500010.0, 500020.0, 500030.0],
            "Northing": [4800000.0, 4800005.0, 4800010.0, 4800015.0],
            "h_mean": [1500.2, 1501.3, 1502.1, 1503.4],
            "time": ["2021-01-01 10:00:00", "2021-01-01 10:00:01", "2021-01-01 10:00:02", "2021-01-01 10:00:03"],
            "snowcover": [0, 1, 0, 1],
            "beam": ["gt1l"] * 4,
        }
    )

    def test_normalize_track(self) -> None:
        """Check conversion of an ICESat-2 export to the standard track table."""
        track = normalize_track(self.raw)

        assert list(track.columns) == TRACK_COLUMNS
        assert np.array_equal(track["easting"], self.raw["Easting"])
        assert np.array_equal(track["elevation"], self.raw["h_mean"])
        assert pd.api.types.is_datetime64_any_dtype(track["time"])
        assert np.array_equal(track["snow_free"], [True, False, True, False])

        subset = snow_free_subset(track)
        assert list(subset.index) == [0, 2]

    def test_custom_columns(self) -> None:
        """Check that column names can be remapped, and that points are snow-free without snow cover."""
        raw = self.raw.rename(columns={"Easting": "x", "Northing": "y"}).drop(columns="snowcover")
        track = normalize_track(raw, columns={"easting": "x", "northing": "y"})

        assert np.array_equal(track["northing"], self.raw["Northing"])
        assert np.all(track["snow_free"])

        track = normalize_track(self.raw, columns={"snow_cover": None})
        assert np.all(track["snow_free"])

    def test_errors(self) -> None:
        with pytest.raises(ValueError, match="Unknown track column keys"):
            normalize_track(self.raw, columns={"height": "h_mean"})
        with pytest.raises(ValueError, match="missing the columns"):
            normalize_track(self.raw.drop(columns="h_mean"))
        with pytest.raises(FileNotFoundError, match="Track file does not exist"):
            read_track_csv("this_file_does_not_exist.csv")

    def test_csv(self, tmp_path) -> None:  # type: ignore
        """Check reading a track and writing a table of reference elevations."""
        path = tmp_path / "track.csv"
        self.raw.to_csv(path, index=False)

        track = read_track_csv(str(path))
        pd.testing.assert_frame_equal(track, normalize_track(self.raw))

        path_out = tmp_path / "reference_elevations.csv"
        write_reference_elevations(track, str(path_out))
        assert list(pd.read_csv(path_out).columns) == TRACK_COLUMNS
