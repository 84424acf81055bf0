"""Functions to test the sampling of reference rasters in footprints."""

from __future__ import annotations

import numpy as np
import pandas as pd
import pytest

from xtrackdem.footprint import Footprints, footprint_corners
from xtrackdem.grid import RasterGrid
from xtrackdem.sampling import (
    SAMPLE_COLUMNS,
    bisquare_weights,
    centerline_distance,
    sample_footprint,
    sample_footprints,
)
from xtrackdem.transects import transect_flags

from .conftest import make_grid


def constant(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    return np.full(np.shape(x), 1234.5)


def plane(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    return 500.0 + 2.0 * x + 3.0 * y


def sample_track(
    grid: RasterGrid, x: list[float], y: list[float], dates: list[str], length: float = 40.0
) -> tuple[Footprints, pd.DataFrame]:
    """Footprints and sample table of a track."""
    flags = transect_flags(pd.to_datetime(dates))
    footprints = footprint_corners(x, y, length=length, flags=flags)
    return footprints, sample_footprints(grid, x, y, footprints)


class TestKernel:
    def test_bisquare_weights(self) -> None:
        """Check the kernel values at its center, inside, at and beyond its cutoff."""
        weights = bisquare_weights([0.0, 2.75, 5.5, 6.0, 100.0], maxdist=5.5)

        assert weights[0] == pytest.approx(15 / 16)
        assert weights[1] == pytest.approx(15 / 16 * 0.75**2)
        assert np.array_equal(weights[2:], [0.0, 0.0, 0.0])

        dist = np.linspace(0, 5.5, 50)
        assert np.all(np.diff(bisquare_weights(dist, maxdist=5.5)) < 0)

    def test_centerline_distance(self) -> None:
        """Check distances to the along-track line through a point."""
        heading = 30.0
        u = np.array([np.cos(np.radians(heading)), np.sin(np.radians(heading))])
        v = np.array([-u[1], u[0]])
        along = np.array([-20.0, -3.0, 0.0, 7.0, 20.0])

        x = 10.0 + along * u[0]
        y = 5.0 + along * u[1]
        assert np.allclose(centerline_distance(x, y, 10.0, 5.0, heading), 0.0)

        # Distance is the same on both sides of the line
        for side in [-1, 1]:
            x_off = x + side * 3.0 * v[0]
            y_off = y + side * 3.0 * v[1]
            assert np.allclose(centerline_distance(x_off, y_off, 10.0, 5.0, heading), 3.0)


class TestSampleFootprints:
    def test_constant_raster(self) -> None:
        """Check that all elevation estimates equal the raster value on a constant raster."""
        grid = make_grid(constant, size=100.0, cell=1.0)

        x = list(np.linspace(30.0, 70.0, 6))
        y = list(np.linspace(40.0, 60.0, 6))
        _, table = sample_track(grid, x, y, ["2021-01-01"] * 6)

        assert list(table.columns) == SAMPLE_COLUMNS
        assert np.all(table["count"] > 0)
        for col in ["weighted_mean_elevation", "unweighted_mean_elevation", "interpolated_elevation"]:
            assert np.allclose(table[col], 1234.5, rtol=1e-12)
        assert np.allclose(table["elevation_std"], 0)
        assert np.allclose(table["mean_slope"], 0)

    def test_cells_on_boundary(self) -> None:
        """Check that cells centered exactly on the footprint boundary are included."""
        grid = make_grid(plane, size=100.0, cell=1.0)

        # Heading east: the footprint of the middle point spans [30.5, 70.5] x [45, 56]
        _, table = sample_track(grid, [40.5, 50.5, 60.5], [50.5, 50.5, 50.5], ["2021-01-01"] * 3)

        assert table["count"][1] == 41 * 11
        assert table["unweighted_mean_elevation"][1] == pytest.approx(plane(50.5, 50.5))
        assert table["weighted_mean_elevation"][1] == pytest.approx(plane(50.5, 50.5))
        assert table["interpolated_elevation"][1] == pytest.approx(plane(50.5, 50.5))

    def test_weighted_mean(self) -> None:
        """Check that the weighted mean favors cells close to the along-track line."""
        grid = make_grid(lambda x, y: (y - 50.5) ** 2, size=100.0, cell=1.0)
        _, table = sample_track(grid, [40.5, 50.5, 60.5], [50.5, 50.5, 50.5], ["2021-01-01"] * 3)

        # 41 cells at each cross-track distance from -5 to 5
        dist = np.arange(-5.0, 6.0)
        weights = 15 / 16 * (1 - (dist / 5.5) ** 2) ** 2
        expected_weighted = np.sum(weights * dist**2) / np.sum(weights)

        assert table["unweighted_mean_elevation"][1] == pytest.approx(np.mean(dist**2))
        assert table["weighted_mean_elevation"][1] == pytest.approx(expected_weighted)
        assert table["weighted_mean_elevation"][1] < table["unweighted_mean_elevation"][1]
        assert table["elevation_std"][1] == pytest.approx(np.std(np.repeat(dist**2, 41), ddof=1))

    def test_single_cell_footprint(self) -> None:
        """Check that a footprint containing a single cell has zero standard deviations."""
        grid = make_grid(constant, size=300.0, cell=30.0)

        # Cell centers every 30 m: the 20 x 11 m footprint of the middle point only contains the one at (135, 135)
        _, table = sample_track(grid, [125.0, 135.0, 145.0], [135.0, 135.0, 135.0], ["2021-01-01"] * 3, length=20.0)

        assert table["count"][1] == 1
        assert table["unweighted_mean_elevation"][1] == pytest.approx(1234.5)
        assert table["weighted_mean_elevation"][1] == pytest.approx(1234.5)
        assert table["elevation_std"][1] == 0.0
        assert table["std_slope"][1] == 0.0
        # Aspect is undefined on a flat raster
        assert np.isnan(table["std_aspect"][1])

    def test_missing_cells(self) -> None:
        """Check that missing cells inside a footprint are ignored by the statistics."""
        grid = make_grid(constant, size=100.0, cell=1.0)
        elevation = grid.elevation.copy()
        elevation[45:55, 45:55] = np.nan
        grid = RasterGrid(elevation, grid.slope, grid.aspect, reference=grid.reference)

        _, table = sample_track(grid, [40.5, 50.5, 60.5], [50.5, 50.5, 50.5], ["2021-01-01"] * 3)

        assert np.allclose(table["weighted_mean_elevation"], 1234.5)
        assert np.allclose(table["unweighted_mean_elevation"], 1234.5)
        # The point itself is surrounded by missing cells
        assert np.isnan(table["interpolated_elevation"][1])

    def test_footprints_outside(self) -> None:
        """Check that footprints outside of the raster give NaN statistics without affecting other points."""
        grid = make_grid(plane, size=100.0, cell=1.0)

        x_in, y_in = [40.0, 50.0, 60.0], [30.0, 35.0, 40.0]
        x_out, y_out = [1000.0, 1010.0, 1020.0], [30.0, 35.0, 40.0]
        _, table_in = sample_track(grid, x_in, y_in, ["2021-01-01"] * 3)
        _, table = sample_track(grid, x_in + x_out, y_in + y_out, ["2021-01-01"] * 3 + ["2021-01-02"] * 3)

        pd.testing.assert_frame_equal(table.iloc[:3], table_in)

        assert np.all(table["count"][3:] == 0)
        assert table.drop(columns="count").iloc[3:].isna().all().all()

    def test_footprint_partially_outside(self) -> None:
        """Check that a footprint crossing the raster edge is sampled on its inside part."""
        grid = make_grid(plane, size=100.0, cell=1.0)
        _, table = sample_track(grid, [-10.5, 0.5, 10.5], [50.5, 50.5, 50.5], ["2021-01-01"] * 3)

        # Only columns with centers between 0.5 and 20.5 are in the raster
        assert table["count"][1] == 21 * 11
        assert np.isfinite(table["weighted_mean_elevation"][1])

    def test_undefined_footprint(self) -> None:
        """Check that a footprint without heading is not sampled."""
        grid = make_grid(plane, size=100.0, cell=1.0)
        stats = sample_footprint(grid, 50.0, 50.0, corners=np.full((4, 2), np.nan), heading=np.nan)

        assert stats["count"] == 0
        assert np.isnan(stats["weighted_mean_elevation"])
        assert np.isnan(stats["mean_slope"])

    def test_length_mismatch(self) -> None:
        grid = make_grid(plane, size=100.0, cell=1.0)
        footprints, _ = sample_track(grid, [40.0, 50.0, 60.0], [30.0, 35.0, 40.0], ["2021-01-01"] * 3)

        with pytest.raises(ValueError, match="same length"):
            sample_footprints(grid, [40.0, 50.0], [30.0, 35.0], footprints)
