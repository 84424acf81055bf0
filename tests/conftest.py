from __future__ import annotations

from typing import Callable, Iterable

import geoutils as gu
import numpy as np
import pandas as pd
import pytest
import rasterio as rio

from xtrackdem._typing import NDArrayf
from xtrackdem.grid import ProjectedReference, RasterGrid
from xtrackdem.terrain import slope_aspect


def surface(x: NDArrayf, y: NDArrayf) -> NDArrayf:
    """Smooth synthetic terrain, neither flat nor planar."""
    return 1000.0 + 0.3 * x - 0.2 * y + 8.0 * np.sin(x / 17.0) * np.cos(y / 23.0)


def gentle_surface(x: NDArrayf, y: NDArrayf) -> NDArrayf:
    """Synthetic terrain with curvature small enough for footprint means to match point elevations."""
    return 1000.0 + 0.3 * x - 0.2 * y + 3.0 * np.sin(x / 40.0) * np.cos(y / 50.0)


def make_grid(
    func: Callable[[NDArrayf, NDArrayf], NDArrayf],
    size: float = 200.0,
    cell: float = 1.0,
    rows_start_from: str = "north",
) -> RasterGrid:
    """Square projected raster grid with origin (0, 0), with elevations sampled from a function at cell centers."""
    nb_cells = int(round(size / cell))
    centers = (np.arange(nb_cells) + 0.5) * cell
    y = centers[::-1] if rows_start_from == "north" else centers
    xx, yy = np.meshgrid(centers, y)
    elevation = func(xx, yy)
    slope, aspect = slope_aspect(elevation, resolution=cell, rows_start_from=rows_start_from)  # type: ignore
    reference = ProjectedReference(
        x_limits=(0.0, size),
        y_limits=(0.0, size),
        cell_extent_x=cell,
        cell_extent_y=cell,
        rows_start_from=rows_start_from,  # type: ignore
    )
    return RasterGrid(elevation, slope, aspect, reference=reference)


def make_track(
    lines: Iterable[tuple[tuple[float, float], tuple[float, float]]],
    dates: Iterable[str],
    spacing: float,
) -> pd.DataFrame:
    """Standard track table with one straight transect per date, points every `spacing` along each line."""
    tables = []
    for (start, end), date in zip(lines, dates):
        length = np.hypot(end[0] - start[0], end[1] - start[1])
        frac = np.arange(0, length, spacing) / length
        tables.append(
            pd.DataFrame(
                {
                    "easting": start[0] + frac * (end[0] - start[0]),
                    "northing": start[1] + frac * (end[1] - start[1]),
                    "elevation": np.zeros(len(frac)),
                    "time": pd.Timestamp(date) + pd.to_timedelta(np.arange(len(frac)), unit="s"),
                    "snow_free": np.ones(len(frac), dtype=bool),
                }
            )
        )
    return pd.concat(tables, ignore_index=True)


@pytest.fixture(scope="session")  # type: ignore
def surface_grid() -> RasterGrid:
    """Synthetic terrain on a 160 x 160 extent with half-unit cells."""
    return make_grid(surface, size=160.0, cell=0.5)




def save_raster(
    path: str, data: NDArrayf, transform: rio.transform.Affine, crs: int, nodata: float | None = -9999.0
) -> str:
    """Write an array to a single-band GeoTIFF."""
    gu.Raster.from_array(data=data.astype("float32"), transform=transform, crs=crs, nodata=nodata).save(path)
    return path


@pytest.fixture()  # type: ignore
def calibration_inputs(tmp_path) -> dict[str, str]:  # type: ignore
    """Reference DTM in UTM 11N and an ICESat-2-like CSV export with two snow-free and one snow-covered pass."""
    dtm = make_grid(gentle_surface, size=160.0, cell=1.0)
    path_dtm = save_raster(
        str(tmp_path / "dtm.tif"), dtm.elevation, transform=rio.transform.from_origin(0, 160, 1, 1), crs=32611
    )

    track = make_track(
        lines=[((45.0, 50.0), (115.0, 105.0)), ((45.0, 110.0), (115.0, 55.0)), ((50.0, 80.0), (110.0, 80.0))],
        dates=["2021-02-03", "2021-03-07", "2021-04-11"],
        spacing=5.0,
    )
    snowcover = (track["time"].dt.month == 4).astype(int)
    # Point elevations at true locations, track shifted by (-3, 2) and snow 1.5 m thick on the last pass
    csv = pd.DataFrame(
        {
            "Easting": track["easting"] - 3.0,
            "Northing": track["northing"] + 2.0,
            "h_mean": gentle_surface(track["easting"].to_numpy(), track["northing"].to_numpy()) + 1.5 * snowcover,
            "time": track["time"].dt.strftime("%Y-%m-%d %H:%M:%S"),
            "snowcover": snowcover,
        }
    )
    path_csv = str(tmp_path / "track.csv")
    csv.to_csv(path_csv, index=False)

    return {"path_to_elev": path_dtm, "path_to_csv": path_csv, "outputs": str(tmp_path / "outputs")}
