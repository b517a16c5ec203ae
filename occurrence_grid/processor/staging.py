"""
Staging the expanded long table on disk.

Every cell of the grid becomes one CSV row carrying its coordinates, taxon
attributes and status (empty when nothing was observed). Windows are later
rebuilt by streaming the file in bounded row chunks, so neither writing nor
reading the table needs the whole grid in memory.
"""
from pathlib import Path

import numpy as np
import pandas as pd
from loguru import logger

from occurrence_grid.config import DIMENSIONS, MISSING_VALUE, GRID_DTYPE

from . import LocatedObservations, DimensionIndex, materialize_window
from .chunks import Window

STAGED_COLUMNS = [*DIMENSIONS, "taxon_name", "taxon_lsid", "status"]


def expand_window(located: LocatedObservations, taxa: pd.DataFrame, window: Window,
                  missing_value: int = MISSING_VALUE) -> pd.DataFrame:
    """Long table rows for every cell of a window, in grid (C) order"""
    coords = [
        located.index[axis][offset:offset + extent] for axis, offset, extent in window
    ]
    mesh = np.meshgrid(*coords, indexing="ij")
    frame = pd.DataFrame({axis: m.ravel() for axis, m in zip(DIMENSIONS, mesh)})
    frame = frame.join(taxa.set_index("aphiaid"), on="aphiaid")

    status = materialize_window(located, window, missing_value).ravel()
    frame["status"] = pd.array(status, dtype="Int32")
    frame.loc[status == missing_value, "status"] = pd.NA
    return frame[STAGED_COLUMNS]


def stage_long_table(located: LocatedObservations, taxa: pd.DataFrame, path, windows,
                     missing_value: int = MISSING_VALUE) -> int:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Staging long table to {path}")
    rows = 0
    for window in windows:
        frame = expand_window(located, taxa, window, missing_value)
        frame.to_csv(path, mode="w" if rows == 0 else "a", header=rows == 0, index=False)
        rows += len(frame)
    logger.info(f"Staged {rows} rows")
    return rows


def read_staged_window(path, index: DimensionIndex, window: Window, chunksize: int = 100_000,
                       missing_value: int = MISSING_VALUE, dtype: str = GRID_DTYPE) -> np.ndarray:
    """Rebuild one window of the grid by filtering the staged table chunk by chunk"""
    block = np.full(window.shape, missing_value, dtype=dtype)
    start = np.asarray(window.offsets)
    stop = start + np.asarray(window.shape)
    reader = pd.read_csv(
        path,
        usecols=[*DIMENSIONS, "status"],
        chunksize=chunksize,
        float_precision="round_trip",
    )
    for chunk in reader:
        chunk = chunk.dropna(subset=["status"])
        if chunk.empty:
            continue
        positions = index.positions(chunk)
        inside = np.all((positions >= start) & (positions < stop), axis=1)
        if inside.any():
            block[tuple((positions[inside] - start).T)] = chunk["status"].to_numpy()[inside]
    return block
