from typing import Dict, Tuple

import numpy as np
import pandas as pd
from loguru import logger

from occurrence_grid.config import DIMENSIONS, MISSING_VALUE, GRID_DTYPE
from occurrence_grid.exceptions import TaxonConflictError
from occurrence_grid.utils.validate import (
    check_for_taxon_conflicts,
    check_for_duplicate_coordinates,
)

from .chunks import Window, full_window

_AXIS_DTYPES = {"lon": "float64", "lat": "float64", "time": "float64", "aphiaid": "int64"}


class DimensionIndex:
    """Sorted, duplicate free coordinate values along the four grid axes"""

    def __init__(self, lon, lat, time, aphiaid):
        self._coords = {}
        for axis, values in zip(DIMENSIONS, (lon, lat, time, aphiaid)):
            values = np.asarray(values, dtype=_AXIS_DTYPES[axis])
            if values.ndim != 1 or values.size == 0:
                raise ValueError(f"Axis {axis} must be a non-empty 1-D sequence")
            if np.any(np.diff(values) <= 0):
                raise ValueError(f"Axis {axis} must be strictly increasing")
            values.flags.writeable = False
            self._coords[axis] = values

    def __getitem__(self, axis: str) -> np.ndarray:
        return self._coords[axis]

    @property
    def lon(self):
        return self._coords["lon"]

    @property
    def lat(self):
        return self._coords["lat"]

    @property
    def time(self):
        return self._coords["time"]

    @property
    def aphiaid(self):
        return self._coords["aphiaid"]

    @property
    def shape(self) -> Tuple[int, ...]:
        return tuple(len(self._coords[axis]) for axis in DIMENSIONS)

    @property
    def size(self) -> int:
        return int(np.prod(self.shape))

    def coords(self) -> Dict[str, np.ndarray]:
        return dict(self._coords)

    def positions(self, frame: pd.DataFrame) -> np.ndarray:
        """Integer position of every row along each axis, -1 where unmatched"""
        return np.column_stack(
            [
                pd.Index(self._coords[axis]).get_indexer(
                    frame[axis].to_numpy(dtype=_AXIS_DTYPES[axis])
                )
                for axis in DIMENSIONS
            ]
        )

    def __eq__(self, other):
        if not isinstance(other, DimensionIndex):
            return NotImplemented
        return all(np.array_equal(self[a], other[a]) for a in DIMENSIONS)

    def __repr__(self):
        dims = ", ".join(f"{axis}: {n}" for axis, n in zip(DIMENSIONS, self.shape))
        return f"DimensionIndex({dims})"


class LocatedObservations:
    """Observations resolved to grid positions, deduplicated, unmatched removed"""

    def __init__(self, index: DimensionIndex, positions: np.ndarray, status: np.ndarray,
                 unmatched: int = 0, duplicates: int = 0):
        self.index = index
        self.positions = np.asarray(positions, dtype="int64").reshape(-1, len(DIMENSIONS))
        self.status = np.asarray(status, dtype=GRID_DTYPE)
        self.unmatched = unmatched
        self.duplicates = duplicates

    def __len__(self):
        return len(self.status)

    @property
    def shape(self):
        return self.index.shape

    def select(self, window: Window) -> Tuple[np.ndarray, np.ndarray]:
        """Positions relative to the window origin, and statuses, inside a window"""
        start = np.asarray(window.offsets, dtype="int64")
        stop = start + np.asarray(window.shape, dtype="int64")
        inside = np.all((self.positions >= start) & (self.positions < stop), axis=1)
        return self.positions[inside] - start, self.status[inside]


def round_coordinates(observations: pd.DataFrame, precision: int = None) -> pd.DataFrame:
    if precision is None:
        return observations
    logger.info(f"Rounding coordinates to {precision} decimal(s)")
    rounded = observations.copy()
    rounded["lon"] = rounded["lon"].round(precision)
    rounded["lat"] = rounded["lat"].round(precision)
    return rounded


def build_dimension_index(observations: pd.DataFrame) -> DimensionIndex:
    logger.info("Building dimension index ...")
    index = DimensionIndex(*(np.unique(observations[axis].to_numpy()) for axis in DIMENSIONS))
    logger.info(f"{index} -> {index.size} cells")
    return index


def build_taxon_table(observations: pd.DataFrame, conflict: str = "first") -> pd.DataFrame:
    """One row per taxon id, sorted by id"""
    taxa = observations[["aphiaid", "taxon_name", "taxon_lsid"]]
    conflicting = check_for_taxon_conflicts(taxa)
    if conflicting:
        message = (
            f"{len(conflicting)} taxon id(s) appear with conflicting names or LSIDs: "
            f"{', '.join(map(str, conflicting))}"
        )
        if conflict == "error":
            raise TaxonConflictError(message)
        logger.warning(f"{message}. Keeping the {conflict} seen attributes.")
    keep = "first" if conflict == "error" else conflict
    return (
        taxa.drop_duplicates(subset="aphiaid", keep=keep)
        .sort_values("aphiaid", kind="stable")
        .reset_index(drop=True)
    )


def locate_observations(observations: pd.DataFrame, index: DimensionIndex) -> LocatedObservations:
    """
    Match every observation to its cell by the exact 4-tuple of coordinate
    values. Observations whose tuple is not on the grid are dropped, and
    duplicated tuples keep the status of the last observation.
    """
    positions = index.positions(observations)
    matched = np.all(positions >= 0, axis=1)
    unmatched = int((~matched).sum())
    if unmatched:
        logger.warning(f"{unmatched} observation(s) do not fall on the grid and are excluded")

    located = pd.DataFrame(positions[matched], columns=list(DIMENSIONS))
    located["status"] = observations["status"].to_numpy()[matched]
    located, duplicates = check_for_duplicate_coordinates(located, list(DIMENSIONS))

    return LocatedObservations(
        index,
        located[list(DIMENSIONS)].to_numpy(),
        located["status"].to_numpy(),
        unmatched=unmatched,
        duplicates=duplicates,
    )


def materialize_window(located: LocatedObservations, window: Window,
                       missing_value: int = MISSING_VALUE, dtype: str = GRID_DTYPE) -> np.ndarray:
    """Dense block for one window, missing_value wherever nothing was observed"""
    block = np.full(window.shape, missing_value, dtype=dtype)
    positions, status = located.select(window)
    if len(status):
        block[tuple(positions.T)] = status
    return block


def materialize_grid(located: LocatedObservations, missing_value: int = MISSING_VALUE,
                     dtype: str = GRID_DTYPE) -> np.ndarray:
    return materialize_window(located, full_window(located.shape), missing_value, dtype)
