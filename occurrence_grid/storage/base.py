from typing import Any, Dict

import numpy as np
import pandas as pd

from occurrence_grid.config import DIMENSIONS, MISSING_VALUE, GRID_DTYPE
from occurrence_grid.exceptions import GridStoreError, GridStoreClosedError, WindowShapeError
from occurrence_grid.processor.chunks import Window, full_window, storage_chunks


class GridStore:
    """
    Container for the presence/absence grid, its coordinates and taxa.

    Subclasses declare the container layout in `create` and implement the
    raw slice reads and writes. Windows may be written in any order until
    the store is closed.
    """

    format_name = None

    def __init__(
        self,
        path,
        index,
        taxa: pd.DataFrame,
        global_attrs: Dict[str, Any] = None,
        chunks: Dict[str, int] = None,
        missing_value: int = MISSING_VALUE,
    ):
        self.path = str(path)
        self.index = index
        self.taxa = taxa
        self.global_attrs = global_attrs or {}
        self.chunks = chunks or {}
        self.missing_value = missing_value
        self.windows_written = 0
        self._open = False
        self._closed = False

    @property
    def is_open(self) -> bool:
        return self._open and not self._closed

    @property
    def storage_chunks(self):
        return storage_chunks(self.index.shape, self.chunks)

    def create(self):
        if self._open or self._closed:
            raise GridStoreError(f"Grid store {self.path} was already created")
        self._check_taxa()
        self._create()
        self._open = True

    def write_window(self, window: Window, data) -> None:
        self._check_open()
        data = np.asarray(data, dtype=GRID_DTYPE)
        self._check_window(window, data.shape)
        self._write(window, data)
        self.windows_written += 1

    def read_window(self, window: Window) -> np.ndarray:
        self._check_open()
        self._check_window(window, window.shape)
        return np.asarray(self._read(window), dtype=GRID_DTYPE)

    def read_grid(self) -> np.ndarray:
        return self.read_window(full_window(self.index.shape))

    def sync(self) -> None:
        self._check_open()
        self._sync()

    def close(self) -> None:
        """Flush and release the container, also after a failed `create`"""
        if self._closed:
            return
        try:
            if self._open:
                self._sync()
        finally:
            self._closed = True
            self._close()

    def _check_open(self):
        if self._closed:
            raise GridStoreClosedError(f"Grid store {self.path} is closed")
        if not self._open:
            raise GridStoreError(f"Grid store {self.path} has not been created")

    def _check_taxa(self):
        ids = self.taxa["aphiaid"].to_numpy()
        if len(ids) != len(self.index.aphiaid) or not np.array_equal(ids, self.index.aphiaid):
            raise GridStoreError(
                f"Taxon table has {len(ids)} rows but the aphiaid axis has {len(self.index.aphiaid)} values"
            )

    def _check_window(self, window: Window, shape):
        if tuple(window.axes) != DIMENSIONS:
            raise WindowShapeError(f"Window axes {window.axes} do not match grid axes {DIMENSIONS}")
        if tuple(shape) != window.shape:
            raise WindowShapeError(f"Data of shape {tuple(shape)} does not fit {window}")
        for (axis, offset, extent), length in zip(window, self.index.shape):
            if offset < 0 or extent < 1 or offset + extent > length:
                raise WindowShapeError(f"{window} is outside the {axis} axis of length {length}")

    def _create(self):
        raise NotImplementedError

    def _write(self, window: Window, data: np.ndarray):
        raise NotImplementedError

    def _read(self, window: Window) -> np.ndarray:
        raise NotImplementedError

    def _sync(self):
        pass

    def _close(self):
        pass
