import dask.array as da
import numpy as np
import xarray as xr
import zarr
from loguru import logger

from occurrence_grid.config import (
    DIMENSIONS,
    GRID_VARIABLE,
    GRID_DTYPE,
    TIME_FILL_VALUE,
    STRING_DIM,
    STRING_LENGTH,
)
from occurrence_grid.metadata import variable_attributes, crs_attributes, fixed_width_strings

from .base import GridStore


class ZarrGridStore(GridStore):
    """
    Zarr layout written through xarray.

    The grid is declared from a lazy dask template so no data is written
    at creation; windows are then stored with region writes and cells
    that are never written read back as the fill value.
    """

    format_name = "zarr"

    def __init__(self, *args, clevel: int = 3, **kwargs):
        super().__init__(*args, **kwargs)
        self.compressor = zarr.Blosc(cname="zstd", clevel=clevel, shuffle=2)

    def template(self) -> xr.Dataset:
        attrs = variable_attributes()
        coords = {axis: (axis, self.index[axis], attrs[axis]) for axis in DIMENSIONS}
        coords["aphiaid"] = ("aphiaid", self.index.aphiaid.astype("int32"), attrs["aphiaid"])
        grid = da.full(
            self.index.shape,
            self.missing_value,
            dtype=GRID_DTYPE,
            chunks=self.storage_chunks,
        )
        data_vars = {
            GRID_VARIABLE: (DIMENSIONS, grid, attrs[GRID_VARIABLE]),
            "crs": ((), np.int32(0), crs_attributes()),
        }
        for name in ("taxon_name", "taxon_lsid"):
            chars = fixed_width_strings(self.taxa[name], STRING_LENGTH).view("S1")
            data_vars[name] = (
                ("aphiaid", STRING_DIM),
                chars.reshape(len(self.taxa), STRING_LENGTH),
                attrs[name],
            )
        return xr.Dataset(data_vars=data_vars, coords=coords, attrs=self.global_attrs)

    def encoding(self):
        return {
            GRID_VARIABLE: dict(
                compressor=self.compressor,
                dtype=GRID_DTYPE,
                chunks=self.storage_chunks,
                _FillValue=self.missing_value,
            ),
            "time": {"_FillValue": TIME_FILL_VALUE},
        }

    def _create(self):
        logger.info(f"Creating zarr grid {self.path} {self.index.shape}")
        self.template().to_zarr(
            self.path,
            mode="w",
            compute=False,
            consolidated=True,
            encoding=self.encoding(),
        )

    def _write(self, window, data):
        xr.Dataset({GRID_VARIABLE: (DIMENSIONS, data)}).to_zarr(
            self.path, mode="r+", region=window.region()
        )

    def _read(self, window):
        zg = zarr.open_group(self.path, mode="r")
        return zg[GRID_VARIABLE][window.slices()]

    def _close(self):
        if self._open:
            logger.info(f"Consolidating zarr metadata {self.path}")
            zarr.consolidate_metadata(self.path)
