from pathlib import Path

import netCDF4
import numpy as np
from loguru import logger

from occurrence_grid.config import (
    DIMENSIONS,
    GRID_VARIABLE,
    TIME_FILL_VALUE,
    STRING_DIM,
    STRING_LENGTH,
)
from occurrence_grid.metadata import variable_attributes, crs_attributes, fixed_width_strings

from .base import GridStore


class NetCDFGridStore(GridStore):
    format_name = "netcdf"

    def __init__(self, *args, nc_format: str = "NETCDF4", complevel: int = 4, **kwargs):
        super().__init__(*args, **kwargs)
        self.nc_format = nc_format
        self.complevel = complevel
        self._nc = None

    def _create(self):
        logger.info(f"Creating netCDF grid {self.path} {self.index.shape}")
        Path(self.path).parent.mkdir(parents=True, exist_ok=True)
        self._nc = nc = netCDF4.Dataset(self.path, mode="w", format=self.nc_format)
        attrs = variable_attributes()

        # Each dimension has a coordinate variable of the same name
        for axis in DIMENSIONS:
            nc.createDimension(axis, len(self.index[axis]))
        nc.createDimension(STRING_DIM, STRING_LENGTH)

        for axis, vartype in zip(DIMENSIONS, ("f8", "f8", "f8", "i4")):
            fill_value = TIME_FILL_VALUE if axis == "time" else None
            var = nc.createVariable(axis, vartype, (axis,), fill_value=fill_value)
            var.setncatts(attrs[axis])
            var[:] = self.index[axis]

        # Taxon attributes share the aphiaid dimension
        for name in ("taxon_name", "taxon_lsid"):
            var = nc.createVariable(name, "S1", ("aphiaid", STRING_DIM))
            var.setncatts(attrs[name])
            var[:] = netCDF4.stringtochar(fixed_width_strings(self.taxa[name], STRING_LENGTH))

        crs = nc.createVariable("crs", "i4", ())
        crs.setncatts(crs_attributes())

        grid = nc.createVariable(
            GRID_VARIABLE,
            "i4",
            DIMENSIONS,
            fill_value=self.missing_value,
            zlib=self.nc_format.startswith("NETCDF4"),
            complevel=self.complevel,
            chunksizes=self.storage_chunks if self.nc_format.startswith("NETCDF4") else None,
        )
        grid.setncatts(attrs[GRID_VARIABLE])

        nc.setncatts(self.global_attrs)

    def _write(self, window, data):
        self._nc[GRID_VARIABLE][window.slices()] = data

    def _read(self, window):
        values = self._nc[GRID_VARIABLE][window.slices()]
        return np.ma.filled(values, self.missing_value)

    def _sync(self):
        self._nc.sync()

    def _close(self):
        if self._nc is not None and self._nc.isopen():
            logger.info(f"Closing netCDF grid {self.path}")
            self._nc.close()
