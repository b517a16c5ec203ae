from contextlib import contextmanager
from pathlib import Path

import numpy as np
import xarray as xr
from loguru import logger

from occurrence_grid.config import GRID_VARIABLE, MISSING_VALUE
from occurrence_grid.processor.chunks import Window

from .base import GridStore
from .netcdf_store import NetCDFGridStore
from .zarr_store import ZarrGridStore

STORES = {
    "netcdf": NetCDFGridStore,
    "zarr": ZarrGridStore,
}


def infer_format(path) -> str:
    path = Path(path)
    if path.suffix == ".zarr" or (path.is_dir() and (path / ".zgroup").exists()):
        return "zarr"
    return "netcdf"


@contextmanager
def open_grid_store(path, index, taxa, global_attrs=None, output_format: str = None,
                    chunks=None, **kwargs):
    """
    Create a grid store and guarantee it is flushed and closed on exit,
    including when creation or a write fails part way.
    """
    output_format = output_format or infer_format(path)
    try:
        store_cls = STORES[output_format]
    except KeyError:
        raise ValueError(
            f"Unknown output format {output_format!r}, expected one of {', '.join(STORES)}"
        )
    store = store_cls(path, index, taxa, global_attrs=global_attrs, chunks=chunks, **kwargs)
    try:
        store.create()
        yield store
    finally:
        store.close()


def open_grid_dataset(path, output_format: str = None, decode: bool = True) -> xr.Dataset:
    output_format = output_format or infer_format(path)
    kwargs = {} if decode else dict(mask_and_scale=False, decode_times=False)
    if output_format == "zarr":
        return xr.open_zarr(path, **kwargs)
    return xr.open_dataset(path, engine="netcdf4", **kwargs)


def read_grid_window(path, window: Window, output_format: str = None) -> np.ndarray:
    with open_grid_dataset(path, output_format, decode=False) as ds:
        return ds[GRID_VARIABLE][window.slices()].values


def describe_grid(path, output_format: str = None, missing_value: int = MISSING_VALUE) -> str:
    """Header style summary of a written grid container"""
    with open_grid_dataset(path, output_format) as ds:
        grid = ds[GRID_VARIABLE]
        raw = open_grid_dataset(path, output_format, decode=False)
        try:
            values = raw[GRID_VARIABLE].values
        finally:
            raw.close()
        present = int((values == 1).sum())
        absent = int((values == 0).sum())
        missing = int((values == missing_value).sum())
        summary = (
            f"{ds}\n\n"
            f"{GRID_VARIABLE} {dict(grid.sizes)}: {grid.size} cells, "
            f"{present} present, {absent} absent, {missing} missing"
        )
    logger.info(f"Described grid {path}")
    return summary


__all__ = [
    "GridStore",
    "NetCDFGridStore",
    "ZarrGridStore",
    "STORES",
    "infer_format",
    "open_grid_store",
    "open_grid_dataset",
    "read_grid_window",
    "describe_grid",
]
