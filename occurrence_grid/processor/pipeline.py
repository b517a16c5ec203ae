from functools import partial
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd
from loguru import logger
from pydantic import BaseModel

from occurrence_grid.config import GRID_DTYPE
from occurrence_grid.exceptions import GridStoreError
from occurrence_grid.ingest import read_observations
from occurrence_grid.metadata import build_global_attributes
from occurrence_grid.recipe.models import GridRecipe
from occurrence_grid.storage import open_grid_store
from occurrence_grid.utils.validate import VerificationReport, verify_grid

from . import (
    DimensionIndex,
    LocatedObservations,
    build_dimension_index,
    build_taxon_table,
    locate_observations,
    materialize_window,
    round_coordinates,
)
from .chunks import iter_windows, count_windows, resolve_chunks
from .staging import stage_long_table, read_staged_window


class GridSummary(BaseModel):
    name: str
    output_path: str
    output_format: str
    shape: Tuple[int, int, int, int]
    cells: int
    observations: int
    located: int
    unmatched: int
    duplicates: int
    chunks: Dict[str, int] = {}
    windows: int
    verification: Optional[VerificationReport] = None


def load_observations(recipe: GridRecipe) -> pd.DataFrame:
    observations = read_observations(recipe.input_path, recipe.columns)
    return round_coordinates(observations, recipe.coordinate_precision)


def build_index(observations: pd.DataFrame, recipe: GridRecipe) -> Tuple[DimensionIndex, pd.DataFrame]:
    index = build_dimension_index(observations)
    taxa = build_taxon_table(observations, conflict=recipe.taxon_conflict)
    return index, taxa


def write_windows(store, located: LocatedObservations, chunks: Dict[str, int],
                  staging_path=None, staging_rows: int = 100_000) -> int:
    """Materialize and write the grid one window at a time"""
    shape = located.shape
    if staging_path:
        stage_long_table(located, store.taxa, staging_path, iter_windows(shape, chunks),
                         store.missing_value)
        source = partial(read_staged_window, staging_path, located.index,
                         chunksize=staging_rows, missing_value=store.missing_value)
    else:
        source = partial(materialize_window, located, missing_value=store.missing_value)

    total = count_windows(shape, chunks)
    logger.info(f"Writing {total} window(s) of up to {store.storage_chunks} cells")
    for window in iter_windows(shape, chunks):
        store.write_window(window, source(window))
    if store.windows_written != total:
        raise GridStoreError(f"Wrote {store.windows_written} of {total} window(s) to {store.path}")
    return store.windows_written


def create_grid(
    recipe: GridRecipe,
    observations: pd.DataFrame,
    index: DimensionIndex,
    taxa: pd.DataFrame,
) -> GridSummary:
    located = locate_observations(observations, index)
    chunks = resolve_chunks(index.shape, recipe.chunking, itemsize=np.dtype(GRID_DTYPE).itemsize)
    attrs = build_global_attributes(index, recipe.metadata, input_path=recipe.input_path)

    report = None
    with open_grid_store(
        recipe.output_path,
        index,
        taxa,
        global_attrs=attrs,
        output_format=recipe.output_format,
        chunks=chunks,
    ) as store:
        windows = write_windows(
            store,
            located,
            chunks,
            staging_path=recipe.chunking.staging_path,
            staging_rows=recipe.chunking.staging_rows,
        )
        store.sync()
        if recipe.verify:
            report = verify_grid(
                iter_windows(index.shape, chunks),
                partial(materialize_window, located, missing_value=store.missing_value),
                store.read_window,
                missing_value=store.missing_value,
                strict=recipe.strict_verify,
            )

    summary = GridSummary(
        name=recipe.name,
        output_path=recipe.output_path,
        output_format=recipe.output_format,
        shape=index.shape,
        cells=index.size,
        observations=len(observations),
        located=len(located),
        unmatched=located.unmatched,
        duplicates=located.duplicates,
        chunks=chunks,
        windows=windows,
        verification=report,
    )
    logger.info(
        f"Grid {summary.name} written to {summary.output_path}: "
        f"{summary.cells} cells, {summary.located} observed"
    )
    return summary


def run_recipe(recipe: GridRecipe) -> GridSummary:
    """load -> index -> materialize -> write -> flush -> close"""
    logger.info(f"=== Gridding {recipe.name} ===")
    observations = load_observations(recipe)
    index, taxa = build_index(observations, recipe)
    return create_grid(recipe, observations, index, taxa)
