from typing import Any, Dict, Tuple

import pandas as pd
from prefect import task, get_run_logger

from occurrence_grid.processor import DimensionIndex
from occurrence_grid.processor import pipeline
from occurrence_grid.recipe.models import GridRecipe


@task
def get_grid_recipe(config_json: Dict[str, Any]) -> GridRecipe:
    logger = get_run_logger()
    recipe = GridRecipe(**config_json)
    logger.info(f"Recipe {recipe.name}: {recipe.input_path} -> {recipe.output_path}")
    logger.info(f"Chunking: {recipe.chunking.model_dump()}")
    return recipe


@task
def load_observations(recipe: GridRecipe) -> pd.DataFrame:
    logger = get_run_logger()
    logger.info("=== Loading observations ===")
    observations = pipeline.load_observations(recipe)
    logger.info(f"Loaded {len(observations)} observations from {recipe.input_path}")
    return observations


@task
def build_index(observations: pd.DataFrame, recipe: GridRecipe) -> Tuple[DimensionIndex, pd.DataFrame]:
    logger = get_run_logger()
    logger.info("=== Building dimension index ===")
    index, taxa = pipeline.build_index(observations, recipe)
    logger.info(f"Grid shape {index.shape} with {len(taxa)} taxa")
    return index, taxa


@task
def write_grid(
    recipe: GridRecipe,
    observations: pd.DataFrame,
    index: DimensionIndex,
    taxa: pd.DataFrame,
) -> pipeline.GridSummary:
    logger = get_run_logger()
    logger.info("=== Materializing and writing grid ===")
    summary = pipeline.create_grid(recipe, observations, index, taxa)
    if summary.unmatched:
        logger.warning(f"{summary.unmatched} observation(s) were not on the grid")
    report = summary.verification
    if report is not None and not report.ok:
        logger.warning(f"Written grid does not match the observations: {report.model_dump()}")
    return summary
