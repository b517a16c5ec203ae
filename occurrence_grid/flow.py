from typing import Any, Dict, List, Optional

import os

import fsspec
from prefect import flow, get_run_logger

from occurrence_grid.config import RECIPE_DIR
from occurrence_grid.recipe.models import load_recipe
from occurrence_grid.tasks import (
    get_grid_recipe,
    load_observations,
    build_index,
    write_grid,
)


@flow
def occurrence_grid(config: Dict[str, Any]):
    """
    Grid one occurrence table into a presence/absence container.

    Args:
        config (Dict): a grid recipe, see `occurrence_grid.recipe.models.GridRecipe`
    """
    logger = get_run_logger()

    recipe = get_grid_recipe(config)
    observations = load_observations(recipe)
    index, taxa = build_index(observations, recipe)
    summary = write_grid(recipe, observations, index, taxa)

    logger.info(
        f"Finished {summary.name}: {summary.cells} cells in {summary.windows} window(s) "
        f"-> {summary.output_path}"
    )
    return summary


@flow
def run_occurrence_grids(
    recipes: Optional[List[str]] = None,
    config_dir: Optional[str] = None,
):
    """
    Runs `occurrence_grid` for each recipe, in sequence.

    Args:
        recipes (Optional[List[str]]): paths of recipe yamls to run. When empty every
            yaml found below `config_dir` is run.
        config_dir (Optional[str]): directory searched for recipes, defaults to
            `flow_configs` in the working directory
    """
    logger = get_run_logger()
    logger.info("Starting parent flow...")

    if recipes:
        all_paths = list(recipes)
        logger.info(f"Running specified recipes: {all_paths}")
    else:
        config_dir = config_dir or os.path.join(os.getcwd(), RECIPE_DIR)
        fs = fsspec.filesystem("")
        glob_path = config_dir + "/**/*.yaml"
        logger.info(f"Searching for recipe yamls at path: {glob_path}")
        all_paths = sorted(fs.glob(glob_path))

    summaries = []
    for recipe_path in all_paths:
        recipe = load_recipe(recipe_path)
        logger.info(f"Launching child flow: {recipe.name}")
        summaries.append(occurrence_grid(config=recipe.model_dump()))

    logger.info(f"Parent flow complete, {len(summaries)} grid(s) written")
    return summaries
