import datetime
from pathlib import Path
from typing import List, Optional

import typer
from loguru import logger

from occurrence_grid.exceptions import GridVerificationError
from occurrence_grid.processor import locate_observations, materialize_window
from occurrence_grid.processor.chunks import iter_windows, resolve_chunks
from occurrence_grid.processor.pipeline import load_observations, build_index, run_recipe
from occurrence_grid.recipe.models import load_recipe
from occurrence_grid.storage import describe_grid, open_grid_dataset
from occurrence_grid.config import DIMENSIONS, GRID_VARIABLE
from occurrence_grid.utils.validate import verify_grid

app = typer.Typer(help="Grid occurrence records into CF presence/absence containers.")


@app.command()
def run(
    recipe: Path = typer.Argument(..., exists=True, dir_okay=False, help="Recipe yaml"),
    local: bool = typer.Option(False, "--local/--prefect", help="Run without prefect orchestration"),
):
    """Grid a single recipe."""
    start_time = datetime.datetime.now()
    grid_recipe = load_recipe(recipe)
    if local:
        summary = run_recipe(grid_recipe)
    else:
        from occurrence_grid.flow import occurrence_grid

        summary = occurrence_grid(config=grid_recipe.model_dump())
    time_elapsed = datetime.datetime.now() - start_time
    typer.echo(
        f"{summary.name}: {summary.cells} cells ({summary.located} observed, "
        f"{summary.unmatched} unmatched) written to {summary.output_path} in {time_elapsed}"
    )
    if summary.verification is not None and not summary.verification.ok:
        raise typer.Exit(code=1)


@app.command("run-all")
def run_all(
    config_dir: Optional[Path] = typer.Argument(None, help="Directory searched for recipe yamls"),
    recipes: Optional[List[Path]] = typer.Option(None, "--recipe", help="Run only these recipes"),
):
    """Grid every recipe found below a directory."""
    from occurrence_grid.flow import run_occurrence_grids

    summaries = run_occurrence_grids(
        recipes=[str(r) for r in recipes] if recipes else None,
        config_dir=str(config_dir) if config_dir else None,
    )
    for summary in summaries:
        typer.echo(f"{summary.name}: {summary.cells} cells -> {summary.output_path}")


@app.command()
def describe(
    path: Path = typer.Argument(..., exists=True, help="netCDF file or zarr store"),
    output_format: Optional[str] = typer.Option(None, "--format", help="netcdf or zarr"),
):
    """Print a summary of a written grid."""
    typer.echo(describe_grid(path, output_format))


@app.command()
def verify(
    recipe: Path = typer.Argument(..., exists=True, dir_okay=False, help="Recipe yaml"),
    strict: bool = typer.Option(False, "--strict", help="Fail on any mismatch"),
):
    """Compare a written grid with its recipe's observations."""
    grid_recipe = load_recipe(recipe)
    observations = load_observations(grid_recipe)
    index, _ = build_index(observations, grid_recipe)

    located = locate_observations(observations, index)
    chunks = resolve_chunks(index.shape, grid_recipe.chunking)

    with open_grid_dataset(grid_recipe.output_path, grid_recipe.output_format, decode=False) as ds:
        written = ds[GRID_VARIABLE]
        written_shape = tuple(written.sizes[d] for d in DIMENSIONS)
        if written_shape != index.shape:
            message = f"Written grid has shape {written_shape}, observations give {index.shape}"
            logger.error(message)
            typer.echo(message)
            raise typer.Exit(code=1)

        try:
            report = verify_grid(
                iter_windows(index.shape, chunks),
                lambda window: materialize_window(located, window),
                lambda window: written[window.slices()].values,
                strict=strict,
            )
        except GridVerificationError as e:
            typer.echo(str(e))
            raise typer.Exit(code=1)

    typer.echo(
        f"{'OK' if report.ok else 'MISMATCH'}: {report.written_values} written / "
        f"{report.expected_values} expected values, {report.mismatched_cells} mismatched cell(s)"
    )
    if not report.ok:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
