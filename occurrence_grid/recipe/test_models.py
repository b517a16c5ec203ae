from pathlib import Path

import pytest
import yaml
from pydantic import ValidationError

from occurrence_grid.recipe.models import ChunkOptions, ColumnMap, GridRecipe, load_recipe


def test_defaults():
    recipe = GridRecipe(name="demo", input_path="in.csv", output_path="out.nc")
    assert recipe.output_format == "netcdf"
    assert recipe.chunking.mode == "bulk"
    assert recipe.columns.taxon_id == "AphiaID"
    assert recipe.taxon_conflict == "first"
    assert recipe.verify


@pytest.mark.parametrize(
    "chunking",
    [{"mode": "row"}, {"chunks": {"depth": 2}}, {"chunks": {"lon": 0}}, {"staging_rows": 0}],
)
def test_invalid_chunking(chunking):
    with pytest.raises(ValidationError):
        ChunkOptions(**chunking)


def test_empty_column_name():
    with pytest.raises(ValidationError):
        ColumnMap(status=" ")


@pytest.mark.parametrize(
    "kwargs",
    [
        {"output_path": ""},
        {"output_format": "geotiff"},
        {"coordinate_precision": -1},
        {"taxon_conflict": "merge"},
    ],
)
def test_invalid_recipe(kwargs):
    config = {"name": "demo", "input_path": "in.csv", "output_path": "out.nc"}
    config.update(kwargs)
    with pytest.raises(ValidationError):
        GridRecipe(**config)


def test_load_recipe_resolves_paths(tmp_path):
    recipe_dir = tmp_path / "flow_configs"
    recipe_dir.mkdir()
    path = recipe_dir / "north_sea.yaml"
    path.write_text(
        yaml.safe_dump(
            {
                "input_path": "../data/raw/dataset.csv",
                "output_path": "/tmp/grids/north_sea.zarr",
                "output_format": "zarr",
                "chunking": {"mode": "taxon", "staging_path": "staged.csv"},
                "metadata": {"title": "North Sea", "extra": {"keywords": "cetaceans"}},
            }
        )
    )
    recipe = load_recipe(path)

    assert recipe.name == "north_sea"
    assert Path(recipe.input_path) == recipe_dir / "../data/raw/dataset.csv"
    assert recipe.output_path == "/tmp/grids/north_sea.zarr"
    assert Path(recipe.chunking.staging_path) == recipe_dir / "staged.csv"
    assert recipe.metadata.extra == {"keywords": "cetaceans"}


def test_demo_recipes_load():
    config_dir = Path(__file__).parents[2] / "flow_configs"
    for path in sorted(config_dir.glob("*.yaml")):
        recipe = load_recipe(path)
        assert Path(recipe.input_path).name == "dataset.csv"


def test_load_empty_recipe(tmp_path):
    path = tmp_path / "empty.yaml"
    path.write_text("")
    with pytest.raises(ValidationError) as exc:
        load_recipe(path)
    assert "input_path" in str(exc.value)
    assert "output_path" in str(exc.value)
