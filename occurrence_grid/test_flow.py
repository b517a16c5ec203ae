import pytest
import yaml
from prefect.testing.utilities import prefect_test_harness

from occurrence_grid.flow import occurrence_grid, run_occurrence_grids


@pytest.fixture(autouse=True, scope="module")
def prefect_test_fixture():
    with prefect_test_harness():
        yield


def write_recipe(directory, name, input_path, **kwargs):
    config = {"input_path": str(input_path), "output_path": f"{name}.nc", **kwargs}
    path = directory / f"{name}.yaml"
    path.write_text(yaml.safe_dump(config))
    return path


def test_occurrence_grid_flow(make_recipe):
    recipe = make_recipe(chunking={"mode": "taxon"})
    summary = occurrence_grid(config=recipe.model_dump())
    assert summary.name == "demo"
    assert summary.cells == 1200
    assert summary.windows == 4
    assert summary.verification.ok


def test_run_all_recipes_in_directory(tmp_path, demo_csv):
    config_dir = tmp_path / "flow_configs"
    (config_dir / "nested").mkdir(parents=True)
    write_recipe(config_dir, "bulk", demo_csv)
    write_recipe(config_dir / "nested", "per_taxon", demo_csv, chunking={"mode": "taxon"})

    summaries = run_occurrence_grids(config_dir=str(config_dir))
    assert sorted(s.name for s in summaries) == ["bulk", "per_taxon"]
    assert (config_dir / "bulk.nc").exists()
    assert (config_dir / "nested" / "per_taxon.nc").exists()


def test_run_selected_recipes(tmp_path, demo_csv):
    selected = write_recipe(tmp_path, "selected", demo_csv, output_format="zarr",
                            output_path="selected.zarr")
    write_recipe(tmp_path, "skipped", demo_csv)

    summaries = run_occurrence_grids(recipes=[str(selected)])
    assert [s.name for s in summaries] == ["selected"]
    assert summaries[0].output_format == "zarr"
    assert not (tmp_path / "skipped.nc").exists()
