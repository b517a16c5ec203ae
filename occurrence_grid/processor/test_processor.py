import numpy as np
import pandas as pd
import pytest

from occurrence_grid.config import MISSING_VALUE
from occurrence_grid.conftest import DEMO_ROWS, make_table
from occurrence_grid.exceptions import TaxonConflictError
from occurrence_grid.ingest import parse_observations
from occurrence_grid.processor import (
    DimensionIndex,
    build_dimension_index,
    build_taxon_table,
    locate_observations,
    materialize_grid,
    materialize_window,
    round_coordinates,
)
from occurrence_grid.processor.chunks import iter_windows


@pytest.fixture
def index(observations):
    return build_dimension_index(observations)


def test_dimension_index_shape(index):
    assert index.shape == (10, 10, 3, 4)
    assert index.size == 1200
    assert index.aphiaid.tolist() == [137087, 137094, 137111, 137117]
    assert index.time.tolist() == [18064.0, 18078.0, 18123.0]
    for axis in ("lon", "lat", "time", "aphiaid"):
        assert np.all(np.diff(index[axis]) > 0)


def test_dimension_index_is_read_only(index):
    with pytest.raises(ValueError):
        index.lon[0] = 0.0


@pytest.mark.parametrize(
    "lon",
    [[1.0, 1.0, 2.0], [2.0, 1.0], []],
)
def test_dimension_index_rejects_unsorted_axes(lon):
    with pytest.raises(ValueError):
        DimensionIndex(lon, [1.0], [0.0], [1])


def test_taxon_table(observations):
    taxa = build_taxon_table(observations)
    assert taxa.aphiaid.tolist() == [137087, 137094, 137111, 137117]
    assert taxa.taxon_name.tolist() == [
        "Balaenoptera acutorostrata",
        "Delphinus delphis",
        "Tursiops truncatus",
        "Phocoena phocoena",
    ]


def test_taxon_conflict_policies(observations):
    conflicting = observations.copy()
    conflicting.loc[8, "taxon_name"] = "Phocoena sp."
    assert build_taxon_table(conflicting, "first").taxon_name.iloc[-1] == "Phocoena phocoena"
    assert build_taxon_table(conflicting, "last").taxon_name.iloc[-1] == "Phocoena sp."
    with pytest.raises(TaxonConflictError) as exc:
        build_taxon_table(conflicting, "error")
    assert "137117" in str(exc.value)


def test_error_policy_without_conflicts(observations, index):
    taxa = build_taxon_table(observations, "error")
    pd.testing.assert_frame_equal(taxa, build_taxon_table(observations))
    assert len(taxa) == 4
    assert taxa.aphiaid.tolist() == index.aphiaid.tolist()


def test_grid_values_match_observations(observations, index):
    located = locate_observations(observations, index)
    grid = materialize_grid(located)

    assert grid.shape == (10, 10, 3, 4)
    assert grid.dtype == np.int32
    assert int((grid != MISSING_VALUE).sum()) == 10
    assert int((grid == MISSING_VALUE).sum()) == 1190

    positions = index.positions(observations)
    for (i, j, k, m), status in zip(positions, observations.status):
        assert grid[i, j, k, m] == status


def test_first_observation_cell(observations, index):
    grid = materialize_grid(locate_observations(observations, index))
    # 2.15, 51.30, 2019-06-17, Phocoena phocoena (last taxon by id)
    assert grid[0, 0, 0, 3] == 1
    assert grid[0, 0, 0, 2] == MISSING_VALUE


def test_duplicate_cells_keep_last_status():
    rows = DEMO_ROWS + [DEMO_ROWS[0][:4] + (0,), DEMO_ROWS[1][:4] + (1,)]
    observations = parse_observations(make_table(rows))
    index = build_dimension_index(observations)
    located = locate_observations(observations, index)

    assert located.duplicates == 2
    assert len(located) == 10
    grid = materialize_grid(located)
    assert grid[0, 0, 0, 3] == 0
    assert int((grid != MISSING_VALUE).sum()) == 10


def test_unmatched_observations_are_excluded(observations, index):
    coords = index.coords()
    coords["lon"] = coords["lon"][1:]
    smaller = DimensionIndex(**coords)
    located = locate_observations(observations, smaller)

    assert located.unmatched == 1
    assert len(located) == 9
    grid = materialize_grid(located)
    assert grid.shape == (9, 10, 3, 4)
    assert int((grid != MISSING_VALUE).sum()) == 9


def test_custom_missing_value(observations, index):
    located = locate_observations(observations, index)
    grid = materialize_grid(located, missing_value=-1)
    assert int((grid == -1).sum()) == 1190


@pytest.mark.parametrize(
    "chunks",
    [{}, {"aphiaid": 1}, {"lon": 1, "lat": 1, "time": 1, "aphiaid": 1}, {"lon": 3, "time": 2}],
)
def test_windows_stitch_to_bulk_grid(observations, index, chunks):
    located = locate_observations(observations, index)
    bulk = materialize_grid(located)
    stitched = np.zeros_like(bulk)
    for window in iter_windows(index.shape, chunks):
        stitched[window.slices()] = materialize_window(located, window)
    np.testing.assert_array_equal(stitched, bulk)


def test_round_coordinates_merges_near_duplicates(observations):
    noisy = observations.copy()
    noisy.loc[1, "lon"] = noisy.lon[0] + 1e-9

    assert len(build_dimension_index(noisy).lon) == 10
    rounded = round_coordinates(noisy, 6)
    index = build_dimension_index(rounded)
    assert len(index.lon) == 9
    assert rounded.lon[1] == rounded.lon[0]
    assert round_coordinates(noisy) is noisy


def test_index_is_deterministic(observations):
    shuffled = observations.sample(frac=1, random_state=7).reset_index(drop=True)
    assert build_dimension_index(shuffled) == build_dimension_index(observations)
    a = materialize_grid(locate_observations(observations, build_dimension_index(observations)))
    b = materialize_grid(locate_observations(shuffled, build_dimension_index(shuffled)))
    np.testing.assert_array_equal(a, b)
    pd.testing.assert_frame_equal(build_taxon_table(shuffled), build_taxon_table(observations))
